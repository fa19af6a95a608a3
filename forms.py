"""
Request body reading for endpoints that accept either JSON or multipart forms.

Multipart keys are kept verbatim (`specifications[0][key]`, `images[1]`),
repeated keys collapse into lists, and uploaded files are split off.
"""
import json
from typing import Any, Dict, List, Optional, Tuple

from fastapi import HTTPException, Request
from starlette.datastructures import UploadFile

MAX_FORM_FIELDS = 1000
MAX_FORM_FILES = 20


class RequestBody:
    def __init__(self, fields: Dict[str, Any], files: List[Tuple[str, UploadFile]]):
        self.fields = fields
        self.files = files

    def __contains__(self, name: str) -> bool:
        return name in self.fields

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)

    def provided(self, name: str) -> bool:
        """The key itself or any indexed form of it (`name[...]`) is present."""
        if name in self.fields:
            return True
        prefix = f"{name}["
        return any(key.startswith(prefix) for key in self.fields)

    def any_provided(self, *names: str) -> bool:
        return any(self.provided(n) for n in names)

    def files_for(self, *names: str) -> List[UploadFile]:
        matched = []
        for field, upload in self.files:
            if field in names or any(field.startswith(f"{n}[") for n in names):
                matched.append(upload)
        return matched


async def read_body(request: Request) -> RequestBody:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data") or content_type.startswith("application/x-www-form-urlencoded"):
        form = await request.form(max_files=MAX_FORM_FILES, max_fields=MAX_FORM_FIELDS)
        fields: Dict[str, Any] = {}
        files: List[Tuple[str, UploadFile]] = []
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                if value.filename:
                    files.append((key, value))
                continue
            if key in fields:
                existing = fields[key]
                fields[key] = existing + [value] if isinstance(existing, list) else [existing, value]
            else:
                fields[key] = value
        return RequestBody(fields, files)

    raw = await request.body()
    if not raw:
        return RequestBody({}, [])
    try:
        data = json.loads(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail="Malformed JSON body")
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Request body must be an object")
    return RequestBody(data, [])


def optional_text(body: RequestBody, name: str) -> Optional[Any]:
    value = body.get(name)
    if isinstance(value, list):
        value = value[-1] if value else None
    return value
