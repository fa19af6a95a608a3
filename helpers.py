import math
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from bson import ObjectId
from fastapi import HTTPException

from database import collection

USER_PUBLIC_FIELDS = ("name", "email", "role")

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")
_FALSEY = {"false", "0", "no", "off", ""}


def to_obj_id(id_str: Any, detail: str = "Invalid id") -> ObjectId:
    if isinstance(id_str, ObjectId):
        return id_str
    if not isinstance(id_str, str) or not ObjectId.is_valid(id_str):
        raise HTTPException(status_code=400, detail=detail)
    return ObjectId(id_str)


def to_public(value: Any) -> Any:
    """Make a Mongo document JSON friendly: _id -> id, ObjectId -> str, datetimes -> isoformat."""
    if isinstance(value, dict):
        d = {}
        for k, v in value.items():
            if k == "_id":
                d["id"] = str(v)
            else:
                d[k] = to_public(v)
        return d
    if isinstance(value, (list, tuple)):
        return [to_public(v) for v in value]
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def trim_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    trimmed = str(value).strip()
    return trimmed or None


def require_text(value: Any, message: str) -> str:
    """Trimmed string or 400 when missing/blank."""
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        raise HTTPException(status_code=400, detail=message)
    trimmed = trim_or_none(value)
    if trimmed is None:
        raise HTTPException(status_code=400, detail=message)
    return trimmed


def parse_number(value: Any) -> Optional[float]:
    """Permissive number parsing: numbers or numeric strings; anything else is None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        if not value.strip():
            return None
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return int(number) if number.is_integer() else number


def parse_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in _FALSEY
    return bool(value)


def slugify(text: str) -> str:
    return _SLUG_STRIP.sub("-", text.strip().lower()).strip("-")


def page_params(page: Any, limit: Any, default_limit: int = 10, max_limit: int = 100) -> Tuple[int, int, int]:
    """(page, limit, skip) with page >= 1 and 1 <= limit <= max_limit."""
    try:
        page = int(page)
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        limit = default_limit
    page = max(page, 1)
    if limit < 1:
        limit = default_limit
    limit = min(limit, max_limit)
    return page, limit, (page - 1) * limit


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if total else 0


def populate(docs: List[Dict], field: str, collection_name: str, fields: Iterable[str]) -> List[Dict]:
    """Replace an ObjectId reference on each doc with a projection of the referenced document.

    `field` may be dotted one level into a list of subdocuments (e.g. "reviews.user").
    """
    fields = tuple(fields)
    outer, _, inner = field.partition(".")

    def targets():
        for doc in docs:
            if inner:
                for sub in doc.get(outer) or []:
                    yield sub, inner
            else:
                yield doc, outer

    ids = {t[k] for t, k in targets() if isinstance(t.get(k), ObjectId)}
    if not ids:
        return docs
    projection = {f: 1 for f in fields}
    found = {d["_id"]: d for d in collection(collection_name).find({"_id": {"$in": list(ids)}}, projection)}
    for target, key in targets():
        ref = target.get(key)
        if isinstance(ref, ObjectId):
            target[key] = found.get(ref)
    return docs


def populate_one(doc: Optional[Dict], field: str, collection_name: str, fields: Iterable[str]) -> Optional[Dict]:
    if doc is None:
        return doc
    populate([doc], field, collection_name, fields)
    return doc


def same_id(a: Any, b: Any) -> bool:
    return a is not None and b is not None and str(a) == str(b)
