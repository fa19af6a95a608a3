"""
Image storage

Uploaded images are validated here and handed to an ImageStorage, which
returns the public URL that gets persisted. The local implementation writes
under UPLOAD_DIR and main.py serves that directory at /uploads.
"""
import logging
import os
import shutil
import uuid
from pathlib import Path
from typing import List

from fastapi import HTTPException
from starlette.datastructures import UploadFile

logger = logging.getLogger(__name__)

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "").rstrip("/")

ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "webp"}
MB = 1024 * 1024


def _extension(upload: UploadFile) -> str:
    name = upload.filename or ""
    ext = name.rsplit(".", 1)[-1].lower() if "." in name else ""
    if not ext and upload.content_type and upload.content_type.startswith("image/"):
        ext = upload.content_type.split("/", 1)[1].lower()
    return ext


def _size(upload: UploadFile) -> int:
    if upload.size is not None:
        return upload.size
    upload.file.seek(0, os.SEEK_END)
    size = upload.file.tell()
    upload.file.seek(0)
    return size


def validate_images(files: List[UploadFile], max_files: int, max_bytes: int,
                    too_many_message: str, too_large_message: str) -> None:
    if len(files) > max_files:
        raise HTTPException(status_code=400, detail=too_many_message)
    for upload in files:
        if _extension(upload) not in ALLOWED_EXTENSIONS:
            raise HTTPException(status_code=400, detail="Only jpg, jpeg, png and webp images are allowed")
        if _size(upload) > max_bytes:
            raise HTTPException(status_code=400, detail=too_large_message)


class LocalImageStorage:
    def __init__(self, root: str = UPLOAD_DIR, base_url: str = PUBLIC_BASE_URL):
        self.root = Path(root)
        self.base_url = base_url

    def save(self, upload: UploadFile, folder: str) -> str:
        target_dir = self.root / folder
        target_dir.mkdir(parents=True, exist_ok=True)
        ext = _extension(upload)
        if ext == "jpeg":
            ext = "jpg"
        filename = f"{uuid.uuid4().hex}.{ext}"
        upload.file.seek(0)
        with open(target_dir / filename, "wb") as out:
            shutil.copyfileobj(upload.file, out)
        logger.info(f"Stored upload {upload.filename!r} as {folder}/{filename}")
        return f"{self.base_url}/uploads/{folder}/{filename}"

    def save_all(self, uploads: List[UploadFile], folder: str) -> List[str]:
        return [self.save(u, folder) for u in uploads]


_storage = LocalImageStorage()


def get_storage() -> LocalImageStorage:
    return _storage
