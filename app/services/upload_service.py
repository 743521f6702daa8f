"""
Upload service: validates an uploaded file and writes it under
``UPLOAD_SAVE_PATH`` where the ``/c/static`` mount serves it back.

Stored names are the md5 of the original base name plus the original
extension, so re-uploading the same file name overwrites the previous copy.
"""
import hashlib
import logging
from pathlib import Path

import aiofiles
from fastapi import UploadFile

from app.config import Settings

FILE_TYPE_IMAGE = 1


class UploadError(Exception):
    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


def stored_name(filename: str) -> str:
    path = Path(filename)
    digest = hashlib.md5(path.stem.encode("utf-8")).hexdigest()
    return f"{digest}{path.suffix.lower()}"


def _check_file(file: UploadFile, file_type: int, settings: Settings) -> None:
    if file_type != FILE_TYPE_IMAGE:
        raise UploadError(400, f"Unsupported file type: {file_type}")
    if not file.filename:
        raise UploadError(400, "File name is required")
    suffix = Path(file.filename).suffix.lower()
    if suffix not in settings.UPLOAD_IMAGE_ALLOW_EXTS:
        raise UploadError(
            400,
            f"File extension not allowed. Allowed: {', '.join(settings.UPLOAD_IMAGE_ALLOW_EXTS)}",
        )


async def upload_file(
    file: UploadFile, file_type: int, settings: Settings, logger: logging.Logger
) -> dict:
    """
    Save *file* and return ``{"file_access_url": ...}``.

    Raises ``UploadError`` (400 for a bad type or extension, 413 when the
    payload exceeds ``UPLOAD_IMAGE_MAX_SIZE``).
    """
    _check_file(file, file_type, settings)

    # One byte past the limit is enough to know the file is too large.
    content = await file.read(settings.UPLOAD_IMAGE_MAX_SIZE + 1)
    if len(content) > settings.UPLOAD_IMAGE_MAX_SIZE:
        raise UploadError(
            413, f"File too large. Max size: {settings.UPLOAD_IMAGE_MAX_SIZE} bytes"
        )

    save_dir = Path(settings.UPLOAD_SAVE_PATH)
    save_dir.mkdir(parents=True, exist_ok=True)
    name = stored_name(file.filename)

    async with aiofiles.open(save_dir / name, "wb") as f:
        await f.write(content)

    logger.info("file uploaded: %s -> %s (%d bytes)", file.filename, name, len(content))
    return {"file_access_url": f"{settings.UPLOAD_SERVER_URL.rstrip('/')}/{name}"}
