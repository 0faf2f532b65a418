import asyncio
import logging
import os
import re
import uuid
from pathlib import Path
from typing import BinaryIO, Optional

import cloudinary
import cloudinary.uploader
from fastapi import UploadFile

from core.config import settings
from utils.api_error import ValidationError

logger = logging.getLogger(__name__)

cloudinary.config(
    cloud_name=settings.CLOUDINARY_CLOUD_NAME,
    api_key=settings.CLOUDINARY_API_KEY,
    api_secret=settings.CLOUDINARY_API_SECRET,
    secure=True,
)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
_CHUNK_SIZE = 1024 * 1024


def _remove_local_file(local_path: str) -> None:
    try:
        os.remove(local_path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove temp file {local_path}: {e}")


def _copy_limited(source: BinaryIO, target: Path, max_bytes: int) -> int:
    written = 0
    with open(target, "wb") as out:
        while True:
            chunk = source.read(_CHUNK_SIZE)
            if not chunk:
                return written
            written += len(chunk)
            if written > max_bytes:
                raise ValidationError(f"File exceeds the {max_bytes} byte upload limit")
            out.write(chunk)


async def save_upload_to_temp(upload: UploadFile) -> str:
    """Stage an uploaded file in UPLOAD_TEMP_DIR and return its path.

    The file is copied in chunks; going over MAX_UPLOAD_SIZE_BYTES removes
    the partial copy and raises a ValidationError.
    """
    temp_dir = Path(settings.UPLOAD_TEMP_DIR)
    temp_dir.mkdir(parents=True, exist_ok=True)
    original = _UNSAFE_CHARS.sub("_", Path(upload.filename or "upload").name)
    target = temp_dir / f"{uuid.uuid4().hex}-{original}"
    await upload.seek(0)
    try:
        await asyncio.to_thread(_copy_limited, upload.file, target, settings.MAX_UPLOAD_SIZE_BYTES)
    except Exception:
        _remove_local_file(str(target))
        raise
    return str(target)


async def upload_on_cloudinary(local_path: Optional[str]) -> Optional[dict]:
    """Upload a local file to Cloudinary.

    Returns the Cloudinary response (``url``, ``secure_url``, ``public_id``, ...)
    or None when there is nothing to upload or the upload fails. The local
    file is removed in every case.
    """
    if not local_path:
        return None
    try:
        response = await asyncio.to_thread(
            cloudinary.uploader.upload, local_path, resource_type="auto"
        )
        logger.info(f"Uploaded {local_path} to cloudinary: {response.get('url')}")
        return response
    except Exception as e:
        logger.error(f"Cloudinary upload failed for {local_path}: {e}")
        return None
    finally:
        _remove_local_file(local_path)


async def store_upload(upload: Optional[UploadFile]) -> Optional[str]:
    """Stage, upload and return the remote URL of a multipart file, if any"""
    if upload is None or not upload.filename:
        return None
    local_path = await save_upload_to_temp(upload)
    response = await upload_on_cloudinary(local_path)
    if not response:
        return None
    return response.get("secure_url") or response.get("url")
