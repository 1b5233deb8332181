"""Image storage for uploads.

Goes through the Cloudinary SDK when credentials are configured.
Otherwise files are written under ``UPLOAD_DIR`` and served from
``UPLOAD_PUBLIC_BASE_URL``, which keeps development and tests offline.
Either way callers get ``{"url", "public_id"}`` back and delete by public id.
"""

from __future__ import annotations

import asyncio
import io
import logging
import os
import re
import uuid
from typing import Any, Dict, Iterable, List

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader

from inksnap.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_FOLDER = "uploads"
_ALLOWED_EXT = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".heic"}
_CT_EXT = {"image/png": ".png", "image/jpeg": ".jpg", "image/jpg": ".jpg", "image/webp": ".webp", "image/gif": ".gif"}
_SAFE_SEGMENT = re.compile(r"[^A-Za-z0-9_-]+")


class StorageError(Exception):
    """Raised when an object cannot be stored or removed."""


def _clean_folder(folder: str | None) -> str:
    parts = [_SAFE_SEGMENT.sub("-", p).strip("-") for p in (folder or DEFAULT_FOLDER).split("/")]
    return "/".join(p for p in parts if p) or DEFAULT_FOLDER


def _extension(filename: str | None, content_type: str | None) -> str:
    _, ext = os.path.splitext(filename or "")
    ext = ext.lower()
    if ext in _ALLOWED_EXT:
        return ext
    return _CT_EXT.get((content_type or "").lower(), ".jpg")


def _cloudinary_options() -> Dict[str, Any]:
    """Credentials passed on each SDK call, read from settings."""
    return {
        "cloud_name": settings.CLOUDINARY_CLOUD_NAME,
        "api_key": settings.CLOUDINARY_API_KEY,
        "api_secret": settings.CLOUDINARY_API_SECRET,
        "secure": True,
        "timeout": settings.HTTP_TIMEOUT,
    }


def _cloudinary_upload(data: bytes, filename: str, folder: str) -> Dict[str, str]:
    stream = io.BytesIO(data)
    stream.name = filename
    try:
        body = cloudinary.uploader.upload(stream, folder=folder, resource_type="image", **_cloudinary_options())
    except cloudinary.exceptions.Error as exc:
        logger.warning("Cloudinary upload failed: %s", exc)
        raise StorageError("Image upload failed.") from exc
    secure_url = body.get("secure_url") or body.get("url")
    public_id = body.get("public_id")
    if not secure_url or not public_id:
        raise StorageError("Image upload returned no URL.")
    return {"url": secure_url, "public_id": public_id}


def _cloudinary_destroy(public_id: str) -> bool:
    try:
        body = cloudinary.uploader.destroy(public_id, resource_type="image", **_cloudinary_options())
    except cloudinary.exceptions.Error as exc:
        logger.warning("Cloudinary destroy failed for %s: %s", public_id, exc)
        raise StorageError("Image deletion failed.") from exc
    return (body or {}).get("result") == "ok"


def _local_path(public_id: str) -> str:
    root = os.path.abspath(settings.UPLOAD_DIR)
    path = os.path.abspath(os.path.join(root, public_id))
    if not path.startswith(root + os.sep):
        raise StorageError("Invalid public id.")
    return path


def _local_upload(data: bytes, filename: str, folder: str, content_type: str | None) -> Dict[str, str]:
    public_id = f"{folder}/{uuid.uuid4().hex}{_extension(filename, content_type)}"
    path = _local_path(public_id)
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as fh:
            fh.write(data)
    except OSError as exc:
        raise StorageError("Image upload failed.") from exc
    base = settings.UPLOAD_PUBLIC_BASE_URL.rstrip("/")
    return {"url": f"{base}/{public_id}", "public_id": public_id}


def _local_destroy(public_id: str) -> bool:
    path = _local_path(public_id)
    try:
        os.remove(path)
        return True
    except FileNotFoundError:
        return False
    except OSError as exc:
        raise StorageError("Image deletion failed.") from exc


async def upload_image(
    data: bytes,
    filename: str | None = None,
    folder: str | None = None,
    content_type: str | None = None,
) -> Dict[str, str]:
    if not data:
        raise StorageError("Empty file.")
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise StorageError("File is too large.")
    if content_type and not content_type.lower().startswith("image/"):
        raise StorageError("Only image uploads are allowed.")
    target = _clean_folder(folder)
    name = filename or "upload"
    if settings.cloudinary_enabled:
        result = await asyncio.to_thread(_cloudinary_upload, data, name, target)
    else:
        result = _local_upload(data, name, target, content_type)
    logger.info("Stored upload %s", result["public_id"])
    return result


async def delete_images(public_ids: Iterable[str]) -> List[str]:
    """Delete stored objects; returns the ids that were removed."""
    removed: List[str] = []
    for public_id in public_ids:
        if not public_id:
            continue
        if settings.cloudinary_enabled:
            ok = await asyncio.to_thread(_cloudinary_destroy, public_id)
        else:
            ok = _local_destroy(public_id)
        if ok:
            removed.append(public_id)
    logger.info("Deleted %d of the requested uploads", len(removed))
    return removed
