"""
Direct-message attachments: upload rules and display helpers.
"""

from __future__ import annotations

import logging
import re
import secrets
import time

from echoworld.errors import ValidationFailed
from echoworld.storage import MESSAGE_ATTACHMENTS, StorageClient, UploadedFile, object_key

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 10 * 1024 * 1024
ALLOWED_IMAGE_TYPES = (
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
)
ALLOWED_DOCUMENT_TYPES = (
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
)
ALLOWED_FILE_TYPES = ALLOWED_IMAGE_TYPES + ALLOWED_DOCUMENT_TYPES

_EXT_BY_MIME = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "application/pdf": "pdf",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
}
_BASE_NAME_MAX = 60
_UNSAFE_CHARS = re.compile(r"[^a-z0-9._-]+")
_EXT_PATTERN = re.compile(r"^[a-z0-9]{1,8}$")


def ext_from_mime(mime: str) -> str:
    return _EXT_BY_MIME.get((mime or "").lower(), "")


def _split_name(name: str) -> tuple[str, str]:
    base, dot, ext = (name or "").rpartition(".")
    if not dot:
        return name or "", ""
    return base, ext


def safe_base_name(name: str) -> str:
    base, _ = _split_name(name)
    cleaned = base.lower().strip()
    cleaned = re.sub(r"\s+", "-", cleaned)
    cleaned = _UNSAFE_CHARS.sub("", cleaned)[:_BASE_NAME_MAX]
    return cleaned or "file"


def safe_ext(name: str, mime: str) -> str:
    from_mime = ext_from_mime(mime)
    if from_mime:
        return from_mime
    _, ext = _split_name(name)
    ext = ext.lower()
    return ext if _EXT_PATTERN.match(ext) else "bin"


def validate_attachment(file: UploadedFile) -> None:
    if file.size > MAX_FILE_SIZE:
        raise ValidationFailed(
            f"File is too large (max {MAX_FILE_SIZE // (1024 * 1024)} MB)"
        )
    if (file.content_type or "").lower() not in ALLOWED_FILE_TYPES:
        raise ValidationFailed("Only images, PDF and Word documents are allowed")


def attachment_path(user_id: str, file: UploadedFile) -> str:
    """``<user_id>/<ms>-<rand>-<base>.<ext>`` inside the attachments bucket."""
    millis = int(time.time() * 1000)
    suffix = secrets.token_hex(4)
    base = safe_base_name(file.name)
    ext = safe_ext(file.name, file.content_type)
    return f"{user_id}/{millis}-{suffix}-{base}.{ext}"


def upload_attachment(storage: StorageClient, user_id: str, file: UploadedFile) -> dict:
    validate_attachment(file)
    key = object_key(MESSAGE_ATTACHMENTS, attachment_path(user_id, file))
    storage.upload_bytes(key, file.data, content_type=file.content_type)
    logger.info("Stored attachment %s (%d bytes)", key, file.size)
    return {
        "url": storage.public_url(key),
        "path": key,
        "name": file.name,
        "size": file.size,
        "type": file.content_type,
    }


def is_image_file(mime: str) -> bool:
    return (mime or "").lower() in ALLOWED_IMAGE_TYPES


def format_file_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def upload_message_attachments(
    storage: StorageClient, files: list[UploadedFile], user_id: str
) -> list[dict]:
    """Validate every file first so a bad one uploads nothing."""
    for file in files:
        validate_attachment(file)
    return [upload_attachment(storage, user_id, file) for file in files]
