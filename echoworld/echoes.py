"""
Echo authoring: create, read, delete, media uploads and share links.
"""

from __future__ import annotations

import logging
import re
import uuid
from typing import Iterable, Optional, Sequence

from sqlalchemy import select

from echoworld.db import (
    Database,
    EchoMediaRow,
    EchoRecord,
    EchoRow,
    EchoTagRow,
    UserSettingsRow,
    new_id,
    now,
    to_record,
)
from echoworld.errors import NotFound, PermissionDenied, ValidationFailed
from echoworld.storage import ECHO_MEDIA, StorageClient, UploadedFile, object_key
from shared.text import normalize_tags
from shared.types import EMOTION_KEYS, EchoStatus, Visibility

logger = logging.getLogger(__name__)

CONTENT_MIN = 20
CONTENT_MAX = 2200
TITLE_MAX = 120
COUNTRY_MAX = 60
CITY_MAX = 80
TAGS_MAX = 12

MEDIA_MAX_FILES = 3
MEDIA_MAX_BYTES = 5 * 1024 * 1024
MEDIA_TYPES = {"image/jpeg": "jpg", "image/png": "png", "image/webp": "webp"}

_UNSAFE_NAME = re.compile(r"[^\w.\-]+")

VISIBILITIES = {v.value for v in Visibility}
AUTHORING_STATUSES = (EchoStatus.DRAFT.value, EchoStatus.PUBLISHED.value)


def _optional_text(value: Optional[str], limit: int, label: str) -> Optional[str]:
    text = (value or "").strip()
    if not text:
        return None
    if len(text) > limit:
        raise ValidationFailed(f"{label} is too long (max {limit} characters)")
    return text


def _default_visibility(session, user_id: str) -> str:
    settings = session.get(UserSettingsRow, user_id)
    if settings is None:
        return Visibility.WORLD.value
    return settings.default_echo_visibility or Visibility.WORLD.value


def create_echo(
    db: Database,
    user_id: str,
    *,
    content: str,
    title: Optional[str] = None,
    emotion: Optional[str] = None,
    visibility: Optional[str] = None,
    status: Optional[str] = None,
    is_anonymous: Optional[bool] = None,
    country: Optional[str] = None,
    city: Optional[str] = None,
    language: Optional[str] = None,
    lng: Optional[float] = None,
    lat: Optional[float] = None,
    theme_tags: Optional[Iterable[str]] = None,
    emotion_tags: Optional[Iterable[str]] = None,
) -> EchoRecord:
    body = (content or "").strip()
    if not body:
        raise ValidationFailed("Content is required")
    if len(body) < CONTENT_MIN:
        raise ValidationFailed(
            f"Your echo is too short (minimum {CONTENT_MIN} characters)"
        )
    if len(body) > CONTENT_MAX:
        raise ValidationFailed(f"Your echo is too long (max {CONTENT_MAX} characters)")

    emotion = (emotion or "").strip().lower() or None
    if emotion is not None and emotion not in EMOTION_KEYS:
        raise ValidationFailed(f"Unknown emotion {emotion!r}")

    status = status or EchoStatus.PUBLISHED.value
    if status not in AUTHORING_STATUSES:
        raise ValidationFailed(f"Invalid status {status!r}")

    if (lng is None) != (lat is None):
        raise ValidationFailed("Location needs both lng and lat")
    if lng is not None and not (-180 <= lng <= 180 and -90 <= lat <= 90):
        raise ValidationFailed("Location is out of range")

    themes = normalize_tags(theme_tags)
    if len(themes) > TAGS_MAX:
        raise ValidationFailed(f"At most {TAGS_MAX} tags are allowed")

    with db.Session() as session:
        if visibility is None:
            visibility = _default_visibility(session, user_id)
        if visibility not in VISIBILITIES:
            raise ValidationFailed(f"Invalid visibility {visibility!r}")
        if is_anonymous is None:
            settings = session.get(UserSettingsRow, user_id)
            is_anonymous = bool(settings and settings.default_anonymous)

        row = EchoRow(
            id=new_id(),
            user_id=user_id,
            title=_optional_text(title, TITLE_MAX, "Title"),
            content=body,
            emotion=emotion,
            is_anonymous=bool(is_anonymous),
            country=_optional_text(country, COUNTRY_MAX, "Country"),
            city=_optional_text(city, CITY_MAX, "City"),
            language=(language or "").strip() or None,
            lng=lng,
            lat=lat,
            status=status,
            visibility=visibility,
            emotion_tags=normalize_tags(emotion_tags),
            theme_tags=themes,
            created_at=now(),
        )
        session.add(row)
        for tag in themes:
            session.add(EchoTagRow(id=new_id(), echo_id=row.id, tag=tag))
        session.commit()
        record = to_record(EchoRecord, row)

    logger.info("User %s created echo %s (%s)", user_id, record.id, status)
    return record


def can_view_echo(row: EchoRow, viewer_id: Optional[str]) -> bool:
    """Private and unpublished echoes are visible to their owner only."""
    if row.status == EchoStatus.DELETED.value:
        return False
    is_owner = viewer_id is not None and row.user_id == viewer_id
    if row.status != EchoStatus.PUBLISHED.value and not is_owner:
        return False
    if row.visibility == Visibility.PRIVATE.value and not is_owner:
        return False
    return True


def media_urls_by_echo(db: Database, echo_ids: Sequence[str]) -> dict[str, list[str]]:
    if not echo_ids:
        return {}
    with db.Session() as session:
        rows = session.scalars(
            select(EchoMediaRow)
            .where(EchoMediaRow.echo_id.in_(list(echo_ids)))
            .order_by(EchoMediaRow.echo_id, EchoMediaRow.position)
        ).all()
    urls: dict[str, list[str]] = {}
    for row in rows:
        if row.url:
            urls.setdefault(row.echo_id, []).append(row.url)
    return urls


def get_echo_by_id(
    db: Database, echo_id: str, viewer_id: Optional[str] = None
) -> Optional[dict]:
    with db.Session() as session:
        row = session.get(EchoRow, (echo_id or "").strip())
        if row is None or not can_view_echo(row, viewer_id):
            return None
        record = to_record(EchoRecord, row)

    detail = record.as_dict()
    hide_author = record.is_anonymous or record.visibility == Visibility.SEMI_ANONYMOUS.value
    if hide_author and record.user_id != viewer_id:
        detail["user_id"] = None
    detail["image_urls"] = media_urls_by_echo(db, [record.id]).get(record.id, [])
    return detail


def delete_echo(db: Database, user_id: str, echo_id: str) -> None:
    with db.Session() as session:
        row = session.get(EchoRow, echo_id)
        if row is None or row.status == EchoStatus.DELETED.value:
            raise NotFound("Echo not found")
        if row.user_id != user_id:
            raise PermissionDenied("You can only delete your own echoes")
        row.status = EchoStatus.DELETED.value
        session.commit()


def _safe_file_name(original: str, content_type: str) -> str:
    base = (original or "file").replace("\\", "/").split("/")[-1]
    cleaned = _UNSAFE_NAME.sub("_", base)[:120]
    ext = MEDIA_TYPES.get(content_type)
    if ext is None and "." in cleaned:
        ext = cleaned.rsplit(".", 1)[-1]
    return f"{uuid.uuid4()}.{ext}" if ext else f"{uuid.uuid4()}_{cleaned}"


def upload_echo_media(
    db: Database,
    storage: StorageClient,
    user_id: str,
    echo_id: str,
    files: Sequence[UploadedFile],
) -> list[str]:
    """Store up to three images for an echo; extra files are ignored."""
    if not files:
        return []
    kept = list(files)[:MEDIA_MAX_FILES]
    for upload in kept:
        if upload.content_type not in MEDIA_TYPES:
            raise ValidationFailed("Image format not allowed (jpeg/png/webp)")
        if upload.size > MEDIA_MAX_BYTES:
            raise ValidationFailed("Image is too large (max 5MB)")

    with db.Session() as session:
        echo = session.get(EchoRow, echo_id)
        if echo is None or echo.status == EchoStatus.DELETED.value:
            raise NotFound("Echo not found")
        if echo.user_id != user_id:
            raise PermissionDenied("You can only add media to your own echoes")

    urls = []
    rows = []
    for position, upload in enumerate(kept):
        path = f"{echo_id}/{position}-{_safe_file_name(upload.name, upload.content_type)}"
        key = object_key(ECHO_MEDIA, path)
        storage.upload_bytes(key, upload.data, upload.content_type)
        url = storage.public_url(key)
        urls.append(url)
        rows.append(
            EchoMediaRow(
                id=new_id(), echo_id=echo_id, url=url, path=key, position=position
            )
        )

    with db.Session() as session:
        session.add_all(rows)
        session.commit()
    return urls


def share_url(site_url: str, echo_id: str) -> str:
    return f"{site_url.rstrip('/')}/echo/{echo_id}"
