"""
Personal data export and account deletion.
"""

from __future__ import annotations

import io
import json
import logging
import zipfile
from datetime import datetime, timezone

from sqlalchemy import or_, select

from echoworld.accounts import check_password, get_user_email, revoke_sessions
from echoworld.db import (
    Database,
    EchoRow,
    FollowRow,
    MessageRow,
    ProfileRow,
    UserSettingsRow,
    now,
)
from echoworld.errors import InvalidCredentials, NotFound, StorageError, ValidationFailed
from echoworld.storage import AVATARS, BANNERS, StorageClient, object_key

logger = logging.getLogger(__name__)


def profile_image_keys(user_id: str) -> dict[str, str]:
    """Archive file name to storage key for the user's profile images."""
    return {
        "avatar.webp": object_key(AVATARS, f"{user_id}/avatar.webp"),
        "banner.webp": object_key(BANNERS, f"{user_id}/banner.webp"),
    }


def collect_account_data(db: Database, user_id: str) -> dict:
    with db.Session() as session:
        profile = session.get(ProfileRow, user_id)
        settings = session.get(UserSettingsRow, user_id)
        echoes = session.scalars(select(EchoRow).where(EchoRow.user_id == user_id)).all()
        messages = session.scalars(
            select(MessageRow).where(MessageRow.sender_id == user_id)
        ).all()
        follows = session.scalars(
            select(FollowRow).where(
                or_(FollowRow.follower_id == user_id, FollowRow.following_id == user_id)
            )
        ).all()
        return {
            "export_date": datetime.now(timezone.utc).isoformat(),
            "user": {"id": user_id, "email": get_user_email(db, user_id)},
            "profile": profile.as_dict() if profile is not None else None,
            "settings": settings.as_dict() if settings is not None else None,
            "echoes": [row.as_dict() for row in echoes],
            "messages": [row.as_dict() for row in messages],
            "follows": [row.as_dict() for row in follows],
        }


def export_account(db: Database, storage: StorageClient, user_id: str) -> bytes:
    """ZIP archive with ``data.json`` and whichever profile images exist."""
    data = collect_account_data(db, user_id)
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr("data.json", json.dumps(data, indent=2, default=str))
        for name, key in profile_image_keys(user_id).items():
            try:
                archive.writestr(name, storage.get_bytes(key))
            except (FileNotFoundError, StorageError) as exc:
                logger.warning("Export of %s skipped %s: %s", user_id, name, exc)
    return buffer.getvalue()


def export_filename(user_id: str) -> str:
    return f"echoworld-export-{user_id}.zip"


def delete_account(
    db: Database, storage: StorageClient, user_id: str, password: str | None
) -> None:
    """Soft delete after re-checking the password, then sign out everywhere.

    The rows stay for the retention window; the purge worker removes them.
    """
    if not password:
        raise ValidationFailed("Password is required", code="PASSWORD_REQUIRED")
    if not check_password(db, user_id, password):
        raise InvalidCredentials("Invalid password", code="INVALID_PASSWORD")

    with db.Session() as session:
        profile = session.get(ProfileRow, user_id)
        if profile is None:
            raise NotFound("Profile not found")
        profile.deleted_at = now()
        session.commit()

    try:
        storage.remove(profile_image_keys(user_id).values())
    except StorageError:
        logger.warning("Storage cleanup failed for deleted account %s", user_id, exc_info=True)

    revoke_sessions(db, user_id)
    logger.info("Account %s scheduled for deletion", user_id)
