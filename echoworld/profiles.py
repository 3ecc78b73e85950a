"""
Profiles, public profile pages, follows and per-user settings.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Optional

from sqlalchemy import delete, func, select

from echoworld.accounts import default_user_settings
from echoworld.db import (
    Database,
    EchoRecord,
    EchoRow,
    FollowRow,
    ProfileRecord,
    ProfileRow,
    UserSettingsRow,
    new_id,
    now,
    to_record,
)
from echoworld.errors import NotFound, ValidationFailed
from echoworld.handles import clean_handle_for_lookup, normalize_handle_for_url
from echoworld.notifications import create_notification
from echoworld.realtime import RealtimeHub
from echoworld.storage import AVATARS, BANNERS, StorageClient, UploadedFile, object_key
from shared.types import (
    PUBLIC_VISIBILITIES,
    EchoStatus,
    NotificationType,
    Theme,
    Visibility,
)

logger = logging.getLogger(__name__)

PROFILE_IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp")
PROFILE_IMAGE_MAX_BYTES = 5 * 1024 * 1024
DISPLAY_NAME_MAX = 60
BIO_MAX = 280

SETTINGS_FIELDS = (
    "default_echo_visibility",
    "default_anonymous",
    "allow_responses",
    "allow_mirrors",
    "notifications_soft",
    "theme",
    "for_me_enabled",
    "for_me_use_likes",
    "for_me_use_mirrors",
    "for_me_include_fresh",
    "for_me_max_items",
)


def _clamp(value: Any, default: int, low: int, high: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        number = default
    return max(low, min(number, high))


def _visible_profile(row: Optional[ProfileRow]) -> Optional[ProfileRecord]:
    if row is None or row.deleted_at is not None:
        return None
    return to_record(ProfileRecord, row)


def get_profile_by_id(db: Database, user_id: str) -> Optional[ProfileRecord]:
    clean = (user_id or "").strip()
    if not clean:
        return None
    with db.Session() as session:
        return _visible_profile(session.get(ProfileRow, clean))


def get_profile_by_handle(db: Database, handle: str) -> Optional[ProfileRecord]:
    """Case-insensitive exact match, then a retry on the URL-normalized slug."""
    clean = clean_handle_for_lookup(handle)
    if not clean:
        return None
    candidates = [clean.lower()]
    normalized = normalize_handle_for_url(clean)
    if normalized and normalized != clean.lower():
        candidates.append(normalized)

    with db.Session() as session:
        for candidate in candidates:
            row = session.scalar(
                select(ProfileRow)
                .where(func.lower(ProfileRow.handle) == candidate)
                .limit(1)
            )
            profile = _visible_profile(row)
            if profile is not None:
                return profile
    logger.debug("No profile found for handle %r", clean)
    return None


def _public_echoes_query(user_id: str):
    return select(EchoRow).where(
        EchoRow.user_id == user_id,
        EchoRow.status == EchoStatus.PUBLISHED.value,
        EchoRow.visibility.in_(PUBLIC_VISIBILITIES),
    )


def get_user_public_echoes(
    db: Database, user_id: str, limit: int = 12
) -> list[EchoRecord]:
    clean = (user_id or "").strip()
    if not clean:
        return []
    safe_limit = _clamp(limit, 12, 1, 50)
    with db.Session() as session:
        rows = session.scalars(
            _public_echoes_query(clean)
            .order_by(EchoRow.created_at.desc())
            .limit(safe_limit)
        ).all()
        return [to_record(EchoRecord, row) for row in rows]


def get_user_public_echoes_count(db: Database, user_id: str) -> int:
    clean = (user_id or "").strip()
    if not clean:
        return 0
    with db.Session() as session:
        return int(
            session.scalar(
                select(func.count()).select_from(
                    _public_echoes_query(clean).subquery()
                )
            )
            or 0
        )


def get_user_public_top_themes(
    db: Database, user_id: str, scan_limit: int = 200, top_n: int = 6
) -> list[str]:
    clean = (user_id or "").strip()
    if not clean:
        return []
    scan = _clamp(scan_limit, 200, 10, 500)
    top = _clamp(top_n, 6, 3, 12)
    with db.Session() as session:
        tag_lists = session.scalars(
            select(EchoRow.theme_tags)
            .where(
                EchoRow.user_id == clean,
                EchoRow.status == EchoStatus.PUBLISHED.value,
                EchoRow.visibility.in_(PUBLIC_VISIBILITIES),
            )
            .order_by(EchoRow.created_at.desc())
            .limit(scan)
        ).all()

    freq: Counter[str] = Counter()
    for tags in tag_lists:
        for tag in tags or []:
            tag = str(tag or "").strip()
            if tag:
                freq[tag] += 1
    return [tag for tag, _ in freq.most_common(top)]


def get_public_profile_data(
    db: Database,
    *,
    user_id: Optional[str] = None,
    handle: Optional[str] = None,
    limit: int = 12,
) -> dict:
    """Profile page payload; private or missing profiles raise NotFound."""
    if user_id:
        profile = get_profile_by_id(db, user_id)
    else:
        profile = get_profile_by_handle(db, handle or "")
    if profile is None or profile.public_profile_enabled is False:
        raise NotFound("Profile not found")

    return {
        "profile": profile.as_dict(),
        "echoes": [echo.as_dict() for echo in get_user_public_echoes(db, profile.id, limit)],
        "stats": {
            "echoes_count": get_user_public_echoes_count(db, profile.id),
            "top_themes": get_user_public_top_themes(db, profile.id),
            "location": {"country": None, "city": None},
        },
    }


def set_public_profile(db: Database, user_id: str, enabled: bool) -> bool:
    with db.Session() as session:
        profile = session.get(ProfileRow, user_id)
        if profile is None or profile.deleted_at is not None:
            raise NotFound("Profile not found")
        profile.public_profile_enabled = bool(enabled)
        session.commit()
    return bool(enabled)


def update_profile(
    db: Database,
    user_id: str,
    *,
    display_name: Optional[str] = None,
    bio: Optional[str] = None,
) -> ProfileRecord:
    with db.Session() as session:
        profile = session.get(ProfileRow, user_id)
        if profile is None or profile.deleted_at is not None:
            raise NotFound("Profile not found")
        if display_name is not None:
            name = display_name.strip()
            if len(name) > DISPLAY_NAME_MAX:
                raise ValidationFailed("Display name is too long")
            profile.display_name = name or None
        if bio is not None:
            text = bio.strip()
            if len(text) > BIO_MAX:
                raise ValidationFailed("Bio is too long")
            profile.bio = text or None
        session.commit()
        return to_record(ProfileRecord, profile)


def _upload_profile_image(
    db: Database,
    storage: StorageClient,
    user_id: str,
    upload: UploadedFile,
    *,
    bucket: str,
    filename: str,
    column: str,
) -> str:
    if upload.content_type not in PROFILE_IMAGE_TYPES:
        raise ValidationFailed(f"File type {upload.content_type!r} is not allowed")
    if upload.size > PROFILE_IMAGE_MAX_BYTES:
        raise ValidationFailed("Image is too large (max 5MB)")

    key = object_key(bucket, f"{user_id}/{filename}")
    storage.upload_bytes(key, upload.data, upload.content_type)
    url = storage.public_url(key)
    with db.Session() as session:
        profile = session.get(ProfileRow, user_id)
        if profile is None or profile.deleted_at is not None:
            raise NotFound("Profile not found")
        setattr(profile, column, url)
        session.commit()
    return url


def upload_avatar(
    db: Database, storage: StorageClient, user_id: str, upload: UploadedFile
) -> str:
    return _upload_profile_image(
        db, storage, user_id, upload,
        bucket=AVATARS, filename="avatar.webp", column="avatar_url",
    )


def upload_banner(
    db: Database, storage: StorageClient, user_id: str, upload: UploadedFile
) -> str:
    return _upload_profile_image(
        db, storage, user_id, upload,
        bucket=BANNERS, filename="banner.webp", column="banner_url",
    )


# Follows


def follow(
    db: Database,
    follower_id: str,
    following_id: str,
    hub: Optional[RealtimeHub] = None,
) -> bool:
    """Returns True when a new follow was created."""
    if follower_id == following_id:
        raise ValidationFailed("You cannot follow yourself")
    if get_profile_by_id(db, following_id) is None:
        raise NotFound("Profile not found")
    with db.Session() as session:
        existing = session.scalar(
            select(FollowRow.id).where(
                FollowRow.follower_id == follower_id,
                FollowRow.following_id == following_id,
            )
        )
        if existing is not None:
            return False
        session.add(
            FollowRow(
                id=new_id(),
                follower_id=follower_id,
                following_id=following_id,
                created_at=now(),
            )
        )
        session.commit()
    create_notification(
        db,
        hub,
        user_id=following_id,
        type=NotificationType.FOLLOW.value,
        actor_id=follower_id,
        title="New follower",
    )
    return True


def unfollow(db: Database, follower_id: str, following_id: str) -> None:
    with db.Session() as session:
        session.execute(
            delete(FollowRow).where(
                FollowRow.follower_id == follower_id,
                FollowRow.following_id == following_id,
            )
        )
        session.commit()


def is_following(db: Database, follower_id: str, following_id: str) -> bool:
    with db.Session() as session:
        return (
            session.scalar(
                select(FollowRow.id).where(
                    FollowRow.follower_id == follower_id,
                    FollowRow.following_id == following_id,
                )
            )
            is not None
        )


def follow_counts(db: Database, user_id: str) -> dict[str, int]:
    with db.Session() as session:
        followers = session.scalar(
            select(func.count(FollowRow.id)).where(FollowRow.following_id == user_id)
        )
        following = session.scalar(
            select(func.count(FollowRow.id)).where(FollowRow.follower_id == user_id)
        )
    return {"followers": int(followers or 0), "following": int(following or 0)}


# Settings


def get_user_settings(db: Database, user_id: str) -> dict:
    with db.Session() as session:
        row = session.get(UserSettingsRow, user_id)
        if row is None:
            raise NotFound("Settings not found")
        return row.as_dict()


def update_user_settings(db: Database, user_id: str, **changes: Any) -> dict:
    unknown = set(changes) - set(SETTINGS_FIELDS)
    if unknown:
        raise ValidationFailed(f"Unknown settings: {', '.join(sorted(unknown))}")
    if "default_echo_visibility" in changes:
        if changes["default_echo_visibility"] not in {v.value for v in Visibility}:
            raise ValidationFailed("Invalid default visibility")
    if "theme" in changes and changes["theme"] not in {t.value for t in Theme}:
        raise ValidationFailed("Invalid theme")
    if "for_me_max_items" in changes:
        value = changes["for_me_max_items"]
        if not isinstance(value, int) or not 1 <= value <= 50:
            raise ValidationFailed("for_me_max_items must be between 1 and 50")

    with db.Session() as session:
        row = session.get(UserSettingsRow, user_id)
        if row is None:
            raise NotFound("Settings not found")
        for key, value in changes.items():
            setattr(row, key, value)
        session.commit()
        return row.as_dict()


def get_user_settings_or_default(db: Database, user_id: str) -> dict:
    try:
        return get_user_settings(db, user_id)
    except NotFound:
        logger.warning("Settings missing for %s, using defaults", user_id)
        return default_user_settings(user_id).as_dict()
