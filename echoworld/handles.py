"""
Handle normalization, validation and availability.
"""

from __future__ import annotations

import logging
import re

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from echoworld.db import Database, ProfileRow
from echoworld.errors import Conflict, NotFound, ValidationFailed

logger = logging.getLogger(__name__)

HANDLE_MIN = 3
HANDLE_MAX = 24
URL_HANDLE_MAX = 32

RESERVED_HANDLES = frozenset(
    {
        "admin",
        "api",
        "app",
        "auth",
        "account",
        "settings",
        "login",
        "signup",
        "register",
        "explore",
        "map",
        "u",
        "me",
        "support",
        "terms",
        "privacy",
    }
)

_WHITESPACE = re.compile(r"\s+")
_STRICT_INVALID = re.compile(r"[^a-z0-9_-]")
_URL_INVALID = re.compile(r"[^a-z0-9._-]")


def clean_handle_for_lookup(raw: str | None) -> str:
    """Trim and drop one leading ``@``; case and charset are left alone."""
    value = (raw or "").strip()
    if value.startswith("@"):
        value = value[1:]
    return value.strip()


def normalize_handle_strict(raw: str | None) -> str:
    cleaned = clean_handle_for_lookup(raw)
    if not cleaned:
        return ""
    value = _WHITESPACE.sub("_", cleaned.lower())
    return _STRICT_INVALID.sub("", value)[:HANDLE_MAX]


def normalize_handle_for_url(raw: str | None) -> str:
    """Slug used in profile URLs; keeps ``.`` for older handles."""
    cleaned = clean_handle_for_lookup(raw)
    if not cleaned:
        return ""
    value = _WHITESPACE.sub("_", cleaned.lower())
    return _URL_INVALID.sub("", value)[:URL_HANDLE_MAX]


def validate_handle(raw: str | None) -> tuple[bool, str]:
    normalized = normalize_handle_strict(raw)
    if not normalized:
        return False, ""
    if len(normalized) < HANDLE_MIN:
        return False, normalized
    if normalized in RESERVED_HANDLES:
        return False, normalized
    return True, normalized


def check_handle_available(db: Database, raw: str | None) -> bool:
    ok, normalized = validate_handle(raw)
    if not ok:
        return False
    try:
        with db.Session() as session:
            taken = session.scalar(
                select(ProfileRow.id).where(ProfileRow.handle == normalized).limit(1)
            )
    except SQLAlchemyError:
        logger.exception("Handle availability check failed for %r", normalized)
        return False
    return taken is None


def update_handle(db: Database, user_id: str, raw: str | None) -> str:
    ok, normalized = validate_handle(raw)
    if not ok:
        raise ValidationFailed("Invalid handle")
    with db.Session() as session:
        profile = session.get(ProfileRow, user_id)
        if profile is None or profile.deleted_at is not None:
            raise NotFound("Profile not found")
        holder = session.scalar(
            select(ProfileRow.id).where(ProfileRow.handle == normalized).limit(1)
        )
        if holder is not None and holder != user_id:
            raise Conflict("Handle already taken", code="HANDLE_TAKEN")
        profile.handle = normalized
        session.commit()
    return normalized
