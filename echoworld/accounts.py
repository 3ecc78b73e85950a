"""
Email/password accounts and bearer sessions.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import re
import secrets
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy import delete, select

from echoworld.db import (
    Database,
    PasswordResetRow,
    ProfileRow,
    SessionRow,
    UserRow,
    UserSettingsRow,
    new_id,
    now,
)
from echoworld.errors import InvalidCredentials, ValidationFailed

logger = logging.getLogger(__name__)

PASSWORD_MIN_LENGTH = 8
PBKDF2_ITERATIONS = 260_000
HASH_SCHEME = "pbkdf2_sha256"

NEUTRAL_RESET_MESSAGE = (
    "If an account exists for this email, a reset link has been sent."
)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass
class SessionInfo:
    token: str
    user_id: str
    expires_at: float


def hash_password(password: str, *, iterations: int = PBKDF2_ITERATIONS) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations
    )
    encoded = base64.b64encode(digest).decode("ascii")
    return f"{HASH_SCHEME}${iterations}${salt}${encoded}"


def verify_password(password: str, stored: str) -> bool:
    try:
        scheme, iterations, salt, expected = stored.split("$", 3)
        rounds = int(iterations)
    except (AttributeError, ValueError):
        return False
    if scheme != HASH_SCHEME:
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256", (password or "").encode("utf-8"), salt.encode("utf-8"), rounds
    )
    actual = base64.b64encode(digest).decode("ascii")
    return hmac.compare_digest(actual, expected)


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email or ""))


def calculate_age(date_of_birth: str, today: Optional[date] = None) -> int:
    """Calendar-accurate age in years; raises ValueError on a malformed date."""
    birth = date.fromisoformat(date_of_birth[:10])
    today = today or date.today()
    age = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        age -= 1
    return age


def default_handle(user_id: str) -> str:
    clean = (user_id or "").strip().lower().replace("-", "")
    return f"user_{clean[:6]}"


def default_user_settings(user_id: str) -> UserSettingsRow:
    return UserSettingsRow(
        user_id=user_id,
        default_echo_visibility="world",
        default_anonymous=False,
        allow_responses=True,
        allow_mirrors=True,
        notifications_soft=True,
        theme="system",
        for_me_enabled=True,
        for_me_use_likes=True,
        for_me_use_mirrors=True,
        for_me_include_fresh=True,
        for_me_max_items=18,
    )


def _new_session(session, user_id: str, ttl_seconds: int) -> SessionInfo:
    created = now()
    row = SessionRow(
        token=secrets.token_urlsafe(32),
        user_id=user_id,
        created_at=created,
        expires_at=created + ttl_seconds,
    )
    session.add(row)
    return SessionInfo(token=row.token, user_id=user_id, expires_at=row.expires_at)


def signup(
    db: Database,
    email: str,
    password: str,
    date_of_birth: str,
    tos_accepted: bool,
    *,
    minimum_age: int = 16,
    session_ttl_seconds: int = 30 * 24 * 3600,
) -> SessionInfo:
    """Create the account, its profile and settings in one transaction."""
    email = (email or "").strip().lower()
    password = password or ""
    date_of_birth = (date_of_birth or "").strip()

    if not email or not password:
        raise ValidationFailed("Email and password are required")
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationFailed(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
        )
    if not date_of_birth:
        raise ValidationFailed("Date of birth is required")
    if not tos_accepted:
        raise ValidationFailed("You must accept the Terms of Service")
    try:
        age = calculate_age(date_of_birth)
    except ValueError:
        age = -1
    if age < minimum_age:
        raise ValidationFailed(
            f"You must be at least {minimum_age} years old to create an account"
        )
    if not is_valid_email(email):
        raise ValidationFailed("Invalid email address")

    with db.Session() as session:
        existing = session.scalar(select(UserRow).where(UserRow.email == email))
        if existing is not None:
            raise ValidationFailed("User already registered")

        created = now()
        user_id = new_id()
        session.add(
            UserRow(
                id=user_id,
                email=email,
                password_hash=hash_password(password),
                created_at=created,
            )
        )
        session.add(
            ProfileRow(
                id=user_id,
                handle=default_handle(user_id),
                date_of_birth=date_of_birth,
                age_verified=True,
                tos_accepted_at=created,
                public_profile_enabled=True,
                created_at=created,
            )
        )
        session.add(default_user_settings(user_id))
        info = _new_session(session, user_id, session_ttl_seconds)
        session.commit()

    logger.info("Created account %s", user_id)
    return info


def login(
    db: Database,
    email: str,
    password: str,
    *,
    session_ttl_seconds: int = 30 * 24 * 3600,
) -> SessionInfo:
    email = (email or "").strip().lower()
    if not email or not password:
        raise ValidationFailed("Email and password are required")

    with db.Session() as session:
        user = session.scalar(select(UserRow).where(UserRow.email == email))
        if user is None or not verify_password(password, user.password_hash):
            raise InvalidCredentials("Invalid login credentials")
        profile = session.get(ProfileRow, user.id)
        if profile is not None and profile.deleted_at is not None:
            raise InvalidCredentials("Invalid login credentials")
        info = _new_session(session, user.id, session_ttl_seconds)
        session.commit()
    return info


def logout(db: Database, token: str) -> None:
    with db.Session() as session:
        session.execute(delete(SessionRow).where(SessionRow.token == token))
        session.commit()


def revoke_sessions(db: Database, user_id: str) -> None:
    with db.Session() as session:
        session.execute(delete(SessionRow).where(SessionRow.user_id == user_id))
        session.commit()


def resolve_session(db: Database, token: Optional[str]) -> Optional[str]:
    """Return the user id behind a bearer token, or None."""
    if not token:
        return None
    with db.Session() as session:
        row = session.get(SessionRow, token)
        if row is None:
            return None
        if row.expires_at <= now():
            session.delete(row)
            session.commit()
            return None
        return row.user_id


def get_user_email(db: Database, user_id: str) -> Optional[str]:
    with db.Session() as session:
        user = session.get(UserRow, user_id)
        return user.email if user else None


def check_password(db: Database, user_id: str, password: str) -> bool:
    with db.Session() as session:
        user = session.get(UserRow, user_id)
        return bool(user) and verify_password(password, user.password_hash)


def request_password_reset(
    db: Database,
    email: str,
    *,
    site_url: str,
    ttl_seconds: int = 3600,
) -> str:
    """Issue a reset token when the account exists.

    The returned message is identical either way so callers cannot probe
    for registered emails.
    """
    email = (email or "").strip().lower()
    if not email:
        raise ValidationFailed("Email is required")
    if not is_valid_email(email):
        raise ValidationFailed("Invalid email address")

    with db.Session() as session:
        user = session.scalar(select(UserRow).where(UserRow.email == email))
        if user is None:
            logger.info("Password reset requested for unknown email")
            return NEUTRAL_RESET_MESSAGE
        created = now()
        token = secrets.token_urlsafe(32)
        session.add(
            PasswordResetRow(
                token=token,
                user_id=user.id,
                created_at=created,
                expires_at=created + ttl_seconds,
            )
        )
        session.commit()

    link = f"{site_url.rstrip('/')}/auth/reset-password?token={token}"
    logger.info("Password reset link for %s: %s", user.id, link)
    return NEUTRAL_RESET_MESSAGE


def reset_password(db: Database, token: str, new_password: str) -> str:
    if len(new_password or "") < PASSWORD_MIN_LENGTH:
        raise ValidationFailed(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
        )
    with db.Session() as session:
        reset = session.get(PasswordResetRow, token or "")
        if reset is None or reset.used_at is not None or reset.expires_at <= now():
            raise ValidationFailed("Reset link is invalid or has expired")
        user = session.get(UserRow, reset.user_id)
        if user is None:
            raise ValidationFailed("Reset link is invalid or has expired")
        user.password_hash = hash_password(new_password)
        reset.used_at = now()
        session.execute(delete(SessionRow).where(SessionRow.user_id == user.id))
        session.commit()
        return user.id
