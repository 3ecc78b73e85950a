"""
Database models and session management for Postgres (or SQLite in tests).
"""

from __future__ import annotations

import time
import uuid
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Optional, Type, TypeVar

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

R = TypeVar("R")

IN_MEMORY_URL = "sqlite+pysqlite:///:memory:"


def new_id() -> str:
    return uuid.uuid4().hex


def now() -> float:
    return time.time()


class Database:
    """
    SQLAlchemy engine plus session factory. Accepts any SQLAlchemy URL
    (Postgres in production, SQLite for local runs and tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for Database")
        options: dict[str, Any] = {"future": True, "pool_pre_ping": True}
        if database_url.startswith("sqlite"):
            options["connect_args"] = {"check_same_thread": False}
            if ":memory:" in database_url:
                # One shared connection, otherwise every session sees an empty db.
                options["poolclass"] = StaticPool
        else:
            options["pool_recycle"] = 1800
        self.url = database_url
        self.engine = create_engine(database_url, **options)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @classmethod
    def in_memory(cls) -> "Database":
        return cls(IN_MEMORY_URL)


def to_record(cls: Type[R], row: Any, **overrides: Any) -> R:
    """Copy the columns a record dataclass declares out of an ORM row."""
    values = {
        f.name: getattr(row, f.name)
        for f in fields(cls)
        if f.name not in overrides and hasattr(row, f.name)
    }
    values.update(overrides)
    return cls(**values)


# ---------------------------------------------------------------------------
# Records returned by the service layer
# ---------------------------------------------------------------------------


@dataclass
class ProfileRecord:
    id: str
    handle: Optional[str]
    display_name: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    banner_url: Optional[str] = None
    public_profile_enabled: Optional[bool] = True
    created_at: float = field(default_factory=now)

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class EchoRecord:
    id: str
    user_id: Optional[str]
    content: str
    title: Optional[str] = None
    emotion: Optional[str] = None
    is_anonymous: bool = False
    country: Optional[str] = None
    city: Optional[str] = None
    language: Optional[str] = None
    lng: Optional[float] = None
    lat: Optional[float] = None
    status: str = "published"
    visibility: str = "world"
    emotion_tags: list = field(default_factory=list)
    theme_tags: list = field(default_factory=list)
    created_at: float = field(default_factory=now)

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class CommentRecord:
    id: str
    echo_id: str
    user_id: str
    content: str
    created_at: float
    author: Optional[dict] = None

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class ConversationRecord:
    id: str
    type: str
    title: Optional[str]
    echo_id: Optional[str]
    created_by: Optional[str]
    created_at: float
    updated_at: float

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class MemberRecord:
    conversation_id: str
    user_id: str
    role: str
    joined_at: float
    last_read_at: Optional[float] = None
    muted: bool = False

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class MessageRecord:
    id: str
    conversation_id: str
    sender_id: str
    content: str
    payload: Optional[dict] = None
    created_at: float = field(default_factory=now)
    edited_at: Optional[float] = None
    deleted_at: Optional[float] = None

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class MessageReactionRecord:
    id: str
    message_id: str
    user_id: str
    emoji: str
    created_at: float

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class NotificationRecord:
    id: str
    user_id: str
    type: str
    actor_id: Optional[str] = None
    title: Optional[str] = None
    body: Optional[str] = None
    payload: Optional[dict] = None
    read_at: Optional[float] = None
    created_at: float = field(default_factory=now)

    def as_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------


class _RowMixin:
    def as_dict(self) -> dict:
        return {column.name: getattr(self, column.name) for column in self.__table__.columns}


Base = declarative_base(cls=_RowMixin)


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=False, unique=True, index=True)
    password_hash = Column(String, nullable=False)
    created_at = Column(Float, nullable=False)


class SessionRow(Base):
    __tablename__ = "sessions"

    token = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    created_at = Column(Float, nullable=False)
    expires_at = Column(Float, nullable=False)


class PasswordResetRow(Base):
    __tablename__ = "password_resets"

    token = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    created_at = Column(Float, nullable=False)
    expires_at = Column(Float, nullable=False)
    used_at = Column(Float, nullable=True)


class ProfileRow(Base):
    __tablename__ = "profiles"

    id = Column(String, primary_key=True)
    handle = Column(String, nullable=True, unique=True, index=True)
    display_name = Column(String, nullable=True)
    bio = Column(Text, nullable=True)
    avatar_url = Column(String, nullable=True)
    banner_url = Column(String, nullable=True)
    date_of_birth = Column(String, nullable=True)
    age_verified = Column(Boolean, nullable=False, default=False)
    tos_accepted_at = Column(Float, nullable=True)
    public_profile_enabled = Column(Boolean, nullable=True, default=True)
    deleted_at = Column(Float, nullable=True, index=True)
    created_at = Column(Float, nullable=False)


class UserSettingsRow(Base):
    __tablename__ = "user_settings"

    user_id = Column(String, primary_key=True)
    default_echo_visibility = Column(String, nullable=False, default="world")
    default_anonymous = Column(Boolean, nullable=False, default=False)
    allow_responses = Column(Boolean, nullable=False, default=True)
    allow_mirrors = Column(Boolean, nullable=False, default=True)
    notifications_soft = Column(Boolean, nullable=False, default=True)
    theme = Column(String, nullable=False, default="system")
    for_me_enabled = Column(Boolean, nullable=False, default=True)
    for_me_use_likes = Column(Boolean, nullable=False, default=True)
    for_me_use_mirrors = Column(Boolean, nullable=False, default=True)
    for_me_include_fresh = Column(Boolean, nullable=False, default=True)
    for_me_max_items = Column(Integer, nullable=False, default=18)


class EchoRow(Base):
    __tablename__ = "echoes"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=True, index=True)
    title = Column(String, nullable=True)
    content = Column(Text, nullable=False)
    emotion = Column(String, nullable=True, index=True)
    is_anonymous = Column(Boolean, nullable=False, default=False)
    country = Column(String, nullable=True, index=True)
    city = Column(String, nullable=True)
    language = Column(String, nullable=True)
    lng = Column(Float, nullable=True)
    lat = Column(Float, nullable=True)
    status = Column(String, nullable=False, default="published", index=True)
    visibility = Column(String, nullable=False, default="world", index=True)
    emotion_tags = Column(JSON, nullable=False, default=list)
    theme_tags = Column(JSON, nullable=False, default=list)
    created_at = Column(Float, nullable=False, index=True)


class EchoTagRow(Base):
    __tablename__ = "echo_tags"
    __table_args__ = (UniqueConstraint("echo_id", "tag"),)

    id = Column(String, primary_key=True)
    echo_id = Column(String, nullable=False, index=True)
    tag = Column(String, nullable=False, index=True)


class EchoMediaRow(Base):
    __tablename__ = "echo_media"

    id = Column(String, primary_key=True)
    echo_id = Column(String, nullable=False, index=True)
    url = Column(String, nullable=False)
    path = Column(String, nullable=False)
    position = Column(Integer, nullable=False, default=0)


class EchoLikeRow(Base):
    __tablename__ = "echo_likes"
    __table_args__ = (UniqueConstraint("echo_id", "user_id"),)

    id = Column(String, primary_key=True)
    echo_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    created_at = Column(Float, nullable=False)


class EchoReactionRow(Base):
    __tablename__ = "echo_reactions"
    __table_args__ = (UniqueConstraint("echo_id", "user_id", "reaction_type"),)

    id = Column(String, primary_key=True)
    echo_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    reaction_type = Column(String, nullable=False)
    created_at = Column(Float, nullable=False)


class EchoResponseRow(Base):
    __tablename__ = "echo_responses"

    id = Column(String, primary_key=True)
    echo_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    content = Column(Text, nullable=False)
    created_at = Column(Float, nullable=False, index=True)


class EchoMirrorRow(Base):
    __tablename__ = "echo_mirrors"

    id = Column(String, primary_key=True)
    echo_id = Column(String, nullable=False, index=True)
    from_user_id = Column(String, nullable=False, index=True)
    to_user_id = Column(String, nullable=False, index=True)
    content = Column(Text, nullable=False)
    created_at = Column(Float, nullable=False)


class FollowRow(Base):
    __tablename__ = "follows"
    __table_args__ = (UniqueConstraint("follower_id", "following_id"),)

    id = Column(String, primary_key=True)
    follower_id = Column(String, nullable=False, index=True)
    following_id = Column(String, nullable=False, index=True)
    created_at = Column(Float, nullable=False)


class ConversationRow(Base):
    __tablename__ = "conversations"

    id = Column(String, primary_key=True)
    type = Column(String, nullable=False, default="direct")
    title = Column(String, nullable=True)
    echo_id = Column(String, nullable=True, index=True)
    created_by = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False, index=True)


class ConversationMemberRow(Base):
    __tablename__ = "conversation_members"

    conversation_id = Column(String, primary_key=True)
    user_id = Column(String, primary_key=True, index=True)
    role = Column(String, nullable=False, default="member")
    joined_at = Column(Float, nullable=False)
    last_read_at = Column(Float, nullable=True)
    muted = Column(Boolean, nullable=False, default=False)


class MessageRow(Base):
    __tablename__ = "messages"

    id = Column(String, primary_key=True)
    conversation_id = Column(String, nullable=False, index=True)
    sender_id = Column(String, nullable=False, index=True)
    content = Column(Text, nullable=False)
    payload = Column(JSON, nullable=True)
    created_at = Column(Float, nullable=False, index=True)
    edited_at = Column(Float, nullable=True)
    deleted_at = Column(Float, nullable=True)


class MessageReactionRow(Base):
    __tablename__ = "message_reactions"
    __table_args__ = (UniqueConstraint("message_id", "user_id", "emoji"),)

    id = Column(String, primary_key=True)
    message_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    emoji = Column(String, nullable=False)
    created_at = Column(Float, nullable=False)


class NotificationRow(Base):
    __tablename__ = "notifications"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    actor_id = Column(String, nullable=True)
    type = Column(String, nullable=False)
    title = Column(String, nullable=True)
    body = Column(Text, nullable=True)
    payload = Column(JSON, nullable=True)
    read_at = Column(Float, nullable=True)
    created_at = Column(Float, nullable=False, index=True)
