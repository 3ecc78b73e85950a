"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from echoworld.accounts import resolve_session
from echoworld.config import get_settings
from echoworld.db import IN_MEMORY_URL, Database
from echoworld.errors import AuthenticationRequired
from echoworld.presence import PresenceTracker, TypingTracker
from echoworld.realtime import InMemoryRealtimeHub, RealtimeHub, RedisRealtimeHub
from echoworld.storage import InMemoryStorageClient, S3StorageClient, StorageClient

_db: Database | None = None
_storage_client: StorageClient | None = None
_realtime_hub: RealtimeHub | None = None
_presence_tracker: PresenceTracker | None = None
_typing_tracker: TypingTracker | None = None

_bearer = HTTPBearer(auto_error=False)


def get_db() -> Database:
    """
    Return a singleton database so state persists across requests.
    """
    global _db
    if _db:
        return _db

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db = Database(IN_MEMORY_URL)
    else:
        _db = Database(settings.database_url)
    return _db


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.s3_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            bucket=settings.s3_bucket,
            region=settings.s3_region or "",
            endpoint=settings.s3_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.public_storage_base_url or "",
        )
    return _storage_client


def get_realtime_hub() -> RealtimeHub:
    """
    Return a singleton hub for pushing inserts to connected clients.
    """
    global _realtime_hub
    if _realtime_hub:
        return _realtime_hub

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _realtime_hub = RedisRealtimeHub(
            url=settings.redis_url,
            channel_prefix=settings.redis_channel_prefix,
        )
    else:
        _realtime_hub = InMemoryRealtimeHub()
    return _realtime_hub


def get_presence_tracker() -> PresenceTracker:
    global _presence_tracker
    if _presence_tracker is None:
        _presence_tracker = PresenceTracker()
    return _presence_tracker


def get_typing_tracker() -> TypingTracker:
    global _typing_tracker
    if _typing_tracker is None:
        _typing_tracker = TypingTracker()
    return _typing_tracker


def get_optional_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    db: Database = Depends(get_db),
) -> Optional[str]:
    if credentials is None:
        return None
    return resolve_session(db, credentials.credentials)


def get_current_user_id(user_id: Optional[str] = Depends(get_optional_user_id)) -> str:
    if not user_id:
        raise AuthenticationRequired("Authentication required")
    return user_id


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> str:
    if credentials is None:
        raise AuthenticationRequired("Authentication required")
    return credentials.credentials


def get_websocket_user_id(
    token: str = Query(""), db: Database = Depends(get_db)
) -> Optional[str]:
    return resolve_session(db, token)
