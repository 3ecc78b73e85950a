"""
In-process presence (online/last seen) and typing indicators.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

HEARTBEAT_INTERVAL_SECONDS = 30
PRESENCE_TIMEOUT_SECONDS = 60
TYPING_EXPIRY_SECONDS = 3


@dataclass
class PresenceState:
    user_id: str
    online: bool
    last_seen: Optional[float]


class PresenceTracker:
    """Tracks heartbeats; a user stays online until their heartbeat goes stale."""

    def __init__(self, timeout_seconds: float = PRESENCE_TIMEOUT_SECONDS):
        self.timeout_seconds = timeout_seconds
        self._last_seen: dict[str, float] = {}
        self._left: set[str] = set()
        self._sockets: dict[str, int] = {}
        self._lock = threading.Lock()

    def heartbeat(self, user_id: str, at: Optional[float] = None) -> None:
        user_id = (user_id or "").strip()
        if not user_id:
            return
        with self._lock:
            self._last_seen[user_id] = time.time() if at is None else at
            self._left.discard(user_id)

    def leave(self, user_id: str) -> None:
        with self._lock:
            if user_id in self._last_seen:
                self._left.add(user_id)

    def connect(self, user_id: str, at: Optional[float] = None) -> None:
        """Register an open socket for the user and mark them online."""
        with self._lock:
            self._sockets[user_id] = self._sockets.get(user_id, 0) + 1
        self.heartbeat(user_id, at=at)

    def disconnect(self, user_id: str) -> None:
        """Close one socket; the user leaves only when their last socket closes."""
        with self._lock:
            remaining = self._sockets.get(user_id, 0) - 1
            if remaining > 0:
                self._sockets[user_id] = remaining
                return
            self._sockets.pop(user_id, None)
        self.leave(user_id)

    def is_online(self, user_id: str, now: Optional[float] = None) -> bool:
        return self.snapshot([user_id], now=now)[user_id].online

    def snapshot(
        self, user_ids: Iterable[str], now: Optional[float] = None
    ) -> dict[str, PresenceState]:
        current = time.time() if now is None else now
        states = {}
        with self._lock:
            for user_id in user_ids:
                last_seen = self._last_seen.get(user_id)
                online = (
                    last_seen is not None
                    and user_id not in self._left
                    and current - last_seen < self.timeout_seconds
                )
                states[user_id] = PresenceState(user_id, online, last_seen)
        return states


def format_last_seen(last_seen: Optional[float], now: Optional[float] = None) -> str:
    if last_seen is None or not math.isfinite(last_seen):
        return "—"
    current = time.time() if now is None else now
    diff = max(0.0, current - last_seen)
    minutes = int(diff // 60)
    hours = int(diff // 3600)
    days = int(diff // 86400)
    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes} min ago"
    if hours < 24:
        return f"{hours} h ago"
    if days < 7:
        return f"{days} d ago"
    moment = datetime.fromtimestamp(last_seen, tz=timezone.utc)
    return f"{moment.day} {moment.strftime('%b')}"


@dataclass
class TypingUser:
    user_id: str
    display_name: Optional[str]
    handle: Optional[str]
    typing_at: float


class TypingTracker:
    """Who is typing in which conversation; entries expire without a refresh."""

    def __init__(self, expiry_seconds: float = TYPING_EXPIRY_SECONDS):
        self.expiry_seconds = expiry_seconds
        self._typing: dict[str, dict[str, TypingUser]] = {}
        self._lock = threading.Lock()

    def start(
        self,
        conversation_id: str,
        user_id: str,
        display_name: Optional[str] = None,
        handle: Optional[str] = None,
        at: Optional[float] = None,
    ) -> None:
        if not conversation_id or not user_id:
            return
        entry = TypingUser(
            user_id, display_name, handle, time.time() if at is None else at
        )
        with self._lock:
            self._typing.setdefault(conversation_id, {})[user_id] = entry

    def stop(self, conversation_id: str, user_id: str) -> None:
        with self._lock:
            users = self._typing.get(conversation_id)
            if users is None:
                return
            users.pop(user_id, None)
            if not users:
                del self._typing[conversation_id]

    def typing_users(
        self,
        conversation_id: str,
        exclude_user_id: Optional[str] = None,
        now: Optional[float] = None,
    ) -> list[TypingUser]:
        current = time.time() if now is None else now
        with self._lock:
            users = self._typing.get(conversation_id, {})
            for user_id in [
                uid
                for uid, entry in users.items()
                if current - entry.typing_at > self.expiry_seconds
            ]:
                del users[user_id]
            return [
                entry
                for uid, entry in users.items()
                if uid != exclude_user_id
            ]
