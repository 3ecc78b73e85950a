"""
Realtime fan-out for message, notification and comment inserts.

Supports an in-process hub for tests/local runs and a Redis pub/sub backed
implementation for multi-process deployments.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

logger = logging.getLogger(__name__)

Event = dict[str, Any]
Listener = Callable[[Event], None]
Unsubscribe = Callable[[], None]

MESSAGE_INSERT = "message_insert"
NOTIFICATION_INSERT = "notification_insert"
COMMENT_INSERT = "comment_insert"


def messages_channel(user_id: str) -> str:
    return f"messages:{user_id}"


def notifications_channel(user_id: str) -> str:
    return f"notifications:{user_id}"


def echo_comments_channel(echo_id: str) -> str:
    return f"echo-comments:{echo_id}"


class RealtimeHub(Protocol):
    """Minimal pub/sub interface used by the services and the websocket."""

    def publish(self, channel: str, event: Event) -> None:
        ...

    def subscribe(self, channel: str, listener: Listener) -> Unsubscribe:
        ...


def _dispatch(listeners: list[Listener], channel: str, event: Event) -> None:
    for listener in list(listeners):
        try:
            listener(event)
        except Exception:
            logger.exception("Realtime listener failed on %s", channel)


@dataclass
class InMemoryRealtimeHub:
    """Synchronous in-process hub for testing/dev."""

    listeners: dict[str, list[Listener]] = field(default_factory=dict)
    published: list[tuple[str, Event]] = field(default_factory=list)

    def publish(self, channel: str, event: Event) -> None:
        self.published.append((channel, event))
        _dispatch(self.listeners.get(channel, []), channel, event)

    def subscribe(self, channel: str, listener: Listener) -> Unsubscribe:
        self.listeners.setdefault(channel, []).append(listener)

        def unsubscribe() -> None:
            current = self.listeners.get(channel, [])
            if listener in current:
                current.remove(listener)
            if not current:
                self.listeners.pop(channel, None)

        return unsubscribe


@dataclass
class RedisRealtimeHub:
    """Redis-backed hub: JSON events on prefixed pub/sub channels.

    Every process keeps its own listener table; a background pubsub thread
    delivers events (including ones this process published) to it.
    """

    url: str
    channel_prefix: str = "echoworld"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)
        self._listeners: dict[str, list[Listener]] = {}
        self._lock = threading.Lock()
        self._pubsub = None
        self._thread = None

    def _key(self, channel: str) -> str:
        return f"{self.channel_prefix}:{channel}"

    def publish(self, channel: str, event: Event) -> None:
        """Fan-out runs after the write has committed, so failures are only logged."""
        key = self._key(channel)
        data = json.dumps(event, default=str)
        try:
            self.client.publish(key, data)
            return
        except redis_exceptions.ConnectionError:
            # Managed Redis drops idle connections; reconnect and retry once.
            self.client = redis.Redis.from_url(self.url)
        except redis_exceptions.RedisError:
            logger.exception("Realtime publish to %s failed", key)
            return
        try:
            self.client.publish(key, data)
        except redis_exceptions.RedisError:
            logger.exception("Realtime publish to %s failed after reconnect", key)

    def subscribe(self, channel: str, listener: Listener) -> Unsubscribe:
        with self._lock:
            listeners = self._listeners.setdefault(channel, [])
            listeners.append(listener)
            if len(listeners) == 1:
                self._ensure_pubsub().subscribe(**{self._key(channel): self._handle})
                self._ensure_thread()

        def unsubscribe() -> None:
            with self._lock:
                current = self._listeners.get(channel, [])
                if listener in current:
                    current.remove(listener)
                if not current and channel in self._listeners:
                    del self._listeners[channel]
                    if self._pubsub is not None:
                        self._pubsub.unsubscribe(self._key(channel))

        return unsubscribe

    def close(self) -> None:
        if self._thread is not None:
            self._thread.stop()
            self._thread = None
        if self._pubsub is not None:
            self._pubsub.close()
            self._pubsub = None

    def _ensure_pubsub(self):
        if self._pubsub is None:
            self._pubsub = self.client.pubsub(ignore_subscribe_messages=True)
        return self._pubsub

    def _ensure_thread(self) -> None:
        if self._thread is None:
            self._thread = self._pubsub.run_in_thread(sleep_time=0.05, daemon=True)

    def _handle(self, message: dict) -> None:
        raw_channel = message.get("channel")
        if isinstance(raw_channel, bytes):
            raw_channel = raw_channel.decode("utf-8")
        channel = (raw_channel or "")[len(self.channel_prefix) + 1 :]
        data = message.get("data")
        try:
            event = json.loads(data)
        except (TypeError, ValueError):
            logger.warning("Dropping malformed realtime payload on %s", raw_channel)
            return
        with self._lock:
            listeners = list(self._listeners.get(channel, []))
        _dispatch(listeners, channel, event)


class UnreadBadge:
    """Per-user unread message and notification counters kept live by the hub.

    ``count_loader(user_id)`` returns ``(unread_messages, unread_notifications)``
    from the database and is used on ``start`` and ``refresh``.
    """

    def __init__(
        self,
        hub: RealtimeHub,
        count_loader: Callable[[str], tuple[int, int]],
    ) -> None:
        self.hub = hub
        self.count_loader = count_loader
        self.user_id: Optional[str] = None
        self.unread_messages = 0
        self.unread_notifications = 0
        self._unsubscribers: list[Unsubscribe] = []
        self._refreshing = False
        self._lock = threading.Lock()

    def start(self, user_id: str) -> None:
        if user_id == self.user_id and self._unsubscribers:
            return
        self.stop()
        self.user_id = user_id
        self._unsubscribers = [
            self.hub.subscribe(messages_channel(user_id), self._on_message),
            self.hub.subscribe(notifications_channel(user_id), self._on_notification),
        ]
        self.refresh()

    def stop(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self.user_id = None
        self.unread_messages = 0
        self.unread_notifications = 0

    def refresh(self) -> bool:
        """Reload both counters. Returns False when a refresh is already running."""
        user_id = self.user_id
        if not user_id:
            self.unread_messages = 0
            self.unread_notifications = 0
            return True
        with self._lock:
            if self._refreshing:
                return False
            self._refreshing = True
        try:
            messages, notifications = self.count_loader(user_id)
            if user_id == self.user_id:
                self.unread_messages = max(0, int(messages))
                self.unread_notifications = max(0, int(notifications))
        except Exception:
            logger.exception("Failed to refresh unread counts for %s", user_id)
        finally:
            with self._lock:
                self._refreshing = False
        return True

    def bump_messages(self, delta: int = 1) -> None:
        self.unread_messages = max(0, self.unread_messages + delta)

    def bump_notifications(self, delta: int = 1) -> None:
        self.unread_notifications = max(0, self.unread_notifications + delta)

    def _on_message(self, event: Event) -> None:
        if event.get("type") != MESSAGE_INSERT:
            return
        record = event.get("record") or {}
        if not record.get("id") or not record.get("conversation_id"):
            return
        if record.get("sender_id") == self.user_id:
            return
        self.bump_messages(1)

    def _on_notification(self, event: Event) -> None:
        if event.get("type") != NOTIFICATION_INSERT:
            return
        record = event.get("record") or {}
        if record.get("user_id") != self.user_id:
            return
        if record.get("read_at") is None:
            self.bump_notifications(1)
