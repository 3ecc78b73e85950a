"""
In-app notifications and the unread counters shown in the header badge.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import and_, func, or_, select, update

from echoworld.db import (
    ConversationMemberRow,
    Database,
    MessageRow,
    NotificationRecord,
    NotificationRow,
    new_id,
    now,
    to_record,
)
from echoworld.errors import NotFound
from echoworld.realtime import NOTIFICATION_INSERT, RealtimeHub, notifications_channel

logger = logging.getLogger(__name__)


def create_notification(
    db: Database,
    hub: Optional[RealtimeHub],
    *,
    user_id: str,
    type: str,
    actor_id: Optional[str] = None,
    title: Optional[str] = None,
    body: Optional[str] = None,
    payload: Optional[dict] = None,
) -> Optional[NotificationRecord]:
    """Store a notification and push it to the recipient's channel.

    Users are never notified about their own actions.
    """
    if not user_id or (actor_id and actor_id == user_id):
        return None
    row = NotificationRow(
        id=new_id(),
        user_id=user_id,
        actor_id=actor_id,
        type=type,
        title=title,
        body=body,
        payload=payload,
        read_at=None,
        created_at=now(),
    )
    with db.Session() as session:
        session.add(row)
        session.commit()
        record = to_record(NotificationRecord, row)

    if hub is not None:
        hub.publish(
            notifications_channel(user_id),
            {"type": NOTIFICATION_INSERT, "record": record.as_dict()},
        )
    return record


def fetch_notifications(
    db: Database, user_id: str, limit: int = 50
) -> list[NotificationRecord]:
    if not user_id:
        return []
    with db.Session() as session:
        rows = session.scalars(
            select(NotificationRow)
            .where(NotificationRow.user_id == user_id)
            .order_by(NotificationRow.created_at.desc())
            .limit(max(1, limit))
        ).all()
        return [to_record(NotificationRecord, row) for row in rows]


def fetch_unread_notifications_count(db: Database, user_id: str) -> int:
    if not user_id:
        return 0
    with db.Session() as session:
        count = session.scalar(
            select(func.count(NotificationRow.id)).where(
                NotificationRow.user_id == user_id,
                NotificationRow.read_at.is_(None),
            )
        )
    return int(count or 0)


def fetch_unread_messages_count(db: Database, user_id: str) -> int:
    """Messages from other members newer than the user's read marker."""
    if not user_id:
        return 0
    with db.Session() as session:
        count = session.scalar(
            select(func.count(MessageRow.id))
            .join(
                ConversationMemberRow,
                and_(
                    ConversationMemberRow.conversation_id == MessageRow.conversation_id,
                    ConversationMemberRow.user_id == user_id,
                ),
            )
            .where(
                MessageRow.sender_id != user_id,
                MessageRow.deleted_at.is_(None),
                or_(
                    ConversationMemberRow.last_read_at.is_(None),
                    MessageRow.created_at > ConversationMemberRow.last_read_at,
                ),
            )
        )
    return int(count or 0)


def fetch_unread_counts(db: Database, user_id: str) -> dict[str, int]:
    return {
        "unread_messages": fetch_unread_messages_count(db, user_id),
        "unread_notifications": fetch_unread_notifications_count(db, user_id),
    }


def mark_notification_read(db: Database, notification_id: str, user_id: str) -> None:
    with db.Session() as session:
        row = session.get(NotificationRow, notification_id)
        if row is None or row.user_id != user_id:
            raise NotFound("Notification not found")
        if row.read_at is None:
            row.read_at = now()
        session.commit()


def mark_all_notifications_read(db: Database, user_id: str) -> int:
    with db.Session() as session:
        result = session.execute(
            update(NotificationRow)
            .where(
                NotificationRow.user_id == user_id,
                NotificationRow.read_at.is_(None),
            )
            .values(read_at=now())
        )
        session.commit()
    logger.debug("Marked %s notifications read for %s", result.rowcount, user_id)
    return int(result.rowcount or 0)
