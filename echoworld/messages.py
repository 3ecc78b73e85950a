"""
Direct conversations, messages, read markers and message reactions.

Only conversation members can read or write a conversation.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from sqlalchemy import select

from echoworld.db import (
    ConversationMemberRow,
    ConversationRecord,
    ConversationRow,
    Database,
    MemberRecord,
    MessageReactionRecord,
    MessageReactionRow,
    MessageRecord,
    MessageRow,
    ProfileRow,
    new_id,
    now,
    to_record,
)
from echoworld.errors import NotFound, PermissionDenied, ValidationFailed
from echoworld.notifications import create_notification
from echoworld.realtime import MESSAGE_INSERT, RealtimeHub, messages_channel
from shared.text import safe_excerpt
from shared.types import ConversationType, NotificationType

logger = logging.getLogger(__name__)

MESSAGE_MAX = 4000
EMOJI_MAX = 16


def _member_ids(session, conversation_id: str) -> list[str]:
    return list(
        session.scalars(
            select(ConversationMemberRow.user_id).where(
                ConversationMemberRow.conversation_id == conversation_id
            )
        ).all()
    )


def _require_member(session, conversation_id: str, user_id: str) -> ConversationMemberRow:
    member = session.get(ConversationMemberRow, (conversation_id, user_id))
    if member is None:
        if session.get(ConversationRow, conversation_id) is None:
            raise NotFound("Conversation not found")
        raise PermissionDenied("You are not a member of this conversation")
    return member


def start_direct_conversation(
    db: Database,
    user_id: str,
    other_user_id: str,
    echo_id: Optional[str] = None,
) -> tuple[str, bool]:
    """Reuse the direct conversation shared by both users, or create one.

    A conversation started from the same echo wins; otherwise the most
    recently updated direct conversation is reused. Returns
    ``(conversation_id, created)``.
    """
    other = (other_user_id or "").strip()
    if not other:
        raise ValidationFailed("other_user_id is required")
    if other == user_id:
        raise ValidationFailed("You cannot start a conversation with yourself")
    echo_id = echo_id or None

    with db.Session() as session:
        other_profile = session.get(ProfileRow, other)
        if other_profile is None or other_profile.deleted_at is not None:
            raise NotFound("User not found")

        mine = select(ConversationMemberRow.conversation_id).where(
            ConversationMemberRow.user_id == user_id
        )
        common_ids = session.scalars(
            select(ConversationMemberRow.conversation_id).where(
                ConversationMemberRow.user_id == other,
                ConversationMemberRow.conversation_id.in_(mine),
            )
        ).all()

        if common_ids:
            direct = (
                select(ConversationRow.id)
                .where(
                    ConversationRow.id.in_(common_ids),
                    ConversationRow.type == ConversationType.DIRECT.value,
                )
                .order_by(ConversationRow.updated_at.desc())
                .limit(1)
            )
            same_echo = direct.where(
                ConversationRow.echo_id.is_(None)
                if echo_id is None
                else ConversationRow.echo_id == echo_id
            )
            existing = session.scalar(same_echo) or session.scalar(direct)
            if existing:
                return existing, False

        created = now()
        conversation = ConversationRow(
            id=new_id(),
            type=ConversationType.DIRECT.value,
            title=None,
            echo_id=echo_id,
            created_by=user_id,
            created_at=created,
            updated_at=created,
        )
        session.add(conversation)
        for member_id in (user_id, other):
            session.add(
                ConversationMemberRow(
                    conversation_id=conversation.id,
                    user_id=member_id,
                    role="member",
                    joined_at=created,
                    muted=False,
                )
            )
        session.commit()
        logger.info("Created direct conversation %s", conversation.id)
        return conversation.id, True


def fetch_conversations_for_user(db: Database, user_id: str) -> list[ConversationRecord]:
    if not user_id:
        return []
    with db.Session() as session:
        rows = session.scalars(
            select(ConversationRow)
            .join(
                ConversationMemberRow,
                ConversationMemberRow.conversation_id == ConversationRow.id,
            )
            .where(ConversationMemberRow.user_id == user_id)
            .order_by(ConversationMemberRow.joined_at.desc())
        ).all()
        return [to_record(ConversationRecord, row) for row in rows]


def fetch_conversation_members(
    db: Database, conversation_id: str, user_id: str
) -> list[MemberRecord]:
    with db.Session() as session:
        _require_member(session, conversation_id, user_id)
        rows = session.scalars(
            select(ConversationMemberRow).where(
                ConversationMemberRow.conversation_id == conversation_id
            )
        ).all()
        return [to_record(MemberRecord, row) for row in rows]


def fetch_messages(
    db: Database, conversation_id: str, user_id: str, limit: int = 50
) -> list[MessageRecord]:
    """Oldest first, soft-deleted messages excluded."""
    with db.Session() as session:
        _require_member(session, conversation_id, user_id)
        rows = session.scalars(
            select(MessageRow)
            .where(
                MessageRow.conversation_id == conversation_id,
                MessageRow.deleted_at.is_(None),
            )
            .order_by(MessageRow.created_at.asc())
            .limit(max(1, limit))
        ).all()
        return [to_record(MessageRecord, row) for row in rows]


def send_message(
    db: Database,
    conversation_id: str,
    sender_id: str,
    content: str,
    payload: Optional[dict] = None,
    hub: Optional[RealtimeHub] = None,
) -> MessageRecord:
    clean = (content or "").strip()
    if not conversation_id or not clean:
        raise ValidationFailed("Missing conversation or empty content")
    if len(clean) > MESSAGE_MAX:
        raise ValidationFailed(f"Message is too long (max {MESSAGE_MAX} characters)")
    if payload is not None and not isinstance(payload, dict):
        raise ValidationFailed("Message payload must be an object")

    with db.Session() as session:
        _require_member(session, conversation_id, sender_id)
        created = now()
        row = MessageRow(
            id=new_id(),
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=clean,
            payload=payload,
            created_at=created,
        )
        session.add(row)
        conversation = session.get(ConversationRow, conversation_id)
        conversation.updated_at = created
        # Sending implies having read everything before it.
        session.get(ConversationMemberRow, (conversation_id, sender_id)).last_read_at = created
        recipients = _member_ids(session, conversation_id)
        session.commit()
        record = to_record(MessageRecord, row)

    if hub is not None:
        event = {"type": MESSAGE_INSERT, "record": record.as_dict()}
        for member_id in recipients:
            hub.publish(messages_channel(member_id), event)
    for member_id in recipients:
        if member_id == sender_id:
            continue
        create_notification(
            db,
            hub,
            user_id=member_id,
            type=NotificationType.MESSAGE.value,
            actor_id=sender_id,
            title="New message",
            body=safe_excerpt(clean, 120),
            payload={"conversation_id": conversation_id, "message_id": record.id},
        )
    return record


def delete_message(db: Database, message_id: str, user_id: str) -> None:
    with db.Session() as session:
        row = session.get(MessageRow, message_id)
        if row is None or row.deleted_at is not None:
            raise NotFound("Message not found")
        if row.sender_id != user_id:
            raise PermissionDenied("You can only delete your own messages")
        row.deleted_at = now()
        session.commit()


def mark_conversation_read(db: Database, conversation_id: str, user_id: str) -> float:
    with db.Session() as session:
        member = _require_member(session, conversation_id, user_id)
        member.last_read_at = now()
        session.commit()
        return member.last_read_at


# Message reactions


def _require_message_access(session, message_id: str, user_id: str) -> MessageRow:
    message = session.get(MessageRow, message_id)
    if message is None or message.deleted_at is not None:
        raise NotFound("Message not found")
    _require_member(session, message.conversation_id, user_id)
    return message


def fetch_message_reactions(
    db: Database, message_id: str, user_id: str
) -> list[MessageReactionRecord]:
    mid = (message_id or "").strip()
    if not mid:
        return []
    with db.Session() as session:
        _require_message_access(session, mid, user_id)
        rows = session.scalars(
            select(MessageReactionRow)
            .where(MessageReactionRow.message_id == mid)
            .order_by(MessageReactionRow.created_at.asc())
        ).all()
        return [to_record(MessageReactionRecord, row) for row in rows]


def fetch_message_reactions_batch(
    db: Database, message_ids: Sequence[str]
) -> dict[str, list[MessageReactionRecord]]:
    ids = list(dict.fromkeys(mid for mid in message_ids if mid))
    if not ids:
        return {}
    with db.Session() as session:
        rows = session.scalars(
            select(MessageReactionRow)
            .where(MessageReactionRow.message_id.in_(ids))
            .order_by(MessageReactionRow.created_at.asc())
        ).all()
    grouped: dict[str, list[MessageReactionRecord]] = {}
    for row in rows:
        grouped.setdefault(row.message_id, []).append(
            to_record(MessageReactionRecord, row)
        )
    return grouped


def group_reactions(
    reactions: Iterable[MessageReactionRecord], current_user_id: Optional[str]
) -> list[dict]:
    """Badge groups per emoji, most used first."""
    groups: dict[str, dict] = {}
    for reaction in reactions:
        group = groups.setdefault(
            reaction.emoji,
            {"emoji": reaction.emoji, "count": 0, "user_ids": [], "has_current_user": False},
        )
        group["count"] += 1
        group["user_ids"].append(reaction.user_id)
        if current_user_id and reaction.user_id == current_user_id:
            group["has_current_user"] = True
    return sorted(groups.values(), key=lambda g: -g["count"])


def toggle_message_reaction(
    db: Database, message_id: str, user_id: str, emoji: str
) -> tuple[bool, Optional[MessageReactionRecord]]:
    """Add the reaction when absent, remove it otherwise. Returns ``(added, reaction)``."""
    mid = (message_id or "").strip()
    em = (emoji or "").strip()
    if not mid or not em:
        raise ValidationFailed("message_id and emoji are required")
    if len(em) > EMOJI_MAX:
        raise ValidationFailed("Invalid emoji")

    with db.Session() as session:
        _require_message_access(session, mid, user_id)
        existing = session.scalar(
            select(MessageReactionRow).where(
                MessageReactionRow.message_id == mid,
                MessageReactionRow.user_id == user_id,
                MessageReactionRow.emoji == em,
            )
        )
        if existing is not None:
            session.delete(existing)
            session.commit()
            return False, None
        row = MessageReactionRow(
            id=new_id(), message_id=mid, user_id=user_id, emoji=em, created_at=now()
        )
        session.add(row)
        session.commit()
        return True, to_record(MessageReactionRecord, row)
