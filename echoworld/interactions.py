"""
Likes, empathic reactions, comments and mirrors on echoes.

Every interaction by someone other than the echo owner leaves a
notification for the owner.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError

from echoworld.db import (
    CommentRecord,
    Database,
    EchoLikeRow,
    EchoMirrorRow,
    EchoReactionRow,
    EchoResponseRow,
    EchoRow,
    ProfileRow,
    UserSettingsRow,
    new_id,
    now,
)
from echoworld.echoes import can_view_echo
from echoworld.errors import NotFound, PermissionDenied, ValidationFailed
from echoworld.notifications import create_notification
from echoworld.realtime import COMMENT_INSERT, RealtimeHub, echo_comments_channel
from shared.text import safe_excerpt
from shared.types import EchoStatus, NotificationType, ReactionType

logger = logging.getLogger(__name__)

COMMENT_MAX = 1000
MIRROR_MAX = 1000
REACTION_TYPES = tuple(r.value for r in ReactionType)


def _require_echo(session, echo_id: str, viewer_id: Optional[str]) -> EchoRow:
    """Published echo the viewer is allowed to see, else NotFound."""
    echo = session.get(EchoRow, echo_id)
    if (
        echo is None
        or echo.status != EchoStatus.PUBLISHED.value
        or not can_view_echo(echo, viewer_id)
    ):
        raise NotFound("Echo not found")
    return echo


def _owner_setting(session, owner_id: Optional[str], name: str) -> bool:
    if not owner_id:
        return True
    settings = session.get(UserSettingsRow, owner_id)
    return True if settings is None else bool(getattr(settings, name))


# Likes


def fetch_like_meta(
    db: Database, echo_ids: Sequence[str], user_id: Optional[str] = None
) -> dict:
    if not echo_ids:
        return {"count_by_id": {}, "liked_by_me_by_id": {}}
    with db.Session() as session:
        rows = session.execute(
            select(EchoLikeRow.echo_id, EchoLikeRow.user_id).where(
                EchoLikeRow.echo_id.in_(list(echo_ids))
            )
        ).all()
    count_by_id = Counter(echo_id for echo_id, _ in rows)
    liked = {echo_id: True for echo_id, liker in rows if user_id and liker == user_id}
    return {"count_by_id": dict(count_by_id), "liked_by_me_by_id": liked}


def toggle_like(
    db: Database,
    echo_id: str,
    user_id: str,
    next_liked: bool,
    hub: Optional[RealtimeHub] = None,
) -> bool:
    """Set the like state; repeating the same state is a no-op."""
    with db.Session() as session:
        echo = _require_echo(session, echo_id, user_id)
        owner_id = echo.user_id
        existing = session.scalar(
            select(EchoLikeRow).where(
                EchoLikeRow.echo_id == echo_id, EchoLikeRow.user_id == user_id
            )
        )
        if not next_liked:
            if existing is not None:
                session.delete(existing)
                session.commit()
            return False
        if existing is not None:
            return True
        session.add(
            EchoLikeRow(id=new_id(), echo_id=echo_id, user_id=user_id, created_at=now())
        )
        try:
            session.commit()
        except IntegrityError:
            # Concurrent duplicate like; the row already exists.
            session.rollback()
            return True

    if owner_id:
        create_notification(
            db,
            hub,
            user_id=owner_id,
            type=NotificationType.LIKE.value,
            actor_id=user_id,
            title="Someone liked your echo",
            payload={"echo_id": echo_id},
        )
    return True


# Reactions


def _empty_counts() -> dict[str, int]:
    return {reaction: 0 for reaction in REACTION_TYPES}


def _empty_flags() -> dict[str, bool]:
    return {reaction: False for reaction in REACTION_TYPES}


def fetch_reactions_meta(
    db: Database, echo_ids: Sequence[str], user_id: Optional[str] = None
) -> dict:
    """Per-echo counts and by-me flags, with an entry for every requested id."""
    if not echo_ids:
        return {"counts_by_echo": {}, "by_me_by_echo": {}}
    counts = {str(echo_id): _empty_counts() for echo_id in echo_ids}
    by_me = {str(echo_id): _empty_flags() for echo_id in echo_ids}
    with db.Session() as session:
        rows = session.execute(
            select(
                EchoReactionRow.echo_id,
                EchoReactionRow.user_id,
                EchoReactionRow.reaction_type,
            ).where(EchoReactionRow.echo_id.in_(list(echo_ids)))
        ).all()
    for echo_id, reactor, reaction in rows:
        if reaction not in REACTION_TYPES:
            continue
        counts[echo_id][reaction] += 1
        if user_id and reactor == user_id:
            by_me[echo_id][reaction] = True
    return {"counts_by_echo": counts, "by_me_by_echo": by_me}


def toggle_reaction(
    db: Database,
    echo_id: str,
    user_id: str,
    reaction_type: str,
    next_on: bool,
    hub: Optional[RealtimeHub] = None,
) -> bool:
    if reaction_type not in REACTION_TYPES:
        raise ValidationFailed(f"Unknown reaction {reaction_type!r}")
    with db.Session() as session:
        echo = _require_echo(session, echo_id, user_id)
        owner_id = echo.user_id
        existing = session.scalar(
            select(EchoReactionRow).where(
                EchoReactionRow.echo_id == echo_id,
                EchoReactionRow.user_id == user_id,
                EchoReactionRow.reaction_type == reaction_type,
            )
        )
        if not next_on:
            if existing is not None:
                session.delete(existing)
                session.commit()
            return False
        if existing is not None:
            return True
        session.add(
            EchoReactionRow(
                id=new_id(),
                echo_id=echo_id,
                user_id=user_id,
                reaction_type=reaction_type,
                created_at=now(),
            )
        )
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            return True

    if owner_id:
        create_notification(
            db,
            hub,
            user_id=owner_id,
            type=NotificationType.REACTION.value,
            actor_id=user_id,
            title="Someone reacted to your echo",
            payload={"echo_id": echo_id, "reaction_type": reaction_type},
        )
    return True


# Comments


def fetch_comments_count_meta(db: Database, echo_ids: Sequence[str]) -> dict[str, int]:
    if not echo_ids:
        return {}
    with db.Session() as session:
        rows = session.scalars(
            select(EchoResponseRow.echo_id).where(
                EchoResponseRow.echo_id.in_(list(echo_ids))
            )
        ).all()
    counts = Counter(rows)
    return {str(echo_id): counts.get(echo_id, 0) for echo_id in echo_ids}


def _author(profile: Optional[ProfileRow]) -> Optional[dict]:
    if profile is None or profile.deleted_at is not None:
        return None
    return {
        "id": profile.id,
        "handle": profile.handle,
        "display_name": profile.display_name,
        "avatar_url": profile.avatar_url,
    }


def fetch_comments(
    db: Database,
    echo_id: str,
    limit: int = 50,
    offset: int = 0,
    viewer_id: Optional[str] = None,
) -> list[CommentRecord]:
    """Newest first, each with the author's public profile fields."""
    start = max(0, offset)
    size = max(1, limit)
    with db.Session() as session:
        _require_echo(session, echo_id, viewer_id)
        rows = session.execute(
            select(EchoResponseRow, ProfileRow)
            .outerjoin(ProfileRow, ProfileRow.id == EchoResponseRow.user_id)
            .where(EchoResponseRow.echo_id == echo_id)
            .order_by(EchoResponseRow.created_at.desc())
            .offset(start)
            .limit(size)
        ).all()
        return [
            CommentRecord(
                id=comment.id,
                echo_id=comment.echo_id,
                user_id=comment.user_id,
                content=comment.content,
                created_at=comment.created_at,
                author=_author(profile),
            )
            for comment, profile in rows
        ]


def insert_comment(
    db: Database,
    echo_id: str,
    user_id: str,
    content: str,
    hub: Optional[RealtimeHub] = None,
) -> CommentRecord:
    message = (content or "").strip()
    if not message:
        raise ValidationFailed("Empty message")
    if len(message) > COMMENT_MAX:
        raise ValidationFailed(f"Comment is too long (max {COMMENT_MAX} characters)")

    with db.Session() as session:
        echo = _require_echo(session, echo_id, user_id)
        owner_id = echo.user_id
        if owner_id != user_id and not _owner_setting(session, owner_id, "allow_responses"):
            raise PermissionDenied("Responses are turned off for this echo")
        row = EchoResponseRow(
            id=new_id(),
            echo_id=echo_id,
            user_id=user_id,
            content=message,
            created_at=now(),
        )
        session.add(row)
        session.commit()
        record = CommentRecord(
            id=row.id,
            echo_id=row.echo_id,
            user_id=row.user_id,
            content=row.content,
            created_at=row.created_at,
            author=_author(session.get(ProfileRow, user_id)),
        )

    if hub is not None:
        hub.publish(
            echo_comments_channel(echo_id),
            {
                "type": COMMENT_INSERT,
                "record": {
                    "id": record.id,
                    "echo_id": record.echo_id,
                    "user_id": record.user_id,
                    "created_at": record.created_at,
                },
            },
        )
    if owner_id:
        create_notification(
            db,
            hub,
            user_id=owner_id,
            type=NotificationType.COMMENT.value,
            actor_id=user_id,
            title="New response to your echo",
            body=safe_excerpt(message, 120),
            payload={"echo_id": echo_id, "comment_id": record.id},
        )
    return record


def delete_comment(db: Database, comment_id: str, user_id: str) -> None:
    with db.Session() as session:
        row = session.get(EchoResponseRow, comment_id)
        if row is None:
            raise NotFound("Comment not found")
        if row.user_id != user_id:
            raise PermissionDenied("You can only delete your own comments")
        session.execute(delete(EchoResponseRow).where(EchoResponseRow.id == comment_id))
        session.commit()


# Mirrors


def send_mirror(
    db: Database,
    from_user_id: str,
    echo_id: str,
    content: str,
    hub: Optional[RealtimeHub] = None,
) -> dict:
    """Send a private reflection on an echo to its author."""
    message = (content or "").strip()
    if not message:
        raise ValidationFailed("Empty message")
    if len(message) > MIRROR_MAX:
        raise ValidationFailed(f"Mirror is too long (max {MIRROR_MAX} characters)")

    with db.Session() as session:
        echo = _require_echo(session, echo_id, from_user_id)
        owner_id = echo.user_id
        if not owner_id:
            raise ValidationFailed("This echo has no author to mirror to")
        if owner_id == from_user_id:
            raise ValidationFailed("You cannot mirror your own echo")
        if not _owner_setting(session, owner_id, "allow_mirrors"):
            raise PermissionDenied("Mirrors are turned off for this echo")
        row = EchoMirrorRow(
            id=new_id(),
            echo_id=echo_id,
            from_user_id=from_user_id,
            to_user_id=owner_id,
            content=message,
            created_at=now(),
        )
        session.add(row)
        session.commit()
        mirror = row.as_dict()

    create_notification(
        db,
        hub,
        user_id=owner_id,
        type=NotificationType.MIRROR.value,
        actor_id=from_user_id,
        title="Someone mirrored your echo",
        body=safe_excerpt(message, 120),
        payload={"echo_id": echo_id, "mirror_id": mirror["id"]},
    )
    return mirror
