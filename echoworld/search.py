"""
Global search across public profiles, public echoes and topics.
"""

from __future__ import annotations

import logging

from sqlalchemy import distinct, or_, select

from echoworld.db import Database, EchoRow, EchoTagRow, ProfileRow
from shared.text import like_pattern, safe_excerpt
from shared.types import PUBLIC_VISIBILITIES, EchoStatus

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 5
PREVIEW_MAX = 120


def search_users(db: Database, term: str, limit: int = DEFAULT_LIMIT) -> list[dict]:
    query = (term or "").strip()
    if not query:
        return []
    pattern = like_pattern(query.lower())
    with db.Session() as session:
        rows = session.scalars(
            select(ProfileRow)
            .where(
                ProfileRow.public_profile_enabled.is_(True),
                ProfileRow.deleted_at.is_(None),
                or_(
                    ProfileRow.handle.ilike(pattern, escape="\\"),
                    ProfileRow.display_name.ilike(pattern, escape="\\"),
                ),
            )
            .limit(limit)
        ).all()
        return [
            {
                "type": "user",
                "id": row.id,
                "handle": row.handle,
                "avatar_url": row.avatar_url,
                "label": row.display_name or row.handle or "User",
            }
            for row in rows
        ]


def search_echoes(db: Database, term: str, limit: int = DEFAULT_LIMIT) -> list[dict]:
    query = (term or "").strip()
    if not query:
        return []
    pattern = like_pattern(query)
    with db.Session() as session:
        rows = session.scalars(
            select(EchoRow)
            .where(
                EchoRow.visibility.in_(PUBLIC_VISIBILITIES),
                EchoRow.status == EchoStatus.PUBLISHED.value,
                or_(
                    EchoRow.title.ilike(pattern, escape="\\"),
                    EchoRow.content.ilike(pattern, escape="\\"),
                ),
            )
            .order_by(EchoRow.created_at.desc())
            .limit(limit)
        ).all()
        return [
            {
                "type": "echo",
                "id": row.id,
                "label": row.title or "Echo",
                "preview": safe_excerpt(row.content, PREVIEW_MAX),
            }
            for row in rows
        ]


def search_topics(db: Database, term: str, limit: int = DEFAULT_LIMIT) -> list[dict]:
    query = (term or "").strip()
    if not query:
        return []
    with db.Session() as session:
        tags = session.scalars(
            select(distinct(EchoTagRow.tag))
            .where(EchoTagRow.tag.ilike(like_pattern(query), escape="\\"))
            .limit(limit)
        ).all()
    labels = []
    for tag in tags:
        label = str(tag or "").strip()
        if label and label not in labels:
            labels.append(label)
    return [{"type": "topic", "id": label, "label": label} for label in labels[:limit]]


def search_all(db: Database, term: str, limit: int = DEFAULT_LIMIT) -> dict:
    users = search_users(db, term, limit)
    echoes = search_echoes(db, term, limit)
    topics = search_topics(db, term, limit)
    return {
        "users": users,
        "echoes": echoes,
        "topics": topics,
        "all": users + echoes + topics,
    }
