"""
The personal "For Me" feed: echoes that share tags with what the user
already engaged with, plus a few fresh public echoes.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from typing import Optional, Sequence

from sqlalchemy import select

from echoworld.db import (
    Database,
    EchoLikeRow,
    EchoMirrorRow,
    EchoReactionRow,
    EchoRow,
    EchoTagRow,
)
from echoworld.echoes import media_urls_by_echo
from echoworld.profiles import get_user_settings_or_default
from shared.text import safe_excerpt, safe_title, unique
from shared.types import PUBLIC_VISIBILITIES, EchoStatus

logger = logging.getLogger(__name__)

INTERACTION_LIMIT = 120
TAG_LIMIT = 40
TAG_HIT_SCAN = 800
RESONANT_LIMIT = 10
FRESH_LIMIT = 8
TOPIC_LIMIT = 12


def _ids(session, column, *where, limit: int) -> list[str]:
    rows = session.scalars(select(column).where(*where).limit(limit)).all()
    return unique(str(value).strip() for value in rows if value)


def fetch_user_interaction_echo_ids(
    db: Database,
    user_id: str,
    limit: int = INTERACTION_LIMIT,
    *,
    use_likes: bool = True,
    use_mirrors: bool = True,
) -> list[str]:
    """Liked, reacted and mirrored echo ids, deduplicated and capped."""
    likes_limit = math.ceil(limit * 0.6)
    reactions_limit = math.ceil(limit * 0.8)
    mirrors_limit = math.ceil(limit * 0.6)
    with db.Session() as session:
        liked = (
            _ids(session, EchoLikeRow.echo_id, EchoLikeRow.user_id == user_id, limit=likes_limit)
            if use_likes
            else []
        )
        reacted = _ids(
            session,
            EchoReactionRow.echo_id,
            EchoReactionRow.user_id == user_id,
            limit=reactions_limit,
        )
        mirrored: list[str] = []
        if use_mirrors:
            mirrored = _ids(
                session,
                EchoMirrorRow.echo_id,
                EchoMirrorRow.from_user_id == user_id,
                limit=mirrors_limit,
            ) + _ids(
                session,
                EchoMirrorRow.echo_id,
                EchoMirrorRow.to_user_id == user_id,
                limit=mirrors_limit,
            )
    return unique(liked + reacted + mirrored)[:limit]


def fetch_tags_for_echo_ids(
    db: Database, echo_ids: Sequence[str], limit: int = TAG_LIMIT
) -> list[str]:
    if not echo_ids:
        return []
    with db.Session() as session:
        tags = session.scalars(
            select(EchoTagRow.tag)
            .where(EchoTagRow.echo_id.in_(list(echo_ids)))
            .limit(max(limit, 200))
        ).all()
    return unique(str(tag).strip() for tag in tags if tag and str(tag).strip())[:limit]


def fetch_resonant_echoes(
    db: Database,
    tags: Sequence[str],
    exclude_ids: Sequence[str],
    limit: int = RESONANT_LIMIT,
) -> list[dict]:
    """Echoes ranked by how many of ``tags`` they carry."""
    if not tags:
        return []
    excluded = set(exclude_ids)
    with db.Session() as session:
        hits = session.scalars(
            select(EchoTagRow.echo_id)
            .where(EchoTagRow.tag.in_(list(tags)))
            .limit(TAG_HIT_SCAN)
        ).all()
        scores = Counter(echo_id for echo_id in hits if echo_id not in excluded)
        ranked = sorted(scores.items(), key=lambda item: -item[1])[:limit]
        if not ranked:
            return []
        rows = session.scalars(
            select(EchoRow).where(
                EchoRow.id.in_([echo_id for echo_id, _ in ranked]),
                EchoRow.status == EchoStatus.PUBLISHED.value,
            )
        ).all()
        by_id = {row.id: row.as_dict() for row in rows}

    resonant = []
    for echo_id, score in ranked:
        echo = by_id.get(echo_id)
        if echo is None:
            continue
        visibility = str(echo.get("visibility") or "").strip()
        if visibility and visibility not in PUBLIC_VISIBILITIES:
            continue
        echo["score"] = score
        resonant.append(echo)
    return resonant


def fetch_fresh_echoes(
    db: Database, exclude_ids: Sequence[str], limit: int = FRESH_LIMIT
) -> list[dict]:
    excluded = set(exclude_ids)
    with db.Session() as session:
        rows = session.scalars(
            select(EchoRow)
            .where(
                EchoRow.visibility.in_(PUBLIC_VISIBILITIES),
                EchoRow.status == EchoStatus.PUBLISHED.value,
            )
            .order_by(EchoRow.created_at.desc())
            .limit(limit + len(excluded))
        ).all()
        return [row.as_dict() for row in rows if row.id not in excluded][:limit]


def _item(echo: dict, kind: str, meta: str, image_urls: list[str]) -> dict:
    prefix = "res" if kind == "resonance" else "fresh"
    return {
        "id": f"{prefix}-{echo['id']}",
        "kind": kind,
        "title": safe_title(echo.get("title")),
        "excerpt": safe_excerpt(echo.get("content")),
        "meta": meta,
        "score": echo.get("score", 0),
        "echo_id": echo["id"],
        "created_at": echo.get("created_at"),
        "image_urls": image_urls,
    }


def get_for_me_feed(db: Database, user_id: str, settings: Optional[dict] = None) -> dict:
    settings = settings or get_user_settings_or_default(db, user_id)
    if not settings.get("for_me_enabled", True):
        return {"enabled": False, "resonance": [], "fresh": [], "topics": [], "used_tags": []}

    interacted = fetch_user_interaction_echo_ids(
        db,
        user_id,
        use_likes=settings.get("for_me_use_likes", True),
        use_mirrors=settings.get("for_me_use_mirrors", True),
    )
    tags = fetch_tags_for_echo_ids(db, interacted)
    resonant_rows = fetch_resonant_echoes(db, tags, interacted)
    fresh_rows = (
        fetch_fresh_echoes(db, interacted)
        if settings.get("for_me_include_fresh", True)
        else []
    )

    max_items = int(settings.get("for_me_max_items") or 18)
    resonant_rows = resonant_rows[:max_items]
    fresh_rows = fresh_rows[: max(0, max_items - len(resonant_rows))]

    media = media_urls_by_echo(
        db, unique([e["id"] for e in resonant_rows] + [e["id"] for e in fresh_rows])
    )
    resonance = [
        _item(
            echo,
            "resonance",
            f"Match tags: {echo['score']}" if echo["score"] > 1 else "Match",
            media.get(echo["id"], []),
        )
        for echo in resonant_rows
    ]
    fresh = [
        _item(echo, "fresh", "New", media.get(echo["id"], []))
        for echo in fresh_rows
    ]
    logger.debug(
        "For-me feed for %s: %d interactions, %d tags", user_id, len(interacted), len(tags)
    )
    return {
        "enabled": True,
        "resonance": resonance,
        "fresh": fresh,
        "topics": [{"id": tag, "label": tag} for tag in tags[:TOPIC_LIMIT]],
        "used_tags": tags,
    }
