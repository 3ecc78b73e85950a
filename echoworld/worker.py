"""
Background worker that hard-deletes accounts once their retention window
after a soft delete has passed.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from sqlalchemy import delete, or_, select

from echoworld.account_data import profile_image_keys
from echoworld.config import get_settings
from echoworld.db import (
    ConversationMemberRow,
    Database,
    EchoLikeRow,
    EchoMediaRow,
    EchoMirrorRow,
    EchoReactionRow,
    EchoResponseRow,
    EchoRow,
    EchoTagRow,
    FollowRow,
    MessageReactionRow,
    MessageRow,
    NotificationRow,
    PasswordResetRow,
    ProfileRow,
    SessionRow,
    UserRow,
    UserSettingsRow,
    now,
)
from echoworld.dependencies import get_db, get_storage_client
from echoworld.errors import StorageError
from echoworld.storage import StorageClient

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)


def _purge_user(session, user_id: str) -> list[str]:
    """Delete every row the user owns. Returns storage keys to remove."""
    echo_ids = list(session.scalars(select(EchoRow.id).where(EchoRow.user_id == user_id)))
    keys = list(
        session.scalars(select(EchoMediaRow.path).where(EchoMediaRow.echo_id.in_(echo_ids)))
    )
    keys.extend(profile_image_keys(user_id).values())
    message_ids = select(MessageRow.id).where(MessageRow.sender_id == user_id)

    statements = [
        delete(EchoTagRow).where(EchoTagRow.echo_id.in_(echo_ids)),
        delete(EchoMediaRow).where(EchoMediaRow.echo_id.in_(echo_ids)),
        delete(EchoLikeRow).where(
            or_(EchoLikeRow.echo_id.in_(echo_ids), EchoLikeRow.user_id == user_id)
        ),
        delete(EchoReactionRow).where(
            or_(EchoReactionRow.echo_id.in_(echo_ids), EchoReactionRow.user_id == user_id)
        ),
        delete(EchoResponseRow).where(
            or_(EchoResponseRow.echo_id.in_(echo_ids), EchoResponseRow.user_id == user_id)
        ),
        delete(EchoMirrorRow).where(
            or_(
                EchoMirrorRow.echo_id.in_(echo_ids),
                EchoMirrorRow.from_user_id == user_id,
                EchoMirrorRow.to_user_id == user_id,
            )
        ),
        delete(EchoRow).where(EchoRow.id.in_(echo_ids)),
        delete(FollowRow).where(
            or_(FollowRow.follower_id == user_id, FollowRow.following_id == user_id)
        ),
        delete(NotificationRow).where(
            or_(NotificationRow.user_id == user_id, NotificationRow.actor_id == user_id)
        ),
        delete(MessageReactionRow).where(
            or_(
                MessageReactionRow.user_id == user_id,
                MessageReactionRow.message_id.in_(message_ids),
            )
        ),
        delete(MessageRow).where(MessageRow.sender_id == user_id),
        delete(ConversationMemberRow).where(ConversationMemberRow.user_id == user_id),
        delete(SessionRow).where(SessionRow.user_id == user_id),
        delete(PasswordResetRow).where(PasswordResetRow.user_id == user_id),
        delete(UserSettingsRow).where(UserSettingsRow.user_id == user_id),
        delete(ProfileRow).where(ProfileRow.id == user_id),
        delete(UserRow).where(UserRow.id == user_id),
    ]
    for statement in statements:
        session.execute(statement, execution_options={"synchronize_session": False})
    return keys


def purge_deleted_accounts(
    db: Database,
    storage: StorageClient,
    retention_days: int,
    at: Optional[float] = None,
) -> list[str]:
    """Hard-delete accounts soft-deleted more than ``retention_days`` ago."""
    cutoff = (at if at is not None else now()) - retention_days * 24 * 3600
    with db.Session() as session:
        user_ids = list(
            session.scalars(
                select(ProfileRow.id).where(
                    ProfileRow.deleted_at.is_not(None), ProfileRow.deleted_at <= cutoff
                )
            )
        )

    purged = []
    for user_id in user_ids:
        with db.Session() as session:
            keys = _purge_user(session, user_id)
            session.commit()
        try:
            storage.remove(keys)
        except StorageError:
            logger.exception("Failed to remove stored files of purged account %s", user_id)
        logger.info("Purged account %s (%d stored files)", user_id, len(keys))
        purged.append(user_id)
    return purged


def run_loop(poll_interval_seconds: float = 3600.0) -> None:
    """
    Periodic purge loop. Intended to be run under systemd/supervisor.
    """
    settings = get_settings()
    db = get_db()
    storage = get_storage_client()
    while True:
        try:
            purge_deleted_accounts(db, storage, settings.account_retention_days)
        except Exception:
            logger.exception("Account purge failed")
        time.sleep(poll_interval_seconds)


if __name__ == "__main__":
    run_loop()
