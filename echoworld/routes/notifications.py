"""
Notifications and unread counters.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from echoworld import notifications
from echoworld.db import Database
from echoworld.dependencies import get_current_user_id, get_db
from echoworld.routes.common import records
from echoworld.schemas import OkResponse, UnreadCountsResponse

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    return {"notifications": records(notifications.fetch_notifications(db, user_id, limit))}


@router.get("/unread", response_model=UnreadCountsResponse)
def unread_counts(
    user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)
):
    return UnreadCountsResponse(**notifications.fetch_unread_counts(db, user_id))


@router.post("/read-all")
def mark_all_read(
    user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)
):
    return {"updated": notifications.mark_all_notifications_read(db, user_id)}


@router.post("/{notification_id}/read", response_model=OkResponse)
def mark_read(
    notification_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    notifications.mark_notification_read(db, notification_id, user_id)
    return OkResponse()
