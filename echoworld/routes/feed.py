"""
The personal "For Me" feed.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from echoworld.db import Database
from echoworld.dependencies import get_current_user_id, get_db
from echoworld.feed import get_for_me_feed

router = APIRouter(tags=["feed"])


@router.get("/for-me")
def for_me(user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)):
    return get_for_me_feed(db, user_id)
