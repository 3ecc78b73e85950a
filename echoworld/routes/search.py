"""
Global search.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from echoworld.db import Database
from echoworld.dependencies import get_db
from echoworld.search import DEFAULT_LIMIT, search_all

router = APIRouter(tags=["search"])


@router.get("/search")
def search(
    q: str = Query("", max_length=100),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=20),
    db: Database = Depends(get_db),
):
    return search_all(db, q, limit)
