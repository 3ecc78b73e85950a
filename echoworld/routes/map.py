"""
Map endpoints: echo points in a viewport and per-country aggregates.
"""

from __future__ import annotations

import math
from typing import Optional

from fastapi import APIRouter, Depends, Query

from echoworld import geo
from echoworld.db import Database
from echoworld.dependencies import get_db
from echoworld.errors import ValidationFailed
from shared.types import EMOTION_KEYS

router = APIRouter(prefix="/map", tags=["map"])


def parse_bbox(raw: Optional[str]) -> Optional[list[float]]:
    """``minLng,minLat,maxLng,maxLat`` into four finite floats."""
    if raw is None or not raw.strip():
        return None
    parts = raw.split(",")
    if len(parts) != 4:
        raise ValidationFailed("bbox must be minLng,minLat,maxLng,maxLat")
    try:
        values = [float(part) for part in parts]
    except ValueError as exc:
        raise ValidationFailed("bbox values must be numbers") from exc
    if not all(math.isfinite(value) for value in values):
        raise ValidationFailed("bbox values must be finite")
    return values


def _emotion(raw: Optional[str]) -> Optional[str]:
    if not raw:
        return None
    if raw not in EMOTION_KEYS:
        raise ValidationFailed(f"Unknown emotion {raw!r}")
    return raw


@router.get("/echoes")
def map_echoes(
    bbox: Optional[str] = Query(None),
    emotion: Optional[str] = Query(None),
    since: Optional[float] = Query(None, description="Epoch seconds"),
    db: Database = Depends(get_db),
):
    return geo.get_echoes_for_map(db, parse_bbox(bbox), _emotion(emotion), since)


@router.get("/countries")
def map_countries(
    bbox: Optional[str] = Query(None),
    emotion: Optional[str] = Query(None),
    since: Optional[float] = Query(None, description="Epoch seconds"),
    db: Database = Depends(get_db),
):
    box = parse_bbox(bbox) or list(geo.WORLD_BBOX)
    return {
        "countries": geo.get_echoes_aggregated_by_country(
            db, box, _emotion(emotion), since
        )
    }
