"""
Map queries: GeoJSON features in a bounding box and per-country emotion
aggregates for the globe view.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Iterable, Optional, Sequence

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.exc import SQLAlchemyError

from echoworld.centroids import get_country_centroid
from echoworld.db import Database, EchoRow
from shared.types import EMOTION_KEYS, PUBLIC_VISIBILITIES, EchoStatus

logger = logging.getLogger(__name__)

BBox = tuple[float, float, float, float]

LIMIT = 600
WORLD_BBOX: BBox = (-179.9, -80.0, 179.9, 80.0)
WORLD_TTL_SECONDS = 3600
LAT_LIMIT = 85.0
LNG_LIMIT = 180.0


def is_world_bbox(bbox: Sequence[float]) -> bool:
    min_lng, min_lat, max_lng, max_lat = bbox
    return min_lng <= -179 and max_lng >= 179 and min_lat <= -70 and max_lat >= 70


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(value, high))


def normalize_bbox(bbox: Sequence[float]) -> list[BBox]:
    """Clamp a viewport box and split it in two when it crosses the antimeridian."""
    min_lng, min_lat, max_lng, max_lat = (float(v) for v in bbox)
    min_lat = _clamp(min_lat, -LAT_LIMIT, LAT_LIMIT)
    max_lat = _clamp(max_lat, -LAT_LIMIT, LAT_LIMIT)
    min_lng = _clamp(min_lng, -LNG_LIMIT, LNG_LIMIT)
    max_lng = _clamp(max_lng, -LNG_LIMIT, LNG_LIMIT)
    if min_lat > max_lat:
        min_lat, max_lat = max_lat, min_lat
    if min_lng > max_lng:
        return [
            (min_lng, min_lat, LNG_LIMIT, max_lat),
            (-LNG_LIMIT, min_lat, max_lng, max_lat),
        ]
    return [(min_lng, min_lat, max_lng, max_lat)]


def _in_box(box: BBox):
    min_lng, min_lat, max_lng, max_lat = box
    return and_(
        EchoRow.lng >= min_lng,
        EchoRow.lng <= max_lng,
        EchoRow.lat >= min_lat,
        EchoRow.lat <= max_lat,
    )


def _public_located(emotion: Optional[str], since: Optional[float]):
    clauses = [
        EchoRow.status == EchoStatus.PUBLISHED.value,
        EchoRow.visibility.in_(PUBLIC_VISIBILITIES),
        EchoRow.lng.is_not(None),
        EchoRow.lat.is_not(None),
    ]
    if emotion:
        clauses.append(EchoRow.emotion == emotion)
    if since is not None:
        clauses.append(EchoRow.created_at >= since)
    return clauses


def _fetch_in_bbox(
    db: Database,
    box: BBox,
    *,
    emotion: Optional[str],
    since: Optional[float],
    limit: int,
) -> list[dict]:
    with db.Session() as session:
        rows = session.execute(
            select(
                EchoRow.id,
                EchoRow.title,
                EchoRow.emotion,
                EchoRow.created_at,
                EchoRow.city,
                EchoRow.country,
                EchoRow.lng,
                EchoRow.lat,
            )
            .where(*_public_located(emotion, since), _in_box(box))
            .order_by(EchoRow.created_at.desc())
            .limit(limit)
        ).all()
    return [dict(row._mapping) for row in rows]


def _valid_point(lng, lat) -> bool:
    return (
        isinstance(lng, (int, float))
        and isinstance(lat, (int, float))
        and math.isfinite(lng)
        and math.isfinite(lat)
    )


def rows_to_features(rows: Iterable[dict]) -> list[dict]:
    """Deduplicate by id and drop rows without a usable point."""
    seen = set()
    features = []
    for row in rows:
        echo_id = row.get("id")
        if not echo_id or echo_id in seen:
            continue
        seen.add(echo_id)
        lng, lat = row.get("lng"), row.get("lat")
        if not _valid_point(lng, lat):
            continue
        features.append(
            {
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [lng, lat]},
                "properties": {
                    "id": echo_id,
                    "title": row.get("title"),
                    "emotion": row.get("emotion"),
                    "created_at": row.get("created_at"),
                    "city": row.get("city"),
                    "country": row.get("country"),
                },
            }
        )
    return features


def _collection(features: list[dict]) -> dict:
    return {"type": "FeatureCollection", "features": features}


def _world_fallback(
    db: Database, *, emotion: Optional[str], since: Optional[float]
) -> dict:
    effective_since = since if since is not None else time.time() - WORLD_TTL_SECONDS
    rows = _fetch_in_bbox(
        db, WORLD_BBOX, emotion=emotion, since=effective_since, limit=LIMIT
    )
    return _collection(rows_to_features(rows))


def get_echoes_for_map(
    db: Database,
    bbox: Optional[Sequence[float]] = None,
    emotion: Optional[str] = None,
    since: Optional[float] = None,
) -> dict:
    """GeoJSON FeatureCollection of public echoes for a viewport.

    World-sized viewports without an explicit ``since`` only show the last
    hour. Empty results fall back to the world query.
    """
    if since is None and (bbox is None or is_world_bbox(bbox)):
        since = time.time() - WORLD_TTL_SECONDS
    if bbox is None:
        return _world_fallback(db, emotion=emotion, since=since)

    boxes = normalize_bbox(bbox)
    per_box_limit = max(1, LIMIT // len(boxes))
    try:
        collected: list[dict] = []
        for box in boxes:
            collected.extend(
                _fetch_in_bbox(
                    db, box, emotion=emotion, since=since, limit=per_box_limit
                )
            )
    except SQLAlchemyError:
        logger.exception("Map query failed for bbox %s, using world fallback", bbox)
        return _world_fallback(db, emotion=emotion, since=since)

    features = rows_to_features(collected)
    if not features:
        return _world_fallback(db, emotion=emotion, since=since)
    return _collection(features)


# Country aggregation


def _js_round(value: float) -> int:
    return int(math.floor(value + 0.5))


def _number(value) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    return number if math.isfinite(number) else 0


def emotion_percentages(counts: dict[str, float], total: float) -> dict[str, int]:
    if total <= 0:
        return {key: 0 for key in EMOTION_KEYS}
    return {key: _js_round(counts[key] / total * 100) for key in EMOTION_KEYS}


def dominant_emotion(counts: dict[str, float]) -> str:
    """Highest count wins, ties broken alphabetically; ``joy`` when nothing counted."""
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    if not ranked or ranked[0][1] <= 0:
        return "joy"
    return ranked[0][0]


def build_country_aggregations(rows: Iterable[dict]) -> list[dict]:
    aggregations = []
    for row in rows:
        country = str(row.get("country") or "").strip()
        if not country:
            continue
        centroid = get_country_centroid(country)
        if centroid is None:
            continue
        counts = {
            key: int(_number(row.get(f"emotion_{key}"))) for key in EMOTION_KEYS
        }
        reported = int(_number(row.get("total_count")))
        total = reported if reported > 0 else sum(counts.values())
        if total <= 0:
            continue
        aggregations.append(
            {
                "country": country,
                "centroid": list(centroid),
                "total_count": total,
                "emotion_counts": counts,
                "emotion_percentages": emotion_percentages(counts, total),
                "dominant_emotion": dominant_emotion(counts),
            }
        )
    return aggregations


def get_echoes_aggregated_by_country(
    db: Database,
    bbox: Sequence[float],
    emotion: Optional[str] = None,
    since: Optional[float] = None,
) -> list[dict]:
    boxes = normalize_bbox(bbox)
    columns = [
        EchoRow.country.label("country"),
        func.count(EchoRow.id).label("total_count"),
    ] + [
        func.sum(case((EchoRow.emotion == key, 1), else_=0)).label(f"emotion_{key}")
        for key in EMOTION_KEYS
    ]
    try:
        with db.Session() as session:
            rows = session.execute(
                select(*columns)
                .where(
                    *_public_located(emotion, since),
                    EchoRow.country.is_not(None),
                    or_(*(_in_box(box) for box in boxes)),
                )
                .group_by(EchoRow.country)
            ).all()
    except SQLAlchemyError:
        logger.exception("Country aggregation failed for bbox %s", bbox)
        return []
    return build_country_aggregations(dict(row._mapping) for row in rows)
