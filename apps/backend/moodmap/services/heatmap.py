"""
heatmap.py — Coarse N×N emotion heatmap over the viewport.

Each public post from the last 30 days lands in grid cell

    latBucket = floor((lat - minLat) / latSpan * g)
    lngBucket = floor((lng - minLng) / lngSpan * g)

Per cell: intensity = number of posts, dominantEmotion = plurality vote
over the members' emotion objects (first to a new maximum wins). The
returned lat/lng is the cell center, never a real post position.

A zero-width or zero-height box yields an empty grid instead of dividing
by zero. Cells whose center is not finite are dropped.
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import PyMongoError

from moodmap.core.errors import InternalError, ValidationError
from moodmap.models.map import BoundingBox, HeatCell, HeatmapResponse
from moodmap.models.mood_post import Emotion
from moodmap.services.clustering import dominant_emotion
from moodmap.services.geometry import parse_float, parse_int, require_bounds
from moodmap.services.spatial_store import SpatialQueryPort

logger = logging.getLogger(__name__)

DEFAULT_GRID_SIZE = 50
LOOKBACK = timedelta(days=30)


def parse_grid_size(raw: Optional[str]) -> int:
    grid = parse_int(DEFAULT_GRID_SIZE if raw is None else raw)
    if grid is None or grid <= 0:
        raise ValidationError("Invalid gridSize parameter")
    return grid


def _to_emotion(raw) -> Optional[Emotion]:
    if not isinstance(raw, dict):
        return None
    try:
        return Emotion(**raw)
    except PydanticValidationError:
        logger.warning("Ignoring malformed emotion in heatmap bucket: %s", raw)
        return None


def bucket_points(points: list[dict], box: BoundingBox, grid_size: int) -> list[HeatCell]:
    """Group points into grid cells and summarise each cell."""
    lat_span, lng_span = box.lat_span, box.lng_span
    if lat_span == 0 or lng_span == 0:
        return []

    buckets: dict[tuple[int, int], list[Optional[Emotion]]] = {}
    for point in points:
        lat, lng = parse_float(point.get("lat")), parse_float(point.get("lng"))
        if lat is None or lng is None:
            continue
        key = (
            math.floor((lat - box.min_lat) / lat_span * grid_size),
            math.floor((lng - box.min_lng) / lng_span * grid_size),
        )
        buckets.setdefault(key, []).append(_to_emotion(point.get("emotion")))

    lat_step = lat_span / grid_size
    lng_step = lng_span / grid_size
    cells = []
    for (lat_bucket, lng_bucket), emotions in buckets.items():
        center_lat = box.min_lat + (lat_bucket + 0.5) * lat_step
        center_lng = box.min_lng + (lng_bucket + 0.5) * lng_step
        if not (math.isfinite(center_lat) and math.isfinite(center_lng)):
            continue
        cells.append(HeatCell(
            lat=center_lat,
            lng=center_lng,
            intensity=len(emotions),
            dominant_emotion=dominant_emotion(emotions),
        ))
    return cells


async def build_heatmap(
    store: SpatialQueryPort,
    *,
    sw_lat: Optional[str],
    sw_lng: Optional[str],
    ne_lat: Optional[str],
    ne_lng: Optional[str],
    grid_size: Optional[str] = None,
    now: Optional[datetime] = None,
) -> HeatmapResponse:
    bounds, box = require_bounds(
        sw_lat, sw_lng, ne_lat, ne_lng,
        missing_message="Valid boundary coordinates required",
        invalid_message="Valid boundary coordinates required",
    )
    grid = parse_grid_size(grid_size)

    if box.lat_span == 0 or box.lng_span == 0:
        return HeatmapResponse(grid_size=grid, bounds=bounds, data=[])

    since = (now or datetime.now(tz=timezone.utc)) - LOOKBACK
    try:
        points = await store.points_in_box(box, since)
    except PyMongoError as exc:
        raise InternalError("Failed to generate heatmap data", details=str(exc)) from exc

    cells = bucket_points(points, box, grid)
    logger.info("Heatmap: %d posts → %d cells (grid %d)", len(points), len(cells), grid)
    return HeatmapResponse(grid_size=grid, bounds=bounds, data=cells)
