"""
proximity.py — Public posts near a point, nearest first.

The store's geo-near primitive works in metres; the API answers in
kilometres (distance = metres / 1000), like the viewport endpoint.
Authors that no longer exist come back as `author: null`.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from pymongo.errors import PyMongoError

from moodmap.core.errors import InternalError, ValidationError
from moodmap.models.map import LatLng, NearbyResponse
from moodmap.models.mood_post import MapMoodPost
from moodmap.services.composer import doc_to_post
from moodmap.services.geometry import (
    is_valid_coordinate,
    parse_float,
    parse_positive_float,
    parse_positive_int,
)
from moodmap.services.spatial_store import SpatialQueryPort

logger = logging.getLogger(__name__)

DEFAULT_MAX_DISTANCE_M = 5000.0
DEFAULT_LIMIT = 50
LOOKBACK = timedelta(days=30)


def _with_km(doc: dict) -> Optional[MapMoodPost]:
    try:
        post = doc_to_post(doc)
    except (ValueError, KeyError, TypeError) as exc:
        logger.warning("Skipping malformed nearby post %s: %s", doc.get("_id"), exc)
        return None
    meters = parse_float(doc.get("distance"))
    return post.model_copy(update={"distance": meters / 1000 if meters is not None else None})


async def find_nearby(
    store: SpatialQueryPort,
    *,
    lat: Optional[str],
    lng: Optional[str],
    max_distance: Optional[str] = None,
    limit: Optional[str] = None,
    now: Optional[datetime] = None,
) -> NearbyResponse:
    if not is_valid_coordinate(lat, lng):
        raise ValidationError("Invalid coordinates")
    center = LatLng(lat=parse_float(lat), lng=parse_float(lng))
    max_distance_m = parse_positive_float(max_distance, DEFAULT_MAX_DISTANCE_M)
    final_limit = parse_positive_int(limit, DEFAULT_LIMIT)
    since = (now or datetime.now(tz=timezone.utc)) - LOOKBACK

    try:
        docs = await store.find_near(center.lat, center.lng, max_distance_m, since, final_limit)
    except PyMongoError as exc:
        raise InternalError("Failed to fetch nearby mood posts", details=str(exc)) from exc

    posts = [post for post in (_with_km(doc) for doc in docs) if post is not None]
    return NearbyResponse(
        center=center,
        max_distance=max_distance_m / 1000,
        count=len(posts),
        data=posts,
    )
