"""
viewport.py — Posts inside the visible map area.

Pipeline:
  validate bounds → normalise box → time filter (since / last 7 days)
  → public-only store query (newest first, capped) → project
  → optional distance-to-center → optional clustering (zoom < 15)

An absent or unparsable `since` falls back to the last 7 days rather
than the whole history. Privacy is always "public" whatever the caller
asks for.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from pymongo.errors import PyMongoError

from moodmap.core.errors import InternalError
from moodmap.models.map import FiltersApplied, LatLng, ViewportResponse
from moodmap.models.mood_post import MapMoodPost
from moodmap.services.clustering import cluster_posts
from moodmap.services.composer import docs_to_posts
from moodmap.services.geometry import (
    distance_km,
    is_valid_coordinate,
    parse_float,
    parse_positive_int,
    parse_truncated_int,
    post_lat_lng,
    require_bounds,
)
from moodmap.services.spatial_store import PUBLIC, SpatialQueryPort

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 500
DEFAULT_LOOKBACK = timedelta(days=7)
CLUSTER_MAX_ZOOM = 15   # at and above this zoom individual posts are shown


def parse_since(raw: Optional[str], now: datetime) -> datetime:
    """ISO timestamp → aware datetime; anything else → now - 7 days."""
    fallback = now - DEFAULT_LOOKBACK
    if not raw:
        return fallback
    try:
        since = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except ValueError:
        logger.warning('Invalid "since" date format received: %s', raw)
        return fallback
    return since if since.tzinfo else since.replace(tzinfo=timezone.utc)


def clustering_zoom(cluster: Optional[str], zoom_level: Optional[str]) -> Optional[int]:
    """The zoom to cluster at, or None when the flat list should be served."""
    if cluster != "true":
        return None
    zoom = parse_truncated_int(zoom_level)
    if zoom is None or zoom >= CLUSTER_MAX_ZOOM:
        logger.warning(
            'Clustering requested but zoomLevel ("%s") is invalid or too high. Serving unclustered data.',
            zoom_level,
        )
        return None
    return zoom


def annotate_distance(posts: list[MapMoodPost], center: LatLng) -> list[MapMoodPost]:
    annotated = []
    for post in posts:
        point = post_lat_lng(post.location)
        if point is None:
            annotated.append(post)
            continue
        annotated.append(post.model_copy(update={"distance": distance_km(center.lat, center.lng, *point)}))
    return annotated


async def query_viewport(
    store: SpatialQueryPort,
    *,
    sw_lat: Optional[str],
    sw_lng: Optional[str],
    ne_lat: Optional[str],
    ne_lng: Optional[str],
    center_lat: Optional[str] = None,
    center_lng: Optional[str] = None,
    since: Optional[str] = None,
    limit: Optional[str] = None,
    cluster: Optional[str] = "false",
    zoom_level: Optional[str] = "10",
    now: Optional[datetime] = None,
) -> ViewportResponse:
    bounds, box = require_bounds(sw_lat, sw_lng, ne_lat, ne_lng)
    now = now or datetime.now(tz=timezone.utc)
    since_dt = parse_since(since, now)
    final_limit = parse_positive_int(limit, DEFAULT_LIMIT)

    try:
        docs = await store.find_in_box(box, since_dt, final_limit)
    except PyMongoError as exc:
        raise InternalError("Failed to fetch mood posts", details=str(exc)) from exc
    logger.info("Viewport query matched %d mood posts", len(docs))

    posts = docs_to_posts(docs)

    if center_lat and center_lng:
        if is_valid_coordinate(center_lat, center_lng):
            center = LatLng(lat=parse_float(center_lat), lng=parse_float(center_lng))
            posts = annotate_distance(posts, center)
        else:
            logger.warning("Invalid centerLat/centerLng for distance calculation: %s, %s", center_lat, center_lng)

    zoom = clustering_zoom(cluster, zoom_level)
    data = cluster_posts(posts, zoom) if zoom is not None else posts

    return ViewportResponse(
        count=len(data),
        viewport=bounds,
        actual_bounds=box,
        clustered=zoom is not None,
        filters_applied=FiltersApplied(since=since_dt, privacy=[PUBLIC]),
        data=data,
    )
