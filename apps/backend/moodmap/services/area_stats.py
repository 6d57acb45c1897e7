"""
area_stats.py — Emotion statistics for a map area over the last 30 days.

An empty area is a normal answer ({totalPosts: 0, emotionBreakdown: {},
postsPerDay: 0}), not an error. Posts without a string emotion name still
count towards totalPosts but are left out of the breakdown.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from pymongo.errors import PyMongoError

from moodmap.core.errors import InternalError
from moodmap.models.map import AreaStats, AreaStatsResponse
from moodmap.services.geometry import require_bounds
from moodmap.services.spatial_store import SpatialQueryPort

logger = logging.getLogger(__name__)

LOOKBACK_DAYS = 30


def summarize(summary: Optional[dict]) -> AreaStats:
    """Turn the store's grouped count into AreaStats."""
    if not summary or not summary.get("totalPosts"):
        return AreaStats()

    total = summary["totalPosts"]
    breakdown: dict[str, int] = {}
    for name in summary.get("emotionNames") or []:
        if isinstance(name, str) and name:
            breakdown[name] = breakdown.get(name, 0) + 1

    return AreaStats(
        total_posts=total,
        emotion_breakdown=breakdown,
        posts_per_day=round(total / LOOKBACK_DAYS, 2),
    )


async def area_stats(
    store: SpatialQueryPort,
    *,
    sw_lat: Optional[str],
    sw_lng: Optional[str],
    ne_lat: Optional[str],
    ne_lng: Optional[str],
    now: Optional[datetime] = None,
) -> AreaStatsResponse:
    bounds, box = require_bounds(
        sw_lat, sw_lng, ne_lat, ne_lng,
        missing_message="Valid boundary coordinates required",
        invalid_message="Valid boundary coordinates required",
    )
    since = (now or datetime.now(tz=timezone.utc)) - timedelta(days=LOOKBACK_DAYS)

    try:
        summary = await store.summarize_box(box, since)
    except PyMongoError as exc:
        raise InternalError("Failed to fetch statistics", details=str(exc)) from exc

    return AreaStatsResponse(bounds=bounds, data=summarize(summary))
