"""
feed.py — The public check-in feed.

Sort modes
──────────
  timestamp  newest first (default)
  hottest    popularity = likes + 2 × comments, ties broken by recency
  relevance  max(0, 100 − 0.5 × ageHours) × 0.4 + 0.8 × likes + 1.2 × comments

The ranking itself runs inside the store (see MongoSpatialStore.find_feed,
which builds its pipeline from the weights below). popularity_score and
relevance_score are the same formulas in Python, for stores that rank in
memory and for reasoning about the ordering.

Posts by users the caller blocked, and by users who blocked the caller,
never appear.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from pymongo.errors import PyMongoError

from moodmap.core.errors import InternalError, ValidationError
from moodmap.models.feed import FEED_SORTS, FeedResponse
from moodmap.services.composer import docs_to_posts
from moodmap.services.geometry import parse_int

if TYPE_CHECKING:
    from moodmap.services.spatial_store import SpatialQueryPort

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100

COMMENT_POPULARITY_WEIGHT = 2
RECENCY_BASE = 100
RECENCY_DECAY_PER_HOUR = 0.5
RECENCY_WEIGHT = 0.4
LIKE_RELEVANCE_WEIGHT = 0.8
COMMENT_RELEVANCE_WEIGHT = 1.2


def popularity_score(likes: int, comments: int) -> float:
    return likes + comments * COMMENT_POPULARITY_WEIGHT


def relevance_score(likes: int, comments: int, age_hours: float) -> float:
    recency = max(0.0, RECENCY_BASE - age_hours * RECENCY_DECAY_PER_HOUR)
    return recency * RECENCY_WEIGHT + likes * LIKE_RELEVANCE_WEIGHT + comments * COMMENT_RELEVANCE_WEIGHT


def parse_sort(raw: Optional[str]) -> str:
    sort = raw or "timestamp"
    if sort not in FEED_SORTS:
        raise ValidationError(f"Invalid sort method. Use: {', '.join(FEED_SORTS)}")
    return sort


def parse_paging(skip: Optional[str], limit: Optional[str]) -> tuple[int, int]:
    """skip ≥ 0 (default 0); 1 ≤ limit ≤ 100 (default 20)."""
    final_skip = max(parse_int(skip) or 0, 0)
    final_limit = min(parse_int(limit) or DEFAULT_LIMIT, MAX_LIMIT)
    if final_limit <= 0:
        final_limit = DEFAULT_LIMIT
    return final_skip, final_limit


async def get_feed(
    store: SpatialQueryPort,
    user_id: str,
    *,
    sort: Optional[str] = None,
    skip: Optional[str] = None,
    limit: Optional[str] = None,
    now: Optional[datetime] = None,
) -> FeedResponse:
    final_sort = parse_sort(sort)
    final_skip, final_limit = parse_paging(skip, limit)
    now = now or datetime.now(tz=timezone.utc)

    try:
        blocked = await store.blocked_user_ids(user_id)
        docs = await store.find_feed(final_sort, final_skip, final_limit, blocked, now)
    except PyMongoError as exc:
        raise InternalError("Failed to fetch feed", details=str(exc)) from exc

    logger.info("Feed (%s) for %s: %d posts, %d blocked authors", final_sort, user_id, len(docs), len(blocked))
    posts = docs_to_posts(docs)
    return FeedResponse(
        sort=final_sort,
        skip=final_skip,
        limit=final_limit,
        count=len(posts),
        data=posts,
    )
