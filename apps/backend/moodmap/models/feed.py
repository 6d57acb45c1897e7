"""
feed.py — Pydantic models for the public check-in feed.
"""

from typing import Literal

from moodmap.models.mood_post import CamelModel, MapMoodPost

FeedSort = Literal["timestamp", "hottest", "relevance"]
FEED_SORTS: tuple[str, ...] = ("timestamp", "hottest", "relevance")


class FeedResponse(CamelModel):
    """Response for GET /api/feed."""

    success: bool = True
    sort: FeedSort
    skip: int
    limit: int
    count: int
    data: list[MapMoodPost]
