"""
spatial_store.py — Spatial Query Port and its MongoDB (Motor) adapter.

The map algorithms never talk to MongoDB directly. They depend on
SpatialQueryPort, which exposes the three capabilities a spatial store
needs to provide (box query, radius query, grouped count) plus the single
lookups used by the detail and feed routes. MongoSpatialStore implements
it with native operators:

  box query      → $geoWithin / $box on location.coordinates
  radius query   → $geoNear (2dsphere, spherical, metres)
  grouped count  → $group

Every query here already carries `privacy: "public"` where the caller
asks for public data: the privacy filter is part of the query, never a
post-filter.

Required indexes (created by ensure_indexes at startup):

  db.moodcheckins.createIndex({ "location.coordinates": "2dsphere" })
  db.moodcheckins.createIndex({ privacy: 1, timestamp: -1 })
  db.moodcheckins.createIndex({ userId: 1, timestamp: -1 })

Author enrichment is a $lookup into the users collection; the matched
user (or nothing) ends up under "author" on each returned document.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, GEOSPHERE

from moodmap.core.config import settings
from moodmap.core.database import get_db
from moodmap.core.errors import InternalError
from moodmap.models.map import BoundingBox
from moodmap.services.feed import (
    COMMENT_POPULARITY_WEIGHT,
    COMMENT_RELEVANCE_WEIGHT,
    LIKE_RELEVANCE_WEIGHT,
    RECENCY_BASE,
    RECENCY_DECAY_PER_HOUR,
    RECENCY_WEIGHT,
)

logger = logging.getLogger(__name__)

PUBLIC = "public"


class SpatialQueryPort(ABC):
    """Read-only capabilities the map and feed engine needs from a store."""

    @abstractmethod
    async def find_in_box(self, box: BoundingBox, since: datetime, limit: int) -> list[dict]:
        """Public posts inside `box` since `since`, newest first, at most `limit`, author attached."""

    @abstractmethod
    async def points_in_box(self, box: BoundingBox, since: datetime) -> list[dict]:
        """Public posts inside `box` since `since` as {lat, lng, emotion}."""

    @abstractmethod
    async def find_near(
        self, lat: float, lng: float, max_distance_m: float, since: datetime, limit: int
    ) -> list[dict]:
        """Public posts within `max_distance_m`, nearest first, `distance` in metres, author attached."""

    @abstractmethod
    async def summarize_box(self, box: BoundingBox, since: datetime) -> Optional[dict]:
        """{totalPosts, emotionNames} for public posts in `box`, or None when nothing matches."""

    @abstractmethod
    async def get_post(self, post_id: ObjectId) -> Optional[dict]:
        """One post by id regardless of privacy, author attached."""

    @abstractmethod
    async def blocked_user_ids(self, user_id: str) -> list[Any]:
        """Ids the user blocked plus ids of users who blocked them."""

    @abstractmethod
    async def find_feed(
        self, sort: str, skip: int, limit: int, exclude_user_ids: list[Any], now: datetime
    ) -> list[dict]:
        """Public posts not authored by `exclude_user_ids`, ranked by `sort`."""


# ── MongoDB adapter ───────────────────────────────────────────────────────────

def _box_match(box: BoundingBox, since: datetime) -> dict:
    return {
        "location.coordinates": {
            "$geoWithin": {
                "$box": [
                    [box.min_lng, box.min_lat],
                    [box.max_lng, box.max_lat],
                ]
            }
        },
        "privacy": PUBLIC,
        "timestamp": {"$gte": since},
    }


def _author_lookup() -> list[dict]:
    return [
        {
            "$lookup": {
                "from": settings.users_collection,
                "localField": "userId",
                "foreignField": "_id",
                "as": "author",
            }
        },
        # Missing author → field absent → composer emits null
        {"$set": {"author": {"$arrayElemAt": ["$author", 0]}}},
    ]


def _feed_ranking(sort: str, now: datetime) -> list[dict]:
    likes = {"$size": {"$ifNull": ["$likes", []]}}
    comments = {"$size": {"$ifNull": ["$comments", []]}}

    if sort == "hottest":
        return [
            {"$set": {"popularityScore": {"$add": [likes, {"$multiply": [comments, COMMENT_POPULARITY_WEIGHT]}]}}},
            {"$sort": {"popularityScore": DESCENDING, "timestamp": DESCENDING}},
        ]

    if sort == "relevance":
        age_hours = {"$divide": [{"$subtract": [now, "$timestamp"]}, 1000 * 60 * 60]}
        recency = {
            "$max": [0, {"$subtract": [RECENCY_BASE, {"$multiply": [age_hours, RECENCY_DECAY_PER_HOUR]}]}]
        }
        return [
            {
                "$set": {
                    "relevanceScore": {
                        "$add": [
                            {"$multiply": [recency, RECENCY_WEIGHT]},
                            {"$multiply": [likes, LIKE_RELEVANCE_WEIGHT]},
                            {"$multiply": [comments, COMMENT_RELEVANCE_WEIGHT]},
                        ]
                    }
                }
            },
            {"$sort": {"relevanceScore": DESCENDING}},
        ]

    return [{"$sort": {"timestamp": DESCENDING}}]


class MongoSpatialStore(SpatialQueryPort):
    """SpatialQueryPort backed by a Motor database handle."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self._db = db

    @property
    def _posts(self):
        return self._db[settings.posts_collection]

    @property
    def _users(self):
        return self._db[settings.users_collection]

    async def _aggregate(self, pipeline: list[dict]) -> list[dict]:
        logger.debug("Aggregating %s: %s", settings.posts_collection, pipeline)
        return await self._posts.aggregate(pipeline).to_list(length=None)

    async def find_in_box(self, box: BoundingBox, since: datetime, limit: int) -> list[dict]:
        return await self._aggregate([
            {"$match": _box_match(box, since)},
            {"$sort": {"timestamp": DESCENDING}},
            {"$limit": limit},
            *_author_lookup(),
        ])

    async def points_in_box(self, box: BoundingBox, since: datetime) -> list[dict]:
        return await self._aggregate([
            {"$match": _box_match(box, since)},
            {
                "$project": {
                    "_id": 0,
                    "lat": {"$arrayElemAt": ["$location.coordinates.coordinates", 1]},
                    "lng": {"$arrayElemAt": ["$location.coordinates.coordinates", 0]},
                    "emotion": "$emotion",
                }
            },
        ])

    async def find_near(
        self, lat: float, lng: float, max_distance_m: float, since: datetime, limit: int
    ) -> list[dict]:
        return await self._aggregate([
            {
                "$geoNear": {
                    "near": {"type": "Point", "coordinates": [lng, lat]},
                    "key": "location.coordinates",
                    "distanceField": "distance",   # metres
                    "maxDistance": max_distance_m,
                    "spherical": True,
                    "query": {"privacy": PUBLIC, "timestamp": {"$gte": since}},
                }
            },
            {"$sort": {"distance": ASCENDING}},
            {"$limit": limit},
            *_author_lookup(),
        ])

    async def summarize_box(self, box: BoundingBox, since: datetime) -> Optional[dict]:
        result = await self._aggregate([
            {"$match": _box_match(box, since)},
            {
                "$group": {
                    "_id": None,
                    "totalPosts": {"$sum": 1},
                    "emotionNames": {"$push": "$emotion.name"},
                }
            },
        ])
        return result[0] if result else None

    async def get_post(self, post_id: ObjectId) -> Optional[dict]:
        result = await self._aggregate([{"$match": {"_id": post_id}}, *_author_lookup()])
        return result[0] if result else None

    async def blocked_user_ids(self, user_id: str) -> list[Any]:
        try:
            oid = ObjectId(user_id)
        except (InvalidId, TypeError):
            logger.warning("Feed caller id %r is not an ObjectId; no block list applied", user_id)
            return []

        user = await self._users.find_one({"_id": oid}, {"blockedUsers": 1})
        blocked = list((user or {}).get("blockedUsers") or [])
        async for doc in self._users.find({"blockedUsers": oid}, {"_id": 1}):
            if doc["_id"] not in blocked:
                blocked.append(doc["_id"])
        return blocked

    async def find_feed(
        self, sort: str, skip: int, limit: int, exclude_user_ids: list[Any], now: datetime
    ) -> list[dict]:
        return await self._aggregate([
            {"$match": {"privacy": PUBLIC, "userId": {"$nin": exclude_user_ids}}},
            *_feed_ranking(sort, now),
            {"$skip": skip},
            {"$limit": limit},
            *_author_lookup(),
        ])


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create the indexes the geo queries rely on (idempotent)."""
    posts = db[settings.posts_collection]
    await posts.create_index([("location.coordinates", GEOSPHERE)])
    await posts.create_index([("privacy", ASCENDING), ("timestamp", DESCENDING)])
    await posts.create_index([("userId", ASCENDING), ("timestamp", DESCENDING)])
    logger.info("Geospatial indexes ensured on %s", settings.posts_collection)


def get_store(db=Depends(get_db)) -> SpatialQueryPort:
    """
    FastAPI dependency — the store the map routes query.

    Tests override this with an in-memory implementation.
    """
    if db is None:
        raise InternalError("Database unavailable")
    return MongoSpatialStore(db)
