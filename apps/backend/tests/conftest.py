"""
pytest configuration and shared fixtures for the MoodMap API tests.

Key concern: tests must not require a live MongoDB. We achieve this by:
  1. Patching connect_to_mongo / close_mongo_connection to no-ops so
     FastAPI's lifespan doesn't try to reach a real database.
  2. Setting db_client.client = None (disconnected) so health check
     correctly reports "disconnected" — a valid test-mode state.
  3. Overriding the get_store dependency with InMemorySpatialStore, an
     implementation of the Spatial Query Port over plain dicts.
"""

import os
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from bson import ObjectId
from bson.errors import InvalidId
from httpx import ASGITransport, AsyncClient
from pymongo.errors import ServerSelectionTimeoutError

# Set env vars BEFORE importing the app so Settings picks them up correctly
os.environ.setdefault("ENVIRONMENT", "test")

from moodmap.services.feed import popularity_score, relevance_score  # noqa: E402
from moodmap.services.geometry import distance_km  # noqa: E402
from moodmap.services.spatial_store import SpatialQueryPort  # noqa: E402


# ── In-memory Spatial Query Port ──────────────────────────────────────────────

def _lat_lng(doc):
    try:
        lng, lat = doc["location"]["coordinates"]["coordinates"]
        return float(lat), float(lng)
    except (KeyError, TypeError, ValueError):
        return None


class InMemorySpatialStore(SpatialQueryPort):
    """
    Same contract as MongoSpatialStore, evaluated in Python.

    Set `fail = True` to make every call raise a driver error.
    """

    def __init__(self):
        self.posts: list[dict] = []
        self.users: dict = {}
        self.fail = False
        self.calls: list[str] = []

    def _check(self, name):
        self.calls.append(name)
        if self.fail:
            raise ServerSelectionTimeoutError("mongo unreachable")

    def _with_author(self, doc):
        out = dict(doc)
        author = self.users.get(doc.get("userId"))
        if author is not None:
            out["author"] = author
        return out

    def _public_in_box(self, box, since):
        matched = []
        for doc in self.posts:
            point = _lat_lng(doc)
            if point is None or doc.get("privacy") != "public" or doc["timestamp"] < since:
                continue
            lat, lng = point
            if box.min_lat <= lat <= box.max_lat and box.min_lng <= lng <= box.max_lng:
                matched.append(doc)
        return matched

    async def find_in_box(self, box, since, limit):
        self._check("find_in_box")
        docs = sorted(self._public_in_box(box, since), key=lambda d: d["timestamp"], reverse=True)
        return [self._with_author(d) for d in docs[:limit]]

    async def points_in_box(self, box, since):
        self._check("points_in_box")
        return [
            {"lat": _lat_lng(d)[0], "lng": _lat_lng(d)[1], "emotion": d.get("emotion")}
            for d in self._public_in_box(box, since)
        ]

    async def find_near(self, lat, lng, max_distance_m, since, limit):
        self._check("find_near")
        found = []
        for doc in self.posts:
            point = _lat_lng(doc)
            if point is None or doc.get("privacy") != "public" or doc["timestamp"] < since:
                continue
            meters = distance_km(lat, lng, *point) * 1000
            if meters <= max_distance_m:
                found.append({**self._with_author(doc), "distance": meters})
        found.sort(key=lambda d: d["distance"])
        return found[:limit]

    async def summarize_box(self, box, since):
        self._check("summarize_box")
        docs = self._public_in_box(box, since)
        if not docs:
            return None
        return {
            "_id": None,
            "totalPosts": len(docs),
            "emotionNames": [(d.get("emotion") or {}).get("name") for d in docs],
        }

    async def get_post(self, post_id):
        self._check("get_post")
        for doc in self.posts:
            if doc["_id"] == post_id:
                return self._with_author(doc)
        return None

    async def blocked_user_ids(self, user_id):
        self._check("blocked_user_ids")
        try:
            oid = ObjectId(user_id)
        except (InvalidId, TypeError):
            return []
        blocked = list((self.users.get(oid) or {}).get("blockedUsers", []))
        for uid, user in self.users.items():
            if oid in user.get("blockedUsers", []) and uid not in blocked:
                blocked.append(uid)
        return blocked

    async def find_feed(self, sort, skip, limit, exclude_user_ids, now):
        self._check("find_feed")
        docs = [
            d for d in self.posts
            if d.get("privacy") == "public" and d.get("userId") not in exclude_user_ids
        ]

        def counts(d):
            return len(d.get("likes", [])), len(d.get("comments", []))

        if sort == "hottest":
            docs.sort(key=lambda d: d["timestamp"], reverse=True)
            docs.sort(key=lambda d: popularity_score(*counts(d)), reverse=True)
        elif sort == "relevance":
            docs.sort(
                key=lambda d: relevance_score(*counts(d), (now - d["timestamp"]).total_seconds() / 3600),
                reverse=True,
            )
        else:
            docs.sort(key=lambda d: d["timestamp"], reverse=True)
        return [self._with_author(d) for d in docs[skip: skip + limit]]

    # ── Seeding helpers ──────────────────────────────────────────────────────

    def add_user(self, username="alice", blocked=None):
        oid = ObjectId()
        self.users[oid] = {
            "_id": oid,
            "username": username,
            "profilePicture": f"https://cdn.example.com/{username}.png",
            "blockedUsers": list(blocked or []),
        }
        return oid

    def add_post(
        self,
        lat=34.07,
        lng=-118.44,
        emotion="Happy",
        privacy="public",
        age=timedelta(hours=1),
        user_id=None,
        likes=0,
        comments=0,
        **extra,
    ):
        now = datetime.now(tz=timezone.utc)
        doc = {
            "_id": ObjectId(),
            "userId": user_id or ObjectId(),
            "emotion": {"name": emotion, "attributes": {"pleasantness": 0.7}} if emotion else None,
            "reason": "test check-in",
            "people": ["Sam"],
            "activities": ["walking"],
            "location": {
                "landmarkName": "Somewhere",
                "coordinates": {"type": "Point", "coordinates": [lng, lat]},
            },
            "privacy": privacy,
            "timestamp": now - age,
            "createdAt": now - age,
            "updatedAt": now - age,
            "likes": [ObjectId() for _ in range(likes)],
            "comments": [
                {"userId": ObjectId(), "content": "nice", "timestamp": now} for _ in range(comments)
            ],
        }
        doc.update(extra)
        self.posts.append(doc)
        return doc


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
async def mock_db():
    """
    Patch the MongoDB lifecycle for every test.

    - connect_to_mongo / close_mongo_connection → no-op AsyncMocks
    - db_client.client / db_client.db → None
    """
    with (
        patch("moodmap.main.connect_to_mongo", new_callable=AsyncMock),
        patch("moodmap.main.close_mongo_connection", new_callable=AsyncMock),
    ):
        import moodmap.core.database as db_module

        original_client = db_module.db_client.client
        original_db = db_module.db_client.db

        db_module.db_client.client = None
        db_module.db_client.db = None

        yield

        db_module.db_client.client = original_client
        db_module.db_client.db = original_db


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Keep rate-limit counters from bleeding between tests."""
    from moodmap.core.rate_limit import limiter

    limiter.reset()
    yield


@pytest.fixture()
async def client(mock_db):  # noqa: ARG001 (mock_db must run first)
    """HTTPX async client against the app with no store override."""
    from moodmap.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def store():
    return InMemorySpatialStore()


@pytest.fixture()
async def map_client(store):
    """HTTPX async client whose store is the in-memory fake."""
    from moodmap.main import app
    from moodmap.services.spatial_store import get_store

    app.dependency_overrides[get_store] = lambda: store
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
