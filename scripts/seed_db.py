#!/usr/bin/env python3
"""
seed_db.py — Populate MongoDB with sample mood check-ins for local development.

Inserts:
  - A handful of users (one of them blocking another, for the feed)
  - Public / friends / private check-ins around Los Angeles and London,
    spread over the last two weeks so every lookback window has data
  - The geospatial and feed indexes the API relies on

Usage (from the repository root):
    python scripts/seed_db.py            # replace existing seed data
    python scripts/seed_db.py --append   # add without clearing first

Connection settings come from the same MONGO_URI / MONGO_DB_NAME
environment variables (or .env) as the API.

Safe to re-run: seed documents are tagged and removed before re-inserting.
"""

import argparse
import asyncio
import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT / "apps" / "backend"))

import certifi  # noqa: E402
from bson import ObjectId  # noqa: E402
from motor.motor_asyncio import AsyncIOMotorClient  # noqa: E402

from moodmap.core.config import settings  # noqa: E402
from moodmap.core.security import create_access_token  # noqa: E402
from moodmap.services.spatial_store import ensure_indexes  # noqa: E402

SEED_TAG = "seed"

# name, lng, lat
_PLACES = [
    ("Royce Hall",           -118.4422, 34.0729),
    ("Powell Library",       -118.4421, 34.0716),
    ("Santa Monica Pier",    -118.4973, 34.0094),
    ("Griffith Observatory", -118.3004, 34.1184),
    ("Venice Beach",         -118.4695, 33.9850),
    ("Tower Bridge",           -0.0754, 51.5055),
    ("British Museum",         -0.1269, 51.5194),
]

# name, pleasantness, intensity, control, clarity
_EMOTIONS = [
    ("Happy",    0.9, 0.6, 0.7, 0.8),
    ("Calm",     0.7, 0.2, 0.8, 0.7),
    ("Excited",  0.8, 0.9, 0.5, 0.6),
    ("Sad",      0.2, 0.5, 0.3, 0.5),
    ("Anxious",  0.2, 0.8, 0.2, 0.3),
    ("Grateful", 0.9, 0.4, 0.7, 0.9),
]

_REASONS = ["Finished my exam", "Sunset walk", "Long queue", "Met an old friend", "Deadline tomorrow"]
_ACTIVITIES = ["studying", "walking", "eating", "working", "exercising"]


def _make_users() -> list[dict]:
    usernames = ["maya", "jordan", "sam", "riley", "troll"]
    users = [
        {
            "_id": ObjectId(),
            "username": name,
            "profilePicture": f"https://cdn.example.com/avatars/{name}.png",
            "blockedUsers": [],
            "seedTag": SEED_TAG,
        }
        for name in usernames
    ]
    # maya blocks troll → troll's posts never reach maya's feed
    users[0]["blockedUsers"].append(users[-1]["_id"])
    return users


def _make_checkin(user: dict, others: list[dict], now: datetime) -> dict:
    landmark, lng, lat = random.choice(_PLACES)
    name, pleasantness, intensity, control, clarity = random.choice(_EMOTIONS)
    ts = now - timedelta(hours=random.uniform(0.5, 24 * 14))
    return {
        "userId": user["_id"],
        "emotion": {
            "name": name,
            "attributes": {
                "pleasantness": pleasantness,
                "intensity": intensity,
                "control": control,
                "clarity": clarity,
            },
        },
        "reason": random.choice(_REASONS),
        "people": random.sample(["Sam", "Alex", "Priya", "Chen"], k=random.randint(0, 2)),
        "activities": random.sample(_ACTIVITIES, k=random.randint(1, 2)),
        "location": {
            "landmarkName": landmark,
            # Jitter ~±300 m so clustering has something to merge
            "coordinates": {
                "type": "Point",
                "coordinates": [lng + random.uniform(-0.003, 0.003), lat + random.uniform(-0.003, 0.003)],
            },
        },
        "privacy": random.choices(["public", "friends", "private"], weights=[8, 1, 1])[0],
        "isAnonymous": random.random() < 0.1,
        "timestamp": ts,
        "createdAt": ts,
        "updatedAt": ts,
        "likes": [u["_id"] for u in random.sample(others, k=random.randint(0, len(others)))],
        "comments": [
            {"userId": u["_id"], "content": "🙌", "timestamp": ts + timedelta(minutes=5)}
            for u in random.sample(others, k=random.randint(0, 2))
        ],
        "seedTag": SEED_TAG,
    }


async def seed(append: bool = False, per_user: int = 12) -> None:
    client = AsyncIOMotorClient(settings.mongo_uri, tlsCAFile=certifi.where())
    db = client[settings.mongo_db_name]
    posts = db[settings.posts_collection]
    users_coll = db[settings.users_collection]

    try:
        await client.admin.command("ping")
        print(f"Connected to MongoDB ({settings.mongo_db_name})")

        if not append:
            deleted_posts = await posts.delete_many({"seedTag": SEED_TAG})
            deleted_users = await users_coll.delete_many({"seedTag": SEED_TAG})
            print(f"Removed {deleted_posts.deleted_count} check-ins and {deleted_users.deleted_count} users.")

        users = _make_users()
        await users_coll.insert_many(users)
        print(f"Inserted {len(users)} users.")

        now = datetime.now(timezone.utc)
        docs = [
            _make_checkin(user, [u for u in users if u is not user], now)
            for user in users
            for _ in range(per_user)
        ]
        result = await posts.insert_many(docs)
        print(f"Inserted {len(result.inserted_ids)} check-ins.")

        await ensure_indexes(db)
        print("Indexes ensured.")

        print("\nPublic check-ins per emotion:")
        pipeline = [
            {"$match": {"privacy": "public", "seedTag": SEED_TAG}},
            {"$group": {"_id": "$emotion.name", "count": {"$sum": 1}}},
            {"$sort": {"count": -1}},
        ]
        async for doc in posts.aggregate(pipeline):
            print(f"  {doc['_id']}: {doc['count']}")

        print(f"\nFeed token for maya (valid {settings.jwt_expiry_hours}h):")
        print(f"  {create_access_token(str(users[0]['_id']))}")
    finally:
        client.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed MoodMap sample data")
    parser.add_argument("--append", action="store_true", help="keep existing seed data")
    parser.add_argument("--per-user", type=int, default=12, help="check-ins per seeded user")
    args = parser.parse_args()
    asyncio.run(seed(append=args.append, per_user=args.per_user))
