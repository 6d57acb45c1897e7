"""
mood_post.py — Pydantic schemas for mood check-ins as the API returns them.

Stored documents (collection "moodcheckins") are written by the check-in
service; this API only reads them and projects each one into:

  MapMoodPost    — map / nearby / feed item (counts instead of raw arrays)
  MoodPostDetail — single-post view (adds storage timestamps)

Field names are snake_case in Python and camelCase on the wire
(likesCount, landmarkName, profilePicture, ...), which is what the iOS
client decodes.

Stored document shape:

  {
    "_id": ObjectId,
    "userId": ObjectId,
    "emotion": { "name": "Happy", "attributes": { "pleasantness": 0.8, ... } },
    "reason": "Sunny walk",
    "people": ["Sam"], "activities": ["walking"],
    "location": {
      "landmarkName": "Royce Hall",
      "coordinates": { "type": "Point", "coordinates": [-118.44, 34.07] }   ← 2dsphere
    },
    "privacy": "public" | "friends" | "private",
    "timestamp": ISODate, "createdAt": ISODate, "updatedAt": ISODate,
    "likes": [ObjectId, ...],
    "comments": [{ "userId": ObjectId, "content": "...", "timestamp": ISODate }]
  }
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Privacy = Literal["public", "friends", "private"]


class CamelModel(BaseModel):
    """Base model that serialises field names as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Building blocks ───────────────────────────────────────────────────────────

class Emotion(CamelModel):
    """The emotion a user checked in with."""

    name: Optional[str] = None
    # Sparse named scores (pleasantness, intensity, control, clarity); any may be absent
    attributes: dict[str, Optional[float]] = Field(default_factory=dict)


class GeoJSONPoint(CamelModel):
    """GeoJSON point — coordinates are [longitude, latitude]."""

    type: Literal["Point"] = "Point"
    coordinates: list[float]


class PostLocation(CamelModel):
    landmark_name: Optional[str] = None
    coordinates: Optional[GeoJSONPoint] = None


class UserBrief(CamelModel):
    """Minimal author info shown next to a post."""

    id: str
    username: Optional[str] = None
    profile_picture: Optional[str] = None


# ── Projections ───────────────────────────────────────────────────────────────

class MapMoodPost(CamelModel):
    """
    A check-in projected for map, nearby and feed responses.

    `type` is only set ("single") when the post is emitted by the
    clustering engine as an unclustered marker.
    """

    id: str
    author: Optional[UserBrief] = None
    emotion: Optional[Emotion] = None
    reason: Optional[str] = None
    location: Optional[PostLocation] = None
    timestamp: Optional[datetime] = None
    privacy: Privacy = "public"
    is_anonymous: bool = False
    likes_count: int = 0
    comments_count: int = 0
    people: list[str] = Field(default_factory=list)
    activities: list[str] = Field(default_factory=list)
    distance: Optional[float] = None   # kilometres to the query center, when one was given
    type: Optional[Literal["single"]] = None


class MoodPostDetail(MapMoodPost):
    """Single check-in with storage timestamps."""

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
