"""
map.py — Pydantic models for the map endpoints.

Geometry:
  LatLng, Bounds   — what the client sent (corners in either diagonal order)
  BoundingBox      — normalised min/max box actually queried

Derived, per-request entities (never persisted):
  MapCluster — merged marker for ≥2 nearby posts
  HeatCell   — one populated grid cell of the heatmap
  AreaStats  — emotion frequency + posting rate for a box

Response envelopes all carry `success: true`; errors use the envelope in
moodmap.core.errors.
"""

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import Discriminator, Field, Tag

from moodmap.models.mood_post import CamelModel, Emotion, MapMoodPost, MoodPostDetail, PostLocation


# ── Geometry ──────────────────────────────────────────────────────────────────

class LatLng(CamelModel):
    lat: float
    lng: float


class Bounds(CamelModel):
    """Viewport corners exactly as supplied by the client."""

    sw: LatLng
    ne: LatLng


class BoundingBox(CamelModel):
    """Normalised box: min/max taken independently on each axis."""

    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    @property
    def lat_span(self) -> float:
        return self.max_lat - self.min_lat

    @property
    def lng_span(self) -> float:
        return self.max_lng - self.min_lng


# ── Clustering ────────────────────────────────────────────────────────────────

class MapCluster(CamelModel):
    """Two or more posts merged into one marker at their centroid."""

    id: str
    type: Literal["cluster"] = "cluster"
    location: PostLocation
    count: int
    # A real member's emotion (first member with the dominant name), never an average
    emotion: Optional[Emotion] = None


def _map_item_kind(value) -> str:
    kind = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return "cluster" if kind == "cluster" else "post"


# Either a cluster marker or a post (flat, or a "single" from the clustering engine)
MapItem = Annotated[
    Union[Annotated[MapCluster, Tag("cluster")], Annotated[MapMoodPost, Tag("post")]],
    Discriminator(_map_item_kind),
]


# ── Aggregates ────────────────────────────────────────────────────────────────

class HeatCell(CamelModel):
    """A heatmap cell; lat/lng is the cell center, not a post position."""

    lat: float
    lng: float
    intensity: int
    dominant_emotion: Optional[Emotion] = None


class AreaStats(CamelModel):
    total_posts: int = 0
    emotion_breakdown: dict[str, int] = Field(default_factory=dict)
    posts_per_day: float = 0


# ── Responses ─────────────────────────────────────────────────────────────────

class FiltersApplied(CamelModel):
    since: datetime
    privacy: list[str]


class ViewportResponse(CamelModel):
    """Response for GET /api/map/moods."""

    success: bool = True
    count: int
    viewport: Bounds
    actual_bounds: BoundingBox
    clustered: bool
    filters_applied: FiltersApplied
    data: list[MapItem]


class HeatmapResponse(CamelModel):
    """Response for GET /api/map/moods/heatmap."""

    success: bool = True
    grid_size: int
    bounds: Bounds
    data: list[HeatCell]


class NearbyResponse(CamelModel):
    """Response for GET /api/map/moods/nearby/{lat}/{lng}."""

    success: bool = True
    center: LatLng
    max_distance: float   # km
    count: int
    data: list[MapMoodPost]


class AreaStatsResponse(CamelModel):
    """Response for GET /api/map/stats."""

    success: bool = True
    bounds: Bounds
    data: AreaStats


class PostDetailResponse(CamelModel):
    success: bool = True
    data: MoodPostDetail


class ErrorResponse(CamelModel):
    success: bool = False
    error: str
    details: Optional[str] = None
