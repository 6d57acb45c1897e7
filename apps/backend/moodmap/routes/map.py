"""
map.py — Geospatial map routes.

Routes:
  GET /api/map/moods                       — posts in viewport (flat or clustered)
  GET /api/map/moods/heatmap               — N×N emotion grid over the viewport
  GET /api/map/moods/nearby/{lat}/{lng}    — nearest public posts (km)
  GET /api/map/moods/{id}                  — single post detail
  GET /api/map/stats                       — emotion breakdown for an area

HOW THE DATA FLOWS
──────────────────
1. Query parameters arrive as raw strings and are handed to the service
   layer untouched. The services own parsing, defaults and fallbacks
   (bad `limit` → 500, bad `since` → last 7 days, ...).
2. Validation errors are raised before the store is touched and become
   400 responses via the MoodMapError handler registered in main.py.
3. The store (get_store) is the Spatial Query Port; tests swap it for an
   in-memory implementation through app.dependency_overrides.

Manual test with curl:
  curl "http://localhost:8000/api/map/moods?swLat=34.0&swLng=-118.5&neLat=34.1&neLng=-118.4&cluster=true&zoomLevel=5"
  curl "http://localhost:8000/api/map/moods/heatmap?swLat=34&swLng=-119&neLat=35&neLng=-118&gridSize=20"
  curl "http://localhost:8000/api/map/moods/nearby/34.07/-118.44?maxDistance=1000"
  curl "http://localhost:8000/api/map/stats?swLat=34&swLng=-119&neLat=35&neLng=-118"
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from moodmap.core.config import settings
from moodmap.core.rate_limit import limiter
from moodmap.core.security import decode_access_token
from moodmap.models.map import (
    AreaStatsResponse,
    ErrorResponse,
    HeatmapResponse,
    NearbyResponse,
    PostDetailResponse,
    ViewportResponse,
)
from moodmap.services.area_stats import area_stats
from moodmap.services.detail import get_post_detail
from moodmap.services.heatmap import build_heatmap
from moodmap.services.proximity import find_nearby
from moodmap.services.spatial_store import SpatialQueryPort, get_store
from moodmap.services.viewport import query_viewport

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/map",
    tags=["map"],
    responses={
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)

_bearer = HTTPBearer(auto_error=False)
CredDep = Optional[HTTPAuthorizationCredentials]


def _optional_user_id(credentials: CredDep = Depends(_bearer)) -> Optional[str]:
    if not credentials:
        return None
    return decode_access_token(credentials.credentials)


# ── Routes ────────────────────────────────────────────────────────────────────

@router.get("/moods", response_model=ViewportResponse)
@limiter.limit(settings.map_rate_limit)
async def get_map_moods(
    request: Request,
    sw_lat: Optional[str] = Query(default=None, alias="swLat"),
    sw_lng: Optional[str] = Query(default=None, alias="swLng"),
    ne_lat: Optional[str] = Query(default=None, alias="neLat"),
    ne_lng: Optional[str] = Query(default=None, alias="neLng"),
    center_lat: Optional[str] = Query(default=None, alias="centerLat"),
    center_lng: Optional[str] = Query(default=None, alias="centerLng"),
    since: Optional[str] = Query(default=None, description="ISO datetime; defaults to last 7 days"),
    limit: Optional[str] = Query(default="500"),
    # Accepted for client compatibility; map surfaces are always public-only
    privacy: Optional[str] = Query(default="public"),
    cluster: Optional[str] = Query(default="false"),
    zoom_level: Optional[str] = Query(default="10", alias="zoomLevel"),
    store: SpatialQueryPort = Depends(get_store),
):
    """
    Return public mood posts inside the viewport, newest first.

    With cluster=true and zoomLevel < 15 nearby posts are merged into
    cluster markers; otherwise the flat list is returned (with `distance`
    in km when centerLat/centerLng are given).
    """
    logger.info("Viewport request: %s", dict(request.query_params))
    return await query_viewport(
        store,
        sw_lat=sw_lat,
        sw_lng=sw_lng,
        ne_lat=ne_lat,
        ne_lng=ne_lng,
        center_lat=center_lat,
        center_lng=center_lng,
        since=since,
        limit=limit,
        cluster=cluster,
        zoom_level=zoom_level,
    )


@router.get("/moods/heatmap", response_model=HeatmapResponse)
@limiter.limit(settings.map_rate_limit)
async def get_mood_heatmap(
    request: Request,
    sw_lat: Optional[str] = Query(default=None, alias="swLat"),
    sw_lng: Optional[str] = Query(default=None, alias="swLng"),
    ne_lat: Optional[str] = Query(default=None, alias="neLat"),
    ne_lng: Optional[str] = Query(default=None, alias="neLng"),
    grid_size: Optional[str] = Query(default="50", alias="gridSize"),
    store: SpatialQueryPort = Depends(get_store),
):
    """Aggregate the last 30 days of public posts into a gridSize × gridSize heatmap."""
    return await build_heatmap(
        store,
        sw_lat=sw_lat,
        sw_lng=sw_lng,
        ne_lat=ne_lat,
        ne_lng=ne_lng,
        grid_size=grid_size,
    )


@router.get("/moods/nearby/{lat}/{lng}", response_model=NearbyResponse)
@limiter.limit(settings.map_rate_limit)
async def get_nearby_moods(
    request: Request,
    lat: str,
    lng: str,
    max_distance: Optional[str] = Query(default=None, alias="maxDistance", description="Metres (default 5000)"),
    limit: Optional[str] = Query(default=None),
    store: SpatialQueryPort = Depends(get_store),
):
    """Public posts from the last 30 days within maxDistance metres, nearest first."""
    return await find_nearby(store, lat=lat, lng=lng, max_distance=max_distance, limit=limit)


@router.get("/moods/{post_id}", response_model=PostDetailResponse, responses={404: {"model": ErrorResponse}})
@limiter.limit(settings.map_rate_limit)
async def get_mood_post(
    request: Request,
    post_id: str,
    store: SpatialQueryPort = Depends(get_store),
    viewer_id: Optional[str] = Depends(_optional_user_id),
):
    """Retrieve a single mood post by ID."""
    return await get_post_detail(store, post_id, viewer_id)


@router.get("/stats", response_model=AreaStatsResponse)
@limiter.limit(settings.map_rate_limit)
async def get_area_stats(
    request: Request,
    sw_lat: Optional[str] = Query(default=None, alias="swLat"),
    sw_lng: Optional[str] = Query(default=None, alias="swLng"),
    ne_lat: Optional[str] = Query(default=None, alias="neLat"),
    ne_lng: Optional[str] = Query(default=None, alias="neLng"),
    store: SpatialQueryPort = Depends(get_store),
):
    """Emotion breakdown and posts/day for public posts in the area (last 30 days)."""
    return await area_stats(store, sw_lat=sw_lat, sw_lng=sw_lng, ne_lat=ne_lat, ne_lng=ne_lng)
