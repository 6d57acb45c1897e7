"""
feed.py — Public check-in feed.

Routes:
  GET /api/feed?sort=timestamp|hottest|relevance&skip=0&limit=20

Requires a valid Bearer token: the caller's id decides whose posts are
hidden (blocked users in either direction).
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from moodmap.core.config import settings
from moodmap.core.errors import AuthenticationError
from moodmap.core.rate_limit import limiter
from moodmap.core.security import decode_access_token
from moodmap.models.feed import FeedResponse
from moodmap.models.map import ErrorResponse
from moodmap.services.feed import get_feed
from moodmap.services.spatial_store import SpatialQueryPort, get_store

router = APIRouter(prefix="/api", tags=["feed"])

# Reusable bearer extractor (does NOT auto-raise on missing token)
_bearer = HTTPBearer(auto_error=False)
CredDep = Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)]


def _current_user_id(credentials: CredDep) -> str:
    """Raise 401 unless the request carries a valid, unexpired token."""
    if not credentials:
        raise AuthenticationError("Authentication required")
    user_id = decode_access_token(credentials.credentials)
    if not user_id:
        raise AuthenticationError("Invalid or expired token")
    return user_id


CurrentUserId = Annotated[str, Depends(_current_user_id)]


@router.get(
    "/feed",
    response_model=FeedResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
@limiter.limit(settings.feed_rate_limit)
async def get_feed_posts(
    request: Request,
    user_id: CurrentUserId,
    sort: Optional[str] = Query(default="timestamp"),
    skip: Optional[str] = Query(default="0"),
    limit: Optional[str] = Query(default="20"),
    store: SpatialQueryPort = Depends(get_store),
):
    """Ranked public feed, excluding blocked users."""
    return await get_feed(store, user_id, sort=sort, skip=skip, limit=limit)
