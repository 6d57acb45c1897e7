"""
detail.py — Single mood post lookup for the map's detail sheet.

Public posts are visible to everyone. Friends-only and private posts are
only returned to their author; anyone else gets the same 404 as for a
missing post so existence isn't leaked.
"""

import logging
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.errors import PyMongoError

from moodmap.core.errors import InternalError, NotFoundError, ValidationError
from moodmap.models.map import PostDetailResponse
from moodmap.services.composer import doc_to_detail
from moodmap.services.spatial_store import PUBLIC, SpatialQueryPort

logger = logging.getLogger(__name__)


def validate_post_id(post_id: str) -> ObjectId:
    try:
        return ObjectId(post_id)
    except (InvalidId, TypeError):
        raise ValidationError("Invalid mood post ID format")


def _author_id(doc: dict) -> Optional[str]:
    author = doc.get("author")
    if author and "_id" in author:
        return str(author["_id"])
    return str(doc["userId"]) if doc.get("userId") is not None else None


async def get_post_detail(
    store: SpatialQueryPort,
    post_id: str,
    viewer_id: Optional[str] = None,
) -> PostDetailResponse:
    oid = validate_post_id(post_id)

    try:
        doc = await store.get_post(oid)
    except PyMongoError as exc:
        raise InternalError("Failed to fetch mood post", details=str(exc)) from exc

    if not doc:
        raise NotFoundError("Mood post not found")

    if doc.get("privacy", PUBLIC) != PUBLIC and (viewer_id is None or viewer_id != _author_id(doc)):
        logger.info("Hiding %s post %s from viewer %s", doc.get("privacy"), post_id, viewer_id)
        raise NotFoundError("Mood post not found")

    return PostDetailResponse(data=doc_to_detail(doc))
