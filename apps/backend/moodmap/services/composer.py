"""
composer.py — Turn raw MongoDB documents into API projections.

Every endpoint that returns posts goes through here so the privacy-safe
shape is defined once: raw `likes` / `comments` arrays are replaced by
counts, and the author is reduced to a UserBrief (id, username, avatar).

The store adapters attach the looked-up author document under the
"author" key (None when the author no longer exists).
"""

import logging
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from moodmap.models.mood_post import (
    Emotion,
    MapMoodPost,
    MoodPostDetail,
    PostLocation,
    UserBrief,
)

logger = logging.getLogger(__name__)


def doc_to_user_brief(user_doc: Optional[dict]) -> Optional[UserBrief]:
    if not user_doc or "_id" not in user_doc:
        return None
    return UserBrief(
        id=str(user_doc["_id"]),
        username=user_doc.get("username"),
        profile_picture=user_doc.get("profilePicture"),
    )


def _count(value) -> int:
    return len(value) if isinstance(value, list) else 0


def _post_fields(doc: dict) -> dict:
    emotion = doc.get("emotion")
    location = doc.get("location")
    is_anonymous = doc.get("isAnonymous")
    return {
        "id": str(doc["_id"]),
        "author": doc_to_user_brief(doc.get("author")),
        "emotion": Emotion(**emotion) if isinstance(emotion, dict) else None,
        "reason": doc.get("reason"),
        "location": PostLocation.model_validate(location) if isinstance(location, dict) else None,
        "timestamp": doc.get("timestamp"),
        "privacy": doc.get("privacy", "public"),
        "is_anonymous": is_anonymous if isinstance(is_anonymous, bool) else False,
        "likes_count": _count(doc.get("likes")),
        "comments_count": _count(doc.get("comments")),
        "people": doc.get("people") if isinstance(doc.get("people"), list) else [],
        "activities": doc.get("activities") if isinstance(doc.get("activities"), list) else [],
    }


def doc_to_post(doc: dict) -> MapMoodPost:
    return MapMoodPost(**_post_fields(doc))


def doc_to_detail(doc: dict) -> MoodPostDetail:
    return MoodPostDetail(
        **_post_fields(doc),
        created_at=doc.get("createdAt"),
        updated_at=doc.get("updatedAt"),
    )


def docs_to_posts(docs: list[dict]) -> list[MapMoodPost]:
    """Project a batch, skipping (and logging) documents that don't fit the schema."""
    posts = []
    for doc in docs:
        try:
            posts.append(doc_to_post(doc))
        except (PydanticValidationError, KeyError, TypeError) as exc:
            logger.warning("Skipping malformed mood post %s: %s", doc.get("_id"), exc)
    return posts
