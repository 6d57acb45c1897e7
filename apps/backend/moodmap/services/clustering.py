"""
clustering.py — Zoom-dependent marker clustering for the map viewport.

Greedy, order-dependent, single pass:

  1. radius_km = max(0.1, 50 / 2**zoom)   (halves every zoom step, 100 m floor)
  2. Walk posts in the order given (newest first from the viewport query).
  3. Each unprocessed post anchors a new cluster and absorbs every later
     unprocessed post within radius_km *of the anchor*.
  4. One member   → the post itself, tagged type="single".
     Two or more  → a MapCluster at the members' mean lat / mean lng.

Not a globally optimal clustering; O(n²) in the viewport limit.

Dominant emotion is a plurality vote in which the first name to reach a
new maximum wins ties. The cluster carries the full emotion object of the
first member with that name, never a synthesised average.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Hashable, Optional, Sequence, TypeVar, Union

from moodmap.models.map import MapCluster
from moodmap.models.mood_post import Emotion, GeoJSONPoint, MapMoodPost, PostLocation
from moodmap.services.geometry import distance_km, post_lat_lng

logger = logging.getLogger(__name__)

BASE_RADIUS_KM = 50.0
MIN_RADIUS_KM = 0.1
UNKNOWN_EMOTION = "Unknown"

T = TypeVar("T")


def cluster_radius_km(zoom: int) -> float:
    """Unbounded (every post within reach) once 2**zoom underflows to zero."""
    try:
        return max(MIN_RADIUS_KM, BASE_RADIUS_KM / (2 ** zoom))
    except ZeroDivisionError:
        return math.inf


def plurality(items: Sequence[T], key: Callable[[T], Optional[Hashable]]) -> Optional[T]:
    """
    Most frequent item by `key`; first item to reach a new maximum wins ties.

    Items whose key is None don't vote. With no voters the first item is
    returned (None for an empty sequence).
    """
    if not items:
        return None
    counts: dict = {}
    best, best_count = items[0], 0
    for item in items:
        k = key(item)
        if k is None:
            continue
        counts[k] = counts.get(k, 0) + 1
        if counts[k] > best_count:
            best, best_count = item, counts[k]
    return best


def emotion_name(emotion: Optional[Emotion]) -> Optional[str]:
    name = getattr(emotion, "name", None)
    return name if isinstance(name, str) else None


def dominant_emotion(emotions: Sequence[Optional[Emotion]]) -> Optional[Emotion]:
    """Plurality vote over emotion objects by name."""
    return plurality(emotions, key=emotion_name)


def _representative_emotion(members: list[MapMoodPost]) -> Optional[Emotion]:
    names = [emotion_name(p.emotion) or UNKNOWN_EMOTION for p in members]
    dominant_name = plurality(names, key=lambda name: name)
    for post in members:
        if post.emotion is not None and post.emotion.name == dominant_name:
            return post.emotion
    return members[0].emotion


def _make_cluster(members: list[MapMoodPost], points: list[tuple[float, float]]) -> MapCluster:
    count = len(members)
    avg_lat = sum(lat for lat, _ in points) / count
    avg_lng = sum(lng for _, lng in points) / count
    return MapCluster(
        id=f"cluster_{avg_lng:.5f}_{avg_lat:.5f}_{count}",
        location=PostLocation(
            landmark_name="Cluster",
            coordinates=GeoJSONPoint(coordinates=[avg_lng, avg_lat]),
        ),
        count=count,
        emotion=_representative_emotion(members),
    )


def cluster_posts(posts: Sequence[MapMoodPost], zoom: int) -> list[Union[MapMoodPost, MapCluster]]:
    """Cluster `posts` for the given zoom level (see module docstring)."""
    located = [(post, post_lat_lng(post.location)) for post in posts]
    valid = [(post, point) for post, point in located if point is not None]
    if len(valid) != len(posts):
        logger.warning(
            "Excluded %d post(s) without usable coordinates from clustering",
            len(posts) - len(valid),
        )
    if not valid:
        return []

    radius = cluster_radius_km(zoom)
    processed = [False] * len(valid)
    items: list[Union[MapMoodPost, MapCluster]] = []

    for i, (anchor, (anchor_lat, anchor_lng)) in enumerate(valid):
        if processed[i]:
            continue
        processed[i] = True
        members = [anchor]
        points = [(anchor_lat, anchor_lng)]

        for j in range(i + 1, len(valid)):
            if processed[j]:
                continue
            other, (lat, lng) = valid[j]
            if distance_km(anchor_lat, anchor_lng, lat, lng) <= radius:
                members.append(other)
                points.append((lat, lng))
                processed[j] = True

        if len(members) > 1:
            items.append(_make_cluster(members, points))
        else:
            items.append(anchor.model_copy(update={"type": "single"}))

    return items
