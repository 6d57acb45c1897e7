"""
geometry.py — Coordinate helpers shared by every map query.

USAGE
─────
    from moodmap.services.geometry import distance_km, is_valid_coordinate

    distance_km(34.07, -118.44, 34.08, -118.43)   # → ≈1.44
    is_valid_coordinate("91", 0)                   # → False

Query parameters arrive as strings, so the validity check and the
parsers accept numbers or numeric strings and reject everything that
does not parse to a finite float.
"""

from __future__ import annotations

import math
from typing import Any, Optional

from moodmap.core.errors import ValidationError
from moodmap.models.map import BoundingBox, Bounds, LatLng

EARTH_RADIUS_KM = 6371.0


def distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle (haversine) distance in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def parse_float(raw: Any) -> Optional[float]:
    """Return raw as a finite float, or None."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def parse_int(raw: Any) -> Optional[int]:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


def parse_truncated_int(raw: Any) -> Optional[int]:
    """Any finite number truncated toward zero ("5.5" → 5, "-2.7" → -2), else None."""
    value = parse_float(raw)
    return math.trunc(value) if value is not None else None


def parse_positive_int(raw: Any, default: int) -> int:
    """Positive integer (fractions truncated), or `default` for anything non-positive or unparsable."""
    value = parse_truncated_int(raw)
    return value if value is not None and value > 0 else default


def parse_positive_float(raw: Any, default: float) -> float:
    value = parse_float(raw)
    return value if value is not None and value > 0 else default


def is_valid_coordinate(lat: Any, lng: Any) -> bool:
    """True iff both parse as finite numbers with lat ∈ [-90, 90] and lng ∈ [-180, 180]."""
    num_lat = parse_float(lat)
    num_lng = parse_float(lng)
    if num_lat is None or num_lng is None:
        return False
    return -90 <= num_lat <= 90 and -180 <= num_lng <= 180


def normalize_bounds(sw_lat: float, sw_lng: float, ne_lat: float, ne_lng: float) -> BoundingBox:
    """Min/max on each axis independently, so corners may come in either diagonal order."""
    return BoundingBox(
        min_lat=min(sw_lat, ne_lat),
        max_lat=max(sw_lat, ne_lat),
        min_lng=min(sw_lng, ne_lng),
        max_lng=max(sw_lng, ne_lng),
    )


def post_lat_lng(location) -> Optional[tuple[float, float]]:
    """
    (lat, lng) of a PostLocation, or None when the post has no usable point.

    Stored GeoJSON is [lng, lat]; anything that is not exactly two valid
    numbers counts as unusable.
    """
    point = getattr(location, "coordinates", None) if location is not None else None
    coords = getattr(point, "coordinates", None)
    if not coords or len(coords) != 2:
        return None
    lng, lat = coords
    if not is_valid_coordinate(lat, lng):
        return None
    return float(lat), float(lng)


def require_bounds(
    sw_lat: Any,
    sw_lng: Any,
    ne_lat: Any,
    ne_lng: Any,
    *,
    missing_message: str = "Map boundary coordinates required",
    invalid_message: str = "Invalid coordinates",
) -> tuple[Bounds, BoundingBox]:
    """
    Validate the four raw bound values and return (bounds as sent, normalised box).

    Raises ValidationError before anything reaches the store.
    """
    raw = (sw_lat, sw_lng, ne_lat, ne_lng)
    if any(value is None or str(value).strip() == "" for value in raw):
        raise ValidationError(missing_message)
    if not is_valid_coordinate(sw_lat, sw_lng) or not is_valid_coordinate(ne_lat, ne_lng):
        raise ValidationError(invalid_message)

    bounds = Bounds(
        sw=LatLng(lat=parse_float(sw_lat), lng=parse_float(sw_lng)),
        ne=LatLng(lat=parse_float(ne_lat), lng=parse_float(ne_lng)),
    )
    return bounds, normalize_bounds(bounds.sw.lat, bounds.sw.lng, bounds.ne.lat, bounds.ne.lng)
