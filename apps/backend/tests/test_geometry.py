"""
test_geometry.py — Coordinate validation, bounds normalisation and haversine.
"""

import math

import pytest

from moodmap.core.errors import ValidationError
from moodmap.models.mood_post import GeoJSONPoint, PostLocation
from moodmap.services.geometry import (
    distance_km,
    is_valid_coordinate,
    normalize_bounds,
    parse_float,
    parse_positive_int,
    parse_truncated_int,
    post_lat_lng,
    require_bounds,
)


class TestIsValidCoordinate:

    @pytest.mark.parametrize("lat, lng", [(0, 0), (90, 180), (-90, -180), ("34.07", "-118.44")])
    def test_accepts_in_range_values(self, lat, lng):
        assert is_valid_coordinate(lat, lng)

    @pytest.mark.parametrize(
        "lat, lng",
        [(91, 0), (0, 181), (-90.0001, 0), ("abc", 0), (None, 0), ("nan", 0), ("inf", 0), (True, 0)],
    )
    def test_rejects_out_of_range_or_non_numeric(self, lat, lng):
        assert not is_valid_coordinate(lat, lng)


class TestDistance:

    def test_same_point_is_zero(self):
        assert distance_km(34.07, -118.44, 34.07, -118.44) == 0

    def test_one_degree_latitude(self):
        """One degree of latitude ≈ 111.19 km on a 6371 km sphere."""
        assert distance_km(0, 0, 1, 0) == pytest.approx(111.19, abs=0.01)

    def test_symmetric(self):
        a = distance_km(34.07, -118.44, 51.5, -0.12)
        b = distance_km(51.5, -0.12, 34.07, -118.44)
        assert a == pytest.approx(b)

    def test_antipodes(self):
        assert distance_km(0, 0, 0, 180) == pytest.approx(math.pi * 6371, rel=1e-9)


class TestNormalizeBounds:

    def test_swapped_corners_normalise(self):
        box = normalize_bounds(34.1, -118.4, 34.0, -118.5)
        assert (box.min_lat, box.max_lat) == (34.0, 34.1)
        assert (box.min_lng, box.max_lng) == (-118.5, -118.4)

    def test_axes_are_independent(self):
        box = normalize_bounds(34.0, -118.4, 34.1, -118.5)
        assert box.min_lat == 34.0 and box.max_lat == 34.1
        assert box.min_lng == -118.5 and box.max_lng == -118.4


class TestRequireBounds:

    def test_missing_value_raises_missing_message(self):
        with pytest.raises(ValidationError, match="Map boundary coordinates required"):
            require_bounds("34", "-118", None, "-117")

    def test_blank_value_counts_as_missing(self):
        with pytest.raises(ValidationError, match="required"):
            require_bounds("34", "-118", " ", "-117")

    def test_out_of_range_raises_invalid_message(self):
        with pytest.raises(ValidationError, match="Invalid coordinates"):
            require_bounds("95", "-118", "34", "-117")

    def test_returns_bounds_as_sent_and_normalised_box(self):
        bounds, box = require_bounds("34.1", "-118.4", "34.0", "-118.5")
        assert bounds.sw.lat == 34.1 and bounds.ne.lng == -118.5
        assert box.min_lat == 34.0 and box.max_lng == -118.4


class TestParsers:

    def test_parse_float_rejects_non_finite(self):
        assert parse_float("inf") is None
        assert parse_float("12.5") == 12.5

    @pytest.mark.parametrize("raw", [None, "", "abc", "0", "0.5", "-3", "inf"])
    def test_parse_positive_int_falls_back(self, raw):
        assert parse_positive_int(raw, 500) == 500

    def test_parse_positive_int_accepts_positive(self):
        assert parse_positive_int("42", 500) == 42

    def test_parse_positive_int_truncates_fractions(self):
        assert parse_positive_int("10.5", 500) == 10

    @pytest.mark.parametrize("raw, expected", [("5.5", 5), ("-2.7", -2), ("7", 7), ("nan", None), ("x", None)])
    def test_parse_truncated_int(self, raw, expected):
        assert parse_truncated_int(raw) == expected


class TestPostLatLng:

    def test_reads_lng_lat_order(self):
        location = PostLocation(coordinates=GeoJSONPoint(coordinates=[-118.44, 34.07]))
        assert post_lat_lng(location) == (34.07, -118.44)

    def test_missing_point_is_none(self):
        assert post_lat_lng(PostLocation(landmark_name="Nowhere")) is None
        assert post_lat_lng(None) is None

    def test_wrong_arity_is_none(self):
        location = PostLocation(coordinates=GeoJSONPoint(coordinates=[-118.44]))
        assert post_lat_lng(location) is None

    def test_out_of_range_is_none(self):
        location = PostLocation(coordinates=GeoJSONPoint(coordinates=[200.0, 34.0]))
        assert post_lat_lng(location) is None
