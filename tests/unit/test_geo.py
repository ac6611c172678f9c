"""
Unit tests for geo math and the anti-cheat predicates.
"""

import random
from math import pi

import pytest

from app.schemas.location import Coordinate
from app.services.geo import (
    calculate_speed,
    detect_teleportation,
    distance_meters,
    format_distance,
    kmh_to_ms,
    ms_to_kmh,
    offset_flat_earth,
    project_radial,
    random_area_distance,
    validate_speed,
    within_radius,
)
from tests.factories import ATHENS, make_location


def random_coordinate(rng: random.Random) -> Coordinate:
    return Coordinate(lat=rng.uniform(-89, 89), lng=rng.uniform(-179, 179))


class TestDistance:
    """Haversine distance."""

    def test_symmetric(self, rng):
        """distance(a, b) == distance(b, a) for arbitrary pairs."""
        for _ in range(200):
            a, b = random_coordinate(rng), random_coordinate(rng)
            assert distance_meters(a, b) == pytest.approx(distance_meters(b, a), rel=1e-6)

    def test_zero_for_same_point(self):
        assert distance_meters(ATHENS, ATHENS) == 0

    def test_thousandth_degree_at_equator(self):
        """0.001 degrees of longitude at the equator is about 111m."""
        d = distance_meters(Coordinate(lat=0, lng=0), Coordinate(lat=0, lng=0.001))
        assert d == pytest.approx(111.19, abs=0.05)

    def test_triangle_inequality(self, rng):
        for _ in range(100):
            a, b, c = random_coordinate(rng), random_coordinate(rng), random_coordinate(rng)
            assert distance_meters(a, c) <= distance_meters(a, b) + distance_meters(b, c) + 1e-6


class TestWithinRadius:
    """Radius containment."""

    def test_boundary_is_inclusive(self):
        target = project_radial(ATHENS, 40.0, 0.0)
        d = distance_meters(ATHENS, target)
        assert within_radius(ATHENS, target, d)

    def test_monotonic_in_radius(self, rng):
        """Inside r1 implies inside any larger r2."""
        for _ in range(200):
            target = project_radial(ATHENS, rng.uniform(0, 2000), rng.uniform(0, 2 * pi))
            r1 = rng.uniform(0, 2000)
            r2 = r1 + rng.uniform(0.001, 500)
            if within_radius(ATHENS, target, r1):
                assert within_radius(ATHENS, target, r2)

    def test_default_radius_is_fifty_meters(self):
        assert within_radius(ATHENS, project_radial(ATHENS, 49.0, 1.0))
        assert not within_radius(ATHENS, project_radial(ATHENS, 51.0, 1.0))


class TestProjection:
    """Radial projection and the flat-earth offset."""

    @pytest.mark.parametrize("distance", [100.0, 750.0, 1000.0, 5000.0])
    def test_project_radial_preserves_distance(self, distance, rng):
        point = project_radial(ATHENS, distance, rng.uniform(0, 2 * pi))
        assert distance_meters(ATHENS, point) == pytest.approx(distance, rel=1e-6)

    def test_project_radial_north_increases_latitude(self):
        point = project_radial(ATHENS, 1000.0, 0.0)
        assert point.lat > ATHENS.lat
        assert point.lng == pytest.approx(ATHENS.lng, abs=1e-9)

    def test_project_radial_wraps_antimeridian(self):
        origin = Coordinate(lat=0, lng=179.999)
        point = project_radial(origin, 1000.0, pi / 2)
        assert -180 <= point.lng <= 180
        assert point.lng < 0

    def test_flat_earth_offset_is_close_at_quest_scale(self):
        for distance in (500.0, 1000.0, 1500.0):
            point = offset_flat_earth(ATHENS, distance, 1.0)
            assert distance_meters(ATHENS, point) == pytest.approx(distance, rel=0.01)

    def test_area_distance_stays_in_band(self, rng):
        samples = [random_area_distance(rng, 100, 1000) for _ in range(500)]
        assert all(100 <= s <= 1000 for s in samples)
        # Uniform by area puts most of the mass in the outer half
        assert sum(1 for s in samples if s > 550) > len(samples) / 2


class TestAntiCheat:
    """Speed and teleport predicates."""

    def test_speed_conversion(self):
        assert ms_to_kmh(10) == pytest.approx(36)
        assert kmh_to_ms(36) == pytest.approx(10)

    def test_zero_time_delta_gives_zero_speed(self):
        a = make_location(0, 0, 1000)
        b = make_location(0, 0.01, 1000)
        assert calculate_speed(a, b) == 0

    def test_walking_is_valid(self):
        a = make_location(0, 0, 0)
        b = make_location(0, 0.0001, 10_000)  # ~11m in 10s
        assert validate_speed(a, b).is_valid

    def test_too_fast_is_rejected_but_not_flagged(self):
        a = make_location(0, 0, 0)
        b = make_location(0, 0.001, 10_000)  # ~40 km/h
        result = validate_speed(a, b)
        assert not result.is_valid
        assert not result.flagged_for_review

    def test_more_than_double_limit_is_flagged(self):
        a = make_location(0, 0, 0)
        b = make_location(0, 0.001, 5_000)  # ~80 km/h
        result = validate_speed(a, b)
        assert not result.is_valid
        assert result.flagged_for_review

    def test_teleport_detected(self):
        a = make_location(0, 0, 0)
        b = make_location(0, 0.002, 500)  # ~222m in half a second
        result = detect_teleportation(a, b)
        assert not result.is_valid
        assert result.flagged_for_review
        assert "Suspicious" in result.reason

    def test_small_fast_update_is_not_teleport(self):
        a = make_location(0, 0, 0)
        b = make_location(0, 0.00001, 500)
        assert detect_teleportation(a, b).is_valid


class TestFormatting:

    @pytest.mark.parametrize("meters,expected", [
        (None, "-"),
        (0, "0m"),
        (850.4, "850m"),
        (1250, "1.25km"),
        (10000, "10.00km"),
    ])
    def test_format_distance(self, meters, expected):
        assert format_distance(meters) == expected
