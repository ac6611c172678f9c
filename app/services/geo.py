"""
Wayquest Backend - Geo Math
Distance, bearing and radius primitives shared by the quest engine.

Public functions take and return degrees; trigonometry runs in radians.
Anything with ``lat``/``lng`` attributes (Coordinate, UserLocation) is
accepted as a point.
"""

import random
from math import asin, atan2, cos, degrees, pi, radians, sin, sqrt
from typing import Any, Optional

from app.core.constants import (
    EARTH_RADIUS_METERS,
    MAX_SPEED_KMH,
    METERS_PER_DEGREE,
    TELEPORT_MAX_METERS,
    TELEPORT_MIN_SECONDS,
)
from app.schemas.location import Coordinate, UserLocation, ValidationResult


# ================================================================
# DISTANCE
# ================================================================

def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Great-circle distance using the Haversine formula.

    Returns:
        Distance in meters
    """
    lat1_rad, lat2_rad = radians(lat1), radians(lat2)
    dlat = radians(lat2 - lat1)
    dlng = radians(lng2 - lng1)

    a = sin(dlat / 2) ** 2 + cos(lat1_rad) * cos(lat2_rad) * sin(dlng / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_METERS * c


def distance_meters(a: Any, b: Any) -> float:
    """Haversine distance between two points"""
    return haversine_distance(a.lat, a.lng, b.lat, b.lng)


def within_radius(origin: Any, target: Any, radius_meters: float = 50.0) -> bool:
    """True when target lies within radius_meters of origin (inclusive)"""
    return distance_meters(origin, target) <= radius_meters


# ================================================================
# PROJECTION
# ================================================================

def _normalize_lng(lng: float) -> float:
    return ((lng + 540.0) % 360.0) - 180.0


def project_radial(origin: Any, distance: float, bearing_radians: float) -> Coordinate:
    """
    Destination point given a start, distance (meters) and initial bearing.

    Spherical forward geodesic problem on the same sphere used by
    haversine_distance, so distance_meters(origin, result) == distance.
    """
    angular = distance / EARTH_RADIUS_METERS
    lat1 = radians(origin.lat)
    lng1 = radians(origin.lng)

    lat2 = asin(
        sin(lat1) * cos(angular) +
        cos(lat1) * sin(angular) * cos(bearing_radians)
    )
    lng2 = lng1 + atan2(
        sin(bearing_radians) * sin(angular) * cos(lat1),
        cos(angular) - sin(lat1) * sin(lat2)
    )

    return Coordinate(lat=degrees(lat2), lng=_normalize_lng(degrees(lng2)))


def offset_flat_earth(origin: Any, distance: float, angle_radians: float) -> Coordinate:
    """
    Cheap meters-to-degrees offset. Good to a few meters at quest scale
    (a couple of kilometers), not near the poles.
    """
    dlat = distance * cos(angle_radians) / METERS_PER_DEGREE
    dlng = distance * sin(angle_radians) / (METERS_PER_DEGREE * cos(radians(origin.lat)))
    lat = max(-90.0, min(90.0, origin.lat + dlat))
    return Coordinate(lat=lat, lng=_normalize_lng(origin.lng + dlng))


def random_area_distance(rng: random.Random, min_meters: float, max_meters: float) -> float:
    """
    Distance drawn uniformly by area of the annulus [min, max].
    Uniform-by-radius would cluster points near the center.
    """
    r_squared = min_meters ** 2 + (max_meters ** 2 - min_meters ** 2) * rng.random()
    return sqrt(r_squared)


def random_bearing(rng: random.Random) -> float:
    """Bearing in radians, uniform over [0, 2pi)"""
    return rng.random() * 2 * pi


# ================================================================
# SPEED & ANTI-CHEAT
# ================================================================
# Standalone predicates; nothing in the engine enforces them.

def ms_to_kmh(speed_ms: float) -> float:
    return speed_ms * 3.6


def kmh_to_ms(speed_kmh: float) -> float:
    return speed_kmh / 3.6


def calculate_speed(loc1: UserLocation, loc2: UserLocation) -> float:
    """Average speed between two samples in m/s (0 when timestamps match)"""
    distance = distance_meters(loc1, loc2)
    time_diff_seconds = (loc2.timestamp_millis - loc1.timestamp_millis) / 1000

    if time_diff_seconds == 0:
        return 0.0
    return distance / abs(time_diff_seconds)


def validate_speed(
    loc1: UserLocation,
    loc2: UserLocation,
    max_speed_kmh: float = MAX_SPEED_KMH
) -> ValidationResult:
    """Reject movement faster than max_speed_kmh; flag when over double"""
    speed_kmh = ms_to_kmh(calculate_speed(loc1, loc2))

    if speed_kmh > max_speed_kmh:
        return ValidationResult(
            is_valid=False,
            reason=f"Speed {speed_kmh:.2f} km/h exceeds maximum {max_speed_kmh} km/h",
            flagged_for_review=speed_kmh > max_speed_kmh * 2,
        )

    return ValidationResult(is_valid=True)


def detect_teleportation(loc1: UserLocation, loc2: UserLocation) -> ValidationResult:
    """Flag large jumps in under a second, otherwise fall back to the speed check"""
    distance = distance_meters(loc1, loc2)
    time_diff_seconds = (loc2.timestamp_millis - loc1.timestamp_millis) / 1000

    if time_diff_seconds < TELEPORT_MIN_SECONDS and distance > TELEPORT_MAX_METERS:
        return ValidationResult(
            is_valid=False,
            reason=f"Suspicious movement: {distance:.0f}m in {time_diff_seconds:.2f}s",
            flagged_for_review=True,
        )

    return validate_speed(loc1, loc2)


# ================================================================
# FORMATTING
# ================================================================

def format_distance(meters: Optional[float]) -> str:
    """Format distance for display"""
    if meters is None:
        return "-"
    if meters < 1000:
        return f"{round(meters)}m"
    return f"{meters / 1000:.2f}km"
