"""
Wayquest Backend - Location Tracker
Accepts location samples and keeps a bounded history
"""

import time
from collections import deque
from math import atan2, degrees, sqrt
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Tuple, Union

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import InvalidLocationError
from app.schemas.location import Coordinate, UserLocation
from app.services.geo import offset_flat_earth


class LocationTracker:
    """
    Holds the most recent location samples, oldest first.

    The history is a FIFO capped at history_limit entries; the newest
    sample is the player's current location.
    """

    def __init__(self, history_limit: int = 100):
        self.history_limit = history_limit
        self._history: Deque[UserLocation] = deque(maxlen=history_limit)

    @staticmethod
    def coerce(sample: Union[UserLocation, Dict[str, Any]]) -> UserLocation:
        """Validate a raw sample; raises InvalidLocationError without side effects"""
        if isinstance(sample, UserLocation):
            return sample
        if not isinstance(sample, dict):
            raise InvalidLocationError(f"Expected a location mapping, got {type(sample).__name__}")
        try:
            return UserLocation.model_validate(sample)
        except PydanticValidationError as e:
            errors = [
                {"field": ".".join(str(loc) for loc in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]
            raise InvalidLocationError(details={"errors": errors}) from e

    def record(self, sample: Union[UserLocation, Dict[str, Any]]) -> UserLocation:
        """Append a sample, evicting the oldest when full"""
        location = self.coerce(sample)
        self._history.append(location)
        logger.debug(f"Location recorded: {location.lat:.6f}, {location.lng:.6f} ({len(self._history)} in history)")
        return location

    @property
    def current(self) -> Optional[UserLocation]:
        return self._history[-1] if self._history else None

    @property
    def history(self) -> List[UserLocation]:
        return list(self._history)

    def last_two(self) -> Optional[Tuple[UserLocation, UserLocation]]:
        """Previous and current sample, or None with fewer than two"""
        if len(self._history) < 2:
            return None
        return self._history[-2], self._history[-1]

    def load(self, samples: Iterable[UserLocation]) -> None:
        """Replace history, keeping the newest history_limit samples"""
        self._history = deque(samples, maxlen=self.history_limit)

    def clear(self) -> None:
        self._history.clear()

    def __len__(self) -> int:
        return len(self._history)


# ================================================================
# MOCK LOCATION SOURCE
# ================================================================

class MockLocationSource:
    """
    Simulated GPS for desk testing.

    Produces UserLocation samples from teleports and directional steps.
    Feeding its samples into the same engine as a real source keeps all
    quest state, so switching sources mid-session is safe.
    """

    SPEED_PRESETS: Dict[str, float] = {
        "walking": 1.4,
        "running": 3.0,
        "cycling": 5.5,
    }

    def __init__(
        self,
        lat: float,
        lng: float,
        speed_preset: str = "walking",
        clock: Callable[[], float] = time.time
    ):
        self.set_speed(speed_preset)
        self._coordinate = Coordinate(lat=lat, lng=lng)
        self._timestamp_millis = int(clock() * 1000)
        self._heading: Optional[float] = None

    def set_speed(self, preset: str) -> float:
        if preset not in self.SPEED_PRESETS:
            raise ValueError(
                f"Unknown speed preset '{preset}'. Expected one of: {', '.join(self.SPEED_PRESETS)}"
            )
        self.speed_preset = preset
        self.speed_meters_per_second = self.SPEED_PRESETS[preset]
        return self.speed_meters_per_second

    def sample(self, speed: float = 0.0) -> UserLocation:
        return UserLocation(
            lat=self._coordinate.lat,
            lng=self._coordinate.lng,
            timestamp_millis=self._timestamp_millis,
            speed_meters_per_second=speed,
            heading_degrees=self._heading,
        )

    def teleport(self, lat: float, lng: float) -> UserLocation:
        """Jump to a point without advancing time"""
        self._coordinate = Coordinate(lat=lat, lng=lng)
        logger.debug(f"Mock GPS teleported to {lat:.6f}, {lng:.6f}")
        return self.sample()

    def step(self, north: float, east: float, dt: float = 1.0) -> UserLocation:
        """
        Move dt seconds at the preset speed along the (north, east)
        direction. A zero direction only advances the clock.
        """
        self._timestamp_millis += int(dt * 1000)
        magnitude = sqrt(north ** 2 + east ** 2)
        if magnitude == 0 or dt <= 0:
            return self.sample()

        angle = atan2(east, north)
        self._coordinate = offset_flat_earth(self._coordinate, self.speed_meters_per_second * dt, angle)
        heading = degrees(angle) % 360
        self._heading = heading if heading < 360 else 0.0
        return self.sample(speed=self.speed_meters_per_second)
