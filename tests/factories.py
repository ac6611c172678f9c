"""
Test data builders and fakes shared across the suite.
"""

import asyncio
from math import radians
from typing import List, Optional

from app.core.constants import QuestType, RewardType
from app.schemas.location import Coordinate, Landmark, UserLocation
from app.schemas.quest import Quest, Reward
from app.services.geo import distance_meters, project_radial
from integrations.maps.overpass_client import BaseLandmarkLookup


ATHENS = Coordinate(lat=37.9838, lng=23.7275)


def make_location(lat: float, lng: float, timestamp_millis: int = 0) -> UserLocation:
    return UserLocation(lat=lat, lng=lng, timestamp_millis=timestamp_millis)


def make_movement_quest(quest_id: str = "walk-200", target: float = 200.0) -> Quest:
    return Quest(
        id=quest_id,
        type=QuestType.MOVEMENT,
        title="Stretch your legs",
        target_distance_meters=target,
        rewards=[Reward(type=RewardType.EXP, value=25)],
    )


def make_location_quest(
    quest_id: str = "checkin-1",
    target: Coordinate = ATHENS,
    quest_type: QuestType = QuestType.CHECKIN,
    radius: Optional[float] = None,
    **kwargs
) -> Quest:
    return Quest(
        id=quest_id,
        type=quest_type,
        title="Visit the square",
        target_coordinates=target,
        radius_meters=radius,
        rewards=[Reward(type=RewardType.EXP, value=100)],
        **kwargs
    )


def make_landmark_ring(
    origin: Coordinate = ATHENS,
    count: int = 24,
    distances=(600.0, 1100.0, 1600.0),
    prefix: str = "node"
) -> List[Landmark]:
    """Named landmarks spread on rings around origin"""
    landmarks = []
    for i in range(count):
        position = project_radial(origin, distances[i % len(distances)], radians(i * 360.0 / count))
        landmarks.append(
            Landmark(
                id=f"{prefix}-{1000 + i}",
                coordinate=position,
                tags={"name": f"Landmark {i}", "tourism": "attraction"},
            )
        )
    return landmarks


class FakeLandmarkLookup(BaseLandmarkLookup):
    """In-memory landmark source honouring the search radius"""

    def __init__(self, landmarks: Optional[List[Landmark]] = None, error: Optional[Exception] = None):
        self.landmarks = list(landmarks or [])
        self.error = error
        self.calls = []

    async def fetch_landmarks(self, origin, radius_meters, category_hint):
        self.calls.append((radius_meters, category_hint))
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return [
            landmark for landmark in self.landmarks
            if distance_meters(origin, landmark.coordinate) <= radius_meters
        ]


class FakeClock:
    """Manually advanced epoch-seconds clock"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
