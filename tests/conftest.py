"""
Pytest configuration and fixtures for the Wayquest test suite.

Randomness is always seeded and landmark lookups are faked, so no test
touches the network.
"""

import random

import pytest

from app.core.config import EngineConfig
from app.services.location_tracker import LocationTracker
from app.services.quest_engine import QuestEngine
from app.services.quest_spawner import QuestSpawner
from app.services.quest_store import QuestStore
from app.services.save_service import InMemorySaveStore
from tests.factories import FakeClock, FakeLandmarkLookup, make_landmark_ring


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def config():
    return EngineConfig(
        reward_confirm_delay_seconds=0,
        local_respawn_delay_seconds=0,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return QuestStore()


@pytest.fixture
def tracker():
    return LocationTracker()


@pytest.fixture
def abundant_landmarks():
    return FakeLandmarkLookup(make_landmark_ring())


@pytest.fixture
def empty_landmarks():
    return FakeLandmarkLookup([])


@pytest.fixture
def spawner(config, abundant_landmarks, rng):
    return QuestSpawner(config, abundant_landmarks, rng)


@pytest.fixture
def make_engine(config, clock):
    """Factory for engines sharing the test config and clock"""

    def _make(landmarks=None, seed=99, save_store=None, **kwargs):
        return QuestEngine(
            config=kwargs.pop("engine_config", config),
            landmarks=landmarks,
            save_store=save_store or InMemorySaveStore(),
            rng=random.Random(seed),
            clock=clock,
            **kwargs
        )

    return _make
