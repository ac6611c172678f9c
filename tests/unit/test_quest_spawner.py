"""
Unit tests for QuestSpawner: mystery, landmark and wilderness policies.
"""

import random
from datetime import datetime
from itertools import combinations

import pytest

from app.core.config import EngineConfig
from app.core.constants import QuestType, RefreshType, RewardType
from app.core.exceptions import LandmarkLookupError
from app.schemas.location import Landmark
from app.services.geo import distance_meters, project_radial
from app.services.quest_spawner import (
    QuestSpawner,
    ceil_to_ten,
    end_of_day,
    is_denied,
    next_weekly_reset,
    reward_multiplier,
)
from tests.factories import ATHENS, FakeLandmarkLookup, make_landmark_ring

TOLERANCE = 1e-6


class TestMysterySpawns:
    """Random-radius placement."""

    def test_athens_scan(self, spawner):
        """Five mystery quests within 1000m, pairwise at least 100m apart."""
        quests = spawner.spawn_mystery_quests(ATHENS)

        assert len(quests) == 5
        for quest in quests:
            d = distance_meters(ATHENS, quest.target_coordinates)
            assert 100 - TOLERANCE <= d <= 1000 + TOLERANCE
            assert quest.type == QuestType.MYSTERY
            assert quest.radius_meters == 30
        for a, b in combinations(quests, 2):
            assert distance_meters(a.target_coordinates, b.target_coordinates) >= 100

    @pytest.mark.parametrize("seed", range(10))
    def test_separation_holds_across_seeds(self, config, seed):
        spawner = QuestSpawner(config, rng=random.Random(seed))
        quests = spawner.spawn_mystery_quests(ATHENS)
        assert len(quests) == 5
        for a, b in combinations(quests, 2):
            assert distance_meters(a.target_coordinates, b.target_coordinates) >= 100

    def test_legacy_preset_band(self):
        spawner = QuestSpawner(EngineConfig(mystery_radius_preset="legacy"), rng=random.Random(5))
        for quest in spawner.spawn_mystery_quests(ATHENS):
            assert distance_meters(ATHENS, quest.target_coordinates) <= 300 + TOLERANCE

    def test_unknown_preset_rejected(self):
        with pytest.raises(ValueError):
            EngineConfig(mystery_radius_preset="huge")

    def test_mystery_rewards_from_template(self, spawner):
        quest = spawner.spawn_mystery_quests(ATHENS, count=1)[0]
        item, exp = quest.rewards
        assert item.type == RewardType.ITEM
        assert item.value == 1
        assert item.item_id
        assert exp.type == RewardType.EXP
        assert exp.value == 50

    def test_ids_are_unique(self, spawner):
        ids = [q.id for q in spawner.spawn_mystery_quests(ATHENS, count=5)]
        assert len(set(ids)) == 5

    def test_impossible_separation_gives_up(self):
        config = EngineConfig(mystery_radius_preset="legacy", mystery_min_separation_meters=5000)
        spawner = QuestSpawner(config, rng=random.Random(1))
        quests = spawner.spawn_mystery_quests(ATHENS)
        assert len(quests) == 1

    def test_debug_quest_is_close(self, spawner):
        quest = spawner.spawn_debug_quest(ATHENS)
        assert quest.id.startswith("debug-quest-")
        assert distance_meters(ATHENS, quest.target_coordinates) < 10


class TestRewardsAndExpiry:

    @pytest.mark.parametrize("distance,expected", [(0, 1.0), (5000, 1.5), (10000, 2.0), (25000, 2.0)])
    def test_reward_multiplier(self, distance, expected):
        assert reward_multiplier(distance) == pytest.approx(expected)

    @pytest.mark.parametrize("value,expected", [(500, 500), (501, 510), (1099.1, 1100), (0, 0)])
    def test_ceil_to_ten(self, value, expected):
        assert ceil_to_ten(value) == expected

    def test_weekly_reset_is_next_sunday(self):
        wednesday = datetime(2024, 5, 15, 9, 30)
        assert next_weekly_reset(wednesday) == datetime(2024, 5, 19, 23, 59, 59, 999000)

    def test_weekly_reset_on_sunday_is_today(self):
        sunday = datetime(2024, 5, 19, 10, 0)
        assert next_weekly_reset(sunday) == datetime(2024, 5, 19, 23, 59, 59, 999000)

    def test_end_of_day(self):
        assert end_of_day(datetime(2024, 5, 15, 1, 2, 3)) == datetime(2024, 5, 15, 23, 59, 59, 999000)


class TestLandmarkFiltering:

    @pytest.mark.parametrize("tags", [
        {"name": "Old Cemetery"},
        {"name": "Park", "landuse": "CEMETERY"},
        {"name": "Stone", "historic": "memorial"},
        {"name": "Chapel", "amenity": "grave_yard"},
        {"name:en": "War Memorial Garden", "name": "Kipos"},
    ])
    def test_denylist(self, tags):
        assert is_denied(Landmark(id="node-1", coordinate=ATHENS, tags=tags))

    def test_allowed_landmark(self):
        assert not is_denied(Landmark(id="node-1", coordinate=ATHENS, tags={"name": "Central Cafe"}))

    def test_filter_drops_known_and_unnamed(self, spawner):
        candidates = [
            Landmark(id="node-1", coordinate=ATHENS, tags={"name": "A"}),
            Landmark(id="node-2", coordinate=ATHENS, tags={"name": "B"}),
            Landmark(id="node-3", coordinate=ATHENS, tags={"tourism": "artwork"}),
            Landmark(id="node-4", coordinate=ATHENS, tags={"name": "Tomb of the Unknown"}),
            Landmark(id="node-2", coordinate=ATHENS, tags={"name": "B again"}),
        ]
        kept = spawner.filter_candidates(candidates, {"local-node-1"}, QuestType.LOCAL)
        assert [l.id for l in kept] == ["node-2"]


@pytest.mark.asyncio
class TestLandmarkSpawns:
    """Landmark-anchored quests and the wilderness fallback."""

    async def test_local_quests_are_separated(self, spawner):
        quests = await spawner.spawn_landmark_quests(ATHENS, QuestType.LOCAL, 2)

        assert len(quests) == 2
        assert all(q.id.startswith("local-node-") for q in quests)
        assert all(q.type == QuestType.LOCAL for q in quests)
        assert distance_meters(quests[0].target_coordinates, quests[1].target_coordinates) >= 500

    async def test_respects_existing_anchors(self, spawner):
        anchor = project_radial(ATHENS, 600.0, 0.0)
        quests = await spawner.spawn_landmark_quests(ATHENS, QuestType.LOCAL, 2, anchors=[anchor])
        for quest in quests:
            assert distance_meters(anchor, quest.target_coordinates) >= 500

    async def test_local_rewards_and_expiry(self, spawner):
        now = datetime(2024, 5, 15, 12, 0)
        quest = (await spawner.spawn_landmark_quests(ATHENS, QuestType.LOCAL, 1, now=now))[0]

        distance = distance_meters(ATHENS, quest.target_coordinates)
        assert quest.rewards[0].value == ceil_to_ten(100 * reward_multiplier(distance))
        assert quest.refresh_type == RefreshType.DAILY
        assert quest.expiration_date == datetime(2024, 5, 15, 23, 59, 59, 999000)
        assert quest.title.startswith("Landmark ")
        assert quest.lore

    async def test_milestone_rewards(self, config, rng):
        spawner = QuestSpawner(config, FakeLandmarkLookup(make_landmark_ring()), rng)
        now = datetime(2024, 5, 15, 12, 0)
        quest = (await spawner.spawn_landmark_quests(ATHENS, QuestType.MILESTONE, 1, now=now))[0]

        assert quest.id.startswith("milestone-")
        exp, relic = quest.rewards
        assert exp.value % 10 == 0
        assert exp.value >= 500
        assert relic.type == RewardType.ITEM
        assert relic.item_id == "relic_common"
        assert quest.refresh_type == RefreshType.WEEKLY
        assert quest.expiration_date == datetime(2024, 5, 19, 23, 59, 59, 999000)

    async def test_lore_prefers_landmark_description(self, config, rng):
        landmark = Landmark(
            id="node-7",
            coordinate=project_radial(ATHENS, 800, 1.0),
            tags={"name": "Old Fountain", "description": "Water has flowed here for centuries."},
        )
        spawner = QuestSpawner(config, FakeLandmarkLookup([landmark]), rng)
        quest = (await spawner.spawn_landmark_quests(ATHENS, QuestType.LOCAL, 1))[0]
        assert quest.lore == "Water has flowed here for centuries."

    async def test_widens_search_once(self, config, rng):
        far_ring = make_landmark_ring(distances=(2500.0,), count=12)
        lookup = FakeLandmarkLookup(far_ring)
        spawner = QuestSpawner(config, lookup, rng)

        quests = await spawner.spawn_landmark_quests(ATHENS, QuestType.LOCAL, 2)

        assert [radius for radius, _ in lookup.calls] == [2000, 3000]
        assert all(q.id.startswith("local-node-") for q in quests)

    async def test_excluded_ids_are_skipped(self, config, rng):
        ring = make_landmark_ring(count=4, distances=(1000.0,))
        spawner = QuestSpawner(config, FakeLandmarkLookup(ring), rng)
        excluded = {f"local-{l.id}" for l in ring[:3]}

        quests = await spawner.spawn_landmark_quests(ATHENS, QuestType.LOCAL, 2, excluded_ids=excluded)

        ids = {q.id for q in quests}
        assert f"local-{ring[3].id}" in ids
        assert not ids & excluded

    async def test_empty_lookup_falls_back_to_wilderness(self, config, rng, empty_landmarks):
        spawner = QuestSpawner(config, empty_landmarks, rng)
        quests = await spawner.spawn_landmark_quests(ATHENS, QuestType.LOCAL, 2)

        assert len(quests) == 2
        for quest in quests:
            assert quest.type == QuestType.LOCAL
            assert quest.id.startswith("wilderness-")
            d = distance_meters(ATHENS, quest.target_coordinates)
            assert 500 * 0.99 <= d <= 1500 * 1.01

    async def test_lookup_failure_is_not_fatal(self, config, rng):
        lookup = FakeLandmarkLookup(error=LandmarkLookupError("timeout"))
        spawner = QuestSpawner(config, lookup, rng)

        quests = await spawner.spawn_landmark_quests(ATHENS, QuestType.MILESTONE, 1)

        assert len(quests) == 1
        assert quests[0].type == QuestType.MILESTONE
        assert quests[0].refresh_type == RefreshType.WEEKLY

    async def test_zero_count(self, spawner):
        assert await spawner.spawn_landmark_quests(ATHENS, QuestType.LOCAL, 0) == []
