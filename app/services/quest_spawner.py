"""
Wayquest Backend - Quest Spawner
Generates mystery, landmark and wilderness quests around the player
"""

import random
import uuid
from datetime import datetime, timedelta
from math import ceil, pi
from typing import Iterable, List, Optional, Sequence, Set

from loguru import logger

from app.core.config import EngineConfig
from app.core.constants import (
    DEBUG_ID_PREFIX,
    LANDMARK_CATEGORY_HINTS,
    LANDMARK_DENYLIST,
    LANDMARK_FILTER_TAGS,
    LOCAL_BASE_EXP,
    MAX_MYSTERY_PLACEMENT_ATTEMPTS,
    MAX_WILDERNESS_PLACEMENT_ATTEMPTS,
    MILESTONE_BASE_EXP,
    MILESTONE_ITEM_ID,
    MILESTONE_ITEM_NAME,
    MYSTERY_EXP,
    MYSTERY_INTERACTION_RADIUS_METERS,
    QUEST_ID_PREFIXES,
    REWARD_DISTANCE_CAP_METERS,
    WILDERNESS_BASE_EXP,
    WILDERNESS_ID_PREFIX,
    QuestType,
    RefreshType,
    RewardType,
)
from app.schemas.location import Coordinate, Landmark
from app.schemas.quest import Quest, Reward
from app.services.geo import (
    distance_meters,
    offset_flat_earth,
    project_radial,
    random_area_distance,
    random_bearing,
)
from app.services.quest_templates import (
    MYSTERY_TEMPLATES,
    WILDERNESS_TEMPLATES,
    QuestTemplate,
    landmark_flavor_text,
)
from integrations.maps.overpass_client import BaseLandmarkLookup, NullLandmarkLookup


# ================================================================
# HELPERS
# ================================================================

def reward_multiplier(distance: float) -> float:
    """1.0x at the player, rising linearly to 2.0x at 10km and beyond"""
    return 1 + min(distance / REWARD_DISTANCE_CAP_METERS, 1.0)


def ceil_to_ten(value: float) -> int:
    return int(ceil(value / 10.0) * 10)


def next_weekly_reset(now: datetime) -> datetime:
    """Coming Sunday at 23:59:59.999 (today if today is Sunday)"""
    days_until_sunday = (6 - now.weekday()) % 7
    reset = now + timedelta(days=days_until_sunday)
    return reset.replace(hour=23, minute=59, second=59, microsecond=999000)


def end_of_day(now: datetime) -> datetime:
    return now.replace(hour=23, minute=59, second=59, microsecond=999000)


def is_denied(landmark: Landmark) -> bool:
    """True for graveyard or memorial-adjacent features"""
    values = [landmark.tags.get(tag, "").lower() for tag in LANDMARK_FILTER_TAGS]
    return any(term in value for value in values for term in LANDMARK_DENYLIST)


def landmark_quest_id(landmark: Landmark, quest_type: QuestType) -> str:
    return f"{QUEST_ID_PREFIXES[quest_type]}{landmark.id}"


def is_separated(point: Coordinate, anchors: Iterable[Coordinate], min_separation: float) -> bool:
    return all(distance_meters(point, anchor) >= min_separation for anchor in anchors)


class QuestSpawner:
    """
    Quest generation policies.

    - Mystery: random points, uniform by area in an annulus around the
      player, kept apart from the rest of the batch.
    - Landmark: named features from the landmark lookup, filtered,
      de-duplicated and kept apart from same-type quests; the search
      radius widens once when candidates run short.
    - Wilderness: synthetic points that top up a landmark request so it
      always returns the requested count.

    The spawner only builds quests; committing them is the caller's job.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        landmarks: Optional[BaseLandmarkLookup] = None,
        rng: Optional[random.Random] = None,
        templates: Optional[List[QuestTemplate]] = None
    ):
        self.config = config or EngineConfig()
        self.landmarks = landmarks or NullLandmarkLookup()
        self.rng = rng or random.Random()
        self.templates = templates or MYSTERY_TEMPLATES

    def _new_id(self) -> str:
        return str(uuid.UUID(int=self.rng.getrandbits(128), version=4))

    # ================================================================
    # MYSTERY
    # ================================================================

    def random_radial_position(self, origin: Coordinate) -> Coordinate:
        distance = random_area_distance(
            self.rng, self.config.mystery_min_meters, self.config.mystery_max_meters
        )
        return project_radial(origin, distance, random_bearing(self.rng))

    def spawn_mystery_quests(self, origin: Coordinate, count: Optional[int] = None) -> List[Quest]:
        """
        Build a batch of mystery quests around origin.
        Placement retries are bounded, so a crowded configuration can
        return fewer than requested.
        """
        target = count if count is not None else self.config.mystery_batch_size
        separation = self.config.mystery_min_separation_meters
        quests: List[Quest] = []
        attempts = 0

        while len(quests) < target and attempts < MAX_MYSTERY_PLACEMENT_ATTEMPTS:
            attempts += 1
            template = self.rng.choice(self.templates)
            position = self.random_radial_position(origin)

            if not is_separated(position, (q.target_coordinates for q in quests), separation):
                continue

            quests.append(self._build_mystery_quest(template, position))
            logger.debug(
                f"Generated mystery quest {len(quests)}/{target} at "
                f"{distance_meters(origin, position):.0f}m"
            )

        if len(quests) < target:
            logger.warning(f"Could only generate {len(quests)} mystery quests after {attempts} attempts")
        else:
            logger.info(f"Generated {len(quests)} mystery quests in {attempts} attempts")

        return quests

    def _build_mystery_quest(self, template: QuestTemplate, position: Coordinate) -> Quest:
        return Quest(
            id=self._new_id(),
            type=QuestType.MYSTERY,
            title=template.title,
            description=template.lore_text,
            target_coordinates=position,
            radius_meters=MYSTERY_INTERACTION_RADIUS_METERS,
            refresh_type=RefreshType.NONE,
            rewards=[
                Reward(type=RewardType.ITEM, value=1, item_id=template.reward_id),
                Reward(type=RewardType.EXP, value=MYSTERY_EXP),
            ],
        )

    def spawn_debug_quest(self, origin: Coordinate) -> Quest:
        """Mystery quest a few meters from the player"""
        position = Coordinate(
            lat=origin.lat + (self.rng.random() - 0.5) * 0.0001,
            lng=origin.lng + (self.rng.random() - 0.5) * 0.0001,
        )
        return Quest(
            id=f"{DEBUG_ID_PREFIX}{self._new_id()}",
            type=QuestType.MYSTERY,
            title="Debug Quest",
            description="A test quest spawned 5m away.",
            target_coordinates=position,
            radius_meters=MYSTERY_INTERACTION_RADIUS_METERS,
            rewards=[Reward(type=RewardType.EXP, value=10)],
        )

    # ================================================================
    # LANDMARKS
    # ================================================================

    async def fetch_candidates(
        self,
        origin: Coordinate,
        radius_meters: float,
        quest_type: QuestType
    ) -> List[Landmark]:
        """Landmark lookup; any failure degrades to an empty list"""
        try:
            return await self.landmarks.fetch_landmarks(
                origin, radius_meters, LANDMARK_CATEGORY_HINTS[quest_type]
            )
        except Exception as e:
            logger.warning(f"Landmark lookup failed within {radius_meters:.0f}m: {e}")
            return []

    def filter_candidates(
        self,
        candidates: Iterable[Landmark],
        excluded_ids: Set[str],
        quest_type: QuestType
    ) -> List[Landmark]:
        """Drop denied features and ones already used by a known quest"""
        result = []
        seen: Set[str] = set()
        for landmark in candidates:
            quest_id = landmark_quest_id(landmark, quest_type)
            if quest_id in excluded_ids or quest_id in seen:
                continue
            if not landmark.name or is_denied(landmark):
                continue
            seen.add(quest_id)
            result.append(landmark)
        return result

    def select_separated(
        self,
        candidates: Sequence[Landmark],
        anchors: Sequence[Coordinate],
        count: int
    ) -> List[Landmark]:
        """Greedy pick in random order, keeping min separation from anchors and picks"""
        separation = self.config.landmark_min_separation_meters
        pool = list(candidates)
        self.rng.shuffle(pool)

        taken = list(anchors)
        selected: List[Landmark] = []
        for landmark in pool:
            if len(selected) >= count:
                break
            if is_separated(landmark.coordinate, taken, separation):
                selected.append(landmark)
                taken.append(landmark.coordinate)
        return selected

    def build_landmark_quest(
        self,
        landmark: Landmark,
        origin: Coordinate,
        quest_type: QuestType,
        now: Optional[datetime] = None
    ) -> Quest:
        now = now or datetime.utcnow()
        title = landmark.name or "Unknown Landmark"
        multiplier = reward_multiplier(distance_meters(origin, landmark.coordinate))

        if quest_type == QuestType.MILESTONE:
            description = f"Visit {title}"
            refresh_type = RefreshType.WEEKLY
            expiration = next_weekly_reset(now)
            rewards = [
                Reward(type=RewardType.EXP, value=ceil_to_ten(MILESTONE_BASE_EXP * multiplier)),
                Reward(type=RewardType.ITEM, value=MILESTONE_ITEM_NAME, item_id=MILESTONE_ITEM_ID),
            ]
        else:
            description = f"Explore {title}"
            refresh_type = RefreshType.DAILY
            expiration = end_of_day(now)
            rewards = [
                Reward(type=RewardType.EXP, value=ceil_to_ten(LOCAL_BASE_EXP * multiplier)),
            ]

        return Quest(
            id=landmark_quest_id(landmark, quest_type),
            type=quest_type,
            title=title,
            description=description,
            lore=landmark_flavor_text(landmark.tags, self.rng),
            target_coordinates=landmark.coordinate,
            radius_meters=self.config.default_radius_meters,
            refresh_type=refresh_type,
            expiration_date=expiration,
            rewards=rewards,
        )

    async def spawn_landmark_quests(
        self,
        origin: Coordinate,
        quest_type: QuestType,
        count: int,
        anchors: Sequence[Coordinate] = (),
        excluded_ids: Optional[Set[str]] = None,
        now: Optional[datetime] = None
    ) -> List[Quest]:
        """
        Build exactly `count` quests anchored to landmarks where possible.

        Args:
            origin: Player position
            quest_type: MILESTONE or LOCAL
            count: Quests wanted
            anchors: Positions of same-type quests already active
            excluded_ids: Quest ids already active, completed or recent

        Returns:
            `count` quests; wilderness quests fill any shortfall
        """
        if count <= 0:
            return []

        taken = list(anchors)
        used_ids = set(excluded_ids or ())
        selected: List[Landmark] = []

        for radius in (self.config.landmark_search_radius_meters, self.config.landmark_widened_radius_meters):
            candidates = self.filter_candidates(
                await self.fetch_candidates(origin, radius, quest_type),
                used_ids,
                quest_type,
            )
            for landmark in self.select_separated(candidates, taken, count - len(selected)):
                selected.append(landmark)
                taken.append(landmark.coordinate)
                used_ids.add(landmark_quest_id(landmark, quest_type))

            if len(selected) >= count:
                break
            logger.info(
                f"Found {len(selected)}/{count} {quest_type.value} landmarks within {radius:.0f}m"
            )

        quests = [self.build_landmark_quest(l, origin, quest_type, now) for l in selected]

        shortfall = count - len(quests)
        if shortfall > 0:
            logger.info(f"Falling back to {shortfall} wilderness {quest_type.value} quest(s)")
        for _ in range(shortfall):
            quest = self.build_wilderness_quest(origin, quest_type, taken, now)
            taken.append(quest.target_coordinates)
            quests.append(quest)

        return quests

    # ================================================================
    # WILDERNESS
    # ================================================================

    def build_wilderness_quest(
        self,
        origin: Coordinate,
        quest_type: QuestType = QuestType.LOCAL,
        anchors: Sequence[Coordinate] = (),
        now: Optional[datetime] = None
    ) -> Quest:
        """
        Synthetic quest 500-1500m from the player. Tries to respect
        landmark separation but always returns a quest.
        """
        now = now or datetime.utcnow()
        separation = self.config.landmark_min_separation_meters
        position = origin
        distance = 0.0

        for _ in range(MAX_WILDERNESS_PLACEMENT_ATTEMPTS):
            distance = self.rng.uniform(self.config.wilderness_min_meters, self.config.wilderness_max_meters)
            position = offset_flat_earth(origin, distance, self.rng.random() * 2 * pi)
            if is_separated(position, anchors, separation):
                break

        template = self.rng.choice(WILDERNESS_TEMPLATES)
        weekly = quest_type == QuestType.MILESTONE

        return Quest(
            id=f"{WILDERNESS_ID_PREFIX}{self._new_id()}",
            type=quest_type,
            title=template["title"],
            description=template["description"],
            lore=template["lore"],
            target_coordinates=position,
            radius_meters=self.config.default_radius_meters,
            refresh_type=RefreshType.WEEKLY if weekly else RefreshType.DAILY,
            expiration_date=next_weekly_reset(now) if weekly else end_of_day(now),
            rewards=[
                Reward(
                    type=RewardType.EXP,
                    value=ceil_to_ten(WILDERNESS_BASE_EXP * reward_multiplier(distance)),
                ),
            ],
        )
