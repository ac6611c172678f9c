"""
Wayquest Backend - Quest Engine
Single-player quest engine: location ingest, progress, spawning and saves
"""

import asyncio
import random
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from app.core.config import EngineConfig, settings
from app.core.constants import DEFAULT_USER_ID, QuestState
from app.schemas.location import Coordinate, UserLocation
from app.schemas.quest import Quest, QuestProgress, QuestView, SaveBlob
from app.services.location_tracker import LocationTracker
from app.services.progress_evaluator import ProgressEvaluator
from app.services.quest_lifecycle import QuestLifecycle, RefreshResult
from app.services.quest_spawner import QuestSpawner
from app.services.quest_store import ClaimResult, QuestStore, RewardConfirmer
from app.services.save_service import BaseSaveStore, InMemorySaveStore
from integrations.maps.overpass_client import BaseLandmarkLookup


class QuestEngine:
    """
    One player's quest engine.

    Constructed once per session and passed around explicitly. Every
    public call runs to completion before the next one starts, except
    for the awaits on landmark lookups and reward confirmation; the
    store's guarded operations keep the active/progress invariants
    intact across those suspension points.

    Lifecycle: construct -> load() -> operate -> persist()
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        landmarks: Optional[BaseLandmarkLookup] = None,
        save_store: Optional[BaseSaveStore] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
        reward_confirmer: Optional[RewardConfirmer] = None,
        user_id: str = DEFAULT_USER_ID,
        save_key: Optional[str] = None
    ):
        self.config = config or EngineConfig.from_settings()
        self.clock = clock
        self.rng = rng or random.Random()
        self.save_store = save_store or InMemorySaveStore()
        self.save_key = save_key or settings.SAVE_SLOT_KEY
        self._reward_confirmer = reward_confirmer or self._confirm_reward

        self.tracker = LocationTracker(self.config.location_history_limit)
        self.store = QuestStore(user_id)
        self.evaluator = ProgressEvaluator(
            self.store,
            self.tracker,
            default_radius_meters=self.config.default_radius_meters,
            auto_complete_checkin=self.config.auto_complete_checkin,
        )
        self.spawner = QuestSpawner(self.config, landmarks, self.rng)
        self.lifecycle = QuestLifecycle(self.store, self.spawner, self.tracker, self.config, clock)
        self.lifecycle.on_respawn = self._after_respawn

        self.use_mock_gps = True
        self.quick_place_enabled = False

    def _now(self) -> datetime:
        return datetime.utcfromtimestamp(self.clock())

    # ================================================================
    # LOCATION
    # ================================================================

    def update_location(self, sample: Union[UserLocation, Dict[str, Any]]) -> List[str]:
        """
        Record a location sample and re-evaluate every active quest.

        Raises:
            InvalidLocationError: sample rejected; nothing was recorded

        Returns:
            Ids of quests completed by this update
        """
        self.tracker.record(sample)
        completed = self.evaluator.evaluate_all(now=self._now())
        for quest_id in completed:
            self.lifecycle.on_quest_completed(quest_id)
        return completed

    @property
    def current_location(self) -> Optional[UserLocation]:
        return self.tracker.current

    @property
    def location_history(self) -> List[UserLocation]:
        return self.tracker.history

    def toggle_gps_mode(self) -> bool:
        """Switch between real and mock GPS; quest state is untouched"""
        self.use_mock_gps = not self.use_mock_gps
        logger.info(f"GPS mode: {'mock' if self.use_mock_gps else 'real'}")
        return self.use_mock_gps

    def toggle_quick_place(self) -> bool:
        self.quick_place_enabled = not self.quick_place_enabled
        return self.quick_place_enabled

    # ================================================================
    # COMMANDS
    # ================================================================

    def add_quest(self, quest: Quest) -> bool:
        return self.store.add_quest(quest)

    def complete_quest(self, quest_id: str) -> bool:
        if not self.store.complete_quest(quest_id, now=self._now()):
            return False
        self.lifecycle.on_quest_completed(quest_id)
        return True

    def check_in(self, quest_id: str) -> bool:
        """Claim-gated completion of a location quest within range"""
        if not self.evaluator.check_in(quest_id, now=self._now()):
            return False
        self.lifecycle.on_quest_completed(quest_id)
        return True

    async def claim_reward(self, quest_id: str) -> ClaimResult:
        return await self.store.claim_reward(quest_id, self._reward_confirmer)

    async def _confirm_reward(self, quest_id: str) -> None:
        # Stand-in for the rewards round-trip
        await asyncio.sleep(self.config.reward_confirm_delay_seconds)

    def clear_all(self) -> None:
        self.store.clear_all()

    def scan_quests(self, origin: Optional[Coordinate] = None) -> List[Quest]:
        """Spawn a batch of mystery quests around origin or the player"""
        return self.lifecycle.scan_mystery(origin)

    def spawn_debug_quest(self, origin: Optional[Coordinate] = None) -> Optional[Quest]:
        if origin is None:
            if self.current_location is None:
                return None
            origin = self.current_location.coordinate
        quest = self.spawner.spawn_debug_quest(origin)
        return quest if self.store.add_quest(quest) else None

    async def generate_local_quests(self, origin: Optional[Coordinate] = None) -> List[Quest]:
        return await self.lifecycle.generate_local_quests(origin, now=self._now())

    async def ensure_milestone(self, origin: Optional[Coordinate] = None) -> List[Quest]:
        return await self.lifecycle.ensure_milestone(origin, now=self._now())

    async def refresh_milestone(self, origin: Optional[Coordinate] = None) -> RefreshResult:
        return await self.lifecycle.refresh_milestone(origin, now=self._now())

    def expire_quests(self, now: Optional[datetime] = None) -> List[str]:
        return self.lifecycle.expire_quests(now or self._now())

    # ================================================================
    # QUERIES
    # ================================================================

    @property
    def active_quests(self) -> List[Quest]:
        return self.store.active_quests

    @property
    def completed_quests(self) -> List[Quest]:
        return self.store.completed_quests

    @property
    def quest_history(self) -> List[str]:
        return list(self.lifecycle.quest_history)

    def get_quest(self, quest_id: str) -> Optional[Quest]:
        return self.store.get_quest(quest_id)

    def get_progress(self, quest_id: str) -> Optional[QuestProgress]:
        return self.store.get_progress(quest_id)

    def get_progress_percentage(self, quest_id: str) -> float:
        return self.evaluator.progress_percentage(quest_id)

    def get_distance_to_target(self, quest_id: str) -> Optional[float]:
        return self.evaluator.distance_to_target(quest_id)

    def get_nearby_quests(self) -> List[Quest]:
        """Active quests that pass the fog-of-war filter"""
        return self.lifecycle.visible_quests(self.store.active_quests)

    def get_sorted_quests(self) -> List[Quest]:
        """Active quests nearest first; quests without a target go last"""
        def sort_key(quest: Quest):
            distance = self.get_distance_to_target(quest.id)
            return (distance is None, distance or 0.0)

        return sorted(self.store.active_quests, key=sort_key)

    def pop_last_completed(self) -> Optional[str]:
        return self.store.pop_last_completed()

    def describe(self, quest: Quest) -> QuestView:
        progress = self.store.get_progress(quest.id)
        return QuestView(
            quest=quest,
            progress=progress,
            state=progress.state if progress else QuestState.IN_PROGRESS,
            progress_percentage=self.get_progress_percentage(quest.id),
            distance_meters=self.get_distance_to_target(quest.id),
        )

    # ================================================================
    # SAVE / RESTORE
    # ================================================================

    def to_save_blob(self) -> SaveBlob:
        return SaveBlob(
            active_quests=self.store.active_quests,
            completed_quests=self.store.completed_quests,
            quest_progress=self.store.progress_entries,
            location_history=self.tracker.history,
            recent_quest_history=self.quest_history,
            use_mock_gps=self.use_mock_gps,
            quick_place_enabled=self.quick_place_enabled,
            milestone_refresh_count=self.lifecycle.milestone_refresh_count,
            milestone_refresh_reset_at=self.lifecycle.milestone_refresh_reset_at,
            saved_at=self._now(),
        )

    def export_save(self) -> str:
        return self.to_save_blob().model_dump_json(by_alias=True)

    def import_save(self, raw: str) -> bool:
        """
        Replace engine state from an exported blob.
        Returns False, leaving state untouched, if the blob is invalid.
        """
        try:
            blob = SaveBlob.model_validate_json(raw)
        except PydanticValidationError as e:
            logger.warning(f"Save import rejected: {e.error_count()} validation error(s)")
            return False

        self._apply_blob(blob)
        logger.info(
            f"Save imported: {len(blob.active_quests)} active, "
            f"{len(blob.completed_quests)} completed quests"
        )
        return True

    def _apply_blob(self, blob: SaveBlob) -> None:
        self.lifecycle.cancel_respawns()
        self.store.load(blob.active_quests, blob.completed_quests, blob.quest_progress)
        self.tracker.load(blob.location_history)
        self.lifecycle.load_state(
            blob.recent_quest_history,
            blob.milestone_refresh_count,
            blob.milestone_refresh_reset_at,
        )
        self.use_mock_gps = blob.use_mock_gps
        self.quick_place_enabled = blob.quick_place_enabled

    def reset_all(self) -> None:
        """Back to a fresh engine: no quests, no history, default flags"""
        self.lifecycle.reset()
        self.store.clear_all()
        self.tracker.clear()
        self.use_mock_gps = True
        self.quick_place_enabled = False
        logger.info("Quest engine reset")

    async def load(self) -> bool:
        """Restore from the durable store; False when nothing usable is saved"""
        raw = await self.save_store.get(self.save_key)
        if raw is None:
            return False
        return self.import_save(raw)

    async def persist(self) -> None:
        await self.save_store.set(self.save_key, self.export_save())

    async def _after_respawn(self, quests: List[Quest]) -> None:
        # Background respawns finish after the request that caused them
        await self.persist()
        logger.debug(f"Saved {len(quests)} respawned local quest(s)")

    async def close(self) -> None:
        self.lifecycle.cancel_respawns()
