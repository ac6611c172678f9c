"""
Wayquest Backend - Quest Lifecycle
Replenishment, respawn, manual refresh, expiry and visibility policies
"""

import asyncio
import time
from collections import deque
from datetime import datetime
from typing import Any, Awaitable, Callable, Deque, Dict, Iterable, List, Optional, Set, Tuple

from loguru import logger

from app.core.config import EngineConfig
from app.core.constants import ALWAYS_VISIBLE_TYPES, QuestType
from app.schemas.location import Coordinate
from app.schemas.quest import Quest
from app.services.geo import within_radius
from app.services.location_tracker import LocationTracker
from app.services.quest_spawner import QuestSpawner
from app.services.quest_store import QuestStore


class RefreshResult:
    """Outcome of a manual milestone refresh"""

    def __init__(
        self,
        accepted: bool,
        remaining: int,
        reset_at: Optional[float],
        message: str,
        quests: Optional[List[Quest]] = None
    ):
        self.accepted = accepted
        self.remaining = remaining
        self.reset_at = reset_at
        self.message = message
        self.quests = quests or []

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accepted": self.accepted,
            "quests": [q.model_dump() for q in self.quests],
            "remaining": self.remaining,
            "reset_at": self.reset_at,
            "message": self.message,
        }


class QuestLifecycle:
    """
    Policies that sit on top of the quest store.

    Spawns that wait on the landmark lookup re-read the store after the
    await, so capacity is checked against state at commit time rather
    than against a snapshot taken before the lookup.
    """

    def __init__(
        self,
        store: QuestStore,
        spawner: QuestSpawner,
        tracker: LocationTracker,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], float] = time.time
    ):
        self.store = store
        self.spawner = spawner
        self.tracker = tracker
        self.config = config or EngineConfig()
        self.clock = clock

        self.quest_history: Deque[str] = deque(maxlen=self.config.quest_history_limit)
        self.milestone_refresh_count = 0
        self.milestone_refresh_reset_at: Optional[float] = None

        self._respawn_tasks: Set[asyncio.Task] = set()
        self._pending_respawns = 0
        # Called with the quests a background respawn added
        self.on_respawn: Optional[Callable[[List[Quest]], Awaitable[None]]] = None

    # ================================================================
    # HISTORY
    # ================================================================

    def remember(self, quest_id: str) -> None:
        if quest_id in self.quest_history:
            self.quest_history.remove(quest_id)
        self.quest_history.append(quest_id)

    def excluded_ids(self) -> Set[str]:
        """Ids a landmark spawn must not reuse"""
        return self.store.known_ids() | set(self.quest_history)

    def load_state(
        self,
        quest_history: Iterable[str],
        refresh_count: int,
        refresh_reset_at: Optional[float]
    ) -> None:
        self.quest_history = deque(quest_history, maxlen=self.config.quest_history_limit)
        self.milestone_refresh_count = refresh_count
        self.milestone_refresh_reset_at = refresh_reset_at

    def reset(self) -> None:
        self.cancel_respawns()
        self.quest_history.clear()
        self.milestone_refresh_count = 0
        self.milestone_refresh_reset_at = None

    def _resolve_origin(self, origin: Optional[Coordinate]) -> Optional[Coordinate]:
        if origin is not None:
            return origin
        current = self.tracker.current
        return current.coordinate if current else None

    # ================================================================
    # REPLENISHMENT
    # ================================================================

    async def _fill_to_capacity(
        self,
        quest_type: QuestType,
        capacity: int,
        origin: Optional[Coordinate],
        now: Optional[datetime]
    ) -> List[Quest]:
        origin = self._resolve_origin(origin)
        if origin is None:
            logger.warning(f"Cannot spawn {quest_type.value} quests without a location")
            return []

        deficit = capacity - self.store.count_active(quest_type)
        if deficit <= 0:
            return []

        quests = await self.spawner.spawn_landmark_quests(
            origin,
            quest_type,
            deficit,
            anchors=[q.target_coordinates for q in self.store.active_of_type(quest_type)],
            excluded_ids=self.excluded_ids(),
            now=now,
        )

        # Another spawn may have committed while the lookup was pending
        room = capacity - self.store.count_active(quest_type)
        added: List[Quest] = []
        for quest in quests:
            if len(added) >= room:
                break
            if quest.id in self.quest_history:
                continue
            if self.store.add_quest(quest):
                added.append(quest)

        if added:
            logger.info(f"Added {len(added)} {quest_type.value} quest(s)")
        return added

    async def generate_local_quests(
        self,
        origin: Optional[Coordinate] = None,
        now: Optional[datetime] = None
    ) -> List[Quest]:
        """Top LOCAL quests up to the configured target"""
        return await self._fill_to_capacity(QuestType.LOCAL, self.config.local_quest_target, origin, now)

    async def ensure_milestone(
        self,
        origin: Optional[Coordinate] = None,
        now: Optional[datetime] = None
    ) -> List[Quest]:
        """Spawn a MILESTONE quest if none is active"""
        return await self._fill_to_capacity(
            QuestType.MILESTONE, self.config.milestone_quest_limit, origin, now
        )

    def scan_mystery(self, origin: Optional[Coordinate] = None) -> List[Quest]:
        origin = self._resolve_origin(origin)
        if origin is None:
            logger.warning("Cannot scan for mystery quests without a location")
            return []
        return self.store.add_quests(self.spawner.spawn_mystery_quests(origin))

    # ================================================================
    # MANUAL REFRESH
    # ================================================================

    def _refresh_window(self, now_ts: float) -> Tuple[int, float]:
        """(count, reset_at) of the window covering now_ts, without storing it"""
        if self.milestone_refresh_reset_at is None or now_ts >= self.milestone_refresh_reset_at:
            return 0, now_ts + self.config.milestone_refresh_window_seconds
        return self.milestone_refresh_count, self.milestone_refresh_reset_at

    @property
    def refreshes_remaining(self) -> int:
        return max(0, self.config.milestone_refresh_limit - self.milestone_refresh_count)

    async def refresh_milestone(
        self,
        origin: Optional[Coordinate] = None,
        now: Optional[datetime] = None
    ) -> RefreshResult:
        """
        Replace the active milestone with a new one.

        Limited to milestone_refresh_limit calls per window; the window
        restarts once its absolute reset time has passed. A rejected
        refresh changes nothing.
        """
        now_ts = self.clock()
        count, reset_at = self._refresh_window(now_ts)
        limit = self.config.milestone_refresh_limit

        if count >= limit:
            minutes = max(1, int((reset_at - now_ts) // 60) + 1)
            logger.warning(f"Milestone refresh limit reached, resets in {minutes} min")
            return RefreshResult(
                accepted=False,
                remaining=0,
                reset_at=reset_at,
                message=f"Refresh limit reached. Try again in {minutes} minutes.",
            )

        origin = self._resolve_origin(origin)
        if origin is None:
            return RefreshResult(
                accepted=False,
                remaining=max(0, limit - count),
                reset_at=self.milestone_refresh_reset_at,
                message="Location unknown. Send a location update first.",
            )

        self.milestone_refresh_count = count + 1
        self.milestone_refresh_reset_at = reset_at
        for quest in self.store.active_of_type(QuestType.MILESTONE):
            self.store.remove_quest(quest.id)
            self.remember(quest.id)

        quests = await self.ensure_milestone(origin, now)
        logger.info(f"Milestone refreshed ({self.refreshes_remaining} refreshes left)")
        return RefreshResult(
            accepted=True,
            quests=quests,
            remaining=self.refreshes_remaining,
            reset_at=self.milestone_refresh_reset_at,
            message="Milestone refreshed",
        )

    # ================================================================
    # COMPLETION HOOKS
    # ================================================================

    def on_quest_completed(self, quest_id: str) -> None:
        """Record history and schedule a LOCAL replacement"""
        quest = self.store.get_quest(quest_id)
        self.remember(quest_id)
        if quest is not None and quest.type == QuestType.LOCAL:
            self.schedule_local_respawn()

    def schedule_local_respawn(self) -> None:
        """
        Generate a replacement LOCAL quest after a short delay.
        Without a running event loop the respawn is deferred until
        flush_pending_respawns().
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._pending_respawns += 1
            logger.debug("No running event loop, local respawn deferred")
            return

        task = loop.create_task(self._delayed_respawn())
        self._respawn_tasks.add(task)
        task.add_done_callback(self._respawn_tasks.discard)

    async def _delayed_respawn(self) -> None:
        await asyncio.sleep(self.config.local_respawn_delay_seconds)
        try:
            quests = await self.generate_local_quests()
            if quests and self.on_respawn is not None:
                await self.on_respawn(quests)
        except Exception as e:
            logger.exception(f"Local quest respawn failed: {e}")

    async def flush_pending_respawns(self) -> List[Quest]:
        if not self._pending_respawns:
            return []
        self._pending_respawns = 0
        return await self.generate_local_quests()

    async def wait_for_respawns(self) -> None:
        while self._respawn_tasks:
            await asyncio.gather(*list(self._respawn_tasks), return_exceptions=True)

    def cancel_respawns(self) -> None:
        for task in list(self._respawn_tasks):
            task.cancel()
        self._respawn_tasks.clear()
        self._pending_respawns = 0

    @property
    def pending_respawns(self) -> int:
        return self._pending_respawns + len(self._respawn_tasks)

    # ================================================================
    # EXPIRY & VISIBILITY
    # ================================================================

    def expire_quests(self, now: Optional[datetime] = None) -> List[str]:
        """Drop active quests past their expiration date"""
        now = now or datetime.utcnow()
        expired = [q.id for q in self.store.active_quests if q.is_expired(now)]
        for quest_id in expired:
            self.store.remove_quest(quest_id)
            self.remember(quest_id)
        if expired:
            logger.info(f"Expired {len(expired)} quest(s): {', '.join(expired)}")
        return expired

    def is_visible(self, quest: Quest, origin: Optional[Coordinate] = None) -> bool:
        radius = self.config.fog_of_war_radius_meters
        if radius is None or quest.type in ALWAYS_VISIBLE_TYPES:
            return True
        if quest.target_coordinates is None:
            return True
        origin = self._resolve_origin(origin)
        if origin is None:
            return False
        return within_radius(origin, quest.target_coordinates, radius)

    def visible_quests(self, quests: Iterable[Quest], origin: Optional[Coordinate] = None) -> List[Quest]:
        """Fog-of-war read filter; unrestricted unless a radius is configured"""
        return [q for q in quests if self.is_visible(q, origin)]
