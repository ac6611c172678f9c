"""
Wayquest Backend - Quest Store
Active/completed quests, per-quest progress and the claim protocol
"""

from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from loguru import logger

from app.core.constants import DEFAULT_USER_ID, QuestType
from app.schemas.quest import Quest, QuestProgress, Reward


RewardConfirmer = Callable[[str], Awaitable[Any]]


class ClaimResult:
    """Result of a reward claim attempt"""

    def __init__(
        self,
        success: bool,
        quest_id: str,
        message: str,
        rolled_back: bool = False,
        rewards: Optional[List[Reward]] = None
    ):
        self.success = success
        self.quest_id = quest_id
        self.message = message
        self.rolled_back = rolled_back
        self.rewards = rewards or []

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "quest_id": self.quest_id,
            "message": self.message,
            "rolled_back": self.rolled_back,
            "rewards": [r.model_dump() for r in self.rewards],
        }


class QuestStore:
    """
    Canonical quest state for one player.

    Invariants after every operation:
    - every active or completed quest has exactly one progress record
    - a quest id is never both active and completed

    Guarded operations (add, complete, claim) return False instead of
    raising so callers can invoke them speculatively.
    """

    def __init__(self, user_id: str = DEFAULT_USER_ID):
        self.user_id = user_id
        self._active: Dict[str, Quest] = {}
        self._completed: Dict[str, Quest] = {}
        self._progress: Dict[str, QuestProgress] = {}
        self._last_completed_id: Optional[str] = None

    # ================================================================
    # QUERIES
    # ================================================================

    @property
    def active_quests(self) -> List[Quest]:
        return list(self._active.values())

    @property
    def completed_quests(self) -> List[Quest]:
        return list(self._completed.values())

    @property
    def progress_entries(self) -> List[Tuple[str, QuestProgress]]:
        return list(self._progress.items())

    def get_quest(self, quest_id: str) -> Optional[Quest]:
        return self._active.get(quest_id) or self._completed.get(quest_id)

    def get_active(self, quest_id: str) -> Optional[Quest]:
        return self._active.get(quest_id)

    def get_progress(self, quest_id: str) -> Optional[QuestProgress]:
        return self._progress.get(quest_id)

    def is_active(self, quest_id: str) -> bool:
        return quest_id in self._active

    def is_completed(self, quest_id: str) -> bool:
        return quest_id in self._completed

    def known_ids(self) -> set:
        return set(self._active) | set(self._completed)

    def active_of_type(self, quest_type: QuestType) -> List[Quest]:
        return [q for q in self._active.values() if q.type == quest_type]

    def count_active(self, quest_type: QuestType) -> int:
        return len(self.active_of_type(quest_type))

    # ================================================================
    # MUTATIONS
    # ================================================================

    def add_quest(self, quest: Quest) -> bool:
        """
        Insert into the active set with a fresh progress record.
        No-op when the id is already active or completed.
        """
        if quest.id in self._active or quest.id in self._completed:
            logger.debug(f"Duplicate quest ignored: {quest.id}")
            return False

        self._active[quest.id] = quest
        self._progress[quest.id] = QuestProgress(
            quest_id=quest.id,
            user_id=self.user_id,
            current_distance_meters=quest.current_distance_meters or 0.0,
        )
        logger.debug(f"Quest added: {quest.id} ({quest.type.value})")
        return True

    def add_quests(self, quests: Iterable[Quest]) -> List[Quest]:
        """Add several quests; returns the ones actually inserted"""
        return [q for q in quests if self.add_quest(q)]

    def set_distance(self, quest_id: str, distance_meters: float) -> bool:
        progress = self._progress.get(quest_id)
        if quest_id not in self._active or progress is None or progress.is_completed:
            return False
        progress.current_distance_meters = distance_meters
        return True

    def complete_quest(self, quest_id: str, now: Optional[datetime] = None) -> bool:
        """
        Move a quest from active to completed exactly once.
        No-op unless the quest is active and not yet completed.
        """
        quest = self._active.get(quest_id)
        progress = self._progress.get(quest_id)
        if quest is None or progress is None or progress.is_completed:
            return False

        progress.is_completed = True
        progress.completed_at = now or datetime.utcnow()
        del self._active[quest_id]
        self._completed[quest_id] = quest
        self._last_completed_id = quest_id

        logger.info(f"Quest completed: {quest_id} ({quest.type.value})")
        return True

    async def claim_reward(self, quest_id: str, confirm: RewardConfirmer) -> ClaimResult:
        """
        Optimistically mark rewards claimed, then confirm.

        The flag is set before the confirmation await, so a second claim
        arriving while the first is pending fails the entry guard. On
        confirmation failure the flag is restored to its prior value.
        """
        progress = self._progress.get(quest_id)
        if progress is None or not progress.is_completed or progress.rewards_claimed:
            return ClaimResult(
                success=False,
                quest_id=quest_id,
                message="Quest is not completed or rewards were already claimed",
            )

        previous = progress.rewards_claimed
        progress.rewards_claimed = True
        logger.info(f"[Optimistic] Claiming rewards for quest {quest_id}...")

        try:
            await confirm(quest_id)
        except Exception as e:
            # Record may have been replaced by clear/import while pending
            current = self._progress.get(quest_id)
            if current is progress:
                current.rewards_claimed = previous
            logger.warning(f"Reward claim for {quest_id} failed, rolled back: {e}")
            return ClaimResult(
                success=False,
                quest_id=quest_id,
                message="Failed to claim rewards. Please try again.",
                rolled_back=True,
            )

        quest = self.get_quest(quest_id)
        logger.info(f"Rewards claimed for quest {quest_id}")
        return ClaimResult(
            success=True,
            quest_id=quest_id,
            message="Rewards claimed",
            rewards=list(quest.rewards) if quest else [],
        )

    def remove_quest(self, quest_id: str) -> Optional[Quest]:
        """Drop an active quest and its progress (expiry, rotation)"""
        quest = self._active.pop(quest_id, None)
        if quest is not None:
            self._progress.pop(quest_id, None)
        return quest

    def clear_all(self) -> None:
        """Empty active, completed and progress together"""
        self._active = {}
        self._completed = {}
        self._progress = {}
        self._last_completed_id = None
        logger.info("All quests cleared")

    def pop_last_completed(self) -> Optional[str]:
        """Consume the single-slot completion marker"""
        quest_id, self._last_completed_id = self._last_completed_id, None
        return quest_id

    @property
    def last_completed_id(self) -> Optional[str]:
        return self._last_completed_id

    def load(
        self,
        active: Iterable[Quest],
        completed: Iterable[Quest],
        progress: Iterable[Tuple[str, QuestProgress]]
    ) -> None:
        """Replace all state at once; inputs must already be consistent"""
        self._active = {q.id: q for q in active}
        self._completed = {q.id: q for q in completed}
        self._progress = {quest_id: record for quest_id, record in progress}
        self._last_completed_id = None
