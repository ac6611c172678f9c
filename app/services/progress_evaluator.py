"""
Wayquest Backend - Progress Evaluator
Turns location updates into quest progress and completions
"""

from datetime import datetime
from typing import List, Optional

from loguru import logger

from app.schemas.location import UserLocation
from app.schemas.quest import Quest
from app.services.geo import distance_meters, within_radius
from app.services.location_tracker import LocationTracker
from app.services.quest_store import QuestStore


class ProgressEvaluator:
    """
    Re-checks active quests after each location sample.

    Distance quests accumulate the segment between the last two samples
    and complete automatically. Location quests complete through an
    explicit check-in while the player is inside the target radius;
    proximity alone completes them only when auto_complete_checkin is on.
    """

    def __init__(
        self,
        store: QuestStore,
        tracker: LocationTracker,
        default_radius_meters: float = 50.0,
        auto_complete_checkin: bool = False
    ):
        self.store = store
        self.tracker = tracker
        self.default_radius_meters = default_radius_meters
        self.auto_complete_checkin = auto_complete_checkin

    # ================================================================
    # EVALUATION
    # ================================================================

    def evaluate_all(self, now: Optional[datetime] = None) -> List[str]:
        """Evaluate every active quest; returns ids completed in this pass"""
        completed = []
        for quest in self.store.active_quests:
            if self.evaluate(quest.id, now=now):
                completed.append(quest.id)
        return completed

    def evaluate(self, quest_id: str, now: Optional[datetime] = None) -> bool:
        """Update one quest from the latest samples; True if it completed"""
        quest = self.store.get_active(quest_id)
        progress = self.store.get_progress(quest_id)
        if quest is None or progress is None or progress.is_completed:
            return False
        if self.tracker.current is None:
            return False

        if quest.is_distance_based:
            return self._evaluate_distance(quest, now)

        if quest.is_location_based and self.auto_complete_checkin:
            if self.is_within_target(quest):
                return self.store.complete_quest(quest.id, now=now)

        return False

    def _evaluate_distance(self, quest: Quest, now: Optional[datetime]) -> bool:
        segment = self.tracker.last_two()
        if segment is None:
            return False

        previous, current = segment
        progress = self.store.get_progress(quest.id)
        new_distance = (progress.current_distance_meters or 0.0) + distance_meters(previous, current)

        # Completion supersedes the partial-progress write
        if new_distance >= quest.target_distance_meters:
            return self.store.complete_quest(quest.id, now=now)

        self.store.set_distance(quest.id, new_distance)
        return False

    def check_in(self, quest_id: str, now: Optional[datetime] = None) -> bool:
        """
        Complete a location quest if the player is inside its radius.
        This is the normal completion path for non-distance quests.
        """
        quest = self.store.get_active(quest_id)
        if quest is None or not quest.is_location_based:
            return False
        if not self.is_within_target(quest):
            logger.debug(f"Check-in rejected for {quest_id}: out of range")
            return False
        return self.store.complete_quest(quest_id, now=now)

    # ================================================================
    # PROJECTIONS
    # ================================================================

    def is_within_target(self, quest: Quest, location: Optional[UserLocation] = None) -> bool:
        location = location or self.tracker.current
        if location is None or quest.target_coordinates is None:
            return False
        return within_radius(
            location,
            quest.target_coordinates,
            quest.effective_radius(self.default_radius_meters)
        )

    def progress_percentage(self, quest_id: str) -> float:
        """0-100; distance quests are proportional, location quests binary"""
        quest = self.store.get_quest(quest_id)
        progress = self.store.get_progress(quest_id)
        if quest is None or progress is None:
            return 0.0
        if progress.is_completed:
            return 100.0

        if quest.is_distance_based:
            current = progress.current_distance_meters or 0.0
            return min(100.0, 100.0 * current / quest.target_distance_meters)

        if quest.is_location_based:
            return 100.0 if self.is_within_target(quest) else 0.0

        return 0.0

    def distance_to_target(self, quest_id: str) -> Optional[float]:
        """Live distance to the quest target, None for non-location quests"""
        quest = self.store.get_quest(quest_id)
        current = self.tracker.current
        if quest is None or quest.target_coordinates is None or current is None:
            return None
        return distance_meters(current, quest.target_coordinates)
