"""
Wayquest Backend - Quest Schemas
Quest records, progress records, the save blob and API bodies
"""

from datetime import datetime, timezone
from typing import List, Optional, Tuple, Union

from pydantic import Field, field_validator, model_validator

from app.core.constants import (
    LOCATION_QUEST_TYPES,
    QuestState,
    QuestType,
    RefreshType,
    RewardType,
)
from app.schemas.base import BaseSchema
from app.schemas.location import Coordinate, UserLocation


# === Quest ===

class Reward(BaseSchema):
    """Single reward granted when a quest is claimed"""
    type: RewardType
    value: Union[int, float, str]
    item_id: Optional[str] = None


class Quest(BaseSchema):
    """
    Canonical quest record.

    A quest is either distance-based (target_distance_meters) or
    location-based (target_coordinates), never both.
    """
    id: str = Field(..., min_length=1)
    type: QuestType
    title: str
    description: str = ""
    lore: Optional[str] = None

    # Distance quests
    target_distance_meters: Optional[float] = Field(None, gt=0)
    current_distance_meters: Optional[float] = Field(None, ge=0)

    # Location quests
    target_coordinates: Optional[Coordinate] = None
    radius_meters: Optional[float] = Field(None, gt=0)  # falls back to the engine default (50m)

    # Lifecycle
    expiration_date: Optional[datetime] = None
    refresh_type: Optional[RefreshType] = None

    rewards: List[Reward] = Field(default_factory=list)

    @field_validator("expiration_date")
    @classmethod
    def to_naive_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        # Engine clocks are naive UTC
        if v is not None and v.tzinfo is not None:
            return v.astimezone(timezone.utc).replace(tzinfo=None)
        return v

    @model_validator(mode="after")
    def check_single_goal(self) -> "Quest":
        if self.target_distance_meters is not None and self.target_coordinates is not None:
            raise ValueError("quest cannot have both a target distance and target coordinates")
        if self.type == QuestType.MOVEMENT and self.target_distance_meters is None:
            raise ValueError("MOVEMENT quests require target_distance_meters")
        if self.type in LOCATION_QUEST_TYPES and self.target_coordinates is None:
            raise ValueError(f"{self.type.value} quests require target_coordinates")
        return self

    @property
    def is_distance_based(self) -> bool:
        return self.target_distance_meters is not None

    @property
    def is_location_based(self) -> bool:
        return self.target_coordinates is not None

    def effective_radius(self, default: float = 50.0) -> float:
        return self.radius_meters if self.radius_meters else default

    def is_expired(self, now: datetime) -> bool:
        return self.expiration_date is not None and self.expiration_date <= now


class QuestProgress(BaseSchema):
    """Mutable per-quest progress record, keyed by quest id"""
    quest_id: str
    user_id: str
    current_distance_meters: Optional[float] = 0.0
    is_completed: bool = False
    completed_at: Optional[datetime] = None
    rewards_claimed: bool = False

    @property
    def state(self) -> QuestState:
        if self.rewards_claimed:
            return QuestState.CLAIMED
        if self.is_completed:
            return QuestState.COMPLETED
        return QuestState.IN_PROGRESS


# === Save Blob ===

class SaveBlob(BaseSchema):
    """
    Serialized engine state.

    questProgress is a list of [questId, record] pairs. The four arrays are
    required; everything else falls back to defaults.
    """
    active_quests: List[Quest]
    completed_quests: List[Quest]
    quest_progress: List[Tuple[str, QuestProgress]]
    location_history: List[UserLocation]

    recent_quest_history: List[str] = Field(default_factory=list)
    use_mock_gps: bool = True
    quick_place_enabled: bool = False
    milestone_refresh_count: int = Field(0, ge=0)
    milestone_refresh_reset_at: Optional[float] = None
    saved_at: Optional[datetime] = None

    @model_validator(mode="after")
    def check_consistency(self) -> "SaveBlob":
        active_ids = [q.id for q in self.active_quests]
        completed_ids = [q.id for q in self.completed_quests]
        if len(set(active_ids)) != len(active_ids) or len(set(completed_ids)) != len(completed_ids):
            raise ValueError("duplicate quest ids in save")
        overlap = set(active_ids) & set(completed_ids)
        if overlap:
            raise ValueError(f"quests both active and completed: {sorted(overlap)}")
        progress_ids = {quest_id for quest_id, _ in self.quest_progress}
        missing = [qid for qid in active_ids + completed_ids if qid not in progress_ids]
        if missing:
            raise ValueError(f"quests without progress records: {missing}")
        orphans = progress_ids - set(active_ids) - set(completed_ids)
        if orphans:
            raise ValueError(f"progress records without quests: {sorted(orphans)}")
        for quest_id, record in self.quest_progress:
            if record.quest_id != quest_id:
                raise ValueError(f"progress entry key {quest_id} does not match record")
        return self


# === Request Schemas ===

class QuestScanRequest(BaseSchema):
    """Scan for mystery quests; falls back to the last known position"""
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)

    @property
    def origin(self) -> Optional[Coordinate]:
        if self.lat is None or self.lng is None:
            return None
        return Coordinate(lat=self.lat, lng=self.lng)


class ImportSaveRequest(BaseSchema):
    """Raw save blob as produced by the export endpoint"""
    blob: str = Field(..., min_length=2)


# === Response Schemas ===

class QuestView(BaseSchema):
    """Quest plus live projections for the map layer"""
    quest: Quest
    progress: Optional[QuestProgress] = None
    state: QuestState
    progress_percentage: float
    distance_meters: Optional[float] = None


class QuestListResponse(BaseSchema):
    """Active and completed quests"""
    active: List[QuestView]
    completed: List[QuestView]
    last_completed_id: Optional[str] = None


class QuestBatchResponse(BaseSchema):
    """Quests created by a spawn request"""
    success: bool = True
    quests: List[Quest]
    message: Optional[str] = None


class ClaimResponse(BaseSchema):
    """Reward claim outcome"""
    success: bool
    quest_id: str
    message: str
    rewards: List[Reward] = Field(default_factory=list)


class RefreshResponse(BaseSchema):
    """Manual milestone refresh outcome"""
    accepted: bool
    quests: List[Quest] = Field(default_factory=list)
    remaining: int
    reset_at: Optional[float] = None
    message: str


class ExportSaveResponse(BaseSchema):
    """Serialized engine state"""
    blob: str
