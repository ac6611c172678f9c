"""
Wayquest Backend - Application Constants
Centralized constants used throughout the quest engine
"""

from enum import Enum
from typing import Dict, FrozenSet, List, Tuple


# === Quest Types ===
class QuestType(str, Enum):
    """Kinds of quests"""
    MOVEMENT = "MOVEMENT"  # cumulative distance travelled
    CHECKIN = "CHECKIN"  # reach a fixed point
    DAILY = "DAILY"
    MYSTERY = "MYSTERY"  # random point near the player
    LOCAL = "LOCAL"  # nearby landmark, replenished individually
    MILESTONE = "MILESTONE"  # notable landmark, weekly


class RewardType(str, Enum):
    """Reward kinds granted on claim"""
    EXP = "EXP"
    ITEM = "ITEM"
    CURRENCY = "CURRENCY"


class RefreshType(str, Enum):
    """How often a landmark quest is rotated"""
    WEEKLY = "WEEKLY"
    DAILY = "DAILY"
    NONE = "NONE"


class QuestState(str, Enum):
    """Per-quest lifecycle state"""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"  # completed, reward not yet claimed
    CLAIMED = "claimed"  # terminal


class MysteryRadiusPreset(str, Enum):
    """Recognized distance bands for random mystery placement"""
    STANDARD = "standard"
    LEGACY = "legacy"


# (min, max) meters from the player
MYSTERY_RADIUS_PRESETS: Dict[str, Tuple[float, float]] = {
    MysteryRadiusPreset.STANDARD.value: (100.0, 1000.0),
    MysteryRadiusPreset.LEGACY.value: (100.0, 300.0),
}


# === Quest Groups ===

LOCATION_QUEST_TYPES: FrozenSet[QuestType] = frozenset({
    QuestType.CHECKIN,
    QuestType.MYSTERY,
    QuestType.LOCAL,
    QuestType.MILESTONE,
})

# Never hidden by fog of war
ALWAYS_VISIBLE_TYPES: FrozenSet[QuestType] = frozenset({
    QuestType.MILESTONE,
    QuestType.MOVEMENT,
})


# === Identifiers ===

DEFAULT_USER_ID = "local-user"

QUEST_ID_PREFIXES: Dict[QuestType, str] = {
    QuestType.MILESTONE: "milestone-",
    QuestType.LOCAL: "local-",
}
WILDERNESS_ID_PREFIX = "wilderness-"
DEBUG_ID_PREFIX = "debug-quest-"


# === Landmark Filtering ===

# Matched case-insensitively as substrings of the tags below
LANDMARK_DENYLIST: List[str] = [
    "grave",
    "cemetery",
    "memorial",
    "funeral",
    "crematorium",
    "mausoleum",
    "tomb",
    "burial",
    "ossuary",
    "necropolis",
]

LANDMARK_FILTER_TAGS: Tuple[str, ...] = ("name", "name:en", "amenity", "landuse", "historic")

# Landmark lookup category hints
LANDMARK_CATEGORY_HINTS: Dict[QuestType, str] = {
    QuestType.MILESTONE: "milestone",
    QuestType.LOCAL: "local",
}


# === Rewards ===

MILESTONE_BASE_EXP = 500
LOCAL_BASE_EXP = 100
MYSTERY_EXP = 50
WILDERNESS_BASE_EXP = 80
MILESTONE_ITEM_ID = "relic_common"
MILESTONE_ITEM_NAME = "Ancient Relic"

# Reward multiplier reaches its cap at this distance from the player
REWARD_DISTANCE_CAP_METERS = 10000.0


# === Geo ===

EARTH_RADIUS_METERS = 6371e3
METERS_PER_DEGREE = 111320.0

MYSTERY_INTERACTION_RADIUS_METERS = 30.0
MAX_MYSTERY_PLACEMENT_ATTEMPTS = 200
MAX_WILDERNESS_PLACEMENT_ATTEMPTS = 25


# === Anti-cheat ===

MAX_SPEED_KMH = 30.0
TELEPORT_MIN_SECONDS = 1.0
TELEPORT_MAX_METERS = 100.0
