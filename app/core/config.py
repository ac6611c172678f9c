"""
Wayquest Backend - Configuration Management
Centralized settings using Pydantic Settings
"""

from functools import lru_cache
from typing import List, Optional, Union

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.constants import MYSTERY_RADIUS_PRESETS


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # === Application Settings ===
    APP_NAME: str = "Wayquest"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = "Location-based quest engine"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production

    # === API Settings ===
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "Wayquest API"

    # === Server Settings ===
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # === CORS Settings ===
    BACKEND_CORS_ORIGINS: List[str] = ["*"]

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # === MongoDB Settings ===
    # When unset, saves live in process memory only
    MONGODB_URI: Optional[str] = None
    MONGODB_DATABASE: str = "wayquest"
    MONGODB_MAX_POOL_SIZE: int = 20
    MONGODB_MIN_POOL_SIZE: int = 1
    SAVE_SLOT_KEY: str = "quest-engine-save"

    # === Overpass (OpenStreetMap) Settings ===
    OVERPASS_API_URL: str = "https://overpass-api.de/api/interpreter"
    OVERPASS_TIMEOUT_SECONDS: float = 30.0
    LANDMARK_CACHE_TTL_SECONDS: int = 24 * 60 * 60
    LANDMARK_CACHE_MAX_ENTRIES: int = 512

    # === Location Ingest ===
    LOCATION_HISTORY_LIMIT: int = 100

    # === Quest Model ===
    QUEST_HISTORY_LIMIT: int = 10
    DEFAULT_QUEST_RADIUS_METERS: float = 50.0
    AUTO_COMPLETE_CHECKIN: bool = False  # proximity completes location quests without a check-in
    REWARD_CONFIRM_DELAY_SECONDS: float = 0.5

    # === Spawner ===
    MYSTERY_RADIUS_PRESET: str = "standard"  # standard (100-1000m), legacy (100-300m)
    MYSTERY_BATCH_SIZE: int = 5
    MYSTERY_MIN_SEPARATION_METERS: float = 100.0
    LANDMARK_MIN_SEPARATION_METERS: float = 500.0
    LANDMARK_SEARCH_RADIUS_METERS: float = 2000.0
    LANDMARK_WIDENED_RADIUS_METERS: float = 3000.0
    LOCAL_QUEST_TARGET: int = 2
    MILESTONE_QUEST_LIMIT: int = 1
    WILDERNESS_MIN_METERS: float = 500.0
    WILDERNESS_MAX_METERS: float = 1500.0

    # === Lifecycle ===
    MILESTONE_REFRESH_LIMIT: int = 10
    MILESTONE_REFRESH_WINDOW_SECONDS: int = 3600
    LOCAL_RESPAWN_DELAY_SECONDS: float = 0.5
    FOG_OF_WAR_RADIUS_METERS: Optional[float] = None  # None = unrestricted

    # === Sessions ===
    MAX_SESSIONS: int = 1000
    SESSION_IDLE_TTL_SECONDS: int = 30 * 60

    # === Logging ===
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"  # json, text

    # === Documentation ===
    SHOW_DOCS: bool = True

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Alias for BACKEND_CORS_ORIGINS"""
        return self.BACKEND_CORS_ORIGINS

    @property
    def APP_ENV(self) -> str:
        """Alias for ENVIRONMENT"""
        return self.ENVIRONMENT

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def persistence_enabled(self) -> bool:
        return bool(self.MONGODB_URI)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Global settings instance
settings = get_settings()


class EngineConfig:
    """
    Tuning for a single quest engine.

    Built from settings in production; tests construct it directly and
    override only what they need.
    """

    def __init__(
        self,
        location_history_limit: int = 100,
        quest_history_limit: int = 10,
        default_radius_meters: float = 50.0,
        auto_complete_checkin: bool = False,
        reward_confirm_delay_seconds: float = 0.5,
        mystery_radius_preset: str = "standard",
        mystery_batch_size: int = 5,
        mystery_min_separation_meters: float = 100.0,
        landmark_min_separation_meters: float = 500.0,
        landmark_search_radius_meters: float = 2000.0,
        landmark_widened_radius_meters: float = 3000.0,
        local_quest_target: int = 2,
        milestone_quest_limit: int = 1,
        wilderness_min_meters: float = 500.0,
        wilderness_max_meters: float = 1500.0,
        milestone_refresh_limit: int = 10,
        milestone_refresh_window_seconds: int = 3600,
        local_respawn_delay_seconds: float = 0.5,
        fog_of_war_radius_meters: Optional[float] = None,
    ):
        if mystery_radius_preset not in MYSTERY_RADIUS_PRESETS:
            raise ValueError(
                f"Unknown mystery radius preset '{mystery_radius_preset}'. "
                f"Expected one of: {', '.join(MYSTERY_RADIUS_PRESETS)}"
            )

        self.location_history_limit = location_history_limit
        self.quest_history_limit = quest_history_limit
        self.default_radius_meters = default_radius_meters
        self.auto_complete_checkin = auto_complete_checkin
        self.reward_confirm_delay_seconds = reward_confirm_delay_seconds
        self.mystery_radius_preset = mystery_radius_preset
        self.mystery_min_meters, self.mystery_max_meters = MYSTERY_RADIUS_PRESETS[mystery_radius_preset]
        self.mystery_batch_size = mystery_batch_size
        self.mystery_min_separation_meters = mystery_min_separation_meters
        self.landmark_min_separation_meters = landmark_min_separation_meters
        self.landmark_search_radius_meters = landmark_search_radius_meters
        self.landmark_widened_radius_meters = landmark_widened_radius_meters
        self.local_quest_target = local_quest_target
        self.milestone_quest_limit = milestone_quest_limit
        self.wilderness_min_meters = wilderness_min_meters
        self.wilderness_max_meters = wilderness_max_meters
        self.milestone_refresh_limit = milestone_refresh_limit
        self.milestone_refresh_window_seconds = milestone_refresh_window_seconds
        self.local_respawn_delay_seconds = local_respawn_delay_seconds
        self.fog_of_war_radius_meters = fog_of_war_radius_meters

    @classmethod
    def from_settings(cls, source: Optional[Settings] = None) -> "EngineConfig":
        s = source or settings
        return cls(
            location_history_limit=s.LOCATION_HISTORY_LIMIT,
            quest_history_limit=s.QUEST_HISTORY_LIMIT,
            default_radius_meters=s.DEFAULT_QUEST_RADIUS_METERS,
            auto_complete_checkin=s.AUTO_COMPLETE_CHECKIN,
            reward_confirm_delay_seconds=s.REWARD_CONFIRM_DELAY_SECONDS,
            mystery_radius_preset=s.MYSTERY_RADIUS_PRESET,
            mystery_batch_size=s.MYSTERY_BATCH_SIZE,
            mystery_min_separation_meters=s.MYSTERY_MIN_SEPARATION_METERS,
            landmark_min_separation_meters=s.LANDMARK_MIN_SEPARATION_METERS,
            landmark_search_radius_meters=s.LANDMARK_SEARCH_RADIUS_METERS,
            landmark_widened_radius_meters=s.LANDMARK_WIDENED_RADIUS_METERS,
            local_quest_target=s.LOCAL_QUEST_TARGET,
            milestone_quest_limit=s.MILESTONE_QUEST_LIMIT,
            wilderness_min_meters=s.WILDERNESS_MIN_METERS,
            wilderness_max_meters=s.WILDERNESS_MAX_METERS,
            milestone_refresh_limit=s.MILESTONE_REFRESH_LIMIT,
            milestone_refresh_window_seconds=s.MILESTONE_REFRESH_WINDOW_SECONDS,
            local_respawn_delay_seconds=s.LOCAL_RESPAWN_DELAY_SECONDS,
            fog_of_war_radius_meters=s.FOG_OF_WAR_RADIUS_METERS,
        )
