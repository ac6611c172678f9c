"""
Wayquest Backend - Location Schemas
Coordinates, location samples and landmark candidates
"""

from typing import Dict, List, Optional

from pydantic import ConfigDict, Field

from app.schemas.base import BaseSchema


class Coordinate(BaseSchema):
    """WGS84 point in degrees"""
    model_config = ConfigDict(allow_inf_nan=False)

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class UserLocation(BaseSchema):
    """
    A single position sample from a location source.
    Immutable once created.
    """
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    timestamp_millis: int = Field(..., ge=0)
    speed_meters_per_second: float = Field(0.0, ge=0)
    heading_degrees: Optional[float] = Field(None, ge=0, lt=360)

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(lat=self.lat, lng=self.lng)


class Landmark(BaseSchema):
    """Candidate geo-feature returned by a landmark lookup"""
    id: str
    coordinate: Coordinate
    tags: Dict[str, str] = Field(default_factory=dict)

    @property
    def name(self) -> Optional[str]:
        return self.tags.get("name:en") or self.tags.get("name")


class ValidationResult(BaseSchema):
    """Outcome of a movement plausibility check"""
    is_valid: bool
    reason: Optional[str] = None
    flagged_for_review: bool = False


# === Request / Response ===

class LocationUpdateResponse(BaseSchema):
    """Result of ingesting a location sample"""
    current_location: UserLocation
    history_size: int
    completed_quest_ids: List[str] = Field(default_factory=list)
