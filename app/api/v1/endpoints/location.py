"""
Wayquest Backend - Location Endpoints
Location ingest and GPS source settings for a session
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from app.api.deps import get_engine
from app.core.exceptions import NoLocationError
from app.schemas.location import LocationUpdateResponse, UserLocation
from app.services.quest_engine import QuestEngine

router = APIRouter()


@router.post(
    "/{session_id}/location",
    response_model=LocationUpdateResponse,
    summary="Report location",
    description="Record a location sample and re-evaluate active quests",
)
async def update_location(
    data: UserLocation,
    engine: QuestEngine = Depends(get_engine)
):
    completed = engine.update_location(data)
    await engine.persist()

    return LocationUpdateResponse(
        current_location=engine.current_location,
        history_size=len(engine.location_history),
        completed_quest_ids=completed,
    )


@router.get(
    "/{session_id}/location",
    response_model=LocationUpdateResponse,
    summary="Current location",
)
async def get_location(engine: QuestEngine = Depends(get_engine)):
    if engine.current_location is None:
        raise NoLocationError()

    return LocationUpdateResponse(
        current_location=engine.current_location,
        history_size=len(engine.location_history),
    )


@router.post(
    "/{session_id}/gps-mode/toggle",
    summary="Toggle mock GPS",
    description="Switch between real and simulated location sources; quest state is kept",
)
async def toggle_gps_mode(engine: QuestEngine = Depends(get_engine)) -> Dict[str, Any]:
    use_mock_gps = engine.toggle_gps_mode()
    await engine.persist()
    return {"success": True, "useMockGps": use_mock_gps}


@router.post(
    "/{session_id}/quick-place/toggle",
    summary="Toggle quick place",
)
async def toggle_quick_place(engine: QuestEngine = Depends(get_engine)) -> Dict[str, Any]:
    enabled = engine.toggle_quick_place()
    await engine.persist()
    return {"success": True, "quickPlaceEnabled": enabled}
