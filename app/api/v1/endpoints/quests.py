"""
Wayquest Backend - Quest Endpoints
Quest queries, spawning, completion, rewards and saves for a session
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, status

from app.api.deps import get_engine, require_origin
from app.core.exceptions import (
    ConflictError,
    QuestNotFoundError,
    QuestStateError,
    RateLimitError,
    RewardConfirmationError,
    SaveImportError,
)
from app.schemas.base import SuccessResponse
from app.schemas.quest import (
    ClaimResponse,
    ExportSaveResponse,
    ImportSaveRequest,
    Quest,
    QuestBatchResponse,
    QuestListResponse,
    QuestScanRequest,
    QuestView,
    RefreshResponse,
)
from app.services.quest_engine import QuestEngine

router = APIRouter()


# ================================================================
# QUERIES
# ================================================================

@router.get(
    "/{session_id}/quests",
    response_model=QuestListResponse,
    summary="List quests",
    description="Active and completed quests with live progress and distance",
)
async def list_quests(
    visible_only: bool = Query(False, description="Apply the fog-of-war filter to active quests"),
    sort_by_distance: bool = Query(False, description="Order active quests nearest first"),
    engine: QuestEngine = Depends(get_engine)
):
    if visible_only:
        active = engine.get_nearby_quests()
    elif sort_by_distance:
        active = engine.get_sorted_quests()
    else:
        active = engine.active_quests

    return QuestListResponse(
        active=[engine.describe(q) for q in active],
        completed=[engine.describe(q) for q in engine.completed_quests],
        last_completed_id=engine.store.last_completed_id,
    )


@router.get(
    "/{session_id}/quests/{quest_id}",
    response_model=QuestView,
    summary="Get quest",
)
async def get_quest(quest_id: str, engine: QuestEngine = Depends(get_engine)):
    quest = engine.get_quest(quest_id)
    if quest is None:
        raise QuestNotFoundError(quest_id)
    return engine.describe(quest)


@router.post(
    "/{session_id}/quests/last-completed/pop",
    summary="Consume completion notice",
    description="Return and clear the most recently completed quest id",
)
async def pop_last_completed(engine: QuestEngine = Depends(get_engine)) -> Dict[str, Any]:
    return {"questId": engine.pop_last_completed()}


# ================================================================
# SPAWNING
# ================================================================

@router.post(
    "/{session_id}/quests/scan",
    response_model=QuestBatchResponse,
    summary="Scan for quests",
    description="Spawn a batch of mystery quests around the given or current position",
)
async def scan_quests(
    data: Optional[QuestScanRequest] = Body(None),
    engine: QuestEngine = Depends(get_engine)
):
    origin = require_origin(engine, data.origin if data else None)
    quests = engine.scan_quests(origin)
    await engine.persist()

    return QuestBatchResponse(
        quests=quests,
        message=f"Found {len(quests)} mysterious signals nearby",
    )


@router.post(
    "/{session_id}/quests/local/generate",
    response_model=QuestBatchResponse,
    summary="Generate local quests",
    description="Top local quests up to the configured target",
)
async def generate_local_quests(engine: QuestEngine = Depends(get_engine)):
    origin = require_origin(engine)
    quests = await engine.generate_local_quests(origin)
    await engine.persist()
    return QuestBatchResponse(quests=quests, message=f"Added {len(quests)} local quest(s)")


@router.post(
    "/{session_id}/quests/milestone",
    response_model=QuestBatchResponse,
    summary="Ensure milestone",
    description="Spawn a milestone quest if none is active",
)
async def ensure_milestone(engine: QuestEngine = Depends(get_engine)):
    origin = require_origin(engine)
    quests = await engine.ensure_milestone(origin)
    await engine.persist()
    return QuestBatchResponse(quests=quests)


@router.post(
    "/{session_id}/quests/milestone/refresh",
    response_model=RefreshResponse,
    summary="Refresh milestone",
    description="Replace the active milestone quest (rate limited)",
)
async def refresh_milestone(engine: QuestEngine = Depends(get_engine)):
    origin = require_origin(engine)
    result = await engine.refresh_milestone(origin)

    if not result.accepted:
        retry_after = None
        if result.reset_at is not None:
            retry_after = max(1, int(result.reset_at - engine.clock()))
        raise RateLimitError(
            message=result.message,
            retry_after=retry_after,
            details={"remaining": result.remaining, "resetAt": result.reset_at},
        )

    await engine.persist()
    return RefreshResponse(
        accepted=result.accepted,
        quests=result.quests,
        remaining=result.remaining,
        reset_at=result.reset_at,
        message=result.message,
    )


@router.post(
    "/{session_id}/quests/debug",
    response_model=QuestView,
    status_code=status.HTTP_201_CREATED,
    summary="Spawn debug quest",
    description="Place a mystery quest a few meters from the player",
)
async def spawn_debug_quest(engine: QuestEngine = Depends(get_engine)):
    quest = engine.spawn_debug_quest(require_origin(engine))
    if quest is None:
        raise ConflictError("Debug quest could not be added")
    await engine.persist()
    return engine.describe(quest)


@router.post(
    "/{session_id}/quests/expire",
    summary="Expire quests",
    description="Remove active quests past their expiration date",
)
async def expire_quests(engine: QuestEngine = Depends(get_engine)) -> Dict[str, Any]:
    expired = engine.expire_quests()
    await engine.persist()
    return {"success": True, "expiredQuestIds": expired}


# ================================================================
# QUEST COMMANDS
# ================================================================

@router.post(
    "/{session_id}/quests",
    response_model=QuestView,
    status_code=status.HTTP_201_CREATED,
    summary="Add quest",
)
async def add_quest(data: Quest, engine: QuestEngine = Depends(get_engine)):
    if not engine.add_quest(data):
        raise ConflictError(f"Quest '{data.id}' already exists")
    await engine.persist()
    return engine.describe(data)


@router.post(
    "/{session_id}/quests/{quest_id}/complete",
    response_model=QuestView,
    summary="Complete quest",
)
async def complete_quest(quest_id: str, engine: QuestEngine = Depends(get_engine)):
    if engine.get_quest(quest_id) is None:
        raise QuestNotFoundError(quest_id)
    if not engine.complete_quest(quest_id):
        raise QuestStateError(quest_id, "Quest is already completed")
    await engine.persist()
    return engine.describe(engine.get_quest(quest_id))


@router.post(
    "/{session_id}/quests/{quest_id}/check-in",
    response_model=QuestView,
    summary="Check in",
    description="Complete a location quest while inside its radius",
)
async def check_in(quest_id: str, engine: QuestEngine = Depends(get_engine)):
    quest = engine.get_quest(quest_id)
    if quest is None:
        raise QuestNotFoundError(quest_id)
    require_origin(engine)
    if not engine.check_in(quest_id):
        raise QuestStateError(quest_id, "Quest is completed or out of range")
    await engine.persist()
    return engine.describe(quest)


@router.post(
    "/{session_id}/quests/{quest_id}/claim",
    response_model=ClaimResponse,
    summary="Claim rewards",
)
async def claim_reward(quest_id: str, engine: QuestEngine = Depends(get_engine)):
    if engine.get_quest(quest_id) is None:
        raise QuestNotFoundError(quest_id)

    result = await engine.claim_reward(quest_id)
    if result.rolled_back:
        raise RewardConfirmationError(result.message, details={"questId": quest_id})
    if not result.success:
        raise QuestStateError(quest_id, result.message)

    await engine.persist()
    return ClaimResponse(
        success=True,
        quest_id=quest_id,
        message=result.message,
        rewards=result.rewards,
    )


@router.delete(
    "/{session_id}/quests",
    response_model=SuccessResponse,
    summary="Clear quests",
)
async def clear_quests(engine: QuestEngine = Depends(get_engine)):
    engine.clear_all()
    await engine.persist()
    return SuccessResponse(message="All quests cleared")


# ================================================================
# SAVES
# ================================================================

@router.get(
    "/{session_id}/save",
    response_model=ExportSaveResponse,
    summary="Export save",
)
async def export_save(engine: QuestEngine = Depends(get_engine)):
    return ExportSaveResponse(blob=engine.export_save())


@router.put(
    "/{session_id}/save",
    response_model=SuccessResponse,
    summary="Import save",
    description="Replace session state; invalid blobs leave it untouched",
)
async def import_save(data: ImportSaveRequest, engine: QuestEngine = Depends(get_engine)):
    if not engine.import_save(data.blob):
        raise SaveImportError()
    await engine.persist()
    return SuccessResponse(message="Save imported")


@router.post(
    "/{session_id}/reset",
    response_model=SuccessResponse,
    summary="Reset session",
)
async def reset_session(engine: QuestEngine = Depends(get_engine)):
    engine.reset_all()
    await engine.persist()
    return SuccessResponse(message="Session reset")
