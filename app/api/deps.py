"""
Wayquest Backend - API Dependencies
Per-session quest engines for the HTTP layer
"""

import random
import time
from collections import OrderedDict
from typing import Callable, Dict, List, Optional

from fastapi import Depends, Path, Request
from loguru import logger

from app.core.config import EngineConfig, settings
from app.core.exceptions import NoLocationError
from app.schemas.location import Coordinate
from app.services.quest_engine import QuestEngine
from app.services.save_service import BaseSaveStore, InMemorySaveStore
from integrations.maps.overpass_client import BaseLandmarkLookup, NullLandmarkLookup


class EngineRegistry:
    """
    One QuestEngine per session id.

    Engines are created lazily and restored from the save store on first
    use; each session saves under its own key. Sessions idle for longer
    than idle_ttl_seconds, and the least recently used ones beyond
    max_sessions, are saved and dropped.
    """

    def __init__(
        self,
        landmarks: Optional[BaseLandmarkLookup] = None,
        save_store: Optional[BaseSaveStore] = None,
        config: Optional[EngineConfig] = None,
        rng: Optional[random.Random] = None,
        max_sessions: Optional[int] = None,
        idle_ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.landmarks = landmarks or NullLandmarkLookup()
        self.save_store = save_store or InMemorySaveStore()
        self.config = config or EngineConfig.from_settings()
        self.rng = rng
        self.max_sessions = max_sessions or settings.MAX_SESSIONS
        self.idle_ttl_seconds = (
            idle_ttl_seconds if idle_ttl_seconds is not None else settings.SESSION_IDLE_TTL_SECONDS
        )
        self.clock = clock
        # Least recently used first
        self._engines: "OrderedDict[str, QuestEngine]" = OrderedDict()
        self._last_used: Dict[str, float] = {}

    def save_key(self, session_id: str) -> str:
        return f"{settings.SAVE_SLOT_KEY}:{session_id}"

    def _touch(self, session_id: str) -> None:
        self._engines.move_to_end(session_id)
        self._last_used[session_id] = self.clock()

    async def get_or_create(self, session_id: str) -> QuestEngine:
        engine = self._engines.get(session_id)
        if engine is not None:
            self._touch(session_id)
            return engine

        engine = QuestEngine(
            config=self.config,
            landmarks=self.landmarks,
            save_store=self.save_store,
            rng=self.rng,
            save_key=self.save_key(session_id),
        )
        restored = await engine.load()

        # A concurrent request may have created the session during load()
        existing = self._engines.setdefault(session_id, engine)
        if existing is engine:
            logger.info(f"Session {session_id} started ({'restored' if restored else 'new'})")
        self._touch(session_id)

        await self.evict_stale(keep=session_id)
        return existing

    async def evict_stale(self, keep: Optional[str] = None) -> List[str]:
        """Drop idle sessions, then the least recently used over max_sessions"""
        now = self.clock()
        victims = [
            sid for sid in self._engines
            if sid != keep and now - self._last_used.get(sid, now) > self.idle_ttl_seconds
        ]
        overflow = len(self._engines) - len(victims) - self.max_sessions
        for sid in self._engines:
            if overflow <= 0:
                break
            if sid != keep and sid not in victims:
                victims.append(sid)
                overflow -= 1

        for sid in victims:
            await self.evict(sid)
        return victims

    async def evict(self, session_id: str) -> bool:
        """Save and close a session's engine; the next request restores it"""
        engine = self._engines.pop(session_id, None)
        self._last_used.pop(session_id, None)
        if engine is None:
            return False

        try:
            await engine.persist()
        except Exception as e:
            logger.error(f"Failed to save session {session_id} on eviction: {e}")
        await engine.close()
        logger.info(f"Session {session_id} evicted")
        return True

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._engines

    def __len__(self) -> int:
        return len(self._engines)

    async def close(self) -> None:
        for engine in self._engines.values():
            await engine.close()
        self._engines.clear()
        self._last_used.clear()


# === Engine Dependencies ===

def get_registry(request: Request) -> EngineRegistry:
    return request.app.state.engines


async def get_engine(
    session_id: str = Path(..., min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_\-]+$"),
    registry: EngineRegistry = Depends(get_registry)
) -> QuestEngine:
    """Engine for the session in the path, created on first use"""
    return await registry.get_or_create(session_id)


def require_origin(engine: QuestEngine, origin: Optional[Coordinate] = None) -> Coordinate:
    """Explicit origin, else the player's current position"""
    if origin is not None:
        return origin
    if engine.current_location is None:
        raise NoLocationError()
    return engine.current_location.coordinate
