"""
Wayquest Backend - Save Service
Durable stores for the serialized quest engine blob
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

from loguru import logger

from app.core.exceptions import DatabaseError
from app.models.save_slot import SaveSlot


# === Base Save Store ===

class BaseSaveStore(ABC):
    """Opaque get/set of a serialized blob under a fixed key"""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def set(self, key: str, blob: str) -> None:
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass


# === In-memory Store ===

class InMemorySaveStore(BaseSaveStore):
    """Process-local store used when MongoDB is not configured"""

    def __init__(self):
        self._slots: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._slots.get(key)

    async def set(self, key: str, blob: str) -> None:
        self._slots[key] = blob

    async def delete(self, key: str) -> None:
        self._slots.pop(key, None)


# === MongoDB Store ===

class MongoSaveStore(BaseSaveStore):
    """
    Beanie-backed store, one SaveSlot document per key.
    Requires init_database() to have registered SaveSlot.
    """

    async def get(self, key: str) -> Optional[str]:
        try:
            slot = await SaveSlot.find_one(SaveSlot.key == key)
        except Exception as e:
            logger.error(f"Failed to load save slot '{key}': {e}")
            raise DatabaseError(f"Failed to load save slot '{key}'") from e
        return slot.blob if slot else None

    async def set(self, key: str, blob: str) -> None:
        try:
            slot = await SaveSlot.find_one(SaveSlot.key == key)
            if slot is None:
                await SaveSlot(key=key, blob=blob).insert()
            else:
                slot.blob = blob
                await slot.save_with_timestamp()
        except Exception as e:
            logger.error(f"Failed to write save slot '{key}': {e}")
            raise DatabaseError(f"Failed to write save slot '{key}'") from e
        logger.debug(f"Save slot '{key}' written ({len(blob)} bytes)")

    async def delete(self, key: str) -> None:
        try:
            slot = await SaveSlot.find_one(SaveSlot.key == key)
            if slot is not None:
                await slot.delete()
        except Exception as e:
            logger.error(f"Failed to delete save slot '{key}': {e}")
            raise DatabaseError(f"Failed to delete save slot '{key}'") from e
