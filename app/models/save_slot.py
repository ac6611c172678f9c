"""
Wayquest Backend - Save Slot Model
A named, opaque save blob
"""

from beanie import Indexed

from app.models.base import BaseDocument


class SaveSlot(BaseDocument):
    """Serialized quest engine state stored under a fixed key"""

    key: Indexed(str, unique=True)
    blob: str

    class Settings:
        name = "save_slots"
        use_state_management = True
        validate_on_save = True
