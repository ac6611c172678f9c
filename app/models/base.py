"""
Wayquest Backend - Base Document Model
Base class for MongoDB document models using Beanie ODM
"""

from datetime import datetime

from beanie import Document
from pydantic import Field


class BaseDocument(Document):
    """
    Base document model with timestamps
    """

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        use_state_management = True
        validate_on_save = True

    def update_timestamp(self) -> None:
        """Update the updated_at timestamp"""
        self.updated_at = datetime.utcnow()

    async def save_with_timestamp(self, *args, **kwargs) -> None:
        """Save document with updated timestamp"""
        self.update_timestamp()
        await self.save(*args, **kwargs)
