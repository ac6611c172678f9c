"""
Wayquest Backend - Base Schemas
Common Pydantic schemas used across the application
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseSchema(BaseModel):
    """Base schema with common configuration.

    Fields are snake_case in Python and camelCase on the wire.
    """

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
        ser_json_inf_nan="null",
    )


# === Common Response Schemas ===

class SuccessResponse(BaseSchema):
    """Generic success response"""
    success: bool = True
    message: str


class ErrorResponse(BaseSchema):
    """Generic error response"""
    success: bool = False
    error: str
    error_code: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
