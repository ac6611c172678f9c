"""
Wayquest Backend - Custom Exceptions
Centralized exception classes for consistent error handling
"""

from typing import Any, Dict, Optional


class AppException(Exception):
    """
    Base application exception.
    All custom exceptions should inherit from this.
    """

    def __init__(
        self,
        message: str = "An error occurred",
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


# === Not Found Errors ===

class NotFoundError(AppException):
    """Resource not found"""

    def __init__(
        self,
        resource: str = "Resource",
        identifier: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with ID '{identifier}' not found"
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND",
            details=details
        )


class QuestNotFoundError(NotFoundError):
    """Quest not found"""

    def __init__(self, identifier: Optional[str] = None):
        super().__init__("Quest", identifier)


# === Validation Errors ===

class ValidationError(AppException):
    """Validation error"""

    def __init__(
        self,
        message: str = "Validation error",
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        if field:
            message = f"Validation error for field '{field}': {message}"
        super().__init__(
            message=message,
            status_code=422,
            error_code="VALIDATION_ERROR",
            details=details
        )


class InvalidLocationError(ValidationError):
    """Location sample is missing or has out-of-range coordinates"""

    def __init__(
        self,
        message: str = "Invalid location sample",
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, field, details)


class NoLocationError(ValidationError):
    """Operation needs a player position but none is known yet"""

    def __init__(
        self,
        message: str = "No current location; send a location update first",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, None, details)


# === Conflict Errors ===

class ConflictError(AppException):
    """Resource conflict"""

    def __init__(
        self,
        message: str = "Resource conflict",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=409,
            error_code="CONFLICT",
            details=details
        )


class QuestStateError(ConflictError):
    """Quest is not in a state that allows the requested transition"""

    def __init__(
        self,
        quest_id: str,
        message: str = "Quest cannot transition from its current state",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(f"{message} ({quest_id})", details)


# === Save Errors ===

class SaveImportError(AppException):
    """Save blob could not be parsed or failed consistency checks"""

    def __init__(
        self,
        message: str = "Invalid save data",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=400,
            error_code="SAVE_IMPORT_ERROR",
            details=details
        )


# === Rate Limit Errors ===

class RateLimitError(AppException):
    """Rate limit exceeded"""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        if retry_after:
            message = f"{message}. Retry after {retry_after} seconds"
        super().__init__(
            message=message,
            status_code=429,
            error_code="RATE_LIMIT_EXCEEDED",
            details=details
        )
        self.retry_after = retry_after


# === External Service Errors ===

class ExternalServiceError(AppException):
    """External service error"""

    def __init__(
        self,
        service: str = "External service",
        message: str = "External service error",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=f"{service}: {message}",
            status_code=502,
            error_code="EXTERNAL_SERVICE_ERROR",
            details=details
        )


class LandmarkLookupError(ExternalServiceError):
    """Overpass API error"""

    def __init__(
        self,
        message: str = "Landmark lookup failed",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__("Overpass", message, details)


class RewardConfirmationError(ExternalServiceError):
    """Reward claim could not be confirmed and was rolled back"""

    def __init__(
        self,
        message: str = "Failed to claim rewards. Please try again.",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__("Rewards", message, details)


# === Database Errors ===

class DatabaseError(AppException):
    """Database operation error"""

    def __init__(
        self,
        message: str = "Database operation failed",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=500,
            error_code="DATABASE_ERROR",
            details=details
        )


class ServiceUnavailableError(AppException):
    """Service temporarily unavailable"""

    def __init__(
        self,
        service: str = "Service",
        message: str = "temporarily unavailable",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=f"{service} is {message}",
            status_code=503,
            error_code="SERVICE_UNAVAILABLE",
            details=details
        )
