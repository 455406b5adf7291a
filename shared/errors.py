"""
Shared error handling for the Exchange Access Layer.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class AccessLayerException(Exception):
    """Base exception for Access Layer services."""

    status_code: int = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id,
            code=self.code,
            message=self.message,
            details=self.details,
        )


class UnsupportedVenueError(AccessLayerException):
    """The venue identifier is not known to the exchange gateway."""

    status_code = 400

    def __init__(self, venue_id: str, details: Optional[Dict[str, Any]] = None):
        payload = {"venue_id": venue_id}
        payload.update(details or {})
        super().__init__("UNSUPPORTED_VENUE", f"Exchange '{venue_id}' is not supported", payload)


class UnsupportedOperationError(AccessLayerException):
    """The venue lacks the capability required by the operation."""

    status_code = 501

    def __init__(self, venue_id: str, operation: str, details: Optional[Dict[str, Any]] = None):
        payload = {"venue_id": venue_id, "operation": operation}
        payload.update(details or {})
        super().__init__(
            "UNSUPPORTED_OPERATION",
            f"Exchange '{venue_id}' does not support {operation}",
            payload,
        )


class VenueUnavailableError(AccessLayerException):
    """Transport or network failure talking to a venue."""

    status_code = 503

    def __init__(self, message: str = "Exchange unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("VENUE_UNAVAILABLE", message, details)


class AuthenticationRequiredError(AccessLayerException):
    """Authenticated operation attempted without valid venue credentials."""

    status_code = 401

    def __init__(self, message: str = "API credentials are required", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHENTICATION_REQUIRED", message, details)


class NotFoundError(AccessLayerException):
    """Symbol or order unknown to the venue."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class InvalidArgumentError(AccessLayerException):
    """Malformed request parameters or an order rejected by the venue."""

    status_code = 400

    def __init__(self, message: str = "Invalid argument", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_ARGUMENT", message, details)
