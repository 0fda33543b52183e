"""
HubSpot-specific exceptions for error handling.

HubSpot error bodies look like:
    {"status": "error", "message": "...", "correlationId": "...",
     "category": "VALIDATION_ERROR", "errors": [...]}

The correlation ID and raw body are kept on the exception so they can be
written to the sync audit log without reproducing the call.
"""

from typing import Optional, Dict, Any


class HubSpotError(Exception):
    """Base exception for HubSpot API errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        correlation_id: Optional[str] = None,
        category: Optional[str] = None,
        response: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.correlation_id = correlation_id
        self.category = category
        self.response = response or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, status_code={self.status_code})"


class HubSpotAuthenticationError(HubSpotError):
    """Raised when API authentication fails (401/403)."""

    def __init__(
        self,
        message: str = "Authentication failed - private app token may be invalid or lack scopes",
        status_code: int = 401,
        **kwargs,
    ):
        super().__init__(message, status_code=status_code, **kwargs)


class HubSpotRateLimitError(HubSpotError):
    """Raised when API rate limit is exceeded (429)."""

    def __init__(
        self,
        message: str = "Rate limit exceeded - please retry after a delay",
        retry_after: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, status_code=429, **kwargs)
        self.retry_after = retry_after


class HubSpotNotFoundError(HubSpotError):
    """Raised when a requested object does not exist (404)."""

    def __init__(self, message: str = "Object not found", **kwargs):
        super().__init__(message, status_code=404, **kwargs)


class HubSpotConflictError(HubSpotError):
    """
    Raised when HubSpot rejects a create because the object exists (409).

    For contacts the message carries the existing record, e.g.
    "Contact already exists. Existing ID: 12345".
    """

    def __init__(
        self,
        message: str = "Object already exists",
        existing_id: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, status_code=409, **kwargs)
        self.existing_id = existing_id


class HubSpotValidationError(HubSpotError):
    """Raised when HubSpot rejects the request payload (400)."""

    def __init__(self, message: str = "Request validation failed", **kwargs):
        super().__init__(message, status_code=400, **kwargs)


class HubSpotConnectionError(HubSpotError):
    """Raised on timeouts and network errors."""

    def __init__(
        self,
        message: str = "Connection error - unable to reach HubSpot API",
        **kwargs,
    ):
        super().__init__(message, **kwargs)
