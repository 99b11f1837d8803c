"""
Typed errors raised by the access-control layer.

Each class carries the HTTP status the application-level handlers translate it
to (see app/main.py). Services raise these; endpoints never build status codes
for them by hand.
"""

from typing import List, Optional

from fastapi import status


class AccessControlError(Exception):
    """Base class for every error translated into an HTTP response."""
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationRequired(AccessControlError):
    """No principal attached to the request."""
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "User not authenticated"


class AuthorizationDenied(AccessControlError):
    """Principal present but missing one or more (permission, action) pairs."""
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"

    def __init__(self, message: Optional[str] = None, missing: Optional[List[str]] = None):
        super().__init__(message)
        self.missing = missing or []


class NotFound(AccessControlError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class Conflict(AccessControlError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Resource already exists"


class InvalidInput(AccessControlError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input"


class StoreFailure(AccessControlError):
    """Persistence call failed (network, timeout, corruption). Never retried here."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Storage unavailable"
