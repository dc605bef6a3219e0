"""Error types shared by the queue data layer and the API."""

from __future__ import annotations


class QueueServiceError(Exception):
    """Base class for errors surfaced through the queue API."""

    status_code: int = 500
    error: str = "Internal server error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.error)
        self.message = message or self.error


class ValidationError(QueueServiceError):
    """Missing or malformed request input."""

    status_code = 400
    error = "Invalid request"


class NotFoundError(QueueServiceError):
    """Lookup by id matched no row.

    The HTTP status is decided by the API (``NOT_FOUND_STATUS``), not here.
    """

    error = "Not found"


class DataAccessError(QueueServiceError):
    """Database or connection failure, or a row the view should never produce."""

    error = "Database error"


class AuthenticationError(QueueServiceError):
    status_code = 401
    error = "Authentication failed"


class DeprecatedOperationWarning(UserWarning):
    """Emitted by legacy queue mutations that no longer write anything."""
