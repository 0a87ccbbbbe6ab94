"""Domain errors raised by the services and translated to JSON responses in ``tourney.main``."""

from typing import Optional


class TourneyError(Exception):
    """Base error carrying an HTTP status and a short client-facing message."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(TourneyError):
    status_code = 400
    default_message = "Invalid request"


class Unauthenticated(TourneyError):
    status_code = 401
    default_message = "Please log in first."


class Forbidden(TourneyError):
    status_code = 403
    default_message = "You do not have permission to perform this action."


class NotFound(TourneyError):
    status_code = 404
    default_message = "Not found"


class Conflict(TourneyError):
    # Duplicate records are reported as plain bad requests to clients.
    status_code = 400
    default_message = "Already exists"


class StoreError(TourneyError):
    status_code = 500
    default_message = "Database error. Please try again later."


__all__ = [
    "TourneyError",
    "ValidationError",
    "Unauthenticated",
    "Forbidden",
    "NotFound",
    "Conflict",
    "StoreError",
]
