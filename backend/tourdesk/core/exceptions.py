"""
Domain exception hierarchy.

Services raise these; the API layer maps them to HTTP responses through a
single exception handler registered in main.py. Nothing here is retried
automatically.
"""

from typing import Any, Dict, Optional

from fastapi import status


class TourDeskError(Exception):
    """Base class for all booking/revenue/payout errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(message)


class ValidationError(TourDeskError):
    """Malformed or missing input."""

    status_code = status.HTTP_400_BAD_REQUEST


class PayoutLimitExceededError(ValidationError):
    """Payout amount is larger than the guide's unpaid computed share."""


class AuthorizationError(TourDeskError):
    """Operation not permitted for the referenced party (e.g. inactive guide)."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(TourDeskError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(
            f"{entity} {entity_id} not found",
            details={"entity": entity, "id": entity_id},
        )


class InvalidTransitionError(TourDeskError):
    """Disallowed lifecycle edge; the record is left unchanged."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, current: Optional[str] = None, target: Optional[str] = None):
        super().__init__(message, details={"current": current, "target": target})


class ConflictError(TourDeskError):
    """Concurrent write lost the race, or a duplicate payout submission."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"{message}. Refetch the record and retry.", details=details)
