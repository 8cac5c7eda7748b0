"""Domain errors raised by the service layer.

Every error carries a stable machine-readable ``kind`` and the HTTP status
the API layer renders it with. The handler in ``medqueue.main`` turns them
into ``{"error": kind, "message": ...}`` responses.
"""
from typing import Dict, Optional
from fastapi import status


class AppError(Exception):
    kind: str = "error"
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, headers: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.headers = headers

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class ValidationError(AppError):
    """Malformed input, e.g. an unparseable appointment date."""
    kind = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(AppError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT


class InvalidTransitionError(ConflictError):
    """A verification decision on a doctor that is no longer pending."""
    kind = "invalid_transition"


class EligibilityError(AppError):
    """Booking against a doctor who may not receive appointments."""
    kind = "doctor_not_eligible"
    status_code = status.HTTP_409_CONFLICT


class ContentionError(AppError):
    """Token allocation ran out of retries. Safe for the caller to retry."""
    kind = "contention"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str, retry_after: int = 1):
        super().__init__(message, headers={"Retry-After": str(retry_after)})


class AuthorizationError(AppError):
    kind = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Not enough permissions"):
        super().__init__(message)
