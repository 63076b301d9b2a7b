"""
Error taxonomy for the attempt, insight and dashboard services.

Every error raised on the request path derives from QuizPulseError and
carries a ``kind`` the HTTP layer maps to a status code.
"""

from __future__ import annotations


class QuizPulseError(Exception):
    """Base class for all service errors."""

    kind = "internal"

    def __init__(self, message: str, **details: object):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"error": self.kind, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(QuizPulseError):
    """Quiz, question or attempt does not exist."""

    kind = "not_found"


class UnauthorizedError(QuizPulseError):
    """Caller tried to access another user's data."""

    kind = "unauthorized"


class ConflictError(QuizPulseError):
    """Duplicate answer, or the attempt is no longer in progress."""

    kind = "conflict"


class ValidationError(QuizPulseError):
    """Malformed identifier or question/quiz mismatch."""

    kind = "validation"


class InternalError(QuizPulseError):
    """Storage or transaction failure."""

    kind = "internal"
