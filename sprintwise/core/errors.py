"""
Exception taxonomy for the progression engine.

NotFoundError and InvalidRequestError are raised before any mutation
happens. GenerationFailure propagates from single-sprint generation and
ends a batch early. Ungradeable answers are not errors.
"""

from __future__ import annotations

from typing import Any


class ProgressionError(Exception):
    """Base class for all engine errors."""

    status_code: int = 500
    default_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API layers and structured logs."""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "code": self.code,
            "status_code": self.status_code,
            "details": self.details,
        }


class NotFoundError(ProgressionError):
    """Objective, sprint, quiz or schedule is absent."""

    status_code = 404
    default_code = "NOT_FOUND"


class InvalidRequestError(ProgressionError):
    """Request is malformed or violates a precondition."""

    status_code = 400
    default_code = "INVALID_REQUEST"


class AttemptLimitExceeded(InvalidRequestError):
    """Learner has used every attempt the quiz allows."""

    default_code = "NO_ATTEMPTS_REMAINING"


class GenerationFailure(ProgressionError):
    """The planner threw, timed out, or returned an unusable plan."""

    status_code = 502
    default_code = "GENERATION_FAILED"


class PersistenceError(ProgressionError):
    """A persistence call failed."""

    default_code = "PERSISTENCE_ERROR"


class DuplicateSprintError(PersistenceError):
    """A sprint already exists for (objective_id, day_number)."""

    status_code = 409
    default_code = "SPRINT_EXISTS"

    def __init__(self, objective_id: str, day_number: int):
        super().__init__(
            f"Sprint already exists for objective {objective_id} day {day_number}",
            details={"objective_id": objective_id, "day_number": day_number},
        )
        self.objective_id = objective_id
        self.day_number = day_number
