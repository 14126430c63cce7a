"""Errors raised by the scheduling and catalog services.

Every error carries the HTTP status code the API layer answers with, so the
transport mapping lives in one place.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


class SchedulingError(Exception):
    """Base class for deterministic, non-retryable service outcomes."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict:
        return {"detail": self.message}


class NotFoundError(SchedulingError):
    status_code = 404

    def __init__(self, resource: str, identifier: str | None = None) -> None:
        if identifier is None:
            message = f"{resource} not found"
        else:
            message = f"{resource} with id {identifier} not found"
        super().__init__(message)
        self.resource = resource
        self.identifier = identifier

    def to_payload(self) -> dict:
        return {"detail": self.message, "resource": self.resource}


class ConflictError(SchedulingError):
    """Raised for duplicate catalog keys and for occupied halls.

    When raised by the overlap check, ``screening_id``, ``movie_title``,
    ``start_time`` and ``end_time`` describe the screening already booked.
    """

    status_code = 409

    def __init__(
        self,
        message: str,
        screening_id: str | None = None,
        movie_title: str | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> None:
        super().__init__(message)
        self.screening_id = screening_id
        self.movie_title = movie_title
        self.start_time = start_time
        self.end_time = end_time

    @classmethod
    def hall_occupied(
        cls,
        screening_id: str,
        movie_title: str,
        start_time: datetime,
        end_time: datetime,
    ) -> ConflictError:
        return cls(
            f"Hall is occupied: overlaps with screening '{movie_title}' "
            f"from {start_time.isoformat()} to {end_time.isoformat()}",
            screening_id=screening_id,
            movie_title=movie_title,
            start_time=start_time,
            end_time=end_time,
        )

    def to_payload(self) -> dict:
        payload: dict = {"detail": self.message}
        if self.screening_id is not None:
            payload["conflict"] = {
                "screening_id": self.screening_id,
                "movie_title": self.movie_title,
                "start_time": self.start_time.isoformat() if self.start_time else None,
                "end_time": self.end_time.isoformat() if self.end_time else None,
            }
        return payload


@dataclass(frozen=True)
class Violation:
    field: str
    reason: str


class ValidationFailed(SchedulingError):
    status_code = 422

    def __init__(self, violations: list[Violation]) -> None:
        summary = "; ".join(f"{v.field}: {v.reason}" for v in violations)
        super().__init__(f"Invalid screening: {summary}")
        self.violations = violations

    def to_payload(self) -> dict:
        return {
            "detail": self.message,
            "violations": [{"field": v.field, "reason": v.reason} for v in self.violations],
        }
