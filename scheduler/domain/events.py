"""Domain events published by the scheduler after a transaction settles."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ScreeningCreated(BaseModel):
    """Fired after a new screening is committed."""

    screening_id: str
    theater_id: str
    hall_id: str
    start_time: datetime
    end_time: datetime


class ScreeningUpdated(BaseModel):
    """Fired after an update is committed, with the fields the caller supplied."""

    screening_id: str
    changed_fields: list[str] = Field(default_factory=list)
    start_time: datetime
    end_time: datetime


class ScreeningDeleted(BaseModel):
    screening_id: str
    theater_id: str
    hall_id: str


class ScheduleConflictRejected(BaseModel):
    """Fired after a create/update was rolled back because the hall was occupied.

    ``screening_id`` is the screening being updated, or ``None`` for a create.
    """

    screening_id: str | None = None
    conflicting_screening_id: str
    theater_id: str
    hall_id: str
    requested_start: datetime
    requested_end: datetime


class MovieDurationChanged(BaseModel):
    """Fired when a movie's duration is edited; derived end times move with it."""

    movie_id: str
    old_duration_minutes: int
    new_duration_minutes: int
    changed_at: datetime
