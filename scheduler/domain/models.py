"""Domain models for the screening scheduler."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import StrEnum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

Price = Annotated[Decimal, Field(ge=0, max_digits=10, decimal_places=2)]


class Quality(StrEnum):
    TWO_D = "2D"
    THREE_D = "3D"
    IMAX = "IMAX"
    FOUR_DX = "4DX"
    DOLBY = "Dolby"


class TimelineEntryType(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    CONFLICT_REJECTED = "conflict_rejected"
    DURATION_CHANGED = "duration_changed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def as_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Catalog records (owned by collaborators, read by the scheduler)
# ---------------------------------------------------------------------------


class Movie(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    movie_id: str = Field(default_factory=_new_id)
    title: str = Field(min_length=1, max_length=255)
    description: str = ""
    genre: str = ""
    director: str = ""
    duration_minutes: int = Field(gt=0)
    recommended: bool = False


class Theater(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    theater_id: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1)
    address: str = ""
    city: str = ""


class Hall(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    theater_id: str = Field(min_length=1, max_length=100)
    hall_id: str = Field(min_length=1, max_length=100)
    name: str = ""
    capacity: int = Field(default=0, ge=0)


class HallCreate(BaseModel):
    hall_id: str = Field(min_length=1, max_length=100)
    name: str = ""
    capacity: int = Field(default=0, ge=0)


class MovieUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    genre: str | None = None
    director: str | None = None
    duration_minutes: int | None = Field(default=None, gt=0)
    recommended: bool | None = None


# ---------------------------------------------------------------------------
# Screenings
# ---------------------------------------------------------------------------


class Screening(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    screening_id: str = Field(default_factory=_new_id)
    movie_id: str
    theater_id: str
    hall_id: str
    start_time: datetime
    price: Price
    quality: Quality
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("start_time", "created_at", "updated_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class ScreeningDetail(Screening):
    """A screening joined with its movie, theater and hall.

    ``end_time`` is derived from the movie's duration at read time and is not
    stored: editing a movie's duration moves the end of every screening of it.
    """

    movie: Movie
    theater: Theater
    hall: Hall

    @computed_field
    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(minutes=self.movie.duration_minutes)


class ScreeningCreate(BaseModel):
    movie_id: str = Field(min_length=1)
    theater_id: str = Field(min_length=1, max_length=100)
    hall_id: str = Field(min_length=1, max_length=100)
    start_time: datetime
    price: Price
    quality: Quality = Quality.TWO_D

    @field_validator("start_time")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class ScreeningSeriesCreate(BaseModel):
    """A run of identical screenings, one per RRULE occurrence."""

    screening: ScreeningCreate
    rule: str = Field(min_length=1, max_length=200)
    until: datetime | None = None

    @field_validator("until")
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value) if value is not None else None


class ScreeningUpdate(BaseModel):
    """Partial update; only explicitly supplied fields are applied."""

    movie_id: str | None = Field(default=None, min_length=1)
    theater_id: str | None = Field(default=None, min_length=1, max_length=100)
    hall_id: str | None = Field(default=None, min_length=1, max_length=100)
    start_time: datetime | None = None
    price: Price | None = None
    quality: Quality | None = None

    @field_validator("start_time")
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value) if value is not None else None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class ScreeningFilters(BaseModel):
    movie_id: str | None = None
    theater_id: str | None = None
    hall_id: str | None = None
    price_min: Decimal | None = Field(default=None, ge=0)
    price_max: Decimal | None = Field(default=None, ge=0)
    quality: str | None = None
    recommended: bool | None = None
    day: date | None = None
    start_time: datetime | None = None
    q: str | None = Field(default=None, max_length=100)


class AvailabilityRequest(BaseModel):
    movie_id: str = Field(min_length=1)
    theater_id: str = Field(min_length=1)
    hall_id: str = Field(min_length=1)
    start_time: datetime
    exclude_screening_id: str | None = None

    @field_validator("start_time")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class ScheduleConflict(BaseModel):
    screening_id: str
    movie_title: str
    start_time: datetime
    end_time: datetime


class AvailabilityResponse(BaseModel):
    available: bool
    start_time: datetime
    end_time: datetime
    conflicts: list[ScheduleConflict] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Audit timeline
# ---------------------------------------------------------------------------


class TimelineEntry(BaseModel):
    id: str = Field(default_factory=_new_id)
    screening_id: str
    timestamp: datetime = Field(default_factory=_utcnow)
    type: TimelineEntryType
    payload: dict = Field(default_factory=dict)
