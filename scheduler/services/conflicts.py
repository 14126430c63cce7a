"""Interval model and overlap detection for screenings in a hall."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, TypeVar

from scheduler.domain.errors import ValidationFailed, Violation

T = TypeVar("T")


@dataclass(frozen=True)
class Interval:
    """Half-open time interval ``[start, end)``."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise ValueError("end must be after start")

    @classmethod
    def for_duration(cls, start: datetime, minutes: int) -> Interval:
        try:
            end = start + timedelta(minutes=minutes)
        except OverflowError:
            raise ValidationFailed([Violation("start_time", "out of range")]) from None
        return cls(start, end)


def overlaps(a: Interval, b: Interval) -> bool:
    """Return True if the two intervals share any instant.

    Overlap rule: ``a.start < b.end and b.start < a.end``. One interval ending
    exactly when the other starts is NOT an overlap.
    """
    return a.start < b.end and b.start < a.end


def find_conflicts(
    candidate: Interval,
    existing: Iterable[tuple[T, Interval]],
) -> list[tuple[T, Interval]]:
    """Return the ``(item, interval)`` pairs overlapping *candidate*, by start time."""
    hits = [(item, interval) for item, interval in existing if overlaps(candidate, interval)]
    return sorted(hits, key=lambda pair: pair[1].start)
