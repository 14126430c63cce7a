"""Boundary checks run by the scheduling service before it opens a transaction.

The request models already enforce these rules at the HTTP edge; the service
repeats them so that in-process callers get the same guarantees.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation

from scheduler.domain.errors import ValidationFailed, Violation
from scheduler.domain.models import Quality, ScreeningCreate, ScreeningUpdate

_REQUIRED = ("movie_id", "theater_id", "hall_id", "start_time", "price", "quality")


@dataclass
class ValidationResult:
    violations: list[Violation] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.violations

    def add(self, field_name: str, reason: str) -> None:
        self.violations.append(Violation(field_name, reason))

    def raise_for_violations(self) -> None:
        if self.violations:
            raise ValidationFailed(self.violations)


def _check_field(result: ValidationResult, name: str, value) -> None:
    if value is None:
        result.add(name, "is required")
        return

    if name in ("movie_id", "theater_id", "hall_id"):
        if not isinstance(value, str) or not value.strip():
            result.add(name, "must be a non-empty string")
    elif name == "start_time":
        if not isinstance(value, datetime):
            result.add(name, "must be a datetime")
        elif value.tzinfo is None:
            result.add(name, "must be timezone-aware")
    elif name == "price":
        try:
            price = Decimal(value)
        except (InvalidOperation, TypeError, ValueError):
            result.add(name, "must be a decimal number")
            return
        if not price.is_finite():
            result.add(name, "must be a decimal number")
        elif price < 0:
            result.add(name, "must be greater than or equal to 0")
        elif price.as_tuple().exponent < -2:
            result.add(name, "must have at most two decimal places")
    elif name == "quality":
        allowed = [q.value for q in Quality]
        if value not in allowed:
            result.add(name, f"must be one of: {', '.join(allowed)}")


def validate_new_screening(data: ScreeningCreate) -> ValidationResult:
    result = ValidationResult()
    for name in _REQUIRED:
        _check_field(result, name, getattr(data, name, None))
    return result


def validate_screening_update(update: ScreeningUpdate) -> ValidationResult:
    """Check only the fields the caller supplied; an explicit None is rejected."""
    result = ValidationResult()
    for name, value in update.changes().items():
        _check_field(result, name, value)
    return result
