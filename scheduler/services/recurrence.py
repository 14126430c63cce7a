"""Expand an RRULE into the start times of a run of screenings."""

from __future__ import annotations

from datetime import datetime, timezone

from dateutil.rrule import rrulestr

from scheduler.domain.errors import ValidationFailed, Violation

MAX_OCCURRENCES = 366


def expand_start_times(
    first_start: datetime,
    rule: str,
    until: datetime | None = None,
) -> list[datetime]:
    """Return every start time produced by *rule*, beginning at *first_start*.

    *rule* is an RRULE body such as ``FREQ=DAILY;COUNT=7`` or
    ``FREQ=WEEKLY;BYDAY=FR,SA``. Either the rule carries ``COUNT``/``UNTIL`` or
    *until* must be given; runs longer than ``MAX_OCCURRENCES`` are refused.
    """
    body = rule.strip()
    if body.upper().startswith("RRULE:"):
        body = body[len("RRULE:"):]
    if until is not None and "UNTIL=" not in body.upper() and "COUNT=" not in body.upper():
        body = f"{body};UNTIL={until.astimezone(timezone.utc).strftime('%Y%m%dT%H%M%SZ')}"
    if "UNTIL=" not in body.upper() and "COUNT=" not in body.upper():
        raise ValidationFailed([Violation("rule", "must be bounded by COUNT, UNTIL or until")])

    start = first_start.astimezone(timezone.utc)
    rule_str = f"DTSTART:{start.strftime('%Y%m%dT%H%M%SZ')}\nRRULE:{body}"
    try:
        parsed = rrulestr(rule_str)
    except (ValueError, TypeError) as exc:
        raise ValidationFailed([Violation("rule", f"invalid RRULE: {exc}")]) from exc

    starts: list[datetime] = []
    for dt in parsed:
        # Make sure the datetime is timezone-aware
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        starts.append(dt)
        if len(starts) > MAX_OCCURRENCES:
            raise ValidationFailed(
                [Violation("rule", f"expands to more than {MAX_OCCURRENCES} screenings")]
            )
    if not starts:
        raise ValidationFailed([Violation("rule", "produces no screenings")])
    return starts
