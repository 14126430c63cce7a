"""In-memory audit timeline for screening changes."""

from __future__ import annotations

import threading

from scheduler.domain.models import TimelineEntry, TimelineEntryType


class TimelineRepository:
    """List-backed store for TimelineEntry instances, safe across request threads."""

    def __init__(self) -> None:
        self._entries: list[TimelineEntry] = []
        self._lock = threading.Lock()

    def add(self, entry: TimelineEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def list_for_screening(self, screening_id: str) -> list[TimelineEntry]:
        with self._lock:
            entries = [e for e in self._entries if e.screening_id == screening_id]
        return sorted(entries, key=lambda e: e.timestamp)

    def list_by_type(self, entry_type: TimelineEntryType) -> list[TimelineEntry]:
        with self._lock:
            return [e for e in self._entries if e.type == entry_type]
