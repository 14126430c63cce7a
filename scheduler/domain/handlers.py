"""Domain-event handlers that maintain the screening audit timeline."""

from __future__ import annotations

import logging

from scheduler.domain.bus import EventBus
from scheduler.domain.events import (
    MovieDurationChanged,
    ScheduleConflictRejected,
    ScreeningCreated,
    ScreeningDeleted,
    ScreeningUpdated,
)
from scheduler.domain.models import AvailabilityRequest, TimelineEntry, TimelineEntryType
from scheduler.repos.memory import TimelineRepository
from scheduler.services.scheduling import SchedulingService

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Wires domain-event handlers to the bus."""

    def __init__(
        self,
        bus: EventBus,
        timeline_repo: TimelineRepository,
        scheduling: SchedulingService,
    ) -> None:
        self.bus = bus
        self.timeline_repo = timeline_repo
        self.scheduling = scheduling
        self._register()

    def _register(self) -> None:
        self.bus.subscribe(ScreeningCreated, self.on_screening_created)
        self.bus.subscribe(ScreeningUpdated, self.on_screening_updated)
        self.bus.subscribe(ScreeningDeleted, self.on_screening_deleted)
        self.bus.subscribe(ScheduleConflictRejected, self.on_conflict_rejected)
        self.bus.subscribe(MovieDurationChanged, self.on_movie_duration_changed)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_screening_created(self, event: ScreeningCreated) -> None:
        self.timeline_repo.add(
            TimelineEntry(
                screening_id=event.screening_id,
                type=TimelineEntryType.CREATED,
                payload={
                    "theater_id": event.theater_id,
                    "hall_id": event.hall_id,
                    "start_time": event.start_time.isoformat(),
                    "end_time": event.end_time.isoformat(),
                },
            )
        )

    def on_screening_updated(self, event: ScreeningUpdated) -> None:
        self.timeline_repo.add(
            TimelineEntry(
                screening_id=event.screening_id,
                type=TimelineEntryType.UPDATED,
                payload={
                    "changed_fields": event.changed_fields,
                    "start_time": event.start_time.isoformat(),
                    "end_time": event.end_time.isoformat(),
                },
            )
        )

    def on_screening_deleted(self, event: ScreeningDeleted) -> None:
        self.timeline_repo.add(
            TimelineEntry(
                screening_id=event.screening_id,
                type=TimelineEntryType.DELETED,
                payload={"theater_id": event.theater_id, "hall_id": event.hall_id},
            )
        )

    def on_conflict_rejected(self, event: ScheduleConflictRejected) -> None:
        # Rejected creates have no id of their own; file them under the
        # screening that already holds the slot.
        self.timeline_repo.add(
            TimelineEntry(
                screening_id=event.screening_id or event.conflicting_screening_id,
                type=TimelineEntryType.CONFLICT_REJECTED,
                payload={
                    "conflicting_screening_id": event.conflicting_screening_id,
                    "theater_id": event.theater_id,
                    "hall_id": event.hall_id,
                    "requested_start": event.requested_start.isoformat(),
                    "requested_end": event.requested_end.isoformat(),
                },
            )
        )

    def on_movie_duration_changed(self, event: MovieDurationChanged) -> None:
        """Flag every upcoming screening of the movie whose end time moved.

        Screenings that now run into a neighbour are listed in the payload so
        staff can reschedule them; nothing is changed automatically.
        """
        upcoming = [
            s
            for s in self.scheduling.get_screenings_by_movie_id(event.movie_id)
            if s.start_time >= event.changed_at
        ]
        for screening in upcoming:
            availability = self.scheduling.check_availability(
                AvailabilityRequest(
                    movie_id=screening.movie_id,
                    theater_id=screening.theater_id,
                    hall_id=screening.hall_id,
                    start_time=screening.start_time,
                    exclude_screening_id=screening.screening_id,
                )
            )
            overlapping = [c.screening_id for c in availability.conflicts]
            if overlapping:
                logger.warning(
                    "screening %s now overlaps %s after duration change of movie %s",
                    screening.screening_id,
                    ", ".join(overlapping),
                    event.movie_id,
                )
            self.timeline_repo.add(
                TimelineEntry(
                    screening_id=screening.screening_id,
                    type=TimelineEntryType.DURATION_CHANGED,
                    payload={
                        "old_duration_minutes": event.old_duration_minutes,
                        "new_duration_minutes": event.new_duration_minutes,
                        "end_time": availability.end_time.isoformat(),
                        "overlapping_screening_ids": overlapping,
                    },
                )
            )
