"""Screening scheduling service: validated, conflict-checked schedule mutations."""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy.orm import Session

from scheduler.db import Database
from scheduler.domain.bus import EventBus
from scheduler.domain.errors import ConflictError, NotFoundError, ValidationFailed, Violation
from scheduler.domain.events import (
    ScheduleConflictRejected,
    ScreeningCreated,
    ScreeningDeleted,
    ScreeningUpdated,
)
from scheduler.domain.models import (
    AvailabilityRequest,
    AvailabilityResponse,
    ScheduleConflict,
    Screening,
    ScreeningCreate,
    ScreeningDetail,
    ScreeningFilters,
    ScreeningSeriesCreate,
    ScreeningUpdate,
)
from scheduler.repos.sql import (
    HallRepository,
    MovieRepository,
    ScreeningRepository,
    day_window,
)
from scheduler.repos.tables import HallRow, MovieRow, ScreeningRow
from scheduler.services.conflicts import Interval, find_conflicts
from scheduler.services.recurrence import expand_start_times
from scheduler.services.validation import (
    validate_new_screening,
    validate_screening_update,
)

logger = logging.getLogger(__name__)


class SchedulingService:
    """Keeps every hall's screenings pairwise non-overlapping.

    Create and update run their existence checks, overlap scan and write in a
    single transaction. The hall row is locked before the scan, so concurrent
    mutations of the same hall are serialized while other halls proceed.

    ``NotFoundError`` and ``ConflictError`` are surfaced unchanged and never
    retried; the transaction is rolled back before either reaches the caller.
    """

    def __init__(self, database: Database, bus: EventBus | None = None) -> None:
        self.database = database
        self.bus = bus

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_screening(self, data: ScreeningCreate) -> ScreeningDetail:
        validate_new_screening(data).raise_for_violations()

        candidate: Interval | None = None
        try:
            with self.database.transaction() as session:
                movie = self._get_movie_or_raise(session, data.movie_id)
                self._lock_halls(session, [(data.theater_id, data.hall_id)])
                candidate = Interval.for_duration(data.start_time, movie.duration_minutes)
                self._assert_no_overlap(session, data.theater_id, data.hall_id, candidate)

                screening = Screening(**data.model_dump())
                repo = ScreeningRepository(session)
                repo.add(screening)
                detail = repo.get_detail(screening.screening_id)
        except ConflictError as exc:
            self._reject(exc, None, data.theater_id, data.hall_id, candidate)
            raise

        logger.info(
            "scheduled screening %s in %s/%s from %s to %s",
            detail.screening_id,
            detail.theater_id,
            detail.hall_id,
            candidate.start.isoformat(),
            candidate.end.isoformat(),
        )
        self._publish(
            ScreeningCreated(
                screening_id=detail.screening_id,
                theater_id=detail.theater_id,
                hall_id=detail.hall_id,
                start_time=candidate.start,
                end_time=candidate.end,
            )
        )
        return detail

    def create_screening_series(self, series: ScreeningSeriesCreate) -> list[ScreeningDetail]:
        """Schedule one screening per RRULE occurrence, all or nothing.

        Every occurrence is checked against the hall, and one conflict rolls
        back the whole run. Occurrences that overlap each other make the rule
        itself invalid.
        """
        data = series.screening
        validate_new_screening(data).raise_for_violations()
        starts = expand_start_times(data.start_time, series.rule, series.until)

        candidate: Interval | None = None
        try:
            with self.database.transaction() as session:
                movie = self._get_movie_or_raise(session, data.movie_id)
                self._lock_halls(session, [(data.theater_id, data.hall_id)])
                repo = ScreeningRepository(session)
                created: list[tuple[str, Interval]] = []
                for start in starts:
                    candidate = Interval.for_duration(start, movie.duration_minutes)
                    if find_conflicts(candidate, created):
                        raise ValidationFailed(
                            [Violation("rule", "occurrences overlap each other")]
                        )
                    self._assert_no_overlap(session, data.theater_id, data.hall_id, candidate)
                    screening = Screening(**data.model_dump(exclude={"start_time"}), start_time=start)
                    repo.add(screening)
                    created.append((screening.screening_id, candidate))
                details = [repo.get_detail(screening_id) for screening_id, _ in created]
        except ConflictError as exc:
            self._reject(exc, None, data.theater_id, data.hall_id, candidate)
            raise

        logger.info(
            "scheduled %d screening(s) in %s/%s with rule %s",
            len(details),
            data.theater_id,
            data.hall_id,
            series.rule,
        )
        for screening_id, interval in created:
            self._publish(
                ScreeningCreated(
                    screening_id=screening_id,
                    theater_id=data.theater_id,
                    hall_id=data.hall_id,
                    start_time=interval.start,
                    end_time=interval.end,
                )
            )
        return details

    def update_screening(self, screening_id: str, update: ScreeningUpdate) -> ScreeningDetail:
        """Apply a partial update, re-validating the full schedule.

        Even a price-only change re-runs the movie, hall and overlap checks
        against the merged values; the screening itself is excluded from the scan.
        """
        validate_screening_update(update).raise_for_violations()
        changes = update.changes()

        candidate: Interval | None = None
        theater_id = hall_id = None
        try:
            with self.database.transaction() as session:
                repo = ScreeningRepository(session)
                row = repo.get(screening_id)
                if row is None:
                    raise NotFoundError("Screening", screening_id)

                movie_id = changes.get("movie_id", row.movie_id)
                theater_id = changes.get("theater_id", row.theater_id)
                hall_id = changes.get("hall_id", row.hall_id)
                start_time = changes.get("start_time", row.start_time)

                movie = self._get_movie_or_raise(session, movie_id)
                self._lock_halls(
                    session,
                    [(theater_id, hall_id), (row.theater_id, row.hall_id)],
                )
                candidate = Interval.for_duration(start_time, movie.duration_minutes)
                self._assert_no_overlap(
                    session, theater_id, hall_id, candidate, exclude_id=screening_id
                )

                repo.update(row, changes)
                detail = repo.get_detail(screening_id)
        except ConflictError as exc:
            self._reject(exc, screening_id, theater_id, hall_id, candidate)
            raise

        logger.info(
            "updated screening %s (%s)", screening_id, ", ".join(sorted(changes)) or "no fields"
        )
        self._publish(
            ScreeningUpdated(
                screening_id=screening_id,
                changed_fields=sorted(changes),
                start_time=candidate.start,
                end_time=candidate.end,
            )
        )
        return detail

    def delete_screening(self, screening_id: str) -> None:
        with self.database.transaction() as session:
            repo = ScreeningRepository(session)
            row = repo.get(screening_id)
            if row is None:
                raise NotFoundError("Screening", screening_id)
            theater_id, hall_id = row.theater_id, row.hall_id
            repo.delete(row)

        logger.info("deleted screening %s from %s/%s", screening_id, theater_id, hall_id)
        self._publish(
            ScreeningDeleted(screening_id=screening_id, theater_id=theater_id, hall_id=hall_id)
        )

    def check_availability(self, request: AvailabilityRequest) -> AvailabilityResponse:
        """Dry-run the overlap check and report every conflicting screening."""
        with self.database.session() as session:
            movie = self._get_movie_or_raise(session, request.movie_id)
            self._get_hall_or_raise(session, request.theater_id, request.hall_id)
            candidate = Interval.for_duration(request.start_time, movie.duration_minutes)
            hits = find_conflicts(
                candidate,
                self._booked_intervals(
                    session,
                    request.theater_id,
                    request.hall_id,
                    request.exclude_screening_id,
                ),
            )

        return AvailabilityResponse(
            available=not hits,
            start_time=candidate.start,
            end_time=candidate.end,
            conflicts=[
                ScheduleConflict(
                    screening_id=row.screening_id,
                    movie_title=title,
                    start_time=interval.start,
                    end_time=interval.end,
                )
                for (row, title), interval in hits
            ],
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_screening_by_id(self, screening_id: str) -> ScreeningDetail:
        with self.database.session() as session:
            detail = ScreeningRepository(session).get_detail(screening_id)
        if detail is None:
            raise NotFoundError("Screening", screening_id)
        return detail

    def get_all_screenings(self) -> list[ScreeningDetail]:
        with self.database.session() as session:
            return ScreeningRepository(session).list_details()

    def get_screenings_by_movie_id(self, movie_id: str) -> list[ScreeningDetail]:
        with self.database.session() as session:
            return ScreeningRepository(session).list_details(ScreeningRow.movie_id == movie_id)

    def get_screenings_by_theater_id(self, theater_id: str) -> list[ScreeningDetail]:
        with self.database.session() as session:
            return ScreeningRepository(session).list_details(
                ScreeningRow.theater_id == theater_id
            )

    def get_screenings_by_hall_id(
        self, hall_id: str, theater_id: str | None = None
    ) -> list[ScreeningDetail]:
        """Hall ids are only unique within a theater; pass *theater_id* to scope them."""
        criteria = [ScreeningRow.hall_id == hall_id]
        if theater_id:
            criteria.append(ScreeningRow.theater_id == theater_id)
        with self.database.session() as session:
            return ScreeningRepository(session).list_details(*criteria)

    def get_screenings_by_date(self, day: date) -> list[ScreeningDetail]:
        start, end = day_window(day)
        with self.database.session() as session:
            return ScreeningRepository(session).list_details(
                ScreeningRow.start_time >= start, ScreeningRow.start_time < end
            )

    def search_screenings(self, filters: ScreeningFilters) -> list[ScreeningDetail]:
        with self.database.session() as session:
            return ScreeningRepository(session).search(filters)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_movie_or_raise(self, session: Session, movie_id: str) -> MovieRow:
        movie = MovieRepository(session).get(movie_id)
        if movie is None:
            logger.warning("rejected schedule: movie %s not found", movie_id)
            raise NotFoundError("Movie", movie_id)
        return movie

    def _get_hall_or_raise(
        self, session: Session, theater_id: str, hall_id: str, lock: bool = False
    ) -> HallRow:
        hall = HallRepository(session).get(theater_id, hall_id, lock=lock)
        if hall is None:
            logger.warning("rejected schedule: hall %s/%s not found", theater_id, hall_id)
            raise NotFoundError("Hall", f"{theater_id}/{hall_id}")
        return hall

    def _lock_halls(self, session: Session, keys: list[tuple[str, str]]) -> None:
        """Lock the target hall (the first key) plus any other halls touched.

        Locks are taken in sorted key order so two updates moving screenings
        between the same pair of halls cannot deadlock. Only the target hall
        must exist; the others are the screening's current hall.
        """
        target = keys[0]
        for key in sorted(set(keys)):
            if key == target:
                self._get_hall_or_raise(session, *key, lock=True)
            else:
                HallRepository(session).get(*key, lock=True)

    def _booked_intervals(
        self,
        session: Session,
        theater_id: str,
        hall_id: str,
        exclude_id: str | None = None,
    ) -> list[tuple[tuple[ScreeningRow, str], Interval]]:
        booked = ScreeningRepository(session).list_in_hall(theater_id, hall_id, exclude_id)
        return [
            ((row, movie.title), Interval.for_duration(row.start_time, movie.duration_minutes))
            for row, movie in booked
        ]

    def _assert_no_overlap(
        self,
        session: Session,
        theater_id: str,
        hall_id: str,
        candidate: Interval,
        exclude_id: str | None = None,
    ) -> None:
        booked = self._booked_intervals(session, theater_id, hall_id, exclude_id)
        logger.debug(
            "scanning %d screening(s) in %s/%s for %s-%s",
            len(booked),
            theater_id,
            hall_id,
            candidate.start.isoformat(),
            candidate.end.isoformat(),
        )
        hits = find_conflicts(candidate, booked)
        if hits:
            (row, title), interval = hits[0]
            raise ConflictError.hall_occupied(row.screening_id, title, interval.start, interval.end)

    def _reject(
        self,
        exc: ConflictError,
        screening_id: str | None,
        theater_id: str | None,
        hall_id: str | None,
        candidate: Interval | None,
    ) -> None:
        logger.warning("rejected schedule in %s/%s: %s", theater_id, hall_id, exc.message)
        if exc.screening_id is None or candidate is None:
            return
        self._publish(
            ScheduleConflictRejected(
                screening_id=screening_id,
                conflicting_screening_id=exc.screening_id,
                theater_id=theater_id,
                hall_id=hall_id,
                requested_start=candidate.start,
                requested_end=candidate.end,
            )
        )

    def _publish(self, event) -> None:
        if self.bus is not None:
            self.bus.publish(event)
