"""Concurrent schedule mutations against a file-backed database."""

from __future__ import annotations

import threading
import time
from functools import partial

import pytest
from sqlalchemy import select

from conftest import at, make_create
from scheduler.db import create_database
from scheduler.domain.errors import ConflictError
from scheduler.domain.models import Hall, Movie, ScreeningUpdate, Theater
from scheduler.repos.tables import TheaterRow
from scheduler.services.catalog import CatalogService
from scheduler.services.scheduling import SchedulingService


@pytest.fixture()
def file_database(tmp_path):
    db = create_database(f"sqlite:///{tmp_path / 'schedule.db'}")
    yield db
    db.dispose()


def _race(calls) -> tuple[list, list]:
    """Start every call at once; collect results and conflicts."""
    barrier = threading.Barrier(len(calls))
    created, conflicts, errors = [], [], []
    lock = threading.Lock()

    def worker(call):
        barrier.wait()
        try:
            result = call()
        except ConflictError as exc:
            with lock:
                conflicts.append(exc)
        except Exception as exc:  # surfaced below
            with lock:
                errors.append(exc)
        else:
            with lock:
                created.append(result)

    threads = [threading.Thread(target=worker, args=(c,)) for c in calls]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert errors == []
    return created, conflicts


def test_concurrent_overlapping_creates_commit_exactly_one(file_database):
    catalog = CatalogService(file_database)
    scheduling = SchedulingService(file_database)
    catalog.add_theater(Theater(theater_id="rex", name="Grand Rex"))
    catalog.add_hall(Hall(theater_id="rex", hall_id="h1"))
    movie = catalog.add_movie(Movie(title="Inception", duration_minutes=90))

    payloads = [make_create(movie.movie_id, at(10, minute)) for minute in (0, 15, 30, 45)]
    created, conflicts = _race([partial(scheduling.create_screening, p) for p in payloads])

    assert len(created) == 1
    assert len(conflicts) == 3
    assert len(scheduling.get_screenings_by_hall_id("h1", "rex")) == 1


def test_concurrent_creates_in_different_halls_all_commit(file_database):
    catalog = CatalogService(file_database)
    scheduling = SchedulingService(file_database)
    catalog.add_theater(Theater(theater_id="rex", name="Grand Rex"))
    for hall_id in ("h1", "h2", "h3"):
        catalog.add_hall(Hall(theater_id="rex", hall_id=hall_id))
    movie = catalog.add_movie(Movie(title="Inception", duration_minutes=90))

    payloads = [make_create(movie.movie_id, at(10), hall_id=h) for h in ("h1", "h2", "h3")]
    created, conflicts = _race([partial(scheduling.create_screening, p) for p in payloads])

    assert len(created) == 3
    assert conflicts == []


def test_move_into_hall_races_create_for_same_slot(file_database):
    catalog = CatalogService(file_database)
    scheduling = SchedulingService(file_database)
    catalog.add_theater(Theater(theater_id="rex", name="Grand Rex"))
    catalog.add_hall(Hall(theater_id="rex", hall_id="h1"))
    catalog.add_hall(Hall(theater_id="rex", hall_id="h2"))
    movie = catalog.add_movie(Movie(title="Inception", duration_minutes=90))
    existing = scheduling.create_screening(make_create(movie.movie_id, at(10), hall_id="h2"))

    created, conflicts = _race(
        [
            partial(scheduling.update_screening, existing.screening_id, ScreeningUpdate(hall_id="h1")),
            partial(scheduling.create_screening, make_create(movie.movie_id, at(10, 30))),
        ]
    )

    assert len(created) == 1
    assert len(conflicts) == 1
    assert len(scheduling.get_screenings_by_hall_id("h1", "rex")) == 1


def test_open_read_session_does_not_block_other_reads(file_database):
    catalog = CatalogService(file_database)
    catalog.add_theater(Theater(theater_id="rex", name="Grand Rex"))
    reading = threading.Event()
    release = threading.Event()

    def hold_read():
        with file_database.session() as session:
            session.execute(select(TheaterRow)).all()
            reading.set()
            release.wait(timeout=10)

    holder = threading.Thread(target=hold_read)
    holder.start()
    try:
        assert reading.wait(timeout=5)
        began = time.monotonic()
        theaters = catalog.list_theaters()
        elapsed = time.monotonic() - began
    finally:
        release.set()
        holder.join(timeout=10)

    assert [t.theater_id for t in theaters] == ["rex"]
    assert elapsed < 1
