"""Shared fixtures: a fresh in-memory database and services per test."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from scheduler.db import create_database
from scheduler.domain.bus import EventBus
from scheduler.domain.handlers import HandlerRegistry
from scheduler.domain.models import (
    Hall,
    Movie,
    Quality,
    ScreeningCreate,
    Theater,
)
from scheduler.repos.memory import TimelineRepository
from scheduler.services.catalog import CatalogService
from scheduler.services.scheduling import SchedulingService

DAY = datetime(2026, 3, 14, tzinfo=timezone.utc)


def at(hour: int, minute: int = 0, day: datetime = DAY) -> datetime:
    return day.replace(hour=hour, minute=minute)


@pytest.fixture()
def database():
    db = create_database("sqlite://")
    yield db
    db.dispose()


@pytest.fixture()
def env(database):
    """Bus, timeline, services and a small catalog.

    Theater ``rex`` has halls ``h1`` and ``h2``; theater ``odeon`` has ``h3``.
    Movie ``m90`` runs 90 minutes, ``m120`` runs 120 minutes.
    """
    bus = EventBus()
    timeline_repo = TimelineRepository()
    catalog = CatalogService(database, bus)
    scheduling = SchedulingService(database, bus)
    registry = HandlerRegistry(bus=bus, timeline_repo=timeline_repo, scheduling=scheduling)

    catalog.add_theater(Theater(theater_id="rex", name="Grand Rex", address="1 bd Poissonniere", city="Paris"))
    catalog.add_theater(Theater(theater_id="odeon", name="Odeon", address="7 rue Monge", city="Lyon"))
    catalog.add_hall(Hall(theater_id="rex", hall_id="h1", name="Grande Salle"))
    catalog.add_hall(Hall(theater_id="rex", hall_id="h2", name="Petite Salle"))
    catalog.add_hall(Hall(theater_id="odeon", hall_id="h3", name="Salle Lumiere"))
    m90 = catalog.add_movie(
        Movie(title="Inception", genre="Sci-Fi", director="Christopher Nolan", duration_minutes=90, recommended=True)
    )
    m120 = catalog.add_movie(
        Movie(title="Amelie", genre="Comedy", director="Jean-Pierre Jeunet", duration_minutes=120)
    )

    class Env:
        pass

    e = Env()
    e.database = database
    e.bus = bus
    e.timeline_repo = timeline_repo
    e.catalog = catalog
    e.scheduling = scheduling
    e.registry = registry
    e.m90 = m90
    e.m120 = m120
    return e


def make_create(movie_id: str, start: datetime, **overrides) -> ScreeningCreate:
    defaults = dict(
        movie_id=movie_id,
        theater_id="rex",
        hall_id="h1",
        start_time=start,
        price=Decimal("10.00"),
        quality=Quality.TWO_D,
    )
    defaults.update(overrides)
    return ScreeningCreate(**defaults)
