"""Demo catalog loaded at startup when ``SCHEDULER_SEED_DEMO_DATA`` is set."""

from __future__ import annotations

import logging
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal

from scheduler.domain.models import Hall, Movie, Quality, ScreeningCreate, Theater
from scheduler.services.catalog import CatalogService
from scheduler.services.scheduling import SchedulingService

logger = logging.getLogger(__name__)


def seed_demo_data(catalog: CatalogService, scheduling: SchedulingService) -> None:
    """Load a theater with two halls, two movies and tomorrow's evening schedule.

    Does nothing if the demo theater already exists.
    """
    if any(t.theater_id == "grand-rex" for t in catalog.list_theaters()):
        logger.info("demo data already present")
        return

    catalog.add_theater(
        Theater(theater_id="grand-rex", name="Le Grand Rex", address="1 bd Poissonniere", city="Paris")
    )
    catalog.add_hall(Hall(theater_id="grand-rex", hall_id="salle-1", name="Grande Salle", capacity=300))
    catalog.add_hall(Hall(theater_id="grand-rex", hall_id="salle-2", name="Salle 2", capacity=120))

    inception = catalog.add_movie(
        Movie(title="Inception", genre="Sci-Fi", director="Christopher Nolan", duration_minutes=148, recommended=True)
    )
    amelie = catalog.add_movie(
        Movie(title="Amelie", genre="Comedy", director="Jean-Pierre Jeunet", duration_minutes=122)
    )

    tomorrow = (datetime.now(timezone.utc) + timedelta(days=1)).date()
    evening = datetime.combine(tomorrow, time(18, 0), tzinfo=timezone.utc)
    scheduling.create_screening(
        ScreeningCreate(
            movie_id=inception.movie_id,
            theater_id="grand-rex",
            hall_id="salle-1",
            start_time=evening,
            price=Decimal("12.50"),
            quality=Quality.IMAX,
        )
    )
    scheduling.create_screening(
        ScreeningCreate(
            movie_id=amelie.movie_id,
            theater_id="grand-rex",
            hall_id="salle-1",
            start_time=evening + timedelta(minutes=148),
            price=Decimal("10.00"),
            quality=Quality.TWO_D,
        )
    )
    scheduling.create_screening(
        ScreeningCreate(
            movie_id=amelie.movie_id,
            theater_id="grand-rex",
            hall_id="salle-2",
            start_time=evening,
            price=Decimal("9.00"),
            quality=Quality.TWO_D,
        )
    )
    logger.info("seeded demo catalog and schedule")
