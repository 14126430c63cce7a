"""Movies, theaters and halls the scheduler reads from."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from scheduler.db import Database
from scheduler.domain.bus import EventBus
from scheduler.domain.errors import ConflictError, NotFoundError
from scheduler.domain.events import MovieDurationChanged
from scheduler.domain.models import Hall, Movie, MovieUpdate, Theater
from scheduler.repos.sql import HallRepository, MovieRepository, TheaterRepository

logger = logging.getLogger(__name__)


class CatalogService:
    def __init__(self, database: Database, bus: EventBus | None = None) -> None:
        self.database = database
        self.bus = bus

    # -- movies ------------------------------------------------------------

    def add_movie(self, movie: Movie) -> Movie:
        try:
            with self.database.transaction() as session:
                row = MovieRepository(session).add(movie)
                created = Movie.model_validate(row)
        except IntegrityError as exc:
            raise ConflictError(f"Movie {movie.movie_id} already exists") from exc
        logger.info("added movie %s (%s, %d min)", created.movie_id, created.title, created.duration_minutes)
        return created

    def get_movie(self, movie_id: str) -> Movie:
        with self.database.session() as session:
            row = MovieRepository(session).get(movie_id)
            if row is None:
                raise NotFoundError("Movie", movie_id)
            return Movie.model_validate(row)

    def list_movies(self) -> list[Movie]:
        with self.database.session() as session:
            return [Movie.model_validate(r) for r in MovieRepository(session).list_all()]

    def update_movie(self, movie_id: str, update: MovieUpdate) -> Movie:
        """Edit a movie. A duration change moves the derived end of its screenings."""
        changes = update.model_dump(exclude_unset=True, exclude_none=True)
        with self.database.transaction() as session:
            repo = MovieRepository(session)
            row = repo.get(movie_id)
            if row is None:
                raise NotFoundError("Movie", movie_id)
            old_duration = row.duration_minutes
            repo.update(row, changes)
            updated = Movie.model_validate(row)

        if updated.duration_minutes != old_duration:
            logger.info(
                "movie %s duration changed from %d to %d min",
                movie_id,
                old_duration,
                updated.duration_minutes,
            )
            if self.bus is not None:
                self.bus.publish(
                    MovieDurationChanged(
                        movie_id=movie_id,
                        old_duration_minutes=old_duration,
                        new_duration_minutes=updated.duration_minutes,
                        changed_at=datetime.now(timezone.utc),
                    )
                )
        return updated

    # -- theaters / halls --------------------------------------------------

    def add_theater(self, theater: Theater) -> Theater:
        with self.database.transaction() as session:
            repo = TheaterRepository(session)
            if repo.get(theater.theater_id) is not None:
                raise ConflictError(f"Theater {theater.theater_id} already exists")
            created = Theater.model_validate(repo.add(theater))
        logger.info("added theater %s", created.theater_id)
        return created

    def get_theater(self, theater_id: str) -> Theater:
        with self.database.session() as session:
            row = TheaterRepository(session).get(theater_id)
            if row is None:
                raise NotFoundError("Theater", theater_id)
            return Theater.model_validate(row)

    def list_theaters(self) -> list[Theater]:
        with self.database.session() as session:
            return [Theater.model_validate(r) for r in TheaterRepository(session).list_all()]

    def add_hall(self, hall: Hall) -> Hall:
        with self.database.transaction() as session:
            if TheaterRepository(session).get(hall.theater_id) is None:
                raise NotFoundError("Theater", hall.theater_id)
            repo = HallRepository(session)
            if repo.get(hall.theater_id, hall.hall_id) is not None:
                raise ConflictError(
                    f"Hall {hall.hall_id} already exists in theater {hall.theater_id}"
                )
            created = Hall.model_validate(repo.add(hall))
        logger.info("added hall %s/%s", created.theater_id, created.hall_id)
        return created

    def get_hall(self, theater_id: str, hall_id: str) -> Hall:
        with self.database.session() as session:
            row = HallRepository(session).get(theater_id, hall_id)
            if row is None:
                raise NotFoundError("Hall", f"{theater_id}/{hall_id}")
            return Hall.model_validate(row)

    def list_halls(self, theater_id: str) -> list[Hall]:
        self.get_theater(theater_id)
        with self.database.session() as session:
            return [Hall.model_validate(r) for r in HallRepository(session).list_for_theater(theater_id)]
