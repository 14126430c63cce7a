"""Session-scoped repositories over the relational store.

Each repository wraps a ``Session`` handed out by ``Database``; the caller owns
the transaction boundary.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, time, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import Select, and_, or_, select
from sqlalchemy.orm import Session

from scheduler.domain.models import (
    Hall,
    Movie,
    Screening,
    ScreeningDetail,
    ScreeningFilters,
    Theater,
)
from scheduler.repos.tables import HallRow, MovieRow, ScreeningRow, TheaterRow

_CENT = Decimal("0.01")


def price_to_cents(price: Decimal) -> int:
    return int((Decimal(price) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def cents_to_price(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(_CENT)


def day_window(day) -> tuple[datetime, datetime]:
    """Return the half-open UTC window ``[day 00:00, next day 00:00)``."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


class MovieRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, movie: Movie) -> MovieRow:
        row = MovieRow(**movie.model_dump())
        self.session.add(row)
        self.session.flush()
        return row

    def get(self, movie_id: str) -> MovieRow | None:
        return self.session.get(MovieRow, movie_id)

    def list_all(self) -> Sequence[MovieRow]:
        return self.session.scalars(select(MovieRow).order_by(MovieRow.title)).all()

    def update(self, row: MovieRow, changes: dict) -> MovieRow:
        for field, value in changes.items():
            setattr(row, field, value)
        self.session.flush()
        return row


class TheaterRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, theater: Theater) -> TheaterRow:
        row = TheaterRow(**theater.model_dump())
        self.session.add(row)
        self.session.flush()
        return row

    def get(self, theater_id: str) -> TheaterRow | None:
        return self.session.get(TheaterRow, theater_id)

    def list_all(self) -> Sequence[TheaterRow]:
        return self.session.scalars(select(TheaterRow).order_by(TheaterRow.name)).all()


class HallRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, hall: Hall) -> HallRow:
        row = HallRow(**hall.model_dump())
        self.session.add(row)
        self.session.flush()
        return row

    def get(self, theater_id: str, hall_id: str, lock: bool = False) -> HallRow | None:
        """Load a hall by its composite key.

        With ``lock=True`` the row is selected ``FOR UPDATE`` so concurrent
        schedule mutations on the same hall queue behind this transaction.
        """
        stmt = select(HallRow).where(
            HallRow.theater_id == theater_id, HallRow.hall_id == hall_id
        )
        if lock:
            stmt = stmt.with_for_update()
        return self.session.scalars(stmt).first()

    def list_for_theater(self, theater_id: str) -> Sequence[HallRow]:
        return self.session.scalars(
            select(HallRow).where(HallRow.theater_id == theater_id).order_by(HallRow.hall_id)
        ).all()


class ScreeningRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    # -- writes ------------------------------------------------------------

    def add(self, screening: Screening) -> ScreeningRow:
        row = ScreeningRow(
            screening_id=screening.screening_id,
            movie_id=screening.movie_id,
            theater_id=screening.theater_id,
            hall_id=screening.hall_id,
            start_time=screening.start_time,
            price_cents=price_to_cents(screening.price),
            quality=str(screening.quality),
            created_at=screening.created_at,
            updated_at=screening.updated_at,
        )
        self.session.add(row)
        self.session.flush()
        return row

    def update(self, row: ScreeningRow, changes: dict) -> ScreeningRow:
        for field, value in changes.items():
            if field == "price":
                row.price_cents = price_to_cents(value)
            elif field == "quality":
                row.quality = str(value)
            else:
                setattr(row, field, value)
        self.session.flush()
        return row

    def delete(self, row: ScreeningRow) -> None:
        self.session.delete(row)
        self.session.flush()

    # -- reads -------------------------------------------------------------

    def get(self, screening_id: str) -> ScreeningRow | None:
        return self.session.get(ScreeningRow, screening_id)

    def list_in_hall(
        self, theater_id: str, hall_id: str, exclude_id: str | None = None
    ) -> list[tuple[ScreeningRow, MovieRow]]:
        """Every screening booked into the hall, joined with its movie."""
        stmt = (
            select(ScreeningRow, MovieRow)
            .join(MovieRow, MovieRow.movie_id == ScreeningRow.movie_id)
            .where(ScreeningRow.theater_id == theater_id, ScreeningRow.hall_id == hall_id)
            .order_by(ScreeningRow.start_time)
        )
        if exclude_id is not None:
            stmt = stmt.where(ScreeningRow.screening_id != exclude_id)
        return [(s, m) for s, m in self.session.execute(stmt).all()]

    def get_detail(self, screening_id: str) -> ScreeningDetail | None:
        found = self._details(
            _detail_select().where(ScreeningRow.screening_id == screening_id)
        )
        return found[0] if found else None

    def list_details(self, *criteria) -> list[ScreeningDetail]:
        return self._details(_detail_select().where(*criteria))

    def search(self, filters: ScreeningFilters) -> list[ScreeningDetail]:
        return self.list_details(*_filter_criteria(filters))

    def _details(self, stmt: Select) -> list[ScreeningDetail]:
        stmt = stmt.order_by(ScreeningRow.start_time, ScreeningRow.screening_id)
        return [
            to_detail(screening, movie, theater, hall)
            for screening, movie, theater, hall in self.session.execute(stmt).all()
        ]


def _detail_select() -> Select:
    return (
        select(ScreeningRow, MovieRow, TheaterRow, HallRow)
        .join(MovieRow, MovieRow.movie_id == ScreeningRow.movie_id)
        .join(TheaterRow, TheaterRow.theater_id == ScreeningRow.theater_id)
        .join(
            HallRow,
            and_(
                HallRow.theater_id == ScreeningRow.theater_id,
                HallRow.hall_id == ScreeningRow.hall_id,
            ),
        )
    )


_SEARCH_COLUMNS = (
    ScreeningRow.quality,
    MovieRow.title,
    MovieRow.genre,
    MovieRow.director,
    MovieRow.description,
    TheaterRow.city,
    TheaterRow.address,
    TheaterRow.name,
    HallRow.hall_id,
    HallRow.name,
)


def _filter_criteria(filters: ScreeningFilters) -> list:
    criteria = []
    if filters.movie_id:
        criteria.append(ScreeningRow.movie_id == filters.movie_id)
    if filters.theater_id:
        criteria.append(ScreeningRow.theater_id == filters.theater_id)
    if filters.hall_id:
        criteria.append(ScreeningRow.hall_id == filters.hall_id)
    if filters.quality:
        criteria.append(ScreeningRow.quality.icontains(filters.quality, autoescape=True))
    if filters.price_min is not None:
        criteria.append(ScreeningRow.price_cents >= price_to_cents(filters.price_min))
    if filters.price_max is not None:
        criteria.append(ScreeningRow.price_cents <= price_to_cents(filters.price_max))
    if filters.day is not None:
        start, end = day_window(filters.day)
        criteria.append(ScreeningRow.start_time >= start)
        criteria.append(ScreeningRow.start_time < end)
    elif filters.start_time is not None:
        criteria.append(ScreeningRow.start_time == filters.start_time)
    if filters.recommended is not None:
        criteria.append(MovieRow.recommended == filters.recommended)
    q = (filters.q or "").strip()
    if q:
        criteria.append(or_(*(col.icontains(q, autoescape=True) for col in _SEARCH_COLUMNS)))
    return criteria


def to_detail(
    screening: ScreeningRow, movie: MovieRow, theater: TheaterRow, hall: HallRow
) -> ScreeningDetail:
    return ScreeningDetail(
        screening_id=screening.screening_id,
        movie_id=screening.movie_id,
        theater_id=screening.theater_id,
        hall_id=screening.hall_id,
        start_time=screening.start_time,
        price=cents_to_price(screening.price_cents),
        quality=screening.quality,
        created_at=screening.created_at,
        updated_at=screening.updated_at,
        movie=Movie.model_validate(movie),
        theater=Theater.model_validate(theater),
        hall=Hall.model_validate(hall),
    )
