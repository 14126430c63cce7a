"""FastAPI application entry point for the screening scheduler."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from dateutil.parser import isoparse
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse

from scheduler.config import Settings, configure_logging, load_settings
from scheduler.db import Database, create_database
from scheduler.domain.bus import EventBus
from scheduler.domain.errors import SchedulingError
from scheduler.domain.handlers import HandlerRegistry
from scheduler.domain.models import (
    AvailabilityRequest,
    Hall,
    HallCreate,
    Movie,
    MovieUpdate,
    ScreeningCreate,
    ScreeningFilters,
    ScreeningSeriesCreate,
    ScreeningUpdate,
    Theater,
    as_utc,
)
from scheduler.repos.memory import TimelineRepository
from scheduler.services.catalog import CatalogService
from scheduler.services.scheduling import SchedulingService
from scheduler.services.seed import seed_demo_data

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Dependencies ──────────────────────────────────────────────────────


def get_scheduling(request: Request) -> SchedulingService:
    return request.app.state.scheduling


def get_catalog(request: Request) -> CatalogService:
    return request.app.state.catalog


def get_timeline(request: Request) -> TimelineRepository:
    return request.app.state.timeline_repo


def _parse_day(raw: str):
    try:
        return isoparse(raw).date()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date format") from None


def _parse_instant(raw: str) -> datetime:
    try:
        return as_utc(isoparse(raw))
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid startTime format") from None


# ── Screenings ────────────────────────────────────────────────────────


@router.post("/screenings", status_code=201)
def create_screening(
    payload: ScreeningCreate, scheduling: SchedulingService = Depends(get_scheduling)
) -> dict:
    """Schedule a screening if its hall is free for the whole run of the movie."""
    return {"data": scheduling.create_screening(payload)}


@router.post("/screenings/series", status_code=201)
def create_screening_series(
    payload: ScreeningSeriesCreate, scheduling: SchedulingService = Depends(get_scheduling)
) -> dict:
    return {"data": scheduling.create_screening_series(payload)}


@router.post("/screenings/availability")
def check_availability(
    payload: AvailabilityRequest, scheduling: SchedulingService = Depends(get_scheduling)
) -> dict:
    """Report whether a slot is free without booking it."""
    return {"data": scheduling.check_availability(payload)}


@router.get("/screenings")
def list_screenings(scheduling: SchedulingService = Depends(get_scheduling)) -> dict:
    return {"data": scheduling.get_all_screenings()}


@router.get("/screenings/search")
def search_screenings(
    q: str | None = Query(default=None, min_length=1, max_length=100),
    movie_id: str | None = None,
    theater_id: str | None = Query(default=None, max_length=100),
    hall_id: str | None = Query(default=None, max_length=100),
    price_min: Decimal | None = Query(default=None, ge=0),
    price_max: Decimal | None = Query(default=None, ge=0),
    quality: str | None = None,
    recommended: bool | None = None,
    day: str | None = Query(default=None, alias="date"),
    start_time: str | None = None,
    scheduling: SchedulingService = Depends(get_scheduling),
) -> dict:
    filters = ScreeningFilters(
        q=q,
        movie_id=movie_id,
        theater_id=theater_id,
        hall_id=hall_id,
        price_min=price_min,
        price_max=price_max,
        quality=quality,
        recommended=recommended,
        day=_parse_day(day) if day else None,
        start_time=_parse_instant(start_time) if start_time else None,
    )
    return {"data": scheduling.search_screenings(filters)}


@router.get("/screenings/movie/{movie_id}")
def list_screenings_by_movie(
    movie_id: str, scheduling: SchedulingService = Depends(get_scheduling)
) -> dict:
    return {"data": scheduling.get_screenings_by_movie_id(movie_id)}


@router.get("/screenings/theater/{theater_id}")
def list_screenings_by_theater(
    theater_id: str, scheduling: SchedulingService = Depends(get_scheduling)
) -> dict:
    return {"data": scheduling.get_screenings_by_theater_id(theater_id)}


@router.get("/screenings/hall/{hall_id}")
def list_screenings_by_hall(
    hall_id: str,
    theater_id: str | None = None,
    scheduling: SchedulingService = Depends(get_scheduling),
) -> dict:
    """Hall ids repeat across theaters, so ``theater_id`` is mandatory."""
    if not theater_id:
        raise HTTPException(status_code=400, detail="theater_id is required")
    return {"data": scheduling.get_screenings_by_hall_id(hall_id, theater_id)}


@router.get("/screenings/date/{day}")
def list_screenings_by_date(
    day: str, scheduling: SchedulingService = Depends(get_scheduling)
) -> dict:
    return {"data": scheduling.get_screenings_by_date(_parse_day(day))}


@router.get("/screenings/{screening_id}")
def get_screening(
    screening_id: str, scheduling: SchedulingService = Depends(get_scheduling)
) -> dict:
    return {"data": scheduling.get_screening_by_id(screening_id)}


@router.patch("/screenings/{screening_id}")
def update_screening(
    screening_id: str,
    payload: ScreeningUpdate,
    scheduling: SchedulingService = Depends(get_scheduling),
) -> dict:
    return {"data": scheduling.update_screening(screening_id, payload)}


@router.delete("/screenings/{screening_id}", status_code=204)
def delete_screening(
    screening_id: str, scheduling: SchedulingService = Depends(get_scheduling)
) -> Response:
    scheduling.delete_screening(screening_id)
    return Response(status_code=204)


@router.get("/screenings/{screening_id}/timeline")
def get_screening_timeline(
    screening_id: str, timeline_repo: TimelineRepository = Depends(get_timeline)
) -> dict:
    return {"data": timeline_repo.list_for_screening(screening_id)}


# ── Catalog ───────────────────────────────────────────────────────────


@router.post("/movies", status_code=201)
def create_movie(movie: Movie, catalog: CatalogService = Depends(get_catalog)) -> dict:
    return {"data": catalog.add_movie(movie)}


@router.get("/movies")
def list_movies(catalog: CatalogService = Depends(get_catalog)) -> dict:
    return {"data": catalog.list_movies()}


@router.get("/movies/{movie_id}")
def get_movie(movie_id: str, catalog: CatalogService = Depends(get_catalog)) -> dict:
    return {"data": catalog.get_movie(movie_id)}


@router.patch("/movies/{movie_id}")
def update_movie(
    movie_id: str, payload: MovieUpdate, catalog: CatalogService = Depends(get_catalog)
) -> dict:
    return {"data": catalog.update_movie(movie_id, payload)}


@router.post("/theaters", status_code=201)
def create_theater(theater: Theater, catalog: CatalogService = Depends(get_catalog)) -> dict:
    return {"data": catalog.add_theater(theater)}


@router.get("/theaters")
def list_theaters(catalog: CatalogService = Depends(get_catalog)) -> dict:
    return {"data": catalog.list_theaters()}


@router.post("/theaters/{theater_id}/halls", status_code=201)
def create_hall(
    theater_id: str, payload: HallCreate, catalog: CatalogService = Depends(get_catalog)
) -> dict:
    hall = Hall(theater_id=theater_id, **payload.model_dump())
    return {"data": catalog.add_hall(hall)}


@router.get("/theaters/{theater_id}/halls")
def list_halls(theater_id: str, catalog: CatalogService = Depends(get_catalog)) -> dict:
    return {"data": catalog.list_halls(theater_id)}


# ── Application factory ───────────────────────────────────────────────


def _scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def create_app(settings: Settings | None = None, database: Database | None = None) -> FastAPI:
    """Build the app with one database, bus and set of services per process."""
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    if database is None:
        database = create_database(settings.database_url, echo=settings.sql_echo)

    bus = EventBus()
    timeline_repo = TimelineRepository()
    catalog = CatalogService(database, bus)
    scheduling = SchedulingService(database, bus)
    handler_registry = HandlerRegistry(bus=bus, timeline_repo=timeline_repo, scheduling=scheduling)

    if settings.seed_demo_data:
        seed_demo_data(catalog, scheduling)

    app = FastAPI(title="Cinema Screening Scheduler")
    app.state.settings = settings
    app.state.database = database
    app.state.bus = bus
    app.state.timeline_repo = timeline_repo
    app.state.catalog = catalog
    app.state.scheduling = scheduling
    app.state.handler_registry = handler_registry
    app.include_router(router)
    app.add_exception_handler(SchedulingError, _scheduling_error_handler)
    return app

