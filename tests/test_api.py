"""End-to-end tests for the HTTP surface and its status-code mapping."""

from __future__ import annotations

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from scheduler.config import Settings
from scheduler.db import create_database
from scheduler.main import create_app


@pytest.fixture()
def client():
    database = create_database("sqlite://")
    app = create_app(Settings(database_url="sqlite://"), database=database)
    with TestClient(app) as test_client:
        yield test_client
    database.dispose()


@pytest.fixture()
def catalog(client: TestClient) -> dict:
    assert client.post("/theaters", json={"theater_id": "rex", "name": "Grand Rex", "city": "Paris"}).status_code == 201
    assert client.post("/theaters/rex/halls", json={"hall_id": "h1", "name": "Grande Salle"}).status_code == 201
    assert client.post("/theaters/rex/halls", json={"hall_id": "h2"}).status_code == 201
    resp = client.post("/movies", json={"title": "Inception", "duration_minutes": 90})
    assert resp.status_code == 201
    return {"movie_id": resp.json()["data"]["movie_id"]}


def _screening(movie_id: str, start: str, **overrides) -> dict:
    body = {
        "movie_id": movie_id,
        "theater_id": "rex",
        "hall_id": "h1",
        "start_time": start,
        "price": "10.00",
        "quality": "2D",
    }
    body.update(overrides)
    return body


# ---------------------------------------------------------------------------
# Create / read
# ---------------------------------------------------------------------------


def test_create_and_fetch_screening(client: TestClient, catalog: dict):
    resp = client.post("/screenings", json=_screening(catalog["movie_id"], "2026-03-14T10:00:00Z"))
    assert resp.status_code == 201
    created = resp.json()["data"]
    assert created["movie"]["title"] == "Inception"
    assert created["hall"]["name"] == "Grande Salle"
    assert created["end_time"].startswith("2026-03-14T11:30:00")

    resp = client.get(f"/screenings/{created['screening_id']}")
    assert resp.status_code == 200
    fetched = resp.json()["data"]
    assert fetched["start_time"].startswith("2026-03-14T10:00:00")
    assert Decimal(str(fetched["price"])) == Decimal("10.00")
    assert fetched["quality"] == "2D"


def test_overlap_returns_409_with_conflict_details(client: TestClient, catalog: dict):
    first = client.post("/screenings", json=_screening(catalog["movie_id"], "2026-03-14T10:00:00Z"))
    resp = client.post("/screenings", json=_screening(catalog["movie_id"], "2026-03-14T11:00:00Z"))

    assert resp.status_code == 409
    body = resp.json()
    assert "Hall is occupied" in body["detail"]
    assert body["conflict"]["screening_id"] == first.json()["data"]["screening_id"]


def test_adjacent_screening_returns_201(client: TestClient, catalog: dict):
    client.post("/screenings", json=_screening(catalog["movie_id"], "2026-03-14T10:00:00Z"))
    resp = client.post("/screenings", json=_screening(catalog["movie_id"], "2026-03-14T11:30:00Z"))
    assert resp.status_code == 201


def test_missing_movie_returns_404(client: TestClient, catalog: dict):
    resp = client.post("/screenings", json=_screening("nope", "2026-03-14T10:00:00Z"))
    assert resp.status_code == 404
    assert resp.json()["resource"] == "Movie"


def test_missing_hall_returns_404(client: TestClient, catalog: dict):
    resp = client.post(
        "/screenings", json=_screening(catalog["movie_id"], "2026-03-14T10:00:00Z", hall_id="h9")
    )
    assert resp.status_code == 404
    assert resp.json()["resource"] == "Hall"


@pytest.mark.parametrize(
    "override",
    [{"price": "-1"}, {"quality": "8K"}, {"start_time": "not-a-date"}],
)
def test_malformed_body_rejected_before_service(client: TestClient, catalog: dict, override):
    resp = client.post(
        "/screenings", json=_screening(catalog["movie_id"], "2026-03-14T10:00:00Z", **override)
    )
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Update / delete
# ---------------------------------------------------------------------------


def test_patch_price_only(client: TestClient, catalog: dict):
    created = client.post(
        "/screenings", json=_screening(catalog["movie_id"], "2026-03-14T10:00:00Z")
    ).json()["data"]

    resp = client.patch(f"/screenings/{created['screening_id']}", json={"price": "12.00"})

    assert resp.status_code == 200
    assert Decimal(str(resp.json()["data"]["price"])) == Decimal("12.00")


def test_patch_into_conflict_returns_409(client: TestClient, catalog: dict):
    client.post("/screenings", json=_screening(catalog["movie_id"], "2026-03-14T10:00:00Z"))
    later = client.post(
        "/screenings", json=_screening(catalog["movie_id"], "2026-03-14T14:00:00Z")
    ).json()["data"]

    resp = client.patch(
        f"/screenings/{later['screening_id']}", json={"start_time": "2026-03-14T11:00:00Z"}
    )
    assert resp.status_code == 409


def test_patch_unknown_screening_returns_404(client: TestClient, catalog: dict):
    resp = client.patch("/screenings/unknown", json={"price": "5.00"})
    assert resp.status_code == 404


def test_delete_screening(client: TestClient, catalog: dict):
    created = client.post(
        "/screenings", json=_screening(catalog["movie_id"], "2026-03-14T10:00:00Z")
    ).json()["data"]

    assert client.delete(f"/screenings/{created['screening_id']}").status_code == 204
    assert client.get(f"/screenings/{created['screening_id']}").status_code == 404
    assert client.delete(f"/screenings/{created['screening_id']}").status_code == 404


# ---------------------------------------------------------------------------
# Listings and search
# ---------------------------------------------------------------------------


def test_hall_listing_requires_theater(client: TestClient, catalog: dict):
    client.post("/screenings", json=_screening(catalog["movie_id"], "2026-03-14T10:00:00Z"))

    assert client.get("/screenings/hall/h1").status_code == 400
    resp = client.get("/screenings/hall/h1", params={"theater_id": "rex"})
    assert resp.status_code == 200
    assert len(resp.json()["data"]) == 1


def test_date_listing(client: TestClient, catalog: dict):
    client.post("/screenings", json=_screening(catalog["movie_id"], "2026-03-14T10:00:00Z"))
    client.post("/screenings", json=_screening(catalog["movie_id"], "2026-03-15T10:00:00Z"))

    resp = client.get("/screenings/date/2026-03-14")
    assert resp.status_code == 200
    assert len(resp.json()["data"]) == 1
    assert client.get("/screenings/date/yesterday-ish").status_code == 400


def test_movie_and_theater_listings(client: TestClient, catalog: dict):
    client.post("/screenings", json=_screening(catalog["movie_id"], "2026-03-14T10:00:00Z"))
    client.post("/screenings", json=_screening(catalog["movie_id"], "2026-03-14T10:00:00Z", hall_id="h2"))

    assert len(client.get(f"/screenings/movie/{catalog['movie_id']}").json()["data"]) == 2
    assert len(client.get("/screenings/theater/rex").json()["data"]) == 2
    assert len(client.get("/screenings").json()["data"]) == 2


def test_search_endpoint(client: TestClient, catalog: dict):
    client.post("/screenings", json=_screening(catalog["movie_id"], "2026-03-14T10:00:00Z", quality="IMAX", price="14.00"))
    client.post("/screenings", json=_screening(catalog["movie_id"], "2026-03-14T10:00:00Z", hall_id="h2"))

    by_text = client.get("/screenings/search", params={"q": "paris"}).json()["data"]
    assert len(by_text) == 2

    by_filters = client.get(
        "/screenings/search", params={"quality": "imax", "price_min": "12", "date": "2026-03-14"}
    ).json()["data"]
    assert [s["hall_id"] for s in by_filters] == ["h1"]

    assert client.get("/screenings/search", params={"date": "bogus"}).status_code == 400


def test_availability_endpoint(client: TestClient, catalog: dict):
    client.post("/screenings", json=_screening(catalog["movie_id"], "2026-03-14T10:00:00Z"))

    resp = client.post(
        "/screenings/availability",
        json={
            "movie_id": catalog["movie_id"],
            "theater_id": "rex",
            "hall_id": "h1",
            "start_time": "2026-03-14T11:00:00Z",
        },
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["available"] is False
    assert len(data["conflicts"]) == 1


def test_series_endpoint(client: TestClient, catalog: dict):
    resp = client.post(
        "/screenings/series",
        json={
            "screening": _screening(catalog["movie_id"], "2026-03-14T20:00:00Z"),
            "rule": "FREQ=WEEKLY;COUNT=4",
        },
    )
    assert resp.status_code == 201
    assert len(resp.json()["data"]) == 4

    bad = client.post(
        "/screenings/series",
        json={"screening": _screening(catalog["movie_id"], "2026-05-14T20:00:00Z"), "rule": "FREQ=SOMETIMES;COUNT=2"},
    )
    assert bad.status_code == 422


# ---------------------------------------------------------------------------
# Catalog and timeline
# ---------------------------------------------------------------------------


def test_duplicate_hall_returns_409(client: TestClient, catalog: dict):
    resp = client.post("/theaters/rex/halls", json={"hall_id": "h1"})
    assert resp.status_code == 409


def test_hall_for_unknown_theater_returns_404(client: TestClient):
    resp = client.post("/theaters/ghost/halls", json={"hall_id": "h1"})
    assert resp.status_code == 404


def test_timeline_records_lifecycle(client: TestClient, catalog: dict):
    created = client.post(
        "/screenings", json=_screening(catalog["movie_id"], "2026-03-14T10:00:00Z")
    ).json()["data"]
    sid = created["screening_id"]
    client.patch(f"/screenings/{sid}", json={"quality": "3D"})
    client.delete(f"/screenings/{sid}")

    entries = client.get(f"/screenings/{sid}/timeline").json()["data"]
    assert [e["type"] for e in entries] == ["created", "updated", "deleted"]
    assert entries[1]["payload"]["changed_fields"] == ["quality"]


def test_start_time_near_calendar_end_returns_422(client: TestClient, catalog: dict):
    resp = client.post("/screenings", json=_screening(catalog["movie_id"], "9999-12-31T23:00:00Z"))
    assert resp.status_code == 422
    assert resp.json()["violations"][0]["field"] == "start_time"


def test_self_overlapping_series_returns_422(client: TestClient, catalog: dict):
    resp = client.post(
        "/screenings/series",
        json={"screening": _screening(catalog["movie_id"], "2026-03-14T10:00:00Z"), "rule": "FREQ=HOURLY;COUNT=3"},
    )
    assert resp.status_code == 422
    assert client.get("/screenings").json()["data"] == []
