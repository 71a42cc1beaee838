"""
HTTP surface tests: authentication, error rendering and the booking workflow
end to end through the FastAPI app.

Routes read the wall clock, so itineraries here are placed relative to today.
"""
import uuid
from datetime import date, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.database import get_db
from app.main import app
from tests.factories import add_request, add_trip, auth_headers, make_item, make_payload, make_principal

pytestmark = pytest.mark.asyncio

TODAY = date.today()
ARRIVES = TODAY + timedelta(days=21)
WINDOW = (TODAY + timedelta(days=15), TODAY + timedelta(days=30))


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def window_payload(**overrides) -> dict:
    return make_payload(
        delivery_window_start=WINDOW[0].isoformat(),
        delivery_window_end=WINDOW[1].isoformat(),
        **overrides,
    )


def trip_body() -> dict:
    return {
        "origin_country": "GB",
        "destination_country": "NG",
        "departure_date": (ARRIVES - timedelta(days=1)).isoformat(),
        "departure_time": "18:00",
        "departure_tz": "Europe/London",
        "arrival_date": ARRIVES.isoformat(),
        "arrival_time": "00:30",
        "arrival_tz": "Africa/Lagos",
        "carry_on_capacity_kg": "7",
        "checked_capacity_kg": "10",
    }


class TestAuth:
    async def test_health_is_public(self, client):
        resp = await client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "service": "carryon"}

    async def test_missing_token(self, client):
        resp = await client.get("/api/trips")
        assert resp.status_code == 401

    async def test_garbage_token(self, client):
        resp = await client.get("/api/trips", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    async def test_sweep_is_admin_only(self, client):
        resp = await client.post("/api/matches/expire-stale", headers=auth_headers(make_principal("shopper")))
        assert resp.status_code == 403

    async def test_admin_can_sweep(self, client):
        resp = await client.post("/api/matches/expire-stale", headers=auth_headers(make_principal("admin")))
        assert resp.status_code == 200
        assert resp.json() == []


class TestErrorRendering:
    async def test_validation_error_names_field(self, client):
        shopper = make_principal("shopper")

        resp = await client.post(
            "/api/requests",
            json=window_payload(items=[make_item(weight_kg="0")]),
            headers=auth_headers(shopper),
        )

        assert resp.status_code == 422
        body = resp.json()
        assert body["error"] == "validation_error"
        assert body["field"] == "bag_items[0].weight_kg"
        assert body["retryable"] is False

    async def test_unknown_match_is_404(self, client):
        resp = await client.get(f"/api/matches/{uuid.uuid4()}", headers=auth_headers(make_principal("shopper")))

        assert resp.status_code == 404
        assert resp.json()["error"] == "not_found"

    async def test_role_mismatch_is_403(self, client):
        resp = await client.post("/api/trips", json=trip_body(), headers=auth_headers(make_principal("shopper")))

        assert resp.status_code == 403
        assert resp.json()["error"] == "forbidden"

    async def test_capacity_conflict_is_retryable(self, client, db):
        trip = await add_trip(db, checked_kg="8", arrival_date=ARRIVES)
        first, second = make_principal("shopper"), make_principal("shopper")
        request_a = await add_request(db, shopper_id=first.subject_id, window=WINDOW)
        request_b = await add_request(db, shopper_id=second.subject_id, window=WINDOW)

        ok = await client.post(
            "/api/matches",
            json={"request_id": str(request_a.id), "trip_id": str(trip.id)},
            headers=auth_headers(first),
        )
        lost = await client.post(
            "/api/matches",
            json={"request_id": str(request_b.id), "trip_id": str(trip.id)},
            headers=auth_headers(second),
        )

        assert ok.status_code == 201
        assert lost.status_code == 409
        assert lost.json()["error"] == "capacity_conflict"
        assert lost.json()["retryable"] is True


class TestWorkflow:
    async def test_trip_to_accepted_match(self, client):
        traveler, shopper = make_principal("traveler"), make_principal("shopper")

        # Traveler declares and opens a trip
        resp = await client.post("/api/trips", json=trip_body(), headers=auth_headers(traveler))
        assert resp.status_code == 201
        trip = resp.json()
        assert trip["status"] == "pending"
        assert trip["arrival_date"] == ARRIVES.isoformat()
        resp = await client.post(f"/api/trips/{trip['id']}/activate", headers=auth_headers(traveler))
        assert resp.json()["status"] == "active"

        # Shopper drafts and publishes a 6kg request
        resp = await client.post("/api/requests", json=window_payload(), headers=auth_headers(shopper))
        assert resp.status_code == 201
        request_id = resp.json()["id"]
        resp = await client.post(f"/api/requests/{request_id}/publish", headers=auth_headers(shopper))
        assert resp.json()["status"] == "published"

        # Ranking offers the trip with its ledger version
        resp = await client.get(f"/api/requests/{request_id}/matches", headers=auth_headers(shopper))
        ranked = resp.json()
        assert [m["trip_id"] for m in ranked] == [trip["id"]]
        version = ranked[0]["capacity_fit"]["trip_version"]

        # Book, then the traveler accepts
        resp = await client.post(
            "/api/matches",
            json={"request_id": request_id, "trip_id": trip["id"], "expected_version": version},
            headers=auth_headers(shopper),
        )
        assert resp.status_code == 201
        match = resp.json()
        assert match["status"] == "pending"
        assert match["reserved_kg"] == 6.0

        resp = await client.post(
            f"/api/matches/{match['id']}/respond", json={"decision": "accept"}, headers=auth_headers(traveler)
        )
        assert resp.json()["status"] == "accepted"

        resp = await client.get(f"/api/trips/{trip['id']}", headers=auth_headers(traveler))
        assert resp.json()["available_checked_kg"] == 4.0

    async def test_search_and_explain(self, client, db):
        careful = await add_trip(db, arrival_date=ARRIVES, can_carry_fragile=True)
        fragile_averse = await add_trip(db, arrival_date=ARRIVES, can_carry_fragile=False)
        headers = auth_headers(make_principal("shopper"))

        resp = await client.post("/api/matches/search", json=window_payload(), headers=headers)
        assert resp.status_code == 200
        assert {m["trip_id"] for m in resp.json()} == {str(careful.id), str(fragile_averse.id)}

        resp = await client.post(
            "/api/matches/search/explain",
            json=window_payload(items=[make_item(is_fragile=True)]),
            headers=headers,
        )
        report = resp.json()
        assert [m["trip_id"] for m in report["eligible"]] == [str(careful.id)]
        assert report["rejected"] == [
            {"trip_id": str(fragile_averse.id), "rule": "fragile", "reason": report["rejected"][0]["reason"]}
        ]

    async def test_decline_through_api_restores_capacity(self, client, db):
        traveler, shopper = make_principal("traveler"), make_principal("shopper")
        trip = await add_trip(db, traveler_id=traveler.subject_id, arrival_date=ARRIVES)
        request = await add_request(db, shopper_id=shopper.subject_id, window=WINDOW)

        resp = await client.post(
            "/api/matches",
            json={"request_id": str(request.id), "trip_id": str(trip.id)},
            headers=auth_headers(shopper),
        )
        match_id = resp.json()["id"]

        resp = await client.post(
            f"/api/matches/{match_id}/respond", json={"decision": "decline"}, headers=auth_headers(traveler)
        )
        assert resp.json()["status"] == "declined"

        resp = await client.get(f"/api/trips/{trip.id}", headers=auth_headers(traveler))
        assert resp.json()["available_checked_kg"] == 10.0
        resp = await client.get(f"/api/requests/{request.id}", headers=auth_headers(shopper))
        assert resp.json()["status"] == "published"
