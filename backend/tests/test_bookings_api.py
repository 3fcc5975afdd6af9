"""
Tests for the HTTP surface: status codes, error bodies and response shapes.
"""

import pytest
from httpx import AsyncClient

from factories import booking_payload


async def create(client: AsyncClient, **tour_overrides) -> dict:
    response = await client.post("/api/v1/bookings/", json=booking_payload(**tour_overrides))
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_create_booking(client: AsyncClient):
    data = await create(client, tour_type="extended")

    booking = data["booking"]
    assert booking["status"] == "pending"
    assert booking["payment_status"] == "pending"
    assert booking["total_amount"] == 35000
    assert booking["version"] == 1
    assert data["activity"]["action"] == "created"


@pytest.mark.asyncio
async def test_create_booking_missing_fields(client: AsyncClient):
    """Missing visitor data is a domain validation error (400), not a parse error."""
    response = await client.post(
        "/api/v1/bookings/",
        json={"visitor": {"name": "No Email"}, "tour": {}},
    )
    assert response.status_code == 400
    body = response.json()
    assert body["error_code"] == "ValidationError"
    assert body["context"]["missing"] == ["email", "visit_date"]


@pytest.mark.asyncio
async def test_create_booking_bad_head_count(client: AsyncClient):
    response = await client.post(
        "/api/v1/bookings/",
        json=booking_payload(group_size="small_group", number_of_people=1),
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_lifecycle_over_http(client: AsyncClient, active_guide):
    booking = (await create(client))["booking"]
    booking_id = booking["id"]

    response = await client.post(
        f"/api/v1/bookings/{booking_id}/transition",
        json={"status": "confirmed", "expected_version": 1},
    )
    assert response.status_code == 200
    assert response.json()["booking"]["version"] == 2

    response = await client.post(
        f"/api/v1/bookings/{booking_id}/assign-guide", json={"guide_id": active_guide.id}
    )
    assert response.status_code == 200
    assert response.json()["activity"]["action"] == "assigned"

    response = await client.post(f"/api/v1/bookings/{booking_id}/check-in")
    assert response.status_code == 200
    assert response.json()["booking"]["status"] == "confirmed"

    response = await client.post(f"/api/v1/bookings/{booking_id}/check-out", json={})
    assert response.status_code == 200
    completed = response.json()["booking"]
    assert completed["status"] == "completed"
    assert completed["check_out_time"] is not None

    response = await client.get(f"/api/v1/bookings/{booking_id}/activity")
    assert [a["action"] for a in response.json()] == [
        "created",
        "status_changed",
        "assigned",
        "tour_started",
        "tour_completed",
    ]


@pytest.mark.asyncio
async def test_invalid_transition_returns_409(client: AsyncClient):
    booking_id = (await create(client))["booking"]["id"]

    response = await client.post(
        f"/api/v1/bookings/{booking_id}/transition", json={"status": "completed"}
    )
    assert response.status_code == 409
    body = response.json()
    assert body["error_code"] == "InvalidTransitionError"
    assert body["context"] == {"current": "pending", "target": "completed"}

    response = await client.get(f"/api/v1/bookings/{booking_id}")
    assert response.json()["status"] == "pending"


@pytest.mark.asyncio
async def test_stale_version_returns_409_with_retry_hint(client: AsyncClient):
    booking_id = (await create(client))["booking"]["id"]
    await client.post(f"/api/v1/bookings/{booking_id}/transition", json={"status": "confirmed"})

    response = await client.post(
        f"/api/v1/bookings/{booking_id}/transition",
        json={"status": "cancelled", "expected_version": 1},
    )
    assert response.status_code == 409
    assert response.json()["error_code"] == "ConflictError"
    assert response.headers["Retry-After"] == "0"


@pytest.mark.asyncio
async def test_inactive_guide_returns_403(client: AsyncClient, inactive_guide):
    booking_id = (await create(client))["booking"]["id"]

    response = await client.post(
        f"/api/v1/bookings/{booking_id}/assign-guide", json={"guide_id": inactive_guide.id}
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_not_found(client: AsyncClient):
    assert (await client.get("/api/v1/bookings/999")).status_code == 404
    assert (await client.get("/api/v1/bookings/999/activity")).status_code == 404
    assert (await client.get("/api/v1/bookings/reference/DVS-1999-000000")).status_code == 404
    assert (await client.get("/api/v1/guides/999/earnings")).status_code == 404
    assert (await client.get("/api/v1/payouts/999")).status_code == 404


@pytest.mark.asyncio
async def test_lookup_by_reference_and_list(client: AsyncClient):
    created = (await create(client))["booking"]
    await create(client)

    response = await client.get(f"/api/v1/bookings/reference/{created['booking_reference']}")
    assert response.status_code == 200
    assert response.json()["id"] == created["id"]

    await client.post(f"/api/v1/bookings/{created['id']}/transition", json={"status": "cancelled"})
    response = await client.get("/api/v1/bookings/", params={"status": "cancelled"})
    assert [b["id"] for b in response.json()] == [created["id"]]


@pytest.mark.asyncio
async def test_payment_and_notes(client: AsyncClient):
    booking_id = (await create(client))["booking"]["id"]

    response = await client.patch(
        f"/api/v1/bookings/{booking_id}/payment",
        json={"payment_status": "paid", "payment_reference": "MP-778"},
    )
    assert response.status_code == 200
    assert response.json()["booking"]["payment_status"] == "paid"

    response = await client.patch(
        f"/api/v1/bookings/{booking_id}/notes", json={"notes": "Prefers morning slot"}
    )
    assert response.status_code == 200
    assert response.json()["booking"]["admin_notes"] == "Prefers morning slot"


@pytest.mark.asyncio
async def test_revenue_and_payout_endpoints(client: AsyncClient, active_guide, add_booking):
    await add_booking(15000, guide_id=active_guide.id)

    response = await client.get("/api/v1/revenue/", params={"guide_id": active_guide.id})
    assert response.status_code == 200
    report = response.json()
    assert report["guides"][0]["paid_revenue"] == 15000

    response = await client.get(f"/api/v1/guides/{active_guide.id}/earnings")
    assert response.json()["guide_share"] == 15000

    response = await client.post(
        "/api/v1/payouts/", json={"guide_id": active_guide.id, "amount": 15000, "tours_count": 1}
    )
    assert response.status_code == 201
    created = response.json()
    assert created["summary"]["total_pending"] == 15000
    payout_id = created["payout"]["id"]

    response = await client.post(
        "/api/v1/payouts/", json={"guide_id": active_guide.id, "amount": 15000, "tours_count": 1}
    )
    assert response.status_code == 409

    response = await client.patch(
        f"/api/v1/payouts/{payout_id}/mark-paid", json={"payment_method": "cash"}
    )
    assert response.status_code == 200
    assert response.json()["summary"]["total_paid_out"] == 15000
    assert response.json()["summary"]["total_pending"] == 0

    response = await client.patch(
        f"/api/v1/payouts/{payout_id}/mark-paid", json={"payment_method": "cash"}
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_payout_over_share_returns_400(client: AsyncClient, active_guide):
    response = await client.post(
        "/api/v1/payouts/", json={"guide_id": active_guide.id, "amount": 1}
    )
    assert response.status_code == 400
    assert response.json()["error_code"] == "PayoutLimitExceededError"


@pytest.mark.asyncio
async def test_revenue_rejects_inverted_range(client: AsyncClient):
    response = await client.get(
        "/api/v1/revenue/", params={"date_from": "2025-06-02", "date_to": "2025-06-01"}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_health_and_metrics(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["submission_guard"] == {"status": "disabled"}

    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "booking_mutations_total" in response.text


@pytest.mark.asyncio
async def test_request_id_echoed(client: AsyncClient):
    response = await client.get("/", headers={"X-Request-ID": "abc123", "X-Operator-ID": "op-7"})
    assert response.headers["X-Request-ID"] == "abc123"
