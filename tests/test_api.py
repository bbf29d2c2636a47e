"""
Integration tests for the REST API endpoints.

Uses the in-memory SQLite database from ``conftest``; the caller is
identified by the ``X-User-Id`` header.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from httpx import AsyncClient

from src.config import settings
from tests.conftest import Users

QUOTE_BODY = {
    "pickup_address": {
        "address": "12 George St",
        "suburb": "Sydney",
        "postcode": "2000",
        "state": "NSW",
        "contact_name": "Jack Wilson",
        "contact_phone": "0400 000 001",
    },
    "dropoff_address": {
        "address": "1 Bay St",
        "suburb": "Glebe",
        "postcode": "2010",
        "state": "NSW",
    },
    "vehicle": {
        "vehicle_type": "sedan",
        "make": "Toyota",
        "model": "Corolla",
        "year": "2020",
        "is_running": True,
    },
    "preferred_pickup_date": "2030-01-15",
    "transport_type": "open",
    "add_ons": {},
}

INTERNAL_FIELDS = ("carrier_id", "internal_cost_ex_gst", "internal_margin_ex_gst")


def _as(user) -> dict[str, str]:
    return {"X-User-Id": str(user.id)}


def _webhook() -> dict[str, str]:
    return {"X-Webhook-Secret": settings.payment_webhook_secret}


async def _create_booking(client: AsyncClient, users: Users) -> dict:
    quote = await client.post("/api/v1/quotes", json=QUOTE_BODY, headers=_as(users.customer))
    assert quote.status_code == 201
    resp = await client.post(
        "/api/v1/bookings",
        json={
            "quote_id": quote.json()["id"],
            "pickup_window_start": "2030-01-15",
            "pickup_window_end": "2030-01-17",
            "special_instructions": "Call on arrival",
        },
        headers=_as(users.customer),
    )
    assert resp.status_code == 201
    return resp.json()


async def _confirm(client: AsyncClient, booking_number: str) -> None:
    resp = await client.post(
        "/api/v1/payments/events",
        json={"booking_reference": booking_number, "outcome": "succeeded", "method": "full"},
        headers=_webhook(),
    )
    assert resp.status_code == 200


# ── Health / pricing ──────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/api/v1/admin/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_calculate_price(client: AsyncClient):
    resp = await client.post(
        "/api/v1/quotes/calculate",
        json={
            "pickup_postcode": "2000",
            "delivery_postcode": "3000",
            "vehicle_type": "sedan",
            "is_running": True,
            "transport_type": "open",
            "add_ons": {},
        },
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["base_price"] == 12000
    assert data["gst"] == 1200
    assert data["total_price"] == 13200
    assert data["deposit_amount"] == 1980
    assert data["balance_amount"] == 11220
    assert data["estimated_pickup_window"] == "5-7 business days"
    assert data["estimated_delivery_timeframe"] == "3-5 days after pickup"


@pytest.mark.asyncio
async def test_calculate_price_bad_postcode_is_400(client: AsyncClient):
    resp = await client.post(
        "/api/v1/quotes/calculate",
        json={"pickup_postcode": "20A0", "delivery_postcode": "3000", "vehicle_type": "sedan"},
    )
    assert resp.status_code == 400
    assert "pickup_postcode" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_calculate_price_unknown_vehicle_is_422(client: AsyncClient):
    resp = await client.post(
        "/api/v1/quotes/calculate",
        json={"pickup_postcode": "2000", "delivery_postcode": "3000", "vehicle_type": "tank"},
    )
    assert resp.status_code == 422


# ── Quotes ────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_and_fetch_quote(client: AsyncClient, users: Users):
    resp = await client.post("/api/v1/quotes", json=QUOTE_BODY, headers=_as(users.customer))
    assert resp.status_code == 201
    quote = resp.json()
    assert quote["quote_number"].startswith("QT-")
    assert quote["quote_number"].endswith("-0001")
    assert quote["customer_id"] == users.customer.id
    assert quote["total_inc_gst"] == 330
    assert quote["source"] == "web"

    fetched = await client.get(
        f"/api/v1/quotes/{quote['quote_number']}", headers=_as(users.customer)
    )
    assert fetched.status_code == 200
    assert fetched.json()["id"] == quote["id"]


@pytest.mark.asyncio
async def test_owned_quote_hidden_from_others(client: AsyncClient, users: Users):
    resp = await client.post("/api/v1/quotes", json=QUOTE_BODY, headers=_as(users.customer))
    number = resp.json()["quote_number"]

    assert (await client.get(f"/api/v1/quotes/{number}")).status_code == 404
    other = await client.get(f"/api/v1/quotes/{number}", headers=_as(users.other_customer))
    assert other.status_code == 404
    admin = await client.get(f"/api/v1/quotes/{number}", headers=_as(users.admin))
    assert admin.status_code == 200


@pytest.mark.asyncio
async def test_admin_quote_source(client: AsyncClient, users: Users):
    resp = await client.post("/api/v1/quotes", json=QUOTE_BODY, headers=_as(users.admin))
    assert resp.status_code == 201
    assert resp.json()["source"] == "admin"
    assert resp.json()["customer_id"] is None


# ── Bookings ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_booking(client: AsyncClient, users: Users, notifier):
    booking = await _create_booking(client, users)
    assert booking["booking_number"].startswith("BK-")
    assert booking["status"] == "booking_pending_payment"
    assert booking["total_inc_gst"] == 330
    assert booking["deposit_required_amount"] == 50
    assert booking["balance_due_amount"] == 280
    assert booking["tracking_token"]

    # confirmation delivered by the background task
    assert [t for _, t, _ in notifier.sent] == ["booking_confirmation"]


@pytest.mark.asyncio
async def test_booking_requires_customer(client: AsyncClient, users: Users):
    body = {"quote_id": 1, "pickup_window_start": "2030-01-15", "pickup_window_end": "2030-01-16"}
    assert (await client.post("/api/v1/bookings", json=body)).status_code == 401
    assert (
        await client.post("/api/v1/bookings", json=body, headers={"X-User-Id": "999"})
    ).status_code == 401
    assert (
        await client.post("/api/v1/bookings", json=body, headers=_as(users.driver))
    ).status_code == 403


@pytest.mark.asyncio
async def test_booking_same_quote_twice_is_409(client: AsyncClient, users: Users):
    quote = await client.post("/api/v1/quotes", json=QUOTE_BODY, headers=_as(users.customer))
    body = {
        "quote_id": quote.json()["id"],
        "pickup_window_start": "2030-01-15",
        "pickup_window_end": "2030-01-16",
    }
    first = await client.post("/api/v1/bookings", json=body, headers=_as(users.customer))
    second = await client.post("/api/v1/bookings", json=body, headers=_as(users.customer))
    assert first.status_code == 201
    assert second.status_code == 409


@pytest.mark.asyncio
async def test_get_booking_with_history(client: AsyncClient, users: Users):
    booking = await _create_booking(client, users)
    resp = await client.get(
        f"/api/v1/bookings/{booking['booking_number']}", headers=_as(users.customer)
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["special_instructions"] == "Call on arrival"
    assert [h["status"] for h in data["status_history"]] == ["booking_pending_payment"]
    assert "timestamp" in data["status_history"][0]
    for field in INTERNAL_FIELDS:
        assert field not in data

    other = await client.get(
        f"/api/v1/bookings/{booking['booking_number']}", headers=_as(users.other_customer)
    )
    assert other.status_code == 404


# ── Payments ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_payment_events(client: AsyncClient, users: Users):
    booking = await _create_booking(client, users)
    number = booking["booking_number"]

    deposit = await client.post(
        "/api/v1/payments/events",
        json={"booking_reference": number, "outcome": "succeeded", "method": "deposit"},
        headers=_webhook(),
    )
    assert deposit.status_code == 200
    assert deposit.json()["status"] == "booking_pending_payment"
    assert deposit.json()["payment_status"] == "partial"
    assert deposit.json()["paid_amount"] == 50

    full = await client.post(
        "/api/v1/payments/events",
        json={"booking_reference": number, "outcome": "succeeded", "method": "full"},
        headers=_webhook(),
    )
    assert full.json()["status"] == "booked_confirmed"
    assert full.json()["payment_status"] == "paid"


@pytest.mark.asyncio
async def test_payment_event_requires_secret(client: AsyncClient, users: Users):
    booking = await _create_booking(client, users)
    resp = await client.post(
        "/api/v1/payments/events",
        json={"booking_reference": booking["booking_number"], "outcome": "succeeded"},
        headers={"X-Webhook-Secret": "wrong"},
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_payment_events_refused_without_configured_secret(
    client: AsyncClient, users: Users
):
    booking = await _create_booking(client, users)
    with patch.object(settings, "payment_webhook_secret", ""):
        for secret in ("", "change-me"):
            resp = await client.post(
                "/api/v1/payments/events",
                json={
                    "booking_reference": booking["tracking_token"],
                    "outcome": "succeeded",
                    "method": "full",
                },
                headers={"X-Webhook-Secret": secret},
            )
            assert resp.status_code == 503

    tracking = await client.get(f"/api/v1/tracking/{booking['tracking_token']}")
    assert tracking.json()["status"] == "booking_pending_payment"


@pytest.mark.asyncio
async def test_failed_payment_keeps_status(client: AsyncClient, users: Users):
    booking = await _create_booking(client, users)
    resp = await client.post(
        "/api/v1/payments/events",
        json={"booking_reference": booking["booking_number"], "outcome": "failed"},
        headers=_webhook(),
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "booking_pending_payment"
    assert resp.json()["payment_status"] == "pending"


# ── Tracking ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_tracking_by_token_and_number(client: AsyncClient, users: Users):
    booking = await _create_booking(client, users)
    by_token = await client.get(f"/api/v1/tracking/{booking['tracking_token']}")
    by_number = await client.get(f"/api/v1/tracking/{booking['booking_number']}")
    assert by_token.status_code == 200
    assert by_token.json() == by_number.json()

    data = by_token.json()
    assert data["pickup_suburb"] == "Sydney"
    assert data["dropoff_state"] == "NSW"
    assert len(data["status_history"]) == 1
    body = by_token.text
    assert "12 George St" not in body
    assert "0400 000 001" not in body
    assert "tracking_token" not in data
    for field in INTERNAL_FIELDS:
        assert field not in data


@pytest.mark.asyncio
async def test_tracking_unknown_reference_is_generic_404(client: AsyncClient):
    missing = await client.get("/api/v1/tracking/BK-20261019-9999")
    garbage = await client.get("/api/v1/tracking/not-a-reference")
    assert missing.status_code == garbage.status_code == 404
    assert missing.json() == garbage.json() == {"detail": "Booking not found"}


# ── Admin ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_admin_endpoints_require_admin(client: AsyncClient, users: Users):
    assert (await client.get("/api/v1/admin/bookings")).status_code == 401
    resp = await client.get("/api/v1/admin/bookings", headers=_as(users.customer))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_admin_status_update_and_listing(client: AsyncClient, users: Users, notifier):
    booking = await _create_booking(client, users)
    number = booking["booking_number"]
    await _confirm(client, number)

    resp = await client.patch(
        f"/api/v1/admin/bookings/{number}/status",
        json={"status": "awaiting_driver_assignment", "note": "Ready for dispatch"},
        headers=_as(users.admin),
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "awaiting_driver_assignment"
    assert data["history_entry"]["note"] == "Ready for dispatch"
    assert notifier.sent[-1][1] == "status_update"

    listing = await client.get(
        "/api/v1/admin/bookings",
        params={"status": "awaiting_driver_assignment"},
        headers=_as(users.admin),
    )
    assert [b["booking_number"] for b in listing.json()] == [number]

    empty = await client.get(
        "/api/v1/admin/bookings", params={"status": "delivered"}, headers=_as(users.admin)
    )
    assert empty.json() == []


@pytest.mark.asyncio
async def test_admin_invalid_transition_is_409(client: AsyncClient, users: Users):
    booking = await _create_booking(client, users)
    number = booking["booking_number"]
    await client.patch(
        f"/api/v1/admin/bookings/{number}/status",
        json={"status": "cancelled"},
        headers=_as(users.admin),
    )
    resp = await client.patch(
        f"/api/v1/admin/bookings/{number}/status",
        json={"status": "booked_confirmed"},
        headers=_as(users.admin),
    )
    assert resp.status_code == 409
    assert "cancelled" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_costing_is_never_serialized(client: AsyncClient, users: Users):
    booking = await _create_booking(client, users)
    number = booking["booking_number"]
    resp = await client.put(
        f"/api/v1/admin/bookings/{number}/costing",
        json={"internal_cost_ex_gst": 200},
        headers=_as(users.admin),
    )
    assert resp.status_code == 204

    listing = await client.get("/api/v1/admin/bookings", headers=_as(users.admin))
    tracking = await client.get(f"/api/v1/tracking/{number}")
    mine = await client.get(f"/api/v1/bookings/{number}", headers=_as(users.customer))
    for resp in (listing, tracking, mine):
        for field in INTERNAL_FIELDS:
            assert field not in resp.text


# ── Job assignments ───────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_assignment_flow(client: AsyncClient, users: Users):
    booking = await _create_booking(client, users)
    number = booking["booking_number"]
    await _confirm(client, number)

    assign = await client.post(
        "/api/v1/admin/job-assignments",
        json={
            "booking_reference": number,
            "driver_id": users.driver.id,
            "carrier_id": users.carrier.id,
        },
        headers=_as(users.admin),
    )
    assert assign.status_code == 201
    assignment = assign.json()
    assert assignment["status"] == "assigned"
    assert "carrier_id" not in assignment

    duplicate = await client.post(
        "/api/v1/admin/job-assignments",
        json={"booking_reference": number, "driver_id": users.other_driver.id},
        headers=_as(users.admin),
    )
    assert duplicate.status_code == 409

    mine = await client.get("/api/v1/driver/job-assignments", headers=_as(users.driver))
    assert [a["id"] for a in mine.json()] == [assignment["id"]]
    assert "carrier" not in mine.text

    reject = await client.post(
        f"/api/v1/driver/job-assignments/{assignment['id']}/respond",
        json={"outcome": "rejected"},
        headers=_as(users.driver),
    )
    assert reject.status_code == 200
    assert reject.json()["status"] == "rejected"

    tracking = await client.get(f"/api/v1/tracking/{number}")
    assert tracking.json()["status"] == "awaiting_driver_assignment"

    reassign = await client.post(
        "/api/v1/admin/job-assignments",
        json={"booking_reference": number, "driver_id": users.other_driver.id},
        headers=_as(users.admin),
    )
    assert reassign.status_code == 201

    listing = await client.get("/api/v1/admin/job-assignments", headers=_as(users.admin))
    assert len(listing.json()) == 2
    assert "carrier" not in listing.text

    cancel = await client.post(
        f"/api/v1/admin/job-assignments/{reassign.json()['id']}/cancel",
        headers=_as(users.admin),
    )
    assert cancel.status_code == 200
    assert cancel.json()["status"] == "cancelled"


@pytest.mark.asyncio
async def test_driver_endpoints_require_driver(client: AsyncClient, users: Users):
    resp = await client.get("/api/v1/driver/job-assignments", headers=_as(users.admin))
    assert resp.status_code == 403
