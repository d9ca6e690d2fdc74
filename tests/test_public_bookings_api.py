"""Tests for customer self-service booking, confirmation and cancellation links."""

from datetime import datetime, time, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest

from app.services.email_service import email_service

BASE = "/api/v1/public/bookings"


async def book(client, business, day, start_time="10:00", email="ann@example.com"):
    with patch.object(email_service, "send_booking_confirmation_request", new_callable=AsyncMock) as mock_send:
        resp = await client.post(BASE, json={
            "business_id": business["business_id"],
            "service_id": business["service_id"],
            "date": day.isoformat(),
            "start_time": start_time,
            "customer_name": "Ann Lee",
            "customer_email": email,
        })
    token = mock_send.call_args.kwargs["token"] if mock_send.called else None
    return resp, token


@pytest.mark.asyncio
async def test_customer_booking_is_pending_until_confirmed(client, business, booking_day):
    resp, token = await book(client, business, booking_day)
    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "pending"
    assert body["start_local"] == f"{booking_day.isoformat()}T10:00:00"
    assert body["end_local"] == f"{booking_day.isoformat()}T11:00:00"
    # Tokens only travel by email
    assert "token" not in str(body)
    assert token

    resp = await client.get(f"{BASE}/confirm/{token}")
    assert resp.status_code == 200
    assert resp.json()["status"] == "confirmed"
    assert resp.json()["already_confirmed"] is False

    # Reusing the link is not an error
    resp = await client.get(f"{BASE}/confirm/{token}")
    assert resp.status_code == 200
    assert resp.json()["already_confirmed"] is True


@pytest.mark.asyncio
async def test_pending_booking_blocks_the_slot(client, business, booking_day):
    resp, _ = await book(client, business, booking_day)
    assert resp.status_code == 201

    resp, token = await book(client, business, booking_day, start_time="10:30", email="bob@example.com")
    assert resp.status_code == 422
    assert resp.json()["detail"]["code"] == "slot_unavailable"
    assert token is None


@pytest.mark.asyncio
async def test_time_not_on_the_slot_grid_is_refused(client, business, booking_day):
    resp, _ = await book(client, business, booking_day, start_time="10:10")
    assert resp.status_code == 422
    assert resp.json()["detail"]["code"] == "slot_unavailable"


@pytest.mark.asyncio
async def test_booking_beyond_horizon_is_refused(client, business):
    far = datetime.now(timezone.utc).date() + timedelta(days=120)
    resp, _ = await book(client, business, far)
    assert resp.status_code == 422
    assert resp.json()["detail"]["code"] == "beyond_booking_horizon"


@pytest.mark.asyncio
async def test_booking_inside_advance_notice_is_refused(client, business):
    await client.put(f"/api/v1/businesses/{business['business_id']}/policy", json={
        "slot_interval_minutes": 30,
        "advance_notice_minutes": 10080,
        "cancellation_window_minutes": 0,
        "max_advance_days": 60,
    })
    tomorrow = datetime.now(timezone.utc).date() + timedelta(days=1)
    resp, token = await book(client, business, tomorrow)
    assert resp.status_code == 422
    assert resp.json()["detail"]["code"] == "advance_notice"
    assert token is None


@pytest.mark.asyncio
async def test_offset_on_start_time_is_ignored(client, business, booking_day):
    resp, _ = await book(client, business, booking_day, start_time="10:00:00+02:00")
    assert resp.status_code == 201
    assert resp.json()["start_local"] == f"{booking_day.isoformat()}T10:00:00"


@pytest.mark.asyncio
async def test_unknown_business_or_service(client, business, booking_day):
    resp, _ = await book(client, {**business, "business_id": "00000000-0000-0000-0000-000000000000"}, booking_day)
    assert resp.status_code == 404

    resp, _ = await book(client, {**business, "service_id": "00000000-0000-0000-0000-000000000000"}, booking_day)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_invalid_token(client):
    resp = await client.get(f"{BASE}/confirm/not-a-real-token")
    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "invalid_token"


@pytest.mark.asyncio
async def test_cancel_by_link(client, business, booking_day):
    _, token = await book(client, business, booking_day)

    resp = await client.post(f"{BASE}/cancel/{token}")
    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"

    resp = await client.get(f"{BASE}/cancel/{token}")
    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "already_cancelled"

    # A cancelled booking cannot be confirmed, and frees the slot
    resp = await client.get(f"{BASE}/confirm/{token}")
    assert resp.status_code == 409

    resp, _ = await book(client, business, booking_day, email="bob@example.com")
    assert resp.status_code == 201


@pytest.mark.asyncio
async def test_cancel_inside_cancellation_window_is_refused(client, business):
    biz_url = f"/api/v1/businesses/{business['business_id']}"
    await client.put(f"{biz_url}/working-hours", json={"days": [
        {"weekday": d, "open_time": "00:00", "close_time": "23:59"} for d in range(1, 8)
    ]})
    await client.put(f"{biz_url}/policy", json={
        "slot_interval_minutes": 30,
        "advance_notice_minutes": 0,
        "cancellation_window_minutes": 10080,
        "max_advance_days": 60,
    })

    tomorrow = datetime.now(timezone.utc).date() + timedelta(days=1)
    resp, token = await book(client, business, tomorrow)
    assert resp.status_code == 201

    resp = await client.post(f"{BASE}/cancel/{token}")
    assert resp.status_code == 422
    assert resp.json()["detail"]["code"] == "cancellation_window"


@pytest.mark.asyncio
async def test_buffer_reaching_past_midnight_blocks_first_slot(client, business, booking_day, add_appointment):
    biz_url = f"/api/v1/businesses/{business['business_id']}"
    await client.put(f"{biz_url}/working-hours", json={"days": [
        {"weekday": d, "open_time": "00:00", "close_time": "23:59"} for d in range(1, 8)
    ]})
    await client.put(f"{biz_url}/policy", json={
        "slot_interval_minutes": 30,
        "advance_notice_minutes": 0,
        "cancellation_window_minutes": 0,
        "max_advance_days": 60,
    })
    resp = await client.post(f"{biz_url}/services", json={
        "name": "Colour",
        "duration_minutes": 50,
        "price": "80.00",
        "buffer_after": 30,
    })
    assert resp.status_code == 201
    colour = {**business, "service_id": resp.json()["id"]}

    # 23:00-23:50 the evening before, blocked until 00:20 by its buffer
    evening = datetime.combine(booking_day - timedelta(days=1), time(23), tzinfo=timezone.utc)
    await add_appointment(business["business_id"], colour["service_id"], evening, minutes=50)

    # The slot list only looks at bookings starting on the requested day
    resp = await client.get("/api/v1/availability/slots", params={
        "business_id": business["business_id"],
        "service_id": colour["service_id"],
        "date": booking_day.isoformat(),
    })
    assert "00:00" in resp.json()["slots"]

    resp, token = await book(client, colour, booking_day, start_time="00:00")
    assert resp.status_code == 422
    assert resp.json()["detail"]["code"] == "slot_unavailable"
    assert token is None

    resp, _ = await book(client, colour, booking_day, start_time="00:30")
    assert resp.status_code == 201
