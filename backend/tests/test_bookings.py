"""
Tests for booking endpoints including capacity and concurrency scenarios.
"""

import dataclasses
from datetime import datetime

import pytest
from httpx import AsyncClient

from arena.models.booking import Booking
from arena.models.notification import Notification
from arena.schemas.booking import BookingCreate
from arena.services import booking_service
from arena.services.capacity_service import check_capacity
from tests.conftest import count_rows, slot

GUEST = {"name": "Walk In", "email": "walkin@virtualarena.io", "phone": "+91 90000 00000"}


def booking_json(session_id: int, **overrides) -> dict:
    body = {"session_id": session_id, "machine_type": "VR Pod", "total_amount": "20.00", **slot()}
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_book_session(client: AsyncClient, auth_headers, test_user, vr_session):
    """Successful booking is pending payment and holds a slot."""
    response = await client.post("/api/v1/bookings/", json=booking_json(vr_session.id), headers=auth_headers)
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    assert data["session_id"] == vr_session.id
    assert data["user_id"] == test_user.id
    assert data["payment_status"] == "pending"
    assert data["session_status"] == "pending"
    assert data["is_guest"] is False
    assert data["booking_reference"] is None


@pytest.mark.asyncio
async def test_book_session_as_guest(client: AsyncClient, vr_session):
    """Guests get a reference they can look the booking up with."""
    response = await client.post("/api/v1/bookings/", json=booking_json(vr_session.id, guest=GUEST))
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["user_id"] is None
    assert data["is_guest"] is True
    assert data["guest_email"] == GUEST["email"]
    reference = data["booking_reference"]
    assert reference.startswith("GUEST-")

    lookup = await client.get(f"/api/v1/bookings/reference/{reference}", params={"email": GUEST["email"]})
    assert lookup.status_code == 200
    assert lookup.json()["data"]["id"] == data["id"]

    wrong_email = await client.get(
        f"/api/v1/bookings/reference/{reference}", params={"email": "someone@virtualarena.io"}
    )
    assert wrong_email.status_code == 404


@pytest.mark.asyncio
async def test_book_without_identity(client: AsyncClient, vr_session):
    """Anonymous booking without guest details returns 400."""
    response = await client.post("/api/v1/bookings/", json=booking_json(vr_session.id))
    assert response.status_code == 400
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_capacity_enforced(client: AsyncClient, auth_headers, other_headers, vr_session):
    """A session with two player slots admits exactly two bookings."""
    first = await client.post("/api/v1/bookings/", json=booking_json(vr_session.id), headers=auth_headers)
    second = await client.post("/api/v1/bookings/", json=booking_json(vr_session.id), headers=other_headers)
    assert first.status_code == 201
    assert second.status_code == 201

    third = await client.post("/api/v1/bookings/", json=booking_json(vr_session.id, guest=GUEST))
    assert third.status_code == 400
    assert third.json() == {"success": False, "message": "Session is full. Maximum 2 players allowed"}

    assert await count_rows(Booking, Booking.session_id == vr_session.id) == 2


@pytest.mark.asyncio
async def test_duplicate_booking(client: AsyncClient, auth_headers, vr_session):
    """Same user booking the same session twice returns 400."""
    first = await client.post("/api/v1/bookings/", json=booking_json(vr_session.id), headers=auth_headers)
    assert first.status_code == 201

    second = await client.post("/api/v1/bookings/", json=booking_json(vr_session.id), headers=auth_headers)
    assert second.status_code == 400
    assert second.json()["message"] == "You already have a booking for this session"


@pytest.mark.asyncio
async def test_duplicate_guest_booking(client: AsyncClient, vr_session):
    """Guests are deduplicated by email."""
    first = await client.post("/api/v1/bookings/", json=booking_json(vr_session.id, guest=GUEST))
    assert first.status_code == 201

    second = await client.post("/api/v1/bookings/", json=booking_json(vr_session.id, guest=GUEST))
    assert second.status_code == 400


@pytest.mark.asyncio
async def test_cancel_frees_slot(client: AsyncClient, auth_headers, other_headers, vr_session):
    """A cancelled booking no longer counts against capacity."""
    mine = await client.post("/api/v1/bookings/", json=booking_json(vr_session.id), headers=auth_headers)
    await client.post("/api/v1/bookings/", json=booking_json(vr_session.id), headers=other_headers)

    cancel = await client.post(f"/api/v1/bookings/{mine.json()['data']['id']}/cancel", headers=auth_headers)
    assert cancel.status_code == 200
    assert cancel.json()["data"]["payment_status"] == "cancelled"

    guest = await client.post("/api/v1/bookings/", json=booking_json(vr_session.id, guest=GUEST))
    assert guest.status_code == 201


@pytest.mark.asyncio
async def test_rebook_after_cancel(client: AsyncClient, auth_headers, vr_session):
    """Cancelling lifts the duplicate guard for the same user."""
    mine = await client.post("/api/v1/bookings/", json=booking_json(vr_session.id), headers=auth_headers)
    await client.post(f"/api/v1/bookings/{mine.json()['data']['id']}/cancel", headers=auth_headers)

    again = await client.post("/api/v1/bookings/", json=booking_json(vr_session.id), headers=auth_headers)
    assert again.status_code == 201


@pytest.mark.asyncio
async def test_cancel_already_cancelled(client: AsyncClient, auth_headers, vr_session):
    """Double-cancelling returns 400."""
    book = await client.post("/api/v1/bookings/", json=booking_json(vr_session.id), headers=auth_headers)
    booking_id = book.json()["data"]["id"]

    await client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=auth_headers)
    response = await client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Booking is already cancelled"


@pytest.mark.asyncio
async def test_session_status_follows_clock(client: AsyncClient, auth_headers, other_headers, vr_session):
    running = await client.post(
        "/api/v1/bookings/",
        json=booking_json(vr_session.id, **slot(hours_from_now=-0.5)),
        headers=auth_headers,
    )
    assert running.json()["data"]["session_status"] == "started"

    finished = await client.post(
        "/api/v1/bookings/",
        json=booking_json(vr_session.id, **slot(hours_from_now=-3)),
        headers=other_headers,
    )
    assert finished.json()["data"]["session_status"] == "completed"


@pytest.mark.asyncio
async def test_reversed_time_window(client: AsyncClient, auth_headers, vr_session):
    window = slot()
    response = await client.post(
        "/api/v1/bookings/",
        json=booking_json(vr_session.id, start_time=window["end_time"], end_time=window["start_time"]),
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_reversed_window_with_mixed_offsets(client: AsyncClient, auth_headers, vr_session):
    window = slot()
    naive_start = datetime.fromisoformat(window["start_time"]).replace(tzinfo=None).isoformat()
    response = await client.post(
        "/api/v1/bookings/",
        json=booking_json(vr_session.id, start_time=window["end_time"], end_time=naive_start),
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert "end_time must be after start_time" in response.json()["message"]


def test_mixed_offset_window_is_compared_in_utc():
    window = slot()
    naive_end = datetime.fromisoformat(window["end_time"]).replace(tzinfo=None)
    body = BookingCreate(session_id=1, machine_type="VR Pod", start_time=window["start_time"], end_time=naive_end)
    assert body.end_time == naive_end


@pytest.mark.asyncio
async def test_book_nonexistent_session(client: AsyncClient, auth_headers):
    """Booking a non-existent session returns 404."""
    response = await client.post("/api/v1/bookings/", json=booking_json(99999), headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_user_bookings(client: AsyncClient, auth_headers, other_headers, vr_session):
    """Users only see their own bookings."""
    await client.post("/api/v1/bookings/", json=booking_json(vr_session.id), headers=auth_headers)
    await client.post("/api/v1/bookings/", json=booking_json(vr_session.id), headers=other_headers)

    response = await client.get("/api/v1/bookings/", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert len(data) == 1
    assert data[0]["session_id"] == vr_session.id


@pytest.mark.asyncio
async def test_other_user_cannot_read_booking(client: AsyncClient, auth_headers, other_headers, vr_session):
    book = await client.post("/api/v1/bookings/", json=booking_json(vr_session.id), headers=auth_headers)
    response = await client.get(f"/api/v1/bookings/{book.json()['data']['id']}", headers=other_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_all_requires_admin(client: AsyncClient, auth_headers, admin_headers, vr_session):
    await client.post("/api/v1/bookings/", json=booking_json(vr_session.id), headers=auth_headers)

    forbidden = await client.get("/api/v1/bookings/all", headers=auth_headers)
    assert forbidden.status_code == 403

    response = await client.get("/api/v1/bookings/all", headers=admin_headers)
    assert response.status_code == 200
    assert len(response.json()["data"]) == 1


@pytest.mark.asyncio
async def test_payment_status_is_admin_only(client: AsyncClient, auth_headers, admin_headers, vr_session):
    book = await client.post("/api/v1/bookings/", json=booking_json(vr_session.id), headers=auth_headers)
    booking_id = book.json()["data"]["id"]

    denied = await client.patch(
        f"/api/v1/bookings/{booking_id}", json={"payment_status": "paid"}, headers=auth_headers
    )
    assert denied.status_code == 403

    allowed = await client.patch(
        f"/api/v1/bookings/{booking_id}", json={"payment_status": "paid"}, headers=admin_headers
    )
    assert allowed.status_code == 200
    assert allowed.json()["data"]["payment_status"] == "paid"


@pytest.mark.asyncio
async def test_update_booking(client: AsyncClient, auth_headers, vr_session):
    book = await client.post("/api/v1/bookings/", json=booking_json(vr_session.id), headers=auth_headers)
    booking_id = book.json()["data"]["id"]

    response = await client.patch(
        f"/api/v1/bookings/{booking_id}",
        json={"player_count": 2, "machine_type": "Racing Rig"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["player_count"] == 2
    assert data["machine_type"] == "Racing Rig"


@pytest.mark.asyncio
async def test_empty_update_rejected(client: AsyncClient, auth_headers, vr_session):
    book = await client.post("/api/v1/bookings/", json=booking_json(vr_session.id), headers=auth_headers)
    response = await client.patch(f"/api/v1/bookings/{book.json()['data']['id']}", json={}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "No fields to update"


@pytest.mark.asyncio
async def test_update_cannot_reverse_window(client: AsyncClient, auth_headers, vr_session):
    book = await client.post("/api/v1/bookings/", json=booking_json(vr_session.id), headers=auth_headers)
    data = book.json()["data"]
    response = await client.patch(
        f"/api/v1/bookings/{data['id']}",
        json={"end_time": slot(hours_from_now=-48)["end_time"]},
        headers=auth_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_delete_requires_admin(client: AsyncClient, auth_headers, admin_headers, vr_session):
    book = await client.post("/api/v1/bookings/", json=booking_json(vr_session.id), headers=auth_headers)
    booking_id = book.json()["data"]["id"]

    assert (await client.delete(f"/api/v1/bookings/{booking_id}", headers=auth_headers)).status_code == 403
    assert (await client.delete(f"/api/v1/bookings/{booking_id}", headers=admin_headers)).status_code == 200
    assert await count_rows(Booking) == 0


@pytest.mark.asyncio
async def test_availability(client: AsyncClient, auth_headers, vr_session):
    body = booking_json(vr_session.id)
    await client.post("/api/v1/bookings/", json=body, headers=auth_headers)
    day = datetime.fromisoformat(body["start_time"]).date().isoformat()

    response = await client.get(f"/api/v1/bookings/availability/{vr_session.id}", params={"day": day})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["capacity"] == 2
    assert data["booked"] == 1
    assert data["available"] == 1
    assert len(data["slots"]) == 1


@pytest.mark.asyncio
async def test_side_effects_after_booking(client: AsyncClient, auth_headers, test_user, admin_user, vr_session, broadcaster):
    """The user and every admin are notified; a real-time update is published."""
    response = await client.post("/api/v1/bookings/", json=booking_json(vr_session.id), headers=auth_headers)
    booking_id = response.json()["data"]["id"]

    assert await count_rows(Notification, Notification.user_id == test_user.id) == 1
    assert await count_rows(Notification, Notification.user_id == admin_user.id) == 1
    assert ("booking.created", {"booking_id": booking_id, "session_id": vr_session.id, "payment_status": "pending"}) in broadcaster.published


@pytest.mark.asyncio
async def test_version_conflict_is_retried(client: AsyncClient, auth_headers, vr_session, monkeypatch):
    """A concurrent writer bumping the session version forces one retry, not a failure."""
    calls = []

    async def stale_once(db, session_id, purchaser):
        decision = await check_capacity(db, session_id, purchaser)
        calls.append(decision.version)
        if len(calls) == 1:
            return dataclasses.replace(decision, version=decision.version - 1)
        return decision

    monkeypatch.setattr(booking_service, "check_capacity", stale_once)

    response = await client.post("/api/v1/bookings/", json=booking_json(vr_session.id), headers=auth_headers)
    assert response.status_code == 201
    assert len(calls) == 2
    assert await count_rows(Booking) == 1


@pytest.mark.asyncio
async def test_retries_exhausted(client: AsyncClient, auth_headers, vr_session, monkeypatch):
    """Persistent version conflicts end in a 400 and no booking."""

    async def always_stale(db, session_id, purchaser):
        decision = await check_capacity(db, session_id, purchaser)
        return dataclasses.replace(decision, version=decision.version - 1)

    monkeypatch.setattr(booking_service, "check_capacity", always_stale)

    response = await client.post("/api/v1/bookings/", json=booking_json(vr_session.id), headers=auth_headers)
    assert response.status_code == 400
    assert "high demand" in response.json()["message"]
    assert await count_rows(Booking) == 0
