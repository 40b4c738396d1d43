"""
Tests for tournament and event registrations.
"""

import pytest
from httpx import AsyncClient

from arena.models.notification import Notification
from arena.models.registration import EventRegistration
from tests.conftest import count_rows, fetch

GUEST = {"name": "Walk In", "email": "walkin@virtualarena.io"}


@pytest.mark.asyncio
async def test_register_for_event(client: AsyncClient, auth_headers, test_user, venue_event):
    response = await client.post(
        f"/api/v1/registrations/events/{venue_event.id}", json={"payment_option": "at_event"}, headers=auth_headers
    )
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["target_id"] == venue_event.id
    assert data["user_id"] == test_user.id
    assert data["status"] == "registered"
    assert data["payment_status"] == "pending"
    assert data["payment_option"] == "at_event"
    assert await count_rows(Notification, Notification.user_id == test_user.id) == 1


@pytest.mark.asyncio
async def test_guest_registration(client: AsyncClient, venue_event):
    response = await client.post(f"/api/v1/registrations/events/{venue_event.id}", json={"guest": GUEST})
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["is_guest"] is True
    assert data["registration_reference"].startswith("REG-")


@pytest.mark.asyncio
async def test_duplicate_registration(client: AsyncClient, auth_headers, venue_event):
    await client.post(f"/api/v1/registrations/events/{venue_event.id}", json={}, headers=auth_headers)
    response = await client.post(f"/api/v1/registrations/events/{venue_event.id}", json={}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Already registered for this event"


@pytest.mark.asyncio
async def test_tournament_is_full(client: AsyncClient, auth_headers, other_headers, tournament):
    """The tournament fixture takes a single participant."""
    first = await client.post(f"/api/v1/registrations/tournaments/{tournament.id}", json={}, headers=auth_headers)
    assert first.status_code == 201

    second = await client.post(f"/api/v1/registrations/tournaments/{tournament.id}", json={}, headers=other_headers)
    assert second.status_code == 400
    assert second.json()["message"] == "Tournament is full"


@pytest.mark.asyncio
async def test_cancel_frees_tournament_place(client: AsyncClient, auth_headers, other_headers, tournament):
    first = await client.post(f"/api/v1/registrations/tournaments/{tournament.id}", json={}, headers=auth_headers)
    registration_id = first.json()["data"]["id"]

    cancelled = await client.post(f"/api/v1/registrations/tournaments/{registration_id}/cancel", headers=auth_headers)
    assert cancelled.status_code == 200
    assert cancelled.json()["data"]["status"] == "cancelled"

    again = await client.post(f"/api/v1/registrations/tournaments/{registration_id}/cancel", headers=auth_headers)
    assert again.status_code == 400

    second = await client.post(f"/api/v1/registrations/tournaments/{tournament.id}", json={}, headers=other_headers)
    assert second.status_code == 201


@pytest.mark.asyncio
async def test_register_unknown_target(client: AsyncClient, auth_headers):
    response = await client.post("/api/v1/registrations/events/99999", json={}, headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_my_registrations(client: AsyncClient, auth_headers, tournament, venue_event):
    await client.post(f"/api/v1/registrations/tournaments/{tournament.id}", json={}, headers=auth_headers)
    await client.post(f"/api/v1/registrations/events/{venue_event.id}", json={}, headers=auth_headers)

    response = await client.get("/api/v1/registrations/", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert [r["target_id"] for r in data["tournament"]] == [tournament.id]
    assert [r["target_id"] for r in data["event"]] == [venue_event.id]


@pytest.mark.asyncio
async def test_other_user_cannot_cancel(client: AsyncClient, auth_headers, other_headers, venue_event):
    created = await client.post(f"/api/v1/registrations/events/{venue_event.id}", json={}, headers=auth_headers)
    registration_id = created.json()["data"]["id"]

    response = await client.post(f"/api/v1/registrations/events/{registration_id}/cancel", headers=other_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_admin_marks_at_event_registration_paid(
    client: AsyncClient, auth_headers, admin_headers, test_user, venue_event
):
    created = await client.post(
        f"/api/v1/registrations/events/{venue_event.id}", json={"payment_option": "at_event"}, headers=auth_headers
    )
    registration_id = created.json()["data"]["id"]

    response = await client.patch(
        f"/api/v1/registrations/events/{registration_id}",
        json={"payment_status": "paid", "status": "confirmed"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["payment_status"] == "paid"
    assert data["status"] == "confirmed"

    stored = await fetch(EventRegistration, EventRegistration.id == registration_id)
    assert stored.payment_status == "paid"
    assert await count_rows(Notification, Notification.type == "event_registration_updated") == 1


@pytest.mark.asyncio
async def test_registration_update_is_admin_only(client: AsyncClient, auth_headers, tournament):
    created = await client.post(f"/api/v1/registrations/tournaments/{tournament.id}", json={}, headers=auth_headers)
    registration_id = created.json()["data"]["id"]

    response = await client.patch(
        f"/api/v1/registrations/tournaments/{registration_id}", json={"payment_status": "paid"}, headers=auth_headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_registration_update_validation(client: AsyncClient, auth_headers, admin_headers, tournament):
    created = await client.post(f"/api/v1/registrations/tournaments/{tournament.id}", json={}, headers=auth_headers)
    registration_id = created.json()["data"]["id"]

    empty = await client.patch(f"/api/v1/registrations/tournaments/{registration_id}", json={}, headers=admin_headers)
    assert empty.status_code == 400
    assert empty.json()["message"] == "No fields to update"

    bad_value = await client.patch(
        f"/api/v1/registrations/tournaments/{registration_id}", json={"payment_status": "refunded"}, headers=admin_headers
    )
    assert bad_value.status_code == 400

    missing = await client.patch(
        "/api/v1/registrations/tournaments/99999", json={"status": "confirmed"}, headers=admin_headers
    )
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_admin_lists_all_registrations(
    client: AsyncClient, auth_headers, other_headers, admin_headers, venue_event
):
    await client.post(f"/api/v1/registrations/events/{venue_event.id}", json={}, headers=auth_headers)
    second = await client.post(f"/api/v1/registrations/events/{venue_event.id}", json={}, headers=other_headers)
    await client.post(f"/api/v1/registrations/events/{second.json()['data']['id']}/cancel", headers=other_headers)

    everything = await client.get("/api/v1/registrations/events/all", headers=admin_headers)
    assert everything.status_code == 200
    assert len(everything.json()["data"]) == 2

    cancelled = await client.get("/api/v1/registrations/events/all?status=cancelled", headers=admin_headers)
    assert [r["id"] for r in cancelled.json()["data"]] == [second.json()["data"]["id"]]

    forbidden = await client.get("/api/v1/registrations/events/all", headers=auth_headers)
    assert forbidden.status_code == 403

    unknown_kind = await client.get("/api/v1/registrations/workshops/all", headers=admin_headers)
    assert unknown_kind.status_code == 404


@pytest.mark.asyncio
async def test_get_registration(client: AsyncClient, auth_headers, other_headers, admin_headers, tournament):
    created = await client.post(f"/api/v1/registrations/tournaments/{tournament.id}", json={}, headers=auth_headers)
    registration_id = created.json()["data"]["id"]

    mine = await client.get(f"/api/v1/registrations/tournaments/{registration_id}", headers=auth_headers)
    assert mine.status_code == 200
    assert mine.json()["data"]["target_id"] == tournament.id

    assert (await client.get(f"/api/v1/registrations/tournaments/{registration_id}", headers=other_headers)).status_code == 404
    assert (await client.get(f"/api/v1/registrations/tournaments/{registration_id}", headers=admin_headers)).status_code == 200
