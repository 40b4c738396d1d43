"""
Tests for the shopping cart, API envelope and health endpoints.
"""

from decimal import Decimal

import pytest
from httpx import AsyncClient

from arena.api.middleware import caller_kind
from arena.core.logging import redact_secrets
from tests.conftest import shipping_address


@pytest.mark.asyncio
async def test_add_and_remove_cart_item(client: AsyncClient, auth_headers, product):
    added = await client.post(
        "/api/v1/cart/", json={"item_type": "product", "product_id": product.id, "quantity": 2}, headers=auth_headers
    )
    assert added.status_code == 201
    item_id = added.json()["data"]["id"]

    listed = await client.get("/api/v1/cart/", headers=auth_headers)
    assert [item["id"] for item in listed.json()["data"]] == [item_id]

    removed = await client.delete(f"/api/v1/cart/{item_id}", headers=auth_headers)
    assert removed.status_code == 200
    assert removed.json() == {"success": True, "message": "Removed from cart", "data": None}

    missing = await client.delete(f"/api/v1/cart/{item_id}", headers=auth_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_cart_item_needs_matching_reference(client: AsyncClient, auth_headers, product):
    response = await client.post(
        "/api/v1/cart/", json={"item_type": "tournament", "product_id": product.id}, headers=auth_headers
    )
    assert response.status_code == 400
    assert "tournament_id is required" in response.json()["message"]


@pytest.mark.asyncio
async def test_cart_item_for_unknown_product(client: AsyncClient, auth_headers):
    response = await client.post(
        "/api/v1/cart/", json={"item_type": "product", "product_id": 99999}, headers=auth_headers
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_cart_requires_auth(client: AsyncClient):
    response = await client.get("/api/v1/cart/")
    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Not authenticated"}


@pytest.mark.asyncio
async def test_invalid_token(client: AsyncClient):
    response = await client.get("/api/v1/cart/", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_malformed_body_is_400(client: AsyncClient, auth_headers):
    response = await client.post(
        "/api/v1/cart/", content="not json", headers={**auth_headers, "Content-Type": "application/json"}
    )
    assert response.status_code == 400
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_notifications_feed(client: AsyncClient, auth_headers, test_user, venue_event):
    await client.post(f"/api/v1/registrations/events/{venue_event.id}", json={}, headers=auth_headers)

    response = await client.get("/api/v1/notifications/", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert len(data) == 1
    assert data[0]["type"] == "event_registration"
    assert data[0]["is_read"] is False


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["cache"] == {"status": "disabled"}


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient):
    response = await client.get("/health", headers={"X-Request-ID": "abc123"})
    assert response.headers["X-Request-ID"] == "abc123"


@pytest.mark.asyncio
async def test_unusable_request_id_is_replaced(client: AsyncClient):
    response = await client.get("/health", headers={"X-Request-ID": "x" * 200})
    echoed = response.headers["X-Request-ID"]
    assert echoed != "x" * 200
    assert 0 < len(echoed) <= 64


def test_payment_secrets_are_masked_in_logs():
    event = redact_secrets(None, "info", {"event": "intent_created", "client_secret": "pi_1_secret_x", "amount": 5})
    assert event["client_secret"] == "***"
    assert event["amount"] == 5


@pytest.mark.asyncio
async def test_update_cart_quantity(client: AsyncClient, auth_headers, other_headers, product):
    added = await client.post(
        "/api/v1/cart/", json={"item_type": "product", "product_id": product.id, "quantity": 1}, headers=auth_headers
    )
    item_id = added.json()["data"]["id"]

    updated = await client.patch(f"/api/v1/cart/{item_id}", json={"quantity": 4}, headers=auth_headers)
    assert updated.status_code == 200
    assert updated.json()["message"] == "Cart item quantity updated"
    assert updated.json()["data"]["quantity"] == 4

    listed = await client.get("/api/v1/cart/", headers=auth_headers)
    assert listed.json()["data"][0]["quantity"] == 4

    zero = await client.patch(f"/api/v1/cart/{item_id}", json={"quantity": 0}, headers=auth_headers)
    assert zero.status_code == 400

    not_mine = await client.patch(f"/api/v1/cart/{item_id}", json={"quantity": 2}, headers=other_headers)
    assert not_mine.status_code == 404
    assert (await client.get("/api/v1/cart/", headers=auth_headers)).json()["data"][0]["quantity"] == 4


@pytest.mark.asyncio
async def test_updated_quantity_flows_into_cart_order(client: AsyncClient, auth_headers, product):
    added = await client.post(
        "/api/v1/cart/", json={"item_type": "product", "product_id": product.id, "quantity": 1}, headers=auth_headers
    )
    await client.patch(f"/api/v1/cart/{added.json()['data']['id']}", json={"quantity": 3}, headers=auth_headers)

    order = await client.post(
        "/api/v1/orders/from-cart",
        json={"shipping_address": shipping_address(), "payment_method": "online"},
        headers=auth_headers,
    )
    assert order.status_code == 201
    assert Decimal(order.json()["data"]["total_amount"]) == Decimal("30.00")


def _request(headers: dict):
    from starlette.requests import Request

    raw = [(k.lower().encode(), v.encode()) for k, v in headers.items()]
    return Request({"type": "http", "method": "POST", "path": "/", "headers": raw})


def test_caller_kind():
    assert caller_kind(_request({"Stripe-Signature": "t=1,v1=abc"})) == "stripe_webhook"
    assert caller_kind(_request({"Authorization": "Bearer token"})) == "user"
    assert caller_kind(_request({})) == "guest"
