"""
Pytest fixtures for test database, client, payment gateway and authentication.

Uses a separate SQLite database, created and dropped per test for isolation.
Every request gets its own session, as in production, so state written by one
request is only visible to the next through the database.
"""

import hashlib
import hmac
import json
import os
import time
from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import AsyncGenerator

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///./test_arena.db")
WEBHOOK_SECRET = "whsec_test"

os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["REDIS_ENABLED"] = "false"
os.environ["PUSHER_APP_ID"] = ""

import pytest
import pytest_asyncio
import stripe
from httpx import AsyncClient, ASGITransport
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from arena.main import app
from arena.db.base import Base
from arena.db.session import get_db
from arena.core.security import create_access_token
from arena.infrastructure.realtime import Broadcaster, get_broadcaster
from arena.infrastructure.stripe_gateway import StripeGateway, get_payment_gateway
from arena.models.catalog import Product, Tournament, VenueEvent
from arena.models.gift_card import GiftCard
from arena.models.user import User
from arena.models.vr_session import VRSession

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


class FakeGateway(StripeGateway):
    """
    Stripe stand-in: records every create call and answers with real
    stripe objects. Webhook verification is the real one, keyed with
    WEBHOOK_SECRET. Set `error` to make the next provider call raise it.
    """

    def __init__(self):
        super().__init__(api_key="sk_test_fake", webhook_secret=WEBHOOK_SECRET, currency="usd")
        self.calls: list[tuple[str, dict]] = []
        self.sessions: dict[str, stripe.checkout.Session] = {}
        self.error = None

    def _record(self, kind: str, params: dict) -> int:
        if self.error is not None:
            raise self.error
        self.calls.append((kind, params))
        return len(self.calls)

    def _session_create(self, api_key=None, **params):
        session_id = f"cs_test_{self._record('checkout_session', params)}"
        session = stripe.checkout.Session.construct_from(
            {
                "id": session_id,
                "object": "checkout.session",
                "url": f"https://checkout.stripe.com/c/pay/{session_id}",
                "metadata": params.get("metadata", {}),
                "payment_status": "unpaid",
            },
            api_key,
        )
        self.sessions[session_id] = session
        return session

    def _session_retrieve(self, session_id, api_key=None):
        if self.error is not None:
            raise self.error
        return self.sessions[session_id]

    def _intent_create(self, api_key=None, **params):
        intent_id = f"pi_test_{self._record('payment_intent', params)}"
        return stripe.PaymentIntent.construct_from(
            {
                "id": intent_id,
                "object": "payment_intent",
                "client_secret": f"{intent_id}_secret_test",
                "metadata": params.get("metadata", {}),
            },
            api_key,
        )

    async def create_checkout_session(self, **params):
        return await self._call(self._session_create, **params)

    async def retrieve_checkout_session(self, session_id: str):
        return await self._call(self._session_retrieve, session_id)

    async def create_payment_intent(self, **params):
        return await self._call(self._intent_create, **params)

    def last_params(self, kind: str) -> dict:
        return [params for call_kind, params in self.calls if call_kind == kind][-1]


class RecordingBroadcaster(Broadcaster):
    def __init__(self):
        super().__init__(None, "arena-test")
        self.published: list[tuple[str, dict]] = []

    async def publish(self, event: str, data: dict) -> None:
        self.published.append((event, data))


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    """Stripe-Signature header value for `payload`."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def stripe_event(event_id: str, event_type: str, obj: dict) -> str:
    return json.dumps(
        {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "data": {"object": obj},
        }
    )


async def post_webhook(client: AsyncClient, payload: str, signature: str = None):
    headers = {"Content-Type": "application/json"}
    headers["Stripe-Signature"] = signature if signature is not None else sign_payload(payload)
    return await client.post("/api/v1/webhooks/stripe", content=payload, headers=headers)


def slot(hours_from_now: float = 24, duration_hours: float = 1) -> dict:
    start = datetime.now(timezone.utc) + timedelta(hours=hours_from_now)
    end = start + timedelta(hours=duration_hours)
    return {"start_time": start.isoformat(), "end_time": end.isoformat()}


def shipping_address() -> dict:
    return {
        "full_name": "Asha Rao",
        "address": "12 Arena Road",
        "city": "Pune",
        "state": "MH",
        "zip_code": "411001",
        "country": "IN",
    }


async def count_rows(model, *criteria) -> int:
    async with TestSessionLocal() as session:
        result = await session.execute(select(func.count()).select_from(model).where(*criteria))
        return result.scalar_one()


async def fetch(model, *criteria):
    """Fresh read of one row, bypassing any request session."""
    async with TestSessionLocal() as session:
        result = await session.execute(select(model).where(*criteria))
        return result.scalars().first()


async def fetch_all(model, *criteria) -> list:
    async with TestSessionLocal() as session:
        result = await session.execute(select(model).where(*criteria).order_by(model.id))
        return list(result.scalars().all())


async def add_rows(*rows):
    async with TestSessionLocal() as session:
        session.add_all(rows)
        await session.commit()
        for row in rows:
            await session.refresh(row)
    return rows


def bearer(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture(scope="function")
async def database() -> AsyncGenerator[None, None]:
    """Create tables, run the test, then drop tables for isolation."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest_asyncio.fixture(scope="function")
async def client(database, fake_gateway, broadcaster) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with the DB, payment gateway and broadcaster overridden."""

    async def override_get_db():
        async with TestSessionLocal() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: fake_gateway
    app.dependency_overrides[get_broadcaster] = lambda: broadcaster

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_user(database) -> User:
    (user,) = await add_rows(User(email="player@virtualarena.io", name="Player One"))
    return user


@pytest_asyncio.fixture
async def other_user(database) -> User:
    (user,) = await add_rows(User(email="rival@virtualarena.io", name="Player Two"))
    return user


@pytest_asyncio.fixture
async def admin_user(database) -> User:
    (user,) = await add_rows(User(email="admin@virtualarena.io", name="Admin", role="admin"))
    return user


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict:
    return bearer(test_user)


@pytest_asyncio.fixture
async def other_headers(other_user: User) -> dict:
    return bearer(other_user)


@pytest_asyncio.fixture
async def admin_headers(admin_user: User) -> dict:
    return bearer(admin_user)


@pytest_asyncio.fixture
async def vr_session(database) -> VRSession:
    """A VR session with room for two players."""
    (session,) = await add_rows(VRSession(name="Beat Saber Arena", max_players=2, price=Decimal("20.00")))
    return session


@pytest_asyncio.fixture
async def product(database) -> Product:
    (row,) = await add_rows(Product(name="Arena Hoodie", price=Decimal("10.00"), stock=50))
    return row


@pytest_asyncio.fixture
async def tournament(database) -> Tournament:
    (row,) = await add_rows(
        Tournament(
            name="Friday Showdown",
            entry_fee=Decimal("15.00"),
            start_date=datetime.now(timezone.utc) + timedelta(days=7),
            max_participants=1,
        )
    )
    return row


@pytest_asyncio.fixture
async def venue_event(database) -> VenueEvent:
    (row,) = await add_rows(
        VenueEvent(
            name="Retro Night",
            ticket_price=Decimal("8.00"),
            event_date=datetime.now(timezone.utc) + timedelta(days=3),
        )
    )
    return row


@pytest_asyncio.fixture
async def gift_card(database) -> GiftCard:
    (card,) = await add_rows(GiftCard(code="ARENA50", amount=Decimal("50.00")))
    return card
