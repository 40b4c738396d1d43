"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test overbooking of one VR session
  locust -f locustfile.py --tags throughput   # Test availability cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests

The target session must exist before the run:
  ARENA_SESSION_ID=1 ARENA_SESSION_CAPACITY=10 locust -f locustfile.py ...
"""

import os
import random
import string
from datetime import datetime, timezone, timedelta

from locust import HttpUser, task, between, tag, events

SESSION_ID = int(os.environ.get("ARENA_SESSION_ID", "1"))
SESSION_CAPACITY = int(os.environ.get("ARENA_SESSION_CAPACITY", "10"))


def random_guest():
    suffix = "".join(random.choices(string.ascii_lowercase, k=8))
    return {"name": f"Load {suffix}", "email": f"load_{suffix}@arena-load.io"}


def slot(hours_ahead: int = 24):
    start = datetime.now(timezone.utc) + timedelta(hours=hours_ahead)
    return start.isoformat(), (start + timedelta(hours=1)).isoformat()


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"Target VR session {SESSION_ID}, capacity {SESSION_CAPACITY}")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - many guests -> one session with SESSION_CAPACITY players

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COUNT(*) FROM bookings
      WHERE session_id = X AND payment_status IN ('pending', 'paid');
    Should be <= SESSION_CAPACITY
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.guest = random_guest()

    @tag("concurrency")
    @task
    def book_last_slots(self):
        start, end = slot()
        with self.client.post(
            "/api/v1/bookings/",
            json={
                "session_id": SESSION_ID,
                "machine_type": "VR Pod",
                "start_time": start,
                "end_time": end,
                "total_amount": "20.00",
                "guest": self.guest,
            },
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 400:
                resp.success()  # Expected: full, duplicate or high demand
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - availability cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false on the API, run again
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def availability_cached(self):
        day = (datetime.now(timezone.utc) + timedelta(days=random.randint(0, 6))).date().isoformat()
        self.client.get(
            f"/api/v1/bookings/availability/{SESSION_ID}?day={day}",
            name="/api/v1/bookings/availability/{id} [cached]",
        )

    @tag("throughput", "read")
    @task(3)
    def gift_card_catalog(self):
        self.client.get("/api/v1/gift-cards/")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, every error must be a 4xx envelope.
    """
    wait_time = between(0.5, 1.5)

    def _expect(self, resp, codes):
        if resp.status_code in codes and resp.json().get("success") is False:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_session(self):
        start, end = slot()
        with self.client.post(
            "/api/v1/bookings/",
            json={
                "session_id": 999999,
                "machine_type": "VR Pod",
                "start_time": start,
                "end_time": end,
                "guest": random_guest(),
            },
            catch_response=True,
        ) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def reversed_window(self):
        start, end = slot()
        with self.client.post(
            "/api/v1/bookings/",
            json={
                "session_id": SESSION_ID,
                "machine_type": "VR Pod",
                "start_time": end,
                "end_time": start,
                "guest": random_guest(),
            },
            catch_response=True,
        ) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def missing_guest_details(self):
        start, end = slot()
        with self.client.post(
            "/api/v1/bookings/",
            json={"session_id": SESSION_ID, "machine_type": "VR Pod", "start_time": start, "end_time": end},
            catch_response=True,
        ) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def order_with_unknown_product(self):
        with self.client.post(
            "/api/v1/orders/",
            json={
                "items": [{"item_type": "product", "product_id": 999999, "quantity": 1, "price": "10.00"}],
                "shipping_address": {
                    "full_name": "Load Test",
                    "address": "1 Arena Way",
                    "city": "Pune",
                    "state": "MH",
                    "zip_code": "411001",
                    "country": "IN",
                },
                "total_amount": "10.00",
                "guest": random_guest(),
            },
            catch_response=True,
        ) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/bookings/",
            data="not json at all",
            headers={"Content-Type": "application/json"},
            catch_response=True,
        ) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def unsigned_webhook(self):
        with self.client.post(
            "/api/v1/webhooks/stripe",
            data='{"id": "evt_load", "type": "checkout.session.completed"}',
            catch_response=True,
        ) as resp:
            self._expect(resp, [400])
