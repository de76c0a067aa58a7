"""
Locust Load Test Suite

Expects a seeded catalog (room, academic term, booking package). Ids are
taken from the environment and default to 1.

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Many students, one room
  locust -f locustfile.py --tags throughput   # Catalog cache
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests
"""

import os
import random
import string

from locust import HttpUser, task, between, tag, events

RACE_ROOM_ID = int(os.environ.get("RACE_ROOM_ID", "1"))
TERM_ID = int(os.environ.get("TERM_ID", "1"))
PACKAGE_ID = int(os.environ.get("PACKAGE_ID", "1"))


def random_email():
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=10))
    return f"load_{suffix}@test.com"


def register_and_login(client):
    email = random_email()
    client.post("/api/v1/auth/register", json={
        "email": email,
        "full_name": "Load Tester",
        "password": "loadtest123",
    })
    resp = client.post("/api/v1/auth/login", json={
        "email": email,
        "password": "loadtest123",
    })
    if resp.status_code == 200:
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}
    return {}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"Race target: room {RACE_ROOM_ID}, term {TERM_ID}, package {PACKAGE_ID}")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - every user books the same room for the same term

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COUNT(*) FROM bookings
       WHERE room_id = X AND status NOT IN ('Cancelled', 'Completed', 'Maintenance');
    Should be exactly 1
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = register_and_login(self.client)

    @tag("concurrency")
    @task
    def book_contested_room(self):
        if not self.headers:
            return

        with self.client.post("/api/v1/bookings/",
            json={
                "roomId": RACE_ROOM_ID,
                "academicTermId": TERM_ID,
                "bookingPackageId": PACKAGE_ID,
                "paymentMethod": random.choice(["Online", "Bank Transfer"]),
            },
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 200:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: already booked
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - catalog cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false, run again

    Compare average response time, requests/sec and P95/P99 latency.
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_rooms_cached(self):
        self.client.get("/api/v1/catalog/rooms", name="/api/v1/catalog/rooms [cached]")

    @tag("throughput", "read")
    @task(3)
    def list_terms_and_packages(self):
        self.client.get("/api/v1/catalog/terms", name="/api/v1/catalog/terms [cached]")
        self.client.get("/api/v1/catalog/packages", name="/api/v1/catalog/packages [cached]")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = register_and_login(self.client)

    @tag("edge")
    @task
    def invalid_room_id(self):
        with self.client.post("/api/v1/bookings/",
            json={
                "roomId": 999999,
                "academicTermId": TERM_ID,
                "bookingPackageId": PACKAGE_ID,
                "paymentMethod": "Online",
            },
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 400:
                resp.success()
            else:
                resp.failure(f"Expected 400, got {resp.status_code}")

    @tag("edge")
    @task
    def unsigned_webhook(self):
        with self.client.post("/api/v1/payments/webhook",
            data=b'{"type": "charge.succeeded"}',
            headers={"Content-Type": "application/json"},
            catch_response=True,
        ) as resp:
            if resp.status_code == 400:
                resp.success()
            else:
                resp.failure(f"Expected 400, got {resp.status_code}")

    @tag("edge")
    @task
    def student_verifies_transfer(self):
        with self.client.post("/api/v1/payments/verify-bank-transfer",
            json={"paymentId": 1},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 403:
                resp.success()
            else:
                resp.failure(f"Expected 403, got {resp.status_code}")

    @tag("edge")
    @task
    def no_token(self):
        with self.client.get("/api/v1/bookings/", catch_response=True) as resp:
            if resp.status_code == 401:
                resp.success()
            else:
                resp.failure(f"Expected 401, got {resp.status_code}")
