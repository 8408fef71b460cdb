"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags oversell     # Checkout race on a tiny ticket type
  locust -f locustfile.py --tags gate         # Double-scan race at the gates
  locust -f locustfile.py --tags throughput   # Cached catalog and stats reads
  locust -f locustfile.py                     # All tests

The first account ever registered becomes the admin, so run against a fresh
database or export ADMIN_EMAIL / ADMIN_PASSWORD for an existing admin.
"""

import os
import random
import string
from locust import HttpUser, task, between, tag, events

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "load_admin@test.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "load-admin-pass")
RACE_TYPE_ID = "load-race-pass"
RACE_CAPACITY = 10

ADMIN_HEADERS = {}
ISSUED_QR_CODES = []


def random_email():
    return f"load_{random.randint(10000, 99999)}_{random.randint(0, 999)}@test.com"


def random_username():
    return "u_" + "".join(random.choices(string.ascii_lowercase, k=8))


def login(client, email, password):
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    if resp.status_code == 200:
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}
    return {}


def staff_headers(client):
    email = random_email()
    password = "load-staff-pass"
    client.post("/api/v1/auth/register", json={
        "email": email,
        "username": random_username(),
        "password": password,
    })
    return login(client, email, password)


def purchase_payload(ticket_type_id, quantity=1):
    return {
        "ticket_type_id": ticket_type_id,
        "attendee_name": "Load Tester",
        "attendee_email": random_email(),
        "attendee_phone": "+620000000",
        "quantity": quantity,
        "currency": random.choice(["IDR", "USD"]),
    }


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"SETUP: ticket type {RACE_TYPE_ID} with {RACE_CAPACITY} tickets")
    print("=" * 60)


class OversellUser(HttpUser):
    """
    TEST 1: Oversell - 100 buyers -> 10 tickets

    Run: locust -f locustfile.py --tags oversell -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COALESCE(SUM(quantity), 0) FROM ticket_purchases
      WHERE ticket_type_id = 'load-race-pass' AND payment_status = 'paid';
    Should be <= 10, and available_quantity should be >= 0.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        if not ADMIN_HEADERS:
            self.client.post("/api/v1/auth/register", json={
                "email": ADMIN_EMAIL,
                "username": "load_admin",
                "password": ADMIN_PASSWORD,
            })
            ADMIN_HEADERS.update(login(self.client, ADMIN_EMAIL, ADMIN_PASSWORD))
            if ADMIN_HEADERS:
                self.client.post("/api/v1/tickets/types", json={
                    "id": RACE_TYPE_ID,
                    "name": "Load Race Pass",
                    "price_idr": 50000,
                    "price_usd": "3.50",
                    "category": "special",
                    "max_quantity": RACE_CAPACITY,
                }, headers=ADMIN_HEADERS)

    @tag("oversell")
    @task
    def buy_limited_tickets(self):
        with self.client.post("/api/v1/purchases",
            json=purchase_payload(RACE_TYPE_ID),
            name="/api/v1/purchases [race]",
            catch_response=True
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()  # 409: sold out or lost the version race
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class GateUser(HttpUser):
    """
    TEST 2: Gate - several gates scan the same tickets

    Run: locust -f locustfile.py --tags gate -u 50 -r 10 --run-time 60s

    After test, every purchase must have at most one accepted entry:
      SELECT ticket_id, COUNT(*) FROM ticket_validations
      WHERE is_valid AND validation_type = 'entry'
      GROUP BY ticket_id HAVING COUNT(*) > 1;
    Should return no rows.
    """
    wait_time = between(0.05, 0.3)

    def on_start(self):
        self.headers = staff_headers(self.client)
        self.gate_id = f"GATE_{random.randint(1, 8)}"

    @tag("gate")
    @task(1)
    def buy_ticket(self):
        resp = self.client.post("/api/v1/purchases",
            json=purchase_payload(random.choice(["weekend-pass", "saturday-only", "sunday-only"])),
            name="/api/v1/purchases [gate]")
        if resp.status_code == 201:
            ISSUED_QR_CODES.append(resp.json()["qr_code"])

    @tag("gate")
    @task(5)
    def scan_ticket(self):
        if not ISSUED_QR_CODES or not self.headers:
            return
        with self.client.post("/api/v1/validations/scan",
            json={"qr_code": random.choice(ISSUED_QR_CODES), "gate_id": self.gate_id},
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code == 200:
                resp.success()  # Rejections are valid results too
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("gate")
    @task(1)
    def scan_forged_ticket(self):
        if not self.headers:
            return
        self.client.post("/api/v1/validations/scan",
            json={"qr_code": "QR_FAKE", "gate_id": self.gate_id},
            headers=self.headers,
            name="/api/v1/validations/scan [forged]")


class ThroughputUser(HttpUser):
    """
    TEST 3: Throughput - cache effectiveness

    Run twice, with REDIS_ENABLED=true and false, and compare P95/P99.
    """
    wait_time = between(0.1, 0.5)

    def on_start(self):
        self.headers = staff_headers(self.client)

    @tag("throughput", "read")
    @task(10)
    def list_active_types(self):
        self.client.get("/api/v1/tickets/types/active", name="/api/v1/tickets/types/active [cached]")

    @tag("throughput", "read")
    @task(3)
    def sales_stats(self):
        if self.headers:
            self.client.get("/api/v1/tickets/stats", headers=self.headers, name="/api/v1/tickets/stats [cached]")

    @tag("throughput", "read")
    @task(3)
    def quote(self):
        self.client.post("/api/v1/tickets/quote", json={
            "ticket_type_id": "vip-pass",
            "quantity": random.randint(1, 10),
            "is_pwd": random.random() < 0.2,
        })

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")
