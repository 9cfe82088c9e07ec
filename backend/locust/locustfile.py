"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags contention   # Many agents, one ticket
  locust -f locustfile.py --tags throughput   # Test inventory cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests

Tickets are created by managers, so seed inventory first (e.g. through
/docs with a manager token). Every user here self-registers as an agent.
"""

import random
import string
from locust import HttpUser, task, between, tag, events

# Shared state
TICKET_IDS = []
CONTENDED_TICKET_ID = None
PASSWORD = "loadtest123"


def random_email():
    return f"load_{random.randint(10000, 99999)}@test.com"


def random_name():
    return "Agent " + "".join(random.choices(string.ascii_uppercase, k=6))


def random_passenger():
    return {
        "name": random_name().replace("Agent", "Passenger"),
        "passport": "".join(random.choices(string.ascii_uppercase, k=2)) + str(random.randint(1000000, 9999999)),
        "mobile": f"017{random.randint(10000000, 99999999)}",
    }


def booking_body(ticket_id, pax=1):
    return {
        "ticket_id": ticket_id,
        "passengers": [random_passenger() for _ in range(pax)],
        "discount_percent": "0",
        "payment": {"payment_method": "cash", "paid_amount": "0"},
    }


def login_as_new_agent(client):
    email = random_email()
    client.post("/api/v1/auth/register", json={
        "email": email,
        "full_name": random_name(),
        "password": PASSWORD,
    })
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
    if resp.status_code == 200:
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}
    return {}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "="*60)
    print("SETUP: agents will pick the first available ticket to fight over")
    print("="*60)


class ContentionUser(HttpUser):
    """
    TEST 1: Contention - 100 agents -> 1 ticket

    Run: locust -f locustfile.py --tags contention -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COUNT(*) FROM bookings
      WHERE ticket_id = X AND booking_status IN ('pending', 'confirmed');
    Should be exactly 1
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = login_as_new_agent(self.client)
        if self.headers and not CONTENDED_TICKET_ID:
            resp = self.client.get("/api/v1/tickets/?status=available&page_size=1", headers=self.headers)
            tickets = resp.json().get("tickets", []) if resp.status_code == 200 else []
            if tickets:
                globals()["CONTENDED_TICKET_ID"] = tickets[0]["id"]
                print(f"\n✓ Contending for ticket {CONTENDED_TICKET_ID}\n")

    @tag("contention")
    @task
    def hold_contended_ticket(self):
        """All agents fight for the same ticket."""
        if not CONTENDED_TICKET_ID or not self.headers:
            return

        with self.client.post("/api/v1/bookings/",
            json=booking_body(CONTENDED_TICKET_ID),
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: someone else holds it
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Inventory cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false, run again

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """
    wait_time = between(0.1, 0.5)

    def on_start(self):
        self.headers = login_as_new_agent(self.client)

    @tag("throughput", "read")
    @task(10)
    def list_tickets_cached(self):
        """Hammer the cached endpoint."""
        page = random.randint(1, 5)
        self.client.get(f"/api/v1/tickets/?page={page}&page_size=20",
            headers=self.headers,
            name="/api/v1/tickets/ [cached]")

    @tag("throughput", "read")
    @task(3)
    def get_ticket_detail(self):
        if TICKET_IDS:
            self.client.get(f"/api/v1/tickets/{random.choice(TICKET_IDS)}",
                headers=self.headers,
                name="/api/v1/tickets/{id}")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = login_as_new_agent(self.client)

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_ticket(self):
        with self.client.post("/api/v1/bookings/",
            json=booking_body(999999),
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def no_passengers(self):
        body = booking_body(1)
        body["passengers"] = []
        with self.client.post("/api/v1/bookings/", json=body, headers=self.headers, catch_response=True) as resp:
            self._expect(resp, [404, 422])

    @tag("edge")
    @task
    def too_many_passengers(self):
        with self.client.post("/api/v1/bookings/",
            json=booking_body(1, pax=12),
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [404, 409, 422])

    @tag("edge")
    @task
    def bad_passport(self):
        body = booking_body(1)
        body["passengers"][0]["passport"] = "X1"
        with self.client.post("/api/v1/bookings/", json=body, headers=self.headers, catch_response=True) as resp:
            self._expect(resp, [404, 422])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post("/api/v1/bookings/",
            data="not json at all",
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [400, 422])

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post("/api/v1/bookings/", json=booking_body(1), catch_response=True) as resp:
            self._expect(resp, [401])


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Simulates a busy agency floor:
      - Mostly browsing and quoting
      - Some holds, most of which are confirmed or cancelled
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = login_as_new_agent(self.client)
        self.my_bookings = []

    @task(50)
    def browse_tickets(self):
        resp = self.client.get("/api/v1/tickets/?status=available&page=1&page_size=20", headers=self.headers)
        if resp.status_code == 200:
            for ticket in resp.json().get("tickets", []):
                if ticket["id"] not in TICKET_IDS:
                    TICKET_IDS.append(ticket["id"])

    @task(15)
    def quote(self):
        if TICKET_IDS and self.headers:
            self.client.post(f"/api/v1/tickets/{random.choice(TICKET_IDS)}/quote",
                json={"pax_count": random.randint(1, 4), "discount_percent": str(random.choice([0, 2, 5]))},
                headers=self.headers,
                name="/api/v1/tickets/{id}/quote")

    @task(10)
    def hold_ticket(self):
        if TICKET_IDS and self.headers:
            with self.client.post("/api/v1/bookings/",
                json=booking_body(random.choice(TICKET_IDS), pax=random.randint(1, 3)),
                headers=self.headers,
                catch_response=True
            ) as resp:
                if resp.status_code == 201:
                    self.my_bookings.append(resp.json())
                    resp.success()
                elif resp.status_code == 409:
                    resp.success()

    @task(5)
    def settle_booking(self):
        if not self.my_bookings:
            return
        booking = self.my_bookings.pop()
        if random.random() < 0.7:
            self.client.post(f"/api/v1/bookings/{booking['id']}/confirm",
                json={"paid_amount": booking["total_amount"], "payment_method": "bkash"},
                headers=self.headers,
                name="/api/v1/bookings/{id}/confirm")
        else:
            self.client.post(f"/api/v1/bookings/{booking['id']}/cancel",
                headers=self.headers,
                name="/api/v1/bookings/{id}/cancel")
