#!/usr/bin/env python3
"""
Hold race for the TicketPro API.
N agents try to hold the same ticket at once; exactly one should get it.

Needs a running API with at least one available ticket.
"""

import asyncio
import os
import time

import aiohttp

API_URL = os.environ.get("API_URL", "http://localhost:8000")
CONCURRENT_AGENTS = int(os.environ.get("CONCURRENT_AGENTS", "50"))
PASSWORD = "stresstest123"


class HoldRace:
    def __init__(self):
        self.results = {
            "holds": 0,
            "conflicts": 0,
            "failed": 0,
            "errors": 0,
            "response_times": []
        }
        self.ticket_id = None
        self.tokens = []

    async def register_and_login(self, session: aiohttp.ClientSession, agent_num: int):
        """Register an agent and return auth token."""
        email = f"race_{agent_num}_{int(time.time())}@test.com"

        await session.post(f"{API_URL}/api/v1/auth/register", json={
            "email": email,
            "full_name": f"Race Agent {agent_num}",
            "password": PASSWORD
        })

        async with session.post(f"{API_URL}/api/v1/auth/login", json={
            "email": email,
            "password": PASSWORD
        }) as resp:
            if resp.status == 200:
                data = await resp.json()
                return data["access_token"]
        return None

    async def pick_ticket(self, session: aiohttp.ClientSession, token: str):
        headers = {"Authorization": f"Bearer {token}"}
        async with session.get(f"{API_URL}/api/v1/tickets/",
            params={"status": "available", "page_size": "1"},
            headers=headers
        ) as resp:
            if resp.status == 200:
                tickets = (await resp.json())["tickets"]
                if tickets:
                    self.ticket_id = tickets[0]["id"]
                    print(f"✓ Racing for ticket {self.ticket_id} ({tickets[0]['flight_number']})")

    async def hold(self, session: aiohttp.ClientSession, token: str, agent_num: int):
        headers = {"Authorization": f"Bearer {token}"}
        start = time.time()

        try:
            async with session.post(f"{API_URL}/api/v1/bookings/",
                json={
                    "ticket_id": self.ticket_id,
                    "passengers": [{
                        "name": f"Passenger {agent_num}",
                        "passport": f"RX{agent_num:07d}",
                        "mobile": f"0171{agent_num:07d}",
                    }],
                    "payment": {"payment_method": "cash", "paid_amount": "0"},
                },
                headers=headers
            ) as resp:
                elapsed = (time.time() - start) * 1000
                self.results["response_times"].append(elapsed)

                if resp.status == 201:
                    self.results["holds"] += 1
                    reference = (await resp.json())["booking_reference"]
                    print(f"✓ Agent {agent_num} holds {reference} ({elapsed:.0f}ms)")
                elif resp.status == 409:
                    self.results["conflicts"] += 1
                    print(f"✗ Agent {agent_num} conflict - already held ({elapsed:.0f}ms)")
                else:
                    self.results["failed"] += 1
                    print(f"✗ Agent {agent_num} failed: {resp.status} ({elapsed:.0f}ms)")
        except aiohttp.ClientError as e:
            self.results["errors"] += 1
            print(f"✗ Agent {agent_num} error: {e}")

    async def run(self):
        print(f"\n{'='*60}")
        print(f"HOLD RACE: {CONCURRENT_AGENTS} agents → 1 ticket")
        print(f"{'='*60}\n")

        async with aiohttp.ClientSession() as session:
            print("Phase 1: Setting up agents...")
            tokens = await asyncio.gather(*(self.register_and_login(session, i) for i in range(CONCURRENT_AGENTS)))
            self.tokens = [t for t in tokens if t]
            print(f"✓ Created {len(self.tokens)} agents\n")

            if not self.tokens:
                print("✗ Failed to create agents")
                return

            print("Phase 2: Picking an available ticket...")
            await self.pick_ticket(session, self.tokens[0])
            if not self.ticket_id:
                print("✗ No available ticket; create one with a manager account first")
                return
            print()

            print(f"Phase 3: {len(self.tokens)} agents holding simultaneously...")
            print("-" * 60)
            start_time = time.time()
            await asyncio.gather(*(self.hold(session, token, i) for i, token in enumerate(self.tokens)))
            total_time = time.time() - start_time

            print("\n" + "="*60)
            print("RESULTS")
            print("="*60)
            print(f"Total time:     {total_time:.2f}s")
            print(f"Holds:          {self.results['holds']}")
            print(f"Conflicts (409): {self.results['conflicts']}")
            print(f"Failed:         {self.results['failed']}")
            print(f"Errors:         {self.results['errors']}")

            if self.results["response_times"]:
                times = sorted(self.results["response_times"])
                print("\nResponse times:")
                print(f"  Avg: {sum(times)/len(times):.0f}ms")
                print(f"  P50: {times[len(times)//2]:.0f}ms")
                print(f"  P95: {times[int(len(times)*0.95)]:.0f}ms")
                print(f"  P99: {times[int(len(times)*0.99)]:.0f}ms")

            print("\n" + "="*60)
            if self.results["holds"] == 1:
                print("✓ PASS: exactly one agent holds the ticket")
            else:
                print(f"✗ FAIL: {self.results['holds']} holds on one ticket")
            print("="*60 + "\n")


if __name__ == "__main__":
    asyncio.run(HoldRace().run())
