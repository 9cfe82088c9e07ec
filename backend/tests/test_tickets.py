"""
Tests for ticket inventory: derived status, price visibility and quotes.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient

from ticketpro.db.base import utcnow
from ticketpro.services import booking_service, ticket_service


@pytest.mark.asyncio
async def test_status_derived_from_active_booking(db_session, ticket_factory, agent, draft_factory):
    available = await ticket_factory(flight_number="BG801")
    locked = await ticket_factory(flight_number="BG802")
    sold = await ticket_factory(flight_number="BG803")

    await booking_service.create_booking(db_session, draft_factory(locked), agent)
    booking = await booking_service.create_booking(db_session, draft_factory(sold), agent)
    await booking_service.confirm_booking(db_session, booking.id, paid_amount=Decimal("85000"))

    listing = await ticket_service.list_tickets(db_session, agent)
    statuses = {t["flight_number"]: t["status"] for t in listing["tickets"]}
    assert statuses == {"BG801": "available", "BG802": "locked", "BG803": "sold"}
    assert listing["total"] == 3
    assert listing["cached"] is False

    only_available = await ticket_service.list_tickets(db_session, agent, status="available")
    assert [t["id"] for t in only_available["tickets"]] == [available.id]


@pytest.mark.asyncio
async def test_lapsed_unswept_hold_still_locked(db_session, ticket, agent, draft_factory):
    t0 = utcnow() - timedelta(hours=30)
    await booking_service.create_booking(db_session, draft_factory(ticket), agent, now=t0)
    assert (await ticket_service.get_ticket(db_session, ticket.id, agent))["status"] == "locked"


@pytest.mark.asyncio
async def test_list_filters(db_session, ticket_factory, agent):
    await ticket_factory(flight_number="SV801", airline="Saudia", country="Saudi Arabia")
    await ticket_factory(flight_number="EK585", airline="Emirates", country="UAE")

    by_country = await ticket_service.list_tickets(db_session, agent, country="uae")
    assert [t["flight_number"] for t in by_country["tickets"]] == ["EK585"]

    by_airline = await ticket_service.list_tickets(db_session, agent, airline="SAUDIA")
    assert [t["flight_number"] for t in by_airline["tickets"]] == ["SV801"]

    paged = await ticket_service.list_tickets(db_session, agent, page=2, page_size=1)
    assert paged["total"] == 2
    assert len(paged["tickets"]) == 1


@pytest.mark.asyncio
async def test_buying_price_hidden_from_agents(client: AsyncClient, agent_headers, manager_headers, ticket):
    as_agent = await client.get(f"/api/v1/tickets/{ticket.id}", headers=agent_headers)
    assert as_agent.status_code == 200
    assert "buying_price" not in as_agent.json()

    as_manager = await client.get(f"/api/v1/tickets/{ticket.id}", headers=manager_headers)
    assert Decimal(as_manager.json()["buying_price"]) == Decimal("78000")

    listing = await client.get("/api/v1/tickets/", headers=agent_headers)
    assert all("buying_price" not in t for t in listing.json()["tickets"])


@pytest.mark.asyncio
async def test_create_ticket_requires_inventory_role(client: AsyncClient, agent_headers, manager_headers):
    body = {
        "airline": "US-Bangla",
        "flight_number": "BS341",
        "country": "Malaysia",
        "departure_city": "Dhaka",
        "arrival_city": "Kuala Lumpur",
        "departure_at": (utcnow() + timedelta(days=10)).isoformat(),
        "selling_price": "42000",
        "buying_price": "39000",
    }
    forbidden = await client.post("/api/v1/tickets/", json=body, headers=agent_headers)
    assert forbidden.status_code == 403
    assert forbidden.json()["error"] == "permission_denied"

    created = await client.post("/api/v1/tickets/", json=body, headers=manager_headers)
    assert created.status_code == 201
    assert created.json()["status"] == "available"


@pytest.mark.asyncio
async def test_update_prices(client: AsyncClient, agent_headers, manager_headers, ticket):
    forbidden = await client.patch(
        f"/api/v1/tickets/{ticket.id}/prices", json={"selling_price": "90000"}, headers=agent_headers,
    )
    assert forbidden.status_code == 403

    response = await client.patch(
        f"/api/v1/tickets/{ticket.id}/prices", json={"selling_price": "90000"}, headers=manager_headers,
    )
    assert response.status_code == 200
    assert Decimal(response.json()["selling_price"]) == Decimal("90000")
    assert Decimal(response.json()["buying_price"]) == Decimal("78000")

    missing = await client.patch("/api/v1/tickets/9999/prices", json={"selling_price": "1"}, headers=manager_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_quote(client: AsyncClient, agent_headers, manager_headers, ticket):
    body = {"pax_count": 2, "discount_percent": "5"}
    as_agent = await client.post(f"/api/v1/tickets/{ticket.id}/quote", json=body, headers=agent_headers)
    assert as_agent.status_code == 200
    data = as_agent.json()
    assert Decimal(data["total"]) == Decimal("161500")
    assert Decimal(data["discount_amount"]) == Decimal("8500")
    assert "profit" not in data

    as_manager = await client.post(f"/api/v1/tickets/{ticket.id}/quote", json=body, headers=manager_headers)
    assert Decimal(as_manager.json()["profit"]) == Decimal("5500")


@pytest.mark.asyncio
async def test_quote_below_floor_rejected(client: AsyncClient, agent_headers, ticket):
    response = await client.post(
        f"/api/v1/tickets/{ticket.id}/quote",
        json={"pax_count": 1, "selling_price": "70000"},
        headers=agent_headers,
    )
    assert response.status_code == 422
    assert "selling_price" in response.json()["fields"]
