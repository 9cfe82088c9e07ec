"""
Tests for booking endpoints: creation, conflicts, transitions and lookups.
"""

from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from ticketpro.models.email_dispatch import EmailDispatch


@pytest.mark.asyncio
async def test_create_booking(client: AsyncClient, agent_headers, ticket, booking_payload, make_passenger):
    """Successful booking is a pending 24 hour hold."""
    response = await client.post(
        "/api/v1/bookings/",
        json=booking_payload(ticket.id, passengers=[make_passenger(), make_passenger(passport="BX7654321")]),
        headers=agent_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["ticket_id"] == ticket.id
    assert data["pax_count"] == 2
    assert data["booking_status"] == "pending"
    assert data["payment_status"] == "pending"
    assert Decimal(data["total_amount"]) == Decimal("170000")
    assert data["confirmed_at"] is None

    # Ticket now shows as locked
    ticket_response = await client.get(f"/api/v1/tickets/{ticket.id}", headers=agent_headers)
    assert ticket_response.json()["status"] == "locked"


@pytest.mark.asyncio
async def test_create_booking_unauthenticated(client: AsyncClient, ticket, booking_payload):
    """Unauthenticated booking returns 401."""
    response = await client.post("/api/v1/bookings/", json=booking_payload(ticket.id))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_second_booking_conflicts(
    client: AsyncClient, agent_headers, other_agent_headers, ticket, booking_payload,
):
    """Booking a held ticket returns 409."""
    first = await client.post("/api/v1/bookings/", json=booking_payload(ticket.id), headers=agent_headers)
    assert first.status_code == 201

    second = await client.post("/api/v1/bookings/", json=booking_payload(ticket.id), headers=other_agent_headers)
    assert second.status_code == 409
    assert second.json()["error"] == "conflict"


@pytest.mark.asyncio
async def test_create_booking_field_errors(client: AsyncClient, agent_headers, ticket, booking_payload, make_passenger):
    """Validation failures name the offending fields."""
    response = await client.post(
        "/api/v1/bookings/",
        json=booking_payload(ticket.id, passengers=[make_passenger(passport="AB1", mobile="12345")]),
        headers=agent_headers,
    )
    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "validation_failed"
    assert "passengers.0.passport" in body["fields"]
    assert "passengers.0.mobile" in body["fields"]


@pytest.mark.asyncio
async def test_create_booking_unknown_ticket(client: AsyncClient, agent_headers, booking_payload):
    response = await client.post("/api/v1/bookings/", json=booking_payload(9999), headers=agent_headers)
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


@pytest.mark.asyncio
async def test_confirm_sends_invoice(client: AsyncClient, agent_headers, ticket, booking_payload, mailer, session_factory):
    created = await client.post("/api/v1/bookings/", json=booking_payload(ticket.id), headers=agent_headers)
    booking_id = created.json()["id"]

    response = await client.post(
        f"/api/v1/bookings/{booking_id}/confirm",
        json={"paid_amount": "85000", "payment_method": "bkash", "transaction_id": "TX123"},
        headers=agent_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["booking_status"] == "confirmed"
    assert data["payment_status"] == "full"
    assert data["transaction_id"] == "TX123"
    assert data["confirmed_at"] is not None
    assert Decimal(data["commission_amount"]) == Decimal("4250")

    assert len(mailer.sent) == 1
    template, recipient, payload = mailer.sent[0]
    assert template == "booking_invoice"
    assert recipient == "01712345678@sms.gateway"
    assert payload["booking_reference"] == data["booking_reference"]

    async with session_factory() as session:
        dispatch = (await session.execute(select(EmailDispatch))).scalar_one()
    assert dispatch.status == "sent"


@pytest.mark.asyncio
async def test_confirm_after_cancel_returns_409(client: AsyncClient, agent_headers, ticket, booking_payload, mailer):
    created = await client.post("/api/v1/bookings/", json=booking_payload(ticket.id), headers=agent_headers)
    booking_id = created.json()["id"]

    cancelled = await client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=agent_headers)
    assert cancelled.status_code == 200
    assert cancelled.json()["booking_status"] == "cancelled"

    response = await client.post(
        f"/api/v1/bookings/{booking_id}/confirm", json={"paid_amount": "85000"}, headers=agent_headers,
    )
    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "invalid_transition"
    assert body["current_status"] == "cancelled"
    assert mailer.sent == []


@pytest.mark.asyncio
async def test_confirm_without_payment_returns_422(client: AsyncClient, agent_headers, ticket, booking_payload):
    created = await client.post("/api/v1/bookings/", json=booking_payload(ticket.id), headers=agent_headers)
    response = await client.post(f"/api/v1/bookings/{created.json()['id']}/confirm", json={}, headers=agent_headers)
    assert response.status_code == 422
    assert "payment.paid_amount" in response.json()["fields"]


@pytest.mark.asyncio
async def test_agent_cannot_see_other_agents_booking(
    client: AsyncClient, agent_headers, other_agent_headers, manager_headers, ticket, booking_payload,
):
    created = await client.post("/api/v1/bookings/", json=booking_payload(ticket.id), headers=agent_headers)
    booking_id = created.json()["id"]
    reference = created.json()["booking_reference"]

    assert (await client.get(f"/api/v1/bookings/{booking_id}", headers=other_agent_headers)).status_code == 404
    assert (await client.get(f"/api/v1/bookings/reference/{reference}", headers=other_agent_headers)).status_code == 404
    assert (await client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=other_agent_headers)).status_code == 404
    assert (await client.get("/api/v1/bookings/", headers=other_agent_headers)).json() == []

    # Managers see everything
    response = await client.get(f"/api/v1/bookings/{booking_id}", headers=manager_headers)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_lookup_by_reference(client: AsyncClient, agent_headers, ticket, booking_payload):
    created = await client.post("/api/v1/bookings/", json=booking_payload(ticket.id), headers=agent_headers)
    reference = created.json()["booking_reference"]

    response = await client.get(f"/api/v1/bookings/reference/{reference.lower()}", headers=agent_headers)
    assert response.status_code == 200
    assert response.json()["id"] == created.json()["id"]


@pytest.mark.asyncio
async def test_search_by_mobile(client: AsyncClient, agent_headers, ticket_factory, booking_payload, make_passenger):
    first = await ticket_factory(flight_number="BG101")
    second = await ticket_factory(flight_number="BG102")
    await client.post("/api/v1/bookings/", json=booking_payload(first.id), headers=agent_headers)
    await client.post(
        "/api/v1/bookings/",
        json=booking_payload(second.id, passengers=[make_passenger(mobile="01998765432")]),
        headers=agent_headers,
    )

    response = await client.get("/api/v1/bookings/search", params={"q": "01712345678"}, headers=agent_headers)
    assert response.status_code == 200
    results = response.json()
    assert [b["ticket_id"] for b in results] == [first.id]


@pytest.mark.asyncio
async def test_list_bookings_rejects_unknown_status(client: AsyncClient, agent_headers):
    response = await client.get("/api/v1/bookings/", params={"status": "archived"}, headers=agent_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_validate_draft_step(client: AsyncClient, agent_headers, ticket, booking_payload, make_passenger):
    """The wizard endpoint reports field errors without persisting anything."""
    bad = booking_payload(ticket.id, passengers=[make_passenger(name="")])
    bad["step"] = "passengers"
    response = await client.post("/api/v1/bookings/drafts/validate", json=bad, headers=agent_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["valid"] is False
    assert "passengers.0.name" in data["errors"]
    assert data["next_step"] is None

    good = booking_payload(ticket.id, discount_percent="10")
    good["step"] = "pricing"
    response = await client.post("/api/v1/bookings/drafts/validate", json=good, headers=agent_headers)
    data = response.json()
    assert data["valid"] is True
    assert data["next_step"] == "payment"
    assert Decimal(data["total"]) == Decimal("76500")

    listing = await client.get("/api/v1/bookings/", headers=agent_headers)
    assert listing.json() == []


@pytest.mark.asyncio
async def test_validate_draft_unknown_step(client: AsyncClient, agent_headers, ticket, booking_payload):
    body = booking_payload(ticket.id)
    body["step"] = "seating"
    response = await client.post("/api/v1/bookings/drafts/validate", json=body, headers=agent_headers)
    assert response.status_code == 422
    assert "step" in response.json()["fields"]
