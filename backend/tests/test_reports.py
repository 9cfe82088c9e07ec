"""
Tests for sales reports, agent management and commission.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import AsyncClient

from ticketpro.core.errors import ValidationFailed
from ticketpro.core.permissions import Actor
from ticketpro.db.base import utcnow
from ticketpro.services import agent_service, booking_service, report_service


@pytest_asyncio.fixture
async def confirmed_sales(db_session, ticket_factory, agent, other_agent, draft_factory):
    """One confirmed booking per agent plus one pending hold."""
    first = await ticket_factory(flight_number="BG901")
    second = await ticket_factory(flight_number="EK585", airline="Emirates", country="UAE")
    pending = await ticket_factory(flight_number="BG903")

    mine = await booking_service.create_booking(db_session, draft_factory(first), agent)
    await booking_service.confirm_booking(db_session, mine.id, paid_amount=Decimal("85000"))

    theirs = await booking_service.create_booking(db_session, draft_factory(second), Actor.from_user(other_agent))
    await booking_service.confirm_booking(db_session, theirs.id, paid_amount=Decimal("85000"))

    await booking_service.create_booking(db_session, draft_factory(pending), agent)
    return mine, theirs


@pytest.mark.asyncio
async def test_manager_report_includes_profit(client: AsyncClient, manager_headers, confirmed_sales):
    response = await client.get("/api/v1/reports/sales", headers=manager_headers)
    assert response.status_code == 200
    data = response.json()

    assert data["summary"]["bookings"] == 2
    assert Decimal(data["summary"]["total_sales"]) == Decimal("170000")
    # 5% of 85000 + 7.5% of 85000
    assert Decimal(data["summary"]["total_commission"]) == Decimal("10625")
    assert Decimal(data["summary"]["total_profit"]) == Decimal("14000")
    assert all(Decimal(item["profit"]) == Decimal("7000") for item in data["items"])


@pytest.mark.asyncio
async def test_agent_report_is_own_sales_without_profit(client: AsyncClient, agent_headers, other_agent, confirmed_sales):
    mine, _ = confirmed_sales
    # Asking for someone else's sales is silently narrowed to the caller
    response = await client.get("/api/v1/reports/sales", params={"agent_id": other_agent.id}, headers=agent_headers)
    data = response.json()

    assert [item["booking_reference"] for item in data["items"]] == [mine.booking_reference]
    assert "total_profit" not in data["summary"]
    assert "profit" not in data["items"][0]
    assert "buying_price" not in data["items"][0]


@pytest.mark.asyncio
async def test_report_filters(db_session, manager_user, confirmed_sales):
    manager = Actor.from_user(manager_user)
    report = await report_service.sales_report(db_session, manager, airline="emirates")
    assert [item["flight_number"] for item in report["items"]] == ["EK585"]

    report = await report_service.sales_report(db_session, manager, country="Nowhere")
    assert report["summary"]["bookings"] == 0
    assert report["summary"]["average_booking_value"] == Decimal("0")


@pytest.mark.asyncio
async def test_commission_stats(db_session, agent, confirmed_sales):
    stats = await agent_service.get_commission_stats(db_session, agent.id)
    assert stats["total_bookings"] == 1
    assert stats["total_commission"] == Decimal("4250")
    assert len(stats["by_month"]) == 1
    assert stats["by_month"][0]["count"] == 1


@pytest.mark.asyncio
async def test_commission_stats_visibility(
    client: AsyncClient, agent_headers, manager_headers, agent_user, other_agent, confirmed_sales,
):
    own = await client.get(f"/api/v1/agents/{agent_user.id}/commission", headers=agent_headers)
    assert own.status_code == 200
    assert Decimal(own.json()["total_commission"]) == Decimal("4250")

    other = await client.get(f"/api/v1/agents/{other_agent.id}/commission", headers=agent_headers)
    assert other.status_code == 403

    as_manager = await client.get(f"/api/v1/agents/{other_agent.id}/commission", headers=manager_headers)
    assert Decimal(as_manager.json()["total_commission"]) == Decimal("6375")


@pytest.mark.asyncio
async def test_rate_change_applies_to_future_confirmations(db_session, ticket_factory, agent, draft_factory):
    first = await ticket_factory(flight_number="BG911")
    second = await ticket_factory(flight_number="BG912")

    booking = await booking_service.create_booking(db_session, draft_factory(first), agent)
    await booking_service.confirm_booking(db_session, booking.id, paid_amount=Decimal("85000"))

    await agent_service.update_commission_rate(db_session, agent.id, Decimal("10"))
    later = await booking_service.create_booking(db_session, draft_factory(second), agent)
    later = await booking_service.confirm_booking(db_session, later.id, paid_amount=Decimal("85000"))

    assert later.commission_amount == Decimal("8500")
    earlier = await booking_service.get_booking(db_session, booking.id)
    assert earlier.commission_amount == Decimal("4250")


@pytest.mark.asyncio
async def test_commission_rate_endpoint(client: AsyncClient, admin_headers, manager_headers, agent_user):
    denied = await client.patch(
        f"/api/v1/agents/{agent_user.id}/commission-rate", json={"commission_rate": "6"}, headers=manager_headers,
    )
    assert denied.status_code == 403

    out_of_range = await client.patch(
        f"/api/v1/agents/{agent_user.id}/commission-rate", json={"commission_rate": "120"}, headers=admin_headers,
    )
    assert out_of_range.status_code == 422

    response = await client.patch(
        f"/api/v1/agents/{agent_user.id}/commission-rate", json={"commission_rate": "6"}, headers=admin_headers,
    )
    assert response.status_code == 200
    assert Decimal(response.json()["commission_rate"]) == Decimal("6")


@pytest.mark.asyncio
async def test_list_agents(client: AsyncClient, admin_headers, agent_headers, agent_user, other_agent):
    response = await client.get("/api/v1/agents/", params={"role": "agent"}, headers=admin_headers)
    assert response.status_code == 200
    assert {a["email"] for a in response.json()} == {"agent@example.com", "agent2@example.com"}

    assert (await client.get("/api/v1/agents/", headers=agent_headers)).status_code == 403


@pytest.mark.asyncio
async def test_admin_adds_manager_who_can_stock_inventory(client: AsyncClient, admin_headers, manager_headers):
    body = {
        "email": "stock@example.com",
        "full_name": "Sadia Stock",
        "password": "managerpass1",
        "role": "manager",
        "commission_rate": "0",
    }
    assert (await client.post("/api/v1/agents/", json=body, headers=manager_headers)).status_code == 403

    created = await client.post("/api/v1/agents/", json=body, headers=admin_headers)
    assert created.status_code == 201
    assert created.json()["role"] == "manager"
    assert Decimal(created.json()["commission_rate"]) == Decimal("0")

    duplicate = await client.post("/api/v1/agents/", json=body, headers=admin_headers)
    assert duplicate.status_code == 409

    login = await client.post("/api/v1/auth/login", json={"email": "stock@example.com", "password": "managerpass1"})
    headers = {"Authorization": f"Bearer {login.json()['access_token']}"}
    ticket = await client.post("/api/v1/tickets/", json={
        "airline": "US-Bangla",
        "flight_number": "BS341",
        "country": "Malaysia",
        "departure_city": "Dhaka",
        "arrival_city": "Kuala Lumpur",
        "departure_at": (utcnow() + timedelta(days=10)).isoformat(),
        "selling_price": "42000",
        "buying_price": "39000",
    }, headers=headers)
    assert ticket.status_code == 201


@pytest.mark.asyncio
async def test_create_agent_defaults_and_bad_role(client: AsyncClient, admin_headers):
    created = await client.post("/api/v1/agents/", json={
        "email": "field@example.com", "full_name": "Field Agent", "password": "agentpass1",
    }, headers=admin_headers)
    assert created.status_code == 201
    assert created.json()["role"] == "agent"
    assert Decimal(created.json()["commission_rate"]) == Decimal("5")

    bad = await client.post("/api/v1/agents/", json={
        "email": "boss@example.com", "full_name": "Boss", "password": "bosspass12", "role": "owner",
    }, headers=admin_headers)
    assert bad.status_code == 422


@pytest.mark.asyncio
async def test_deactivated_agent_is_locked_out(client: AsyncClient, admin_user, admin_headers, agent_user, agent_headers):
    response = await client.patch(
        f"/api/v1/agents/{agent_user.id}/status", json={"is_active": False}, headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["is_active"] is False

    assert (await client.get("/api/v1/auth/me", headers=agent_headers)).status_code == 401
    login = await client.post("/api/v1/auth/login", json={"email": "agent@example.com", "password": "testpassword123"})
    assert login.status_code == 403

    own = await client.patch(f"/api/v1/agents/{admin_user.id}/status", json={"is_active": False}, headers=admin_headers)
    assert own.status_code == 422
    missing = await client.patch("/api/v1/agents/9999/status", json={"is_active": True}, headers=admin_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_performance_report_periods(db_session, ticket_factory, agent, draft_factory):
    now = utcnow()
    old = await ticket_factory(flight_number="BG501")
    recent = await ticket_factory(flight_number="BG502")
    held = await ticket_factory(flight_number="BG503")

    # Confirmed 40 days ago: outside the month, inside the quarter
    early = await booking_service.create_booking(db_session, draft_factory(old), agent, now=now - timedelta(days=40))
    await booking_service.confirm_booking(
        db_session, early.id, paid_amount=Decimal("85000"), now=now - timedelta(days=40, hours=-1),
    )
    latest = await booking_service.create_booking(db_session, draft_factory(recent), agent, now=now - timedelta(days=2))
    await booking_service.confirm_booking(
        db_session, latest.id, paid_amount=Decimal("40000"), now=now - timedelta(days=2, hours=-1),
    )
    await booking_service.create_booking(db_session, draft_factory(held), agent, now=now - timedelta(hours=1))

    month = await agent_service.get_performance_report(db_session, agent.id, "month", now=now)
    assert month["total_bookings"] == 2
    assert month["confirmed_bookings"] == 1
    assert month["total_sales"] == Decimal("85000")
    assert month["total_commission"] == Decimal("4250")
    assert month["bookings"][0]["airline"] == "Biman Bangladesh"
    assert [b["booking_status"] for b in month["bookings"]] == ["pending", "confirmed"]

    quarter = await agent_service.get_performance_report(db_session, agent.id, "quarter", now=now)
    assert quarter["total_bookings"] == 3
    assert quarter["total_sales"] == Decimal("170000")
    assert quarter["average_booking_value"] == Decimal("85000.00")

    week = await agent_service.get_performance_report(db_session, agent.id, "week", now=now)
    assert week["start"] == now - timedelta(days=7)

    with pytest.raises(ValidationFailed):
        await agent_service.get_performance_report(db_session, agent.id, "decade", now=now)


@pytest.mark.asyncio
async def test_performance_endpoint_visibility(
    client: AsyncClient, agent_user, agent_headers, other_agent, manager_headers, confirmed_sales,
):
    own = await client.get(f"/api/v1/agents/{agent_user.id}/performance", headers=agent_headers)
    assert own.status_code == 200
    assert own.json()["period"] == "month"
    assert own.json()["total_bookings"] == 2

    denied = await client.get(f"/api/v1/agents/{other_agent.id}/performance", headers=agent_headers)
    assert denied.status_code == 403

    managed = await client.get(
        f"/api/v1/agents/{other_agent.id}/performance", params={"period": "year"}, headers=manager_headers,
    )
    assert managed.status_code == 200
    assert Decimal(managed.json()["total_commission"]) == Decimal("6375")

    bad = await client.get(f"/api/v1/agents/{agent_user.id}/performance", params={"period": "decade"}, headers=agent_headers)
    assert bad.status_code == 422
    assert "period" in bad.json()["fields"]
