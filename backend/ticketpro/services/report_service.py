"""
Sales reporting over confirmed bookings.

Filters compose into a single query. Agents are always restricted to their
own bookings; buying price and profit are only selected for callers holding
VIEW_BUYING_PRICE.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketpro.core.logging import get_logger
from ticketpro.core.permissions import Actor, Capability
from ticketpro.models.booking import Booking
from ticketpro.models.ticket import Ticket
from ticketpro.models.user import User
from ticketpro.services.booking_service import store_guard
from ticketpro.services.lifecycle import BookingStatus
from ticketpro.services.pricing import profit_margin

logger = get_logger(__name__)

ZERO = Decimal("0")


async def sales_report(
    db: AsyncSession,
    actor: Actor,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    agent_id: Optional[int] = None,
    airline: Optional[str] = None,
    country: Optional[str] = None,
) -> dict[str, Any]:
    with_cost = actor.can(Capability.VIEW_BUYING_PRICE)

    columns = [
        Booking.id,
        Booking.booking_reference,
        Booking.confirmed_at,
        Booking.passenger_name,
        Booking.pax_count,
        Booking.total_amount,
        Booking.commission_amount,
        Booking.payment_status,
        Booking.agent_id,
        User.full_name.label("agent_name"),
        Ticket.airline,
        Ticket.flight_number,
        Ticket.country,
        Ticket.departure_city,
        Ticket.arrival_city,
    ]
    if with_cost:
        columns.append(Ticket.buying_price)

    query = (
        select(*columns)
        .join(Ticket, Ticket.id == Booking.ticket_id)
        .join(User, User.id == Booking.agent_id)
        .where(Booking.booking_status == BookingStatus.CONFIRMED.value)
    )
    if not actor.can(Capability.VIEW_ALL_BOOKINGS):
        agent_id = actor.id
    if agent_id is not None:
        query = query.where(Booking.agent_id == agent_id)
    if start is not None:
        query = query.where(Booking.confirmed_at >= start)
    if end is not None:
        query = query.where(Booking.confirmed_at <= end)
    if airline:
        query = query.where(func.lower(Ticket.airline) == airline.lower())
    if country:
        query = query.where(func.lower(Ticket.country) == country.lower())
    query = query.order_by(Booking.confirmed_at.desc(), Booking.id.desc())

    async with store_guard(db):
        rows = (await db.execute(query)).all()

    items = []
    total_sales = total_commission = total_profit = ZERO
    passengers = 0
    for row in rows:
        item = dict(row._mapping)
        total_sales += Decimal(str(row.total_amount))
        total_commission += Decimal(str(row.commission_amount or 0))
        passengers += row.pax_count
        if with_cost:
            item["profit"] = profit_margin(row.total_amount, row.buying_price, row.pax_count)
            total_profit += item["profit"]
        items.append(item)

    summary: dict[str, Any] = {
        "bookings": len(items),
        "passengers": passengers,
        "total_sales": total_sales,
        "total_commission": total_commission,
        "average_booking_value": (total_sales / len(items)).quantize(Decimal("0.01")) if items else ZERO,
    }
    if with_cost:
        summary["total_profit"] = total_profit

    logger.info(
        "sales_report_generated",
        requested_by=actor.id,
        rows=len(items),
        agent_id=agent_id,
    )
    return {"summary": summary, "items": items}
