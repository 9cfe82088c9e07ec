"""
Ticket inventory: creation, listing and quotes.

Ticket status is never stored. A listing outer-joins the (at most one)
active booking of each ticket and derives:
  pending booking   -> locked
  confirmed booking -> sold
  none              -> available

Buying price is selected only when the caller holds VIEW_BUYING_PRICE, so
a row built for an agent never carries it, cached or not.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import and_, case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ticketpro.core.errors import NotFound
from ticketpro.core.logging import get_logger
from ticketpro.core.permissions import Actor, Capability
from ticketpro.db.base import utcnow
from ticketpro.models.booking import Booking, ACTIVE_STATUSES
from ticketpro.models.ticket import Ticket
from ticketpro.services.booking_service import store_guard
from ticketpro.services.cache_service import (
    get_cached_listing,
    invalidate_ticket_cache,
    make_listing_key,
    set_cached_listing,
)
from ticketpro.services.pricing import PriceBreakdown, calculate_price, profit_margin

logger = get_logger(__name__)

TICKET_STATUSES = ("available", "locked", "sold")

_active_booking = and_(
    Booking.ticket_id == Ticket.id,
    Booking.booking_status.in_(ACTIVE_STATUSES),
)

ticket_status = case(
    (Booking.booking_status == "pending", "locked"),
    (Booking.booking_status == "confirmed", "sold"),
    else_="available",
)


def _columns(with_buying_price: bool) -> list:
    columns = [
        Ticket.id,
        Ticket.airline,
        Ticket.flight_number,
        Ticket.country,
        Ticket.departure_city,
        Ticket.arrival_city,
        Ticket.departure_at,
        Ticket.selling_price,
        ticket_status.label("status"),
    ]
    if with_buying_price:
        columns.append(Ticket.buying_price)
    return columns


def _row_to_dict(row) -> dict[str, Any]:
    return dict(row._mapping)


async def create_ticket(db: AsyncSession, data: dict[str, Any], actor: Actor) -> dict[str, Any]:
    ticket = Ticket(**data)
    db.add(ticket)
    async with store_guard(db):
        await db.commit()

    logger.info(
        "ticket_created",
        ticket_id=ticket.id,
        airline=ticket.airline,
        flight_number=ticket.flight_number,
        created_by=actor.id,
    )
    await invalidate_ticket_cache()
    return await get_ticket(db, ticket.id, actor)


async def get_ticket(db: AsyncSession, ticket_id: int, actor: Actor) -> dict[str, Any]:
    query = (
        select(*_columns(actor.can(Capability.VIEW_BUYING_PRICE)))
        .outerjoin(Booking, _active_booking)
        .where(Ticket.id == ticket_id)
    )
    async with store_guard(db):
        row = (await db.execute(query)).first()
    if row is None:
        raise NotFound(f"Ticket {ticket_id} not found")
    return _row_to_dict(row)


async def list_tickets(
    db: AsyncSession,
    actor: Actor,
    country: Optional[str] = None,
    airline: Optional[str] = None,
    departure_city: Optional[str] = None,
    arrival_city: Optional[str] = None,
    status: Optional[str] = None,
    upcoming_only: bool = True,
    page: int = 1,
    page_size: int = 20,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Inventory listing with derived status.
    Served from Redis when possible; the cache key includes the caller's visibility.
    """
    with_buying_price = actor.can(Capability.VIEW_BUYING_PRICE)
    filters = {
        "country": country,
        "airline": airline,
        "departure_city": departure_city,
        "arrival_city": arrival_city,
        "status": status,
        "upcoming_only": upcoming_only,
        "page": page,
        "page_size": page_size,
    }
    cache_key = make_listing_key(filters, with_buying_price)
    cached = await get_cached_listing(cache_key)
    if cached is not None:
        return {"tickets": cached[0], "total": cached[1], "page": page, "page_size": page_size, "cached": True}

    query = select(*_columns(with_buying_price)).outerjoin(Booking, _active_booking)
    if country:
        query = query.where(func.lower(Ticket.country) == country.lower())
    if airline:
        query = query.where(func.lower(Ticket.airline) == airline.lower())
    if departure_city:
        query = query.where(func.lower(Ticket.departure_city) == departure_city.lower())
    if arrival_city:
        query = query.where(func.lower(Ticket.arrival_city) == arrival_city.lower())
    if status:
        query = query.where(ticket_status == status)
    if upcoming_only:
        query = query.where(Ticket.departure_at >= (now or utcnow()))

    count_query = select(func.count()).select_from(query.subquery())

    # ix_tickets_country_departure covers the common country + date browse
    page_query = (
        query
        .order_by(Ticket.departure_at.asc(), Ticket.id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    async with store_guard(db):
        total = (await db.execute(count_query)).scalar()
        rows = [_row_to_dict(r) for r in (await db.execute(page_query)).all()]

    await set_cached_listing(cache_key, [rows, total])
    return {"tickets": rows, "total": total, "page": page, "page_size": page_size, "cached": False}


async def update_ticket_prices(
    db: AsyncSession,
    ticket_id: int,
    actor: Actor,
    selling_price: Optional[Decimal] = None,
    buying_price: Optional[Decimal] = None,
) -> dict[str, Any]:
    values: dict[str, Any] = {"updated_at": utcnow()}
    if selling_price is not None:
        values["selling_price"] = selling_price
    if buying_price is not None:
        values["buying_price"] = buying_price

    async with store_guard(db):
        result = await db.execute(
            update(Ticket)
            .where(Ticket.id == ticket_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            raise NotFound(f"Ticket {ticket_id} not found")
        await db.commit()

    logger.info(
        "ticket_prices_updated",
        ticket_id=ticket_id,
        selling_price=str(selling_price) if selling_price is not None else None,
        buying_price=str(buying_price) if buying_price is not None else None,
        updated_by=actor.id,
    )
    await invalidate_ticket_cache()
    return await get_ticket(db, ticket_id, actor)


async def quote(
    db: AsyncSession,
    ticket_id: int,
    actor: Actor,
    pax_count: int,
    discount_percent: Decimal = Decimal("0"),
    selling_price: Optional[Decimal] = None,
) -> dict[str, Any]:
    """Price a prospective booking. Profit is included for roles that may see buying price."""
    async with store_guard(db):
        ticket = (await db.execute(select(Ticket).where(Ticket.id == ticket_id))).scalar_one_or_none()
    if not ticket:
        raise NotFound(f"Ticket {ticket_id} not found")

    price: PriceBreakdown = calculate_price(
        selling_price if selling_price is not None else ticket.selling_price,
        pax_count,
        discount_percent,
        ticket.selling_price,
    )
    result: dict[str, Any] = {
        "ticket_id": ticket.id,
        "unit_price": price.unit_price,
        "pax_count": price.pax_count,
        "discount_percent": price.discount_percent,
        "subtotal": price.subtotal,
        "discount_amount": price.discount_amount,
        "total": price.total,
        "floor_price": ticket.selling_price,
    }
    if actor.can(Capability.VIEW_BUYING_PRICE):
        result["buying_price"] = ticket.buying_price
        result["profit"] = profit_margin(price.total, ticket.buying_price, pax_count)
    return result
