"""
Ticket inventory endpoints. Listings are cached in Redis per filter set and
visibility; buying price is only returned to roles allowed to see it.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketpro.api.deps import get_current_user, require_capability
from ticketpro.core.permissions import Actor, Capability
from ticketpro.db.session import get_db
from ticketpro.schemas.ticket import (
    QuoteRequest, QuoteResponse, TicketCreate, TicketListResponse, TicketPriceUpdate, TicketResponse,
)
from ticketpro.services import ticket_service

router = APIRouter(prefix="/tickets", tags=["Tickets"])


@router.post(
    "/",
    response_model=TicketResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_ticket_endpoint(
    ticket_data: TicketCreate,
    actor: Actor = Depends(require_capability(Capability.MANAGE_INVENTORY)),
    db: AsyncSession = Depends(get_db),
):
    return await ticket_service.create_ticket(db, ticket_data.model_dump(), actor)


@router.get("/", response_model=TicketListResponse, response_model_exclude_none=True)
async def list_tickets_endpoint(
    country: Optional[str] = None,
    airline: Optional[str] = None,
    departure_city: Optional[str] = None,
    arrival_city: Optional[str] = None,
    ticket_status: Optional[str] = Query(None, alias="status", pattern="^(available|locked|sold)$"),
    upcoming_only: bool = Query(True),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    actor: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Browse inventory with derived status (available, locked, sold).
    Results are cached for REDIS_CACHE_TTL and invalidated on every booking change.
    """
    return await ticket_service.list_tickets(
        db,
        actor,
        country=country,
        airline=airline,
        departure_city=departure_city,
        arrival_city=arrival_city,
        status=ticket_status,
        upcoming_only=upcoming_only,
        page=page,
        page_size=page_size,
    )


@router.get("/{ticket_id}", response_model=TicketResponse, response_model_exclude_none=True)
async def get_ticket_endpoint(
    ticket_id: int,
    actor: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Single ticket. Not cached."""
    return await ticket_service.get_ticket(db, ticket_id, actor)


@router.patch("/{ticket_id}/prices", response_model=TicketResponse, response_model_exclude_none=True)
async def update_prices_endpoint(
    ticket_id: int,
    prices: TicketPriceUpdate,
    actor: Actor = Depends(require_capability(Capability.EDIT_PRICE)),
    db: AsyncSession = Depends(get_db),
):
    return await ticket_service.update_ticket_prices(
        db, ticket_id, actor, selling_price=prices.selling_price, buying_price=prices.buying_price,
    )


@router.post("/{ticket_id}/quote", response_model=QuoteResponse, response_model_exclude_none=True)
async def quote_endpoint(
    ticket_id: int,
    request: QuoteRequest,
    actor: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Price a prospective booking without holding the ticket."""
    return await ticket_service.quote(
        db,
        ticket_id,
        actor,
        pax_count=request.pax_count,
        discount_percent=request.discount_percent,
        selling_price=request.selling_price,
    )
