"""
Booking endpoints: wizard validation, concurrency-safe creation and
lifecycle transitions.

Agents only ever see their own bookings; a booking belonging to someone
else is reported as not found.
"""

from dataclasses import replace
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketpro.api.deps import get_current_user
from ticketpro.core.errors import NotFound, ValidationFailed
from ticketpro.core.permissions import Actor, Capability
from ticketpro.db.session import get_db
from ticketpro.models.booking import Booking, BOOKING_STATUSES
from ticketpro.schemas.booking import (
    BookingCreate, BookingResponse, ConfirmRequest, DraftValidateRequest, DraftValidateResponse,
)
from ticketpro.services import booking_service
from ticketpro.services.booking_draft import BookingDraft, DraftStep, STEP_ORDER
from ticketpro.services.interfaces.mailer import Mailer
from ticketpro.services.strategy_factory import get_mailer

router = APIRouter(prefix="/bookings", tags=["Bookings"])


async def _draft_from_request(db: AsyncSession, data: BookingCreate) -> BookingDraft:
    draft = await booking_service.start_draft(db, data.ticket_id)
    draft = (
        draft.with_passengers([p.model_dump() for p in data.passengers])
        .with_pricing(selling_price=data.selling_price, discount_percent=data.discount_percent)
        .with_payment(**data.payment.model_dump())
        .with_comments(data.comments)
    )
    if data.agent is not None:
        draft = draft.with_agent(**data.agent.model_dump())
    return draft


def _ensure_visible(booking: Booking, actor: Actor) -> Booking:
    if booking.agent_id != actor.id and not actor.can(Capability.VIEW_ALL_BOOKINGS):
        raise NotFound(f"Booking {booking.id} not found")
    return booking


def _scope(actor: Actor, agent_id: Optional[int]) -> Optional[int]:
    return agent_id if actor.can(Capability.VIEW_ALL_BOOKINGS) else actor.id


@router.post("/drafts/validate", response_model=DraftValidateResponse)
async def validate_draft_step(
    data: DraftValidateRequest,
    actor: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Run the validators of one wizard step. Nothing is persisted; call this on
    every field change and only enable "next" when valid is true.
    """
    try:
        step = DraftStep(data.step)
    except ValueError:
        raise ValidationFailed({"step": f"Unknown step '{data.step}'"})

    draft = replace(await _draft_from_request(db, data), step=step)
    errors = draft.step_errors()
    pricing_ok = not draft.step_errors(DraftStep.PRICING)
    next_step = None
    if not errors and step != DraftStep.READY:
        next_step = STEP_ORDER[STEP_ORDER.index(step) + 1].value
    return DraftValidateResponse(
        step=step.value,
        valid=not errors,
        errors=errors,
        next_step=next_step,
        total=draft.price().total if pricing_ok else None,
    )


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking_endpoint(
    data: BookingCreate,
    actor: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Hold a ticket for 24 hours.

    The one-active-booking-per-ticket rule is enforced by a partial unique
    index; if another agent got there first this returns 409.
    """
    draft = await _draft_from_request(db, data)
    return await booking_service.create_booking(db, draft, actor)


@router.get("/", response_model=list[BookingResponse])
async def list_bookings_endpoint(
    agent_id: Optional[int] = None,
    booking_status: Optional[str] = Query(None, alias="status"),
    q: Optional[str] = Query(None, max_length=100),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List bookings, newest first. q matches passenger name, passport or mobile."""
    if booking_status is not None and booking_status not in BOOKING_STATUSES:
        raise ValidationFailed({"status": f"Status must be one of: {', '.join(BOOKING_STATUSES)}"})
    return await booking_service.list_bookings(
        db,
        agent_id=_scope(actor, agent_id),
        status=booking_status,
        search_term=q,
        limit=limit,
        offset=offset,
    )


@router.get("/search", response_model=list[BookingResponse])
async def search_bookings_endpoint(
    q: str = Query(..., min_length=1, max_length=100),
    actor: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Passport or mobile number lookup (substring, case-insensitive)."""
    return await booking_service.search_bookings(db, q, agent_id=_scope(actor, None))


@router.get("/reference/{reference}", response_model=BookingResponse)
async def find_by_reference_endpoint(
    reference: str,
    actor: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Re-read a booking, e.g. after a confirm whose response was lost."""
    booking = await booking_service.find_by_reference(db, reference)
    return _ensure_visible(booking, actor)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking_endpoint(
    booking_id: int,
    actor: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    booking = await booking_service.get_booking(db, booking_id)
    return _ensure_visible(booking, actor)


@router.post("/{booking_id}/confirm", response_model=BookingResponse)
async def confirm_booking_endpoint(
    booking_id: int,
    payment: ConfirmRequest,
    actor: Actor = Depends(get_current_user),
    mailer: Mailer = Depends(get_mailer),
    db: AsyncSession = Depends(get_db),
):
    """
    Record payment and confirm a pending hold.
    409 if the booking is no longer pending, 410 if the hold has lapsed.
    """
    _ensure_visible(await booking_service.get_booking(db, booking_id), actor)
    return await booking_service.confirm_booking(
        db,
        booking_id,
        paid_amount=payment.paid_amount,
        payment_method=payment.payment_method,
        transaction_id=payment.transaction_id,
        mailer=mailer,
    )


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking_endpoint(
    booking_id: int,
    actor: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a pending hold and release the ticket."""
    _ensure_visible(await booking_service.get_booking(db, booking_id), actor)
    return await booking_service.cancel_booking(db, booking_id)
