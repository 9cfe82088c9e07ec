"""
Booking record store with concurrency-safe holds and transitions.

CONCURRENCY STRATEGY
====================

Creation: database-enforced uniqueness
  Problem:
    Two agents open the same ticket and submit at the same moment.
    Both read "available", both insert, the ticket is sold twice.

  Solution:
    A partial unique index on bookings(ticket_id) covering only pending and
    confirmed rows. We simply INSERT; the loser of the race gets an
    IntegrityError which we report as Conflict. There is no
    read-then-write window in application code.

  The only other unique column is booking_reference. A reference collision
  is retried up to MAX_RETRY_ATTEMPTS with a fresh reference.

Transitions: compare-and-swap on status
  UPDATE bookings SET booking_status = :target, ...
  WHERE id = :id AND booking_status = 'pending' [AND expires_at > :now]

  If rowcount == 0 someone else (another agent, or the expiry sweep) got
  there first. We re-read the row only to explain why: InvalidTransition
  when it is no longer pending, Expired when a confirm arrived after the
  hold lapsed. Nothing is ever overwritten.

Side effects
  Commission, notifications and the invoice outbox row are written in the
  same transaction as the status change (see side_effects). Emails are sent
  only after commit and their failure never undoes the transition.

Lost acknowledgements
  A client whose confirm timed out should re-read the booking with
  find_by_reference rather than retrying the write.
"""

import secrets
import string
import time
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update, or_, exists
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from ticketpro.core.config import get_settings
from ticketpro.core.errors import (
    Conflict, Expired, InvalidTransition, NotFound, Unavailable, ValidationFailed,
)
from ticketpro.core.logging import get_logger
from ticketpro.core.metrics import booking_latency, record_booking_attempt, record_transition
from ticketpro.core.permissions import Actor
from ticketpro.db.base import utcnow
from ticketpro.models.booking import Booking, ACTIVE_STATUSES
from ticketpro.models.ticket import Ticket
from ticketpro.services import side_effects
from ticketpro.services.booking_draft import BookingDraft
from ticketpro.services.cache_service import invalidate_ticket_cache
from ticketpro.services.interfaces.mailer import Mailer
from ticketpro.services.lifecycle import BookingStatus, hold_lapsed, validate_transition
from ticketpro.services.pricing import calculate_price, payment_status_for
from ticketpro.services.validation import validate_payment

logger = get_logger(__name__)
settings = get_settings()

MAX_RETRY_ATTEMPTS = 3
REFERENCE_ALPHABET = string.ascii_uppercase + string.digits


@asynccontextmanager
async def store_guard(db: AsyncSession):
    """Translate connectivity failures into Unavailable."""
    try:
        yield
    except (OperationalError, InterfaceError, PoolTimeoutError, OSError) as e:
        logger.error("store_unavailable", error=str(e))
        try:
            await db.rollback()
        except SQLAlchemyError as rollback_error:
            logger.warning("store_rollback_failed", error=str(rollback_error))
        raise Unavailable() from e


def generate_reference(now: datetime) -> str:
    suffix = "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(6))
    return f"BK{now:%y%m%d}{suffix}"


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


async def _ticket_is_held(db: AsyncSession, ticket_id: int) -> bool:
    result = await db.execute(
        select(
            exists().where(
                Booking.ticket_id == ticket_id,
                Booking.booking_status.in_(ACTIVE_STATUSES),
            )
        )
    )
    return bool(result.scalar())


async def _load_booking(db: AsyncSession, booking_id: int) -> Booking:
    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if not booking:
        raise NotFound(f"Booking {booking_id} not found")
    return booking


async def start_draft(db: AsyncSession, ticket_id: int) -> BookingDraft:
    """Open a wizard draft priced at the ticket's current selling price."""
    async with store_guard(db):
        ticket = (await db.execute(select(Ticket).where(Ticket.id == ticket_id))).scalar_one_or_none()
    if not ticket:
        raise NotFound(f"Ticket {ticket_id} not found")
    return BookingDraft.start(ticket.id, ticket.selling_price)


async def create_booking(
    db: AsyncSession,
    draft: BookingDraft,
    agent: Actor,
    now: Optional[datetime] = None,
) -> Booking:
    """
    Persist a completed draft as a pending hold.
    Raises ValidationFailed, NotFound (ticket), Conflict (ticket already held) or Unavailable.
    """
    draft = draft.complete()
    started = time.perf_counter()

    async with store_guard(db):
        ticket = (await db.execute(select(Ticket).where(Ticket.id == draft.ticket_id))).scalar_one_or_none()
        if not ticket:
            raise NotFound(f"Ticket {draft.ticket_id} not found")
        ticket_id = ticket.id

        # The draft's floor came from the client; the ticket row is authoritative
        price = calculate_price(draft.selling_price, draft.pax_count, draft.discount_percent, ticket.selling_price)
        payment_errors = validate_payment(draft.payment, price.total)
        if payment_errors:
            raise ValidationFailed(payment_errors)

        lead = draft.lead_passenger
        paid_amount = Decimal(str(draft.payment.get("paid_amount") or 0))

        for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
            created_at = now or utcnow()
            booking = Booking(
                booking_reference=generate_reference(created_at),
                ticket_id=ticket_id,
                agent_id=agent.id,
                passenger_name=lead["name"].strip(),
                passport_number=str(lead["passport"]).strip().upper(),
                mobile_number=str(lead["mobile"]).strip(),
                passenger_email=(lead.get("email") or None),
                pax_count=draft.pax_count,
                passengers=[dict(p) for p in draft.passengers],
                unit_price=price.unit_price,
                discount_percent=price.discount_percent,
                total_amount=price.total,
                paid_amount=paid_amount,
                payment_method=draft.payment.get("payment_method"),
                transaction_id=draft.payment.get("transaction_id") or None,
                payment_status=payment_status_for(paid_amount, price.total),
                booking_status=BookingStatus.PENDING.value,
                created_at=created_at,
                updated_at=created_at,
                expires_at=created_at + timedelta(hours=settings.BOOKING_HOLD_HOURS),
                comments=draft.comments,
            )
            db.add(booking)
            try:
                await db.flush()
            except IntegrityError:
                await db.rollback()
                if await _ticket_is_held(db, ticket_id):
                    record_booking_attempt("conflict")
                    logger.warning("booking_conflict", ticket_id=ticket_id, agent_id=agent.id)
                    raise Conflict("This ticket was just booked by someone else")
                logger.info("booking_retry", ticket_id=ticket_id, attempt=attempt, reason="reference_collision")
                continue

            side_effects.schedule_expiry_warning(
                db, booking.id, agent.id, booking.booking_reference, booking.expires_at,
            )
            await db.commit()
            break
        else:
            record_booking_attempt("error")
            raise Unavailable("Could not allocate a booking reference, please try again")

    booking_latency.observe(time.perf_counter() - started)
    record_booking_attempt("success")
    logger.info(
        "booking_created",
        booking_id=booking.id,
        reference=booking.booking_reference,
        ticket_id=ticket_id,
        agent_id=agent.id,
        pax_count=booking.pax_count,
        total=str(booking.total_amount),
        expires_at=booking.expires_at.isoformat(),
    )
    await invalidate_ticket_cache()
    return booking


async def update_status(
    db: AsyncSession,
    booking_id: int,
    new_status: str,
    payment_status: Optional[str] = None,
    *,
    paid_amount: Optional[Decimal] = None,
    payment_method: Optional[str] = None,
    transaction_id: Optional[str] = None,
    mailer: Optional[Mailer] = None,
    now: Optional[datetime] = None,
) -> Booking:
    """
    Move a pending booking to confirmed, cancelled or expired.
    Raises NotFound, InvalidTransition, Expired or Unavailable.
    """
    try:
        target = BookingStatus(new_status)
    except ValueError:
        raise ValidationFailed({"booking_status": f"Unknown status '{new_status}'"})
    now = now or utcnow()

    async with store_guard(db):
        booking = await _load_booking(db, booking_id)
        try:
            validate_transition(booking.booking_status, target)
        except InvalidTransition:
            record_transition(target.value, "invalid")
            raise

        conditions = [Booking.id == booking_id, Booking.booking_status == BookingStatus.PENDING.value]
        values = {"booking_status": target.value, "updated_at": now}
        if target == BookingStatus.CONFIRMED:
            conditions.append(Booking.expires_at > now)
            values["confirmed_at"] = now
        elif target == BookingStatus.EXPIRED:
            conditions.append(Booking.expires_at <= now)
        if payment_status is not None:
            values["payment_status"] = payment_status
        if paid_amount is not None:
            values["paid_amount"] = paid_amount
        if payment_method is not None:
            values["payment_method"] = payment_method
        if transaction_id is not None:
            values["transaction_id"] = transaction_id

        result = await db.execute(
            update(Booking)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            await db.rollback()
            current = await _load_booking(db, booking_id)
            if current.booking_status != BookingStatus.PENDING.value:
                record_transition(target.value, "invalid")
                logger.info(
                    "transition_lost",
                    booking_id=booking_id,
                    target=target.value,
                    current=current.booking_status,
                )
                raise InvalidTransition(current.booking_status, target.value)
            if target == BookingStatus.CONFIRMED and hold_lapsed(current.expires_at, now):
                record_transition(target.value, "expired")
                raise Expired(current.booking_reference)
            record_transition(target.value, "invalid")
            raise InvalidTransition(
                current.booking_status, target.value, "Hold has not lapsed yet",
            )

        if target == BookingStatus.CONFIRMED:
            await side_effects.on_confirmed(db, booking, payment_status or booking.payment_status, now)
        else:
            await side_effects.on_released(db, booking_id, now)
        await db.commit()
        booking = await _load_booking(db, booking_id)

    record_transition(target.value, "applied")
    logger.info(
        "booking_status_changed",
        booking_id=booking_id,
        reference=booking.booking_reference,
        status=target.value,
        payment_status=booking.payment_status,
    )
    await invalidate_ticket_cache()

    if mailer is not None and target == BookingStatus.CONFIRMED:
        # Best effort: the transition is already committed, and the outbox
        # row stays pending for the maintenance job if this fails
        db.expunge(booking)
        try:
            async with store_guard(db):
                await side_effects.dispatch_pending_emails(db, mailer, now=now, booking_id=booking_id)
                booking = await _load_booking(db, booking_id)
        except (Unavailable, SQLAlchemyError) as e:
            await db.rollback()
            logger.warning("invoice_dispatch_deferred", booking_id=booking_id, error=str(e))
    return booking


async def confirm_booking(
    db: AsyncSession,
    booking_id: int,
    paid_amount: Optional[Decimal] = None,
    payment_method: Optional[str] = None,
    transaction_id: Optional[str] = None,
    mailer: Optional[Mailer] = None,
    now: Optional[datetime] = None,
) -> Booking:
    """Record the payment and confirm. A confirmation needs some money on the booking."""
    async with store_guard(db):
        booking = await _load_booking(db, booking_id)
    validate_transition(booking.booking_status, BookingStatus.CONFIRMED)

    paid = Decimal(str(paid_amount)) if paid_amount is not None else Decimal(str(booking.paid_amount))
    errors = validate_payment(
        {"payment_method": payment_method or booking.payment_method, "paid_amount": paid},
        booking.total_amount,
    )
    if paid <= 0:
        errors["payment.paid_amount"] = "Record a payment before confirming"
    if errors:
        raise ValidationFailed(errors)

    return await update_status(
        db,
        booking_id,
        BookingStatus.CONFIRMED.value,
        payment_status_for(paid, booking.total_amount),
        paid_amount=paid,
        payment_method=payment_method,
        transaction_id=transaction_id,
        mailer=mailer,
        now=now,
    )


async def cancel_booking(db: AsyncSession, booking_id: int, now: Optional[datetime] = None) -> Booking:
    return await update_status(db, booking_id, BookingStatus.CANCELLED.value, now=now)


async def get_booking(db: AsyncSession, booking_id: int) -> Booking:
    async with store_guard(db):
        return await _load_booking(db, booking_id)


async def find_by_reference(db: AsyncSession, reference: str) -> Booking:
    async with store_guard(db):
        result = await db.execute(
            select(Booking)
            .where(Booking.booking_reference == reference.strip().upper())
            .execution_options(populate_existing=True)
        )
        booking = result.scalar_one_or_none()
    if not booking:
        raise NotFound(f"Booking {reference} not found")
    return booking


async def list_bookings(
    db: AsyncSession,
    agent_id: Optional[int] = None,
    status: Optional[str] = None,
    search_term: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Booking]:
    """
    Newest first. search_term matches passenger name, passport number or
    mobile number (substring, case-insensitive).
    """
    query = select(Booking)
    if agent_id is not None:
        query = query.where(Booking.agent_id == agent_id)
    if status:
        query = query.where(Booking.booking_status == status)
    if search_term and search_term.strip():
        pattern = _like_pattern(search_term.strip())
        query = query.where(
            or_(
                Booking.passenger_name.ilike(pattern, escape="\\"),
                Booking.passport_number.ilike(pattern, escape="\\"),
                Booking.mobile_number.ilike(pattern, escape="\\"),
            )
        )
    query = query.order_by(Booking.created_at.desc(), Booking.id.desc()).offset(offset).limit(limit)

    async with store_guard(db):
        result = await db.execute(query)
        return list(result.scalars().all())


async def search_bookings(db: AsyncSession, term: str, agent_id: Optional[int] = None) -> list[Booking]:
    """Passport or mobile lookup."""
    if not term or not term.strip():
        return []
    pattern = _like_pattern(term.strip())
    query = select(Booking).where(
        or_(
            Booking.passport_number.ilike(pattern, escape="\\"),
            Booking.mobile_number.ilike(pattern, escape="\\"),
        )
    )
    if agent_id is not None:
        query = query.where(Booking.agent_id == agent_id)
    query = query.order_by(Booking.created_at.desc(), Booking.id.desc())

    async with store_guard(db):
        result = await db.execute(query)
        return list(result.scalars().all())


async def get_expiring_bookings(db: AsyncSession, now: Optional[datetime] = None) -> list[Booking]:
    """Pending bookings whose hold has lapsed but that the sweep has not reached yet."""
    now = now or utcnow()
    async with store_guard(db):
        result = await db.execute(
            select(Booking)
            .where(Booking.booking_status == BookingStatus.PENDING.value, Booking.expires_at <= now)
            .order_by(Booking.expires_at.asc())
        )
        return list(result.scalars().all())
