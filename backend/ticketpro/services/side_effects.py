"""
Side effects of booking transitions.

EXACTLY-ONCE STRATEGY
=====================

Enqueue in the same transaction, deliver after commit:
  Every effect a transition owes (expiry warning, commission credit,
  invoice email) is written as a row inside the transition's own
  transaction. Unique constraints on (booking_id, type/template) and on
  commission_records.booking_id make a second enqueue impossible, and the
  conditional status update guarantees only one transaction gets that far.

Delivery is best-effort:
  Emails are sent after the transition is committed. A failed send is
  recorded on the outbox row and retried by the periodic job; it never
  rolls back the booking.

Claiming:
  Before sending, a worker stamps claimed_at with a conditional update.
  Only the worker whose update matched sends the message, so two sweeps
  running at once never email the same customer twice. A crashed worker's
  claim lapses after EMAIL_CLAIM_LEASE_SECONDS.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import select, update, or_
from sqlalchemy.ext.asyncio import AsyncSession

from ticketpro.core.config import get_settings
from ticketpro.core.logging import get_logger
from ticketpro.core.metrics import (
    commission_credited,
    notifications_delivered,
    record_email_dispatch,
)
from ticketpro.db.base import utcnow
from ticketpro.models.booking import Booking
from ticketpro.models.commission import CommissionRecord
from ticketpro.models.email_dispatch import EmailDispatch, EXPIRY_WARNING_TEMPLATE, INVOICE_TEMPLATE
from ticketpro.models.notification import Notification, EXPIRY_WARNING, COMMISSION_UPDATE
from ticketpro.models.ticket import Ticket
from ticketpro.models.user import User
from ticketpro.services.interfaces.mailer import Mailer
from ticketpro.services.pricing import calculate_commission

logger = get_logger(__name__)
settings = get_settings()


@dataclass(frozen=True)
class DispatchResult:
    sent: int = 0
    failed: int = 0
    skipped: int = 0


# --- enqueue (called inside the transition's transaction) -------------------

def schedule_expiry_warning(db: AsyncSession, booking_id: int, agent_id: int, reference: str, expires_at: datetime) -> Notification:
    notification = Notification(
        user_id=agent_id,
        booking_id=booking_id,
        type=EXPIRY_WARNING,
        title="Booking Expiry Warning",
        message=(
            f"Booking {reference} expires in {settings.EXPIRY_WARNING_HOURS} hours. "
            "Please confirm it or it will be released automatically."
        ),
        scheduled_for=expires_at - timedelta(hours=settings.EXPIRY_WARNING_HOURS),
    )
    db.add(notification)
    return notification


async def cancel_pending_warnings(db: AsyncSession, booking_id: int, now: datetime) -> int:
    """
    Drop the expiry warning of a booking that is no longer pending.
    Covers both the undelivered notification and a warning email that the
    notification already queued but nobody has sent yet.
    """
    result = await db.execute(
        update(Notification)
        .where(
            Notification.booking_id == booking_id,
            Notification.type == EXPIRY_WARNING,
            Notification.sent_at.is_(None),
            Notification.cancelled_at.is_(None),
        )
        .values(cancelled_at=now)
        .execution_options(synchronize_session=False)
    )
    emails = await db.execute(
        update(EmailDispatch)
        .where(
            EmailDispatch.booking_id == booking_id,
            EmailDispatch.template == EXPIRY_WARNING_TEMPLATE,
            EmailDispatch.status == "pending",
        )
        .values(status="cancelled", claimed_at=None)
        .execution_options(synchronize_session=False)
    )
    if emails.rowcount:
        logger.info("expiry_warning_email_cancelled", booking_id=booking_id)
    return result.rowcount + emails.rowcount


def invoice_recipient(passenger_email: Optional[str], mobile_number: str) -> str:
    if passenger_email:
        return passenger_email
    return f"{mobile_number}@{settings.SMS_GATEWAY_DOMAIN}"


def invoice_payload(booking: Booking, ticket: Ticket, payment_status: str) -> dict[str, Any]:
    return {
        "booking_reference": booking.booking_reference,
        "passenger_name": booking.passenger_name,
        "pax_count": booking.pax_count,
        "total_amount": str(booking.total_amount),
        "payment_status": payment_status,
        "airline": ticket.airline,
        "flight_number": ticket.flight_number,
        "departure_city": ticket.departure_city,
        "arrival_city": ticket.arrival_city,
        "departure_at": ticket.departure_at.isoformat(),
        "created_at": booking.created_at.isoformat(),
    }


async def on_confirmed(db: AsyncSession, booking: Booking, payment_status: str, now: datetime) -> Decimal:
    """
    Credit commission, enqueue the invoice and drop the expiry warning.
    Returns the commission amount credited.
    """
    rate = (
        await db.execute(select(User.commission_rate).where(User.id == booking.agent_id))
    ).scalar_one()
    amount = calculate_commission(booking.total_amount, rate)

    db.add(CommissionRecord(
        booking_id=booking.id,
        agent_id=booking.agent_id,
        amount=amount,
        rate=rate,
        created_at=now,
    ))
    await db.execute(
        update(Booking)
        .where(Booking.id == booking.id)
        .values(commission_amount=amount)
        .execution_options(synchronize_session=False)
    )
    db.add(Notification(
        user_id=booking.agent_id,
        booking_id=booking.id,
        type=COMMISSION_UPDATE,
        title="Commission Earned",
        message=f"You earned ৳{amount:,.2f} commission from booking {booking.booking_reference}",
        scheduled_for=now,
        sent_at=now,
    ))

    ticket = (await db.execute(select(Ticket).where(Ticket.id == booking.ticket_id))).scalar_one()
    db.add(EmailDispatch(
        booking_id=booking.id,
        template=INVOICE_TEMPLATE,
        recipient=invoice_recipient(booking.passenger_email, booking.mobile_number),
        payload=invoice_payload(booking, ticket, payment_status),
        created_at=now,
    ))
    await cancel_pending_warnings(db, booking.id, now)
    commission_credited.inc()

    logger.info(
        "commission_credited",
        booking_id=booking.id,
        agent_id=booking.agent_id,
        rate=str(rate),
        amount=str(amount),
    )
    return amount


async def on_released(db: AsyncSession, booking_id: int, now: datetime) -> None:
    """Cancelled or expired: the warning is moot and no commission is owed."""
    await cancel_pending_warnings(db, booking_id, now)


# --- delivery (called after commit, or by the periodic job) -----------------

async def dispatch_pending_emails(
    db: AsyncSession,
    mailer: Mailer,
    now: Optional[datetime] = None,
    booking_id: Optional[int] = None,
    limit: int = 100,
) -> DispatchResult:
    now = now or utcnow()
    lease_cutoff = now - timedelta(seconds=settings.EMAIL_CLAIM_LEASE_SECONDS)

    query = (
        select(EmailDispatch.id, EmailDispatch.template, EmailDispatch.recipient, EmailDispatch.payload, EmailDispatch.attempts)
        .where(EmailDispatch.status == "pending")
        .order_by(EmailDispatch.created_at.asc(), EmailDispatch.id.asc())
        .limit(limit)
    )
    if booking_id is not None:
        query = query.where(EmailDispatch.booking_id == booking_id)
    rows = (await db.execute(query)).all()

    sent = failed = skipped = 0
    for row in rows:
        claim = await db.execute(
            update(EmailDispatch)
            .where(
                EmailDispatch.id == row.id,
                EmailDispatch.status == "pending",
                or_(EmailDispatch.claimed_at.is_(None), EmailDispatch.claimed_at < lease_cutoff),
            )
            .values(claimed_at=now, attempts=EmailDispatch.attempts + 1)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        if claim.rowcount != 1:
            skipped += 1
            continue

        attempts = row.attempts + 1
        try:
            await mailer.send(row.template, row.recipient, row.payload)
        except Exception as e:
            exhausted = attempts >= settings.EMAIL_MAX_ATTEMPTS
            await db.execute(
                update(EmailDispatch)
                .where(EmailDispatch.id == row.id)
                .values(
                    status="failed" if exhausted else "pending",
                    claimed_at=None,
                    last_error=str(e)[:1000],
                )
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            record_email_dispatch(row.template, sent=False)
            logger.warning(
                "email_dispatch_failed",
                dispatch_id=row.id,
                template=row.template,
                attempts=attempts,
                gave_up=exhausted,
                error=str(e),
            )
            failed += 1
            continue

        await db.execute(
            update(EmailDispatch)
            .where(EmailDispatch.id == row.id)
            .values(status="sent", sent_at=now, last_error=None)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        record_email_dispatch(row.template, sent=True)
        sent += 1

    return DispatchResult(sent=sent, failed=failed, skipped=skipped)


async def deliver_due_notifications(db: AsyncSession, now: Optional[datetime] = None, limit: int = 200) -> int:
    """
    Mark due notifications as sent and queue the expiry warning email to the agent.
    Each row is delivered by a conditional update, so re-running is harmless.
    """
    now = now or utcnow()
    due = (
        await db.execute(
            select(Notification.id, Notification.type, Notification.booking_id, Notification.user_id)
            .where(
                Notification.scheduled_for <= now,
                Notification.sent_at.is_(None),
                Notification.cancelled_at.is_(None),
            )
            .order_by(Notification.scheduled_for.asc())
            .limit(limit)
        )
    ).all()

    delivered = 0
    for row in due:
        result = await db.execute(
            update(Notification)
            .where(
                Notification.id == row.id,
                Notification.sent_at.is_(None),
                Notification.cancelled_at.is_(None),
            )
            .values(sent_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            continue
        delivered += 1
        notifications_delivered.labels(type=row.type).inc()

        if row.type == EXPIRY_WARNING and row.booking_id is not None:
            await _enqueue_expiry_warning_email(db, row.booking_id, row.user_id, now)

    await db.commit()
    if delivered:
        logger.info("notifications_delivered", count=delivered)
    return delivered


async def _enqueue_expiry_warning_email(db: AsyncSession, booking_id: int, agent_id: int, now: datetime) -> None:
    booking = (
        await db.execute(
            select(Booking.booking_reference, Booking.passenger_name, Booking.expires_at, Booking.booking_status)
            .where(Booking.id == booking_id)
        )
    ).one()
    if booking.booking_status != "pending":
        return
    agent_email = (await db.execute(select(User.email).where(User.id == agent_id))).scalar_one()
    db.add(EmailDispatch(
        booking_id=booking_id,
        template=EXPIRY_WARNING_TEMPLATE,
        recipient=agent_email,
        payload={
            "booking_reference": booking.booking_reference,
            "passenger_name": booking.passenger_name,
            "expires_at": booking.expires_at.isoformat(),
        },
        created_at=now,
    ))
