"""
Expiry sweep: moves lapsed pending holds to expired.

The sweep reads at most page_size candidate ids, then expires each with the
same conditional update a user transition uses:

  UPDATE bookings SET booking_status = 'expired'
  WHERE id = :id AND booking_status = 'pending' AND expires_at <= :now

A booking confirmed or cancelled between the read and the update simply
does not match, so two sweeps running at once (or a sweep racing a confirm)
never double-expire and never overwrite a terminal status.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ticketpro.core.config import get_settings
from ticketpro.core.logging import get_logger
from ticketpro.core.metrics import sweep_duration, sweep_expired, sweep_runs
from ticketpro.db.base import utcnow
from ticketpro.models.booking import Booking
from ticketpro.services import side_effects
from ticketpro.services.booking_service import store_guard
from ticketpro.services.cache_service import invalidate_ticket_cache
from ticketpro.services.interfaces.mailer import Mailer
from ticketpro.services.lifecycle import BookingStatus

logger = get_logger(__name__)
settings = get_settings()


@dataclass
class MaintenanceReport:
    expired: list[str] = field(default_factory=list)
    notifications_delivered: int = 0
    emails: Optional[side_effects.DispatchResult] = None


async def sweep_expired_bookings(
    db: AsyncSession,
    now: Optional[datetime] = None,
    page_size: Optional[int] = None,
) -> list[str]:
    """Expire one page of lapsed holds. Returns the references actually expired."""
    now = now or utcnow()
    page_size = page_size or settings.SWEEP_PAGE_SIZE
    started = time.perf_counter()
    sweep_runs.inc()

    async with store_guard(db):
        candidates = (
            await db.execute(
                select(Booking.id, Booking.booking_reference)
                .where(
                    Booking.booking_status == BookingStatus.PENDING.value,
                    Booking.expires_at <= now,
                )
                .order_by(Booking.expires_at.asc(), Booking.id.asc())
                .limit(page_size)
            )
        ).all()

        expired: list[str] = []
        for row in candidates:
            result = await db.execute(
                update(Booking)
                .where(
                    Booking.id == row.id,
                    Booking.booking_status == BookingStatus.PENDING.value,
                    Booking.expires_at <= now,
                )
                .values(booking_status=BookingStatus.EXPIRED.value, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                continue
            await side_effects.on_released(db, row.id, now)
            expired.append(row.booking_reference)

        await db.commit()

    sweep_duration.observe(time.perf_counter() - started)
    if expired:
        sweep_expired.inc(len(expired))
        logger.info("bookings_expired", count=len(expired), references=expired)
        await invalidate_ticket_cache()
    else:
        logger.debug("sweep_idle", candidates=len(candidates))
    return expired


async def run_maintenance(
    db: AsyncSession,
    mailer: Mailer,
    now: Optional[datetime] = None,
) -> MaintenanceReport:
    """One tick of the periodic job: sweep, deliver due warnings, retry the outbox."""
    now = now or utcnow()
    report = MaintenanceReport()
    report.expired = await sweep_expired_bookings(db, now=now)
    report.notifications_delivered = await side_effects.deliver_due_notifications(db, now=now)
    report.emails = await side_effects.dispatch_pending_emails(db, mailer, now=now)

    logger.info(
        "maintenance_completed",
        expired=len(report.expired),
        notifications=report.notifications_delivered,
        emails_sent=report.emails.sent,
        emails_failed=report.emails.failed,
    )
    return report
