"""
Backup export: dump bookings, tickets and agents as one JSON document,
hand it to the exporter and log the outcome.

create_backup never raises for export failures; the failure is written to
backup_logs and counted so the scheduler keeps running.
"""

import json
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketpro.core.config import get_settings
from ticketpro.core.errors import ExportError
from ticketpro.core.logging import get_logger
from ticketpro.core.metrics import backup_runs
from ticketpro.db.base import utcnow
from ticketpro.models.backup_log import BackupLog
from ticketpro.models.booking import Booking
from ticketpro.models.ticket import Ticket
from ticketpro.models.user import User
from ticketpro.services.booking_service import store_guard
from ticketpro.services.interfaces.exporter import Exporter

logger = get_logger(__name__)
settings = get_settings()

BACKUP_TYPES = ("daily", "scheduled", "manual")
HISTORY_LIMIT = 50

_USER_EXPORT_COLUMNS = (
    User.id, User.email, User.full_name, User.phone, User.role,
    User.commission_rate, User.is_active, User.created_at,
)


def _rows(result) -> list[dict[str, Any]]:
    return [dict(r._mapping) for r in result.all()]


async def build_snapshot(db: AsyncSession, now: datetime, backup_type: str) -> tuple[bytes, int]:
    bookings = _rows(await db.execute(select(*Booking.__table__.columns).order_by(Booking.id)))
    tickets = _rows(await db.execute(select(*Ticket.__table__.columns).order_by(Ticket.id)))
    agents = _rows(await db.execute(select(*_USER_EXPORT_COLUMNS).order_by(User.id)))
    record_count = len(bookings) + len(tickets) + len(agents)

    document = {
        "timestamp": now.isoformat(),
        "type": backup_type,
        "data": {"bookings": bookings, "tickets": tickets, "agents": agents},
        "metadata": {
            "version": settings.APP_VERSION,
            "exported_by": settings.APP_NAME,
            "record_count": record_count,
        },
    }
    return json.dumps(document, default=str, indent=2).encode("utf-8"), record_count


async def create_backup(
    db: AsyncSession,
    exporter: Exporter,
    backup_type: str = "manual",
    now: Optional[datetime] = None,
) -> BackupLog:
    now = now or utcnow()
    file_name = f"ticketpro_backup_{backup_type}_{now:%Y%m%dT%H%M%S}.json"

    async with store_guard(db):
        blob, record_count = await build_snapshot(db, now, backup_type)

    log = BackupLog(
        backup_type=backup_type,
        file_name=file_name,
        record_count=record_count,
        created_at=now,
    )
    try:
        log.file_id = await exporter.upload(blob, file_name)
        log.status = "completed"
        logger.info("backup_completed", file_name=file_name, records=record_count, size=len(blob))
    except ExportError as e:
        log.status = "failed"
        log.error_message = str(e)[:1000]
        logger.error("backup_failed", file_name=file_name, error=str(e))
    backup_runs.labels(status=log.status).inc()

    db.add(log)
    async with store_guard(db):
        await db.commit()
    return log


async def get_backup_history(db: AsyncSession, limit: int = HISTORY_LIMIT) -> list[BackupLog]:
    async with store_guard(db):
        result = await db.execute(
            select(BackupLog).order_by(BackupLog.created_at.desc(), BackupLog.id.desc()).limit(limit)
        )
        return list(result.scalars().all())


async def last_backup_at(db: AsyncSession) -> Optional[datetime]:
    async with store_guard(db):
        return (
            await db.execute(select(func.max(BackupLog.created_at)).where(BackupLog.status == "completed"))
        ).scalar()
