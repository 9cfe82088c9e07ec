"""
In-process periodic jobs started from the application lifespan.

Two loops:
  maintenance - expiry sweep, due notifications, email outbox retries,
                every SWEEP_INTERVAL_SECONDS
  backup      - scheduled backup every BACKUP_INTERVAL_HOURS (0 disables)

Each tick opens its own session. A failing tick is logged and the loop
carries on; the sweep is re-entrant, so an overlapping run from the cron
entry point (ticketpro.jobs) on another host is harmless.
"""

import asyncio
from datetime import timedelta
from typing import Optional

from ticketpro.core.config import get_settings
from ticketpro.core.logging import get_logger
from ticketpro.db.base import utcnow
from ticketpro.db.session import AsyncSessionLocal
from ticketpro.services.backup_service import create_backup, last_backup_at
from ticketpro.services.expiry_service import run_maintenance
from ticketpro.services.strategy_factory import get_exporter, get_mailer

logger = get_logger(__name__)
settings = get_settings()

STARTUP_DELAY_SECONDS = 3
BACKUP_CHECK_SECONDS = 600


async def maintenance_tick() -> None:
    async with AsyncSessionLocal() as db:
        await run_maintenance(db, get_mailer())


async def backup_tick() -> None:
    interval = timedelta(hours=settings.BACKUP_INTERVAL_HOURS)
    async with AsyncSessionLocal() as db:
        last = await last_backup_at(db)
        if last is not None and utcnow() - last < interval:
            return
        await create_backup(db, get_exporter(), backup_type="scheduled")


async def _loop(name: str, tick, interval_seconds: float) -> None:
    await asyncio.sleep(STARTUP_DELAY_SECONDS)
    while True:
        try:
            await tick()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("scheduled_job_failed", job=name)
        await asyncio.sleep(interval_seconds)


class Scheduler:
    def __init__(self):
        self._tasks: list[asyncio.Task] = []

    def start(self) -> None:
        self._tasks.append(
            asyncio.create_task(_loop("maintenance", maintenance_tick, settings.SWEEP_INTERVAL_SECONDS))
        )
        if settings.BACKUP_INTERVAL_HOURS > 0:
            self._tasks.append(asyncio.create_task(_loop("backup", backup_tick, BACKUP_CHECK_SECONDS)))
        logger.info(
            "scheduler_started",
            sweep_interval=settings.SWEEP_INTERVAL_SECONDS,
            backup_interval_hours=settings.BACKUP_INTERVAL_HOURS,
        )

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks.clear()
        logger.info("scheduler_stopped")


_scheduler: Optional[Scheduler] = None


def get_scheduler() -> Scheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = Scheduler()
    return _scheduler
