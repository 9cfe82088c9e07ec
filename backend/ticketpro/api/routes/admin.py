"""
Operations endpoints: manual sweep and backups.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketpro.api.deps import require_capability
from ticketpro.core.errors import ValidationFailed
from ticketpro.core.permissions import Actor, Capability
from ticketpro.db.session import get_db
from ticketpro.schemas.report import BackupLogResponse, BackupRequest, MaintenanceResponse
from ticketpro.services.backup_service import BACKUP_TYPES, create_backup, get_backup_history
from ticketpro.services.expiry_service import run_maintenance
from ticketpro.services.interfaces.exporter import Exporter
from ticketpro.services.interfaces.mailer import Mailer
from ticketpro.services.strategy_factory import get_exporter, get_mailer

router = APIRouter(prefix="/admin", tags=["Operations"])


@router.post("/sweep", response_model=MaintenanceResponse)
async def sweep_endpoint(
    actor: Actor = Depends(require_capability(Capability.RUN_OPERATIONS)),
    mailer: Mailer = Depends(get_mailer),
    db: AsyncSession = Depends(get_db),
):
    """Run one maintenance tick now. Safe to call while the scheduler is running."""
    report = await run_maintenance(db, mailer)
    return MaintenanceResponse(
        expired=report.expired,
        notifications_delivered=report.notifications_delivered,
        emails_sent=report.emails.sent,
        emails_failed=report.emails.failed,
    )


@router.post("/backups", response_model=BackupLogResponse, status_code=status.HTTP_201_CREATED)
async def create_backup_endpoint(
    request: BackupRequest,
    actor: Actor = Depends(require_capability(Capability.RUN_OPERATIONS)),
    exporter: Exporter = Depends(get_exporter),
    db: AsyncSession = Depends(get_db),
):
    if request.backup_type not in BACKUP_TYPES:
        raise ValidationFailed({"backup_type": f"Backup type must be one of: {', '.join(BACKUP_TYPES)}"})
    return await create_backup(db, exporter, backup_type=request.backup_type)


@router.get("/backups", response_model=list[BackupLogResponse])
async def backup_history_endpoint(
    actor: Actor = Depends(require_capability(Capability.RUN_OPERATIONS)),
    db: AsyncSession = Depends(get_db),
):
    """Latest 50 backup runs."""
    return await get_backup_history(db)
