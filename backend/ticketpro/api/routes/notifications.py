from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ticketpro.api.deps import get_current_user
from ticketpro.core.permissions import Actor
from ticketpro.db.session import get_db
from ticketpro.schemas.notification import NotificationResponse
from ticketpro.services.notification_service import list_notifications, mark_as_read

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/", response_model=list[NotificationResponse])
async def list_notifications_endpoint(
    include_read: bool = False,
    actor: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await list_notifications(db, actor.id, include_read=include_read)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read_endpoint(
    notification_id: int,
    actor: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await mark_as_read(db, notification_id, actor.id)
