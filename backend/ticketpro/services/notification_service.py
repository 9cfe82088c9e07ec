"""
Agent inbox. Only delivered notifications are visible; scheduled and
cancelled ones stay hidden.
"""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ticketpro.core.errors import NotFound
from ticketpro.core.logging import get_logger
from ticketpro.models.notification import Notification
from ticketpro.services.booking_service import store_guard

logger = get_logger(__name__)


async def list_notifications(db: AsyncSession, user_id: int, include_read: bool = False) -> list[Notification]:
    query = select(Notification).where(
        Notification.user_id == user_id,
        Notification.sent_at.is_not(None),
        Notification.cancelled_at.is_(None),
    )
    if not include_read:
        query = query.where(Notification.is_read.is_(False))
    query = query.order_by(Notification.sent_at.desc(), Notification.id.desc())

    async with store_guard(db):
        result = await db.execute(query)
        return list(result.scalars().all())


async def mark_as_read(db: AsyncSession, notification_id: int, user_id: int) -> Notification:
    async with store_guard(db):
        result = await db.execute(
            update(Notification)
            .where(Notification.id == notification_id, Notification.user_id == user_id)
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            raise NotFound(f"Notification {notification_id} not found")
        await db.commit()

        notification = (
            await db.execute(
                select(Notification)
                .where(Notification.id == notification_id)
                .execution_options(populate_existing=True)
            )
        ).scalar_one()

    logger.debug("notification_read", notification_id=notification_id, user_id=user_id)
    return notification
