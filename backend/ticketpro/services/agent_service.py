"""
Agent management, commission statistics and performance reports.
"""

from collections import OrderedDict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ticketpro.core.errors import NotFound, ValidationFailed
from ticketpro.core.logging import get_logger
from ticketpro.core.permissions import Actor
from ticketpro.db.base import utcnow
from ticketpro.models.booking import Booking
from ticketpro.models.ticket import Ticket
from ticketpro.models.user import User
from ticketpro.schemas.user import AgentCreate
from ticketpro.services import auth_service
from ticketpro.services.booking_service import store_guard
from ticketpro.services.lifecycle import BookingStatus

logger = get_logger(__name__)

ZERO = Decimal("0")

PERFORMANCE_PERIODS = {"week": 7, "month": 30, "quarter": 91, "year": 365}


async def list_agents(
    db: AsyncSession,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    search_term: Optional[str] = None,
) -> list[User]:
    query = select(User).order_by(User.created_at.desc(), User.id.desc())
    if role:
        query = query.where(User.role == role)
    if is_active is not None:
        query = query.where(User.is_active == is_active)
    if search_term and search_term.strip():
        pattern = f"%{search_term.strip()}%"
        query = query.where(or_(User.full_name.ilike(pattern), User.email.ilike(pattern)))

    async with store_guard(db):
        result = await db.execute(query)
        return list(result.scalars().all())


async def get_agent(db: AsyncSession, agent_id: int) -> User:
    async with store_guard(db):
        result = await db.execute(
            select(User).where(User.id == agent_id).execution_options(populate_existing=True)
        )
        agent = result.scalar_one_or_none()
    if not agent:
        raise NotFound(f"Agent {agent_id} not found")
    return agent


async def update_commission_rate(db: AsyncSession, agent_id: int, rate: Decimal) -> User:
    """
    Change an agent's rate. Applies to future confirmations only; commission
    already credited keeps the rate it was computed with.
    """
    rate = Decimal(str(rate))
    if rate < 0 or rate > 100:
        raise ValidationFailed({"commission_rate": "Commission rate must be between 0 and 100"})

    async with store_guard(db):
        result = await db.execute(
            update(User)
            .where(User.id == agent_id)
            .values(commission_rate=rate, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            raise NotFound(f"Agent {agent_id} not found")
        await db.commit()

    logger.info("commission_rate_updated", agent_id=agent_id, rate=str(rate))
    return await get_agent(db, agent_id)


async def create_agent(db: AsyncSession, data: AgentCreate, actor: Actor) -> User:
    """
    Add a back-office user with an explicit role, as opposed to
    self-registration which always yields an agent.
    """
    user = await auth_service.register_user(
        db,
        data,
        role=data.role,
        commission_rate=data.commission_rate,
        is_active=data.is_active,
    )
    logger.info("agent_created", agent_id=user.id, role=user.role, created_by=actor.id)
    return user


async def set_agent_active(db: AsyncSession, agent_id: int, is_active: bool, actor: Actor) -> User:
    """Deactivated users keep their bookings and history but can no longer sign in."""
    if agent_id == actor.id and not is_active:
        raise ValidationFailed({"is_active": "You cannot deactivate your own account"})

    async with store_guard(db):
        result = await db.execute(
            update(User)
            .where(User.id == agent_id)
            .values(is_active=is_active, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            raise NotFound(f"Agent {agent_id} not found")
        await db.commit()

    logger.info("agent_status_updated", agent_id=agent_id, is_active=is_active, updated_by=actor.id)
    return await get_agent(db, agent_id)


async def get_commission_stats(
    db: AsyncSession,
    agent_id: int,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> dict[str, Any]:
    """Totals over the agent's confirmed bookings, grouped by confirmation month."""
    query = select(Booking.total_amount, Booking.commission_amount, Booking.confirmed_at).where(
        Booking.agent_id == agent_id,
        Booking.booking_status == BookingStatus.CONFIRMED.value,
    )
    if start is not None:
        query = query.where(Booking.confirmed_at >= start)
    if end is not None:
        query = query.where(Booking.confirmed_at <= end)
    query = query.order_by(Booking.confirmed_at.asc())

    await get_agent(db, agent_id)
    async with store_guard(db):
        rows = (await db.execute(query)).all()

    total_sales = sum((Decimal(str(r.total_amount)) for r in rows), ZERO)
    total_commission = sum((Decimal(str(r.commission_amount or 0)) for r in rows), ZERO)

    by_month: "OrderedDict[str, dict[str, Any]]" = OrderedDict()
    for r in rows:
        month = r.confirmed_at.strftime("%Y-%m")
        bucket = by_month.setdefault(month, {"month": month, "count": 0, "sales": ZERO, "commission": ZERO})
        bucket["count"] += 1
        bucket["sales"] += Decimal(str(r.total_amount))
        bucket["commission"] += Decimal(str(r.commission_amount or 0))

    return {
        "agent_id": agent_id,
        "total_bookings": len(rows),
        "total_sales": total_sales,
        "total_commission": total_commission,
        "average_booking_value": (total_sales / len(rows)).quantize(Decimal("0.01")) if rows else ZERO,
        "by_month": list(by_month.values()),
    }


async def get_performance_report(
    db: AsyncSession,
    agent_id: int,
    period: str = "month",
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Every booking the agent created within the period, newest first, with
    totals over the confirmed ones.
    """
    if period not in PERFORMANCE_PERIODS:
        raise ValidationFailed({"period": f"Period must be one of: {', '.join(PERFORMANCE_PERIODS)}"})
    end = now or utcnow()
    start = end - timedelta(days=PERFORMANCE_PERIODS[period])

    await get_agent(db, agent_id)
    query = (
        select(
            Booking.id,
            Booking.booking_reference,
            Booking.passenger_name,
            Booking.pax_count,
            Booking.total_amount,
            Booking.commission_amount,
            Booking.booking_status,
            Booking.created_at,
            Ticket.airline,
        )
        .join(Ticket, Ticket.id == Booking.ticket_id)
        .where(
            Booking.agent_id == agent_id,
            Booking.created_at >= start,
            Booking.created_at <= end,
        )
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    async with store_guard(db):
        rows = [dict(r._mapping) for r in (await db.execute(query)).all()]

    confirmed = [r for r in rows if r["booking_status"] == BookingStatus.CONFIRMED.value]
    total_sales = sum((Decimal(str(r["total_amount"])) for r in confirmed), ZERO)
    total_commission = sum((Decimal(str(r["commission_amount"] or 0)) for r in confirmed), ZERO)

    return {
        "agent_id": agent_id,
        "period": period,
        "start": start,
        "end": end,
        "total_bookings": len(rows),
        "confirmed_bookings": len(confirmed),
        "total_sales": total_sales,
        "total_commission": total_commission,
        "average_booking_value": (total_sales / len(confirmed)).quantize(Decimal("0.01")) if confirmed else ZERO,
        "bookings": rows,
    }
