"""
Agent management, commission statistics and performance reports.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketpro.api.deps import get_current_user, require_capability
from ticketpro.core.errors import PermissionDenied
from ticketpro.core.permissions import Actor, Capability
from ticketpro.db.session import get_db
from ticketpro.schemas.user import (
    AgentCreate,
    AgentStatusUpdate,
    CommissionRateUpdate,
    CommissionStats,
    PerformanceReport,
    UserResponse,
)
from ticketpro.services import agent_service

router = APIRouter(prefix="/agents", tags=["Agents"])


@router.get("/", response_model=list[UserResponse])
async def list_agents_endpoint(
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    q: Optional[str] = None,
    actor: Actor = Depends(require_capability(Capability.MANAGE_AGENTS)),
    db: AsyncSession = Depends(get_db),
):
    return await agent_service.list_agents(db, role=role, is_active=is_active, search_term=q)


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_agent_endpoint(
    data: AgentCreate,
    actor: Actor = Depends(require_capability(Capability.MANAGE_AGENTS)),
    db: AsyncSession = Depends(get_db),
):
    """Add an agent, manager or admin. Returns 409 if the email is taken."""
    return await agent_service.create_agent(db, data, actor)


@router.patch("/{agent_id}/status", response_model=UserResponse)
async def update_agent_status_endpoint(
    agent_id: int,
    update: AgentStatusUpdate,
    actor: Actor = Depends(require_capability(Capability.MANAGE_AGENTS)),
    db: AsyncSession = Depends(get_db),
):
    return await agent_service.set_agent_active(db, agent_id, update.is_active, actor)


@router.patch("/{agent_id}/commission-rate", response_model=UserResponse)
async def update_commission_rate_endpoint(
    agent_id: int,
    update: CommissionRateUpdate,
    actor: Actor = Depends(require_capability(Capability.MANAGE_AGENTS)),
    db: AsyncSession = Depends(get_db),
):
    """New rate applies to bookings confirmed from now on."""
    return await agent_service.update_commission_rate(db, agent_id, update.commission_rate)


@router.get("/{agent_id}/commission", response_model=CommissionStats)
async def commission_stats_endpoint(
    agent_id: int,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    actor: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if agent_id != actor.id and not actor.can(Capability.VIEW_REPORTS):
        raise PermissionDenied("You can only view your own commission")
    return await agent_service.get_commission_stats(db, agent_id, start=start, end=end)


@router.get("/{agent_id}/performance", response_model=PerformanceReport)
async def performance_report_endpoint(
    agent_id: int,
    period: str = "month",
    actor: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Bookings created over the last week, month, quarter or year."""
    if agent_id != actor.id and not actor.can(Capability.VIEW_REPORTS):
        raise PermissionDenied("You can only view your own performance")
    return await agent_service.get_performance_report(db, agent_id, period=period)
