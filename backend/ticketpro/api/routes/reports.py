"""
Sales reports. Agents get their own confirmed sales; buying price and
profit appear only for roles allowed to see them.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ticketpro.api.deps import get_current_user
from ticketpro.core.permissions import Actor
from ticketpro.db.session import get_db
from ticketpro.schemas.report import SalesReport
from ticketpro.services.report_service import sales_report

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/sales", response_model=SalesReport, response_model_exclude_none=True)
async def sales_report_endpoint(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    agent_id: Optional[int] = None,
    airline: Optional[str] = None,
    country: Optional[str] = None,
    actor: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await sales_report(
        db, actor, start=start, end=end, agent_id=agent_id, airline=airline, country=country,
    )
