"""
Request dependencies: the acting user and capability checks.
"""

from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketpro.core.errors import PermissionDenied
from ticketpro.core.permissions import Actor, Capability
from ticketpro.core.security import get_current_user_id
from ticketpro.db.session import get_db
from ticketpro.models.user import User


async def get_current_user(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Actor:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account not found or deactivated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return Actor.from_user(user)


def require_capability(capability: Capability):
    async def checker(actor: Actor = Depends(get_current_user)) -> Actor:
        if not actor.can(capability):
            raise PermissionDenied(f"Your role cannot {capability.value.replace('_', ' ')}")
        return actor
    return checker
