"""
Authentication service handling agent registration and login.
"""

from decimal import Decimal
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketpro.core.config import get_settings
from ticketpro.core.logging import get_logger
from ticketpro.core.permissions import Role
from ticketpro.core.security import create_access_token, hash_password, verify_password
from ticketpro.models.user import User
from ticketpro.schemas.user import UserCreate, UserLogin

logger = get_logger(__name__)
settings = get_settings()


async def register_user(
    db: AsyncSession,
    user_data: UserCreate,
    role: Role = Role.AGENT,
    commission_rate: Optional[Decimal] = None,
    is_active: bool = True,
) -> User:
    """
    Register a new back-office user. Self-registration always yields an agent;
    admins pass a role when adding staff.
    Raises 409 if the email already exists.
    """
    if commission_rate is None:
        commission_rate = Decimal(str(settings.DEFAULT_COMMISSION_RATE))
    result = await db.execute(select(User).where(User.email == user_data.email))
    if result.scalar_one_or_none():
        logger.warning("registration_failed", reason="email_exists", email=user_data.email)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )

    user = User(
        email=user_data.email,
        full_name=user_data.full_name,
        phone=user_data.phone,
        hashed_password=hash_password(user_data.password),
        role=Role(role).value,
        commission_rate=commission_rate,
        is_active=is_active,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)

    logger.info("user_registered", user_id=user.id, email=user.email, role=user.role)
    return user


async def authenticate_user(db: AsyncSession, login_data: UserLogin) -> str:
    """
    Authenticate user and return JWT access token.
    Raises 401 if credentials are invalid.
    """
    result = await db.execute(select(User).where(User.email == login_data.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(login_data.password, user.hashed_password):
        logger.warning("login_failed", email=login_data.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated",
        )

    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    logger.info("user_logged_in", user_id=user.id, role=user.role)
    return token
