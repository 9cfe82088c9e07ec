"""
Authentication endpoints: register and login.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketpro.api.deps import get_current_user
from ticketpro.core.permissions import Actor
from ticketpro.db.session import get_db
from ticketpro.schemas.user import UserCreate, UserResponse, UserLogin, Token
from ticketpro.services.agent_service import get_agent
from ticketpro.services.auth_service import register_user, authenticate_user

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    """Register a new agent account."""
    user = await register_user(db, user_data)
    return user


@router.post("/login", response_model=Token)
async def login(login_data: UserLogin, db: AsyncSession = Depends(get_db)):
    """Authenticate and receive a JWT access token."""
    token = await authenticate_user(db, login_data)
    return Token(access_token=token)


@router.get("/me", response_model=UserResponse)
async def me(actor: Actor = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await get_agent(db, actor.id)
