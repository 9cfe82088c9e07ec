"""
Pydantic schemas for user and agent request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from ticketpro.core.permissions import Role


class UserCreate(BaseModel):
    email: EmailStr
    full_name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)
    password: str = Field(..., min_length=8, max_length=128)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    id: int
    email: str
    full_name: str
    phone: Optional[str]
    role: str
    commission_rate: Decimal
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class CommissionRateUpdate(BaseModel):
    commission_rate: Decimal


class MonthlyCommission(BaseModel):
    month: str
    count: int
    sales: Decimal
    commission: Decimal


class CommissionStats(BaseModel):
    agent_id: int
    total_bookings: int
    total_sales: Decimal
    total_commission: Decimal
    average_booking_value: Decimal
    by_month: list[MonthlyCommission]


class AgentCreate(UserCreate):
    """Staff account added by an admin from the agent management screen."""

    role: Role = Role.AGENT
    commission_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    is_active: bool = True


class AgentStatusUpdate(BaseModel):
    is_active: bool


class PerformanceBooking(BaseModel):
    id: int
    booking_reference: str
    passenger_name: str
    pax_count: int
    airline: str
    total_amount: Decimal
    commission_amount: Optional[Decimal]
    booking_status: str
    created_at: datetime


class PerformanceReport(BaseModel):
    agent_id: int
    period: str
    start: datetime
    end: datetime
    total_bookings: int
    confirmed_bookings: int
    total_sales: Decimal
    total_commission: Decimal
    average_booking_value: Decimal
    bookings: list[PerformanceBooking]
