"""
Pydantic schemas for booking-related request/response validation.

Request bodies are deliberately permissive: field rules (passport length,
mobile pattern, price floor) are enforced by ticketpro.services.validation
so the API reports them with the same field keys the wizard uses.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field


class PassengerIn(BaseModel):
    name: Optional[str] = None
    passport: Optional[str] = None
    mobile: Optional[str] = None
    email: Optional[str] = None


class PaymentIn(BaseModel):
    payment_method: Optional[str] = None
    paid_amount: Decimal = Decimal("0")
    transaction_id: Optional[str] = None


class AgentDetailsIn(BaseModel):
    name: Optional[str] = None
    id: Optional[str] = None
    contact: Optional[str] = None
    email: Optional[str] = None


class BookingCreate(BaseModel):
    ticket_id: int
    passengers: list[PassengerIn] = Field(default_factory=list)
    selling_price: Optional[Decimal] = None
    discount_percent: Decimal = Decimal("0")
    payment: PaymentIn = Field(default_factory=PaymentIn)
    agent: Optional[AgentDetailsIn] = None
    comments: Optional[str] = Field(None, max_length=1000)


class DraftValidateRequest(BookingCreate):
    step: str = "passengers"


class DraftValidateResponse(BaseModel):
    step: str
    valid: bool
    errors: dict[str, str]
    next_step: Optional[str] = None
    total: Optional[Decimal] = None


class ConfirmRequest(BaseModel):
    paid_amount: Optional[Decimal] = None
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None


class BookingResponse(BaseModel):
    id: int
    booking_reference: str
    ticket_id: int
    agent_id: int
    passenger_name: str
    passport_number: str
    mobile_number: str
    passenger_email: Optional[str]
    pax_count: int
    passengers: list[dict[str, Any]]
    unit_price: Decimal
    discount_percent: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    payment_method: Optional[str]
    transaction_id: Optional[str]
    payment_status: str
    booking_status: str
    commission_amount: Optional[Decimal]
    created_at: datetime
    expires_at: datetime
    confirmed_at: Optional[datetime]
    comments: Optional[str]

    model_config = {"from_attributes": True}
