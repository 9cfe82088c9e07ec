"""
Pydantic schemas for ticket inventory and quotes.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class TicketCreate(BaseModel):
    airline: str = Field(..., min_length=1, max_length=120)
    flight_number: str = Field(..., min_length=1, max_length=20)
    country: str = Field(..., min_length=1, max_length=80)
    departure_city: str = Field(..., min_length=1, max_length=80)
    arrival_city: str = Field(..., min_length=1, max_length=80)
    departure_at: datetime
    selling_price: Decimal = Field(..., gt=0)
    buying_price: Decimal = Field(..., ge=0)


class TicketPriceUpdate(BaseModel):
    selling_price: Optional[Decimal] = Field(None, gt=0)
    buying_price: Optional[Decimal] = Field(None, ge=0)


class TicketResponse(BaseModel):
    id: int
    airline: str
    flight_number: str
    country: str
    departure_city: str
    arrival_city: str
    departure_at: datetime
    selling_price: Decimal
    status: str
    buying_price: Optional[Decimal] = None


class TicketListResponse(BaseModel):
    tickets: list[TicketResponse]
    total: int
    page: int
    page_size: int
    cached: bool = False


class QuoteRequest(BaseModel):
    pax_count: int = 1
    discount_percent: Decimal = Decimal("0")
    selling_price: Optional[Decimal] = None


class QuoteResponse(BaseModel):
    ticket_id: int
    unit_price: Decimal
    pax_count: int
    discount_percent: Decimal
    subtotal: Decimal
    discount_amount: Decimal
    total: Decimal
    floor_price: Decimal
    buying_price: Optional[Decimal] = None
    profit: Optional[Decimal] = None
