"""
Pydantic schemas for sales reports and operations endpoints.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class SalesReportItem(BaseModel):
    id: int
    booking_reference: str
    confirmed_at: datetime
    passenger_name: str
    pax_count: int
    total_amount: Decimal
    commission_amount: Optional[Decimal]
    payment_status: str
    agent_id: int
    agent_name: str
    airline: str
    flight_number: str
    country: str
    departure_city: str
    arrival_city: str
    buying_price: Optional[Decimal] = None
    profit: Optional[Decimal] = None


class SalesSummary(BaseModel):
    bookings: int
    passengers: int
    total_sales: Decimal
    total_commission: Decimal
    average_booking_value: Decimal
    total_profit: Optional[Decimal] = None


class SalesReport(BaseModel):
    summary: SalesSummary
    items: list[SalesReportItem]


class BackupLogResponse(BaseModel):
    id: int
    backup_type: str
    file_name: str
    file_id: Optional[str]
    status: str
    record_count: int
    error_message: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class BackupRequest(BaseModel):
    backup_type: str = "manual"


class MaintenanceResponse(BaseModel):
    expired: list[str]
    notifications_delivered: int
    emails_sent: int
    emails_failed: int
