"""
Booking model: a time-bounded hold on a ticket that ends confirmed,
cancelled or expired.

Key design decisions:
- Partial unique index on ticket_id over pending/confirmed rows: the
  "one active booking per ticket" rule is enforced by the database at insert
  time, so two agents racing for the same ticket cannot both succeed
- expires_at is written once at creation and never updated
- confirmed_at is only ever written by the pending -> confirmed update
"""

from sqlalchemy import (
    Column, Integer, String, Numeric, ForeignKey, Index, CheckConstraint, JSON, text,
)
from sqlalchemy.orm import relationship

from ticketpro.db.base import Base, TimestampMixin, UTCDateTime

BOOKING_STATUSES = ("pending", "confirmed", "cancelled", "expired")
ACTIVE_STATUSES = ("pending", "confirmed")
PAYMENT_STATUSES = ("pending", "partial", "full")

_ACTIVE_PREDICATE = text("booking_status IN ('pending', 'confirmed')")


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    booking_reference = Column(String(32), nullable=False, unique=True, index=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id"), nullable=False, index=True)
    agent_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    passenger_name = Column(String(255), nullable=False)
    passport_number = Column(String(32), nullable=False, index=True)
    mobile_number = Column(String(20), nullable=False, index=True)
    passenger_email = Column(String(255), nullable=True)
    pax_count = Column(Integer, nullable=False, default=1)
    passengers = Column(JSON, nullable=False, default=list)

    unit_price = Column(Numeric(12, 2), nullable=False)
    discount_percent = Column(Numeric(5, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)
    payment_method = Column(String(40), nullable=True)
    transaction_id = Column(String(120), nullable=True)
    payment_status = Column(String(20), nullable=False, default="pending")
    booking_status = Column(String(20), nullable=False, default="pending")
    commission_amount = Column(Numeric(12, 2), nullable=True)

    expires_at = Column(UTCDateTime(), nullable=False)
    confirmed_at = Column(UTCDateTime(), nullable=True)
    comments = Column(String(1000), nullable=True)

    ticket = relationship("Ticket", back_populates="bookings", lazy="raise")
    agent = relationship("User", back_populates="bookings", lazy="raise")

    __table_args__ = (
        Index(
            "uq_bookings_active_ticket",
            "ticket_id",
            unique=True,
            postgresql_where=_ACTIVE_PREDICATE,
            sqlite_where=_ACTIVE_PREDICATE,
        ),
        # The sweep scans lapsed holds: WHERE booking_status = 'pending' AND expires_at <= now
        Index("ix_bookings_status_expires", "booking_status", "expires_at"),
        Index("ix_bookings_agent_created", "agent_id", "created_at"),
        CheckConstraint("pax_count BETWEEN 1 AND 9", name="check_booking_pax_count"),
        CheckConstraint("total_amount >= 0", name="check_booking_total_non_negative"),
        CheckConstraint(
            "booking_status IN ('pending', 'confirmed', 'cancelled', 'expired')",
            name="check_booking_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'partial', 'full')",
            name="check_booking_payment_status",
        ),
        CheckConstraint(
            "(booking_status = 'confirmed') = (confirmed_at IS NOT NULL)",
            name="check_booking_confirmed_at",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, ref={self.booking_reference}, ticket={self.ticket_id}, "
            f"status={self.booking_status})>"
        )
