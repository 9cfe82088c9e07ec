"""
Airline inventory unit.

Key design decisions:
- No status column: available/locked/sold is derived from the bookings that
  reference the ticket, so it can never drift from the booking table
- selling_price doubles as the floor price agents may not undercut
- buying_price is only exposed to roles holding VIEW_BUYING_PRICE
"""

from sqlalchemy import Column, Integer, String, Numeric, Index, CheckConstraint
from sqlalchemy.orm import relationship

from ticketpro.db.base import Base, TimestampMixin, UTCDateTime


class Ticket(Base, TimestampMixin):
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, index=True)
    airline = Column(String(120), nullable=False)
    flight_number = Column(String(20), nullable=False)
    country = Column(String(80), nullable=False)
    departure_city = Column(String(80), nullable=False)
    arrival_city = Column(String(80), nullable=False)
    departure_at = Column(UTCDateTime(), nullable=False)
    selling_price = Column(Numeric(12, 2), nullable=False)
    buying_price = Column(Numeric(12, 2), nullable=False)

    bookings = relationship("Booking", back_populates="ticket", lazy="raise")

    __table_args__ = (
        CheckConstraint("selling_price > 0", name="check_ticket_selling_price_positive"),
        CheckConstraint("buying_price >= 0", name="check_ticket_buying_price_non_negative"),
        Index("ix_tickets_country_departure", "country", "departure_at"),
    )

    def __repr__(self) -> str:
        return f"<Ticket(id={self.id}, {self.airline} {self.flight_number} {self.departure_city}->{self.arrival_city})>"
