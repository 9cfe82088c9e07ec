"""
Commission ledger. One row per confirmed booking; the unique booking_id
means a retried confirmation can never credit the agent twice.
"""

from sqlalchemy import Column, Integer, Numeric, ForeignKey

from ticketpro.db.base import Base, UTCDateTime, utcnow


class CommissionRecord(Base):
    __tablename__ = "commission_records"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, unique=True)
    agent_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    rate = Column(Numeric(5, 2), nullable=False)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<CommissionRecord(booking={self.booking_id}, agent={self.agent_id}, amount={self.amount})>"
