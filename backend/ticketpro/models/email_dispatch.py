"""
Outbox of emails owed to customers and agents.

Rows are inserted in the same transaction as the booking transition that
causes them, then delivered after commit. The unique (booking_id, template)
pair makes the enqueue exactly-once; claimed_at is a short lease so two
dispatchers never send the same row.
"""

from sqlalchemy import Column, Integer, String, ForeignKey, JSON, UniqueConstraint, Index

from ticketpro.db.base import Base, UTCDateTime, utcnow

INVOICE_TEMPLATE = "booking_invoice"
EXPIRY_WARNING_TEMPLATE = "booking_expiry_warning"


class EmailDispatch(Base):
    __tablename__ = "email_dispatches"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False)
    template = Column(String(60), nullable=False)
    recipient = Column(String(255), nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    status = Column(String(20), nullable=False, default="pending")  # pending, sent, failed, cancelled
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(String(1000), nullable=True)
    claimed_at = Column(UTCDateTime(), nullable=True)
    sent_at = Column(UTCDateTime(), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("booking_id", "template", name="uq_email_dispatch_booking_template"),
        Index("ix_email_dispatches_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<EmailDispatch(id={self.id}, template={self.template}, status={self.status})>"
