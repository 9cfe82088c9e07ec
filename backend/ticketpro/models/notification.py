"""
In-app notifications for agents.

A notification is pending until scheduled_for passes; delivery stamps
sent_at, a lifecycle change can stamp cancelled_at first. At most one row
per (booking_id, type).
"""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, UniqueConstraint, Index

from ticketpro.db.base import Base, UTCDateTime, utcnow

EXPIRY_WARNING = "booking_expiry"
COMMISSION_UPDATE = "commission_update"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True)
    type = Column(String(40), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(String(1024), nullable=False)
    scheduled_for = Column(UTCDateTime(), nullable=False)
    sent_at = Column(UTCDateTime(), nullable=True)
    cancelled_at = Column(UTCDateTime(), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("booking_id", "type", name="uq_notification_booking_type"),
        Index("ix_notifications_due", "scheduled_for", "sent_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, type={self.type}, booking={self.booking_id})>"
