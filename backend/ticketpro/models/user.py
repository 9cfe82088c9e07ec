"""
Back-office user: admins, managers and sales agents.
Agents earn commission at their own rate on every confirmed booking.
"""

from sqlalchemy import Column, Integer, String, Boolean, Numeric, CheckConstraint
from sqlalchemy.orm import relationship

from ticketpro.db.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="agent")  # admin, manager, agent
    commission_rate = Column(Numeric(5, 2), nullable=False, default=5)  # percent
    is_active = Column(Boolean, default=True, nullable=False)

    bookings = relationship("Booking", back_populates="agent", lazy="raise")

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'manager', 'agent')", name="check_user_role"),
        CheckConstraint(
            "commission_rate >= 0 AND commission_rate <= 100",
            name="check_commission_rate_range",
        ),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
