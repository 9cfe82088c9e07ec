"""
Booking status state machine.

    pending --confirm--> confirmed
    pending --cancel---> cancelled
    pending --sweep----> expired

confirmed, cancelled and expired are terminal.
"""

from datetime import datetime
from enum import Enum

from ticketpro.core.errors import InvalidTransition


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    FULL = "full"


ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({
        BookingStatus.CONFIRMED,
        BookingStatus.CANCELLED,
        BookingStatus.EXPIRED,
    }),
    BookingStatus.CONFIRMED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.EXPIRED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if not targets)


def is_terminal(status: str) -> bool:
    return BookingStatus(status) in TERMINAL_STATUSES


def can_transition(current: str, target: str) -> bool:
    return BookingStatus(target) in ALLOWED_TRANSITIONS[BookingStatus(current)]


def validate_transition(current: str, target: str) -> None:
    """Raises InvalidTransition if current -> target is not an edge of the machine."""
    if not can_transition(current, target):
        raise InvalidTransition(current=current, target=target)


def hold_lapsed(expires_at: datetime, now: datetime) -> bool:
    return now >= expires_at
