"""
Domain error taxonomy.

Services raise these; the API layer renders them as typed JSON bodies
(see ticketpro.api.errors). Infrastructure problems are reported as
Unavailable so clients can tell "try again" apart from "fix your request".
"""

from typing import Optional


class BookingError(Exception):
    """Base class for every error surfaced to API callers."""

    code = "booking_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(BookingError):
    code = "validation_failed"
    status_code = 422

    def __init__(self, errors: dict[str, str], message: str = "Some fields are invalid"):
        super().__init__(message)
        self.errors = dict(errors)


class Conflict(BookingError):
    code = "conflict"
    status_code = 409


class InvalidTransition(BookingError):
    code = "invalid_transition"
    status_code = 409

    def __init__(self, current: str, target: str, message: Optional[str] = None):
        super().__init__(message or f"Booking is no longer pending ({current} -> {target} not allowed)")
        self.current = current
        self.target = target


class Expired(BookingError):
    code = "expired"
    status_code = 410

    def __init__(self, reference: str):
        super().__init__(f"Hold on booking {reference} has lapsed; please rebook")
        self.reference = reference


class NotFound(BookingError):
    code = "not_found"
    status_code = 404


class PermissionDenied(BookingError):
    code = "permission_denied"
    status_code = 403


class Unavailable(BookingError):
    code = "unavailable"
    status_code = 503

    def __init__(self, message: str = "Service unavailable, please try again"):
        super().__init__(message)


class MailerError(Exception):
    """Raised by mailer implementations when a message could not be delivered."""


class ExportError(Exception):
    """Raised by exporter implementations when an upload fails."""
