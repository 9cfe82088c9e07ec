"""
Field validation for the booking wizard.

Every validator is a pure function returning {field: message}; an empty dict
means the input is valid. Nothing here raises or touches the database, so the
same checks can run on every keystroke and again on submission.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional

from email_validator import EmailNotValidError, validate_email

from ticketpro.core.config import get_settings

settings = get_settings()

MOBILE_PATTERN = re.compile(r"^(\+88)?01[3-9]\d{8}$")
MIN_PASSPORT_LENGTH = 8
PAYMENT_METHODS = ("cash", "bank_transfer", "bkash", "nagad", "card")


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _valid_email(value: Any) -> bool:
    try:
        validate_email(str(value).strip(), check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def _as_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


def validate_passenger(passenger: Mapping[str, Any], prefix: str = "") -> dict[str, str]:
    errors: dict[str, str] = {}
    name = passenger.get("name")
    passport = passenger.get("passport")
    mobile = passenger.get("mobile")

    if _blank(name):
        errors[f"{prefix}name"] = "Passenger name is required"

    if _blank(passport):
        errors[f"{prefix}passport"] = "Passport number is required"
    elif len(str(passport).strip()) < MIN_PASSPORT_LENGTH:
        errors[f"{prefix}passport"] = f"Passport number must be at least {MIN_PASSPORT_LENGTH} characters"

    if _blank(mobile):
        errors[f"{prefix}mobile"] = "Mobile number is required"
    elif not MOBILE_PATTERN.match(str(mobile).strip()):
        errors[f"{prefix}mobile"] = "Enter a valid mobile number (01XXXXXXXXX)"

    email = passenger.get("email")
    if not _blank(email) and not _valid_email(email):
        errors[f"{prefix}email"] = "Enter a valid email address"

    return errors


def validate_passengers(passengers: Iterable[Mapping[str, Any]]) -> dict[str, str]:
    passengers = list(passengers)
    errors: dict[str, str] = {}
    if not passengers:
        errors["passengers"] = "At least one passenger is required"
        return errors
    if len(passengers) > settings.MAX_PASSENGERS:
        errors["passengers"] = f"A booking can hold at most {settings.MAX_PASSENGERS} passengers"
    for index, passenger in enumerate(passengers):
        errors.update(validate_passenger(passenger, prefix=f"passengers.{index}."))
    return errors


def validate_agent_details(agent: Mapping[str, Any]) -> dict[str, str]:
    errors: dict[str, str] = {}
    for field, label in (("name", "Agent name"), ("id", "Agent ID"), ("contact", "Agent contact"), ("email", "Agent email")):
        if _blank(agent.get(field)):
            errors[f"agent.{field}"] = f"{label} is required"
    email = agent.get("email")
    if "agent.email" not in errors and not _valid_email(email):
        errors["agent.email"] = "Enter a valid email address"
    return errors


def validate_pax_count(pax_count: Any) -> dict[str, str]:
    if isinstance(pax_count, bool) or not isinstance(pax_count, int):
        return {"pax_count": "Passenger count must be a whole number"}
    if not 1 <= pax_count <= settings.MAX_PASSENGERS:
        return {"pax_count": f"Passenger count must be between 1 and {settings.MAX_PASSENGERS}"}
    return {}


def validate_pricing(
    selling_price: Any,
    pax_count: Any,
    discount_percent: Any,
    floor_price: Any,
) -> dict[str, str]:
    errors: dict[str, str] = {}
    price = _as_decimal(selling_price)
    floor = _as_decimal(floor_price)
    discount = _as_decimal(discount_percent)

    if price is None or price <= 0:
        errors["selling_price"] = "Selling price must be a positive amount"
    elif floor is not None and price < floor:
        errors["selling_price"] = f"Selling price cannot be below the minimum of {floor:,.0f}"

    errors.update(validate_pax_count(pax_count))

    if discount is None:
        errors["discount_percent"] = "Discount must be a number"
    elif discount < 0 or discount > 100:
        errors["discount_percent"] = "Discount must be between 0 and 100 percent"

    return errors


def validate_payment(payment: Mapping[str, Any], total_amount: Any) -> dict[str, str]:
    errors: dict[str, str] = {}
    method = payment.get("payment_method")
    if _blank(method):
        errors["payment.payment_method"] = "Payment method is required"
    elif method not in PAYMENT_METHODS:
        errors["payment.payment_method"] = f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}"

    paid = _as_decimal(payment.get("paid_amount", 0))
    total = _as_decimal(total_amount)
    if paid is None or paid < 0:
        errors["payment.paid_amount"] = "Paid amount must be zero or more"
    elif total is not None and paid > total:
        errors["payment.paid_amount"] = "Paid amount cannot exceed the booking total"
    return errors
