"""
Pricing arithmetic and field validators. Pure functions, no database.
"""

from decimal import Decimal

import pytest

from ticketpro.core.errors import ValidationFailed
from ticketpro.services.pricing import (
    calculate_commission, calculate_price, payment_status_for, profit_margin,
)
from ticketpro.services.validation import (
    validate_agent_details, validate_passenger, validate_passengers, validate_payment, validate_pricing,
)


def test_total_is_price_times_passengers():
    price = calculate_price(85000, 2, 0, 85000)
    assert price.total == Decimal("170000")
    assert price.discount_amount == Decimal("0")


def test_discount_rounds_half_up_to_whole_units():
    # 1001 * 3 = 3003, 2.5% off = 2927.925 -> 2928
    price = calculate_price("1001", 3, "2.5", "1000")
    assert price.total == Decimal("2928")
    assert price.subtotal == Decimal("3003")
    assert price.discount_amount == Decimal("75")


def test_full_discount_is_free():
    assert calculate_price(50000, 1, 100, 50000).total == Decimal("0")


def test_price_below_floor_rejected():
    with pytest.raises(ValidationFailed) as exc:
        calculate_price(84000, 1, 0, 85000)
    assert "selling_price" in exc.value.errors


@pytest.mark.parametrize("pax_count", [0, 10, -1])
def test_passenger_count_out_of_range_rejected(pax_count):
    with pytest.raises(ValidationFailed) as exc:
        calculate_price(85000, pax_count, 0, 85000)
    assert "pax_count" in exc.value.errors


@pytest.mark.parametrize("discount", ["-1", "100.5", "abc", "NaN"])
def test_bad_discount_rejected(discount):
    errors = validate_pricing(85000, 1, discount, 85000)
    assert "discount_percent" in errors


def test_commission_is_percentage_of_total():
    assert calculate_commission(Decimal("170000"), Decimal("5")) == Decimal("8500.00")
    assert calculate_commission(Decimal("12345"), Decimal("7.5")) == Decimal("925.88")


def test_profit_margin():
    assert profit_margin(Decimal("170000"), Decimal("78000"), 2) == Decimal("14000")


@pytest.mark.parametrize("paid,expected", [("0", "pending"), ("1000", "partial"), ("170000", "full")])
def test_payment_status_derived_from_paid_amount(paid, expected):
    assert payment_status_for(Decimal(paid), Decimal("170000")) == expected


def test_valid_passenger_has_no_errors():
    assert validate_passenger({"name": "Rahim Uddin", "passport": "BX1234567", "mobile": "+8801712345678"}) == {}


def test_passenger_errors_keyed_by_field():
    errors = validate_passenger({"name": " ", "passport": "AB12", "mobile": "0171234"}, prefix="passengers.0.")
    assert set(errors) == {"passengers.0.name", "passengers.0.passport", "passengers.0.mobile"}


def test_mobile_must_be_local_operator_prefix():
    assert "mobile" in validate_passenger({"name": "A", "passport": "BX1234567", "mobile": "01212345678"})


def test_bad_optional_email_reported():
    errors = validate_passenger({"name": "A", "passport": "BX1234567", "mobile": "01712345678", "email": "nope"})
    assert errors == {"email": "Enter a valid email address"}


@pytest.mark.parametrize("email", ["rahim..uddin@mail.com", "rahim@mail..com", "rahim@-mail.com", "rahim uddin@mail.com"])
def test_malformed_email_rejected(email):
    errors = validate_passenger({"name": "A", "passport": "BX1234567", "mobile": "01712345678", "email": email})
    assert errors == {"email": "Enter a valid email address"}


def test_well_formed_email_accepted():
    passenger = {"name": "A", "passport": "BX1234567", "mobile": "01712345678", "email": "rahim.uddin@mail.com"}
    assert validate_passenger(passenger) == {}
    agent = {"name": "Karim", "id": "AG-1", "contact": "01712345678", "email": "rahim@mail..com"}
    assert validate_agent_details(agent) == {"agent.email": "Enter a valid email address"}


def test_at_least_one_passenger_required():
    assert "passengers" in validate_passengers([])


def test_validators_do_not_raise_on_garbage():
    assert validate_passenger({"name": 12, "passport": 12345678, "mobile": None})
    assert validate_payment({"paid_amount": "lots"}, "abc")


def test_agent_details_required():
    errors = validate_agent_details({"name": "Karim", "id": "", "contact": None})
    assert {"agent.id", "agent.contact", "agent.email"} <= set(errors)


def test_paid_amount_cannot_exceed_total():
    errors = validate_payment({"payment_method": "bkash", "paid_amount": "200000"}, Decimal("170000"))
    assert errors == {"payment.paid_amount": "Paid amount cannot exceed the booking total"}


def test_unknown_payment_method_rejected():
    assert "payment.payment_method" in validate_payment({"payment_method": "cheque"}, 100)


def test_validation_is_idempotent():
    passenger = {"name": "", "passport": "X", "mobile": "1"}
    assert validate_passenger(passenger) == validate_passenger(passenger)
    assert passenger == {"name": "", "passport": "X", "mobile": "1"}
