"""
Booking price calculation.

total = selling_price * pax_count * (1 - discount / 100), rounded half-up to
whole currency units. All arithmetic is Decimal so totals match what the
invoice shows to the last taka.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

from ticketpro.core.errors import ValidationFailed
from ticketpro.services.validation import validate_pricing

Number = Union[int, float, str, Decimal]

WHOLE_UNIT = Decimal("1")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class PriceBreakdown:
    unit_price: Decimal
    pax_count: int
    discount_percent: Decimal
    subtotal: Decimal
    discount_amount: Decimal
    total: Decimal


def to_whole_units(amount: Decimal) -> Decimal:
    return amount.quantize(WHOLE_UNIT, rounding=ROUND_HALF_UP)


def calculate_price(
    selling_price: Number,
    pax_count: int,
    discount_percent: Number = 0,
    floor_price: Number = 0,
) -> PriceBreakdown:
    """Raises ValidationFailed if the price is under the floor or the inputs are out of range."""
    errors = validate_pricing(selling_price, pax_count, discount_percent, floor_price)
    if errors:
        raise ValidationFailed(errors)

    unit_price = Decimal(str(selling_price))
    discount = Decimal(str(discount_percent))
    subtotal = unit_price * pax_count
    total = to_whole_units(subtotal * (HUNDRED - discount) / HUNDRED)

    return PriceBreakdown(
        unit_price=unit_price,
        pax_count=pax_count,
        discount_percent=discount,
        subtotal=to_whole_units(subtotal),
        discount_amount=to_whole_units(subtotal) - total,
        total=total,
    )


def calculate_commission(total_amount: Number, commission_rate: Number) -> Decimal:
    """commission_rate is a percentage, e.g. 5 for 5%."""
    amount = Decimal(str(total_amount)) * Decimal(str(commission_rate)) / HUNDRED
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def profit_margin(total_amount: Number, buying_price: Number, pax_count: int) -> Decimal:
    return Decimal(str(total_amount)) - Decimal(str(buying_price)) * pax_count


def payment_status_for(paid_amount: Number, total_amount: Number) -> str:
    paid = Decimal(str(paid_amount))
    if paid <= 0:
        return "pending"
    if paid >= Decimal(str(total_amount)):
        return "full"
    return "partial"
