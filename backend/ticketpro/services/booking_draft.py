"""
Booking wizard state.

A BookingDraft is an immutable value: every with_* call returns a new draft,
and advance() refuses to move past a step whose validators report errors.
Nothing is persisted until a complete draft is handed to
booking_service.create_booking.
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from ticketpro.core.errors import ValidationFailed
from ticketpro.services.pricing import PriceBreakdown, calculate_price
from ticketpro.services.validation import (
    validate_agent_details,
    validate_passengers,
    validate_payment,
    validate_pricing,
)


class DraftStep(str, Enum):
    PASSENGERS = "passengers"
    PRICING = "pricing"
    PAYMENT = "payment"
    READY = "ready"


STEP_ORDER = (DraftStep.PASSENGERS, DraftStep.PRICING, DraftStep.PAYMENT, DraftStep.READY)


@dataclass(frozen=True)
class BookingDraft:
    ticket_id: int
    floor_price: Decimal
    step: DraftStep = DraftStep.PASSENGERS
    agent: Mapping[str, Any] = field(default_factory=dict)
    passengers: tuple = ()
    selling_price: Optional[Decimal] = None
    discount_percent: Decimal = Decimal("0")
    payment: Mapping[str, Any] = field(default_factory=dict)
    comments: Optional[str] = None

    @classmethod
    def start(cls, ticket_id: int, floor_price: Any) -> "BookingDraft":
        floor = Decimal(str(floor_price))
        return cls(ticket_id=ticket_id, floor_price=floor, selling_price=floor)

    # -- edits ---------------------------------------------------------------

    def with_agent(self, **agent: Any) -> "BookingDraft":
        return replace(self, agent={**self.agent, **agent})

    def with_passengers(self, passengers: Sequence[Mapping[str, Any]]) -> "BookingDraft":
        return replace(self, passengers=tuple(dict(p) for p in passengers))

    def with_pricing(self, selling_price: Any = None, discount_percent: Any = None) -> "BookingDraft":
        return replace(
            self,
            selling_price=self.selling_price if selling_price is None else Decimal(str(selling_price)),
            discount_percent=self.discount_percent if discount_percent is None else Decimal(str(discount_percent)),
        )

    def with_payment(self, **payment: Any) -> "BookingDraft":
        return replace(self, payment={**self.payment, **payment})

    def with_comments(self, comments: Optional[str]) -> "BookingDraft":
        return replace(self, comments=comments)

    # -- derived -------------------------------------------------------------

    @property
    def pax_count(self) -> int:
        return len(self.passengers)

    @property
    def lead_passenger(self) -> Mapping[str, Any]:
        return self.passengers[0] if self.passengers else {}

    def price(self) -> PriceBreakdown:
        return calculate_price(self.selling_price, self.pax_count, self.discount_percent, self.floor_price)

    def step_errors(self, step: Optional[DraftStep] = None) -> dict[str, str]:
        step = step or self.step
        if step == DraftStep.PASSENGERS:
            errors = validate_passengers(self.passengers)
            if self.agent:
                errors.update(validate_agent_details(self.agent))
            return errors
        if step == DraftStep.PRICING:
            return validate_pricing(self.selling_price, self.pax_count, self.discount_percent, self.floor_price)
        if step == DraftStep.PAYMENT:
            pricing_errors = self.step_errors(DraftStep.PRICING)
            total = None if pricing_errors else self.price().total
            return validate_payment(self.payment, total)
        return {}

    def errors(self) -> dict[str, str]:
        """Errors for every step up to and including the current one."""
        collected: dict[str, str] = {}
        for step in STEP_ORDER[: STEP_ORDER.index(self.step) + 1]:
            collected.update(self.step_errors(step))
        return collected

    def can_advance(self) -> bool:
        return self.step != DraftStep.READY and not self.step_errors()

    # -- navigation ----------------------------------------------------------

    def advance(self) -> "BookingDraft":
        if self.step == DraftStep.READY:
            return self
        errors = self.step_errors()
        if errors:
            raise ValidationFailed(errors)
        return replace(self, step=STEP_ORDER[STEP_ORDER.index(self.step) + 1])

    def back(self) -> "BookingDraft":
        index = STEP_ORDER.index(self.step)
        return replace(self, step=STEP_ORDER[max(index - 1, 0)])

    def complete(self) -> "BookingDraft":
        """Advance through every remaining step, failing on the first invalid one."""
        draft = self
        while draft.step != DraftStep.READY:
            draft = draft.advance()
        return draft

    @property
    def is_ready(self) -> bool:
        return self.step == DraftStep.READY
