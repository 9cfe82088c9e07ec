"""
Role to capability mapping.

Field visibility (buying price, other agents' bookings) is decided where
queries and responses are built, from the capability set of the caller.
"""

import enum
from dataclasses import dataclass
from decimal import Decimal


class Role(str, enum.Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    AGENT = "agent"


class Capability(str, enum.Enum):
    VIEW_BUYING_PRICE = "view_buying_price"
    EDIT_PRICE = "edit_price"
    VIEW_ALL_BOOKINGS = "view_all_bookings"
    VIEW_REPORTS = "view_reports"
    MANAGE_INVENTORY = "manage_inventory"
    MANAGE_AGENTS = "manage_agents"
    RUN_OPERATIONS = "run_operations"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.ADMIN: frozenset(Capability),
    Role.MANAGER: frozenset({
        Capability.VIEW_BUYING_PRICE,
        Capability.EDIT_PRICE,
        Capability.VIEW_ALL_BOOKINGS,
        Capability.VIEW_REPORTS,
        Capability.MANAGE_INVENTORY,
    }),
    Role.AGENT: frozenset(),
}


def capabilities_for(role: str) -> frozenset[Capability]:
    try:
        return ROLE_CAPABILITIES[Role(role)]
    except ValueError:
        return frozenset()


def has_capability(role: str, capability: Capability) -> bool:
    return capability in capabilities_for(role)


@dataclass(frozen=True)
class Actor:
    """Snapshot of the authenticated user, detached from any session."""

    id: int
    email: str
    full_name: str
    role: str
    commission_rate: Decimal

    @property
    def capabilities(self) -> frozenset[Capability]:
        return capabilities_for(self.role)

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            role=user.role,
            commission_rate=Decimal(str(user.commission_rate)),
        )
