"""
Role capability table and the single check every protected handler uses.
"""

from enum import Enum
from typing import Dict, FrozenSet, Iterable

from ..models.user import User, UserRole
from .exceptions import AuthorizationError


class Capability(str, Enum):
    """Actions a staff role may be granted."""

    BOOKINGS_READ = "bookings:read"
    BOOKINGS_WRITE = "bookings:write"
    PAYMENTS_READ = "payments:read"
    ROOMS_READ = "rooms:read"
    ROOMS_UPDATE = "rooms:update"
    ROOMS_CREATE = "rooms:create"
    CUSTOMERS_READ = "customers:read"
    USERS_READ = "users:read"
    USERS_MANAGE = "users:manage"
    USERS_APPROVE = "users:approve"
    DASHBOARD_READ = "dashboard:read"
    ACTIVITY_READ = "activity:read"


_OPERATIONS: FrozenSet[Capability] = frozenset({
    Capability.BOOKINGS_READ,
    Capability.BOOKINGS_WRITE,
    Capability.PAYMENTS_READ,
    Capability.ROOMS_READ,
    Capability.ROOMS_UPDATE,
    Capability.CUSTOMERS_READ,
})

ROLE_CAPABILITIES: Dict[UserRole, FrozenSet[Capability]] = {
    UserRole.ADMIN: frozenset(Capability),
    UserRole.MANAGER: _OPERATIONS | {Capability.ROOMS_CREATE},
    UserRole.STAFF: _OPERATIONS,
}


def has_capability(role: UserRole, capability: Capability) -> bool:
    """Check whether ``role`` is granted ``capability``."""
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


def check_capabilities(user: User, required: Iterable[Capability]) -> None:
    """
    Ensure a user holds every capability in ``required``.

    Args:
        user: The authenticated user
        required: Capabilities the operation needs

    Raises:
        AuthorizationError: If any capability is missing
    """
    for capability in required:
        if not has_capability(user.role, capability):
            raise AuthorizationError(
                f"Insufficient permissions: {user.role.value} cannot perform {capability.value}",
                required_permission=capability.value,
            )
