"""
Tests for the role capability table.
"""

import pytest

from hotel_booking_platform.models.user import User, UserRole
from hotel_booking_platform.utils.exceptions import AuthorizationError
from hotel_booking_platform.utils.permissions import Capability, check_capabilities, has_capability

DESK_WORK = [
    Capability.BOOKINGS_READ,
    Capability.BOOKINGS_WRITE,
    Capability.PAYMENTS_READ,
    Capability.ROOMS_READ,
    Capability.ROOMS_UPDATE,
    Capability.CUSTOMERS_READ,
]


def user_with(role: UserRole) -> User:
    return User(email=f"{role.value.lower()}@hotel-hippo.example.com", first_name="Test", last_name="User", role=role)


@pytest.mark.parametrize("role", list(UserRole))
@pytest.mark.parametrize("capability", DESK_WORK)
def test_every_role_does_desk_work(role, capability):
    assert has_capability(role, capability)


def test_admin_holds_everything():
    assert all(has_capability(UserRole.ADMIN, capability) for capability in Capability)


@pytest.mark.parametrize(
    "capability",
    [Capability.USERS_READ, Capability.USERS_MANAGE, Capability.USERS_APPROVE, Capability.DASHBOARD_READ],
)
def test_administration_is_admin_only(capability):
    assert not has_capability(UserRole.MANAGER, capability)
    assert not has_capability(UserRole.STAFF, capability)


def test_managers_add_rooms_staff_do_not():
    assert has_capability(UserRole.MANAGER, Capability.ROOMS_CREATE)
    assert not has_capability(UserRole.STAFF, Capability.ROOMS_CREATE)


def test_check_reports_the_missing_capability():
    with pytest.raises(AuthorizationError) as exc_info:
        check_capabilities(user_with(UserRole.STAFF), [Capability.BOOKINGS_READ, Capability.USERS_MANAGE])

    assert exc_info.value.details["required_permission"] == "users:manage"


def test_check_passes_when_all_held():
    check_capabilities(user_with(UserRole.MANAGER), [Capability.ROOMS_READ, Capability.ROOMS_CREATE])
