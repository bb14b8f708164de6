"""
Tests for booking creation and the check-in, check-out and cancel transitions.
"""

import re
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select, update

from hotel_booking_platform.models.booking import Booking, BookingStatus
from hotel_booking_platform.models.payment import PaymentMethod
from hotel_booking_platform.models.room import RoomStatus
from hotel_booking_platform.models.user import UserRole
from hotel_booking_platform.schemas.booking import BookingUpdateRequest, GuestEditRequest, PriceCheckRequest
from hotel_booking_platform.services.availability_service import AvailabilityService
from hotel_booking_platform.services.booking_service import BookingService, commit_booking_changes
from hotel_booking_platform.services.payment_service import PaymentService
from hotel_booking_platform.utils.exceptions import (
    AuthorizationError,
    BookingStateError,
    OptimisticLockError,
    OutstandingBalanceError,
    OverpaymentError,
    RoomUnavailableError,
    ValidationError,
)

from .conftest import NOW


def room_statuses(booking):
    return [room.status for room in booking.room_list]


async def pay(in_session, booking_id, amount, method=PaymentMethod.CASH):
    return await in_session(
        lambda s: PaymentService(s).apply_payment(booking_id, Decimal(amount), method, now=NOW)
    )


async def reload(in_session, booking_id):
    return await in_session(lambda s: BookingService(s).get_booking(booking_id))


class TestCreateBooking:
    async def test_new_booking_is_pending_and_priced(self, rooms, make_booking):
        booking = await make_booking([rooms[0]])

        assert booking.status == BookingStatus.PENDING
        assert booking.total_amount == Decimal("6000.00")
        assert booking.paid_amount == Decimal("0.00")
        assert booking.currency == "KES"
        assert re.fullmatch(r"HHB-20300310-[A-Z0-9]{4}", booking.booking_number)
        assert booking.rooms[0].rate_per_night == Decimal("3000.00")
        assert booking.rooms[0].number_of_nights == 2
        # Rooms keep their status until the guest arrives
        assert room_statuses(booking) == [RoomStatus.AVAILABLE]

    async def test_total_covers_every_room(self, rooms, make_booking):
        booking = await make_booking(rooms[:2], number_of_adults=2, guest_country="France")

        assert booking.total_amount == Decimal("180.00")
        assert booking.currency == "USD"
        assert len(booking.rooms) == 2

    async def test_check_in_in_the_past_is_rejected(self, rooms, make_booking):
        with pytest.raises(ValidationError):
            await make_booking([rooms[0]], check_in=NOW - timedelta(days=1))

    async def test_stay_longer_than_maximum_is_rejected(self, rooms, make_booking):
        with pytest.raises(ValidationError):
            await make_booking([rooms[0]], nights=31)

    async def test_guests_beyond_capacity_are_rejected(self, rooms, make_booking):
        with pytest.raises(ValidationError):
            await make_booking([rooms[0]], number_of_adults=2, number_of_children=1)

    async def test_room_taken_for_overlapping_dates(self, rooms, make_booking):
        await make_booking([rooms[0]])

        with pytest.raises(RoomUnavailableError):
            await make_booking([rooms[0]], check_in=NOW + timedelta(days=1))

    async def test_anonymous_guest_cannot_record_payment(self, rooms, make_booking):
        with pytest.raises(AuthorizationError):
            await make_booking([rooms[0]], paid_amount=Decimal("1000"))

    async def test_staff_full_initial_payment_confirms(self, rooms, users, make_booking):
        booking = await make_booking(
            [rooms[0]],
            created_by=users[UserRole.STAFF],
            paid_amount=Decimal("6000"),
            payment_method=PaymentMethod.CASH,
        )

        assert booking.status == BookingStatus.CONFIRMED
        assert booking.balance == Decimal("0.00")
        assert len(booking.payments) == 1

    async def test_initial_overpayment_creates_nothing(self, rooms, users, make_booking, in_session):
        with pytest.raises(OverpaymentError):
            await make_booking([rooms[0]], created_by=users[UserRole.STAFF], paid_amount=Decimal("6000.01"))

        count = await in_session(lambda s: s.scalar(select(func.count()).select_from(Booking)))
        assert count == 0


class TestCheckInAndOut:
    async def test_fully_paid_stay_checks_out(self, rooms, make_booking, in_session):
        booking = await make_booking([rooms[0]])
        await pay(in_session, booking.id, "6000")

        checked_in = await in_session(lambda s: BookingService(s).check_in(booking.id, now=NOW))
        assert checked_in.status == BookingStatus.CHECKED_IN
        assert room_statuses(checked_in) == [RoomStatus.OCCUPIED]

        checked_out = await in_session(lambda s: BookingService(s).check_out(booking.id, now=NOW))
        assert checked_out.status == BookingStatus.CHECKED_OUT
        assert checked_out.actual_check_out is not None
        assert room_statuses(checked_out) == [RoomStatus.CLEANING]

    async def test_outstanding_balance_blocks_checkout(self, rooms, make_booking, in_session):
        booking = await make_booking([rooms[0]])
        await pay(in_session, booking.id, "4000")

        async def arrive(session):
            stay = await BookingService(session).get_booking(booking.id)
            stay.status = BookingStatus.CHECKED_IN
            for room in stay.room_list:
                room.status = RoomStatus.OCCUPIED

        await in_session(arrive)
        before = await reload(in_session, booking.id)

        with pytest.raises(OutstandingBalanceError) as exc_info:
            await in_session(lambda s: BookingService(s).check_out(booking.id, now=NOW))

        assert exc_info.value.details["balance"] == 2000.0
        after = await reload(in_session, booking.id)
        assert after.status == BookingStatus.CHECKED_IN
        assert after.version == before.version
        assert after.actual_check_out is None
        assert room_statuses(after) == [RoomStatus.OCCUPIED]

    async def test_pending_booking_cannot_check_in(self, rooms, make_booking, in_session):
        booking = await make_booking([rooms[0]])

        with pytest.raises(BookingStateError):
            await in_session(lambda s: BookingService(s).check_in(booking.id, now=NOW))

    async def test_check_in_waits_for_arrival_day(self, rooms, make_booking, in_session):
        booking = await make_booking([rooms[0]], check_in=NOW + timedelta(days=3))
        await pay(in_session, booking.id, "6000")

        with pytest.raises(BookingStateError):
            await in_session(lambda s: BookingService(s).check_in(booking.id, now=NOW))

        arrived = await in_session(
            lambda s: BookingService(s).check_in(booking.id, now=NOW + timedelta(days=3))
        )
        assert arrived.status == BookingStatus.CHECKED_IN

    async def test_check_out_requires_check_in(self, rooms, make_booking, in_session):
        booking = await make_booking([rooms[0]])
        await pay(in_session, booking.id, "6000")

        with pytest.raises(BookingStateError):
            await in_session(lambda s: BookingService(s).check_out(booking.id, now=NOW))

    async def test_confirm_requires_full_payment(self, rooms, make_booking, in_session):
        booking = await make_booking([rooms[0]])
        await pay(in_session, booking.id, "1000")

        with pytest.raises(BookingStateError):
            await in_session(lambda s: BookingService(s).confirm_booking(booking.id))


class TestCancel:
    async def test_cancel_releases_reserved_rooms(self, rooms, make_booking, in_session):
        booking = await make_booking([rooms[0]])

        async def hold(session):
            stay = await BookingService(session).get_booking(booking.id)
            stay.room_list[0].status = RoomStatus.RESERVED

        await in_session(hold)
        cancelled = await in_session(
            lambda s: BookingService(s).cancel_booking(booking.id, reason="Flight cancelled", now=NOW)
        )

        assert cancelled.status == BookingStatus.CANCELLED
        assert cancelled.cancelled_at is not None
        assert room_statuses(cancelled) == [RoomStatus.AVAILABLE]

    async def test_cancel_leaves_cleaning_rooms_alone(self, rooms, make_booking, in_session):
        booking = await make_booking([rooms[0]])

        async def housekeeping(session):
            stay = await BookingService(session).get_booking(booking.id)
            stay.room_list[0].status = RoomStatus.CLEANING

        await in_session(housekeeping)
        cancelled = await in_session(lambda s: BookingService(s).cancel_booking(booking.id, now=NOW))

        assert room_statuses(cancelled) == [RoomStatus.CLEANING]

    async def test_cannot_cancel_twice(self, rooms, make_booking, in_session):
        booking = await make_booking([rooms[0]])
        await in_session(lambda s: BookingService(s).cancel_booking(booking.id, now=NOW))

        with pytest.raises(BookingStateError, match="already cancelled"):
            await in_session(lambda s: BookingService(s).cancel_booking(booking.id, now=NOW))

    async def test_checked_in_booking_cannot_be_cancelled(self, rooms, make_booking, in_session):
        booking = await make_booking([rooms[0]])
        await pay(in_session, booking.id, "6000")
        await in_session(lambda s: BookingService(s).check_in(booking.id, now=NOW))

        with pytest.raises(BookingStateError):
            await in_session(lambda s: BookingService(s).cancel_booking(booking.id, now=NOW))


class TestEdits:
    async def test_guest_edit_rejects_dates_taken_by_another_booking(self, rooms, make_booking, in_session):
        mine = await make_booking([rooms[0]])
        await make_booking([rooms[0]], check_in=NOW + timedelta(days=4), guest_email="other@example.com")

        edit = GuestEditRequest(
            check_in_date=NOW + timedelta(days=2),
            check_out_date=NOW + timedelta(days=5),
        )
        with pytest.raises(RoomUnavailableError):
            await in_session(lambda s: BookingService(s).guest_edit(mine.id, edit, now=NOW))

    async def test_guest_edit_may_overlap_its_own_stay(self, rooms, make_booking, in_session):
        booking = await make_booking([rooms[0]])
        new_check_in = booking.check_in_date + timedelta(days=1)

        edit = GuestEditRequest(
            check_in_date=new_check_in,
            check_out_date=new_check_in + timedelta(days=2),
            special_requests="Late arrival",
        )
        edited = await in_session(lambda s: BookingService(s).guest_edit(booking.id, edit, now=NOW))

        assert edited.special_requests == "Late arrival"
        assert edited.total_amount == Decimal("6000.00")
        assert edited.version == booking.version + 1

    async def test_guest_edit_locks_rooms_before_checking_new_dates(
        self, rooms, make_booking, in_session, monkeypatch
    ):
        booking = await make_booking([rooms[0]])
        calls = []
        lock_rooms = BookingService._lock_rooms
        has_conflict = AvailabilityService.has_conflict

        async def recording_lock(service, room_ids):
            calls.append(("lock", list(room_ids)))
            return await lock_rooms(service, room_ids)

        async def recording_check(service, room_id, *args, **kwargs):
            calls.append(("check", room_id))
            return await has_conflict(service, room_id, *args, **kwargs)

        monkeypatch.setattr(BookingService, "_lock_rooms", recording_lock)
        monkeypatch.setattr(AvailabilityService, "has_conflict", recording_check)

        edit = GuestEditRequest(
            check_in_date=booking.check_in_date + timedelta(days=1),
            check_out_date=booking.check_out_date + timedelta(days=1),
        )
        await in_session(lambda s: BookingService(s).guest_edit(booking.id, edit, now=NOW))

        assert calls == [("lock", [rooms[0].id]), ("check", rooms[0].id)]

    async def test_country_change_keeps_the_booked_currency(self, rooms, users, make_booking, in_session):
        booking = await make_booking([rooms[0]])
        change = BookingUpdateRequest(guest_country="France")

        edited = await in_session(
            lambda s: BookingService(s).update_booking(booking.id, change, users[UserRole.STAFF])
        )

        assert edited.guest_country == "France"
        assert edited.currency == "KES"
        assert edited.total_amount == Decimal("6000.00")

        await pay(in_session, booking.id, "1000")
        with pytest.raises(BookingStateError) as exc_info:
            await in_session(lambda s: BookingService(s).confirm_booking(booking.id))
        assert "KES 5000.00" in exc_info.value.message

    async def test_price_check_quotes_without_writing(self, rooms, make_booking, in_session):
        booking = await make_booking([rooms[0]])
        request = PriceCheckRequest(
            check_in_date=NOW + timedelta(hours=8),
            check_out_date=NOW + timedelta(days=3, hours=8),
            number_of_adults=2,
        )

        quote = await in_session(lambda s: BookingService(s).price_check(booking.id, request))

        assert quote["new_total"] == Decimal("10500.00")
        assert quote["difference"] == Decimal("4500.00")
        assert quote["currency"] == "KES"
        assert (await reload(in_session, booking.id)).total_amount == Decimal("6000.00")

    async def test_price_check_without_country_uses_local_rates(self, rooms, make_booking, in_session):
        booking = await make_booking([rooms[0]], guest_country=None)
        assert booking.total_amount == Decimal("80.00")

        request = PriceCheckRequest(
            check_in_date=booking.check_in_date,
            check_out_date=booking.check_out_date,
            number_of_adults=1,
        )
        quote = await in_session(lambda s: BookingService(s).price_check(booking.id, request))

        assert quote["is_east_african"] is True
        assert quote["new_total"] == Decimal("6000.00")

    async def test_payment_method_only_changes_while_pending(self, rooms, make_booking, in_session):
        booking = await make_booking([rooms[0]])

        updated = await in_session(
            lambda s: BookingService(s).update_payment_method(booking.id, PaymentMethod.MPESA)
        )
        assert updated.payment_method == PaymentMethod.MPESA

        await pay(in_session, booking.id, "6000")
        with pytest.raises(BookingStateError):
            await in_session(
                lambda s: BookingService(s).update_payment_method(booking.id, PaymentMethod.CASH)
            )


async def test_stale_booking_version_is_rejected(session, rooms, make_booking):
    booking = await make_booking([rooms[0]])
    stale = await BookingService(session).get_booking(booking.id)

    # Another writer commits a change behind this session's back
    await session.execute(
        update(Booking)
        .where(Booking.id == booking.id)
        .values(version=Booking.version + 1)
        .execution_options(synchronize_session=False)
    )

    stale.special_requests = "Extra pillows"
    with pytest.raises(OptimisticLockError):
        await commit_booking_changes(session, booking.id)
