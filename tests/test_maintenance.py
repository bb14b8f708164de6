"""
Tests for the scheduled sweeps and the cron endpoints that trigger them.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from hotel_booking_platform.models.booking import BookingStatus
from hotel_booking_platform.models.payment import PaymentMethod
from hotel_booking_platform.models.room import RoomStatus
from hotel_booking_platform.services.booking_service import BookingService
from hotel_booking_platform.services.maintenance_service import MaintenanceService, run_sweep
from hotel_booking_platform.services.payment_service import PaymentService

from .conftest import NOW

NEXT_MORNING = NOW + timedelta(days=1)
CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}


async def reload(in_session, booking_id):
    return await in_session(lambda s: BookingService(s).get_booking(booking_id))


async def pay_in_full(in_session, booking):
    await in_session(
        lambda s: PaymentService(s).apply_payment(booking.id, booking.total_amount, PaymentMethod.CASH, now=NOW)
    )


async def set_state(in_session, booking_id, booking_status, room_status):
    async def update(session):
        booking = await BookingService(session).get_booking(booking_id)
        booking.status = booking_status
        for room in booking.room_list:
            room.status = room_status

    await in_session(update)


class TestCancelExpired:
    async def test_unconfirmed_booking_past_check_in_is_cancelled(self, db_manager, rooms, make_booking, in_session):
        pending = await make_booking([rooms[0]])
        confirmed = await make_booking([rooms[1]], guest_email="paid@example.com")
        await pay_in_full(in_session, confirmed)
        await set_state(in_session, pending.id, BookingStatus.PENDING, RoomStatus.RESERVED)

        report = await MaintenanceService(db_manager).cancel_expired_bookings(now=NEXT_MORNING)

        assert report.processed == 1
        assert report.failed == 0
        assert report.results[0].booking_number == pending.booking_number
        assert report.results[0].status == "CANCELLED"
        assert report.message == "Cancel expired bookings completed: 1 of 1 bookings cancelled"

        cancelled = await reload(in_session, pending.id)
        assert cancelled.status == BookingStatus.CANCELLED
        assert [room.status for room in cancelled.room_list] == [RoomStatus.AVAILABLE]

        untouched = await reload(in_session, confirmed.id)
        assert untouched.status == BookingStatus.CONFIRMED

    async def test_one_failing_booking_does_not_stop_the_sweep(
        self, db_manager, rooms, make_booking, in_session, monkeypatch
    ):
        broken = await make_booking([rooms[0]], check_in=NOW + timedelta(hours=2))
        healthy = await make_booking([rooms[1]], guest_email="second@example.com")
        cancel_booking = BookingService.cancel_booking

        async def cancel_unless_broken(service, booking_id, *args, **kwargs):
            if booking_id == broken.id:
                raise RuntimeError("database went away")
            return await cancel_booking(service, booking_id, *args, **kwargs)

        monkeypatch.setattr(BookingService, "cancel_booking", cancel_unless_broken)

        report = await MaintenanceService(db_manager).cancel_expired_bookings(now=NEXT_MORNING)

        assert report.total == 2
        assert report.processed == 1
        assert report.failed == 1
        first, second = report.results
        assert first.booking_number == broken.booking_number
        assert first.status == "FAILED"
        assert first.error == "database went away"
        assert second.booking_number == healthy.booking_number
        assert second.status == "CANCELLED"
        assert second.error is None

        assert (await reload(in_session, broken.id)).status == BookingStatus.PENDING
        assert (await reload(in_session, healthy.id)).status == BookingStatus.CANCELLED

    async def test_future_bookings_are_left_alone(self, db_manager, rooms, make_booking, in_session):
        booking = await make_booking([rooms[0]], check_in=NOW + timedelta(days=3))

        report = await MaintenanceService(db_manager).cancel_expired_bookings(now=NEXT_MORNING)

        assert report.total == 0
        assert (await reload(in_session, booking.id)).status == BookingStatus.PENDING


class TestAutoCheckout:
    async def test_due_stays_are_checked_out(self, db_manager, rooms, make_booking, in_session):
        due = await make_booking([rooms[0]])
        later = await make_booking([rooms[1]], nights=4, guest_email="later@example.com")
        for booking in (due, later):
            await pay_in_full(in_session, booking)
            await in_session(lambda s, b=booking: BookingService(s).check_in(b.id, now=NOW))

        # The morning after the first stay ends
        report = await run_sweep(db_manager, "auto_checkout", now=NOW + timedelta(days=3))

        assert report.processed == 1
        assert report.results[0].status == "CHECKED_OUT"

        checked_out = await reload(in_session, due.id)
        assert checked_out.status == BookingStatus.CHECKED_OUT
        assert [room.status for room in checked_out.room_list] == [RoomStatus.CLEANING]
        assert (await reload(in_session, later.id)).status == BookingStatus.CHECKED_IN

    async def test_outstanding_balance_does_not_block_the_sweep(self, db_manager, rooms, make_booking, in_session):
        booking = await make_booking([rooms[0]])
        await in_session(
            lambda s: PaymentService(s).apply_payment(booking.id, Decimal("1000"), PaymentMethod.CASH, now=NOW)
        )
        await set_state(in_session, booking.id, BookingStatus.CHECKED_IN, RoomStatus.OCCUPIED)

        report = await run_sweep(db_manager, "auto_checkout", now=NOW + timedelta(days=3))

        assert report.processed == 1
        after = await reload(in_session, booking.id)
        assert after.status == BookingStatus.CHECKED_OUT
        assert after.balance == Decimal("5000.00")

    async def test_unknown_sweep_name(self, db_manager):
        with pytest.raises(ValueError):
            await run_sweep(db_manager, "vacuum")


class TestCronEndpoints:
    @pytest.mark.parametrize("path", ["/api/v1/cron/auto-checkout", "/api/v1/cron/cancel-expired-bookings"])
    async def test_missing_secret_is_rejected(self, client, path):
        response = await client.get(path)

        assert response.status_code == 401
        assert response.json()["error"]["error_code"] == "UNAUTHORIZED"

    async def test_wrong_secret_is_rejected(self, client):
        response = await client.get(
            "/api/v1/cron/auto-checkout", headers={"Authorization": "Bearer not-the-secret"}
        )
        assert response.status_code == 401

    async def test_correct_secret_runs_the_sweep(self, client, rooms):
        response = await client.get("/api/v1/cron/cancel-expired-bookings", headers=CRON_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 0
        assert body["message"].startswith("Cancel expired bookings completed")
