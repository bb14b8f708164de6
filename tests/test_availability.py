"""
Tests for the half-open stay overlap rule and room availability queries.
"""

from datetime import timedelta

import pytest

from hotel_booking_platform.models.room import Room, RoomStatus
from hotel_booking_platform.services.availability_service import AvailabilityService, ranges_overlap
from hotel_booking_platform.services.booking_service import BookingService
from hotel_booking_platform.utils.exceptions import ValidationError

from .conftest import NOW

CHECK_IN = NOW + timedelta(hours=8)
CHECK_OUT = CHECK_IN + timedelta(days=2)


def numbers(rooms):
    return [room.room_number for room in rooms]


class TestRangesOverlap:
    def test_abutting_stays_do_not_overlap(self):
        assert not ranges_overlap(CHECK_IN, CHECK_OUT, CHECK_OUT, CHECK_OUT + timedelta(days=1))
        assert not ranges_overlap(CHECK_OUT, CHECK_OUT + timedelta(days=1), CHECK_IN, CHECK_OUT)

    def test_partial_overlap(self):
        assert ranges_overlap(CHECK_IN, CHECK_OUT, CHECK_IN + timedelta(days=1), CHECK_OUT + timedelta(days=1))

    def test_containment_both_ways(self):
        inner_start, inner_end = CHECK_IN + timedelta(hours=2), CHECK_IN + timedelta(hours=20)
        assert ranges_overlap(CHECK_IN, CHECK_OUT, inner_start, inner_end)
        assert ranges_overlap(inner_start, inner_end, CHECK_IN, CHECK_OUT)

    def test_identical_ranges(self):
        assert ranges_overlap(CHECK_IN, CHECK_OUT, CHECK_IN, CHECK_OUT)


async def test_booked_room_is_hidden_for_overlapping_stay(session, rooms, make_booking):
    await make_booking([rooms[0]])

    available = await AvailabilityService(session).find_available_rooms(
        CHECK_IN + timedelta(days=1), CHECK_OUT + timedelta(days=1)
    )

    assert numbers(available) == ["102", "103"]


async def test_stay_starting_at_checkout_is_available(session, rooms, make_booking):
    await make_booking([rooms[0]])

    available = await AvailabilityService(session).find_available_rooms(
        CHECK_OUT, CHECK_OUT + timedelta(days=2)
    )

    assert "101" in numbers(available)


async def test_stay_contained_in_booking_is_blocked(session, rooms, make_booking):
    await make_booking([rooms[0]], nights=5)

    available = await AvailabilityService(session).find_available_rooms(
        CHECK_IN + timedelta(days=1), CHECK_IN + timedelta(days=2)
    )

    assert "101" not in numbers(available)


async def test_cancelling_frees_the_room(session, rooms, make_booking):
    booking = await make_booking([rooms[0]])
    service = AvailabilityService(session)

    assert "101" not in numbers(await service.find_available_rooms(CHECK_IN, CHECK_OUT))

    await BookingService(session).cancel_booking(booking.id, reason="Plans changed", now=NOW)

    assert "101" in numbers(await service.find_available_rooms(CHECK_IN, CHECK_OUT))


async def test_repeated_queries_agree(session, rooms, make_booking):
    await make_booking([rooms[1]])
    service = AvailabilityService(session)

    first = numbers(await service.find_available_rooms(CHECK_IN, CHECK_OUT))
    second = numbers(await service.find_available_rooms(CHECK_IN, CHECK_OUT))

    assert first == second == ["101", "103"]


async def test_rooms_out_of_service_are_not_offered(session, rooms):
    room = await session.get(Room, rooms[2].id)
    room.status = RoomStatus.MAINTENANCE
    await session.commit()

    available = await AvailabilityService(session).find_available_rooms(CHECK_IN, CHECK_OUT)

    assert numbers(available) == ["101", "102"]


async def test_room_type_filter(session, rooms, room_type):
    available = await AvailabilityService(session).find_available_rooms(
        CHECK_IN, CHECK_OUT, room_type_id=room_type.id
    )
    assert len(available) == 3


async def test_checkout_must_follow_checkin(session, rooms):
    with pytest.raises(ValidationError):
        await AvailabilityService(session).find_available_rooms(CHECK_OUT, CHECK_IN)


async def test_booking_does_not_conflict_with_itself(session, rooms, make_booking):
    booking = await make_booking([rooms[0]])
    service = AvailabilityService(session)

    assert await service.has_conflict(rooms[0].id, CHECK_IN, CHECK_OUT)
    assert not await service.has_conflict(rooms[0].id, CHECK_IN, CHECK_OUT, exclude_booking_id=booking.id)
