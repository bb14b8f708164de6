"""
Room availability over half-open date ranges.

A room is taken for ``[check_in, check_out)`` when any of its reservation rows
belongs to a PENDING, CONFIRMED or CHECKED_IN booking whose own range
intersects it: ``existing_start < query_end AND query_start < existing_end``.
Stays that merely touch (one ends the day the other starts) do not clash.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Set
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.booking import ACTIVE_BOOKING_STATUSES, Booking, BookingRoom
from ..models.room import Room, RoomStatus
from ..utils.clock import ensure_utc
from ..utils.exceptions import ValidationError

logger = logging.getLogger(__name__)

# Rooms offered for new stays; cleaning, occupied and maintenance rooms are not
BOOKABLE_ROOM_STATUSES = (RoomStatus.AVAILABLE, RoomStatus.RESERVED)


def ranges_overlap(
    start_a: datetime,
    end_a: datetime,
    start_b: datetime,
    end_b: datetime,
) -> bool:
    """General intersection test for two half-open intervals."""
    return ensure_utc(start_a) < ensure_utc(end_b) and ensure_utc(start_b) < ensure_utc(end_a)


class AvailabilityService:
    """Answers which rooms are free for a stay."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _reserved_room_ids(
        self,
        check_in: datetime,
        check_out: datetime,
        exclude_booking_id: Optional[UUID] = None,
    ) -> Select:
        query = (
            select(BookingRoom.room_id)
            .join(Booking, Booking.id == BookingRoom.booking_id)
            .where(
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
                Booking.check_in_date < check_out,
                Booking.check_out_date > check_in,
            )
        )
        if exclude_booking_id is not None:
            query = query.where(Booking.id != exclude_booking_id)
        return query

    async def find_available_rooms(
        self,
        check_in: datetime,
        check_out: datetime,
        room_type_id: Optional[UUID] = None,
    ) -> List[Room]:
        """
        List bookable rooms with no active reservation intersecting the stay.

        Args:
            check_in: Start of the stay
            check_out: End of the stay (exclusive)
            room_type_id: Optional room type filter

        Returns:
            Rooms ordered by room number

        Raises:
            ValidationError: If check_out is not after check_in
        """
        check_in, check_out = ensure_utc(check_in), ensure_utc(check_out)
        if check_out <= check_in:
            raise ValidationError(
                "Check-out date must be after check-in date",
                field_errors={"check_out": ["must be after check-in"]},
            )

        query = (
            select(Room)
            .where(
                Room.is_active.is_(True),
                Room.status.in_(BOOKABLE_ROOM_STATUSES),
                Room.id.not_in(self._reserved_room_ids(check_in, check_out)),
            )
            .order_by(Room.room_number)
        )
        if room_type_id is not None:
            query = query.where(Room.room_type_id == room_type_id)

        result = await self.session.execute(query)
        rooms = list(result.scalars().all())
        logger.debug(f"{len(rooms)} rooms available from {check_in} to {check_out}")
        return rooms

    async def has_conflict(
        self,
        room_id: UUID,
        check_in: datetime,
        check_out: datetime,
        exclude_booking_id: Optional[UUID] = None,
    ) -> bool:
        """
        Check whether a room is already held for any part of a stay.

        ``exclude_booking_id`` keeps a booking from clashing with its own
        reservation rows when its dates are edited.
        """
        query = (
            self._reserved_room_ids(ensure_utc(check_in), ensure_utc(check_out), exclude_booking_id)
            .where(BookingRoom.room_id == room_id)
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.first() is not None

    async def conflicting_room_ids(
        self,
        room_ids: Iterable[UUID],
        check_in: datetime,
        check_out: datetime,
        exclude_booking_id: Optional[UUID] = None,
    ) -> Set[UUID]:
        """Subset of ``room_ids`` already held for part of the stay."""
        room_ids = list(room_ids)
        if not room_ids:
            return set()

        query = (
            self._reserved_room_ids(ensure_utc(check_in), ensure_utc(check_out), exclude_booking_id)
            .where(BookingRoom.room_id.in_(room_ids))
            .distinct()
        )
        result = await self.session.execute(query)
        return set(result.scalars().all())
