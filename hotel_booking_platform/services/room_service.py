"""
Room inventory: the room-type catalogue, physical rooms and priced availability.
"""

import logging
from collections import Counter
from datetime import datetime
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..cache import CacheKeyBuilder, RedisCache
from ..config import get_settings
from ..models.booking import Booking, BookingRoom, BookingStatus
from ..models.room import Room, RoomStatus, RoomType
from ..models.user import User
from ..schemas.room import (
    AvailabilityGroup,
    AvailabilityResponse,
    AvailableRoomListResponse,
    AvailableRoomResponse,
    CurrentBookingSummary,
    PriceTier,
    RoomCreateRequest,
    RoomQuote,
    RoomResponse,
    RoomStatusUpdateRequest,
    RoomTypePricing,
    RoomTypeResponse,
)
from ..utils.clock import ensure_utc
from ..utils.exceptions import ConflictError, RoomNotFoundError, RoomTypeNotFoundError
from .activity_service import ActivityService
from .availability_service import AvailabilityService
from .pricing_service import StayQuote, calculate_nights, currency_for, is_east_african, quote_stay

logger = logging.getLogger(__name__)


def serialize_room_type(room_type: RoomType) -> RoomTypeResponse:
    """Build the public view of a room type with its rate card."""
    return RoomTypeResponse(
        id=room_type.id,
        name=room_type.name,
        slug=room_type.slug,
        description=room_type.description,
        capacity=room_type.capacity,
        bed_type=room_type.bed_type,
        size=room_type.size,
        amenities=list(room_type.amenities or []),
        pricing=RoomTypePricing(
            east_african=PriceTier(single=room_type.single_price_ea, double=room_type.double_price_ea),
            international=PriceTier(single=room_type.single_price_intl, double=room_type.double_price_intl),
        ),
    )


def serialize_room(room: Room, current_booking: Optional[Booking] = None) -> RoomResponse:
    summary = None
    if current_booking is not None:
        summary = CurrentBookingSummary(
            id=current_booking.id,
            booking_number=current_booking.booking_number,
            guest_name=current_booking.guest_name,
            check_in_date=current_booking.check_in_date,
            check_out_date=current_booking.check_out_date,
        )
    return RoomResponse(
        id=room.id,
        room_number=room.room_number,
        floor=room.floor,
        status=room.status,
        is_active=room.is_active,
        notes=room.notes,
        room_type=serialize_room_type(room.room_type),
        current_booking=summary,
    )


def _quote_model(quote: StayQuote) -> RoomQuote:
    return RoomQuote(
        price_per_night=quote.price_per_night,
        nights=quote.nights,
        total_price=quote.total_price,
        currency=quote.currency,
    )


class RoomService:
    """Service class for room and room-type operations."""

    def __init__(self, session: AsyncSession, cache: Optional[RedisCache] = None):
        self.session = session
        self.cache = cache
        self.activity = ActivityService(session)
        self.availability = AvailabilityService(session)

    async def list_room_types(self) -> List[RoomTypeResponse]:
        """
        Get the room-type catalogue, cheapest first.

        Served from Redis when a fresh copy is cached.
        """
        cache_key = CacheKeyBuilder.room_types()
        if self.cache is not None:
            cached = await self.cache.get(cache_key)
            if cached:
                return [RoomTypeResponse.model_validate(item) for item in cached]

        result = await self.session.execute(
            select(RoomType).order_by(RoomType.single_price_ea, RoomType.name)
        )
        room_types = [serialize_room_type(room_type) for room_type in result.scalars().all()]

        if self.cache is not None:
            await self.cache.set(
                cache_key,
                [item.model_dump(mode="json") for item in room_types],
                ttl=get_settings().room_types_cache_ttl,
            )
        return room_types

    async def get_room_type(self, room_type_id: UUID) -> RoomType:
        room_type = await self.session.get(RoomType, room_type_id)
        if room_type is None:
            raise RoomTypeNotFoundError(str(room_type_id))
        return room_type

    async def get_room(self, room_id: UUID) -> Room:
        """
        Get a room by ID.

        Raises:
            RoomNotFoundError: If the room does not exist
        """
        result = await self.session.execute(select(Room).where(Room.id == room_id))
        room = result.scalar_one_or_none()
        if room is None:
            raise RoomNotFoundError(str(room_id))
        return room

    async def list_rooms(
        self,
        status: Optional[RoomStatus] = None,
        room_type_id: Optional[UUID] = None,
        floor: Optional[int] = None,
        include_current_booking: bool = False,
    ) -> Tuple[List[RoomResponse], Dict[str, int]]:
        """
        List rooms ordered by room number.

        Args:
            status: Housekeeping status filter
            room_type_id: Room type filter
            floor: Floor filter
            include_current_booking: Attach the checked-in booking occupying each room

        Returns:
            Tuple of (rooms, counts of the listed rooms by status)
        """
        query = select(Room).order_by(Room.room_number)
        if status is not None:
            query = query.where(Room.status == status)
        if room_type_id is not None:
            query = query.where(Room.room_type_id == room_type_id)
        if floor is not None:
            query = query.where(Room.floor == floor)

        rooms = list((await self.session.execute(query)).scalars().all())

        occupants: Dict[UUID, Booking] = {}
        if include_current_booking and rooms:
            occupants = await self._current_bookings([room.id for room in rooms])

        counts = Counter(room.status.value for room in rooms)
        return (
            [serialize_room(room, occupants.get(room.id)) for room in rooms],
            {room_status.value: counts.get(room_status.value, 0) for room_status in RoomStatus},
        )

    async def create_room(self, data: RoomCreateRequest, user: User) -> Room:
        """
        Add a physical room.

        Raises:
            RoomTypeNotFoundError: If the room type does not exist
            ConflictError: If the room number is taken
        """
        room_type = await self.get_room_type(data.room_type_id)

        existing = await self.session.execute(select(Room.id).where(Room.room_number == data.room_number))
        if existing.first() is not None:
            raise ConflictError(
                f"Room {data.room_number} already exists",
                details={"room_number": data.room_number},
            )

        room = Room(
            room_number=data.room_number,
            floor=data.floor,
            notes=data.notes,
            status=RoomStatus.AVAILABLE,
            room_type=room_type,
        )
        self.session.add(room)
        await self.session.flush()

        self.activity.record(
            "ROOM_CREATED", "Room", room.id,
            {"room_number": room.room_number, "room_type": room_type.slug, "floor": room.floor},
            user_id=user.id,
        )
        await self.session.commit()
        logger.info(f"Room {room.room_number} created by {user.email}")
        return room

    async def update_status(self, room_id: UUID, data: RoomStatusUpdateRequest, user: User) -> Room:
        """Set a room's housekeeping status."""
        room = await self.get_room(room_id)
        previous = room.status

        room.status = data.status
        if data.notes is not None:
            room.notes = data.notes

        self.activity.record(
            "ROOM_STATUS_UPDATED", "Room", room.id,
            {"room_number": room.room_number, "from": previous.value, "to": data.status.value},
            user_id=user.id,
        )
        await self.session.commit()
        return room

    async def priced_availability(
        self,
        check_in: datetime,
        check_out: datetime,
        number_of_adults: int = 1,
        guest_country: Optional[str] = None,
        room_type_id: Optional[UUID] = None,
    ) -> AvailabilityResponse:
        """
        Free rooms for a stay, grouped by room type and priced for the guest.

        Every room in a group shares one quote: the rate depends only on the
        room type, the guest's country and the number of adults.
        """
        check_in, check_out = ensure_utc(check_in), ensure_utc(check_out)
        rooms = await self.availability.find_available_rooms(check_in, check_out, room_type_id)

        grouped: Dict[UUID, List[Room]] = {}
        for room in rooms:
            grouped.setdefault(room.room_type_id, []).append(room)

        groups = []
        for members in grouped.values():
            room_type = members[0].room_type
            quote = quote_stay(room_type, guest_country, number_of_adults, check_in, check_out)
            groups.append(
                AvailabilityGroup(
                    room_type=serialize_room_type(room_type),
                    available_count=len(members),
                    room_ids=[room.id for room in members],
                    room_numbers=[room.room_number for room in members],
                    quote=_quote_model(quote),
                )
            )
        groups.sort(key=lambda group: group.quote.price_per_night)

        return AvailabilityResponse(
            check_in=check_in,
            check_out=check_out,
            nights=calculate_nights(check_in, check_out),
            number_of_adults=number_of_adults,
            guest_country=guest_country,
            is_east_african=is_east_african(guest_country),
            currency=currency_for(guest_country),
            room_types=groups,
            total_available=len(rooms),
        )

    async def available_rooms(
        self,
        check_in: datetime,
        check_out: datetime,
        number_of_adults: int = 1,
        guest_country: Optional[str] = None,
        room_type_id: Optional[UUID] = None,
    ) -> AvailableRoomListResponse:
        """Flat list of free rooms, each with its own quote."""
        check_in, check_out = ensure_utc(check_in), ensure_utc(check_out)
        rooms = await self.availability.find_available_rooms(check_in, check_out, room_type_id)

        items = [
            AvailableRoomResponse(
                id=room.id,
                room_number=room.room_number,
                floor=room.floor,
                status=room.status,
                room_type=serialize_room_type(room.room_type),
                quote=_quote_model(
                    quote_stay(room.room_type, guest_country, number_of_adults, check_in, check_out)
                ),
            )
            for room in rooms
        ]
        return AvailableRoomListResponse(check_in=check_in, check_out=check_out, rooms=items, total=len(items))

    async def _current_bookings(self, room_ids: List[UUID]) -> Dict[UUID, Booking]:
        result = await self.session.execute(
            select(BookingRoom.room_id, Booking)
            .join(Booking, Booking.id == BookingRoom.booking_id)
            .where(
                BookingRoom.room_id.in_(room_ids),
                Booking.status == BookingStatus.CHECKED_IN,
            )
        )
        return {room_id: booking for room_id, booking in result.all()}
