"""
Room and room-type API endpoints.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..cache import RedisCache
from ..database import get_db
from ..models.room import RoomStatus
from ..models.user import User
from ..schemas.room import (
    AvailableRoomListResponse,
    RoomCreateRequest,
    RoomListResponse,
    RoomResponse,
    RoomStatusUpdateRequest,
    RoomTypeListResponse,
)
from ..services.room_service import RoomService, serialize_room
from ..utils.dependencies import get_cache, require_capability
from ..utils.permissions import Capability


router = APIRouter(tags=["rooms"])


@router.get("/room-types", response_model=RoomTypeListResponse)
async def list_room_types(
    db: AsyncSession = Depends(get_db),
    cache: Optional[RedisCache] = Depends(get_cache),
) -> Any:
    """Public room-type catalogue with the full rate card."""
    room_types = await RoomService(db, cache).list_room_types()
    return RoomTypeListResponse(room_types=room_types, total=len(room_types))


@router.get("/rooms/available", response_model=AvailableRoomListResponse)
async def list_available_rooms(
    check_in: datetime = Query(..., alias="checkIn"),
    check_out: datetime = Query(..., alias="checkOut"),
    room_type_id: Optional[UUID] = Query(None, alias="roomTypeId"),
    number_of_adults: int = Query(1, alias="numberOfAdults", ge=1),
    guest_country: Optional[str] = Query(None, alias="guestCountry"),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Flat list of rooms free for the whole stay, each priced for the guest.

    Raises:
        ValidationError: If check-out is not after check-in
    """
    return await RoomService(db).available_rooms(
        check_in, check_out,
        number_of_adults=number_of_adults,
        guest_country=guest_country,
        room_type_id=room_type_id,
    )


@router.get("/rooms", response_model=RoomListResponse)
async def list_rooms(
    room_status: Optional[RoomStatus] = Query(None, alias="status"),
    room_type_id: Optional[UUID] = Query(None, alias="roomTypeId"),
    floor: Optional[int] = Query(None, ge=0),
    include_current_booking: bool = Query(False, alias="includeCurrentBooking"),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_capability(Capability.ROOMS_READ)),
) -> Any:
    """List rooms with their rate cards and per-status counts."""
    rooms, counts = await RoomService(db).list_rooms(
        status=room_status,
        room_type_id=room_type_id,
        floor=floor,
        include_current_booking=include_current_booking,
    )
    return RoomListResponse(rooms=rooms, total=len(rooms), counts_by_status=counts)


@router.post("/rooms", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room(
    room_data: RoomCreateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_capability(Capability.ROOMS_CREATE)),
) -> Any:
    """
    Add a physical room.

    Raises:
        RoomTypeNotFoundError: If the room type does not exist
        ConflictError: If the room number is taken
    """
    room = await RoomService(db).create_room(room_data, current_user)
    return serialize_room(room)


@router.get("/rooms/{room_id}", response_model=RoomResponse)
async def get_room(
    room_id: UUID,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_capability(Capability.ROOMS_READ)),
) -> Any:
    room = await RoomService(db).get_room(room_id)
    return serialize_room(room)


@router.patch("/rooms/{room_id}/status", response_model=RoomResponse)
async def update_room_status(
    room_id: UUID,
    status_data: RoomStatusUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_capability(Capability.ROOMS_UPDATE)),
) -> Any:
    """Set a room's housekeeping status."""
    room = await RoomService(db).update_status(room_id, status_data, current_user)
    return serialize_room(room)
