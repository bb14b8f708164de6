"""
Pydantic schemas for rooms, room types and availability.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.room import RoomStatus


class PriceTier(BaseModel):
    """Single and double occupancy rates in one currency."""

    single: Decimal
    double: Decimal


class RoomTypePricing(BaseModel):
    """The four-way rate card of a room type."""

    east_african: PriceTier
    international: PriceTier


class RoomTypeResponse(BaseModel):
    """Schema for room type responses."""

    id: UUID
    name: str
    slug: str
    description: Optional[str] = None
    capacity: int
    bed_type: str
    size: Optional[str] = None
    amenities: List[str] = []
    pricing: RoomTypePricing


class RoomTypeListResponse(BaseModel):
    """Schema for the room type catalogue."""

    room_types: List[RoomTypeResponse]
    total: int


class CurrentBookingSummary(BaseModel):
    """The checked-in booking currently occupying a room."""

    id: UUID
    booking_number: str
    guest_name: str
    check_in_date: datetime
    check_out_date: datetime


class RoomResponse(BaseModel):
    """Schema for room responses."""

    id: UUID
    room_number: str
    floor: int
    status: RoomStatus
    is_active: bool
    notes: Optional[str] = None
    room_type: RoomTypeResponse
    current_booking: Optional[CurrentBookingSummary] = None


class RoomListResponse(BaseModel):
    """Schema for room list responses."""

    rooms: List[RoomResponse]
    total: int
    counts_by_status: Dict[str, int]


class RoomCreateRequest(BaseModel):
    """Schema for creating a room."""

    room_number: str = Field(..., min_length=1, max_length=20)
    room_type_id: UUID
    floor: int = Field(1, ge=0, description="Floor number, ground floor is 0")
    notes: Optional[str] = Field(None, max_length=1000)


class RoomStatusUpdateRequest(BaseModel):
    """Schema for an admin room status change."""

    status: RoomStatus
    notes: Optional[str] = Field(None, max_length=1000)


class RoomQuote(BaseModel):
    """Price of one room for a stay."""

    price_per_night: Decimal
    nights: int
    total_price: Decimal
    currency: str


class AvailableRoomResponse(BaseModel):
    """A free room with its price for the requested stay."""

    id: UUID
    room_number: str
    floor: int
    status: RoomStatus
    room_type: RoomTypeResponse
    quote: RoomQuote


class AvailableRoomListResponse(BaseModel):
    """Flat list of free rooms."""

    check_in: datetime
    check_out: datetime
    rooms: List[AvailableRoomResponse]
    total: int


class AvailabilityGroup(BaseModel):
    """Free rooms of one type, priced for the guest."""

    room_type: RoomTypeResponse
    available_count: int
    room_ids: List[UUID]
    room_numbers: List[str]
    quote: RoomQuote


class AvailabilityResponse(BaseModel):
    """Priced availability grouped by room type."""

    check_in: datetime
    check_out: datetime
    nights: int
    number_of_adults: int
    guest_country: Optional[str] = None
    is_east_african: bool
    currency: str
    room_types: List[AvailabilityGroup]
    total_available: int
