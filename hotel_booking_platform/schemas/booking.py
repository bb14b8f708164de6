"""
Pydantic schemas for booking-related API requests and responses.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from ..models.booking import BookingStatus
from ..models.payment import PaymentMethod, PaymentStatus
from ..models.room import RoomStatus


class GuestDetails(BaseModel):
    """Guest identity shared by create and edit requests."""

    guest_first_name: str = Field(..., min_length=1, max_length=100)
    guest_last_name: str = Field(..., min_length=1, max_length=100)
    guest_email: EmailStr
    guest_phone: str = Field(..., min_length=5, max_length=30)
    guest_country: Optional[str] = Field(None, max_length=100)
    guest_id_type: Optional[str] = Field(None, max_length=50)
    guest_id_number: Optional[str] = Field(None, max_length=100)


class BookingCreateRequest(GuestDetails):
    """Schema for creating a new booking."""

    check_in_date: datetime
    check_out_date: datetime
    number_of_adults: int = Field(..., ge=1, description="At least one adult is required")
    number_of_children: int = Field(0, ge=0)
    room_ids: List[UUID] = Field(..., min_length=1, description="Rooms to reserve")
    special_requests: Optional[str] = Field(None, max_length=2000)
    payment_method: Optional[PaymentMethod] = None
    paid_amount: Decimal = Field(Decimal("0"), ge=0, description="Initial payment, staff only")

    @field_validator('room_ids')
    @classmethod
    def validate_unique_rooms(cls, v):
        """Reject the same room listed twice."""
        if len(set(v)) != len(v):
            raise ValueError("Room IDs must be unique")
        return v


class GuestEditRequest(BaseModel):
    """Schema for a guest editing their own booking."""

    guest_first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    guest_last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    guest_email: Optional[EmailStr] = None
    guest_phone: Optional[str] = Field(None, min_length=5, max_length=30)
    check_in_date: Optional[datetime] = None
    check_out_date: Optional[datetime] = None
    number_of_adults: Optional[int] = Field(None, ge=1)
    number_of_children: Optional[int] = Field(None, ge=0)
    special_requests: Optional[str] = Field(None, max_length=2000)

    @model_validator(mode="after")
    def validate_date_pair(self):
        """Dates move together."""
        if (self.check_in_date is None) != (self.check_out_date is None):
            raise ValueError("check_in_date and check_out_date must be provided together")
        return self


class BookingUpdateRequest(BaseModel):
    """Schema for staff edits of guest details and counts."""

    guest_first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    guest_last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    guest_email: Optional[EmailStr] = None
    guest_phone: Optional[str] = Field(None, min_length=5, max_length=30)
    guest_country: Optional[str] = Field(None, max_length=100)
    guest_id_type: Optional[str] = Field(None, max_length=50)
    guest_id_number: Optional[str] = Field(None, max_length=100)
    number_of_adults: Optional[int] = Field(None, ge=1)
    number_of_children: Optional[int] = Field(None, ge=0)
    special_requests: Optional[str] = Field(None, max_length=2000)


class PriceCheckRequest(BaseModel):
    """Schema for quoting a re-price without applying it."""

    check_in_date: datetime
    check_out_date: datetime
    number_of_adults: int = Field(..., ge=1)


class PaymentMethodUpdateRequest(BaseModel):
    """Schema for changing the chosen payment method of a pending booking."""

    payment_method: PaymentMethod


class BookingRoomResponse(BaseModel):
    """Schema for a reserved room inside a booking."""

    id: UUID
    room_id: UUID
    room_number: str
    room_type: str
    room_status: RoomStatus
    rate_per_night: Decimal
    number_of_nights: int
    total_price: Decimal


class BookingPaymentResponse(BaseModel):
    """Schema for a payment inside a booking."""

    id: UUID
    amount: Decimal
    method: PaymentMethod
    status: PaymentStatus
    transaction_id: Optional[str] = None
    processed_at: Optional[datetime] = None
    created_at: datetime


class BookingResponse(BaseModel):
    """Schema for booking responses."""

    id: UUID
    booking_number: str
    guest_first_name: str
    guest_last_name: str
    guest_email: str
    guest_phone: str
    guest_country: Optional[str] = None
    guest_id_type: Optional[str] = None
    guest_id_number: Optional[str] = None
    check_in_date: datetime
    check_out_date: datetime
    number_of_adults: int
    number_of_children: int
    special_requests: Optional[str] = None
    status: BookingStatus
    total_amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    currency: str
    payment_method: Optional[PaymentMethod] = None
    cancelled_at: Optional[datetime] = None
    actual_check_in: Optional[datetime] = None
    actual_check_out: Optional[datetime] = None
    version: int
    created_at: datetime
    updated_at: datetime

    rooms: List[BookingRoomResponse] = []
    payments: List[BookingPaymentResponse] = []


class BookingListResponse(BaseModel):
    """Schema for booking list responses."""

    bookings: List[BookingResponse]
    total: int
    limit: int
    offset: int


class BookingActionResponse(BaseModel):
    """Response for create, edit and lifecycle transitions."""

    booking: BookingResponse
    message: str


class PriceCheckRoomLine(BaseModel):
    """Per-room line of a price check."""

    room_id: UUID
    room_number: str
    room_type: str
    price_per_night: Decimal
    nights: int
    total_price: Decimal


class PriceCheckResponse(BaseModel):
    """Quote for new dates and occupancy. Nothing is applied."""

    original_total: Decimal
    new_total: Decimal
    difference: Decimal
    nights: int
    number_of_adults: int
    is_east_african: bool
    currency: str
    rooms: List[PriceCheckRoomLine]


class SweepItemResult(BaseModel):
    """Outcome for one booking touched by a sweep."""

    booking_number: str
    status: str
    error: Optional[str] = None


class SweepReport(BaseModel):
    """Aggregate report of a maintenance sweep."""

    message: str
    processed: int
    failed: int
    total: int
    timestamp: datetime
    results: List[SweepItemResult]

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
