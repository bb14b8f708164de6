"""
FastAPI routes for bookings: availability, creation, lookup and lifecycle.
"""

import logging
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.booking import Booking, BookingStatus
from ..models.user import User
from ..schemas.booking import (
    BookingActionResponse,
    BookingCreateRequest,
    BookingListResponse,
    BookingPaymentResponse,
    BookingResponse,
    BookingRoomResponse,
    BookingUpdateRequest,
    GuestEditRequest,
    PaymentMethodUpdateRequest,
    PriceCheckRequest,
    PriceCheckResponse,
)
from ..schemas.room import AvailabilityResponse
from ..services.booking_service import BookingService
from ..services.room_service import RoomService
from ..utils.dependencies import get_optional_user, require_capability
from ..utils.exceptions import AuthenticationError, BookingNotFoundError
from ..utils.permissions import Capability, check_capabilities

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/bookings", tags=["bookings"])

require_booking_read = require_capability(Capability.BOOKINGS_READ)
require_booking_write = require_capability(Capability.BOOKINGS_WRITE)


def build_booking_response(booking: Booking) -> BookingResponse:
    """Create a BookingResponse from a booking model."""
    rooms = [
        BookingRoomResponse(
            id=booking_room.id,
            room_id=booking_room.room_id,
            room_number=booking_room.room.room_number,
            room_type=booking_room.room.room_type.name,
            room_status=booking_room.room.status,
            rate_per_night=booking_room.rate_per_night,
            number_of_nights=booking_room.number_of_nights,
            total_price=booking_room.total_price,
        )
        for booking_room in booking.rooms
    ]
    payments = [
        BookingPaymentResponse(
            id=payment.id,
            amount=payment.amount,
            method=payment.method,
            status=payment.status,
            transaction_id=payment.transaction_id,
            processed_at=payment.processed_at,
            created_at=payment.created_at,
        )
        for payment in booking.payments
    ]

    return BookingResponse(
        id=booking.id,
        booking_number=booking.booking_number,
        guest_first_name=booking.guest_first_name,
        guest_last_name=booking.guest_last_name,
        guest_email=booking.guest_email,
        guest_phone=booking.guest_phone,
        guest_country=booking.guest_country,
        guest_id_type=booking.guest_id_type,
        guest_id_number=booking.guest_id_number,
        check_in_date=booking.check_in_date,
        check_out_date=booking.check_out_date,
        number_of_adults=booking.number_of_adults,
        number_of_children=booking.number_of_children,
        special_requests=booking.special_requests,
        status=booking.status,
        total_amount=booking.total_amount,
        paid_amount=booking.paid_amount,
        balance=booking.balance,
        currency=booking.currency,
        payment_method=booking.payment_method,
        cancelled_at=booking.cancelled_at,
        actual_check_in=booking.actual_check_in,
        actual_check_out=booking.actual_check_out,
        version=booking.version,
        created_at=booking.created_at,
        updated_at=booking.updated_at,
        rooms=rooms,
        payments=payments,
    )


def _action(booking: Booking, message: str) -> BookingActionResponse:
    return BookingActionResponse(booking=build_booking_response(booking), message=message)


@router.get("/available", response_model=AvailabilityResponse)
async def get_availability(
    check_in: datetime = Query(..., alias="checkIn"),
    check_out: datetime = Query(..., alias="checkOut"),
    room_type_id: Optional[UUID] = Query(None, alias="roomTypeId"),
    number_of_adults: int = Query(1, alias="numberOfAdults", ge=1),
    guest_country: Optional[str] = Query(None, alias="guestCountry"),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Priced availability grouped by room type.

    Rates follow the guest's country (KES for East Africa, USD otherwise)
    and occupancy (one adult is single, two or more is double).

    Raises:
        ValidationError: If check-out is not after check-in
    """
    return await RoomService(db).priced_availability(
        check_in, check_out,
        number_of_adults=number_of_adults,
        guest_country=guest_country,
        room_type_id=room_type_id,
    )


@router.get("/lookup", response_model=BookingResponse)
async def lookup_booking(
    booking_number: str = Query(..., alias="bookingNumber", min_length=1),
    email: str = Query(..., min_length=3),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Find a booking by its number and the guest's email.

    Raises:
        BookingNotFoundError: If no booking matches both
    """
    booking = await BookingService(db).get_booking_by_number(booking_number)
    if booking.guest_email.lower() != email.strip().lower():
        raise BookingNotFoundError(booking_number)
    return build_booking_response(booking)


@router.post("", response_model=BookingActionResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
) -> Any:
    """
    Create a booking.

    Open to anonymous guests. Staff may also record an initial payment,
    which confirms the booking when it covers the total.

    Raises:
        ValidationError: If dates or guest counts are invalid
        RoomNotFoundError: If a requested room does not exist
        RoomUnavailableError: If a requested room is taken for the dates
        OverpaymentError: If the initial payment exceeds the total
    """
    booking = await BookingService(db).create_booking(booking_data, created_by=current_user)
    return _action(booking, f"Booking {booking.booking_number} created successfully")


@router.get("", response_model=BookingListResponse)
async def list_bookings(
    booking_status: Optional[BookingStatus] = Query(None, alias="status"),
    email: Optional[str] = Query(None),
    booking_number: Optional[str] = Query(None, alias="bookingNumber"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
) -> Any:
    """
    List bookings.

    Guests may look up their own bookings by email or booking number;
    unfiltered listings are for staff.
    """
    if not email and not booking_number:
        if current_user is None:
            raise AuthenticationError()
        check_capabilities(current_user, [Capability.BOOKINGS_READ])

    bookings, total = await BookingService(db).list_bookings(
        status=booking_status,
        email=email,
        booking_number=booking_number,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    return BookingListResponse(
        bookings=[build_booking_response(booking) for booking in bookings],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> Any:
    booking = await BookingService(db).get_booking(booking_id)
    return build_booking_response(booking)


@router.patch("/{booking_id}", response_model=BookingActionResponse)
async def update_booking(
    booking_id: UUID,
    update_data: BookingUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_booking_write),
) -> Any:
    """Staff edit of guest details and head counts."""
    booking = await BookingService(db).update_booking(booking_id, update_data, current_user)
    return _action(booking, "Booking updated successfully")


@router.delete("/{booking_id}", response_model=BookingActionResponse)
async def delete_booking(
    booking_id: UUID,
    reason: Optional[str] = Query(None, max_length=500),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_booking_write),
) -> Any:
    """Cancel a booking. Bookings are never removed from the ledger."""
    booking = await BookingService(db).cancel_booking(booking_id, user=current_user, reason=reason)
    return _action(booking, "Booking cancelled successfully")


@router.post("/{booking_id}/cancel", response_model=BookingActionResponse)
async def cancel_booking(
    booking_id: UUID,
    reason: Optional[str] = Query(None, max_length=500),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_booking_write),
) -> Any:
    """
    Cancel a pending or confirmed booking and release its rooms.

    Raises:
        BookingStateError: If the booking is checked in, completed or
            already cancelled
    """
    booking = await BookingService(db).cancel_booking(booking_id, user=current_user, reason=reason)
    return _action(booking, "Booking cancelled successfully")


@router.post("/{booking_id}/confirm", response_model=BookingActionResponse)
async def confirm_booking(
    booking_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_booking_write),
) -> Any:
    booking = await BookingService(db).confirm_booking(booking_id, current_user)
    return _action(booking, "Booking confirmed successfully")


@router.post("/{booking_id}/checkin", response_model=BookingActionResponse)
async def check_in(
    booking_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_booking_write),
) -> Any:
    """
    Check a guest in; the booking's rooms become OCCUPIED.

    Raises:
        BookingStateError: If the booking is not confirmed or the check-in
            date has not arrived
    """
    booking = await BookingService(db).check_in(booking_id, current_user)
    return _action(booking, "Guest checked in successfully")


@router.post("/{booking_id}/checkout", response_model=BookingActionResponse)
async def check_out(
    booking_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_booking_write),
) -> Any:
    """
    Check a guest out; the booking's rooms go to CLEANING.

    Raises:
        BookingStateError: If the booking is not checked in
        OutstandingBalanceError: If anything is still owed
    """
    booking = await BookingService(db).check_out(booking_id, user=current_user)
    return _action(booking, "Guest checked out successfully")


@router.patch("/{booking_id}/guest-edit", response_model=BookingActionResponse)
async def guest_edit(
    booking_id: UUID,
    edit_data: GuestEditRequest,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Self-service edit for guests.

    New dates are checked against every other reservation of the booking's
    rooms. The total is not re-priced.
    """
    booking = await BookingService(db).guest_edit(booking_id, edit_data)
    return _action(booking, "Booking updated successfully")


@router.post("/{booking_id}/price-check", response_model=PriceCheckResponse)
async def price_check(
    booking_id: UUID,
    price_data: PriceCheckRequest,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_booking_read),
) -> Any:
    """Quote a re-price for new dates and adults without applying it."""
    return PriceCheckResponse(**await BookingService(db).price_check(booking_id, price_data))


@router.patch("/{booking_id}/payment-method", response_model=BookingActionResponse)
async def update_payment_method(
    booking_id: UUID,
    method_data: PaymentMethodUpdateRequest,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Change how the guest intends to pay.

    Raises:
        BookingStateError: If the booking is no longer pending
    """
    booking = await BookingService(db).update_payment_method(booking_id, method_data.payment_method)
    return _action(booking, "Payment method updated successfully")
