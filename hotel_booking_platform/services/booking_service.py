"""
Booking lifecycle management.

State machine::

    PENDING -> CONFIRMED -> CHECKED_IN -> CHECKED_OUT
    PENDING | CONFIRMED -> CANCELLED

Every transition runs in one database transaction. Bookings carry a version
column that the mapper checks on each UPDATE, so a transition computed from a
stale read fails with ``OptimisticLockError`` instead of overwriting a
concurrent change.
"""

import logging
import secrets
import string
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from ..config import get_settings
from ..models.booking import Booking, BookingRoom, BookingStatus
from ..models.payment import Payment, PaymentMethod, PaymentStatus
from ..models.room import Room, RoomStatus
from ..models.user import User
from ..schemas.booking import (
    BookingCreateRequest,
    BookingUpdateRequest,
    GuestEditRequest,
    PriceCheckRequest,
)
from ..utils.clock import ensure_utc, local_date, start_of_today, today, utcnow
from ..utils.exceptions import (
    AuthorizationError,
    BookingNotFoundError,
    BookingStateError,
    ConflictError,
    OptimisticLockError,
    OutstandingBalanceError,
    OverpaymentError,
    RoomNotFoundError,
    RoomUnavailableError,
    ValidationError,
)
from .activity_service import ActivityService
from .availability_service import BOOKABLE_ROOM_STATUSES, AvailabilityService
from .pricing_service import calculate_nights, currency_for, is_east_african, quote_stay

logger = logging.getLogger(__name__)

BOOKING_CODE_ALPHABET = string.ascii_uppercase + string.digits
BOOKING_CODE_LENGTH = 4
BOOKING_NUMBER_ATTEMPTS = 5

# Price checks quote bookings without a declared country at local rates
DEFAULT_PRICE_CHECK_COUNTRY = "Kenya"

EDITABLE_BY_GUEST = (BookingStatus.PENDING, BookingStatus.CONFIRMED)
NOT_CANCELLABLE = (
    BookingStatus.CHECKED_IN,
    BookingStatus.CHECKED_OUT,
    BookingStatus.CANCELLED,
    BookingStatus.NO_SHOW,
)


def generate_booking_number(now: Optional[datetime] = None) -> str:
    """
    Generate a human-readable booking number.

    Format: ``HHB-YYYYMMDD-XXXX``, for example ``HHB-20250104-A7B3``.
    """
    settings = get_settings()
    code = "".join(secrets.choice(BOOKING_CODE_ALPHABET) for _ in range(BOOKING_CODE_LENGTH))
    return f"{settings.booking_number_prefix}-{today(now):%Y%m%d}-{code}"


def validate_booking_dates(
    check_in: datetime,
    check_out: datetime,
    now: Optional[datetime] = None,
) -> None:
    """
    Validate a requested stay.

    Raises:
        ValidationError: If check-in is in the past, check-out is not after
            check-in, or the stay is longer than the maximum
    """
    settings = get_settings()
    check_in, check_out = ensure_utc(check_in), ensure_utc(check_out)

    if check_in < start_of_today(now):
        raise ValidationError(
            "Check-in date cannot be in the past",
            field_errors={"check_in_date": ["cannot be in the past"]},
        )

    if check_out <= check_in:
        raise ValidationError(
            "Check-out date must be after check-in date",
            field_errors={"check_out_date": ["must be after check-in date"]},
        )

    if calculate_nights(check_in, check_out) > settings.max_stay_nights:
        raise ValidationError(
            f"Maximum stay is {settings.max_stay_nights} nights",
            field_errors={"check_out_date": [f"stay exceeds {settings.max_stay_nights} nights"]},
        )


def _validate_guest_count(adults: int, children: int, rooms: List[Room]) -> None:
    if adults < 1:
        raise ValidationError("At least 1 adult is required")

    capacity = sum(room.room_type.capacity for room in rooms)
    if adults + children > capacity:
        raise ValidationError(
            f"Maximum {capacity} guests allowed for the selected rooms",
            details={"capacity": capacity, "guests": adults + children},
        )


async def commit_booking_changes(session: AsyncSession, booking_id: UUID) -> None:
    """
    Commit the session, translating a lost version check into a conflict.

    Raises:
        OptimisticLockError: If the booking changed since it was read
    """
    try:
        await session.commit()
    except StaleDataError:
        await session.rollback()
        logger.warning(f"Concurrent modification of booking {booking_id}")
        raise OptimisticLockError("Booking", str(booking_id))
    except Exception:
        await session.rollback()
        raise


class BookingService:
    """Service for booking creation, lookup, edits and lifecycle transitions."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.settings = get_settings()
        self.availability = AvailabilityService(session)
        self.activity = ActivityService(session)

    async def get_booking(self, booking_id: UUID) -> Booking:
        """
        Get a booking with its rooms and payments.

        Raises:
            BookingNotFoundError: If no booking has this id
        """
        result = await self.session.execute(
            select(Booking)
            .where(Booking.id == booking_id)
            .execution_options(populate_existing=True)
        )
        booking = result.scalar_one_or_none()
        if booking is None:
            raise BookingNotFoundError(str(booking_id))
        return booking

    async def get_booking_by_number(self, booking_number: str) -> Booking:
        result = await self.session.execute(
            select(Booking).where(Booking.booking_number == booking_number.strip().upper())
        )
        booking = result.scalar_one_or_none()
        if booking is None:
            raise BookingNotFoundError(booking_number)
        return booking

    async def list_bookings(
        self,
        status: Optional[BookingStatus] = None,
        email: Optional[str] = None,
        booking_number: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Booking], int]:
        """
        List bookings, newest first.

        Args:
            status: Only bookings in this status
            email: Guest email (case-insensitive)
            booking_number: Exact booking number
            start_date: Check-in on or after this time
            end_date: Check-in on or before this time
            limit: Page size
            offset: Rows to skip

        Returns:
            Tuple of (bookings, total matching)
        """
        conditions = []
        if status is not None:
            conditions.append(Booking.status == status)
        if email:
            conditions.append(Booking.guest_email == email.strip().lower())
        if booking_number:
            conditions.append(Booking.booking_number == booking_number.strip().upper())
        if start_date is not None:
            conditions.append(Booking.check_in_date >= ensure_utc(start_date))
        if end_date is not None:
            conditions.append(Booking.check_in_date <= ensure_utc(end_date))

        count_query = select(func.count()).select_from(Booking).where(*conditions)
        total = (await self.session.execute(count_query)).scalar_one()

        result = await self.session.execute(
            select(Booking)
            .where(*conditions)
            .order_by(Booking.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), total

    async def create_booking(
        self,
        data: BookingCreateRequest,
        created_by: Optional[User] = None,
        now: Optional[datetime] = None,
    ) -> Booking:
        """
        Create a booking for one or more rooms.

        Rooms are row-locked while their availability is checked so two
        concurrent requests cannot both reserve the same room. Room statuses
        are left untouched until check-in.

        Args:
            data: Guest, stay and room selection
            created_by: Staff member creating the booking, None for guests
            now: Reference time, defaults to the current time

        Returns:
            The created booking, PENDING unless an initial payment covers it

        Raises:
            ValidationError: For invalid dates or too many guests
            RoomNotFoundError: If a requested room does not exist
            RoomUnavailableError: If a requested room is taken or out of service
            OverpaymentError: If the initial payment exceeds the total
        """
        now = now or utcnow()
        check_in, check_out = ensure_utc(data.check_in_date), ensure_utc(data.check_out_date)
        validate_booking_dates(check_in, check_out, now)

        paid_amount = Decimal(data.paid_amount or 0)
        if paid_amount > 0 and created_by is None:
            raise AuthorizationError(
                "Only staff can record an initial payment",
                required_permission="bookings:write",
            )

        logger.info(
            f"Creating booking for {data.guest_email}: {len(data.room_ids)} rooms "
            f"from {check_in.date()} to {check_out.date()}"
        )

        try:
            rooms_by_id = await self._lock_rooms(data.room_ids)

            rooms: List[Room] = []
            for room_id in data.room_ids:
                room = rooms_by_id.get(room_id)
                if room is None:
                    raise RoomNotFoundError(str(room_id))
                if not room.is_active or room.status not in BOOKABLE_ROOM_STATUSES:
                    raise RoomUnavailableError(
                        str(room_id),
                        f"Room {room.room_number} is not available for booking ({room.status.value})",
                    )
                rooms.append(room)

            _validate_guest_count(data.number_of_adults, data.number_of_children, rooms)

            taken = await self.availability.conflicting_room_ids(data.room_ids, check_in, check_out)
            if taken:
                room = next(room for room in rooms if room.id in taken)
                raise RoomUnavailableError(
                    str(room.id),
                    f"Room {room.room_number} is not available for selected dates",
                )

            booking_rooms = []
            total_amount = Decimal("0.00")
            for room in rooms:
                quote = quote_stay(
                    room.room_type, data.guest_country, data.number_of_adults, check_in, check_out
                )
                total_amount += quote.total_price
                booking_rooms.append(BookingRoom(
                    room_id=room.id,
                    room=room,
                    rate_per_night=quote.price_per_night,
                    number_of_nights=quote.nights,
                    total_price=quote.total_price,
                ))

            if paid_amount > total_amount:
                raise OverpaymentError(paid_amount, total_amount)

            payments = []
            if paid_amount > 0:
                payments.append(Payment(
                    amount=paid_amount,
                    method=data.payment_method or PaymentMethod.CASH,
                    status=PaymentStatus.COMPLETED,
                    processed_at=now,
                    processed_by_id=created_by.id,
                    notes="Initial payment at booking",
                ))

            booking = Booking(
                booking_number=await self._unique_booking_number(now),
                guest_first_name=data.guest_first_name.strip(),
                guest_last_name=data.guest_last_name.strip(),
                guest_email=str(data.guest_email).lower(),
                guest_phone=data.guest_phone.strip(),
                guest_country=data.guest_country or None,
                guest_id_type=data.guest_id_type or None,
                guest_id_number=data.guest_id_number or None,
                check_in_date=check_in,
                check_out_date=check_out,
                number_of_adults=data.number_of_adults,
                number_of_children=data.number_of_children,
                special_requests=data.special_requests or None,
                status=BookingStatus.CONFIRMED if paid_amount >= total_amount else BookingStatus.PENDING,
                total_amount=total_amount,
                paid_amount=paid_amount,
                currency=currency_for(data.guest_country),
                payment_method=data.payment_method,
                created_by_id=created_by.id if created_by else None,
                modified_by_id=created_by.id if created_by else None,
                rooms=booking_rooms,
                payments=payments,
            )
            self.session.add(booking)
            await self.session.flush()

            self.activity.record(
                "BOOKING_CREATED",
                "Booking",
                booking.id,
                {
                    "booking_number": booking.booking_number,
                    "guest_email": booking.guest_email,
                    "total_amount": booking.total_amount,
                    "room_count": len(rooms),
                },
                user_id=created_by.id if created_by else None,
            )
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            logger.error(f"Database integrity error during booking creation: {e}")
            raise ConflictError("Booking could not be created, please try again")
        except Exception:
            await self.session.rollback()
            raise

        logger.info(f"Booking {booking.booking_number} created ({booking.status.value}, total {total_amount})")
        return await self.get_booking(booking.id)

    async def confirm_booking(self, booking_id: UUID, user: Optional[User] = None) -> Booking:
        """
        Confirm a fully paid pending booking.

        Raises:
            BookingStateError: If the booking is not pending or not fully paid
        """
        booking = await self.get_booking(booking_id)

        if booking.status != BookingStatus.PENDING:
            raise BookingStateError(
                f"Only pending bookings can be confirmed. Current status: {booking.status.value}",
                current_status=booking.status.value,
            )
        if booking.paid_amount < booking.total_amount:
            raise BookingStateError(
                f"Booking must be fully paid before confirmation. Outstanding balance: "
                f"{booking.currency} {booking.balance:.2f}",
                current_status=booking.status.value,
            )

        booking.status = BookingStatus.CONFIRMED
        booking.modified_by_id = user.id if user else None
        self.activity.record(
            "BOOKING_CONFIRMED", "Booking", booking.id,
            {"booking_number": booking.booking_number},
            user_id=user.id if user else None,
        )
        await commit_booking_changes(self.session, booking.id)
        return await self.get_booking(booking.id)

    async def check_in(
        self,
        booking_id: UUID,
        user: Optional[User] = None,
        now: Optional[datetime] = None,
    ) -> Booking:
        """
        Check a confirmed booking in and mark its rooms occupied.

        Raises:
            BookingStateError: If the booking is not confirmed or its check-in
                date has not arrived
        """
        now = now or utcnow()
        booking = await self.get_booking(booking_id)

        if booking.status != BookingStatus.CONFIRMED:
            raise BookingStateError(
                f"Booking must be confirmed before check-in. Current status: {booking.status.value}",
                current_status=booking.status.value,
            )
        if today(now) < local_date(booking.check_in_date):
            raise BookingStateError(
                "Check-in date has not arrived yet",
                current_status=booking.status.value,
            )

        booking.status = BookingStatus.CHECKED_IN
        booking.actual_check_in = now
        booking.modified_by_id = user.id if user else None
        for room in booking.room_list:
            room.status = RoomStatus.OCCUPIED

        self.activity.record(
            "BOOKING_CHECKED_IN", "Booking", booking.id,
            {
                "booking_number": booking.booking_number,
                "rooms": [room.room_number for room in booking.room_list],
            },
            user_id=user.id if user else None,
        )
        await commit_booking_changes(self.session, booking.id)
        logger.info(f"Booking {booking.booking_number} checked in")
        return await self.get_booking(booking.id)

    async def check_out(
        self,
        booking_id: UUID,
        user: Optional[User] = None,
        force: bool = False,
        now: Optional[datetime] = None,
    ) -> Booking:
        """
        Check a booking out and send its rooms to cleaning.

        Args:
            booking_id: Booking to check out
            user: Acting staff member, None for the scheduled sweep
            force: Skip the balance guard and also accept CONFIRMED bookings.
                Used by the auto-checkout sweep only.
            now: Reference time

        Raises:
            BookingStateError: If the booking is not checked in
            OutstandingBalanceError: If a balance is still owed and not forced
        """
        now = now or utcnow()
        booking = await self.get_booking(booking_id)

        allowed = (BookingStatus.CHECKED_IN, BookingStatus.CONFIRMED) if force else (BookingStatus.CHECKED_IN,)
        if booking.status not in allowed:
            raise BookingStateError(
                f"Booking must be checked in before check-out. Current status: {booking.status.value}",
                current_status=booking.status.value,
            )

        balance = booking.balance
        if balance > 0:
            if not force:
                raise OutstandingBalanceError(balance, booking.currency)
            logger.warning(
                f"Forced check-out of {booking.booking_number} with outstanding balance {balance:.2f}"
            )

        booking.status = BookingStatus.CHECKED_OUT
        booking.actual_check_out = now
        booking.modified_by_id = user.id if user else None
        for room in booking.room_list:
            room.status = RoomStatus.CLEANING

        self.activity.record(
            "BOOKING_AUTO_CHECKED_OUT" if force else "BOOKING_CHECKED_OUT",
            "Booking",
            booking.id,
            {
                "booking_number": booking.booking_number,
                "outstanding_balance": balance,
                "rooms": [room.room_number for room in booking.room_list],
            },
            user_id=user.id if user else None,
        )
        await commit_booking_changes(self.session, booking.id)
        logger.info(f"Booking {booking.booking_number} checked out")
        return await self.get_booking(booking.id)

    async def cancel_booking(
        self,
        booking_id: UUID,
        user: Optional[User] = None,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Booking:
        """
        Cancel a pending or confirmed booking and release its rooms.

        Rooms held for the booking (RESERVED) go back to AVAILABLE. Rooms in
        another state belong to someone else's stay or to housekeeping and
        are left as they are.

        Raises:
            BookingStateError: If the booking is checked in, checked out or
                already cancelled
        """
        now = now or utcnow()
        booking = await self.get_booking(booking_id)

        if booking.status in NOT_CANCELLABLE:
            if booking.status == BookingStatus.CANCELLED:
                message = "Booking is already cancelled"
            else:
                message = "Cannot cancel checked-in or completed bookings"
            raise BookingStateError(message, current_status=booking.status.value)

        booking.status = BookingStatus.CANCELLED
        booking.cancelled_at = now
        booking.modified_by_id = user.id if user else None
        for room in booking.room_list:
            # Only rooms still held for this booking are released
            if room.status in BOOKABLE_ROOM_STATUSES:
                room.status = RoomStatus.AVAILABLE

        self.activity.record(
            "BOOKING_CANCELLED", "Booking", booking.id,
            {
                "booking_number": booking.booking_number,
                "guest_email": booking.guest_email,
                "reason": reason,
            },
            user_id=user.id if user else None,
        )
        await commit_booking_changes(self.session, booking.id)
        logger.info(f"Booking {booking.booking_number} cancelled")
        return await self.get_booking(booking.id)

    async def guest_edit(
        self,
        booking_id: UUID,
        data: GuestEditRequest,
        now: Optional[datetime] = None,
    ) -> Booking:
        """
        Apply a guest's self-service edit.

        Dates are re-checked for availability against every other booking,
        with the booking's rooms row-locked as in ``create_booking``.
        The total is not re-priced; staff quote changes with ``price_check``.

        Raises:
            BookingStateError: If the booking is no longer pending or confirmed
            ValidationError: For invalid dates or guest counts
            RoomUnavailableError: If a room is taken for the new dates
        """
        booking = await self.get_booking(booking_id)

        if booking.status not in EDITABLE_BY_GUEST:
            raise BookingStateError(
                "This booking cannot be edited",
                current_status=booking.status.value,
            )

        changes: Dict[str, Any] = {}
        adults = data.number_of_adults if data.number_of_adults is not None else booking.number_of_adults
        children = data.number_of_children if data.number_of_children is not None else booking.number_of_children
        if data.number_of_adults is not None or data.number_of_children is not None:
            _validate_guest_count(adults, children, booking.room_list)
            changes["number_of_adults"] = adults
            changes["number_of_children"] = children

        if data.check_in_date is not None and data.check_out_date is not None:
            new_check_in, new_check_out = ensure_utc(data.check_in_date), ensure_utc(data.check_out_date)
            dates_changed = (
                new_check_in != ensure_utc(booking.check_in_date)
                or new_check_out != ensure_utc(booking.check_out_date)
            )
            if dates_changed:
                validate_booking_dates(new_check_in, new_check_out, now)
                await self._lock_rooms([room.id for room in booking.room_list])
                for room in booking.room_list:
                    if await self.availability.has_conflict(room.id, new_check_in, new_check_out, booking.id):
                        raise RoomUnavailableError(
                            str(room.id),
                            f"Room {room.room_number} is not available for the new dates",
                        )
                changes["check_in_date"] = new_check_in
                changes["check_out_date"] = new_check_out

        for field in ("guest_first_name", "guest_last_name", "guest_phone", "special_requests"):
            value = getattr(data, field)
            if value is not None:
                changes[field] = value
        if data.guest_email is not None:
            changes["guest_email"] = str(data.guest_email).lower()

        if not changes:
            return booking

        for field, value in changes.items():
            setattr(booking, field, value)

        self.activity.record(
            "BOOKING_GUEST_EDITED", "Booking", booking.id,
            {"booking_number": booking.booking_number, "changes": changes},
        )
        await commit_booking_changes(self.session, booking.id)
        return await self.get_booking(booking.id)

    async def update_booking(
        self,
        booking_id: UUID,
        data: BookingUpdateRequest,
        user: User,
    ) -> Booking:
        """Staff edit of guest details and head counts."""
        booking = await self.get_booking(booking_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)

        if "guest_email" in changes:
            changes["guest_email"] = str(changes["guest_email"]).lower()
        if "number_of_adults" in changes or "number_of_children" in changes:
            _validate_guest_count(
                changes.get("number_of_adults", booking.number_of_adults),
                changes.get("number_of_children", booking.number_of_children),
                booking.room_list,
            )

        if not changes:
            return booking

        for field, value in changes.items():
            setattr(booking, field, value)
        booking.modified_by_id = user.id

        self.activity.record(
            "BOOKING_UPDATED", "Booking", booking.id,
            {"booking_number": booking.booking_number, "changes": changes},
            user_id=user.id,
        )
        await commit_booking_changes(self.session, booking.id)
        return await self.get_booking(booking.id)

    async def price_check(self, booking_id: UUID, data: PriceCheckRequest) -> Dict[str, Any]:
        """
        Quote what a booking would cost for new dates and occupancy.

        Nothing is written; the result is a preview for staff.
        """
        booking = await self.get_booking(booking_id)
        check_in, check_out = ensure_utc(data.check_in_date), ensure_utc(data.check_out_date)
        if check_out <= check_in:
            raise ValidationError(
                "Check-out date must be after check-in date",
                field_errors={"check_out_date": ["must be after check-in date"]},
            )

        country = booking.guest_country or DEFAULT_PRICE_CHECK_COUNTRY
        lines = []
        new_total = Decimal("0.00")
        nights = calculate_nights(check_in, check_out)
        for booking_room in booking.rooms:
            quote = quote_stay(
                booking_room.room.room_type, country, data.number_of_adults, check_in, check_out
            )
            new_total += quote.total_price
            lines.append({
                "room_id": booking_room.room_id,
                "room_number": booking_room.room.room_number,
                "room_type": booking_room.room.room_type.name,
                "price_per_night": quote.price_per_night,
                "nights": quote.nights,
                "total_price": quote.total_price,
            })

        original_total = Decimal(booking.total_amount)
        return {
            "original_total": original_total,
            "new_total": new_total,
            "difference": new_total - original_total,
            "nights": nights,
            "number_of_adults": data.number_of_adults,
            "is_east_african": is_east_african(country),
            "currency": currency_for(country),
            "rooms": lines,
        }

    async def update_payment_method(self, booking_id: UUID, method: PaymentMethod) -> Booking:
        """
        Change the payment method a guest intends to use.

        Raises:
            BookingStateError: If the booking is no longer pending
        """
        booking = await self.get_booking(booking_id)
        if booking.status != BookingStatus.PENDING:
            raise BookingStateError(
                "Payment method can only be changed for pending bookings",
                current_status=booking.status.value,
            )

        booking.payment_method = method
        self.activity.record(
            "BOOKING_PAYMENT_METHOD_UPDATED", "Booking", booking.id,
            {"booking_number": booking.booking_number, "payment_method": method.value},
        )
        await commit_booking_changes(self.session, booking.id)
        return await self.get_booking(booking.id)

    async def _lock_rooms(self, room_ids: List[UUID]) -> Dict[UUID, Room]:
        """Row-lock rooms so overlap checks against them run one at a time."""
        result = await self.session.execute(
            select(Room)
            .where(Room.id.in_(room_ids))
            .with_for_update()
        )
        return {room.id: room for room in result.scalars().all()}

    async def _unique_booking_number(self, now: datetime) -> str:
        for _ in range(BOOKING_NUMBER_ATTEMPTS):
            candidate = generate_booking_number(now)
            exists = await self.session.execute(
                select(Booking.id).where(Booking.booking_number == candidate)
            )
            if exists.first() is None:
                return candidate
        raise ConflictError("Could not allocate a booking number, please try again")
