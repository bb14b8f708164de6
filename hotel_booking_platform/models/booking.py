"""
Booking model for managing room reservations.
"""

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from .payment import Payment, PaymentMethod
from .room import Room


class BookingStatus(enum.Enum):
    """Enumeration for booking status."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


# Statuses whose reservations block a room for their date range
ACTIVE_BOOKING_STATUSES = (
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
    BookingStatus.CHECKED_IN,
)


class Booking(Base):
    """Guest reservation spanning one or more rooms."""

    __tablename__ = "bookings"

    booking_number: Mapped[str] = mapped_column(String(30), unique=True, nullable=False, index=True)

    # Guest identity
    guest_first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    guest_last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    guest_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    guest_phone: Mapped[str] = mapped_column(String(30), nullable=False)
    guest_country: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    guest_id_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    guest_id_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Stay
    check_in_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    check_out_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    number_of_adults: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    number_of_children: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    special_requests: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Status and money
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, name="booking_status"),
        default=BookingStatus.PENDING,
        nullable=False,
        index=True
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00")
    )
    paid_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00")
    )
    # Currency of the rate card used at creation
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    # Last method used, the payments table is authoritative
    payment_method: Mapped[Optional[PaymentMethod]] = mapped_column(
        Enum(PaymentMethod, name="payment_method"),
        nullable=True
    )

    # Lifecycle timestamps
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    actual_check_in: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    actual_check_out: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    modified_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    # Optimistic locking counter, checked by the mapper on every UPDATE
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Relationships
    rooms: Mapped[List["BookingRoom"]] = relationship(
        "BookingRoom",
        back_populates="booking",
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    payments: Mapped[List[Payment]] = relationship(
        Payment,
        cascade="all, delete-orphan",
        order_by=Payment.created_at.desc(),
        lazy="selectin"
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("number_of_adults >= 1", name="ck_bookings_adults_positive"),
        CheckConstraint("number_of_children >= 0", name="ck_bookings_children_non_negative"),
        CheckConstraint("total_amount >= 0", name="ck_bookings_total_amount_non_negative"),
        CheckConstraint("paid_amount >= 0", name="ck_bookings_paid_amount_non_negative"),
        CheckConstraint("paid_amount <= total_amount", name="ck_bookings_not_overpaid"),
        CheckConstraint("check_out_date > check_in_date", name="ck_bookings_dates_ordered"),
    )

    @property
    def balance(self) -> Decimal:
        """Outstanding amount still owed on the booking."""
        return Decimal(self.total_amount) - Decimal(self.paid_amount)

    @property
    def guest_name(self) -> str:
        return f"{self.guest_first_name} {self.guest_last_name}"

    @property
    def is_active(self) -> bool:
        """Check if the booking still holds its rooms."""
        return self.status in ACTIVE_BOOKING_STATUSES

    @property
    def room_list(self) -> List[Room]:
        return [booking_room.room for booking_room in self.rooms]

    def __repr__(self) -> str:
        """String representation of the booking."""
        return (
            f"<Booking(id={self.id}, number='{self.booking_number}', "
            f"status={self.status.value}, total={self.total_amount}, paid={self.paid_amount})>"
        )


class BookingRoom(Base):
    """Room reserved by a booking, with the nightly rate snapshotted at booking time."""

    __tablename__ = "booking_rooms"

    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    room_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("rooms.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    rate_per_night: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    number_of_nights: Mapped[int] = mapped_column(Integer, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    booking: Mapped[Booking] = relationship("Booking", back_populates="rooms", lazy="noload")
    room: Mapped[Room] = relationship("Room", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("booking_id", "room_id", name="uq_booking_rooms_booking_room"),
        CheckConstraint("number_of_nights > 0", name="ck_booking_rooms_nights_positive"),
    )

    def __repr__(self) -> str:
        return f"<BookingRoom(booking_id={self.booking_id}, room_id={self.room_id}, rate={self.rate_per_night})>"
