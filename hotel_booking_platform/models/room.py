"""
Room inventory models: room types with their rate card, and physical rooms.
"""

import enum
import uuid
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class RoomStatus(enum.Enum):
    """Housekeeping status of a physical room."""
    AVAILABLE = "AVAILABLE"
    RESERVED = "RESERVED"
    OCCUPIED = "OCCUPIED"
    CLEANING = "CLEANING"
    MAINTENANCE = "MAINTENANCE"


class RoomType(Base):
    """Room category carrying the four-way rate card."""

    __tablename__ = "room_types"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    capacity: Mapped[int] = mapped_column(Integer, default=2, nullable=False)
    bed_type: Mapped[str] = mapped_column(String(50), nullable=False)
    size: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    amenities: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)

    # Rate card: single/double occupancy x East African (KES) / international (USD)
    single_price_ea: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    double_price_ea: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    single_price_intl: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    double_price_intl: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    rooms: Mapped[List["Room"]] = relationship(
        "Room",
        back_populates="room_type",
        lazy="noload"
    )

    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_room_types_capacity_positive"),
        CheckConstraint(
            "single_price_ea >= 0 AND double_price_ea >= 0 "
            "AND single_price_intl >= 0 AND double_price_intl >= 0",
            name="ck_room_types_prices_non_negative"
        ),
    )

    def __repr__(self) -> str:
        return f"<RoomType(id={self.id}, slug='{self.slug}')>"


class Room(Base):
    """A physical, bookable room."""

    __tablename__ = "rooms"

    room_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    floor: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    status: Mapped[RoomStatus] = mapped_column(
        Enum(RoomStatus, name="room_status"),
        default=RoomStatus.AVAILABLE,
        nullable=False,
        index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    room_type_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("room_types.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    room_type: Mapped[RoomType] = relationship(
        "RoomType",
        back_populates="rooms",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<Room(id={self.id}, number='{self.room_number}', status={self.status.value})>"
