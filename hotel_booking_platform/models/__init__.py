"""
Database models for the hotel booking platform.
"""

from .base import Base
from .user import User, UserRole
from .room import Room, RoomStatus, RoomType
from .payment import Payment, PaymentMethod, PaymentStatus
from .booking import ACTIVE_BOOKING_STATUSES, Booking, BookingRoom, BookingStatus
from .activity_log import ActivityLog

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Room",
    "RoomStatus",
    "RoomType",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "Booking",
    "BookingRoom",
    "BookingStatus",
    "ACTIVE_BOOKING_STATUSES",
    "ActivityLog",
]
