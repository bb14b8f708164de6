"""Business logic services for the Hotel Booking Platform."""

from .activity_service import ActivityService
from .availability_service import AvailabilityService
from .booking_service import BookingService
from .customer_service import CustomerService
from .dashboard_service import DashboardService
from .maintenance_service import MaintenanceService
from .mpesa_service import MpesaClient
from .payment_service import PaymentService
from .room_service import RoomService
from .user_service import UserService

__all__ = [
    "ActivityService",
    "AvailabilityService",
    "BookingService",
    "CustomerService",
    "DashboardService",
    "MaintenanceService",
    "MpesaClient",
    "PaymentService",
    "RoomService",
    "UserService",
]
