"""
Schemas for the admin dashboard and the customer directory.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel

from ..models.booking import BookingStatus
from .booking import BookingResponse


class RecentBooking(BaseModel):
    """Condensed booking row for the dashboard feed."""

    id: UUID
    booking_number: str
    guest_name: str
    status: BookingStatus
    check_in_date: datetime
    check_out_date: datetime
    total_amount: Decimal
    created_at: datetime


class DashboardStats(BaseModel):
    """Operational overview for administrators."""

    total_bookings: int
    bookings_by_status: Dict[str, int]
    total_revenue: Decimal
    total_rooms: int
    rooms_by_status: Dict[str, int]
    occupancy_rate: float
    outstanding_balance: Decimal
    todays_arrivals: int
    todays_departures: int
    recent_bookings: List[RecentBooking]


class CustomerSummary(BaseModel):
    """A guest aggregated across their bookings by email."""

    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    country: Optional[str] = None
    total_bookings: int
    completed_stays: int
    total_spent: Decimal
    last_visit: Optional[datetime] = None
    loyalty_tier: str
    loyalty_points: int
    discount_percent: int


class CustomerListResponse(BaseModel):
    customers: List[CustomerSummary]
    total: int


class CustomerDetailResponse(BaseModel):
    customer: CustomerSummary
    bookings: List[BookingResponse]
