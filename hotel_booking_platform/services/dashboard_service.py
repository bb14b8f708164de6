"""
Dashboard service for the administrators' operational overview.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.booking import Booking, BookingStatus
from ..models.payment import Payment, PaymentStatus
from ..models.room import Room, RoomStatus
from ..schemas.dashboard import DashboardStats, RecentBooking
from ..utils.clock import start_of_today, utcnow

ARRIVING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN)
DEPARTING_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN, BookingStatus.CHECKED_OUT)


class DashboardService:
    """Service for dashboard aggregates."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_stats(self, now: Optional[datetime] = None, recent_limit: int = 10) -> DashboardStats:
        """Collect booking, revenue, room and occupancy figures."""
        now = now or utcnow()
        day_start = start_of_today(now)
        day_end = day_start + timedelta(days=1)

        bookings_by_status = await self._count_by(Booking.status, BookingStatus)
        rooms_by_status = await self._count_by(Room.status, RoomStatus)

        revenue = (
            await self.session.execute(
                select(func.coalesce(func.sum(Payment.amount), 0))
                .where(Payment.status == PaymentStatus.COMPLETED)
            )
        ).scalar_one()

        outstanding = (
            await self.session.execute(
                select(func.coalesce(func.sum(Booking.total_amount - Booking.paid_amount), 0))
                .where(Booking.status != BookingStatus.CANCELLED)
            )
        ).scalar_one()

        arrivals = (
            await self.session.execute(
                select(func.count(Booking.id)).where(
                    Booking.status.in_(ARRIVING_STATUSES),
                    Booking.check_in_date >= day_start,
                    Booking.check_in_date < day_end,
                )
            )
        ).scalar_one()

        departures = (
            await self.session.execute(
                select(func.count(Booking.id)).where(
                    Booking.status.in_(DEPARTING_STATUSES),
                    Booking.check_out_date >= day_start,
                    Booking.check_out_date < day_end,
                )
            )
        ).scalar_one()

        total_rooms = sum(rooms_by_status.values())
        occupied = rooms_by_status[RoomStatus.OCCUPIED.value]
        occupancy_rate = round(occupied / total_rooms * 100, 2) if total_rooms > 0 else 0.0

        return DashboardStats(
            total_bookings=sum(bookings_by_status.values()),
            bookings_by_status=bookings_by_status,
            total_revenue=Decimal(str(revenue)),
            total_rooms=total_rooms,
            rooms_by_status=rooms_by_status,
            occupancy_rate=occupancy_rate,
            outstanding_balance=Decimal(str(outstanding)),
            todays_arrivals=arrivals,
            todays_departures=departures,
            recent_bookings=await self._recent_bookings(recent_limit),
        )

    async def _count_by(self, column, enum_type) -> Dict[str, int]:
        result = await self.session.execute(select(column, func.count()).group_by(column))
        counts = {value.value: 0 for value in enum_type}
        for value, count in result.all():
            counts[value.value] = count
        return counts

    async def _recent_bookings(self, limit: int) -> List[RecentBooking]:
        result = await self.session.execute(
            select(
                Booking.id,
                Booking.booking_number,
                Booking.guest_first_name,
                Booking.guest_last_name,
                Booking.status,
                Booking.check_in_date,
                Booking.check_out_date,
                Booking.total_amount,
                Booking.created_at,
            )
            .order_by(Booking.created_at.desc())
            .limit(limit)
        )
        return [
            RecentBooking(
                id=row.id,
                booking_number=row.booking_number,
                guest_name=f"{row.guest_first_name} {row.guest_last_name}",
                status=row.status,
                check_in_date=row.check_in_date,
                check_out_date=row.check_out_date,
                total_amount=row.total_amount,
                created_at=row.created_at,
            )
            for row in result.all()
        ]
