"""
Customer directory.

Guests have no accounts; a customer is every booking sharing one email
address. Loyalty is earned per completed stay.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.booking import Booking, BookingStatus
from ..schemas.dashboard import CustomerSummary
from ..utils.clock import ensure_utc
from ..utils.exceptions import NotFoundError

POINTS_PER_STAY = 100

# (minimum completed stays, tier, discount percent), highest first
LOYALTY_TIERS = (
    (10, "VIP", 15),
    (5, "Gold", 10),
    (2, "Silver", 5),
    (0, "New", 0),
)

VISITED_STATUSES = (BookingStatus.CHECKED_IN, BookingStatus.CHECKED_OUT)


def loyalty_for(completed_stays: int) -> Tuple[str, int]:
    """Return (tier name, discount percent) for a number of completed stays."""
    for minimum, tier, discount in LOYALTY_TIERS:
        if completed_stays >= minimum:
            return tier, discount
    return "New", 0


@dataclass
class _Aggregate:
    email: str
    first_name: str = ""
    last_name: str = ""
    phone: Optional[str] = None
    country: Optional[str] = None
    latest_booking: Optional[datetime] = None
    total_bookings: int = 0
    completed_stays: int = 0
    total_spent: Decimal = field(default_factory=lambda: Decimal("0.00"))
    last_visit: Optional[datetime] = None

    def add(self, row) -> None:
        self.total_bookings += 1
        self.total_spent += Decimal(row.paid_amount)
        if row.status == BookingStatus.CHECKED_OUT:
            self.completed_stays += 1

        if row.status in VISITED_STATUSES:
            visited = ensure_utc(row.check_in_date)
            if self.last_visit is None or visited > self.last_visit:
                self.last_visit = visited

        # Contact details follow the most recent booking
        created = ensure_utc(row.created_at)
        if self.latest_booking is None or created > self.latest_booking:
            self.latest_booking = created
            self.first_name = row.guest_first_name
            self.last_name = row.guest_last_name
            self.phone = row.guest_phone
            self.country = row.guest_country

    def summary(self) -> CustomerSummary:
        tier, discount = loyalty_for(self.completed_stays)
        return CustomerSummary(
            email=self.email,
            first_name=self.first_name,
            last_name=self.last_name,
            phone=self.phone,
            country=self.country,
            total_bookings=self.total_bookings,
            completed_stays=self.completed_stays,
            total_spent=self.total_spent,
            last_visit=self.last_visit,
            loyalty_tier=tier,
            loyalty_points=self.completed_stays * POINTS_PER_STAY,
            discount_percent=discount,
        )


class CustomerService:
    """Service for guest aggregates built from bookings."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_customers(
        self,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[CustomerSummary], int]:
        """
        List customers, biggest spenders first.

        Args:
            search: Case-insensitive match on email or guest name
            limit: Page size
            offset: Page start

        Returns:
            Tuple of (customers page, total customers matching)
        """
        conditions = []
        if search:
            pattern = f"%{search.lower()}%"
            conditions.append(
                or_(
                    func.lower(Booking.guest_email).like(pattern),
                    func.lower(Booking.guest_first_name).like(pattern),
                    func.lower(Booking.guest_last_name).like(pattern),
                )
            )

        customers = [aggregate.summary() for aggregate in (await self._aggregate(*conditions)).values()]
        customers.sort(key=lambda customer: (-customer.total_spent, customer.email))
        return customers[offset:offset + limit], len(customers)

    async def get_customer(self, email: str) -> Tuple[CustomerSummary, List[Booking]]:
        """
        Get one customer and their bookings, newest first.

        Raises:
            NotFoundError: If no booking uses this email
        """
        email = email.lower()
        aggregates = await self._aggregate(func.lower(Booking.guest_email) == email)
        if email not in aggregates:
            raise NotFoundError("Customer not found", resource_type="customer", resource_id=email)

        result = await self.session.execute(
            select(Booking)
            .where(func.lower(Booking.guest_email) == email)
            .order_by(Booking.created_at.desc())
        )
        return aggregates[email].summary(), list(result.scalars().all())

    async def _aggregate(self, *conditions) -> Dict[str, _Aggregate]:
        result = await self.session.execute(
            select(
                Booking.guest_email,
                Booking.guest_first_name,
                Booking.guest_last_name,
                Booking.guest_phone,
                Booking.guest_country,
                Booking.status,
                Booking.paid_amount,
                Booking.check_in_date,
                Booking.created_at,
            ).where(*conditions)
        )

        aggregates: Dict[str, _Aggregate] = {}
        for row in result.all():
            email = row.guest_email.lower()
            aggregates.setdefault(email, _Aggregate(email=email)).add(row)
        return aggregates
