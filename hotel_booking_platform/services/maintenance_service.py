"""
Scheduled maintenance sweeps.

Each sweep selects its candidates up front, then processes them one at a
time, each in its own session and transaction. A failing booking is logged
and reported; the sweep moves on to the next one.
"""

import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import select

from ..database import DatabaseManager
from ..models.booking import Booking, BookingStatus
from ..schemas.booking import SweepItemResult, SweepReport
from ..utils.clock import noon_today, utcnow
from .booking_service import BookingService

logger = logging.getLogger(__name__)

AUTO_CHECKOUT_STATUSES = (BookingStatus.CHECKED_IN, BookingStatus.CONFIRMED)

Transition = Callable[[BookingService, UUID], Awaitable[Booking]]


class MaintenanceService:
    """Runs the auto-checkout and expired-booking sweeps."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def auto_checkout(self, now: Optional[datetime] = None) -> SweepReport:
        """
        Check out every stay due by noon today.

        CHECKED_IN and CONFIRMED bookings whose check-out is at or before
        noon (hotel time) are checked out and their rooms sent to cleaning.
        Outstanding balances do not block this sweep; they are logged and
        left on the booking for follow-up.
        """
        now = now or utcnow()
        cutoff = noon_today(now)
        candidates = await self._candidates(
            Booking.status.in_(AUTO_CHECKOUT_STATUSES),
            Booking.check_out_date <= cutoff,
        )
        logger.info(f"Auto-checkout: {len(candidates)} bookings due by {cutoff.isoformat()}")

        async def transition(service: BookingService, booking_id: UUID) -> Booking:
            return await service.check_out(booking_id, force=True, now=now)

        results = await self._process(candidates, transition, BookingStatus.CHECKED_OUT)
        return self._report("Auto-checkout", "checked out", results, now)

    async def cancel_expired_bookings(self, now: Optional[datetime] = None) -> SweepReport:
        """Cancel PENDING bookings whose check-in passed before noon today."""
        now = now or utcnow()
        cutoff = noon_today(now)
        candidates = await self._candidates(
            Booking.status == BookingStatus.PENDING,
            Booking.check_in_date < cutoff,
        )
        logger.info(f"Cancel-expired: {len(candidates)} unconfirmed bookings past check-in")

        async def transition(service: BookingService, booking_id: UUID) -> Booking:
            return await service.cancel_booking(
                booking_id, reason="Check-in date passed without confirmation", now=now
            )

        results = await self._process(candidates, transition, BookingStatus.CANCELLED)
        return self._report("Cancel expired bookings", "cancelled", results, now)

    async def _candidates(self, *conditions) -> List[Tuple[UUID, str]]:
        async with self.db.session() as session:
            result = await session.execute(
                select(Booking.id, Booking.booking_number)
                .where(*conditions)
                .order_by(Booking.check_in_date)
            )
            return [(row.id, row.booking_number) for row in result.all()]

    async def _process(
        self,
        candidates: Sequence[Tuple[UUID, str]],
        transition: Transition,
        target: BookingStatus,
    ) -> List[SweepItemResult]:
        results = []
        for booking_id, booking_number in candidates:
            try:
                async with self.db.session() as session:
                    await transition(BookingService(session), booking_id)
                results.append(SweepItemResult(booking_number=booking_number, status=target.value))
            except Exception as e:
                logger.error(f"Sweep failed for booking {booking_number}: {e}", exc_info=True)
                results.append(SweepItemResult(booking_number=booking_number, status="FAILED", error=str(e)))
        return results

    def _report(self, name: str, verb: str, results: List[SweepItemResult], now: datetime) -> SweepReport:
        processed = sum(1 for item in results if item.error is None)
        failed = len(results) - processed
        report = SweepReport(
            message=f"{name} completed: {processed} of {len(results)} bookings {verb}",
            processed=processed,
            failed=failed,
            total=len(results),
            timestamp=now,
            results=results,
        )
        if failed:
            logger.warning(f"{name}: {failed} bookings failed")
        return report


async def run_sweep(db: DatabaseManager, sweep: str, now: Optional[datetime] = None) -> SweepReport:
    """Run a sweep by name; used by the cron endpoints and Celery tasks."""
    service = MaintenanceService(db)
    if sweep == "auto_checkout":
        return await service.auto_checkout(now)
    if sweep == "cancel_expired":
        return await service.cancel_expired_bookings(now)
    raise ValueError(f"Unknown sweep: {sweep}")
