"""
Payment reconciliation.

Payments are append-only. A booking's paid amount is the running sum of its
completed payments and may never exceed its total. Crediting a payment bumps
the booking's version, so two concurrent payments computed from the same
balance cannot both be accepted.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.booking import Booking, BookingStatus
from ..models.payment import Payment, PaymentMethod, PaymentStatus
from ..models.user import User
from ..schemas.payment import MpesaStkCallback
from ..utils.clock import ensure_utc, utcnow
from ..utils.exceptions import BookingStateError, OverpaymentError, ValidationError
from .activity_service import ActivityService
from .booking_service import BookingService, commit_booking_changes
from .mpesa_service import MpesaClient, format_phone_number

logger = logging.getLogger(__name__)


@dataclass
class PaymentResult:
    """Outcome of applying a payment."""

    payment: Payment
    booking: Booking
    remaining_balance: Decimal


def ensure_payment_acceptable(booking: Booking, amount: Decimal) -> None:
    """
    Check that a booking can take a payment of ``amount``.

    Raises:
        ValidationError: If the amount is not positive
        BookingStateError: If the booking is cancelled
        OverpaymentError: If the amount exceeds the remaining balance
    """
    if amount <= 0:
        raise ValidationError(
            "Payment amount must be greater than zero",
            field_errors={"amount": ["must be greater than zero"]},
        )
    if booking.status == BookingStatus.CANCELLED:
        raise BookingStateError(
            "Cannot record a payment for a cancelled booking",
            current_status=booking.status.value,
        )

    remaining = booking.balance
    if amount > remaining:
        raise OverpaymentError(amount, remaining)


def credit_booking(booking: Booking, amount: Decimal, method: PaymentMethod, user_id: Optional[UUID]) -> None:
    """Add a settled amount to a booking and promote it when fully paid."""
    booking.paid_amount = Decimal(booking.paid_amount) + amount
    booking.payment_method = method
    if user_id is not None:
        booking.modified_by_id = user_id
    if booking.status == BookingStatus.PENDING and booking.paid_amount >= booking.total_amount:
        booking.status = BookingStatus.CONFIRMED
        logger.info(f"Booking {booking.booking_number} fully paid and confirmed")


class PaymentService:
    """Service for recording payments and settling gateway callbacks."""

    def __init__(self, session: AsyncSession, mpesa_client: Optional[MpesaClient] = None):
        self.session = session
        self.bookings = BookingService(session)
        self.activity = ActivityService(session)
        self.mpesa_client = mpesa_client

    async def apply_payment(
        self,
        booking_id: UUID,
        amount: Decimal,
        method: PaymentMethod,
        transaction_id: Optional[str] = None,
        notes: Optional[str] = None,
        processed_by: Optional[User] = None,
        now: Optional[datetime] = None,
    ) -> PaymentResult:
        """
        Record a completed payment against a booking.

        Args:
            booking_id: Booking being paid
            amount: Amount paid, in the booking's currency
            method: How the guest paid
            transaction_id: External reference, if any
            notes: Free-text note
            processed_by: Staff member recording it, None for guests
            now: Reference time

        Returns:
            The payment, the updated booking and the remaining balance

        Raises:
            BookingNotFoundError: If the booking does not exist
            BookingStateError: If the booking is cancelled
            OverpaymentError: If the amount exceeds the remaining balance
            OptimisticLockError: If the booking changed concurrently
        """
        now = now or utcnow()
        amount = Decimal(amount)
        booking = await self.bookings.get_booking(booking_id)
        ensure_payment_acceptable(booking, amount)

        user_id = processed_by.id if processed_by else None
        payment = Payment(
            id=uuid4(),
            booking_id=booking.id,
            amount=amount,
            method=method,
            status=PaymentStatus.COMPLETED,
            transaction_id=transaction_id or None,
            notes=notes or None,
            processed_at=now,
            processed_by_id=user_id,
        )
        self.session.add(payment)
        credit_booking(booking, amount, method, user_id)

        self.activity.record(
            "PAYMENT_RECEIVED", "Payment", payment.id,
            {
                "booking_number": booking.booking_number,
                "amount": amount,
                "method": method.value,
                "transaction_id": transaction_id,
            },
            user_id=user_id,
        )
        await commit_booking_changes(self.session, booking.id)

        booking = await self.bookings.get_booking(booking.id)
        logger.info(f"Payment of {amount} recorded for {booking.booking_number}, balance {booking.balance}")
        return PaymentResult(payment=payment, booking=booking, remaining_balance=booking.balance)

    async def list_payments(
        self,
        booking_id: Optional[UUID] = None,
        status: Optional[PaymentStatus] = None,
        method: Optional[PaymentMethod] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Tuple[List[Payment], int, Decimal]:
        """
        List payments, newest first.

        Returns:
            Tuple of (payments page, total matching, sum of matching amounts)
        """
        conditions = []
        if booking_id is not None:
            conditions.append(Payment.booking_id == booking_id)
        if status is not None:
            conditions.append(Payment.status == status)
        if method is not None:
            conditions.append(Payment.method == method)
        if start_date is not None:
            conditions.append(Payment.created_at >= ensure_utc(start_date))
        if end_date is not None:
            conditions.append(Payment.created_at <= ensure_utc(end_date))

        totals = await self.session.execute(
            select(func.count(Payment.id), func.coalesce(func.sum(Payment.amount), 0)).where(*conditions)
        )
        total, total_amount = totals.one()

        result = await self.session.execute(
            select(Payment)
            .where(*conditions)
            .order_by(Payment.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), total, Decimal(str(total_amount))

    async def initiate_mpesa_payment(
        self,
        booking_id: UUID,
        phone_number: str,
        amount: Decimal,
        now: Optional[datetime] = None,
    ) -> Tuple[Payment, dict]:
        """
        Start an STK push and record it as a pending payment.

        The booking is only credited when the gateway's callback reports
        success.

        Raises:
            PaymentGatewayError: If the gateway rejects the push
        """
        if self.mpesa_client is None:
            self.mpesa_client = MpesaClient()

        amount = Decimal(amount)
        booking = await self.bookings.get_booking(booking_id)
        ensure_payment_acceptable(booking, amount)

        response = await self.mpesa_client.stk_push(
            phone_number=phone_number,
            amount=amount,
            account_reference=booking.booking_number,
            transaction_desc=f"Payment for booking {booking.booking_number}",
            now=now,
        )

        payment = Payment(
            id=uuid4(),
            booking_id=booking.id,
            amount=amount,
            method=PaymentMethod.MPESA,
            status=PaymentStatus.PENDING,
            checkout_request_id=response["CheckoutRequestID"],
            phone_number=format_phone_number(phone_number),
            notes=response.get("CustomerMessage"),
        )
        self.session.add(payment)
        self.activity.record(
            "MPESA_PAYMENT_INITIATED", "Payment", payment.id,
            {
                "booking_number": booking.booking_number,
                "amount": amount,
                "checkout_request_id": payment.checkout_request_id,
            },
        )
        await self.session.commit()
        return payment, response

    async def handle_mpesa_callback(
        self,
        callback: MpesaStkCallback,
        now: Optional[datetime] = None,
    ) -> Optional[Payment]:
        """
        Settle a pending M-Pesa payment from the gateway callback.

        Unknown checkout ids and payments that are no longer pending are
        ignored, so repeated callbacks are harmless. A successful result is
        credited through the same checks as any other payment; if the booking
        can no longer take it the payment is marked FAILED with the receipt
        number kept for refund.

        Returns:
            The settled payment, or None if the callback was ignored
        """
        now = now or utcnow()
        result = await self.session.execute(
            select(Payment).where(Payment.checkout_request_id == callback.CheckoutRequestID)
        )
        payment = result.scalar_one_or_none()

        if payment is None:
            logger.warning(f"M-Pesa callback for unknown checkout request {callback.CheckoutRequestID}")
            return None
        if payment.status != PaymentStatus.PENDING:
            logger.info(f"Ignoring repeated M-Pesa callback for {callback.CheckoutRequestID}")
            return None

        if callback.ResultCode != 0:
            payment.status = PaymentStatus.FAILED
            payment.notes = callback.ResultDesc
            payment.processed_at = now
            logger.info(f"M-Pesa payment {callback.CheckoutRequestID} failed: {callback.ResultDesc}")
            await self.session.commit()
            return payment

        metadata = callback.metadata()
        booking = await self.bookings.get_booking(payment.booking_id)
        try:
            ensure_payment_acceptable(booking, Decimal(payment.amount))
        except (BookingStateError, OverpaymentError) as e:
            # The guest has been charged; keep the receipt so staff can refund it
            received = metadata.get("Amount", payment.amount)
            payment.status = PaymentStatus.FAILED
            payment.transaction_id = metadata.get("MpesaReceiptNumber")
            payment.notes = f"Received {received} but not applied: {e.message}"
            payment.processed_at = now
            self.activity.record(
                "MPESA_PAYMENT_UNAPPLIED", "Payment", payment.id,
                {
                    "booking_number": booking.booking_number,
                    "amount": received,
                    "transaction_id": payment.transaction_id,
                    "reason": e.message,
                },
            )
            logger.warning(f"M-Pesa payment {callback.CheckoutRequestID} could not be applied: {e.message}")
            await self.session.commit()
            return payment

        payment.status = PaymentStatus.COMPLETED
        payment.transaction_id = metadata.get("MpesaReceiptNumber")
        payment.processed_at = now
        credit_booking(booking, Decimal(payment.amount), PaymentMethod.MPESA, None)

        self.activity.record(
            "PAYMENT_RECEIVED", "Payment", payment.id,
            {
                "booking_number": booking.booking_number,
                "amount": payment.amount,
                "method": PaymentMethod.MPESA.value,
                "transaction_id": payment.transaction_id,
            },
        )
        await commit_booking_changes(self.session, booking.id)
        return payment
