"""
Payment API endpoints, including the M-Pesa STK push and its callback.
"""

import logging
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.payment import PaymentMethod, PaymentStatus
from ..models.user import User
from ..schemas.payment import (
    MpesaCallbackRequest,
    MpesaPaymentRequest,
    MpesaPaymentResponse,
    PaymentCreateRequest,
    PaymentListResponse,
    PaymentResponse,
    PaymentResultResponse,
)
from ..services.mpesa_service import MpesaClient
from ..services.payment_service import PaymentService
from ..utils.dependencies import get_mpesa_client, get_optional_user, require_capability
from ..utils.exceptions import HotelError
from ..utils.permissions import Capability
from .bookings import build_booking_response

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/payments", tags=["payments"])

CALLBACK_ACK = {"ResultCode": 0, "ResultDesc": "Success"}


@router.post("", response_model=PaymentResultResponse, status_code=status.HTTP_201_CREATED)
async def record_payment(
    payment_data: PaymentCreateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
) -> Any:
    """
    Record a payment against a booking.

    Guests pay from the confirmation page; staff record desk payments. A
    booking that becomes fully paid is confirmed.

    Raises:
        BookingNotFoundError: If the booking does not exist
        BookingStateError: If the booking is cancelled
        OverpaymentError: If the amount exceeds the remaining balance
        OptimisticLockError: If the booking changed concurrently
    """
    result = await PaymentService(db).apply_payment(
        payment_data.booking_id,
        payment_data.amount,
        payment_data.method,
        transaction_id=payment_data.transaction_id,
        notes=payment_data.notes,
        processed_by=current_user,
    )
    return PaymentResultResponse(
        message="Payment recorded successfully",
        payment=PaymentResponse.model_validate(result.payment),
        booking=build_booking_response(result.booking),
        remaining_balance=result.remaining_balance,
    )


@router.get("", response_model=PaymentListResponse)
async def list_payments(
    booking_id: Optional[UUID] = Query(None, alias="bookingId"),
    payment_status: Optional[PaymentStatus] = Query(None, alias="status"),
    method: Optional[PaymentMethod] = Query(None),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_capability(Capability.PAYMENTS_READ)),
) -> Any:
    payments, total, total_amount = await PaymentService(db).list_payments(
        booking_id=booking_id,
        status=payment_status,
        method=method,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    return PaymentListResponse(
        payments=[PaymentResponse.model_validate(payment) for payment in payments],
        total=total,
        total_amount=total_amount,
    )


@router.post("/mpesa", response_model=MpesaPaymentResponse)
async def initiate_mpesa_payment(
    payment_data: MpesaPaymentRequest,
    db: AsyncSession = Depends(get_db),
    mpesa_client: MpesaClient = Depends(get_mpesa_client),
) -> Any:
    """
    Send an STK push to the guest's phone.

    The payment is recorded as PENDING and settled by the callback.

    Raises:
        OverpaymentError: If the amount exceeds the remaining balance
        PaymentGatewayError: If Safaricom rejects the push
    """
    payment, response = await PaymentService(db, mpesa_client).initiate_mpesa_payment(
        payment_data.booking_id,
        payment_data.phone_number,
        payment_data.amount,
    )
    return MpesaPaymentResponse(
        message="STK push sent. Check your phone to complete the payment",
        checkout_request_id=payment.checkout_request_id,
        merchant_request_id=response.get("MerchantRequestID"),
        customer_message=response.get("CustomerMessage"),
        payment=PaymentResponse.model_validate(payment),
    )


@router.post("/mpesa/callback")
async def mpesa_callback(
    callback: MpesaCallbackRequest,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Safaricom result callback.

    Always acknowledged; Safaricom only needs to know the callback arrived.
    """
    stk_callback = callback.Body.stkCallback
    logger.info(
        f"M-Pesa callback {stk_callback.CheckoutRequestID}: "
        f"{stk_callback.ResultCode} {stk_callback.ResultDesc}"
    )
    try:
        await PaymentService(db).handle_mpesa_callback(stk_callback)
    except HotelError as e:
        logger.error(f"M-Pesa callback {stk_callback.CheckoutRequestID} not applied: {e.message}")
    return CALLBACK_ACK
