"""
Pydantic schemas for payments and the M-Pesa integration.
"""

import re
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from ..models.payment import PaymentMethod, PaymentStatus
from .booking import BookingResponse

# Safaricom numbers, local (07xx/01xx) or international (2547xx/2541xx)
MPESA_PHONE_PATTERN = r"^(254|0)[17]\d{8}$"


class PaymentCreateRequest(BaseModel):
    """Schema for recording a payment against a booking."""

    booking_id: UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    method: PaymentMethod
    transaction_id: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=1000)


class PaymentResponse(BaseModel):
    """Schema for payment responses."""

    id: UUID
    booking_id: UUID
    amount: Decimal
    method: PaymentMethod
    status: PaymentStatus
    transaction_id: Optional[str] = None
    checkout_request_id: Optional[str] = None
    phone_number: Optional[str] = None
    notes: Optional[str] = None
    processed_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class PaymentResultResponse(BaseModel):
    """Result of a payment application."""

    message: str
    payment: PaymentResponse
    booking: BookingResponse
    remaining_balance: Decimal


class PaymentListResponse(BaseModel):
    """Schema for payment list responses."""

    payments: List[PaymentResponse]
    total: int
    total_amount: Decimal


class MpesaPaymentRequest(BaseModel):
    """Schema for initiating an STK push."""

    booking_id: UUID
    phone_number: str
    amount: Decimal = Field(..., gt=0)

    @field_validator('phone_number')
    @classmethod
    def validate_phone_number(cls, v: str) -> str:
        """Accept Safaricom numbers with or without separators."""
        cleaned = re.sub(r"[\s\-+]", "", v)
        if not re.match(MPESA_PHONE_PATTERN, cleaned):
            raise ValueError("Invalid phone number format. Use 07XXXXXXXX or 2547XXXXXXXX")
        return cleaned


class MpesaPaymentResponse(BaseModel):
    """Schema for a started STK push."""

    message: str
    checkout_request_id: str
    merchant_request_id: Optional[str] = None
    customer_message: Optional[str] = None
    payment: PaymentResponse


class MpesaCallbackItem(BaseModel):
    Name: str
    Value: Optional[Any] = None


class MpesaCallbackMetadata(BaseModel):
    Item: List[MpesaCallbackItem] = []


class MpesaStkCallback(BaseModel):
    MerchantRequestID: Optional[str] = None
    CheckoutRequestID: str
    ResultCode: int
    ResultDesc: Optional[str] = None
    CallbackMetadata: Optional[MpesaCallbackMetadata] = None

    def metadata(self) -> Dict[str, Any]:
        """Callback metadata items as a plain dict."""
        if self.CallbackMetadata is None:
            return {}
        return {item.Name: item.Value for item in self.CallbackMetadata.Item}


class MpesaCallbackBody(BaseModel):
    stkCallback: MpesaStkCallback


class MpesaCallbackRequest(BaseModel):
    """Payload Safaricom posts to the callback URL."""

    Body: MpesaCallbackBody
