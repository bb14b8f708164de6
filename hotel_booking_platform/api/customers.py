"""
Customer directory endpoints (staff).
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.user import User
from ..schemas.dashboard import CustomerDetailResponse, CustomerListResponse
from ..services.customer_service import CustomerService
from ..utils.dependencies import require_capability
from ..utils.permissions import Capability
from .bookings import build_booking_response

router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("", response_model=CustomerListResponse)
async def list_customers(
    search: Optional[str] = Query(None, max_length=100),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_capability(Capability.CUSTOMERS_READ)),
) -> Any:
    """Guests aggregated by email with their loyalty standing."""
    customers, total = await CustomerService(db).list_customers(search, limit, offset)
    return CustomerListResponse(customers=customers, total=total)


@router.get("/{email}", response_model=CustomerDetailResponse)
async def get_customer(
    email: str,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_capability(Capability.CUSTOMERS_READ)),
) -> Any:
    customer, bookings = await CustomerService(db).get_customer(email)
    return CustomerDetailResponse(
        customer=customer,
        bookings=[build_booking_response(booking) for booking in bookings],
    )
