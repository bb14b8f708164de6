"""
Scheduled maintenance endpoints, called by an external scheduler.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request

from ..services.maintenance_service import run_sweep
from ..utils.dependencies import verify_cron_secret

router = APIRouter(prefix="/cron", tags=["cron"], dependencies=[Depends(verify_cron_secret)])


@router.get("/auto-checkout")
async def auto_checkout(request: Request) -> Any:
    """Check out every stay due by noon today, hotel time."""
    report = await run_sweep(request.app.state.db, "auto_checkout")
    return report.to_dict()


@router.get("/cancel-expired-bookings")
async def cancel_expired_bookings(request: Request) -> Any:
    """Cancel pending bookings whose check-in passed without confirmation."""
    report = await run_sweep(request.app.state.db, "cancel_expired")
    return report.to_dict()
