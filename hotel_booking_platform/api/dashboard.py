"""
Administrator dashboard endpoint.
"""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.user import User
from ..schemas.dashboard import DashboardStats
from ..services.dashboard_service import DashboardService
from ..utils.dependencies import require_capability
from ..utils.permissions import Capability

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/stats", response_model=DashboardStats)
async def get_dashboard_stats(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_capability(Capability.DASHBOARD_READ)),
) -> Any:
    """Bookings, revenue, rooms and occupancy at a glance."""
    return await DashboardService(db).get_stats()
