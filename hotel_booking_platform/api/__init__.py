"""API endpoints for the Hotel Booking Platform."""

from fastapi import APIRouter
from .auth import router as auth_router
from .users import router as users_router
from .admin import router as admin_router
from .rooms import router as rooms_router
from .bookings import router as bookings_router
from .payments import router as payments_router
from .customers import router as customers_router
from .dashboard import router as dashboard_router
from .cron import router as cron_router

# Create main API router
api_router = APIRouter(prefix="/api/v1")

# Include all routers
api_router.include_router(auth_router)
api_router.include_router(users_router)
api_router.include_router(admin_router)
api_router.include_router(rooms_router)
api_router.include_router(bookings_router)
api_router.include_router(payments_router)
api_router.include_router(customers_router)
api_router.include_router(dashboard_router)
api_router.include_router(cron_router)

__all__ = ["api_router"]
