"""FastAPI application setup and configuration."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .api import api_router
from .cache import RedisCache
from .config import Settings, get_settings
from .database import DatabaseManager
from .middleware import (
    ErrorHandlerMiddleware,
    LoggingMiddleware,
    RateLimiterMiddleware,
    hotel_error_handler,
    request_validation_handler,
)
from .utils.exceptions import HotelError
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

DESCRIPTION = """
## Hotel Booking Platform

Back office and booking API for a single hotel.

### Key Features

* **Availability**: Rooms free for a stay, grouped by room type and priced for the guest
* **Dual-currency pricing**: KES rates for East African guests, USD for everyone else
* **Booking lifecycle**: Confirmation, check-in, check-out and cancellation with room status cascades
* **Payments**: Desk payments and M-Pesa STK push, never exceeding the booking total
* **Scheduled sweeps**: Noon auto-checkout and cancellation of unconfirmed bookings

### Authentication

Staff endpoints accept `Authorization: Bearer <token>` or the `token` cookie set at login.
"""


def create_app(
    settings: Optional[Settings] = None,
    db_manager: Optional[DatabaseManager] = None,
    cache: Optional[RedisCache] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to use, the cached environment settings by default
        db_manager: Pre-initialized database manager; one is opened in the
            lifespan when omitted
        cache: Pre-initialized Redis cache; one is opened in the lifespan
            when omitted

    Returns:
        The configured FastAPI application
    """
    settings = settings or get_settings()

    setup_logging(
        log_level="DEBUG" if settings.debug else settings.log_level,
        log_file="logs/hotel.log" if settings.environment == "production" else None,
        enable_json_logging=settings.enable_json_logging or settings.environment == "production",
        environment=settings.environment,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Open the database and cache for the application's lifetime."""
        logger.info("Starting Hotel Booking Platform")
        owns_db = app.state.db is None
        owns_cache = app.state.cache is None

        if owns_db:
            app.state.db = DatabaseManager(settings)
            await app.state.db.initialize()
        if owns_cache:
            app.state.cache = RedisCache(settings)
            await app.state.cache.initialize()

        yield

        logger.info("Shutting down Hotel Booking Platform")
        if owns_cache:
            await app.state.cache.close()
            app.state.cache = None
        if owns_db:
            await app.state.db.close()
            app.state.db = None

    app = FastAPI(
        title="Hotel Booking Platform API",
        description=DESCRIPTION,
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=[
            {"name": "authentication", "description": "Staff login, signup and profile"},
            {"name": "user-management", "description": "Staff account administration"},
            {"name": "admin", "description": "Signup approval and audit trail"},
            {"name": "rooms", "description": "Rooms, room types and availability"},
            {"name": "bookings", "description": "Reservations and their lifecycle"},
            {"name": "payments", "description": "Payments and M-Pesa"},
            {"name": "customers", "description": "Guest directory and loyalty"},
            {"name": "dashboard", "description": "Operational overview"},
            {"name": "cron", "description": "Scheduled maintenance sweeps"},
            {"name": "health", "description": "Service health"},
        ],
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.db = db_manager
    app.state.cache = cache

    app.add_exception_handler(HotelError, hotel_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # Added innermost first; logging ends up outermost

    if settings.debug:
        # Development: Allow all origins for easier development
        cors_origins = ["*"]
        cors_allow_credentials = False
    else:
        cors_origins = settings.cors_origins
        cors_allow_credentials = settings.cors_allow_credentials

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        expose_headers=settings.cors_expose_headers,
    )

    if settings.enable_rate_limiting:
        app.add_middleware(
            RateLimiterMiddleware,
            default_limit=settings.default_rate_limit,
            default_window=settings.default_rate_window,
            burst_limit=settings.burst_rate_limit,
            burst_window=settings.burst_rate_window,
        )

    app.add_middleware(ErrorHandlerMiddleware, debug=settings.debug)

    app.add_middleware(
        LoggingMiddleware,
        log_requests=settings.enable_request_logging,
        log_responses=settings.enable_request_logging,
    )

    app.include_router(api_router)

    @app.get("/", tags=["health"])
    async def root():
        """Basic information about the API."""
        return {
            "message": "Hotel Booking Platform API",
            "version": "1.0.0",
            "docs_url": "/docs",
            "status": "operational",
        }

    @app.get("/health", tags=["health"])
    async def health_check():
        """Uptime probe, including whether the cache is reachable."""
        cache_state = app.state.cache
        return {
            "status": "healthy",
            "service": "hotel-booking-platform",
            "cache": "connected" if cache_state is not None and cache_state.available else "unavailable",
        }

    return app


app = create_app()
