"""Middleware components for the Hotel Booking Platform."""

from .error_handler import ErrorHandlerMiddleware, hotel_error_handler, request_validation_handler
from .rate_limiter import RateLimiterMiddleware
from .logging import LoggingMiddleware

__all__ = [
    "ErrorHandlerMiddleware",
    "RateLimiterMiddleware",
    "LoggingMiddleware",
    "hotel_error_handler",
    "request_validation_handler",
]
