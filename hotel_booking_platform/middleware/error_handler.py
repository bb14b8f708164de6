"""
Error handling for the Hotel Booking Platform.

Domain errors are rendered by ``hotel_error_handler`` (registered as a
FastAPI exception handler); anything that escapes the routing layer is
caught by ``ErrorHandlerMiddleware``. Both produce the same body shape.
"""

import logging
import traceback
from datetime import datetime, timezone
from typing import Dict, Optional
from uuid import uuid4

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from sqlalchemy.exc import IntegrityError, OperationalError, TimeoutError as SQLTimeoutError

from ..utils.exceptions import (
    ConcurrencyError,
    ErrorCode,
    ExternalServiceError,
    HotelError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_MAP: Dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_BOOKING_STATE: status.HTTP_409_CONFLICT,
    ErrorCode.ROOM_NOT_AVAILABLE: status.HTTP_409_CONFLICT,
    ErrorCode.OUTSTANDING_BALANCE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.OVERPAYMENT: status.HTTP_400_BAD_REQUEST,
    ErrorCode.CONCURRENCY_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.OPTIMISTIC_LOCK_FAILURE: status.HTTP_409_CONFLICT,
    ErrorCode.RATE_LIMIT_EXCEEDED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorCode.EXTERNAL_SERVICE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.PAYMENT_GATEWAY_ERROR: status.HTTP_502_BAD_GATEWAY,
}


def status_code_for(exc: HotelError) -> int:
    """Map error codes to HTTP status codes."""
    return STATUS_MAP.get(exc.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def render_error(exc: HotelError, error_id: Optional[str] = None, status_code: Optional[int] = None) -> JSONResponse:
    """Build the JSON error response for a domain error."""
    headers = {}
    if exc.retry_after:
        headers["Retry-After"] = str(exc.retry_after)
    if exc.error_code == ErrorCode.UNAUTHORIZED:
        headers["WWW-Authenticate"] = "Bearer"

    return JSONResponse(
        status_code=status_code or status_code_for(exc),
        content={
            "error": exc.to_dict(),
            "error_id": error_id or str(uuid4()),
            "timestamp": _timestamp(),
        },
        headers=headers,
    )


def _log_domain_error(request: Request, exc: HotelError, error_id: str) -> None:
    context = {
        "error_id": error_id,
        "error_code": exc.error_code.value,
        "method": request.method,
        "path": request.url.path,
        "details": exc.details,
    }
    if isinstance(exc, ExternalServiceError):
        logger.error(f"System error [{error_id}]: {exc.message}", extra=context)
    elif isinstance(exc, ConcurrencyError):
        logger.warning(f"Concurrency conflict [{error_id}]: {exc.message}", extra=context)
    else:
        logger.info(f"Client error [{error_id}]: {exc.message}", extra=context)


async def hotel_error_handler(request: Request, exc: HotelError) -> JSONResponse:
    """FastAPI exception handler for every ``HotelError``."""
    error_id = str(uuid4())
    _log_domain_error(request, exc, error_id)
    return render_error(exc, error_id)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render FastAPI request validation failures in the platform's error shape."""
    field_errors: Dict[str, list] = {}
    for error in exc.errors():
        field_path = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        field_errors.setdefault(field_path or "body", []).append(error["msg"])

    first_field, messages = next(iter(field_errors.items()), ("body", ["Invalid request"]))
    error = ValidationError(
        f"Invalid value for {first_field}: {messages[0]}",
        field_errors=field_errors,
    )
    return render_error(error, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Last line of defence for errors that escape the routing layer."""

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next):
        error_id = str(uuid4())

        try:
            return await call_next(request)
        except Exception as exc:
            return self._handle_exception(request, exc, error_id)

    def _handle_exception(self, request: Request, exc: Exception, error_id: str) -> JSONResponse:
        if isinstance(exc, HotelError):
            _log_domain_error(request, exc, error_id)
            return render_error(exc, error_id)

        if isinstance(exc, IntegrityError):
            logger.warning(
                f"Integrity error [{error_id}]: {exc.orig}",
                extra={"error_id": error_id, "path": request.url.path}
            )
            return self._handle_integrity_error(exc, error_id)

        if isinstance(exc, (OperationalError, SQLTimeoutError)):
            logger.error(
                f"Database error [{error_id}]: {type(exc).__name__}",
                extra={"error_id": error_id, "path": request.url.path},
                exc_info=exc
            )
            error = ExternalServiceError("database", "Database service temporarily unavailable")
            return render_error(error, error_id, status.HTTP_503_SERVICE_UNAVAILABLE)

        logger.error(
            f"Unexpected error [{error_id}]: {exc}",
            extra={
                "error_id": error_id,
                "error_type": type(exc).__name__,
                "method": request.method,
                "path": request.url.path,
            },
            exc_info=exc
        )
        error = HotelError("Internal server error", error_code=ErrorCode.INTERNAL_ERROR)
        response = render_error(error, error_id, status.HTTP_500_INTERNAL_SERVER_ERROR)
        if self.debug:
            response = JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": error.to_dict(),
                    "error_id": error_id,
                    "timestamp": _timestamp(),
                    "debug": {
                        "exception": str(exc),
                        "traceback": traceback.format_exception(type(exc), exc, exc.__traceback__),
                    },
                },
            )
        return response

    def _handle_integrity_error(self, exc: IntegrityError, error_id: str) -> JSONResponse:
        """Handle database integrity constraint violations."""
        error_message = str(exc.orig).lower()

        if "unique" in error_message:
            error = ValidationError(
                "A record with this information already exists",
                details={"constraint_type": "unique"}
            )
        elif "foreign key" in error_message:
            error = ValidationError(
                "Referenced resource does not exist",
                details={"constraint_type": "foreign_key"}
            )
        elif "not null" in error_message:
            error = ValidationError(
                "Required field is missing",
                details={"constraint_type": "not_null"}
            )
        else:
            error = ValidationError(
                "Data integrity constraint violation",
                details={"constraint_type": "check"}
            )

        return render_error(error, error_id, status.HTTP_409_CONFLICT)


__all__ = [
    "ErrorHandlerMiddleware",
    "hotel_error_handler",
    "request_validation_handler",
    "render_error",
    "status_code_for",
]
