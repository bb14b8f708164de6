"""
Custom exceptions for the Hotel Booking Platform.
"""

from decimal import Decimal
from typing import Any, Dict, Optional, List
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for the platform."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    CONFLICT = "CONFLICT"

    # Business logic errors
    INVALID_BOOKING_STATE = "INVALID_BOOKING_STATE"
    ROOM_NOT_AVAILABLE = "ROOM_NOT_AVAILABLE"
    OUTSTANDING_BALANCE = "OUTSTANDING_BALANCE"
    OVERPAYMENT = "OVERPAYMENT"

    # Concurrency errors
    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"
    OPTIMISTIC_LOCK_FAILURE = "OPTIMISTIC_LOCK_FAILURE"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # External service errors
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    PAYMENT_GATEWAY_ERROR = "PAYMENT_GATEWAY_ERROR"


def _money(value: Decimal) -> str:
    return f"{Decimal(value):.2f}"


class HotelError(Exception):
    """Base exception class for the hotel platform."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
        retry_after: Optional[int] = None
    ):
        """Initialize the exception with comprehensive error information."""
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.suggestions = suggestions or []
        self.retry_after = retry_after
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result = {
            "error_code": self.error_code.value,
            "message": self.message,
        }

        if self.details:
            result["details"] = self.details

        if self.suggestions:
            result["suggestions"] = self.suggestions

        if self.retry_after:
            result["retry_after"] = self.retry_after

        return result


class ValidationError(HotelError):
    """Exception raised for validation errors."""

    def __init__(
        self,
        message: str,
        field_errors: Optional[Dict[str, List[str]]] = None,
        details: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        merged = dict(details or {})
        if field_errors:
            merged["field_errors"] = field_errors
        super().__init__(
            message,
            error_code=ErrorCode.VALIDATION_ERROR,
            details=merged,
            **kwargs
        )
        self.field_errors = field_errors or {}


class NotFoundError(HotelError):
    """Base exception for resource not found errors."""

    def __init__(self, message: str, resource_type: Optional[str] = None, resource_id: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id} if resource_type else None,
            **kwargs
        )


class UserNotFoundError(NotFoundError):
    """Exception raised when a user is not found."""

    def __init__(self, user_id: str, **kwargs):
        super().__init__(
            "User not found",
            resource_type="user",
            resource_id=str(user_id),
            **kwargs
        )


class BookingNotFoundError(NotFoundError):
    """Exception raised when a booking is not found."""

    def __init__(self, booking_id: str, **kwargs):
        super().__init__(
            "Booking not found",
            resource_type="booking",
            resource_id=str(booking_id),
            suggestions=["Check the booking ID or booking number"],
            **kwargs
        )


class RoomNotFoundError(NotFoundError):
    """Exception raised when a room is not found."""

    def __init__(self, room_id: str, **kwargs):
        super().__init__(
            f"Room {room_id} not found",
            resource_type="room",
            resource_id=str(room_id),
            **kwargs
        )


class RoomTypeNotFoundError(NotFoundError):
    """Exception raised when a room type is not found."""

    def __init__(self, room_type_id: str, **kwargs):
        super().__init__(
            f"Room type {room_type_id} not found",
            resource_type="room_type",
            resource_id=str(room_type_id),
            **kwargs
        )


class PaymentNotFoundError(NotFoundError):
    """Exception raised when a payment is not found."""

    def __init__(self, reference: str, **kwargs):
        super().__init__(
            "Payment not found",
            resource_type="payment",
            resource_id=str(reference),
            **kwargs
        )


class AuthenticationError(HotelError):
    """Exception raised for authentication failures."""

    def __init__(self, message: str = "Authentication required", **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.UNAUTHORIZED,
            suggestions=["Login again"],
            **kwargs
        )


class AuthorizationError(HotelError):
    """Exception raised for authorization failures."""

    def __init__(self, message: str = "Insufficient permissions", required_permission: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.FORBIDDEN,
            details={"required_permission": required_permission} if required_permission else None,
            **kwargs
        )


class ConflictError(HotelError):
    """Exception raised when a resource already exists or clashes with another."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code=ErrorCode.CONFLICT, **kwargs)


class BusinessLogicError(HotelError):
    """Base exception for business logic violations."""
    pass


class BookingStateError(BusinessLogicError):
    """Raised when a lifecycle guard rejects a transition."""

    def __init__(self, message: str, current_status: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.INVALID_BOOKING_STATE,
            details={"current_status": current_status} if current_status else None,
            **kwargs
        )


class RoomUnavailableError(BusinessLogicError):
    """Raised when a room is not free for the requested stay."""

    def __init__(self, room_id: str, message: Optional[str] = None, **kwargs):
        super().__init__(
            message or f"Room {room_id} is not available for selected dates",
            error_code=ErrorCode.ROOM_NOT_AVAILABLE,
            details={"room_id": str(room_id)},
            suggestions=["Choose different dates", "Choose a different room"],
            **kwargs
        )


class OutstandingBalanceError(BusinessLogicError):
    """Raised when a guest tries to check out with an unpaid balance."""

    def __init__(self, balance: Decimal, currency: str = "KES", **kwargs):
        super().__init__(
            f"Outstanding balance of {currency} {_money(balance)} must be paid before check-out",
            error_code=ErrorCode.OUTSTANDING_BALANCE,
            details={"balance": float(balance)},
            **kwargs
        )
        self.balance = Decimal(balance)


class OverpaymentError(BusinessLogicError):
    """Raised when a payment would push the paid amount past the total."""

    def __init__(self, amount: Decimal, remaining_balance: Decimal, **kwargs):
        super().__init__(
            f"Payment amount ({_money(amount)}) exceeds remaining balance ({_money(remaining_balance)})",
            error_code=ErrorCode.OVERPAYMENT,
            details={"remaining_balance": float(remaining_balance)},
            **kwargs
        )
        self.remaining_balance = Decimal(remaining_balance)


class ConcurrencyError(HotelError):
    """Exception raised for concurrency-related issues."""

    def __init__(self, message: str, retry_after: int = 1, error_code: ErrorCode = ErrorCode.CONCURRENCY_CONFLICT, **kwargs):
        super().__init__(
            message,
            error_code=error_code,
            retry_after=retry_after,
            suggestions=["Please try again"],
            **kwargs
        )


class OptimisticLockError(ConcurrencyError):
    """Exception raised when optimistic locking fails."""

    def __init__(self, resource_type: str, resource_id: str, **kwargs):
        super().__init__(
            f"{resource_type} {resource_id} was modified by another transaction",
            details={"resource_type": resource_type, "resource_id": str(resource_id)},
            error_code=ErrorCode.OPTIMISTIC_LOCK_FAILURE,
            **kwargs
        )


class RateLimitError(HotelError):
    """Exception raised when rate limit is exceeded."""

    def __init__(self, limit: int, window: int, retry_after: int, **kwargs):
        super().__init__(
            f"Rate limit exceeded: {limit} requests per {window} seconds",
            error_code=ErrorCode.RATE_LIMIT_EXCEEDED,
            details={"limit": limit, "window": window},
            retry_after=retry_after,
            suggestions=[f"Wait {retry_after} seconds before retrying"],
            **kwargs
        )


class ExternalServiceError(HotelError):
    """Exception raised for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        status_code: Optional[int] = None,
        error_code: ErrorCode = ErrorCode.EXTERNAL_SERVICE_ERROR,
        details: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        merged = {"service_name": service_name, "status_code": status_code}
        merged.update(details or {})
        super().__init__(
            f"{service_name} service error: {message}",
            error_code=error_code,
            details=merged,
            suggestions=["Try again later"],
            **kwargs
        )


class PaymentGatewayError(ExternalServiceError):
    """Exception raised when the M-Pesa gateway rejects or fails a call."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            "mpesa",
            message,
            error_code=ErrorCode.PAYMENT_GATEWAY_ERROR,
            **kwargs
        )
