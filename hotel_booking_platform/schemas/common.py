"""
Common schemas for API responses and error handling.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Schema for detailed error information."""

    error_code: str = Field(..., description="Error code for programmatic handling")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error context")
    suggestions: Optional[List[str]] = Field(None, description="Helpful suggestions for resolving the error")
    retry_after: Optional[int] = Field(None, description="Seconds to wait before retrying")


class ErrorResponse(BaseModel):
    """Schema for API error responses."""

    error: ErrorDetail
    error_id: Optional[str] = None
    timestamp: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "error": {
                        "error_code": "OUTSTANDING_BALANCE",
                        "message": "Outstanding balance of KES 2000.00 must be paid before check-out",
                        "details": {"balance": 2000.0}
                    },
                    "error_id": "0b8f0c3e-3f5e-4a0e-9d43-6c0e4b1f2a11",
                    "timestamp": "2025-01-04T09:00:00+00:00"
                },
                {
                    "error": {
                        "error_code": "UNAUTHORIZED",
                        "message": "Authentication required",
                        "suggestions": ["Login again"]
                    }
                }
            ]
        }
    }


class SuccessResponse(BaseModel):
    """Schema for simple success responses."""

    message: str = Field(..., description="Success message")
    data: Optional[Dict[str, Any]] = Field(None, description="Additional response data")


class HealthStatus(BaseModel):
    """Schema for health check responses."""

    status: str = Field(..., description="Overall health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    timestamp: str = Field(..., description="Health check timestamp")
    dependencies: Optional[Dict[str, Dict[str, Any]]] = Field(
        None,
        description="Status of service dependencies"
    )


class ActivityLogResponse(BaseModel):
    """Schema for one audit entry."""

    id: UUID
    user_id: Optional[UUID] = None
    action: str
    entity_type: str
    entity_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: datetime


class ActivityLogListResponse(BaseModel):
    """Schema for paginated audit listings."""

    entries: List[ActivityLogResponse]
    total: int
    limit: int
    offset: int
