"""
Schemas for staff user management.
"""

from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from ..models.user import UserRole
from .auth import UserProfile


class UserUpdateRequest(BaseModel):
    """Schema for an admin editing a staff account."""

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


class UserListResponse(BaseModel):
    """Schema for user list responses."""

    users: List[UserProfile]
    total: int


class UserActionResponse(BaseModel):
    """Schema for approve/reject/update/delete responses."""

    message: str
    user: Optional[UserProfile] = None
