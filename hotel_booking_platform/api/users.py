"""
User management API endpoints (admin only).
"""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.user import User
from ..schemas.auth import UserProfile
from ..schemas.user import UserActionResponse, UserListResponse, UserUpdateRequest
from ..services.user_service import UserService
from ..utils.dependencies import require_capability
from ..utils.permissions import Capability


router = APIRouter(prefix="/users", tags=["user-management"])


@router.get("", response_model=UserListResponse)
async def list_users(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_capability(Capability.USERS_READ)),
) -> Any:
    users, total = await UserService(db).list_users()
    return UserListResponse(users=[UserProfile.model_validate(user) for user in users], total=total)


@router.get("/{user_id}", response_model=UserProfile)
async def get_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_capability(Capability.USERS_READ)),
) -> Any:
    """
    Get a user by ID.

    Raises:
        UserNotFoundError: If the user does not exist
    """
    user = await UserService(db).get_user(user_id)
    return UserProfile.model_validate(user)


@router.put("/{user_id}", response_model=UserActionResponse)
async def update_user(
    user_id: UUID,
    update_data: UserUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_capability(Capability.USERS_MANAGE)),
) -> Any:
    """
    Edit a staff account.

    Admins cannot change their own role.
    """
    user = await UserService(db).update_user(user_id, update_data, current_user)
    return UserActionResponse(message="User updated successfully", user=UserProfile.model_validate(user))


@router.delete("/{user_id}", response_model=UserActionResponse)
async def delete_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_capability(Capability.USERS_MANAGE)),
) -> Any:
    """Delete a staff account. Admins cannot delete themselves."""
    await UserService(db).delete_user(user_id, current_user)
    return UserActionResponse(message="User deleted successfully")
