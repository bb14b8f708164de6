"""
Admin API endpoints: signup approval and the audit trail.
"""

from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.user import User, UserRole
from ..schemas.auth import UserProfile
from ..schemas.common import ActivityLogListResponse, ActivityLogResponse
from ..schemas.user import UserActionResponse, UserListResponse
from ..services.activity_service import ActivityService, decode_details
from ..services.user_service import UserService
from ..utils.dependencies import require_capability
from ..utils.permissions import Capability


router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/users", response_model=UserListResponse)
async def list_users(
    role: Optional[UserRole] = Query(None),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_capability(Capability.USERS_READ)),
) -> Any:
    """List staff accounts filtered by role and activation."""
    users, total = await UserService(db).list_users(role=role, is_active=is_active)
    return UserListResponse(users=[UserProfile.model_validate(user) for user in users], total=total)


@router.get("/users/pending", response_model=UserListResponse)
async def list_pending_users(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_capability(Capability.USERS_APPROVE)),
) -> Any:
    users = await UserService(db).list_pending_users()
    return UserListResponse(users=[UserProfile.model_validate(user) for user in users], total=len(users))


@router.post("/users/{user_id}/approve", response_model=UserActionResponse)
async def approve_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_capability(Capability.USERS_APPROVE)),
) -> Any:
    """
    Activate a pending signup.

    Raises:
        UserNotFoundError: If the user does not exist
        AuthorizationError: If the target is an admin account
    """
    user = await UserService(db).approve_user(user_id, current_user)
    return UserActionResponse(message="User approved successfully", user=UserProfile.model_validate(user))


@router.post("/users/{user_id}/reject", response_model=UserActionResponse)
async def reject_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_capability(Capability.USERS_APPROVE)),
) -> Any:
    """Reject a pending signup and delete the account."""
    user = await UserService(db).reject_user(user_id, current_user)
    return UserActionResponse(message=f"User {user.email} rejected and removed")


@router.get("/activity", response_model=ActivityLogListResponse)
async def list_activity(
    action: Optional[str] = Query(None),
    entity_type: Optional[str] = Query(None, alias="entityType"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_capability(Capability.ACTIVITY_READ)),
) -> Any:
    """Newest-first page of the audit trail."""
    entries, total = await ActivityService(db).list_entries(action, entity_type, limit, offset)
    return ActivityLogListResponse(
        entries=[
            ActivityLogResponse(
                id=entry.id,
                user_id=entry.user_id,
                action=entry.action,
                entity_type=entry.entity_type,
                entity_id=entry.entity_id,
                details=decode_details(entry),
                created_at=entry.created_at,
            )
            for entry in entries
        ],
        total=total,
        limit=limit,
        offset=offset,
    )
