"""
Authentication API endpoints.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..database import get_db
from ..models.user import User
from ..schemas.auth import (
    PasswordChange,
    SignupResponse,
    TokenResponse,
    UserLogin,
    UserProfile,
    UserProfileUpdate,
    UserRegistration,
)
from ..schemas.common import SuccessResponse
from ..services.user_service import UserService
from ..utils.auth import create_access_token
from ..utils.dependencies import get_current_user, get_optional_user


router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    user_data: UserRegistration,
    db: AsyncSession = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
) -> Any:
    """
    Register a staff account.

    Self-service signups wait for admin approval. Admins creating an
    account get it active immediately, with the requested role.
    """
    user = await UserService(db).create_user(user_data, created_by=current_user)

    if user.is_active:
        message = "Account created successfully"
    else:
        message = "Account created. An administrator must approve it before you can log in"

    return SignupResponse(
        message=message,
        user=UserProfile.model_validate(user),
        requires_approval=not user.is_active,
    )


@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: UserLogin,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Authenticate and issue an access token.

    The token is returned in the body and set as an httpOnly cookie.

    Raises:
        AuthenticationError: If the credentials are wrong
        AuthorizationError: If the account is awaiting approval
    """
    settings = get_settings()
    user = await UserService(db).login(login_data.email, login_data.password)

    access_token = create_access_token(
        data={"sub": str(user.id), "email": user.email, "role": user.role.value}
    )
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=access_token,
        max_age=settings.access_token_max_age,
        httponly=True,
        samesite="lax",
        secure=settings.environment == "production",
    )

    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        expires_in=settings.access_token_max_age,
        user=UserProfile.model_validate(user),
    )


@router.post("/logout", response_model=SuccessResponse)
async def logout(response: Response) -> Any:
    """Clear the auth cookie."""
    response.delete_cookie(key=get_settings().auth_cookie_name)
    return SuccessResponse(message="Logged out successfully")


@router.get("/me", response_model=UserProfile)
async def get_me(current_user: User = Depends(get_current_user)) -> Any:
    return UserProfile.model_validate(current_user)


@router.get("/profile", response_model=UserProfile)
async def get_profile(current_user: User = Depends(get_current_user)) -> Any:
    return UserProfile.model_validate(current_user)


@router.put("/profile", response_model=UserProfile)
async def update_profile(
    update_data: UserProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Update the caller's profile.

    Raises:
        ConflictError: If the new email is already in use
    """
    user = await UserService(db).update_profile(current_user, update_data)
    return UserProfile.model_validate(user)


@router.post("/change-password", response_model=SuccessResponse)
async def change_password(
    password_data: PasswordChange,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Change the caller's password.

    Raises:
        ValidationError: If the confirmation does not match
        AuthenticationError: If the current password is wrong
    """
    await UserService(db).change_password(current_user, password_data)
    return SuccessResponse(message="Password changed successfully")
