"""
User service for handling staff accounts.
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.user import User, UserRole
from ..schemas.auth import PasswordChange, UserProfileUpdate, UserRegistration
from ..schemas.user import UserUpdateRequest
from ..utils.auth import get_password_hash
from ..utils.clock import utcnow
from ..utils.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    UserNotFoundError,
    ValidationError,
)
from ..utils.logging_config import log_security_event
from .activity_service import ActivityService

logger = logging.getLogger(__name__)


class UserService:
    """Service class for user operations."""

    def __init__(self, session: AsyncSession):
        """
        Initialize the user service.

        Args:
            session: Database session
        """
        self.session = session
        self.activity = ActivityService(session)

    async def get_user_by_id(self, user_id: UUID) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def get_user(self, user_id: UUID) -> User:
        """
        Get a user by ID.

        Raises:
            UserNotFoundError: If no such user exists
        """
        user = await self.get_user_by_id(user_id)
        if user is None:
            raise UserNotFoundError(str(user_id))
        return user

    async def create_user(self, data: UserRegistration, created_by: Optional[User] = None) -> User:
        """
        Create a staff account.

        Self-service signups are created inactive and wait for an admin to
        approve them. Accounts created by an admin are active straight away
        and may carry any role.

        Args:
            data: Signup payload
            created_by: Authenticated creator, if any

        Returns:
            The created user

        Raises:
            ConflictError: If the email is already registered
        """
        email = data.email.lower()
        if await self.get_user_by_email(email):
            raise ConflictError("Email already registered", details={"email": email})

        by_admin = created_by is not None and created_by.role == UserRole.ADMIN
        user = User(
            email=email,
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
            password_hash=get_password_hash(data.password),
            role=(data.role or UserRole.STAFF) if by_admin else UserRole.STAFF,
            is_active=by_admin,
        )

        try:
            self.session.add(user)
            await self.session.flush()
            self.activity.record(
                "USER_CREATED", "User", user.id,
                {"email": email, "role": user.role.value, "is_active": user.is_active},
                user_id=created_by.id if created_by else None,
            )
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError("Email already registered", details={"email": email})

        logger.info(f"User {email} created (active={user.is_active})")
        return user

    async def login(self, email: str, password: str, now: Optional[datetime] = None) -> User:
        """
        Verify credentials and stamp the login time.

        Raises:
            AuthenticationError: If the email or password is wrong
            AuthorizationError: If the account is awaiting approval
        """
        user = await self.get_user_by_email(email)
        if user is None or not user.verify_password(password):
            log_security_event("LOGIN_FAILED", {"email": email.lower()})
            raise AuthenticationError("Invalid email or password")

        if not user.is_active:
            log_security_event("LOGIN_INACTIVE_ACCOUNT", {"email": user.email, "user_id": str(user.id)})
            raise AuthorizationError("Account pending approval")

        user.last_login = now or utcnow()
        self.activity.record("USER_LOGIN", "User", user.id, {"email": user.email}, user_id=user.id)
        await self.session.commit()
        return user

    async def update_profile(self, user: User, data: UserProfileUpdate) -> User:
        """
        Update the caller's own profile.

        Raises:
            ConflictError: If the new email belongs to another account
        """
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "email" in changes:
            changes["email"] = changes["email"].lower()
            await self._ensure_email_free(changes["email"], user.id)

        for field, value in changes.items():
            setattr(user, field, value)

        await self.session.commit()
        return user

    async def change_password(self, user: User, data: PasswordChange) -> None:
        """
        Change the caller's password.

        Raises:
            ValidationError: If the confirmation does not match
            AuthenticationError: If the current password is wrong
        """
        if data.new_password != data.confirm_password:
            raise ValidationError(
                "New passwords do not match",
                field_errors={"confirm_password": ["must match new_password"]},
            )
        if not user.verify_password(data.current_password):
            log_security_event("PASSWORD_CHANGE_FAILED", {"email": user.email, "user_id": str(user.id)})
            raise AuthenticationError("Current password is incorrect")

        user.set_password(data.new_password)
        self.activity.record("PASSWORD_CHANGED", "User", user.id, user_id=user.id)
        await self.session.commit()

    async def list_users(
        self,
        role: Optional[UserRole] = None,
        is_active: Optional[bool] = None,
    ) -> Tuple[List[User], int]:
        """List users, newest first, with optional role and activity filters."""
        conditions = []
        if role is not None:
            conditions.append(User.role == role)
        if is_active is not None:
            conditions.append(User.is_active == is_active)

        total = (
            await self.session.execute(select(func.count(User.id)).where(*conditions))
        ).scalar_one()
        result = await self.session.execute(
            select(User).where(*conditions).order_by(User.created_at.desc())
        )
        return list(result.scalars().all()), total

    async def list_pending_users(self) -> List[User]:
        users, _ = await self.list_users(is_active=False)
        return users

    async def update_user(self, user_id: UUID, data: UserUpdateRequest, acting_user: User) -> User:
        """
        Admin edit of a staff account.

        Raises:
            UserNotFoundError: If the user does not exist
            AuthorizationError: If an admin tries to change their own role
            ConflictError: If the new email belongs to another account
        """
        user = await self.get_user(user_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)

        if user.id == acting_user.id and "role" in changes and changes["role"] != user.role:
            raise AuthorizationError("You cannot change your own role")
        if "email" in changes:
            changes["email"] = changes["email"].lower()
            await self._ensure_email_free(changes["email"], user.id)

        for field, value in changes.items():
            setattr(user, field, value)

        self.activity.record(
            "USER_UPDATED", "User", user.id,
            {key: getattr(value, "value", value) for key, value in changes.items()},
            user_id=acting_user.id,
        )
        await self.session.commit()
        return user

    async def delete_user(self, user_id: UUID, acting_user: User) -> None:
        """
        Delete a staff account.

        Raises:
            UserNotFoundError: If the user does not exist
            ValidationError: If an admin tries to delete their own account
        """
        if user_id == acting_user.id:
            raise ValidationError("You cannot delete your own account")

        user = await self.get_user(user_id)
        self.activity.record(
            "USER_DELETED", "User", user.id, {"email": user.email}, user_id=acting_user.id
        )
        await self.session.delete(user)
        await self.session.commit()

    async def approve_user(self, user_id: UUID, acting_user: User) -> User:
        """
        Activate a pending signup.

        Raises:
            UserNotFoundError: If the user does not exist
            AuthorizationError: If the target is an admin account
        """
        user = await self._pending_target(user_id)
        user.is_active = True
        self.activity.record(
            "USER_APPROVED", "User", user.id, {"email": user.email}, user_id=acting_user.id
        )
        await self.session.commit()
        logger.info(f"User {user.email} approved by {acting_user.email}")
        return user

    async def reject_user(self, user_id: UUID, acting_user: User) -> User:
        """Reject a pending signup; the account is deleted."""
        user = await self._pending_target(user_id)
        self.activity.record(
            "USER_REJECTED", "User", user.id, {"email": user.email}, user_id=acting_user.id
        )
        await self.session.delete(user)
        await self.session.commit()
        logger.info(f"User {user.email} rejected by {acting_user.email}")
        return user

    async def _pending_target(self, user_id: UUID) -> User:
        user = await self.get_user(user_id)
        if user.role == UserRole.ADMIN:
            raise AuthorizationError("Admin accounts cannot be approved or rejected")
        return user

    async def _ensure_email_free(self, email: str, user_id: UUID) -> None:
        existing = await self.get_user_by_email(email)
        if existing is not None and existing.id != user_id:
            raise ConflictError("Email already in use", details={"email": email})
