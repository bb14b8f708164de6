"""
FastAPI dependencies for authentication, authorization and shared clients.
"""

import hmac
from typing import Callable, Optional
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ..cache import RedisCache
from ..config import get_settings
from ..database import get_db
from ..models.user import User
from ..services.mpesa_service import MpesaClient
from ..services.user_service import UserService
from .auth import extract_bearer_token, verify_token
from .exceptions import AuthenticationError
from .logging_config import log_security_event
from .permissions import Capability, check_capabilities

# Bearer scheme; the cookie is tried when the header is absent
security = HTTPBearer(auto_error=False)


def _request_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(get_settings().auth_cookie_name)


async def _user_from_token(token: Optional[str], db: AsyncSession) -> Optional[User]:
    if not token:
        return None

    token_data = verify_token(token)
    if token_data is None:
        return None

    try:
        user_id = UUID(token_data.user_id)
    except ValueError:
        return None

    user = await UserService(db).get_user_by_id(user_id)
    if user is None or not user.is_active:
        return None
    return user


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Get the current authenticated user from the bearer header or auth cookie.

    Raises:
        AuthenticationError: If no valid token is presented, or its user is
            missing or inactive
    """
    user = await _user_from_token(_request_token(request, credentials), db)
    if user is None:
        raise AuthenticationError("Could not validate credentials")
    return user


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Like ``get_current_user`` but returns None for anonymous callers."""
    return await _user_from_token(_request_token(request, credentials), db)


def require_capability(*capabilities: Capability) -> Callable:
    """
    Dependency factory for capability-gated endpoints.

    Usage:
        @router.get("/users")
        async def list_users(user: User = Depends(require_capability(Capability.USERS_READ))):
            ...
    """
    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        check_capabilities(current_user, capabilities)
        return current_user

    return dependency


async def verify_cron_secret(request: Request) -> None:
    """
    Gate the scheduled endpoints on ``Authorization: Bearer <CRON_SECRET>``.

    Raises:
        AuthenticationError: If the secret is unset, missing or wrong
    """
    expected = get_settings().CRON_SECRET
    presented = extract_bearer_token(request.headers.get("Authorization"))

    if not expected or not presented or not hmac.compare_digest(presented.encode(), expected.encode()):
        log_security_event(
            "CRON_UNAUTHORIZED",
            {
                "path": request.url.path,
                "client_ip": request.client.host if request.client else None,
                "secret_configured": bool(expected),
            },
        )
        raise AuthenticationError("Unauthorized")


def get_cache(request: Request) -> Optional[RedisCache]:
    """Redis cache opened in the application lifespan, if any."""
    return getattr(request.app.state, "cache", None)


def get_mpesa_client(cache: Optional[RedisCache] = Depends(get_cache)) -> MpesaClient:
    return MpesaClient(cache=cache)
