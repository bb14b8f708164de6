"""
Rate limiting middleware with Redis backend.
"""

import logging
import time
from typing import Dict, Optional, Tuple

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from ..cache import CacheKeyBuilder, RedisCache
from ..utils.exceptions import RateLimitError

logger = logging.getLogger(__name__)

EXEMPT_PATHS = {"/health", "/", "/docs", "/redoc", "/openapi.json"}


class RateLimiterMiddleware(BaseHTTPMiddleware):
    """Sliding-window rate limiting keyed by client IP and endpoint."""

    def __init__(
        self,
        app,
        default_limit: int = 100,
        default_window: int = 60,
        burst_limit: int = 20,
        burst_window: int = 1,
        endpoint_limits: Optional[Dict[str, Dict[str, int]]] = None
    ):
        super().__init__(app)
        self.default_limit = default_limit
        self.default_window = default_window
        self.burst_limit = burst_limit
        self.burst_window = burst_window

        # Stricter limits for credential and public write endpoints
        self.endpoint_limits = endpoint_limits or {
            "/api/v1/auth/login": {"limit": 5, "window": 300},
            "/api/v1/auth/signup": {"limit": 3, "window": 300},
            "/api/v1/payments/mpesa": {"limit": 5, "window": 60},
            "/api/v1/payments": {"limit": 10, "window": 60},
            "/api/v1/bookings": {"limit": 30, "window": 60},
        }

    async def dispatch(self, request: Request, call_next):
        cache: Optional[RedisCache] = getattr(request.app.state, "cache", None)
        path = request.url.path

        # Gateway callbacks and cron triggers come from trusted schedulers
        if (
            cache is None
            or not cache.available
            or path in EXEMPT_PATHS
            or path.startswith("/api/v1/cron")
            or path.endswith("/mpesa/callback")
        ):
            return await call_next(request)

        client_ip = self._get_client_ip(request)

        exceeded, retry_after = await self._check(
            cache,
            CacheKeyBuilder.rate_limit("burst", client_ip),
            self.burst_limit,
            self.burst_window,
        )
        if exceeded:
            return self._create_rate_limit_response(self.burst_limit, self.burst_window, retry_after)

        endpoint = self._get_endpoint_pattern(path)
        limit, window = self._limits_for(endpoint)
        exceeded, retry_after = await self._check(
            cache,
            CacheKeyBuilder.rate_limit(endpoint, client_ip),
            limit,
            window,
        )
        if exceeded:
            logger.warning(f"Rate limit exceeded for {client_ip} on {endpoint}")
            return self._create_rate_limit_response(limit, window, retry_after)

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Window"] = str(window)
        return response

    async def _check(self, cache: RedisCache, key: str, limit: int, window: int) -> Tuple[bool, int]:
        """Record a hit and report whether the window's limit was already reached."""
        current_count, oldest_time = await cache.hit_window(key, window)
        if current_count >= limit:
            reference = oldest_time if oldest_time is not None else time.time()
            retry_after = max(1, int(reference + window - time.time()))
            return True, retry_after
        return False, 0

    def _limits_for(self, endpoint: str) -> Tuple[int, int]:
        config = self.endpoint_limits.get(endpoint)
        if config is None:
            return self.default_limit, self.default_window
        return config["limit"], config["window"]

    def _get_client_ip(self, request: Request) -> str:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip

        return request.client.host if request.client else "unknown"

    def _get_endpoint_pattern(self, path: str) -> str:
        # Longest prefix first so /payments/mpesa wins over /payments
        for pattern in sorted(self.endpoint_limits, key=len, reverse=True):
            if path.startswith(pattern):
                return pattern
        return "default"

    def _create_rate_limit_response(self, limit: int, window: int, retry_after: int) -> JSONResponse:
        error = RateLimitError(limit, window, retry_after)

        return JSONResponse(
            status_code=429,
            content={"error": error.to_dict()},
            headers={
                "Retry-After": str(retry_after),
                "X-RateLimit-Limit": str(limit),
                "X-RateLimit-Window": str(window)
            }
        )
