"""
Rate limiting middleware using a Redis sliding window.
"""

import logging
import time
from typing import Callable

import redis.asyncio as redis
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from mra_auth.core.config import settings

logger = logging.getLogger(__name__)

SKIP_PATHS = ("/health", "/docs", "/openapi.json", "/redoc")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Per-IP request limits kept in Redis sorted sets.

    Registration has its own, stricter budget. Without a Redis client the
    middleware lets everything through.

    Settings:
        - rate_limit_enabled
        - rate_limit_requests / rate_limit_window
        - register_limit_requests
    """

    def __init__(
        self,
        app,
        redis_client: redis.Redis | None = None,
        path_limits: dict[str, int] | None = None,
    ):
        super().__init__(app)
        self.redis_client = redis_client
        self.enabled = settings.rate_limit_enabled
        self.max_requests = settings.rate_limit_requests
        self.window_seconds = settings.rate_limit_window
        self.path_limits = path_limits or {"/v1/register": settings.register_limit_requests}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.enabled or self.redis_client is None:
            return await call_next(request)
        if request.url.path.startswith(SKIP_PATHS):
            return await call_next(request)

        path = request.url.path
        limit = self.path_limits.get(path, self.max_requests)
        bucket = path if path in self.path_limits else "*"
        key = f"rate_limit:{bucket}:{self._get_identifier(request)}"

        try:
            is_allowed, remaining = await self._check_rate_limit(key, limit)
        except RedisError as e:
            logger.warning(f"Rate limit check skipped: {e}")
            return await call_next(request)

        if not is_allowed:
            return JSONResponse(
                status_code=429,
                content={"message": "Too many requests, please try again later."},
                headers={
                    "X-RateLimit-Limit": str(limit),
                    "X-RateLimit-Remaining": "0",
                    "Retry-After": str(self.window_seconds),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response

    def _get_identifier(self, request: Request) -> str:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return request.client.host if request.client else "unknown"

    async def _check_rate_limit(self, key: str, limit: int) -> tuple[bool, int]:
        """
        Record this request and count the window.

        Returns:
            (is_allowed, remaining_requests)
        """
        now = time.time()
        pipe = self.redis_client.pipeline()
        pipe.zremrangebyscore(key, 0, now - self.window_seconds)
        pipe.zadd(key, {str(now): now})
        pipe.zcard(key)
        pipe.expire(key, self.window_seconds)
        results = await pipe.execute()

        count = results[2]
        return count <= limit, max(0, limit - count)
