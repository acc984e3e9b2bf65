"""
Access log for the auth API.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from .request_id import get_request_id

logger = logging.getLogger(__name__)

QUIET_PATHS = ("/health",)


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    # 401/403 are normal answers for an authorization service
    if status_code >= 400 and status_code not in (401, 403):
        return logging.WARNING
    return logging.INFO


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    One line per finished request.

    Requests that went through ``authorize_user`` also log the caller and the
    roles the decision was made with, as published on ``request.state``.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        if request.url.path.startswith(QUIET_PATHS):
            return response

        caller = getattr(request.state, "user", None) or {}
        logger.log(
            _level_for(response.status_code),
            f"{request.method} {request.url.path} {response.status_code}",
            extra={
                "request_id": get_request_id(),
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                "client_ip": request.client.host if request.client else None,
                "username": caller.get("username"),
                "roles": getattr(request.state, "roles", None),
            },
        )
        return response
