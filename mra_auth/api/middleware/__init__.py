"""Middleware package."""

from mra_auth.api.middleware.logging import LoggingMiddleware
from mra_auth.api.middleware.rate_limit import RateLimitMiddleware
from mra_auth.api.middleware.request_id import RequestIdMiddleware, get_request_id

__all__ = [
    "LoggingMiddleware",
    "RequestIdMiddleware",
    "get_request_id",
    "RateLimitMiddleware",
]
