"""Health checks for the service and its backing stores."""

from mra_auth.utils.health import (
    HealthChecker,
    HealthStatus,
    check_database,
    check_policies,
    check_redis,
)

__all__ = [
    "HealthChecker",
    "HealthStatus",
    "check_database",
    "check_policies",
    "check_redis",
]
