"""Health check utilities."""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mra_auth.core.auth.context import AuthzContext

logger = structlog.get_logger()


class HealthStatus(str, Enum):
    """Health status values."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    """Health status of a single component."""

    name: str
    status: HealthStatus
    latency_ms: Optional[float] = None
    message: Optional[str] = None
    details: dict = field(default_factory=dict)


@dataclass
class SystemHealth:
    """Overall system health status."""

    status: HealthStatus
    version: str
    environment: str
    components: list[ComponentHealth] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "version": self.version,
            "environment": self.environment,
            "components": {
                c.name: {
                    "status": c.status.value,
                    "latency_ms": c.latency_ms,
                    "message": c.message,
                    **c.details,
                }
                for c in self.components
            },
        }


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


async def check_database(session_factory: async_sessionmaker[AsyncSession]) -> ComponentHealth:
    """Round trip to the database."""
    start = time.perf_counter()
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Database health check failed", error=str(e))
        return ComponentHealth(name="database", status=HealthStatus.UNHEALTHY, message=str(e)[:100])

    latency = _elapsed_ms(start)
    return ComponentHealth(
        name="database",
        status=HealthStatus.HEALTHY if latency < 100 else HealthStatus.DEGRADED,
        latency_ms=latency,
        message="Connected" if latency < 100 else "Slow response",
    )


async def check_redis(client: aioredis.Redis) -> ComponentHealth:
    """Ping the rate limiter's Redis."""
    start = time.perf_counter()
    try:
        await client.ping()
    except RedisError as e:
        logger.error("Redis health check failed", error=str(e))
        return ComponentHealth(name="redis", status=HealthStatus.DEGRADED, message=str(e)[:100])

    latency = _elapsed_ms(start)
    return ComponentHealth(
        name="redis",
        status=HealthStatus.HEALTHY if latency < 50 else HealthStatus.DEGRADED,
        latency_ms=latency,
        message="Connected" if latency < 50 else "Slow response",
    )


async def check_policies(authz: Optional[AuthzContext]) -> ComponentHealth:
    """The enforcer is loaded and serving a policy snapshot."""
    if authz is None:
        return ComponentHealth(name="policies", status=HealthStatus.UNHEALTHY, message="Not loaded")
    snapshot = authz.enforcer.snapshot
    return ComponentHealth(
        name="policies",
        status=HealthStatus.HEALTHY,
        details={"rules": len(snapshot.rules), "policies": len(snapshot.policies)},
    )


class HealthChecker:
    """
    Runs named checks concurrently.

    Usage:
        checker = HealthChecker(version="1.0.0", environment="production")
        checker.add_check("database", lambda: check_database(session_factory))
        health = await checker.run()

    A check that raises counts as unhealthy.
    """

    def __init__(self, version: str, environment: str):
        self.version = version
        self.environment = environment
        self.checks: dict[str, Callable[[], Awaitable[ComponentHealth]]] = {}

    def add_check(self, name: str, check_fn: Callable[[], Awaitable[ComponentHealth]]) -> None:
        self.checks[name] = check_fn

    async def run(self) -> SystemHealth:
        results = await asyncio.gather(
            *[check() for check in self.checks.values()],
            return_exceptions=True,
        )

        components = []
        for name, result in zip(self.checks.keys(), results):
            if isinstance(result, Exception):
                components.append(ComponentHealth(
                    name=name,
                    status=HealthStatus.UNHEALTHY,
                    message=str(result)[:100],
                ))
            else:
                components.append(result)

        statuses = [c.status for c in components]
        if HealthStatus.UNHEALTHY in statuses:
            overall = HealthStatus.UNHEALTHY
        elif HealthStatus.DEGRADED in statuses:
            overall = HealthStatus.DEGRADED
        else:
            overall = HealthStatus.HEALTHY

        return SystemHealth(
            status=overall,
            version=self.version,
            environment=self.environment,
            components=components,
        )
