"""
FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mra_auth.api.middleware import LoggingMiddleware, RateLimitMiddleware, RequestIdMiddleware
from mra_auth.api.routes import router as api_router
from mra_auth.core.auth import AuthzContext
from mra_auth.core.config import Settings, settings as default_settings
from mra_auth.core.errors import register_exception_handlers
from mra_auth.core.logging import configure_logging
from mra_auth.models.database import (
    async_session_factory,
    create_engine,
    create_session_factory,
    engine as default_engine,
    init_db,
)
from mra_auth.services.directory import DirectoryService
from mra_auth.services.email import EmailService, get_email_backend
from mra_auth.utils.health import HealthChecker, check_database, check_policies, check_redis

logger = logging.getLogger(__name__)


def build_lifespan(settings: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Database, enforcer and email wiring; torn down in reverse."""
        configure_logging(settings.log_level, settings.log_format)

        if settings.database.url == default_settings.database.url:
            engine, session_factory = default_engine, async_session_factory
        else:
            engine = create_engine(settings.database)
            session_factory = create_session_factory(engine)
        await init_db(engine)

        app.state.engine = engine
        app.state.session_factory = session_factory
        app.state.email = EmailService(get_email_backend(settings.email), settings.email)
        app.state.authz = await AuthzContext.create(
            settings.authz,
            session_factory,
            DirectoryService(session_factory),
        )
        logger.info(f"{settings.app_name} {settings.app_version} started ({settings.environment})")

        yield

        await app.state.authz.close()
        if app.state.redis is not None:
            await app.state.redis.aclose()
        await engine.dispose()

    return lifespan


def create_app(settings: Settings = default_settings) -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=build_lifespan(settings),
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # Created eagerly so the rate limiter and health check share one client
    app.state.redis = aioredis.from_url(settings.redis.url) if settings.redis.url else None

    # Middleware (order matters - last added is outermost)
    app.add_middleware(RateLimitMiddleware, redis_client=app.state.redis)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix="/v1")
    register_exception_handlers(app, debug=settings.debug)

    @app.get("/health")
    async def health_check():
        """Quick health check endpoint (for load balancers)."""
        return {
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.environment,
        }

    @app.get("/health/detailed")
    async def health_check_detailed(request: Request):
        """Database, policy snapshot and, when configured, Redis."""
        state = request.app.state
        checker = HealthChecker(version=settings.app_version, environment=settings.environment)
        checker.add_check("database", lambda: check_database(state.session_factory))
        checker.add_check("policies", lambda: check_policies(getattr(state, "authz", None)))
        if state.redis is not None:
            checker.add_check("redis", lambda: check_redis(state.redis))

        health = await checker.run()
        status_code = 503 if health.status.value == "unhealthy" else 200
        return JSONResponse(content=health.to_dict(), status_code=status_code)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "mra_auth.main:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.reload,
        workers=default_settings.workers,
    )
