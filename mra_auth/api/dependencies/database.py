"""
Request-scoped database session.
"""

from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mra_auth.models.database import async_session_factory


def session_factory_for(request: Request) -> async_sessionmaker[AsyncSession]:
    """The factory wired in the lifespan, or the module default."""
    return getattr(request.app.state, "session_factory", async_session_factory)


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    One session per request, committed when the handler returns.

    Audit rows written before a 403 are committed by the authorization
    service itself, so the rollback here never loses them.
    """
    async with session_factory_for(request)() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        else:
            await session.commit()
