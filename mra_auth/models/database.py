"""
Database connection and session management.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)

from mra_auth.core.config import DatabaseSettings, settings


def create_engine(db: DatabaseSettings) -> AsyncEngine:
    """Create an async engine; pool options only apply to pooled drivers."""
    kwargs: dict = {"echo": db.echo}
    if not db.url.startswith("sqlite"):
        kwargs.update(
            pool_size=db.pool_size,
            max_overflow=db.pool_overflow,
            pool_timeout=db.pool_timeout,
            pool_pre_ping=True,
        )
    return create_async_engine(db.url, **kwargs)


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


# Create async engine
engine = create_engine(settings.database)

# Session factory
async_session_factory = create_session_factory(engine)


# Tables guarded by ownership conditions out of the box
SYSTEM_TABLES = (
    {"table_name": "mra_users", "owner_column": "user_id", "remarks": "User accounts"},
)


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create tables and register the system tables' ownership columns."""
    from . import Base, MraTable

    bind = bind or engine
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with create_session_factory(bind)() as session:
        for descriptor in SYSTEM_TABLES:
            if await session.get(MraTable, descriptor["table_name"]) is None:
                session.add(MraTable(**descriptor))
        await session.commit()
