"""
Directory service - database lookups for authorization conditions.

Opens its own short-lived sessions so condition checks never share a
transaction with the route that triggered them.
"""

from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import MetaData, Table, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mra_auth.core.auth.interfaces import TableDescriptor
from mra_auth.models import Base, MraTable, MraUser, MraUserCustomer

logger = structlog.get_logger()


class DirectoryService:
    """Implements the authorization ``Directory`` protocol over SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self._reflected = MetaData()

    async def get_user_id(self, username: str) -> int | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(MraUser.user_id).where(MraUser.username == username.strip().lower())
            )
            return result.scalar_one_or_none()

    async def get_table(self, table_name: str) -> TableDescriptor | None:
        async with self.session_factory() as session:
            row = await session.get(MraTable, table_name)
        if row is None:
            return None
        return TableDescriptor(
            table_name=row.table_name,
            owner_column=row.owner_column or None,
            creator_column=row.creator_column or None,
            updator_column=row.updator_column or None,
            domain_column=row.domain_column or None,
        )

    async def has_valid_relationship(self, user_id: int, customer_id: str) -> bool:
        """
        Accepted by both sides, currently within its validity window, and
        neither quit nor suspended.
        """
        now = datetime.now(timezone.utc)
        query = select(MraUserCustomer.user_customer_id).where(
            MraUserCustomer.user_id == user_id,
            MraUserCustomer.customer_id == str(customer_id),
            MraUserCustomer.customer_accepted_at <= now,
            MraUserCustomer.user_accepted_at <= now,
            MraUserCustomer.valid_from <= now,
            or_(MraUserCustomer.valid_to.is_(None), MraUserCustomer.valid_to >= now),
            MraUserCustomer.quit_at.is_(None),
            MraUserCustomer.suspend_at.is_(None),
        )
        async with self.session_factory() as session:
            result = await session.execute(query.limit(1))
            return result.first() is not None

    async def _table(self, session: AsyncSession, table_name: str) -> Table:
        table = Base.metadata.tables.get(table_name)
        if table is None:
            table = self._reflected.tables.get(table_name)
        if table is not None:
            return table

        def reflect(sync_conn: Any) -> Table:
            return Table(table_name, self._reflected, autoload_with=sync_conn)

        conn = await session.connection()
        return await conn.run_sync(reflect)

    async def get_row(self, table_name: str, column: str, value: Any) -> dict[str, Any] | None:
        """First row of ``table_name`` whose ``column`` equals ``value``."""
        async with self.session_factory() as session:
            table = await self._table(session, table_name)
            if column not in table.c:
                logger.warning("Referenced column missing", table=table_name, column=column)
                return None
            result = await session.execute(select(table).where(table.c[column] == value).limit(1))
            row = result.mappings().first()
        return dict(row) if row is not None else None
