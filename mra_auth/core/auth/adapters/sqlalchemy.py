"""
SQLAlchemy policy adapter.

Stores rules in the ``casbin_rule`` table. Every write runs in its own
short transaction so the in-memory snapshot is only rebuilt after the
database accepted the change.
"""

import logging

from sqlalchemy import and_, delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from mra_auth.models.casbin_rule import RULE_FIELDS, CasbinRule

from ..interfaces import PolicyAdapter, PolicyRule

logger = logging.getLogger(__name__)


def _row_values(rule: PolicyRule) -> dict[str, str]:
    values = {name: rule.value(i) for i, name in enumerate(RULE_FIELDS)}
    values["ptype"] = rule.ptype
    return values


def _rule_filter(rule: PolicyRule):
    return and_(
        CasbinRule.ptype == rule.ptype,
        *(getattr(CasbinRule, name) == rule.value(i) for i, name in enumerate(RULE_FIELDS)),
    )


class SQLAlchemyPolicyAdapter(PolicyAdapter):
    """
    ``casbin_rule``-backed policy storage.

    The unique constraint over ``(ptype, v0..v6)`` makes concurrent adds
    of the same rule safe: the loser's insert fails and is reported as
    ``False``.

    Args:
        session_factory: Session maker bound to the policy database
        engine: Engine to dispose on ``close()``; leave unset when the
            engine is shared and closed elsewhere
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        engine: AsyncEngine | None = None,
    ):
        self.session_factory = session_factory
        self.engine = engine
        self._closed = False

    async def load_policy(self) -> list[PolicyRule]:
        async with self.session_factory() as session:
            result = await session.execute(select(CasbinRule).order_by(CasbinRule.id))
            rows = result.scalars().all()
        rules = [PolicyRule(ptype=row.ptype, values=row.values()) for row in rows]
        logger.info(f"Loaded {len(rules)} policy rules")
        return rules

    async def save_policy(self, rules: list[PolicyRule]) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                await session.execute(delete(CasbinRule))
                for rule in dict.fromkeys(rules):
                    session.add(CasbinRule(**_row_values(rule)))

    async def add_policy(self, rule: PolicyRule) -> bool:
        async with self.session_factory() as session:
            existing = await session.execute(select(CasbinRule.id).where(_rule_filter(rule)))
            if existing.first() is not None:
                return False

            session.add(CasbinRule(**_row_values(rule)))
            try:
                await session.commit()
            except IntegrityError:
                # Inserted concurrently by another request
                await session.rollback()
                return False
        return True

    async def remove_policy(self, rule: PolicyRule) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(delete(CasbinRule).where(_rule_filter(rule)))
            await session.commit()
        return result.rowcount > 0

    async def remove_filtered_policy(
        self,
        ptype: str,
        field_index: int,
        *field_values: str,
    ) -> int:
        conditions = [CasbinRule.ptype == ptype]
        for offset, value in enumerate(field_values):
            if value in ("", None):
                continue
            name = RULE_FIELDS[field_index + offset]
            conditions.append(getattr(CasbinRule, name) == value)

        async with self.session_factory() as session:
            result = await session.execute(delete(CasbinRule).where(and_(*conditions)))
            await session.commit()
        return result.rowcount or 0

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.engine is not None:
            await self.engine.dispose()
            logger.info("Policy storage connection closed")
