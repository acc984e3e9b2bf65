"""
Tests for policy storage.
"""

import pytest

from mra_auth.core.auth import PolicyRule
from mra_auth.core.auth.adapters import MemoryPolicyAdapter, SQLAlchemyPolicyAdapter

GRANT = PolicyRule.of("g", "bob", "enduser", "0")
POLICY = PolicyRule.of("p", "admin", "5", "orders", "R", "none", "none", "allow")


@pytest.fixture(params=["memory", "sqlalchemy"])
def adapter(request, session_factory):
    if request.param == "memory":
        return MemoryPolicyAdapter()
    return SQLAlchemyPolicyAdapter(session_factory)


@pytest.mark.asyncio
async def test_add_is_idempotent(adapter):
    assert await adapter.add_policy(GRANT)
    assert not await adapter.add_policy(GRANT)

    assert await adapter.load_policy() == [GRANT]


@pytest.mark.asyncio
async def test_remove(adapter):
    await adapter.add_policy(POLICY)

    assert await adapter.remove_policy(POLICY)
    assert not await adapter.remove_policy(POLICY)
    assert await adapter.load_policy() == []


@pytest.mark.asyncio
async def test_remove_filtered_skips_empty_values(adapter):
    await adapter.add_policy(GRANT)
    await adapter.add_policy(PolicyRule.of("g", "bob", "admin", "5"))
    await adapter.add_policy(PolicyRule.of("g", "carol", "enduser", "0"))
    await adapter.add_policy(POLICY)

    assert await adapter.remove_filtered_policy("g", 0, "bob", "", "5") == 1
    assert await adapter.remove_filtered_policy("g", 0, "bob") == 1

    remaining = await adapter.load_policy()
    assert sorted(remaining) == sorted([PolicyRule.of("g", "carol", "enduser", "0"), POLICY])


@pytest.mark.asyncio
async def test_save_replaces_everything(adapter):
    await adapter.add_policy(GRANT)

    await adapter.save_policy([POLICY, POLICY])

    assert await adapter.load_policy() == [POLICY]


@pytest.mark.asyncio
async def test_enforcer_reads_back_sqlalchemy_storage(session_factory, make_enforcer):
    storage = SQLAlchemyPolicyAdapter(session_factory)
    await storage.add_policy(POLICY)
    await storage.add_policy(PolicyRule.of("g", "dana", "admin", "5"))

    enforcer = await make_enforcer()
    enforcer.adapter = storage
    await enforcer.load_policy()

    assert enforcer.get_roles_for_user("dana", "5") == ["admin"]
    assert enforcer.get_filtered_policy("p", 0, "admin") == [POLICY]
