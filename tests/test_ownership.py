"""
Tests for the data conditions: ownership, relationship and resolution.
"""

import pytest

from mra_auth.core.auth import AuthorizationRequest, TableDescriptor, UserType
from mra_auth.core.auth.conditions import (
    MalformedAttributes,
    OwnershipPolicy,
    RelationshipPolicy,
    attributes_match,
    resolve_conditions,
)

OWNED = TableDescriptor(table_name="mra_users", owner_column="user_id")
UNOWNED = TableDescriptor(table_name="countries")
STAMPED = TableDescriptor(
    table_name="notes",
    owner_column="user_id",
    creator_column="creator",
    updator_column="updator",
)


def request(act: str, attrs, obj: str = "mra_users", dom: str = "0") -> AuthorizationRequest:
    return AuthorizationRequest(sub="alice", dom=dom, obj=obj, act=act, attrs=attrs)


# ============ Ownership ============


@pytest.mark.asyncio
async def test_create_requires_caller_as_owner():
    policy = OwnershipPolicy()

    assert await policy.check(request("C", {"set": {"user_id": 42}}), UserType.ENDUSER, 42, OWNED)
    assert not await policy.check(request("C", {"set": {"user_id": 43}}), UserType.ENDUSER, 42, OWNED)
    assert not await policy.check(request("C", {"set": {}}), UserType.ENDUSER, 42, OWNED)


@pytest.mark.asyncio
async def test_read_owner_filter_is_optional():
    policy = OwnershipPolicy()

    assert await policy.check(request("R", {"where": {}}), UserType.ENDUSER, 42, OWNED)
    assert await policy.check(request("R", {"where": {"user_id": "42"}}), UserType.ENDUSER, 42, OWNED)
    assert not await policy.check(request("R", {"where": {"user_id": 43}}), UserType.ENDUSER, 42, OWNED)


@pytest.mark.asyncio
async def test_update_needs_owner_filter_and_keeps_owner():
    policy = OwnershipPolicy()

    assert not await policy.check(request("U", {"set": {"name": "x"}}), UserType.ENDUSER, 42, OWNED)
    assert await policy.check(
        request("U", {"where": {"user_id": 42}, "set": {"name": "x"}}), UserType.ENDUSER, 42, OWNED
    )
    assert not await policy.check(
        request("U", {"where": {"user_id": 42}, "set": {"user_id": 43}}), UserType.ENDUSER, 42, OWNED
    )


@pytest.mark.asyncio
async def test_delete_needs_owner_filter():
    policy = OwnershipPolicy()

    assert not await policy.check(request("D", {}), UserType.CUSTOMER, 42, OWNED)
    assert await policy.check(request("D", {"where": {"user_id": 42}}), UserType.CUSTOMER, 42, OWNED)


@pytest.mark.asyncio
async def test_other_actions_fail():
    policy = OwnershipPolicy()

    assert not await policy.check(request("X", {"where": {"user_id": 42}}), UserType.ENDUSER, 42, OWNED)


@pytest.mark.asyncio
async def test_tables_without_owner_column_pass():
    policy = OwnershipPolicy()

    for act in ("C", "R", "U", "D"):
        assert await policy.check(request(act, {}, obj="countries"), UserType.ENDUSER, 42, UNOWNED)


@pytest.mark.asyncio
async def test_user_type_short_circuits():
    policy = OwnershipPolicy()
    mismatched = request("D", {"where": {"user_id": 1}})

    assert await policy.check(mismatched, UserType.INTERNAL, 42, OWNED)
    assert not await policy.check(request("R", {}), UserType.PUBLIC, None, OWNED)


@pytest.mark.asyncio
async def test_boolean_is_not_an_id():
    policy = OwnershipPolicy()

    assert not await policy.check(request("D", {"where": {"user_id": True}}), UserType.ENDUSER, 1, OWNED)


# ============ Resolution ============


def test_read_defaults_owner_for_non_internal():
    resolved = resolve_conditions("R", {}, "check_ownership", 42, OWNED, UserType.ENDUSER)

    assert resolved == {"where": {"user_id": 42}, "set": {}}


def test_read_keeps_explicit_owner():
    resolved = resolve_conditions(
        "R", {"where": {"user_id": 43}}, "check_ownership", 42, OWNED, UserType.ENDUSER
    )

    assert resolved["where"] == {"user_id": 43}


def test_read_is_not_defaulted_for_internal_or_other_conditions():
    assert resolve_conditions("R", {}, "check_ownership", 42, OWNED, UserType.INTERNAL)["where"] == {}
    assert resolve_conditions("R", {}, "none", 42, OWNED, UserType.ENDUSER)["where"] == {}


def test_update_and_delete_never_default_owner():
    for act in ("U", "D"):
        resolved = resolve_conditions(act, {}, "check_ownership", 42, OWNED, UserType.ENDUSER)
        assert "user_id" not in resolved["where"]


def test_create_and_update_stamp_audit_columns():
    created = resolve_conditions("C", {"set": {"title": "t"}}, "none", 42, STAMPED, UserType.ENDUSER)
    updated = resolve_conditions(
        "U", {"where": {"id": 1}, "set": {"updator": 99}}, "none", 42, STAMPED, UserType.ENDUSER
    )

    assert created["set"] == {"title": "t", "creator": 42}
    assert updated["set"] == {"updator": 42}


def test_resolution_does_not_touch_input():
    attrs = {"where": {}}
    resolve_conditions("R", attrs, "check_ownership", 42, OWNED, UserType.ENDUSER)

    assert attrs == {"where": {}}


def test_malformed_attrs_raise():
    with pytest.raises(MalformedAttributes):
        resolve_conditions("R", ["where"], "none", 42, OWNED, UserType.ENDUSER)


def test_static_attributes_deep_equal():
    resolved = {"where": {"status": "open"}, "set": {}}

    assert attributes_match(resolved, "none")
    assert attributes_match(resolved, '{"where": {"status": "open"}}')
    assert not attributes_match(resolved, '{"where": {"status": "open"}, "set": {"a": 1}}')
    assert not attributes_match(resolved, '{"where": {"status": "open"}, "extra": 1}')


# ============ Relationship ============


@pytest.fixture
def customer_directory(directory):
    directory.relationships.add((42, "5"))
    directory.tables["orders"] = TableDescriptor(table_name="orders", domain_column="customer_id")
    directory.tables["invoices"] = TableDescriptor(
        table_name="invoices", domain_column="orders.order_id"
    )
    directory.rows[("orders", "order_id", 10)] = {"order_id": 10, "customer_id": 5}
    return directory


@pytest.mark.asyncio
async def test_relationship_checks_domain_column(customer_directory):
    policy = RelationshipPolicy(directory=customer_directory)
    orders = customer_directory.tables["orders"]

    assert await policy.check(
        request("R", {"where": {"customer_id": "5"}}, obj="orders", dom="5"), UserType.CUSTOMER, 42, orders
    )
    assert not await policy.check(
        request("R", {"where": {"customer_id": "6"}}, obj="orders", dom="5"), UserType.CUSTOMER, 42, orders
    )
    assert await policy.check(
        request("C", {"set": {"customer_id": 5}}, obj="orders", dom="5"), UserType.CUSTOMER, 42, orders
    )


@pytest.mark.asyncio
async def test_relationship_requires_valid_relationship(customer_directory):
    policy = RelationshipPolicy(directory=customer_directory)
    orders = customer_directory.tables["orders"]

    assert not await policy.check(
        request("R", {"where": {"customer_id": "5"}}, obj="orders", dom="5"), UserType.CUSTOMER, 43, orders
    )
    assert not await policy.check(
        request("R", {"where": {"customer_id": "5"}}, obj="orders", dom="5"), UserType.PUBLIC, None, orders
    )


@pytest.mark.asyncio
async def test_relationship_follows_references(customer_directory):
    policy = RelationshipPolicy(directory=customer_directory)
    invoices = customer_directory.tables["invoices"]

    assert await policy.check(
        request("D", {"where": {"order_id": 10}}, obj="invoices", dom="5"), UserType.CUSTOMER, 42, invoices
    )
    assert not await policy.check(
        request("D", {"where": {"order_id": 11}}, obj="invoices", dom="5"), UserType.CUSTOMER, 42, invoices
    )


@pytest.mark.asyncio
async def test_relationship_without_domain_column_fails(customer_directory):
    policy = RelationshipPolicy(directory=customer_directory)

    assert not await policy.check(
        request("R", {"where": {}}, obj="countries", dom="5"), UserType.CUSTOMER, 42, UNOWNED
    )
