"""
Tests for role grant and policy management endpoints.
"""

import pytest
import pytest_asyncio


@pytest_asyncio.fixture
async def manager(user_factory, resolver):
    """A customer user who administers domain 5."""
    await resolver.add_policy_in_domain("admin", "5", "mra_authorization", "C")
    await resolver.add_policy_in_domain("admin", "5", "mra_authorization", "R")
    await resolver.add_policy_in_domain("admin", "5", "orders", "GR")
    return await user_factory.create("manny", roles=(("admin", "5"),))


# ============ Role queries ============


@pytest.mark.asyncio
async def test_my_roles(client, alice_headers, user_factory, make_headers):
    mixed = await user_factory.create("mixed", roles=(("enduser", "0"), ("viewer", "7")))

    mine = await client.get("/v1/my-roles", headers=alice_headers)
    in_domain = await client.get("/v1/my-roles", params={"domain": "7"}, headers=make_headers(mixed))

    assert mine.json() == [{"role": "enduser", "domain": "0"}]
    assert in_domain.json() == [{"role": "viewer", "domain": "7"}]


@pytest.mark.asyncio
async def test_my_roles_for_public_caller(client):
    response = await client.get("/v1/my-roles")

    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.asyncio
async def test_domain_roles(client, admin_headers):
    response = await client.get("/v1/domain-roles", params={"domain": "0"}, headers=admin_headers)

    assert response.status_code == 200
    roles = response.json()
    assert {"role": "enduser", "domain": "0"} in roles
    assert {"role": "super", "domain": "*"} in roles


@pytest.mark.asyncio
async def test_domain_roles_needs_grant(client, alice_headers):
    response = await client.get("/v1/domain-roles", headers=alice_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_user_roles(client, admin_headers, alice):
    response = await client.get("/v1/user-roles", params={"username": "alice"}, headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == ["enduser"]


@pytest.mark.asyncio
async def test_customer_reads_roles_in_own_domain_only(client, manager, make_headers):
    headers = make_headers(manager)

    own = await client.get("/v1/user-roles", params={"domain": "5"}, headers=headers)
    other = await client.get("/v1/user-roles", params={"domain": "6"}, headers=headers)

    assert own.json() == ["admin"]
    assert other.status_code == 403


# ============ Role grants ============


@pytest.mark.asyncio
async def test_grant_and_revoke_role(client, admin_headers, carol, resolver):
    granted = await client.post(
        "/v1/user-role",
        json={"username": "carol", "role": "developer", "domain": "0"},
        headers=admin_headers,
    )

    assert granted.status_code == 201
    assert resolver.has_role_for_user_in_domain("carol", "developer", "0")

    revoked = await client.request(
        "DELETE",
        "/v1/user-role",
        json={"username": "carol", "role": "developer", "domain": "0"},
        headers=admin_headers,
    )

    assert revoked.status_code == 200
    assert revoked.json() == {"message": "Role has been removed successfully."}
    assert not resolver.has_role_for_user_in_domain("carol", "developer", "0")


@pytest.mark.asyncio
async def test_grant_unknown_role(client, admin_headers, carol):
    response = await client.post(
        "/v1/user-role",
        json={"username": "carol", "role": "astronaut", "domain": "0"},
        headers=admin_headers,
    )

    assert response.status_code == 404
    assert response.json() == {"message": "The role does not exist in the domain."}


@pytest.mark.asyncio
async def test_enduser_cannot_grant_roles(client, alice_headers, carol, resolver):
    response = await client.post(
        "/v1/user-role",
        json={"username": "carol", "role": "super", "domain": "0"},
        headers=alice_headers,
    )

    assert response.status_code == 403
    assert not resolver.has_role_for_user_in_domain("carol", "super", "0")


@pytest.mark.asyncio
async def test_customer_grants_role_in_own_domain(client, manager, carol, make_headers, resolver):
    response = await client.post(
        "/v1/user-role",
        json={"username": "carol", "role": "admin", "domain": "5"},
        headers=make_headers(manager),
    )

    assert response.status_code == 201
    assert resolver.get_user_type_for("carol").value == "customer"


@pytest.mark.asyncio
async def test_customer_cannot_grant_staff_role(client, manager, make_headers, resolver):
    headers = make_headers(manager)
    read_users = {"dom": "5", "obj": "mra_users", "act": "R"}

    response = await client.post("/v1/user-role", json={"role": "support", "domain": "5"}, headers=headers)

    assert response.status_code == 403
    assert response.json() == {"message": "User is not authorized."}
    assert not resolver.has_role_for_user_in_domain("manny", "support", "5")
    assert (await client.post("/v1/authorize", json=read_users, headers=headers)).status_code == 403


@pytest.mark.asyncio
async def test_customer_cannot_grant_role_defined_for_every_domain(client, manager, make_headers, resolver):
    await resolver.add_policy_in_domain("auditor", "*", "orders", "R")

    response = await client.post(
        "/v1/user-role", json={"role": "auditor", "domain": "5"}, headers=make_headers(manager)
    )

    assert response.status_code == 404
    assert response.json() == {"message": "The role does not exist in the domain."}
    assert not resolver.has_role_for_user_in_domain("manny", "auditor", "5")


@pytest.mark.asyncio
async def test_internal_caller_grants_role_defined_for_every_domain(client, admin_headers, carol, resolver):
    await resolver.add_policy_in_domain("auditor", "*", "orders", "R")

    response = await client.post(
        "/v1/user-role", json={"username": "carol", "role": "auditor", "domain": "0"}, headers=admin_headers
    )

    assert response.status_code == 201
    assert resolver.has_role_for_user_in_domain("carol", "auditor", "0")


# ============ Policies ============


@pytest.mark.asyncio
async def test_query_policies(client, admin_headers):
    response = await client.post(
        "/v1/policies", json={"domain": "0", "subject": "enduser"}, headers=admin_headers
    )

    assert response.status_code == 200
    assert sorted(p["action"] for p in response.json()) == ["D", "R", "U"]
    assert all(p["condition"] == "check_ownership" for p in response.json())


@pytest.mark.asyncio
async def test_internal_caller_adds_any_policy(client, admin_headers, resolver):
    response = await client.post(
        "/v1/policy",
        json={
            "subject": "auditor",
            "domain": "0",
            "object": "reports",
            "action": "R",
            "effect": "allow",
            "attributes": {"where": {"status": "final"}},
        },
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert resolver.get_policies_in_domain(subject="auditor") == [
        {
            "subject": "auditor",
            "domain": "0",
            "object": "reports",
            "action": "R",
            "condition": "none",
            "attributes": '{"where":{"status":"final"}}',
            "effect": "allow",
        }
    ]


@pytest.mark.asyncio
async def test_customer_adds_relationship_policy(client, manager, make_headers, resolver):
    response = await client.post(
        "/v1/policy",
        json={
            "subject": "admin",
            "domain": "5",
            "object": "orders",
            "action": "R",
            "effect": "allow",
            "condition": "check_relationship",
        },
        headers=make_headers(manager),
    )

    assert response.status_code == 200
    assert resolver.get_policies_in_domain(subject="admin", domain="5", object="orders", action="R")


@pytest.mark.asyncio
async def test_customer_must_use_relationship_condition(client, manager, make_headers):
    response = await client.post(
        "/v1/policy",
        json={"subject": "admin", "domain": "5", "object": "orders", "action": "R", "effect": "allow"},
        headers=make_headers(manager),
    )

    assert response.status_code == 403
    assert response.json() == {
        "message": "User is not authorized.",
        "details": "Customer users must set condition to 'check_relationship'.",
    }


@pytest.mark.asyncio
async def test_customer_needs_grant_action(client, manager, make_headers, resolver):
    response = await client.post(
        "/v1/policy",
        json={
            "subject": "admin",
            "domain": "5",
            "object": "orders",
            "action": "U",
            "effect": "allow",
            "condition": "check_relationship",
        },
        headers=make_headers(manager),
    )

    assert response.status_code == 403
    assert not resolver.get_policies_in_domain(subject="admin", domain="5", action="U")


@pytest.mark.asyncio
async def test_policies_in_use_cannot_be_removed(client, admin_headers, alice):
    response = await client.request(
        "DELETE", "/v1/policies", json={"domain": "0", "subject": "enduser"}, headers=admin_headers
    )

    assert response.status_code == 404
    assert response.json() == {
        "message": "Some users are using this policy and cannot be changed or removed."
    }


@pytest.mark.asyncio
async def test_remove_unused_policies(client, admin_headers, resolver):
    await resolver.add_policy_in_domain("auditor", "0", "reports", "R")
    await resolver.add_policy_in_domain("auditor", "0", "reports", "U")

    response = await client.request(
        "DELETE",
        "/v1/policies",
        json={"domain": "0", "subject": "auditor", "action": "U"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json() == {"result": 1}
    assert resolver.get_permissions_for_role_in_domain("auditor", "0") == [["reports", "R"]]
