"""
Tests for the authorization decision endpoints.
"""

import pytest
from sqlalchemy import select

from mra_auth.models.audit_log import MraAuditLog


async def audit_rows(session_factory) -> list[MraAuditLog]:
    async with session_factory() as session:
        result = await session.execute(select(MraAuditLog).order_by(MraAuditLog.log_id))
        return list(result.scalars().all())


# ============ POST /authorize ============


@pytest.mark.asyncio
async def test_enduser_read_is_narrowed_to_own_rows(client, alice, alice_headers):
    response = await client.post(
        "/v1/authorize",
        json={"dom": "0", "obj": "mra_users", "act": "R"},
        headers=alice_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["user"] == {"userId": alice.user_id, "username": "alice", "email": alice.email}
    assert body["roles"] == [{"role": "enduser", "domain": "0"}]
    assert body["conditions"] == {"where": {"user_id": alice.user_id}}


@pytest.mark.asyncio
async def test_enduser_update_needs_owner_filter(client, alice, alice_headers):
    denied = await client.post(
        "/v1/authorize",
        json={"dom": "0", "obj": "mra_users", "act": "U", "attrs": {"set": {"display_name": "A"}}},
        headers=alice_headers,
    )
    allowed = await client.post(
        "/v1/authorize",
        json={
            "dom": "0",
            "obj": "mra_users",
            "act": "U",
            "attrs": {"where": {"user_id": alice.user_id}, "set": {"display_name": "A"}},
        },
        headers=alice_headers,
    )

    assert denied.status_code == 403
    assert denied.json() == {"message": "User is not authorized."}
    assert allowed.status_code == 200


@pytest.mark.asyncio
async def test_enduser_cannot_touch_other_rows(client, alice_headers, carol):
    response = await client.post(
        "/v1/authorize",
        json={"dom": "0", "obj": "mra_users", "act": "D", "attrs": {"where": {"user_id": carol.user_id}}},
        headers=alice_headers,
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_public_caller_is_denied(client, alice):
    anonymous = await client.post("/v1/authorize", json={"dom": "0", "obj": "mra_users", "act": "R"})
    garbage = await client.post(
        "/v1/authorize",
        json={"dom": "0", "obj": "mra_users", "act": "R"},
        headers={"Authorization": "Bearer not-a-jwt"},
    )

    assert anonymous.status_code == 403
    assert garbage.status_code == 403


@pytest.mark.asyncio
async def test_internal_caller_is_not_narrowed(client, admin_headers, alice):
    response = await client.post(
        "/v1/authorize",
        json={"dom": "0", "obj": "mra_users", "act": "D", "attrs": {"where": {"user_id": alice.user_id}}},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()["conditions"] == {"where": {"user_id": alice.user_id}}


@pytest.mark.asyncio
async def test_token_of_deleted_user_is_public(client, user_factory, make_headers, session_factory):
    ghost = await user_factory.create("ghost_user")
    headers = make_headers(ghost)
    async with session_factory() as session:
        await session.delete(await session.get(type(ghost), ghost.user_id))
        await session.commit()

    response = await client.post(
        "/v1/authorize", json={"dom": "0", "obj": "mra_users", "act": "R"}, headers=headers
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_invalid_body_is_rejected(client, alice_headers):
    response = await client.post("/v1/authorize", json={"obj": "mra_users"}, headers=alice_headers)

    assert response.status_code == 400
    assert response.json()["errors"]


@pytest.mark.asyncio
async def test_decisions_are_audited(client, alice, alice_headers, session_factory):
    await client.post(
        "/v1/authorize",
        json={"dom": "0", "obj": "mra_users", "act": "R", "attrs": {"where": {"password": "x"}}},
        headers=alice_headers,
    )
    await client.post(
        "/v1/authorize",
        json={"dom": "0", "obj": "mra_users", "act": "D"},
        headers=alice_headers,
    )

    allowed, denied = await audit_rows(session_factory)
    assert allowed.method_route == "POST:/v1/authorize"
    assert allowed.user_id == str(alice.user_id)
    assert "User has been authorized." in allowed.comments
    assert allowed.req["body"]["attrs"]["where"]["password"] == "***"
    assert "User is not authorized." in denied.comments


# ============ GET /roles ============


@pytest.mark.asyncio
async def test_internal_caller_reads_roles_of_others(client, admin_headers, alice):
    response = await client.get("/v1/roles", params={"username": "alice"}, headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == [{"role": "enduser", "domain": "0"}]


@pytest.mark.asyncio
async def test_roles_of_user_without_grants(client, admin_headers):
    response = await client.get("/v1/roles", params={"username": "nobody"}, headers=admin_headers)

    assert response.status_code == 404
    assert response.json() == {"message": "User role not found"}


@pytest.mark.asyncio
async def test_enduser_cannot_read_role_tables(client, alice_headers):
    response = await client.get("/v1/roles", headers=alice_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_public_caller_asking_about_someone(client, alice):
    response = await client.get("/v1/roles", params={"username": "alice"})

    assert response.status_code == 401
    assert response.json() == {"message": "You must provide a valid JWT token."}
