"""
Tests for request ids and health endpoints.
"""

import pytest


@pytest.mark.asyncio
async def test_request_id_is_echoed(client):
    response = await client.get("/health", headers={"X-Request-ID": "trace-42"})

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "trace-42"


@pytest.mark.asyncio
@pytest.mark.parametrize("supplied", [None, "x" * 65, "bad id with spaces"])
async def test_request_id_is_generated(client, supplied):
    headers = {"X-Request-ID": supplied} if supplied else {}

    response = await client.get("/health", headers=headers)

    generated = response.headers["X-Request-ID"]
    assert generated != supplied
    assert len(generated) == 32


@pytest.mark.asyncio
async def test_request_id_on_denied_request(client):
    response = await client.post(
        "/v1/authorize",
        json={"dom": "0", "obj": "mra_users", "act": "R"},
        headers={"X-Request-ID": "denied-1"},
    )

    assert response.status_code == 403
    assert response.headers["X-Request-ID"] == "denied-1"


@pytest.mark.asyncio
async def test_detailed_health(client, authz):
    response = await client.get("/health/detailed")

    assert response.status_code == 200
    components = response.json()["components"]
    assert components["database"]["status"] != "unhealthy"
    assert components["policies"]["status"] == "healthy"
    assert components["policies"]["rules"] == len(authz.enforcer.snapshot.rules)
    assert "redis" not in components
