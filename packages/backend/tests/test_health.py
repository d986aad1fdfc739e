"""Health endpoint tests."""

import pytest

from hivemind import __version__


@pytest.mark.asyncio
async def test_health_returns_ok(unauthenticated_client):
    """Health is open and reports the server, version and storage."""
    resp = await unauthenticated_client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["server"] == "ok"
    assert data["version"] == __version__
    assert data["storage"] == "memory"
    assert data["enforcePayments"] is False


@pytest.mark.asyncio
async def test_health_without_redis(client):
    """No Redis in tests: reported, but not unhealthy."""
    data = (await client.get("/api/v1/health")).json()
    assert data["redis"] == "unavailable"
    assert data["status"] == "healthy"


@pytest.mark.asyncio
async def test_health_counts_tasks(client, runtime):
    assert (await client.get("/api/v1/health")).json()["tasks"] == 0
    await client.post("/api/v1/dispatch", json={"prompt": "hello"})
    await runtime.scheduler.drain()
    assert (await client.get("/api/v1/health")).json()["tasks"] == 1
