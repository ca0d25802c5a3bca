"""Tests for system health endpoint."""

import pytest
from httpx import AsyncClient

from mysre.api.routes import system


@pytest.mark.asyncio
async def test_system_health_returns_structure(client: AsyncClient):
    """GET /api/system/health reports the database and Redis."""
    resp = await client.get("/api/system/health")
    assert resp.status_code == 200
    data = resp.json()
    assert set(data) == {"status", "database", "redis"}
    # Database should be ok (using SQLite in tests)
    assert data["database"]["status"] == "ok"
    assert data["redis"]["status"] in ("ok", "error")
    if data["redis"]["status"] == "error":
        assert data["status"] == "degraded"


@pytest.mark.asyncio
async def test_system_health_redis_down(client: AsyncClient, monkeypatch):
    async def _redis_down():
        return system.ServiceHealth(status="error", detail="Connection refused")

    monkeypatch.setattr(system, "_check_redis", _redis_down)

    data = (await client.get("/api/system/health")).json()
    assert data["status"] == "degraded"
    assert data["redis"]["detail"] == "Connection refused"


@pytest.mark.asyncio
async def test_system_health_all_ok(client: AsyncClient, monkeypatch):
    async def _redis_up():
        return system.ServiceHealth(status="ok", latency_ms=1)

    monkeypatch.setattr(system, "_check_redis", _redis_up)

    data = (await client.get("/api/system/health")).json()
    assert data["status"] == "ok"


@pytest.mark.asyncio
async def test_liveness_check(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
