"""Tests for health check endpoints."""

from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient

from bunnyvault.config import settings
from bunnyvault.modules.health import router as health_router


@pytest.fixture
def dependencies_up(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(health_router, "check_db_connection", AsyncMock(return_value=True))
    monkeypatch.setattr(health_router, "check_redis_connection", AsyncMock(return_value=True))


@pytest.mark.asyncio
async def test_health_endpoint(client: AsyncClient) -> None:
    """Test basic health check."""
    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == settings.app_name
    assert "version" in data


@pytest.mark.asyncio
async def test_liveness_endpoint(client: AsyncClient) -> None:
    """Test liveness probe."""
    response = await client.get("/health/live")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_readiness_endpoint(client: AsyncClient, dependencies_up, add_shard) -> None:
    """Test readiness probe with all dependencies up and a shard to place on."""
    await add_shard("lib-1")
    await add_shard("lib-off", is_active=False)

    response = await client.get("/health/ready")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "checks": {"database": True, "redis": True, "shard_capacity": True},
        "active_shards": 1,
    }


@pytest.mark.asyncio
async def test_readiness_degraded_without_active_shards(
    client: AsyncClient,
    dependencies_up,
    add_shard,
) -> None:
    await add_shard("lib-off", is_active=False)

    response = await client.get("/health/ready")

    data = response.json()
    assert data["status"] == "degraded"
    assert data["checks"]["shard_capacity"] is False
    assert data["active_shards"] == 0


@pytest.mark.asyncio
async def test_readiness_degraded_without_redis(
    client: AsyncClient,
    monkeypatch: pytest.MonkeyPatch,
    add_shard,
) -> None:
    """Placement keeps working uncached, so a missing Redis only degrades readiness."""
    await add_shard("lib-1")
    monkeypatch.setattr(health_router, "check_db_connection", AsyncMock(return_value=True))
    monkeypatch.setattr(health_router, "check_redis_connection", AsyncMock(return_value=False))

    response = await client.get("/health/ready")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["checks"]["redis"] is False
    assert data["checks"]["shard_capacity"] is True
