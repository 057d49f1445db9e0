"""API tests for shard administration endpoints."""

import pytest
from httpx import AsyncClient

BASE = "/api/v1/admin/shards"


class TestShardsAPI:
    """Tests for /admin/shards endpoints."""

    @pytest.mark.asyncio
    async def test_admin_key_required(self, client: AsyncClient, admin_key: str) -> None:
        missing = await client.get(BASE)
        wrong = await client.get(BASE, headers={"X-Admin-Key": "nope"})

        assert missing.status_code == 401
        assert wrong.status_code == 401
        assert wrong.json()["type"].endswith("/invalid_admin_key")

    @pytest.mark.asyncio
    async def test_admin_api_disabled_without_key(self, client: AsyncClient) -> None:
        response = await client.get(BASE, headers={"X-Admin-Key": ""})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_create_and_list(self, client: AsyncClient, admin_key: str) -> None:
        headers = {"X-Admin-Key": admin_key}

        created = await client.post(
            BASE,
            json={"name": "eu-main", "region": "eu"},
            headers=headers,
        )
        listed = await client.get(BASE, headers=headers)

        assert created.status_code == 201
        shard = created.json()
        assert shard["region"] == "eu"
        assert shard["is_active"] is True
        assert [s["shard_id"] for s in listed.json()] == [shard["shard_id"]]

    @pytest.mark.asyncio
    async def test_created_shard_used_for_placement(
        self,
        client: AsyncClient,
        admin_key: str,
    ) -> None:
        created = await client.post(
            BASE,
            json={"name": "oceania-1", "region": "oceania"},
            headers={"X-Admin-Key": admin_key},
        )

        placed = await client.post(
            "/api/v1/placement/assign",
            json={},
            headers={"X-Tenant-ID": "t1"},
        )

        assert placed.json()["shard_id"] == created.json()["shard_id"]

    @pytest.mark.asyncio
    async def test_deactivate_shard(self, client: AsyncClient, admin_key: str, add_shard) -> None:
        await add_shard("lib-1")

        response = await client.patch(
            f"{BASE}/lib-1",
            json={"is_active": False},
            headers={"X-Admin-Key": admin_key},
        )
        placed = await client.post(
            "/api/v1/placement/assign",
            json={},
            headers={"X-Tenant-ID": "t1"},
        )

        assert response.status_code == 200
        assert response.json()["is_active"] is False
        assert placed.status_code == 503

    @pytest.mark.asyncio
    async def test_update_unknown_shard(self, client: AsyncClient, admin_key: str) -> None:
        response = await client.patch(
            f"{BASE}/missing",
            json={"health_status": "degraded"},
            headers={"X-Admin-Key": admin_key},
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_stats(self, client: AsyncClient, admin_key: str, add_shard) -> None:
        await add_shard("lib-1")
        await client.post("/api/v1/placement/assign", json={}, headers={"X-Tenant-ID": "t1"})

        response = await client.get(f"{BASE}/stats", headers={"X-Admin-Key": admin_key})

        assert response.status_code == 200
        data = response.json()
        assert data["total_shards"] == 1
        assert data["total_tenants"] == 1
        assert data["shards"][0]["tenant_count"] == 1

    @pytest.mark.asyncio
    async def test_offboard_tenant(self, client: AsyncClient, admin_key: str, add_shard) -> None:
        await add_shard("lib-1")
        await client.post("/api/v1/placement/assign", json={}, headers={"X-Tenant-ID": "t1"})

        response = await client.delete(
            f"{BASE}/assignments/t1",
            headers={"X-Admin-Key": admin_key},
        )
        current = await client.get(
            "/api/v1/placement/assignment",
            headers={"X-Tenant-ID": "t1"},
        )
        again = await client.delete(
            f"{BASE}/assignments/t1",
            headers={"X-Admin-Key": admin_key},
        )

        assert response.status_code == 200
        assert response.json()["is_active"] is False
        assert current.status_code == 404
        assert again.status_code == 404
