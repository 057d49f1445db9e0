"""Shard administration service - provisioning, activation and load stats."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bunnyvault.core.base_model import utcnow
from bunnyvault.core.database import transactional
from bunnyvault.core.exceptions import NotFoundError
from bunnyvault.core.logging import get_logger
from bunnyvault.core.redis import CacheClient
from bunnyvault.modules.placement.models import TenantAssignment
from bunnyvault.modules.placement.store import TenantAssignmentStore
from bunnyvault.modules.provider.client import StreamProviderClient
from bunnyvault.modules.provider.schemas import ProviderShard
from bunnyvault.modules.shards.models import HealthStatus, Region, ShardMetadata
from bunnyvault.modules.shards.registry import ShardRegistry
from bunnyvault.modules.shards.schemas import (
    ShardCreate,
    ShardResponse,
    ShardStatsResponse,
    ShardUpdate,
)

logger = get_logger(__name__)


class ShardService:
    """Service for administrative shard operations."""

    def __init__(
        self,
        db: AsyncSession,
        provider: StreamProviderClient,
        cache: CacheClient | None = None,
    ) -> None:
        self.db = db
        self.provider = provider
        self.store = TenantAssignmentStore(db)
        self.registry = ShardRegistry(db, provider, cache)

    async def list_shards(self) -> list[ShardResponse]:
        """All provider libraries with their local metadata and tenant counts.

        Libraries without a metadata row are listed as inactive; placement
        never uses them.
        """
        provider_shards = await self.provider.list_shards()
        metadata = await self.registry.load_metadata()
        counts = await self.store.count_active_by_shard()

        shards = [
            self._to_response(remote, metadata.get(remote.id), counts.get(remote.id, 0))
            for remote in provider_shards
        ]
        shards.sort(key=lambda s: (s.created_at is None, s.created_at, s.shard_id))
        return shards

    async def get_stats(self) -> ShardStatsResponse:
        """Placement totals and per-shard load."""
        shards = await self.list_shards()
        return ShardStatsResponse(
            total_shards=len(shards),
            active_shards=sum(1 for s in shards if s.is_active),
            total_tenants=sum(s.tenant_count for s in shards),
            shards=shards,
        )

    async def create_shard(self, data: ShardCreate) -> ShardResponse:
        """Create a video library at the provider and register it for placement."""
        remote = await self.provider.create_library(data.name, data.region)
        meta = await self._upsert_metadata(remote.id, remote.name or data.name, data.region)
        await self.registry.invalidate()

        logger.info(
            "shard_created",
            shard_id=remote.id,
            name=meta.name,
            region=data.region.value,
        )
        return self._to_response(remote, meta, 0)

    async def update_shard(self, shard_id: str, data: ShardUpdate) -> ShardResponse:
        """Activate/deactivate a shard or record its health.

        Raises:
            NotFoundError: shard has no local metadata
        """
        meta = await self._apply_update(shard_id, data)
        if meta.is_active:
            await self.registry.invalidate()
        else:
            await self.registry.forget(shard_id)

        logger.info(
            "shard_updated",
            shard_id=shard_id,
            is_active=meta.is_active,
            health_status=meta.health_status,
        )
        count = await self.store.count_active(shard_id)
        return self._to_response(None, meta, count)

    async def offboard_tenant(self, tenant_id: str) -> TenantAssignment:
        """Release a tenant's assignment. Provider content is left untouched."""
        return await self.store.deactivate(tenant_id)

    @transactional
    async def _upsert_metadata(self, shard_id: str, name: str, region: Region) -> ShardMetadata:
        result = await self.db.execute(
            select(ShardMetadata).where(ShardMetadata.shard_id == shard_id)
        )
        meta = result.scalar_one_or_none()

        if meta is None:
            meta = ShardMetadata(
                shard_id=shard_id,
                name=name,
                region=region.value,
                is_active=True,
                health_status=HealthStatus.UNKNOWN.value,
            )
            self.db.add(meta)
        else:
            meta.name = name
            meta.region = region.value
            meta.is_active = True

        await self.db.flush()
        return meta

    @transactional
    async def _apply_update(self, shard_id: str, data: ShardUpdate) -> ShardMetadata:
        result = await self.db.execute(
            select(ShardMetadata).where(ShardMetadata.shard_id == shard_id)
        )
        meta = result.scalar_one_or_none()
        if meta is None:
            raise NotFoundError("Shard", shard_id)

        if data.is_active is not None:
            meta.is_active = data.is_active
        if data.health_status is not None:
            meta.health_status = data.health_status.value
            meta.last_health_check = utcnow()

        await self.db.flush()
        return meta

    @staticmethod
    def _to_response(
        remote: ProviderShard | None,
        meta: ShardMetadata | None,
        tenant_count: int,
    ) -> ShardResponse:
        if meta is None:
            return ShardResponse(
                shard_id=remote.id,
                name=remote.name,
                region=_region_or_none(remote.region),
                is_active=False,
                health_status=HealthStatus.UNKNOWN,
                tenant_count=tenant_count,
                has_metadata=False,
            )

        return ShardResponse(
            shard_id=meta.shard_id,
            name=(remote.name if remote is not None and remote.name else meta.name),
            region=_region_or_none(meta.region),
            is_active=meta.is_active,
            health_status=meta.health_status,
            tenant_count=tenant_count,
            has_metadata=True,
            created_at=meta.created_at,
        )


def _region_or_none(value: str | None) -> Region | None:
    try:
        return Region(value) if value else None
    except ValueError:
        return None
