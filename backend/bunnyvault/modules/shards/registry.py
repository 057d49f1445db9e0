"""Shard registry: the set of shards new tenants may be placed on.

Merges the provider's library listing with local ``shard_metadata`` rows and
caches the result in Redis. Staleness is bounded by the cache TTL; a failed
refresh serves the last-known-good snapshot when one exists.
"""

from pydantic import TypeAdapter, ValidationError
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bunnyvault.config import settings
from bunnyvault.core.logging import get_logger
from bunnyvault.core.redis import CacheClient
from bunnyvault.modules.provider.client import StreamProviderClient
from bunnyvault.modules.provider.exceptions import ProviderUnavailable
from bunnyvault.modules.provider.schemas import ProviderShard
from bunnyvault.modules.shards.models import Region, ShardMetadata
from bunnyvault.modules.shards.schemas import ShardInfo

logger = get_logger(__name__)

_shard_list = TypeAdapter(list[ShardInfo])


class ShardRegistry:
    """Lists active shards with TTL caching and last-known-good fallback."""

    CACHE_KEY = "shards:active"
    FALLBACK_KEY = "shards:last_known_good"

    def __init__(
        self,
        db: AsyncSession,
        provider: StreamProviderClient,
        cache: CacheClient | None = None,
        *,
        ttl: int | None = None,
        fallback_ttl: int | None = None,
    ) -> None:
        self.db = db
        self.provider = provider
        self.cache = cache
        self.ttl = ttl if ttl is not None else settings.shard_cache_ttl_seconds
        self.fallback_ttl = (
            fallback_ttl if fallback_ttl is not None else settings.shard_cache_fallback_ttl_seconds
        )

    async def list_active_shards(self) -> list[ShardInfo]:
        """Return active shards, served from cache while fresh.

        Cached snapshots are re-checked against local metadata so an
        administrative deactivation takes effect on the next read.

        Raises:
            ProviderUnavailable: refresh failed and no snapshot is cached
        """
        cached = await self._read(self.CACHE_KEY)
        if cached is not None:
            return await self._drop_deactivated(cached)

        try:
            return await self.refresh()
        except ProviderUnavailable as e:
            fallback = await self._read(self.FALLBACK_KEY)
            if fallback is None:
                raise
            logger.warning(
                "shard_registry_serving_stale",
                error=str(e),
                shard_count=len(fallback),
            )
            return await self._drop_deactivated(fallback)

    async def refresh(self) -> list[ShardInfo]:
        """Rebuild the active shard list from the provider and local metadata."""
        provider_shards = await self.provider.list_shards()
        metadata = await self.load_metadata()

        shards = merge_shards(provider_shards, metadata)

        payload = _shard_list.dump_json(shards).decode()
        await self._write(self.CACHE_KEY, payload, self.ttl)
        await self._write(self.FALLBACK_KEY, payload, self.fallback_ttl)

        logger.info(
            "shard_registry_refreshed",
            provider_shards=len(provider_shards),
            active_shards=len(shards),
        )
        return shards

    async def invalidate(self) -> None:
        """Drop the fresh entry so the next read refreshes (fallback is kept)."""
        if self.cache is None:
            return
        try:
            await self.cache.delete(self.CACHE_KEY)
        except RedisError as e:
            logger.warning("shard_cache_invalidate_failed", error=str(e))

    async def forget(self, shard_id: str) -> None:
        """Remove a deactivated shard from both cached snapshots."""
        await self.invalidate()

        fallback = await self._read(self.FALLBACK_KEY)
        if fallback is None:
            return
        kept = [s for s in fallback if s.shard_id != shard_id]
        if len(kept) != len(fallback):
            await self._write(
                self.FALLBACK_KEY,
                _shard_list.dump_json(kept).decode(),
                self.fallback_ttl,
            )

    async def load_metadata(self) -> dict[str, ShardMetadata]:
        """Local metadata rows keyed by shard id."""
        result = await self.db.execute(
            select(ShardMetadata).execution_options(populate_existing=True)
        )
        return {row.shard_id: row for row in result.scalars().all()}

    async def _drop_deactivated(self, snapshot: list[ShardInfo]) -> list[ShardInfo]:
        metadata = await self.load_metadata()
        shards = []
        for shard in snapshot:
            meta = metadata.get(shard.shard_id)
            if meta is None or not meta.is_active:
                logger.info("cached_shard_no_longer_active", shard_id=shard.shard_id)
                continue
            shards.append(shard)
        return shards

    # =========================================================================
    # Cache helpers
    # =========================================================================

    async def _read(self, key: str) -> list[ShardInfo] | None:
        if self.cache is None:
            return None
        try:
            raw = await self.cache.get(key)
        except RedisError as e:
            logger.warning("shard_cache_read_failed", key=key, error=str(e))
            return None
        if raw is None:
            return None
        try:
            return _shard_list.validate_json(raw)
        except ValidationError:
            logger.warning("shard_cache_corrupt", key=key)
            return None

    async def _write(self, key: str, value: str, ttl: int) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.set(key, value, ttl=ttl)
        except RedisError as e:
            logger.warning("shard_cache_write_failed", key=key, error=str(e))


def merge_shards(
    provider_shards: list[ProviderShard],
    metadata: dict[str, ShardMetadata],
) -> list[ShardInfo]:
    """Keep shards the provider lists AND local metadata marks active.

    Region comes from local metadata, falling back to the provider's
    replication region. Ordered by creation time, oldest first.
    """
    shards: list[ShardInfo] = []

    for remote in provider_shards:
        meta = metadata.get(remote.id)
        if meta is None:
            logger.debug("shard_without_metadata_skipped", shard_id=remote.id)
            continue
        if not meta.is_active:
            continue

        region_value = meta.region or remote.region
        try:
            region = Region(region_value)
        except ValueError:
            logger.warning("shard_unknown_region_skipped", shard_id=remote.id, region=region_value)
            continue

        shards.append(
            ShardInfo(
                shard_id=remote.id,
                name=remote.name or meta.name,
                region=region,
                active=True,
                health_status=meta.health_status,
                created_at=meta.created_at,
            )
        )

    shards.sort(key=lambda s: (s.created_at, s.shard_id))
    return shards
