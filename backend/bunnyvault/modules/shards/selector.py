"""Load-aware shard selection.

Load is the number of active tenant assignments on a shard. The estimator is
a protocol so richer signals (storage headroom, latency) can replace it
without touching the selector.
"""

from typing import TYPE_CHECKING, Protocol

from bunnyvault.core.logging import get_logger
from bunnyvault.modules.shards.exceptions import NoAvailableShard
from bunnyvault.modules.shards.models import region_matches
from bunnyvault.modules.shards.schemas import ShardInfo, ShardLoad

if TYPE_CHECKING:
    from bunnyvault.modules.placement.store import TenantAssignmentStore

logger = get_logger(__name__)


class LoadEstimator(Protocol):
    """Anything that can report the current load of a shard."""

    async def load_of(self, shard_id: str) -> int: ...


class AssignmentCountLoadEstimator:
    """Load = active assignments on the shard. Local read only."""

    def __init__(self, store: "TenantAssignmentStore") -> None:
        self.store = store

    async def load_of(self, shard_id: str) -> int:
        return await self.store.count_active(shard_id)


def _order_key(candidate: ShardLoad) -> tuple:
    # Lowest load first, then oldest shard, then id for a total order
    return (candidate.load, candidate.shard.created_at, candidate.shard.shard_id)


class ShardSelector:
    """Deterministic lowest-load selection with region preference."""

    def __init__(self, estimator: LoadEstimator) -> None:
        self.estimator = estimator

    async def rank(
        self,
        candidates: list[ShardInfo],
        hint: str | None = None,
    ) -> list[ShardLoad]:
        """Order every eligible candidate from best to worst.

        Shards in the hinted region come first (by load), followed by the
        rest (by load). Without a matching shard the hint is ignored.

        Raises:
            NoAvailableShard: no active candidate
        """
        eligible = [shard for shard in candidates if shard.active]
        if not eligible:
            raise NoAvailableShard()

        scored = [
            ShardLoad(shard=shard, load=await self.estimator.load_of(shard.shard_id))
            for shard in eligible
        ]

        preferred = [c for c in scored if region_matches(c.shard.region, hint)]
        if preferred:
            preferred_ids = {c.shard.shard_id for c in preferred}
            rest = [c for c in scored if c.shard.shard_id not in preferred_ids]
            return sorted(preferred, key=_order_key) + sorted(rest, key=_order_key)

        if hint is not None:
            logger.info("region_hint_unmatched", hint=hint, candidates=len(scored))
        return sorted(scored, key=_order_key)

    async def select(
        self,
        candidates: list[ShardInfo],
        hint: str | None = None,
    ) -> ShardInfo:
        """Pick the single best shard for a new tenant."""
        best = (await self.rank(candidates, hint))[0]
        logger.debug(
            "shard_selected",
            shard_id=best.shard.shard_id,
            load=best.load,
            region=best.shard.region.value,
            hint=hint,
        )
        return best.shard
