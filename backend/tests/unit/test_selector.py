"""Unit tests for load-aware shard selection."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from bunnyvault.modules.shards.exceptions import NoAvailableShard
from bunnyvault.modules.shards.models import Region, normalize_region_hint, region_matches
from bunnyvault.modules.shards.schemas import ShardInfo
from bunnyvault.modules.shards.selector import AssignmentCountLoadEstimator, ShardSelector

T0 = datetime(2026, 1, 1, tzinfo=UTC)


class StaticLoadEstimator:
    """Loads from a fixed mapping."""

    def __init__(self, loads: dict[str, int]) -> None:
        self.loads = loads
        self.calls: list[str] = []

    async def load_of(self, shard_id: str) -> int:
        self.calls.append(shard_id)
        return self.loads.get(shard_id, 0)


def shard(
    shard_id: str,
    region: Region = Region.EU,
    *,
    created_days_ago: int = 0,
    active: bool = True,
) -> ShardInfo:
    return ShardInfo(
        shard_id=shard_id,
        name=f"library-{shard_id}",
        region=region,
        active=active,
        created_at=T0 - timedelta(days=created_days_ago),
    )


@pytest.mark.unit
class TestShardSelector:
    """Tests for ShardSelector."""

    @pytest.mark.asyncio
    async def test_lowest_load_tie_broken_by_creation(self) -> None:
        """S1 load 3, S2 and S3 load 1, S3 older: S3 wins."""
        s1 = shard("S1", created_days_ago=30)
        s2 = shard("S2", created_days_ago=5)
        s3 = shard("S3", created_days_ago=10)
        selector = ShardSelector(StaticLoadEstimator({"S1": 3, "S2": 1, "S3": 1}))

        selected = await selector.select([s1, s2, s3])

        assert selected.shard_id == "S3"

    @pytest.mark.asyncio
    async def test_tie_on_load_and_creation_broken_by_id(self) -> None:
        selector = ShardSelector(StaticLoadEstimator({}))

        selected = await selector.select([shard("b"), shard("a")])

        assert selected.shard_id == "a"

    @pytest.mark.asyncio
    async def test_region_preference(self) -> None:
        """Hint 'us' picks the US shard even though loads are tied."""
        s1 = shard("S1", Region.EU, created_days_ago=10)
        s2 = shard("S2", Region.US_EAST)
        selector = ShardSelector(StaticLoadEstimator({"S1": 0, "S2": 0}))

        selected = await selector.select([s1, s2], hint="us")

        assert selected.shard_id == "S2"

    @pytest.mark.asyncio
    async def test_region_preference_beats_lower_load(self) -> None:
        selector = ShardSelector(StaticLoadEstimator({"eu": 0, "asia": 9}))

        selected = await selector.select(
            [shard("eu", Region.EU), shard("asia", Region.ASIA)],
            hint="Asia-Pacific",
        )

        assert selected.shard_id == "asia"

    @pytest.mark.asyncio
    async def test_region_fallback(self) -> None:
        """No shard in the hinted region: the hint is ignored."""
        selector = ShardSelector(StaticLoadEstimator({}))

        selected = await selector.select([shard("S1", Region.EU)], hint="us")

        assert selected.shard_id == "S1"

    @pytest.mark.asyncio
    async def test_inactive_shards_excluded(self) -> None:
        selector = ShardSelector(StaticLoadEstimator({"busy": 5, "idle": 0}))

        selected = await selector.select([shard("busy"), shard("idle", active=False)])

        assert selected.shard_id == "busy"

    @pytest.mark.asyncio
    async def test_empty_candidates_raise(self) -> None:
        selector = ShardSelector(StaticLoadEstimator({}))

        with pytest.raises(NoAvailableShard):
            await selector.select([])

    @pytest.mark.asyncio
    async def test_only_inactive_candidates_raise(self) -> None:
        selector = ShardSelector(StaticLoadEstimator({}))

        with pytest.raises(NoAvailableShard) as exc_info:
            await selector.select([shard("off", active=False)])

        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_rank_puts_preferred_region_first(self) -> None:
        estimator = StaticLoadEstimator({"eu-1": 0, "eu-2": 2, "us-1": 4, "us-2": 1})
        selector = ShardSelector(estimator)

        ranked = await selector.rank(
            [
                shard("eu-1", Region.EU),
                shard("eu-2", Region.EU),
                shard("us-1", Region.US_EAST),
                shard("us-2", Region.US_WEST),
            ],
            hint="us",
        )

        assert [r.shard.shard_id for r in ranked] == ["us-2", "us-1", "eu-1", "eu-2"]
        assert [r.load for r in ranked] == [1, 4, 0, 2]

    @pytest.mark.asyncio
    async def test_selection_is_deterministic(self) -> None:
        candidates = [shard(str(i), created_days_ago=i % 3) for i in range(6)]
        selector = ShardSelector(StaticLoadEstimator({}))

        picks = {(await selector.select(candidates)).shard_id for _ in range(5)}

        assert picks == {"2"}


@pytest.mark.unit
class TestAssignmentCountLoadEstimator:
    """Tests for the default load estimator."""

    @pytest.mark.asyncio
    async def test_load_is_active_assignment_count(self) -> None:
        store = AsyncMock()
        store.count_active.return_value = 7

        load = await AssignmentCountLoadEstimator(store).load_of("lib-1")

        assert load == 7
        store.count_active.assert_awaited_once_with("lib-1")


@pytest.mark.unit
class TestRegionMatching:
    """Tests for location hint normalisation."""

    @pytest.mark.parametrize(
        ("hint", "expected"),
        [
            ("EU", "eu"),
            ("Europe", "eu"),
            (" us_east ", "us-east"),
            ("APAC", "asia"),
            ("USA", "us"),
            ("", None),
            (None, None),
        ],
    )
    def test_normalize_region_hint(self, hint: str | None, expected: str | None) -> None:
        assert normalize_region_hint(hint) == expected

    def test_family_hint_matches_every_member(self) -> None:
        assert region_matches(Region.US_EAST, "us")
        assert region_matches(Region.US_WEST, "us")
        assert not region_matches(Region.EU, "us")

    def test_exact_hint_does_not_match_sibling(self) -> None:
        assert region_matches(Region.US_EAST, "us-east")
        assert not region_matches(Region.US_WEST, "us-east")

    def test_no_hint_matches_nothing(self) -> None:
        assert not region_matches(Region.EU, None)
