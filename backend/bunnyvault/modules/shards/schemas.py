"""Pydantic schemas for shards."""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bunnyvault.modules.shards.models import HealthStatus, Region


class ShardInfo(BaseModel):
    """A shard as seen by placement: provider listing merged with local metadata."""

    model_config = ConfigDict(from_attributes=True)

    shard_id: str
    name: str
    region: Region
    active: bool = True
    health_status: HealthStatus = HealthStatus.UNKNOWN
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        """SQLite hands back naive timestamps; treat them as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


class ShardLoad(BaseModel):
    """A candidate shard paired with its current load."""

    shard: ShardInfo
    load: int


# ============================================================================
# Admin Schemas
# ============================================================================


class ShardCreate(BaseModel):
    """Schema for provisioning a new shard."""

    name: str = Field(..., min_length=1, max_length=255)
    region: Region = Region.EU


class ShardUpdate(BaseModel):
    """Schema for administrative shard changes."""

    is_active: bool | None = None
    health_status: HealthStatus | None = None


class ShardResponse(BaseModel):
    """Schema for a shard in admin listings."""

    shard_id: str
    name: str
    region: Region | None = None
    is_active: bool
    health_status: HealthStatus
    tenant_count: int = 0
    has_metadata: bool = True
    created_at: datetime | None = None


class ShardStatsResponse(BaseModel):
    """Schema for placement statistics."""

    total_shards: int
    active_shards: int
    total_tenants: int
    shards: list[ShardResponse]
