"""Shard (video library) database models."""

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from bunnyvault.core.base_model import Base, TimestampMixin, UUIDMixin


class Region(str, Enum):
    """Regions a shard can be provisioned in."""

    EU = "eu"
    US_EAST = "us-east"
    US_WEST = "us-west"
    ASIA = "asia"
    OCEANIA = "oceania"


class HealthStatus(str, Enum):
    """Last known shard health."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNKNOWN = "unknown"


REGION_ALIASES = {
    "europe": Region.EU.value,
    "usa": "us",
    "asia-pacific": Region.ASIA.value,
    "apac": Region.ASIA.value,
}


def normalize_region_hint(hint: str | None) -> str | None:
    """Normalize a free-form location hint ("Europe", "US-East", "us") to a region key."""
    if hint is None:
        return None
    key = hint.strip().lower().replace("_", "-")
    if not key:
        return None
    return REGION_ALIASES.get(key, key)


def region_matches(region: Region | str, hint: str | None) -> bool:
    """Check whether a shard region satisfies a location hint.

    A hint naming a region family ("us") matches every region in it ("us-east", "us-west").
    """
    key = normalize_region_hint(hint)
    if key is None:
        return False
    value = region.value if isinstance(region, Region) else str(region)
    return value == key or value.startswith(f"{key}-")


class ShardMetadata(Base, UUIDMixin, TimestampMixin):
    """Local metadata for a provider video library.

    The provider is authoritative for existence; this row is authoritative for
    region, health and whether new tenants may be placed on the shard.
    Rows are never deleted while tenants are assigned; deactivate instead.
    """

    __tablename__ = "shard_metadata"

    shard_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    region: Mapped[str] = mapped_column(String(20), nullable=False, default=Region.EU.value)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    health_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=HealthStatus.UNKNOWN.value
    )
    last_health_check: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_shard_metadata_region", "region"),
    )

    def __repr__(self) -> str:
        return f"<ShardMetadata {self.shard_id} region={self.region} active={self.is_active}>"
