"""Tenant placement database models."""

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from bunnyvault.core.base_model import Base, TimestampMixin, UUIDMixin, utcnow


class TenantAssignment(Base, UUIDMixin, TimestampMixin):
    """Binding of a tenant to the shard that holds its content.

    At most one active row per tenant, enforced by a partial unique index so
    concurrent first-touch requests cannot both insert. Offboarding flips
    ``is_active``; rows are kept as history.
    """

    __tablename__ = "tenant_assignments"

    tenant_id: Mapped[str] = mapped_column(String(100), nullable=False)
    shard_id: Mapped[str] = mapped_column(String(100), nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    deactivated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    # Set while a request is creating the root collection
    bootstrap_claimed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        Index(
            "uq_tenant_assignments_active_tenant",
            "tenant_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        Index("ix_tenant_assignments_tenant", "tenant_id"),
        Index("ix_tenant_assignments_shard_active", "shard_id", "is_active"),
    )

    def deactivate(self) -> None:
        """Soft-deactivate (tenant offboarding)."""
        self.is_active = False
        self.deactivated_at = utcnow()

    def __repr__(self) -> str:
        return f"<TenantAssignment {self.tenant_id}->{self.shard_id} active={self.is_active}>"


class TenantCollection(Base, UUIDMixin, TimestampMixin):
    """Local mirror of a tenant's root collection.

    Only the root is mirrored; subfolders live in the provider and are read
    back through the collection listing. One root per (tenant, shard).
    """

    __tablename__ = "tenant_collections"

    collection_id: Mapped[str] = mapped_column(String(100), nullable=False)
    tenant_id: Mapped[str] = mapped_column(String(100), nullable=False)
    shard_id: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    parent_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_default_root: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    video_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_size_bytes: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    __table_args__ = (
        Index(
            "uq_tenant_collections_root",
            "tenant_id",
            "shard_id",
            unique=True,
            postgresql_where=text("is_default_root"),
            sqlite_where=text("is_default_root = 1"),
        ),
        Index("ix_tenant_collections_collection", "shard_id", "collection_id", unique=True),
    )

    def __repr__(self) -> str:
        return f"<TenantCollection {self.collection_id} tenant={self.tenant_id}>"
