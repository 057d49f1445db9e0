"""Create placement tables.

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    """Create shard_metadata, tenant_assignments and tenant_collections tables."""
    # Shard metadata
    op.create_table(
        "shard_metadata",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("shard_id", sa.String(100), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("region", sa.String(20), nullable=False, server_default="eu"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("health_status", sa.String(20), nullable=False, server_default="unknown"),
        sa.Column("last_health_check", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_shard_metadata_region", "shard_metadata", ["region"])

    # Tenant assignments
    op.create_table(
        "tenant_assignments",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", sa.String(100), nullable=False),
        sa.Column("shard_id", sa.String(100), nullable=False),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("deactivated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("bootstrap_claimed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    # At most one active assignment per tenant
    op.create_index(
        "uq_tenant_assignments_active_tenant",
        "tenant_assignments",
        ["tenant_id"],
        unique=True,
        postgresql_where=sa.text("is_active"),
        sqlite_where=sa.text("is_active = 1"),
    )
    op.create_index("ix_tenant_assignments_tenant", "tenant_assignments", ["tenant_id"])
    op.create_index(
        "ix_tenant_assignments_shard_active",
        "tenant_assignments",
        ["shard_id", "is_active"],
    )

    # Tenant root collections
    op.create_table(
        "tenant_collections",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("collection_id", sa.String(100), nullable=False),
        sa.Column("tenant_id", sa.String(100), nullable=False),
        sa.Column("shard_id", sa.String(100), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("parent_id", sa.String(100), nullable=True),
        sa.Column("is_default_root", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("video_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_size_bytes", sa.BigInteger(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    # One root per tenant and shard
    op.create_index(
        "uq_tenant_collections_root",
        "tenant_collections",
        ["tenant_id", "shard_id"],
        unique=True,
        postgresql_where=sa.text("is_default_root"),
        sqlite_where=sa.text("is_default_root = 1"),
    )
    op.create_index(
        "ix_tenant_collections_collection",
        "tenant_collections",
        ["shard_id", "collection_id"],
        unique=True,
    )


def downgrade() -> None:
    """Drop placement tables."""
    op.drop_index("ix_tenant_collections_collection", table_name="tenant_collections")
    op.drop_index("uq_tenant_collections_root", table_name="tenant_collections")
    op.drop_table("tenant_collections")

    op.drop_index("ix_tenant_assignments_shard_active", table_name="tenant_assignments")
    op.drop_index("ix_tenant_assignments_tenant", table_name="tenant_assignments")
    op.drop_index("uq_tenant_assignments_active_tenant", table_name="tenant_assignments")
    op.drop_table("tenant_assignments")

    op.drop_index("ix_shard_metadata_region", table_name="shard_metadata")
    op.drop_table("shard_metadata")
