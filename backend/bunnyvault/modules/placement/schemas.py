"""Pydantic schemas for tenant placement."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bunnyvault.config import settings


class ProvisioningConfig(BaseModel):
    """Options for what provisioning creates in the assigned shard."""

    auto_create_root: bool = True
    default_subfolders: list[str] = Field(
        default_factory=lambda: ["Videos", "Livestreams", "Thumbnails", "Archive"]
    )
    bootstrap_lease_seconds: int = 120

    @classmethod
    def from_settings(cls) -> "ProvisioningConfig":
        return cls(
            auto_create_root=settings.auto_create_root,
            default_subfolders=settings.default_subfolders,
            bootstrap_lease_seconds=settings.bootstrap_lease_seconds,
        )


class PlacementDescriptor(BaseModel):
    """Where a tenant's content lives. Consumed by upload and browsing paths."""

    tenant_id: str
    shard_id: str
    root_collection_id: str | None = None
    region: str | None = None


class TreeNode(BaseModel):
    """A collection in a tenant's folder tree.

    ``unavailable`` marks a subtree cut off because its hierarchy was malformed.
    """

    id: str
    name: str
    video_count: int = 0
    total_size_bytes: int = 0
    unavailable: bool = False
    children: list["TreeNode"] = Field(default_factory=list)


# ============================================================================
# Request / Response Schemas
# ============================================================================


class ProvisionRequest(BaseModel):
    """Schema for placing the calling tenant."""

    location_hint: str | None = Field(default=None, max_length=50)


class AssignmentResponse(BaseModel):
    """Schema for an assignment record."""

    model_config = ConfigDict(from_attributes=True)

    tenant_id: str
    shard_id: str
    assigned_at: datetime
    is_active: bool
    deactivated_at: datetime | None = None


class FolderCreate(BaseModel):
    """Schema for creating a custom subfolder."""

    name: str = Field(..., min_length=1, max_length=100)
    parent_id: str | None = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Folder name must not be blank")
        return v


class FolderResponse(BaseModel):
    """Schema for a created folder."""

    id: str
    name: str
    parent_id: str | None = None
