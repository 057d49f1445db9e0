"""Pydantic schemas for video platform payloads."""

from typing import Annotated, Any

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, field_validator

from bunnyvault.modules.shards.models import Region

# Bunny Stream replication region codes
PROVIDER_REGION_CODES: dict[Region, str] = {
    Region.EU: "EU",
    Region.US_EAST: "US-East",
    Region.US_WEST: "US-West",
    Region.ASIA: "Asia-Pacific",
    Region.OCEANIA: "Oceania",
}

_CODE_TO_REGION = {code.lower(): region.value for region, code in PROVIDER_REGION_CODES.items()}


def _coerce_id(value: Any) -> Any:
    # Library ids come back as integers, collection ids as GUID strings
    if isinstance(value, int):
        return str(value)
    return value


ExternalId = Annotated[str, BeforeValidator(_coerce_id)]


class ProviderShard(BaseModel):
    """A video library as listed by the provider."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: ExternalId = Field(validation_alias=AliasChoices("Id", "id"))
    name: str = Field(default="", validation_alias=AliasChoices("Name", "name"))
    region: str | None = Field(
        default=None,
        validation_alias=AliasChoices("ReplicationRegions", "region"),
    )

    @field_validator("region", mode="before")
    @classmethod
    def first_replication_region(cls, v: Any) -> str | None:
        """Reduce the provider's replication list to a single region key."""
        if isinstance(v, list):
            v = v[0] if v else None
        if v is None:
            return None
        return _CODE_TO_REGION.get(str(v).lower(), str(v).lower())


class ProviderCollection(BaseModel):
    """A collection node as returned by the provider (flat, parent pointer only)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    collection_id: ExternalId = Field(validation_alias=AliasChoices("guid", "id", "collection_id"))
    name: str = Field(default="", validation_alias=AliasChoices("name", "Name"))
    parent_id: ExternalId | None = Field(
        default=None,
        validation_alias=AliasChoices("parentId", "parent_id"),
    )
    video_count: int = Field(default=0, validation_alias=AliasChoices("videoCount", "video_count"))
    total_size_bytes: int = Field(
        default=0,
        validation_alias=AliasChoices("totalSize", "total_size_bytes"),
    )

    @field_validator("parent_id", mode="after")
    @classmethod
    def empty_parent_is_root(cls, v: str | None) -> str | None:
        return v or None
