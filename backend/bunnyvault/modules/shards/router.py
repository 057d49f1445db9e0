"""Admin API routes for shards."""

from fastapi import APIRouter, Depends, status

from bunnyvault.core.dependencies import Shards, require_admin_key
from bunnyvault.modules.placement.schemas import AssignmentResponse
from bunnyvault.modules.shards.schemas import (
    ShardCreate,
    ShardResponse,
    ShardStatsResponse,
    ShardUpdate,
)

router = APIRouter(prefix="/shards", dependencies=[Depends(require_admin_key)])


@router.get(
    "",
    response_model=list[ShardResponse],
    summary="List shards",
    description="All provider libraries with local metadata and tenant counts.",
)
async def list_shards(service: Shards) -> list[ShardResponse]:
    """List shards."""
    return await service.list_shards()


@router.post(
    "",
    response_model=ShardResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create shard",
    description="Create a video library at the provider and open it for placement.",
)
async def create_shard(data: ShardCreate, service: Shards) -> ShardResponse:
    """Create a shard."""
    return await service.create_shard(data)


@router.get(
    "/stats",
    response_model=ShardStatsResponse,
    summary="Placement statistics",
)
async def get_stats(service: Shards) -> ShardStatsResponse:
    """Totals and per-shard load."""
    return await service.get_stats()


@router.patch(
    "/{shard_id}",
    response_model=ShardResponse,
    summary="Update shard",
    description="Activate or deactivate a shard, or record its health.",
)
async def update_shard(shard_id: str, data: ShardUpdate, service: Shards) -> ShardResponse:
    """Update a shard."""
    return await service.update_shard(shard_id, data)


@router.delete(
    "/assignments/{tenant_id}",
    response_model=AssignmentResponse,
    summary="Offboard tenant",
    description="Deactivate the tenant's assignment. Provider content is not deleted.",
)
async def offboard_tenant(tenant_id: str, service: Shards) -> AssignmentResponse:
    """Offboard a tenant."""
    assignment = await service.offboard_tenant(tenant_id)
    return AssignmentResponse.model_validate(assignment)
