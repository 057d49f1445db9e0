"""API routes for tenant placement and folders."""

from fastapi import APIRouter, status

from bunnyvault.core.dependencies import Provisioner, TenantFromHeader
from bunnyvault.core.exceptions import NotFoundError
from bunnyvault.modules.placement.schemas import (
    FolderCreate,
    FolderResponse,
    PlacementDescriptor,
    ProvisionRequest,
    TreeNode,
)

router = APIRouter(prefix="/placement")


@router.get(
    "/assignment",
    response_model=PlacementDescriptor,
    summary="Get current placement",
    description="Shard and root collection of the calling tenant. Never provisions.",
)
async def get_assignment(
    tenant_id: TenantFromHeader,
    provisioner: Provisioner,
) -> PlacementDescriptor:
    """Get the tenant's placement."""
    descriptor = await provisioner.get_placement(tenant_id)
    if descriptor is None:
        raise NotFoundError("TenantAssignment", tenant_id)
    return descriptor


@router.post(
    "/assign",
    response_model=PlacementDescriptor,
    summary="Place tenant",
    description=(
        "Assign the calling tenant to a shard and create its root folder. "
        "Idempotent: an already placed tenant gets its existing placement back."
    ),
    responses={
        status.HTTP_502_BAD_GATEWAY: {"description": "Root folder could not be created; retry"},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "No shard or provider available"},
    },
)
async def assign_tenant(
    tenant_id: TenantFromHeader,
    provisioner: Provisioner,
    data: ProvisionRequest | None = None,
) -> PlacementDescriptor:
    """Provision the tenant."""
    hint = data.location_hint if data is not None else None
    return await provisioner.provision_tenant(tenant_id, location_hint=hint)


@router.get(
    "/folders",
    response_model=TreeNode,
    summary="Get folder tree",
    description="The tenant's folders as a tree. Malformed subtrees are marked unavailable.",
)
async def get_folders(
    tenant_id: TenantFromHeader,
    provisioner: Provisioner,
) -> TreeNode:
    """Get the tenant's folder tree."""
    tree = await provisioner.get_folder_tree(tenant_id)
    if tree is None:
        raise NotFoundError("TenantCollection", tenant_id)
    return tree


@router.post(
    "/folders",
    response_model=FolderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create folder",
    description="Create a folder under the tenant root or under one of its folders.",
)
async def create_folder(
    data: FolderCreate,
    tenant_id: TenantFromHeader,
    provisioner: Provisioner,
) -> FolderResponse:
    """Create a custom subfolder."""
    collection = await provisioner.create_subfolder(tenant_id, data.name, data.parent_id)
    return FolderResponse(
        id=collection.collection_id,
        name=collection.name,
        parent_id=collection.parent_id,
    )
