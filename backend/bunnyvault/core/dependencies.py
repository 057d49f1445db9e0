"""Common FastAPI dependencies."""

import hmac
from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from bunnyvault.config import settings
from bunnyvault.core.database import get_db
from bunnyvault.core.exceptions import InvalidAdminKeyError, TenantHeaderRequiredError
from bunnyvault.core.logging import bind_context
from bunnyvault.core.redis import CacheClient, get_cache
from bunnyvault.modules.placement.service import TenantProvisioner
from bunnyvault.modules.provider.client import StreamProviderClient, get_stream_provider
from bunnyvault.modules.shards.service import ShardService

# Type alias for database dependency
DBSession = Annotated[AsyncSession, Depends(get_db)]
Cache = Annotated[CacheClient | None, Depends(get_cache)]
StreamProvider = Annotated[StreamProviderClient, Depends(get_stream_provider)]


async def get_tenant_from_header(
    x_tenant_id: str | None = Header(default=None, alias="X-Tenant-ID"),
) -> str:
    """Get the calling tenant from the X-Tenant-ID header.

    The header is set by the authenticating gateway in front of this service.

    Raises:
        TenantHeaderRequiredError: If header is missing or blank
    """
    tenant_id = (x_tenant_id or "").strip()
    if not tenant_id:
        raise TenantHeaderRequiredError()

    bind_context(tenant_id=tenant_id)
    return tenant_id


TenantFromHeader = Annotated[str, Depends(get_tenant_from_header)]


async def require_admin_key(
    x_admin_key: str | None = Header(default=None, alias="X-Admin-Key"),
) -> None:
    """Guard for administrative routes.

    Raises:
        InvalidAdminKeyError: If no admin key is configured or the header does not match
    """
    if not settings.admin_api_key:
        raise InvalidAdminKeyError("Admin API is disabled")
    if not x_admin_key or not hmac.compare_digest(
        x_admin_key.encode(), settings.admin_api_key.encode()
    ):
        raise InvalidAdminKeyError()


async def get_provisioner(
    db: DBSession,
    provider: StreamProvider,
    cache: Cache,
) -> TenantProvisioner:
    """Build the tenant provisioner for a request."""
    return TenantProvisioner(db, provider, cache)


async def get_shard_service(
    db: DBSession,
    provider: StreamProvider,
    cache: Cache,
) -> ShardService:
    """Build the shard admin service for a request."""
    return ShardService(db, provider, cache)


Provisioner = Annotated[TenantProvisioner, Depends(get_provisioner)]
Shards = Annotated[ShardService, Depends(get_shard_service)]
