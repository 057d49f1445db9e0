"""Health check endpoints.

Readiness covers what placement needs: the database holding assignments, the
Redis shard cache, and at least one active shard for new tenants. Redis and
shard capacity only degrade readiness; placement of already-placed tenants
keeps working without them.
"""

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from bunnyvault.config import settings
from bunnyvault.core.database import check_db_connection
from bunnyvault.core.dependencies import DBSession
from bunnyvault.core.logging import get_logger
from bunnyvault.core.redis import check_redis_connection
from bunnyvault.modules.shards.models import ShardMetadata

logger = get_logger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str


class ReadinessResponse(BaseModel):
    """Dependency checks plus how many shards accept new tenants."""

    status: str
    checks: dict[str, bool]
    active_shards: int


async def count_active_shards(db: DBSession) -> int:
    """Shards marked active in local metadata (no provider call)."""
    stmt = select(func.count()).select_from(ShardMetadata).where(ShardMetadata.is_active.is_(True))
    return (await db.execute(stmt)).scalar() or 0


@router.get("/health", response_model=HealthResponse, summary="Basic health check")
async def health() -> HealthResponse:
    return HealthResponse(status="ok", service=settings.app_name, version=settings.app_version)


@router.get("/health/live", response_model=HealthResponse, summary="Liveness probe")
async def liveness() -> HealthResponse:
    return HealthResponse(status="ok", service=settings.app_name, version=settings.app_version)


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
    description=(
        "Checks the assignment database, the Redis shard cache and shard capacity. "
        "Anything short of all three reports `degraded`."
    ),
)
async def readiness(db: DBSession) -> ReadinessResponse:
    db_ok = await check_db_connection()
    redis_ok = await check_redis_connection()

    active_shards = 0
    if db_ok:
        try:
            active_shards = await count_active_shards(db)
        except SQLAlchemyError as e:
            logger.warning("active_shard_count_failed", error=str(e))

    checks = {
        "database": db_ok,
        "redis": redis_ok,
        "shard_capacity": active_shards > 0,
    }
    if not all(checks.values()):
        logger.warning("readiness_degraded", **checks)

    return ReadinessResponse(
        status="ok" if all(checks.values()) else "degraded",
        checks=checks,
        active_shards=active_shards,
    )
