"""Tenant assignment store.

The single source of truth for "has this tenant been placed". Exactly-once
assignment is enforced by the database: ``create_if_absent`` issues one
INSERT guarded by the partial unique index on active rows and turns a
constraint violation into "return the row that won".
"""

from datetime import timedelta

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bunnyvault.core.base_model import utcnow
from bunnyvault.core.database import transactional
from bunnyvault.core.exceptions import NotFoundError
from bunnyvault.core.logging import get_logger
from bunnyvault.modules.placement.models import TenantAssignment

logger = get_logger(__name__)


class TenantAssignmentStore:
    """Durable, idempotent tenant → shard bindings."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_active(self, tenant_id: str) -> TenantAssignment | None:
        """Get the tenant's active assignment, if any."""
        stmt = (
            select(TenantAssignment)
            .where(TenantAssignment.tenant_id == tenant_id)
            .where(TenantAssignment.is_active.is_(True))
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def create_if_absent(
        self,
        tenant_id: str,
        shard_id: str,
    ) -> tuple[TenantAssignment, bool]:
        """Insert an active assignment unless one already exists.

        Returns:
            Tuple of (assignment, created). ``created`` is False when another
            request placed the tenant first; the returned row is the winner's.
        """
        assignment = TenantAssignment(tenant_id=tenant_id, shard_id=shard_id, is_active=True)

        try:
            await self._insert(assignment)
        except IntegrityError:
            existing = await self.get_active(tenant_id)
            if existing is None:
                # Violation of something other than the active-tenant index
                raise
            logger.info(
                "assignment_race_lost",
                tenant_id=tenant_id,
                attempted_shard_id=shard_id,
                shard_id=existing.shard_id,
            )
            return existing, False

        logger.info("assignment_created", tenant_id=tenant_id, shard_id=shard_id)
        return assignment, True

    async def count_active(self, shard_id: str) -> int:
        """Number of tenants currently bound to a shard."""
        stmt = (
            select(func.count())
            .select_from(TenantAssignment)
            .where(TenantAssignment.shard_id == shard_id)
            .where(TenantAssignment.is_active.is_(True))
        )
        return (await self.db.execute(stmt)).scalar() or 0

    async def count_active_by_shard(self) -> dict[str, int]:
        """Active tenant counts for every shard that has any."""
        stmt = (
            select(TenantAssignment.shard_id, func.count())
            .where(TenantAssignment.is_active.is_(True))
            .group_by(TenantAssignment.shard_id)
        )
        result = await self.db.execute(stmt)
        return {shard_id: count for shard_id, count in result.all()}

    @transactional
    async def claim_bootstrap(self, tenant_id: str, lease_seconds: int) -> bool:
        """Take the tenant's bootstrap lease.

        A single conditional UPDATE, so concurrent callers cannot both win.
        An unreleased lease older than ``lease_seconds`` can be taken over.

        Returns:
            False while another request holds the lease.
        """
        now = utcnow()
        stmt = (
            update(TenantAssignment)
            .where(TenantAssignment.tenant_id == tenant_id)
            .where(TenantAssignment.is_active.is_(True))
            .where(
                or_(
                    TenantAssignment.bootstrap_claimed_at.is_(None),
                    TenantAssignment.bootstrap_claimed_at < now - timedelta(seconds=lease_seconds),
                )
            )
            .values(bootstrap_claimed_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    @transactional
    async def release_bootstrap(self, tenant_id: str) -> None:
        """Give the bootstrap lease back."""
        stmt = (
            update(TenantAssignment)
            .where(TenantAssignment.tenant_id == tenant_id)
            .where(TenantAssignment.is_active.is_(True))
            .values(bootstrap_claimed_at=None)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(stmt)

    @transactional
    async def deactivate(self, tenant_id: str) -> TenantAssignment:
        """Soft-deactivate the tenant's assignment (offboarding).

        Raises:
            NotFoundError: tenant has no active assignment
        """
        assignment = await self.get_active(tenant_id)
        if assignment is None:
            raise NotFoundError("TenantAssignment", tenant_id)

        assignment.deactivate()
        await self.db.flush()

        logger.info("assignment_deactivated", tenant_id=tenant_id, shard_id=assignment.shard_id)
        return assignment

    @transactional
    async def _insert(self, assignment: TenantAssignment) -> TenantAssignment:
        self.db.add(assignment)
        await self.db.flush()
        return assignment
