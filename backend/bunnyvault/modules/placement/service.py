"""Tenant provisioner - places tenants on shards and bootstraps their folders.

Provisioning is idempotent and resumable. The flow per tenant is::

    unplaced -> selecting -> assigning -> bootstrapping -> placed

Exactly-once assignment is delegated to ``TenantAssignmentStore``. Creating
the root collection runs under a lease kept on the assignment row, so only one
request per tenant talks to the provider at a time. A failure while
bootstrapping leaves the assignment in place, and the next call resumes at
bootstrapping without selecting again.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bunnyvault.core.database import transactional
from bunnyvault.core.exceptions import NotFoundError
from bunnyvault.core.logging import bind_placement, get_logger
from bunnyvault.core.redis import CacheClient
from bunnyvault.modules.placement.exceptions import (
    BootstrapFailed,
    FolderOutsideTenantTreeError,
)
from bunnyvault.modules.placement.models import TenantCollection
from bunnyvault.modules.placement.schemas import (
    PlacementDescriptor,
    ProvisioningConfig,
    TreeNode,
)
from bunnyvault.modules.placement.store import TenantAssignmentStore
from bunnyvault.modules.placement.tree import CollectionTreeBuilder, index_collections
from bunnyvault.modules.provider.client import StreamProviderClient
from bunnyvault.modules.provider.exceptions import ProviderTimeout, ProviderUnavailable
from bunnyvault.modules.provider.schemas import ProviderCollection
from bunnyvault.modules.shards.models import ShardMetadata
from bunnyvault.modules.shards.registry import ShardRegistry
from bunnyvault.modules.shards.schemas import ShardInfo, ShardLoad
from bunnyvault.modules.shards.selector import AssignmentCountLoadEstimator, ShardSelector

logger = get_logger(__name__)


def root_collection_name(tenant_id: str) -> str:
    """Provider-side name of a tenant's root collection."""
    return f"tenant_{tenant_id}"


class TenantProvisioner:
    """Service for tenant placement and folder bootstrap."""

    def __init__(
        self,
        db: AsyncSession,
        provider: StreamProviderClient,
        cache: CacheClient | None = None,
        config: ProvisioningConfig | None = None,
    ) -> None:
        self.db = db
        self.provider = provider
        self.config = config or ProvisioningConfig.from_settings()
        self.store = TenantAssignmentStore(db)
        self.registry = ShardRegistry(db, provider, cache)
        self.selector = ShardSelector(AssignmentCountLoadEstimator(self.store))

    async def provision_tenant(
        self,
        tenant_id: str,
        location_hint: str | None = None,
    ) -> PlacementDescriptor:
        """Ensure the tenant is placed on a shard and has a root collection.

        Raises:
            NoAvailableShard: no active shard to place the tenant on
            ProviderUnavailable: shard listing failed, or every candidate timed out
            BootstrapFailed: assignment kept, root collection could not be created
        """
        existing = await self.store.get_active(tenant_id)
        if existing is not None:
            shard_id = existing.shard_id
            root = await self._get_root(tenant_id, shard_id)
            if root is None and self.config.auto_create_root:
                logger.info("bootstrap_resumed", tenant_id=tenant_id, shard_id=shard_id)
                root = await self._bootstrap(tenant_id, shard_id)
            return await self._describe(tenant_id, shard_id, root)

        candidates = await self.registry.list_active_shards()
        ranked = await self.selector.rank(candidates, location_hint)
        shard = await self._first_reachable(ranked)

        assignment, created = await self.store.create_if_absent(tenant_id, shard.shard_id)
        shard_id = assignment.shard_id

        if not created:
            # Another request placed this tenant first and owns the bootstrap
            root = await self._get_root(tenant_id, shard_id)
            return await self._describe(tenant_id, shard_id, root)

        logger.info(
            "tenant_assigned",
            tenant_id=tenant_id,
            shard_id=shard_id,
            region=shard.region.value,
            location_hint=location_hint,
        )

        root = None
        if self.config.auto_create_root:
            root = await self._bootstrap(tenant_id, shard_id)

        return await self._describe(tenant_id, shard_id, root)

    async def get_placement(self, tenant_id: str) -> PlacementDescriptor | None:
        """Current placement without side effects."""
        assignment = await self.store.get_active(tenant_id)
        if assignment is None:
            return None
        shard_id = assignment.shard_id
        root = await self._get_root(tenant_id, shard_id)
        return await self._describe(tenant_id, shard_id, root)

    async def get_folder_tree(self, tenant_id: str) -> TreeNode | None:
        """Tenant's folder tree, or None if the tenant has no root yet.

        Malformed subtrees come back marked ``unavailable``; they never fail the call.
        """
        assignment = await self.store.get_active(tenant_id)
        if assignment is None:
            return None
        shard_id = assignment.shard_id
        bind_placement(tenant_id, shard_id)

        root = await self._get_root(tenant_id, shard_id)
        if root is None:
            return None
        root_id = root.collection_id

        collections = await self.provider.list_collections(shard_id)

        builder = CollectionTreeBuilder()
        owned = builder.filter_owned(collections, root_id)
        tree = builder.build_tree(owned, root_id)

        if tree is None:
            logger.warning(
                "root_collection_missing_remotely",
                tenant_id=tenant_id,
                shard_id=shard_id,
                collection_id=root_id,
            )
            return TreeNode(
                id=root_id,
                name=root.name,
                video_count=root.video_count,
                total_size_bytes=root.total_size_bytes,
                unavailable=True,
            )

        if builder.issues:
            logger.warning(
                "folder_tree_partially_unavailable",
                tenant_id=tenant_id,
                issues=len(builder.issues),
            )

        if (tree.video_count, tree.total_size_bytes) != (root.video_count, root.total_size_bytes):
            await self._sync_root_stats(root, tree)

        return tree

    async def create_subfolder(
        self,
        tenant_id: str,
        name: str,
        parent_id: str | None = None,
    ) -> ProviderCollection:
        """Create a folder under ``parent_id`` (default: the tenant root).

        Raises:
            NotFoundError: tenant is not placed or has no root collection
            FolderOutsideTenantTreeError: parent belongs to another tenant
        """
        assignment = await self.store.get_active(tenant_id)
        if assignment is None:
            raise NotFoundError("TenantAssignment", tenant_id)
        shard_id = assignment.shard_id
        bind_placement(tenant_id, shard_id)

        root = await self._get_root(tenant_id, shard_id)
        if root is None:
            raise NotFoundError("TenantCollection", tenant_id)
        root_id = root.collection_id

        target_id = parent_id or root_id
        if target_id != root_id:
            index = index_collections(await self.provider.list_collections(shard_id))
            parent = index.get(target_id)
            builder = CollectionTreeBuilder()
            if parent is None or not builder.is_descendant(parent, root_id, index):
                raise FolderOutsideTenantTreeError(target_id)

        collection = await self.provider.create_collection(shard_id, name, parent_id=target_id)
        logger.info(
            "subfolder_created",
            tenant_id=tenant_id,
            shard_id=shard_id,
            collection_id=collection.collection_id,
            parent_id=target_id,
        )
        return collection

    # =========================================================================
    # Selecting
    # =========================================================================

    async def _first_reachable(self, ranked: list[ShardLoad]) -> ShardInfo:
        """First candidate whose provider endpoint answers in time."""
        for candidate in ranked:
            shard_id = candidate.shard.shard_id
            try:
                await self.provider.list_collections(shard_id)
            except ProviderTimeout:
                logger.warning("shard_probe_timed_out", shard_id=shard_id, load=candidate.load)
                continue
            logger.info(
                "shard_selected",
                shard_id=shard_id,
                load=candidate.load,
                region=candidate.shard.region.value,
            )
            return candidate.shard

        raise ProviderUnavailable("select_shard", "every candidate shard timed out")

    # =========================================================================
    # Bootstrapping
    # =========================================================================

    async def _bootstrap(self, tenant_id: str, shard_id: str) -> TenantCollection | None:
        """Bootstrap under the tenant's lease.

        Returns the root, or whatever root exists (possibly None) when another
        request is already bootstrapping this tenant.
        """
        bind_placement(tenant_id, shard_id)
        claimed = await self.store.claim_bootstrap(tenant_id, self.config.bootstrap_lease_seconds)
        if not claimed:
            logger.info("bootstrap_in_progress", tenant_id=tenant_id, shard_id=shard_id)
            return await self._get_root(tenant_id, shard_id)

        try:
            return await self._run_bootstrap(tenant_id, shard_id)
        finally:
            await self.store.release_bootstrap(tenant_id)

    async def _run_bootstrap(self, tenant_id: str, shard_id: str) -> TenantCollection:
        try:
            # Listed after taking the lease, so it includes any earlier attempt's folders
            collections = await self.provider.list_collections(shard_id)
            root, owned = await self._ensure_root(tenant_id, shard_id, collections)
        except ProviderUnavailable as e:
            logger.error(
                "tenant_bootstrap_failed",
                tenant_id=tenant_id,
                shard_id=shard_id,
                error=str(e),
            )
            raise BootstrapFailed(tenant_id, shard_id, str(e)) from e

        if owned:
            await self._create_default_subfolders(shard_id, root.collection_id, collections)

        logger.info(
            "tenant_bootstrapped",
            tenant_id=tenant_id,
            shard_id=shard_id,
            root_collection_id=root.collection_id,
        )
        return root

    async def _ensure_root(
        self,
        tenant_id: str,
        shard_id: str,
        collections: list[ProviderCollection],
    ) -> tuple[TenantCollection, bool]:
        """Find or create the root: local mirror, then provider listing, then create.

        Returns:
            Tuple of (root, owned). ``owned`` is False when another request
            stored a different root first; that request creates the subfolders.
        """
        root = await self._get_root(tenant_id, shard_id)
        if root is not None:
            return root, True

        name = root_collection_name(tenant_id)
        remote = next(
            (c for c in collections if c.parent_id is None and c.name == name),
            None,
        )
        created = remote is None
        if created:
            remote = await self.provider.create_collection(shard_id, name)
            logger.info(
                "root_collection_created",
                tenant_id=tenant_id,
                collection_id=remote.collection_id,
            )
        else:
            logger.info(
                "root_collection_adopted",
                tenant_id=tenant_id,
                collection_id=remote.collection_id,
            )

        root, saved = await self._save_root(tenant_id, shard_id, remote)
        if not saved and created and root.collection_id != remote.collection_id:
            await self._discard_duplicate_root(tenant_id, shard_id, remote.collection_id)
        return root, saved

    async def _save_root(
        self,
        tenant_id: str,
        shard_id: str,
        remote: ProviderCollection,
    ) -> tuple[TenantCollection, bool]:
        """Mirror the root locally; returns (root, False) if another request won."""
        root = TenantCollection(
            collection_id=remote.collection_id,
            tenant_id=tenant_id,
            shard_id=shard_id,
            name=remote.name,
            parent_id=None,
            is_default_root=True,
            video_count=remote.video_count,
            total_size_bytes=remote.total_size_bytes,
        )
        try:
            await self._insert_root(root)
        except IntegrityError:
            existing = await self._get_root(tenant_id, shard_id)
            if existing is None:
                raise
            return existing, False
        return root, True

    async def _discard_duplicate_root(
        self,
        tenant_id: str,
        shard_id: str,
        collection_id: str,
    ) -> None:
        try:
            await self.provider.delete_collection(shard_id, collection_id)
        except ProviderUnavailable as e:
            logger.warning(
                "orphan_root_collection",
                tenant_id=tenant_id,
                shard_id=shard_id,
                collection_id=collection_id,
                error=str(e),
            )
            return
        logger.info(
            "duplicate_root_collection_deleted",
            tenant_id=tenant_id,
            shard_id=shard_id,
            collection_id=collection_id,
        )

    async def _create_default_subfolders(
        self,
        shard_id: str,
        root_id: str,
        collections: list[ProviderCollection],
    ) -> None:
        """Create whichever default subfolders are missing; failures are absorbed."""
        present = {c.name for c in collections if c.parent_id == root_id}

        for name in self.config.default_subfolders:
            if name in present:
                continue
            try:
                await self.provider.create_collection(shard_id, name, parent_id=root_id)
            except ProviderUnavailable as e:
                logger.warning(
                    "default_subfolder_failed",
                    shard_id=shard_id,
                    root_collection_id=root_id,
                    name=name,
                    error=str(e),
                )

    # =========================================================================
    # Local mirror
    # =========================================================================

    async def _get_root(self, tenant_id: str, shard_id: str) -> TenantCollection | None:
        stmt = (
            select(TenantCollection)
            .where(TenantCollection.tenant_id == tenant_id)
            .where(TenantCollection.shard_id == shard_id)
            .where(TenantCollection.is_default_root.is_(True))
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    @transactional
    async def _insert_root(self, root: TenantCollection) -> TenantCollection:
        self.db.add(root)
        await self.db.flush()
        return root

    @transactional
    async def _sync_root_stats(self, root: TenantCollection, tree: TreeNode) -> None:
        root.video_count = tree.video_count
        root.total_size_bytes = tree.total_size_bytes
        await self.db.flush()

    async def _describe(
        self,
        tenant_id: str,
        shard_id: str,
        root: TenantCollection | None,
    ) -> PlacementDescriptor:
        region = await self.db.scalar(
            select(ShardMetadata.region).where(ShardMetadata.shard_id == shard_id)
        )
        return PlacementDescriptor(
            tenant_id=tenant_id,
            shard_id=shard_id,
            root_collection_id=root.collection_id if root is not None else None,
            region=region,
        )
