"""Tenant placement exceptions."""

from fastapi import status

from bunnyvault.core.exceptions import AppException


class BootstrapFailed(AppException):
    """Tenant was assigned a shard but its root collection could not be created.

    The assignment is kept; calling provisioning again resumes from it.
    """

    def __init__(self, tenant_id: str, shard_id: str, reason: str) -> None:
        self.tenant_id = tenant_id
        self.shard_id = shard_id
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            error_code="bootstrap_failed",
            message=f"Root collection for tenant '{tenant_id}' could not be created: {reason}",
            detail={"tenant_id": tenant_id, "shard_id": shard_id, "retryable": True},
        )


class MalformedHierarchy(AppException):
    """A collection's parent chain is self-referential, cyclic or too deep."""

    def __init__(self, collection_id: str, reason: str) -> None:
        self.collection_id = collection_id
        self.reason = reason
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            error_code="malformed_hierarchy",
            message=f"Collection '{collection_id}' has a malformed hierarchy: {reason}",
            detail={"collection_id": collection_id},
        )


class FolderOutsideTenantTreeError(AppException):
    """Requested parent folder does not belong to the tenant."""

    def __init__(self, collection_id: str) -> None:
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="folder_outside_tenant_tree",
            message="Parent folder does not belong to this tenant",
            detail={"collection_id": collection_id},
        )
