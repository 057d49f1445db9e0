"""Test fixtures, fakes and factories."""

from tests.fixtures.factories import (
    ProviderCollectionFactory,
    ShardMetadataFactory,
    TenantAssignmentFactory,
)
from tests.fixtures.fakes import FakeCache, FakeStreamProvider

__all__ = [
    "FakeCache",
    "FakeStreamProvider",
    "ProviderCollectionFactory",
    "ShardMetadataFactory",
    "TenantAssignmentFactory",
]
