"""Reconstruction of tenant folder trees from a shard's flat collection list.

The provider returns every collection in a shard with only a parent pointer.
Both the ownership walk and the tree assembly are depth-bounded: external data
with a cycle or an absurdly deep chain is reported as ``MalformedHierarchy``
and cut off, never recursed into.
"""

from collections import defaultdict
from collections.abc import Iterable, Mapping

from bunnyvault.config import settings
from bunnyvault.core.logging import get_logger
from bunnyvault.modules.placement.exceptions import MalformedHierarchy
from bunnyvault.modules.placement.schemas import TreeNode
from bunnyvault.modules.provider.schemas import ProviderCollection

logger = get_logger(__name__)


def index_collections(collections: Iterable[ProviderCollection]) -> dict[str, ProviderCollection]:
    """Index by collection id; the first occurrence of a duplicate id wins."""
    index: dict[str, ProviderCollection] = {}
    for collection in collections:
        index.setdefault(collection.collection_id, collection)
    return index


class CollectionTreeBuilder:
    """Builds bounded-depth trees and records any malformed hierarchy found.

    ``max_depth`` is the number of levels a tree may have, root included.
    """

    def __init__(self, max_depth: int | None = None) -> None:
        self.max_depth = max_depth if max_depth is not None else settings.hierarchy_max_depth
        self.issues: list[MalformedHierarchy] = []

    def is_descendant(
        self,
        node: ProviderCollection,
        ancestor_id: str,
        collections: Mapping[str, ProviderCollection] | Iterable[ProviderCollection],
    ) -> bool:
        """Walk parent pointers upward from ``node`` looking for ``ancestor_id``.

        Raises:
            MalformedHierarchy: self-reference, cycle, or chain deeper than the bound
        """
        index = collections if isinstance(collections, Mapping) else index_collections(collections)

        seen = {node.collection_id}
        current = node
        for _ in range(self.max_depth - 1):
            parent_id = current.parent_id
            if parent_id is None:
                return False
            if parent_id in seen:
                raise MalformedHierarchy(node.collection_id, f"cycle through '{parent_id}'")
            if parent_id == ancestor_id:
                return True
            parent = index.get(parent_id)
            if parent is None:
                # Dangling parent: belongs to no tree we know of
                return False
            seen.add(parent_id)
            current = parent

        if current.parent_id is None or current.parent_id not in index:
            return False
        raise MalformedHierarchy(
            node.collection_id,
            f"parent chain exceeds {self.max_depth} levels",
        )

    def filter_owned(
        self,
        collections: Iterable[ProviderCollection],
        root_id: str,
    ) -> list[ProviderCollection]:
        """Keep the root and its descendants; malformed chains are dropped and recorded."""
        index = index_collections(collections)
        owned: list[ProviderCollection] = []

        for collection in index.values():
            if collection.collection_id == root_id:
                owned.append(collection)
                continue
            try:
                if self.is_descendant(collection, root_id, index):
                    owned.append(collection)
            except MalformedHierarchy as e:
                self._record(e)

        return owned

    def build_tree(
        self,
        collections: Iterable[ProviderCollection],
        root_id: str,
    ) -> TreeNode | None:
        """Assemble the tree rooted at ``root_id``.

        Returns None if the root is not in the list. A node reached twice
        (cycle or duplicate parentage) or beyond the depth bound is emitted
        as an ``unavailable`` leaf; siblings are unaffected.
        """
        index = index_collections(collections)
        root = index.get(root_id)
        if root is None:
            return None

        children_of: dict[str | None, list[ProviderCollection]] = defaultdict(list)
        for collection in index.values():
            children_of[collection.parent_id].append(collection)

        visited: set[str] = set()
        return self._assemble(root, children_of, visited, depth=0)

    def _assemble(
        self,
        node: ProviderCollection,
        children_of: Mapping[str | None, list[ProviderCollection]],
        visited: set[str],
        depth: int,
    ) -> TreeNode:
        if node.collection_id in visited:
            self._record(MalformedHierarchy(node.collection_id, "collection reached twice"))
            return self._unavailable(node)
        if depth >= self.max_depth:
            self._record(
                MalformedHierarchy(node.collection_id, f"deeper than {self.max_depth} levels")
            )
            return self._unavailable(node)

        visited.add(node.collection_id)
        children = [
            self._assemble(child, children_of, visited, depth + 1)
            for child in children_of.get(node.collection_id, [])
        ]

        return TreeNode(
            id=node.collection_id,
            name=node.name,
            video_count=node.video_count,
            total_size_bytes=node.total_size_bytes,
            children=children,
        )

    @staticmethod
    def _unavailable(node: ProviderCollection) -> TreeNode:
        return TreeNode(id=node.collection_id, name=node.name, unavailable=True)

    def _record(self, issue: MalformedHierarchy) -> None:
        self.issues.append(issue)
        logger.warning(
            "malformed_hierarchy",
            collection_id=issue.collection_id,
            reason=issue.reason,
        )
