"""Flat lookups over one tree snapshot.

A :class:`TreeIndex` is rebuilt after every fetch and thrown away on the next
one; nothing here talks to the store.
"""
from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence

from .errors import DepthLimitExceededError, InvalidMoveError, NodeNotFoundError
from .models import Node, NodeId

ROOT_SENTINELS: FrozenSet[NodeId] = frozenset({"0", "1"})
MAX_FOLDER_DEPTH = 5


def flatten(tree: Iterable[Node]) -> List[Node]:
    """Pre-order traversal, each root before its descendants."""
    result: List[Node] = []
    stack = list(reversed(list(tree)))
    while stack:
        node = stack.pop()
        result.append(node)
        if node.children:
            stack.extend(reversed(node.children))
    return result


def find_by_id(flat: Sequence[Node], node_id: NodeId) -> Optional[Node]:
    """Linear lookup; ``None`` means the node vanished since the snapshot."""
    for node in flat:
        if node.id == node_id:
            return node
    return None


def depth_of(flat: Sequence[Node], node_id: NodeId, roots: FrozenSet[NodeId] = ROOT_SENTINELS) -> int:
    """Parent hops from ``node_id`` up to a root sentinel (root itself is 0)."""
    return TreeIndex(flat, roots=roots).depth_of(node_id)


class TreeIndex:
    """Id-keyed view over a flattened snapshot."""

    def __init__(self, flat: Sequence[Node], roots: FrozenSet[NodeId] = ROOT_SENTINELS) -> None:
        self._flat = list(flat)
        self._by_id: Dict[NodeId, Node] = {node.id: node for node in self._flat}
        self._roots = roots

    @classmethod
    def build(cls, tree: Iterable[Node], roots: FrozenSet[NodeId] = ROOT_SENTINELS) -> "TreeIndex":
        return cls(flatten(tree), roots=roots)

    @classmethod
    def empty(cls) -> "TreeIndex":
        return cls([])

    def __len__(self) -> int:
        return len(self._flat)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._by_id

    @property
    def nodes(self) -> List[Node]:
        return list(self._flat)

    @property
    def roots(self) -> FrozenSet[NodeId]:
        return self._roots

    def is_root(self, node_id: NodeId) -> bool:
        return node_id in self._roots

    def get(self, node_id: Optional[NodeId]) -> Optional[Node]:
        if node_id is None:
            return None
        return self._by_id.get(node_id)

    def require(self, node_id: NodeId) -> Node:
        node = self._by_id.get(node_id)
        if node is None:
            raise NodeNotFoundError(f"Node {node_id!r} not found", node_id=node_id)
        return node

    def children_of(self, node_id: NodeId) -> List[Node]:
        node = self._by_id.get(node_id)
        if node is None or not node.children:
            return []
        return list(node.children)

    def depth_of(self, node_id: NodeId) -> int:
        node = self.require(node_id)
        depth = 0
        seen = {node.id}
        while node.id not in self._roots and node.parent_id:
            parent = self._by_id.get(node.parent_id)
            if parent is None or parent.id in seen:
                break
            depth += 1
            seen.add(parent.id)
            node = parent
        return depth

    def ancestry(self, node: Node) -> List[Node]:
        """``node`` and every resolvable ancestor, root first.

        The walk stops at a root sentinel, at a parentless node, or at the
        first parent id missing from the snapshot, so the path can come back
        shorter than the real one.
        """
        path = [node]
        seen = {node.id}
        current = node
        while current.id not in self._roots and current.parent_id:
            parent = self._by_id.get(current.parent_id)
            if parent is None or parent.id in seen:
                break
            path.append(parent)
            seen.add(parent.id)
            current = parent
        path.reverse()
        return path

    def is_descendant(self, node_id: NodeId, ancestor_id: NodeId) -> bool:
        """True when ``node_id`` equals ``ancestor_id`` or sits anywhere below it."""
        node = self._by_id.get(node_id)
        seen = set()
        while node is not None and node.id not in seen:
            if node.id == ancestor_id:
                return True
            seen.add(node.id)
            node = self._by_id.get(node.parent_id) if node.parent_id else None
        return False

    def subtree_height(self, node_id: NodeId) -> int:
        """Folder levels inside ``node_id`` (0 for a bookmark or an empty folder)."""
        node = self.require(node_id)
        if not node.is_folder:
            return 0
        height = 0
        stack = [(child, 1) for child in node.children or () if child.is_folder]
        while stack:
            child, level = stack.pop()
            height = max(height, level)
            stack.extend((grandchild, level + 1) for grandchild in child.children or () if grandchild.is_folder)
        return height

    def subtree_ids(self, node_id: NodeId) -> List[NodeId]:
        node = self._by_id.get(node_id)
        if node is None:
            return []
        return [entry.id for entry in flatten([node])]

    def check_folder_capacity(self, parent_id: NodeId, subtree_height: int = 0, *, limit: int = MAX_FOLDER_DEPTH) -> None:
        """Raise when a folder of ``subtree_height`` under ``parent_id`` breaks the depth limit."""
        parent_depth = self.depth_of(parent_id)
        if parent_depth + 1 + subtree_height > limit:
            raise DepthLimitExceededError(node_id=parent_id, limit=limit)

    def check_move(self, node_id: NodeId, target_id: NodeId, *, limit: int = MAX_FOLDER_DEPTH) -> Node:
        """Validate moving ``node_id`` into folder ``target_id`` against this snapshot."""
        node = self.require(node_id)
        target = self.require(target_id)
        if not target.is_folder:
            raise InvalidMoveError(f"Target {target_id!r} is not a folder", node_id=node_id)
        if node.is_folder and self.is_descendant(target_id, node_id):
            raise InvalidMoveError(f"Can't move {node_id!r} into itself or a descendant", node_id=node_id)
        if node.is_folder:
            self.check_folder_capacity(target_id, self.subtree_height(node_id), limit=limit)
        return node
