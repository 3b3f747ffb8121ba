from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional, Set

from .models import Node, NodeId
from .tree_index import TreeIndex

logger = logging.getLogger(__name__)


class SelectionManager:
    """Multi-select mode and the set of selected node ids.

    The selection is always empty while multi-select mode is off.
    """

    def __init__(self, on_change: Optional[Callable[["SelectionManager"], None]] = None) -> None:
        self._multi_select = False
        self._selected: Set[NodeId] = set()
        self._on_change = on_change

    @property
    def multi_select_mode(self) -> bool:
        return self._multi_select

    @property
    def selected(self) -> Set[NodeId]:
        return set(self._selected)

    def is_selected(self, node_id: NodeId) -> bool:
        return node_id in self._selected

    def selected_nodes(self, index: TreeIndex) -> List[Node]:
        """Selected nodes still present in ``index``, in tree order."""
        return [node for node in index.nodes if node.id in self._selected]

    def enter_multi_select(self) -> None:
        if self._multi_select:
            return
        self._multi_select = True
        self._notify()

    def exit_multi_select(self) -> None:
        if not self._multi_select and not self._selected:
            return
        self._multi_select = False
        self._selected.clear()
        self._notify()

    def toggle_multi_select(self) -> bool:
        if self._multi_select:
            self.exit_multi_select()
        else:
            self.enter_multi_select()
        return self._multi_select

    def toggle(self, node: Node) -> bool:
        """Flip ``node`` in the selection; ignored outside multi-select mode."""
        if not self._multi_select:
            return False
        if node.id in self._selected:
            self._selected.discard(node.id)
        else:
            self._selected.add(node.id)
        self._notify()
        return node.id in self._selected

    def select_all(self, nodes: Iterable[Node]) -> None:
        self._multi_select = True
        self._selected = {node.id for node in nodes}
        self._notify()

    def reconcile(self, index: TreeIndex) -> Set[NodeId]:
        """Drop ids that disappeared from ``index``; returns the dropped ids."""
        stale = {node_id for node_id in self._selected if node_id not in index}
        if stale:
            self._selected -= stale
            logger.debug("Dropped %d stale selection entries", len(stale))
            self._notify()
        return stale

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self)
