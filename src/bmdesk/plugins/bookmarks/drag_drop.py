"""Drag gesture bookkeeping and drop classification.

A drag starts with :meth:`DragDropEngine.begin_drag`, is fed pointer updates
through :meth:`hover` while it moves over other items, and ends with
:meth:`drop` (released over something) followed by :meth:`end_drag`.

Gesture recognition never touches the store. It produces one of the
``DropIntent`` values below, and :meth:`DragDropEngine.execute` carries it out.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple, Union

from .errors import BookmarkError, InvalidMoveError
from .layout import clamp_position
from .models import BatchOutcome, Node, NodeId, Position
from .organize import OrganizeStaging, PositionStore
from .selection import SelectionManager
from .store import BookmarkStore
from .tree_index import TreeIndex

logger = logging.getLogger(__name__)

Point = Tuple[float, float]
Size = Tuple[int, int]

REORDER_HYSTERESIS = 0.15


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    def midpoint(self, axis: int) -> float:
        return self.x + self.width / 2 if axis == 0 else self.y + self.height / 2

    def span(self, axis: int) -> float:
        return self.width if axis == 0 else self.height


@dataclass(frozen=True)
class DragPayload:
    ids: Tuple[NodeId, ...]
    node_id: NodeId
    is_folder: bool
    index: int
    parent_id: Optional[NodeId]
    start_position: Optional[Position]
    start_pointer: Point

    @property
    def is_multi(self) -> bool:
        return len(self.ids) > 1


@dataclass(frozen=True)
class FolderMove:
    ids: Tuple[NodeId, ...]
    target_id: NodeId


@dataclass(frozen=True)
class CanvasReposition:
    node_id: NodeId
    position: Position
    staged: bool = False


@dataclass(frozen=True)
class ListReorder:
    node_id: NodeId
    parent_id: NodeId
    source_index: int
    target_index: int

    @property
    def forward(self) -> bool:
        return self.source_index < self.target_index

    @property
    def insert_index(self) -> int:
        """Index handed to ``move_node``; the store counts slots before removal."""
        return self.target_index + 1 if self.forward else self.target_index


@dataclass(frozen=True)
class Rejected:
    reason: str


DropIntent = Union[FolderMove, CanvasReposition, ListReorder, Rejected]


class DragDropEngine:
    def __init__(
        self,
        store: BookmarkStore,
        selection: SelectionManager,
        positions: PositionStore,
        organize: OrganizeStaging,
        *,
        desktop_layout: Callable[[], bool] = lambda: False,
    ) -> None:
        self._store = store
        self._selection = selection
        self._positions = positions
        self._organize = organize
        self._desktop_layout = desktop_layout
        self._payload: Optional[DragPayload] = None
        self._order: List[NodeId] = []
        self._pending: Optional[ListReorder] = None

    @property
    def payload(self) -> Optional[DragPayload]:
        return self._payload

    @property
    def local_order(self) -> List[NodeId]:
        """Sibling order as currently shown, including the reorder preview."""
        return list(self._order)

    @property
    def pending_reorder(self) -> Optional[ListReorder]:
        return self._pending

    def can_drag(self, node: Node) -> bool:
        if self._selection.multi_select_mode and self._selection.selected:
            return self._selection.is_selected(node.id)
        return True

    def begin_drag(
        self,
        node: Node,
        pointer: Point,
        *,
        siblings: Optional[List[Node]] = None,
        position: Optional[Position] = None,
        index: Optional[TreeIndex] = None,
    ) -> Optional[DragPayload]:
        """Start a drag; a selected item carries the whole selection along in tree order."""
        if not self.can_drag(node):
            logger.debug("Drag of %s refused, it is not part of the selection", node.id)
            return None
        if self._selection.multi_select_mode and self._selection.is_selected(node.id):
            ids: Tuple[NodeId, ...] = self._selection_order(node, siblings, index)
        else:
            ids = (node.id,)
        if position is None:
            position = self._organize.get_position(node.id)
        self._payload = DragPayload(
            ids=ids,
            node_id=node.id,
            is_folder=node.is_folder,
            index=node.index,
            parent_id=node.parent_id,
            start_position=position,
            start_pointer=pointer,
        )
        self._order = [sibling.id for sibling in siblings] if siblings else []
        self._pending = None
        return self._payload

    def _selection_order(
        self, node: Node, siblings: Optional[List[Node]], index: Optional[TreeIndex]
    ) -> Tuple[NodeId, ...]:
        if index is not None:
            ordered = [selected.id for selected in self._selection.selected_nodes(index)]
        else:
            shown = [sibling.id for sibling in siblings or ()]
            ordered = [node_id for node_id in shown if self._selection.is_selected(node_id)]
            ordered += sorted(self._selection.selected.difference(ordered))
        if node.id not in ordered:
            ordered.insert(0, node.id)
        return tuple(ordered)

    def hover(self, target: Node, pointer: Point, bounds: Rect) -> Optional[ListReorder]:
        """Update the reorder preview while the pointer is over ``target``.

        The swap only triggers once the pointer is past the target's midpoint
        by 15% of its span along the dominant axis of travel, so hovering
        around the middle does not make items flicker back and forth.
        """
        payload = self._payload
        if payload is None or payload.is_multi or self._organize.active or self._desktop_layout():
            return None
        if target.id == payload.node_id or target.parent_id != payload.parent_id or payload.parent_id is None:
            return None

        dx = pointer[0] - payload.start_pointer[0]
        dy = pointer[1] - payload.start_pointer[1]
        axis = 0 if abs(dx) >= abs(dy) else 1
        midpoint = bounds.midpoint(axis)
        band = bounds.span(axis) * REORDER_HYSTERESIS
        forward = payload.index < target.index
        if forward and pointer[axis] <= midpoint + band:
            return None
        if not forward and pointer[axis] >= midpoint - band:
            return None

        self._pending = ListReorder(
            node_id=payload.node_id,
            parent_id=payload.parent_id,
            source_index=payload.index,
            target_index=target.index,
        )
        self._splice(payload.node_id, target.id)
        return self._pending

    def drop(self, target: Optional[Node], pointer: Point, *, container: Size, item: Size) -> DropIntent:
        payload = self._payload
        if payload is None:
            return Rejected("Kein Ziehvorgang aktiv")
        if target is not None and target.id in payload.ids:
            return Rejected("Element kann nicht auf sich selbst abgelegt werden")

        if target is not None and target.is_folder:
            if not self._organize.active:
                self._pending = None
                return FolderMove(payload.ids, target.id)
            if not self._desktop_layout():
                return Rejected("Im Organisationsmodus können keine Ordner als Ziel dienen")

        if self._desktop_layout():
            self._pending = None
            return self._reposition(payload, pointer, container, item)
        if self._pending is not None:
            return self._pending
        return Rejected("Kein Ablageziel")

    def end_drag(self) -> Optional[ListReorder]:
        """Finish the gesture; returns a reorder that still has to be applied."""
        pending = self._pending
        self._payload = None
        self._pending = None
        self._order = []
        return pending

    async def execute(self, intent: DropIntent, index: TreeIndex) -> BatchOutcome:
        if isinstance(intent, Rejected):
            raise InvalidMoveError(intent.reason)
        if isinstance(intent, FolderMove):
            return await self._move_into_folder(intent, index)
        if isinstance(intent, CanvasReposition):
            if intent.staged:
                self._organize.set_position(intent.node_id, intent.position)
            else:
                await self._positions.set(intent.node_id, intent.position)
            return BatchOutcome(succeeded=[intent.node_id])
        if isinstance(intent, ListReorder):
            index.require(intent.node_id)
            await self._store.move_node(intent.node_id, intent.parent_id, intent.insert_index)
            if self._pending == intent:
                self._pending = None
            logger.info(
                "Reordered %s from %d to %d in %s",
                intent.node_id,
                intent.source_index,
                intent.insert_index,
                intent.parent_id,
            )
            return BatchOutcome(succeeded=[intent.node_id])
        raise TypeError(f"Unsupported drop intent {intent!r}")

    async def _move_into_folder(self, intent: FolderMove, index: TreeIndex) -> BatchOutcome:
        outcome = BatchOutcome()
        try:
            for node_id in intent.ids:
                try:
                    index.check_move(node_id, intent.target_id)
                    await self._store.move_node(node_id, intent.target_id)
                except BookmarkError as exc:
                    logger.warning("Could not move %s into %s: %s", node_id, intent.target_id, exc)
                    outcome.record_failure(node_id, exc)
                else:
                    outcome.succeeded.append(node_id)
        finally:
            self._selection.exit_multi_select()
        return outcome

    def _reposition(self, payload: DragPayload, pointer: Point, container: Size, item: Size) -> CanvasReposition:
        origin = payload.start_position or Position(0, 0)
        moved = origin.offset(pointer[0] - payload.start_pointer[0], pointer[1] - payload.start_pointer[1])
        return CanvasReposition(
            node_id=payload.node_id,
            position=clamp_position(moved, container, item),
            staged=self._organize.active,
        )

    def _splice(self, node_id: NodeId, target_id: NodeId) -> None:
        if node_id not in self._order or target_id not in self._order:
            return
        target_position = self._order.index(target_id)
        self._order.remove(node_id)
        self._order.insert(target_position, node_id)
