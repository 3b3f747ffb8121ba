"""Cut/copy capture and paste resolution.

There is exactly one clipboard payload. Each cut or copy replaces it, and
the payload is persisted so it survives a restart.

Pasting a cut moves every captured node to the end of the target folder.
When any move fails, the payload stays in place and the moves that already
happened are not undone.

Pasting a copy clones each captured node. The clone gets a title that is
unique among the target's children. Folder clones are filled child by child
through a worklist over ``get_children``, so the store never has to support
deep copies. A copy payload can be pasted any number of times.
"""
from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Set, Tuple

from .errors import BookmarkError, InvalidMoveError
from .icons import IconRegistry
from .models import BatchOutcome, ClipboardOperation, Node, NodeId
from .preferences import KEY_CLIPBOARD, PreferenceStore
from .store import BookmarkStore
from .tree_index import TreeIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClipboardItem:
    id: NodeId
    title: str
    url: Optional[str] = None

    @property
    def is_folder(self) -> bool:
        return self.url is None

    @classmethod
    def of(cls, node: Node) -> "ClipboardItem":
        return cls(id=node.id, title=node.title, url=node.url)


@dataclass(frozen=True)
class ClipboardState:
    items: Tuple[ClipboardItem, ...] = ()
    operation: Optional[ClipboardOperation] = None
    captured_at: float = 0.0

    @property
    def is_empty(self) -> bool:
        return not self.items or self.operation is None

    @property
    def ids(self) -> List[NodeId]:
        return [item.id for item in self.items]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [{"id": item.id, "title": item.title, "url": item.url} for item in self.items],
            "operation": self.operation.value if self.operation else None,
            "capturedAt": self.captured_at,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "ClipboardState":
        if not isinstance(data, dict):
            return cls()
        try:
            operation = ClipboardOperation(data.get("operation"))
        except ValueError:
            return cls()
        items = tuple(
            ClipboardItem(id=str(raw["id"]), title=str(raw.get("title") or ""), url=raw.get("url") or None)
            for raw in data.get("items") or ()
            if isinstance(raw, dict) and "id" in raw
        )
        return cls(items=items, operation=operation, captured_at=float(data.get("capturedAt") or 0.0))


def unique_title(title: str, existing: Set[str]) -> str:
    """``title``, or the first free ``"title (n)"`` with n starting at 2."""
    if title not in existing:
        return title
    counter = 2
    while f"{title} ({counter})" in existing:
        counter += 1
    return f"{title} ({counter})"


class ClipboardManager:
    def __init__(
        self,
        store: BookmarkStore,
        preferences: PreferenceStore,
        *,
        icons: Optional[IconRegistry] = None,
        on_change: Optional[Callable[[ClipboardState], None]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._preferences = preferences
        self._icons = icons
        self._on_change = on_change
        self._clock = clock
        self._state = ClipboardState()

    @property
    def state(self) -> ClipboardState:
        return self._state

    @property
    def is_empty(self) -> bool:
        return self._state.is_empty

    async def load(self) -> ClipboardState:
        self._state = ClipboardState.from_dict(await self._preferences.get(KEY_CLIPBOARD))
        return self._state

    async def cut(self, nodes: Iterable[Node]) -> ClipboardState:
        return await self._capture(nodes, ClipboardOperation.CUT)

    async def copy(self, nodes: Iterable[Node]) -> ClipboardState:
        return await self._capture(nodes, ClipboardOperation.COPY)

    async def clear(self) -> None:
        self._state = ClipboardState()
        await self._preferences.remove(KEY_CLIPBOARD)
        self._notify()

    async def reconcile(self, index: TreeIndex) -> List[NodeId]:
        """Forget captured nodes that no longer exist; returns the forgotten ids."""
        if self._state.is_empty:
            return []
        alive = tuple(item for item in self._state.items if item.id in index)
        dropped = [item.id for item in self._state.items if item.id not in index]
        if not dropped:
            return []
        logger.warning("Clipboard lost %d deleted item(s)", len(dropped))
        if alive:
            self._state = ClipboardState(alive, self._state.operation, self._state.captured_at)
            await self._persist()
            self._notify()
        else:
            await self.clear()
        return dropped

    async def paste(self, target: Node, index: TreeIndex) -> Optional[BatchOutcome]:
        """Paste into ``target``; ``None`` when there is nothing to paste."""
        if self._state.is_empty:
            return None
        if not target.is_folder:
            raise InvalidMoveError(f"Can't paste into {target.id!r}", node_id=target.id)
        if self._state.operation is ClipboardOperation.CUT:
            outcome = await self._paste_cut(target, index)
            if outcome.complete:
                await self.clear()
        else:
            outcome = await self._paste_copy(target, index)
        return outcome

    async def _capture(self, nodes: Iterable[Node], operation: ClipboardOperation) -> ClipboardState:
        items = tuple(ClipboardItem.of(node) for node in nodes)
        self._state = ClipboardState(items, operation, self._clock()) if items else ClipboardState()
        await self._persist()
        logger.debug("Clipboard holds %d item(s) for %s", len(items), operation.value)
        self._notify()
        return self._state

    async def _paste_cut(self, target: Node, index: TreeIndex) -> BatchOutcome:
        outcome = BatchOutcome()
        for item in self._state.items:
            try:
                index.check_move(item.id, target.id)
                await self._store.move_node(item.id, target.id)
            except BookmarkError as exc:
                logger.warning("Could not move %s into %s: %s", item.id, target.id, exc)
                outcome.record_failure(item.id, exc)
            else:
                outcome.succeeded.append(item.id)
        return outcome

    async def _paste_copy(self, target: Node, index: TreeIndex) -> BatchOutcome:
        outcome = BatchOutcome()
        for item in self._state.items:
            try:
                clone = await self.clone(item.id, target.id, index)
            except BookmarkError as exc:
                logger.warning("Could not copy %s into %s: %s", item.id, target.id, exc)
                outcome.record_failure(item.id, exc)
            else:
                outcome.succeeded.append(clone.id)
        return outcome

    async def clone(self, source_id: NodeId, target_id: NodeId, index: TreeIndex) -> Node:
        """Copy ``source_id`` with everything below it into ``target_id``.

        Validation runs against ``index`` before the first store call; a store
        failure halfway leaves the clones created so far in place.
        """
        source = index.require(source_id)
        if source.is_folder:
            if index.is_descendant(target_id, source_id):
                raise InvalidMoveError(f"Can't copy {source_id!r} into itself", node_id=source_id)
            index.check_folder_capacity(target_id, index.subtree_height(source_id))

        siblings = await self._store.get_children(target_id)
        title = unique_title(source.title, {sibling.title for sibling in siblings})
        root_clone = await self._store.create_node(target_id, title, source.url)
        await self._copy_icon(source.id, root_clone.id)

        pending: Deque[Tuple[NodeId, NodeId]] = deque()
        if source.is_folder:
            pending.append((source.id, root_clone.id))
        created = 1
        while pending:
            original_id, clone_id = pending.popleft()
            for child in await self._store.get_children(original_id):
                child_clone = await self._store.create_node(clone_id, child.title, child.url)
                await self._copy_icon(child.id, child_clone.id)
                created += 1
                if child.is_folder:
                    pending.append((child.id, child_clone.id))
        logger.info("Copied %s into %s as %s (%d node(s))", source_id, target_id, root_clone.id, created)
        return root_clone

    async def _copy_icon(self, source_id: NodeId, target_id: NodeId) -> None:
        if self._icons is not None:
            await self._icons.copy(source_id, target_id)

    async def _persist(self) -> None:
        if self._state.is_empty:
            await self._preferences.remove(KEY_CLIPBOARD)
        else:
            await self._preferences.set(KEY_CLIPBOARD, self._state.to_dict())

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self._state)
