from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, List, Optional, Union

from .errors import BookmarkError, NodeNotFoundError
from .models import HistoryEntry, Node, NodeId
from .preferences import KEY_HISTORY, KEY_HISTORY_INDEX, PreferenceStore
from .store import BOOKMARKS_BAR_ID, BookmarkStore
from .tree_index import TreeIndex

if TYPE_CHECKING:  # pragma: no cover
    from .selection import SelectionManager

logger = logging.getLogger(__name__)

FolderRef = Union[Node, HistoryEntry, NodeId]


class NavigationController:
    """Folder history with back/forward/home and breadcrumb reconstruction.

    History holds :class:`HistoryEntry` references only. Every visit fetches
    the tree again and resolves the entry by id, so a folder renamed or moved
    in the meantime shows its current state. A folder deleted in the meantime
    is shown as an empty stand-in built from the reference.

    A failed fetch raises :class:`StoreError` before any state is touched.
    """

    def __init__(
        self,
        store: BookmarkStore,
        *,
        selection: Optional["SelectionManager"] = None,
        preferences: Optional[PreferenceStore] = None,
        home_id: NodeId = BOOKMARKS_BAR_ID,
    ) -> None:
        self._store = store
        self._selection = selection
        self._preferences = preferences
        self._home_id = home_id
        self._index = TreeIndex.empty()
        self._history: List[HistoryEntry] = []
        self._history_index = 0
        self._current: Optional[Node] = None
        self._breadcrumbs: List[Node] = []
        self._search_query = ""
        self._search_results: List[Node] = []

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------
    @property
    def index(self) -> TreeIndex:
        return self._index

    @property
    def current_folder(self) -> Optional[Node]:
        return self._current

    @property
    def breadcrumbs(self) -> List[Node]:
        return list(self._breadcrumbs)

    @property
    def history(self) -> List[HistoryEntry]:
        return list(self._history)

    @property
    def history_index(self) -> int:
        return self._history_index

    @property
    def home_id(self) -> NodeId:
        return self._home_id

    @property
    def can_go_back(self) -> bool:
        return self._history_index > 0

    @property
    def can_go_forward(self) -> bool:
        return self._history_index < len(self._history) - 1

    @property
    def search_mode(self) -> bool:
        return bool(self._search_query)

    @property
    def search_query(self) -> str:
        return self._search_query

    @property
    def search_results(self) -> List[Node]:
        return list(self._search_results)

    def visible_items(self) -> List[Node]:
        """Search results in search mode, otherwise the current folder's children."""
        if self.search_mode:
            return list(self._search_results)
        if self._current is None:
            return []
        return list(self._current.children or ())

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------
    async def fetch(self) -> TreeIndex:
        tree = await self._store.get_tree()
        return TreeIndex.build(tree)

    async def navigate_to(self, folder: FolderRef, reset_history: bool = False) -> Node:
        index = await self.fetch()
        target = self._resolve(index, folder)
        if not target.is_folder:
            raise BookmarkError(f"Node {target.id!r} is not a folder", node_id=target.id)

        entry = HistoryEntry.of(target)
        if reset_history:
            self._history = [entry]
        else:
            self._history = self._history[: self._history_index + 1] + [entry]
        self._history_index = len(self._history) - 1
        self._apply(index, target)
        logger.debug("Navigated to %s (history %d/%d)", target.id, self._history_index + 1, len(self._history))
        await self._persist_history()
        return target

    async def go_back(self) -> Optional[Node]:
        if not self.can_go_back:
            return None
        return await self._visit(self._history_index - 1)

    async def go_forward(self) -> Optional[Node]:
        if not self.can_go_forward:
            return None
        return await self._visit(self._history_index + 1)

    async def go_home(self) -> Node:
        return await self.navigate_to(self._home_id, reset_history=True)

    async def refresh(self) -> Optional[Node]:
        """Re-fetch and re-resolve the current folder; history is left alone."""
        index = await self.fetch()
        if self._current is None:
            self._index = index
            return None
        target = self._resolve(index, self._current)
        self._index = index
        self._current = target
        self._breadcrumbs = index.ancestry(target)
        if self.search_mode:
            self._search_results = [node for node in (index.get(item.id) for item in self._search_results) if node]
        logger.debug("Refreshed folder %s", target.id)
        return target

    async def restore(self, history: List[HistoryEntry], history_index: int) -> Node:
        """Reinstate a persisted history and open the entry at ``history_index``.

        Falls back to the home folder when the history is empty or the index
        is out of range.
        """
        if not history or not 0 <= history_index < len(history):
            return await self.go_home()
        return await self._visit(history_index, list(history))

    async def load_persisted(self) -> Node:
        if self._preferences is None:
            return await self.go_home()
        raw_history = await self._preferences.get(KEY_HISTORY, [])
        raw_index = await self._preferences.get(KEY_HISTORY_INDEX, 0)
        history = _parse_history(raw_history)
        try:
            history_index = int(raw_index)
        except (TypeError, ValueError):
            history_index = 0
        return await self.restore(history, history_index)

    # ------------------------------------------------------------------
    # Search mode
    # ------------------------------------------------------------------
    async def search(self, query: str) -> List[Node]:
        query = query.strip()
        if not query:
            self.clear_search()
            return []
        results = await self._store.search(query)
        self._search_query = query
        self._search_results = list(results)
        logger.debug("Search '%s' returned %d results", query, len(results))
        return list(results)

    def clear_search(self) -> None:
        self._search_query = ""
        self._search_results = []

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _visit(self, position: int, history: Optional[List[HistoryEntry]] = None) -> Node:
        entries = self._history if history is None else history
        index = await self.fetch()
        target = self._resolve(index, entries[position])
        self._history = entries
        self._history_index = position
        self._apply(index, target)
        await self._persist_history()
        return target

    def _resolve(self, index: TreeIndex, folder: FolderRef) -> Node:
        node_id = folder if isinstance(folder, str) else folder.id
        resolved = index.get(node_id)
        if resolved is not None:
            return resolved
        if isinstance(folder, Node):
            logger.warning("Folder %s vanished, showing an empty placeholder", node_id)
            return Node(id=folder.id, title=folder.title, parent_id=folder.parent_id, children=())
        if isinstance(folder, HistoryEntry):
            logger.warning("Folder %s vanished, showing an empty placeholder", node_id)
            return Node(id=folder.id, title=folder.title, children=())
        raise NodeNotFoundError(f"Folder {node_id!r} does not exist", node_id=node_id)

    def _apply(self, index: TreeIndex, target: Node) -> None:
        self._index = index
        self._current = target
        self._breadcrumbs = index.ancestry(target)
        if len(self._breadcrumbs) == 1 and target.parent_id and not index.is_root(target.id):
            logger.warning("Breadcrumb path of %s stops at an unresolvable parent", target.id)
        self.clear_search()
        if self._selection is not None:
            self._selection.exit_multi_select()

    async def _persist_history(self) -> None:
        if self._preferences is None:
            return
        await self._preferences.set(KEY_HISTORY, [entry.to_dict() for entry in self._history])
        await self._preferences.set(KEY_HISTORY_INDEX, self._history_index)


def _parse_history(raw: Any) -> List[HistoryEntry]:
    entries: List[HistoryEntry] = []
    if not isinstance(raw, list):
        return entries
    for item in raw:
        if isinstance(item, dict) and "id" in item:
            entries.append(HistoryEntry.from_dict(item))
    return entries
