from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from bmdesk.core.events import (
    CLIPBOARD_CHANGED,
    NAVIGATED,
    ORGANIZE_CHANGED,
    PREFERENCES_CHANGED,
    RESYNCED,
    SELECTION_CHANGED,
    EventBus,
)
from bmdesk.core.services import CoreServices

from .clipboard import ClipboardManager, ClipboardState
from .drag_drop import (
    DragDropEngine,
    DragPayload,
    DropIntent,
    FolderMove,
    ListReorder,
    Point,
    Rect,
    Rejected,
    Size,
)
from .errors import BookmarkError, InvalidNameError, NodeNotFoundError
from .icons import IconRegistry, favicon_url
from .layout import DEFAULT_ICON_SIZE, ICON_SIZES, PositionLayoutEngine
from .models import BatchOutcome, Node, NodeId, OperationResult, Position, ResultStatus
from .navigation import FolderRef, NavigationController
from .organize import OrganizeStaging, PositionStore
from .preferences import KEY_DARK_MODE, KEY_DESKTOP_VIEW, KEY_ICON_SIZE, PreferenceStore
from .selection import SelectionManager
from .store import BookmarkStore
from .tree_index import MAX_FOLDER_DEPTH, TreeIndex

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 50
NOTIFICATION_SOURCE = "bmdesk.bookmarks"

_LEVELS = {
    ResultStatus.OK: "info",
    ResultStatus.NOOP: "info",
    ResultStatus.PARTIAL: "warning",
    ResultStatus.FAILED: "error",
}


def validate_title(title: str) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise InvalidNameError("Name darf nicht leer sein")
    if len(cleaned) > MAX_TITLE_LENGTH:
        raise InvalidNameError(f"Name darf höchstens {MAX_TITLE_LENGTH} Zeichen lang sein")
    return cleaned


class BookmarkDesktop:
    """Tree-state engine behind the bookmark desktop view.

    Owns navigation, selection, clipboard, drag and drop and organize state
    for one view. Every mutating call follows the same pattern: validate
    against the latest snapshot, issue store commands, resynchronize with a
    fresh fetch, and return an :class:`OperationResult` that has already
    been published as a notification.

    Controllers raise :class:`BookmarkError`; this class is the only place
    where those are turned into results.
    """

    def __init__(
        self,
        store: BookmarkStore,
        preferences: PreferenceStore,
        *,
        services: Optional[CoreServices] = None,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        self._store = store
        self._preferences = preferences
        self._services = services
        if event_bus is None:
            event_bus = services.event_bus if services is not None else EventBus()
        self._events = event_bus

        self.selection = SelectionManager(on_change=self._on_selection_changed)
        self.navigation = NavigationController(store, selection=self.selection, preferences=preferences)
        self.icons = IconRegistry(preferences)
        self.clipboard = ClipboardManager(
            store, preferences, icons=self.icons, on_change=self._on_clipboard_changed
        )
        self.positions = PositionStore(preferences)
        self.organize = OrganizeStaging(self.positions, on_change=self._on_organize_changed)
        self.layout = PositionLayoutEngine()
        self.drag_drop = DragDropEngine(
            store,
            self.selection,
            self.positions,
            self.organize,
            desktop_layout=lambda: self._desktop_view,
        )

        self._desktop_view = False
        self._dark_mode = False
        self._loaded = False
        self._last_result: Optional[OperationResult] = None

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------
    @property
    def store(self) -> BookmarkStore:
        return self._store

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def index(self) -> TreeIndex:
        return self.navigation.index

    @property
    def current_folder(self) -> Optional[Node]:
        return self.navigation.current_folder

    @property
    def breadcrumbs(self) -> List[Node]:
        return self.navigation.breadcrumbs

    @property
    def visible_items(self) -> List[Node]:
        return self.navigation.visible_items()

    @property
    def desktop_view(self) -> bool:
        return self._desktop_view

    @property
    def dark_mode(self) -> bool:
        return self._dark_mode

    @property
    def icon_size(self) -> str:
        return self.layout.icon_size

    @property
    def last_result(self) -> Optional[OperationResult]:
        return self._last_result

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def load(self) -> OperationResult:
        async def _load() -> OperationResult:
            await self._load_view_preferences()
            await self.positions.load()
            await self.clipboard.load()
            folder = await self.navigation.load_persisted()
            await self._reconcile()
            self._loaded = True
            self._emit_navigated()
            return OperationResult.success("Lesezeichen geladen", (folder.id,))

        return await self._run(_load, quiet_success=True)

    def unload(self) -> None:
        self.drag_drop.end_drag()
        self.organize.cancel()
        self.selection.exit_multi_select()
        self.navigation.clear_search()
        self._loaded = False
        logger.debug("Bookmark desktop unloaded")

    async def resync(self) -> OperationResult:
        async def _resync() -> OperationResult:
            await self._resync()
            return OperationResult.success("Ansicht aktualisiert")

        return await self._run(_resync, quiet_success=True)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------
    async def navigate_to(self, folder: FolderRef, reset_history: bool = False) -> OperationResult:
        return await self._navigate(lambda: self.navigation.navigate_to(folder, reset_history))

    async def go_back(self) -> OperationResult:
        if not self.navigation.can_go_back:
            return self._report(OperationResult.noop("Kein vorheriger Ordner"), quiet=True)
        return await self._navigate(self.navigation.go_back)

    async def go_forward(self) -> OperationResult:
        if not self.navigation.can_go_forward:
            return self._report(OperationResult.noop("Kein nächster Ordner"), quiet=True)
        return await self._navigate(self.navigation.go_forward)

    async def go_home(self) -> OperationResult:
        return await self._navigate(self.navigation.go_home)

    async def search(self, query: str) -> OperationResult:
        async def _search() -> OperationResult:
            results = await self.navigation.search(query)
            self.selection.exit_multi_select()
            self._emit_navigated()
            if not self.navigation.search_mode:
                return OperationResult.noop("Suche beendet")
            return OperationResult.success(f"{len(results)} Treffer", (node.id for node in results))

        return await self._run(_search, quiet_success=True)

    def clear_search(self) -> None:
        self.navigation.clear_search()
        self._emit_navigated()

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------
    def enter_multi_select(self) -> None:
        self.selection.enter_multi_select()

    def exit_multi_select(self) -> None:
        self.selection.exit_multi_select()

    def toggle_multi_select(self) -> bool:
        return self.selection.toggle_multi_select()

    def toggle_selection(self, node: Node) -> bool:
        return self.selection.toggle(node)

    def select_all(self) -> None:
        self.selection.select_all(self.visible_items)

    def selected_nodes(self) -> List[Node]:
        return self.selection.selected_nodes(self.index)

    # ------------------------------------------------------------------
    # Clipboard
    # ------------------------------------------------------------------
    async def cut(self, nodes: Optional[Iterable[Node]] = None) -> OperationResult:
        return await self._capture(nodes, self.clipboard.cut, "ausgeschnitten")

    async def copy(self, nodes: Optional[Iterable[Node]] = None) -> OperationResult:
        return await self._capture(nodes, self.clipboard.copy, "kopiert")

    async def paste(self, target: Optional[Node] = None) -> OperationResult:
        async def _paste() -> OperationResult:
            folder = target or self.current_folder
            if folder is None:
                raise NodeNotFoundError("No folder is open")
            outcome = await self.clipboard.paste(folder, self.index)
            if outcome is None:
                return OperationResult.noop("Zwischenablage ist leer")
            await self._resync()
            return OperationResult.from_batch(
                outcome.succeeded,
                outcome.failures,
                ok_message=f"{len(outcome.succeeded)} Element(e) eingefügt",
                partial_message=(
                    f"{len(outcome.succeeded)} Element(e) eingefügt, "
                    f"{len(outcome.failures)} fehlgeschlagen"
                ),
                failed_message="Einfügen fehlgeschlagen",
            )

        return await self._run(_paste)

    async def clear_clipboard(self) -> None:
        await self.clipboard.clear()

    # ------------------------------------------------------------------
    # Folder and item editing
    # ------------------------------------------------------------------
    async def create_folder(self, title: str, parent: Optional[Node] = None) -> OperationResult:
        async def _create() -> OperationResult:
            name = validate_title(title)
            folder = parent or self.current_folder
            if folder is None:
                raise NodeNotFoundError("No folder is open")
            index = await self.navigation.fetch()
            index.require(folder.id)
            index.check_folder_capacity(folder.id, limit=MAX_FOLDER_DEPTH)
            created = await self._store.create_node(folder.id, name)
            logger.info("Created folder %s in %s", created.id, folder.id)
            await self._resync()
            return OperationResult.success(f"Ordner '{name}' wurde erstellt", (created.id,))

        return await self._run(_create)

    async def rename(self, node: Node, title: str) -> OperationResult:
        async def _rename() -> OperationResult:
            name = validate_title(title)
            current = self.index.get(node.id) or node
            if current.title == name:
                return OperationResult.noop("Name unverändert")
            await self._store.update_node(node.id, title=name)
            logger.info("Renamed %s to '%s'", node.id, name)
            await self._resync()
            return OperationResult.success(f"Umbenannt in '{name}'", (node.id,))

        return await self._run(_rename)

    async def delete(self, nodes: Iterable[Node]) -> OperationResult:
        async def _delete() -> OperationResult:
            targets = list(nodes)
            if not targets:
                return OperationResult.noop("Nichts zum Löschen ausgewählt")
            index = self.index
            outcome = BatchOutcome()
            removed_ids: List[NodeId] = []
            try:
                for node in targets:
                    subtree = index.subtree_ids(node.id) or [node.id]
                    try:
                        if node.is_folder:
                            await self._store.remove_subtree(node.id)
                        else:
                            await self._store.remove_node(node.id)
                    except BookmarkError as exc:
                        if len(targets) == 1:
                            raise
                        logger.warning("Could not delete %s: %s", node.id, exc)
                        outcome.record_failure(node.id, exc)
                    else:
                        outcome.succeeded.append(node.id)
                        removed_ids.extend(subtree)
            finally:
                self.selection.exit_multi_select()
                self.organize.forget(removed_ids)
                await self.icons.forget(removed_ids)
                await self.positions.forget(removed_ids)
            await self._resync()
            return OperationResult.from_batch(
                outcome.succeeded,
                outcome.failures,
                ok_message=f"{len(outcome.succeeded)} Element(e) gelöscht",
                partial_message=(
                    f"{len(outcome.succeeded)} Element(e) gelöscht, "
                    f"{len(outcome.failures)} fehlgeschlagen"
                ),
                failed_message="Löschen fehlgeschlagen",
            )

        return await self._run(_delete)

    # ------------------------------------------------------------------
    # Icons
    # ------------------------------------------------------------------
    async def set_icon(
        self, node: Node, *, name: Optional[str] = None, data_url: Optional[str] = None
    ) -> OperationResult:
        async def _set_icon() -> OperationResult:
            await self.icons.set_icon(node.id, name=name, data_url=data_url)
            self._events.emit(PREFERENCES_CHANGED, {"key": f"icon_{node.id}"})
            return OperationResult.success("Symbol geändert", (node.id,))

        return await self._run(_set_icon)

    async def reset_icon(self, node: Node) -> OperationResult:
        async def _reset() -> OperationResult:
            await self.icons.clear(node.id)
            self._events.emit(PREFERENCES_CHANGED, {"key": f"icon_{node.id}"})
            return OperationResult.success("Standardsymbol wiederhergestellt", (node.id,))

        return await self._run(_reset)

    async def icon_for(self, node: Node) -> str:
        return await self.icons.icon_for(node)

    @staticmethod
    def favicon_url(url: str, size: int = 32) -> str:
        return favicon_url(url, size)

    # ------------------------------------------------------------------
    # View preferences
    # ------------------------------------------------------------------
    async def set_desktop_view(self, enabled: bool) -> None:
        if self.organize.active and not enabled:
            self.organize.cancel()
        self._desktop_view = bool(enabled)
        await self._preferences.set(KEY_DESKTOP_VIEW, self._desktop_view)
        self._events.emit(PREFERENCES_CHANGED, {"key": KEY_DESKTOP_VIEW, "value": self._desktop_view})

    async def toggle_view(self) -> bool:
        await self.set_desktop_view(not self._desktop_view)
        return self._desktop_view

    async def set_icon_size(self, size: str) -> OperationResult:
        if size not in ICON_SIZES:
            return self._report(OperationResult.failed(f"Unbekannte Symbolgröße '{size}'"))
        self.layout.icon_size = size
        await self._preferences.set(KEY_ICON_SIZE, size)
        self._events.emit(PREFERENCES_CHANGED, {"key": KEY_ICON_SIZE, "value": size})
        return OperationResult.success()

    async def set_dark_mode(self, enabled: bool) -> None:
        self._dark_mode = bool(enabled)
        await self._preferences.set(KEY_DARK_MODE, self._dark_mode)
        self._events.emit(PREFERENCES_CHANGED, {"key": KEY_DARK_MODE, "value": self._dark_mode})

    def item_positions(self, container_width: int) -> Dict[NodeId, Position]:
        """Desktop coordinates of every visible item, staged ones while organizing."""
        explicit = self.organize.draft if self.organize.active else self.positions.snapshot()
        return self.layout.arrange(self.visible_items, explicit, container_width)

    # ------------------------------------------------------------------
    # Drag and drop
    # ------------------------------------------------------------------
    def can_drag(self, node: Node) -> bool:
        return self.drag_drop.can_drag(node)

    def begin_drag(self, node: Node, pointer: Point, *, container_width: int = 0) -> Optional[DragPayload]:
        position = self.organize.get_position(node.id)
        if position is None and self._desktop_view:
            position = self.item_positions(container_width).get(node.id)
        return self.drag_drop.begin_drag(
            node, pointer, siblings=self.visible_items, position=position, index=self.index
        )

    def hover(self, target: Node, pointer: Point, bounds: Rect) -> Optional[ListReorder]:
        return self.drag_drop.hover(target, pointer, bounds)

    async def drop(self, target: Optional[Node], pointer: Point, *, container: Size) -> OperationResult:
        intent = self.drag_drop.drop(target, pointer, container=container, item=self.layout.item_size)
        return await self.apply_intent(intent)

    async def end_drag(self) -> OperationResult:
        pending = self.drag_drop.end_drag()
        if pending is None:
            return OperationResult.noop("")
        return await self.apply_intent(pending)

    async def apply_intent(self, intent: DropIntent) -> OperationResult:
        if isinstance(intent, Rejected):
            return self._report(OperationResult.noop(intent.reason))

        async def _apply() -> OperationResult:
            outcome = await self.drag_drop.execute(intent, self.index)
            if self._touches_store(intent):
                await self._resync()
            return OperationResult.from_batch(
                outcome.succeeded,
                outcome.failures,
                ok_message=f"{len(outcome.succeeded)} Element(e) verschoben",
                partial_message=(
                    f"{len(outcome.succeeded)} Element(e) verschoben, "
                    f"{len(outcome.failures)} fehlgeschlagen"
                ),
                failed_message="Verschieben fehlgeschlagen",
            )

        return await self._run(_apply, quiet_success=not self._touches_store(intent))

    # ------------------------------------------------------------------
    # Organize mode
    # ------------------------------------------------------------------
    def enter_organize(self) -> None:
        self.organize.enter()

    async def save_organize(self) -> OperationResult:
        async def _save() -> OperationResult:
            if await self.organize.save():
                return OperationResult.success("Anordnung gespeichert")
            return OperationResult.noop("Keine Änderungen zu speichern")

        return await self._run(_save)

    def cancel_organize(self) -> None:
        self.organize.cancel()

    def get_staged_position(self, node_id: NodeId) -> Optional[Position]:
        return self.organize.get_position(node_id)

    def set_staged_position(self, node_id: NodeId, position: Position) -> None:
        self.organize.set_position(node_id, position)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _run(
        self, operation: Callable[[], Awaitable[OperationResult]], *, quiet_success: bool = False
    ) -> OperationResult:
        try:
            result = await operation()
        except BookmarkError as exc:
            logger.warning("Bookmark operation failed: %s", exc)
            result = OperationResult.failed(exc.user_message, ((exc.node_id or "", str(exc)),))
        quiet = quiet_success and result.status is ResultStatus.OK
        return self._report(result, quiet=quiet)

    def _report(self, result: OperationResult, *, quiet: bool = False) -> OperationResult:
        self._last_result = result
        if result.status is ResultStatus.PARTIAL:
            logger.warning("%s (%s)", result.message, result.failures)
        if quiet or not result.message:
            return result
        if self._services is not None:
            self._services.send_notification(result.message, level=_LEVELS[result.status], source=NOTIFICATION_SOURCE)
        return result

    async def _navigate(self, step: Callable[[], Awaitable[Any]]) -> OperationResult:
        async def _go() -> OperationResult:
            folder = await step()
            await self._reconcile()
            self._emit_navigated()
            return OperationResult.success("", (folder.id,) if folder is not None else ())

        return await self._run(_go, quiet_success=True)

    async def _capture(
        self,
        nodes: Optional[Iterable[Node]],
        capture: Callable[[Iterable[Node]], Awaitable[ClipboardState]],
        verb: str,
    ) -> OperationResult:
        async def _do() -> OperationResult:
            items = list(nodes) if nodes is not None else self.selected_nodes()
            if not items:
                return OperationResult.noop("Keine Elemente ausgewählt")
            state = await capture(items)
            self.selection.exit_multi_select()
            return OperationResult.success(f"{len(state.items)} Element(e) {verb}", state.ids)

        return await self._run(_do)

    async def _resync(self) -> None:
        """Re-fetch the tree and let every component drop what vanished."""
        await self.navigation.refresh()
        await self._reconcile()
        current = self.current_folder
        self._events.emit(
            RESYNCED,
            {"current_folder": current.id if current else None, "node_count": len(self.index)},
        )

    async def _reconcile(self) -> None:
        index = self.index
        self.selection.reconcile(index)
        await self.clipboard.reconcile(index)

    async def _load_view_preferences(self) -> None:
        self._desktop_view = bool(await self._preferences.get(KEY_DESKTOP_VIEW, False))
        self._dark_mode = bool(await self._preferences.get(KEY_DARK_MODE, False))
        size = await self._preferences.get(KEY_ICON_SIZE, DEFAULT_ICON_SIZE)
        self.layout.icon_size = size if size in ICON_SIZES else DEFAULT_ICON_SIZE

    @staticmethod
    def _touches_store(intent: DropIntent) -> bool:
        return isinstance(intent, (FolderMove, ListReorder))

    def _emit_navigated(self) -> None:
        current = self.current_folder
        self._events.emit(
            NAVIGATED,
            {
                "current_folder": current.id if current else None,
                "history_index": self.navigation.history_index,
                "search": self.navigation.search_query,
            },
        )

    def _on_selection_changed(self, selection: SelectionManager) -> None:
        self._events.emit(
            SELECTION_CHANGED,
            {"multi_select": selection.multi_select_mode, "selected": sorted(selection.selected)},
        )

    def _on_clipboard_changed(self, state: ClipboardState) -> None:
        self._events.emit(
            CLIPBOARD_CHANGED,
            {"operation": state.operation.value if state.operation else None, "items": state.ids},
        )

    def _on_organize_changed(self, staging: OrganizeStaging) -> None:
        self._events.emit(ORGANIZE_CHANGED, {"active": staging.active})
