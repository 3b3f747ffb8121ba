"""Qt view for the bookmark desktop.

The widget is a thin shell: every button, menu entry and drag gesture runs
the matching :class:`BookmarkDesktop` coroutine to completion and then
re-renders from the engine state.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Dict, List, Optional

from PySide6.QtCore import QPoint, QSize, Qt, QUrl, Signal
from PySide6.QtGui import QDesktopServices, QIcon
from PySide6.QtWidgets import (
    QHBoxLayout,
    QInputDialog,
    QLabel,
    QLineEdit,
    QListView,
    QListWidget,
    QListWidgetItem,
    QMenu,
    QMessageBox,
    QToolButton,
    QVBoxLayout,
    QWidget,
)

from bmdesk.core.events import NAVIGATED, RESYNCED, STORE_CHANGED_EXTERNALLY

from .desktop import BookmarkDesktop
from .drag_drop import Rect
from .icons import PREDEFINED_ICONS
from .models import Node, OperationResult, display_title

NODE_ROLE = Qt.UserRole + 1  # type: ignore[attr-defined]

_ICON_THEME = {
    "default": "text-html",
    "folder": "folder",
    "star": "starred",
    "heart": "emblem-favorite",
    "work": "applications-office",
    "home": "go-home",
    "important": "emblem-important",
    "music": "audio-x-generic",
    "shopping": "emblem-money",
    "travel": "applications-internet",
    "education": "accessories-dictionary",
}


def run(awaitable: Awaitable[Any]) -> Any:
    return asyncio.run(awaitable)  # type: ignore[arg-type]


class BreadcrumbBar(QWidget):
    folder_selected = Signal(str)

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._layout = QHBoxLayout(self)
        self._layout.setContentsMargins(0, 0, 0, 0)
        self._layout.setSpacing(6)

    def set_crumbs(self, crumbs: List[Node]) -> None:
        while self._layout.count():
            item = self._layout.takeAt(0)
            widget = item.widget()
            if widget is not None:
                widget.deleteLater()
        for index, crumb in enumerate(crumbs):
            button = QToolButton()
            button.setObjectName("BookmarkBreadcrumb")
            button.setText(display_title(crumb) if crumb.title or crumb.url else "Lesezeichen")
            button.clicked.connect(lambda _=False, node_id=crumb.id: self.folder_selected.emit(node_id))
            self._layout.addWidget(button)
            if index < len(crumbs) - 1:
                self._layout.addWidget(QLabel("›"))
        self._layout.addStretch(1)


class BookmarkListView(QListWidget):
    """Icon view that forwards drag gestures to the engine instead of moving items itself."""

    def __init__(self, owner: "BookmarkDesktopWidget") -> None:
        super().__init__(owner)
        self._owner = owner
        self._press_pos: Optional[QPoint] = None
        self._dragging = False
        self.setViewMode(QListView.ViewMode.IconMode)
        self.setResizeMode(QListView.ResizeMode.Adjust)
        self.setMovement(QListView.Movement.Static)
        self.setSelectionMode(QListWidget.SelectionMode.SingleSelection)
        self.setWordWrap(True)

    def node_at(self, pos: QPoint) -> Optional[Node]:
        item = self.itemAt(pos)
        if item is None:
            return None
        return item.data(NODE_ROLE)

    def mousePressEvent(self, event) -> None:  # type: ignore[override]
        if event.button() == Qt.LeftButton:  # type: ignore[attr-defined]
            self._press_pos = event.position().toPoint()
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event) -> None:  # type: ignore[override]
        if self._press_pos is None:
            return super().mouseMoveEvent(event)
        pos = event.position().toPoint()
        if not self._dragging:
            if (pos - self._press_pos).manhattanLength() < 8:
                return
            node = self.node_at(self._press_pos)
            if node is None or self._owner.begin_drag(node, self._press_pos) is None:
                self._press_pos = None
                return
            self._dragging = True
        target = self.node_at(pos)
        if target is not None:
            rect = self.visualItemRect(self.itemAt(pos))
            self._owner.hover(target, pos, Rect(rect.x(), rect.y(), rect.width(), rect.height()))

    def mouseReleaseEvent(self, event) -> None:  # type: ignore[override]
        if self._dragging:
            pos = event.position().toPoint()
            self._owner.finish_drag(self.node_at(pos), pos)
        self._dragging = False
        self._press_pos = None
        super().mouseReleaseEvent(event)


class BookmarkDesktopWidget(QWidget):
    store_changed = Signal()

    def __init__(self, plugin, parent: Optional[QWidget] = None) -> None:  # type: ignore[override]
        super().__init__(parent)
        self._plugin = plugin
        self._desktop: BookmarkDesktop = plugin.desktop
        self._buttons: Dict[str, QToolButton] = {}

        self._build_ui()
        self.store_changed.connect(self._on_store_changed)
        events = self._desktop.events
        events.subscribe(STORE_CHANGED_EXTERNALLY, self._forward_store_change)
        events.subscribe(RESYNCED, self._on_engine_event)
        events.subscribe(NAVIGATED, self._on_engine_event)
        self.render()

    # ------------------------------------------------------------------
    def _build_ui(self) -> None:
        root = QVBoxLayout(self)
        root.setContentsMargins(8, 8, 8, 8)
        root.setSpacing(6)

        nav = QHBoxLayout()
        for key, text, tip, slot in (
            ("back", "◀", "Zurück", lambda: self._call(self._desktop.go_back())),
            ("forward", "▶", "Vorwärts", lambda: self._call(self._desktop.go_forward())),
            ("home", "⌂", "Startordner", lambda: self._call(self._desktop.go_home())),
        ):
            nav.addWidget(self._make_button(key, text, tip, slot))
        self._breadcrumbs = BreadcrumbBar()
        self._breadcrumbs.folder_selected.connect(lambda node_id: self._call(self._desktop.navigate_to(node_id)))
        nav.addWidget(self._breadcrumbs, 1)
        self._search = QLineEdit()
        self._search.setPlaceholderText("Lesezeichen durchsuchen …")
        self._search.returnPressed.connect(lambda: self._call(self._desktop.search(self._search.text())))
        nav.addWidget(self._search)
        root.addLayout(nav)

        actions = QHBoxLayout()
        for key, text, tip, slot in (
            ("new_folder", "📁+", "Neuer Ordner", self._create_folder),
            ("refresh", "⟳", "Aktualisieren", lambda: self._call(self._desktop.resync())),
            ("view", "▦", "Desktop-/Rasteransicht", lambda: self._call(self._desktop.toggle_view())),
            ("multi", "☑", "Mehrfachauswahl", self._toggle_multi_select),
            ("organize", "✥", "Anordnen", self._desktop.enter_organize),
            ("save_organize", "✔", "Anordnung speichern", lambda: self._call(self._desktop.save_organize())),
            ("cancel_organize", "✖", "Anordnung verwerfen", self._desktop.cancel_organize),
            ("paste", "📋", "Einfügen", lambda: self._call(self._desktop.paste())),
        ):
            actions.addWidget(self._make_button(key, text, tip, slot))
        actions.addStretch(1)
        self._status = QLabel("")
        actions.addWidget(self._status)
        root.addLayout(actions)

        self._list = BookmarkListView(self)
        self._list.itemDoubleClicked.connect(self._open_item)
        self._list.itemClicked.connect(self._click_item)
        self._list.setContextMenuPolicy(Qt.CustomContextMenu)  # type: ignore[attr-defined]
        self._list.customContextMenuRequested.connect(self._show_context_menu)
        root.addWidget(self._list, 1)

    def _make_button(self, key: str, text: str, tip: str, slot) -> QToolButton:
        button = QToolButton()
        button.setText(text)
        button.setToolTip(tip)
        button.setAutoRaise(True)
        button.clicked.connect(lambda _=False: (slot(), self.render()))
        self._buttons[key] = button
        return button

    # ------------------------------------------------------------------
    def render(self) -> None:
        desktop = self._desktop
        self._breadcrumbs.set_crumbs(desktop.breadcrumbs)
        self._buttons["back"].setEnabled(desktop.navigation.can_go_back)
        self._buttons["forward"].setEnabled(desktop.navigation.can_go_forward)
        organizing = desktop.organize.active
        self._buttons["organize"].setVisible(desktop.desktop_view and not organizing)
        self._buttons["save_organize"].setVisible(organizing)
        self._buttons["cancel_organize"].setVisible(organizing)
        self._buttons["paste"].setEnabled(not desktop.clipboard.is_empty)
        self._buttons["multi"].setDown(desktop.selection.multi_select_mode)

        width, height = desktop.layout.item_size
        self._list.setIconSize(QSize(width // 2, height // 2))
        self._list.setGridSize(QSize(width, height))
        self._list.clear()
        positions = desktop.item_positions(self._list.viewport().width()) if desktop.desktop_view else {}
        for node in desktop.visible_items:
            item = QListWidgetItem(display_title(node))
            item.setData(NODE_ROLE, node)
            item.setIcon(self._icon(node))
            item.setToolTip(node.url or node.title)
            if desktop.selection.is_selected(node.id):
                item.setBackground(self.palette().highlight())
            self._list.addItem(item)
            position = positions.get(node.id)
            if position is not None:
                self._list.setPositionForIndex(QPoint(position.x, position.y), self._list.indexFromItem(item))

    def _icon(self, node: Node) -> QIcon:
        name = run(self._desktop.icon_for(node))
        if name in PREDEFINED_ICONS:
            return QIcon.fromTheme(_ICON_THEME[name])
        return QIcon()

    def _call(self, awaitable: Awaitable[Any]) -> Any:
        result = run(awaitable)
        if isinstance(result, OperationResult) and result.message:
            self._status.setText(result.message)
        self.render()
        return result

    # ------------------------------------------------------------------
    def _create_folder(self) -> None:
        name, accepted = QInputDialog.getText(self, "Neuer Ordner", "Ordnername:")
        if accepted:
            self._call(self._desktop.create_folder(name))

    def _toggle_multi_select(self) -> None:
        self._desktop.toggle_multi_select()

    def _click_item(self, item: QListWidgetItem) -> None:
        node = item.data(NODE_ROLE)
        if self._desktop.selection.multi_select_mode:
            self._desktop.toggle_selection(node)
            self.render()

    def _open_item(self, item: QListWidgetItem) -> None:
        node: Node = item.data(NODE_ROLE)
        if node.is_folder:
            self._call(self._desktop.navigate_to(node))
        elif node.url:
            QDesktopServices.openUrl(QUrl(node.url))

    def _show_context_menu(self, pos: QPoint) -> None:
        node = self._list.node_at(pos)
        if node is None:
            return
        targets = self._desktop.selected_nodes() if self._desktop.selection.is_selected(node.id) else [node]
        menu = QMenu(self)
        menu.addAction("Öffnen", lambda: self._open_item(self._list.itemAt(pos)))
        menu.addAction("Umbenennen", lambda: self._rename(node))
        menu.addAction("Ausschneiden", lambda: self._call(self._desktop.cut(targets)))
        menu.addAction("Kopieren", lambda: self._call(self._desktop.copy(targets)))
        menu.addAction("Symbol ändern", lambda: self._choose_icon(node))
        menu.addAction("Löschen", lambda: self._delete(targets))
        menu.exec(self._list.mapToGlobal(pos))

    def _rename(self, node: Node) -> None:
        name, accepted = QInputDialog.getText(self, "Umbenennen", "Neuer Name:", text=node.title)
        if accepted:
            self._call(self._desktop.rename(node, name))

    def _choose_icon(self, node: Node) -> None:
        name, accepted = QInputDialog.getItem(self, "Symbol ändern", "Symbol:", list(PREDEFINED_ICONS), 0, False)
        if accepted:
            self._call(self._desktop.set_icon(node, name=name))

    def _delete(self, nodes: List[Node]) -> None:
        answer = QMessageBox.question(
            self,
            "Löschen",
            f"{len(nodes)} Element(e) wirklich löschen?",
        )
        if answer == QMessageBox.StandardButton.Yes:
            self._call(self._desktop.delete(nodes))

    # ------------------------------------------------------------------
    def begin_drag(self, node: Node, pos: QPoint):
        return self._desktop.begin_drag(node, (pos.x(), pos.y()), container_width=self._list.viewport().width())

    def hover(self, target: Node, pos: QPoint, bounds: Rect) -> None:
        self._desktop.hover(target, (pos.x(), pos.y()), bounds)

    def finish_drag(self, target: Optional[Node], pos: QPoint) -> None:
        viewport = self._list.viewport()
        self._call(self._desktop.drop(target, (pos.x(), pos.y()), container=(viewport.width(), viewport.height())))
        self._call(self._desktop.end_drag())

    # ------------------------------------------------------------------
    def _forward_store_change(self, _event: str, _data: Dict[str, Any]) -> None:
        self.store_changed.emit()

    def _on_store_changed(self) -> None:
        self._call(self._desktop.resync())

    def _on_engine_event(self, _event: str, _data: Dict[str, Any]) -> None:
        self._search.blockSignals(True)
        self._search.setText(self._desktop.navigation.search_query)
        self._search.blockSignals(False)

    def closeEvent(self, event) -> None:  # type: ignore[override]
        events = self._desktop.events
        events.unsubscribe(STORE_CHANGED_EXTERNALLY, self._forward_store_change)
        events.unsubscribe(RESYNCED, self._on_engine_event)
        events.unsubscribe(NAVIGATED, self._on_engine_event)
        super().closeEvent(event)
