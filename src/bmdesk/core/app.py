from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Any, Dict, Optional

from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QApplication,
    QHBoxLayout,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QStackedWidget,
    QVBoxLayout,
    QWidget,
)

from .plugin_base import PluginState
from .plugin_manager import PluginManager, PluginRecord
from .services import CoreServices, Notification


@dataclass
class PluginView:
    widget: QWidget


class PluginListItem(QListWidgetItem):
    def __init__(self, record: PluginRecord) -> None:
        super().__init__(record.manifest.name)
        self.identifier = record.manifest.identifier
        self.setData(Qt.UserRole, self.identifier)  # type: ignore[attr-defined]
        self.refresh(record)

    def refresh(self, record: PluginRecord) -> None:
        status = record.state.value
        tooltip = f"{record.manifest.description}\nStatus: {status}"
        if record.error:
            tooltip += f"\n{record.error}"
        self.setToolTip(tooltip)


class DashboardWindow(QMainWindow):
    """Main window: plugin list on the left, the selected plugin's view on the right."""

    def __init__(self, services: CoreServices, manager: PluginManager) -> None:
        super().__init__()
        self._services = services
        self._manager = manager
        self._views: Dict[str, PluginView] = {}
        self._app_settings = self._services.get_app_config()

        self.setWindowTitle("Bookmark Desktop")
        self.resize(1100, 720)

        container = QWidget()
        root_layout = QHBoxLayout(container)
        root_layout.setContentsMargins(12, 12, 12, 12)
        root_layout.setSpacing(12)

        sidebar = QWidget()
        sidebar_layout = QVBoxLayout(sidebar)
        sidebar_layout.setSpacing(6)
        sidebar_layout.addWidget(QLabel("Plugins"))

        self.plugin_list = QListWidget()
        self.plugin_list.setSelectionMode(QListWidget.SelectionMode.SingleSelection)
        self.plugin_list.currentItemChanged.connect(self._on_plugin_selected)
        sidebar_layout.addWidget(self.plugin_list, stretch=1)

        actions_layout = QHBoxLayout()
        self.start_button = QPushButton("Start")
        self.start_button.clicked.connect(self._start_selected)
        actions_layout.addWidget(self.start_button)
        self.stop_button = QPushButton("Stop")
        self.stop_button.clicked.connect(self._stop_selected)
        actions_layout.addWidget(self.stop_button)
        sidebar_layout.addLayout(actions_layout)

        self.status_label = QLabel("Bereit")
        self.status_label.setWordWrap(True)
        sidebar_layout.addWidget(self.status_label)
        root_layout.addWidget(sidebar, stretch=0)

        self.view_stack = QStackedWidget()
        placeholder = QLabel("Plugin auswählen, um das Interface zu laden.")
        placeholder.setAlignment(Qt.AlignCenter)  # type: ignore[attr-defined]
        self.view_stack.addWidget(placeholder)
        root_layout.addWidget(self.view_stack, stretch=1)

        self.setCentralWidget(container)
        self._services.notifications.subscribe(self._on_notification)

        self._restore_window_settings()
        self._populate_plugins()
        if self.plugin_list.count() > 0:
            self._select_initial_plugin()

    # ------------------------------------------------------------------
    # UI helpers
    # ------------------------------------------------------------------
    def _populate_plugins(self) -> None:
        self.plugin_list.clear()
        for record in self._manager.discover().values():
            self.plugin_list.addItem(PluginListItem(record))

    def _select_initial_plugin(self) -> None:
        selected = self._app_settings.get("selected_plugin")
        row = 0
        for index in range(self.plugin_list.count()):
            item = self.plugin_list.item(index)
            if item and item.data(Qt.UserRole) == selected:  # type: ignore[attr-defined]
                row = index
                break
        self.plugin_list.setCurrentRow(row)
        self._start_selected()

    def _current_record(self) -> Optional[PluginRecord]:
        current = self.plugin_list.currentItem()
        if not current:
            return None
        return self._manager.get(current.data(Qt.UserRole))  # type: ignore[attr-defined]

    def _ensure_view(self, identifier: str) -> QWidget:
        view = self._views.get(identifier)
        if view:
            return view.widget
        record = self._manager.get(identifier)
        if not record or record.instance is None:
            placeholder = QLabel("Plugin konnte nicht initialisiert werden.")
            placeholder.setAlignment(Qt.AlignCenter)  # type: ignore[attr-defined]
            return placeholder
        widget = record.instance.create_view()
        self._views[identifier] = PluginView(widget=widget)
        self.view_stack.addWidget(widget)
        return widget

    def _update_buttons(self, record: Optional[PluginRecord]) -> None:
        self.start_button.setEnabled(bool(record) and record.state != PluginState.STARTED)
        self.stop_button.setEnabled(bool(record) and record.state == PluginState.STARTED)

    def _restore_window_settings(self) -> None:
        size = self._app_settings.get("window_size", None)
        if isinstance(size, (list, tuple)) and len(size) == 2:
            try:
                width, height = int(size[0]), int(size[1])
            except (TypeError, ValueError):
                width = height = 0
            if width > 0 and height > 0:
                self.resize(width, height)

    def _update_app_settings(self, **kwargs: Any) -> None:
        payload = {key: value for key, value in kwargs.items() if self._app_settings.get(key) != value}
        if payload:
            self._app_settings.update(payload)

    def _on_plugin_selected(self, current: Optional[QListWidgetItem]) -> None:
        record = self._current_record()
        self._update_buttons(record)
        if record and record.state == PluginState.STARTED:
            self.view_stack.setCurrentWidget(self._ensure_view(record.manifest.identifier))
        else:
            self.view_stack.setCurrentIndex(0)
        if record:
            self._update_app_settings(selected_plugin=record.manifest.identifier)

    def _start_selected(self) -> None:
        record = self._current_record()
        if not record:
            return
        state = self._manager.start(record.manifest.identifier)
        self._refresh_record(record)
        if state == PluginState.STARTED:
            self.view_stack.setCurrentWidget(self._ensure_view(record.manifest.identifier))
            self._set_status(f"{record.manifest.name} gestartet")
        else:
            self.view_stack.setCurrentIndex(0)
            if record.error:
                QMessageBox.critical(self, record.manifest.name, record.error)
        self._update_buttons(record)

    def _stop_selected(self) -> None:
        record = self._current_record()
        if not record:
            return
        self._manager.stop(record.manifest.identifier)
        self._refresh_record(record)
        self.view_stack.setCurrentIndex(0)
        self._set_status(f"{record.manifest.name} gestoppt")
        self._update_buttons(record)

    def _refresh_record(self, record: PluginRecord) -> None:
        for index in range(self.plugin_list.count()):
            item = self.plugin_list.item(index)
            if isinstance(item, PluginListItem) and item.identifier == record.manifest.identifier:
                item.refresh(record)
                break

    # ------------------------------------------------------------------
    # Qt events
    # ------------------------------------------------------------------
    def closeEvent(self, event) -> None:  # type: ignore[override]
        size = self.size()
        self._update_app_settings(window_size=[int(size.width()), int(size.height())])
        self._services.notifications.unsubscribe(self._on_notification)
        self._manager.shutdown()
        super().closeEvent(event)

    # ------------------------------------------------------------------
    # Status & notifications
    # ------------------------------------------------------------------
    def _set_status(self, message: str, *, level: str = "info", source: Optional[str] = None) -> None:
        color_map = {
            "debug": "#808080",
            "info": "#d0d0d0",
            "warning": "#d19a00",
            "error": "#b22222",
        }
        color = color_map.get(level.lower(), color_map["info"])
        if source:
            message = f"[{source}] {message}"
        self.status_label.setText(message)
        self.status_label.setStyleSheet(f"color: {color};")

    def _on_notification(self, notification: Notification) -> None:
        self._set_status(notification.message, level=notification.level, source=notification.source)


def main() -> int:
    app = QApplication(sys.argv)
    services = CoreServices()
    manager = PluginManager(services=services)
    window = DashboardWindow(services=services, manager=manager)
    window.show()
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
