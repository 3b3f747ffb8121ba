from __future__ import annotations

import os
from pathlib import Path

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

pytest.importorskip("PySide6")

from PySide6.QtWidgets import QApplication

from bmdesk.core.app import DashboardWindow
from bmdesk.core.plugin_base import PluginState
from bmdesk.core.plugin_manager import PluginManager
from bmdesk.core.services import CoreServices
from bmdesk.plugins.bookmarks.widgets import BookmarkDesktopWidget

IDENTIFIER = "bmdesk.bookmarks"


def ensure_qapp() -> QApplication:
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    return app


def test_dashboard_starts_bookmarks_and_persists_window_state(tmp_path: Path) -> None:
    ensure_qapp()
    data_dir = tmp_path / "bmdesk-data"
    services = CoreServices(app_name="BookmarkDesktop-Tests", data_dir=data_dir)
    manager = PluginManager(services=services)

    window = DashboardWindow(services=services, manager=manager)
    assert manager.get(IDENTIFIER).state is PluginState.STARTED
    assert isinstance(window.view_stack.currentWidget(), BookmarkDesktopWidget)

    window.resize(640, 480)
    window.close()

    services_new = CoreServices(app_name="BookmarkDesktop-Tests", data_dir=data_dir)
    settings = services_new.get_app_config()
    assert settings.get("selected_plugin") == IDENTIFIER
    assert settings.get("window_size") == [640, 480]

    window_new = DashboardWindow(services=services_new, manager=PluginManager(services=services_new))
    assert window_new.size().width() == 640
    window_new.close()


def test_notifications_reach_status_label(tmp_path: Path) -> None:
    ensure_qapp()
    services = CoreServices(app_name="BookmarkDesktop-Tests", data_dir=tmp_path)
    window = DashboardWindow(services=services, manager=PluginManager(services=services))

    services.send_notification("Zwischenablage ist leer", source=IDENTIFIER)
    assert window.status_label.text() == f"[{IDENTIFIER}] Zwischenablage ist leer"
    window.close()
