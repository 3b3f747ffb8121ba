"""UI-side tests for the bookmark desktop widget."""
from __future__ import annotations

import asyncio
import os
from typing import cast

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

pytest.importorskip("PySide6")

from PySide6.QtWidgets import QApplication  # noqa: E402

from bmdesk.core.events import STORE_CHANGED_EXTERNALLY  # noqa: E402
from bmdesk.plugins.bookmarks.widgets import BookmarkDesktopWidget  # noqa: E402


@pytest.fixture(scope="module")
def qt_app() -> QApplication:
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    return cast(QApplication, app)


class DummyPlugin:
    def __init__(self, desktop):
        self.desktop = desktop


def _texts(widget: BookmarkDesktopWidget):
    return [widget._list.item(row).text() for row in range(widget._list.count())]


def test_widget_renders_current_folder(qt_app, make_desktop):
    widget = BookmarkDesktopWidget(DummyPlugin(make_desktop()))
    assert _texts(widget) == ["Work", "Site", "News", "Archive"]
    assert not widget._buttons["back"].isEnabled()
    assert not widget._buttons["paste"].isEnabled()


def test_open_folder_and_breadcrumb_back(qt_app, make_desktop):
    desktop = make_desktop()
    widget = BookmarkDesktopWidget(DummyPlugin(desktop))

    widget._open_item(widget._list.item(0))
    assert desktop.current_folder.id == "10"
    assert _texts(widget) == ["Report", "Projects"]
    assert widget._buttons["back"].isEnabled()

    widget._breadcrumbs.folder_selected.emit("1")
    assert desktop.current_folder.id == "1"
    assert _texts(widget) == ["Work", "Site", "News", "Archive"]


def test_external_store_change_triggers_resync(qt_app, make_desktop):
    desktop = make_desktop()
    widget = BookmarkDesktopWidget(DummyPlugin(desktop))
    asyncio.run(desktop.store.create_node("1", "Elsewhere", "https://e.test"))

    widget.store_changed.emit()
    assert _texts(widget)[-1] == "Elsewhere"


def test_close_unsubscribes(qt_app, make_desktop):
    desktop = make_desktop()
    widget = BookmarkDesktopWidget(DummyPlugin(desktop))
    assert desktop.events.subscriber_count(STORE_CHANGED_EXTERNALLY) == 1

    widget.show()
    widget.close()
    assert desktop.events.subscriber_count(STORE_CHANGED_EXTERNALLY) == 0
