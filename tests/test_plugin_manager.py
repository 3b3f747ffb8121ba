import json

from bmdesk.core.events import STORE_CHANGED_EXTERNALLY
from bmdesk.core.plugin_base import PluginState
from bmdesk.core.plugin_manager import PluginManager
from bmdesk.core.services import CoreServices


def test_plugin_discovery(tmp_path):
    services = CoreServices(data_dir=tmp_path)
    manager = PluginManager(services=services)
    plugins = manager.discover()

    assert "bmdesk.bookmarks" in plugins
    record = plugins["bmdesk.bookmarks"]
    assert record.manifest.name == "Lesezeichen"
    assert record.instance is not None
    assert record.state is PluginState.LOADED


def test_bookmark_plugin_lifecycle(tmp_path):
    services = CoreServices(data_dir=tmp_path)
    manager = PluginManager(services=services)
    manager.discover()

    assert manager.start("bmdesk.bookmarks") is PluginState.STARTED
    plugin = manager.get("bmdesk.bookmarks").instance
    try:
        store_file = tmp_path / "bookmarks" / "bookmarks.json"
        assert store_file.exists()
        assert json.loads(store_file.read_text(encoding="utf-8"))["root"]["id"] == "0"
        assert plugin.desktop.loaded
        assert plugin.desktop.current_folder.id == "1"
    finally:
        assert manager.stop("bmdesk.bookmarks") is PluginState.STOPPED
    assert not plugin.desktop.loaded


def test_store_file_change_is_announced(tmp_path):
    services = CoreServices(data_dir=tmp_path)
    manager = PluginManager(services=services)
    manager.discover()
    plugin = manager.get("bmdesk.bookmarks").instance
    received = []
    services.event_bus.subscribe(STORE_CHANGED_EXTERNALLY, lambda name, data: received.append(data))

    plugin._on_store_file_changed(tmp_path / "bookmarks.json")

    assert received == [{"path": str(tmp_path / "bookmarks.json")}]


def test_unreadable_store_fails_start(tmp_path):
    services = CoreServices(data_dir=tmp_path)
    store_file = tmp_path / "bookmarks" / "bookmarks.json"
    store_file.parent.mkdir(parents=True)
    store_file.write_text("not json", encoding="utf-8")
    manager = PluginManager(services=services)
    manager.discover()

    assert manager.start("bmdesk.bookmarks") is PluginState.FAILED
    assert services.notifications.history[-1].level == "error"
