from __future__ import annotations

import asyncio
import json
from pathlib import Path

from bmdesk.core.config import ConfigStore
from bmdesk.plugins.bookmarks.preferences import ConfigPreferences, icon_key


def test_config_store_persists_plugin_values(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    store = ConfigStore(config_path)

    config = store.get_plugin("BMDesk.Bookmarks")
    config["isDesktopView"] = True
    config.update({"iconSize": "large"})

    reload_config = ConfigStore(config_path).get_plugin("bmdesk.bookmarks")

    assert reload_config["isDesktopView"] is True
    assert dict(reload_config) == {"isDesktopView": True, "iconSize": "large"}
    assert not config_path.with_name("config.json.tmp").exists()


def test_plugin_config_deletion_and_clear(tmp_path: Path) -> None:
    config_path = tmp_path / "settings.json"
    store = ConfigStore(config_path)
    config = store.get_plugin("bmdesk.bookmarks")

    config.update({"darkMode": True, "historyIndex": 2})
    del config["historyIndex"]

    assert "historyIndex" not in config
    assert dict(config) == {"darkMode": True}

    config.clear()
    assert len(config) == 0
    assert dict(ConfigStore(config_path).get_plugin("bmdesk.bookmarks")) == {}


def test_config_store_handles_invalid_json(tmp_path: Path) -> None:
    config_path = tmp_path / "broken.json"
    config_path.write_text("{ invalid json")

    store = ConfigStore(config_path)
    assert len(store.get_plugin("demo")) == 0

    config = store.get_plugin("demo")
    config["mode"] = "test"
    assert json.loads(config_path.read_text())["demo"] == {"mode": "test"}


def test_config_preferences_write_through(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    prefs = ConfigPreferences(ConfigStore(config_path).get_plugin("bmdesk.bookmarks"))

    positions = {"20": {"x": 1, "y": 2}}
    asyncio.run(prefs.set("itemPositions", positions))
    asyncio.run(prefs.set(icon_key("20"), "star"))
    positions["20"]["x"] = 99

    on_disk = json.loads(config_path.read_text())["bmdesk.bookmarks"]
    assert on_disk["itemPositions"] == {"20": {"x": 1, "y": 2}}
    assert on_disk["icon_20"] == "star"

    asyncio.run(prefs.remove(icon_key("20")))
    asyncio.run(prefs.remove("never-set"))
    assert asyncio.run(prefs.get(icon_key("20"))) is None
    assert "icon_20" not in json.loads(config_path.read_text())["bmdesk.bookmarks"]
    assert prefs.identifier == "bmdesk.bookmarks"
