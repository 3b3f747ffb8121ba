from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Optional

from ...core.events import STORE_CHANGED_EXTERNALLY
from ...core.plugin_base import BasePlugin, PluginManifest
from .desktop import BookmarkDesktop
from .preferences import ConfigPreferences
from .store import JsonBookmarkStore
from .watcher import StoreFileWatcher

STORE_FILENAME = "bookmarks.json"


class Plugin(BasePlugin):
    """Bookmark desktop: folders and bookmarks as a navigable icon desktop.

    The plugin owns the file-backed store, the preference adapter and the
    :class:`BookmarkDesktop` engine. The view is created lazily so the engine
    can be driven without a GUI.
    """

    def __init__(self, services):  # type: ignore[override]
        super().__init__(services)
        self._manifest = PluginManifest(
            identifier="bmdesk.bookmarks",
            name="Lesezeichen",
            description="Lesezeichen-Desktop mit Ordnernavigation, Zwischenablage und Drag & Drop.",
            version="1.0.0",
            author="Bookmark Desktop Team",
            tags=("bookmarks", "desktop", "navigation"),
        )
        self._store: Optional[JsonBookmarkStore] = None
        self._desktop: Optional[BookmarkDesktop] = None
        self._watcher: Optional[StoreFileWatcher] = None
        self._widget = None  # type: Optional[Any]

    @property
    def manifest(self) -> PluginManifest:  # type: ignore[override]
        return self._manifest

    @property
    def store_path(self) -> Path:
        configured = self.config.get("store_path")
        if isinstance(configured, str) and configured:
            return Path(configured)
        return self.services.data_dir / "bookmarks" / STORE_FILENAME

    @property
    def desktop(self) -> BookmarkDesktop:
        if self._desktop is None:
            raise RuntimeError("Plugin has not been initialized")
        return self._desktop

    def initialize(self) -> None:  # type: ignore[override]
        self.services.ensure_subdirectories("bookmarks")
        self._store = JsonBookmarkStore(self.store_path)
        self._desktop = BookmarkDesktop(
            self._store,
            ConfigPreferences(self.config),
            services=self.services,
        )
        self._watcher = StoreFileWatcher(self._store.path)

    def create_view(self):  # type: ignore[override]
        if self._widget is None:
            from .widgets import BookmarkDesktopWidget

            self._widget = BookmarkDesktopWidget(self)
        return self._widget

    def start(self) -> None:  # type: ignore[override]
        result = asyncio.run(self.desktop.load())
        if not result.ok:
            raise RuntimeError(result.message)
        if self._watcher is not None:
            self._watcher.start(self._on_store_file_changed)

    def stop(self) -> None:  # type: ignore[override]
        if self._watcher is not None:
            self._watcher.stop()
        if self._desktop is not None:
            self._desktop.unload()

    def shutdown(self) -> None:  # type: ignore[override]
        self.stop()

    def _on_store_file_changed(self, path: Path) -> None:
        # Runs on the watchdog thread; subscribers marshal to their own thread.
        self.services.event_bus.emit(STORE_CHANGED_EXTERNALLY, {"path": str(path)})


__all__ = ["Plugin"]
