"""Watches the JSON bookmark file for edits made outside this process."""
import logging
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)


class StoreFileHandler(FileSystemEventHandler):
    """Forwards events that touch one specific file.

    Atomic saves show up as a move of ``<name>.tmp`` onto the file, so both
    the source and the destination path of a move are checked.
    """

    def __init__(self, path: Path, on_change: Callable[[Path], None], debounce: float = 0.2):
        super().__init__()
        self._path = path.resolve()
        self._on_change = on_change
        self._debounce = debounce
        self._last_fired: Optional[float] = None
        self._lock = threading.Lock()

    def _matches(self, raw_path) -> bool:
        if not raw_path:
            return False
        if isinstance(raw_path, bytes):
            raw_path = raw_path.decode()
        return Path(raw_path).resolve() == self._path

    def _fire(self) -> None:
        with self._lock:
            now = time.monotonic()
            if self._last_fired is not None and now - self._last_fired < self._debounce:
                return
            self._last_fired = now
        logger.debug("Bookmark file changed: %s", self._path)
        self._on_change(self._path)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._matches(event.src_path):
            self._fire()

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._matches(event.src_path):
            self._fire()

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._matches(event.src_path):
            self._fire()

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        if self._matches(event.src_path) or self._matches(getattr(event, "dest_path", None)):
            self._fire()


class StoreFileWatcher:
    """Runs a watchdog observer on the directory that holds the bookmark file."""

    def __init__(self, path: Path, debounce: float = 0.2):
        self._path = Path(path)
        self._debounce = debounce
        self._observer: Optional[Observer] = None
        self._handler: Optional[StoreFileHandler] = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_watching(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def start(self, on_change: Callable[[Path], None]) -> bool:
        """Begin watching; returns False when the observer could not be started."""
        if self.is_watching:
            logger.warning("Store watcher already running")
            return True

        directory = self._path.parent
        if not directory.is_dir():
            logger.error("Cannot watch %s: directory does not exist", directory)
            return False

        self._handler = StoreFileHandler(self._path, on_change, self._debounce)
        observer = Observer()
        try:
            observer.schedule(self._handler, str(directory), recursive=False)
            observer.start()
        except OSError as exc:
            logger.error("Failed to start store watcher: %s", exc)
            self._handler = None
            return False
        self._observer = observer
        logger.info("Watching bookmark file %s", self._path)
        return True

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._observer = None
        self._handler = None
        logger.info("Store watcher stopped")
