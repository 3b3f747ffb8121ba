from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from .config import ConfigStore, PluginConfig
from .events import EventBus

_LEVELS = ("debug", "info", "warning", "error")


class NotificationCenter:
    """Fan-out of user-facing notifications to whatever surface displays them."""

    def __init__(self) -> None:
        self._subscribers: List[Callable[["Notification"], None]] = []
        self._history: List[Notification] = []
        self._history_limit = 200

    def subscribe(self, callback: Callable[["Notification"], None]) -> None:
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[["Notification"], None]) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def publish(self, notification: "Notification") -> None:
        self._history.append(notification)
        del self._history[: -self._history_limit]
        for subscriber in list(self._subscribers):
            try:
                subscriber(notification)
            except Exception:
                logging.getLogger("BookmarkDesktop.NotificationCenter").exception(
                    "Notification subscriber failed"
                )

    @property
    def history(self) -> List["Notification"]:
        return list(self._history)


@dataclass(frozen=True)
class Notification:
    message: str
    level: str = "info"
    source: Optional[str] = None


class CoreServices:
    """Shared services handed to every plugin and to the bookmark engine."""

    def __init__(
        self,
        app_name: str = "BookmarkDesktop",
        data_dir: Optional[Path] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.app_name = app_name
        self.data_dir = data_dir or self._resolve_data_dir(app_name)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._logger = logger or self._configure_logger(app_name)
        self.notifications = NotificationCenter()
        self._config_store = ConfigStore(self.data_dir / "config.json")
        self.event_bus = EventBus()

    @staticmethod
    def _resolve_data_dir(app_name: str) -> Path:
        if os.name == "nt":
            base = Path(os.getenv("APPDATA", Path.home() / "AppData" / "Roaming"))
        else:
            base = Path(os.getenv("XDG_CONFIG_HOME", Path.home() / ".config"))
        return base / app_name.lower()

    @staticmethod
    def _configure_logger(app_name: str) -> logging.Logger:
        logger = logging.getLogger(app_name)
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
            )
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        return logger

    def send_notification(
        self, message: str, level: str = "info", *, source: Optional[str] = None
    ) -> Notification:
        if level not in _LEVELS:
            level = "info"
        notification = Notification(message=message, level=level, source=source)
        self.notifications.publish(notification)
        getattr(self._logger, level)("%s", message)
        return notification

    def ensure_subdirectories(self, *relative_paths: str) -> Iterable[Path]:
        created = []
        for relative in relative_paths:
            target = self.data_dir / relative
            target.mkdir(parents=True, exist_ok=True)
            created.append(target)
        return created

    def get_plugin_config(self, identifier: str) -> PluginConfig:
        return self._config_store.get_plugin(identifier)

    def get_app_config(self) -> PluginConfig:
        """Return the bucket reserved for dashboard window state."""
        return self._config_store.get_plugin("__dashboard__")
