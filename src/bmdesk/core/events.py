"""Pub/sub event bus shared between the core and plugins.

The bookmark engine announces every state transition here so views can
re-render without polling. Event names are dotted strings grouped by
component:

    services.event_bus.subscribe(RESYNCED, view.on_tree_resynced)
    services.event_bus.emit(RESYNCED, {"current_folder": "1", "node_count": 42})
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

EventCallback = Callable[[str, Dict[str, Any]], None]

RESYNCED = "bookmarks.resynced"
NAVIGATED = "bookmarks.navigated"
SELECTION_CHANGED = "bookmarks.selection_changed"
CLIPBOARD_CHANGED = "bookmarks.clipboard_changed"
ORGANIZE_CHANGED = "bookmarks.organize_changed"
PREFERENCES_CHANGED = "bookmarks.preferences_changed"
STORE_CHANGED_EXTERNALLY = "bookmarks.store_changed"

_logger = logging.getLogger("BookmarkDesktop.EventBus")


class EventBus:
    """Central event bus for engine-to-view and plugin-to-plugin messages."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[EventCallback]] = {}
        self._lock = threading.RLock()

    def subscribe(self, event_name: str, callback: EventCallback) -> None:
        """Register ``callback`` for ``event_name``; duplicates are ignored.

        Callbacks receive ``(event_name, data)``.
        """
        with self._lock:
            callbacks = self._subscribers.setdefault(event_name, [])
            if callback not in callbacks:
                callbacks.append(callback)

    def unsubscribe(self, event_name: str, callback: EventCallback) -> None:
        with self._lock:
            callbacks = self._subscribers.get(event_name)
            if callbacks and callback in callbacks:
                callbacks.remove(callback)

    def emit(self, event_name: str, data: Optional[Dict[str, Any]] = None) -> int:
        """Deliver ``data`` to every subscriber of ``event_name``.

        Returns the number of callbacks that completed without raising. A
        failing subscriber is logged and does not stop delivery to the rest.
        """
        payload = dict(data or {})
        with self._lock:
            callbacks = list(self._subscribers.get(event_name, ()))

        delivered = 0
        for callback in callbacks:
            try:
                callback(event_name, payload)
            except Exception:
                _logger.exception("Subscriber %r failed while handling '%s'", callback, event_name)
                continue
            delivered += 1
        return delivered

    def subscriber_count(self, event_name: str) -> int:
        with self._lock:
            return len(self._subscribers.get(event_name, []))
