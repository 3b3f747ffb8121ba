from __future__ import annotations

import copy
from typing import Any, Dict, Optional, Protocol

from bmdesk.core.config import PluginConfig

KEY_DESKTOP_VIEW = "isDesktopView"
KEY_ICON_SIZE = "iconSize"
KEY_ITEM_POSITIONS = "itemPositions"
KEY_DARK_MODE = "darkMode"
KEY_CLIPBOARD = "clipboard"
KEY_HISTORY = "history"
KEY_HISTORY_INDEX = "historyIndex"
ICON_KEY_PREFIX = "icon_"


def icon_key(node_id: str) -> str:
    return f"{ICON_KEY_PREFIX}{node_id}"


class PreferenceStore(Protocol):
    async def get(self, key: str, default: Any = None) -> Any:
        ...

    async def set(self, key: str, value: Any) -> None:
        ...

    async def remove(self, key: str) -> None:
        ...


class MemoryPreferences:
    """Dictionary-backed preferences; values are deep-copied in and out."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._values: Dict[str, Any] = copy.deepcopy(initial or {})

    async def get(self, key: str, default: Any = None) -> Any:
        if key not in self._values:
            return default
        return copy.deepcopy(self._values[key])

    async def set(self, key: str, value: Any) -> None:
        self._values[key] = copy.deepcopy(value)

    async def remove(self, key: str) -> None:
        self._values.pop(key, None)

    def as_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._values)


class ConfigPreferences:
    """Preference store on top of a plugin bucket of the shared ``ConfigStore``.

    Every write goes straight to the JSON config file, so preferences survive
    a crash between two operations.
    """

    def __init__(self, config: PluginConfig) -> None:
        self._config = config

    @property
    def identifier(self) -> str:
        return self._config.identifier

    async def get(self, key: str, default: Any = None) -> Any:
        return copy.deepcopy(self._config.get(key, default))

    async def set(self, key: str, value: Any) -> None:
        self._config[key] = copy.deepcopy(value)

    async def remove(self, key: str) -> None:
        if key in self._config:
            del self._config[key]
