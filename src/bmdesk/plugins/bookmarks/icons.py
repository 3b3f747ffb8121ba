from __future__ import annotations

import logging
from typing import Iterable, Optional, Tuple
from urllib.parse import urlencode

from .errors import InvalidIconError
from .models import Node, NodeId
from .preferences import PreferenceStore, icon_key

logger = logging.getLogger(__name__)

PREDEFINED_ICONS: Tuple[str, ...] = (
    "default",
    "folder",
    "star",
    "heart",
    "work",
    "home",
    "important",
    "music",
    "shopping",
    "travel",
    "education",
)
DATA_URL_PREFIX = "data:image/"


def favicon_url(page_url: str, size: int = 32, base: str = "/_favicon/") -> str:
    """Lookup URL for the browser's favicon cache of ``page_url``."""
    return f"{base}?{urlencode({'pageUrl': page_url, 'size': size})}"


def is_data_url(value: str) -> bool:
    return value.startswith(DATA_URL_PREFIX) and ";base64," in value


class IconRegistry:
    """Custom icon associations kept under ``icon_<id>`` preference keys."""

    def __init__(self, preferences: PreferenceStore) -> None:
        self._preferences = preferences

    async def get(self, node_id: NodeId) -> Optional[str]:
        value = await self._preferences.get(icon_key(node_id))
        return value if isinstance(value, str) and value else None

    async def icon_for(self, node: Node) -> str:
        """Custom icon if one is set, otherwise ``folder`` or ``default``."""
        custom = await self.get(node.id)
        if custom:
            return custom
        return "folder" if node.is_folder else "default"

    async def set_icon(self, node_id: NodeId, *, name: Optional[str] = None, data_url: Optional[str] = None) -> str:
        if (name is None) == (data_url is None):
            raise InvalidIconError("Exactly one of name or data_url is required", node_id=node_id)
        if name is not None:
            if name not in PREDEFINED_ICONS:
                raise InvalidIconError(f"Unknown icon {name!r}", node_id=node_id)
            value = name
        else:
            if not is_data_url(data_url or ""):
                raise InvalidIconError("Icon data must be a base64 image data URL", node_id=node_id)
            value = data_url or ""
        await self._preferences.set(icon_key(node_id), value)
        logger.debug("Icon of %s set to %s", node_id, name or "custom image")
        return value

    async def clear(self, node_id: NodeId) -> None:
        await self._preferences.remove(icon_key(node_id))

    async def forget(self, node_ids: Iterable[NodeId]) -> None:
        for node_id in node_ids:
            await self._preferences.remove(icon_key(node_id))

    async def copy(self, source_id: NodeId, target_id: NodeId) -> bool:
        value = await self.get(source_id)
        if value is None:
            return False
        await self._preferences.set(icon_key(target_id), value)
        return True
