from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

import pytest

from bmdesk.plugins.bookmarks.desktop import BookmarkDesktop
from bmdesk.plugins.bookmarks.preferences import MemoryPreferences
from bmdesk.plugins.bookmarks.store import InMemoryBookmarkStore, build_tree


def folder(node_id: str, title: str, *children: Dict[str, Any]) -> Dict[str, Any]:
    return {"id": node_id, "title": title, "children": list(children)}


def bookmark(node_id: str, title: str, url: str) -> Dict[str, Any]:
    return {"id": node_id, "title": title, "url": url}


def sample_children() -> List[Dict[str, Any]]:
    """Bookmarks Bar content shared by most engine tests."""
    return [
        folder(
            "10",
            "Work",
            bookmark("11", "Report", "https://work.test/report"),
            folder("12", "Projects", bookmark("13", "Alpha", "https://alpha.test")),
        ),
        bookmark("20", "Site", "https://x.test"),
        bookmark("21", "News", "https://news.test"),
        folder("30", "Archive"),
    ]


@pytest.fixture
def sample_store() -> InMemoryBookmarkStore:
    return InMemoryBookmarkStore(build_tree(sample_children()))


@pytest.fixture
def preferences() -> MemoryPreferences:
    return MemoryPreferences()


@pytest.fixture
def make_desktop(preferences: MemoryPreferences) -> Callable[..., BookmarkDesktop]:
    """Build and load a desktop over the given Bookmarks Bar children."""

    def _make(
        children: Optional[List[Dict[str, Any]]] = None,
        store: Optional[InMemoryBookmarkStore] = None,
        prefs: Optional[MemoryPreferences] = None,
    ) -> BookmarkDesktop:
        if store is None:
            store = InMemoryBookmarkStore(build_tree(sample_children() if children is None else children))
        desktop = BookmarkDesktop(store, prefs or preferences)
        result = asyncio.run(desktop.load())
        assert result.ok, result.message
        return desktop

    return _make
