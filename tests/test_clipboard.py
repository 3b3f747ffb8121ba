from __future__ import annotations

import asyncio

import pytest

from bmdesk.plugins.bookmarks.clipboard import ClipboardManager, ClipboardState, unique_title
from bmdesk.plugins.bookmarks.errors import InvalidMoveError
from bmdesk.plugins.bookmarks.icons import IconRegistry
from bmdesk.plugins.bookmarks.models import ClipboardOperation
from bmdesk.plugins.bookmarks.preferences import KEY_CLIPBOARD, MemoryPreferences
from bmdesk.plugins.bookmarks.tree_index import TreeIndex


def _index(store) -> TreeIndex:
    return TreeIndex.build(asyncio.run(store.get_tree()))


def _titles(store, node_id):
    return [child.title for child in asyncio.run(store.get_children(node_id))]


@pytest.fixture
def prefs() -> MemoryPreferences:
    return MemoryPreferences()


@pytest.fixture
def clipboard(sample_store, prefs) -> ClipboardManager:
    return ClipboardManager(sample_store, prefs, icons=IconRegistry(prefs), clock=lambda: 42.0)


def test_unique_title_counts_from_two():
    assert unique_title("Site", set()) == "Site"
    assert unique_title("Site", {"Site"}) == "Site (2)"
    assert unique_title("Site", {"Site", "Site (2)"}) == "Site (3)"


def test_capture_is_persisted_and_reloadable(sample_store, clipboard, prefs):
    index = _index(sample_store)
    state = asyncio.run(clipboard.cut([index.require("20"), index.require("21")]))
    assert state.operation is ClipboardOperation.CUT
    assert state.ids == ["20", "21"]
    assert prefs.as_dict()[KEY_CLIPBOARD]["capturedAt"] == 42.0

    reloaded = ClipboardManager(sample_store, prefs)
    assert asyncio.run(reloaded.load()) == state


def test_malformed_persisted_clipboard_loads_empty(sample_store):
    prefs = MemoryPreferences({KEY_CLIPBOARD: {"operation": "steal", "items": []}})
    manager = ClipboardManager(sample_store, prefs)
    assert asyncio.run(manager.load()).is_empty
    assert ClipboardState.from_dict(None).is_empty


def test_paste_on_empty_clipboard_returns_none(sample_store, clipboard):
    index = _index(sample_store)
    assert asyncio.run(clipboard.paste(index.require("30"), index)) is None


def test_paste_into_bookmark_is_rejected(sample_store, clipboard):
    index = _index(sample_store)
    asyncio.run(clipboard.copy([index.require("21")]))
    with pytest.raises(InvalidMoveError):
        asyncio.run(clipboard.paste(index.require("20"), index))


class TestCutPaste:
    def test_moves_and_clears(self, sample_store, clipboard, prefs):
        index = _index(sample_store)
        asyncio.run(clipboard.cut([index.require("20"), index.require("21")]))
        outcome = asyncio.run(clipboard.paste(index.require("30"), index))

        assert outcome.succeeded == ["20", "21"]
        assert outcome.complete
        assert _titles(sample_store, "30") == ["Site", "News"]
        assert clipboard.is_empty
        assert KEY_CLIPBOARD not in prefs.as_dict()

    def test_partial_failure_keeps_clipboard(self, sample_store, clipboard):
        index = _index(sample_store)
        asyncio.run(clipboard.cut([index.require("10"), index.require("20")]))
        outcome = asyncio.run(clipboard.paste(index.require("12"), index))

        assert outcome.succeeded == ["20"]
        assert [node_id for node_id, _ in outcome.failures] == ["10"]
        assert _titles(sample_store, "12") == ["Alpha", "Site"]
        assert not clipboard.is_empty
        assert clipboard.state.ids == ["10", "20"]


class TestCopyPaste:
    def test_folder_copy_is_deep(self, sample_store, clipboard):
        index = _index(sample_store)
        asyncio.run(clipboard.copy([index.require("10")]))
        outcome = asyncio.run(clipboard.paste(index.require("30"), index))

        clone_id = outcome.succeeded[0]
        assert _titles(sample_store, "30") == ["Work"]
        assert _titles(sample_store, clone_id) == ["Report", "Projects"]
        projects = asyncio.run(sample_store.get_children(clone_id))[1]
        inner = asyncio.run(sample_store.get_children(projects.id))
        assert [(node.title, node.url) for node in inner] == [("Alpha", "https://alpha.test")]
        # originals untouched
        assert _titles(sample_store, "10") == ["Report", "Projects"]

    def test_copy_keeps_clipboard_and_uniquifies_titles(self, sample_store, clipboard):
        index = _index(sample_store)
        asyncio.run(clipboard.copy([index.require("20")]))
        asyncio.run(clipboard.paste(index.require("1"), index))
        asyncio.run(clipboard.paste(index.require("1"), _index(sample_store)))

        assert _titles(sample_store, "1") == ["Work", "Site", "News", "Archive", "Site (2)", "Site (3)"]
        assert not clipboard.is_empty

    def test_copy_into_own_subtree_fails(self, sample_store, clipboard):
        index = _index(sample_store)
        asyncio.run(clipboard.copy([index.require("10")]))
        outcome = asyncio.run(clipboard.paste(index.require("12"), index))
        assert outcome.succeeded == []
        assert [node_id for node_id, _ in outcome.failures] == ["10"]
        assert _titles(sample_store, "12") == ["Alpha"]

    def test_custom_icons_follow_clones(self, sample_store, clipboard, prefs):
        icons = IconRegistry(prefs)
        asyncio.run(icons.set_icon("13", name="star"))
        index = _index(sample_store)
        asyncio.run(clipboard.copy([index.require("12")]))
        outcome = asyncio.run(clipboard.paste(index.require("30"), index))

        clone_children = asyncio.run(sample_store.get_children(outcome.succeeded[0]))
        assert asyncio.run(icons.get(clone_children[0].id)) == "star"


def test_reconcile_forgets_deleted_items(sample_store, clipboard, prefs):
    index = _index(sample_store)
    asyncio.run(clipboard.copy([index.require("20"), index.require("21")]))
    asyncio.run(sample_store.remove_subtree("20"))

    assert asyncio.run(clipboard.reconcile(_index(sample_store))) == ["20"]
    assert clipboard.state.ids == ["21"]

    asyncio.run(sample_store.remove_subtree("21"))
    asyncio.run(clipboard.reconcile(_index(sample_store)))
    assert clipboard.is_empty
    assert KEY_CLIPBOARD not in prefs.as_dict()
