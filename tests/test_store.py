from __future__ import annotations

import asyncio
import json

import pytest

from bmdesk.plugins.bookmarks.errors import NodeNotFoundError, StoreError
from bmdesk.plugins.bookmarks.store import InMemoryBookmarkStore, JsonBookmarkStore, build_tree

from conftest import bookmark, folder


def _child_ids(store, node_id):
    return [child.id for child in asyncio.run(store.get_children(node_id))]


class TestInMemoryBookmarkStore:
    def test_default_tree_has_permanent_folders(self):
        store = InMemoryBookmarkStore()
        root = asyncio.run(store.get_tree())[0]
        assert root.id == "0"
        assert [(child.id, child.title) for child in root.children] == [
            ("1", "Bookmarks Bar"),
            ("2", "Other Bookmarks"),
        ]

    def test_nodes_are_fresh_values(self, sample_store):
        first = asyncio.run(sample_store.get_node("20"))
        asyncio.run(sample_store.update_node("20", title="Renamed"))
        second = asyncio.run(sample_store.get_node("20"))
        assert first.title == "Site"
        assert second.title == "Renamed"
        assert second.index == 1
        assert second.parent_id == "1"

    def test_create_assigns_new_ids_and_appends(self, sample_store):
        created = asyncio.run(sample_store.create_node("30", "New"))
        assert created.is_folder
        assert created.id == "31"
        assert _child_ids(sample_store, "30") == ["31"]
        link = asyncio.run(sample_store.create_node("30", "Link", "https://l.test"))
        assert not link.is_folder
        assert link.children is None
        assert _child_ids(sample_store, "30") == ["31", "32"]

    def test_move_forward_within_parent_counts_slots_before_removal(self, sample_store):
        asyncio.run(sample_store.move_node("10", "1", 3))
        assert _child_ids(sample_store, "1") == ["20", "21", "10", "30"]

    def test_move_backward_within_parent(self, sample_store):
        asyncio.run(sample_store.move_node("30", "1", 0))
        assert _child_ids(sample_store, "1") == ["30", "10", "20", "21"]

    def test_move_without_index_appends(self, sample_store):
        moved = asyncio.run(sample_store.move_node("20", "10"))
        assert moved.parent_id == "10"
        assert _child_ids(sample_store, "10") == ["11", "12", "20"]

    def test_move_into_own_subtree_fails(self, sample_store):
        with pytest.raises(StoreError):
            asyncio.run(sample_store.move_node("10", "12"))

    def test_remove_node_refuses_non_empty_folder(self, sample_store):
        with pytest.raises(StoreError):
            asyncio.run(sample_store.remove_node("10"))
        asyncio.run(sample_store.remove_subtree("10"))
        with pytest.raises(NodeNotFoundError):
            asyncio.run(sample_store.get_node("13"))

    def test_permanent_folders_cannot_change(self, sample_store):
        with pytest.raises(StoreError):
            asyncio.run(sample_store.update_node("1", title="Bar"))
        with pytest.raises(StoreError):
            asyncio.run(sample_store.remove_subtree("2"))

    def test_missing_ids_raise_not_found(self, sample_store):
        with pytest.raises(NodeNotFoundError):
            asyncio.run(sample_store.get_node("999"))
        with pytest.raises(NodeNotFoundError):
            asyncio.run(sample_store.move_node("999", "1"))

    def test_search_matches_title_and_url(self, sample_store):
        assert [node.id for node in asyncio.run(sample_store.search("alpha"))] == ["13"]
        assert {node.id for node in asyncio.run(sample_store.search("test"))} == {"11", "13", "20", "21"}
        assert asyncio.run(sample_store.search("   ")) == []


class TestJsonBookmarkStore:
    def test_creates_file_with_seed(self, tmp_path):
        path = tmp_path / "bookmarks.json"
        JsonBookmarkStore(path)
        payload = json.loads(path.read_text(encoding="utf-8"))
        assert payload["root"]["id"] == "0"
        assert [child["id"] for child in payload["root"]["children"]] == ["1", "2"]

    def test_mutations_persist_across_instances(self, tmp_path):
        path = tmp_path / "bookmarks.json"
        store = JsonBookmarkStore(path, seed=build_tree([folder("10", "Work")]))
        created = asyncio.run(store.create_node("10", "Site", "https://x.test"))

        reopened = JsonBookmarkStore(path)
        node = asyncio.run(reopened.get_node(created.id))
        assert node.url == "https://x.test"
        assert node.parent_id == "10"
        assert not (tmp_path / "bookmarks.json.tmp").exists()

    def test_external_edits_are_seen_on_next_read(self, tmp_path):
        path = tmp_path / "bookmarks.json"
        store = JsonBookmarkStore(path)
        other = JsonBookmarkStore(path)
        asyncio.run(other.create_node("1", "From elsewhere", "https://e.test"))
        titles = [child.title for child in asyncio.run(store.get_children("1"))]
        assert titles == ["From elsewhere"]

    def test_corrupt_file_raises_store_error(self, tmp_path):
        path = tmp_path / "bookmarks.json"
        store = JsonBookmarkStore(path, seed=build_tree([bookmark("10", "Site", "https://x.test")]))
        path.write_text("{ not json", encoding="utf-8")
        with pytest.raises(StoreError):
            asyncio.run(store.get_tree())
