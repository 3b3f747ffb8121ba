"""Authoritative bookmark tree stores.

The engine only talks to the :class:`BookmarkStore` protocol. Two concrete
stores ship with the project: an in-memory tree (used by tests and as the
reference behaviour) and a JSON file store that re-reads its file on every
request so edits made by other processes are picked up on the next resync.
"""
from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .errors import NodeNotFoundError, StoreError
from .models import Node, NodeId

logger = logging.getLogger(__name__)

ROOT_ID = "0"
BOOKMARKS_BAR_ID = "1"
OTHER_BOOKMARKS_ID = "2"


class BookmarkStore(Protocol):
    async def get_tree(self) -> List[Node]:
        ...

    async def get_node(self, node_id: NodeId) -> Node:
        ...

    async def get_children(self, node_id: NodeId) -> List[Node]:
        ...

    async def create_node(
        self,
        parent_id: NodeId,
        title: str,
        url: Optional[str] = None,
        index: Optional[int] = None,
    ) -> Node:
        ...

    async def update_node(self, node_id: NodeId, *, title: str) -> Node:
        ...

    async def move_node(self, node_id: NodeId, parent_id: NodeId, index: Optional[int] = None) -> Node:
        ...

    async def remove_node(self, node_id: NodeId) -> None:
        ...

    async def remove_subtree(self, node_id: NodeId) -> None:
        ...

    async def search(self, query: str) -> List[Node]:
        ...


def default_tree() -> Dict[str, Any]:
    return {
        "id": ROOT_ID,
        "title": "",
        "children": [
            {"id": BOOKMARKS_BAR_ID, "title": "Bookmarks Bar", "children": []},
            {"id": OTHER_BOOKMARKS_ID, "title": "Other Bookmarks", "children": []},
        ],
    }


class InMemoryBookmarkStore:
    """Mutable tree of plain records; every read hands out fresh ``Node`` values.

    Moving a node forward inside its own parent follows the usual bookmark
    store convention: ``index`` addresses the slot *before* the node is
    taken out, so the node lands at ``index - 1``.
    """

    def __init__(self, tree: Optional[Dict[str, Any]] = None) -> None:
        self._lock = threading.RLock()
        self._records: Dict[NodeId, Dict[str, Any]] = {}
        self._next_id = 1
        self._replace_state(tree or default_tree())

    # ------------------------------------------------------------------
    # Snapshot plumbing
    # ------------------------------------------------------------------
    def _replace_state(self, tree: Dict[str, Any], next_id: Optional[int] = None) -> None:
        records: Dict[NodeId, Dict[str, Any]] = {}
        stack: List[tuple] = [(tree, None)]
        while stack:
            raw, parent_id = stack.pop()
            node_id = str(raw["id"])
            url = raw.get("url") or None
            child_ids = [] if url is None else None
            records[node_id] = {
                "id": node_id,
                "title": str(raw.get("title") or ""),
                "url": url,
                "parent_id": parent_id,
                "children": child_ids,
            }
            if url is None:
                for child in raw.get("children") or ():
                    child_ids.append(str(child["id"]))
                    stack.append((child, node_id))
        if ROOT_ID not in records:
            raise StoreError("Bookmark tree has no root node")
        self._records = records
        numeric = [int(node_id) for node_id in records if node_id.isdigit()]
        self._next_id = max(next_id or 0, max(numeric, default=0) + 1)

    def _load_state(self) -> None:
        """Refresh ``_records`` before a request; in-memory stores have nothing to reload."""

    def _save_state(self) -> None:
        """Persist ``_records`` after a mutation."""

    def _build(self, node_id: NodeId, index: int = 0, deep: bool = True) -> Node:
        record = self._records[node_id]
        children = None
        if record["url"] is None:
            children = tuple(
                self._build(child_id, position, deep) if deep else self._shallow(child_id, position)
                for position, child_id in enumerate(record["children"])
            )
        return Node(
            id=node_id,
            title=record["title"],
            url=record["url"],
            parent_id=record["parent_id"],
            children=children,
            index=index,
        )

    def _shallow(self, node_id: NodeId, index: int) -> Node:
        record = self._records[node_id]
        return Node(
            id=node_id,
            title=record["title"],
            url=record["url"],
            parent_id=record["parent_id"],
            children=() if record["url"] is None else None,
            index=index,
        )

    def _index_of(self, node_id: NodeId) -> int:
        parent_id = self._records[node_id]["parent_id"]
        if parent_id is None:
            return 0
        return self._records[parent_id]["children"].index(node_id)

    def _require(self, node_id: NodeId) -> Dict[str, Any]:
        record = self._records.get(node_id)
        if record is None:
            raise NodeNotFoundError(f"Node {node_id!r} does not exist", node_id=node_id)
        return record

    def _require_folder(self, node_id: NodeId) -> Dict[str, Any]:
        record = self._require(node_id)
        if record["url"] is not None:
            raise StoreError(f"Node {node_id!r} is not a folder", node_id=node_id)
        return record

    def _require_modifiable(self, node_id: NodeId) -> Dict[str, Any]:
        record = self._require(node_id)
        if self._is_permanent(node_id):
            raise StoreError(f"Can't modify the root bookmark folder {node_id!r}", node_id=node_id)
        return record

    def _is_permanent(self, node_id: NodeId) -> bool:
        """The root and the folders directly below it are fixed."""
        return node_id == ROOT_ID or self._records[node_id]["parent_id"] == ROOT_ID

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return self._build(ROOT_ID).to_dict()

    # ------------------------------------------------------------------
    # BookmarkStore protocol
    # ------------------------------------------------------------------
    async def get_tree(self) -> List[Node]:
        with self._lock:
            self._load_state()
            return [self._build(ROOT_ID)]

    async def get_node(self, node_id: NodeId) -> Node:
        with self._lock:
            self._load_state()
            self._require(node_id)
            return self._build(node_id, self._index_of(node_id))

    async def get_children(self, node_id: NodeId) -> List[Node]:
        with self._lock:
            self._load_state()
            record = self._require_folder(node_id)
            return [self._shallow(child_id, position) for position, child_id in enumerate(record["children"])]

    async def create_node(
        self,
        parent_id: NodeId,
        title: str,
        url: Optional[str] = None,
        index: Optional[int] = None,
    ) -> Node:
        with self._lock:
            self._load_state()
            if parent_id == ROOT_ID:
                raise StoreError("Can't create nodes directly below the root", node_id=parent_id)
            parent = self._require_folder(parent_id)
            node_id = str(self._next_id)
            self._next_id += 1
            self._records[node_id] = {
                "id": node_id,
                "title": title,
                "url": url or None,
                "parent_id": parent_id,
                "children": [] if not url else None,
            }
            siblings: List[NodeId] = parent["children"]
            if index is None or index > len(siblings):
                siblings.append(node_id)
            else:
                siblings.insert(max(0, index), node_id)
            self._save_state()
            logger.debug("Created node %s under %s", node_id, parent_id)
            return self._build(node_id, self._index_of(node_id))

    async def update_node(self, node_id: NodeId, *, title: str) -> Node:
        with self._lock:
            self._load_state()
            record = self._require_modifiable(node_id)
            record["title"] = title
            self._save_state()
            return self._build(node_id, self._index_of(node_id))

    async def move_node(self, node_id: NodeId, parent_id: NodeId, index: Optional[int] = None) -> Node:
        with self._lock:
            self._load_state()
            record = self._require_modifiable(node_id)
            if parent_id == ROOT_ID:
                raise StoreError("Can't move nodes directly below the root", node_id=node_id)
            new_parent = self._require_folder(parent_id)
            cursor: Optional[NodeId] = parent_id
            while cursor is not None:
                if cursor == node_id:
                    raise StoreError("Can't move a folder into itself", node_id=node_id)
                cursor = self._records[cursor]["parent_id"]

            old_siblings: List[NodeId] = self._records[record["parent_id"]]["children"]
            old_index = old_siblings.index(node_id)
            old_siblings.remove(node_id)
            siblings: List[NodeId] = new_parent["children"]
            if index is None:
                target = len(siblings)
            else:
                target = index
                if record["parent_id"] == parent_id and index > old_index:
                    target -= 1
                target = max(0, min(target, len(siblings)))
            siblings.insert(target, node_id)
            record["parent_id"] = parent_id
            self._save_state()
            logger.debug("Moved node %s to %s at %s", node_id, parent_id, target)
            return self._build(node_id, target)

    async def remove_node(self, node_id: NodeId) -> None:
        with self._lock:
            self._load_state()
            record = self._require_modifiable(node_id)
            if record["url"] is None and record["children"]:
                raise StoreError("Can't remove non-empty folder", node_id=node_id)
            self._detach(node_id)
            self._save_state()

    async def remove_subtree(self, node_id: NodeId) -> None:
        with self._lock:
            self._load_state()
            self._require_modifiable(node_id)
            self._detach(node_id)
            self._save_state()

    async def search(self, query: str) -> List[Node]:
        words = [word for word in query.lower().split() if word]
        if not words:
            return []
        with self._lock:
            self._load_state()
            result: List[Node] = []
            for node_id, record in self._records.items():
                if self._is_permanent(node_id):
                    continue
                haystack = f"{record['title']} {record['url'] or ''}".lower()
                if all(word in haystack for word in words):
                    result.append(self._shallow(node_id, self._index_of(node_id)))
            return result

    def _detach(self, node_id: NodeId) -> None:
        record = self._records[node_id]
        self._records[record["parent_id"]]["children"].remove(node_id)
        stack = [node_id]
        while stack:
            current = self._records.pop(stack.pop())
            stack.extend(current["children"] or ())


class JsonBookmarkStore(InMemoryBookmarkStore):
    """Bookmark tree persisted as a single JSON document.

    The file is read again at the start of every request and written back
    atomically (``.tmp`` + ``os.replace``) after every mutation.
    """

    def __init__(self, path: Path, seed: Optional[Dict[str, Any]] = None) -> None:
        self._path = Path(path)
        super().__init__(seed)
        with self._lock:
            if self._path.exists():
                self._load_state()
            else:
                self._save_state()

    @property
    def path(self) -> Path:
        return self._path

    def _load_state(self) -> None:
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except FileNotFoundError as exc:
            raise StoreError(f"Bookmark file {self._path} is missing") from exc
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Bookmark file {self._path} is unreadable: {exc}") from exc
        if not isinstance(raw, dict) or not isinstance(raw.get("root"), dict):
            raise StoreError(f"Bookmark file {self._path} has an unexpected layout")
        try:
            self._replace_state(raw["root"], next_id=int(raw.get("nextId", 0)))
        except (KeyError, TypeError, ValueError) as exc:
            raise StoreError(f"Bookmark file {self._path} is corrupt: {exc}") from exc

    def _save_state(self) -> None:
        payload = {"version": 1, "nextId": self._next_id, "root": self._build(ROOT_ID).to_dict()}
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self._path)
        except OSError as exc:
            raise StoreError(f"Could not write bookmark file {self._path}: {exc}") from exc


def build_tree(entries: Sequence[Dict[str, Any]], parent_id: NodeId = BOOKMARKS_BAR_ID) -> Dict[str, Any]:
    """Seed document with ``entries`` placed under ``parent_id`` (Bookmarks Bar by default)."""
    tree = default_tree()
    for permanent in tree["children"]:
        if permanent["id"] == parent_id:
            permanent["children"] = list(entries)
    return tree
