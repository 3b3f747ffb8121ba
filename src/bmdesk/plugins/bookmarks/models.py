from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urlparse

NodeId = str


@dataclass(frozen=True)
class Node:
    """One folder or bookmark as returned by a single store read.

    Instances are never mutated; a new tree of ``Node`` objects is built on
    every fetch. ``url is None`` marks a folder, whose ``children`` is a
    (possibly empty) tuple; bookmarks always carry ``children=None``.
    """

    id: NodeId
    title: str
    url: Optional[str] = None
    parent_id: Optional[NodeId] = None
    children: Optional[Tuple["Node", ...]] = None
    index: int = 0

    @property
    def is_folder(self) -> bool:
        return self.url is None

    @property
    def child_ids(self) -> Tuple[NodeId, ...]:
        return tuple(child.id for child in self.children or ())

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "index": self.index,
        }
        if self.parent_id is not None:
            data["parentId"] = self.parent_id
        if self.url is not None:
            data["url"] = self.url
        else:
            data["children"] = [child.to_dict() for child in self.children or ()]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], parent_id: Optional[NodeId] = None) -> "Node":
        node_id = str(data["id"])
        url = data.get("url") or None
        children: Optional[Tuple[Node, ...]] = None
        if url is None:
            children = tuple(
                cls.from_dict(child, parent_id=node_id) for child in data.get("children") or ()
            )
        raw_parent = data.get("parentId", parent_id)
        return cls(
            id=node_id,
            title=str(data.get("title") or ""),
            url=url,
            parent_id=str(raw_parent) if raw_parent is not None else None,
            children=children,
            index=int(data.get("index", 0)),
        )


def display_title(node: Node) -> str:
    """Title shown under an icon: own title, else the url host, else 'Untitled'."""
    if node.title:
        return node.title
    if node.url:
        host = urlparse(node.url).hostname
        if host:
            return host
    return "Untitled"


@dataclass(frozen=True)
class HistoryEntry:
    """Lightweight navigation history reference, re-resolved on every visit."""

    id: NodeId
    title: str = ""

    @classmethod
    def of(cls, node: Node) -> "HistoryEntry":
        return cls(id=node.id, title=node.title)

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "title": self.title}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryEntry":
        return cls(id=str(data["id"]), title=str(data.get("title") or ""))


@dataclass(frozen=True)
class Position:
    x: int
    y: int

    def offset(self, dx: float, dy: float) -> "Position":
        return Position(int(round(self.x + dx)), int(round(self.y + dy)))

    def to_dict(self) -> Dict[str, int]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Position":
        return cls(int(data.get("x", 0)), int(data.get("y", 0)))


PositionMap = Dict[NodeId, Position]


def positions_to_dict(positions: PositionMap) -> Dict[str, Dict[str, int]]:
    return {node_id: position.to_dict() for node_id, position in positions.items()}


def positions_from_dict(data: Optional[Dict[str, Any]]) -> PositionMap:
    if not isinstance(data, dict):
        return {}
    result: PositionMap = {}
    for node_id, raw in data.items():
        if isinstance(raw, dict):
            result[str(node_id)] = Position.from_dict(raw)
    return result


class ClipboardOperation(enum.Enum):
    CUT = "cut"
    COPY = "copy"


class ResultStatus(enum.Enum):
    OK = "ok"
    NOOP = "noop"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a user-facing operation, turned into a notification by the facade."""

    status: ResultStatus
    message: str = ""
    affected: Tuple[NodeId, ...] = ()
    failures: Tuple[Tuple[NodeId, str], ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.status in (ResultStatus.OK, ResultStatus.NOOP)

    @classmethod
    def success(cls, message: str = "", affected: Iterable[NodeId] = ()) -> "OperationResult":
        return cls(ResultStatus.OK, message, tuple(affected))

    @classmethod
    def noop(cls, message: str) -> "OperationResult":
        return cls(ResultStatus.NOOP, message)

    @classmethod
    def failed(cls, message: str, failures: Iterable[Tuple[NodeId, str]] = ()) -> "OperationResult":
        return cls(ResultStatus.FAILED, message, (), tuple(failures))

    @classmethod
    def from_batch(
        cls,
        succeeded: Iterable[NodeId],
        failures: Iterable[Tuple[NodeId, str]],
        *,
        ok_message: str,
        partial_message: str,
        failed_message: str,
    ) -> "OperationResult":
        """Fold a best-effort loop into OK, PARTIAL or FAILED."""
        done = tuple(succeeded)
        failed = tuple(failures)
        if not failed:
            return cls(ResultStatus.OK, ok_message, done)
        if done:
            return cls(ResultStatus.PARTIAL, partial_message, done, failed)
        return cls(ResultStatus.FAILED, failed_message, (), failed)


@dataclass
class BatchOutcome:
    """Per-item bookkeeping of a best-effort loop over several nodes."""

    succeeded: List[NodeId] = field(default_factory=list)
    failures: List[Tuple[NodeId, str]] = field(default_factory=list)

    def record_failure(self, node_id: NodeId, exc: BaseException) -> None:
        self.failures.append((node_id, str(exc)))

    @property
    def complete(self) -> bool:
        return not self.failures
