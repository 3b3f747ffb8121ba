"""Bookmark desktop plugin package.

The engine (``BookmarkDesktop`` and its controllers) has no Qt dependency;
only :mod:`.widgets` imports PySide6.
"""

from .desktop import BookmarkDesktop
from .errors import (
    BookmarkError,
    DepthLimitExceededError,
    InvalidIconError,
    InvalidMoveError,
    InvalidNameError,
    NodeNotFoundError,
    StoreError,
)
from .models import HistoryEntry, Node, OperationResult, Position, ResultStatus
from .preferences import ConfigPreferences, MemoryPreferences
from .store import InMemoryBookmarkStore, JsonBookmarkStore

__all__ = [
    "BookmarkDesktop",
    "BookmarkError",
    "ConfigPreferences",
    "DepthLimitExceededError",
    "HistoryEntry",
    "InMemoryBookmarkStore",
    "InvalidIconError",
    "InvalidMoveError",
    "InvalidNameError",
    "JsonBookmarkStore",
    "MemoryPreferences",
    "Node",
    "NodeNotFoundError",
    "OperationResult",
    "Position",
    "ResultStatus",
    "StoreError",
]
