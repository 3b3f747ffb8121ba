"""Exception hierarchy raised by the bookmark engine and its store adapters."""
from __future__ import annotations

from typing import Optional


class BookmarkError(Exception):
    """Base class for every failure the engine reports to its callers."""

    #: Short German text shown to the user when the error reaches a notification.
    user_message = "Vorgang fehlgeschlagen"

    def __init__(self, message: str = "", *, node_id: Optional[str] = None) -> None:
        super().__init__(message or self.user_message)
        self.node_id = node_id


class NodeNotFoundError(BookmarkError):
    """A referenced node is missing, most likely deleted concurrently."""

    user_message = "Element wurde inzwischen gelöscht"


class DepthLimitExceededError(BookmarkError):
    """Creating or moving a folder would nest it deeper than allowed."""

    user_message = "Maximale Ordnertiefe erreicht"

    def __init__(self, message: str = "", *, node_id: Optional[str] = None, limit: int = 5) -> None:
        super().__init__(message or f"Maximale Ordnertiefe ({limit}) erreicht", node_id=node_id)
        self.limit = limit


class InvalidNameError(BookmarkError):
    """Empty or over-long titles."""

    user_message = "Ungültiger Name"


class InvalidMoveError(BookmarkError):
    """Moves onto the node itself or into one of its own descendants."""

    user_message = "Element kann dorthin nicht verschoben werden"


class StoreError(BookmarkError):
    """The authoritative store failed to complete a request."""

    user_message = "Lesezeichenspeicher nicht erreichbar"


class InvalidIconError(BookmarkError):
    """Unknown predefined icon name or malformed image data."""

    user_message = "Ungültiges Symbol"
