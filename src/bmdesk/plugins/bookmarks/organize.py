from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from .errors import BookmarkError
from .models import NodeId, Position, PositionMap, positions_from_dict, positions_to_dict
from .preferences import KEY_ITEM_POSITIONS, PreferenceStore

logger = logging.getLogger(__name__)


class PositionStore:
    """Free-form desktop positions, persisted as one map under ``itemPositions``."""

    def __init__(self, preferences: PreferenceStore) -> None:
        self._preferences = preferences
        self._positions: PositionMap = {}

    async def load(self) -> PositionMap:
        self._positions = positions_from_dict(await self._preferences.get(KEY_ITEM_POSITIONS, {}))
        return dict(self._positions)

    def snapshot(self) -> PositionMap:
        return dict(self._positions)

    def get(self, node_id: NodeId) -> Optional[Position]:
        return self._positions.get(node_id)

    async def set(self, node_id: NodeId, position: Position) -> None:
        self._positions[node_id] = position
        await self._persist()

    async def replace(self, positions: PositionMap) -> None:
        self._positions = dict(positions)
        await self._persist()

    async def forget(self, node_ids: Iterable[NodeId]) -> int:
        removed = 0
        for node_id in node_ids:
            if self._positions.pop(node_id, None) is not None:
                removed += 1
        if removed:
            await self._persist()
        return removed

    async def _persist(self) -> None:
        await self._preferences.set(KEY_ITEM_POSITIONS, positions_to_dict(self._positions))


class OrganizeStaging:
    """Deferred desktop rearrangement.

    ``enter`` copies the live positions into a draft. Until ``save`` or
    ``cancel`` every position edit only touches the draft; ``save`` writes the
    draft back in one go, ``cancel`` throws it away.
    """

    def __init__(
        self,
        positions: PositionStore,
        on_change: Optional[Callable[["OrganizeStaging"], None]] = None,
    ) -> None:
        self._positions = positions
        self._on_change = on_change
        self._active = False
        self._dirty = False
        self._draft: PositionMap = {}

    @property
    def active(self) -> bool:
        return self._active

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def draft(self) -> PositionMap:
        return dict(self._draft)

    def enter(self) -> None:
        if self._active:
            return
        self._draft = self._positions.snapshot()
        self._active = True
        self._dirty = False
        self._notify()

    def get_position(self, node_id: NodeId) -> Optional[Position]:
        if self._active:
            return self._draft.get(node_id)
        return self._positions.get(node_id)

    def set_position(self, node_id: NodeId, position: Position) -> None:
        if not self._active:
            raise BookmarkError("Organize mode is not active")
        self._draft[node_id] = position
        self._dirty = True

    def forget(self, node_ids: Iterable[NodeId]) -> None:
        """Drop staged positions of removed nodes so ``save`` cannot bring them back."""
        if not self._active:
            return
        for node_id in node_ids:
            self._draft.pop(node_id, None)

    async def save(self) -> bool:
        """Commit the draft; ``False`` when there was nothing to commit."""
        committed = False
        try:
            if self._active and self._dirty:
                await self._positions.replace(self._draft)
                committed = True
                logger.info("Committed %d staged position(s)", len(self._draft))
        finally:
            self._reset()
        return committed

    def cancel(self) -> None:
        if self._active and self._dirty:
            logger.debug("Discarded staged positions")
        self._reset()

    def _reset(self) -> None:
        was_active = self._active
        self._active = False
        self._dirty = False
        self._draft = {}
        if was_active:
            self._notify()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self)
