from __future__ import annotations

from typing import Dict, Mapping, Sequence, Tuple

from .models import Node, NodeId, Position

# (width, height) of one icon cell including its caption
ICON_SIZES: Dict[str, Tuple[int, int]] = {
    "small": (72, 80),
    "medium": (90, 90),
    "large": (120, 130),
}
DEFAULT_ICON_SIZE = "medium"


def clamp_position(position: Position, container: Tuple[int, int], item: Tuple[int, int]) -> Position:
    """Keep an item fully inside the container; each axis lands in ``[0, container - item]``."""
    max_x = max(0, container[0] - item[0])
    max_y = max(0, container[1] - item[1])
    return Position(min(max(position.x, 0), max_x), min(max(position.y, 0), max_y))


class PositionLayoutEngine:
    """Row-major fallback placement for desktop items without a stored position."""

    def __init__(self, icon_size: str = DEFAULT_ICON_SIZE, margin: Tuple[int, int] = (16, 16)) -> None:
        self.icon_size = icon_size
        self.margin = margin

    @property
    def icon_size(self) -> str:
        return self._icon_size

    @icon_size.setter
    def icon_size(self, value: str) -> None:
        if value not in ICON_SIZES:
            raise ValueError(f"Unknown icon size {value!r}")
        self._icon_size = value

    @property
    def item_size(self) -> Tuple[int, int]:
        return ICON_SIZES[self._icon_size]

    def columns(self, container_width: int) -> int:
        return max(1, container_width // self.item_size[0])

    def slot(self, index: int, container_width: int) -> Position:
        item_width, item_height = self.item_size
        columns = self.columns(container_width)
        row, column = divmod(index, columns)
        return Position(self.margin[0] + column * item_width, self.margin[1] + row * item_height)

    def arrange(
        self,
        nodes: Sequence[Node],
        explicit: Mapping[NodeId, Position],
        container_width: int,
    ) -> Dict[NodeId, Position]:
        """Position of every node; explicit entries win, the rest use their list slot."""
        arranged: Dict[NodeId, Position] = {}
        for index, node in enumerate(nodes):
            placed = explicit.get(node.id)
            arranged[node.id] = placed if placed is not None else self.slot(index, container_width)
        return arranged
