from __future__ import annotations

import asyncio

import pytest

from bmdesk.plugins.bookmarks.drag_drop import (
    CanvasReposition,
    DragDropEngine,
    FolderMove,
    ListReorder,
    Rect,
    Rejected,
)
from bmdesk.plugins.bookmarks.errors import InvalidMoveError
from bmdesk.plugins.bookmarks.models import Position
from bmdesk.plugins.bookmarks.organize import OrganizeStaging, PositionStore
from bmdesk.plugins.bookmarks.preferences import MemoryPreferences
from bmdesk.plugins.bookmarks.selection import SelectionManager
from bmdesk.plugins.bookmarks.tree_index import TreeIndex

CONTAINER = (400, 300)
ITEM = (90, 90)


class Harness:
    def __init__(self, store, desktop: bool = False) -> None:
        self.store = store
        self.desktop = desktop
        self.selection = SelectionManager()
        self.positions = PositionStore(MemoryPreferences())
        self.organize = OrganizeStaging(self.positions)
        self.engine = DragDropEngine(
            store,
            self.selection,
            self.positions,
            self.organize,
            desktop_layout=lambda: self.desktop,
        )

    @property
    def index(self) -> TreeIndex:
        return TreeIndex.build(asyncio.run(self.store.get_tree()))

    def siblings(self, folder_id="1"):
        return self.index.children_of(folder_id)

    def child_ids(self, folder_id="1"):
        return [node.id for node in asyncio.run(self.store.get_children(folder_id))]


@pytest.fixture
def harness(sample_store) -> Harness:
    return Harness(sample_store)


class TestListReorder:
    def test_forward_drag_inserts_after_target(self, harness):
        index = harness.index
        harness.engine.begin_drag(index.require("10"), (10, 50), siblings=harness.siblings())

        assert harness.engine.hover(index.require("21"), (260, 50), Rect(200, 0, 100, 100)) is None
        reorder = harness.engine.hover(index.require("21"), (270, 50), Rect(200, 0, 100, 100))

        assert reorder == ListReorder("10", "1", 0, 2)
        assert reorder.insert_index == 3
        assert harness.engine.local_order == ["20", "21", "10", "30"]

        pending = harness.engine.end_drag()
        asyncio.run(harness.engine.execute(pending, index))
        assert harness.child_ids() == ["20", "21", "10", "30"]

    def test_backward_drag_inserts_at_target(self, harness):
        index = harness.index
        harness.engine.begin_drag(index.require("21"), (250, 50), siblings=harness.siblings())
        reorder = harness.engine.hover(index.require("10"), (30, 50), Rect(0, 0, 100, 100))

        assert reorder.insert_index == 0
        assert harness.engine.local_order == ["21", "10", "20", "30"]
        asyncio.run(harness.engine.execute(harness.engine.end_drag(), index))
        assert harness.child_ids() == ["21", "10", "20", "30"]

    def test_vertical_motion_uses_vertical_axis(self, harness):
        index = harness.index
        harness.engine.begin_drag(index.require("10"), (50, 10), siblings=harness.siblings())
        # past the horizontal midpoint but not the vertical one
        assert harness.engine.hover(index.require("20"), (80, 140), Rect(0, 100, 100, 100)) is None
        assert harness.engine.hover(index.require("20"), (80, 170), Rect(0, 100, 100, 100)) is not None

    def test_reorder_disabled_in_organize_mode_and_multi_drag(self, harness):
        index = harness.index
        harness.organize.enter()
        harness.engine.begin_drag(index.require("10"), (10, 50), siblings=harness.siblings())
        assert harness.engine.hover(index.require("21"), (290, 50), Rect(200, 0, 100, 100)) is None
        harness.organize.cancel()

        harness.selection.enter_multi_select()
        harness.selection.toggle(index.require("10"))
        harness.selection.toggle(index.require("20"))
        payload = harness.engine.begin_drag(index.require("10"), (10, 50), siblings=harness.siblings())
        assert payload.is_multi
        assert payload.ids == ("10", "20")
        assert harness.engine.hover(index.require("21"), (290, 50), Rect(200, 0, 100, 100)) is None


class TestDropClassification:
    def test_drop_on_folder_moves_selection(self, harness):
        index = harness.index
        harness.selection.enter_multi_select()
        harness.selection.toggle(index.require("20"))
        harness.selection.toggle(index.require("21"))
        harness.engine.begin_drag(index.require("20"), (0, 0))

        intent = harness.engine.drop(index.require("30"), (5, 5), container=CONTAINER, item=ITEM)
        assert intent == FolderMove(("20", "21"), "30")

        outcome = asyncio.run(harness.engine.execute(intent, index))
        assert outcome.succeeded == ["20", "21"]
        assert harness.child_ids("30") == ["20", "21"]
        assert not harness.selection.multi_select_mode
        assert harness.selection.selected == set()

    def test_multi_drag_carries_selection_in_tree_order(self, harness):
        index = harness.index
        harness.selection.enter_multi_select()
        harness.selection.toggle(index.require("21"))
        harness.selection.toggle(index.require("13"))
        harness.selection.toggle(index.require("20"))

        payload = harness.engine.begin_drag(index.require("21"), (0, 0), index=index)
        assert payload.ids == ("13", "20", "21")

    def test_unselected_item_cannot_start_drag_in_multi_select(self, harness):
        index = harness.index
        harness.selection.enter_multi_select()
        harness.selection.toggle(index.require("20"))
        assert harness.engine.begin_drag(index.require("21"), (0, 0)) is None

    def test_drop_on_self_is_rejected(self, harness):
        index = harness.index
        harness.engine.begin_drag(index.require("30"), (0, 0))
        intent = harness.engine.drop(index.require("30"), (5, 5), container=CONTAINER, item=ITEM)
        assert isinstance(intent, Rejected)
        with pytest.raises(InvalidMoveError):
            asyncio.run(harness.engine.execute(intent, index))

    def test_drop_without_drag(self, harness):
        intent = harness.engine.drop(None, (0, 0), container=CONTAINER, item=ITEM)
        assert isinstance(intent, Rejected)

    def test_folder_target_rejected_while_organizing_grid(self, harness):
        index = harness.index
        harness.organize.enter()
        harness.engine.begin_drag(index.require("20"), (0, 0))
        intent = harness.engine.drop(index.require("30"), (5, 5), container=CONTAINER, item=ITEM)
        assert isinstance(intent, Rejected)

    def test_failed_folder_move_still_exits_multi_select(self, harness):
        index = harness.index
        harness.selection.enter_multi_select()
        harness.selection.toggle(index.require("10"))
        harness.selection.toggle(index.require("20"))
        outcome = asyncio.run(harness.engine.execute(FolderMove(("10", "20"), "12"), index))

        assert outcome.succeeded == ["20"]
        assert [node_id for node_id, _ in outcome.failures] == ["10"]
        assert not harness.selection.multi_select_mode


class TestCanvasReposition:
    def test_desktop_drop_is_clamped_and_persisted(self, sample_store):
        harness = Harness(sample_store, desktop=True)
        index = harness.index
        harness.engine.begin_drag(index.require("20"), (0, 0), position=Position(100, 100))
        intent = harness.engine.drop(None, (50, -500), container=CONTAINER, item=ITEM)

        assert intent == CanvasReposition("20", Position(150, 0), staged=False)
        asyncio.run(harness.engine.execute(intent, index))
        assert harness.positions.get("20") == Position(150, 0)

    def test_organize_mode_stages_positions(self, sample_store):
        harness = Harness(sample_store, desktop=True)
        index = harness.index
        harness.organize.enter()
        harness.engine.begin_drag(index.require("30"), (10, 10), position=Position(20, 20))
        intent = harness.engine.drop(index.require("10"), (40, 50), container=CONTAINER, item=ITEM)

        assert intent == CanvasReposition("30", Position(50, 60), staged=True)
        asyncio.run(harness.engine.execute(intent, index))
        assert harness.organize.get_position("30") == Position(50, 60)
        assert harness.positions.get("30") is None
