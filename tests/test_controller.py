"""Tests for canvas/controller.py: pointer dispatch, keyboard operations, tabs and the render index."""
from __future__ import annotations

import os
import sys
from typing import Dict, List, Optional, Tuple

import pytest
from PyQt6.QtGui import QUndoStack
from PyQt6.QtWidgets import QApplication

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from canvas.controller import (
    BoardController,
    ControllerConfig,
    HitTarget,
    PointerEvent,
    PointerKind,
    TargetKind,
)
from canvas.gestures import GestureState
from canvas.viewport import CanvasPoint, ScreenPoint, WorldPoint, canvas_to_world, world_to_canvas
from models import BoardDocument, BoardItem, BoardTab, Camera, MAX_SCALE
from resources import ResourceProvider


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def qapp():
    """Provide a single QApplication for the entire test session."""
    app = QApplication.instance() or QApplication(sys.argv)
    yield app


class FakeResources(ResourceProvider):
    def __init__(self, sizes: Optional[Dict[str, int]] = None,
                 natural: Optional[Dict[str, Tuple[int, int]]] = None):
        self.sizes = sizes or {}
        self.natural = natural or {}

    def exists(self, path):
        return path in self.sizes

    def byte_size(self, path):
        return self.sizes.get(path, 0)

    def natural_size(self, path):
        return self.natural.get(path)


class FakeClipboard:
    def __init__(self, paste_path: Optional[str] = None):
        self.copied: List[Tuple[str, bool, bool]] = []
        self.paste_path = paste_path

    def copy_image(self, path, flip_h=False, flip_v=False):
        self.copied.append((path, flip_h, flip_v))

    def paste_image_path(self):
        return self.paste_path


def _board() -> Tuple[BoardDocument, BoardItem]:
    """One tab with a 200x100 tile centered on world (0, 0); camera (200, 120, 1)."""
    item = BoardItem(path="a.png", x=0, y=0, w=200, h=100, z=1)
    tab = BoardTab(name="Main", camera=Camera(200, 120, 1), items=[item])
    return BoardDocument(tabs=[tab], active_tab_id=tab.id), item


@pytest.fixture()
def dirty():
    return []


@pytest.fixture()
def ctl(qapp, dirty):
    doc, _ = _board()
    c = BoardController(
        document=doc,
        resources=FakeResources({"a.png": 1024 * 1024, "b.png": 512 * 1024}),
        clipboard=FakeClipboard(),
        undo_stack=QUndoStack(),
    )
    c.set_dirty_callback(lambda reason, autosave_only: dirty.append((reason, autosave_only)))
    c.set_confirm_callback(lambda message: True)
    return c


@pytest.fixture()
def item(ctl):
    return ctl.active_tab.items[0]


def down(pos, **kw):
    return PointerEvent(PointerKind.DOWN, ScreenPoint(*pos), **kw)


def move(pos):
    return PointerEvent(PointerKind.MOVE, ScreenPoint(*pos))


def up(pos):
    return PointerEvent(PointerKind.UP, ScreenPoint(*pos))


# Canvas center of the tile under the fixture camera
CENTER = (200, 120)
# Center of the resize handle of the selected tile (rect 100..300 x 70..170)
HANDLE = (287, 157)


# ---------------------------------------------------------------------------
# Hit testing and selection
# ---------------------------------------------------------------------------

class TestHitTest:
    def test_item_and_canvas(self, ctl, item):
        assert ctl.hit_test(ScreenPoint(*CENTER)) == HitTarget(TargetKind.ITEM, item.id)
        assert ctl.hit_test(ScreenPoint(900, 700)).kind is TargetKind.CANVAS

    def test_topmost_item_wins(self, ctl, item):
        top = BoardItem(path="b.png", x=0, y=0, w=50, h=50, z=5)
        ctl.active_tab.items.append(top)
        assert ctl.hit_test(ScreenPoint(*CENTER)).item_id == top.id

    def test_handle_only_for_selected_unlocked(self, ctl, item):
        assert ctl.hit_test(ScreenPoint(*HANDLE)).kind is TargetKind.ITEM
        ctl.select(item.id)
        assert ctl.hit_test(ScreenPoint(*HANDLE)) == HitTarget(TargetKind.HANDLE, item.id)
        item.locked = True
        ctl.select(item.id)
        assert ctl.hit_test(ScreenPoint(*HANDLE)).kind is TargetKind.ITEM

    def test_press_selects_and_raises(self, ctl, item):
        other = BoardItem(path="b.png", x=1000, y=1000, z=9)
        ctl.active_tab.items.append(other)
        ctl.dispatch(down(CENTER))
        assert ctl.selected_id == item.id
        assert item.z == 10

    def test_press_on_empty_canvas_deselects(self, ctl, item):
        ctl.select(item.id)
        ctl.dispatch(down((900, 700)))
        assert ctl.selected_id is None
        assert ctl.state is GestureState.IDLE

    def test_locked_item_selected_but_not_dragged(self, ctl, item):
        item.locked = True
        ctl.dispatch(down(CENTER))
        ctl.dispatch(move((300, 300)))
        ctl.dispatch(up((300, 300)))
        assert ctl.selected_id == item.id
        assert (item.x, item.y) == (0, 0)


# ---------------------------------------------------------------------------
# Drag
# ---------------------------------------------------------------------------

class TestDrag:
    def test_jitter_below_threshold_leaves_item(self, ctl, item, dirty):
        ctl.dispatch(down(CENTER))
        ctl.dispatch(move((203, 124)))
        ctl.dispatch(up((203, 124)))
        assert (item.x, item.y) == (0, 0)
        assert ctl.undo_stack.count() == 0

    def test_drag_ten_pixels(self, ctl, item, dirty):
        ctl.dispatch(down(CENTER))
        ctl.dispatch(move((210, 120)))
        assert ctl.state is GestureState.DRAGGING_ITEM
        ctl.dispatch(up((210, 120)))

        assert (item.x, item.y) == (10, 0)
        assert ctl.state is GestureState.IDLE
        assert ("Move", True) in dirty
        assert dirty[-1] == ("Moved", False)
        assert ctl.undo_stack.count() == 1

    def test_drag_is_undoable(self, ctl, item):
        ctl.dispatch(down(CENTER))
        ctl.dispatch(move((240, 150)))
        ctl.dispatch(up((240, 150)))
        ctl.undo()
        assert (item.x, item.y) == (0, 0)
        ctl.redo()
        assert (item.x, item.y) == (40, 30)

    def test_render_index_follows_drag(self, ctl, item):
        before = ctl.placement(item.id).rect
        ctl.dispatch(down(CENTER))
        ctl.dispatch(move((230, 120)))
        after = ctl.placement(item.id).rect
        assert after.left == pytest.approx(before.left + 30)
        assert after.top == pytest.approx(before.top)

    def test_second_press_refused_during_gesture(self, ctl, item):
        ctl.dispatch(down(CENTER))
        ctl.dispatch(move((220, 120)))
        assert not ctl.dispatch(down((900, 700)))
        assert ctl.state is GestureState.DRAGGING_ITEM
        assert ctl.selected_id == item.id

    def test_target_deleted_mid_gesture_cancels_silently(self, ctl, item):
        ctl.dispatch(down(CENTER))
        ctl.dispatch(move((220, 120)))
        assert ctl.delete_selected()

        assert not ctl.dispatch(move((260, 140)))
        assert ctl.state is GestureState.IDLE
        assert not ctl.dispatch(up((260, 140)))
        assert ctl.active_tab.items == []

    def test_lock_mid_drag_keeps_the_move(self, ctl, item):
        ctl.dispatch(down(CENTER))
        ctl.dispatch(move((250, 120)))
        assert ctl.toggle_lock()

        assert ctl.state is GestureState.IDLE
        assert not ctl.dispatch(up((250, 120)))
        assert (item.x, item.locked) == (50, True)
        assert ctl.undo_stack.count() == 2
        ctl.undo()
        ctl.undo()
        assert (item.x, item.locked) == (0, False)

    def test_undo_mid_drag_reverts_the_move(self, ctl, item):
        ctl.select(item.id)
        ctl.flip_horizontal()
        ctl.dispatch(down(CENTER))
        ctl.dispatch(move((240, 120)))
        ctl.undo()

        assert ctl.state is GestureState.IDLE
        assert (item.x, item.flip_h) == (0, True)
        ctl.redo()
        assert item.x == 40

    def test_new_tab_mid_drag_keeps_the_move(self, ctl, item):
        first = ctl.active_tab
        ctl.dispatch(down(CENTER))
        ctl.dispatch(move((230, 140)))
        ctl.add_tab()

        assert ctl.active_tab is not first
        assert (item.x, item.y) == (30, 20)
        assert ctl.undo_stack.count() == 1

    def test_new_tab_mid_pan_saves_camera(self, ctl):
        first = ctl.active_tab
        ctl.set_pan_modifier(True)
        ctl.dispatch(down((10, 10)))
        ctl.dispatch(move((60, 30)))
        ctl.add_tab()

        assert ctl.state is GestureState.IDLE
        assert (first.camera.tx, first.camera.ty) == (250, 140)


# ---------------------------------------------------------------------------
# Resize / pan / double-click / wheel
# ---------------------------------------------------------------------------

class TestGestures:
    def test_resize_from_handle(self, ctl, item, dirty):
        ctl.select(item.id)
        ctl.dispatch(down(HANDLE))
        assert ctl.state is GestureState.RESIZING_ITEM
        ctl.dispatch(move((HANDLE[0] + 20, HANDLE[1] + 10)))
        ctl.dispatch(up((HANDLE[0] + 20, HANDLE[1] + 10)))

        assert (item.w, item.h) == (220, 110)
        assert (item.x, item.y) == (0, 0)
        assert dirty[-1] == ("Resized", False)
        ctl.undo()
        assert (item.w, item.h) == (200, 100)

    def test_resize_clamped(self, ctl, item):
        ctl.select(item.id)
        ctl.dispatch(down(HANDLE))
        ctl.dispatch(move((HANDLE[0] - 500, HANDLE[1] - 500)))
        ctl.dispatch(up((0, 0)))
        assert (item.w, item.h) == (80, 80)

    def test_pan_with_modifier(self, ctl, item):
        ctl.set_pan_modifier(True)
        ctl.dispatch(down(CENTER))
        assert ctl.state is GestureState.PANNING
        ctl.dispatch(move((250, 100)))
        ctl.dispatch(up((250, 100)))

        assert (ctl.camera.tx, ctl.camera.ty) == (250, 100)
        assert ctl.active_tab.camera == ctl.camera
        assert ctl.selected_id is None
        assert (item.x, item.y) == (0, 0)

    def test_pan_flag_on_event(self, ctl):
        ctl.dispatch(down((10, 10), pan_held=True))
        assert ctl.state is GestureState.PANNING

    def test_resize_refused_while_panning(self, ctl, item):
        ctl.select(item.id)
        ctl.dispatch(down((900, 700), pan_held=True))
        assert not ctl.dispatch(down(HANDLE))
        assert ctl.state is GestureState.PANNING

    def test_double_click_fits_item(self, ctl, item):
        ctl.dispatch(down(CENTER))
        ctl.dispatch(up(CENTER))
        ctl.dispatch(down(CENTER, click_count=2))

        assert ctl.state is GestureState.IDLE
        # (1200 - 60) / 200 = 5.7, (800 - 60) / 100 = 7.4
        assert ctl.camera.scale == pytest.approx(5.7)
        center = world_to_canvas(WorldPoint(0, 0), ctl.camera)
        assert center == pytest.approx((600, 400))
        assert ctl.active_tab.camera == ctl.camera

    def test_wheel_zooms_around_pointer(self, ctl):
        anchor = CanvasPoint(321, 123)
        before = canvas_to_world(anchor, ctl.camera)
        ctl.wheel(ScreenPoint(*anchor), 120)
        assert ctl.camera.scale > 1.0
        assert world_to_canvas(before, ctl.camera) == pytest.approx(tuple(anchor))

    def test_zoom_in_clamps(self, ctl):
        for _ in range(50):
            ctl.zoom_in()
        assert ctl.camera.scale == MAX_SCALE

    def test_reset_and_center(self, ctl):
        ctl.wheel(ScreenPoint(10, 10), 600)
        ctl.reset_view()
        assert ctl.camera == Camera(200, 120, 1)
        ctl.set_viewport(1000, 600)
        ctl.center_view()
        assert (ctl.camera.tx, ctl.camera.ty) == (300, 180)


# ---------------------------------------------------------------------------
# Keyboard operations
# ---------------------------------------------------------------------------

class TestKeyboard:
    def test_delete_requires_confirmation(self, ctl, item):
        ctl.select(item.id)
        ctl.set_confirm_callback(lambda message: False)
        assert not ctl.delete_selected()
        assert ctl.active_tab.items == [item]

    def test_delete_without_confirm_callback_is_refused(self, ctl, item):
        ctl.select(item.id)
        ctl.set_confirm_callback(None)
        assert not ctl.delete_selected()
        assert len(ctl.active_tab.items) == 1

    def test_delete_and_undo(self, ctl, item):
        ctl.select(item.id)
        assert ctl.delete_selected()
        assert ctl.active_tab.items == []
        assert ctl.selected_id is None
        assert ctl.placement(item.id) is None
        ctl.undo()
        assert ctl.active_tab.items == [item]

    def test_clear_tab(self, ctl):
        ctl.active_tab.items.append(BoardItem(path="b.png"))
        ctl.set_confirm_callback(lambda message: False)
        assert not ctl.clear_tab()
        assert len(ctl.active_tab.items) == 2
        ctl.set_confirm_callback(lambda message: True)
        assert ctl.clear_tab()
        assert ctl.active_tab.items == []
        ctl.undo()
        assert len(ctl.active_tab.items) == 2

    def test_toggles(self, ctl, item):
        ctl.select(item.id)
        ctl.toggle_lock()
        ctl.flip_horizontal()
        ctl.flip_vertical()
        assert (item.locked, item.flip_h, item.flip_v) == (True, True, True)
        p = ctl.placement(item.id)
        assert p.locked and p.flip_h and p.flip_v and p.handle is None
        ctl.undo()
        assert item.flip_v is False

    def test_toggles_need_selection(self, ctl, item):
        assert not ctl.toggle_lock()
        assert not item.locked

    def test_bring_selected_to_front(self, ctl, item):
        ctl.active_tab.items.append(BoardItem(path="b.png", z=5))
        assert not ctl.bring_selected_to_front()
        ctl.select(item.id)
        assert ctl.bring_selected_to_front()
        assert item.z == 6

    def test_copy_selected(self, ctl, item):
        statuses = []
        ctl.set_status_callback(statuses.append)
        assert not ctl.copy_selected()
        ctl.select(item.id)
        item.flip_h = True
        assert ctl.copy_selected()
        assert ctl.clipboard.copied == [("a.png", True, False)]

    def test_copy_missing_file_reports(self, ctl):
        statuses = []
        ctl.set_status_callback(statuses.append)
        gone = BoardItem(path="gone.png")
        ctl.active_tab.items.append(gone)
        ctl.select(gone.id)
        assert not ctl.copy_selected()
        assert ctl.clipboard.copied == []
        assert "not found" in statuses[-1]

    def test_paste_adds_selected_item(self, ctl):
        ctl.clipboard.paste_path = "b.png"
        pasted = ctl.paste()
        assert pasted is not None
        assert ctl.selected_id == pasted.id
        assert pasted.cached_bytes == 512 * 1024

    def test_paste_without_image_does_nothing(self, ctl):
        assert ctl.paste() is None
        assert len(ctl.active_tab.items) == 1


# ---------------------------------------------------------------------------
# Adding images
# ---------------------------------------------------------------------------

class TestAddImages:
    def test_sizes_and_position(self, qapp):
        res = FakeResources(
            {"big.png": 10, "small.png": 20, "odd.png": 30},
            {"big.png": (1040, 840), "small.png": (100, 50)},
        )
        c = BoardController(resources=res)
        added = c.add_images(["big.png", "small.png", "odd.png"])

        assert [(it.w, it.h) for it in added] == [(520, 420), (140, 120), (420, 300)]
        # Viewport center (600, 400) under the default camera (200, 120, 1)
        assert all((it.x, it.y) == (400, 280) for it in added)
        assert [it.z for it in added] == [1, 2, 3]
        assert c.selected_id == added[-1].id
        assert [it.cached_bytes for it in added] == [10, 20, 30]

    def test_shrink_keeps_aspect(self, qapp):
        res = FakeResources({"wide.png": 1}, {"wide.png": (2080, 520)})
        c = BoardController(resources=res)
        (it,) = c.add_images(["wide.png"])
        assert (it.w, it.h) == (520, 130)

    def test_undo_removes_added(self, ctl):
        ctl.add_images(["b.png"])
        assert len(ctl.active_tab.items) == 2
        ctl.undo()
        assert len(ctl.active_tab.items) == 1
        assert ctl.selected_id is None

    def test_drop_files(self, ctl):
        assert ctl.drop_files(["notes.txt", "b.png", "board.JSON"]) == "board.JSON"
        assert len(ctl.active_tab.items) == 1
        assert ctl.drop_files(["notes.txt", "b.png"]) is None
        assert [it.path for it in ctl.active_tab.items] == ["a.png", "b.png"]

    def test_missing_file_is_flagged(self, ctl):
        (it,) = ctl.add_images(["gone.png"])
        assert ctl.placement(it.id).missing
        assert not ctl.placement(ctl.active_tab.items[0].id).missing

    def test_size_summary(self, ctl):
        ctl.add_images(["b.png"])
        ctl.add_tab()
        assert ctl.size_summary() == "This tab: 0.0MB / All: 1.5MB"


# ---------------------------------------------------------------------------
# Tabs and document
# ---------------------------------------------------------------------------

class TestTabs:
    def test_each_tab_keeps_its_camera(self, ctl):
        first = ctl.active_tab
        ctl.wheel(ScreenPoint(0, 0), 300)
        zoomed = ctl.camera.copy()

        second = ctl.add_tab()
        assert ctl.active_tab is second
        assert ctl.camera == Camera(200, 120, 1)

        ctl.switch_tab(first.id)
        assert ctl.camera == zoomed
        assert first.camera == zoomed

    def test_switch_clears_selection(self, ctl, item):
        ctl.select(item.id)
        tab = ctl.add_tab()
        assert ctl.selected_id is None
        assert ctl.draw_list() == []
        assert not ctl.switch_tab("missing")
        assert ctl.active_tab is tab

    def test_delete_tab_guards_and_confirms(self, ctl):
        assert not ctl.delete_tab()
        ctl.add_tab()
        ctl.set_confirm_callback(lambda message: False)
        assert not ctl.delete_tab()
        assert len(ctl.document.tabs) == 2
        ctl.set_confirm_callback(lambda message: True)
        assert ctl.delete_tab()
        assert len(ctl.document.tabs) == 1
        assert ctl.active_tab.name == "Main"

    def test_duplicate_and_rename(self, ctl, dirty):
        copy = ctl.duplicate_tab()
        assert ctl.active_tab is copy
        assert copy.name == "Main (copy)"
        assert len(copy.items) == 1
        assert ctl.rename_tab(copy.id, "  ")
        assert copy.name == "Tab"
        assert dirty[-1] == ("Tab renamed", False)

    def test_load_document_resets_session(self, ctl, item):
        ctl.select(item.id)
        ctl.toggle_lock()
        assert ctl.undo_stack.count() == 1

        doc = BoardDocument.new()
        doc.tabs[0].camera = Camera(1, 2, 3)
        ctl.load_document(doc)
        assert ctl.document is doc
        assert ctl.selected_id is None
        assert ctl.undo_stack.count() == 0
        assert ctl.camera == Camera(1, 2, 3)

    def test_ui_scale_clamped(self, ctl):
        assert ctl.set_ui_scale(5) == 1.2
        assert ctl.set_ui_scale(0.1) == 0.6


class TestConfig:
    def test_from_settings(self):
        from settings import AppSettings

        s = AppSettings()
        s.canvas.drag.threshold_px = 3
        s.imports.extensions = [".PNG"]
        cfg = ControllerConfig.from_settings(s)
        assert cfg.drag_threshold == 3
        assert cfg.image_extensions == (".png",)
        assert cfg.max_import_size == (520, 420)
