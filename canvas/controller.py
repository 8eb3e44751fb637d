"""
canvas/controller.py

Board session and event dispatcher.

``BoardController`` owns the session context: the document, the live camera
of the active tab, the selection and the gesture machine. The UI forwards raw
pointer events to ``dispatch()`` and calls the keyboard/menu operations
directly; every mutation ends in ``_mark_dirty()`` which copies the live
camera into the active tab and notifies the dirty callback (autosave,
status line).

An id-indexed map of ``TilePlacement`` records tracks where every tile of the
active tab sits on the canvas, so a renderer can look up any tile in O(1)
and a drag only has to refresh one entry.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Optional, Protocol, Tuple

from canvas.gestures import GestureMachine, GestureResult, GestureState, ItemMove, ItemResize
from canvas.viewport import (
    CanvasRect,
    ScreenPoint,
    SCREEN_ORIGIN,
    ViewportSize,
    canvas_to_world,
    centered_camera,
    default_camera,
    fit_item as fit_camera,
    item_canvas_rect,
    screen_to_canvas,
    viewport_center,
    wheel_zoom_factor,
    zoom_at,
)
from canvas.zorder import bring_to_front, draw_order, hit_order, next_z
from debug_trace import trace
from models import (
    BoardDocument,
    BoardItem,
    BoardTab,
    Camera,
    MAX_UI_SCALE,
    MIN_UI_SCALE,
    clamp,
)
from resources import ResourceProvider, fit_size, format_mb
from undo_commands import (
    AddItemsCommand,
    ClearTabCommand,
    DeleteItemCommand,
    MoveItemCommand,
    ResizeItemCommand,
    ToggleFlagCommand,
)

if TYPE_CHECKING:
    from PyQt6.QtGui import QUndoCommand, QUndoStack
    from settings import AppSettings

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Events and render records
# ---------------------------------------------------------------------------

class PointerKind(Enum):
    DOWN = "down"
    MOVE = "move"
    UP = "up"


class TargetKind(Enum):
    CANVAS = "canvas"
    ITEM = "item"
    HANDLE = "handle"


@dataclass(frozen=True)
class HitTarget:
    kind: TargetKind
    item_id: Optional[str] = None


EMPTY_CANVAS = HitTarget(TargetKind.CANVAS)


@dataclass(frozen=True)
class PointerEvent:
    """A raw pointer event from the UI.

    ``target`` is resolved by hit-testing when the UI leaves it as None.
    ``click_count`` is 2 for the press of a double-click.
    """
    kind: PointerKind
    position: ScreenPoint
    target: Optional[HitTarget] = None
    pan_held: bool = False
    click_count: int = 1


@dataclass(frozen=True)
class TilePlacement:
    """On-canvas render state of one tile."""
    item_id: str
    path: str
    rect: CanvasRect
    z: int
    selected: bool
    locked: bool
    flip_h: bool
    flip_v: bool
    missing: bool
    handle: Optional[CanvasRect] = None


class ImageClipboard(Protocol):
    def copy_image(self, path: str, flip_h: bool = False, flip_v: bool = False) -> None: ...

    def paste_image_path(self) -> Optional[str]: ...


@dataclass
class ControllerConfig:
    """Interaction tunables, normally taken from ``AppSettings``."""
    drag_threshold: float = 7.0
    min_size: float = 80.0
    max_size: float = 4000.0
    wheel_k: float = 0.0015
    step_factor: float = 1.25
    handle_size: float = 14.0
    handle_inset: float = 6.0
    fit_margin: float = 30.0
    fit_chrome_top: float = 0.0
    fit_min_viewport: float = 200.0
    default_size: Tuple[float, float] = (420.0, 300.0)
    max_import_size: Tuple[float, float] = (520.0, 420.0)
    min_import_size: Tuple[float, float] = (140.0, 120.0)
    image_extensions: Tuple[str, ...] = field(
        default_factory=lambda: (".png", ".jpg", ".jpeg", ".webp", ".bmp", ".gif")
    )

    @classmethod
    def from_settings(cls, s: "AppSettings") -> "ControllerConfig":
        c, imp = s.canvas, s.imports
        return cls(
            drag_threshold=c.drag.threshold_px,
            min_size=c.resize.min_size,
            max_size=c.resize.max_size,
            wheel_k=c.zoom.wheel_k,
            step_factor=c.zoom.step_factor,
            handle_size=c.handles.size,
            handle_inset=c.handles.inset,
            fit_margin=c.fit.margin,
            fit_chrome_top=c.fit.chrome_top,
            fit_min_viewport=c.fit.min_viewport,
            default_size=(imp.default_width, imp.default_height),
            max_import_size=(imp.max_width, imp.max_height),
            min_import_size=(imp.min_width, imp.min_height),
            image_extensions=tuple(e.lower() for e in imp.extensions),
        )


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class BoardController:
    """
    Session context and single dispatcher for the board canvas.

    Args:
        document: Board to edit; a fresh one-tab board when omitted.
        config: Interaction tunables.
        resources: File access for sizes and import dimensions.
        clipboard: Clipboard collaborator for copy/paste.
        undo_stack: Optional QUndoStack receiving committed changes.
    """

    def __init__(self, document: Optional[BoardDocument] = None,
                 config: Optional[ControllerConfig] = None,
                 resources: Optional[ResourceProvider] = None,
                 clipboard: Optional[ImageClipboard] = None,
                 undo_stack: Optional["QUndoStack"] = None):
        self.document = document or BoardDocument.new()
        self.config = config or ControllerConfig()
        self.resources = resources or ResourceProvider()
        self.clipboard = clipboard
        self.undo_stack = undo_stack

        self.machine = GestureMachine(self.config.drag_threshold, self.config.min_size, self.config.max_size)
        self.camera = Camera()
        self.selected_id: Optional[str] = None
        self.pan_held = False
        self.origin = SCREEN_ORIGIN
        self.viewport = ViewportSize(1200.0, 800.0, self.config.fit_chrome_top)

        self._placements: Dict[str, TilePlacement] = {}
        self._missing: Dict[str, bool] = {}

        self._confirm: Optional[Callable[[str], bool]] = None
        self._on_dirty: Optional[Callable[[str, bool], None]] = None
        self._on_status: Optional[Callable[[str], None]] = None
        self._on_changed: Optional[Callable[[], None]] = None

        self.camera.assign(self.active_tab.camera)
        self._rebuild_placements()

    # ---- collaborator wiring ----

    def set_confirm_callback(self, callback: Optional[Callable[[str], bool]]):
        """Set the yes/no prompt used before destructive operations."""
        self._confirm = callback

    def set_dirty_callback(self, callback: Optional[Callable[[str, bool], None]]):
        """Set callback ``(reason, autosave_only)`` fired on every mutation."""
        self._on_dirty = callback

    def set_status_callback(self, callback: Optional[Callable[[str], None]]):
        self._on_status = callback

    def set_changed_callback(self, callback: Optional[Callable[[], None]]):
        """Set callback fired whenever the render state changes (repaint)."""
        self._on_changed = callback

    # ---- session queries ----

    @property
    def active_tab(self) -> BoardTab:
        return self.document.active_tab

    @property
    def selected_item(self) -> Optional[BoardItem]:
        return self.active_tab.item(self.selected_id)

    @property
    def state(self) -> GestureState:
        return self.machine.state

    def set_viewport(self, width: float, height: float, origin: ScreenPoint = SCREEN_ORIGIN):
        self.viewport = ViewportSize(width, height, self.config.fit_chrome_top)
        self.origin = origin

    def set_pan_modifier(self, held: bool):
        self.pan_held = held

    # ---- notifications ----

    def commit_camera(self):
        self.active_tab.camera.assign(self.camera)

    def _mark_dirty(self, reason: str, autosave_only: bool = False):
        self.commit_camera()
        if self._on_dirty:
            self._on_dirty(reason, autosave_only)

    def _status(self, message: str):
        log.info(message)
        if self._on_status:
            self._on_status(message)

    def _changed(self):
        if self._on_changed:
            self._on_changed()

    def _ask(self, message: str) -> bool:
        return bool(self._confirm and self._confirm(message))

    def _run(self, cmd: "QUndoCommand"):
        """Apply a command through the undo stack, or directly without one."""
        if self.undo_stack is not None:
            self.undo_stack.push(cmd)
        else:
            cmd.redo()

    def _on_command_applied(self):
        if self.selected_id is not None and self.active_tab.item(self.selected_id) is None:
            self.selected_id = None
        self._rebuild_placements()
        self._changed()

    # ---- render index ----

    def _is_missing(self, path: str) -> bool:
        missing = self._missing.get(path)
        if missing is None:
            missing = not self.resources.exists(path)
            self._missing[path] = missing
        return missing

    def _handle_rect(self, rect: CanvasRect) -> CanvasRect:
        size, inset = self.config.handle_size, self.config.handle_inset
        return CanvasRect(rect.left + rect.width - inset - size, rect.top + rect.height - inset - size, size, size)

    def _placement_for(self, item: BoardItem) -> TilePlacement:
        rect = item_canvas_rect(item, self.camera)
        selected = item.id == self.selected_id
        return TilePlacement(
            item_id=item.id,
            path=item.path,
            rect=rect,
            z=item.z,
            selected=selected,
            locked=item.locked,
            flip_h=item.flip_h,
            flip_v=item.flip_v,
            missing=self._is_missing(item.path),
            handle=self._handle_rect(rect) if selected and not item.locked else None,
        )

    def _refresh_placement(self, item: BoardItem):
        self._placements[item.id] = self._placement_for(item)

    def _rebuild_placements(self):
        self._placements = {it.id: self._placement_for(it) for it in self.active_tab.items}

    def placement(self, item_id: str) -> Optional[TilePlacement]:
        """Render state of a tile of the active tab."""
        return self._placements.get(item_id)

    def draw_list(self) -> List[TilePlacement]:
        """Placements bottom to top."""
        return [self._placements[it.id] for it in draw_order(self.active_tab) if it.id in self._placements]

    def forget_resource(self, path: str):
        """Re-check a file's existence on the next rebuild."""
        self._missing.pop(path, None)

    # ---- hit testing ----

    def hit_test(self, pos: ScreenPoint) -> HitTarget:
        cp = screen_to_canvas(pos, self.origin)
        sel = self.placement(self.selected_id) if self.selected_id else None
        if sel is not None and sel.handle is not None and sel.handle.contains(cp):
            return HitTarget(TargetKind.HANDLE, sel.item_id)
        wp = canvas_to_world(cp, self.camera)
        for it in hit_order(self.active_tab):
            if it.contains(wp.x, wp.y):
                return HitTarget(TargetKind.ITEM, it.id)
        return EMPTY_CANVAS

    # ---- pointer dispatch ----

    def dispatch(self, event: PointerEvent) -> bool:
        """Apply one pointer event. Returns True if the event was consumed."""
        if event.kind is PointerKind.DOWN:
            return self._pointer_down(event)
        if event.kind is PointerKind.MOVE:
            return self._pointer_move(event)
        return self._pointer_up(event)

    def _pointer_down(self, ev: PointerEvent) -> bool:
        if not self.machine.is_idle:
            trace(f"Press ignored while {self.machine.state.value}", "GESTURE")
            return False

        if ev.pan_held or self.pan_held:
            self.machine.begin_pan(ev.position, self.camera)
            trace("Pan started", "GESTURE")
            return True

        hit = ev.target or self.hit_test(ev.position)
        if hit.kind is TargetKind.CANVAS:
            self.deselect()
            return True

        item = self.active_tab.item(hit.item_id)
        if item is None:
            return False

        if hit.kind is TargetKind.HANDLE and item.id == self.selected_id and not item.locked:
            self.machine.begin_resize(item, ev.position)
            trace(f"Resize started on {item.id}", "GESTURE")
            return True

        self.select(item.id)
        self._raise(item.id)

        if ev.click_count >= 2:
            self.fit_item(item.id)
            return True

        self.machine.press_item(item, ev.position)
        return True

    def _pointer_move(self, ev: PointerEvent) -> bool:
        update = self.machine.move(ev.position, self.camera.scale)
        if update is None:
            return False

        if isinstance(update, Camera):
            self.camera.tx, self.camera.ty = update.tx, update.ty
            self._rebuild_placements()
            self._mark_dirty("Pan", autosave_only=True)
            self._changed()
            return True

        item = self.active_tab.item(update.item_id)
        if item is None:
            # Target deleted mid-gesture: silently cancelled
            trace(f"Gesture target {update.item_id} vanished", "GESTURE")
            self.machine.cancel()
            return False

        if isinstance(update, ItemMove):
            item.x, item.y = update.x, update.y
            reason = "Move"
        else:
            assert isinstance(update, ItemResize)
            item.w, item.h = update.w, update.h
            reason = "Resize"
        self._refresh_placement(item)
        self._mark_dirty(reason, autosave_only=True)
        self._changed()
        return True

    def _pointer_up(self, ev: PointerEvent) -> bool:
        return self._commit_gesture(self.machine.release())

    def _finish_gesture(self) -> bool:
        """End the running gesture as if the pointer were released now.

        Whatever the gesture changed so far is committed as an undo step.
        """
        if self.machine.is_idle:
            return False
        trace(f"Gesture finished early while {self.machine.state.value}", "GESTURE")
        return self._commit_gesture(self.machine.release())

    def _commit_gesture(self, result: Optional[GestureResult]) -> bool:
        if result is None:
            return False
        if result.state is GestureState.PANNING:
            trace("Pan committed", "GESTURE")
            self._mark_dirty("Pan")
            return True
        return self._commit_item_gesture(result)

    def _commit_item_gesture(self, result: GestureResult) -> bool:
        item = self.active_tab.item(result.item_id)
        if item is None:
            return False
        if result.before != result.after:
            if result.state is GestureState.DRAGGING_ITEM:
                self._run(MoveItemCommand(item, result.before, result.after, self._on_command_applied))
            else:
                self._run(ResizeItemCommand(item, result.before, result.after, self._on_command_applied))
        reason = "Moved" if result.state is GestureState.DRAGGING_ITEM else "Resized"
        trace(f"{reason} {item.id}", "GESTURE")
        self._mark_dirty(reason)
        return True

    # ---- camera ----

    def wheel(self, position: ScreenPoint, delta: float):
        """Zoom around the pointer for a wheel delta."""
        anchor = screen_to_canvas(position, self.origin)
        self.camera.assign(zoom_at(self.camera, anchor, wheel_zoom_factor(delta, self.config.wheel_k)))
        self._rebuild_placements()
        self._mark_dirty("Zoom", autosave_only=True)
        self._changed()

    def zoom_in(self):
        self._zoom_center(self.config.step_factor)

    def zoom_out(self):
        self._zoom_center(1.0 / self.config.step_factor)

    def _zoom_center(self, factor: float):
        self.camera.assign(zoom_at(self.camera, viewport_center(self.viewport), factor))
        self._rebuild_placements()
        self._mark_dirty("Zoom", autosave_only=True)
        self._changed()

    def fit_item(self, item_id: str) -> bool:
        item = self.active_tab.item(item_id)
        if item is None:
            return False
        self.camera.assign(fit_camera(item, self.viewport, self.config.fit_margin, self.config.fit_min_viewport))
        self._rebuild_placements()
        self._mark_dirty("Fit to view")
        self._changed()
        return True

    def reset_view(self):
        self.camera.assign(default_camera())
        self._rebuild_placements()
        self._mark_dirty("View reset")
        self._changed()

    def center_view(self):
        self.camera.assign(centered_camera(self.camera, self.viewport))
        self._rebuild_placements()
        self._mark_dirty("View centered")
        self._changed()

    # ---- selection / stacking ----

    def select(self, item_id: Optional[str]):
        if item_id is not None and self.active_tab.item(item_id) is None:
            return
        self.selected_id = item_id
        self._rebuild_placements()
        self._changed()

    def deselect(self):
        self.select(None)

    def _raise(self, item_id: str) -> Optional[int]:
        z = bring_to_front(self.active_tab, item_id)
        if z is not None:
            self._refresh_placement(self.active_tab.item(item_id))
            self._mark_dirty("Bring to front", autosave_only=True)
            self._changed()
        return z

    def bring_selected_to_front(self) -> bool:
        if self.selected_id is None:
            return False
        return self._raise(self.selected_id) is not None

    # ---- item flags ----

    def _toggle(self, attr: str, reason: str) -> bool:
        item = self.selected_item
        if item is None:
            return False
        self._run(ToggleFlagCommand(item, attr, self._on_command_applied))
        self._mark_dirty(reason)
        return True

    def toggle_lock(self) -> bool:
        if self.selected_item is not None and self.machine.target_id == self.selected_id:
            # Locking the tile under an active drag ends that drag
            self._finish_gesture()
        return self._toggle("locked", "Lock toggled")

    def flip_horizontal(self) -> bool:
        return self._toggle("flip_h", "Flipped horizontally")

    def flip_vertical(self) -> bool:
        return self._toggle("flip_v", "Flipped vertically")

    # ---- delete / clear ----

    def delete_selected(self) -> bool:
        item = self.selected_item
        if item is None:
            return False
        if not self._ask("Delete the selected image?"):
            return False
        self._run(DeleteItemCommand(self.active_tab, item, self._on_command_applied))
        self.selected_id = None
        self._rebuild_placements()
        self._mark_dirty("Deleted")
        self._changed()
        return True

    def clear_tab(self) -> bool:
        tab = self.active_tab
        if not self._ask(f'Remove every image from tab "{tab.name}"?'):
            return False
        self._run(ClearTabCommand(tab, self._on_command_applied))
        self.selected_id = None
        self._rebuild_placements()
        self._mark_dirty("Tab cleared")
        self._changed()
        return True

    # ---- adding images ----

    def _new_item(self, path: str, x: float, y: float) -> BoardItem:
        cfg = self.config
        w, h = fit_size(self.resources.natural_size(path), cfg.default_size,
                        cfg.max_import_size, cfg.min_import_size)
        item = BoardItem(path=path, x=x, y=y, w=w, h=h, z=next_z(self.active_tab))
        item.cached_bytes = self.resources.byte_size(path)
        return item

    def add_images(self, paths: Iterable[str]) -> List[BoardItem]:
        """Add tiles at the world point under the viewport center; the last one is selected."""
        center = canvas_to_world(viewport_center(self.viewport), self.camera)
        tab = self.active_tab
        added: List[BoardItem] = []
        for path in paths:
            item = self._new_item(str(path), center.x, center.y)
            tab.items.append(item)
            self.forget_resource(item.path)
            added.append(item)
        if not added:
            return added

        self._run(AddItemsCommand(tab, added, self._on_command_applied))
        self.selected_id = added[-1].id
        self._rebuild_placements()
        self._mark_dirty(f"Added {len(added)} image(s)")
        self._changed()
        return added

    def is_image_path(self, path: str) -> bool:
        return os.path.splitext(path)[1].lower() in self.config.image_extensions

    def drop_files(self, paths: Iterable[str]) -> Optional[str]:
        """Handle dropped files.

        Returns:
            The first ``.json`` path when a board file was dropped (nothing
            is added then; the caller imports it), otherwise None.
        """
        paths = [str(p) for p in paths]
        board = next((p for p in paths if p.lower().endswith(".json")), None)
        if board is not None:
            return board
        self.add_images(p for p in paths if self.is_image_path(p))
        return None

    # ---- clipboard ----

    def copy_selected(self) -> bool:
        item = self.selected_item
        if item is None:
            self._status("Select an image to copy")
            return False
        if not self.resources.exists(item.path):
            self._status(f"Image file not found: {item.path}")
            return False
        if self.clipboard is None:
            return False
        try:
            self.clipboard.copy_image(item.path, item.flip_h, item.flip_v)
        except OSError as e:
            self._status(f"Copy failed: {e}")
            return False
        self._status("Image copied")
        return True

    def paste(self) -> Optional[BoardItem]:
        if self.clipboard is None:
            return None
        try:
            path = self.clipboard.paste_image_path()
        except OSError as e:
            self._status(f"Paste failed: {e}")
            return None
        if path is None:
            return None
        added = self.add_images([path])
        self._status("Pasted image added")
        return added[-1] if added else None

    # ---- undo ----

    def undo(self):
        if self.undo_stack is None or not self.undo_stack.canUndo():
            return
        self._finish_gesture()
        self.undo_stack.undo()
        self._mark_dirty("Undo")

    def redo(self):
        if self.undo_stack is None or not self.undo_stack.canRedo():
            return
        self._finish_gesture()
        self.undo_stack.redo()
        self._mark_dirty("Redo")

    def _clear_undo(self):
        if self.undo_stack is not None:
            self.undo_stack.clear()

    # ---- tabs ----

    def switch_tab(self, tab_id: str, save_camera: bool = True) -> bool:
        if self.document.tab(tab_id) is None:
            return False
        self._finish_gesture()
        if save_camera:
            self.commit_camera()
        tab = self.document.set_active_tab(tab_id)
        self.camera.assign(tab.camera)
        self.selected_id = None
        self._rebuild_placements()
        trace(f"Active tab {tab.name}", "TAB")
        self._mark_dirty(f"Tab: {tab.name}", autosave_only=True)
        self._changed()
        return True

    def add_tab(self) -> BoardTab:
        self.commit_camera()
        tab = self.document.add_tab()
        self.switch_tab(tab.id, save_camera=False)
        self._mark_dirty("Tab added")
        return tab

    def duplicate_tab(self) -> BoardTab:
        self.commit_camera()
        tab = self.document.duplicate_tab(self.active_tab.id)
        self.switch_tab(tab.id, save_camera=False)
        self._mark_dirty("Tab duplicated")
        return tab

    def delete_tab(self) -> bool:
        if len(self.document.tabs) <= 1:
            self._status("The last tab cannot be deleted")
            return False
        tab = self.active_tab
        if not self._ask(f'Delete tab "{tab.name}"?'):
            return False
        nxt = self.document.delete_tab(tab.id)
        if nxt is None:
            return False
        self._clear_undo()
        self.switch_tab(nxt.id, save_camera=False)
        self._mark_dirty("Tab deleted")
        return True

    def rename_tab(self, tab_id: str, name: Optional[str]) -> bool:
        if self.document.rename_tab(tab_id, name) is None:
            return False
        self._mark_dirty("Tab renamed")
        self._changed()
        return True

    # ---- document ----

    def load_document(self, document: BoardDocument, mark_dirty: bool = True):
        """Replace the board (import / open). Gestures, selection and undo history are dropped."""
        self.machine.cancel()
        self._clear_undo()
        self.document = document
        self.selected_id = None
        self._missing.clear()
        self.camera.assign(self.active_tab.camera)
        self._rebuild_placements()
        if mark_dirty:
            self._mark_dirty("Board imported")
        self._changed()

    def set_ui_scale(self, value: float) -> float:
        self.document.ui.scale = clamp(value, MIN_UI_SCALE, MAX_UI_SCALE)
        self._mark_dirty("UI size changed")
        return self.document.ui.scale

    # ---- sizes ----

    def tab_bytes(self, tab: Optional[BoardTab] = None) -> int:
        tab = tab or self.active_tab
        return sum(self.resources.cached_bytes(it) for it in tab.items)

    def total_bytes(self) -> int:
        return sum(self.resources.cached_bytes(it) for it in self.document.all_items())

    def size_summary(self) -> str:
        return f"This tab: {format_mb(self.tab_bytes())} / All: {format_mb(self.total_bytes())}"
