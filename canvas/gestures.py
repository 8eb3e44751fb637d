"""
canvas/gestures.py

Pointer gesture state machine: pan, drag-move and resize.

Only one gesture can be active. Every ``begin_*``/``press_*`` call is refused
unless the machine is idle with no pointer held, so a resize can never start
while a pan or drag is running.

The machine itself never touches the document. ``move()`` returns the value
the caller should apply (a camera or an item geometry) and ``release()``
returns a ``GestureResult`` describing what to commit.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

from canvas.viewport import ScreenPoint, pan_camera, screen_delta
from models import MAX_ITEM_SIZE, MIN_ITEM_SIZE, BoardItem, Camera, clamp


class GestureState(Enum):
    IDLE = "idle"
    PANNING = "panning"
    DRAGGING_ITEM = "dragging_item"
    RESIZING_ITEM = "resizing_item"


@dataclass(frozen=True)
class ItemMove:
    """New world center for a dragged item."""
    item_id: str
    x: float
    y: float


@dataclass(frozen=True)
class ItemResize:
    """New world size for a resized item."""
    item_id: str
    w: float
    h: float


@dataclass(frozen=True)
class GestureResult:
    """What a finished gesture changed; ``before``/``after`` are (x, y), (w, h) or Cameras."""
    state: GestureState
    item_id: Optional[str]
    before: Union[Tuple[float, float], Camera]
    after: Union[Tuple[float, float], Camera]


GestureUpdate = Union[Camera, ItemMove, ItemResize]


@dataclass
class _Anchor:
    """Where the pointer went down and what was under it at that instant."""
    screen: ScreenPoint
    item_id: Optional[str] = None
    start: Tuple[float, float] = (0.0, 0.0)
    camera: Optional[Camera] = None
    last: Optional[Tuple[float, float]] = None


class GestureMachine:
    """Drives one pointer gesture at a time.

    Args:
        drag_threshold: Screen distance the pointer must travel before a
            press on an item turns into a drag. Default: 7.0 pixels.
        min_size: Smallest tile size reachable by resizing (world units).
        max_size: Largest tile size reachable by resizing (world units).
    """

    def __init__(self, drag_threshold: float = 7.0, min_size: float = MIN_ITEM_SIZE,
                 max_size: float = MAX_ITEM_SIZE):
        self.drag_threshold = drag_threshold
        self.min_size = min_size
        self.max_size = max_size
        self.state = GestureState.IDLE
        self._anchor: Optional[_Anchor] = None

    # ---- queries ----

    @property
    def is_idle(self) -> bool:
        """True when no gesture runs and no press is pending."""
        return self.state is GestureState.IDLE and self._anchor is None

    @property
    def pending_drag(self) -> bool:
        """True between an item press and the drag threshold being crossed."""
        return self.state is GestureState.IDLE and self._anchor is not None

    @property
    def target_id(self) -> Optional[str]:
        return self._anchor.item_id if self._anchor else None

    # ---- transitions ----

    def begin_pan(self, pos: ScreenPoint, camera: Camera) -> bool:
        if not self.is_idle:
            return False
        self._anchor = _Anchor(screen=pos, camera=camera.copy())
        self.state = GestureState.PANNING
        return True

    def press_item(self, item: BoardItem, pos: ScreenPoint) -> bool:
        """Arm a pending drag. Locked items are selectable but never dragged."""
        if not self.is_idle or item.locked:
            return False
        self._anchor = _Anchor(screen=pos, item_id=item.id, start=(item.x, item.y))
        return True

    def begin_resize(self, item: BoardItem, pos: ScreenPoint) -> bool:
        if not self.is_idle or item.locked:
            return False
        self._anchor = _Anchor(screen=pos, item_id=item.id, start=(item.w, item.h))
        self.state = GestureState.RESIZING_ITEM
        return True

    def move(self, pos: ScreenPoint, scale: float) -> Optional[GestureUpdate]:
        """Feed a pointer move.

        Args:
            pos: Current pointer position.
            scale: Current camera scale, used to convert screen deltas to world units.

        Returns:
            The update to apply, or None when nothing changes (idle, or a
            press that has not crossed the drag threshold yet).
        """
        a = self._anchor
        if a is None:
            return None
        dx, dy = screen_delta(a.screen, pos)

        if self.state is GestureState.PANNING:
            cam = pan_camera(a.camera, a.screen, pos)
            a.last = (cam.tx, cam.ty)
            return cam

        if self.state is GestureState.IDLE:
            if math.hypot(dx, dy) < self.drag_threshold:
                return None
            self.state = GestureState.DRAGGING_ITEM

        if self.state is GestureState.DRAGGING_ITEM:
            x = a.start[0] + dx / scale
            y = a.start[1] + dy / scale
            a.last = (x, y)
            return ItemMove(a.item_id, x, y)

        w = clamp(a.start[0] + dx / scale, self.min_size, self.max_size)
        h = clamp(a.start[1] + dy / scale, self.min_size, self.max_size)
        a.last = (w, h)
        return ItemResize(a.item_id, w, h)

    def release(self) -> Optional[GestureResult]:
        """Finish the current gesture and return to idle.

        Returns:
            What changed, or None for a plain click (no drag happened).
        """
        a, state = self._anchor, self.state
        self.cancel()
        if a is None or state is GestureState.IDLE:
            return None
        if state is GestureState.PANNING:
            after = Camera(*(a.last or (a.camera.tx, a.camera.ty)), a.camera.scale)
            return GestureResult(state, None, a.camera, after)
        return GestureResult(state, a.item_id, a.start, a.last or a.start)

    def cancel(self) -> None:
        """Drop any gesture or pending press without producing a result."""
        self.state = GestureState.IDLE
        self._anchor = None
