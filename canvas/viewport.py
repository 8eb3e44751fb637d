"""
canvas/viewport.py

Coordinate frames and camera math for the board canvas.

Three frames are kept apart by type:

- ``ScreenPoint``: pointer positions as delivered by the window.
- ``CanvasPoint``: positions local to the canvas widget (screen minus the
  canvas origin). The camera maps world <-> canvas.
- ``WorldPoint``: zoom/pan independent positions where tiles live.

This module is the only place that converts between them. All functions are
pure: cameras are returned as new objects, never mutated.
"""

from __future__ import annotations

import math
from typing import NamedTuple, Tuple

from models import (
    BoardItem,
    Camera,
    DEFAULT_SCALE,
    DEFAULT_TX,
    DEFAULT_TY,
    MAX_SCALE,
    MIN_SCALE,
    clamp,
)


class ScreenPoint(NamedTuple):
    x: float
    y: float


class CanvasPoint(NamedTuple):
    x: float
    y: float


class WorldPoint(NamedTuple):
    x: float
    y: float


class CanvasRect(NamedTuple):
    """Axis-aligned rectangle in canvas coordinates."""
    left: float
    top: float
    width: float
    height: float

    def contains(self, p: CanvasPoint) -> bool:
        return self.left <= p.x <= self.left + self.width and self.top <= p.y <= self.top + self.height


class ViewportSize(NamedTuple):
    """Visible canvas area; ``chrome_top`` is covered by fixed UI overlays."""
    width: float
    height: float
    chrome_top: float = 0.0


SCREEN_ORIGIN = ScreenPoint(0.0, 0.0)


# ---------------------------------------------------------------------------
# Frame conversions
# ---------------------------------------------------------------------------

def world_to_canvas(p: WorldPoint, cam: Camera) -> CanvasPoint:
    return CanvasPoint(p.x * cam.scale + cam.tx, p.y * cam.scale + cam.ty)


def canvas_to_world(p: CanvasPoint, cam: Camera) -> WorldPoint:
    return WorldPoint((p.x - cam.tx) / cam.scale, (p.y - cam.ty) / cam.scale)


def screen_to_canvas(p: ScreenPoint, origin: ScreenPoint = SCREEN_ORIGIN) -> CanvasPoint:
    return CanvasPoint(p.x - origin.x, p.y - origin.y)


def canvas_to_screen(p: CanvasPoint, origin: ScreenPoint = SCREEN_ORIGIN) -> ScreenPoint:
    return ScreenPoint(p.x + origin.x, p.y + origin.y)


def world_to_screen(p: WorldPoint, cam: Camera, origin: ScreenPoint = SCREEN_ORIGIN) -> ScreenPoint:
    return canvas_to_screen(world_to_canvas(p, cam), origin)


def screen_to_world(p: ScreenPoint, cam: Camera, origin: ScreenPoint = SCREEN_ORIGIN) -> WorldPoint:
    return canvas_to_world(screen_to_canvas(p, origin), cam)


def screen_delta(start: ScreenPoint, current: ScreenPoint) -> Tuple[float, float]:
    """Pointer movement in screen pixels (identical in the canvas frame)."""
    return current.x - start.x, current.y - start.y


def item_canvas_rect(item: BoardItem, cam: Camera) -> CanvasRect:
    """Where a center-anchored tile lands on the canvas."""
    left, top = world_to_canvas(WorldPoint(item.x - item.w / 2, item.y - item.h / 2), cam)
    return CanvasRect(left, top, item.w * cam.scale, item.h * cam.scale)


# ---------------------------------------------------------------------------
# Camera operations
# ---------------------------------------------------------------------------

def wheel_zoom_factor(wheel_delta: float, k: float = 0.0015) -> float:
    """Multiplicative zoom for a wheel delta (120 per notch on most mice)."""
    return math.exp(wheel_delta * k)


def zoom_at(cam: Camera, anchor: CanvasPoint, factor: float) -> Camera:
    """Zoom by *factor* keeping the world point under *anchor* fixed.

    The anchor stays put even when the new scale saturates at MIN/MAX_SCALE,
    because the translate is solved for the clamped scale.
    """
    before = canvas_to_world(anchor, cam)
    new_scale = clamp(cam.scale * factor, MIN_SCALE, MAX_SCALE)
    zoomed = Camera(cam.tx, cam.ty, new_scale)
    after = canvas_to_world(anchor, zoomed)
    return Camera(
        cam.tx + (after.x - before.x) * new_scale,
        cam.ty + (after.y - before.y) * new_scale,
        new_scale,
    )


def pan_camera(start_cam: Camera, start: ScreenPoint, current: ScreenPoint) -> Camera:
    """Translate 1:1 with the pointer; scale is unaffected."""
    dx, dy = screen_delta(start, current)
    return Camera(start_cam.tx + dx, start_cam.ty + dy, start_cam.scale)


def fit_item(item: BoardItem, viewport: ViewportSize, margin: float = 30.0,
             min_viewport: float = 200.0) -> Camera:
    """Camera that frames *item* inside the viewport below the top chrome."""
    vw = max(min_viewport, viewport.width - margin * 2)
    vh = max(min_viewport, viewport.height - margin * 2 - viewport.chrome_top)
    scale = clamp(min(vw / item.w, vh / item.h), MIN_SCALE, MAX_SCALE)

    target_cx = viewport.width / 2
    target_cy = (viewport.height + viewport.chrome_top) / 2
    return Camera(target_cx - item.x * scale, target_cy - item.y * scale, scale)


def viewport_center(viewport: ViewportSize) -> CanvasPoint:
    return CanvasPoint(viewport.width / 2, viewport.height / 2)


def centered_camera(cam: Camera, viewport: ViewportSize) -> Camera:
    """Shift the view so the default camera offset sits in the viewport middle."""
    return Camera(viewport.width / 2 - DEFAULT_TX, viewport.height / 2 - DEFAULT_TY, cam.scale)


def default_camera() -> Camera:
    return Camera(DEFAULT_TX, DEFAULT_TY, DEFAULT_SCALE)
