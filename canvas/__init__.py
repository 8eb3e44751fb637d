"""
canvas package

Board canvas: coordinate math, stacking, gestures, the session controller
and the Qt widget that renders it.
"""

from canvas.viewport import CanvasPoint, ScreenPoint, ViewportSize, WorldPoint
from canvas.gestures import GestureMachine, GestureState
from canvas.controller import BoardController, ControllerConfig, PointerEvent, PointerKind
from canvas.view import BoardView

__all__ = [
    "CanvasPoint",
    "ScreenPoint",
    "ViewportSize",
    "WorldPoint",
    "GestureMachine",
    "GestureState",
    "BoardController",
    "ControllerConfig",
    "PointerEvent",
    "PointerKind",
    "BoardView",
]
