"""
canvas/view.py

Board canvas widget: paints the controller's render index and forwards
pointer, wheel, keyboard and drop events to ``BoardController``.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Tuple

from PyQt6.QtCore import QPointF, QRectF, Qt
from PyQt6.QtGui import QColor, QPainter, QPen, QPixmap, QTransform
from PyQt6.QtWidgets import QWidget

from canvas.controller import BoardController, PointerEvent, PointerKind, TilePlacement
from canvas.viewport import CanvasRect, ScreenPoint

BACKGROUND = QColor("#1e1f22")
PLACEHOLDER_FILL = QColor("#3a3b3f")
PLACEHOLDER_TEXT = QColor("#9a9ba0")
SELECTED_PEN = QColor("#3d8bfd")
LOCKED_PEN = QColor("#e0a800")


def _qrect(r: CanvasRect) -> QRectF:
    return QRectF(r.left, r.top, r.width, r.height)


def _screen_point(pos: QPointF) -> ScreenPoint:
    return ScreenPoint(pos.x(), pos.y())


class BoardView(QWidget):
    """
    Canvas widget for one ``BoardController``.

    The widget keeps no board state of its own except decoded pixmaps.
    Space held acts as the pan modifier; files dropped on the canvas are
    handed to ``on_drop_files``.
    """

    def __init__(self, controller: BoardController,
                 on_drop_files: Optional[Callable[[List[str]], None]] = None, parent=None):
        super().__init__(parent)
        self.controller = controller
        self.on_drop_files = on_drop_files

        # (path, flip_h, flip_v) -> pixmap; a null pixmap marks an undecodable file
        self._pixmaps: Dict[Tuple[str, bool, bool], QPixmap] = {}

        self.setAcceptDrops(True)
        self.setMouseTracking(False)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setMinimumSize(200, 200)

        controller.set_changed_callback(self.update)

    # ---- pixmaps ----

    def _pixmap(self, p: TilePlacement) -> Optional[QPixmap]:
        key = (p.path, p.flip_h, p.flip_v)
        pm = self._pixmaps.get(key)
        if pm is None:
            pm = QPixmap(p.path)
            if not pm.isNull() and (p.flip_h or p.flip_v):
                pm = pm.transformed(QTransform().scale(-1 if p.flip_h else 1, -1 if p.flip_v else 1))
            self._pixmaps[key] = pm
        return None if pm.isNull() else pm

    def clear_pixmap_cache(self):
        self._pixmaps.clear()
        self.update()

    # ---- painting ----

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform, True)
        painter.fillRect(self.rect(), BACKGROUND)

        drawn = set()
        for p in self.controller.draw_list():
            self._paint_tile(painter, p)
            drawn.add((p.path, p.flip_h, p.flip_v))
        painter.end()

        # Only pixmaps of tiles currently on the board stay decoded
        if not drawn.issuperset(self._pixmaps):
            self._pixmaps = {k: pm for k, pm in self._pixmaps.items() if k in drawn}

    def _paint_tile(self, painter: QPainter, p: TilePlacement):
        rect = _qrect(p.rect)
        pm = None if p.missing else self._pixmap(p)
        if pm is None:
            painter.fillRect(rect, PLACEHOLDER_FILL)
            painter.setPen(PLACEHOLDER_TEXT)
            painter.drawText(rect, Qt.AlignmentFlag.AlignCenter, "missing image")
        else:
            painter.drawPixmap(rect, pm, QRectF(pm.rect()))

        if p.locked:
            pen = QPen(LOCKED_PEN, 2, Qt.PenStyle.DashLine)
            painter.setPen(pen)
            painter.drawRect(rect)
        if p.selected:
            painter.setPen(QPen(SELECTED_PEN, 2))
            painter.drawRect(rect.adjusted(-2, -2, 2, 2))
        if p.handle is not None:
            painter.fillRect(_qrect(p.handle), SELECTED_PEN)

    # ---- pointer ----

    def _pointer(self, kind: PointerKind, event, click_count: int = 1) -> bool:
        return self.controller.dispatch(PointerEvent(
            kind=kind,
            position=_screen_point(event.position()),
            pan_held=self.controller.pan_held,
            click_count=click_count,
        ))

    def mousePressEvent(self, event):
        if event.button() != Qt.MouseButton.LeftButton:
            super().mousePressEvent(event)
            return
        self.setFocus()
        self._pointer(PointerKind.DOWN, event)
        event.accept()

    def mouseDoubleClickEvent(self, event):
        if event.button() != Qt.MouseButton.LeftButton:
            super().mouseDoubleClickEvent(event)
            return
        self._pointer(PointerKind.DOWN, event, click_count=2)
        event.accept()

    def mouseMoveEvent(self, event):
        if self._pointer(PointerKind.MOVE, event):
            self._update_cursor()
        event.accept()

    def mouseReleaseEvent(self, event):
        if event.button() != Qt.MouseButton.LeftButton:
            super().mouseReleaseEvent(event)
            return
        # The release position is the final pointer position of the gesture
        self._pointer(PointerKind.MOVE, event)
        self._pointer(PointerKind.UP, event)
        self._update_cursor()
        event.accept()

    def wheelEvent(self, event):
        delta = event.angleDelta().y()
        if delta:
            self.controller.wheel(_screen_point(event.position()), delta)
        event.accept()

    def _update_cursor(self):
        if self.controller.pan_held:
            shape = Qt.CursorShape.ClosedHandCursor if not self.controller.machine.is_idle else Qt.CursorShape.OpenHandCursor
            self.setCursor(shape)
        else:
            self.unsetCursor()

    # ---- keyboard ----

    def keyPressEvent(self, event):
        if event.key() == Qt.Key.Key_Space:
            if not event.isAutoRepeat():
                self.controller.set_pan_modifier(True)
                self._update_cursor()
            event.accept()
            return
        super().keyPressEvent(event)

    def keyReleaseEvent(self, event):
        if event.key() == Qt.Key.Key_Space:
            if not event.isAutoRepeat():
                self.controller.set_pan_modifier(False)
                self._update_cursor()
            event.accept()
            return
        super().keyReleaseEvent(event)

    def focusOutEvent(self, event):
        # A Space release delivered elsewhere must not leave panning armed
        self.controller.set_pan_modifier(False)
        self._update_cursor()
        super().focusOutEvent(event)

    # ---- geometry ----

    def resizeEvent(self, event):
        size = event.size()
        self.controller.set_viewport(size.width(), size.height())
        super().resizeEvent(event)

    # ---- drag & drop ----

    def dragEnterEvent(self, event):
        if event.mimeData().hasUrls():
            event.acceptProposedAction()
            return
        event.ignore()

    def dragMoveEvent(self, event):
        event.acceptProposedAction()

    def dropEvent(self, event):
        if not event.mimeData().hasUrls():
            event.ignore()
            return
        paths = [u.toLocalFile() for u in event.mimeData().urls() if u.isLocalFile()]
        if paths and self.on_drop_files:
            self.on_drop_files(paths)
        event.acceptProposedAction()
