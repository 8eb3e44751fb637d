"""
undo_commands.py

QUndoCommand implementations for undo/redo support in Pinboard.

Commands act on model objects (``BoardItem``/``BoardTab``) and call
``on_change`` afterwards so the controller can refresh its render index and
mark the board dirty.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Tuple

from PyQt6.QtGui import QUndoCommand

from models import BoardItem, BoardTab

ChangeCallback = Optional[Callable[[], None]]


class _BoardCommand(QUndoCommand):
    def __init__(self, text: str, on_change: ChangeCallback = None, parent=None):
        super().__init__(parent)
        self.setText(text)
        self.on_change = on_change

    def _notify(self):
        if self.on_change:
            self.on_change()


class MoveItemCommand(_BoardCommand):
    """Command for a committed drag. The move already happened when pushed."""

    def __init__(self, item: BoardItem, old_pos: Tuple[float, float], new_pos: Tuple[float, float],
                 on_change: ChangeCallback = None, parent=None):
        super().__init__(f"Move {item.id}", on_change, parent)
        self.item = item
        self.old_pos = old_pos
        self.new_pos = new_pos
        self._first_redo = True

    def undo(self):
        self.item.x, self.item.y = self.old_pos
        self._notify()

    def redo(self):
        if self._first_redo:
            self._first_redo = False
            return
        self.item.x, self.item.y = self.new_pos
        self._notify()


class ResizeItemCommand(_BoardCommand):
    """Command for a committed resize. The resize already happened when pushed."""

    def __init__(self, item: BoardItem, old_size: Tuple[float, float], new_size: Tuple[float, float],
                 on_change: ChangeCallback = None, parent=None):
        super().__init__(f"Resize {item.id}", on_change, parent)
        self.item = item
        self.old_size = old_size
        self.new_size = new_size
        self._first_redo = True

    def undo(self):
        self.item.w, self.item.h = self.old_size
        self._notify()

    def redo(self):
        if self._first_redo:
            self._first_redo = False
            return
        self.item.w, self.item.h = self.new_size
        self._notify()


class ToggleFlagCommand(_BoardCommand):
    """Flip a boolean attribute (``locked``, ``flip_h``, ``flip_v``). Applied on push."""

    def __init__(self, item: BoardItem, attr: str, on_change: ChangeCallback = None, parent=None):
        super().__init__(f"Toggle {attr} of {item.id}", on_change, parent)
        self.item = item
        self.attr = attr

    def _toggle(self):
        setattr(self.item, self.attr, not getattr(self.item, self.attr))
        self._notify()

    def undo(self):
        self._toggle()

    def redo(self):
        self._toggle()


class AddItemsCommand(_BoardCommand):
    """Command for newly added tiles. They are already in the tab when pushed."""

    def __init__(self, tab: BoardTab, items: List[BoardItem], on_change: ChangeCallback = None, parent=None):
        super().__init__(f"Add {len(items)} image(s)", on_change, parent)
        self.tab = tab
        self.items = list(items)
        self._first_redo = True

    def undo(self):
        for it in self.items:
            self.tab.remove_item(it.id)
        self._notify()

    def redo(self):
        if self._first_redo:
            self._first_redo = False
            return
        self.tab.items.extend(self.items)
        self._notify()


class DeleteItemCommand(_BoardCommand):
    """Command for deleting a tile. Removal happens on push."""

    def __init__(self, tab: BoardTab, item: BoardItem, on_change: ChangeCallback = None, parent=None):
        super().__init__(f"Delete {item.id}", on_change, parent)
        self.tab = tab
        self.item = item
        self.index = tab.index_of(item.id)

    def undo(self):
        self.tab.items.insert(max(0, self.index), self.item)
        self._notify()

    def redo(self):
        self.tab.remove_item(self.item.id)
        self._notify()


class ClearTabCommand(_BoardCommand):
    """Command for removing every tile of a tab. Applied on push."""

    def __init__(self, tab: BoardTab, on_change: ChangeCallback = None, parent=None):
        super().__init__(f"Clear {tab.name}", on_change, parent)
        self.tab = tab
        self.items = list(tab.items)

    def undo(self):
        self.tab.items[:] = self.items
        self._notify()

    def redo(self):
        self.tab.items.clear()
        self._notify()
