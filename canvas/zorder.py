"""
canvas/zorder.py

Stacking order of tiles within a tab.

``z`` values need not be unique: ties are broken by insertion order, which
``sorted`` preserves because it is stable.
"""

from __future__ import annotations

from typing import List, Optional

from models import BoardItem, BoardTab


def max_z(tab: BoardTab) -> int:
    """Highest z in the tab, 0 when it is empty."""
    return max((it.z for it in tab.items), default=0)


def next_z(tab: BoardTab) -> int:
    """z for an item that must land above every current sibling."""
    return max_z(tab) + 1


def bring_to_front(tab: BoardTab, item_id: str) -> Optional[int]:
    """Raise an item above all its siblings.

    Returns:
        The new z, or None if the item is not in the tab.
    """
    item = tab.item(item_id)
    if item is None:
        return None
    item.z = next_z(tab)
    return item.z


def draw_order(tab: BoardTab) -> List[BoardItem]:
    """Items bottom to top."""
    return sorted(tab.items, key=lambda it: it.z)


def hit_order(tab: BoardTab) -> List[BoardItem]:
    """Items top to bottom, the order in which pointer hits are resolved."""
    return list(reversed(draw_order(tab)))
