"""Tests for canvas/zorder.py."""
from __future__ import annotations

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from canvas.zorder import bring_to_front, draw_order, hit_order, max_z, next_z
from models import BoardItem, BoardTab


def _tab(*zs):
    return BoardTab(name="t", items=[BoardItem(path=f"{i}.png", z=z) for i, z in enumerate(zs)])


class TestZOrder:
    def test_max_z_of_empty_tab_is_zero(self):
        tab = BoardTab()
        assert max_z(tab) == 0
        assert next_z(tab) == 1

    def test_bring_to_front_above_max(self):
        tab = _tab(1, 5, 3)
        a = tab.items[0]
        assert bring_to_front(tab, a.id) == 6
        assert a.z == 6

    def test_bring_to_front_twice_keeps_unique_max(self):
        tab = _tab(1, 5, 3)
        a = tab.items[0]
        bring_to_front(tab, a.id)
        bring_to_front(tab, a.id)
        top = max(it.z for it in tab.items)
        assert a.z == top
        assert [it.z for it in tab.items].count(top) == 1

    def test_missing_item_is_ignored(self):
        tab = _tab(1, 2)
        assert bring_to_front(tab, "nope") is None
        assert [it.z for it in tab.items] == [1, 2]

    def test_draw_order_is_stable_for_ties(self):
        tab = _tab(2, 1, 2, 1)
        order = [tab.items.index(it) for it in draw_order(tab)]
        assert order == [1, 3, 0, 2]

    def test_hit_order_is_topmost_first(self):
        tab = _tab(2, 1, 2, 1)
        assert [tab.items.index(it) for it in hit_order(tab)] == [2, 0, 3, 1]
