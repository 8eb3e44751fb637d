"""Tests for resources.py and the Pillow helpers in clipboard.py."""
from __future__ import annotations

import os
import sys

import pytest
from PIL import Image

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from clipboard import flipped_image
from models import BoardItem
from resources import ResourceProvider, fit_size, format_mb

DEFAULT = (420.0, 300.0)
MAX_BOX = (520.0, 420.0)
FLOOR = (140.0, 120.0)


@pytest.fixture()
def png(tmp_path):
    path = tmp_path / "img.png"
    img = Image.new("RGB", (40, 20), "white")
    img.putpixel((0, 0), (255, 0, 0))
    img.save(path)
    return str(path)


class TestFitSize:
    def test_unknown_size_keeps_default(self):
        assert fit_size(None, DEFAULT, MAX_BOX, FLOOR) == DEFAULT

    def test_large_image_shrinks_keeping_aspect(self):
        assert fit_size((2000, 1000), DEFAULT, MAX_BOX, FLOOR) == (520, 260)
        assert fit_size((800, 1680), DEFAULT, MAX_BOX, FLOOR) == (200, 420)

    def test_small_image_is_not_enlarged(self):
        assert fit_size((300, 200), DEFAULT, MAX_BOX, FLOOR) == (300, 200)

    def test_floor_applies_per_axis(self):
        assert fit_size((50, 300), DEFAULT, MAX_BOX, FLOOR) == (140, 300)
        assert fit_size((3000, 100), DEFAULT, MAX_BOX, FLOOR) == (520, 120)


class TestResourceProvider:
    def test_existing_file(self, png):
        res = ResourceProvider()
        assert res.exists(png)
        assert res.byte_size(png) == os.path.getsize(png)
        assert res.natural_size(png) == (40, 20)

    def test_missing_file(self, tmp_path):
        res = ResourceProvider()
        missing = str(tmp_path / "gone.png")
        assert not res.exists(missing)
        assert not res.exists("")
        assert res.byte_size(missing) == 0
        assert res.natural_size(missing) is None

    def test_not_an_image(self, tmp_path):
        path = tmp_path / "notes.png"
        path.write_text("hello", encoding="utf-8")
        assert ResourceProvider().natural_size(str(path)) is None

    def test_cached_bytes_filled_once(self, png):
        item = BoardItem(path=png)
        res = ResourceProvider()
        assert res.cached_bytes(item) == os.path.getsize(png)
        item.path = "elsewhere.png"
        assert res.cached_bytes(item) == os.path.getsize(png)

    def test_format_mb(self):
        assert format_mb(0) == "0.0MB"
        assert format_mb(3 * 1024 * 1024 // 2) == "1.5MB"


class TestFlippedImage:
    def test_flips(self, png):
        assert flipped_image(png, False, False).getpixel((0, 0)) == (255, 0, 0, 255)
        assert flipped_image(png, True, False).getpixel((39, 0)) == (255, 0, 0, 255)
        assert flipped_image(png, False, True).getpixel((0, 19)) == (255, 0, 0, 255)
        assert flipped_image(png, True, True).getpixel((39, 19)) == (255, 0, 0, 255)

    def test_unreadable_raises_oserror(self, tmp_path):
        with pytest.raises(OSError):
            flipped_image(str(tmp_path / "gone.png"), False, False)
