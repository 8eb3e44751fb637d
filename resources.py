"""
resources.py

Access to the image files tiles point at.

The board never decodes pixels itself: it only needs to know whether a file
exists, how big it is on disk and, when importing, its natural dimensions.
A missing or unreadable file is not an error here; sizes fall back to zero
and dimensions to None.
"""

from __future__ import annotations

import logging
import os
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from models import BoardItem

log = logging.getLogger(__name__)

BYTES_PER_MB = 1024.0 * 1024.0


class ResourceProvider:
    """File-system backed resource collaborator."""

    def exists(self, path: str) -> bool:
        return bool(path) and os.path.isfile(path)

    def byte_size(self, path: str) -> int:
        """Size of the file in bytes, 0 if it is missing or unreadable."""
        if not self.exists(path):
            return 0
        try:
            return os.path.getsize(path)
        except OSError as e:
            log.warning("Cannot stat %s: %s", path, e)
            return 0

    def natural_size(self, path: str) -> Optional[Tuple[int, int]]:
        """Pixel dimensions of the image, or None if they cannot be read."""
        if not self.exists(path):
            return None
        try:
            with Image.open(path) as img:
                w, h = img.size
        except (OSError, UnidentifiedImageError) as e:
            log.info("Cannot read image size of %s: %s", path, e)
            return None
        if w <= 0 or h <= 0:
            return None
        return w, h

    def cached_bytes(self, item: BoardItem) -> int:
        """Fill ``item.cached_bytes`` on first use and return it."""
        if item.cached_bytes <= 0:
            item.cached_bytes = self.byte_size(item.path)
        return item.cached_bytes


def fit_size(natural: Optional[Tuple[int, int]], default: Tuple[float, float],
             max_box: Tuple[float, float], floor: Tuple[float, float]) -> Tuple[float, float]:
    """Size a new tile from the image's natural dimensions.

    The image is shrunk (never enlarged) to fit inside *max_box* keeping its
    aspect ratio, then each axis is raised to *floor*. Unknown dimensions
    keep *default*.
    """
    if natural is None:
        return default
    w, h = natural
    r = min(max_box[0] / w, max_box[1] / h, 1.0)
    return max(floor[0], float(round(w * r))), max(floor[1], float(round(h * r)))


def bytes_to_mb(n: int) -> float:
    return n / BYTES_PER_MB


def format_mb(n: int) -> str:
    return f"{bytes_to_mb(n):.1f}MB"
