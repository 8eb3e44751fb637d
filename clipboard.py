"""
clipboard.py

System clipboard bridge for image tiles.

Copy puts the tile's image on the clipboard with its flips applied; paste
stores the clipboard image as a PNG through ``BoardStorage`` and returns the
new file path for the controller to add.
"""

from __future__ import annotations

import logging
from typing import Optional

from PIL import Image, ImageOps
from PIL.ImageQt import ImageQt
from PyQt6.QtCore import QBuffer, QByteArray, QIODevice
from PyQt6.QtGui import QGuiApplication, QImage

from storage import BoardStorage

log = logging.getLogger(__name__)


def flipped_image(path: str, flip_h: bool, flip_v: bool) -> Image.Image:
    """Load an image and apply horizontal/vertical mirroring.

    Raises:
        OSError: If the file cannot be read as an image.
    """
    with Image.open(path) as src:
        img = src.convert("RGBA")
    if flip_h:
        img = ImageOps.mirror(img)
    if flip_v:
        img = ImageOps.flip(img)
    return img


def qimage_to_png_bytes(image: QImage) -> bytes:
    data = QByteArray()
    buf = QBuffer(data)
    buf.open(QIODevice.OpenModeFlag.WriteOnly)
    image.save(buf, "PNG")
    buf.close()
    return bytes(data)


class QtImageClipboard:
    """Clipboard collaborator backed by ``QGuiApplication.clipboard()``."""

    def __init__(self, storage: BoardStorage):
        self.storage = storage

    def copy_image(self, path: str, flip_h: bool = False, flip_v: bool = False) -> None:
        """Put the image at *path* on the clipboard.

        Raises:
            OSError: If the image cannot be read.
        """
        img = flipped_image(path, flip_h, flip_v)
        # ImageQt keeps a reference to the pixel buffer; copy() detaches it
        QGuiApplication.clipboard().setImage(QImage(ImageQt(img)).copy())
        log.info("Copied %s to clipboard", path)

    def paste_image_path(self) -> Optional[str]:
        """Save the clipboard image as a PNG and return its path, or None if there is no image.

        Raises:
            OSError: If the PNG cannot be written.
        """
        image = QGuiApplication.clipboard().image()
        if image.isNull():
            return None
        path = self.storage.save_pasted_png(qimage_to_png_bytes(image))
        log.info("Pasted clipboard image to %s", path)
        return str(path)
