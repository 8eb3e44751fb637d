"""
storage.py

Board persistence: JSON save/load, the save location and the pasted-image store.

Expected failures (missing file, bad JSON, a board without tabs, a full
disk) are returned as ``LoadResult``/``SaveResult`` values with an
``ErrorKind`` instead of being raised, so callers can report them and keep
their current document.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from debug_trace import trace, trace_call
from models import BoardDocument, ValidationError

log = logging.getLogger(__name__)

DEFAULT_FILE_NAME = "board.json"


class ErrorKind(Enum):
    VALIDATION = "validation"
    RESOURCE_MISSING = "resource_missing"
    PERSISTENCE = "persistence"


@dataclass
class LoadResult:
    document: Optional[BoardDocument] = None
    error: Optional[ErrorKind] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None and self.document is not None


@dataclass
class SaveResult:
    path: str
    error: Optional[ErrorKind] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class SaveSnapshot:
    """Serialized board plus its destination, taken when a save begins."""
    path: str
    data: Dict[str, Any]


def normalize_file_name(name: Optional[str]) -> str:
    """Blank names become ``board.json``; ``.json`` is appended if missing."""
    name = (name or "").strip()
    if not name:
        return DEFAULT_FILE_NAME
    if not name.lower().endswith(".json"):
        name += ".json"
    return name


class BoardStorage:
    """Reads and writes board files.

    Args:
        data_dir: Per-user data directory; pasted images go to
            ``<data_dir>/images`` while no save folder is set.
    """

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self.save_folder: Optional[Path] = None
        self.file_name = DEFAULT_FILE_NAME
        self.last_saved_at: Optional[datetime] = None

    # ---- location ----

    def set_folder(self, folder: str, file_name: Optional[str] = None) -> Path:
        """Choose where the board is saved. Creates the folder if needed."""
        self.save_folder = Path(folder)
        self.file_name = normalize_file_name(file_name)
        self.save_folder.mkdir(parents=True, exist_ok=True)
        return self.save_folder / self.file_name

    @property
    def current_save_path(self) -> Optional[Path]:
        if self.save_folder is None:
            return None
        return self.save_folder / self.file_name

    @property
    def image_dir(self) -> Path:
        base = self.save_folder if self.save_folder is not None else self.data_dir
        return base / "images"

    # ---- save ----

    def snapshot(self, document: BoardDocument, path: Optional[Path] = None) -> Optional[SaveSnapshot]:
        """Freeze the document for writing. None if there is nowhere to write."""
        target = path or self.current_save_path
        if target is None:
            return None
        return SaveSnapshot(str(target), document.snapshot())

    @trace_call("SAVE")
    def write(self, snapshot: SaveSnapshot) -> SaveResult:
        """Write a snapshot to disk. Safe to call from a worker thread."""
        try:
            os.makedirs(os.path.dirname(os.path.abspath(snapshot.path)), exist_ok=True)
            with open(snapshot.path, "w", encoding="utf-8") as f:
                json.dump(snapshot.data, f, indent=2)
        except OSError as e:
            log.error("Saving %s failed: %s", snapshot.path, e)
            return SaveResult(snapshot.path, ErrorKind.PERSISTENCE, str(e))
        self.last_saved_at = datetime.now()
        trace(f"Saved {snapshot.path}", "SAVE")
        return SaveResult(snapshot.path)

    def save(self, document: BoardDocument, path: Path) -> SaveResult:
        """Snapshot and write in one step (export)."""
        return self.write(SaveSnapshot(str(path), document.snapshot()))

    # ---- load ----

    @trace_call("LOAD")
    def load(self, path: Path) -> LoadResult:
        """Read and normalize a board file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            log.error("Reading %s failed: %s", path, e)
            return LoadResult(error=ErrorKind.PERSISTENCE, message=str(e))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            log.error("%s is not valid JSON: %s", path, e)
            return LoadResult(error=ErrorKind.VALIDATION, message=f"Invalid JSON: {e}")

        try:
            doc = BoardDocument.from_dict(data)
        except ValidationError as e:
            log.error("%s is not a board: %s", path, e)
            return LoadResult(error=ErrorKind.VALIDATION, message=str(e))
        return LoadResult(document=doc)

    # ---- pasted images ----

    def save_pasted_png(self, png_bytes: bytes) -> Path:
        """Store clipboard image bytes and return the new file path.

        Raises:
            OSError: If the image folder cannot be written.
        """
        folder = self.image_dir
        folder.mkdir(parents=True, exist_ok=True)
        name = "paste_" + datetime.now().strftime("%Y%m%d_%H%M%S_%f")[:-3] + ".png"
        path = folder / name
        path.write_bytes(png_bytes)
        return path
