"""
models.py

Board document model: Document -> Tab -> Item, plus per-tab Camera state.

Every structure serializes to plain dicts (``to_dict``) and is rebuilt with
normalization (``from_dict``) so that older or hand-edited board files load
with sane defaults.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# ----------------------------
# Constants
# ----------------------------

FORMAT_VERSION = "pinboard-1"

MIN_SCALE = 0.15
MAX_SCALE = 6.0

MIN_UI_SCALE = 0.6
MAX_UI_SCALE = 1.2

# Camera of a fresh tab and of "reset view"
DEFAULT_TX = 200.0
DEFAULT_TY = 120.0
DEFAULT_SCALE = 1.0

DEFAULT_TAB_NAME = "Tab"
TAB_NAME_MAX_LEN = 40
COPY_SUFFIX = " (copy)"

DEFAULT_ITEM_W = 420.0
DEFAULT_ITEM_H = 300.0

# Tile size bounds in world units, shared with the resize gesture
MIN_ITEM_SIZE = 80.0
MAX_ITEM_SIZE = 4000.0


class ValidationError(ValueError):
    """Raised when a board document is malformed and cannot be loaded."""


def new_id() -> str:
    """Return a fresh opaque identifier."""
    return uuid.uuid4().hex


def clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def normalize_tab_name(name: Optional[str]) -> str:
    """Trim a tab name, replace blanks with the placeholder and cap its length."""
    name = (name or "").strip()
    if not name:
        return DEFAULT_TAB_NAME
    return name[:TAB_NAME_MAX_LEN]


def _number(rec: Dict[str, Any], key: str, default: float) -> float:
    value = rec.get(key, default)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"'{key}' must be a number, got {value!r}")
    try:
        number = float(value)
    except OverflowError:
        number = math.inf
    if not math.isfinite(number):
        raise ValidationError(f"'{key}' must be finite, got {value!r}")
    return number


def _flag(rec: Dict[str, Any], key: str) -> bool:
    # Only real JSON booleans count; "false" or 1 are not flags
    return rec.get(key) is True


# ----------------------------
# Camera
# ----------------------------

@dataclass
class Camera:
    """World-to-screen map: ``screen = world * scale + (tx, ty)``."""
    tx: float = DEFAULT_TX
    ty: float = DEFAULT_TY
    scale: float = DEFAULT_SCALE

    def __post_init__(self):
        self.scale = clamp(self.scale, MIN_SCALE, MAX_SCALE)

    def copy(self) -> "Camera":
        return Camera(self.tx, self.ty, self.scale)

    def assign(self, other: "Camera") -> None:
        """Overwrite this camera in place with *other*'s values."""
        self.tx = other.tx
        self.ty = other.ty
        self.scale = clamp(other.scale, MIN_SCALE, MAX_SCALE)

    def to_dict(self) -> Dict[str, float]:
        return {"tx": self.tx, "ty": self.ty, "scale": self.scale}

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "Camera":
        if d is None:
            return cls()
        if not isinstance(d, dict):
            raise ValidationError("camera must be an object")
        return cls(
            tx=_number(d, "tx", DEFAULT_TX),
            ty=_number(d, "ty", DEFAULT_TY),
            scale=_number(d, "scale", DEFAULT_SCALE),
        )


@dataclass
class UiSettings:
    """Per-document UI preferences."""
    scale: float = 1.0

    def to_dict(self) -> Dict[str, float]:
        return {"scale": self.scale}

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "UiSettings":
        if not isinstance(d, dict):
            return cls()
        return cls(scale=clamp(_number(d, "scale", 1.0), MIN_UI_SCALE, MAX_UI_SCALE))


# ----------------------------
# Item
# ----------------------------

@dataclass
class BoardItem:
    """An image tile. ``x``/``y`` is the world-space center, ``w``/``h`` the world size.

    ``cached_bytes`` mirrors the size of the file at ``path``; it is derived,
    never persisted and ignored by equality.
    """
    path: str = ""
    x: float = 0.0
    y: float = 0.0
    w: float = DEFAULT_ITEM_W
    h: float = DEFAULT_ITEM_H
    z: int = 1
    locked: bool = False
    flip_h: bool = False
    flip_v: bool = False
    id: str = field(default_factory=new_id)
    cached_bytes: int = field(default=0, compare=False, repr=False)

    def contains(self, wx: float, wy: float) -> bool:
        """Return True if the world point lies inside the tile."""
        return abs(wx - self.x) <= self.w / 2 and abs(wy - self.y) <= self.h / 2

    def duplicate(self) -> "BoardItem":
        """Copy with a fresh id."""
        return BoardItem(
            path=self.path, x=self.x, y=self.y, w=self.w, h=self.h, z=self.z,
            locked=self.locked, flip_h=self.flip_h, flip_v=self.flip_v,
            cached_bytes=self.cached_bytes,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "path": self.path,
            "x": self.x,
            "y": self.y,
            "w": self.w,
            "h": self.h,
            "z": self.z,
            "locked": self.locked,
            "flip_h": self.flip_h,
            "flip_v": self.flip_v,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "BoardItem":
        if not isinstance(d, dict):
            raise ValidationError("item must be an object")
        item_id = d.get("id")
        return cls(
            id=item_id if isinstance(item_id, str) and item_id else new_id(),
            path=d.get("path") if isinstance(d.get("path"), str) else "",
            x=_number(d, "x", 0.0),
            y=_number(d, "y", 0.0),
            w=clamp(_number(d, "w", DEFAULT_ITEM_W), MIN_ITEM_SIZE, MAX_ITEM_SIZE),
            h=clamp(_number(d, "h", DEFAULT_ITEM_H), MIN_ITEM_SIZE, MAX_ITEM_SIZE),
            z=int(_number(d, "z", 1)),
            locked=_flag(d, "locked"),
            flip_h=_flag(d, "flip_h"),
            flip_v=_flag(d, "flip_v"),
        )


# ----------------------------
# Tab
# ----------------------------

@dataclass
class BoardTab:
    """A named page of the board with its own camera.

    ``items`` order is insertion order; stacking is decided by ``z``.
    """
    name: str = DEFAULT_TAB_NAME
    camera: Camera = field(default_factory=Camera)
    items: List[BoardItem] = field(default_factory=list)
    id: str = field(default_factory=new_id)

    def __post_init__(self):
        self.name = normalize_tab_name(self.name)

    def item(self, item_id: Optional[str]) -> Optional[BoardItem]:
        if item_id is None:
            return None
        for it in self.items:
            if it.id == item_id:
                return it
        return None

    def index_of(self, item_id: str) -> int:
        for idx, it in enumerate(self.items):
            if it.id == item_id:
                return idx
        return -1

    def remove_item(self, item_id: str) -> Optional[BoardItem]:
        idx = self.index_of(item_id)
        if idx < 0:
            return None
        return self.items.pop(idx)

    def duplicate(self) -> "BoardTab":
        """Deep copy with fresh tab and item ids."""
        return BoardTab(
            name=normalize_tab_name(self.name + COPY_SUFFIX),
            camera=self.camera.copy(),
            items=[it.duplicate() for it in self.items],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "camera": self.camera.to_dict(),
            "items": [it.to_dict() for it in self.items],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "BoardTab":
        if not isinstance(d, dict):
            raise ValidationError("tab must be an object")
        items_raw = d.get("items")
        if items_raw is None:
            items_raw = []
        if not isinstance(items_raw, list):
            raise ValidationError("tab 'items' must be a list")

        items: List[BoardItem] = []
        seen = set()
        for rec in items_raw:
            it = BoardItem.from_dict(rec)
            # Ids must be unique within a tab
            if it.id in seen:
                it.id = new_id()
            seen.add(it.id)
            items.append(it)

        tab_id = d.get("id")
        name = d.get("name")
        return cls(
            id=tab_id if isinstance(tab_id, str) and tab_id else new_id(),
            name=name if isinstance(name, str) else DEFAULT_TAB_NAME,
            camera=Camera.from_dict(d.get("camera")),
            items=items,
        )


# ----------------------------
# Document
# ----------------------------

@dataclass
class BoardDocument:
    """The whole board. Always holds at least one tab and a valid active tab id."""
    tabs: List[BoardTab] = field(default_factory=list)
    active_tab_id: str = ""
    ui: UiSettings = field(default_factory=UiSettings)
    version: str = FORMAT_VERSION

    @classmethod
    def new(cls) -> "BoardDocument":
        first = BoardTab(name=f"{DEFAULT_TAB_NAME} 1")
        return cls(tabs=[first], active_tab_id=first.id)

    # ---- tabs ----

    def tab(self, tab_id: Optional[str]) -> Optional[BoardTab]:
        for t in self.tabs:
            if t.id == tab_id:
                return t
        return None

    @property
    def active_tab(self) -> BoardTab:
        return self.tab(self.active_tab_id) or self.tabs[0]

    def set_active_tab(self, tab_id: str) -> BoardTab:
        t = self.tab(tab_id)
        if t is None:
            raise KeyError(tab_id)
        self.active_tab_id = t.id
        return t

    def add_tab(self, name: Optional[str] = None) -> BoardTab:
        t = BoardTab(name=name or f"{DEFAULT_TAB_NAME} {len(self.tabs) + 1}")
        self.tabs.append(t)
        return t

    def duplicate_tab(self, tab_id: str) -> Optional[BoardTab]:
        src = self.tab(tab_id)
        if src is None:
            return None
        copy = src.duplicate()
        self.tabs.append(copy)
        return copy

    def delete_tab(self, tab_id: str) -> Optional[BoardTab]:
        """Remove a tab, never the last one.

        Returns:
            The tab that should become active afterwards, or None when the
            deletion was refused.
        """
        if len(self.tabs) <= 1:
            return None
        idx = next((i for i, t in enumerate(self.tabs) if t.id == tab_id), -1)
        if idx < 0:
            return None
        del self.tabs[idx]
        nxt = self.tabs[max(0, idx - 1)]
        if self.active_tab_id == tab_id or self.tab(self.active_tab_id) is None:
            self.active_tab_id = nxt.id
        return nxt

    def rename_tab(self, tab_id: str, name: Optional[str]) -> Optional[BoardTab]:
        t = self.tab(tab_id)
        if t is not None:
            t.name = normalize_tab_name(name)
        return t

    # ---- sizes ----

    def all_items(self):
        for t in self.tabs:
            yield from t.items

    # ---- serialization ----

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "ui": self.ui.to_dict(),
            "active_tab_id": self.active_tab_id,
            "tabs": [t.to_dict() for t in self.tabs],
        }

    @classmethod
    def from_dict(cls, d: Any) -> "BoardDocument":
        """Build a document from parsed JSON, normalizing missing parts.

        Raises:
            ValidationError: If the data is not a board or has no tabs.
        """
        if not isinstance(d, dict):
            raise ValidationError("board file must contain a JSON object")
        tabs_raw = d.get("tabs")
        if not isinstance(tabs_raw, list):
            raise ValidationError("board has no 'tabs' list")
        if not tabs_raw:
            raise ValidationError("board has no tabs")

        tabs: List[BoardTab] = []
        seen = set()
        for rec in tabs_raw:
            t = BoardTab.from_dict(rec)
            if t.id in seen:
                t.id = new_id()
            seen.add(t.id)
            tabs.append(t)

        version = d.get("version")
        doc = cls(
            tabs=tabs,
            active_tab_id=d.get("active_tab_id") if isinstance(d.get("active_tab_id"), str) else "",
            ui=UiSettings.from_dict(d.get("ui")),
            version=version if isinstance(version, str) and version else FORMAT_VERSION,
        )
        if not doc.active_tab_id.strip() or doc.tab(doc.active_tab_id) is None:
            doc.active_tab_id = doc.tabs[0].id
        return doc

    def snapshot(self) -> Dict[str, Any]:
        """Serializable copy of the current state, detached from live objects."""
        return self.to_dict()
