"""
settings.py

Persistent settings management for Pinboard.

Handles cross-platform settings storage using TOML format with platformdirs
for proper user config directory detection.

Settings file location:
    - Windows: %APPDATA%/pinboard/settings.toml
    - macOS: ~/Library/Application Support/pinboard/settings.toml
    - Linux: ~/.config/pinboard/settings.toml

Default values are documented in comments throughout this file.
If settings.toml is corrupted, these defaults will be used.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import platformdirs
import tomli_w

APP_NAME = "pinboard"

# Global settings manager instance (singleton)
_settings_manager: Optional["SettingsManager"] = None


def get_settings() -> "SettingsManager":
    """Get the global settings manager instance.

    Returns:
        The singleton SettingsManager instance.
    """
    global _settings_manager
    if _settings_manager is None:
        _settings_manager = SettingsManager()
    return _settings_manager


# =============================================================================
# Canvas Settings
# =============================================================================

@dataclass
class CanvasZoomSettings:
    """Zoom behavior settings.

    Defaults:
        wheel_k: 0.0015
        step_factor: 1.25
    """
    wheel_k: float = 0.0015     # Default: 0.0015 (factor = exp(delta * k))
    step_factor: float = 1.25   # Default: 1.25 (menu zoom in/out)


@dataclass
class CanvasDragSettings:
    """Drag disambiguation settings.

    Defaults:
        threshold_px: 7.0
    """
    threshold_px: float = 7.0  # Default: 7.0 screen pixels


@dataclass
class CanvasResizeSettings:
    """Tile resize limits, in world units.

    Defaults:
        min_size: 80.0
        max_size: 4000.0
    """
    min_size: float = 80.0     # Default: 80.0
    max_size: float = 4000.0   # Default: 4000.0


@dataclass
class CanvasHandleSettings:
    """Resize handle settings, in screen pixels.

    Defaults:
        size: 14.0
        inset: 6.0
    """
    size: float = 14.0   # Default: 14.0 pixels
    inset: float = 6.0   # Default: 6.0 pixels from the bottom-right corner


@dataclass
class CanvasFitSettings:
    """Fit-to-view settings (double-click on a tile).

    Defaults:
        margin: 30.0
        chrome_top: 0.0
        min_viewport: 200.0
    """
    margin: float = 30.0         # Default: 30.0 pixels on every side
    chrome_top: float = 0.0      # Default: 0.0 (canvas widget excludes window chrome)
    min_viewport: float = 200.0  # Default: 200.0 pixels


@dataclass
class CanvasSettings:
    """All canvas-related settings."""
    zoom: CanvasZoomSettings = field(default_factory=CanvasZoomSettings)
    drag: CanvasDragSettings = field(default_factory=CanvasDragSettings)
    resize: CanvasResizeSettings = field(default_factory=CanvasResizeSettings)
    handles: CanvasHandleSettings = field(default_factory=CanvasHandleSettings)
    fit: CanvasFitSettings = field(default_factory=CanvasFitSettings)


# =============================================================================
# Import / Autosave / Storage Settings
# =============================================================================

@dataclass
class ImportSettings:
    """Sizing policy for newly added images, in world units.

    Defaults:
        default_width: 420, default_height: 300
        max_width: 520, max_height: 420
        min_width: 140, min_height: 120
    """
    default_width: float = 420.0
    default_height: float = 300.0
    max_width: float = 520.0
    max_height: float = 420.0
    min_width: float = 140.0
    min_height: float = 120.0
    extensions: List[str] = field(
        default_factory=lambda: [".png", ".jpg", ".jpeg", ".webp", ".bmp", ".gif"]
    )


@dataclass
class AutosaveSettings:
    """Autosave debounce settings.

    Defaults:
        enabled: False
        delay_ms: 500
        immediate_delay_ms: 50
    """
    enabled: bool = False         # Default: False
    delay_ms: int = 500           # Default: 500 ms for general edits
    immediate_delay_ms: int = 50  # Default: 50 ms when autosave is switched on


@dataclass
class StorageSettings:
    """Board file location.

    Defaults:
        save_folder: "" (unset)
        file_name: "board.json"
        last_board: ""
    """
    save_folder: str = ""
    file_name: str = "board.json"
    last_board: str = ""


@dataclass
class LoggingSettings:
    """Diagnostics settings.

    Defaults:
        level: "INFO"
        log_file: "" (console only)
    """
    level: str = "INFO"
    log_file: str = ""


# =============================================================================
# Main App Settings
# =============================================================================

@dataclass
class AppSettings:
    """Application settings with default values.

    Attributes:
        canvas: Canvas interaction settings.
        imports: Image import sizing policy.
        autosave: Autosave debounce settings.
        storage: Board file location.
        logging: Diagnostics settings.
    """
    canvas: CanvasSettings = field(default_factory=CanvasSettings)
    imports: ImportSettings = field(default_factory=ImportSettings)
    autosave: AutosaveSettings = field(default_factory=AutosaveSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


# =============================================================================
# Settings Manager
# =============================================================================

def _merge_section(target: Any, data: Dict[str, Any]) -> None:
    """Copy known keys from a TOML table onto a settings dataclass in place."""
    if not isinstance(data, dict):
        return
    for f in fields(target):
        if f.name not in data:
            continue
        current = getattr(target, f.name)
        value = data[f.name]
        if is_dataclass(current):
            _merge_section(current, value)
        elif isinstance(current, bool):
            if isinstance(value, bool):
                setattr(target, f.name, value)
        elif isinstance(current, (int, float)):
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                setattr(target, f.name, type(current)(value))
        elif isinstance(current, list):
            if isinstance(value, list):
                setattr(target, f.name, list(value))
        elif isinstance(value, type(current)):
            setattr(target, f.name, value)


def _section_dict(section: Any) -> Dict[str, Any]:
    """Convert a settings dataclass to a TOML-compatible dict."""
    out: Dict[str, Any] = {}
    for f in fields(section):
        value = getattr(section, f.name)
        out[f.name] = _section_dict(value) if is_dataclass(value) else value
    return out


class SettingsManager:
    """Manages loading, saving, and accessing application settings.

    Settings are stored in a TOML file at the platform-appropriate location.
    If the settings file doesn't exist, defaults are used and the file is
    created on first save.

    Args:
        app_name: Application name used for the config directory.
        settings_dir: Override for the config directory (used by tests).
    """

    def __init__(self, app_name: str = APP_NAME, settings_dir: Optional[Path] = None):
        self.app_name = app_name
        self.settings_dir = Path(settings_dir) if settings_dir else Path(platformdirs.user_config_dir(app_name))
        self.settings_file = self.settings_dir / "settings.toml"
        self.settings = self.load()
        self._needs_save = not self.settings_file.exists()  # Save if file didn't exist

    def ensure_file_complete(self) -> None:
        """Ensure settings file exists with all sections. Call once at startup."""
        if self._needs_save or not self.settings_file.exists():
            self.save()
            self._needs_save = False

    def load(self) -> AppSettings:
        """Load settings from the TOML file.

        Returns:
            AppSettings instance with values from file or defaults if file
            doesn't exist or is invalid.
        """
        if not self.settings_file.exists():
            return AppSettings()

        try:
            with open(self.settings_file, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError):
            # If file is corrupted or unreadable, return defaults
            return AppSettings()

        return self._parse_toml(data)

    def _parse_toml(self, data: Dict[str, Any]) -> AppSettings:
        """Parse TOML data into AppSettings.

        Args:
            data: Parsed TOML dictionary.

        Returns:
            AppSettings instance populated from TOML data.
        """
        settings = AppSettings()
        _merge_section(settings, data)
        return settings

    def save(self) -> None:
        """Save current settings to the TOML file.

        Creates the settings directory if it doesn't exist.
        """
        self.settings_dir.mkdir(parents=True, exist_ok=True)
        with open(self.settings_file, "wb") as f:
            tomli_w.dump(self._to_toml_dict(), f)

    def _to_toml_dict(self) -> Dict[str, Any]:
        """Convert settings to a TOML-compatible dictionary structure.

        Returns:
            Dictionary organized by TOML sections.
        """
        return _section_dict(self.settings)

    def to_toml(self) -> str:
        """Convert current settings to a TOML-formatted string."""
        return tomli_w.dumps(self._to_toml_dict())

    def get_data_dir(self) -> Path:
        """Get the per-user data directory (pasted images live under it)."""
        return Path(platformdirs.user_data_dir(self.app_name))

    def get_settings_path(self) -> Path:
        """Get the path to the settings file."""
        return self.settings_file
