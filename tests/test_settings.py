"""Tests for settings.py: defaults, TOML round trip and tolerance of bad files."""
from __future__ import annotations

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from settings import AppSettings, SettingsManager


class TestSettings:
    def test_defaults_when_file_missing(self, tmp_path):
        sm = SettingsManager(settings_dir=tmp_path)
        s = sm.settings
        assert s.canvas.drag.threshold_px == 7.0
        assert s.canvas.resize.min_size == 80.0
        assert s.canvas.resize.max_size == 4000.0
        assert s.autosave.delay_ms == 500
        assert s.autosave.immediate_delay_ms == 50
        assert s.autosave.enabled is False
        assert s.storage.file_name == "board.json"

    def test_ensure_file_complete_writes_all_sections(self, tmp_path):
        sm = SettingsManager(settings_dir=tmp_path)
        sm.ensure_file_complete()
        text = sm.get_settings_path().read_text(encoding="utf-8")
        for section in ("[canvas.zoom]", "[canvas.drag]", "[imports]", "[autosave]", "[storage]", "[logging]"):
            assert section in text

    def test_round_trip(self, tmp_path):
        sm = SettingsManager(settings_dir=tmp_path)
        sm.settings.autosave.enabled = True
        sm.settings.storage.save_folder = "/boards"
        sm.settings.canvas.zoom.wheel_k = 0.002
        sm.settings.imports.extensions = [".png"]
        sm.save()

        again = SettingsManager(settings_dir=tmp_path).settings
        assert again.autosave.enabled is True
        assert again.storage.save_folder == "/boards"
        assert again.canvas.zoom.wheel_k == 0.002
        assert again.imports.extensions == [".png"]

    def test_partial_file_keeps_other_defaults(self, tmp_path):
        (tmp_path / "settings.toml").write_text("[canvas.drag]\nthreshold_px = 3\n", encoding="utf-8")
        s = SettingsManager(settings_dir=tmp_path).settings
        assert s.canvas.drag.threshold_px == 3.0
        assert isinstance(s.canvas.drag.threshold_px, float)
        assert s.canvas.fit.margin == 30.0

    def test_wrong_types_are_ignored(self, tmp_path):
        (tmp_path / "settings.toml").write_text(
            '[autosave]\nenabled = "yes"\ndelay_ms = "soon"\n[unknown]\nkey = 1\n',
            encoding="utf-8",
        )
        s = SettingsManager(settings_dir=tmp_path).settings
        assert s.autosave.enabled is False
        assert s.autosave.delay_ms == 500

    def test_corrupt_file_yields_defaults(self, tmp_path):
        (tmp_path / "settings.toml").write_text("this is = = not toml", encoding="utf-8")
        assert SettingsManager(settings_dir=tmp_path).settings == AppSettings()

    def test_to_toml(self, tmp_path):
        text = SettingsManager(settings_dir=tmp_path).to_toml()
        assert "threshold_px = 7.0" in text
