"""
main.py

Pinboard - Main Application

PyQt6 application for arranging image tiles on a pannable, zoomable board:
- Tabs, each with its own view
- Drag, resize, lock, flip and stack tiles
- Clipboard copy/paste and drag & drop import
- JSON board files with optional debounced autosave

Usage:
    python main.py

Dependencies:
    pip install PyQt6 pillow platformdirs tomli-w
"""

from __future__ import annotations

import logging
import os
import sys
import traceback
from pathlib import Path
from typing import List

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QAction, QKeySequence, QUndoStack
from PyQt6.QtWidgets import (
    QApplication,
    QFileDialog,
    QInputDialog,
    QLabel,
    QMainWindow,
    QMessageBox,
    QTabBar,
    QToolBar,
    QVBoxLayout,
    QWidget,
)

from autosave import AutosaveScheduler
from canvas.controller import BoardController, ControllerConfig
from canvas.view import BoardView
from clipboard import QtImageClipboard
from debug_trace import close_log, setup_logging, trace, trace_exception
from help_dialog import HelpDialog, show_about_dialog
from models import BoardDocument
from resources import ResourceProvider
from settings import SettingsManager, get_settings
from storage import BoardStorage, SaveResult, normalize_file_name

log = logging.getLogger(__name__)

UI_SCALE_STEP = 0.1


class MainWindow(QMainWindow):
    """Main application window for Pinboard.

    Args:
        settings_manager: The SettingsManager instance for application settings.
    """

    def __init__(self, settings_manager: SettingsManager):
        super().__init__()
        self.settings_manager = settings_manager
        s = settings_manager.settings
        self.setWindowTitle("Pinboard")

        # Persistence
        self.storage = BoardStorage(settings_manager.get_data_dir())
        if s.storage.save_folder:
            try:
                self.storage.set_folder(s.storage.save_folder, s.storage.file_name)
            except OSError as e:
                log.error("Save folder %s unavailable: %s", s.storage.save_folder, e)

        # Undo/Redo stack
        self.undo_stack = QUndoStack(self)
        self.undo_stack.setUndoLimit(100)

        # Board session
        self.controller = BoardController(
            document=self._initial_document(),
            config=ControllerConfig.from_settings(s),
            resources=ResourceProvider(),
            clipboard=QtImageClipboard(self.storage),
            undo_stack=self.undo_stack,
        )
        self.controller.set_confirm_callback(self._confirm)
        self.controller.set_dirty_callback(self._on_dirty)
        self.controller.set_status_callback(self._show_status)

        self.view = BoardView(self.controller, self._on_drop_files)

        # Autosave
        self.scheduler = AutosaveScheduler(
            snapshot=lambda: self.storage.snapshot(self.controller.document),
            write=self.storage.write,
            delay_ms=s.autosave.delay_ms,
            enabled=s.autosave.enabled,
            parent=self,
        )
        self.scheduler.saved.connect(self._on_saved)
        self.scheduler.failed.connect(self._on_save_failed)

        # Tabs above the canvas
        self.tab_bar = QTabBar()
        self.tab_bar.setExpanding(False)
        self.tab_bar.setMovable(False)
        self.tab_bar.currentChanged.connect(self._on_tab_bar_changed)
        self.tab_bar.tabBarDoubleClicked.connect(self._rename_tab_at)
        self._syncing_tabs = False

        central = QWidget()
        layout = QVBoxLayout(central)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)
        layout.addWidget(self.tab_bar)
        layout.addWidget(self.view, 1)
        self.setCentralWidget(central)

        self._base_point_size = self.font().pointSizeF()
        self._status_message = "Drop images on the board or use File > Add Images."

        self._build_menus()
        self._build_toolbar()

        self._sync_tabs()
        self._apply_ui_scale()
        self._refresh_size_chip()
        self._refresh_status()

    # ---- startup ----

    def _initial_document(self) -> BoardDocument:
        """Open the board at the save location (or the last imported one) if there is one."""
        candidates = [self.storage.current_save_path]
        last = self.settings_manager.settings.storage.last_board
        if last:
            candidates.append(Path(last))
        for path in candidates:
            if path is None or not path.is_file():
                continue
            result = self.storage.load(path)
            if result.ok:
                trace(f"Opened {path}", "MAIN")
                return result.document
            log.warning("Could not open %s: %s", path, result.message)
        return BoardDocument.new()

    # ---- UI construction ----

    def _build_menus(self):
        """Build the application menu bar."""
        mb = self.menuBar()

        # File
        m_file = mb.addMenu("&File")

        add_images = QAction("Add Images...", self)
        add_images.setShortcut(QKeySequence.StandardKey.Open)
        add_images.triggered.connect(self.add_images_dialog)
        m_file.addAction(add_images)

        m_file.addSeparator()

        save_location = QAction("Set Save Location...", self)
        save_location.triggered.connect(self.save_location_dialog)
        m_file.addAction(save_location)

        save_now = QAction("Save Now", self)
        save_now.setShortcut(QKeySequence.StandardKey.Save)
        save_now.triggered.connect(self.save_now)
        m_file.addAction(save_now)

        self.autosave_act = QAction("Autosave", self)
        self.autosave_act.setCheckable(True)
        self.autosave_act.setChecked(self.scheduler.enabled)
        self.autosave_act.toggled.connect(self.set_autosave)
        m_file.addAction(self.autosave_act)

        m_file.addSeparator()

        export_act = QAction("Export Board...", self)
        export_act.triggered.connect(self.export_dialog)
        m_file.addAction(export_act)

        import_act = QAction("Import Board...", self)
        import_act.triggered.connect(self.import_dialog)
        m_file.addAction(import_act)

        m_file.addSeparator()

        exit_act = QAction("E&xit", self)
        exit_act.setShortcut(QKeySequence.StandardKey.Quit)
        exit_act.triggered.connect(self.close)
        m_file.addAction(exit_act)

        # Edit
        m_edit = mb.addMenu("&Edit")

        self.undo_act = QAction("Undo", self)
        self.undo_act.setShortcut(QKeySequence.StandardKey.Undo)
        self.undo_act.setEnabled(False)
        self.undo_stack.canUndoChanged.connect(self.undo_act.setEnabled)
        self.undo_act.triggered.connect(self.controller.undo)
        m_edit.addAction(self.undo_act)

        self.redo_act = QAction("Redo", self)
        self.redo_act.setShortcuts([QKeySequence("Ctrl+Y"), QKeySequence("Ctrl+Shift+Z")])
        self.redo_act.setEnabled(False)
        self.undo_stack.canRedoChanged.connect(self.redo_act.setEnabled)
        self.redo_act.triggered.connect(self.controller.redo)
        m_edit.addAction(self.redo_act)

        m_edit.addSeparator()

        copy_act = QAction("Copy Image", self)
        copy_act.setShortcut(QKeySequence.StandardKey.Copy)
        copy_act.triggered.connect(self.controller.copy_selected)
        m_edit.addAction(copy_act)

        paste_act = QAction("Paste Image", self)
        paste_act.setShortcut(QKeySequence.StandardKey.Paste)
        paste_act.triggered.connect(self.controller.paste)
        m_edit.addAction(paste_act)

        m_edit.addSeparator()

        front_act = QAction("Bring to Front", self)
        front_act.setShortcut("F")
        front_act.triggered.connect(self.controller.bring_selected_to_front)
        m_edit.addAction(front_act)

        lock_act = QAction("Lock / Unlock", self)
        lock_act.setShortcut("L")
        lock_act.triggered.connect(self.controller.toggle_lock)
        m_edit.addAction(lock_act)

        flip_h_act = QAction("Flip Horizontal", self)
        flip_h_act.setShortcut("H")
        flip_h_act.triggered.connect(self.controller.flip_horizontal)
        m_edit.addAction(flip_h_act)

        flip_v_act = QAction("Flip Vertical", self)
        flip_v_act.setShortcut("V")
        flip_v_act.triggered.connect(self.controller.flip_vertical)
        m_edit.addAction(flip_v_act)

        m_edit.addSeparator()

        delete_act = QAction("Delete Selected", self)
        delete_act.setShortcuts([QKeySequence(Qt.Key.Key_Delete), QKeySequence(Qt.Key.Key_Backspace)])
        delete_act.triggered.connect(self.controller.delete_selected)
        m_edit.addAction(delete_act)

        clear_act = QAction("Clear Tab...", self)
        clear_act.triggered.connect(self.controller.clear_tab)
        m_edit.addAction(clear_act)

        # View
        m_view = mb.addMenu("&View")

        zoom_in_act = QAction("Zoom In", self)
        zoom_in_act.setShortcut(QKeySequence.StandardKey.ZoomIn)
        zoom_in_act.triggered.connect(self.controller.zoom_in)
        m_view.addAction(zoom_in_act)

        zoom_out_act = QAction("Zoom Out", self)
        zoom_out_act.setShortcut(QKeySequence.StandardKey.ZoomOut)
        zoom_out_act.triggered.connect(self.controller.zoom_out)
        m_view.addAction(zoom_out_act)

        reset_act = QAction("Reset View", self)
        reset_act.setShortcut("0")
        reset_act.triggered.connect(self.controller.reset_view)
        m_view.addAction(reset_act)

        center_act = QAction("Center View", self)
        center_act.triggered.connect(self.controller.center_view)
        m_view.addAction(center_act)

        m_view.addSeparator()

        larger_act = QAction("Larger UI", self)
        larger_act.triggered.connect(lambda: self.change_ui_scale(UI_SCALE_STEP))
        m_view.addAction(larger_act)

        smaller_act = QAction("Smaller UI", self)
        smaller_act.triggered.connect(lambda: self.change_ui_scale(-UI_SCALE_STEP))
        m_view.addAction(smaller_act)

        # Help
        m_help = mb.addMenu("&Help")

        help_act = QAction("Help Contents", self)
        help_act.setShortcut(QKeySequence(Qt.Key.Key_F1))
        help_act.triggered.connect(lambda: self._show_help_dialog(0))
        m_help.addAction(help_act)

        shortcuts_act = QAction("Keyboard Shortcuts", self)
        shortcuts_act.triggered.connect(lambda: self._show_help_dialog(1))
        m_help.addAction(shortcuts_act)

        m_help.addSeparator()

        about_act = QAction("About Pinboard", self)
        about_act.triggered.connect(lambda: show_about_dialog(self))
        m_help.addAction(about_act)

    def _build_toolbar(self):
        """Build the tab toolbar with the size chip."""
        tb = QToolBar("Tabs")
        tb.setMovable(False)
        self.addToolBar(tb)

        add_tab = QAction("New Tab", self)
        add_tab.setShortcut(QKeySequence.StandardKey.AddTab)
        add_tab.triggered.connect(self.add_tab)
        tb.addAction(add_tab)

        dup_tab = QAction("Duplicate Tab", self)
        dup_tab.triggered.connect(self.duplicate_tab)
        tb.addAction(dup_tab)

        del_tab = QAction("Delete Tab", self)
        del_tab.triggered.connect(self.delete_tab)
        tb.addAction(del_tab)

        tb.addSeparator()

        self.size_chip = QLabel()
        self.size_chip.setContentsMargins(8, 0, 8, 0)
        tb.addWidget(self.size_chip)

    # ---- collaborator callbacks ----

    def _confirm(self, message: str) -> bool:
        answer = QMessageBox.question(
            self, "Confirm", message,
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
            QMessageBox.StandardButton.No,
        )
        return answer == QMessageBox.StandardButton.Yes

    def _on_dirty(self, reason: str, autosave_only: bool):
        self.scheduler.notify_dirty()
        if autosave_only:
            return
        self._sync_tabs()
        self._refresh_size_chip()
        self._show_status(reason)

    def _show_status(self, message: str):
        self._status_message = message
        self._refresh_status()

    def _refresh_status(self):
        path = self.storage.current_save_path
        saved = self.storage.last_saved_at
        parts = [
            self._status_message,
            f"Save: {path if path else '(not set)'}",
            f"Autosave: {'ON' if self.scheduler.enabled else 'OFF'}",
            f"Last saved: {saved.strftime('%H:%M:%S') if saved else '-'}",
        ]
        self.statusBar().showMessage(" | ".join(parts))

    def _refresh_size_chip(self):
        self.size_chip.setText(self.controller.size_summary())

    def _on_saved(self, result: SaveResult):
        trace(f"Saved {result.path}", "SAVE")
        self._show_status("Saved")

    def _on_save_failed(self, message: str):
        self._show_status(f"Save failed: {message.splitlines()[0] if message else ''}")

    # ---- tabs ----

    def _sync_tabs(self):
        """Rebuild the tab bar from the document."""
        self._syncing_tabs = True
        try:
            doc = self.controller.document
            while self.tab_bar.count() > len(doc.tabs):
                self.tab_bar.removeTab(self.tab_bar.count() - 1)
            while self.tab_bar.count() < len(doc.tabs):
                self.tab_bar.addTab("")
            for idx, tab in enumerate(doc.tabs):
                self.tab_bar.setTabText(idx, tab.name)
                self.tab_bar.setTabData(idx, tab.id)
                self.tab_bar.setTabToolTip(idx, f"{len(tab.items)} image(s)")
                if tab.id == doc.active_tab_id:
                    self.tab_bar.setCurrentIndex(idx)
        finally:
            self._syncing_tabs = False

    def _on_tab_bar_changed(self, index: int):
        if self._syncing_tabs or index < 0:
            return
        tab_id = self.tab_bar.tabData(index)
        if tab_id and tab_id != self.controller.document.active_tab_id:
            self.controller.switch_tab(tab_id)
            self._refresh_size_chip()
            self._show_status(f"Tab: {self.controller.active_tab.name}")

    def _rename_tab_at(self, index: int):
        if index < 0:
            return
        tab = self.controller.document.tab(self.tab_bar.tabData(index))
        if tab is None:
            return
        name, ok = QInputDialog.getText(self, "Rename Tab", "Tab name:", text=tab.name)
        if ok:
            self.controller.rename_tab(tab.id, name)

    def add_tab(self):
        self.controller.add_tab()

    def duplicate_tab(self):
        self.controller.duplicate_tab()

    def delete_tab(self):
        self.controller.delete_tab()

    # ---- images ----

    def add_images_dialog(self):
        exts = " ".join(f"*{e}" for e in self.controller.config.image_extensions)
        paths, _ = QFileDialog.getOpenFileNames(self, "Add Images", "", f"Images ({exts})")
        if paths:
            self.controller.add_images(paths)

    def _on_drop_files(self, paths: List[str]):
        board = self.controller.drop_files(paths)
        if board is not None:
            self.import_board(board)

    # ---- saving ----

    def save_location_dialog(self) -> bool:
        """Ask for a folder and file name, then save there immediately."""
        start = str(self.storage.save_folder or Path.home())
        folder = QFileDialog.getExistingDirectory(self, "Save Location", start)
        if not folder:
            return False
        name, ok = QInputDialog.getText(self, "Board File", "File name:", text=self.storage.file_name)
        if not ok:
            return False
        try:
            path = self.storage.set_folder(folder, name)
        except OSError as e:
            QMessageBox.critical(self, "Save location", str(e))
            return False

        st = self.settings_manager.settings.storage
        st.save_folder = folder
        st.file_name = normalize_file_name(name)
        self.settings_manager.save()
        self._show_status(f"Save location: {path}")
        self.scheduler.flush()
        return True

    def save_now(self):
        if self.storage.current_save_path is None:
            self.save_location_dialog()
            return
        self.controller.commit_camera()
        self.scheduler.flush()

    def set_autosave(self, enabled: bool):
        self.scheduler.set_enabled(enabled)
        self.settings_manager.settings.autosave.enabled = enabled
        self.settings_manager.save()
        if enabled:
            self.scheduler.notify_dirty(self.settings_manager.settings.autosave.immediate_delay_ms)
        self._refresh_status()

    def export_dialog(self):
        path, _ = QFileDialog.getSaveFileName(self, "Export Board", "board.json", "JSON (*.json)")
        if not path:
            return
        self.controller.commit_camera()
        result = self.storage.save(self.controller.document, Path(path))
        if not result.ok:
            QMessageBox.critical(self, "Export failed", result.message)
            return
        self._show_status(f"Exported: {path}")

    def import_dialog(self):
        path, _ = QFileDialog.getOpenFileName(self, "Import Board", "", "JSON (*.json)")
        if path:
            self.import_board(path)

    def import_board(self, path: str) -> bool:
        """Load a board file, keeping the current board if it is not valid."""
        result = self.storage.load(Path(path))
        if not result.ok:
            QMessageBox.warning(self, "Import failed", f"{os.path.basename(path)}: {result.message}")
            return False
        self.view.clear_pixmap_cache()
        self.controller.load_document(result.document)
        self.settings_manager.settings.storage.last_board = str(path)
        self._apply_ui_scale()
        self._sync_tabs()
        self._refresh_size_chip()
        self._show_status(f"Imported: {path}")
        return True

    # ---- UI scale ----

    def change_ui_scale(self, delta: float):
        self.controller.set_ui_scale(self.controller.document.ui.scale + delta)
        self._apply_ui_scale()

    def _apply_ui_scale(self):
        font = self.font()
        font.setPointSizeF(self._base_point_size * self.controller.document.ui.scale)
        self.setFont(font)

    # ---- help ----

    def _show_help_dialog(self, tab: int = 0):
        dlg = HelpDialog(self, initial_tab=tab)
        dlg.exec()

    # ---- shutdown ----

    def closeEvent(self, event):
        trace("Closing main window", "MAIN")
        self.scheduler.shutdown()
        if self.scheduler.enabled:
            self.controller.commit_camera()
            snap = self.storage.snapshot(self.controller.document)
            if snap is not None:
                self.storage.write(snap)
        self.settings_manager.save()
        super().closeEvent(event)


def main():
    """Application entry point."""
    settings_manager = get_settings()
    settings_manager.ensure_file_complete()

    log_cfg = settings_manager.settings.logging
    setup_logging(log_cfg.level, log_cfg.log_file or None)
    trace("Application starting", "MAIN")

    app = QApplication(sys.argv)
    app.setApplicationName("Pinboard")
    app.aboutToQuit.connect(close_log)

    w = MainWindow(settings_manager)
    w.resize(1400, 900)
    w.show()
    trace("Entering event loop", "MAIN")
    sys.exit(app.exec())


if __name__ == "__main__":
    # Set up global exception handler to catch crashes
    def excepthook(exc_type, exc_value, exc_tb):
        trace("UNCAUGHT EXCEPTION:", "CRASH")
        log.critical("".join(traceback.format_exception(exc_type, exc_value, exc_tb)))
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = excepthook

    try:
        main()
    except Exception as e:
        trace(f"FATAL: {type(e).__name__}: {e}", "CRASH")
        trace_exception("Fatal exception")
        close_log()
        raise
