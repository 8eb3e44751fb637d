"""
autosave.py

Debounced autosave: coalesces bursts of "document changed" notifications
into a single background write.

Every ``notify_dirty()`` restarts a single-shot timer and bumps a generation
counter; a timeout only saves when its generation is still the latest, so a
cancelled or superseded request can never write. The snapshot is taken on
the GUI thread when the save begins, the write itself runs on a QThread.
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Callable, Optional

from PyQt6.QtCore import QObject, QThread, QTimer, pyqtSignal

from debug_trace import trace
from storage import SaveResult

log = logging.getLogger(__name__)


class SaveWorker(QObject):
    """
    Background worker that writes one snapshot.

    Signals:
        finished(object): Emitted with the write function's result on success
        failed(str): Emitted with an error message on failure
    """

    finished = pyqtSignal(object)
    failed = pyqtSignal(str)

    def __init__(self, write: Callable[[Any], Any], snapshot: Any):
        super().__init__()
        self.write = write
        self.snapshot = snapshot

    def run(self):
        """Execute the write."""
        try:
            result = self.write(self.snapshot)
        except Exception as e:
            msg = f"{e}\n\n{traceback.format_exc()}"
            self.failed.emit(msg)
            return

        if isinstance(result, SaveResult) and not result.ok:
            self.failed.emit(result.message or "Save failed")
        else:
            self.finished.emit(result)


class AutosaveScheduler(QObject):
    """
    Turns a stream of dirty notifications into at most one save per quiet period.

    Args:
        snapshot: Called on the GUI thread when a save begins; returns the
            data to write, or None when there is nowhere to save.
        write: Called on a worker thread with the snapshot.
        delay_ms: Default debounce delay. Default: 500 ms.
        enabled: Whether ``notify_dirty()`` schedules anything.

    Signals:
        save_started(): A write has been handed to the worker thread
        saved(object): The write finished; carries its result
        failed(str): The write failed; scheduling continues
    """

    save_started = pyqtSignal()
    saved = pyqtSignal(object)
    failed = pyqtSignal(str)

    def __init__(self, snapshot: Callable[[], Any], write: Callable[[Any], Any],
                 delay_ms: int = 500, enabled: bool = False, parent=None):
        super().__init__(parent)
        self._snapshot = snapshot
        self._write = write
        self.delay_ms = delay_ms
        self._enabled = enabled

        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.timeout.connect(self._on_timeout)

        # Cancellation token: a timeout saves only if it carries the latest generation
        self._generation = 0
        self._armed: Optional[int] = None

        self._thread: Optional[QThread] = None
        self._worker: Optional[SaveWorker] = None
        self._rerun = False

    # ---- state ----

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled
        if not enabled:
            self.cancel()

    @property
    def is_pending(self) -> bool:
        """True while a debounced save is waiting for its timer."""
        return self._armed is not None

    @property
    def is_saving(self) -> bool:
        return self._thread is not None

    # ---- scheduling ----

    def notify_dirty(self, delay_ms: Optional[int] = None) -> None:
        """Request a save after *delay_ms*, superseding any pending request."""
        if not self._enabled:
            return
        self._generation += 1
        self._armed = self._generation
        self._timer.start(self.delay_ms if delay_ms is None else delay_ms)

    def cancel(self) -> None:
        """Drop the pending request; a write already running is not interrupted."""
        self._timer.stop()
        self._generation += 1
        self._armed = None
        self._rerun = False

    def flush(self) -> None:
        """Save now, bypassing the debounce (manual save)."""
        self.cancel()
        self._start_save()

    def _on_timeout(self):
        if self._armed != self._generation:
            trace("Stale autosave timeout ignored", "SAVE")
            return
        self._armed = None
        self._start_save()

    # ---- worker ----

    def _start_save(self):
        if self.is_saving:
            # One write at a time; the newest state is written right after
            self._rerun = True
            return

        snap = self._snapshot()
        if snap is None:
            log.info("Nothing to save: no save location set")
            return

        self._thread = QThread()
        self._worker = SaveWorker(self._write, snap)
        self._worker.moveToThread(self._thread)

        self._thread.started.connect(self._worker.run)
        self._worker.finished.connect(self._on_worker_finished)
        self._worker.failed.connect(self._on_worker_failed)

        self._worker.finished.connect(self._thread.quit)
        self._worker.failed.connect(self._thread.quit)
        self._thread.finished.connect(self._on_thread_finished)

        trace("Autosave write started", "SAVE")
        self.save_started.emit()
        self._thread.start()

    def _on_worker_finished(self, result: Any):
        self.saved.emit(result)

    def _on_worker_failed(self, message: str):
        log.error("Save failed: %s", message)
        self.failed.emit(message)

    def _on_thread_finished(self):
        thread, worker = self._thread, self._worker
        self._thread = None
        self._worker = None
        if worker is not None:
            worker.deleteLater()
        if thread is not None:
            thread.deleteLater()

        if self._rerun:
            self._rerun = False
            self._start_save()

    def shutdown(self, timeout_ms: int = 5000) -> None:
        """Cancel pending saves and wait for a running write to finish."""
        self.cancel()
        if self._thread is not None:
            self._thread.quit()
            self._thread.wait(timeout_ms)
