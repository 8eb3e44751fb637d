"""
help_dialog.py

Help system dialogs for Pinboard.

Provides a tabbed help browser (Quick Start, Keyboard Shortcuts) and an
About dialog.
"""

from __future__ import annotations

from PyQt6.QtWidgets import (
    QDialog,
    QDialogButtonBox,
    QMessageBox,
    QTabWidget,
    QTextBrowser,
    QVBoxLayout,
)


class HelpDialog(QDialog):
    """Tabbed help dialog for Pinboard.

    Args:
        parent: Parent widget.
        initial_tab: Index of the tab to display on open
            (0=Quick Start, 1=Keyboard Shortcuts).
    """

    def __init__(self, parent=None, initial_tab: int = 0):
        super().__init__(parent)
        self.setWindowTitle("Pinboard Help")
        self.setMinimumSize(560, 480)
        self.resize(640, 560)

        layout = QVBoxLayout(self)

        self.tabs = QTabWidget()
        self.tabs.addTab(_browser(_QUICK_START_HTML), "Quick Start")
        self.tabs.addTab(_browser(_SHORTCUTS_HTML), "Keyboard Shortcuts")
        self.tabs.setCurrentIndex(initial_tab)
        layout.addWidget(self.tabs)

        buttons = QDialogButtonBox(QDialogButtonBox.StandardButton.Close)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)


def _browser(html: str) -> QTextBrowser:
    browser = QTextBrowser()
    browser.setOpenExternalLinks(True)
    browser.setHtml(html)
    return browser


def show_about_dialog(parent=None):
    """Show the About Pinboard dialog."""
    QMessageBox.about(
        parent,
        "About Pinboard",
        "<h2>Pinboard</h2>"
        "<p>Arrange images on an infinite, zoomable board.</p>"
        "<p>Built with PyQt6 and Pillow.</p>",
    )


# ── Static HTML content ──────────────────────────────

_QUICK_START_HTML = """\
<h2>Quick Start</h2>

<h3>1. Add Images</h3>
<p>Drop image files on the board, paste an image with <b>Ctrl+V</b>, or use
<b>File &rarr; Add Images</b>. New images appear in the middle of the view.
Dropping a board <code>.json</code> file imports that board.</p>

<h3>2. Move Around</h3>
<ul>
  <li><b>Mouse wheel</b> zooms around the pointer.</li>
  <li>Hold <b>Space</b> and drag to pan.</li>
  <li><b>Double-click</b> an image to fit it to the view.</li>
  <li><b>0</b> resets the view.</li>
</ul>

<h3>3. Arrange</h3>
<p>Click an image to select it and bring it to the front, drag it to move
it, and drag the square in its bottom-right corner to resize it. Locked
images can be selected but not moved or resized.</p>

<h3>4. Tabs</h3>
<p>Each tab keeps its own images and view. Double-click a tab to rename it.
The last remaining tab cannot be deleted.</p>

<h3>5. Saving</h3>
<p>Pick a folder with <b>File &rarr; Set Save Location</b>. <b>Save Now</b>
writes the board immediately; with <b>Autosave</b> on, changes are saved
shortly after you stop editing. Pasted images are stored in the
<code>images</code> folder next to the board file.</p>
"""

_SHORTCUTS_HTML = """\
<h2>Keyboard Shortcuts</h2>

<table cellpadding="6" cellspacing="0" border="1"
       style="border-collapse:collapse; width:100%;">
  <tr style="background:#f0f0f0;">
    <th>Category</th><th>Shortcut</th><th>Action</th>
  </tr>
  <tr><td rowspan="6"><b>Images</b></td>
      <td><code>F</code></td><td>Bring selected to front</td></tr>
  <tr><td><code>L</code></td><td>Lock / unlock selected</td></tr>
  <tr><td><code>H</code></td><td>Flip horizontally</td></tr>
  <tr><td><code>V</code></td><td>Flip vertically</td></tr>
  <tr><td><code>Delete</code> / <code>Backspace</code></td><td>Delete selected</td></tr>
  <tr><td><code>Ctrl+C</code> / <code>Ctrl+V</code></td><td>Copy / paste image</td></tr>

  <tr><td rowspan="2"><b>Editing</b></td>
      <td><code>Ctrl+Z</code></td><td>Undo</td></tr>
  <tr><td><code>Ctrl+Y</code></td><td>Redo</td></tr>

  <tr><td rowspan="4"><b>View</b></td>
      <td><code>Space</code> + drag</td><td>Pan</td></tr>
  <tr><td><code>0</code></td><td>Reset view</td></tr>
  <tr><td><code>Ctrl++</code></td><td>Zoom in</td></tr>
  <tr><td><code>Ctrl+-</code></td><td>Zoom out</td></tr>

  <tr><td rowspan="2"><b>File</b></td>
      <td><code>Ctrl+S</code></td><td>Save now</td></tr>
  <tr><td><code>Ctrl+T</code></td><td>New tab</td></tr>

  <tr><td><b>Help</b></td>
      <td><code>F1</code></td><td>Open this Help dialog</td></tr>
</table>
"""
