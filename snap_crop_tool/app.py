"""
Application entry point and dark-theme stylesheet.

Usage:
    python -m snap_crop_tool
    snap-crop-tool          (after pip install)

Set ``SNAP_CROP_TOOL_LOG=DEBUG`` for verbose logging.
"""

import logging
import os
import sys

from PyQt6.QtWidgets import QApplication

from snap_crop_tool.main_window import MainWindow

DARK_STYLESHEET = """
    QMainWindow { background: #0b0c10; }
    QWidget { background: #15171c; color: #ddd; font-size: 10pt; }
    QListWidget { background: #0f1115; border: 1px solid #333; }
    QListWidget::item { padding: 4px; }
    QListWidget::item:selected { background: #3a6ea5; }
    QGroupBox { border: 1px solid #444; border-radius: 4px; margin-top: 8px; padding-top: 12px; font-weight: bold; }
    QGroupBox::title { subcontrol-origin: margin; left: 8px; padding: 0 4px; }
    QLineEdit { background: #0f1115; border: 1px solid #444; border-radius: 3px; padding: 3px; }
    QPushButton { background: #2a2d34; border: 1px solid #444; border-radius: 4px; padding: 6px 12px; }
    QPushButton:hover { background: #353942; }
    QToolBar { background: #1b1e24; border-bottom: 1px solid #333; spacing: 4px; padding: 4px; }
    QStatusBar { background: #1b1e24; border-top: 1px solid #333; }
    QMenu { background: #1b1e24; border: 1px solid #444; }
    QMenu::item:selected { background: #3a6ea5; }
"""


def main():
    logging.basicConfig(
        level=os.environ.get("SNAP_CROP_TOOL_LOG", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = QApplication(sys.argv)
    app.setStyleSheet(DARK_STYLESHEET)

    window = MainWindow()
    window.show()

    try:
        sys.exit(app.exec())
    except (SystemExit, KeyboardInterrupt):
        pass


if __name__ == "__main__":
    main()
