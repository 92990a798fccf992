"""
Main application window.

Orchestrates folder selection, the image queue, snap settings, the crop
editor, and background saving of accepted crops.
"""

import logging
from pathlib import Path

from PyQt6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout,
    QListWidget, QListWidgetItem, QLabel, QFileDialog,
    QSplitter, QGroupBox, QMessageBox, QStatusBar, QToolBar,
    QCheckBox, QLineEdit, QSlider, QApplication, QScrollArea, QMenu,
)
from PyQt6.QtCore import Qt, QSize
from PyQt6.QtGui import QPixmap, QIcon, QAction, QKeySequence, QShortcut

from snap_crop_tool.config import APP_NAME
from snap_crop_tool.crop_widget import CropOverlayWidget, ImageLoaderThread, SaveCropsThread, pil_to_qpixmap
from snap_crop_tool.image_io import CropIOError, delete_crop, list_crops, load_thumbnail
from snap_crop_tool.models import describe_rect
from snap_crop_tool.session import CropSession
from snap_crop_tool.settings import JsonSettingsStore, SettingsStore, SnapConfig, load_snap_config, save_snap_config

logger = logging.getLogger(__name__)

_STRENGTH_STEPS = 100
_THUMB_SIZE = 96


class MainWindow(QMainWindow):
    def __init__(self, store: SettingsStore | None = None):
        super().__init__()
        self.setWindowTitle("Snap Crop Tool")
        self.setMinimumSize(1100, 720)

        # Screen-aware startup size: 90% of the available screen
        screen = QApplication.primaryScreen()
        if screen is not None:
            avail = screen.availableGeometry()
            self.resize(max(1100, int(avail.width() * 0.9)), max(720, int(avail.height() * 0.9)))

        self._store = store or JsonSettingsStore()
        self._snap_config = load_snap_config(self._store)
        self._session = CropSession()
        self._session.editor.settings = self._snap_config.to_settings()
        self._loader: ImageLoaderThread | None = None
        self._saver: SaveCropsThread | None = None
        self._thumbnails: dict[Path, QIcon] = {}

        self._build_ui()
        self._update_button_states()

    # =========================================================================
    # UI construction
    # =========================================================================

    def _build_ui(self):
        self._build_toolbar()

        central = QWidget()
        self.setCentralWidget(central)
        main_layout = QHBoxLayout(central)
        main_layout.setContentsMargins(4, 4, 4, 4)

        splitter = QSplitter(Qt.Orientation.Horizontal)
        main_layout.addWidget(splitter)

        splitter.addWidget(self._build_left_panel())

        # Center panel — crop editor
        center_panel = QWidget()
        center_layout = QVBoxLayout(center_panel)
        center_layout.setContentsMargins(0, 0, 0, 0)
        header = QHBoxLayout()
        self._image_name_label = QLabel("No image loaded")
        self._image_name_label.setStyleSheet("font-weight: bold;")
        header.addWidget(self._image_name_label, stretch=1)
        self._resolution_label = QLabel("Resolution: —")
        header.addWidget(self._resolution_label)
        self._active_label = QLabel("Selection: —")
        header.addWidget(self._active_label)
        center_layout.addLayout(header)

        self._crop_widget = CropOverlayWidget(self._session.editor)
        self._crop_widget.selections_changed.connect(self._on_selections_changed)
        center_layout.addWidget(self._crop_widget, stretch=1)
        splitter.addWidget(center_panel)

        splitter.addWidget(self._build_right_panel())
        splitter.setSizes([220, 900, 260])

        self._status = QStatusBar()
        self.setStatusBar(self._status)
        self._show_folders()

        # --- Keyboard Shortcuts ---
        QShortcut(QKeySequence(Qt.Key.Key_Return), self, self._accept_image)
        QShortcut(QKeySequence(Qt.Key.Key_Enter), self, self._accept_image)

    def _build_toolbar(self):
        toolbar = QToolBar("Main")
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        act_input = QAction("📂 Load Folder", self)
        act_input.triggered.connect(self._select_input_folder)
        toolbar.addAction(act_input)
        self._act_input = act_input

        act_output = QAction("💾 Output Folder", self)
        act_output.triggered.connect(self._select_output_folder)
        toolbar.addAction(act_output)

        toolbar.addSeparator()

        act_clear = QAction("✖ Clear Selections", self)
        act_clear.triggered.connect(self._clear_selections)
        toolbar.addAction(act_clear)

        act_skip = QAction("⏭ Skip", self)
        act_skip.triggered.connect(self._skip_image)
        toolbar.addAction(act_skip)
        self._act_skip = act_skip

        act_accept = QAction("✔ Accept", self)
        act_accept.setToolTip("Save all selections of this image and move on (Enter)")
        act_accept.triggered.connect(self._accept_image)
        toolbar.addAction(act_accept)
        self._act_accept = act_accept

    def _build_left_panel(self) -> QWidget:
        left_panel = QWidget()
        left_layout = QVBoxLayout(left_panel)
        left_layout.setContentsMargins(0, 0, 0, 0)

        left_layout.addWidget(QLabel("Images:"))
        self._image_list = QListWidget()
        self._image_list.setIconSize(QSize(_THUMB_SIZE, _THUMB_SIZE))
        self._image_list.currentRowChanged.connect(self._on_image_selected)
        left_layout.addWidget(self._image_list)

        self._counter_label = QLabel("")
        self._counter_label.setStyleSheet("color: #aaa; font-size: 8pt; padding: 2px;")
        left_layout.addWidget(self._counter_label)

        return left_panel

    def _build_right_panel(self) -> QWidget:
        inner = QWidget()
        inner_layout = QVBoxLayout(inner)
        inner_layout.setContentsMargins(0, 0, 0, 0)

        inner_layout.addWidget(self._build_snap_group())
        inner_layout.addWidget(self._build_crops_group(), stretch=1)
        inner_layout.addWidget(self._build_shortcuts_group())

        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setWidget(inner)
        scroll.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        scroll.setFrameShape(scroll.Shape.NoFrame)

        right_panel = QWidget()
        right_panel.setFixedWidth(260)
        right_layout = QVBoxLayout(right_panel)
        right_layout.setContentsMargins(4, 0, 0, 0)
        right_layout.addWidget(scroll)
        return right_panel

    def _build_snap_group(self) -> QGroupBox:
        cfg = self._snap_config
        snap_group = QGroupBox("Snapping")
        layout = QVBoxLayout(snap_group)

        self._snap_resolution = QCheckBox("Snap to resolution buckets")
        self._snap_resolution.setChecked(cfg.snap_resolution)
        self._snap_resolution.toggled.connect(self._on_snap_setting_changed)
        layout.addWidget(self._snap_resolution)

        self._snap_aspect = QCheckBox("Snap to aspect ratios")
        self._snap_aspect.setChecked(cfg.snap_aspect)
        self._snap_aspect.toggled.connect(self._on_snap_setting_changed)
        layout.addWidget(self._snap_aspect)

        layout.addWidget(QLabel("Buckets (px):"))
        self._bucket_input = QLineEdit(cfg.bucket_text)
        self._bucket_input.setPlaceholderText("512, 768, 1024")
        self._bucket_input.editingFinished.connect(self._on_snap_setting_changed)
        layout.addWidget(self._bucket_input)

        layout.addWidget(QLabel("Aspect ratios:"))
        self._aspect_input = QLineEdit(cfg.aspect_text)
        self._aspect_input.setPlaceholderText("1:1, 4:3, 16:9")
        self._aspect_input.editingFinished.connect(self._on_snap_setting_changed)
        layout.addWidget(self._aspect_input)

        strength_row = QHBoxLayout()
        strength_row.addWidget(QLabel("Strength:"))
        self._strength_slider = QSlider(Qt.Orientation.Horizontal)
        self._strength_slider.setRange(0, _STRENGTH_STEPS)
        self._strength_slider.setValue(round(cfg.strength * _STRENGTH_STEPS))
        self._strength_slider.valueChanged.connect(self._on_snap_setting_changed)
        strength_row.addWidget(self._strength_slider, stretch=1)
        self._strength_label = QLabel(f"{cfg.strength:.2f}")
        self._strength_label.setFixedWidth(32)
        strength_row.addWidget(self._strength_label)
        layout.addLayout(strength_row)

        return snap_group

    def _build_crops_group(self) -> QGroupBox:
        self._crops_group = QGroupBox("Saved Crops (0)")
        layout = QVBoxLayout(self._crops_group)
        self._crop_list = QListWidget()
        self._crop_list.setIconSize(QSize(_THUMB_SIZE // 2, _THUMB_SIZE // 2))
        self._crop_list.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)
        self._crop_list.customContextMenuRequested.connect(self._show_crop_menu)
        layout.addWidget(self._crop_list)
        return self._crops_group

    def _build_shortcuts_group(self) -> QGroupBox:
        group = QGroupBox("Shortcuts")
        layout = QVBoxLayout(group)
        text = QLabel(
            "Drag — draw selection\n"
            "Ctrl+Drag — move selection\n"
            "Alt (hold) — resize handles\n"
            "Double/right-click — delete selection\n"
            "Esc — clear selections\n"
            "Enter — accept image"
        )
        text.setStyleSheet("color: #aaa; font-size: 8pt;")
        layout.addWidget(text)
        return group

    # =========================================================================
    # Folder selection
    # =========================================================================

    def _select_input_folder(self):
        start = self._session.input_dir or Path.home()
        folder = QFileDialog.getExistingDirectory(self, "Select Input Folder", str(start))
        if not folder:
            return
        try:
            images = self._session.load_folder(Path(folder))
        except CropIOError as exc:
            QMessageBox.warning(self, "Load Failed", str(exc))
            return
        if images is None:
            self._status.showMessage("Wait for the current save to finish before loading a folder")
            return
        self._thumbnails.clear()
        self._show_folders()
        self._rebuild_image_list()
        self._refresh_crops()

    def _select_output_folder(self):
        start = self._session.target_dir or Path.home()
        folder = QFileDialog.getExistingDirectory(self, "Select Output Folder", str(start))
        if not folder:
            return
        self._session.set_output_dir(Path(folder))
        self._show_folders()
        self._refresh_crops()

    def _show_folders(self):
        inp = self._session.input_dir or "—"
        out = self._session.target_dir or "—"
        self._status.showMessage(f"Input: {inp}   |   Output: {out}")

    # =========================================================================
    # Image queue
    # =========================================================================

    def _rebuild_image_list(self):
        """Repopulate the list from the session queue and show the current image."""
        self._image_list.blockSignals(True)
        self._image_list.clear()
        for entry in self._session.images:
            item = QListWidgetItem(entry.name)
            icon = self._thumbnail(entry.path)
            if icon is not None:
                item.setIcon(icon)
            self._image_list.addItem(item)
        self._image_list.setCurrentRow(self._session.current_index)
        self._image_list.blockSignals(False)
        self._show_current_image()

    def _thumbnail(self, path: Path) -> QIcon | None:
        """Scaled-down icon for *path*, decoded once per folder load."""
        if path not in self._thumbnails:
            try:
                self._thumbnails[path] = QIcon(pil_to_qpixmap(load_thumbnail(path, _THUMB_SIZE)))
            except CropIOError:
                return None
        return self._thumbnails[path]

    def _remove_row(self, row: int):
        """Drop the list row of an image the session just advanced past."""
        self._image_list.blockSignals(True)
        self._image_list.takeItem(row)
        self._image_list.setCurrentRow(self._session.current_index)
        self._image_list.blockSignals(False)
        self._show_current_image()

    def _on_image_selected(self, row: int):
        if self._session.editor.busy:
            return
        self._session.select(row)
        self._show_current_image()

    def _show_current_image(self):
        entry = self._session.current
        self._update_counter()
        self._update_button_states()

        if entry is None:
            self._image_name_label.setText("No image loaded")
            self._resolution_label.setText("Resolution: —")
            self._crop_widget.clear()
            return

        self._image_name_label.setText(entry.name)
        self._resolution_label.setText("Resolution: —")
        self._crop_widget.clear()
        self._crop_widget.set_loading(True)

        # Cancel any previous loader
        if self._loader is not None:
            try:
                self._loader.finished.disconnect()
                self._loader.error.disconnect()
            except (TypeError, RuntimeError):
                pass  # Already disconnected or destroyed
            if self._loader.isRunning():
                self._loader.quit()
                self._loader.wait(500)

        row = self._session.current_index
        self._loader = ImageLoaderThread(entry.path, self)
        self._loader.finished.connect(lambda pixmap, r=row: self._on_image_loaded(r, pixmap))
        self._loader.error.connect(self._on_image_load_error)
        self._loader.start()

    def _on_image_loaded(self, row: int, pixmap: QPixmap):
        """Called when background image loading completes."""
        if row != self._session.current_index:
            return  # User navigated away before loading finished
        self._crop_widget.set_image(pixmap)
        self._resolution_label.setText(f"Resolution: {pixmap.width()} × {pixmap.height()}")

    def _on_image_load_error(self, error: str):
        """Called when background image loading fails."""
        self._crop_widget.set_loading(False)
        logger.error("Failed to load image: %s", error)
        self._status.showMessage(f"Failed to load image: {error}")

    def _update_counter(self):
        remaining = len(self._session.images)
        self._counter_label.setText(f"{remaining} image(s) remaining")

    def _update_button_states(self):
        ready = self._session.current is not None and not self._session.editor.busy
        self._act_accept.setEnabled(ready)
        self._act_skip.setEnabled(ready)
        self._act_input.setEnabled(not self._session.editor.busy)

    # =========================================================================
    # Selections
    # =========================================================================

    def _on_selections_changed(self):
        label = describe_rect(self._session.editor.active_rect)
        self._active_label.setText(f"Selection: {label or '—'}")

    def _clear_selections(self):
        self._session.editor.reset_selections()
        self._crop_widget.refresh()

    # =========================================================================
    # Snap settings
    # =========================================================================

    def _on_snap_setting_changed(self, *args):
        """Called when any snap control changes; applies and persists the settings."""
        strength = self._strength_slider.value() / _STRENGTH_STEPS
        self._strength_label.setText(f"{strength:.2f}")
        self._snap_config = SnapConfig(
            snap_resolution=self._snap_resolution.isChecked(),
            snap_aspect=self._snap_aspect.isChecked(),
            bucket_text=self._bucket_input.text(),
            aspect_text=self._aspect_input.text(),
            strength=strength,
        )
        self._session.editor.settings = self._snap_config.to_settings()
        save_snap_config(self._store, self._snap_config)

    # =========================================================================
    # Accept / skip
    # =========================================================================

    def _accept_image(self):
        session = self._session
        if session.current is None or session.editor.busy:
            return
        if QApplication.focusWidget() in (self._bucket_input, self._aspect_input):
            return
        if session.target_dir is None:
            QMessageBox.warning(self, "No Output Folder", "Select an output folder first.")
            return

        request = session.save_request()
        if request is None:
            row = session.current_index
            session.advance()
            self._remove_row(row)
            return

        session.begin_save()
        self._update_button_states()
        self._status.showMessage(f"Saving {len(request.rects)} crop(s) of {session.current.name}…")
        self._saver = SaveCropsThread(request.image_path, request.rects, request.output_dir, self)
        self._saver.finished.connect(self._on_crops_saved)
        self._saver.error.connect(self._on_crops_save_error)
        self._saver.start()

    def _on_crops_saved(self, saved: list):
        self._session.end_save()
        self._status.showMessage(f"Saved {len(saved)} crop(s)")
        row = self._session.current_index
        self._session.advance()
        self._remove_row(row)
        self._refresh_crops()

    def _on_crops_save_error(self, error: str):
        self._session.end_save()
        self._update_button_states()
        self._status.showMessage("Saving crops failed")
        QMessageBox.warning(self, "Save Failed", f"Could not save crops:\n{error}")
        self._refresh_crops()

    def _skip_image(self):
        if self._session.current is None or self._session.editor.busy:
            return
        row = self._session.current_index
        self._session.skip()
        self._remove_row(row)

    # =========================================================================
    # Saved crops
    # =========================================================================

    def _refresh_crops(self):
        self._crop_list.clear()
        directory = self._session.target_dir
        if directory is None:
            self._crops_group.setTitle("Saved Crops (0)")
            return
        try:
            crops = list_crops(directory)
        except CropIOError as exc:
            self._status.showMessage(str(exc))
            return
        self._crops_group.setTitle(f"Saved Crops ({len(crops)})")
        for crop in crops:
            item = QListWidgetItem(QIcon(str(crop.path)), crop.name)
            item.setData(Qt.ItemDataRole.UserRole, str(crop.path))
            self._crop_list.addItem(item)

    def _show_crop_menu(self, pos):
        item = self._crop_list.itemAt(pos)
        if item is None:
            return
        menu = QMenu(self)
        act_delete = menu.addAction("Delete crop")
        if menu.exec(self._crop_list.mapToGlobal(pos)) is act_delete:
            self._delete_crop(Path(item.data(Qt.ItemDataRole.UserRole)))

    def _delete_crop(self, path: Path):
        try:
            delete_crop(path)
        except CropIOError as exc:
            QMessageBox.warning(self, "Delete Failed", str(exc))
        self._refresh_crops()

    def closeEvent(self, event):
        """Let an outstanding save finish before closing."""
        if self._saver is not None and self._saver.isRunning():
            self._saver.wait()
        logger.debug("%s closing", APP_NAME)
        super().closeEvent(event)
