"""
Interactive crop-overlay widget and Qt image helpers.

This module contains everything that touches both Qt **and** image display:
``pil_to_qpixmap``, ``load_pixmap``, the background ``ImageLoaderThread`` and
``SaveCropsThread``, and the ``CropOverlayWidget`` that draws the rectangles
and forwards pointer/key events to a ``RectangleEditor``.
"""

from pathlib import Path

from PIL import Image
from PyQt6.QtWidgets import QWidget, QSizePolicy
from PyQt6.QtCore import Qt, QRectF, QPointF, pyqtSignal, QThread
from PyQt6.QtGui import (
    QPainter, QPixmap, QColor, QPen, QBrush, QImage,
    QFocusEvent, QKeyEvent, QMouseEvent, QPaintEvent, QResizeEvent,
)

from snap_crop_tool.editor import KEY_CLEAR, KEY_RESIZE, Idle, Moving, RectangleEditor, Resizing
from snap_crop_tool.image_io import CropIOError, save_crops
from snap_crop_tool.models import CropRect, describe_rect


# =============================================================================
# Qt ↔ PIL helpers
# =============================================================================

def pil_to_qpixmap(pil_img: Image.Image) -> QPixmap:
    """Convert a PIL Image to QPixmap."""
    img_rgb = pil_img.convert("RGBA")
    data = img_rgb.tobytes("raw", "RGBA")
    qimg = QImage(data, img_rgb.width, img_rgb.height, QImage.Format.Format_RGBA8888)
    return QPixmap.fromImage(qimg)


def load_pixmap(path: Path) -> QPixmap:
    """Load a QPixmap, decoding through Pillow when Qt lacks the format plugin."""
    pixmap = QPixmap(str(path))
    if not pixmap.isNull():
        return pixmap
    with Image.open(path) as pil_img:
        return pil_to_qpixmap(pil_img)


# =============================================================================
# Background workers
# =============================================================================

class ImageLoaderThread(QThread):
    """Background thread for decoding the image to display."""
    finished = pyqtSignal(QPixmap)
    error = pyqtSignal(str)

    def __init__(self, path: Path, parent=None):
        super().__init__(parent)
        self._path = path

    def run(self):
        try:
            pixmap = load_pixmap(self._path)
            self.finished.emit(pixmap)
        except Exception as e:
            self.error.emit(str(e))


class SaveCropsThread(QThread):
    """Background thread writing one image's crops to the output folder."""
    finished = pyqtSignal(list)
    error = pyqtSignal(str)

    def __init__(self, image_path: Path, rects: list[CropRect], output_dir: Path, parent=None):
        super().__init__(parent)
        self._image_path = image_path
        self._rects = rects
        self._output_dir = output_dir

    def run(self):
        try:
            saved = save_crops(self._image_path, self._rects, self._output_dir)
            self.finished.emit(saved)
        except CropIOError as e:
            self.error.emit(str(e))


# =============================================================================
# Crop Overlay Widget — draws rectangles over the image, drives the editor
# =============================================================================

class CropOverlayWidget(QWidget):
    """Displays an image and lets the operator draw, move, resize and delete rectangles.

    Plain drag draws, Ctrl+drag moves, holding Alt shows handles for
    resizing, double-click or right-click deletes, Escape clears.
    """

    selections_changed = pyqtSignal()

    def __init__(self, editor: RectangleEditor, parent=None):
        super().__init__(parent)
        self.setMinimumSize(400, 300)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)
        self.setMouseTracking(True)

        self._editor = editor
        self._pixmap: QPixmap | None = None
        self._img_w = 0
        self._img_h = 0
        self._loading = False

    def set_loading(self, loading: bool):
        """Show/hide loading indicator."""
        self._loading = loading
        self.update()

    def set_image(self, pixmap: QPixmap):
        """Set the image to display; its rectangles start empty."""
        self._loading = False
        self._pixmap = pixmap
        self._img_w = pixmap.width()
        self._img_h = pixmap.height()
        self._editor.set_image_size(self._img_w, self._img_h)
        self._update_display_mapping()
        self.setFocus()
        self.update()
        self.selections_changed.emit()

    def has_image(self) -> bool:
        return self._pixmap is not None

    def clear(self):
        self._pixmap = None
        self._img_w = 0
        self._img_h = 0
        self._editor.set_image_size(0, 0)
        self.update()
        self.selections_changed.emit()

    def refresh(self):
        """Repaint after the editor was changed from outside the widget."""
        self.update()
        self.selections_changed.emit()

    # --- Coordinate mapping ---

    def _update_display_mapping(self):
        """Fit the image in the widget with letterboxing and tell the editor where it is."""
        if not self._pixmap or self._img_w == 0 or self._img_h == 0:
            return
        ww, wh = self.width(), self.height()
        scale = min(ww / self._img_w, wh / self._img_h)
        disp_w = self._img_w * scale
        disp_h = self._img_h * scale
        self._editor.set_display_box((ww - disp_w) / 2, (wh - disp_h) / 2, disp_w, disp_h)

    def _view_rect(self, rect: CropRect) -> QRectF:
        view = self._editor.mapping.to_view(rect)
        return QRectF(view.x, view.y, view.w, view.h)

    # --- Painting ---

    def paintEvent(self, event: QPaintEvent):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
        painter.fillRect(self.rect(), QColor(11, 12, 16))

        if not self._pixmap:
            painter.setPen(QColor(128, 128, 128))
            msg = "Loading image…" if self._loading else "No image loaded"
            painter.drawText(self.rect(), Qt.AlignmentFlag.AlignCenter, msg)
            painter.end()
            return

        m = self._editor.mapping
        painter.drawPixmap(QRectF(m.box_x, m.box_y, m.box_w, m.box_h).toRect(), self._pixmap)

        resize_mode = self._editor.resize_mode
        for rect in self._editor.selections:
            self._paint_rect(painter, rect, QColor(80, 200, 255), resize_mode)

        live = self._editor.live_rect
        if live is not None:
            self._paint_rect(painter, live, QColor(255, 200, 60), resize_mode)

        if resize_mode:
            painter.setPen(QColor(255, 255, 255))
            painter.drawText(
                self.rect().adjusted(8, 8, -8, -8),
                Qt.AlignmentFlag.AlignLeft | Qt.AlignmentFlag.AlignTop,
                "Alt: drag handles to resize",
            )

        painter.end()

    def _paint_rect(self, painter: QPainter, rect: CropRect, color: QColor, with_handles: bool):
        view = self._view_rect(rect)

        fill = QColor(color)
        fill.setAlpha(40)
        painter.setPen(QPen(color, 2))
        painter.setBrush(QBrush(fill))
        painter.drawRect(view)

        label = describe_rect(rect)
        if label:
            painter.setPen(QColor(255, 255, 255))
            painter.drawText(
                view.adjusted(0, -20, 0, 0).toRect(),
                Qt.AlignmentFlag.AlignHCenter | Qt.AlignmentFlag.AlignTop,
                label,
            )

        if with_handles:
            painter.setPen(QPen(QColor(0, 0, 0), 1))
            painter.setBrush(QBrush(QColor(255, 255, 255)))
            for hx, hy in self._editor.view_handles(rect).values():
                painter.drawRect(QRectF(hx - 4, hy - 4, 8, 8))

    def resizeEvent(self, event: QResizeEvent):
        self._update_display_mapping()
        super().resizeEvent(event)

    # --- Mouse interaction ---

    def _changed(self, changed: bool):
        if changed:
            self.update()
            self.selections_changed.emit()

    def mousePressEvent(self, event: QMouseEvent):
        if not self._pixmap:
            return
        pos = event.position()
        if event.button() == Qt.MouseButton.RightButton:
            self._changed(self._editor.delete_at(pos.x(), pos.y()))
            return
        if event.button() != Qt.MouseButton.LeftButton:
            return
        # Key events only reach the overlay while it has focus
        modifiers = event.modifiers()
        resized = self._editor.set_resize_modifier(bool(modifiers & Qt.KeyboardModifier.AltModifier))
        move = bool(modifiers & Qt.KeyboardModifier.ControlModifier)
        started = self._editor.on_pointer_down(pos.x(), pos.y(), move_modifier=move)
        self._changed(resized or started)

    def mouseMoveEvent(self, event: QMouseEvent):
        if not self._pixmap:
            return
        pos = event.position()
        self._update_cursor(pos)
        self._changed(self._editor.on_pointer_move(pos.x(), pos.y()))

    def mouseReleaseEvent(self, event: QMouseEvent):
        if event.button() == Qt.MouseButton.LeftButton:
            pos = event.position()
            self._changed(self._editor.on_pointer_up(pos.x(), pos.y()))

    def mouseDoubleClickEvent(self, event: QMouseEvent):
        if event.button() == Qt.MouseButton.LeftButton and self._pixmap:
            pos = event.position()
            self._changed(self._editor.on_double_click(pos.x(), pos.y()))

    def _update_cursor(self, pos: QPointF):
        state = self._editor.state
        if isinstance(state, Moving):
            self.setCursor(Qt.CursorShape.SizeAllCursor)
            return
        if isinstance(state, Resizing) or (isinstance(state, Idle) and self._editor.resize_mode):
            handle = state.handle if isinstance(state, Resizing) else None
            if handle is None:
                hit = self._editor.handle_at(pos.x(), pos.y())
                handle = hit[1] if hit else None
            self.setCursor(_HANDLE_CURSORS.get(handle, Qt.CursorShape.ArrowCursor))
            return
        self.setCursor(Qt.CursorShape.CrossCursor)

    # --- Keyboard / focus ---

    def keyPressEvent(self, event: QKeyEvent):
        key = _KEY_NAMES.get(event.key())
        if key is None or event.isAutoRepeat():
            super().keyPressEvent(event)
            return
        self._changed(self._editor.on_key_down(key))

    def keyReleaseEvent(self, event: QKeyEvent):
        if event.key() == Qt.Key.Key_Alt and not event.isAutoRepeat():
            self._changed(self._editor.on_key_up(KEY_RESIZE))
            return
        super().keyReleaseEvent(event)

    def focusOutEvent(self, event: QFocusEvent):
        self._changed(self._editor.on_focus_lost())
        super().focusOutEvent(event)


_KEY_NAMES = {
    Qt.Key.Key_Alt: KEY_RESIZE,
    Qt.Key.Key_Escape: KEY_CLEAR,
}

_HANDLE_CURSORS = {
    "topleft": Qt.CursorShape.SizeFDiagCursor,
    "bottomright": Qt.CursorShape.SizeFDiagCursor,
    "topright": Qt.CursorShape.SizeBDiagCursor,
    "bottomleft": Qt.CursorShape.SizeBDiagCursor,
    "left": Qt.CursorShape.SizeHorCursor,
    "right": Qt.CursorShape.SizeHorCursor,
    "top": Qt.CursorShape.SizeVerCursor,
    "bottom": Qt.CursorShape.SizeVerCursor,
}
