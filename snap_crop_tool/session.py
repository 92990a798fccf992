"""
Crop session: the image queue being worked through and the editor for the
image currently on screen.

One ``CropSession`` exists per window.  Accepting an image saves its
rectangles and drops it from the queue; skipping drops it without saving.
While a save is outstanding the editor is marked busy, so no new
interaction can start until the queue has advanced to the next image.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from snap_crop_tool.editor import RectangleEditor
from snap_crop_tool.image_io import list_images, save_crops
from snap_crop_tool.models import CropRect, ImageEntry, SavedCrop

logger = logging.getLogger(__name__)


@dataclass
class SaveRequest:
    """Everything the persister needs for one accepted image."""
    image_path: Path
    rects: list[CropRect] = field(default_factory=list)
    output_dir: Path | None = None


class CropSession:
    def __init__(self, editor: RectangleEditor | None = None):
        self.editor = editor or RectangleEditor()
        self.images: list[ImageEntry] = []
        self.current_index = -1
        self.input_dir: Path | None = None
        self.output_dir: Path | None = None

    # --- Folders ---

    def load_folder(self, directory: Path) -> list[ImageEntry] | None:
        """Queue every image in *directory* and show the first one.

        Returns None without touching the queue while a save is running,
        since the queue advances once that save completes.  Raises
        ``CropIOError`` if the folder cannot be read; the previous queue is
        kept in that case.
        """
        if self.editor.busy:
            logger.warning("Not loading %s while crops are being saved", directory)
            return None
        images = list_images(directory)
        self.input_dir = Path(directory)
        if self.output_dir is None:
            self.output_dir = self.input_dir
        self.images = images
        self.select(0 if images else -1)
        logger.info("Loaded %d image(s) from %s", len(images), directory)
        return images

    def set_output_dir(self, directory: Path):
        self.output_dir = Path(directory)

    @property
    def target_dir(self) -> Path | None:
        return self.output_dir or self.input_dir

    # --- Navigation ---

    @property
    def current(self) -> ImageEntry | None:
        if 0 <= self.current_index < len(self.images):
            return self.images[self.current_index]
        return None

    def select(self, index: int):
        """Show image *index* (or nothing); its rectangles start empty.

        The editor's image size stays 0 × 0 until the host reports the
        loaded size through ``editor.set_image_size``.
        """
        if not 0 <= index < len(self.images):
            index = -1
        self.current_index = index
        self.editor.set_image_size(0, 0)

    def advance(self):
        """Drop the current image from the queue and show the one that takes its place."""
        if self.current is None:
            return
        del self.images[self.current_index]
        next_index = min(self.current_index, len(self.images) - 1)
        self.select(next_index)

    # --- Accept / skip ---

    def save_request(self) -> SaveRequest | None:
        """What to persist for the current image, or None if there is nothing to save."""
        current = self.current
        rects = self.editor.selections
        if current is None or not rects:
            return None
        return SaveRequest(current.path, [r.copy() for r in rects], self.target_dir)

    def begin_save(self):
        self.editor.busy = True

    def end_save(self):
        self.editor.busy = False

    def accept(self, saver: Callable[[Path, list[CropRect], Path], list[SavedCrop]] = save_crops,
               ) -> list[SavedCrop]:
        """Save the current image's rectangles, then move on.

        A failed save propagates and leaves the image (and its
        rectangles) in place.
        """
        if self.current is None:
            return []
        request = self.save_request()
        saved: list[SavedCrop] = []
        if request is not None:
            self.begin_save()
            try:
                saved = saver(request.image_path, request.rects, request.output_dir)
            finally:
                self.end_save()
        self.advance()
        return saved

    def skip(self):
        """Discard the current image's rectangles and move on."""
        self.editor.reset_selections()
        self.advance()
