"""
Qt-free image I/O utilities.

Lists source images and exported crops, reads decoded image sizes, and
writes accepted rectangles as PNG crops named ``<base>_crop_<N>.png``.
``N`` continues after the highest number already present in the output
folder, so earlier crops are never overwritten.

Every filesystem failure is raised as ``CropIOError`` with a readable
message and the original exception chained.
"""

import logging
import math
import re
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from snap_crop_tool.config import CROP_MARKER, CROP_SUFFIX, IMAGE_EXTENSIONS, PNG_COMPRESS_LEVEL
from snap_crop_tool.models import CropRect, ImageEntry, SavedCrop

logger = logging.getLogger(__name__)


class CropIOError(OSError):
    """A directory read, image decode, crop write, or crop delete failed."""


def _fail(message: str, exc: Exception) -> CropIOError:
    logger.error("%s: %s", message, exc)
    return CropIOError(f"{message}: {exc}")


# =============================================================================
# Listing
# =============================================================================
def is_image_file(name: str) -> bool:
    return Path(name).suffix.lower() in IMAGE_EXTENSIONS


def is_crop_file(name: str) -> bool:
    return CROP_MARKER in name.lower()


def _list_files(directory: Path) -> list[Path]:
    try:
        return sorted(
            (f for f in Path(directory).iterdir() if f.is_file()),
            key=lambda f: f.name.lower(),
        )
    except OSError as exc:
        raise _fail(f"Could not read folder {directory}", exc) from exc


def list_images(directory: Path) -> list[ImageEntry]:
    """Supported images directly inside *directory*, sorted by name."""
    images = [ImageEntry(f.name, f) for f in _list_files(directory) if is_image_file(f.name)]
    logger.debug("Found %d image(s) in %s", len(images), directory)
    return images


def list_crops(directory: Path) -> list[SavedCrop]:
    """Exported crops (image files containing the crop marker) in *directory*."""
    return [
        SavedCrop(f.name, f) for f in _list_files(directory)
        if is_image_file(f.name) and is_crop_file(f.name)
    ]


def read_decoded_size(path: Path) -> tuple[int, int]:
    """Get image dimensions without fully loading."""
    try:
        with Image.open(path) as img:
            return img.size
    except (UnidentifiedImageError, OSError) as exc:
        raise _fail(f"Could not read image {path}", exc) from exc


def load_thumbnail(path: Path, size: int) -> Image.Image:
    """Decode *path* scaled to fit a *size* × *size* box, keeping the aspect ratio.

    JPEG sources are decoded at reduced scale (``draft``) so large photos
    stay cheap.
    """
    try:
        with Image.open(path) as img:
            img.draft("RGB", (size, size))
            img.thumbnail((size, size))
            return img.copy()
    except (UnidentifiedImageError, OSError) as exc:
        raise _fail(f"Could not read image {path}", exc) from exc


# =============================================================================
# Crop naming
# =============================================================================
def crop_name(base_name: str, index: int) -> str:
    return f"{base_name}{CROP_MARKER}{index}{CROP_SUFFIX}"


def next_crop_index(output_dir: Path, base_name: str) -> int:
    """One past the highest ``<base>_crop_<N>.png`` already in *output_dir* (1 if none)."""
    output_dir = Path(output_dir)
    if not output_dir.is_dir():
        return 1
    pattern = re.compile(
        rf"^{re.escape(base_name)}{re.escape(CROP_MARKER)}(\d+){re.escape(CROP_SUFFIX)}$",
        re.IGNORECASE,
    )
    max_index = 0
    for f in _list_files(output_dir):
        match = pattern.match(f.name)
        if match:
            max_index = max(max_index, int(match.group(1)))
    return max_index + 1


# =============================================================================
# Save / delete
# =============================================================================
def pixel_box(rect: CropRect, img_w: int, img_h: int) -> tuple[int, int, int, int] | None:
    """Floor *rect* to whole pixels inside ``img_w`` × ``img_h``.

    Returns ``(x, y, w, h)``, or None if either side would be 1 px or less.
    """
    if rect.w <= 1 or rect.h <= 1:
        return None
    x = max(0, math.floor(rect.x))
    y = max(0, math.floor(rect.y))
    w = min(math.floor(rect.w), max(0, img_w - x))
    h = min(math.floor(rect.h), max(0, img_h - y))
    if w <= 1 or h <= 1:
        return None
    return x, y, w, h


def _encodable(img: Image.Image) -> Image.Image:
    """Convert modes the PNG encoder rejects (CMYK, YCbCr, ...)."""
    if img.mode in ("1", "L", "LA", "I", "I;16", "P", "RGB", "RGBA"):
        return img
    return img.convert("RGBA" if "A" in img.getbands() else "RGB")


def save_crops(image_path: Path, rects: list[CropRect], output_dir: Path) -> list[SavedCrop]:
    """
    Write each rectangle of *image_path* as its own PNG in *output_dir*.

    Rectangles are processed in order; ones that end up 1 px or smaller
    after flooring and intersecting with the real decoded image are
    skipped.  Files written before a failure are left in place.

    Returns the crops actually written, in input order.
    """
    if not rects:
        return []

    image_path = Path(image_path)
    output_dir = Path(output_dir)
    base_name = image_path.stem
    saved: list[SavedCrop] = []

    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        index = next_crop_index(output_dir, base_name)
        with Image.open(image_path) as source:
            img_w, img_h = source.size
            source.load()
            for rect in rects:
                box = pixel_box(rect, img_w, img_h)
                if box is None:
                    logger.debug("Skipping crop %s of %s: too small", rect, image_path.name)
                    continue
                x, y, w, h = box
                out_path = output_dir / crop_name(base_name, index)
                cropped = _encodable(source.crop((x, y, x + w, y + h)))
                cropped.save(str(out_path), "PNG", compress_level=PNG_COMPRESS_LEVEL)
                saved.append(SavedCrop(out_path.name, out_path))
                index += 1
    except CropIOError:
        raise
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise _fail(f"Could not save crops of {image_path.name}", exc) from exc

    logger.info("Saved %d crop(s) of %s to %s", len(saved), image_path.name, output_dir)
    return saved


def delete_crop(path: Path) -> None:
    """Remove a saved crop.  A missing file is an error, not a no-op."""
    try:
        Path(path).unlink()
    except OSError as exc:
        raise _fail(f"Could not delete {path}", exc) from exc
    logger.info("Deleted crop %s", path)
