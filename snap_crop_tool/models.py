"""
Data models and crop-geometry utilities.

CropRect is the core data structure shared by the editor, the widget and
the persister.  Rectangles live in image-pixel coordinates and stay
real-valued while the operator drags; they are floored to integers only
when a crop is written to disk.

``DisplayMapping`` converts between screen and image space, and the clamp
helpers keep rectangles inside the image in the two ways the editor needs:
shrinking an overflowing edge (draw/resize) or sliding a fixed-size
rectangle back inside (move).
"""

from dataclasses import dataclass
from pathlib import Path

from snap_crop_tool.config import MIN_RESIZE_SIZE


# =============================================================================
# Data classes
# =============================================================================
@dataclass
class CropRect:
    """Crop rectangle in image coordinates."""
    x: float = 0.0
    y: float = 0.0
    w: float = 0.0
    h: float = 0.0

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h

    def copy(self) -> "CropRect":
        return CropRect(self.x, self.y, self.w, self.h)

    def contains(self, px: float, py: float) -> bool:
        return self.x <= px <= self.right and self.y <= py <= self.bottom


@dataclass
class ImageEntry:
    """One source image in the input queue."""
    name: str
    path: Path


@dataclass
class SavedCrop:
    """A crop file that was written to the output folder."""
    name: str
    path: Path


# =============================================================================
# Resize handles
# =============================================================================
# Corners and edge midpoints, in drawing order
HANDLES = (
    "topleft", "top", "topright",
    "left", "right",
    "bottomleft", "bottom", "bottomright",
)


def is_corner(handle: str) -> bool:
    vertical = "top" in handle or "bottom" in handle
    horizontal = "left" in handle or "right" in handle
    return vertical and horizontal


def handle_positions(rect: CropRect) -> dict[str, tuple[float, float]]:
    """Return the position of every handle on *rect* (in rect's own coordinate space)."""
    cx = rect.x + rect.w / 2
    cy = rect.y + rect.h / 2
    return {
        "topleft": (rect.x, rect.y),
        "top": (cx, rect.y),
        "topright": (rect.right, rect.y),
        "left": (rect.x, cy),
        "right": (rect.right, cy),
        "bottomleft": (rect.x, rect.bottom),
        "bottom": (cx, rect.bottom),
        "bottomright": (rect.right, rect.bottom),
    }


def anchor_for_handle(handle: str, rect: CropRect) -> tuple[float, float]:
    """The point opposite *handle*, which stays fixed while that handle is dragged."""
    x = rect.right if "left" in handle else rect.x
    y = rect.bottom if "top" in handle else rect.y
    return x, y


def resize_with_handle(start: CropRect, handle: str, dx: float, dy: float) -> CropRect:
    """Apply a raw pointer delta to the edges named by *handle*."""
    rect = start.copy()
    if "left" in handle:
        rect.x += dx
        rect.w -= dx
    if "right" in handle:
        rect.w += dx
    if "top" in handle:
        rect.y += dy
        rect.h -= dy
    if "bottom" in handle:
        rect.h += dy
    rect.w = max(MIN_RESIZE_SIZE, rect.w)
    rect.h = max(MIN_RESIZE_SIZE, rect.h)
    return rect


# =============================================================================
# Screen <-> image mapping
# =============================================================================
@dataclass
class DisplayMapping:
    """Where the image is drawn on screen, and how big it really is.

    ``box_*`` is the displayed image's bounding box in screen coordinates,
    ``img_w``/``img_h`` its natural pixel size.  Until layout is known the
    box may be empty; the scale then falls back to 1.
    """
    box_x: float = 0.0
    box_y: float = 0.0
    box_w: float = 0.0
    box_h: float = 0.0
    img_w: int = 0
    img_h: int = 0

    @property
    def scale_x(self) -> float:
        return self.img_w / self.box_w if self.box_w > 0 else 1.0

    @property
    def scale_y(self) -> float:
        return self.img_h / self.box_h if self.box_h > 0 else 1.0

    def contains(self, sx: float, sy: float) -> bool:
        """True if the screen point lies over the displayed image."""
        return (self.box_x <= sx <= self.box_x + self.box_w
                and self.box_y <= sy <= self.box_y + self.box_h)

    def to_image(self, sx: float, sy: float) -> tuple[float, float]:
        """Screen point -> image pixels, clamped to the image box first."""
        x = min(max(sx - self.box_x, 0.0), max(self.box_w, 0.0))
        y = min(max(sy - self.box_y, 0.0), max(self.box_h, 0.0))
        return x * self.scale_x, y * self.scale_y

    def to_view(self, rect: CropRect, origin_x: float = 0.0, origin_y: float = 0.0) -> CropRect:
        """Image rectangle -> display rectangle relative to an overlay at (origin_x, origin_y)."""
        return CropRect(
            self.box_x - origin_x + rect.x / self.scale_x,
            self.box_y - origin_y + rect.y / self.scale_y,
            rect.w / self.scale_x,
            rect.h / self.scale_y,
        )


# =============================================================================
# Clamping
# =============================================================================
def clamp_to_image(rect: CropRect, img_w: float, img_h: float) -> CropRect:
    """Shrink *rect* from whichever edges overflow the image (resize mode)."""
    x, y, w, h = rect.x, rect.y, rect.w, rect.h
    if x < 0:
        w += x
        x = 0.0
    if y < 0:
        h += y
        y = 0.0
    x = min(x, img_w)
    y = min(y, img_h)
    if x + w > img_w:
        w = img_w - x
    if y + h > img_h:
        h = img_h - y
    return CropRect(x, y, max(0.0, w), max(0.0, h))


def clamp_position(rect: CropRect, img_w: float, img_h: float) -> CropRect:
    """Slide *rect* back inside the image without changing its size (move mode)."""
    max_x = max(0.0, img_w - rect.w)
    max_y = max(0.0, img_h - rect.h)
    x = min(max(rect.x, 0.0), max_x)
    y = min(max(rect.y, 0.0), max_y)
    return CropRect(x, y, rect.w, rect.h)


def describe_rect(rect: CropRect | None) -> str | None:
    """Caption shown on a rectangle, e.g. ``"512 × 512 (1.00)"``."""
    if rect is None or not rect.w or not rect.h:
        return None
    w = round(rect.w)
    h = round(rect.h)
    ratio = f"{w / h:.2f}" if h else "—"
    return f"{w} × {h} ({ratio})"
