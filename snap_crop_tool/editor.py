"""
Rectangle editor: the draw / move / resize state machine for one image.

The editor is framework-agnostic.  The host widget feeds it screen-space
pointer and key events (``on_pointer_down``, ``on_pointer_move``,
``on_pointer_up``, ``on_key_down``, ``on_key_up``, ``on_focus_lost``,
``on_double_click``) and reads ``selections`` / ``live_rect`` back for
painting.  Every point is mapped to image space through the editor's
``DisplayMapping`` before any geometry happens.

At most one interaction is active; it is held as a single tagged value
(``Idle``, ``Drawing``, ``Moving`` or ``Resizing``).  Moves and resizes
write straight into the selection list on every pointer move, so ending
or interrupting them never rolls anything back.  Only an uncommitted
drawing preview can be discarded.
"""

from dataclasses import dataclass

from snap_crop_tool.config import COMMIT_THRESHOLD, HANDLE_SIZE
from snap_crop_tool.models import (
    HANDLES, CropRect, DisplayMapping,
    anchor_for_handle, clamp_position, clamp_to_image, handle_positions, resize_with_handle,
)
from snap_crop_tool.snapping import SnapSettings, apply_snap, apply_snap_with_anchor

Point = tuple[float, float]

# Key names understood by on_key_down / on_key_up
KEY_RESIZE = "Alt"
KEY_CLEAR = "Escape"


# =============================================================================
# Interaction states
# =============================================================================
@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Drawing:
    start: Point


@dataclass(frozen=True)
class Moving:
    index: int
    start_point: Point
    origin: CropRect


@dataclass(frozen=True)
class Resizing:
    index: int
    handle: str
    start_point: Point
    start_rect: CropRect
    anchor: Point


InteractionState = Idle | Drawing | Moving | Resizing

IDLE = Idle()


def build_drag_rect(start: Point, current: Point, settings: SnapSettings,
                    img_w: float, img_h: float) -> CropRect:
    """Rectangle spanned by a drag from *start* to *current*, snapped and clamped.

    The drag may go in any direction; *start* stays the fixed corner.
    """
    dx = current[0] - start[0]
    dy = current[1] - start[1]
    w, h = apply_snap(abs(dx), abs(dy), settings)
    x = start[0] if dx >= 0 else start[0] - w
    y = start[1] if dy >= 0 else start[1] - h
    return clamp_to_image(CropRect(x, y, w, h), img_w, img_h)


# =============================================================================
# Editor
# =============================================================================
class RectangleEditor:
    """Owns the rectangles and the active interaction for the displayed image."""

    def __init__(self, settings: SnapSettings | None = None):
        self.settings = settings or SnapSettings()
        self.mapping = DisplayMapping()
        self.busy = False  # a save for this image is still running

        self._selections: list[CropRect] = []
        self._live: CropRect | None = None
        self._state: InteractionState = IDLE
        self._resize_mode = False

    # --- Read accessors for rendering ---

    @property
    def selections(self) -> list[CropRect]:
        return list(self._selections)

    @property
    def live_rect(self) -> CropRect | None:
        return self._live

    @property
    def state(self) -> InteractionState:
        return self._state

    @property
    def resize_mode(self) -> bool:
        return self._resize_mode

    @property
    def active_rect(self) -> CropRect | None:
        """Rectangle the operator is working on: preview, edited one, or the newest."""
        if self._live is not None:
            return self._live
        if isinstance(self._state, (Moving, Resizing)):
            return self._selections[self._state.index]
        return self._selections[-1] if self._selections else None

    def has_image(self) -> bool:
        return self.mapping.img_w > 0 and self.mapping.img_h > 0

    # --- Image / layout ---

    def set_image_size(self, img_w: int, img_h: int):
        """Switch to a new image: all rectangles and any interaction are dropped."""
        self.mapping.img_w = img_w
        self.mapping.img_h = img_h
        self.reset_selections()

    def set_display_box(self, x: float, y: float, w: float, h: float):
        """Where the image is currently drawn on screen."""
        self.mapping.box_x = x
        self.mapping.box_y = y
        self.mapping.box_w = w
        self.mapping.box_h = h

    def reset_selections(self):
        self._selections.clear()
        self._live = None
        self._state = IDLE

    # --- Hit testing (screen space in, indices out) ---

    def rect_at(self, sx: float, sy: float) -> int | None:
        """Index of the topmost committed rectangle under the screen point."""
        if not self.mapping.contains(sx, sy):
            return None
        px, py = self.mapping.to_image(sx, sy)
        for index in range(len(self._selections) - 1, -1, -1):
            if self._selections[index].contains(px, py):
                return index
        return None

    def handle_at(self, sx: float, sy: float) -> tuple[int, str] | None:
        """``(index, handle)`` of the topmost resize handle under the screen point."""
        for index in range(len(self._selections) - 1, -1, -1):
            view = self.mapping.to_view(self._selections[index])
            for handle, (hx, hy) in handle_positions(view).items():
                if abs(sx - hx) <= HANDLE_SIZE and abs(sy - hy) <= HANDLE_SIZE:
                    return index, handle
        return None

    def view_handles(self, rect: CropRect) -> dict[str, Point]:
        """Screen positions of *rect*'s handles, in ``HANDLES`` order."""
        positions = handle_positions(self.mapping.to_view(rect))
        return {handle: positions[handle] for handle in HANDLES}

    # --- Pointer events ---

    def on_pointer_down(self, sx: float, sy: float, move_modifier: bool = False) -> bool:
        """Start an interaction if one applies; returns True if one started."""
        if not self.has_image() or self.busy or not isinstance(self._state, Idle):
            return False
        point = self.mapping.to_image(sx, sy)

        if self._resize_mode:
            hit = self.handle_at(sx, sy)
            if hit is None:
                return False
            index, handle = hit
            start_rect = self._selections[index].copy()
            self._state = Resizing(
                index=index,
                handle=handle,
                start_point=point,
                start_rect=start_rect,
                anchor=anchor_for_handle(handle, start_rect),
            )
            return True

        if move_modifier:
            index = self.rect_at(sx, sy)
            if index is None:
                return False
            self._state = Moving(index=index, start_point=point,
                                 origin=self._selections[index].copy())
            return True

        if not self.mapping.contains(sx, sy):
            return False
        self._state = Drawing(start=point)
        self._live = None
        return True

    def on_pointer_move(self, sx: float, sy: float) -> bool:
        """Update the active interaction; returns True if anything changed."""
        state = self._state
        if isinstance(state, Idle) or not self.has_image():
            return False
        current = self.mapping.to_image(sx, sy)
        img_w, img_h = self.mapping.img_w, self.mapping.img_h

        if isinstance(state, Resizing):
            dx = current[0] - state.start_point[0]
            dy = current[1] - state.start_point[1]
            resized = resize_with_handle(state.start_rect, state.handle, dx, dy)
            snapped = apply_snap_with_anchor(resized, state.handle, state.anchor, self.settings)
            self._selections[state.index] = clamp_to_image(snapped, img_w, img_h)
        elif isinstance(state, Moving):
            dx = current[0] - state.start_point[0]
            dy = current[1] - state.start_point[1]
            moved = CropRect(state.origin.x + dx, state.origin.y + dy, state.origin.w, state.origin.h)
            self._selections[state.index] = clamp_position(moved, img_w, img_h)
        elif isinstance(state, Drawing):
            self._live = build_drag_rect(state.start, current, self.settings, img_w, img_h)
        return True

    def on_pointer_up(self, sx: float, sy: float) -> bool:
        """Finish the active interaction; a drawing is committed if large enough."""
        state = self._state
        if isinstance(state, Idle):
            return False
        self._state = IDLE
        if not isinstance(state, Drawing):
            return True

        if self.has_image():
            end = self.mapping.to_image(sx, sy)
            rect = build_drag_rect(state.start, end, self.settings,
                                   self.mapping.img_w, self.mapping.img_h)
            if rect.w > COMMIT_THRESHOLD and rect.h > COMMIT_THRESHOLD:
                self._selections.append(rect)
        self._live = None
        return True

    def on_double_click(self, sx: float, sy: float) -> bool:
        return self.delete_at(sx, sy)

    # --- Keys / focus ---

    def on_key_down(self, key: str) -> bool:
        if key == KEY_RESIZE:
            return self.set_resize_modifier(True)
        if key == KEY_CLEAR:
            self.reset_selections()
            return True
        return False

    def on_key_up(self, key: str) -> bool:
        if key != KEY_RESIZE:
            return False
        self.set_resize_modifier(False)
        return True

    def set_resize_modifier(self, held: bool) -> bool:
        """Sync resize mode with the modifier state; releasing it ends a resize."""
        if held == self._resize_mode:
            return False
        self._resize_mode = held
        if not held and isinstance(self._state, Resizing):
            self._state = IDLE
        return True

    def on_focus_lost(self) -> bool:
        """Cancel the interaction; applied moves/resizes stay, a drawing preview goes.

        The modifier release may go to another window, so resize mode is
        dropped as well.
        """
        changed = self._resize_mode or not isinstance(self._state, Idle)
        self._resize_mode = False
        self._state = IDLE
        self._live = None
        return changed

    # --- Deletion ---

    def delete(self, index: int) -> bool:
        """Remove one committed rectangle, keeping the others in order."""
        if not 0 <= index < len(self._selections) or not isinstance(self._state, Idle):
            return False
        del self._selections[index]
        return True

    def delete_at(self, sx: float, sy: float) -> bool:
        """Delete the rectangle under the screen point (committed first, then the preview)."""
        index = self.rect_at(sx, sy)
        if index is not None:
            return self.delete(index)
        if self._live is not None:
            px, py = self.mapping.to_image(sx, sy)
            if self._live.contains(px, py):
                self._live = None
                self._state = IDLE
                return True
        return False
