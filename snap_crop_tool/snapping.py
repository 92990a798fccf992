"""
Snap engine: nudge freehand rectangles toward configured aspect ratios and
resolution buckets.

Two independent snaps are applied in order, both gated by ``strength``:

* **Aspect snap** changes exactly one side so the rectangle matches the
  nearest configured ratio, if the change is small enough.
* **Bucket snap** replaces both sides with the nearest ``(w, h)`` pair
  generated from a bucket ``b`` and a ratio ``r`` as
  ``(round(b * sqrt(r)), round(b / sqrt(r)))``, if it is close enough.

The ratio list always contains every reciprocal (see ``expand_ratios``), so
nearest-ratio search compares raw differences.  This module is Qt-free.
"""

import math
import re
from dataclasses import dataclass, field

from snap_crop_tool.config import (
    ASPECT_THRESHOLD_FACTOR, ASPECT_THRESHOLD_MIN,
    BUCKET_THRESHOLD_FACTOR, BUCKET_THRESHOLD_MIN,
    DEFAULT_ASPECT_TEXT, DEFAULT_BUCKET_TEXT,
    DEFAULT_SNAP_ASPECT, DEFAULT_SNAP_RESOLUTION, DEFAULT_SNAP_STRENGTH,
)
from snap_crop_tool.models import CropRect, is_corner


# =============================================================================
# Parsing
# =============================================================================
_LEADING_INT = re.compile(r"[+-]?\d+")


def _to_number(text: str) -> float | None:
    try:
        value = float(text)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def parse_buckets(text: str) -> list[int]:
    """Parse ``"512, 768, 1024"`` into positive ints, dropping anything malformed.

    Each token contributes its leading integer, so ``"768.5"`` reads as 768
    and ``"512px"`` as 512; tokens without one are dropped.
    """
    buckets: list[int] = []
    for token in text.split(","):
        match = _LEADING_INT.match(token.strip())
        if match is None:
            continue
        value = int(match.group())
        if value > 0:
            buckets.append(value)
    return buckets


def parse_aspect_ratios(text: str) -> list[float]:
    """Parse ``"16:9, 1.5"`` into ratios (width / height).

    ``W:H`` tokens need two numbers and a non-zero ``H``; other tokens must
    be a positive decimal.  Malformed or empty tokens are dropped.
    """
    ratios: list[float] = []
    for token in text.split(","):
        token = token.strip()
        if not token:
            continue
        if ":" in token:
            parts = token.split(":")
            w = _to_number(parts[0])
            h = _to_number(parts[1])
            if w is not None and h is not None and h != 0:
                ratio = w / h
                if ratio:
                    ratios.append(ratio)
                continue
        value = _to_number(token)
        if value is not None and value > 0:
            ratios.append(value)
    return ratios


def expand_ratios(ratios: list[float]) -> list[float]:
    """Add the reciprocal of every positive ratio, keeping first-seen order."""
    expanded: dict[float, None] = {}
    for r in ratios:
        if not math.isfinite(r) or r <= 0:
            continue
        expanded[r] = None
        expanded[1 / r] = None
    return list(expanded)


def format_buckets(buckets: list[int]) -> str:
    return ", ".join(str(b) for b in buckets)


def format_aspect_ratios(ratios: list[float]) -> str:
    """Serialize ratios as bare decimals; parses back to the same list."""
    return ", ".join(repr(r) for r in ratios)


# =============================================================================
# Settings
# =============================================================================
def _default_buckets() -> list[int]:
    return parse_buckets(DEFAULT_BUCKET_TEXT)


def _default_ratios() -> list[float]:
    return expand_ratios(parse_aspect_ratios(DEFAULT_ASPECT_TEXT))


@dataclass
class SnapSettings:
    """Parsed snap configuration consumed by the engine."""
    snap_resolution: bool = DEFAULT_SNAP_RESOLUTION
    snap_aspect: bool = DEFAULT_SNAP_ASPECT
    buckets: list[int] = field(default_factory=_default_buckets)
    aspect_ratios: list[float] = field(default_factory=_default_ratios)
    strength: float = DEFAULT_SNAP_STRENGTH

    @classmethod
    def from_text(
        cls,
        bucket_text: str,
        aspect_text: str,
        snap_resolution: bool = DEFAULT_SNAP_RESOLUTION,
        snap_aspect: bool = DEFAULT_SNAP_ASPECT,
        strength: float = DEFAULT_SNAP_STRENGTH,
    ) -> "SnapSettings":
        """Build settings from the text fields, falling back to defaults for empty sets."""
        buckets = parse_buckets(bucket_text) or _default_buckets()
        ratios = expand_ratios(parse_aspect_ratios(aspect_text)) or _default_ratios()
        return cls(
            snap_resolution=snap_resolution,
            snap_aspect=snap_aspect,
            buckets=buckets,
            aspect_ratios=ratios,
            strength=clamp_strength(strength),
        )


def clamp_strength(value: float) -> float:
    return min(max(float(value), 0.0), 1.0)


# =============================================================================
# Snap engine
# =============================================================================
def closest_aspect(target: float, ratios: list[float]) -> float:
    """Configured ratio nearest *target* by absolute difference (first wins on ties)."""
    best = ratios[0]
    best_diff = abs(target - best)
    for ratio in ratios:
        diff = abs(target - ratio)
        if diff < best_diff:
            best_diff = diff
            best = ratio
    return best


def snap_aspect(width: float, height: float, settings: SnapSettings) -> tuple[float, float]:
    """Change one side so the rectangle matches the nearest ratio, if close enough."""
    if settings.strength <= 0 or not settings.aspect_ratios:
        return width, height
    aspect = width / height if width and height else 1.0
    target = closest_aspect(aspect, settings.aspect_ratios)

    # Keep width and adjust height, or keep height and adjust width
    keep_width = (width, width / target)
    keep_height = (height * target, height)
    diff_a = abs(keep_width[1] - height)
    diff_b = abs(keep_height[0] - width)
    chosen, delta = (keep_width, diff_a) if diff_a <= diff_b else (keep_height, diff_b)

    threshold = max(ASPECT_THRESHOLD_MIN, min(width, height) * ASPECT_THRESHOLD_FACTOR)
    if delta <= threshold * settings.strength:
        return chosen
    return width, height


def find_bucket_target(width: float, height: float, settings: SnapSettings) -> tuple[int, int] | None:
    """Nearest bucket-derived ``(w, h)`` within the acceptance distance, or None."""
    if settings.strength <= 0 or not settings.buckets:
        return None
    ratios = settings.aspect_ratios or [(width / height if height else 0) or 1.0]

    best = None
    best_score = math.inf
    for bucket in settings.buckets:
        for ratio in ratios:
            root = math.sqrt(ratio)
            w = int(round(bucket * root))
            h = int(round(bucket / root))
            score = math.hypot(width - w, height - h)
            if score < best_score:
                best_score = score
                best = (w, h)

    threshold = max(BUCKET_THRESHOLD_MIN, min(width, height) * BUCKET_THRESHOLD_FACTOR)
    if best is not None and best_score <= threshold * settings.strength:
        return best
    return None


def apply_snap(width: float, height: float, settings: SnapSettings) -> tuple[float, float]:
    """Run aspect snap then bucket snap on a candidate size."""
    if settings.strength <= 0:
        return width, height
    if settings.snap_aspect:
        width, height = snap_aspect(width, height, settings)
    if settings.snap_resolution:
        target = find_bucket_target(width, height, settings)
        if target is not None:
            width, height = target
    return width, height


def apply_snap_with_anchor(
    rect: CropRect,
    handle: str,
    anchor: tuple[float, float],
    settings: SnapSettings,
) -> CropRect:
    """Snap a handle-resized rectangle and re-position it from the fixed anchor.

    Edge handles snap only the dragged axis and keep the other side as-is;
    corner handles snap both sides.  The result is not clamped.
    """
    snapped_w, snapped_h = apply_snap(rect.w, rect.h, settings)
    result = rect.copy()
    if is_corner(handle):
        result.w, result.h = snapped_w, snapped_h
    else:
        if "left" in handle or "right" in handle:
            result.w = snapped_w
        if "top" in handle or "bottom" in handle:
            result.h = snapped_h

    anchor_x, anchor_y = anchor
    if "left" in handle:
        result.x = anchor_x - result.w
    elif "right" in handle:
        result.x = anchor_x
    if "top" in handle:
        result.y = anchor_y - result.h
    elif "bottom" in handle:
        result.y = anchor_y
    return result
