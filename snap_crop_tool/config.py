"""
Application constants and configuration.

Built-in snap defaults are used whenever the persisted settings are missing
or parse to nothing.  All other constants control the rectangle editor,
snap thresholds, file handling, and crop naming.

The ``config_dir()`` helper returns the platform-appropriate config
directory and is used by the settings store.
"""

import os
import sys
from pathlib import Path

# =============================================================================
# APP IDENTITY & CONFIG DIRECTORY
# =============================================================================
APP_NAME = "snap-crop-tool"


def config_dir() -> Path:
    """Return the platform-appropriate config directory, creating it if needed."""
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    directory = base / APP_NAME
    directory.mkdir(parents=True, exist_ok=True)
    return directory

# =============================================================================
# SNAP DEFAULTS — Built-in fallback when stored settings are missing or empty
# =============================================================================
DEFAULT_BUCKET_TEXT = "512, 768, 1024"
DEFAULT_ASPECT_TEXT = (
    "1:1, 4:3, 3:2, 16:9, 9:16, 1:2, 2:1, 1:3, 3:1, 2:3, 3:2, 1:4, 4:1, 9:21, 21:9, 9:32, 32:9"
)
DEFAULT_SNAP_RESOLUTION = True
DEFAULT_SNAP_ASPECT = False
DEFAULT_SNAP_STRENGTH = 1.0

# Key under which the snap configuration is persisted
SETTINGS_KEY = "crop-gui-settings"

# Aspect snap accepts a change up to max(floor, shorter side * factor) * strength
ASPECT_THRESHOLD_MIN = 8
ASPECT_THRESHOLD_FACTOR = 0.25

# Bucket snap accepts a distance up to max(floor, shorter side * factor) * strength
BUCKET_THRESHOLD_MIN = 120
BUCKET_THRESHOLD_FACTOR = 0.35

# =============================================================================
# EDITOR
# =============================================================================
# A drawn rectangle is committed only if both sides exceed this (image pixels)
COMMIT_THRESHOLD = 4

# Minimum width/height while dragging a resize handle (image pixels)
MIN_RESIZE_SIZE = 2

# Half-size of a resize handle's hit box (pixels in screen coordinates)
HANDLE_SIZE = 6

# =============================================================================
# FILES
# =============================================================================
# Supported image extensions for the input queue
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp", ".bmp", ".gif"}

# Exported crops are named <base>_crop_<N>.png
CROP_MARKER = "_crop_"
CROP_SUFFIX = ".png"

# PNG compression level (0-9, 9 = maximum compression)
PNG_COMPRESS_LEVEL = 6
