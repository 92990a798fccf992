"""
Settings persistence: a small key-value store plus load/save of the snap
configuration kept in it.

The store contract is two methods, ``get(key) -> str | None`` and
``set(key, value)``.  ``JsonSettingsStore`` keeps the values in a JSON file
in the user's config directory (provided by ``config.config_dir()``), in a
versioned envelope::

    {"version": 1, "values": {"crop-gui-settings": "{...}"}}

The snap configuration itself is stored under ``SETTINGS_KEY`` as a JSON
object with ``snapResolution``, ``snapAspect``, ``bucketText``,
``aspectText`` and ``snapStrength``.  Anything missing, corrupt or empty
falls back to the built-in defaults; configuration problems are logged,
never raised.  This module is Qt-free.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from snap_crop_tool.config import (
    DEFAULT_ASPECT_TEXT, DEFAULT_BUCKET_TEXT,
    DEFAULT_SNAP_ASPECT, DEFAULT_SNAP_RESOLUTION, DEFAULT_SNAP_STRENGTH,
    SETTINGS_KEY, config_dir,
)
from snap_crop_tool.snapping import (
    SnapSettings, clamp_strength, expand_ratios, parse_aspect_ratios, parse_buckets,
)

logger = logging.getLogger(__name__)

_SETTINGS_FILENAME = "settings.json"
_FORMAT_VERSION = 1


# =============================================================================
# Stores
# =============================================================================
class SettingsStore:
    """Durable string key-value store."""

    def get(self, key: str) -> str | None:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError


class MemorySettingsStore(SettingsStore):
    """In-process store; nothing survives a restart."""

    def __init__(self, values: dict[str, str] | None = None):
        self._values = dict(values or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value


class JsonSettingsStore(SettingsStore):
    """Store backed by ``settings.json`` in the config directory."""

    def __init__(self, path: Path | None = None):
        self._path = path or config_dir() / _SETTINGS_FILENAME
        self._values = self._read()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value
        self._write()

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            logger.debug("No settings file at %s — starting fresh", self._path)
            return {}

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Failed to read settings (%s) — starting fresh", exc)
            return {}

        if not isinstance(raw, dict) or raw.get("version") != _FORMAT_VERSION:
            logger.warning("Settings version mismatch or invalid format — starting fresh")
            return {}

        values = raw.get("values")
        if not isinstance(values, dict):
            logger.warning("Settings missing 'values' dict — starting fresh")
            return {}

        return {k: v for k, v in values.items() if isinstance(k, str) and isinstance(v, str)}

    def _write(self) -> None:
        envelope = {"version": _FORMAT_VERSION, "values": self._values}
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps(envelope, indent=2, ensure_ascii=False),
                encoding="utf-8",
            )
            logger.debug("Saved settings to %s", self._path)
        except OSError as exc:
            logger.error("Could not write settings to %s: %s", self._path, exc)


# =============================================================================
# Snap configuration
# =============================================================================
@dataclass
class SnapConfig:
    """The persisted, text form of the snap settings (what the controls show)."""
    snap_resolution: bool = DEFAULT_SNAP_RESOLUTION
    snap_aspect: bool = DEFAULT_SNAP_ASPECT
    bucket_text: str = DEFAULT_BUCKET_TEXT
    aspect_text: str = DEFAULT_ASPECT_TEXT
    strength: float = DEFAULT_SNAP_STRENGTH

    def to_settings(self) -> SnapSettings:
        return SnapSettings.from_text(
            self.bucket_text,
            self.aspect_text,
            snap_resolution=self.snap_resolution,
            snap_aspect=self.snap_aspect,
            strength=self.strength,
        )

    def to_payload(self) -> dict:
        return {
            "snapResolution": self.snap_resolution,
            "snapAspect": self.snap_aspect,
            "bucketText": self.bucket_text,
            "aspectText": self.aspect_text,
            "snapStrength": self.strength,
        }


def normalize_config(config: SnapConfig) -> SnapConfig:
    """Clamp strength and replace text that parses to nothing with the default text."""
    bucket_text = config.bucket_text
    if not parse_buckets(bucket_text):
        logger.warning("No valid buckets in %r — using defaults", bucket_text)
        bucket_text = DEFAULT_BUCKET_TEXT
    aspect_text = config.aspect_text
    if not expand_ratios(parse_aspect_ratios(aspect_text)):
        logger.warning("No valid aspect ratios in %r — using defaults", aspect_text)
        aspect_text = DEFAULT_ASPECT_TEXT
    return SnapConfig(
        snap_resolution=bool(config.snap_resolution),
        snap_aspect=bool(config.snap_aspect),
        bucket_text=bucket_text,
        aspect_text=aspect_text,
        strength=clamp_strength(config.strength),
    )


def _read_strength(value: object) -> float:
    if isinstance(value, bool):
        return DEFAULT_SNAP_STRENGTH
    try:
        strength = float(value)
    except (TypeError, ValueError):
        return DEFAULT_SNAP_STRENGTH
    if strength != strength:  # NaN
        return DEFAULT_SNAP_STRENGTH
    return clamp_strength(strength)


def load_snap_config(store: SettingsStore) -> SnapConfig:
    """
    Load the snap configuration from *store*.

    Missing keys take their defaults, a corrupt payload is replaced
    wholesale by the defaults, and the normalized result is written back
    so the store always holds a usable configuration.
    """
    stored: dict = {}
    raw = store.get(SETTINGS_KEY)
    if raw:
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Stored snap settings are corrupt (%s) — restoring defaults", exc)
        else:
            if isinstance(parsed, dict):
                stored = parsed
            else:
                logger.warning("Stored snap settings are not an object — restoring defaults")

    def _text(key: str, default: str) -> str:
        value = stored.get(key)
        return value if isinstance(value, str) and value else default

    def _flag(key: str, default: bool) -> bool:
        value = stored.get(key)
        return value if isinstance(value, bool) else default

    config = normalize_config(SnapConfig(
        snap_resolution=_flag("snapResolution", DEFAULT_SNAP_RESOLUTION),
        snap_aspect=_flag("snapAspect", DEFAULT_SNAP_ASPECT),
        bucket_text=_text("bucketText", DEFAULT_BUCKET_TEXT),
        aspect_text=_text("aspectText", DEFAULT_ASPECT_TEXT),
        strength=_read_strength(stored.get("snapStrength", DEFAULT_SNAP_STRENGTH)),
    ))
    save_snap_config(store, config)
    return config


def save_snap_config(store: SettingsStore, config: SnapConfig) -> None:
    """Write *config* to *store* under ``SETTINGS_KEY``."""
    store.set(SETTINGS_KEY, json.dumps(config.to_payload()))
    logger.debug("Saved snap settings (strength %.2f)", config.strength)
