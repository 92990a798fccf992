import json

import pytest

from snap_crop_tool.config import DEFAULT_ASPECT_TEXT, DEFAULT_BUCKET_TEXT, SETTINGS_KEY
from snap_crop_tool.settings import (
    JsonSettingsStore, MemorySettingsStore, SnapConfig, load_snap_config, save_snap_config,
)


def _store_with(payload) -> MemorySettingsStore:
    raw = payload if isinstance(payload, str) else json.dumps(payload)
    return MemorySettingsStore({SETTINGS_KEY: raw})


def test_empty_store_yields_defaults_and_writes_them_back():
    store = MemorySettingsStore()
    config = load_snap_config(store)

    assert config == SnapConfig()
    assert json.loads(store.get(SETTINGS_KEY))["bucketText"] == DEFAULT_BUCKET_TEXT


def test_corrupt_payload_restores_defaults():
    assert load_snap_config(_store_with("{not json")) == SnapConfig()
    assert load_snap_config(_store_with("[1, 2]")) == SnapConfig()


def test_partial_payload_keeps_stored_values():
    config = load_snap_config(_store_with({"snapAspect": True, "bucketText": "256"}))
    assert config.snap_aspect is True
    assert config.snap_resolution is True
    assert config.bucket_text == "256"
    assert config.aspect_text == DEFAULT_ASPECT_TEXT


def test_unparseable_text_falls_back_to_default_text():
    config = load_snap_config(_store_with({"bucketText": "abc, -1", "aspectText": "x:y, 0"}))
    assert config.bucket_text == DEFAULT_BUCKET_TEXT
    assert config.aspect_text == DEFAULT_ASPECT_TEXT


@pytest.mark.parametrize("stored, expected", [
    (5, 1.0),
    (-1, 0.0),
    (0.35, 0.35),
    ("0.5", 0.5),
    ("strong", 1.0),
    (None, 1.0),
    (True, 1.0),
])
def test_strength_is_clamped(stored, expected):
    assert load_snap_config(_store_with({"snapStrength": stored})).strength == pytest.approx(expected)


def test_save_then_load_round_trips():
    store = MemorySettingsStore()
    config = SnapConfig(snap_resolution=False, snap_aspect=True,
                        bucket_text="640, 1280", aspect_text="3:2, 1.25", strength=0.4)
    save_snap_config(store, config)
    assert load_snap_config(store) == config


def test_config_to_settings_parses_text():
    settings = SnapConfig(bucket_text="640, 1280", aspect_text="2:1", strength=0.4).to_settings()
    assert settings.buckets == [640, 1280]
    assert settings.aspect_ratios == pytest.approx([2.0, 0.5])
    assert settings.strength == pytest.approx(0.4)


def test_json_store_persists_between_instances(tmp_path):
    path = tmp_path / "cfg" / "settings.json"
    JsonSettingsStore(path).set("answer", "42")
    assert JsonSettingsStore(path).get("answer") == "42"
    assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1


@pytest.mark.parametrize("content", [
    "{broken",
    json.dumps({"version": 99, "values": {"a": "b"}}),
    json.dumps({"version": 1, "values": ["a"]}),
    json.dumps(["a"]),
])
def test_json_store_starts_fresh_on_bad_file(tmp_path, content):
    path = tmp_path / "settings.json"
    path.write_text(content, encoding="utf-8")
    assert JsonSettingsStore(path).get("a") is None
