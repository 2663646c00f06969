"""Tests covering config loading, env overrides and parameter validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from webelapse import config as config_module
from webelapse.config import ConfigurationError, apply_cli_overrides, build_schedule_parameters


def _reset_config_state(monkeypatch) -> None:
    monkeypatch.setattr(config_module, "_cfg_cache", None, raising=False)
    monkeypatch.setattr(config_module, "_active_config_path", None, raising=False)


def _cfg(tmp_path: Path, **sections) -> dict:
    cfg = config_module.apply_cli_overrides(
        config_module._DEFAULTS, {"output": str(tmp_path), "url": "https://example.test/"}
    )
    for section, values in sections.items():
        cfg.setdefault(section, {}).update(values)
    return cfg


def test_yaml_file_and_env_overrides(monkeypatch, tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        f"""
paths:
  output_dir: "{tmp_path}"
capture:
  url: https://example.test/
dedup:
  hash_bits: 16
schedule:
  interval_seconds: 30
""",
        encoding="utf-8",
    )
    monkeypatch.setenv("WEBELAPSE_CONFIG", str(config_path))
    monkeypatch.setenv("WEBELAPSE_MAX_INTERVAL", "600")
    monkeypatch.setenv("DEV", "1")
    _reset_config_state(monkeypatch)

    cfg = config_module.get_cfg()
    assert config_module.active_config_path() == config_path.resolve()
    assert cfg["capture"]["width"] == 960
    assert cfg["logging"]["dev_mode"] is True

    params = build_schedule_parameters(cfg)
    assert params.output_dir == tmp_path
    assert params.hash_bits == 16
    assert params.interval == 30
    assert params.max_interval == 600
    assert params.scheduling_enabled


def test_defaults(tmp_path: Path) -> None:
    params = build_schedule_parameters(_cfg(tmp_path))
    assert params.hash_bits == 12
    assert params.color_scheme == "light"
    assert params.distance == 0
    assert params.encoding == "mp4"
    assert params.frames is None
    assert params.frame_rate == 0.5
    assert params.infinite is False
    assert params.interval is None
    assert params.max_interval == 86400
    assert (params.width, params.height) == (960, 720)
    assert not params.scheduling_enabled


def test_cli_overrides_take_strings(tmp_path: Path) -> None:
    cfg = apply_cli_overrides(
        _cfg(tmp_path),
        {
            "bits": "8",
            "distance": "-1",
            "framerate": "0",
            "frames": "25",
            "schedule": "5",
            "max": "60",
            "infinite": True,
            "color": "dark",
            "encoding": ".webm",
            "width": None,
        },
    )
    params = build_schedule_parameters(cfg)
    assert params.hash_bits == 8
    assert params.distance == -1
    assert params.frame_rate == 0
    assert params.frames == 25
    assert params.interval == 5
    assert params.max_interval == 60
    assert params.infinite is True
    assert params.color_scheme == "dark"
    assert params.encoding == "webm"
    assert params.width == 960


@pytest.mark.parametrize(
    ("section", "key", "value", "message"),
    [
        ("dedup", "hash_bits", "abc", "hash bits"),
        ("dedup", "hash_bits", "1", "hash bits"),
        ("dedup", "distance", "near", "distance"),
        ("video", "frame_rate", "NaN", "frame rate"),
        ("video", "frame_rate", "-1", "frame rate"),
        ("video", "frames_per_video", "-2", "frames per video"),
        ("schedule", "max_interval_seconds", "-5", "max interval"),
        ("schedule", "interval_seconds", "soon", "schedule interval"),
        ("schedule", "interval_seconds", "0", "schedule interval"),
        ("schedule", "max_interval_seconds", "x", "max interval"),
        ("capture", "width", "wide", "view width"),
        ("capture", "height", "0", "viewport"),
    ],
)
def test_invalid_values_raise(tmp_path: Path, section, key, value, message) -> None:
    with pytest.raises(ConfigurationError, match=message):
        build_schedule_parameters(_cfg(tmp_path, **{section: {key: value}}))


def test_missing_output_directory(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="does not exist"):
        build_schedule_parameters(_cfg(tmp_path, paths={"output_dir": str(tmp_path / "nope")}))


def test_output_must_be_directory(tmp_path: Path) -> None:
    target = tmp_path / "file.txt"
    target.write_text("x")
    with pytest.raises(ConfigurationError, match="not a directory"):
        build_schedule_parameters(_cfg(tmp_path, paths={"output_dir": str(target)}))


def test_required_options(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="output directory is required"):
        build_schedule_parameters(_cfg(tmp_path, paths={"output_dir": ""}))
    with pytest.raises(ConfigurationError, match="url is required"):
        build_schedule_parameters(_cfg(tmp_path, capture={"url": " "}))


def test_unknown_color_scheme_falls_back_to_light(tmp_path: Path) -> None:
    params = build_schedule_parameters(_cfg(tmp_path, capture={"color_scheme": "sepia"}))
    assert params.color_scheme == "light"


def test_blank_yaml_values_fall_back_to_defaults(monkeypatch, tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        f"""
paths:
  output_dir: "{tmp_path}"
capture:
  url: https://example.test/
  width:
  load_timeout_ms:
dedup:
  hash_bits:
  distance:
schedule:
  interval_seconds: 60
  max_interval_seconds:
video:
  frame_rate:
""",
        encoding="utf-8",
    )
    monkeypatch.setenv("WEBELAPSE_CONFIG", str(config_path))
    monkeypatch.delenv("WEBELAPSE_MAX_INTERVAL", raising=False)
    monkeypatch.delenv("WEBELAPSE_FRAME_RATE", raising=False)
    _reset_config_state(monkeypatch)

    params = build_schedule_parameters(config_module.get_cfg())

    assert params.interval == 60
    assert params.max_interval == 86400
    assert params.frame_rate == 0.5
    assert params.hash_bits == 12
    assert params.distance == 0
    assert params.width == 960
    assert params.load_timeout_ms == 60000


def test_zero_frames_and_max_mean_unset(tmp_path: Path) -> None:
    cfg = apply_cli_overrides(_cfg(tmp_path), {"frames": "0", "max": "0", "schedule": "5"})
    params = build_schedule_parameters(cfg)
    assert params.frames is None
    assert params.max_interval == 86400
