#!/usr/bin/env python3
"""
Unified configuration loader for webelapse.

Load order (first found wins):
  1) WEBELAPSE_CONFIG (env, absolute or relative to CWD)
  2) /etc/webelapse/config.yaml
  3) <project_root>/config.yaml (derived from this file's location)
  4) ./config.yaml (current working directory)

Environment variables override file values when present. Command line
options override both (see ``apply_cli_overrides``).
"""
from __future__ import annotations

import copy
import logging
import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

_DEFAULTS: Dict[str, Any] = {
    "paths": {
        "output_dir": "",
    },
    "capture": {
        "url": "",
        "width": 960,
        "height": 720,
        "color_scheme": "light",
        "load_timeout_ms": 60000,
    },
    "dedup": {
        "hash_bits": 12,
        "distance": 0,
    },
    "schedule": {
        "interval_seconds": None,
        "max_interval_seconds": 60 * 60 * 24,
        "infinite": False,
    },
    "video": {
        "encoding": "mp4",
        "frame_rate": 0.5,
        "frames_per_video": None,
        "ffmpeg_path": "ffmpeg",
    },
    "logging": {
        "dev_mode": False  # if True or ENV DEV=1, enable verbose debug
    },
}

_LOG = logging.getLogger("webelapse.config")

_cfg_cache: Dict[str, Any] | None = None
_active_config_path: Path | None = None


class ConfigurationError(Exception):
    """Raised when the run cannot start because of invalid configuration."""


def _load_yaml_if_exists(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open("r") as f:
            data = yaml.safe_load(f) or {}
            if isinstance(data, dict):
                return data
    except (OSError, yaml.YAMLError) as exc:
        _LOG.warning("Ignoring unreadable config %s: %s", path, exc)
    return {}


def _candidate_search_paths(project_root: Path) -> list[Path]:
    search: list[Path] = []
    env_cfg = os.getenv("WEBELAPSE_CONFIG")
    if env_cfg:
        try:
            search.append(Path(env_cfg).expanduser().resolve())
        except Exception:
            search.append(Path(env_cfg).expanduser())
    search.extend(
        [
            Path("/etc/webelapse/config.yaml"),
            project_root / "config.yaml",
            Path.cwd() / "config.yaml",
        ]
    )
    seen: set[Path] = set()
    ordered: list[Path] = []
    for candidate in search:
        try:
            resolved = candidate.resolve()
        except Exception:
            resolved = candidate
        if resolved in seen:
            continue
        seen.add(resolved)
        ordered.append(resolved)
    return ordered


def _deep_merge(base: Dict[str, Any], extra: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for k, v in extra.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _apply_env_overrides(cfg: Dict[str, Any]) -> None:
    # DEV mode
    if os.getenv("DEV") == "1":
        cfg.setdefault("logging", {})["dev_mode"] = True

    # Values are stored raw; build_schedule_parameters validates them.
    env_map = {
        "WEBELAPSE_OUTPUT_DIR": ("paths", "output_dir"),
        "WEBELAPSE_URL": ("capture", "url"),
        "WEBELAPSE_INTERVAL": ("schedule", "interval_seconds"),
        "WEBELAPSE_MAX_INTERVAL": ("schedule", "max_interval_seconds"),
        "WEBELAPSE_INFINITE": ("schedule", "infinite"),
        "WEBELAPSE_FRAME_RATE": ("video", "frame_rate"),
        "WEBELAPSE_FFMPEG": ("video", "ffmpeg_path"),
    }
    for env_key, (section, key) in env_map.items():
        if env_key in os.environ:
            value = os.environ[env_key].strip()
            if value:
                cfg.setdefault(section, {})[key] = value


def get_cfg() -> Dict[str, Any]:
    global _cfg_cache, _active_config_path
    if _cfg_cache is not None:
        return _cfg_cache

    cfg = copy.deepcopy(_DEFAULTS)

    # Derive project root relative to this file (webelapse/ -> project root)
    try:
        project_root = Path(__file__).resolve().parent.parent
    except Exception:
        project_root = Path.cwd()

    search = _candidate_search_paths(project_root)

    active: Path | None = None
    for candidate in search:
        try:
            if candidate.exists():
                active = candidate
                break
        except OSError:
            pass

    for candidate in reversed(search):
        cfg = _deep_merge(cfg, _load_yaml_if_exists(candidate))

    _active_config_path = active
    _apply_env_overrides(cfg)
    _cfg_cache = cfg
    return cfg


def active_config_path() -> Path | None:
    if _cfg_cache is None:
        get_cfg()
    return _active_config_path


# CLI attribute -> (section, key)
_CLI_FIELDS: Dict[str, tuple[str, str]] = {
    "output": ("paths", "output_dir"),
    "url": ("capture", "url"),
    "bits": ("dedup", "hash_bits"),
    "color": ("capture", "color_scheme"),
    "distance": ("dedup", "distance"),
    "encoding": ("video", "encoding"),
    "frames": ("video", "frames_per_video"),
    "framerate": ("video", "frame_rate"),
    "infinite": ("schedule", "infinite"),
    "max": ("schedule", "max_interval_seconds"),
    "schedule": ("schedule", "interval_seconds"),
    "width": ("capture", "width"),
    "height": ("capture", "height"),
}


def apply_cli_overrides(cfg: Mapping[str, Any], options: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``cfg`` with every non-None CLI option applied."""
    out = copy.deepcopy(dict(cfg))
    for attr, (section, key) in _CLI_FIELDS.items():
        value = options.get(attr)
        if value is None or value is False:
            continue
        out.setdefault(section, {})[key] = value
    return out


def _parse_int_like(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return int(text, 10)
        except ValueError:
            try:
                float_candidate = float(text)
            except ValueError:
                return None
            if not math.isfinite(float_candidate) or not float_candidate.is_integer():
                return None
            return int(float_candidate)
    return None


def _parse_float_like(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        candidate = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            candidate = float(text)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(candidate):
        return None
    return candidate


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return False


def _is_unset(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _require_int(section: Mapping[str, Any], key: str, label: str, *, optional: bool = False) -> int | None:
    raw = section.get(key)
    if optional and _is_unset(raw):
        return None
    parsed = _parse_int_like(raw)
    if parsed is None:
        raise ConfigurationError(f"{label} must be an integer, got {raw!r}")
    return parsed


def _require_float(section: Mapping[str, Any], key: str, label: str) -> float:
    raw = section.get(key)
    parsed = _parse_float_like(raw)
    if parsed is None:
        raise ConfigurationError(f"{label} must be a number, got {raw!r}")
    return parsed


def _section(cfg: Mapping[str, Any], name: str) -> Dict[str, Any]:
    """Return section ``name`` with blank values replaced by their defaults."""
    merged = dict(_DEFAULTS.get(name, {}))
    for key, value in (cfg.get(name) or {}).items():
        if not _is_unset(value):
            merged[key] = value
    return merged


@dataclass(frozen=True)
class ScheduleParameters:
    """Immutable run parameters, built once at startup."""

    output_dir: Path
    url: str
    hash_bits: int = 12
    color_scheme: str = "light"
    distance: int = 0
    encoding: str = "mp4"
    frames: int | None = None
    frame_rate: float = 0.5
    infinite: bool = False
    interval: float | None = None
    max_interval: float = 60.0 * 60 * 24
    width: int = 960
    height: int = 720
    load_timeout_ms: int = 60000
    ffmpeg_bin: str = "ffmpeg"

    @property
    def scheduling_enabled(self) -> bool:
        return self.interval is not None


def build_schedule_parameters(cfg: Mapping[str, Any]) -> ScheduleParameters:
    """Validate ``cfg`` and freeze it into ``ScheduleParameters``.

    Raises ``ConfigurationError`` naming the offending option when a value is
    missing or fails to parse.
    """

    paths = _section(cfg, "paths")
    capture = _section(cfg, "capture")
    dedup = _section(cfg, "dedup")
    schedule = _section(cfg, "schedule")
    video = _section(cfg, "video")

    raw_output = paths.get("output_dir")
    if _is_unset(raw_output):
        raise ConfigurationError("output directory is required")
    output_dir = Path(str(raw_output)).expanduser()
    if not output_dir.exists():
        raise ConfigurationError(f"output directory does not exist: {output_dir}")
    if not output_dir.is_dir():
        raise ConfigurationError(f"output path is not a directory: {output_dir}")

    url = str(capture.get("url") or "").strip()
    if not url:
        raise ConfigurationError("url is required")

    hash_bits = _require_int(dedup, "hash_bits", "hash bits")
    if hash_bits < 2:
        raise ConfigurationError(f"hash bits must be at least 2, got {hash_bits}")
    distance = _require_int(dedup, "distance", "distance")

    frame_rate = _require_float(video, "frame_rate", "video frame rate")
    if frame_rate < 0:
        raise ConfigurationError(f"video frame rate must not be negative, got {frame_rate}")
    frames = _require_int(video, "frames_per_video", "frames per video", optional=True)
    if frames is not None and frames < 0:
        raise ConfigurationError(f"frames per video must not be negative, got {frames}")
    # 0 frames means no frame target, as if the option were absent.
    frames = frames or None
    encoding = str(video.get("encoding") or "mp4").strip().lstrip(".") or "mp4"

    interval: float | None = None
    if not _is_unset(schedule.get("interval_seconds")):
        interval = float(_require_int(schedule, "interval_seconds", "schedule interval"))
        if interval <= 0:
            raise ConfigurationError(f"schedule interval must be positive, got {interval:g}")
    max_interval = float(_require_int(schedule, "max_interval_seconds", "max interval"))
    if max_interval < 0:
        raise ConfigurationError(f"max interval must not be negative, got {max_interval:g}")
    # 0 falls back to the default cap.
    max_interval = max_interval or float(_DEFAULTS["schedule"]["max_interval_seconds"])

    width = _require_int(capture, "width", "view width")
    height = _require_int(capture, "height", "view height")
    if width <= 0 or height <= 0:
        raise ConfigurationError(f"viewport must be positive, got {width}x{height}")
    load_timeout_ms = _require_int(capture, "load_timeout_ms", "load timeout")

    color = str(capture.get("color_scheme") or "light").strip().lower()

    return ScheduleParameters(
        output_dir=output_dir,
        url=url,
        hash_bits=hash_bits,
        color_scheme="dark" if color == "dark" else "light",
        distance=distance,
        encoding=encoding,
        frames=frames,
        frame_rate=frame_rate,
        infinite=_parse_bool(schedule.get("infinite", False)),
        interval=interval,
        max_interval=max_interval,
        width=width,
        height=height,
        load_timeout_ms=load_timeout_ms,
        ffmpeg_bin=str(video.get("ffmpeg_path") or "ffmpeg"),
    )
