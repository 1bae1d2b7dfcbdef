from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from lyric_engine.options import LineEnding
from lyric_engine.pipeline import DEFAULT_STAGES, ProcessorKind
from lyric_engine.util.timing import Resolution

logger = logging.getLogger(__name__)

ENV_PREFIX = "LYRIC_ENGINE_"

# config.json key -> environment suffix
KEYS = {
    "smoothing_ms": "SMOOTHING_MS",
    "chinese_variant": "CHINESE_VARIANT",
    "resolution": "RESOLUTION",
    "line_ending": "LINE_ENDING",
    "workers": "WORKERS",
    "stages": "STAGES",
}


def _config_dir() -> Path:
    xdg = os.getenv("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "lyric-engine"
    return Path.home() / ".config" / "lyric-engine"


def _config_file() -> Path:
    return _config_dir() / "config.json"


@dataclass(frozen=True)
class AppConfig:
    config_dir: Path

    # Pipeline
    smoothing_ms: int
    chinese_variant: str | None
    stages: tuple[ProcessorKind, ...]

    # Output
    resolution: Resolution
    line_ending: LineEnding

    # Batch
    workers: int | None


def _read_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable config %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config %s: top level is not an object", path)
        return {}
    return data


def _raw(file_data: dict[str, Any], key: str) -> Any:
    # Priority: config.json -> LYRIC_ENGINE_* -> default
    value = file_data.get(key)
    if value is None or value == "":
        value = os.getenv(ENV_PREFIX + KEYS[key]) or None
    return value


def load_config() -> AppConfig:
    config_dir = _config_dir()
    data = _read_file(config_dir / "config.json")

    smoothing = _raw(data, "smoothing_ms")
    variant = _raw(data, "chinese_variant")
    resolution = _raw(data, "resolution")
    line_ending = _raw(data, "line_ending")
    workers = _raw(data, "workers")
    stages = _raw(data, "stages")
    if isinstance(stages, list):
        stages = ",".join(stages)

    return AppConfig(
        config_dir=config_dir,
        smoothing_ms=int(smoothing) if smoothing is not None else 0,
        chinese_variant=str(variant) if variant else None,
        stages=tuple(ProcessorKind.parse_list(stages)) if stages else DEFAULT_STAGES,
        resolution=Resolution(str(resolution).lower()) if resolution else Resolution.MS,
        line_ending=LineEnding(str(line_ending).upper()) if line_ending else LineEnding.LF,
        workers=int(workers) if workers else None,
    )


def save_config_value(key: str, value: str) -> Path:
    """Persist one key to config.json; an empty value removes it."""
    if key not in KEYS:
        raise KeyError(f"Unknown config key {key!r}; expected one of {sorted(KEYS)}")
    cfg_path = _config_file()
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    data = _read_file(cfg_path)
    if value:
        data[key] = value
    else:
        data.pop(key, None)
    cfg_path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    return cfg_path
