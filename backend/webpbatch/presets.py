"""Named conversion configs stored as JSON files in CONFIGS_DIR.

A config file uses camelCase keys::

    {
      "name": "Thumbnails",
      "description": "300px thumbnails around 50KB",
      "sourceDir": "./assets",
      "outputDir": "./assets_thumbs",
      "quality": 70,
      "minQuality": 60,
      "targetSize": 50,
      "resize": {"enabled": true, "width": 300, "height": 300},
      "extensions": [".jpg", ".png"],
      "concurrency": 4
    }

Missing keys fall back to ``default_config_data()``. ``minQuality`` defaults to
``quality`` and is clamped to it when larger; ``targetSize: null`` disables the
size search.
"""
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from webpbatch import config as app_config
from webpbatch.conversion.models import BATCH_POLICY, ResizeSettings, SearchPolicy, Settings
from webpbatch.errors import ConfigError, ConfigNotFoundError

logger = logging.getLogger("webpbatch.presets")

DEFAULT_CONFIG_NAME = "default"


@dataclass(frozen=True)
class ConversionConfig:
    name: str
    source_dir: Path
    output_dir: Path
    settings: Settings
    description: str = ""
    extensions: tuple = tuple(app_config.DEFAULT_SOURCE_EXTENSIONS)
    concurrency: int = app_config.MAX_WORKERS
    policy: SearchPolicy = field(default=BATCH_POLICY)


def default_config_data() -> dict:
    return {
        "name": DEFAULT_CONFIG_NAME,
        "description": "",
        "sourceDir": "./assets",
        "outputDir": "./assets_webp",
        "quality": app_config.DEFAULT_QUALITY,
        "targetSize": app_config.DEFAULT_TARGET_SIZE_KB,
        "minQuality": None,
        "resize": {"enabled": False, "width": 1200, "height": 630},
        "extensions": list(app_config.DEFAULT_SOURCE_EXTENSIONS),
        "concurrency": app_config.MAX_WORKERS,
        "format": "webp",
        "searchIterations": app_config.SEARCH_MAX_ITERATIONS,
        "sizeEpsilon": app_config.SEARCH_SIZE_EPSILON_KB,
    }


def _number(data: dict, key: str, kind=int):
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"'{key}' must be a number, got {value!r}")
    return kind(value)


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def normalize_config(data: dict, base_dir: Optional[Path] = None) -> ConversionConfig:
    """Merge ``data`` over the defaults and validate it.

    Relative source/output dirs are resolved against ``base_dir`` when given.
    """
    defaults = default_config_data()
    merged = {**defaults, **data}
    merged["resize"] = {**defaults["resize"], **(data.get("resize") or {})}
    if not merged.get("extensions"):
        merged["extensions"] = defaults["extensions"]
    if not merged.get("concurrency"):
        merged["concurrency"] = defaults["concurrency"]

    quality = _clamp(_number(merged, "quality"), 0, 100)
    if merged.get("minQuality") is None:
        min_quality = quality
    else:
        min_quality = _clamp(_number(merged, "minQuality"), 0, 100)
    if min_quality > quality:
        logger.warning(
            "Config %s: minQuality %s exceeds quality %s; using %s",
            merged.get("name"), min_quality, quality, quality,
        )
        min_quality = quality

    target_size = None
    if merged.get("targetSize") is not None:
        target_size = _number(merged, "targetSize", float)
        if target_size <= 0:
            raise ConfigError(f"'targetSize' must be positive, got {target_size}")

    resize = merged["resize"]
    try:
        resize_settings = ResizeSettings(
            enabled=bool(resize.get("enabled")),
            width=int(resize["width"]),
            height=int(resize["height"]),
        )
        settings = Settings(
            quality=quality,
            min_quality=min_quality,
            target_size_kb=target_size,
            resize=resize_settings,
            output_format=str(merged.get("format") or "webp").lower(),
        )
        policy = SearchPolicy(
            max_iterations=int(merged["searchIterations"]),
            size_epsilon_kb=None if merged.get("sizeEpsilon") is None else float(merged["sizeEpsilon"]),
        )
    except (TypeError, ValueError, KeyError) as e:
        raise ConfigError(f"Invalid config {merged.get('name')!r}: {e}") from e

    concurrency = _number(merged, "concurrency")
    if concurrency < 1:
        raise ConfigError(f"'concurrency' must be at least 1, got {concurrency}")

    extensions = tuple(
        (e if e.startswith(".") else f".{e}").lower()
        for e in merged["extensions"]
    )
    source_dir = Path(merged["sourceDir"])
    output_dir = Path(merged["outputDir"])
    if base_dir is not None:
        source_dir = source_dir if source_dir.is_absolute() else base_dir / source_dir
        output_dir = output_dir if output_dir.is_absolute() else base_dir / output_dir

    return ConversionConfig(
        name=str(merged.get("name") or DEFAULT_CONFIG_NAME),
        description=str(merged.get("description") or ""),
        source_dir=source_dir,
        output_dir=output_dir,
        settings=settings,
        extensions=extensions,
        concurrency=concurrency,
        policy=policy,
    )


def list_config_names(configs_dir: Optional[Path] = None) -> list[str]:
    configs_dir = configs_dir or app_config.CONFIGS_DIR
    if not configs_dir.is_dir():
        return []
    return sorted(p.stem for p in configs_dir.glob("*.json"))


def load_config(name: str, configs_dir: Optional[Path] = None) -> ConversionConfig:
    configs_dir = configs_dir or app_config.CONFIGS_DIR
    path = configs_dir / f"{name}.json"
    if not path.is_file():
        raise ConfigNotFoundError(name, path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Error parsing config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    data.setdefault("name", name)
    cfg = normalize_config(data)
    logger.info("Loaded config: %s", cfg.name)
    if cfg.description:
        logger.info("Description: %s", cfg.description)
    return cfg


def load_configs(names: Optional[list[str]] = None, configs_dir: Optional[Path] = None) -> list[ConversionConfig]:
    """Resolve config names in order. No names means the built-in default."""
    if not names:
        return [normalize_config({})]
    return [load_config(name, configs_dir) for name in names]


def parse_config_names(value: str) -> list[str]:
    return [name.strip() for name in value.split(",") if name.strip()]
