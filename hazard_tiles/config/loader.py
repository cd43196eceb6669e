"""YAML config loader with runtime get/set."""

import hashlib
import json
import logging
import os
from pathlib import Path
from typing import Any

import yaml

from hazard_tiles.config.schema import TileServiceConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "ops/configs/default.yaml"
CONFIG_ENV_VAR = "HAZARD_TILES_CONFIG"


def resolve_config_path(path: str | Path | None = None) -> Path:
    """Explicit path wins, then $HAZARD_TILES_CONFIG, then the packaged default."""
    if path is not None:
        return Path(path)
    return Path(os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH))


def load_config(path: str | Path | None = None) -> TileServiceConfig:
    """Load and validate config from a YAML file.

    A missing file is not an error: the service runs on built-in defaults.
    """
    path = resolve_config_path(path)
    if not path.exists():
        logger.info("Config %s not found, using defaults", path)
        return TileServiceConfig()
    with open(path) as f:
        raw = yaml.safe_load(f) or {}
    return TileServiceConfig(**raw)


def config_hash(config: TileServiceConfig) -> str:
    """Compute a deterministic SHA256 hash of the config."""
    data = config.model_dump_json(indent=None)
    return hashlib.sha256(data.encode()).hexdigest()[:16]


def get_config_value(config: TileServiceConfig, dotted_key: str) -> Any:
    """Get a config value by dotted key path. E.g. 'render.alpha'."""
    parts = dotted_key.split(".")
    obj: Any = config
    for part in parts:
        if isinstance(obj, dict):
            if part in obj:
                obj = obj[part]
            elif part.isdigit() and int(part) in obj:
                obj = obj[int(part)]
            else:
                raise KeyError(f"Config key not found: {dotted_key}")
        elif hasattr(obj, part):
            obj = getattr(obj, part)
        else:
            raise KeyError(f"Config key not found: {dotted_key}")
    return obj


def set_config_value(
    config: TileServiceConfig, dotted_key: str, value: Any
) -> TileServiceConfig:
    """Set a config value by dotted key path and re-validate.

    Returns a new TileServiceConfig instance.
    """
    data = json.loads(config.model_dump_json())
    parts = dotted_key.split(".")
    target = data
    for part in parts[:-1]:
        if part not in target:
            raise KeyError(f"Config key not found: {dotted_key}")
        target = target[part]
    # Attempt type coercion for common cases
    old_value = target.get(parts[-1])
    if isinstance(old_value, bool) and isinstance(value, str):
        value = value.lower() in ("1", "true", "yes", "on")
    elif isinstance(old_value, int) and isinstance(value, str):
        value = int(value)
    elif isinstance(old_value, float) and isinstance(value, str):
        value = float(value)
    target[parts[-1]] = value
    return TileServiceConfig(**data)
