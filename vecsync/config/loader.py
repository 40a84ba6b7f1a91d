# vecsync/config/loader.py
"""
Configuration loader for vecsync.

Responsibilities:
- Load default config
- Load user config (optional)
- Expand ${ENV_VAR} placeholders
- Validate via schema
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from vecsync.config.schema import VecSyncConfig
from vecsync.exceptions import ConfigError
from vecsync.logging import get_logger
from vecsync.logging.tags import CLI

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "default.yaml"
CONFIG_ENV_VAR = "VECSYNC_CONFIG"

_BARE_PLACEHOLDER = re.compile(r"^\$\{(\w+)\}$")


def _expand_env(value: Any) -> Any:
    # A value that is only an unset placeholder becomes None instead of the literal text
    if isinstance(value, str):
        bare = _BARE_PLACEHOLDER.match(value.strip())
        if bare and bare.group(1) not in os.environ:
            return None
        return os.path.expandvars(value)
    if isinstance(value, dict):
        return {k: _expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env(v) for v in value]
    return value


def _load_yaml(path: Path) -> dict:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    with path.open("r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level")

    return _expand_env(data)


def _deep_merge(base: dict, override: dict) -> dict:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            # Plugin kwargs belong to one plugin; switching plugins must not inherit them
            if key in ("embedding", "vector_db") and value.get("plugin_name") not in (
                None,
                merged[key].get("plugin_name"),
            ):
                merged[key] = value
            else:
                merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(user_config_path: Path | str | None = None) -> VecSyncConfig:
    """
    Load and validate vecsync configuration.

    Precedence:
    - defaults
    - user config from the argument, else from $VECSYNC_CONFIG (overrides defaults)
    """
    logger.debug(f"{CLI} Loading default config from {DEFAULT_CONFIG_PATH}")
    cfg = _load_yaml(DEFAULT_CONFIG_PATH)

    if user_config_path is None and os.getenv(CONFIG_ENV_VAR):
        user_config_path = os.environ[CONFIG_ENV_VAR]

    if user_config_path:
        path = Path(user_config_path).expanduser()
        logger.debug(f"{CLI} Loading user config from {path}")
        cfg = _deep_merge(cfg, _load_yaml(path))

    try:
        return VecSyncConfig.model_validate(cfg)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration:\n{e}") from e
