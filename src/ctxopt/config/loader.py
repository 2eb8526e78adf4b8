"""Configuration loader with TOML support and merge capability."""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from ctxopt.config.schema import CtxoptConfig

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CTXOPT_CONFIG_PATH"
LOCAL_CONFIG_NAME = "ctxopt.toml"


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        data = tomllib.load(f)
    logger.debug("Loaded config from %s", path)
    return data


def user_config_path() -> Path:
    """Location of the per-user config file."""
    return Path.home() / ".config" / "ctxopt" / "config.toml"


def load_config(
    config_path: Path | None = None,
    merge_user: bool = True,
) -> CtxoptConfig:
    """Load configuration with precedence.

    Priority (highest to lowest):
    1. Provided config_path
    2. $CTXOPT_CONFIG_PATH
    3. ./ctxopt.toml (project defaults)
    4. ~/.config/ctxopt/config.toml (user defaults)
    5. Built-in defaults (schema)

    Args:
        config_path: Explicit path to config file.
        merge_user: Whether to merge user config from ~/.config/ctxopt/.

    Returns:
        Merged CtxoptConfig instance.

    Raises:
        FileNotFoundError: If an explicitly requested config file is missing.
    """
    env_config = os.environ.get(CONFIG_ENV_VAR)
    if config_path is None and env_config:
        config_path = Path(env_config).expanduser()

    config_data: dict[str, Any] = {}

    if merge_user:
        user_path = user_config_path()
        if user_path.exists():
            config_data = _deep_merge(config_data, _read_toml(user_path))

    local_path = Path(LOCAL_CONFIG_NAME)
    if local_path.exists():
        config_data = _deep_merge(config_data, _read_toml(local_path))

    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"config file not found: {config_path}")
        config_data = _deep_merge(config_data, _read_toml(config_path))

    return CtxoptConfig(**config_data)
