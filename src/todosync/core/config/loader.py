"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < user config < env vars

There is deliberately no module-level cache: the application root loads the
configuration once and passes the instance to every service it builds.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from .models import SyncConfig

logger = logging.getLogger(__name__)


def get_xdg_config_home() -> Path:
    """
    Get XDG config home directory.

    Returns:
        Path to config directory (defaults to ~/.config)
    """
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_user_config_path() -> Path:
    """
    Get path to user configuration file.

    Returns:
        Path to ~/.config/todosync/config.json (or XDG equivalent)
    """
    return get_xdg_config_home() / "todosync" / "config.json"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`.
    Nested dicts are merged, not replaced.

    Example:
        >>> base = {"a": 1, "b": {"x": 10, "y": 20}}
        >>> override = {"b": {"y": 30, "z": 40}, "c": 3}
        >>> deep_merge(base, override)
        {'a': 1, 'b': {'x': 10, 'y': 30, 'z': 40}, 'c': 3}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Load a JSON file, returning None if it doesn't exist or is invalid.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON as dict, or None if file doesn't exist or can't be parsed
    """
    if not path.exists():
        return None

    try:
        with path.open(encoding="utf-8") as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            logger.warning(f"Ignoring config at {path}: top-level value is not an object")
            return None
    except (json.JSONDecodeError, OSError) as e:
        # Config system should be resilient
        logger.warning(f"Failed to parse config at {path}: {e}")
        return None


def _int_from_env(name: str, minimum: int) -> int | None:
    raw = os.environ.get(name)
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid {name} value '{raw}', ignoring")
        return None
    if value < minimum:
        logger.warning(f"{name} must be >= {minimum}, got {value}, ignoring")
        return None
    return value


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Env vars have the highest precedence and override all config files.

    Supported env vars:
        TODOSYNC_TODOS_DIR - overrides todos_dir
        TODOSYNC_SETTINGS_PATH - overrides settings_path
        TODOSYNC_STATE_DIR - overrides state_dir
        TODOSYNC_DEBOUNCE_MS - overrides debounce_ms
        TODOSYNC_HISTORY_LIMIT - overrides history_limit

    Args:
        config_dict: Configuration dictionary to override

    Returns:
        Configuration dictionary with env var overrides applied
    """
    result = config_dict.copy()

    for env_name, key in (
        ("TODOSYNC_TODOS_DIR", "todos_dir"),
        ("TODOSYNC_SETTINGS_PATH", "settings_path"),
        ("TODOSYNC_STATE_DIR", "state_dir"),
    ):
        if value := os.environ.get(env_name):
            result[key] = value

    debounce = _int_from_env("TODOSYNC_DEBOUNCE_MS", minimum=0)
    if debounce is not None:
        result["debounce_ms"] = debounce

    history_limit = _int_from_env("TODOSYNC_HISTORY_LIMIT", minimum=1)
    if history_limit is not None:
        result["history_limit"] = history_limit

    return result


def load_config(config_path: Path | None = None) -> SyncConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (TODOSYNC_*)
        2. User config (~/.config/todosync/config.json, or config_path)
        3. Model defaults

    Args:
        config_path: Explicit config file to use instead of the user config

    Returns:
        Validated SyncConfig instance

    Raises:
        ValidationError: If the merged config fails Pydantic validation

    Example:
        >>> config = load_config()
        >>> config.debounce_ms
        300
    """
    merged: dict[str, Any] = {}

    user_config_path = config_path or get_user_config_path()
    if user_config := load_json_file(user_config_path):
        merged = deep_merge(merged, user_config)

    merged = apply_env_overrides(merged)

    return SyncConfig(**merged)
