"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < user config < project config < env vars
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from .models import DashsyncConfig

logger = logging.getLogger(__name__)

# Global cache to avoid reloading config multiple times per session
_config_cache: DashsyncConfig | None = None

# Environment variable -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "DASHSYNC_SERVER_URL": ("server", "url"),
    "DASHSYNC_USERNAME": ("server", "username"),
    "DASHSYNC_PASSWORD": ("server", "password"),
    "DASHSYNC_TIMEOUT": ("server", "timeout_seconds"),
    "DASHSYNC_DB_PATH": ("storage", "db_path"),
    "DASHSYNC_PROTECT_PENDING": ("sync", "protect_pending"),
    "DASHSYNC_SERVER_TIMEZONE": ("sync", "server_timezone"),
}


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
    """Path to ~/.config/dashsync/config.json (or XDG equivalent)."""
    return get_xdg_config_home() / "dashsync" / "config.json"


def get_project_config_path(cwd: Path | None = None) -> Path:
    """Path to .dashsync.json in the project directory (defaults to cwd)."""
    if cwd is None:
        cwd = Path.cwd()
    return cwd / ".dashsync.json"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`. Nested
    dicts are merged, not replaced.

    Example:
        >>> deep_merge({"server": {"url": "a", "timeout_seconds": 5}},
        ...            {"server": {"url": "b"}})
        {'server': {'url': 'b', 'timeout_seconds': 5}}
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
        with path.open() as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            logger.warning(f"Ignoring config at {path}: top level is not an object")
            return None
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Failed to parse config at {path}: {e}")
        return None


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply DASHSYNC_* environment variable overrides to configuration.

    Env vars have the highest precedence and override all config files.
    Values are passed through as strings; Pydantic coerces them (so
    DASHSYNC_PROTECT_PENDING=false and DASHSYNC_TIMEOUT=10 both work).

    Args:
        config_dict: Configuration dictionary to override

    Returns:
        Configuration dictionary with env var overrides applied
    """
    result = {
        key: dict(value) if isinstance(value, dict) else value
        for key, value in config_dict.items()
    }

    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value is None or value == "":
            continue
        result.setdefault(section, {})[key] = value

    return result


def get_default_config() -> dict[str, Any]:
    """
    Get hardcoded default configuration.

    Returns:
        Dictionary with default configuration values
    """
    return {
        "server": {"timeout_seconds": 30.0},
        "storage": {"db_path": ".dashsync/dashboards.db"},
        "sync": {"protect_pending": True, "server_timezone": "UTC"},
    }


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> DashsyncConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (DASHSYNC_*)
        2. Project config (.dashsync.json)
        3. User config (~/.config/dashsync/config.json)
        4. Hardcoded defaults

    Args:
        project_dir: Project directory to load .dashsync.json from (defaults to cwd)
        use_cache: If True, return cached config from previous load

    Returns:
        Validated DashsyncConfig instance

    Raises:
        ValidationError: If the merged config fails Pydantic validation
    """
    global _config_cache

    if use_cache and _config_cache is not None:
        return _config_cache

    merged = get_default_config()

    if user_config := load_json_file(get_user_config_path()):
        merged = deep_merge(merged, user_config)

    if project_config := load_json_file(get_project_config_path(project_dir)):
        merged = deep_merge(merged, project_config)

    merged = apply_env_overrides(merged)

    config = DashsyncConfig(**merged)
    _config_cache = config

    return config


def clear_cache() -> None:
    """
    Clear the cached configuration.

    Useful for testing or when config files change during execution.
    """
    global _config_cache
    _config_cache = None
