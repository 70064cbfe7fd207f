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

from .models import PortalKeysConfig

logger = logging.getLogger(__name__)

# Global cache to avoid reloading config multiple times per process
_config_cache: PortalKeysConfig | None = None


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
    """Get path to ~/.config/portalkeys/config.json (or XDG equivalent)."""
    return get_xdg_config_home() / "portalkeys" / "config.json"


def get_project_config_path(cwd: Path | None = None) -> Path:
    """
    Get path to project configuration file.

    Args:
        cwd: Working directory to search from (defaults to current directory)

    Returns:
        Path to .portalkeys.json in the project root
    """
    if cwd is None:
        cwd = Path.cwd()
    return cwd / ".portalkeys.json"


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
        with path.open() as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            return None
    except (json.JSONDecodeError, OSError) as e:
        # Config system should be resilient: warn and continue
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None


def _set_nested(result: dict[str, Any], section: str, key: str, value: Any) -> None:
    if not isinstance(result.get(section), dict):
        result[section] = {}
    result[section][key] = value


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Env vars have the highest precedence and override all config files.

    Supported env vars:
        PORTALKEYS_DB - overrides store.db_path
        PORTALKEYS_SCOPING - overrides keys.scoping
        PORTALKEYS_EMPTY_NAME_POLICY - overrides keys.empty_name_policy
        PORTALKEYS_MAX_RETRIES - overrides sequence.max_retries

    Args:
        config_dict: Configuration dictionary to override

    Returns:
        Configuration dictionary with env var overrides applied
    """
    result = config_dict.copy()

    if db_path := os.environ.get("PORTALKEYS_DB"):
        _set_nested(result, "store", "db_path", db_path)

    if scoping := os.environ.get("PORTALKEYS_SCOPING"):
        if scoping in ("organization", "sub_unit"):
            _set_nested(result, "keys", "scoping", scoping)
        else:
            logger.warning("Invalid PORTALKEYS_SCOPING value '%s', ignoring", scoping)

    if policy := os.environ.get("PORTALKEYS_EMPTY_NAME_POLICY"):
        if policy in ("error", "timestamp"):
            _set_nested(result, "keys", "empty_name_policy", policy)
        else:
            logger.warning("Invalid PORTALKEYS_EMPTY_NAME_POLICY value '%s', ignoring", policy)

    if retries_str := os.environ.get("PORTALKEYS_MAX_RETRIES"):
        try:
            retries = int(retries_str)
            if 0 <= retries <= 16:
                _set_nested(result, "sequence", "max_retries", retries)
            else:
                logger.warning(
                    "PORTALKEYS_MAX_RETRIES must be between 0 and 16, got %d, ignoring",
                    retries,
                )
        except ValueError:
            logger.warning("Invalid PORTALKEYS_MAX_RETRIES value '%s', ignoring", retries_str)

    return result


def get_default_config() -> dict[str, Any]:
    """
    Get hardcoded default configuration.

    Returns:
        Dictionary with default configuration values
    """
    return {
        "keys": {
            "scoping": "organization",
            "empty_name_policy": "error",
            "max_suffix_attempts": 999,
            "auto_create_keys": True,
        },
        "sequence": {"max_retries": 8, "retry_delay_ms": 10, "retry_backoff": 1.5},
        "store": {"db_path": ".portalkeys/keys.db", "busy_timeout_seconds": 5.0},
    }


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> PortalKeysConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (PORTALKEYS_*)
        2. Project config (.portalkeys.json)
        3. User config (~/.config/portalkeys/config.json)
        4. Hardcoded defaults

    Args:
        project_dir: Project directory to load .portalkeys.json from (defaults to cwd)
        use_cache: If True, return cached config from previous load

    Returns:
        Validated PortalKeysConfig instance

    Raises:
        ValidationError: If the merged config fails Pydantic validation

    Example:
        >>> config = load_config()
        >>> config.keys.scoping
        'organization'
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

    config = PortalKeysConfig(**merged)
    _config_cache = config

    return config


def clear_cache() -> None:
    """
    Clear the cached configuration.

    Useful for testing or when config files change during execution.
    """
    global _config_cache
    _config_cache = None
