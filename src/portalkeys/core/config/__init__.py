"""
Configuration models and loading.

Pydantic models for portalkeys configuration with multi-layer merging:
defaults < user < project < env vars.
"""

from .loader import (
    clear_cache,
    get_project_config_path,
    get_user_config_path,
    get_xdg_config_home,
    load_config,
)
from .models import KeysConfig, PortalKeysConfig, SequenceConfig, StoreConfig

__all__ = [
    # Models
    "KeysConfig",
    "PortalKeysConfig",
    "SequenceConfig",
    "StoreConfig",
    # Loader functions
    "clear_cache",
    "get_project_config_path",
    "get_user_config_path",
    "get_xdg_config_home",
    "load_config",
]
