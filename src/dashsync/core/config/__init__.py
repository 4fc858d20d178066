"""
Configuration for dashsync.

Layered JSON configuration with environment overrides, validated by
Pydantic models.
"""

from dashsync.core.config.env import load_layered_env
from dashsync.core.config.loader import clear_cache, load_config
from dashsync.core.config.models import (
    DashsyncConfig,
    ServerConfig,
    StorageConfig,
    SyncConfig,
)

__all__ = [
    "DashsyncConfig",
    "ServerConfig",
    "StorageConfig",
    "SyncConfig",
    "load_config",
    "clear_cache",
    "load_layered_env",
]
