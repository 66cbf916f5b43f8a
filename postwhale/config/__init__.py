"""Configuration module for postwhale."""

from postwhale.config.loader import load_config, get_config_path, save_config
from postwhale.config.schema import BridgeConfig, Config, LoggingConfig, StorageConfig
from postwhale.config.access import get_config, clear_config_cache

__all__ = [
    "BridgeConfig",
    "Config",
    "LoggingConfig",
    "StorageConfig",
    "load_config",
    "save_config",
    "get_config_path",
    "get_config",
    "clear_config_cache",
]
