"""Configuration module."""

from vaultrecall.config.schema import (
    Config,
    SearchConfig,
    AutoRecallConfig,
    AutoCaptureConfig,
    WatcherConfig,
    OrganizeConfig,
)
from vaultrecall.config.loader import ConfigError, load_config, save_config

__all__ = [
    "Config",
    "SearchConfig",
    "AutoRecallConfig",
    "AutoCaptureConfig",
    "WatcherConfig",
    "OrganizeConfig",
    "ConfigError",
    "load_config",
    "save_config",
]
