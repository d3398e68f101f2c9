"""Configuration loading and saving."""

import json
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from vaultrecall.config.schema import Config


class ConfigError(ValueError):
    """Raised when the configuration is missing or invalid."""


def get_data_dir() -> Path:
    """Get the vaultrecall data directory (~/.vaultrecall)."""
    path = Path.home() / ".vaultrecall"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_path() -> Path:
    """Get the default config file path."""
    return get_data_dir() / "config.json"


def load_config(path: Path | None = None, **overrides: Any) -> Config:
    """
    Load configuration from a JSON file and the environment.

    Environment variables (VAULTRECALL_*) fill in anything the file does
    not set; keyword overrides win over both.

    Args:
        path: Config file path, or None for the default location.
        **overrides: Top-level fields to override.

    Returns:
        Validated Config.

    Raises:
        ConfigError: If the file is unreadable, invalid, or no vault path is set.
    """
    path = path or get_config_path()
    data: dict[str, Any] = {}

    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a JSON object")
        logger.debug(f"Loaded config from {path}")

    data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        config = Config(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    validate_config(config)
    return config


def validate_config(config: Config) -> None:
    """Check the fields the engine cannot start without."""
    if not config.vault_path.strip():
        raise ConfigError("vault_path is required")


def save_config(config: Config, path: Path | None = None) -> Path:
    """Write configuration to disk as JSON."""
    path = path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(config.model_dump_json(indent=2), encoding="utf-8")
    return path
