"""Configuration management for tagwatch."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Union

import yaml

from .bluetooth.constants import (
    DEFAULT_OLDEST_DEVICE,
    DEFAULT_SCAN_BUFFER_SIZE,
    DEFAULT_SCAN_LENGTH,
    DEFAULT_SCAN_RATE,
    DEFAULT_SNAPSHOT_INTERVAL,
    DEFAULT_TRIM_INTERVAL,
    SCREEN_ROW_BUFFER,
    SNAPSHOT_TRIGGER_INTERVAL,
    SNAPSHOT_TRIGGER_SCAN_WINDOW,
)
from .errors import ConfigError


@dataclass
class ScanConfig:
    """Configuration for the radio duty cycle."""

    scan_rate: float = DEFAULT_SCAN_RATE
    scan_length: float = DEFAULT_SCAN_LENGTH
    buffer_size: int = DEFAULT_SCAN_BUFFER_SIZE


@dataclass
class TrackingConfig:
    """Configuration for device aging and snapshot emission."""

    trim_interval: float = DEFAULT_TRIM_INTERVAL
    oldest_device: float = DEFAULT_OLDEST_DEVICE
    snapshot_interval: float = DEFAULT_SNAPSHOT_INTERVAL
    snapshot_trigger: str = SNAPSHOT_TRIGGER_SCAN_WINDOW


@dataclass
class DisplayConfig:
    """Configuration for the terminal device table."""

    company_identifiers: Optional[str] = None  # bundled table when unset
    row_buffer: int = SCREEN_ROW_BUFFER
    enabled: bool = True


@dataclass
class LoggingConfig:
    """Configuration for log output."""

    level: str = "INFO"
    file: Optional[str] = None  # stderr when unset


@dataclass
class AppConfig:
    """Main application configuration."""

    scan: ScanConfig = field(default_factory=ScanConfig)
    tracking: TrackingConfig = field(default_factory=TrackingConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


_SECTIONS = {
    "scan": ScanConfig,
    "tracking": TrackingConfig,
    "display": DisplayConfig,
    "logging": LoggingConfig,
}


def load_config(config_path: Optional[Union[str, Path]] = None) -> AppConfig:
    """
    Load configuration from a YAML file with environment variable support.

    Values written as ``${NAME}`` are replaced by the environment variable
    NAME when it is set. Without a path the defaults are returned.

    Raises:
        ConfigError: If the file is missing, malformed or has unknown keys.
    """
    if config_path is None:
        return AppConfig()

    config_file = Path(config_path)
    if not config_file.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with config_file.open("r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to read configuration file {config_path}: {e}") from e

    if raw_config is None:
        return AppConfig()
    if not isinstance(raw_config, dict):
        raise ConfigError(f"Invalid configuration file: {config_path}")

    _substitute_env_vars(raw_config)

    config = AppConfig()
    for name, section in raw_config.items():
        section_type = _SECTIONS.get(name)
        if section_type is None:
            raise ConfigError(f"Unknown configuration section: {name}")
        if not isinstance(section, dict):
            raise ConfigError(f"Configuration section '{name}' must be a mapping")
        try:
            setattr(config, name, section_type(**section))
        except TypeError as e:
            raise ConfigError(f"Invalid keys in configuration section '{name}': {e}") from e

    return config


def _substitute_env_vars(data: Any) -> None:
    """Recursively substitute environment variables in configuration data."""
    if isinstance(data, dict):
        for key, value in data.items():
            if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
                env_var = value[2:-1]
                data[key] = _coerce(os.getenv(env_var, value))
            else:
                _substitute_env_vars(value)
    elif isinstance(data, list):
        for item in data:
            _substitute_env_vars(item)


def _coerce(value: str) -> Any:
    """Parse a substituted value with YAML rules so numbers stay numbers."""
    try:
        return yaml.safe_load(value)
    except yaml.YAMLError:
        return value


def validate_config(config: AppConfig) -> List[str]:
    """Validate configuration and return list of validation errors."""
    errors = []

    for name, value in [
        ("scan.scan_rate", config.scan.scan_rate),
        ("scan.scan_length", config.scan.scan_length),
        ("tracking.trim_interval", config.tracking.trim_interval),
        ("tracking.oldest_device", config.tracking.oldest_device),
        ("tracking.snapshot_interval", config.tracking.snapshot_interval),
    ]:
        if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
            errors.append(f"{name} must be a positive number, got {value!r}")

    if not isinstance(config.scan.buffer_size, int) or config.scan.buffer_size < 1:
        errors.append(f"scan.buffer_size must be at least 1, got {config.scan.buffer_size!r}")

    if config.tracking.snapshot_trigger not in (SNAPSHOT_TRIGGER_INTERVAL, SNAPSHOT_TRIGGER_SCAN_WINDOW):
        errors.append(
            f"tracking.snapshot_trigger must be '{SNAPSHOT_TRIGGER_INTERVAL}' or "
            f"'{SNAPSHOT_TRIGGER_SCAN_WINDOW}', got {config.tracking.snapshot_trigger!r}"
        )

    if not isinstance(config.display.row_buffer, int) or config.display.row_buffer < 0:
        errors.append(f"display.row_buffer must be zero or more, got {config.display.row_buffer!r}")

    if not isinstance(logging.getLevelName(str(config.logging.level).upper()), int):
        errors.append(f"logging.level is not a known log level: {config.logging.level!r}")

    return errors
