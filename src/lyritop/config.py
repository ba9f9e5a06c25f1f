"""Configuration management for lyritop.

Loads settings from config.json, validates them, and notifies subscribers
per key whenever a value changes (through ``set`` or a re-read of the file).
"""
from __future__ import annotations

import json
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

from lyritop.exceptions import ConfigurationError, CorruptedConfig
from lyritop.logging_config import get_logger
from lyritop.signals import Signal, Subscription

logger = get_logger('config')

LYRIC_FILES = 'lyric_files'
UPDATE_INTERVAL = 'update_interval'
ONLY_SHOW_TRANSLATION = 'only_show_translation'
LYRIC_ADVANCE_MS = 'lyric_advance_ms'

UPDATE_INTERVAL_RANGE = (10, 1000)
LYRIC_ADVANCE_RANGE = (-5000, 5000)


def get_config_path() -> Path:
    """Get the config file path, honouring XDG_CONFIG_HOME.

    Returns:
        Path to config.json in the appropriate location.
    """
    base = os.environ.get('XDG_CONFIG_HOME')
    config_dir = Path(base) if base else Path.home() / '.config'
    return config_dir / 'lyritop' / 'config.json'


def get_default_config() -> dict:
    """Get the default configuration structure.

    Returns:
        Dictionary with default configuration values.
    """
    return {
        LYRIC_FILES: [],  # Mapping files, later entries override earlier ones
        UPDATE_INTERVAL: 500,  # Poll interval in milliseconds
        ONLY_SHOW_TRANSLATION: False,
        LYRIC_ADVANCE_MS: 0,  # Positive values show lyrics earlier
    }


def _check_int_range(key: str, value: Any, bounds: tuple[int, int]) -> int:
    low, high = bounds
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"'{key}' must be an integer, got {value!r}")
    if not low <= value <= high:
        raise ConfigurationError(f"'{key}' must be between {low} and {high}, got {value}")
    return value


def validate_value(key: str, value: Any) -> Any:
    """Validate a single configuration value.

    Args:
        key: Configuration key.
        value: Candidate value.

    Returns:
        The value, normalised where needed.

    Raises:
        ConfigurationError: If the key is unknown or the value is invalid.
    """
    if key == LYRIC_FILES:
        if not isinstance(value, list) or not all(isinstance(p, str) for p in value):
            raise ConfigurationError(f"'{key}' must be a list of paths")
        return list(value)
    if key == UPDATE_INTERVAL:
        return _check_int_range(key, value, UPDATE_INTERVAL_RANGE)
    if key == LYRIC_ADVANCE_MS:
        return _check_int_range(key, value, LYRIC_ADVANCE_RANGE)
    if key == ONLY_SHOW_TRANSLATION:
        if not isinstance(value, bool):
            raise ConfigurationError(f"'{key}' must be true or false")
        return value
    raise ConfigurationError(f"Unknown configuration key '{key}'")


class ConfigManager:
    """Read-only configuration source with per-key change notifications."""

    def __init__(self, config: dict | None = None, config_path: Path | None = None):
        """Initialize the config manager.

        Args:
            config: Optional pre-loaded configuration. If None, loads from file.
            config_path: Optional custom config file path.

        Raises:
            CorruptedConfig: If the config file exists but cannot be parsed.
        """
        self.config_path = config_path or get_config_path()
        self._signals = {key: Signal(f'changed::{key}') for key in get_default_config()}
        self._mtime: float | None = None

        if config is not None:
            self._config = self._sanitize(config)
        else:
            self._config = self._load_config()

    def _stat_mtime(self) -> float | None:
        try:
            return self.config_path.stat().st_mtime
        except OSError:
            return None

    def _load_config(self) -> dict:
        """Load configuration from file.

        Returns:
            Configuration dictionary, defaults filled in.

        Raises:
            CorruptedConfig: If config file cannot be parsed.
        """
        self._mtime = self._stat_mtime()
        if self._mtime is None:
            logger.debug(f"Config file not found at {self.config_path}, using defaults")
            return get_default_config()

        try:
            with open(self.config_path, encoding='utf-8') as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            raise CorruptedConfig(
                f"Config file at {self.config_path} is corrupted: {e}"
            ) from e
        except OSError as e:
            raise CorruptedConfig(
                f"Failed to load config from {self.config_path}: {e}"
            ) from e

        if not isinstance(raw, dict):
            raise CorruptedConfig(f"Config file at {self.config_path} must hold a JSON object")

        logger.debug(f"Loaded config from {self.config_path}")
        return self._sanitize(raw)

    def _sanitize(self, raw: dict) -> dict:
        """Merge stored values over defaults, dropping invalid ones."""
        config = get_default_config()
        for key, value in raw.items():
            if key not in config:
                logger.debug(f"Ignoring unknown config key '{key}'")
                continue
            try:
                config[key] = validate_value(key, value)
            except ConfigurationError as e:
                logger.warning(f"{e}; using default {config[key]!r}")
        return config

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value.

        Args:
            key: Configuration key.
            default: Default value if key not found.

        Returns:
            Configuration value.
        """
        value = self._config.get(key, default)
        if isinstance(value, list):
            return list(value)
        return value

    def __getitem__(self, key: str) -> Any:
        return self.get(key)

    def __contains__(self, key: str) -> bool:
        return key in self._config

    @property
    def raw(self) -> dict:
        """Get a copy of the configuration dictionary."""
        return {key: self.get(key) for key in self._config}

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value in memory and notify on change.

        Raises:
            ConfigurationError: If the key is unknown or the value is invalid.
        """
        value = validate_value(key, value)
        self._apply({**self._config, key: value})

    def connect(self, key: str, callback: Callable[[str, Any], Any]) -> Subscription:
        """Subscribe to changes of one key.

        The callback receives ``(key, new_value)``.

        Raises:
            ConfigurationError: If the key is unknown.
        """
        if key not in self._signals:
            raise ConfigurationError(f"Unknown configuration key '{key}'")
        return self._signals[key].connect(callback)

    def reload(self) -> None:
        """Re-read the config file and notify every key whose value changed.

        Raises:
            CorruptedConfig: If the file cannot be parsed.
        """
        self._apply(self._load_config())

    def poll(self) -> bool:
        """Reload if the file changed on disk since the last read.

        A corrupted file is logged and the current values are kept.

        Returns:
            True if the file was re-read.
        """
        mtime = self._stat_mtime()
        if mtime == self._mtime:
            return False
        try:
            self.reload()
        except CorruptedConfig as e:
            self._mtime = mtime
            logger.warning(f"{e}; keeping previous settings")
            return False
        return True

    def _apply(self, new_config: dict) -> None:
        old_config = self._config
        self._config = new_config
        for key, value in new_config.items():
            if old_config.get(key) != value:
                logger.debug(f"Config '{key}' changed to {value!r}")
                self._signals[key].emit(key, self.get(key))
