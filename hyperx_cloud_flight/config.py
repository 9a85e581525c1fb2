"""Configuration management for the HyperX Cloud Flight monitor."""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

log = logging.getLogger(__name__)


# Default configuration values
DEFAULTS = {
    # Battery polling
    "polling": {
        "interval_seconds": 300,  # Periodic battery query
        "shutdown_timeout_seconds": 5,  # Max wait for the poll timer to stop
        "refresh_on_mute": True,  # Query battery when the mic is muted
        "stop_on_write_error": True,  # A failed query ends the session
    },

    # Device connection
    "device": {
        "read_timeout_ms": 500,  # Bounds how long a stop request waits
        "rescan_delay_seconds": 5,  # Wait before scanning again
    },

    # Desktop notifications (tray)
    "notifications": {
        "enabled": True,
        "thresholds": [20, 10],  # Notify at these percentages
        "charging_notify": True,  # Notify when charging starts
        "mute_notify": True,  # Notify on mic mute/unmute
    },

    "logging": {
        "level": "INFO",
    },
}


def get_config_dir() -> Path:
    """Get the configuration directory, creating it if needed."""
    xdg_config = os.environ.get("XDG_CONFIG_HOME", "")
    if xdg_config:
        config_dir = Path(xdg_config) / "hyperx-cloud-flight"
    else:
        config_dir = Path.home() / ".config" / "hyperx-cloud-flight"

    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_config_path() -> Path:
    """Get the path to the configuration file."""
    return get_config_dir() / "config.json"


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge override into base, returning new dict."""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(path: Optional[Path] = None) -> dict:
    """Load configuration from file, merging with defaults."""
    config_path = path or get_config_path()

    if config_path.exists():
        try:
            with open(config_path, "r") as f:
                user_config = json.load(f)
            return _deep_merge(DEFAULTS, user_config)
        except (json.JSONDecodeError, OSError) as e:
            log.warning("Could not load config from %s: %s", config_path, e)
            return copy.deepcopy(DEFAULTS)

    # Create default config file on first run
    save_config(DEFAULTS, config_path)
    return copy.deepcopy(DEFAULTS)


def save_config(config: dict, path: Optional[Path] = None) -> bool:
    """Save configuration to file."""
    config_path = path or get_config_path()

    try:
        with open(config_path, "w") as f:
            json.dump(config, f, indent=2)
        return True
    except OSError as e:
        log.error("Could not save config to %s: %s", config_path, e)
        return False


def get(key: str, default: Any = None) -> Any:
    """Get a config value using dot notation (e.g., 'polling.interval_seconds')."""
    value = load_config()
    for k in key.split("."):
        if isinstance(value, dict) and k in value:
            value = value[k]
        else:
            return default
    return value


def set(key: str, value: Any) -> bool:
    """Set a config value using dot notation."""
    config = load_config()
    keys = key.split(".")

    # Navigate to parent
    target = config
    for k in keys[:-1]:
        if k not in target:
            target[k] = {}
        target = target[k]

    target[keys[-1]] = value
    return save_config(config)


class Config:
    """Configuration accessor with attribute-style access."""

    def __init__(self, path: Optional[Path] = None):
        self._path = path
        self._config = load_config(path)

    def reload(self):
        """Reload configuration from file."""
        self._config = load_config(self._path)

    def save(self) -> bool:
        """Save current configuration to file."""
        return save_config(self._config, self._path)

    @property
    def polling(self) -> dict:
        return self._config.get("polling", DEFAULTS["polling"])

    @property
    def device(self) -> dict:
        return self._config.get("device", DEFAULTS["device"])

    @property
    def notifications(self) -> dict:
        return self._config.get("notifications", DEFAULTS["notifications"])

    @property
    def log_level(self) -> str:
        return self._config.get("logging", DEFAULTS["logging"]).get("level", "INFO")

    def session_options(self) -> dict:
        """Keyword arguments for CloudFlightSession built from this config."""
        return {
            "poll_interval": self.polling["interval_seconds"],
            "shutdown_timeout": self.polling["shutdown_timeout_seconds"],
            "refresh_on_mute": self.polling["refresh_on_mute"],
            "stop_on_write_error": self.polling["stop_on_write_error"],
            "read_timeout_ms": self.device["read_timeout_ms"],
        }

    def __getitem__(self, key: str) -> Any:
        value = self._config
        for k in key.split("."):
            if not isinstance(value, dict) or k not in value:
                raise KeyError(key)
            value = value[k]
        return value
