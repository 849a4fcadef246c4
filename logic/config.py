"""
Configuration management module.

This module provides utilities for loading and completing the application
settings stored in config.json, with environment variable overrides.
"""

import json
import os
from typing import Dict, Any

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
CONFIG_PATH = os.getenv("CLUB_PLACEMENT_CONFIG", os.path.join(BASE_DIR, "config.json"))

# Fallback map center (Tufts academic quad) used when neither the caller nor
# the event location service supplies one.
INITIAL_LONG = -71.120
INITIAL_LAT = 42.4075
INITIAL_ZOOM = 17.33

# Environment variable -> (config key, parser)
ENV_OVERRIDES = {
    "CLUB_DIRECTORY_URL": ("directory_url", str),
    "CLUB_REQUEST_TIMEOUT": ("request_timeout", float),
    "CLUB_PLACEMENT_DB_URL": ("database_url", str),
    "LOG_LEVEL": ("log_level", str),
    "APP_ENV": ("environment", str),
    "LOG_DIR": ("log_dir", str),
}


def load_config() -> Dict[str, Any]:
    """Load configuration from config.json.

    Environment variables listed in ``ENV_OVERRIDES`` take precedence over
    values from the file.

    Returns:
        Configuration dictionary with all required fields ensured.
    """
    try:
        with open(CONFIG_PATH, "r", encoding="utf-8") as f:
            config = json.load(f)
    except FileNotFoundError:
        config = get_default_config()

    config = ensure_config_fields(config)
    return apply_env_overrides(config)


def get_default_config() -> Dict[str, Any]:
    """Get default configuration structure.

    Returns:
        Default configuration dictionary.
    """
    return {
        "directory_url": "http://localhost:3000",
        "request_timeout": 10.0,
        "initial_view": {
            "long": INITIAL_LONG,
            "lat": INITIAL_LAT,
            "zoom": INITIAL_ZOOM,
        },
        "placement_mode_default": True,
        "database_url": "sqlite:///./club_placement.db",
        "history_limit": 100,
        "environment": "development",
        "log_level": "INFO",
        "log_dir": None,
    }


def ensure_config_fields(config: Dict[str, Any]) -> Dict[str, Any]:
    """Ensure all required fields are present in the configuration.

    Args:
        config: Configuration dictionary to update.

    Returns:
        Updated configuration dictionary.
    """
    defaults = get_default_config()

    for key, default in defaults.items():
        if key == "initial_view":
            continue
        config.setdefault(key, default)

    view = config.setdefault("initial_view", {})
    for key, default in defaults["initial_view"].items():
        view.setdefault(key, default)

    # Trailing slash would double up when joining endpoint paths
    config["directory_url"] = str(config["directory_url"]).rstrip("/")

    return config


def apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides to the configuration.

    Args:
        config: Configuration dictionary to update.

    Returns:
        Updated configuration dictionary.

    Raises:
        ValueError: If an override cannot be parsed.
    """
    for env_name, (key, parser) in ENV_OVERRIDES.items():
        raw = os.getenv(env_name)
        if raw is None or raw == "":
            continue
        try:
            config[key] = parser(raw)
        except ValueError:
            raise ValueError(f"Invalid value for {env_name}: {raw!r}")

    config["directory_url"] = str(config["directory_url"]).rstrip("/")
    return config
