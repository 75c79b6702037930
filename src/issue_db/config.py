"""Client configuration with XDG-style file storage and environment overrides."""

import json
import os
from pathlib import Path
from typing import Any

# Environment variables take precedence over the config file.
ENV_OVERRIDES = {
    "server_url": "ISSUE_DB_URL",
    "username": "ISSUE_DB_USERNAME",
    "password": "ISSUE_DB_PASSWORD",
}


def get_config_dir() -> Path:
    """Get the config directory for the issue database client.

    Returns:
        Path to ~/.config/issue-db/
    """
    return Path.home() / ".config" / "issue-db"


def get_config_file() -> Path:
    """Get path to config file.

    Returns:
        Path to ~/.config/issue-db/config.json
    """
    return get_config_dir() / "config.json"


def load_config() -> dict[str, Any]:
    """Load configuration from file.

    Returns:
        Dictionary of configuration values, or empty dict if file doesn't exist.
    """
    config_file = get_config_file()
    if not config_file.exists():
        return {}

    with config_file.open("r") as f:
        data: dict[str, Any] = json.load(f)
        return data


def get_config_value(key: str, default: Any = None) -> Any:
    """Get a single configuration value.

    Args:
        key: Configuration key to retrieve.
        default: Default value if key doesn't exist.

    Returns:
        Environment override, configuration value, or default.
    """
    env_var = ENV_OVERRIDES.get(key)
    if env_var is not None:
        env_value = os.getenv(env_var)
        if env_value:
            return env_value
    config = load_config()
    return config.get(key, default)
