"""Environment-based configuration for eventmap."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from eventmap.core.config_loader import Config, load_config

logger = logging.getLogger(__name__)


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file and return key-value pairs.

    Args:
        path: Path to .env file

    Returns:
        Dictionary of key-value pairs from the .env file.
        Empty dict if file doesn't exist or cannot be read.

    Note:
        - Skips empty lines and comments (lines starting with #)
        - Strips quotes (both single and double) from values
        - Handles KEY=VALUE format with optional whitespace
    """
    if not path.exists():
        return {}

    result: dict[str, str] = {}

    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        logger.debug("Failed to read .env file (continuing): %s", str(path), exc_info=True)
        return result

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, val = line.split("=", 1)
        key = key.strip()
        val = val.strip().strip('"').strip("'")

        if key:
            result[key] = val

    return result


class ConfigManager:
    """Manages application configuration from a config file, .env file and environment."""

    def __init__(self, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env file and set environment variables.

        Only sets variables that are not already in the environment to avoid
        surprising overrides of the user's environment.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        set_keys = []
        for key, val in parse_env_file(self.env_file_path).items():
            if key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))

        return set_keys

    def build_config_from_env(self) -> dict[str, Any]:
        """Build configuration overrides from environment variables.

        Recognizes:
        - EVENTMAP_FEED_URLS -> 'feeds' (comma-separated URLs)
        - EVENTMAP_GEOCODER -> 'geocoder'
        - EVENTMAP_GEOCODER_URL -> 'geocoder_url'
        - EVENTMAP_GEOCODER_TOKEN -> 'geocoder_token'
        - EVENTMAP_REFRESH_INTERVAL -> 'refresh_interval_seconds' (int)
        - EVENTMAP_EXPANSION_DAYS -> 'expansion_days' (int)
        - EVENTMAP_DEFAULT_TIMEZONE -> 'default_timezone'
        - EVENTMAP_LOG_LEVEL -> 'log_level'

        Returns:
            Mapping of overrides, compatible with Config.from_dict
        """
        cfg: dict[str, Any] = {}

        feed_urls = os.environ.get("EVENTMAP_FEED_URLS")
        if feed_urls:
            cfg["feeds"] = [url.strip() for url in feed_urls.split(",") if url.strip()]

        for env_key, cfg_key in (
            ("EVENTMAP_GEOCODER", "geocoder"),
            ("EVENTMAP_GEOCODER_URL", "geocoder_url"),
            ("EVENTMAP_GEOCODER_TOKEN", "geocoder_token"),
            ("EVENTMAP_DEFAULT_TIMEZONE", "default_timezone"),
            ("EVENTMAP_LOG_LEVEL", "log_level"),
        ):
            value = os.environ.get(env_key)
            if value:
                cfg[cfg_key] = value

        for env_key, cfg_key in (
            ("EVENTMAP_REFRESH_INTERVAL", "refresh_interval_seconds"),
            ("EVENTMAP_EXPANSION_DAYS", "expansion_days"),
        ):
            value = os.environ.get(env_key)
            if not value:
                continue
            try:
                cfg[cfg_key] = int(value)
            except ValueError:
                logger.warning("Invalid %s=%r; ignoring", env_key, value)

        return cfg

    def load_full_config(self, config_path: str | Path | None = None) -> Config:
        """Load the config file, then apply .env and environment overrides.

        Args:
            config_path: Optional YAML/JSON config file path

        Returns:
            Fully resolved Config
        """
        self.load_env_file()
        base = load_config(config_path)
        overrides = self.build_config_from_env()
        if not overrides:
            return base

        logger.debug("Applying environment overrides: %s", sorted(overrides))
        merged = _config_to_dict(base)
        merged.update(overrides)
        return Config.from_dict(merged)


def _config_to_dict(config: Config) -> dict[str, Any]:
    """Flatten a Config back into the mapping shape accepted by Config.from_dict."""
    data: dict[str, Any] = {
        key: getattr(config, key)
        for key in config.__dataclass_fields__
        if key != "feeds"
    }
    data["feeds"] = [
        {"url": feed.url, "id": feed.feed_id, "name": feed.name, "timeout": feed.timeout}
        for feed in config.feeds
    ]
    return data

