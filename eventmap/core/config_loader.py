"""eventmap.core.config_loader

Config loader for eventmap.

- Reads YAML with PyYAML (JSON files load too, JSON being a YAML subset).
- Exposes a typed dataclass `Config` and a `load_config()` helper that accepts
  an optional path override.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from eventmap.exceptions import ConfigError

logger = logging.getLogger(__name__)

GEOCODER_PROVIDERS = ("nominatim", "mapbox")


@dataclass
class FeedConfig:
    """One configured calendar feed."""

    url: str
    feed_id: str
    name: str | None = None
    timeout: float | None = None


@dataclass
class Config:
    """Typed configuration for eventmap.

    Fields:
        feeds: ordered calendar feeds; order decides dedup tie-breaks
        fetch_timeout_seconds: per-feed fetch timeout
        fetch_concurrency: maximum feeds fetched at once (1..8)
        geocoder: geocoding provider name ("nominatim" or "mapbox")
        geocoder_url: override for the provider's base URL
        geocoder_token: access token (required by mapbox)
        geocoder_user_agent: User-Agent sent to the geocoder
        geocode_timeout_seconds: per-lookup timeout
        geocode_concurrency: maximum lookups in flight at once
        expansion_days: how far forward recurring events are expanded
        lookback_days: how far back recurring occurrences are kept
        max_occurrences_per_rule: hard cap on occurrences per RRULE
        default_timezone: timezone for floating times and all-day events
        refresh_interval_seconds: period of the refresh loop (30..3600)
        fly_to_zoom: zoom level used when flying to a selected event
        log_level: logging level name
    """

    feeds: list[FeedConfig] = field(default_factory=list)
    fetch_timeout_seconds: float = 15.0
    fetch_concurrency: int = 4
    geocoder: str = "nominatim"
    geocoder_url: str | None = None
    geocoder_token: str | None = field(default=None, repr=False)
    geocoder_user_agent: str | None = None
    geocode_timeout_seconds: float = 10.0
    geocode_concurrency: int = 2
    expansion_days: int = 30
    lookback_days: int = 7
    max_occurrences_per_rule: int = 250
    default_timezone: str = "UTC"
    refresh_interval_seconds: int = 300
    fly_to_zoom: float = 18.0
    log_level: str = "INFO"

    @property
    def feed_urls(self) -> list[str]:
        """Feed URLs in configuration order."""
        return [feed.url for feed in self.feeds]

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        Coerces numeric-like values, accepts feeds as plain URL strings or as
        mappings with ``url``/``id``/``name``/``timeout``, and clamps bounded
        values, logging a warning for every coercion.
        """
        if data is None:
            data = {}

        feeds_raw = data.get("feeds") if "feeds" in data else data.get("feed_urls", [])
        if feeds_raw is None:
            feeds_raw = []
        if not isinstance(feeds_raw, (list, tuple)):
            logger.warning("Config `feeds` is not a list; coercing to single-item list")
            feeds_raw = [feeds_raw]
        feeds = _parse_feeds(feeds_raw)

        def _coerce_int(key: str, default: int) -> int:
            raw = data.get(key, default)
            try:
                return int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                return default

        def _coerce_float(key: str, default: float) -> float:
            raw = data.get(key, default)
            try:
                value = float(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not a number; using default %s", key, raw, default)
                return default
            if value <= 0:
                logger.warning("Config %s=%r must be positive; using default %s", key, raw, default)
                return default
            return value

        def _clamp(key: str, value: int, low: int, high: int) -> int:
            if value < low:
                logger.warning("%s %d below minimum; coercing to %d", key, value, low)
                return low
            if value > high:
                logger.warning("%s %d above maximum; coercing to %d", key, value, high)
                return high
            return value

        geocoder = str(data.get("geocoder") or "nominatim").strip().lower()
        if geocoder not in GEOCODER_PROVIDERS:
            logger.warning("Unknown geocoder %r; using nominatim", geocoder)
            geocoder = "nominatim"

        log_level = data.get("log_level", "INFO")
        log_level = str(log_level).upper() if log_level is not None else "INFO"

        return cls(
            feeds=feeds,
            fetch_timeout_seconds=_coerce_float("fetch_timeout_seconds", 15.0),
            fetch_concurrency=_clamp(
                "fetch_concurrency", _coerce_int("fetch_concurrency", 4), 1, 8
            ),
            geocoder=geocoder,
            geocoder_url=_optional_str(data.get("geocoder_url")),
            geocoder_token=_optional_str(data.get("geocoder_token")),
            geocoder_user_agent=_optional_str(data.get("geocoder_user_agent")),
            geocode_timeout_seconds=_coerce_float("geocode_timeout_seconds", 10.0),
            geocode_concurrency=_clamp(
                "geocode_concurrency", _coerce_int("geocode_concurrency", 2), 1, 16
            ),
            expansion_days=_clamp("expansion_days", _coerce_int("expansion_days", 30), 1, 366),
            lookback_days=_clamp("lookback_days", _coerce_int("lookback_days", 7), 0, 366),
            max_occurrences_per_rule=_clamp(
                "max_occurrences_per_rule", _coerce_int("max_occurrences_per_rule", 250), 1, 5000
            ),
            default_timezone=str(data.get("default_timezone") or "UTC"),
            refresh_interval_seconds=_clamp(
                "refresh_interval_seconds",
                _coerce_int("refresh_interval_seconds", 300),
                30,
                3600,
            ),
            fly_to_zoom=_coerce_float("fly_to_zoom", 18.0),
            log_level=log_level,
        )


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_feeds(feeds_raw: list[Any] | tuple[Any, ...]) -> list[FeedConfig]:
    """Turn raw feed entries into FeedConfig objects with unique ids."""
    feeds: list[FeedConfig] = []
    seen_ids: set[str] = set()
    for index, entry in enumerate(feeds_raw):
        if isinstance(entry, dict):
            url = _optional_str(entry.get("url"))
            feed_id = _optional_str(entry.get("id")) or f"feed-{index}"
            name = _optional_str(entry.get("name"))
            timeout_raw = entry.get("timeout")
        else:
            url = _optional_str(entry)
            feed_id = f"feed-{index}"
            name = None
            timeout_raw = None

        if not url:
            logger.warning("Config feed #%d has no url; skipping", index)
            continue
        if feed_id in seen_ids:
            logger.warning("Duplicate feed id %r; renaming to feed-%d", feed_id, index)
            feed_id = f"feed-{index}"
        seen_ids.add(feed_id)

        timeout: float | None = None
        if timeout_raw is not None:
            try:
                timeout = float(timeout_raw)
            except (TypeError, ValueError):
                logger.warning("Feed %s timeout=%r is not a number; ignoring", feed_id, timeout_raw)
            else:
                if not math.isfinite(timeout) or timeout <= 0:
                    logger.warning(
                        "Feed %s timeout=%r must be positive; using default", feed_id, timeout_raw
                    )
                    timeout = None

        feeds.append(FeedConfig(url=url, feed_id=feed_id, name=name, timeout=timeout))
    return feeds


def load_config(path: str | Path | None = None) -> Config:
    """Load configuration from a YAML/JSON file and return a Config instance.

    Args:
        path: Optional path to the config file. Defaults to ./eventmap.yaml.

    Returns:
        Config dataclass instance with values from file (or defaults).

    Raises:
        ConfigError: if the file cannot be parsed or its top level is not a mapping.

    Behavior:
    - If file is missing: returns Config() with defaults.
    """
    p = Path(path) if path else Path.cwd() / "eventmap.yaml"
    logger.debug("Attempting to load config from %s", p)
    if not p.exists():
        logger.info("Config file %s not found; using defaults", p)
        return Config()

    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Unable to parse config file {p}: {exc}") from exc

    # safe_load returns None for empty files
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, raw)
        raise ConfigError("Config file must contain a mapping at top level")

    cfg = Config.from_dict(raw)
    logger.info("Loaded configuration from %s (%d feeds)", p, len(cfg.feeds))
    logger.debug("Configuration values: %s", cfg)
    return cfg
