"""Unit tests for eventmap.core.config_loader and eventmap.core.config_manager."""

import os
from pathlib import Path

import pytest

from eventmap.core.config_loader import Config, load_config
from eventmap.core.config_manager import ConfigManager, parse_env_file
from eventmap.exceptions import ConfigError

pytestmark = pytest.mark.unit


class TestConfigFromDict:
    """Tests for Config.from_dict coercion and validation."""

    def test_from_dict_when_empty_then_defaults(self):
        config = Config.from_dict(None)

        assert config.feeds == []
        assert config.geocoder == "nominatim"
        assert config.refresh_interval_seconds == 300
        assert config.expansion_days == 30

    def test_from_dict_when_feeds_mixed_then_ids_assigned_in_order(self):
        """Feeds may be URL strings or mappings; order is preserved."""
        config = Config.from_dict(
            {
                "feeds": [
                    "https://a.example/cal.ics",
                    {"url": "https://b.example/cal.ics", "id": "luma", "name": "Luma"},
                    {"name": "no url"},
                ]
            }
        )

        assert config.feed_urls == ["https://a.example/cal.ics", "https://b.example/cal.ics"]
        assert [feed.feed_id for feed in config.feeds] == ["feed-0", "luma"]
        assert config.feeds[1].name == "Luma"

    def test_from_dict_when_duplicate_feed_ids_then_renamed(self):
        config = Config.from_dict(
            {"feeds": [{"url": "https://a", "id": "x"}, {"url": "https://b", "id": "x"}]}
        )

        assert [feed.feed_id for feed in config.feeds] == ["x", "feed-1"]

    def test_from_dict_when_values_out_of_range_then_clamped(self):
        config = Config.from_dict(
            {"refresh_interval_seconds": 5, "fetch_concurrency": 50, "expansion_days": 0}
        )

        assert config.refresh_interval_seconds == 30
        assert config.fetch_concurrency == 8
        assert config.expansion_days == 1

    def test_from_dict_when_values_not_numeric_then_defaults(self):
        config = Config.from_dict({"fetch_timeout_seconds": "soon", "lookback_days": "week"})

        assert config.fetch_timeout_seconds == 15.0
        assert config.lookback_days == 7

    def test_from_dict_when_feed_timeout_not_positive_then_ignored(self, caplog):
        """Zero or negative per-feed timeouts fall back to the fetch default."""
        caplog.set_level("WARNING", logger="eventmap.core.config_loader")
        config = Config.from_dict(
            {
                "feeds": [
                    {"url": "https://a.example/cal.ics", "timeout": -5},
                    {"url": "https://b.example/cal.ics", "timeout": 0},
                    {"url": "https://c.example/cal.ics", "timeout": "2.5"},
                ]
            }
        )

        assert [feed.timeout for feed in config.feeds] == [None, None, 2.5]
        assert sum("must be positive" in r.getMessage() for r in caplog.records) == 2

    def test_from_dict_when_unknown_geocoder_then_nominatim(self):
        assert Config.from_dict({"geocoder": "carrier-pigeon"}).geocoder == "nominatim"

    def test_repr_when_token_set_then_token_hidden(self):
        config = Config.from_dict({"geocoder": "mapbox", "geocoder_token": "pk.secret"})

        assert "pk.secret" not in repr(config)
        assert config.geocoder_token == "pk.secret"


class TestLoadConfig:
    def test_load_config_when_file_missing_then_defaults(self, tmp_path):
        assert load_config(tmp_path / "missing.yaml") == Config()

    def test_load_config_when_yaml_file_then_values_loaded(self, tmp_path):
        path = tmp_path / "eventmap.yaml"
        path.write_text(
            "feeds:\n  - https://a.example/cal.ics\ngeocoder: mapbox\ngeocoder_token: pk.x\n"
            "default_timezone: Asia/Kolkata\n",
            encoding="utf-8",
        )

        config = load_config(path)

        assert config.feed_urls == ["https://a.example/cal.ics"]
        assert config.geocoder == "mapbox"
        assert config.default_timezone == "Asia/Kolkata"

    def test_load_config_when_yaml_invalid_then_config_error(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("feeds: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigError):
            load_config(path)

    def test_load_config_when_top_level_list_then_config_error(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ConfigError):
            load_config(path)


class TestParseEnvFile:
    def test_parse_env_file_when_comments_and_quotes_then_clean_values(self, tmp_path):
        path = tmp_path / ".env"
        path.write_text(
            "# comment\n\nEVENTMAP_GEOCODER='mapbox'\nEVENTMAP_GEOCODER_TOKEN = \"pk.1\"\nBROKEN\n",
            encoding="utf-8",
        )

        assert parse_env_file(path) == {
            "EVENTMAP_GEOCODER": "mapbox",
            "EVENTMAP_GEOCODER_TOKEN": "pk.1",
        }

    def test_parse_env_file_when_missing_then_empty(self, tmp_path):
        assert parse_env_file(tmp_path / "nope.env") == {}


class TestConfigManager:
    """Tests for layering config file, .env and environment."""

    @pytest.fixture(autouse=True)
    def _clear_env(self, monkeypatch):
        for name in (
            "EVENTMAP_FEED_URLS",
            "EVENTMAP_GEOCODER",
            "EVENTMAP_GEOCODER_URL",
            "EVENTMAP_GEOCODER_TOKEN",
            "EVENTMAP_DEFAULT_TIMEZONE",
            "EVENTMAP_REFRESH_INTERVAL",
            "EVENTMAP_EXPANSION_DAYS",
        ):
            monkeypatch.delenv(name, raising=False)

    def test_build_config_from_env_when_vars_set_then_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("EVENTMAP_FEED_URLS", "https://a/cal.ics, https://b/cal.ics,")
        monkeypatch.setenv("EVENTMAP_REFRESH_INTERVAL", "600")
        monkeypatch.setenv("EVENTMAP_EXPANSION_DAYS", "many")

        overrides = ConfigManager(tmp_path / ".env").build_config_from_env()

        assert overrides == {
            "feeds": ["https://a/cal.ics", "https://b/cal.ics"],
            "refresh_interval_seconds": 600,
        }

    def test_load_env_file_when_var_already_set_then_not_overridden(self, monkeypatch, tmp_path):
        """The process environment wins over .env defaults."""
        env_path = tmp_path / ".env"
        env_path.write_text("EVENTMAP_GEOCODER=mapbox\nEVENTMAP_DEFAULT_TIMEZONE=UTC\n")
        monkeypatch.setenv("EVENTMAP_DEFAULT_TIMEZONE", "Asia/Kolkata")

        loaded = ConfigManager(env_path).load_env_file()

        assert loaded == ["EVENTMAP_GEOCODER"]
        os.environ.pop("EVENTMAP_GEOCODER", None)

    def test_load_full_config_when_env_overrides_file_then_env_wins(self, monkeypatch, tmp_path):
        config_path = tmp_path / "eventmap.yaml"
        config_path.write_text(
            "feeds:\n  - url: https://file/cal.ics\n    id: file\ngeocoder_user_agent: ua/1\n"
        )
        monkeypatch.setenv("EVENTMAP_DEFAULT_TIMEZONE", "America/Los_Angeles")

        config = ConfigManager(tmp_path / ".env").load_full_config(config_path)

        assert config.default_timezone == "America/Los_Angeles"
        assert config.feed_urls == ["https://file/cal.ics"]
        assert config.feeds[0].feed_id == "file"
        assert config.geocoder_user_agent == "ua/1"


def test_config_manager_when_no_path_then_cwd_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)

    assert ConfigManager().env_file_path.resolve() == (Path(tmp_path) / ".env").resolve()
