"""Unit tests for the eventmap command-line entry point."""

import json
import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from eventmap.__main__ import _create_parser, main
from eventmap.logging_config import EVENTMAP_MODULES

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def restore_logger_levels():
    names = ["", *EVENTMAP_MODULES]
    saved = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


@pytest.fixture
def isolated_cwd(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("EVENTMAP_FEED_URLS", raising=False)
    monkeypatch.setenv("EVENTMAP_TEST_TIME", "2025-07-20T08:00:00Z")
    return tmp_path


class TestCli:
    def test_parser_when_flags_given_then_parsed(self):
        args = _create_parser().parse_args(["--config", "x.yaml", "--json", "--debug"])

        assert args.config == "x.yaml"
        assert args.json and args.debug
        assert not args.watch

    def test_main_when_no_feeds_then_fallback_events_printed_as_json(self, isolated_cwd, capsys):
        """With nothing configured the demo events are published."""
        config_path = isolated_cwd / "eventmap.yaml"
        config_path.write_text("feeds: []\n", encoding="utf-8")

        exit_code = main(["--config", str(config_path), "--json"])

        assert exit_code == 0
        payload = json.loads(capsys.readouterr().out)
        assert [event["name"] for event in payload["events"]] == [
            "420 Sesh with Shroo at 4:20 PM",
            "Zo-work",
        ]
        assert payload["status"]["consecutive_total_failures"] == 1

    def test_main_when_config_invalid_then_exit_code_2(self, isolated_cwd):
        config_path = isolated_cwd / "eventmap.yaml"
        config_path.write_text("- not\n- a mapping\n", encoding="utf-8")

        assert main(["--config", str(config_path)]) == 2

    def test_main_when_text_output_then_one_line_per_event(self, isolated_cwd, capsys):
        exit_code = main([])

        out = capsys.readouterr().out.strip().splitlines()
        assert exit_code == 0
        assert len(out) == 2
        assert "Zo-work" in out[1]

    def test_main_when_config_log_level_warning_then_loggers_at_warning(
        self, isolated_cwd, capsys
    ):
        """The log_level key survives the CLI's logging setup."""
        config_path = isolated_cwd / "eventmap.yaml"
        config_path.write_text("feeds: []\nlog_level: WARNING\n", encoding="utf-8")

        exit_code = main(["--config", str(config_path), "--json"])

        assert exit_code == 0
        levels = json.loads(capsys.readouterr().out)["logging"]
        assert levels["root"] == "WARNING"
        assert levels["eventmap"] == "WARNING"
        assert logging.getLogger("eventmap.calendar").level == logging.WARNING

    def test_main_when_feed_timeout_negative_then_default_timeout_used(
        self, isolated_cwd, monkeypatch, capsys
    ):
        captured = {}

        async def fake_build_service(config, surface):
            captured["config"] = config
            return SimpleNamespace(events=[], refresh_once=AsyncMock(), status=dict)

        monkeypatch.setattr("eventmap.service.build_service", fake_build_service)
        (isolated_cwd / "eventmap.yaml").write_text(
            "feeds:\n  - url: https://calendar.example.com/a.ics\n    timeout: -5\n",
            encoding="utf-8",
        )

        exit_code = main([])

        assert exit_code == 0
        assert captured["config"].feeds[0].timeout is None
        assert capsys.readouterr().out.strip() == "No events."
