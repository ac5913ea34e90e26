"""Unit tests for eventmap.calendar.rrule_expander."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest

from eventmap.calendar.rrule_expander import RRuleExpander

pytestmark = pytest.mark.unit

NOW = datetime(2025, 7, 20, 8, 0, tzinfo=timezone.utc)


class TestRRuleExpanderInit:
    @pytest.mark.parametrize(
        "kwargs",
        [{"expansion_days": 0}, {"lookback_days": -1}, {"max_occurrences": 0}],
    )
    def test_init_when_limits_invalid_then_value_error(self, kwargs):
        with pytest.raises(ValueError):
            RRuleExpander(**kwargs)

    def test_from_settings_when_settings_given_then_limits_copied(self):
        settings = SimpleNamespace(expansion_days=10, lookback_days=2, max_occurrences_per_rule=5)

        expander = RRuleExpander.from_settings(settings)

        assert (expander.expansion_days, expander.lookback_days, expander.max_occurrences) == (
            10,
            2,
            5,
        )


class TestRRuleExpansion:
    """Tests for occurrence generation within the expansion window."""

    def test_expand_when_daily_rule_then_bounded_by_window(self):
        """Occurrences never precede now - lookback nor exceed now + expansion."""
        expander = RRuleExpander(expansion_days=10, lookback_days=3)
        dtstart = datetime(2025, 6, 1, 9, tzinfo=timezone.utc)

        occurrences = expander.expand(dtstart, "FREQ=DAILY", now=NOW)

        assert occurrences[0] == datetime(2025, 7, 17, 9, tzinfo=timezone.utc)
        assert occurrences[-1] == datetime(2025, 7, 29, 9, tzinfo=timezone.utc)
        assert all(NOW - timedelta(days=3) <= o <= NOW + timedelta(days=10) for o in occurrences)
        assert occurrences == sorted(occurrences)

    def test_expand_when_rule_unbounded_then_capped_at_max_occurrences(self):
        expander = RRuleExpander(expansion_days=30, lookback_days=0, max_occurrences=5)
        dtstart = datetime(2025, 7, 20, 0, tzinfo=timezone.utc)

        occurrences = expander.expand(dtstart, "FREQ=HOURLY", now=NOW)

        assert len(occurrences) == 5

    def test_expand_when_exdates_given_then_excluded(self):
        expander = RRuleExpander(expansion_days=5, lookback_days=0)
        dtstart = datetime(2025, 7, 20, 9, tzinfo=timezone.utc)
        excluded = datetime(2025, 7, 21, 9, tzinfo=timezone.utc)

        occurrences = expander.expand(dtstart, "FREQ=DAILY;COUNT=3", [excluded], now=NOW)

        assert occurrences == [
            datetime(2025, 7, 20, 9, tzinfo=timezone.utc),
            datetime(2025, 7, 22, 9, tzinfo=timezone.utc),
        ]

    def test_expand_when_zoned_dtstart_crosses_dst_then_wall_clock_kept(self):
        """Weekly 10:00 Los Angeles stays at 10:00 local across the November change."""
        expander = RRuleExpander(expansion_days=30, lookback_days=0)
        la = ZoneInfo("America/Los_Angeles")
        dtstart = datetime(2025, 10, 27, 10, tzinfo=la)
        now = datetime(2025, 10, 27, 0, tzinfo=timezone.utc)

        occurrences = expander.expand(dtstart, "FREQ=WEEKLY;COUNT=2", now=now)

        assert occurrences == [
            datetime(2025, 10, 27, 17, tzinfo=timezone.utc),
            datetime(2025, 11, 3, 18, tzinfo=timezone.utc),
        ]

    def test_expand_when_dtstart_naive_then_value_error(self):
        with pytest.raises(ValueError):
            RRuleExpander().expand(datetime(2025, 7, 20, 9), "FREQ=DAILY", now=NOW)

    def test_expand_when_rule_garbage_then_value_error(self):
        with pytest.raises(ValueError):
            RRuleExpander().expand(
                datetime(2025, 7, 20, 9, tzinfo=timezone.utc), "FREQ=SOMETIMES", now=NOW
            )

    def test_window_when_dtstart_after_lookback_then_starts_at_dtstart(self):
        expander = RRuleExpander(expansion_days=30, lookback_days=7)
        dtstart = datetime(2025, 7, 19, tzinfo=timezone.utc)

        start, end = expander.window(dtstart, NOW)

        assert start == dtstart
        assert end == NOW + timedelta(days=30)
