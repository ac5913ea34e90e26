"""RRULE expansion for recurring calendar entries."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from dateutil.rrule import rrule, rruleset, rrulestr

from eventmap.core.timezone_utils import now_utc

logger = logging.getLogger(__name__)


@dataclass
class RRuleExpanderConfig:
    """Expansion window and limits, with explicit defaults."""

    expansion_days: int = 30
    lookback_days: int = 7
    max_occurrences_per_rule: int = 250

    @classmethod
    def from_settings(cls, settings: Any) -> "RRuleExpanderConfig":
        return cls(
            expansion_days=int(getattr(settings, "expansion_days", 30)),
            lookback_days=int(getattr(settings, "lookback_days", 7)),
            max_occurrences_per_rule=int(getattr(settings, "max_occurrences_per_rule", 250)),
        )


class RRuleExpander:
    """Expands RRULE patterns into concrete UTC occurrence start times.

    Occurrences are limited to the window
    ``[max(dtstart, now - lookback_days), now + expansion_days]`` and capped at
    ``max_occurrences_per_rule`` per rule.
    """

    def __init__(
        self,
        expansion_days: int = 30,
        lookback_days: int = 7,
        max_occurrences: int = 250,
    ) -> None:
        if expansion_days < 1:
            raise ValueError("expansion_days must be at least 1")
        if lookback_days < 0:
            raise ValueError("lookback_days must not be negative")
        if max_occurrences < 1:
            raise ValueError("max_occurrences must be at least 1")

        self.expansion_days = expansion_days
        self.lookback_days = lookback_days
        self.max_occurrences = max_occurrences

        logger.debug(
            "RRuleExpander initialized: expansion_days=%d, lookback_days=%d, max_occurrences=%d",
            expansion_days,
            lookback_days,
            max_occurrences,
        )

    @classmethod
    def from_settings(cls, settings: Any) -> "RRuleExpander":
        config = RRuleExpanderConfig.from_settings(settings)
        return cls(
            expansion_days=config.expansion_days,
            lookback_days=config.lookback_days,
            max_occurrences=config.max_occurrences_per_rule,
        )

    def window(
        self, dtstart: datetime, now: Optional[datetime] = None
    ) -> tuple[datetime, datetime]:
        """Return the UTC ``(start, end)`` window occurrences must fall in."""
        now = now or now_utc()
        dtstart_utc = dtstart.astimezone(timezone.utc)
        start = max(dtstart_utc, now - timedelta(days=self.lookback_days))
        end = now + timedelta(days=self.expansion_days)
        return start, end

    def expand(
        self,
        dtstart: datetime,
        rrule_text: str,
        exdates: Iterable[datetime] = (),
        now: Optional[datetime] = None,
    ) -> list[datetime]:
        """Expand one RRULE into occurrence start times.

        Args:
            dtstart: Timezone-aware start of the master entry, in its own timezone
                so wall-clock recurrences survive DST changes
            rrule_text: RRULE value, e.g. "FREQ=WEEKLY;BYDAY=MO;COUNT=5"
            exdates: Excluded occurrence starts (aware)
            now: Reference time; defaults to now_utc()

        Returns:
            Sorted list of aware UTC datetimes inside the expansion window

        Raises:
            ValueError: If dtstart is naive or the rule cannot be parsed
        """
        if dtstart.tzinfo is None:
            raise ValueError("dtstart must be timezone-aware")

        rule_set, floating = self._build_rule_set(dtstart, rrule_text)
        excluded = {ex.astimezone(timezone.utc) for ex in exdates}
        start_window, end_window = self.window(dtstart, now)

        after = start_window
        if floating:
            after = start_window.astimezone(dtstart.tzinfo).replace(tzinfo=None)

        occurrences: list[datetime] = []
        for occurrence in rule_set.xafter(after, inc=True):
            occurrence_utc = _as_utc(occurrence, dtstart)
            if occurrence_utc > end_window:
                break
            if occurrence_utc in excluded:
                continue
            if len(occurrences) >= self.max_occurrences:
                logger.debug(
                    "RRULE %r limited to %d occurrences", rrule_text, self.max_occurrences
                )
                break
            occurrences.append(occurrence_utc)

        logger.debug(
            "Expanded RRULE %r into %d occurrences (excluded=%d)",
            rrule_text,
            len(occurrences),
            len(excluded),
        )
        return occurrences

    def _build_rule_set(self, dtstart: datetime, rrule_text: str) -> tuple[rruleset, bool]:
        """Parse the rule; the flag is True when it had to be evaluated in floating time."""
        floating = False
        try:
            parsed = rrulestr(rrule_text, dtstart=dtstart, forceset=True)
        except ValueError:
            # UNTIL given as a floating or date value next to an aware DTSTART
            parsed = rrulestr(rrule_text, dtstart=dtstart.replace(tzinfo=None), forceset=True)
            floating = True
            logger.debug("Parsed RRULE %r with floating DTSTART", rrule_text)

        if isinstance(parsed, rruleset):
            return parsed, floating
        rule_set = rruleset()
        if isinstance(parsed, rrule):
            rule_set.rrule(parsed)
        return rule_set, floating


def _as_utc(occurrence: datetime, dtstart: datetime) -> datetime:
    if occurrence.tzinfo is None:
        occurrence = occurrence.replace(tzinfo=dtstart.tzinfo)
    return occurrence.astimezone(timezone.utc)
