"""ICS document normalization into the common event model.

Parsing is tolerant: a malformed VEVENT is skipped with a warning and never
fails the whole feed. Recurring entries are expanded into concrete occurrences
and RECURRENCE-ID overrides replace the occurrence they modify.
"""

import datetime
import logging
import re
from typing import Any, Optional

from icalendar import Calendar

from eventmap.calendar.models import NormalizationResult, NormalizedEvent, RawFeedDocument
from eventmap.calendar.rrule_expander import RRuleExpander
from eventmap.core.timezone_utils import now_utc, resolve_timezone, to_utc
from eventmap.exceptions import FeedParseError

logger = logging.getLogger(__name__)

UNTITLED_EVENT = "Untitled Event"

_URL_PATTERN = re.compile(r"https?://[^\s<>\"']+", re.IGNORECASE)
_URL_TRAILING = ".,;:!?)]}'\""

OverrideKey = tuple[str, datetime.datetime]


def _text(component: Any, name: str) -> str:
    value = component.get(name)
    if value is None:
        return ""
    if isinstance(value, list):
        value = value[0] if value else ""
    return str(value).strip()


def _first_link(text: str) -> Optional[str]:
    match = _URL_PATTERN.search(text or "")
    if not match:
        return None
    return match.group(0).rstrip(_URL_TRAILING) or None


def _localize(value: Any, tz: datetime.tzinfo) -> datetime.datetime:
    """Return an aware datetime in its own timezone (dates become midnight in ``tz``)."""
    if not isinstance(value, datetime.datetime):
        value = datetime.datetime.combine(value, datetime.time.min)
    if value.tzinfo is None:
        value = value.replace(tzinfo=tz)
    return value


def _date_value(component: Any, name: str) -> Any:
    """Return the date/datetime of a property, or None when missing or unparseable."""
    prop = component.get(name)
    if prop is None:
        return None
    value = getattr(prop, "dt", None)
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value
    return None


def _collect_exdates(component: Any, tz: datetime.tzinfo) -> list[datetime.datetime]:
    raw = component.get("EXDATE")
    if raw is None:
        return []
    props = raw if isinstance(raw, list) else [raw]
    exdates: list[datetime.datetime] = []
    for prop in props:
        for item in getattr(prop, "dts", []):
            value = getattr(item, "dt", None)
            if isinstance(value, (datetime.date, datetime.datetime)):
                exdates.append(_localize(value, tz))
    return exdates


def _rrule_text(component: Any) -> Optional[str]:
    raw = component.get("RRULE")
    if raw is None:
        return None
    if isinstance(raw, list):
        # Multiple RRULE properties are deprecated; the first one is used
        raw = raw[0]
    return raw.to_ical().decode("utf-8")


class EventNormalizer:
    """Parses raw feed documents into NormalizedEvent records."""

    def __init__(
        self,
        default_timezone: str = "UTC",
        expander: Optional[RRuleExpander] = None,
    ) -> None:
        """Initialize normalizer.

        Args:
            default_timezone: Timezone for floating times and all-day events when
                the calendar does not declare X-WR-TIMEZONE
            expander: RRULE expander; a default 30-day expander is used when omitted
        """
        self.default_timezone = default_timezone
        self.expander = expander or RRuleExpander()

    @classmethod
    def from_settings(cls, settings: Any) -> "EventNormalizer":
        return cls(
            default_timezone=getattr(settings, "default_timezone", "UTC"),
            expander=RRuleExpander.from_settings(settings),
        )

    def normalize(
        self, document: RawFeedDocument, now: Optional[datetime.datetime] = None
    ) -> NormalizationResult:
        """Parse one feed document.

        Args:
            document: Raw calendar document
            now: Reference time for recurrence expansion; defaults to now_utc()

        Returns:
            NormalizationResult; ``parsed`` is False when the document as a whole
            could not be parsed, in which case it carries no events.
        """
        now = now or now_utc()

        try:
            calendar = Calendar.from_ical(document.content)
        except Exception as e:
            logger.warning("Feed %s is not a parseable calendar: %s", document.feed_id, e)
            return NormalizationResult(
                feed_id=document.feed_id, parsed=False, error_message=str(e)
            )

        tz_name = _text(calendar, "X-WR-TIMEZONE") or self.default_timezone
        calendar_tz = resolve_timezone(tz_name)

        events: list[NormalizedEvent] = []
        overrides: dict[OverrideKey, Optional[NormalizedEvent]] = {}
        masters: list[tuple[Any, NormalizedEvent]] = []
        warnings: list[str] = []
        skipped = 0

        for component in calendar.walk("VEVENT"):
            try:
                event = self._build_event(component, document.feed_id, calendar_tz)
            except FeedParseError as e:
                skipped += 1
                warning = f"Skipped malformed entry {_text(component, 'UID') or '<no uid>'}: {e}"
                warnings.append(warning)
                logger.warning("Feed %s: %s", document.feed_id, warning)
                continue

            cancelled = _text(component, "STATUS").upper() == "CANCELLED"
            recurrence_id = _date_value(component, "RECURRENCE-ID")

            if recurrence_id is not None and event.uid:
                original = to_utc(recurrence_id, calendar_tz)
                overrides[(event.uid, original)] = None if cancelled else event
                continue

            if cancelled:
                logger.debug("Dropping cancelled event %r", event.name)
                continue

            if component.get("RRULE") is not None:
                masters.append((component, event))
            else:
                events.append(event)

        for component, master in masters:
            try:
                events.extend(self._expand(component, master, calendar_tz, overrides, now))
            except (ValueError, TypeError) as e:
                skipped += 1
                warning = f"Skipped recurring entry {master.name!r}: invalid RRULE ({e})"
                warnings.append(warning)
                logger.warning("Feed %s: %s", document.feed_id, warning)

        horizon_start, horizon_end = (
            now - datetime.timedelta(days=self.expander.lookback_days),
            now + datetime.timedelta(days=self.expander.expansion_days),
        )
        for override in overrides.values():
            if override is not None and horizon_start <= override.start_time <= horizon_end:
                events.append(override)

        logger.debug(
            "Normalized feed %s: %d events, %d skipped", document.feed_id, len(events), skipped
        )
        return NormalizationResult(
            feed_id=document.feed_id,
            parsed=True,
            events=events,
            skipped=skipped,
            warnings=warnings,
        )

    def _build_event(
        self, component: Any, feed_id: str, calendar_tz: datetime.tzinfo
    ) -> NormalizedEvent:
        """Build the event for a VEVENT's own DTSTART.

        Raises:
            FeedParseError: If DTSTART is missing or invalid
        """
        dtstart = _date_value(component, "DTSTART")
        if dtstart is None:
            raise FeedParseError("missing or invalid DTSTART")

        start_time = to_utc(dtstart, calendar_tz)
        end_time = None
        dtend = _date_value(component, "DTEND")
        if dtend is not None:
            end_time = to_utc(dtend, calendar_tz)
        else:
            duration = getattr(component.get("DURATION"), "dt", None)
            if isinstance(duration, datetime.timedelta):
                end_time = start_time + duration

        description = _text(component, "DESCRIPTION") or None
        url = _text(component, "URL") or _first_link(description or "")

        return NormalizedEvent(
            name=_text(component, "SUMMARY") or UNTITLED_EVENT,
            start_time=start_time,
            location_text=_text(component, "LOCATION"),
            source_feed_id=feed_id,
            url=url,
            end_time=end_time,
            uid=_text(component, "UID") or None,
            description=description,
        )

    def _expand(
        self,
        component: Any,
        master: NormalizedEvent,
        calendar_tz: datetime.tzinfo,
        overrides: dict[OverrideKey, Optional[NormalizedEvent]],
        now: datetime.datetime,
    ) -> list[NormalizedEvent]:
        rrule_text = _rrule_text(component)
        if not rrule_text:
            return [master]

        dtstart = _localize(_date_value(component, "DTSTART"), calendar_tz)
        exdates = _collect_exdates(component, calendar_tz)
        duration = master.end_time - master.start_time if master.end_time else None

        occurrences = []
        for start in self.expander.expand(dtstart, rrule_text, exdates, now=now):
            if master.uid and (master.uid, start) in overrides:
                continue
            occurrences.append(
                master.model_copy(
                    update={
                        "start_time": start,
                        "end_time": start + duration if duration is not None else None,
                    }
                )
            )
        return occurrences
