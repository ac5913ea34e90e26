"""List-view helpers: search and region filtering, relative date labels."""

import datetime
import math
from typing import Mapping, Optional, Sequence

from eventmap.calendar.models import GeocodedEvent
from eventmap.core.timezone_utils import now_utc

# Region name -> keywords matched against the lower-cased location text
DEFAULT_REGIONS: dict[str, tuple[str, ...]] = {
    "bangalore": ("bangalore", "bengaluru"),
    "sanfrancisco": ("san francisco", "sf"),
}

ALL_REGIONS = "all"


def filter_events(
    events: Sequence[GeocodedEvent],
    search: Optional[str] = None,
    region: str = ALL_REGIONS,
    regions: Mapping[str, Sequence[str]] = DEFAULT_REGIONS,
) -> list[GeocodedEvent]:
    """Filter events by region and free-text search, sorted by start time.

    Args:
        events: Events to filter
        search: Case-insensitive text matched against name and location
        region: Region name from ``regions``, or "all"; unknown names match everything
        regions: Region keyword table

    Returns:
        New list sorted ascending by start time
    """
    filtered = list(events)

    keywords = regions.get(region) if region != ALL_REGIONS else None
    if keywords:
        filtered = [
            event
            for event in filtered
            if any(keyword in event.location_text.lower() for keyword in keywords)
        ]

    if search:
        needle = search.strip().lower()
        filtered = [
            event
            for event in filtered
            if needle in event.name.lower() or needle in event.location_text.lower()
        ]

    return sorted(filtered, key=lambda event: event.start_time)


def relative_date_label(start: datetime.datetime, now: Optional[datetime.datetime] = None) -> str:
    """Describe a start time relative to now.

    Returns "Past Event", "Today", "Tomorrow", "In N days" for up to a week
    ahead, and "Jul 23" beyond that (with the year when it differs from now's).
    """
    now = now or now_utc()
    diff_days = math.ceil((start - now).total_seconds() / 86400)

    if diff_days < 0:
        return "Past Event"
    if diff_days == 0:
        return "Today"
    if diff_days == 1:
        return "Tomorrow"
    if diff_days <= 7:
        return f"In {diff_days} days"

    label = f"{start:%b} {start.day}"
    if start.year != now.year:
        label = f"{label}, {start.year}"
    return label


def format_event_time(start: datetime.datetime, tz: Optional[datetime.tzinfo] = None) -> str:
    """Format a start time like "4:20 PM"."""
    if tz is not None:
        start = start.astimezone(tz)
    hour = start.hour % 12 or 12
    return f"{hour}:{start.minute:02d} {'AM' if start.hour < 12 else 'PM'}"
