"""Timezone resolution and UTC conversion utilities for eventmap."""

from __future__ import annotations

import datetime
import logging
import os
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "UTC"

# Obsolete IANA names and Windows names seen in X-WR-TIMEZONE headers
TZ_ALIAS_MAP: dict[str, str] = {
    "US/Pacific": "America/Los_Angeles",
    "US/Mountain": "America/Denver",
    "US/Central": "America/Chicago",
    "US/Eastern": "America/New_York",
    "GMT": "UTC",
    "Etc/UTC": "UTC",
    "Etc/GMT": "UTC",
    "Zulu": "UTC",
    "Pacific Standard Time": "America/Los_Angeles",
    "Mountain Standard Time": "America/Denver",
    "Central Standard Time": "America/Chicago",
    "Eastern Standard Time": "America/New_York",
    "GMT Standard Time": "Europe/London",
    "W. Europe Standard Time": "Europe/Berlin",
    "India Standard Time": "Asia/Kolkata",
    "Singapore Standard Time": "Asia/Singapore",
    "Tokyo Standard Time": "Asia/Tokyo",
}


@lru_cache(maxsize=64)
def resolve_timezone(name: str | None) -> datetime.tzinfo:
    """Resolve a timezone name to a tzinfo, falling back to UTC.

    Args:
        name: IANA name, known alias, or None

    Returns:
        tzinfo instance (UTC when the name is empty or unknown)
    """
    if not name:
        return datetime.timezone.utc
    canonical = TZ_ALIAS_MAP.get(name.strip(), name.strip())
    if canonical == "UTC":
        return datetime.timezone.utc
    try:
        return ZoneInfo(canonical)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r; using UTC", name)
        return datetime.timezone.utc


def now_utc() -> datetime.datetime:
    """Return current UTC time with tzinfo.

    Can be overridden for tests via the EVENTMAP_TEST_TIME environment variable
    (ISO 8601, e.g. "2025-07-20T08:00:00+05:30"; naive values are taken as UTC).
    """
    test_time = os.environ.get("EVENTMAP_TEST_TIME")
    if test_time:
        try:
            from dateutil import parser as date_parser

            dt = date_parser.isoparse(test_time)
            if dt.tzinfo is not None:
                return dt.astimezone(datetime.timezone.utc)
            return dt.replace(tzinfo=datetime.timezone.utc)
        except ValueError as e:
            logger.warning("Failed to parse EVENTMAP_TEST_TIME=%r: %s", test_time, e)

    return datetime.datetime.now(datetime.timezone.utc)


def to_utc(
    value: datetime.date | datetime.datetime,
    default_tz: datetime.tzinfo | None = None,
) -> datetime.datetime:
    """Convert an ICS date or datetime value to an aware UTC datetime.

    Date-only values become midnight in ``default_tz``; naive (floating)
    datetimes are interpreted in ``default_tz``.

    Args:
        value: date or datetime from a calendar property
        default_tz: timezone for dates and floating times (UTC when None)

    Returns:
        Timezone-aware datetime in UTC
    """
    tz = default_tz or datetime.timezone.utc
    if not isinstance(value, datetime.datetime):
        value = datetime.datetime.combine(value, datetime.time.min)
    if value.tzinfo is None:
        value = value.replace(tzinfo=tz)
    return value.astimezone(datetime.timezone.utc)
