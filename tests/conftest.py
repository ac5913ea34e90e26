"""Shared fixtures for eventmap tests: settings, ICS documents, fake geocoders."""

from collections.abc import AsyncIterator, Callable, Generator
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Optional

import httpx
import pytest

from eventmap.calendar.models import Coordinates, GeocodedEvent
from eventmap.core.http_client import close_all_clients

# Reference "now" used by tests that expand recurrences
FIXED_NOW = datetime(2025, 7, 20, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def simple_settings() -> SimpleNamespace:
    """Lightweight settings object mirroring the Config fields the components read."""
    return SimpleNamespace(
        feeds=[],
        fetch_timeout_seconds=5.0,
        fetch_concurrency=4,
        geocoder="nominatim",
        geocoder_url=None,
        geocoder_token=None,
        geocoder_user_agent="eventmap-test/1.0",
        geocode_timeout_seconds=2.0,
        geocode_concurrency=2,
        expansion_days=30,
        lookback_days=7,
        max_occurrences_per_rule=250,
        default_timezone="UTC",
        refresh_interval_seconds=300,
        fly_to_zoom=18.0,
    )


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Clear EVENTMAP_* variables that tests may set, before and after each test."""
    for name in ("EVENTMAP_TEST_TIME", "EVENTMAP_DEBUG", "EVENTMAP_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture(autouse=True)
async def cleanup_shared_http_clients() -> AsyncIterator[None]:
    """Close shared httpx clients after every test."""
    yield
    await close_all_clients()


class FakeGeocoder:
    """Geocoder returning canned coordinates and counting calls per address.

    Addresses missing from ``known`` resolve to None; addresses in ``errors``
    raise the mapped exception.
    """

    def __init__(
        self,
        known: Optional[dict[str, tuple[float, float]]] = None,
        errors: Optional[dict[str, Exception]] = None,
    ) -> None:
        self.known = {key.lower(): value for key, value in (known or {}).items()}
        self.errors = {key.lower(): value for key, value in (errors or {}).items()}
        self.calls: list[str] = []

    async def geocode(self, address: str) -> Optional[Coordinates]:
        self.calls.append(address)
        key = address.lower()
        if key in self.errors:
            raise self.errors[key]
        if key in self.known:
            lat, lng = self.known[key]
            return Coordinates(lat=lat, lng=lng)
        return None


@pytest.fixture
def fake_geocoder_factory() -> Callable[..., FakeGeocoder]:
    return FakeGeocoder


def make_event(
    name: str = "Meetup",
    start: Optional[datetime] = None,
    location: str = "Somewhere",
    feed_id: str = "feed-0",
    coords: Optional[tuple[float, float]] = (12.9, 77.6),
    url: Optional[str] = None,
) -> GeocodedEvent:
    """Build a GeocodedEvent with sensible defaults."""
    return GeocodedEvent(
        name=name,
        start_time=start or FIXED_NOW,
        location_text=location,
        source_feed_id=feed_id,
        url=url,
        coordinates=Coordinates(lat=coords[0], lng=coords[1]) if coords else None,
    )


@pytest.fixture
def event_factory() -> Callable[..., GeocodedEvent]:
    return make_event


def ics_response_handler(routes: dict[str, Any]) -> Callable[[httpx.Request], httpx.Response]:
    """Build an httpx.MockTransport handler from URL -> body / (status, body) / exception."""

    def handler(request: httpx.Request) -> httpx.Response:
        route = routes.get(str(request.url))
        if route is None:
            return httpx.Response(404, text="not found")
        if isinstance(route, Exception):
            raise route
        if isinstance(route, tuple):
            status, body = route
            return httpx.Response(status, text=body)
        return httpx.Response(200, text=route, headers={"Content-Type": "text/calendar"})

    return handler


@pytest.fixture
def mock_client_factory() -> Callable[[dict[str, Any]], httpx.AsyncClient]:
    """Create AsyncClients backed by httpx.MockTransport routes."""

    def factory(routes: dict[str, Any]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(ics_response_handler(routes)))

    return factory


# ==================== ICS Test Data Fixtures ====================


@pytest.fixture
def ics_two_events() -> str:
    """Two single events in UTC, listed out of chronological order."""
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//eventmap test//EN
BEGIN:VEVENT
UID:evt-2@test
DTSTART:20250725T180000Z
DTEND:20250725T200000Z
SUMMARY:Builders Night
LOCATION:Zo House\\, 300 4th St\\, San Francisco
URL:https://lu.ma/builders
END:VEVENT
BEGIN:VEVENT
UID:evt-1@test
DTSTART:20250722T100000Z
DTEND:20250722T120000Z
SUMMARY:Morning Cowork
LOCATION:Koramangala\\, Bengaluru
DESCRIPTION:Join us https://lu.ma/cowork.
END:VEVENT
END:VCALENDAR
"""


@pytest.fixture
def ics_weekly_recurring() -> str:
    """Weekly event with an EXDATE and a moved (RECURRENCE-ID) occurrence."""
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//eventmap test//EN
BEGIN:VEVENT
UID:weekly@test
DTSTART:20250707T170000Z
DTEND:20250707T180000Z
RRULE:FREQ=WEEKLY;BYDAY=MO
EXDATE:20250728T170000Z
SUMMARY:Weekly Jam
LOCATION:Whitefield\\, Bengaluru
END:VEVENT
BEGIN:VEVENT
UID:weekly@test
RECURRENCE-ID:20250804T170000Z
DTSTART:20250805T170000Z
DTEND:20250805T180000Z
SUMMARY:Weekly Jam (moved)
LOCATION:Whitefield\\, Bengaluru
END:VEVENT
END:VCALENDAR
"""


@pytest.fixture
def ics_malformed_entry() -> str:
    """One valid event, one event without DTSTART, one cancelled event."""
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//eventmap test//EN
BEGIN:VEVENT
UID:good@test
DTSTART:20250722T100000Z
SUMMARY:Good Event
LOCATION:Koramangala
END:VEVENT
BEGIN:VEVENT
UID:nostart@test
SUMMARY:No Start
LOCATION:Nowhere
END:VEVENT
BEGIN:VEVENT
UID:cancelled@test
DTSTART:20250723T100000Z
SUMMARY:Called Off
STATUS:CANCELLED
END:VEVENT
END:VCALENDAR
"""
