"""Built-in demo events and venue landmarks.

The demo events are published only when every configured feed failed; the
landmarks are always placed on the map.
"""

from datetime import datetime
from zoneinfo import ZoneInfo

from eventmap.calendar.models import Coordinates, GeocodedEvent, Landmark

FALLBACK_FEED_ID = "fallback"

LANDMARK_URL = "https://zo.house"

DEFAULT_LANDMARKS: tuple[Landmark, ...] = (
    Landmark(
        name="Zo House SF",
        coordinates=Coordinates(lat=37.7817309, lng=-122.401198),
        address="300 4th St, San Francisco, CA 94107, United States",
        description="Zo House San Francisco - The original crypto hub",
        url=LANDMARK_URL,
    ),
    Landmark(
        name="Zo House Koramangala",
        coordinates=Coordinates(lat=12.9325, lng=77.635),
        address=(
            "S-1, P-2, Anaa Infra's Signature Towers, Nirguna Mandir Layout, Cauvery Colony, "
            "S.T. Bed, 1st Block Koramangala, Bengaluru, Karnataka 560095, India"
        ),
        description="Zo House Bangalore - Innovation center in India's Silicon Valley",
        url=LANDMARK_URL,
    ),
    Landmark(
        name="Zo House Whitefield",
        coordinates=Coordinates(lat=12.9725, lng=77.745),
        address="Outer Circle, Dodsworth Layout, Whitefield, Bengaluru, Karnataka, India",
        description="Zo House Whitefield - Expanding the ecosystem",
        url=LANDMARK_URL,
    ),
)


def fallback_events() -> list[GeocodedEvent]:
    """Return the demo event set, sorted by start time.

    Start times are local wall-clock times at each venue.
    """
    return [
        GeocodedEvent(
            name="420 Sesh with Shroo at 4:20 PM",
            start_time=datetime(2025, 7, 23, 16, 20, tzinfo=ZoneInfo("Asia/Kolkata")),
            location_text="Zo House Bangalore (Koramangala), S-1, P-2, Anaa Infra's Signature",
            source_feed_id=FALLBACK_FEED_ID,
            url="https://lu.ma/example1",
            coordinates=Coordinates(lat=12.9278, lng=77.6271),
        ),
        GeocodedEvent(
            name="Zo-work",
            start_time=datetime(2025, 7, 24, 9, 0, tzinfo=ZoneInfo("America/Los_Angeles")),
            location_text="Zo House, 300 4th St, San Francisco, CA 94107, USA",
            source_feed_id=FALLBACK_FEED_ID,
            url="https://lu.ma/example2",
            coordinates=Coordinates(lat=37.7749, lng=-122.4194),
        ),
    ]
