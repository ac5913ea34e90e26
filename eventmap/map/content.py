"""Popup and marker content for events and landmarks."""

import datetime
import html
from typing import Optional

from eventmap.calendar.models import GeocodedEvent, Landmark
from eventmap.map.surface import MarkerContent, PopupContent

NOT_AVAILABLE = "N/A"
REGISTER_LABEL = "Register"
VISIT_LABEL = "Visit Website"


def format_event_date(value: datetime.datetime, tz: Optional[datetime.tzinfo] = None) -> str:
    """Format a start time like "Wed, Jul 23, 2025"."""
    if tz is not None:
        value = value.astimezone(tz)
    return f"{value:%a}, {value:%b} {value.day}, {value.year}"


def _or_na(value: Optional[str]) -> str:
    text = (value or "").strip()
    return text or NOT_AVAILABLE


def event_marker_content(event: GeocodedEvent) -> MarkerContent:
    return MarkerContent(title=_or_na(event.name), kind="event")


def event_popup_content(
    event: GeocodedEvent, tz: Optional[datetime.tzinfo] = None
) -> PopupContent:
    """Build popup content: name, date, location and a register link when known."""
    return PopupContent(
        title=_or_na(event.name),
        lines=(format_event_date(event.start_time, tz), _or_na(event.location_text)),
        link_url=event.url or None,
        link_label=REGISTER_LABEL if event.url else None,
    )


def landmark_marker_content(landmark: Landmark) -> MarkerContent:
    return MarkerContent(title=landmark.name, kind="landmark")


def landmark_popup_content(landmark: Landmark) -> PopupContent:
    lines = tuple(line for line in (landmark.address, landmark.description) if line)
    return PopupContent(
        title=landmark.name,
        lines=lines,
        link_url=landmark.url,
        link_label=VISIT_LABEL if landmark.url else None,
    )


def render_popup_html(content: PopupContent) -> str:
    """Render popup content as an HTML fragment for web map surfaces."""
    parts = [f"<h3>{html.escape(content.title)}</h3>"]
    parts.extend(f"<p>{html.escape(line)}</p>" for line in content.lines)
    if content.link_url:
        parts.append(
            f'<a href="{html.escape(content.link_url, quote=True)}" target="_blank" '
            f'rel="noopener">{html.escape(content.link_label or content.link_url)}</a>'
        )
    return "\n".join(parts)
