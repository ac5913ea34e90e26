"""Marker and popup lifecycle on a map surface.

The coordinator is the only component that talks to the rendering surface. It
keeps one marker per placed event, creates popups lazily, and guarantees that
at most one popup is open at any time. Coordinator state is always updated
before the surface is called, so notifications the surface emits while
handling a call (for example ``PopupClosed`` from ``close_popup``) see the new
state and are ignored.
"""

import datetime
import logging
from dataclasses import dataclass
from typing import Any, Hashable, Iterable, Optional, Sequence, Union

from eventmap.calendar.models import Coordinates, GeocodedEvent, Landmark, NormalizedEvent
from eventmap.map import content as popup_content
from eventmap.map.surface import (
    MapSurface,
    MarkerClicked,
    MarkerContent,
    PopupClosed,
    PopupContent,
    SurfaceEvent,
)

logger = logging.getLogger(__name__)

DEFAULT_FLY_TO_ZOOM = 18.0

EntryKey = Hashable


@dataclass
class _MarkerEntry:
    key: EntryKey
    coordinates: Coordinates
    marker: Any
    popup_content: PopupContent
    popup: Any = None
    is_landmark: bool = False


@dataclass
class ApplyResult:
    """Outcome of applying an event set to the map."""

    applied: bool
    added: int = 0
    removed: int = 0
    unchanged: int = 0
    unplaced: int = 0


class MarkerPopupCoordinator:
    """Reconciles an event list against markers and popups on a surface."""

    def __init__(
        self,
        surface: MapSurface,
        fly_to_zoom: float = DEFAULT_FLY_TO_ZOOM,
        display_tz: Optional[datetime.tzinfo] = None,
    ) -> None:
        """Initialize coordinator and subscribe to surface events.

        Args:
            surface: Rendering surface to drive
            fly_to_zoom: Zoom level used by select_event
            display_tz: Timezone used for dates shown in popups (UTC when None)
        """
        self.surface = surface
        self.fly_to_zoom = fly_to_zoom
        self.display_tz = display_tz
        self._entries: dict[EntryKey, _MarkerEntry] = {}
        self._key_by_marker: dict[Any, EntryKey] = {}
        self._key_by_popup: dict[Any, EntryKey] = {}
        self._open: set[EntryKey] = set()
        self._current_open: Optional[EntryKey] = None
        self._last_cycle_id: Optional[int] = None
        self._unsubscribe = surface.subscribe(self.handle_surface_event)

    # State inspection

    @property
    def current_open_popup(self) -> Optional[EntryKey]:
        return self._current_open

    @property
    def open_popup_count(self) -> int:
        return len(self._open)

    @property
    def marker_count(self) -> int:
        return len(self._entries)

    @property
    def last_cycle_id(self) -> Optional[int]:
        return self._last_cycle_id

    @property
    def event_keys(self) -> list[EntryKey]:
        return [key for key, entry in self._entries.items() if not entry.is_landmark]

    def has_marker(self, key: EntryKey) -> bool:
        return key in self._entries

    def marker_for(self, key: EntryKey) -> Any:
        entry = self._entries.get(key)
        return entry.marker if entry else None

    def popup_for(self, key: EntryKey) -> Any:
        entry = self._entries.get(key)
        return entry.popup if entry else None

    # Event set reconciliation

    def apply_events(
        self, events: Sequence[GeocodedEvent], cycle_id: Optional[int] = None
    ) -> ApplyResult:
        """Make the map's event markers match ``events``.

        Markers are created for new geocoded events, removed for vanished ones
        (closing their popup first) and left untouched otherwise. Events
        without coordinates are not placed.

        Args:
            events: Ordered event set from the latest ingestion cycle
            cycle_id: Sequence number of that cycle; a value not newer than the
                last applied one is rejected as stale

        Returns:
            ApplyResult; ``applied`` is False for a stale cycle
        """
        if cycle_id is not None:
            if self._last_cycle_id is not None and cycle_id <= self._last_cycle_id:
                logger.info(
                    "Discarding stale cycle %d (last applied %d)", cycle_id, self._last_cycle_id
                )
                return ApplyResult(applied=False)
            self._last_cycle_id = cycle_id

        desired: dict[EntryKey, GeocodedEvent] = {}
        unplaced = 0
        for event in events:
            if event.coordinates is None:
                unplaced += 1
                continue
            desired.setdefault(event.identity_key, event)

        removed = 0
        for key in self.event_keys:
            event = desired.get(key)
            if event is None or event.coordinates != self._entries[key].coordinates:
                self._remove_entry(key)
                removed += 1

        added = 0
        unchanged = 0
        for key, event in desired.items():
            if key in self._entries:
                unchanged += 1
                continue
            self._add_entry(
                key,
                event.coordinates,
                popup_content.event_marker_content(event),
                popup_content.event_popup_content(event, self.display_tz),
            )
            added += 1

        self._check_invariant()
        logger.debug(
            "Applied %d events: added=%d removed=%d unchanged=%d unplaced=%d",
            len(events),
            added,
            removed,
            unchanged,
            unplaced,
        )
        return ApplyResult(
            applied=True, added=added, removed=removed, unchanged=unchanged, unplaced=unplaced
        )

    def add_landmarks(self, landmarks: Iterable[Landmark]) -> int:
        """Place static venue markers; returns how many were added."""
        added = 0
        for landmark in landmarks:
            if landmark.key in self._entries:
                continue
            self._add_entry(
                landmark.key,
                landmark.coordinates,
                popup_content.landmark_marker_content(landmark),
                popup_content.landmark_popup_content(landmark),
                is_landmark=True,
            )
            added += 1
        return added

    # Popup transitions

    def select_event(self, event_or_key: Union[NormalizedEvent, Landmark, EntryKey]) -> bool:
        """Fly to an event and open its popup.

        Closes any other open popup first, flies to the target, opens the
        target popup and records it as current.

        Returns:
            False when the target has no marker (unknown or not geocoded) or
            the surface failed to open its popup
        """
        key = self._key_of(event_or_key)
        entry = self._entries.get(key)
        if entry is None:
            logger.debug("select_event: no marker for %r", key)
            return False

        return self._open_entry(entry, fly=True)

    def close_all_popups(self) -> None:
        """Close every tracked popup. Safe to call repeatedly."""
        for key in list(self._open):
            self._close_entry(key)
        self._current_open = None
        self._check_invariant()

    def handle_surface_event(self, event: SurfaceEvent) -> None:
        """React to user-driven transitions reported by the surface."""
        if isinstance(event, MarkerClicked):
            key = self._key_by_marker.get(event.marker)
            entry = self._entries.get(key) if key is not None else None
            if entry is None:
                logger.debug("Click on unknown marker %r ignored", event.marker)
                return
            self._open_entry(entry, fly=False)
        elif isinstance(event, PopupClosed):
            key = self._key_by_popup.get(event.popup)
            if key is None or key not in self._open:
                return
            self._open.discard(key)
            if self._current_open == key:
                self._current_open = None
            logger.debug("Popup for %r closed by surface", key)

    def clear(self) -> None:
        """Remove every marker and stop listening to the surface."""
        self.close_all_popups()
        for key in list(self._entries):
            self._remove_entry(key)
        self._unsubscribe()
        self._last_cycle_id = None

    # Internals

    def _key_of(self, event_or_key: Any) -> EntryKey:
        if isinstance(event_or_key, NormalizedEvent):
            return event_or_key.identity_key
        if isinstance(event_or_key, Landmark):
            return event_or_key.key
        return event_or_key

    def _add_entry(
        self,
        key: EntryKey,
        coordinates: Coordinates,
        marker_content: MarkerContent,
        content: PopupContent,
        is_landmark: bool = False,
    ) -> None:
        marker = self.surface.create_marker(coordinates, marker_content)
        self._entries[key] = _MarkerEntry(
            key=key,
            coordinates=coordinates,
            marker=marker,
            popup_content=content,
            is_landmark=is_landmark,
        )
        self._key_by_marker[marker] = key

    def _ensure_popup(self, entry: _MarkerEntry) -> Any:
        if entry.popup is None:
            entry.popup = self.surface.attach_popup(entry.marker, entry.popup_content)
            self._key_by_popup[entry.popup] = entry.key
        return entry.popup

    def _open_entry(self, entry: _MarkerEntry, fly: bool) -> bool:
        for other in list(self._open):
            if other != entry.key:
                self._close_entry(other)

        if fly:
            self.surface.fly_to(entry.coordinates, self.fly_to_zoom)

        popup = self._ensure_popup(entry)
        already_open = entry.key in self._open
        self._open.add(entry.key)
        self._current_open = entry.key
        if not already_open:
            try:
                self.surface.open_popup(popup)
            except Exception:
                logger.exception("Error opening popup for %r", entry.key)
                self._open.discard(entry.key)
                self._current_open = None
                return False
        self._check_invariant()
        return True

    def _close_entry(self, key: EntryKey) -> None:
        self._open.discard(key)
        if self._current_open == key:
            self._current_open = None
        entry = self._entries.get(key)
        if entry is None or entry.popup is None:
            return
        try:
            self.surface.close_popup(entry.popup)
        except Exception:
            logger.exception("Error closing popup for %r", key)

    def _remove_entry(self, key: EntryKey) -> None:
        entry = self._entries.get(key)
        if entry is None:
            return
        if key in self._open:
            self._close_entry(key)

        del self._entries[key]
        self._key_by_marker.pop(entry.marker, None)
        try:
            if entry.popup is not None:
                self._key_by_popup.pop(entry.popup, None)
                self.surface.detach_popup(entry.marker, entry.popup)
            self.surface.remove_marker(entry.marker)
        except Exception:
            logger.exception("Error removing marker for %r", key)

    def _check_invariant(self) -> None:
        if len(self._open) <= 1:
            return
        logger.error("%d popups tracked as open; closing all but the current", len(self._open))
        for key in list(self._open):
            if key != self._current_open:
                self._close_entry(key)
