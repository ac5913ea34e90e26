"""Headless map surface that records every operation.

Used by the CLI and by tests; ``click_marker`` and ``user_close_popup``
simulate user interaction.
"""

import itertools
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from eventmap.calendar.models import Coordinates
from eventmap.map.surface import (
    MarkerClicked,
    MarkerContent,
    PopupClosed,
    PopupContent,
    SurfaceEvent,
    SurfaceListener,
)

logger = logging.getLogger(__name__)


@dataclass
class MarkerRecord:
    handle: str
    coordinates: Coordinates
    content: MarkerContent
    popup: Optional[str] = None


@dataclass
class PopupRecord:
    handle: str
    marker: str
    content: PopupContent
    is_open: bool = False


class InMemoryMapSurface:
    """MapSurface implementation that keeps state in dictionaries."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.markers: dict[str, MarkerRecord] = {}
        self.popups: dict[str, PopupRecord] = {}
        self.fly_to_calls: list[tuple[Coordinates, float]] = []
        self.calls: list[tuple[str, str]] = []
        self._listeners: list[SurfaceListener] = []

    # MapSurface operations

    def create_marker(self, coordinates: Coordinates, content: MarkerContent) -> str:
        handle = f"marker-{next(self._ids)}"
        self.markers[handle] = MarkerRecord(handle, coordinates, content)
        self.calls.append(("create_marker", handle))
        return handle

    def remove_marker(self, marker: str) -> None:
        record = self.markers.pop(marker)
        if record.popup is not None:
            self.popups.pop(record.popup, None)
        self.calls.append(("remove_marker", marker))

    def attach_popup(self, marker: str, content: PopupContent) -> str:
        record = self.markers[marker]
        handle = f"popup-{next(self._ids)}"
        self.popups[handle] = PopupRecord(handle, marker, content)
        record.popup = handle
        self.calls.append(("attach_popup", handle))
        return handle

    def detach_popup(self, marker: str, popup: str) -> None:
        self.popups.pop(popup, None)
        record = self.markers.get(marker)
        if record is not None and record.popup == popup:
            record.popup = None
        self.calls.append(("detach_popup", popup))

    def open_popup(self, popup: str) -> None:
        self.popups[popup].is_open = True
        self.calls.append(("open_popup", popup))

    def close_popup(self, popup: str) -> None:
        record = self.popups.get(popup)
        self.calls.append(("close_popup", popup))
        if record is None or not record.is_open:
            return
        record.is_open = False
        # Programmatic closes notify listeners just like user closes
        self._emit(PopupClosed(popup))

    def fly_to(self, coordinates: Coordinates, zoom: float) -> None:
        self.fly_to_calls.append((coordinates, zoom))
        self.calls.append(("fly_to", f"{coordinates.lat},{coordinates.lng}@{zoom}"))

    def subscribe(self, listener: SurfaceListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # Simulated user interaction

    def click_marker(self, marker: str) -> None:
        if marker not in self.markers:
            raise KeyError(marker)
        self._emit(MarkerClicked(marker))

    def user_close_popup(self, popup: str) -> None:
        record = self.popups[popup]
        if not record.is_open:
            return
        record.is_open = False
        self._emit(PopupClosed(popup))

    # Inspection helpers

    @property
    def open_popups(self) -> list[str]:
        return [handle for handle, record in self.popups.items() if record.is_open]

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def marker_titles(self) -> list[str]:
        return [record.content.title for record in self.markers.values()]

    def popup_for(self, marker: str) -> Optional[str]:
        return self.markers[marker].popup

    def _emit(self, event: SurfaceEvent) -> None:
        logger.debug("Surface event: %r", event)
        for listener in list(self._listeners):
            listener(event)
