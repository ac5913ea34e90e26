"""Contract between the marker/popup coordinator and a map rendering surface.

Marker and popup handles are opaque to the coordinator; they only need to be
hashable. User-driven transitions reach the coordinator as surface events
delivered to subscribed listeners.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Union

from eventmap.calendar.models import Coordinates

MarkerHandle = Any
PopupHandle = Any


@dataclass(frozen=True)
class MarkerContent:
    """What a marker shows before it is clicked."""

    title: str
    kind: str = "event"  # "event" or "landmark"


@dataclass(frozen=True)
class PopupContent:
    """Display fields of a popup."""

    title: str
    lines: tuple[str, ...] = ()
    link_url: Optional[str] = None
    link_label: Optional[str] = None


@dataclass(frozen=True)
class MarkerClicked:
    """The user clicked a marker."""

    marker: MarkerHandle


@dataclass(frozen=True)
class PopupClosed:
    """A popup was closed by the surface (close button, map click, or close_popup)."""

    popup: PopupHandle


SurfaceEvent = Union[MarkerClicked, PopupClosed]
SurfaceListener = Callable[[SurfaceEvent], None]


class MapSurface(Protocol):
    """Rendering operations the coordinator relies on."""

    def create_marker(self, coordinates: Coordinates, content: MarkerContent) -> MarkerHandle: ...

    def remove_marker(self, marker: MarkerHandle) -> None: ...

    def attach_popup(self, marker: MarkerHandle, content: PopupContent) -> PopupHandle: ...

    def detach_popup(self, marker: MarkerHandle, popup: PopupHandle) -> None: ...

    def open_popup(self, popup: PopupHandle) -> None: ...

    def close_popup(self, popup: PopupHandle) -> None: ...

    def fly_to(self, coordinates: Coordinates, zoom: float) -> None: ...

    def subscribe(self, listener: SurfaceListener) -> Callable[[], None]:
        """Register a listener for surface events; returns an unsubscribe callable."""
        ...
