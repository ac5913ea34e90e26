"""Process-lifetime geocode cache keyed on normalized address text."""

import logging
import re
from typing import Optional

from eventmap.calendar.models import Coordinates

logger = logging.getLogger(__name__)

_LEADING_JUNK = re.compile(r"^[\W_]+")
_TRAILING_JUNK = re.compile(r"[\W_]+$")
_WHITESPACE = re.compile(r"\s+")


def normalize_address(text: Optional[str]) -> str:
    """Normalize address text so trivially different strings share a cache entry.

    Lower-cases, strips leading and trailing punctuation and collapses
    whitespace runs. Returns an empty string for blank input.
    """
    if not text:
        return ""
    loc = text.lower().strip()
    loc = _LEADING_JUNK.sub("", loc)
    loc = _TRAILING_JUNK.sub("", loc)
    return _WHITESPACE.sub(" ", loc)


class GeocodeCache:
    """Address -> Coordinates mapping that only ever grows.

    Only successful lookups are stored; there is no expiry within a process.
    """

    def __init__(self) -> None:
        self._entries: dict[str, Coordinates] = {}
        self.hits = 0
        self.misses = 0

    def get(self, address: str) -> Optional[Coordinates]:
        """Return cached coordinates for an address, counting the hit or miss."""
        key = normalize_address(address)
        coords = self._entries.get(key)
        if coords is None:
            self.misses += 1
        else:
            self.hits += 1
        return coords

    def put(self, address: str, coordinates: Coordinates) -> None:
        key = normalize_address(address)
        if not key:
            return
        self._entries[key] = coordinates
        logger.debug("Cached coordinates for %r (%d entries)", key, len(self._entries))

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and normalize_address(address) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> dict[str, int]:
        return {"entries": len(self._entries), "hits": self.hits, "misses": self.misses}
