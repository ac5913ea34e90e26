"""Cached, coalescing geocode resolution."""

import asyncio
import logging
from typing import Iterable, Optional

from eventmap.calendar.models import Coordinates
from eventmap.exceptions import GeocodeError
from eventmap.geocoding.cache import GeocodeCache, normalize_address
from eventmap.geocoding.providers import Geocoder

logger = logging.getLogger(__name__)


class GeocodeResolver:
    """Resolves location text to Coordinates through a cache.

    Concurrent requests for the same normalized address share one in-flight
    lookup. An address whose lookup failed is not retried until the next
    ``start_cycle()``. Failures are logged and surface as None.
    """

    def __init__(
        self,
        geocoder: Geocoder,
        cache: Optional[GeocodeCache] = None,
        timeout: float = 10.0,
        max_concurrency: int = 2,
    ) -> None:
        """Initialize resolver.

        Args:
            geocoder: External lookup capability
            cache: Cache shared across cycles; a new one is created when omitted
            timeout: Per-lookup timeout in seconds
            max_concurrency: Maximum external lookups in flight at once
        """
        self.geocoder = geocoder
        self.cache = cache if cache is not None else GeocodeCache()
        self.timeout = timeout
        self._semaphore = asyncio.Semaphore(max(1, max_concurrency))
        self._in_flight: dict[str, asyncio.Future[Optional[Coordinates]]] = {}
        self._failed_this_cycle: set[str] = set()
        self.lookup_count = 0

    def start_cycle(self) -> None:
        """Begin a new ingestion cycle; previously failed addresses may be retried."""
        if self._failed_this_cycle:
            logger.debug("Clearing %d failed addresses", len(self._failed_this_cycle))
        self._failed_this_cycle.clear()

    async def resolve(self, location_text: Optional[str]) -> Optional[Coordinates]:
        """Resolve one location text.

        Returns:
            Coordinates, or None for blank text and for any lookup failure
        """
        key = normalize_address(location_text)
        if not key:
            return None

        cached = self.cache.get(key)
        if cached is not None:
            return cached

        if key in self._failed_this_cycle:
            return None

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._lookup(key, (location_text or "").strip()))
            self._in_flight[key] = task
            task.add_done_callback(lambda done, k=key: self._forget(k, done))
        else:
            logger.debug("Joining in-flight lookup for %r", key)

        return await asyncio.shield(task)

    async def resolve_many(
        self, location_texts: Iterable[Optional[str]]
    ) -> dict[str, Optional[Coordinates]]:
        """Resolve distinct location texts concurrently.

        Returns:
            Mapping of each distinct input text to its coordinates (or None)
        """
        texts = list(dict.fromkeys(text for text in location_texts if text is not None))
        results = await asyncio.gather(*(self.resolve(text) for text in texts))
        return dict(zip(texts, results))

    def _forget(self, key: str, done: "asyncio.Future[Optional[Coordinates]]") -> None:
        if self._in_flight.get(key) is done:
            del self._in_flight[key]

    async def _lookup(self, key: str, text: str) -> Optional[Coordinates]:
        coords: Optional[Coordinates] = None
        async with self._semaphore:
            self.lookup_count += 1
            logger.debug("Geocoding %r", text)
            try:
                coords = await asyncio.wait_for(self.geocoder.geocode(text), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.warning("Geocoding %r timed out after %ss", text, self.timeout)
            except GeocodeError as e:
                logger.warning("Geocoding %r failed: %s", text, e)
            except Exception:
                logger.exception("Unexpected error geocoding %r", text)

        if coords is None:
            self._failed_this_cycle.add(key)
            return None

        self.cache.put(key, coords)
        return coords
