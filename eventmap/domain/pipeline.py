"""One ingestion cycle: fetch -> normalize -> geocode -> merge."""

from __future__ import annotations

import itertools
import logging
from datetime import datetime
from typing import Any, Optional, Sequence

import httpx
from pydantic import BaseModel, Field

from eventmap.calendar.fetcher import FeedFetcher, feed_sources_from_config
from eventmap.calendar.models import (
    FeedSource,
    FetchFailure,
    GeocodedEvent,
    NormalizationResult,
)
from eventmap.calendar.normalizer import EventNormalizer
from eventmap.core.http_client import get_shared_client
from eventmap.core.timezone_utils import now_utc
from eventmap.domain.merger import EventMerger, FeedEvents
from eventmap.geocoding.cache import GeocodeCache
from eventmap.geocoding.providers import Geocoder, build_geocoder
from eventmap.geocoding.resolver import GeocodeResolver

logger = logging.getLogger(__name__)


class IngestionResult(BaseModel):
    """Outcome of one ingestion cycle."""

    cycle_id: int
    events: list[GeocodedEvent] = Field(default_factory=list)
    total_failure: bool = False
    failures: list[FetchFailure] = Field(default_factory=list)
    unparseable_feeds: list[str] = Field(default_factory=list)
    skipped_entries: int = 0
    started_at: datetime
    completed_at: datetime

    @property
    def located_count(self) -> int:
        return sum(1 for event in self.events if event.has_coordinates)


class IngestionPipeline:
    """Runs ingestion cycles against a fixed, ordered feed list.

    Every cycle gets a strictly increasing ``cycle_id`` so consumers can discard
    results that complete out of order.
    """

    def __init__(
        self,
        fetcher: FeedFetcher,
        normalizer: EventNormalizer,
        resolver: GeocodeResolver,
        merger: Optional[EventMerger] = None,
        sources: Sequence[FeedSource] = (),
    ) -> None:
        self.fetcher = fetcher
        self.normalizer = normalizer
        self.resolver = resolver
        self.merger = merger or EventMerger()
        self.sources = list(sources)
        self._cycle_ids = itertools.count(1)

    async def run_cycle(self, now: Optional[datetime] = None) -> IngestionResult:
        """Run one complete ingestion cycle.

        Args:
            now: Reference time for recurrence expansion; defaults to now_utc()

        Returns:
            IngestionResult with merged, sorted events and per-feed failures
        """
        cycle_id = next(self._cycle_ids)
        started_at = now_utc()
        now = now or started_at
        logger.debug("=== Starting ingestion cycle %d (%d feeds) ===", cycle_id, len(self.sources))

        self.resolver.start_cycle()
        outcomes = await self.fetcher.fetch_all(self.sources)

        failures: list[FetchFailure] = []
        unparseable: list[str] = []
        normalized: list[tuple[str, Optional[NormalizationResult]]] = []
        skipped = 0

        for feed_id, outcome in outcomes:
            if isinstance(outcome, FetchFailure):
                failures.append(outcome)
                normalized.append((feed_id, None))
                continue
            result = self.normalizer.normalize(outcome, now=now)
            skipped += result.skipped
            if not result.parsed:
                unparseable.append(feed_id)
            normalized.append((feed_id, result))

        locations = [
            event.location_text
            for _, result in normalized
            if result is not None
            for event in result.events
            if event.location_text.strip()
        ]
        coordinates = await self.resolver.resolve_many(locations)

        feed_events = []
        for feed_id, result in normalized:
            if result is None or not result.parsed:
                feed_events.append(FeedEvents(feed_id=feed_id, failed=True))
                continue
            feed_events.append(
                FeedEvents(
                    feed_id=feed_id,
                    events=[
                        GeocodedEvent.from_normalized(event, coordinates.get(event.location_text))
                        for event in result.events
                    ],
                )
            )

        merged = self.merger.merge(feed_events)
        result = IngestionResult(
            cycle_id=cycle_id,
            events=merged.events,
            total_failure=merged.total_failure,
            failures=failures,
            unparseable_feeds=unparseable,
            skipped_entries=skipped,
            started_at=started_at,
            completed_at=now_utc(),
        )

        logger.info(
            "Ingestion cycle %d complete: %d events (%d located), %d feeds failed%s",
            cycle_id,
            len(result.events),
            result.located_count,
            len(failures) + len(unparseable),
            " - TOTAL FAILURE" if result.total_failure else "",
        )
        return result


async def build_pipeline(
    config: Any,
    feed_client: Optional[httpx.AsyncClient] = None,
    geocode_client: Optional[httpx.AsyncClient] = None,
    geocoder: Optional[Geocoder] = None,
    cache: Optional[GeocodeCache] = None,
) -> IngestionPipeline:
    """Assemble a pipeline from configuration.

    Clients default to the shared "feeds" and "geocoder" clients; a geocoder
    passed in replaces the configured provider.

    Raises:
        ConfigError: If the configured geocoder cannot be built
    """
    if geocoder is None:
        if geocode_client is None:
            geocode_client = await get_shared_client("geocoder")
        geocoder = build_geocoder(config, geocode_client)

    resolver = GeocodeResolver(
        geocoder,
        cache=cache,
        timeout=float(getattr(config, "geocode_timeout_seconds", 10.0)),
        max_concurrency=int(getattr(config, "geocode_concurrency", 2)),
    )
    return IngestionPipeline(
        fetcher=FeedFetcher(config, client=feed_client),
        normalizer=EventNormalizer.from_settings(config),
        resolver=resolver,
        merger=EventMerger(),
        sources=feed_sources_from_config(config),
    )
