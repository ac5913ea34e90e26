"""Refresh orchestration between the ingestion pipeline and the map coordinator."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Union

import httpx

from eventmap.calendar.models import GeocodedEvent, Landmark
from eventmap.core.health_tracker import HealthTracker
from eventmap.core.timezone_utils import resolve_timezone
from eventmap.domain.fallback import DEFAULT_LANDMARKS, fallback_events
from eventmap.domain.pipeline import IngestionPipeline, IngestionResult, build_pipeline
from eventmap.geocoding.cache import GeocodeCache
from eventmap.geocoding.providers import Geocoder
from eventmap.map.coordinator import ApplyResult, EntryKey, MarkerPopupCoordinator
from eventmap.map.surface import MapSurface

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL_SECONDS = 300


@dataclass
class RefreshOutcome:
    """What one refresh did."""

    ingestion: IngestionResult
    apply: ApplyResult
    used_fallback: bool

    @property
    def published(self) -> bool:
        return self.apply.applied


class EventMapService:
    """Runs ingestion cycles and publishes their results to the map."""

    def __init__(
        self,
        pipeline: IngestionPipeline,
        coordinator: MarkerPopupCoordinator,
        health_tracker: Optional[HealthTracker] = None,
        fallback: Callable[[], list[GeocodedEvent]] = fallback_events,
        refresh_interval_seconds: int = DEFAULT_REFRESH_INTERVAL_SECONDS,
    ) -> None:
        """Initialize service.

        Args:
            pipeline: Ingestion pipeline producing numbered cycles
            coordinator: Marker/popup coordinator driving the map surface
            health_tracker: Optional tracker; a new one is created when omitted
            fallback: Provider of the dataset published when every feed failed
            refresh_interval_seconds: Period of start_refresh_loop
        """
        self.pipeline = pipeline
        self.coordinator = coordinator
        self.health_tracker = health_tracker or HealthTracker()
        self.fallback = fallback
        self.refresh_interval_seconds = refresh_interval_seconds
        self._events: list[GeocodedEvent] = []

    @property
    def events(self) -> list[GeocodedEvent]:
        """Currently published events, ascending by start time."""
        return list(self._events)

    async def refresh_once(self) -> RefreshOutcome:
        """Run one ingestion cycle and publish it if it is still the newest.

        On total failure the fallback dataset replaces the cycle's (empty) events.
        """
        self.health_tracker.record_refresh_attempt()
        result = await self.pipeline.run_cycle()

        failed_feeds = {failure.feed_id for failure in result.failures}
        failed_feeds.update(result.unparseable_feeds)
        for source in self.pipeline.sources:
            if source.feed_id in failed_feeds:
                self.health_tracker.record_feed_failure(source.feed_id)
            else:
                self.health_tracker.record_feed_success(source.feed_id)

        events = result.events
        used_fallback = False
        if result.total_failure:
            events = self.fallback()
            used_fallback = True
            self.health_tracker.record_total_failure(result.cycle_id)
            logger.warning(
                "Cycle %d: all feeds failed, publishing %d fallback events",
                result.cycle_id,
                len(events),
            )

        applied = self.coordinator.apply_events(events, cycle_id=result.cycle_id)
        if applied.applied:
            self._events = list(events)
            if not result.total_failure:
                self.health_tracker.record_refresh_success(result.cycle_id, len(events))
        else:
            logger.debug("Cycle %d result superseded; not published", result.cycle_id)

        return RefreshOutcome(ingestion=result, apply=applied, used_fallback=used_fallback)

    async def start_refresh_loop(
        self, stop_event: asyncio.Event, interval: Optional[float] = None
    ) -> None:
        """Background refresher: immediate refresh then periodic refreshes.

        Args:
            stop_event: Set to stop the loop
            interval: Seconds between refreshes (defaults to refresh_interval_seconds)
        """
        interval = interval if interval is not None else self.refresh_interval_seconds
        logger.debug("Refresh loop starting with interval %s seconds", interval)

        while not stop_event.is_set():
            try:
                await self.refresh_once()
            except Exception:
                logger.exception("Refresh cycle failed")

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue

        logger.debug("Refresh loop stopped")

    def select_event(self, event_or_key: Union[GeocodedEvent, Landmark, EntryKey]) -> bool:
        return self.coordinator.select_event(event_or_key)

    def close_all_popups(self) -> None:
        self.coordinator.close_all_popups()

    def status(self) -> dict[str, Any]:
        return self.health_tracker.get_status()


async def build_service(
    config: Any,
    surface: MapSurface,
    feed_client: Optional[httpx.AsyncClient] = None,
    geocode_client: Optional[httpx.AsyncClient] = None,
    geocoder: Optional[Geocoder] = None,
    cache: Optional[GeocodeCache] = None,
    landmarks: Iterable[Landmark] = DEFAULT_LANDMARKS,
) -> EventMapService:
    """Assemble a service from configuration, placing landmarks on the surface.

    Raises:
        ConfigError: If the configured geocoder cannot be built
    """
    pipeline = await build_pipeline(
        config,
        feed_client=feed_client,
        geocode_client=geocode_client,
        geocoder=geocoder,
        cache=cache,
    )
    coordinator = MarkerPopupCoordinator(
        surface,
        fly_to_zoom=float(getattr(config, "fly_to_zoom", 18.0)),
        display_tz=resolve_timezone(getattr(config, "default_timezone", "UTC")),
    )
    placed = coordinator.add_landmarks(landmarks)
    logger.debug("Placed %d landmarks", placed)

    return EventMapService(
        pipeline,
        coordinator,
        refresh_interval_seconds=int(
            getattr(config, "refresh_interval_seconds", DEFAULT_REFRESH_INTERVAL_SECONDS)
        ),
    )
