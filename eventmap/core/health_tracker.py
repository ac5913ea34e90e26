"""Refresh-cycle health tracking for the eventmap service."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Optional

# A refresh older than this marks the service as degraded
STALE_REFRESH_SECONDS = 900


@dataclass
class HealthStatus:
    """Snapshot of refresh health."""

    status: str  # "ok", "degraded" or "critical"
    uptime_seconds: int
    event_count: int
    last_cycle_id: Optional[int]
    last_refresh_success_age_seconds: Optional[int]
    last_refresh_attempt_age_seconds: Optional[int]
    consecutive_total_failures: int
    feed_failures: dict[str, int] = field(default_factory=dict)


class HealthTracker:
    """Tracks refresh attempts, outcomes and per-feed failure counts."""

    def __init__(self) -> None:
        self._start_time: float = time.time()
        self._last_refresh_attempt: Optional[float] = None
        self._last_refresh_success: Optional[float] = None
        self._last_cycle_id: Optional[int] = None
        self._current_event_count: int = 0
        self._consecutive_total_failures: int = 0
        self._feed_failures: dict[str, int] = {}

    def record_refresh_attempt(self) -> None:
        """Record that a refresh attempt was made."""
        self._last_refresh_attempt = time.time()

    def record_refresh_success(self, cycle_id: int, event_count: int) -> None:
        """Record a cycle that produced a usable event set.

        Args:
            cycle_id: Identifier of the completed ingestion cycle
            event_count: Number of events published by the cycle
        """
        self._last_refresh_success = time.time()
        self._last_cycle_id = cycle_id
        self._current_event_count = event_count
        self._consecutive_total_failures = 0

    def record_total_failure(self, cycle_id: int) -> None:
        """Record a cycle where every feed failed."""
        self._last_cycle_id = cycle_id
        self._consecutive_total_failures += 1

    def record_feed_failure(self, feed_id: str) -> None:
        self._feed_failures[feed_id] = self._feed_failures.get(feed_id, 0) + 1

    def record_feed_success(self, feed_id: str) -> None:
        self._feed_failures.pop(feed_id, None)

    def get_uptime_seconds(self) -> int:
        return int(time.time() - self._start_time)

    def get_last_refresh_age_seconds(self) -> Optional[int]:
        """Get age of last successful refresh in seconds.

        Returns:
            Seconds since last successful refresh, or None if never refreshed
        """
        if self._last_refresh_success is None:
            return None
        return int(time.time() - self._last_refresh_success)

    def determine_overall_status(self) -> str:
        """Determine overall health status.

        Returns:
            "ok", "degraded", or "critical"
        """
        if self._consecutive_total_failures >= 3:
            return "critical"

        if self._last_refresh_success is None:
            return "degraded"

        last_success_age = self.get_last_refresh_age_seconds()
        if last_success_age is not None and last_success_age > STALE_REFRESH_SECONDS:
            return "degraded"

        if self._consecutive_total_failures or self._feed_failures:
            return "degraded"

        return "ok"

    def get_health_status(self) -> HealthStatus:
        return HealthStatus(
            status=self.determine_overall_status(),
            uptime_seconds=self.get_uptime_seconds(),
            event_count=self._current_event_count,
            last_cycle_id=self._last_cycle_id,
            last_refresh_success_age_seconds=self.get_last_refresh_age_seconds(),
            last_refresh_attempt_age_seconds=(
                None
                if self._last_refresh_attempt is None
                else int(time.time() - self._last_refresh_attempt)
            ),
            consecutive_total_failures=self._consecutive_total_failures,
            feed_failures=dict(self._feed_failures),
        )

    def get_status(self) -> dict[str, Any]:
        """Health status as a plain dict, for JSON output."""
        status = self.get_health_status()
        return {
            "status": status.status,
            "uptime_seconds": status.uptime_seconds,
            "event_count": status.event_count,
            "last_cycle_id": status.last_cycle_id,
            "last_refresh_success_age_seconds": status.last_refresh_success_age_seconds,
            "last_refresh_attempt_age_seconds": status.last_refresh_attempt_age_seconds,
            "consecutive_total_failures": status.consecutive_total_failures,
            "feed_failures": status.feed_failures,
        }
