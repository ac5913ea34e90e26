"""Cross-feed merging and deduplication of geocoded events."""

import logging
from dataclasses import dataclass, field
from typing import Sequence

from eventmap.calendar.models import GeocodedEvent, IdentityKey

logger = logging.getLogger(__name__)


@dataclass
class FeedEvents:
    """Events contributed by one feed, in configuration order.

    ``failed`` marks a feed that could not be fetched or parsed.
    """

    feed_id: str
    events: list[GeocodedEvent] = field(default_factory=list)
    failed: bool = False


@dataclass
class MergeResult:
    events: list[GeocodedEvent]
    total_failure: bool
    failed_feeds: list[str] = field(default_factory=list)
    duplicates_removed: int = 0


class EventMerger:
    """Combines per-feed events into one chronologically ordered collection."""

    def merge(self, feed_events: Sequence[FeedEvents]) -> MergeResult:
        """Merge and deduplicate events from all feeds.

        Entries sharing an identity key collapse to the one from the feed that
        appears first in ``feed_events``. The result is sorted ascending by start
        time; ties keep feed order.

        Args:
            feed_events: Per-feed event lists in configuration order

        Returns:
            MergeResult; ``total_failure`` is True (with no events) when every
            feed failed, including when there are no feeds at all.
        """
        failed_feeds = [feed.feed_id for feed in feed_events if feed.failed]
        if len(failed_feeds) == len(feed_events):
            logger.warning(
                "All %d feeds failed; signalling total failure", len(feed_events)
            )
            return MergeResult(events=[], total_failure=True, failed_feeds=failed_feeds)

        seen: set[IdentityKey] = set()
        merged: list[GeocodedEvent] = []
        duplicates = 0

        for feed in feed_events:
            if feed.failed:
                continue
            for event in feed.events:
                key = event.identity_key
                if key in seen:
                    duplicates += 1
                    logger.debug(
                        "Dropping duplicate %r from feed %s", event.name, feed.feed_id
                    )
                    continue
                seen.add(key)
                merged.append(event)

        merged.sort(key=lambda event: event.start_time)

        logger.debug(
            "Merged %d events from %d feeds (%d duplicates removed, %d feeds failed)",
            len(merged),
            len(feed_events),
            duplicates,
            len(failed_feeds),
        )
        return MergeResult(
            events=merged,
            total_failure=False,
            failed_feeds=failed_feeds,
            duplicates_removed=duplicates,
        )
