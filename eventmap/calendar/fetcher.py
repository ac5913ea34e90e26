"""HTTP fetcher for calendar feeds.

Every feed is fetched independently; a failure on one feed is converted into a
``FetchFailure`` value and never affects the others.
"""

import asyncio
import logging
from typing import Any, Optional, Sequence
from urllib.parse import urlparse

import httpx

from eventmap.calendar.models import (
    FeedSource,
    FetchFailure,
    FetchFailureReason,
    FetchOutcome,
    RawFeedDocument,
)
from eventmap.core.http_client import get_shared_client
from eventmap.exceptions import (
    FeedContentError,
    FeedFetchError,
    FeedNetworkError,
    FeedStatusError,
    FeedTimeoutError,
    FeedURLError,
)

logger = logging.getLogger(__name__)

# Grace period on top of the client timeout before the request is abandoned
TIMEOUT_GRACE_SECONDS = 1.0

CALENDAR_MARKER = "BEGIN:VCALENDAR"


def feed_sources_from_config(config: Any) -> list[FeedSource]:
    """Build FeedSource models from configured feeds, preserving order."""
    default_timeout = float(getattr(config, "fetch_timeout_seconds", 15.0))
    return [
        FeedSource(
            feed_id=feed.feed_id,
            url=feed.url,
            name=feed.name,
            timeout=feed.timeout or default_timeout,
        )
        for feed in getattr(config, "feeds", [])
    ]


def _failure_reason(error: FeedFetchError) -> FetchFailureReason:
    if isinstance(error, FeedURLError):
        return FetchFailureReason.INVALID_URL
    if isinstance(error, FeedTimeoutError):
        return FetchFailureReason.TIMEOUT
    if isinstance(error, FeedStatusError):
        return FetchFailureReason.HTTP_STATUS
    if isinstance(error, FeedContentError):
        return FetchFailureReason.INVALID_CONTENT
    return FetchFailureReason.NETWORK


class FeedFetcher:
    """Async fetcher for ICS calendar feeds."""

    def __init__(self, settings: Any, client: Optional[httpx.AsyncClient] = None) -> None:
        """Initialize feed fetcher.

        Args:
            settings: Application settings (uses fetch_timeout_seconds, fetch_concurrency)
            client: Optional HTTP client; the shared "feeds" client is used when omitted
        """
        self.settings = settings
        self.client: Optional[httpx.AsyncClient] = client
        self._client_id = "feeds"

        logger.debug("Feed fetcher initialized (injected_client: %s)", client is not None)

    async def __aenter__(self) -> "FeedFetcher":
        await self._ensure_client()
        return self

    async def __aexit__(self, _exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        # Shared clients are closed by close_all_clients(), injected ones by their owner
        self.client = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self.client is None or self.client.is_closed:
            self.client = await get_shared_client(self._client_id)
        return self.client

    @property
    def concurrency(self) -> int:
        return max(1, int(getattr(self.settings, "fetch_concurrency", 4)))

    def _validate_feed_url(self, url: str) -> bool:
        """Check that a feed URL is a well-formed http(s) URL with a host.

        Args:
            url: URL string to validate

        Returns:
            True if the URL can be requested, False otherwise
        """
        try:
            parsed = urlparse(url)
        except ValueError as e:
            logger.debug("URL validation error for %s: %s", url, e)
            return False

        if parsed.scheme not in ("http", "https"):
            logger.debug("Rejected non-HTTP(S) feed URL: %s", url)
            return False

        if not parsed.hostname:
            logger.debug("Rejected feed URL with missing hostname: %s", url)
            return False

        return True

    async def fetch_feed(self, source: FeedSource) -> FetchOutcome:
        """Fetch one feed and return its document or a failure value.

        Args:
            source: Feed to fetch

        Returns:
            ``(feed_id, RawFeedDocument)`` on success, ``(feed_id, FetchFailure)``
            for an invalid URL, network error, timeout, non-2xx status or a body
            that is not a calendar document.
        """
        try:
            document = await self._fetch_document(source)
        except FeedFetchError as e:
            failure = FetchFailure(
                feed_id=source.feed_id,
                url=source.url,
                reason=_failure_reason(e),
                message=str(e),
                status_code=getattr(e, "status_code", None),
            )
            logger.warning(
                "Feed %s failed (%s): %s", source.feed_id, failure.reason, failure.message
            )
            return (source.feed_id, failure)

        logger.debug(
            "Fetched feed %s from %s - %d chars", source.feed_id, source.url, len(document.content)
        )
        return (source.feed_id, document)

    async def _fetch_document(self, source: FeedSource) -> RawFeedDocument:
        if not self._validate_feed_url(source.url):
            raise FeedURLError(f"Invalid feed URL: {source.url!r}")

        client = await self._ensure_client()
        timeout = source.timeout

        try:
            response = await asyncio.wait_for(
                client.get(source.url, timeout=timeout),
                timeout=timeout + TIMEOUT_GRACE_SECONDS,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise FeedTimeoutError(f"Request timeout after {timeout}s") from e
        except httpx.InvalidURL as e:
            raise FeedURLError(f"Invalid feed URL: {e}") from e
        except httpx.HTTPError as e:
            raise FeedNetworkError(f"Network error: {e}") from e

        if not response.is_success:
            raise FeedStatusError(
                f"HTTP {response.status_code}: {response.reason_phrase}", response.status_code
            )

        content = response.text
        if not content.strip():
            raise FeedContentError("Empty response body")
        if CALENDAR_MARKER not in content[:4096].upper():
            raise FeedContentError("Response is not an iCalendar document")

        return RawFeedDocument(feed_id=source.feed_id, url=source.url, content=content)

    async def fetch_all(self, sources: Sequence[FeedSource]) -> list[FetchOutcome]:
        """Fetch all feeds concurrently with bounded concurrency.

        Waits for every fetch to settle; results are returned in the order of
        ``sources`` regardless of completion order.
        """
        if not sources:
            logger.warning("No feeds configured, nothing to fetch")
            return []

        await self._ensure_client()
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _bounded(source: FeedSource) -> FetchOutcome:
            async with semaphore:
                return await self.fetch_feed(source)

        results = await asyncio.gather(
            *(_bounded(source) for source in sources), return_exceptions=True
        )

        outcomes: list[FetchOutcome] = []
        for source, result in zip(sources, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.error("Feed %s failed unexpectedly: %s", source.feed_id, result)
                outcomes.append(
                    (
                        source.feed_id,
                        FetchFailure(
                            feed_id=source.feed_id,
                            url=source.url,
                            reason=FetchFailureReason.NETWORK,
                            message=f"Unexpected error: {result}",
                        ),
                    )
                )
                continue
            outcomes.append(result)

        failed = sum(1 for _, outcome in outcomes if isinstance(outcome, FetchFailure))
        logger.info("Fetched %d feeds (%d failed)", len(outcomes), failed)
        return outcomes
