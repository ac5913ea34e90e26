"""Exception hierarchy for eventmap.

Components raise these internally and convert them to failure values at their
boundaries (``FetchFailure``, ``coordinates=None``, skipped entries), so none of
them escapes an ingestion cycle. ``ConfigError`` is the exception that reaches
callers, at configuration load time.
"""

from typing import Optional


class EventMapError(Exception):
    """Base exception for all eventmap errors."""


class ConfigError(EventMapError):
    """Configuration file or environment could not be interpreted."""


# Feed fetching


class FeedFetchError(EventMapError):
    """Base exception for calendar feed fetch errors."""


class FeedURLError(FeedFetchError):
    """Feed URL is not a well-formed http(s) URL."""


class FeedNetworkError(FeedFetchError):
    """Transport-level failure (DNS, connection refused, TLS, reset)."""


class FeedTimeoutError(FeedFetchError):
    """Feed did not answer within its bounded timeout."""


class FeedStatusError(FeedFetchError):
    """Feed answered with a non-success HTTP status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class FeedContentError(FeedFetchError):
    """Feed answered successfully but the body is not a calendar document."""


# Parsing


class FeedParseError(EventMapError):
    """A calendar document or one of its entries could not be parsed."""


# Geocoding


class GeocodeError(EventMapError):
    """Base exception for geocoding lookup failures."""


class GeocodeRateLimitedError(GeocodeError):
    """The geocoding service rejected the request because of rate limiting."""


class GeocodeServiceError(GeocodeError):
    """The geocoding service failed (non-success status or transport error)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class GeocodeResponseError(GeocodeError):
    """The geocoding service answered with a payload that cannot be interpreted."""
