"""Shared HTTP client manager for feed fetching and geocoding.

Keeps one pooled ``httpx.AsyncClient`` per client id so every ingestion cycle
reuses connections instead of creating a client per request. Feeds and the
geocoder use separate client ids so their pools and headers stay independent.
"""

import asyncio
import logging
from typing import Optional

import httpx

from eventmap import __version__

logger = logging.getLogger(__name__)

_shared_clients: dict[str, httpx.AsyncClient] = {}
_client_lock = asyncio.Lock()

DEFAULT_LIMITS = httpx.Limits(
    max_connections=10,
    max_keepalive_connections=5,
)

DEFAULT_TIMEOUT = httpx.Timeout(
    connect=10.0,
    read=30.0,
    write=10.0,
    pool=30.0,
)

DEFAULT_HEADERS: dict[str, str] = {
    "User-Agent": f"eventmap/{__version__} (+https://github.com/eventmap/eventmap)",
    "Accept": "text/calendar, text/plain, application/json, */*",
    "Accept-Language": "en-US,en;q=0.9",
}


async def get_shared_client(
    client_id: str = "default",
    limits: Optional[httpx.Limits] = None,
    timeout: Optional[httpx.Timeout] = None,
    headers: Optional[dict[str, str]] = None,
) -> httpx.AsyncClient:
    """Get or create a shared HTTP client with connection pooling.

    Args:
        client_id: Identifier for the client (one pool per id)
        limits: Custom connection limits
        timeout: Custom timeout configuration
        headers: Extra default headers merged over DEFAULT_HEADERS

    Returns:
        Shared httpx.AsyncClient

    Raises:
        RuntimeError: If client creation fails
    """
    async with _client_lock:
        client = _shared_clients.get(client_id)
        if client is None or client.is_closed:
            effective_limits = limits or DEFAULT_LIMITS
            try:
                logger.debug(
                    "Creating shared HTTP client '%s' with limits: max_connections=%d, "
                    "max_keepalive=%d",
                    client_id,
                    effective_limits.max_connections,
                    effective_limits.max_keepalive_connections,
                )
                client = httpx.AsyncClient(
                    limits=effective_limits,
                    timeout=timeout or DEFAULT_TIMEOUT,
                    follow_redirects=True,
                    headers={**DEFAULT_HEADERS, **(headers or {})},
                )
            except Exception as e:
                logger.exception("Failed to create shared HTTP client '%s'", client_id)
                raise RuntimeError(f"Failed to create shared HTTP client: {e}") from e
            _shared_clients[client_id] = client
            logger.info("Created shared HTTP client '%s'", client_id)

        return client


async def close_all_clients() -> None:
    """Close all shared HTTP clients.

    Called on shutdown (and between tests) so pooled connections are released.
    """
    async with _client_lock:
        for client_id, client in _shared_clients.items():
            if client.is_closed:
                continue
            try:
                await client.aclose()
                logger.debug("Closed shared HTTP client '%s'", client_id)
            except (httpx.HTTPError, RuntimeError) as e:
                logger.warning("Error closing shared HTTP client '%s': %s", client_id, e)

        _shared_clients.clear()
        logger.debug("All shared HTTP clients closed")
