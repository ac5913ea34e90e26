"""Unit tests for eventmap.core.http_client."""

import pytest

from eventmap.core.http_client import DEFAULT_HEADERS, close_all_clients, get_shared_client

pytestmark = pytest.mark.unit


class TestSharedClients:
    async def test_get_shared_client_when_same_id_then_same_client(self):
        """One pooled client per id."""
        first = await get_shared_client("feeds")
        second = await get_shared_client("feeds")
        other = await get_shared_client("geocoder")

        assert first is second
        assert first is not other

    async def test_get_shared_client_when_headers_given_then_merged(self):
        client = await get_shared_client("custom", headers={"X-Test": "1"})

        assert client.headers["X-Test"] == "1"
        assert client.headers["User-Agent"] == DEFAULT_HEADERS["User-Agent"]

    async def test_close_all_clients_when_called_then_new_client_created_next_time(self):
        first = await get_shared_client("feeds")

        await close_all_clients()
        second = await get_shared_client("feeds")

        assert first.is_closed
        assert second is not first
