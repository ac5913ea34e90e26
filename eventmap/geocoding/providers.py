"""Geocoding service clients.

Each provider turns one address into Coordinates, returns None when the service
has no match, and raises a GeocodeError subclass for every other failure.
"""

import logging
from typing import Any, Optional, Protocol
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from eventmap.calendar.models import Coordinates
from eventmap.exceptions import (
    ConfigError,
    GeocodeRateLimitedError,
    GeocodeResponseError,
    GeocodeServiceError,
)

logger = logging.getLogger(__name__)

NOMINATIM_URL = "https://nominatim.openstreetmap.org"
MAPBOX_URL = "https://api.mapbox.com"


class Geocoder(Protocol):
    """Anything that can resolve an address to coordinates."""

    async def geocode(self, address: str) -> Optional[Coordinates]: ...


class _HTTPGeocoder:
    """Shared request and status handling for HTTP geocoding services."""

    name = "http"

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        user_agent: Optional[str] = None,
    ) -> None:
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent

    async def _get_json(self, url: str, params: dict[str, Any]) -> Any:
        headers = {"User-Agent": self.user_agent} if self.user_agent else None
        try:
            response = await self.client.get(url, params=params, headers=headers)
        except httpx.TimeoutException as e:
            raise GeocodeServiceError(f"{self.name} request timed out") from e
        except httpx.HTTPError as e:
            raise GeocodeServiceError(f"{self.name} request failed: {e}") from e

        if response.status_code == 429:
            raise GeocodeRateLimitedError(f"{self.name} rate limit exceeded")
        if not response.is_success:
            raise GeocodeServiceError(
                f"{self.name} returned HTTP {response.status_code}", response.status_code
            )

        try:
            return response.json()
        except ValueError as e:
            raise GeocodeResponseError(f"{self.name} returned invalid JSON") from e

    def _coordinates(self, lat: Any, lng: Any) -> Coordinates:
        try:
            return Coordinates(lat=float(lat), lng=float(lng))
        except (TypeError, ValueError, ValidationError) as e:
            raise GeocodeResponseError(
                f"{self.name} returned unusable coordinates: {lat!r}, {lng!r}"
            ) from e


class NominatimGeocoder(_HTTPGeocoder):
    """OpenStreetMap Nominatim search API."""

    name = "nominatim"

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        super().__init__(client, base_url or NOMINATIM_URL, user_agent)

    async def geocode(self, address: str) -> Optional[Coordinates]:
        payload = await self._get_json(
            f"{self.base_url}/search",
            {"q": address, "format": "jsonv2", "limit": 1},
        )
        if not isinstance(payload, list):
            raise GeocodeResponseError("nominatim response is not a list")
        if not payload:
            logger.debug("nominatim has no match for %r", address)
            return None

        first = payload[0]
        if not isinstance(first, dict):
            raise GeocodeResponseError("nominatim result is not an object")
        return self._coordinates(first.get("lat"), first.get("lon"))


class MapboxGeocoder(_HTTPGeocoder):
    """Mapbox forward geocoding (mapbox.places)."""

    name = "mapbox"

    def __init__(
        self,
        client: httpx.AsyncClient,
        access_token: str,
        base_url: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        super().__init__(client, base_url or MAPBOX_URL, user_agent)
        self.access_token = access_token

    async def geocode(self, address: str) -> Optional[Coordinates]:
        url = f"{self.base_url}/geocoding/v5/mapbox.places/{quote(address, safe='')}.json"
        payload = await self._get_json(url, {"access_token": self.access_token, "limit": 1})
        if not isinstance(payload, dict):
            raise GeocodeResponseError("mapbox response is not an object")

        features = payload.get("features")
        if not isinstance(features, list):
            raise GeocodeResponseError("mapbox response has no features list")
        if not features:
            logger.debug("mapbox has no match for %r", address)
            return None

        center = features[0].get("center") if isinstance(features[0], dict) else None
        if not isinstance(center, (list, tuple)) or len(center) != 2:
            raise GeocodeResponseError("mapbox feature has no center")
        lng, lat = center
        return self._coordinates(lat, lng)


def build_geocoder(config: Any, client: httpx.AsyncClient) -> Geocoder:
    """Create the geocoder selected by configuration.

    Raises:
        ConfigError: If mapbox is selected without an access token
    """
    provider = getattr(config, "geocoder", "nominatim")
    base_url = getattr(config, "geocoder_url", None)
    user_agent = getattr(config, "geocoder_user_agent", None)

    if provider == "mapbox":
        token = getattr(config, "geocoder_token", None)
        if not token:
            raise ConfigError("geocoder 'mapbox' requires geocoder_token")
        logger.debug("Using mapbox geocoder")
        return MapboxGeocoder(client, token, base_url=base_url, user_agent=user_agent)

    logger.debug("Using nominatim geocoder")
    return NominatimGeocoder(client, base_url=base_url, user_agent=user_agent)
