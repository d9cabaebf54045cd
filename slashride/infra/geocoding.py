# slashride/infra/geocoding.py
"""
Forward geocoding via the Google Geocoding API.

``GoogleAddressResolver.resolve(text)`` returns the first match's
``geometry.location`` as a Coordinate, or ``LocationNotFound`` when Google
has nothing for the query. Network failures and unexpected API statuses
raise ``GeocodingError`` so the caller sees a transport problem instead of a
misleading "not found".
"""
from __future__ import annotations

import asyncio

import aiohttp

from slashride.core.domain import Coordinate
from slashride.core.errors import LocationNotFound, TransportError
from slashride.infra.http_client import get_geocoder_session
from slashride.infra.logging_config import get_logger, mask_coordinates
from slashride.infra.metrics import AppMetrics

logger = get_logger(__name__)

GOOGLE_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

# Google statuses that mean "no usable match" rather than a failure
_NOT_FOUND_STATUSES = {"ZERO_RESULTS", "INVALID_REQUEST"}


class GeocodingError(TransportError):
    def __init__(self, status: int, message: str, *, retryable: bool = False):
        super().__init__("geocoder", status, message, retryable=retryable)


def _extract_location(data: dict) -> tuple[float, float] | None:
    """Pull ``(lat, lng)`` out of the first result, or None when absent."""
    results = data.get("results") or []
    if not results:
        return None
    location = (results[0].get("geometry") or {}).get("location") or {}
    lat, lng = location.get("lat"), location.get("lng")
    if lat is None or lng is None:
        return None
    return float(lat), float(lng)


class GoogleAddressResolver:
    """Resolve free-text addresses to coordinates."""

    def __init__(
        self,
        api_key: str | None,
        *,
        url: str = GOOGLE_GEOCODE_URL,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._api_key = api_key
        self._url = url
        self._session = session

    async def resolve(self, text: str) -> Coordinate | LocationNotFound:
        query = (text or "").strip()
        if not query:
            return LocationNotFound(query)

        params = {"address": query}
        if self._api_key:
            params["key"] = self._api_key

        session = self._session or get_geocoder_session()
        try:
            async with session.get(self._url, params=params) as resp:
                if resp.status != 200:
                    logger.warning("Geocoder returned status %d", resp.status)
                    AppMetrics.transport_error("geocoder")
                    raise GeocodingError(
                        resp.status,
                        "unexpected HTTP status",
                        retryable=resp.status == 429 or resp.status >= 500,
                    )
                data = await resp.json(content_type=None)

        except GeocodingError:
            raise
        except asyncio.TimeoutError as exc:
            logger.warning("Geocoder timeout")
            AppMetrics.transport_error("geocoder")
            raise GeocodingError(0, "timeout", retryable=True) from exc
        except aiohttp.ClientError as exc:
            logger.warning("Geocoder network error: %s", exc)
            AppMetrics.transport_error("geocoder")
            raise GeocodingError(0, str(exc), retryable=True) from exc

        api_status = data.get("status", "OK")
        if api_status in _NOT_FOUND_STATUSES:
            logger.info("Geocoder found no match (status=%s)", api_status)
            return LocationNotFound(query)
        if api_status != "OK":
            logger.error("Geocoder API error: status=%s, msg=%s", api_status, data.get("error_message"))
            AppMetrics.transport_error("geocoder")
            raise GeocodingError(200, f"API status {api_status}", retryable=api_status == "OVER_QUERY_LIMIT")

        location = _extract_location(data)
        if location is None:
            logger.info("Geocoder returned no location")
            return LocationNotFound(query)

        lat, lng = location
        logger.info("Geocoded address → (%s)", mask_coordinates(lat, lng))
        return Coordinate(latitude=lat, longitude=lng)
