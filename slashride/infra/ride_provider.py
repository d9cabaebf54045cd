# slashride/infra/ride_provider.py
"""
Ride API client (Uber v1 endpoints).

- ``GET  /v1/products``          products offered near a point
- ``POST /v1/requests/estimate`` price/time estimate for one product
- ``POST /v1/requests``          book a ride

All calls are bearer-token authorized JSON. Error classification
(RideProviderError.retryable):
- 401 / 403      → NOT retryable (token expired or scope missing)
- 409 / 422      → NOT retryable (surge confirmation required/invalid, bad input)
- 429            → retryable
- 5xx / network  → retryable
"""
from __future__ import annotations

import asyncio
from typing import Any

import aiohttp

from slashride.core.domain import Coordinate, Estimate, Product, RideRequestResult
from slashride.core.errors import TransportError
from slashride.infra.http_client import get_provider_session
from slashride.infra.logging_config import get_logger, mask_coordinates
from slashride.infra.metrics import AppMetrics

logger = get_logger(__name__)


class RideProviderError(TransportError):
    """Error returned by (or while reaching) the ride API.

    Attributes:
        code: Provider error code from the response body, when present.
    """

    def __init__(
        self,
        status: int,
        message: str,
        *,
        code: str | None = None,
        retryable: bool = False,
    ):
        self.code = code
        super().__init__("ride_api", status, message, retryable=retryable)


def _trip_body(start: Coordinate, end: Coordinate, product_id: str) -> dict[str, Any]:
    return {
        "start_latitude": start.latitude,
        "start_longitude": start.longitude,
        "end_latitude": end.latitude,
        "end_longitude": end.longitude,
        "product_id": product_id,
    }


def parse_products(data: dict) -> list[Product]:
    """Products in provider order."""
    return [
        Product(
            product_id=item["product_id"],
            display_name=item.get("display_name", ""),
            description=item.get("description", ""),
            capacity=int(item.get("capacity") or 0),
        )
        for item in data.get("products") or []
    ]


def parse_estimate(data: dict, product_id: str | None = None) -> Estimate:
    trip = data.get("trip") or {}
    price = data.get("price") or {}
    return Estimate(
        duration_seconds=int(trip.get("duration_estimate") or 0),
        display_cost=str(price.get("display", "")),
        surge_multiplier=float(price.get("surge_multiplier") or 1.0),
        surge_confirmation_id=price.get("surge_confirmation_id"),
        product_id=product_id,
    )


def parse_ride_request(data: dict) -> RideRequestResult:
    return RideRequestResult(
        request_id=str(data["request_id"]),
        eta_seconds=int(data.get("eta") or 0),
    )


class UberRideClient:
    """Ride API client bound to one user's bearer token."""

    def __init__(
        self,
        base_url: str,
        bearer_token: str,
        *,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._bearer_token = bearer_token
        self._session = session

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._bearer_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def list_products(self, latitude: float, longitude: float) -> list[Product]:
        data = await self._call(
            "GET",
            "/v1/products",
            params={"latitude": str(latitude), "longitude": str(longitude)},
        )
        products = parse_products(data)
        logger.debug(
            "Products near (%s): %d", mask_coordinates(latitude, longitude), len(products),
        )
        return products

    async def get_estimate(self, start: Coordinate, end: Coordinate, product_id: str) -> Estimate:
        data = await self._call(
            "POST",
            "/v1/requests/estimate",
            json=_trip_body(start, end, product_id),
        )
        return parse_estimate(data, product_id)

    async def request_ride(
        self,
        start: Coordinate,
        end: Coordinate,
        product_id: str,
        surge_confirmation_id: str | None = None,
    ) -> RideRequestResult:
        body = _trip_body(start, end, product_id)
        if surge_confirmation_id:
            body["surge_confirmation_id"] = surge_confirmation_id

        data = await self._call("POST", "/v1/requests", json=body)
        result = parse_ride_request(data)
        logger.info("Ride request accepted by provider: request_id=%s", result.request_id)
        return result

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _call(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self._base_url}{path}"
        session = self._session or get_provider_session()
        try:
            async with session.request(method, url, headers=self._headers, **kwargs) as resp:
                body = await _safe_response_json(resp)

                if 200 <= resp.status < 300 and body is not None:
                    return body

                raise _classify_error(resp.status, body, path)

        except RideProviderError:
            AppMetrics.transport_error("ride_api")
            raise
        except asyncio.TimeoutError as exc:
            logger.error("Ride API timeout: %s %s", method, path)
            AppMetrics.transport_error("ride_api")
            raise RideProviderError(0, "timeout", retryable=True) from exc
        except aiohttp.ClientError as exc:
            logger.error("Ride API connection error: %s %s: %s", method, path, exc)
            AppMetrics.transport_error("ride_api")
            raise RideProviderError(0, str(exc), retryable=True) from exc


def _classify_error(status: int, body: dict | None, path: str) -> RideProviderError:
    body = body or {}
    code = body.get("code")
    message = body.get("message") or body.get("title") or "Unknown error"

    if status in (401, 403):
        logger.error("Ride API auth error on %s: %s", path, message)
        return RideProviderError(status, message, code=code, retryable=False)

    if status in (400, 404, 409, 422):
        logger.warning("Ride API rejected %s: status=%d code=%s msg=%s", path, status, code, message)
        return RideProviderError(status, message, code=code, retryable=False)

    if status == 429:
        logger.warning("Ride API rate limit on %s", path)
        return RideProviderError(status, message, code=code, retryable=True)

    logger.error("Ride API error on %s: status=%d code=%s msg=%s", path, status, code, message)
    return RideProviderError(status, message, code=code, retryable=True)


async def _safe_response_json(resp: aiohttp.ClientResponse) -> dict | None:
    """Parse JSON from response, returning None if body is not valid JSON."""
    try:
        data = await resp.json(content_type=None)
    except (aiohttp.ContentTypeError, ValueError):
        logger.warning("Ride API returned non-JSON body: status=%s", resp.status)
        return None
    return data if isinstance(data, dict) else None
