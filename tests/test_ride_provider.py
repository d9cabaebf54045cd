# tests/test_ride_provider.py
"""Tests for the ride API client (HTTP layer mocked)."""
from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from slashride.core.domain import Coordinate, Estimate, Product
from slashride.infra.ride_provider import (
    RideProviderError,
    UberRideClient,
    parse_estimate,
    parse_products,
    parse_ride_request,
)

START = Coordinate(37.7793, -122.4129)
END = Coordinate(37.7887, -122.3964)


def _make_mock_response(status: int, json_data=None):
    resp = AsyncMock()
    resp.status = status
    resp.json = AsyncMock(return_value=json_data)
    return resp


def _make_mock_session(response):
    ctx = AsyncMock()
    ctx.__aenter__ = AsyncMock(return_value=response)
    ctx.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.request = MagicMock(return_value=ctx)
    return session


def _client(session) -> UberRideClient:
    return UberRideClient("https://sandbox-api.uber.com/", "tok-123", session=session)


class TestParsers:
    def test_products_keep_provider_order(self):
        data = {"products": [
            {"product_id": "a", "display_name": "uberX", "capacity": 4},
            {"product_id": "b", "display_name": "uberXL", "capacity": 6},
        ]}
        assert [p.product_id for p in parse_products(data)] == ["a", "b"]
        assert parse_products({}) == []

    def test_estimate(self):
        data = {
            "price": {"display": "$30-38", "surge_multiplier": 2.5, "surge_confirmation_id": "s-1"},
            "trip": {"duration_estimate": 720},
        }
        assert parse_estimate(data, "a") == Estimate(
            duration_seconds=720,
            display_cost="$30-38",
            surge_multiplier=2.5,
            surge_confirmation_id="s-1",
            product_id="a",
        )

    def test_estimate_defaults_to_no_surge(self):
        est = parse_estimate({"price": {"display": "$10"}, "trip": {"duration_estimate": 60}})
        assert est.surge_multiplier == 1.0
        assert est.surge_confirmation_id is None
        assert est.requires_confirmation is False

    def test_estimate_null_surge_multiplier(self):
        est = parse_estimate({
            "price": {"display": "$10", "surge_multiplier": None},
            "trip": {"duration_estimate": 60},
        })
        assert est.surge_multiplier == 1.0
        assert est.requires_confirmation is False

    def test_ride_request(self):
        result = parse_ride_request({"request_id": "r-1", "eta": 240, "status": "processing"})
        assert (result.request_id, result.eta_seconds) == ("r-1", 240)


class TestUberRideClient:
    @pytest.mark.asyncio
    async def test_list_products(self):
        session = _make_mock_session(_make_mock_response(200, {"products": [{"product_id": "a"}]}))

        products = await _client(session).list_products(37.7793, -122.4129)

        assert products == [Product("a")]
        args, kwargs = session.request.call_args
        assert args == ("GET", "https://sandbox-api.uber.com/v1/products")
        assert kwargs["params"] == {"latitude": "37.7793", "longitude": "-122.4129"}
        assert kwargs["headers"]["Authorization"] == "Bearer tok-123"

    @pytest.mark.asyncio
    async def test_get_estimate_posts_trip(self):
        body = {"price": {"display": "$10"}, "trip": {"duration_estimate": 600}}
        session = _make_mock_session(_make_mock_response(200, body))

        estimate = await _client(session).get_estimate(START, END, "a")

        assert estimate.duration_seconds == 600
        args, kwargs = session.request.call_args
        assert args == ("POST", "https://sandbox-api.uber.com/v1/requests/estimate")
        assert kwargs["json"] == {
            "start_latitude": 37.7793,
            "start_longitude": -122.4129,
            "end_latitude": 37.7887,
            "end_longitude": -122.3964,
            "product_id": "a",
        }

    @pytest.mark.asyncio
    async def test_request_ride_without_surge_omits_token(self):
        session = _make_mock_session(_make_mock_response(202, {"request_id": "r-1", "eta": 300}))

        result = await _client(session).request_ride(START, END, "a")

        assert result.request_id == "r-1"
        _, kwargs = session.request.call_args
        assert "surge_confirmation_id" not in kwargs["json"]

    @pytest.mark.asyncio
    async def test_request_ride_with_surge_token(self):
        session = _make_mock_session(_make_mock_response(202, {"request_id": "r-2"}))

        await _client(session).request_ride(START, END, "a", "s-1")

        _, kwargs = session.request.call_args
        assert kwargs["json"]["surge_confirmation_id"] == "s-1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,retryable", [
        (401, False),
        (409, False),
        (422, False),
        (429, True),
        (500, True),
    ])
    async def test_error_classification(self, status, retryable):
        body = {"code": "surge", "message": "Surge confirmation required"}
        session = _make_mock_session(_make_mock_response(status, body))

        with pytest.raises(RideProviderError) as exc_info:
            await _client(session).request_ride(START, END, "a")

        assert exc_info.value.status == status
        assert exc_info.value.retryable is retryable
        assert exc_info.value.code == "surge"

    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        resp = _make_mock_response(502)
        resp.json = AsyncMock(side_effect=ValueError("not json"))
        session = _make_mock_session(resp)

        with pytest.raises(RideProviderError) as exc_info:
            await _client(session).list_products(0, 0)
        assert exc_info.value.status == 502

    @pytest.mark.asyncio
    async def test_timeout(self):
        ctx = AsyncMock()
        ctx.__aenter__ = AsyncMock(side_effect=asyncio.TimeoutError())
        ctx.__aexit__ = AsyncMock(return_value=False)
        session = MagicMock()
        session.request = MagicMock(return_value=ctx)

        with pytest.raises(RideProviderError) as exc_info:
            await _client(session).get_estimate(START, END, "a")
        assert exc_info.value.retryable is True
