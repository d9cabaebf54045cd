# tests/conftest.py
"""Pytest configuration and fixtures"""
from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from slashride.core.domain import Coordinate, Estimate, Product, RideRequestResult  # noqa: E402
from slashride.core.errors import LocationNotFound  # noqa: E402
from slashride.infra.memory_store import InMemoryRideRepository  # noqa: E402


class FakeClock:
    """Mutable UTC clock shared by the interpreter and the ride repository."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class FakeResolver:
    """AddressResolver backed by a dict; unknown addresses are not found."""

    def __init__(self, places: dict[str, Coordinate]):
        self.places = places
        self.calls: list[str] = []

    async def resolve(self, text: str):
        self.calls.append(text)
        if text in self.places:
            return self.places[text]
        return LocationNotFound(text)


class FakeProvider:
    """RideProviderClient that records calls and returns canned values."""

    def __init__(
        self,
        estimate: Estimate,
        products: list[Product] | None = None,
        result: RideRequestResult | None = None,
    ):
        self.estimate = estimate
        self.products = products if products is not None else [Product("p-1", "uberX")]
        self.result = result or RideRequestResult(request_id="req-1", eta_seconds=300)
        self.request_errors: list[Exception] = []
        self.calls: list[tuple] = []

    async def list_products(self, latitude, longitude):
        self.calls.append(("list_products", latitude, longitude))
        return self.products

    async def get_estimate(self, start, end, product_id):
        self.calls.append(("get_estimate", start, end, product_id))
        return self.estimate

    async def request_ride(self, start, end, product_id, surge_confirmation_id=None):
        self.calls.append(("request_ride", start, end, product_id, surge_confirmation_id))
        if self.request_errors:
            raise self.request_errors.pop(0)
        return self.result

    def names(self) -> list[str]:
        return [call[0] for call in self.calls]


class FakeNotifier:
    def __init__(self):
        self.sent: list[tuple[str, str]] = []

    async def notify(self, destination, text):
        self.sent.append((destination, text))


@pytest.fixture
def user_id():
    """Default chat user ID for tests"""
    return "U012ABCDEF"


@pytest.fixture
def response_url():
    return "https://hooks.slack.com/commands/T000/111/secret"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def places():
    return {
        "1061 market street san francisco": Coordinate(37.7793, -122.4129),
        "405 howard st": Coordinate(37.7887, -122.3964),
        "37.7793, -122.4129": Coordinate(37.7793, -122.4129),
        "37.7887, -122.3964": Coordinate(37.7887, -122.3964),
    }


@pytest.fixture
def resolver(places):
    return FakeResolver(places)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def rides(clock):
    return InMemoryRideRepository(now=clock)


@pytest.fixture
def slack_form(user_id, response_url):
    """Sample slash command form data"""
    return {
        "token": "legacy-verification-token",
        "team_id": "T000",
        "user_id": user_id,
        "command": "/uber",
        "text": "help",
        "response_url": response_url,
    }
