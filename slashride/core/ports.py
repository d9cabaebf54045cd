# slashride/core/ports.py
from __future__ import annotations
from typing import Protocol, Sequence

from slashride.core.domain import (
    Coordinate,
    Estimate,
    Product,
    Ride,
    RideRequestResult,
)
from slashride.core.errors import LocationNotFound


class AddressResolver(Protocol):
    async def resolve(self, text: str) -> Coordinate | LocationNotFound:
        """
        Best single match for free-text ``text``.
        Returns LocationNotFound for no/empty match; raises only on transport failure.
        """
        ...


class RideProviderClient(Protocol):
    async def list_products(self, latitude: float, longitude: float) -> Sequence[Product]: ...

    async def get_estimate(self, start: Coordinate, end: Coordinate, product_id: str) -> Estimate: ...

    async def request_ride(
        self,
        start: Coordinate,
        end: Coordinate,
        product_id: str,
        surge_confirmation_id: str | None = None,
    ) -> RideRequestResult: ...


class NotificationSink(Protocol):
    async def notify(self, destination: str, text: str) -> None:
        """Deliver ``text`` to ``destination`` (the chat response URL)."""
        ...


class RideRepository(Protocol):
    async def save(self, ride: Ride) -> Ride:
        """Insert ``ride``; returns it with id and timestamps assigned."""
        ...

    async def most_recent_for_user(self, user_id: str) -> Ride:
        """Most recently updated ride. Raises MissingRideError when there is none."""
        ...

    async def update(self, ride: Ride, **fields) -> Ride:
        """Apply ``fields`` and bump ``updated_at``."""
        ...
