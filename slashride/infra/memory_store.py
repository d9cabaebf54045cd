# slashride/infra/memory_store.py
"""
In-process ride and authorization stores for local development
(``RIDE_STORE=memory``).
Data lives as long as the process.
"""
from __future__ import annotations

import asyncio
import itertools
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable

from slashride.core.domain import Ride
from slashride.core.errors import MissingRideError
from slashride.infra.oauth import TokenGrant


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryRideRepository:
    def __init__(self, now: Callable[[], datetime] = _utcnow) -> None:
        self._rides: dict[int, Ride] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()
        self._now = now

    async def save(self, ride: Ride) -> Ride:
        async with self._lock:
            stamp = self._now()
            stored = replace(ride, id=next(self._ids), created_at=stamp, updated_at=stamp)
            self._rides[stored.id] = stored
            return replace(stored)

    async def most_recent_for_user(self, user_id: str) -> Ride:
        async with self._lock:
            candidates = [r for r in self._rides.values() if r.user_id == user_id]
            if not candidates:
                raise MissingRideError(user_id)
            latest = max(candidates, key=lambda r: (r.updated_at, r.id))
            return replace(latest)

    async def update(self, ride: Ride, **fields) -> Ride:
        async with self._lock:
            current = self._rides.get(ride.id)
            if current is None:
                raise MissingRideError(ride.user_id)
            stored = replace(current, **fields, updated_at=self._now())
            self._rides[stored.id] = stored
            return replace(stored)


class InMemoryAuthorizationStore:
    """Tokens kept in process memory; no encryption since nothing is persisted."""

    def __init__(self) -> None:
        self._grants: dict[str, TokenGrant] = {}

    async def get(self, user_id: str) -> TokenGrant | None:
        return self._grants.get(user_id)

    async def upsert(self, user_id: str, grant: TokenGrant) -> None:
        self._grants[user_id] = grant
