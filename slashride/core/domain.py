# slashride/core/domain.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


# ============================================================================
# COMMANDS
# ============================================================================

class Command(str, Enum):
    """
    Closed set of chat commands. ``UNKNOWN`` stands for anything else the
    user typed and is a normal parse result, not an error.
    """
    RIDE = "ride"
    ESTIMATE = "estimate"
    HELP = "help"
    ACCEPT = "accept"
    UNKNOWN = "unknown"

    @classmethod
    def from_name(cls, name: str | None) -> "Command":
        if not name:
            return cls.UNKNOWN
        try:
            command = cls(name.lower())
        except ValueError:
            return cls.UNKNOWN
        return command


@dataclass(frozen=True)
class ParsedCommand:
    """Command word plus its lower-cased argument (``None`` when absent)."""
    command: Command
    argument: Optional[str] = None
    name: Optional[str] = None  # command word as typed, for logging


@dataclass(frozen=True)
class AddressPair:
    origin: str
    destination: str


# ============================================================================
# GEOGRAPHY / PROVIDER VALUES
# ============================================================================

@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    def as_text(self) -> str:
        """Render as ``"lat, lng"`` so it can be fed back through the resolver."""
        return f"{self.latitude}, {self.longitude}"


@dataclass(frozen=True)
class Product:
    """A ride tier offered at a location."""
    product_id: str
    display_name: str = ""
    description: str = ""
    capacity: int = 0


@dataclass(frozen=True)
class Estimate:
    """
    Price/time estimate for one product between two points.

    ``surge_confirmation_id`` is only present when ``surge_multiplier > 1``.
    """
    duration_seconds: int
    display_cost: str
    surge_multiplier: float = 1.0
    surge_confirmation_id: Optional[str] = None
    product_id: Optional[str] = None

    @property
    def requires_confirmation(self) -> bool:
        return self.surge_multiplier > 1


@dataclass(frozen=True)
class RideRequestResult:
    request_id: str
    eta_seconds: int = 0


# ============================================================================
# PERSISTED RIDE
# ============================================================================

class RideStatus(str, Enum):
    PENDING = "pending"  # waiting for the user to accept a surge price
    BOOKED = "booked"    # booking call issued


@dataclass
class Ride:
    """
    Ride record for one chat user. ``id``, ``created_at`` and ``updated_at``
    are assigned by the repository on save.
    """
    user_id: str
    product_id: str
    start: Coordinate
    end: Coordinate
    status: RideStatus = RideStatus.PENDING
    surge_confirmation_id: Optional[str] = None
    request_id: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = field(default=None, repr=False)
    updated_at: Optional[datetime] = field(default=None, repr=False)

    @property
    def is_booked(self) -> bool:
        return self.status == RideStatus.BOOKED and self.request_id is not None
