"""
Core workflow -- provider-agnostic command interpretation.

This package contains the domain values, the error taxonomy, the ports the
workflow talks to, and the CommandInterpreter that ties them together.

Canonical imports:
    from slashride.core import CommandInterpreter
    from slashride.core.domain import Ride, Coordinate
    from slashride.core.ports import RideRepository
"""
from slashride.core.domain import (  # noqa: F401
    Command,
    ParsedCommand,
    AddressPair,
    Coordinate,
    Product,
    Estimate,
    RideRequestResult,
    RideStatus,
    Ride,
)
from slashride.core.errors import (  # noqa: F401
    RideFormatError,
    LocationNotFound,
    MissingRideError,
    TransportError,
)
from slashride.core.interpreter import CommandInterpreter  # noqa: F401
