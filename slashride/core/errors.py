# slashride/core/errors.py
"""
Error taxonomy for the command workflow.

User-caused problems (``RideFormatError``, ``LocationNotFound``) are turned
into reply text by the interpreter. ``MissingRideError`` and every
``TransportError`` propagate to the caller.
"""
from __future__ import annotations

from dataclasses import dataclass


class RideFormatError(ValueError):
    """Ride/estimate argument is not of the form ``[from] X to Y``."""


@dataclass(frozen=True)
class LocationNotFound:
    """Returned (not raised) by address resolvers when nothing matches."""
    query: str


class MissingRideError(LookupError):
    """``accept`` was sent by a user who has no ride on record."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"No ride on record for user {user_id!r}")


class TransportError(Exception):
    """Outbound call to an external service failed.

    Attributes:
        service:   Which collaborator failed ("ride_api", "geocoder", ...).
        status:    HTTP status code (0 for connection-level errors).
        retryable: Whether the surrounding system may try again.
    """

    def __init__(
        self,
        service: str,
        status: int,
        message: str,
        *,
        retryable: bool = False,
    ):
        self.service = service
        self.status = status
        self.retryable = retryable
        super().__init__(f"{service} error {status}: {message}")
