# slashride/core/interpreter.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Awaitable, Callable

from slashride.core.commands import parse_addresses, parse_command
from slashride.core.domain import (
    Command,
    Coordinate,
    Estimate,
    Ride,
    RideStatus,
)
from slashride.core.errors import LocationNotFound, RideFormatError
from slashride.core.ports import (
    AddressResolver,
    NotificationSink,
    RideProviderClient,
    RideRepository,
)
from slashride.core.texts import (
    DEFAULT_SLASH_COMMAND,
    HELP_TEXT,
    LOCATION_NOT_FOUND_ERROR,
    NO_PENDING_RIDE,
    NO_PRODUCTS_AVAILABLE,
    RIDE_REQUEST_FORMAT_ERROR,
    UNKNOWN_COMMAND_ERROR,
    format_estimate,
    format_ride_requested,
    format_surge_prompt,
    render,
)
from slashride.infra.logging_config import LogContext, get_logger, mask_coordinates
from slashride.infra.metrics import AppMetrics

logger = get_logger(__name__)

SURGE_CONFIRMATION_TTL = timedelta(minutes=5)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# PURE DECISIONS
# ============================================================================

class BookingDecision(str, Enum):
    CONFIRM_SURGE = "confirm_surge"
    BOOK_NOW = "book_now"


def decide_booking(estimate: Estimate) -> BookingDecision:
    """Any multiplier strictly above 1 needs the user's explicit accept."""
    if estimate.requires_confirmation:
        return BookingDecision.CONFIRM_SURGE
    return BookingDecision.BOOK_NOW


def is_confirmation_stale(
    updated_at: datetime | None,
    now: datetime,
    ttl: timedelta = SURGE_CONFIRMATION_TTL,
) -> bool:
    """True once more than ``ttl`` has passed since the ride was last updated."""
    if updated_at is None:
        return True
    if updated_at.tzinfo is None:
        updated_at = updated_at.replace(tzinfo=timezone.utc)
    return (now - updated_at) > ttl


@dataclass(frozen=True)
class TripQuote:
    start: Coordinate
    end: Coordinate
    product_id: str
    estimate: Estimate


# ============================================================================
# INTERPRETER
# ============================================================================

class CommandInterpreter:
    """
    Chat command workflow: parse -> resolve -> estimate -> confirm or book.

    Built per incoming request with collaborators already bound to that
    request's credentials. ``run()`` returns the synchronous reply; an empty
    string means the answer was delivered through the notification sink.

    User mistakes come back as reply text. Transport failures and
    MissingRideError propagate.
    """

    def __init__(
        self,
        *,
        resolver: AddressResolver,
        provider: RideProviderClient,
        notifier: NotificationSink,
        rides: RideRepository,
        response_url: str,
        slash_command: str = DEFAULT_SLASH_COMMAND,
        confirmation_ttl: timedelta = SURGE_CONFIRMATION_TTL,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.resolver = resolver
        self.provider = provider
        self.notifier = notifier
        self.rides = rides
        self.response_url = response_url
        self.slash_command = slash_command
        self.confirmation_ttl = confirmation_ttl
        self.now = now

        self._handlers: dict[Command, Callable[[str, str | None, LogContext], Awaitable[str]]] = {
            Command.RIDE: self._ride,
            Command.ESTIMATE: self._estimate,
            Command.HELP: self._help,
            Command.ACCEPT: self._accept,
        }

    def _text(self, template: str) -> str:
        return render(template, slash=self.slash_command)

    async def run(self, user_id: str, raw_input: str | None) -> str:
        parsed = parse_command(raw_input)
        AppMetrics.command_received(parsed.command.value)
        log_ctx = LogContext(logger, user_id=user_id, command=parsed.command.value)

        handler = self._handlers.get(parsed.command)
        if handler is None:
            log_ctx.info("Unrecognized command word: %r", parsed.name)
            return self._text(UNKNOWN_COMMAND_ERROR)

        with AppMetrics.track_processing_time(parsed.command.value):
            return await handler(user_id, parsed.argument, log_ctx)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _help(self, user_id: str, argument: str | None, log_ctx: LogContext) -> str:
        return self._text(HELP_TEXT)

    async def _estimate(self, user_id: str, argument: str | None, log_ctx: LogContext) -> str:
        quote = await self._quote_trip(argument, log_ctx)
        if isinstance(quote, str):
            return quote
        return format_estimate(quote.estimate)

    async def _ride(self, user_id: str, argument: str | None, log_ctx: LogContext) -> str:
        quote = await self._quote_trip(argument, log_ctx)
        if isinstance(quote, str):
            return quote

        estimate = quote.estimate
        decision = decide_booking(estimate)
        status = (
            RideStatus.PENDING
            if decision == BookingDecision.CONFIRM_SURGE
            else RideStatus.BOOKED
        )

        ride = await self.rides.save(
            Ride(
                user_id=user_id,
                product_id=quote.product_id,
                start=quote.start,
                end=quote.end,
                status=status,
                surge_confirmation_id=estimate.surge_confirmation_id,
            )
        )
        log_ctx = log_ctx.bind(ride_id=ride.id)

        if decision == BookingDecision.CONFIRM_SURGE:
            AppMetrics.surge_confirmation_requested()
            log_ctx.info("Surge %s in effect, awaiting accept", estimate.surge_multiplier)
            return format_surge_prompt(estimate.surge_multiplier, slash=self.slash_command)

        return await self._book(ride, None, log_ctx)

    async def _accept(self, user_id: str, argument: str | None, log_ctx: LogContext) -> str:
        ride = await self.rides.most_recent_for_user(user_id)
        log_ctx = log_ctx.bind(ride_id=ride.id)

        if ride.is_booked:
            log_ctx.info("Accept on a ride already booked as %s", ride.request_id)
            return self._text(NO_PENDING_RIDE)

        if is_confirmation_stale(ride.updated_at, self.now(), self.confirmation_ttl):
            AppMetrics.stale_confirmation()
            log_ctx.info("Surge confirmation expired, quoting the trip again")
            return await self._ride(
                user_id,
                f"{ride.start.as_text()} to {ride.end.as_text()}",
                log_ctx,
            )

        return await self._book(ride, ride.surge_confirmation_id, log_ctx)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _quote_trip(self, argument: str | None, log_ctx: LogContext) -> TripQuote | str:
        """Resolve both ends and price the first product, or return reply text."""
        try:
            addresses = parse_addresses(argument)
        except RideFormatError as exc:
            log_ctx.info("Malformed trip argument: %s", exc)
            return self._text(RIDE_REQUEST_FORMAT_ERROR)

        start = await self.resolver.resolve(addresses.origin)
        if isinstance(start, LocationNotFound):
            log_ctx.info("Origin not found")
            return self._text(LOCATION_NOT_FOUND_ERROR)

        end = await self.resolver.resolve(addresses.destination)
        if isinstance(end, LocationNotFound):
            log_ctx.info("Destination not found")
            return self._text(LOCATION_NOT_FOUND_ERROR)

        products = await self.provider.list_products(start.latitude, start.longitude)
        if not products:
            log_ctx.info("No products near %s", mask_coordinates(start.latitude, start.longitude))
            return self._text(NO_PRODUCTS_AVAILABLE)

        product_id = products[0].product_id
        estimate = await self.provider.get_estimate(start, end, product_id)
        AppMetrics.estimate_fetched()
        log_ctx.debug(
            "Estimate for product %s: duration=%ss surge=%s",
            product_id, estimate.duration_seconds, estimate.surge_multiplier,
        )
        return TripQuote(start=start, end=end, product_id=product_id, estimate=estimate)

    async def _book(
        self,
        ride: Ride,
        surge_confirmation_id: str | None,
        log_ctx: LogContext,
    ) -> str:
        result = await self.provider.request_ride(
            ride.start,
            ride.end,
            ride.product_id,
            surge_confirmation_id,
        )
        await self.rides.update(
            ride,
            request_id=result.request_id,
            status=RideStatus.BOOKED,
        )
        AppMetrics.ride_booked(confirmed_surge=surge_confirmation_id is not None)
        log_ctx.info("Ride requested: request_id=%s eta=%ss", result.request_id, result.eta_seconds)

        await self.notifier.notify(self.response_url, format_ride_requested(result))
        return ""
