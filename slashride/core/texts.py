# slashride/core/texts.py
"""
Fixed reply texts and the formatters that turn provider data into chat
sentences. ``{slash}`` is the chat command users type (e.g. ``/uber``).
"""
from __future__ import annotations

from slashride.core.domain import Estimate, RideRequestResult

DEFAULT_SLASH_COMMAND = "/uber"

RIDE_REQUEST_FORMAT_ERROR = (
    "To request a ride please use the format *{slash} ride [origin] to [destination]*.\n"
    "For best results, specify a city or zip code.\n"
    "Ex: *{slash} ride 1061 Market Street San Francisco to 405 Howard St*"
)

UNKNOWN_COMMAND_ERROR = (
    "Sorry, we didn't quite catch that command.  Try *{slash} help* for a list."
)

HELP_TEXT = (
    "Try these commands:\n"
    "- ride [origin address] to [destination address]\n"
    "- estimate [origin address] to [destination address]\n"
    "- accept\n"
    "- help"
)

LOCATION_NOT_FOUND_ERROR = (
    "Please enter a valid address. Be as specific as possible (e.g. include city)."
)

NO_PENDING_RIDE = (
    "Your last ride is already booked. Use *{slash} ride [origin] to [destination]* "
    "to request a new one."
)

NO_PRODUCTS_AVAILABLE = "No rides are available for that location."

SURGE_CONFIRMATION_PROMPT = (
    "{multiplier} surge is in effect. Reply '{slash} accept' to confirm the ride."
)

RIDE_REQUESTED = (
    "Thanks! We are looking for a driver and we expect them to arrive {eta}."
)

AUTHORIZATION_REQUIRED = (
    "Before requesting rides you need to connect your account: {url}"
)

NO_RIDE_ON_RECORD = (
    "You don't have a ride to accept. Try *{slash} ride [origin] to [destination]* first."
)

SOMETHING_WENT_WRONG = "Sorry, something went wrong. Please try again in a moment."

RATE_LIMITED = "You're sending commands too quickly. Please wait {retry_after} seconds."

AUTHORIZATION_RECEIVED = "Thanks! Your account is being connected. You can head back to chat now."


def render(template: str, slash: str = DEFAULT_SLASH_COMMAND, **values) -> str:
    return template.format(slash=slash, **values)


def format_multiplier(multiplier: float) -> str:
    """``2.5`` → ``"2.5"``, ``2.0`` → ``"2"``."""
    if float(multiplier).is_integer():
        return str(int(multiplier))
    return str(multiplier)


def format_eta(eta_seconds: int) -> str:
    """Whole minutes until pickup as a phrase: 0 → "very soon", 1 → "in 1 minute"."""
    minutes = int(eta_seconds) // 60
    if minutes <= 0:
        return "very soon"
    if minutes == 1:
        return "in 1 minute"
    return f"in {minutes} minutes"


def format_ride_requested(result: RideRequestResult) -> str:
    return RIDE_REQUESTED.format(eta=format_eta(result.eta_seconds))


def format_estimate(estimate: Estimate) -> str:
    duration_mins = int(estimate.duration_seconds) // 60
    duration_msg = "one minute" if duration_mins == 1 else f"{duration_mins} minutes"

    if estimate.surge_multiplier == 1:
        surge_msg = "No surge currently in effect."
    else:
        surge_msg = f"Includes current surge at {format_multiplier(estimate.surge_multiplier)}."

    return " ".join([
        f"Let's see... That trip would take about {duration_msg} and cost {estimate.display_cost}.",
        surge_msg,
    ])


def format_surge_prompt(multiplier: float, slash: str = DEFAULT_SLASH_COMMAND) -> str:
    return render(
        SURGE_CONFIRMATION_PROMPT,
        slash=slash,
        multiplier=format_multiplier(multiplier),
    )
