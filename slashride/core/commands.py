# slashride/core/commands.py
from __future__ import annotations

from slashride.core.domain import AddressPair, Command, ParsedCommand
from slashride.core.errors import RideFormatError

ADDRESS_SEPARATOR = " to "
ORIGIN_PREFIX = "from "


def parse_command(raw_input: str | None) -> ParsedCommand:
    """
    Split chat input on the first whitespace run.

    The first token picks the command (case-insensitive); the rest is the
    lower-cased argument, or ``None`` when nothing follows the command word.
    """
    parts = (raw_input or "").split(None, 1)
    if not parts:
        return ParsedCommand(Command.UNKNOWN)

    name = parts[0].lower()
    argument = parts[1].lower() if len(parts) > 1 else None
    return ParsedCommand(Command.from_name(name), argument, name)


def parse_addresses(argument: str | None) -> AddressPair:
    """
    Split ``"[from ]<origin> to <destination>"`` into an AddressPair.

    Only the first separator counts. Raises RideFormatError when the separator
    is missing or either side is blank.
    """
    if not argument:
        raise RideFormatError("missing origin and destination")

    origin, separator, destination = argument.partition(ADDRESS_SEPARATOR)
    if not separator:
        raise RideFormatError(f"no {ADDRESS_SEPARATOR.strip()!r} separator in {argument!r}")

    origin = origin.strip()
    if origin.startswith(ORIGIN_PREFIX):
        origin = origin[len(ORIGIN_PREFIX):].strip()
    destination = destination.strip()

    if not origin or not destination:
        raise RideFormatError(f"empty origin or destination in {argument!r}")

    return AddressPair(origin=origin, destination=destination)
