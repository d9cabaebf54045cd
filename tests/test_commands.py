# tests/test_commands.py
"""Tests for chat input parsing."""
from __future__ import annotations

import pytest

from slashride.core.commands import parse_addresses, parse_command
from slashride.core.domain import AddressPair, Command
from slashride.core.errors import RideFormatError


class TestParseCommand:
    def test_ride_with_argument(self):
        parsed = parse_command("ride 1061 Market Street to 405 Howard St")
        assert parsed.command == Command.RIDE
        assert parsed.argument == "1061 market street to 405 howard st"

    def test_command_word_is_case_insensitive(self):
        assert parse_command("HeLp").command == Command.HELP
        assert parse_command("ACCEPT").command == Command.ACCEPT

    def test_no_argument_is_none(self):
        parsed = parse_command("accept")
        assert parsed.command == Command.ACCEPT
        assert parsed.argument is None

    def test_splits_on_first_whitespace_run(self):
        parsed = parse_command("estimate \t  a to b")
        assert parsed.command == Command.ESTIMATE
        assert parsed.argument == "a to b"

    @pytest.mark.parametrize("raw", ["", None, "   "])
    def test_empty_input_is_unknown(self, raw):
        assert parse_command(raw).command == Command.UNKNOWN

    def test_unrecognized_word_is_unknown(self):
        parsed = parse_command("products near me")
        assert parsed.command == Command.UNKNOWN
        assert parsed.name == "products"


class TestParseAddresses:
    def test_basic_pair(self):
        assert parse_addresses("a st to b st") == AddressPair("a st", "b st")

    def test_strips_from_prefix(self):
        assert parse_addresses("from a st to b st") == AddressPair("a st", "b st")

    def test_first_separator_wins(self):
        pair = parse_addresses("a to b to c")
        assert pair.origin == "a"
        assert pair.destination == "b to c"

    def test_destination_keeps_later_separators(self):
        pair = parse_addresses("1 Main St to Road to Nowhere 5")
        assert pair == AddressPair("1 Main St", "Road to Nowhere 5")

    def test_trims_whitespace(self):
        assert parse_addresses("  a st   to   b st ") == AddressPair("a st", "b st")

    def test_coordinates_round_trip_through_text(self):
        pair = parse_addresses("37.7793, -122.4129 to 37.7887, -122.3964")
        assert pair.origin == "37.7793, -122.4129"
        assert pair.destination == "37.7887, -122.3964"

    @pytest.mark.parametrize("argument", [
        None,
        "",
        "a st b st",
        "to b st",
        "a st to",
        "toronto",
    ])
    def test_malformed(self, argument):
        with pytest.raises(RideFormatError):
            parse_addresses(argument)
