"""Tests for SCPI number parsing and formatting."""

from __future__ import annotations

import math

import pytest

from benchlink_scpi.number import (
    format_bool,
    format_number,
    is_overflow,
    parse_bool,
    parse_int,
    parse_number,
    parse_numbers,
    parse_quoted,
)


class TestParseNumber:
    """Tests for parse_number."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [("42", 42.0), ("+1.23", 1.23), ("-1.5E-3", -0.0015), (" +9.99000000E+02\n", 999.0)],
    )
    def test_numeric_forms(self, text: str, expected: float) -> None:
        assert parse_number(text) == pytest.approx(expected)

    def test_special_tokens(self) -> None:
        assert math.isnan(parse_number("NAN"))
        assert parse_number("inf") == float("inf")
        assert parse_number("NINF") == float("-inf")

    def test_invalid(self) -> None:
        with pytest.raises(ValueError, match="Invalid SCPI number"):
            parse_number("VOLT")

    def test_list(self) -> None:
        assert parse_numbers("1.0,2.5,-3") == (1.0, 2.5, -3.0)


class TestParseInt:
    """Tests for parse_int."""

    def test_plain(self) -> None:
        assert parse_int("+7") == 7

    def test_integral_nr3(self) -> None:
        assert parse_int("+1.00000000E+01") == 10

    def test_fractional_rejected(self) -> None:
        with pytest.raises(ValueError):
            parse_int("1.5")


class TestParseBool:
    """Tests for parse_bool."""

    @pytest.mark.parametrize("text", ["1", "ON", "on", "+1"])
    def test_true(self, text: str) -> None:
        assert parse_bool(text) is True

    @pytest.mark.parametrize("text", ["0", "OFF", "+0"])
    def test_false(self, text: str) -> None:
        assert parse_bool(text) is False

    def test_invalid(self) -> None:
        with pytest.raises(ValueError):
            parse_bool("MAYBE")


class TestMisc:
    """Tests for quoting, overflow and formatting helpers."""

    def test_parse_quoted(self) -> None:
        assert parse_quoted('"VOLT:AC"') == "VOLT:AC"
        assert parse_quoted("FRON") == "FRON"

    def test_overflow(self) -> None:
        assert is_overflow(9.9e37)
        assert is_overflow(float("nan"))
        assert not is_overflow(1.0)

    def test_format_number(self) -> None:
        assert format_number(5.0) == "5"
        assert format_number(0.25) == "0.25"
        assert format_number(float("-inf")) == "NINF"

    def test_format_bool(self) -> None:
        assert format_bool(True) == "1"
        assert format_bool(False) == "0"
