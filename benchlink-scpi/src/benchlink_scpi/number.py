"""SCPI response parsing and parameter formatting helpers.

Drivers use these to turn trimmed response strings into typed values and
typed values into command parameters. Handles NR1 (integer), NR2
(fixed-point) and NR3 (scientific) numbers, the ``NAN``/``INF``/``NINF``
tokens, the ``9.9E37`` overflow marker used by many instruments, booleans,
and quoted string responses.
"""

from __future__ import annotations

import math

# IEEE 488.2 "not a number" / overflow marker returned by many instruments.
SCPI_OVERFLOW = 9.9e37

_SPECIAL_FLOAT_MAP: dict[str, float] = {
    "NAN": float("nan"),
    "INF": float("inf"),
    "+INF": float("inf"),
    "NINF": float("-inf"),
    "-INF": float("-inf"),
}


def parse_number(text: str) -> float:
    """Parse a SCPI numeric response into a float.

    Accepts NR1 (``"42"``), NR2 (``"1.23"``), NR3 (``"+1.23E+04"``) and the
    special tokens ``NAN``, ``INF``, ``NINF`` and ``-INF``.

    Args:
        text: The raw response string (surrounding whitespace is ignored).

    Returns:
        The parsed float value.

    Raises:
        ValueError: If *text* cannot be parsed as a SCPI number.
    """
    token = text.strip().upper()
    special = _SPECIAL_FLOAT_MAP.get(token)
    if special is not None:
        return special
    try:
        return float(token)
    except ValueError:
        raise ValueError(f"Invalid SCPI number: {text!r}") from None


def parse_numbers(text: str) -> tuple[float, ...]:
    """Parse a comma-separated list of SCPI numbers.

    Raises:
        ValueError: If any element cannot be parsed.
    """
    return tuple(parse_number(part) for part in text.split(","))


def parse_int(text: str) -> int:
    """Parse a SCPI integer response.

    NR2/NR3 forms holding a whole value (``"+1.00000E+00"``) are accepted
    since several instruments report counts that way.

    Raises:
        ValueError: If *text* is not an integral number.
    """
    token = text.strip()
    try:
        return int(token)
    except ValueError:
        pass
    value = parse_number(token)
    if not math.isfinite(value) or not value.is_integer():
        raise ValueError(f"Invalid SCPI integer: {text!r}")
    return int(value)


def parse_bool(text: str) -> bool:
    """Parse a SCPI boolean response.

    Accepts ``"1"`` / ``"0"`` and ``"ON"`` / ``"OFF"`` (case-insensitive).

    Raises:
        ValueError: If *text* is not a recognized boolean token.
    """
    token = text.strip().upper()
    if token in ("1", "ON", "+1"):
        return True
    if token in ("0", "OFF", "+0"):
        return False
    raise ValueError(f"Invalid SCPI boolean: {text!r}")


def parse_quoted(text: str) -> str:
    """Strip one pair of surrounding double or single quotes.

    ``'"VOLT:AC"'`` becomes ``"VOLT:AC"``; unquoted text is returned trimmed.
    """
    token = text.strip()
    if len(token) >= 2 and token[0] == token[-1] and token[0] in "\"'":
        return token[1:-1]
    return token


def is_overflow(value: float) -> bool:
    """Return True for the ``9.9E37`` overflow marker or a non-finite value."""
    return not math.isfinite(value) or abs(value) >= SCPI_OVERFLOW


def format_number(value: float) -> str:
    """Format a number for use in a SCPI command.

    ``nan``, ``inf`` and ``-inf`` become ``NAN``, ``INF`` and ``NINF``.
    Integral floats are written without a fractional part
    (``5.0`` -> ``"5"``), other values use ``repr`` precision.
    """
    if math.isnan(value):
        return "NAN"
    if math.isinf(value):
        return "NINF" if value < 0 else "INF"
    if float(value).is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(float(value))


def format_bool(value: bool) -> str:
    """Format a boolean as ``"1"`` or ``"0"``."""
    return "1" if value else "0"
