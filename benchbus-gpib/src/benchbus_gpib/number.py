"""Numeric reply parsing and argument formatting.

Instrument replies are ASCII numerals (``"+1.000000E+00"``, ``"44491"``,
``"1,0"``) terminated by CR/LF. A reply that does not parse is a protocol
violation and raises :class:`~benchbus_core.ProtocolError`.
"""

from __future__ import annotations

import math

from benchbus_core.errors import ProtocolError


def parse_number(text: str) -> float:
    """Parse a numeric reply into a float.

    Args:
        text: The raw reply (leading/trailing whitespace is stripped).

    Returns:
        The parsed float value.

    Raises:
        ProtocolError: If *text* is not a number.
    """
    token = text.strip()
    try:
        return float(token)
    except ValueError:
        raise ProtocolError(f"Invalid numeric reply: {text!r}") from None


def parse_numbers(text: str) -> tuple[float, ...]:
    """Parse a comma-separated list of numbers.

    Raises:
        ProtocolError: If any element cannot be parsed.
    """
    return tuple(parse_number(part) for part in text.split(","))


def parse_int(text: str) -> int:
    """Parse a numeric reply and round it to an integer.

    Integral quantities are sometimes reported in floating-point notation
    (``"+1.20000000E+02"``), so the value is parsed as a float first.

    Raises:
        ProtocolError: If *text* is not a finite number.
    """
    value = parse_number(text)
    if not math.isfinite(value):
        raise ProtocolError(f"Invalid integer reply: {text!r}")
    return int(round(value))


def parse_bool(text: str) -> bool:
    """Parse a ``0``/``1`` reply.

    Raises:
        ProtocolError: If the reply is neither 0 nor 1.
    """
    value = parse_int(text)
    if value == 1:
        return True
    if value == 0:
        return False
    raise ProtocolError(f"Invalid boolean reply: {text!r}")


def format_number(value: float) -> str:
    """Format a number for use as a command argument.

    Integral values are rendered without a fractional part; other values
    use the shortest round-tripping representation with an upper-case
    exponent marker (``1E-05``).

    Args:
        value: The number to format.

    Returns:
        The formatted string.
    """
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    if math.isfinite(value) and value == int(value) and abs(value) < 1e15:
        return str(int(value))
    return repr(float(value)).upper()


def format_bool(value: bool) -> str:
    """Format a boolean as ``1``/``0``."""
    return "1" if value else "0"
