"""Measurement readings and their wire formats.

A reading arrives either as a fixed-width ASCII numeral or as a packed
big-endian binary block. Which one is determined by the active settings,
never by the bytes themselves; likewise unit and resolution come from the
snapshot the reading is tagged with.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from benchbus_core.errors import ProtocolError
from benchbus_core.units import Resolution, Unit

logger = logging.getLogger(__name__)

TEXT_READING_LENGTH = 16

OVERFLOW_MESSAGE = "[Over/Under]Flow"


class ReadingFormat(Enum):
    """Wire format of a reading.

    Values are the instrument's output format codes.

    Attributes:
        TEXT: 16-byte ASCII numeral (CR/LF included).
        SHORT_INT: 2-byte big-endian signed integer, times the integer scale.
        LONG_INT: 4-byte big-endian signed integer, times the integer scale.
        SHORT_REAL: 4-byte big-endian IEEE-754 single-precision float.
    """

    TEXT = 1
    SHORT_INT = 2
    LONG_INT = 3
    SHORT_REAL = 4

    @property
    def length(self) -> int:
        """Number of bytes in one reading."""
        return _LENGTHS[self]

    @property
    def scaled(self) -> bool:
        """True if the raw value must be multiplied by the integer scale."""
        return self in (ReadingFormat.SHORT_INT, ReadingFormat.LONG_INT)


_LENGTHS = {
    ReadingFormat.TEXT: TEXT_READING_LENGTH,
    ReadingFormat.SHORT_INT: 2,
    ReadingFormat.LONG_INT: 4,
    ReadingFormat.SHORT_REAL: 4,
}

_STRUCT_FORMATS = {
    ReadingFormat.SHORT_INT: ">h",
    ReadingFormat.LONG_INT: ">i",
    ReadingFormat.SHORT_REAL: ">f",
}


@dataclass(frozen=True)
class Reading:
    """One decoded measurement.

    Attributes:
        value: Numeric value in ``unit``.
        unit: Physical unit, taken from the tagged settings.
        resolution: Display resolution, taken from the tagged settings.
        quantity: What was measured (e.g. ``"DC_VOLTAGE"``, ``"level"``).
        settings: The settings snapshot active when the reading was taken.
        overflow: True if the instrument flagged an over/under-range.
        error: True if the reading is not a valid measurement.
        message: Optional annotation explaining ``overflow``/``error``.
    """

    value: float
    unit: Unit
    resolution: Resolution
    quantity: str
    settings: Any
    overflow: bool = False
    error: bool = False
    message: str | None = None


class ReadingContext(Protocol):
    """Settings snapshot attributes needed to annotate a reading."""

    @property
    def reading_unit(self) -> Unit:
        """Unit of readings in the active measurement mode."""
        ...

    @property
    def reading_resolution(self) -> Resolution:
        """Resolution of readings in the active configuration."""
        ...

    @property
    def reading_quantity(self) -> str:
        """Name of the quantity being measured."""
        ...


# ---------------------------------------------------------------------------
# Value codec
# ---------------------------------------------------------------------------


def decode_value(raw: bytes, fmt: ReadingFormat, scale: float = 1.0) -> float:
    """Decode the numeric value of one reading.

    Args:
        raw: The raw reading block.
        fmt: The active output format.
        scale: Integer scale factor; used by the integer formats only.

    Returns:
        The physical value.

    Raises:
        ProtocolError: If the block has the wrong length or does not parse.
    """
    if len(raw) != fmt.length:
        raise ProtocolError(
            f"{fmt.name} reading must be {fmt.length} bytes, got {len(raw)}: {raw.hex()}"
        )
    if fmt is ReadingFormat.TEXT:
        text = raw.decode("ascii", errors="replace").strip()
        try:
            return float(text)
        except ValueError:
            raise ProtocolError(f"Unparseable TEXT reading: {text!r}") from None
    (number,) = struct.unpack(_STRUCT_FORMATS[fmt], raw)
    if fmt.scaled:
        return float(number) * scale
    return float(number)


def encode_value(value: float, fmt: ReadingFormat, scale: float = 1.0) -> bytes:
    """Encode a physical value the way the instrument would send it.

    This is the inverse of :func:`decode_value` and is used by emulators.

    Raises:
        ValueError: If the scaled value does not fit the integer format.
    """
    if fmt is ReadingFormat.TEXT:
        return f"{value:+.7E}\r\n".encode("ascii")
    if fmt.scaled:
        number = int(round(value / scale))
        try:
            return struct.pack(_STRUCT_FORMATS[fmt], number)
        except struct.error as exc:
            raise ValueError(f"{value} / {scale} does not fit {fmt.name}") from exc
    return struct.pack(_STRUCT_FORMATS[fmt], value)


# ---------------------------------------------------------------------------
# Reading decoder
# ---------------------------------------------------------------------------


def decode_reading(
    raw: bytes,
    fmt: ReadingFormat,
    settings: ReadingContext,
    overflow: bool,
    *,
    scale: float = 1.0,
) -> Reading | None:
    """Decode a raw block into a :class:`Reading`.

    A block that fails to decode is logged and dropped; it never aborts the
    surrounding harvest.

    Args:
        raw: The raw reading block.
        fmt: The output format active when the reading was taken.
        settings: The settings snapshot to tag the reading with.
        overflow: The tier-0 high/low flag at acquisition time.
        scale: Integer scale factor for the integer formats.

    Returns:
        The reading, or None if the block could not be decoded.
    """
    try:
        value = decode_value(raw, fmt, scale)
    except ProtocolError as exc:
        logger.warning("Dropping reading: %s", exc)
        return None
    return Reading(
        value=value,
        unit=settings.reading_unit,
        resolution=settings.reading_resolution,
        quantity=settings.reading_quantity,
        settings=settings,
        overflow=overflow,
        error=overflow,
        message=OVERFLOW_MESSAGE if overflow else None,
    )
