"""R&S ESH-3 text readings.

Every reading names its own quantity: a reply is a two-letter type prefix,
a one-character status and the number, for example ``"VL 23.5"`` (a valid
level of 23.5 dB) or ``"FRH30.0"`` (an overflowing frequency reading).
Replies that do not follow this shape are logged and dropped.
"""

from __future__ import annotations

import logging
from enum import Enum

from benchbus_core.errors import ProtocolError
from benchbus_core.units import Resolution, Unit
from benchbus_gpib.number import parse_number
from benchbus_gpib.reading import Reading
from benchbus_esh3.settings import Esh3Settings

logger = logging.getLogger(__name__)

MIN_REPLY_LENGTH = 3


class ReadingType(Enum):
    """Reading type, keyed by its reply prefix."""

    FREQUENCY = "FR"
    LEVEL = "VL"
    POWER = "VM"
    VOLTAGE = "VN"
    CURRENT_DB = "CL"
    CURRENT = "CN"
    E_FIELD_DB = "EL"
    E_FIELD = "EN"
    H_FIELD_DB = "ML"
    H_FIELD = "MN"
    MODULATION_DEPTH = "AM"
    MODULATION_DEPTH_POSITIVE_PEAK = "AP"
    MODULATION_DEPTH_NEGATIVE_PEAK = "AN"
    FREQUENCY_OFFSET = "OS"
    FREQUENCY_DEVIATION = "DF"
    FREQUENCY_DEVIATION_POSITIVE_PEAK = "DP"
    FREQUENCY_DEVIATION_NEGATIVE_PEAK = "DN"

    @property
    def unit(self) -> Unit:
        return _FORMATS[self][0]

    @property
    def resolution(self) -> Resolution:
        return _FORMATS[self][1]


_PERCENT = (Unit.PERCENT, Resolution.DIGITS_2)
_KILOHERTZ = (Unit.KILOHERTZ, Resolution.DIGITS_3)

_FORMATS = {
    ReadingType.FREQUENCY: (Unit.MEGAHERTZ, Resolution.DIGITS_6),
    ReadingType.LEVEL: (Unit.DECIBEL, Resolution.DIGITS_4),
    ReadingType.POWER: (Unit.DBM, Resolution.DIGITS_4),
    ReadingType.VOLTAGE: (Unit.MICROVOLT, Resolution.DIGITS_3),
    ReadingType.CURRENT_DB: (Unit.DB_MICROAMPERE, Resolution.DIGITS_4),
    ReadingType.CURRENT: (Unit.MICROAMPERE, Resolution.DIGITS_3),
    ReadingType.E_FIELD_DB: (Unit.DB_MICROVOLT_PER_METER, Resolution.DIGITS_4),
    ReadingType.E_FIELD: (Unit.MICROVOLT_PER_METER, Resolution.DIGITS_3),
    ReadingType.H_FIELD_DB: (Unit.DB_MICROAMPERE_PER_METER, Resolution.DIGITS_4),
    ReadingType.H_FIELD: (Unit.MICROAMPERE_PER_METER, Resolution.DIGITS_3),
    ReadingType.MODULATION_DEPTH: _PERCENT,
    ReadingType.MODULATION_DEPTH_POSITIVE_PEAK: _PERCENT,
    ReadingType.MODULATION_DEPTH_NEGATIVE_PEAK: _PERCENT,
    ReadingType.FREQUENCY_OFFSET: _KILOHERTZ,
    ReadingType.FREQUENCY_DEVIATION: _KILOHERTZ,
    ReadingType.FREQUENCY_DEVIATION_POSITIVE_PEAK: _KILOHERTZ,
    ReadingType.FREQUENCY_DEVIATION_NEGATIVE_PEAK: _KILOHERTZ,
}


class ReadingStatus(Enum):
    """Reading status character."""

    VALID = " "
    OVERFLOW = "H"
    UNDERFLOW = "U"
    OVERLOAD = "X"

    @property
    def label(self) -> str:
        return self.name.capitalize()


def parse_reading(text: str) -> tuple[ReadingType, ReadingStatus, float]:
    """Split a reading reply into type, status and value.

    Raises:
        ProtocolError: If the reply is too short, or its prefix, status
            character or number is not recognized.
    """
    if len(text) < MIN_REPLY_LENGTH:
        raise ProtocolError(f"Reading reply too short: {text!r}")
    try:
        reading_type = ReadingType(text[:2])
    except ValueError:
        raise ProtocolError(f"Unknown reading type: {text[:2]!r}") from None
    try:
        status = ReadingStatus(text[2])
    except ValueError:
        raise ProtocolError(f"Unknown reading status: {text[2]!r}") from None
    return reading_type, status, parse_number(text[3:])


def decode_reading(raw: bytes, settings: Esh3Settings) -> Reading | None:
    """Decode a reading reply.

    Args:
        raw: The reply as read from the bus.
        settings: The snapshot to tag the reading with.

    Returns:
        The reading, or None if the reply could not be decoded.
    """
    try:
        reading_type, status, value = parse_reading(raw.decode("ascii"))
    except (UnicodeDecodeError, ProtocolError) as exc:
        logger.warning("Dropping ESH-3 reading %r: %s", raw, exc)
        return None
    invalid = status is not ReadingStatus.VALID
    return Reading(
        value=value,
        unit=reading_type.unit,
        resolution=reading_type.resolution,
        quantity=reading_type.name,
        settings=settings,
        overflow=invalid,
        error=invalid,
        message=status.label if invalid else None,
    )
