"""Physical units and display resolutions for instrument readings."""

from __future__ import annotations

from enum import Enum


class Unit(Enum):
    """Physical unit of a reading or range.

    The value is the display symbol.
    """

    VOLT = "V"
    AMPERE = "A"
    OHM = "Ω"
    HERTZ = "Hz"
    KILOHERTZ = "kHz"
    MEGAHERTZ = "MHz"
    SECOND = "s"
    DECIBEL = "dB"
    DBM = "dBm"
    MICROVOLT = "µV"
    MICROAMPERE = "µA"
    DB_MICROAMPERE = "dBµA"
    DB_MICROVOLT_PER_METER = "dBµV/m"
    MICROVOLT_PER_METER = "µV/m"
    DB_MICROAMPERE_PER_METER = "dBµA/m"
    MICROAMPERE_PER_METER = "µA/m"
    PERCENT = "%"

    @property
    def symbol(self) -> str:
        """Return the display symbol."""
        return self.value


class Resolution(Enum):
    """Display resolution of a reading, in digits.

    Half digits denote a leading digit that can only be 0 or 1 (for
    instance, 5.5 digits covers ``±199999``).
    """

    DIGITS_2 = 2.0
    DIGITS_3 = 3.0
    DIGITS_3_5 = 3.5
    DIGITS_4 = 4.0
    DIGITS_4_5 = 4.5
    DIGITS_5_5 = 5.5
    DIGITS_6 = 6.0
    DIGITS_6_5 = 6.5

    @property
    def digits(self) -> float:
        """Return the number of digits."""
        return self.value
