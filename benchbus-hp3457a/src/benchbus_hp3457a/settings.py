"""HP 3457A settings snapshot and enumerations.

The snapshot mirrors everything the driver knows about the meter's
configuration. Its defaults are the state after ``RESET;``; ``PRESET;``
differs only in the trigger event and the integration time.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields
from enum import Enum

from benchbus_core.units import Resolution, Unit
from benchbus_gpib.ranges import Range
from benchbus_gpib.reading import ReadingFormat
from benchbus_gpib.settings import SettingsSnapshot

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class MeasurementMode(Enum):
    """Measurement function; the value is the ``FUNC`` code."""

    DC_VOLTAGE = 1
    AC_VOLTAGE = 2
    AC_DC_VOLTAGE = 3
    RESISTANCE_2W = 4
    RESISTANCE_4W = 5
    DC_CURRENT = 6
    AC_CURRENT = 7
    AC_DC_CURRENT = 8
    FREQUENCY = 9
    PERIOD = 10

    @property
    def mnemonic(self) -> str:
        """The function's command mnemonic (``"DCV"``)."""
        return _MNEMONICS[self]

    @property
    def unit(self) -> Unit:
        """The unit of readings and ranges in this mode."""
        return _UNITS[self]


_MNEMONICS = {
    MeasurementMode.DC_VOLTAGE: "DCV",
    MeasurementMode.AC_VOLTAGE: "ACV",
    MeasurementMode.AC_DC_VOLTAGE: "ACDCV",
    MeasurementMode.RESISTANCE_2W: "OHM",
    MeasurementMode.RESISTANCE_4W: "OHMF",
    MeasurementMode.DC_CURRENT: "DCI",
    MeasurementMode.AC_CURRENT: "ACI",
    MeasurementMode.AC_DC_CURRENT: "ACDCI",
    MeasurementMode.FREQUENCY: "FREQ",
    MeasurementMode.PERIOD: "PER",
}

_UNITS = {
    MeasurementMode.DC_VOLTAGE: Unit.VOLT,
    MeasurementMode.AC_VOLTAGE: Unit.VOLT,
    MeasurementMode.AC_DC_VOLTAGE: Unit.VOLT,
    MeasurementMode.RESISTANCE_2W: Unit.OHM,
    MeasurementMode.RESISTANCE_4W: Unit.OHM,
    MeasurementMode.DC_CURRENT: Unit.AMPERE,
    MeasurementMode.AC_CURRENT: Unit.AMPERE,
    MeasurementMode.AC_DC_CURRENT: Unit.AMPERE,
    MeasurementMode.FREQUENCY: Unit.HERTZ,
    MeasurementMode.PERIOD: Unit.SECOND,
}


class TriggerEvent(Enum):
    """Trigger, trigger-arm and sample events (``TRIG``, ``TARM``, ``NRDGS``)."""

    AUTO = 1
    EXT = 2
    SGL = 3
    HOLD = 4
    SYN = 5
    TIMER = 6


class ReadingMemoryMode(Enum):
    """Reading memory mode (``MEM``)."""

    OFF = 0
    LIFO = 1
    FIFO = 2
    CONTINUOUS = 3


class AutoZeroMode(Enum):
    """Auto-zero mode (``AZERO``)."""

    FUNCTION_OR_RANGE_CHANGES = 0
    ALWAYS = 1


class AutoCalibrationType(Enum):
    """Auto-calibration selector (``ACAL``)."""

    ALL = 1
    AC = 2
    OHMS = 3


class ACBandwidth(Enum):
    """AC bandwidth; selected by ``ACBAND`` with the lowest expected frequency."""

    SLOW = "SLOW"
    FAST = "FAST"


class MeasurementTerminals(Enum):
    """Active input terminals (``TERM``)."""

    OPEN = 0
    FRONT = 1
    REAR = 2


class InstalledOption(Enum):
    """Plug-in scanner option reported by ``OPT?``."""

    NONE = 0
    HP_44491 = 44491
    HP_44492 = 44492


class DisplayControl(Enum):
    """Display control (``DISP``)."""

    OFF = 0
    ON = 1
    MESSAGE = 2


class MathOperation(Enum):
    """Real-time math operations (``MATH``)."""

    OFF = 0
    CONT = 1
    CTHRM = 3
    DB = 4
    DBM = 5
    FILTER = 6
    FTHRM = 8
    NULL = 9
    PERC = 10
    PFAIL = 11
    RMS = 12
    SCALE = 13
    STAT = 14


class MathRegister(Enum):
    """Math registers (``RMATH``, ``SMATH``)."""

    DEGREE = 1
    LOWER = 2
    MAX = 3
    MEAN = 4
    MIN = 5
    NSAMP = 6
    OFFSET = 7
    PERC = 8
    REF = 9
    RES = 10
    SCALE = 11
    SDEV = 12
    UPPER = 13
    HIRES = 14


class ScanAdvanceMode(Enum):
    """Scan advance event (``SADV``)."""

    HOLD = 0
    SGL = 1
    AUTO = 2


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

_NPLC_RESOLUTION_STEPS = (
    (0.005, Resolution.DIGITS_3_5),
    (0.1, Resolution.DIGITS_4_5),
    (1.0, Resolution.DIGITS_5_5),
)

MAX_NPLC = 100.0


def nplc_to_resolution(nplc: float) -> Resolution:
    """Map an integration time in power-line cycles to display resolution.

    Raises:
        ValueError: If *nplc* is negative, not a number or above 100.
    """
    if math.isnan(nplc) or nplc < 0 or nplc > MAX_NPLC:
        raise ValueError(f"NPLC must be in [0, {MAX_NPLC:g}], got {nplc}")
    for limit, resolution in _NPLC_RESOLUTION_STEPS:
        if nplc < limit:
            return resolution
    return Resolution.DIGITS_6_5


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------

# Facts about the physical unit that survive RESET and PRESET.
_UNIT_FACTS = frozenset(
    ("id", "installed_option", "gpib_address", "calibration_number", "line_frequency_hz")
)


@dataclass(frozen=True)
class Hp3457aSettings(SettingsSnapshot):
    """Known configuration of an HP 3457A.

    Unknown numeric values are NaN; unknown identities are None. Field
    defaults are the state after ``RESET;``.
    """

    # Function and ranging
    measurement_mode: MeasurementMode = MeasurementMode.DC_VOLTAGE
    resolution: Resolution = Resolution.DIGITS_5_5
    resolution_percent: float = 0.00033
    auto_range: bool = True
    range: Range | None = None
    auto_zero_mode: AutoZeroMode = AutoZeroMode.ALWAYS
    ac_bandwidth: ACBandwidth = ACBandwidth.SLOW
    frequency_period_source: MeasurementMode = MeasurementMode.AC_VOLTAGE
    fixed_impedance: bool = False
    offset_compensation: bool = False
    nplc: float = 10.0
    terminals: MeasurementTerminals = MeasurementTerminals.FRONT

    # Triggering
    trigger_arm_event: TriggerEvent = TriggerEvent.AUTO
    trigger_event: TriggerEvent = TriggerEvent.AUTO
    sample_event: TriggerEvent = TriggerEvent.AUTO
    number_of_trigger_arms: int = 0
    number_of_readings: int = 1
    delay_s: float = math.nan
    timer_s: float = 1.0
    trigger_buffering: bool = False

    # Output and memory
    reading_format: ReadingFormat = ReadingFormat.TEXT
    integer_scale: float = math.nan
    reading_memory_mode: ReadingMemoryMode = ReadingMemoryMode.OFF
    memory_sizes: tuple[int, int] | None = None

    # Identity and calibration
    id: str | None = None
    installed_option: InstalledOption | None = None
    calibration_number: int = -1
    line_frequency_hz: float = math.nan
    line_frequency_reference_hz: float = math.nan

    # Interface and front panel
    gpib_address: int | None = None
    eoi: bool = False
    input_buffering: bool = False
    service_request_mask: int = 0
    error_mask: int = 2047
    beep_enabled: bool = True
    locked: bool = False

    # Scanner
    input_channel: int = -1
    open_channel_8: bool = True
    switch_delay_channel_8: bool = False
    open_channel_9: bool = True
    switch_delay_channel_9: bool = False

    @classmethod
    def from_reset(cls) -> Hp3457aSettings:
        """Return the state after ``RESET;``."""
        return cls()

    @classmethod
    def from_preset(cls) -> Hp3457aSettings:
        """Return the state after ``PRESET;``."""
        return cls(trigger_event=TriggerEvent.SYN, nplc=1.0)

    # -- Derivations with side effects --------------------------------------

    def with_measurement_mode(self, mode: MeasurementMode) -> Hp3457aSettings:
        """Select a function; any change re-enables auto-range."""
        if mode is self.measurement_mode:
            return self
        return self.derive(measurement_mode=mode, auto_range=True, range=None)

    def with_nplc(self, nplc: float) -> Hp3457aSettings:
        """Set the integration time and the resolution that follows from it."""
        return self.derive(nplc=nplc, resolution=nplc_to_resolution(nplc))

    def with_reset(self, base: Hp3457aSettings) -> Hp3457aSettings:
        """Take over every setting of *base*, keeping facts about the unit.

        Identity, installed option, GPIB address, calibration number and
        line frequency survive ``RESET;`` and ``PRESET;``.
        """
        changes = {
            f.name: getattr(base, f.name)
            for f in fields(base)
            if f.name not in _UNIT_FACTS and f.name != "version"
        }
        return self.derive(**changes)

    # -- Reading context ----------------------------------------------------

    @property
    def reading_unit(self) -> Unit:
        """Unit of readings in the active function."""
        return self.measurement_mode.unit

    @property
    def reading_resolution(self) -> Resolution:
        """Resolution of readings."""
        return self.resolution

    @property
    def reading_quantity(self) -> str:
        """Name of the active function."""
        return self.measurement_mode.name
