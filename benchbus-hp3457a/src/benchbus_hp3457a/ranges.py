"""HP 3457A full-scale ranges per measurement function.

Full scales are in the function's base unit (volt, ohm, ampere, hertz,
second). Frequency and period have a single nominal range and cannot be
ranged with ``R``.
"""

from __future__ import annotations

from benchbus_core.units import Unit
from benchbus_gpib.ranges import Range, RangeTable
from benchbus_hp3457a.settings import MeasurementMode

_VOLTS = tuple(Range(v, Unit.VOLT) for v in (0.03, 0.3, 3.0, 30.0, 300.0))
_OHMS = tuple(Range(v, Unit.OHM) for v in (30.0, 300.0, 3e3, 30e3, 300e3, 3e6, 30e6, 3e9))
_DC_AMPS = tuple(Range(v, Unit.AMPERE) for v in (300e-6, 3e-3, 30e-3, 0.3, 3.0))
_AC_AMPS = tuple(Range(v, Unit.AMPERE) for v in (30e-3, 0.3, 3.0))

RANGES: RangeTable[MeasurementMode] = RangeTable(
    {
        MeasurementMode.DC_VOLTAGE: _VOLTS,
        MeasurementMode.AC_VOLTAGE: _VOLTS,
        MeasurementMode.AC_DC_VOLTAGE: _VOLTS,
        MeasurementMode.RESISTANCE_2W: _OHMS,
        MeasurementMode.RESISTANCE_4W: _OHMS,
        MeasurementMode.DC_CURRENT: _DC_AMPS,
        MeasurementMode.AC_CURRENT: _AC_AMPS,
        MeasurementMode.AC_DC_CURRENT: _AC_AMPS,
        MeasurementMode.FREQUENCY: (Range(1.5e6, Unit.HERTZ),),
        MeasurementMode.PERIOD: (Range(0.1, Unit.SECOND),),
    }
)

# Functions whose range is selectable with R.
RANGEABLE_MODES = frozenset(RANGES.modes()) - {MeasurementMode.FREQUENCY, MeasurementMode.PERIOD}
