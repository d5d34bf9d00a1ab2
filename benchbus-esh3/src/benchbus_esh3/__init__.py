"""R&S ESH-3 test receiver driver and emulator for benchbus.

Modules:
    settings: Settings snapshot and the receiver's enumerations.
    status: Status byte with the abnormal condition code.
    reading: Self-describing text readings.
    commands: The opcode table.
    driver: Initialization and reading harvest.
    instrument: Typed facade and the ``create_instrument`` factory.
    emulator: In-process receiver for testing without hardware.

Example:
    ::

        from benchbus_esh3 import IndicatingMode, create_instrument

        receiver = create_instrument("GPIB0::19::INSTR")
        receiver.add_reading_listener(print)
        with receiver:
            receiver.set_frequency(10.7e6)
            receiver.set_indicating_mode(IndicatingMode.PEAK)
            receiver.trigger()
"""

from benchbus_esh3.commands import COMMANDS
from benchbus_esh3.driver import Esh3Driver
from benchbus_esh3.emulator import Esh3Emulator
from benchbus_esh3.instrument import Esh3, create_instrument
from benchbus_esh3.reading import ReadingStatus, ReadingType, decode_reading
from benchbus_esh3.settings import (
    AttenuationMode,
    DataOutputMode,
    DemodulationMode,
    Esh3Settings,
    FieldDataOutputMode,
    FrequencyScanRepeatMode,
    FrequencyScanSpeedMode,
    IfBandwidth,
    IndicatingMode,
    OperatingMode,
    OperatingRange,
    RecorderXAxisMode,
    StepSizeMode,
    XYRecorderSpectrumMode,
)
from benchbus_esh3.status import Esh3Status

__all__ = [
    # Driver and facade
    "COMMANDS",
    "Esh3",
    "Esh3Driver",
    "create_instrument",
    # Emulator
    "Esh3Emulator",
    # Settings
    "AttenuationMode",
    "DataOutputMode",
    "DemodulationMode",
    "Esh3Settings",
    "FieldDataOutputMode",
    "FrequencyScanRepeatMode",
    "FrequencyScanSpeedMode",
    "IfBandwidth",
    "IndicatingMode",
    "OperatingMode",
    "OperatingRange",
    "RecorderXAxisMode",
    "StepSizeMode",
    "XYRecorderSpectrumMode",
    # Status and readings
    "Esh3Status",
    "ReadingStatus",
    "ReadingType",
    "decode_reading",
]
