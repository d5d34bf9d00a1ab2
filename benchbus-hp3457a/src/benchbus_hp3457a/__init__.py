"""HP 3457A digital multimeter driver and emulator for benchbus.

Modules:
    settings: Settings snapshot and the meter's enumerations.
    status: Status byte, error and auxiliary error registers.
    ranges: Full-scale ranges per measurement function.
    commands: The opcode table.
    calibration: Calibration RAM dump through ``PEEK``.
    driver: Initialization, status escalation and reading harvest.
    instrument: Typed facade and the ``create_instrument`` factory.
    emulator: In-process meter for testing without hardware.

Example:
    Connect to a real meter::

        from benchbus_hp3457a import MeasurementMode, create_instrument

        dmm = create_instrument("GPIB0::22::INSTR")
        dmm.add_reading_listener(print)
        with dmm:
            dmm.set_measurement_mode(MeasurementMode.AC_VOLTAGE)

    Use the emulator::

        dmm = create_instrument("GPIB0::22::INSTR", emulate=True, poll_period_s=None)
"""

from benchbus_hp3457a.calibration import CalibrationData
from benchbus_hp3457a.commands import COMMANDS, TriggerConfiguration
from benchbus_hp3457a.driver import Hp3457aDriver
from benchbus_hp3457a.emulator import Hp3457aEmulator, Hp3457aEmulatorConfig
from benchbus_hp3457a.instrument import Hp3457a, create_instrument
from benchbus_hp3457a.ranges import RANGES
from benchbus_hp3457a.settings import (
    ACBandwidth,
    AutoCalibrationType,
    AutoZeroMode,
    DisplayControl,
    Hp3457aSettings,
    InstalledOption,
    MathOperation,
    MathRegister,
    MeasurementMode,
    MeasurementTerminals,
    ReadingMemoryMode,
    ScanAdvanceMode,
    TriggerEvent,
    nplc_to_resolution,
)
from benchbus_hp3457a.status import AuxiliaryErrorFlag, ErrorFlag, Hp3457aStatus

__all__ = [
    # Driver and facade
    "COMMANDS",
    "Hp3457a",
    "Hp3457aDriver",
    "create_instrument",
    # Emulator
    "Hp3457aEmulator",
    "Hp3457aEmulatorConfig",
    # Settings
    "ACBandwidth",
    "AutoCalibrationType",
    "AutoZeroMode",
    "DisplayControl",
    "Hp3457aSettings",
    "InstalledOption",
    "MathOperation",
    "MathRegister",
    "MeasurementMode",
    "MeasurementTerminals",
    "RANGES",
    "ReadingMemoryMode",
    "ScanAdvanceMode",
    "TriggerConfiguration",
    "TriggerEvent",
    "nplc_to_resolution",
    # Status and calibration
    "AuxiliaryErrorFlag",
    "CalibrationData",
    "ErrorFlag",
    "Hp3457aStatus",
]
