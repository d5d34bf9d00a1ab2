"""HP 3457A status byte, error register and auxiliary error register."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import IntFlag

# Status byte bits; 0x80 is unused.
PROGRAM_COMPLETE = 0x01
HIGH_LOW = 0x02
FRONT_PANEL_SRQ = 0x04
POWER_ON = 0x08
READY = 0x10
ERROR = 0x20
SERVICE_REQUEST = 0x40


class ErrorFlag(IntFlag):
    """Bits of the ``ERR?`` error register."""

    HARDWARE = 0x0001
    CALIBRATION = 0x0002
    TRIGGER_TOO_FAST = 0x0004
    SYNTAX = 0x0008
    BAD_HEADER = 0x0010
    BAD_PARAMETER = 0x0020
    BAD_PARAMETER_RANGE = 0x0040
    PARAMETER_REQUIRED = 0x0080
    PARAMETER_IGNORED = 0x0100
    NOT_CALIBRATED = 0x0200
    AUTOCAL_REQUIRED = 0x0400


class AuxiliaryErrorFlag(IntFlag):
    """Bits of the ``AUXERR?`` auxiliary error register."""

    ISOLATION = 0x0001
    SLAVE_PROCESSOR = 0x0002
    ISOLATION_SELF_TEST = 0x0004
    INTEGRATOR = 0x0008
    FRONT_END_ZERO = 0x0010
    CURRENT_GAIN_DIVIDER = 0x0020
    AMPS = 0x0040
    AC_AMP_DC_OFFSET = 0x0080
    AC_SELF_TEST = 0x0100
    OHMS_PRECHARGE = 0x0200
    ROM_32K = 0x0400
    ROM_8K = 0x0800
    NVRAM = 0x1000
    VRAM = 0x2000
    CAL_RAM_PROTECT = 0x4000


ERROR_MESSAGES = {
    ErrorFlag.HARDWARE: "Hardware error",
    ErrorFlag.CALIBRATION: "CAL/ACAL Calibration error",
    ErrorFlag.TRIGGER_TOO_FAST: "Trigger too fast",
    ErrorFlag.SYNTAX: "Bad syntax",
    ErrorFlag.BAD_HEADER: "Unrecognizable command",
    ErrorFlag.BAD_PARAMETER: "Unrecognizable or mismatched parameter",
    ErrorFlag.BAD_PARAMETER_RANGE: "Parameter out of range",
    ErrorFlag.PARAMETER_REQUIRED: "Parameter missing",
    ErrorFlag.PARAMETER_IGNORED: "Parameter ignored",
    ErrorFlag.NOT_CALIBRATED: "Not or poorly calibrated",
    ErrorFlag.AUTOCAL_REQUIRED: "Must perform autocalibration",
}

AUXILIARY_ERROR_MESSAGES = {
    AuxiliaryErrorFlag.ISOLATION: (
        "Isolation error during HP 3457 operation in any mode "
        "(self-test, ACAL, measurements, etc.)"
    ),
    AuxiliaryErrorFlag.SLAVE_PROCESSOR: "Slave processor self-test failed",
    AuxiliaryErrorFlag.ISOLATION_SELF_TEST: "Isolation self-test failed",
    AuxiliaryErrorFlag.INTEGRATOR: "Integrator convergence error",
    AuxiliaryErrorFlag.FRONT_END_ZERO: "Front end zero measurement error",
    AuxiliaryErrorFlag.CURRENT_GAIN_DIVIDER: "Current source, gain selection, or input divider failure",
    AuxiliaryErrorFlag.AMPS: "Amps self-test failed",
    AuxiliaryErrorFlag.AC_AMP_DC_OFFSET: "AC amplifier's DC offset check failed",
    AuxiliaryErrorFlag.AC_SELF_TEST: "AC self-test failed",
    AuxiliaryErrorFlag.OHMS_PRECHARGE: "Ohm's precharge failure during ACAL",
    AuxiliaryErrorFlag.ROM_32K: "32k ROM failure",
    AuxiliaryErrorFlag.ROM_8K: "8k ROM failure",
    AuxiliaryErrorFlag.NVRAM: "Non-volatile RAM test failed",
    AuxiliaryErrorFlag.VRAM: "Volatile RAM test failed",
    AuxiliaryErrorFlag.CAL_RAM_PROTECT: "Calibration RAM protect circuit failure",
}


def is_hardware_error(code: int) -> bool:
    """Return True if an ``ERR?`` code calls for an ``AUXERR?`` query."""
    return bool(code & ErrorFlag.HARDWARE)


@dataclass(frozen=True)
class Hp3457aStatus:
    """Decoded HP 3457A status.

    Attributes:
        status_byte: The raw serial-poll byte.
        error_code: ``ERR?`` register, or None if it was not queried.
        auxiliary_error_code: ``AUXERR?`` register, or None if it was not
            queried.
    """

    status_byte: int
    error_code: int | None = None
    auxiliary_error_code: int | None = None

    @classmethod
    def from_status_byte(cls, status_byte: int) -> Hp3457aStatus:
        """Decode a serial-poll byte into a tier-0 status."""
        return cls(status_byte=status_byte & 0xFF)

    # -- Tier 0 --------------------------------------------------------------

    @property
    def service_request(self) -> bool:
        return bool(self.status_byte & SERVICE_REQUEST)

    @property
    def error(self) -> bool:
        return bool(self.status_byte & ERROR)

    @property
    def ready(self) -> bool:
        return bool(self.status_byte & READY)

    @property
    def power_on(self) -> bool:
        return bool(self.status_byte & POWER_ON)

    @property
    def front_panel_service_request(self) -> bool:
        return bool(self.status_byte & FRONT_PANEL_SRQ)

    @property
    def high_low(self) -> bool:
        """True if the limit test or an over/under-range tripped."""
        return bool(self.status_byte & HIGH_LOW)

    @property
    def program_complete(self) -> bool:
        return bool(self.status_byte & PROGRAM_COMPLETE)

    # -- Escalation ----------------------------------------------------------

    @property
    def needs_error_query(self) -> bool:
        return self.error

    @property
    def needs_auxiliary_error_query(self) -> bool:
        return self.error_code is not None and is_hardware_error(self.error_code)

    def with_error_code(self, code: int) -> Hp3457aStatus:
        return replace(self, error_code=code & 0xFFFF)

    def with_auxiliary_error_code(self, code: int) -> Hp3457aStatus:
        return replace(self, auxiliary_error_code=code & 0xFFFF)

    # -- Messages ------------------------------------------------------------

    @property
    def errors(self) -> ErrorFlag:
        """Set error flags; empty if the register was not read."""
        return ErrorFlag(self.error_code or 0)

    @property
    def auxiliary_errors(self) -> AuxiliaryErrorFlag:
        """Set auxiliary error flags; empty if the register was not read."""
        return AuxiliaryErrorFlag(self.auxiliary_error_code or 0)

    def messages(self) -> list[str]:
        """Return the messages of every set error and auxiliary error bit."""
        found = [text for flag, text in ERROR_MESSAGES.items() if flag in self.errors]
        found.extend(
            text for flag, text in AUXILIARY_ERROR_MESSAGES.items() if flag in self.auxiliary_errors
        )
        return found

    def __str__(self) -> str:
        names = [
            name
            for name, bit in (
                ("SRQ", SERVICE_REQUEST),
                ("ERROR", ERROR),
                ("READY", READY),
                ("POWER_ON", POWER_ON),
                ("FRONT_PANEL", FRONT_PANEL_SRQ),
                ("HIGH_LOW", HIGH_LOW),
                ("COMPLETE", PROGRAM_COMPLETE),
            )
            if self.status_byte & bit
        ]
        text = f"0x{self.status_byte:02x} [{' '.join(names)}]"
        messages = self.messages()
        if messages:
            text += ": " + "; ".join(messages)
        return text
