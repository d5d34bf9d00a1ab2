"""R&S ESH-3 serial-poll status byte.

The status byte is the only status the receiver has. When the abnormal bit
is set its low nibble carries an error code; there are no error queries to
escalate to.
"""

from __future__ import annotations

from dataclasses import dataclass

EXTENSION = 0x80
SERVICE_REQUEST = 0x40
ABNORMAL = 0x20
READY = 0x10
CODE_MASK = 0x0F

ERROR_MESSAGES = (
    "IEC Syntax Error",
    "IEC Instruction Conflicts with State",
    "Data Above Limit",
    "Data Below Limit",
    "Memory Register not Occupied when RCL",
    "Level/Offset Calibration",
    "Calibration Checking Error",
    "Calibration Correction > 6 dB",
    "Scanning Missing Parameters",
    "fStart > fStop",
    "fStart == fStop [XY/ZSG3]",
    "Max Level <= Min Level",
    "fStart/fStop < 1.4 [Log X Axis]",
    "Log X Axis and ZSG3",
    "Synth out of Sync",
    "Faulty Supply Voltage(s)",
)

EXTENSION_MESSAGES = {0: "GPIB Talker: No Listener"}


@dataclass(frozen=True)
class Esh3Status:
    """Decoded ESH-3 status byte.

    Attributes:
        status_byte: The raw serial-poll byte.
    """

    status_byte: int

    @classmethod
    def from_status_byte(cls, status_byte: int) -> Esh3Status:
        return cls(status_byte=status_byte & 0xFF)

    @property
    def extension(self) -> bool:
        return bool(self.status_byte & EXTENSION)

    @property
    def service_request(self) -> bool:
        return bool(self.status_byte & SERVICE_REQUEST)

    @property
    def abnormal(self) -> bool:
        return bool(self.status_byte & ABNORMAL)

    @property
    def ready(self) -> bool:
        """True if a reading is waiting to be read."""
        return bool(self.status_byte & READY)

    @property
    def error_code(self) -> int | None:
        """The low nibble while abnormal, else None."""
        return self.status_byte & CODE_MASK if self.abnormal else None

    @property
    def message(self) -> str | None:
        """Text of the abnormal condition, or None if there is none."""
        code = self.error_code
        if code is None:
            return None
        if self.extension:
            return EXTENSION_MESSAGES.get(code, "Unknown Extension in Status Byte")
        return ERROR_MESSAGES[code]

    def __str__(self) -> str:
        text = f"0x{self.status_byte:02x}"
        message = self.message
        return f"{text}: {message}" if message else text
