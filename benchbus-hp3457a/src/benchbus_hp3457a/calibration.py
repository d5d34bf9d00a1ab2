"""Calibration RAM dump through the undocumented ``PEEK`` command.

``PEEK <address>;`` returns a 16-bit word as a decimal numeral. The high
byte is the data byte at *address*; the low byte is the data byte of the
next address. The dump uses that overlap as a consistency check and gives
up on the first mismatch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from benchbus_core.errors import ProtocolError
from benchbus_gpib.number import parse_int
from benchbus_gpib.session import BusSession

logger = logging.getLogger(__name__)

CALIBRATION_START = 0x40
CALIBRATION_END = 0x1FF
CALIBRATION_LENGTH = CALIBRATION_END - CALIBRATION_START + 1

MAX_PEEK_ADDRESS = 32767


@dataclass(frozen=True)
class CalibrationData:
    """Raw calibration RAM contents, one byte per address from 0x40."""

    data: bytes

    def hex(self) -> str:
        return self.data.hex()

    def __len__(self) -> int:
        return len(self.data)


def peek_word(bus: BusSession, address: int) -> int:
    """Read the 16-bit word at *address*."""
    return parse_int(bus.query(f"PEEK {address};")) & 0xFFFF


def high_byte(word: int) -> int:
    return (word & 0xFF00) >> 8


def peek(bus: BusSession, arguments: Mapping[str, Any], settings: Any) -> int:
    """Exchange for the ``peek`` opcode: return the data byte at an address."""
    address = arguments["address"]
    value = high_byte(peek_word(bus, address))
    logger.debug("Peek at %d: 0x%02x", address, value)
    return value


def read_calibration_data(bus: BusSession, arguments: Mapping[str, Any], settings: Any) -> CalibrationData:
    """Exchange for the ``read_calibration_data`` opcode.

    Raises:
        ProtocolError: If a reply does not parse or the overlap byte of a
            word differs from the previous word's data byte.
    """
    dump = bytearray()
    previous_low = 0
    for address in range(CALIBRATION_START, CALIBRATION_END + 1):
        word = peek_word(bus, address)
        data = high_byte(word)
        if address > CALIBRATION_START and data != previous_low:
            raise ProtocolError(
                f"Calibration dump inconsistent at 0x{address:03x}: "
                f"0x{data:02x} != 0x{previous_low:02x}"
            )
        previous_low = word & 0xFF
        dump.append(data)
    logger.info("Read %d bytes of calibration data", len(dump))
    return CalibrationData(bytes(dump))
