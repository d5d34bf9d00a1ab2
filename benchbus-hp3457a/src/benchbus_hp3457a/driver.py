"""HP 3457A driver for the transaction engine."""

from __future__ import annotations

import logging
from typing import Iterator, Sequence

from benchbus_core.errors import ProtocolError
from benchbus_gpib.command import Command, CommandTable
from benchbus_gpib.number import parse_int, parse_number
from benchbus_gpib.reading import Reading, decode_reading
from benchbus_gpib.session import BusSession
from benchbus_gpib.status import escalate
from benchbus_hp3457a.commands import COMMANDS, parse_code
from benchbus_hp3457a.settings import (
    Hp3457aSettings,
    InstalledOption,
    ReadingMemoryMode,
    TriggerEvent,
)
from benchbus_hp3457a.status import Hp3457aStatus

logger = logging.getLogger(__name__)

# EOI on, reading memory off, every status condition raises SRQ.
INITIALIZE_COMMAND = "RESET;END 2;MEM 0;RQS 127;ID?;"
SERVICE_REQUEST_MASK = 0x7F

DEFAULT_SETTLE_S = 1.0

FOLLOW_UP_OPCODES = (
    "get_calibration_number",
    "get_nplc",
    "get_line_frequency",
    "get_line_frequency_reference",
)


class Hp3457aDriver:
    """Instrument driver for the HP 3457A multimeter.

    Args:
        gpib_address: Primary address, recorded in the settings snapshot.
        settle_s: Delay after device clear before the reset exchange.
    """

    name = "HP3457A"
    commands: CommandTable = COMMANDS

    def __init__(self, gpib_address: int | None = None, settle_s: float = DEFAULT_SETTLE_S) -> None:
        if settle_s < 0:
            raise ValueError("settle_s must be >= 0")
        self.gpib_address = gpib_address
        self.settle_s = settle_s

    # -- Initialization ------------------------------------------------------

    def initialize(self, bus: BusSession) -> Hp3457aSettings:
        """Reset the meter, read its identity and option, build the snapshot."""
        identity = bus.query(INITIALIZE_COMMAND).strip()
        option = parse_code(InstalledOption, bus.query("OPT?;"))
        logger.info("%s: %s, option %s", self.name, identity, option.name)
        return Hp3457aSettings.from_reset().derive(
            eoi=True,
            reading_memory_mode=ReadingMemoryMode.OFF,
            service_request_mask=SERVICE_REQUEST_MASK,
            id=identity,
            installed_option=option,
            gpib_address=self.gpib_address,
        )

    def follow_up_commands(self) -> Sequence[Command]:
        return [Command(opcode) for opcode in FOLLOW_UP_OPCODES]

    # -- Status --------------------------------------------------------------

    def decode_status(self, status_byte: int) -> Hp3457aStatus:
        return Hp3457aStatus.from_status_byte(status_byte)

    def escalate_status(self, bus: BusSession, status: Hp3457aStatus) -> Hp3457aStatus:
        return escalate(
            status,
            lambda: parse_int(bus.query("ERR?;")),
            lambda: parse_int(bus.query("AUXERR?;")),
        )

    # -- Readings ------------------------------------------------------------

    def harvest(
        self, bus: BusSession, settings: Hp3457aSettings, status: Hp3457aStatus
    ) -> Iterator[Reading]:
        """Read the readings a ready service request announces.

        Raises:
            ProtocolError: If the stored-reading count does not parse, or the
                reading memory is in CONTINUOUS mode.
        """
        if not status.ready:
            return
        count = self._pending_count(bus, settings)
        fmt = settings.reading_format
        for _ in range(count):
            raw = bus.read_raw()
            scale = self._integer_scale(bus, settings) if fmt.scaled else 1.0
            reading = decode_reading(raw, fmt, settings, status.high_low, scale=scale)
            if reading is not None:
                yield reading

    def _pending_count(self, bus: BusSession, settings: Hp3457aSettings) -> int:
        trigger = settings.trigger_event
        if trigger is TriggerEvent.HOLD:
            return 0
        if trigger is TriggerEvent.SYN:
            return 1
        memory = settings.reading_memory_mode
        if memory is ReadingMemoryMode.OFF:
            return 1
        if memory is ReadingMemoryMode.CONTINUOUS:
            raise ProtocolError("CONTINUOUS reading memory has no stored reading count")
        count = parse_int(bus.query("MCOUNT?;"))
        logger.debug("%s: %d stored readings", self.name, count)
        return max(count, 0)

    def _integer_scale(self, bus: BusSession, settings: Hp3457aSettings) -> float:
        if settings.auto_range:
            # Auto-ranging may change the scale between readings.
            return parse_number(bus.query("ISCALE?;"))
        return settings.integer_scale
