"""R&S ESH-3 driver for the transaction engine."""

from __future__ import annotations

from typing import Iterator, Sequence

from benchbus_gpib.command import Command, CommandTable
from benchbus_gpib.reading import Reading
from benchbus_gpib.session import BusSession
from benchbus_esh3.commands import COMMANDS
from benchbus_esh3.reading import decode_reading
from benchbus_esh3.settings import Esh3Settings
from benchbus_esh3.status import Esh3Status

DISPLAY_TEXT = "JINSTR PA3GYF"

# EOI on, SRQ on data ready and on local, then the display text.
INITIALIZE_COMMAND = f"U1,P1,J1,WT{DISPLAY_TEXT}\r"


class Esh3Driver:
    """Instrument driver for the R&S ESH-3 test receiver.

    The receiver cannot be queried, so initialization only writes and the
    snapshot starts from the power-on state.

    Args:
        gpib_address: Primary address, recorded in the settings snapshot.
        settle_s: Delay after device clear before the initialization write.
    """

    name = "ESH3"
    commands: CommandTable = COMMANDS

    def __init__(self, gpib_address: int | None = None, settle_s: float = 0.0) -> None:
        if settle_s < 0:
            raise ValueError("settle_s must be >= 0")
        self.gpib_address = gpib_address
        self.settle_s = settle_s

    def initialize(self, bus: BusSession) -> Esh3Settings:
        bus.write(INITIALIZE_COMMAND)
        return Esh3Settings.power_on().derive(
            eoi=True,
            srq_on_data_ready=True,
            srq_on_local=True,
            display_text=DISPLAY_TEXT,
            gpib_address=self.gpib_address,
        )

    def follow_up_commands(self) -> Sequence[Command]:
        return []

    def decode_status(self, status_byte: int) -> Esh3Status:
        return Esh3Status.from_status_byte(status_byte)

    def escalate_status(self, bus: BusSession, status: Esh3Status) -> Esh3Status:
        return status

    def harvest(
        self, bus: BusSession, settings: Esh3Settings, status: Esh3Status
    ) -> Iterator[Reading]:
        """Read the one reading a ready service request announces."""
        if not status.ready:
            return
        reading = decode_reading(bus.read_raw(), settings)
        if reading is not None:
            yield reading
