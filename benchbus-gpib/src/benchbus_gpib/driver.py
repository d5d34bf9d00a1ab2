"""Instrument driver protocol.

A driver supplies everything instrument-specific that the
:class:`~benchbus_gpib.engine.TransactionEngine` needs: the command table,
the initialization exchange, status decoding and escalation, and the
harvesting of readings after a service request. The engine supplies the
bus discipline around all of them.
"""

from __future__ import annotations

from typing import Any, Iterator, Protocol, Sequence

from benchbus_gpib.command import Command, CommandTable
from benchbus_gpib.reading import Reading
from benchbus_gpib.session import BusSession


class InstrumentDriver(Protocol):
    """Structural interface of an instrument driver.

    Attributes:
        name: Instrument name used in log messages.
        commands: The instrument's opcode table.
        settle_s: Delay between device clear and the initialization
            exchange, in seconds.
    """

    name: str
    commands: CommandTable
    settle_s: float

    def initialize(self, bus: BusSession) -> Any:
        """Bring the instrument into a known state.

        Called with the bus token held, after a device clear and the
        settle delay.

        Returns:
            The initial settings snapshot.
        """
        ...

    def follow_up_commands(self) -> Sequence[Command]:
        """Commands to submit once the initial snapshot is published."""
        ...

    def decode_status(self, status_byte: int) -> Any:
        """Decode a serial-poll status byte into a tier-0 status."""
        ...

    def escalate_status(self, bus: BusSession, status: Any) -> Any:
        """Perform the follow-up status queries the tier-0 status demands.

        Raises:
            StatusEscalationError: If a follow-up query fails.
        """
        ...

    def harvest(self, bus: BusSession, settings: Any, status: Any) -> Iterator[Reading]:
        """Read the pending readings after a ready service request.

        Yields readings one at a time so each can be published as soon as
        it is decoded. Undecodable readings are skipped.

        Raises:
            ProtocolError: If the harvest as a whole cannot proceed.
        """
        ...
