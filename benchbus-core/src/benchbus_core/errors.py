"""Exception types for benchbus-core.

This module defines the exception hierarchy used throughout the benchbus
packages. All benchbus exceptions inherit from BenchbusError, allowing
consumers to catch all framework-specific errors with a single except clause.

Instrument-reported error codes are not exceptions; they are carried as
fields of the decoded instrument status.

Exception hierarchy:
    BenchbusError (base)
    +-- CommandValidationError: Bad command arguments (also a ValueError)
    |   +-- UnknownOpcodeError: Opcode missing from the command table
    +-- PreconditionError: Command needs settings that are not yet known
    +-- EngineStateError: Engine or bus session used outside its lifetime
    +-- TransportError: Bus I/O failures
    |   +-- TransportTimeoutError: Bus I/O or token timeout
    |   +-- StatusEscalationError: Follow-up status query failed
    +-- ProtocolError: Malformed or inconsistent instrument replies
"""

from __future__ import annotations

from typing import Any


class BenchbusError(Exception):
    """Base exception for all benchbus errors.

    This is the root of the benchbus exception hierarchy. Catch this to
    handle any framework-specific error.
    """


class CommandValidationError(BenchbusError, ValueError):
    """Raised when a command's arguments are rejected.

    Validation always happens before the bus is touched, so no instrument
    state has changed when this is raised.
    """


class UnknownOpcodeError(CommandValidationError):
    """Raised when an opcode is not present in the instrument's command table."""


class PreconditionError(BenchbusError):
    """Raised when a command needs a settings snapshot and none is published yet.

    Typical examples are range selection or measurement mode changes issued
    before the instrument has been initialized.
    """


class EngineStateError(BenchbusError):
    """Raised when the transaction engine is used in an invalid state.

    This includes enqueueing commands on a stopped engine and using a bus
    session after its token hold has ended.
    """


class TransportError(BenchbusError):
    """Raised when a bus transport operation fails.

    The transaction in flight is aborted and no settings are published.
    """


class TransportTimeoutError(TransportError):
    """Raised when a bus operation or the bus token wait times out."""


class StatusEscalationError(TransportError):
    """Raised when a follow-up status query fails part way through escalation.

    Attributes:
        partial_status: The status decoded up to the tier that failed. It is
            still a valid observation and may be published.
    """

    def __init__(self, message: str, partial_status: Any) -> None:
        super().__init__(message)
        self.partial_status = partial_status


class ProtocolError(BenchbusError):
    """Raised when an instrument reply violates the expected protocol.

    Common causes include unparseable numerals, wrong-length binary blocks,
    and failed consistency checks in multi-step recipes.
    """
