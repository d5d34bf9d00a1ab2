"""Core types for bus-serialized instrument control.

This package provides the error hierarchy and the unit and resolution
vocabulary shared by all benchbus packages. It has no third-party
dependencies so it can serve as the base layer for the transport,
engine, and instrument driver packages.

Example:
    >>> from benchbus_core import Unit, Resolution
    >>> Unit.VOLT.symbol
    'V'
    >>> Resolution.DIGITS_5_5.digits
    5.5
"""

from benchbus_core.errors import (
    BenchbusError,
    CommandValidationError,
    EngineStateError,
    PreconditionError,
    ProtocolError,
    StatusEscalationError,
    TransportError,
    TransportTimeoutError,
    UnknownOpcodeError,
)
from benchbus_core.units import Resolution, Unit

__all__ = [
    # Errors
    "BenchbusError",
    "CommandValidationError",
    "EngineStateError",
    "PreconditionError",
    "ProtocolError",
    "StatusEscalationError",
    "TransportError",
    "TransportTimeoutError",
    "UnknownOpcodeError",
    # Units
    "Resolution",
    "Unit",
]
