"""Bus-serialized GPIB transaction engine.

This package provides the instrument-independent machinery for controlling
GPIB instruments that share one half-duplex bus:

- Transport abstraction and a PyVISA-backed GPIB transport
- FIFO-fair bus token guarding every transport operation
- Opcode tables mapping commands to wire operations and settings updates
- Transaction engine with synchronous and fire-and-forget submission
- Tiered status escalation and service-request handling
- Reading wire formats, range tables and immutable settings snapshots
- YAML bench configuration, driver loading and a command-line interface

Typical usage::

    from benchbus_hp3457a import create_instrument

    dmm = create_instrument(resource="GPIB0::22::INSTR")
    dmm.add_reading_listener(print)
    with dmm:
        dmm.execute("measurement_mode", mode=MeasurementMode.DC_VOLTAGE)
"""

from benchbus_gpib.command import (
    Command,
    CommandTable,
    OpcodeHandler,
    Query,
    Write,
    coerce_arguments,
    in_range,
    is_bool,
    is_text,
    one_of,
    only,
    required,
)
from benchbus_gpib.config import BenchConfig, InstrumentConfig, load_config
from benchbus_gpib.driver import InstrumentDriver
from benchbus_gpib.engine import SERVICE_REQUEST_BIT, TransactionEngine
from benchbus_gpib.instrument import Instrument
from benchbus_gpib.loader import load_driver
from benchbus_gpib.number import (
    format_bool,
    format_number,
    parse_bool,
    parse_int,
    parse_number,
    parse_numbers,
)
from benchbus_gpib.poller import ServiceRequestPoller
from benchbus_gpib.ranges import Range, RangeTable
from benchbus_gpib.reading import (
    OVERFLOW_MESSAGE,
    Reading,
    ReadingFormat,
    decode_reading,
    decode_value,
    encode_value,
)
from benchbus_gpib.session import BusSession
from benchbus_gpib.settings import SettingsSnapshot
from benchbus_gpib.status import TieredStatus, escalate
from benchbus_gpib.token import BusToken
from benchbus_gpib.transport import GpibTransport
from benchbus_gpib.visa import VisaGpibResource, parse_gpib_address

__all__ = [
    # Commands
    "Command",
    "CommandTable",
    "OpcodeHandler",
    "Query",
    "Write",
    "coerce_arguments",
    "in_range",
    "is_bool",
    "is_text",
    "one_of",
    "only",
    "required",
    # Configuration
    "BenchConfig",
    "InstrumentConfig",
    "load_config",
    "load_driver",
    # Engine
    "BusSession",
    "BusToken",
    "Instrument",
    "InstrumentDriver",
    "SERVICE_REQUEST_BIT",
    "ServiceRequestPoller",
    "TransactionEngine",
    # Numbers
    "format_bool",
    "format_number",
    "parse_bool",
    "parse_int",
    "parse_number",
    "parse_numbers",
    # Readings, ranges, settings, status
    "OVERFLOW_MESSAGE",
    "Range",
    "RangeTable",
    "Reading",
    "ReadingFormat",
    "SettingsSnapshot",
    "TieredStatus",
    "decode_reading",
    "decode_value",
    "encode_value",
    "escalate",
    # Transport
    "GpibTransport",
    "VisaGpibResource",
    "parse_gpib_address",
]
