"""HP 3457A emulator.

Provides an in-process meter implementing the ``GpibTransport`` protocol.
It understands the command language of :mod:`benchbus_hp3457a.commands`,
keeps a status byte and an error register, stores readings for the reading
memory modes and outputs them in any of the four output formats.
"""

from __future__ import annotations

import re
from collections import deque
from dataclasses import dataclass
from typing import Callable

from benchbus_core.errors import TransportTimeoutError
from benchbus_gpib.reading import ReadingFormat, encode_value
from benchbus_hp3457a.calibration import CALIBRATION_END, CALIBRATION_START
from benchbus_hp3457a.ranges import RANGES
from benchbus_hp3457a.settings import MeasurementMode, ReadingMemoryMode, TriggerEvent
from benchbus_hp3457a.status import (
    ERROR,
    HIGH_LOW,
    READY,
    SERVICE_REQUEST,
    ErrorFlag,
)

_COMMAND = re.compile(r"^([A-Z]+)(\?)?(.*)$")

_MODES_BY_MNEMONIC = {mode.mnemonic: mode for mode in MeasurementMode}

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Hp3457aEmulatorConfig:
    """Configuration of an emulated meter.

    Args:
        identity: ``ID?`` reply.
        installed_option: ``OPT?`` reply (0, 44491 or 44492).
        calibration_number: ``CALNUM?`` reply.
        line_frequency_hz: ``LINE?`` reply.
    """

    identity: str = "HP3457A"
    installed_option: int = 0
    calibration_number: int = 1
    line_frequency_hz: float = 50.0

    def __post_init__(self) -> None:
        if not self.identity:
            raise ValueError("identity must be non-empty")
        if self.installed_option not in (0, 44491, 44492):
            raise ValueError(f"Unknown installed option: {self.installed_option}")
        if self.line_frequency_hz <= 0:
            raise ValueError("line_frequency_hz must be > 0")


# ---------------------------------------------------------------------------
# Meter state
# ---------------------------------------------------------------------------


@dataclass
class _MeterState:
    mode: MeasurementMode = MeasurementMode.DC_VOLTAGE
    full_scale: float = 30.0
    auto_range: bool = True
    auto_zero: int = 1
    nplc: float = 10.0
    fixed_impedance: bool = False
    offset_compensation: bool = False
    delay_s: float = -1.0
    timer_s: float = 1.0
    terminals: int = 1
    channel: int = -1
    scan_list: tuple[int, ...] = ()
    trigger_arm: TriggerEvent = TriggerEvent.AUTO
    trigger_event: TriggerEvent = TriggerEvent.AUTO
    number_of_readings: int = 1
    sample_event: TriggerEvent = TriggerEvent.AUTO
    output_format: ReadingFormat = ReadingFormat.TEXT
    memory: ReadingMemoryMode = ReadingMemoryMode.OFF
    memory_sizes: tuple[int, int] = (2800, 0)
    math: tuple[int, int] = (0, 0)
    line_frequency_reference_hz: float = 50.0
    service_request_mask: int = 0
    error_mask: int = 2047


def _reply(value: float) -> str:
    return f"{value:+.8E}\r\n"


def _integer_reply(value: int) -> str:
    return f"{value}\r\n"


# ---------------------------------------------------------------------------
# Emulator
# ---------------------------------------------------------------------------


class Hp3457aEmulator:
    """In-process HP 3457A implementing ``GpibTransport``.

    Readings are queued with :meth:`push_reading` (or produced by the
    ``?`` trigger command from :attr:`input_value`). Each queued reading
    raises the ready bit and, if the ``RQS`` mask allows, a service request.

    Args:
        config: Emulator configuration; defaults if omitted.
    """

    def __init__(self, config: Hp3457aEmulatorConfig | None = None) -> None:
        self._config = config if config is not None else Hp3457aEmulatorConfig()
        self._state = _MeterState()
        self._output: deque[bytes] = deque()
        self._readings: deque[float] = deque()
        self._status_byte = 0
        self._error_code = 0
        self._auxiliary_error_code = 0
        self._calibration = bytearray(CALIBRATION_END - CALIBRATION_START + 2)

        self.integer_scale = 1e-5
        self.input_value = 0.0
        self.writes: list[bytes] = []
        self.peek_overrides: dict[int, int] = {}
        self.query_overrides: dict[str, str] = {}

        self._handlers: dict[str, Callable[[list[str]], str | None]] = {
            "ACAL": self._ignore,
            "ACBAND": self._ignore,
            "ADDRESS": self._ignore,
            "ARANGE": self._set_auto_range,
            "AZERO": self._set_auto_zero,
            "BEEP": self._ignore,
            "CALL": self._ignore,
            "CHAN": self._set_channel,
            "CLOSE": self._ignore,
            "CRESET": self._ignore,
            "CSB": self._clear_status_byte,
            "DELAY": self._set_delay,
            "DISP": self._ignore,
            "EMASK": self._set_error_mask,
            "END": self._ignore,
            "F": self._ignore,
            "FIXEDZ": self._set_fixed_impedance,
            "FSOURCE": self._ignore,
            "FUNC": self._set_function,
            "INBUF": self._ignore,
            "LFREQ": self._set_line_frequency_reference,
            "LOCK": self._ignore,
            "MATH": self._set_math,
            "MEM": self._set_memory,
            "MFORMAT": self._format_memory,
            "MSIZE": self._set_memory_sizes,
            "NDIG": self._ignore,
            "NPLC": self._set_nplc,
            "NRDGS": self._set_number_of_readings,
            "OCOMP": self._set_offset_compensation,
            "OFORMAT": self._set_output_format,
            "OPEN": self._ignore,
            "PAUSE": self._ignore,
            "PEEK": self._peek,
            "PRESET": self._preset,
            "R": self._set_range,
            "RESET": self._reset,
            "RMATH": self._recall_math,
            "RMEM": self._recall_memory,
            "RQS": self._set_service_request_mask,
            "RSTATE": self._ignore,
            "SADV": self._ignore,
            "SCRATCH": self._ignore,
            "SLIST": self._set_scan_list,
            "SMATH": self._ignore,
            "SRQ": self._fire_service_request,
            "SSTATE": self._ignore,
            "SUB": self._ignore,
            "SUBEND": self._ignore,
            "TARM": self._set_trigger_arm,
            "TBUFF": self._ignore,
            "TERM": self._set_terminals,
            "TEST": self._ignore,
            "TIMER": self._set_timer,
            "TONE": self._ignore,
            "TRIG": self._set_trigger_event,
        }
        for mnemonic, mode in _MODES_BY_MNEMONIC.items():
            self._handlers[mnemonic] = self._mode_selector(mode)

        self._queries: dict[str, Callable[[], str]] = {
            "AUXERR": self._get_auxiliary_error,
            "AZERO": lambda: _integer_reply(self._state.auto_zero),
            "CALNUM": lambda: _integer_reply(self._config.calibration_number),
            "CHAN": lambda: _integer_reply(self._state.channel),
            "DELAY": lambda: _reply(self._state.delay_s),
            "ERR": self._get_error,
            "FIXEDZ": lambda: _integer_reply(int(self._state.fixed_impedance)),
            "ID": lambda: self._config.identity + "\r\n",
            "ISCALE": lambda: _reply(self.integer_scale),
            "LFREQ": lambda: _reply(self._state.line_frequency_reference_hz),
            "LINE": lambda: _reply(self._config.line_frequency_hz),
            "MATH": lambda: "{},{}\r\n".format(*self._state.math),
            "MCOUNT": lambda: _integer_reply(len(self._readings)),
            "MSIZE": lambda: "{},{}\r\n".format(*self._state.memory_sizes),
            "NPLC": lambda: _reply(self._state.nplc),
            "NRDGS": lambda: (
                f"{self._state.number_of_readings},{self._state.sample_event.value}\r\n"
            ),
            "OCOMP": lambda: _integer_reply(int(self._state.offset_compensation)),
            "OPT": lambda: _integer_reply(self._config.installed_option),
            "RANGE": lambda: _reply(self._state.full_scale),
            "SLIST": lambda: _integer_reply(len(self._state.scan_list)),
            "STB": lambda: _integer_reply(self._status_byte),
            "TARM": lambda: _integer_reply(self._state.trigger_arm.value),
            "TERM": lambda: _integer_reply(self._state.terminals),
            "TIMER": lambda: _reply(self._state.timer_s),
            "TRIG": lambda: _integer_reply(self._state.trigger_event.value),
        }

    # -- Transport interface ------------------------------------------------

    def write(self, data: bytes) -> None:
        """Process one or more ``;``-terminated commands."""
        self.writes.append(data)
        for command in data.decode("latin-1").split(";"):
            command = command.strip()
            if command:
                self._execute(command)

    def read_until_eoi(self, timeout_s: float | None = None) -> bytes:
        """Return the next reply, else the next stored reading.

        Raises:
            TransportTimeoutError: If there is nothing to read.
        """
        if self._output:
            return self._output.popleft()
        if self._readings:
            return self._encode(self._take_reading())
        raise TransportTimeoutError("HP3457A emulator: nothing to read")

    def device_clear(self) -> None:
        """Discard pending replies."""
        self._output.clear()

    def serial_poll(self) -> int:
        """Return the status byte; polling clears the service request bit."""
        status_byte = self._status_byte
        self._status_byte &= ~SERVICE_REQUEST
        return status_byte

    def close(self) -> None:
        """Close the emulator (no-op for in-process transport)."""

    # -- Test helpers -------------------------------------------------------

    @property
    def status_byte(self) -> int:
        """The current status byte."""
        return self._status_byte

    @property
    def stored_readings(self) -> int:
        """Number of readings waiting to be read."""
        return len(self._readings)

    def push_reading(self, value: float, *, overflow: bool = False) -> None:
        """Queue a reading and raise the ready condition.

        Args:
            value: The reading in the active function's base unit.
            overflow: Also set the high/low bit.
        """
        self._readings.append(value)
        if overflow:
            self._status_byte |= HIGH_LOW
        self._raise(READY)

    def set_calibration_data(self, data: bytes) -> None:
        """Load the calibration region answered by ``PEEK``.

        Raises:
            ValueError: If *data* is not exactly the region's length.
        """
        length = CALIBRATION_END - CALIBRATION_START + 1
        if len(data) != length:
            raise ValueError(f"calibration data must be {length} bytes, got {len(data)}")
        self._calibration[:length] = data

    def inject_hardware_error(self, auxiliary_code: int) -> None:
        """Flag a hardware error with the given auxiliary error code."""
        self._auxiliary_error_code |= auxiliary_code
        self._flag_error(ErrorFlag.HARDWARE)

    # -- Command processing -------------------------------------------------

    def _execute(self, command: str) -> None:
        if command == "?":
            self.push_reading(self.input_value)
            return
        match = _COMMAND.match(command.upper())
        if match is None:
            self._flag_error(ErrorFlag.SYNTAX)
            return
        mnemonic, query, rest = match.groups()
        if query:
            if mnemonic in self.query_overrides:
                self._output.append(self.query_overrides[mnemonic].encode("latin-1"))
                return
            handler_query = self._queries.get(mnemonic)
            if handler_query is None:
                self._flag_error(ErrorFlag.BAD_HEADER)
                return
            self._output.append(handler_query().encode("latin-1"))
            return
        handler = self._handlers.get(mnemonic)
        if handler is None:
            self._flag_error(ErrorFlag.BAD_HEADER)
            return
        rest = rest.strip()
        if rest.startswith(","):
            rest = rest[1:]
        arguments = [part.strip() for part in rest.split(",")] if rest else []
        try:
            reply = handler(arguments)
        except ValueError:
            self._flag_error(ErrorFlag.BAD_PARAMETER)
            return
        if reply is not None:
            self._output.append(reply.encode("latin-1"))

    def _raise(self, bit: int) -> None:
        self._status_byte |= bit
        if self._state.service_request_mask & bit:
            self._status_byte |= SERVICE_REQUEST

    def _flag_error(self, flag: ErrorFlag) -> None:
        self._error_code |= int(flag)
        if self._state.error_mask & flag:
            self._raise(ERROR)

    def _take_reading(self) -> float:
        if self._state.memory is ReadingMemoryMode.LIFO:
            value = self._readings.pop()
        else:
            value = self._readings.popleft()
        if not self._readings:
            self._status_byte &= ~(READY | HIGH_LOW)
        return value

    def _encode(self, value: float) -> bytes:
        return encode_value(value, self._state.output_format, self.integer_scale)

    # -- Set handlers -------------------------------------------------------

    def _ignore(self, arguments: list[str]) -> None:
        """Accept a command that has no emulated effect."""

    def _mode_selector(self, mode: MeasurementMode) -> Callable[[list[str]], None]:
        def select(arguments: list[str]) -> None:
            self._select_function(mode, arguments[:1])

        return select

    def _select_function(self, mode: MeasurementMode, range_argument: list[str]) -> None:
        state = self._state
        state.mode = mode
        state.auto_range = True
        state.full_scale = RANGES.ranges(mode)[-1].full_scale
        if range_argument and range_argument[0]:
            self._set_range(range_argument)

    def _set_function(self, arguments: list[str]) -> None:
        if not arguments:
            raise ValueError("FUNC needs a function code")
        self._select_function(MeasurementMode(int(float(arguments[0]))), arguments[1:2])

    def _set_range(self, arguments: list[str]) -> None:
        if not arguments or not arguments[0]:
            return
        value = float(arguments[0])
        selected = RANGES.classify(self._state.mode, value)
        if selected is None:
            raise ValueError(f"range {value} out of table")
        self._state.full_scale = selected.full_scale
        self._state.auto_range = False

    def _set_auto_range(self, arguments: list[str]) -> None:
        self._state.auto_range = not arguments or arguments[0] != "0"

    def _set_auto_zero(self, arguments: list[str]) -> None:
        self._state.auto_zero = int(arguments[0]) if arguments else 1

    def _set_channel(self, arguments: list[str]) -> None:
        self._state.channel = int(arguments[0])

    def _set_delay(self, arguments: list[str]) -> None:
        self._state.delay_s = float(arguments[0]) if arguments else -1.0

    def _set_error_mask(self, arguments: list[str]) -> None:
        self._state.error_mask = int(arguments[0]) if arguments else 2047

    def _set_fixed_impedance(self, arguments: list[str]) -> None:
        self._state.fixed_impedance = bool(int(arguments[0])) if arguments else True

    def _set_offset_compensation(self, arguments: list[str]) -> None:
        self._state.offset_compensation = bool(int(arguments[0])) if arguments else True

    def _set_line_frequency_reference(self, arguments: list[str]) -> None:
        self._state.line_frequency_reference_hz = float(arguments[0])

    def _set_math(self, arguments: list[str]) -> None:
        codes = [int(argument) if argument else 0 for argument in arguments[:2]]
        codes += [0] * (2 - len(codes))
        self._state.math = (codes[0], codes[1])

    def _set_memory(self, arguments: list[str]) -> None:
        code = int(arguments[0]) if arguments else ReadingMemoryMode.FIFO.value
        self._state.memory = ReadingMemoryMode(code)
        if self._state.memory is not ReadingMemoryMode.OFF:
            self._readings.clear()

    def _format_memory(self, arguments: list[str]) -> None:
        self._readings.clear()
        self._status_byte &= ~READY

    def _set_memory_sizes(self, arguments: list[str]) -> None:
        readings, subprograms = self._state.memory_sizes
        if arguments and arguments[0]:
            readings = int(arguments[0])
        if len(arguments) > 1 and arguments[1]:
            subprograms = int(arguments[1])
        self._state.memory_sizes = (readings, subprograms)

    def _set_nplc(self, arguments: list[str]) -> None:
        nplc = float(arguments[0]) if arguments and arguments[0] else 0.005
        if not 0.0 <= nplc <= 100.0:
            raise ValueError("NPLC out of range")
        self._state.nplc = nplc

    def _set_number_of_readings(self, arguments: list[str]) -> None:
        if arguments and arguments[0]:
            self._state.number_of_readings = int(arguments[0])
        if len(arguments) > 1 and arguments[1]:
            self._state.sample_event = TriggerEvent(int(arguments[1]))

    def _set_output_format(self, arguments: list[str]) -> None:
        self._state.output_format = ReadingFormat(int(arguments[0]))

    def _set_service_request_mask(self, arguments: list[str]) -> None:
        self._state.service_request_mask = int(arguments[0]) if arguments else 0

    def _set_scan_list(self, arguments: list[str]) -> None:
        self._state.scan_list = tuple(int(argument) for argument in arguments)

    def _set_terminals(self, arguments: list[str]) -> None:
        if arguments:
            self._state.terminals = int(arguments[0])

    def _set_timer(self, arguments: list[str]) -> None:
        self._state.timer_s = float(arguments[0])

    def _set_trigger_arm(self, arguments: list[str]) -> None:
        if arguments and arguments[0]:
            self._state.trigger_arm = TriggerEvent(int(arguments[0]))
        else:
            self._state.trigger_arm = TriggerEvent.AUTO

    def _set_trigger_event(self, arguments: list[str]) -> None:
        if arguments and arguments[0]:
            self._state.trigger_event = TriggerEvent(int(arguments[0]))
        else:
            self._state.trigger_event = TriggerEvent.AUTO

    def _clear_status_byte(self, arguments: list[str]) -> None:
        self._status_byte = 0

    def _fire_service_request(self, arguments: list[str]) -> None:
        self._status_byte |= SERVICE_REQUEST

    def _reset(self, arguments: list[str]) -> None:
        self._state = _MeterState()
        self._readings.clear()
        self._output.clear()
        self._status_byte = 0
        self._error_code = 0
        self._auxiliary_error_code = 0

    def _preset(self, arguments: list[str]) -> None:
        self._reset(arguments)
        self._state.trigger_event = TriggerEvent.SYN
        self._state.nplc = 1.0

    # -- Reply-producing commands -------------------------------------------

    def _peek(self, arguments: list[str]) -> str:
        address = int(arguments[0])
        if address in self.peek_overrides:
            return _integer_reply(self.peek_overrides[address])
        word = 0
        if CALIBRATION_START <= address <= CALIBRATION_END:
            offset = address - CALIBRATION_START
            word = (self._calibration[offset] << 8) | self._calibration[offset + 1]
        return _integer_reply(word)

    def _recall_math(self, arguments: list[str]) -> str:
        return _reply(0.0)

    def _recall_memory(self, arguments: list[str]) -> str:
        first = int(arguments[0]) if arguments and arguments[0] else 1
        count = int(arguments[1]) if len(arguments) > 1 and arguments[1] else 1
        values = list(self._readings)[first - 1 : first - 1 + count]
        if not values:
            raise ValueError("no stored readings")
        return ",".join(f"{value:+.8E}" for value in values) + "\r\n"

    # -- Query handlers -----------------------------------------------------

    def _get_error(self) -> str:
        code = self._error_code
        self._error_code = 0
        self._status_byte &= ~ERROR
        return _integer_reply(code)

    def _get_auxiliary_error(self) -> str:
        code = self._auxiliary_error_code
        self._auxiliary_error_code = 0
        return _integer_reply(code)
