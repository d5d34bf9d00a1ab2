"""R&S ESH-3 emulator.

Provides an in-process receiver implementing the ``GpibTransport``
protocol. It accepts the command language of
:mod:`benchbus_esh3.commands`, keeps a status byte with the abnormal
condition code, and answers readings queued by tests or produced by the
``X1`` trigger.
"""

from __future__ import annotations

import re
from collections import deque
from dataclasses import dataclass, field
from typing import Callable

from benchbus_core.errors import TransportTimeoutError
from benchbus_esh3.reading import ReadingStatus, ReadingType
from benchbus_esh3.settings import MAX_FREQUENCY_HZ, MIN_FREQUENCY_HZ, DataOutputMode
from benchbus_esh3.status import ABNORMAL, CODE_MASK, EXTENSION, READY, SERVICE_REQUEST

_COMMAND = re.compile(
    r"^(SF|FR|SA|SO|RA|IA|TS|SL|SU|SR|SP|SC|SE|ST|RC|WZ|WT|BP|XP|YP|[ABCDGJKLMNOPUXYZ])(.*)$"
)

SYNTAX_ERROR = 0x0
DATA_ABOVE_LIMIT = 0x2
DATA_BELOW_LIMIT = 0x3
NOT_OCCUPIED = 0x4

_LEVEL_READINGS = {
    DataOutputMode.DB: ReadingType.LEVEL,
    DataOutputMode.DBM: ReadingType.POWER,
    DataOutputMode.V_A: ReadingType.VOLTAGE,
}


@dataclass
class _ReceiverState:
    frequency_mhz: float = 10.0
    attenuation_mode: int = 1
    if_bandwidth: int = 1
    demodulation_mode: int = 0
    indicating_mode: int = 1
    data_output_mode: DataOutputMode = DataOutputMode.DB
    measurement_time_s: float = 0.1
    eoi: bool = False
    srq_on_data_ready: bool = False
    srq_on_local: bool = False
    display_text: str = ""
    special_functions: set[int] = field(default_factory=set)


def _flag(argument: str) -> bool:
    if argument not in ("0", "1"):
        raise ValueError(f"expected 0 or 1, got {argument!r}")
    return argument == "1"


def _code(argument: str, low: int, high: int) -> int:
    value = int(argument)
    if not low <= value <= high:
        raise ValueError(f"code out of range: {argument!r}")
    return value


class Esh3Emulator:
    """In-process ESH-3 implementing ``GpibTransport``.

    Readings are queued with :meth:`push_reading` (or produced by ``X1``
    from :attr:`level_db`). Each queued reading raises the ready bit and,
    after ``P1``, a service request. Errors set the abnormal bit and its
    code and always request service; a serial poll clears both.
    """

    def __init__(self) -> None:
        self._state = _ReceiverState()
        self._output: deque[bytes] = deque()
        self._status_byte = 0
        self._stored: set[int] = set()

        self.level_db = 0.0
        self.writes: list[bytes] = []
        self.received: list[str] = []

        self._handlers: dict[str, Callable[[str], object]] = {
            "A": self._set_attenuation_mode,
            "B": lambda argument: setattr(self._state, "if_bandwidth", _code(argument, 1, 4)),
            "BP": self._no_argument,
            "C": lambda argument: _code(argument, 1, 2),
            "D": lambda argument: setattr(self._state, "demodulation_mode", _code(argument, 0, 6)),
            "FR": self._set_frequency,
            "G": _flag,
            "IA": self._set_attenuation,
            "J": lambda argument: setattr(self._state, "srq_on_local", _flag(argument)),
            "K": _flag,
            "L": lambda argument: _code(argument, 1, 3),
            "M": lambda argument: _code(argument, 0, 2),
            "N": lambda argument: setattr(self._state, "indicating_mode", _code(argument, 1, 4)),
            "O": self._set_data_output_mode,
            "P": lambda argument: setattr(self._state, "srq_on_data_ready", _flag(argument)),
            "RA": self._set_attenuation,
            "RC": self._recall,
            "SA": self._check_frequency,
            "SC": self._no_argument,
            "SE": float,
            "SF": self._special_function,
            "SL": float,
            "SO": self._check_frequency,
            "SP": self._no_argument,
            "SR": self._no_argument,
            "ST": self._store,
            "SU": float,
            "TS": self._set_measurement_time,
            "U": lambda argument: setattr(self._state, "eoi", _flag(argument)),
            "WT": lambda argument: setattr(self._state, "display_text", argument[:13]),
            "WZ": lambda argument: _code(argument, 0, 31),
            "X": self._trigger,
            "XP": lambda argument: _code(argument, 0, 1023),
            "Y": _flag,
            "YP": lambda argument: _code(argument, 0, 255),
            "Z": _flag,
        }

    # -- Transport interface ------------------------------------------------

    def write(self, data: bytes) -> None:
        """Process carriage-return terminated, comma-separated commands."""
        self.writes.append(data)
        for segment in data.decode("latin-1").split("\r"):
            for command in self._split(segment.strip("\n")):
                self._execute(command)

    def read_until_eoi(self, timeout_s: float | None = None) -> bytes:
        """Return the next queued reading.

        Raises:
            TransportTimeoutError: If there is nothing to read.
        """
        if not self._output:
            raise TransportTimeoutError("ESH3 emulator: nothing to read")
        reply = self._output.popleft()
        if not self._output:
            self._status_byte &= ~READY
        return reply

    def device_clear(self) -> None:
        """Discard pending readings."""
        self._output.clear()
        self._status_byte &= ~READY

    def serial_poll(self) -> int:
        """Return the status byte; polling clears the request and the error."""
        status_byte = self._status_byte
        self._status_byte &= ~(SERVICE_REQUEST | ABNORMAL | EXTENSION | CODE_MASK)
        return status_byte

    def close(self) -> None:
        """Close the emulator (no-op for in-process transport)."""

    # -- Test helpers -------------------------------------------------------

    @property
    def status_byte(self) -> int:
        """The current status byte."""
        return self._status_byte

    @property
    def frequency_mhz(self) -> float:
        return self._state.frequency_mhz

    @property
    def display_text(self) -> str:
        return self._state.display_text

    @property
    def srq_on_data_ready(self) -> bool:
        return self._state.srq_on_data_ready

    @property
    def special_functions(self) -> frozenset[int]:
        """Special functions currently switched on (``SF11`` adds 11)."""
        return frozenset(self._state.special_functions)

    @property
    def pending_readings(self) -> int:
        return len(self._output)

    def push_reading(
        self,
        reading_type: ReadingType,
        value: float,
        status: ReadingStatus = ReadingStatus.VALID,
    ) -> None:
        """Queue a reading and raise the ready condition."""
        reply = f"{reading_type.value}{status.value}{value:+.4f}\r\n"
        self.push_raw(reply.encode("ascii"))

    def push_raw(self, data: bytes) -> None:
        """Queue an arbitrary reply, for malformed-reading tests."""
        self._output.append(data)
        self._status_byte |= READY
        if self._state.srq_on_data_ready:
            self._status_byte |= SERVICE_REQUEST

    def flag_error(self, code: int, *, extension: bool = False) -> None:
        """Raise the abnormal condition with the given code."""
        self._status_byte &= ~(EXTENSION | CODE_MASK)
        self._status_byte |= ABNORMAL | SERVICE_REQUEST | (code & CODE_MASK)
        if extension:
            self._status_byte |= EXTENSION

    # -- Command processing -------------------------------------------------

    @staticmethod
    def _split(segment: str) -> list[str]:
        commands: list[str] = []
        rest = segment
        while rest:
            if rest.startswith("WT"):
                commands.append(rest)
                break
            command, _, rest = rest.partition(",")
            command = command.strip()
            if command:
                commands.append(command)
        return commands

    def _execute(self, command: str) -> None:
        self.received.append(command)
        match = _COMMAND.match(command)
        if match is None:
            self.flag_error(SYNTAX_ERROR)
            return
        mnemonic, argument = match.groups()
        try:
            self._handlers[mnemonic](argument)
        except ValueError:
            self.flag_error(SYNTAX_ERROR)

    # -- Handlers -----------------------------------------------------------

    def _no_argument(self, argument: str) -> None:
        if argument:
            raise ValueError(f"unexpected argument: {argument!r}")

    def _check_frequency(self, argument: str) -> float | None:
        frequency_mhz = float(argument)
        frequency_hz = round(frequency_mhz * 1e6)
        if frequency_hz > MAX_FREQUENCY_HZ:
            self.flag_error(DATA_ABOVE_LIMIT)
            return None
        if frequency_hz < MIN_FREQUENCY_HZ:
            self.flag_error(DATA_BELOW_LIMIT)
            return None
        return frequency_mhz

    def _set_frequency(self, argument: str) -> None:
        frequency_mhz = self._check_frequency(argument)
        if frequency_mhz is not None:
            self._state.frequency_mhz = frequency_mhz

    def _set_attenuation_mode(self, argument: str) -> None:
        self._state.attenuation_mode = _code(argument, 1, 2)

    def _set_attenuation(self, argument: str) -> None:
        if float(argument) < 0:
            raise ValueError(f"negative attenuation: {argument!r}")
        self._state.attenuation_mode = 0

    def _set_data_output_mode(self, argument: str) -> None:
        self._state.data_output_mode = DataOutputMode(_code(argument, 1, 3))

    def _set_measurement_time(self, argument: str) -> None:
        time_s = float(argument)
        if time_s <= 0:
            raise ValueError(f"measurement time must be > 0: {argument!r}")
        self._state.measurement_time_s = time_s

    def _special_function(self, argument: str) -> None:
        number = _code(argument, 0, 91)
        functions = self._state.special_functions
        if number == 0:
            functions.difference_update(range(10, 50))
        elif number < 50 and number % 2:
            functions.add(number)
        elif number < 50:
            functions.discard(number + 1)
        else:
            functions.add(number)

    def _store(self, argument: str) -> None:
        self._stored.add(_code(argument, 0, 99))

    def _recall(self, argument: str) -> None:
        if _code(argument, 0, 99) not in self._stored:
            self.flag_error(NOT_OCCUPIED)

    def _trigger(self, argument: str) -> None:
        if argument != "1":
            raise ValueError(f"unknown trigger: {argument!r}")
        reading_type = _LEVEL_READINGS[self._state.data_output_mode]
        value = self.level_db
        if reading_type is ReadingType.VOLTAGE:
            value = 10 ** (self.level_db / 20)
        self.push_reading(reading_type, value)
