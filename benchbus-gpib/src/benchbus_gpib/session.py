"""Bus session: transport access scoped to a single token hold."""

from __future__ import annotations

import logging

from benchbus_core.errors import EngineStateError
from benchbus_gpib.transport import GpibTransport

logger = logging.getLogger(__name__)

ENCODING = "latin-1"


class BusSession:
    """Text-level access to the transport while the bus token is held.

    The transaction engine creates one session per token hold and closes it
    before releasing the token. Any use after :meth:`close` raises
    :class:`EngineStateError`, so a handler cannot smuggle bus access out of
    its transaction.

    Args:
        transport: The underlying transport.
        name: Instrument name used in log messages.
        timeout_s: Read timeout applied to every read.
    """

    def __init__(self, transport: GpibTransport, name: str, timeout_s: float | None = None) -> None:
        self._transport = transport
        self._name = name
        self._timeout_s = timeout_s
        self._open = True

    @property
    def is_open(self) -> bool:
        """Return True while the owning token hold is active."""
        return self._open

    def close(self) -> None:
        """Invalidate the session."""
        self._open = False

    # -- Bus operations ------------------------------------------------------

    def write(self, text: str) -> None:
        """Write a command string.

        Args:
            text: Command text including its terminator (``"DCV;"``).
        """
        self._check()
        logger.debug("%s <- %r", self._name, text)
        self._transport.write(text.encode(ENCODING))

    def read_raw(self) -> bytes:
        """Read one EOI-terminated block of raw bytes."""
        self._check()
        data = self._transport.read_until_eoi(self._timeout_s)
        logger.debug("%s -> %r", self._name, data)
        return data

    def read(self) -> str:
        """Read one EOI-terminated reply and decode it as text."""
        return self.read_raw().decode(ENCODING)

    def query(self, text: str) -> str:
        """Write a command and read the reply.

        Args:
            text: Query text including its terminator (``"RANGE?;"``).

        Returns:
            The undecorated reply text; callers strip as needed.
        """
        self.write(text)
        return self.read()

    def serial_poll(self) -> int:
        """Serial poll the instrument."""
        self._check()
        status_byte = self._transport.serial_poll()
        logger.debug("%s status byte 0x%02x", self._name, status_byte)
        return status_byte

    def device_clear(self) -> None:
        """Clear the instrument's interface."""
        self._check()
        logger.debug("%s device clear", self._name)
        self._transport.device_clear()

    def _check(self) -> None:
        if not self._open:
            raise EngineStateError("bus session used outside its token hold")
