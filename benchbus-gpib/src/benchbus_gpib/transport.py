"""GPIB transport protocol definition.

This module defines the :class:`GpibTransport` protocol, which specifies the
byte-level interface the transaction engine needs from the bus driver. All
operations are synchronous and blocking; timeouts are supplied by the
transport's own configuration or per call.

Implementations include:
- :class:`benchbus_gpib.VisaGpibResource`: PyVISA-backed transport for real hardware
- Emulator transports in instrument driver packages (e.g., benchbus-hp3457a)
"""

from __future__ import annotations

from typing import Protocol


class GpibTransport(Protocol):
    """Protocol for a single instrument on a GPIB bus.

    Implementations raise :class:`~benchbus_core.TransportError` (or its
    subclass :class:`~benchbus_core.TransportTimeoutError`) on I/O failure.

    Only the transaction engine calls these methods, and only while it holds
    the bus token.
    """

    def write(self, data: bytes) -> None:
        """Send bytes to the instrument, asserting EOI on the last byte.

        Args:
            data: The encoded command.
        """
        ...

    def read_until_eoi(self, timeout_s: float | None = None) -> bytes:
        """Read from the instrument until it asserts EOI.

        Args:
            timeout_s: Optional override of the transport timeout.

        Returns:
            The raw bytes, including any trailing terminator characters.
        """
        ...

    def device_clear(self) -> None:
        """Send the selected device clear (SDC) message."""
        ...

    def serial_poll(self) -> int:
        """Serial poll the instrument.

        Returns:
            The status byte (0-255).
        """
        ...

    def close(self) -> None:
        """Close the transport and release resources."""
        ...
