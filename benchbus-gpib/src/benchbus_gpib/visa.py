"""PyVISA transport for GPIB instruments.

This module provides a VISA-based implementation of :class:`GpibTransport`.
It wraps the PyVISA library, which is lazily imported so that the engine,
the emulators and the tests work without VISA installed.

Resource strings take the usual GPIB form, e.g. ``GPIB0::22::INSTR``.
Reads and writes are raw: commands carry their own terminators and replies
end where the instrument asserts EOI.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from benchbus_core.errors import BenchbusError, TransportError, TransportTimeoutError

logger = logging.getLogger(__name__)

_GPIB_RESOURCE = re.compile(r"^GPIB\d*::(\d+)(?:::\d+)?(?:::INSTR)?$", re.IGNORECASE)


def parse_gpib_address(resource_string: str) -> int | None:
    """Return the primary address of a GPIB resource string.

    Args:
        resource_string: A VISA resource string such as ``GPIB0::22::INSTR``.

    Returns:
        The primary address, or None if the string is not a GPIB resource.
    """
    match = _GPIB_RESOURCE.match(resource_string.strip())
    if match is None:
        return None
    return int(match.group(1))


class VisaGpibResource:
    """GPIB transport backed by PyVISA.

    The ``pyvisa`` library is imported lazily on :meth:`open`. VISA I/O
    errors are translated into :class:`TransportError`, and VISA timeouts
    into :class:`TransportTimeoutError`.

    Attributes:
        resource_string: The VISA resource address string.
        is_open: Whether the resource is currently open.

    Args:
        resource_string: VISA resource address (``GPIB0::22::INSTR``).
        timeout_ms: I/O timeout in milliseconds (applied on open).

    Example:
        >>> resource = VisaGpibResource("GPIB0::22::INSTR")
        >>> resource.open()
        >>> resource.write(b"ID?;")
        >>> print(resource.read_until_eoi())
        >>> resource.close()
    """

    def __init__(self, resource_string: str, *, timeout_ms: int = 5000) -> None:
        self._resource_string = resource_string
        self._timeout_ms = timeout_ms
        self._pyvisa: Any = None
        self._rm: Any = None
        self._resource: Any = None

    # -- Properties ----------------------------------------------------------

    @property
    def resource_string(self) -> str:
        """The VISA resource string."""
        return self._resource_string

    @property
    def timeout_ms(self) -> int:
        """The I/O timeout in milliseconds."""
        return self._timeout_ms

    @property
    def is_open(self) -> bool:
        """Return True if the resource is currently open."""
        return self._resource is not None

    # -- Lifecycle -----------------------------------------------------------

    def open(self) -> None:
        """Open the VISA resource.

        Raises:
            BenchbusError: If ``pyvisa`` is not installed.
            TransportError: If the resource cannot be opened.
        """
        if self._resource is not None:
            return

        try:
            import pyvisa  # type: ignore[import-not-found]  # pylint: disable=import-outside-toplevel
        except ImportError as exc:
            raise BenchbusError(
                "pyvisa library is not installed. Install with: pip install pyvisa"
            ) from exc

        self._pyvisa = pyvisa
        try:
            self._rm = pyvisa.ResourceManager()
            self._resource = self._rm.open_resource(self._resource_string)
            self._resource.timeout = self._timeout_ms
        except Exception as exc:
            self._resource = None
            self._close_manager()
            raise TransportError(
                f"Failed to open VISA resource {self._resource_string!r}: {exc}"
            ) from exc
        logger.debug("Opened %s", self._resource_string)

    def close(self) -> None:
        """Close the VISA resource and resource manager.

        Safe to call multiple times.
        """
        if self._resource is not None:
            try:
                self._resource.close()
            except Exception:  # pylint: disable=broad-except
                logger.debug("Error closing %s", self._resource_string, exc_info=True)
            self._resource = None
        self._close_manager()

    def _close_manager(self) -> None:
        if self._rm is not None:
            try:
                self._rm.close()
            except Exception:  # pylint: disable=broad-except
                logger.debug("Error closing VISA resource manager", exc_info=True)
            self._rm = None

    # -- Transport interface -------------------------------------------------

    def write(self, data: bytes) -> None:
        """Send raw bytes to the instrument.

        Raises:
            TransportError: If the resource is not open or the write fails.
        """
        resource = self._require_open()
        try:
            resource.write_raw(data)
        except self._pyvisa.errors.VisaIOError as exc:
            raise self._translate(exc, "write") from exc

    def read_until_eoi(self, timeout_s: float | None = None) -> bytes:
        """Read raw bytes until the instrument asserts EOI.

        Args:
            timeout_s: Optional timeout override for this read only.

        Raises:
            TransportError: If the resource is not open or the read fails.
            TransportTimeoutError: If the read times out.
        """
        resource = self._require_open()
        if timeout_s is not None:
            resource.timeout = int(timeout_s * 1000)
        try:
            data: bytes = resource.read_raw()
        except self._pyvisa.errors.VisaIOError as exc:
            raise self._translate(exc, "read") from exc
        finally:
            if timeout_s is not None:
                resource.timeout = self._timeout_ms
        return data

    def device_clear(self) -> None:
        """Send a selected device clear to the instrument."""
        resource = self._require_open()
        try:
            resource.clear()
        except self._pyvisa.errors.VisaIOError as exc:
            raise self._translate(exc, "device clear") from exc

    def serial_poll(self) -> int:
        """Serial poll the instrument and return its status byte."""
        resource = self._require_open()
        try:
            return int(resource.read_stb()) & 0xFF
        except self._pyvisa.errors.VisaIOError as exc:
            raise self._translate(exc, "serial poll") from exc

    # -- Private helpers -----------------------------------------------------

    def _require_open(self) -> Any:
        if self._resource is None:
            raise TransportError("VISA resource is not open")
        return self._resource

    def _translate(self, exc: Any, operation: str) -> TransportError:
        message = f"VISA {operation} on {self._resource_string!r} failed: {exc}"
        if exc.error_code == self._pyvisa.constants.StatusCode.error_timeout:
            return TransportTimeoutError(message)
        return TransportError(message)
