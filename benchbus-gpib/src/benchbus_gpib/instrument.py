"""Instrument facade tying transport, engine and poller together.

Instrument packages return an :class:`Instrument` (or a subclass with typed
convenience methods) from their ``create_instrument`` factory. Hosts then
register listeners and call :meth:`Instrument.open`.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from types import TracebackType
from typing import Any, Callable

from benchbus_gpib.driver import InstrumentDriver
from benchbus_gpib.engine import TransactionEngine
from benchbus_gpib.poller import ServiceRequestPoller
from benchbus_gpib.transport import GpibTransport

logger = logging.getLogger(__name__)


class _Fanout:
    """Thread-safe list of listeners called in registration order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: list[Callable[[Any], None]] = []

    def add(self, listener: Callable[[Any], None]) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove(self, listener: Callable[[Any], None]) -> None:
        with self._lock:
            self._listeners.remove(listener)

    def __call__(self, value: Any) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(value)


class Instrument:
    """One GPIB instrument under engine control.

    Args:
        transport: An open transport to the instrument.
        driver: The instrument driver.
        timeout_s: Default bus token wait for commands.
        poll_period_s: Service-request poll period, or None to rely on
            the host calling :meth:`handle_service_request`.
    """

    def __init__(
        self,
        transport: GpibTransport,
        driver: InstrumentDriver,
        *,
        timeout_s: float = 10.0,
        poll_period_s: float | None = 1.0,
    ) -> None:
        self._transport = transport
        self._settings_listeners = _Fanout()
        self._status_listeners = _Fanout()
        self._reading_listeners = _Fanout()
        self._engine = TransactionEngine(
            transport,
            driver,
            timeout_s=timeout_s,
            on_settings_changed=self._settings_listeners,
            on_status_changed=self._status_listeners,
            on_reading_produced=self._reading_listeners,
        )
        self._poller = (
            ServiceRequestPoller(self._engine, poll_period_s) if poll_period_s is not None else None
        )

    # -- Properties ----------------------------------------------------------

    @property
    def name(self) -> str:
        """Instrument name."""
        return self._engine.driver.name

    @property
    def engine(self) -> TransactionEngine:
        """The underlying transaction engine."""
        return self._engine

    @property
    def transport(self) -> GpibTransport:
        """The underlying transport."""
        return self._transport

    @property
    def settings(self) -> Any:
        """The current settings snapshot, or None before :meth:`open`."""
        return self._engine.settings

    @property
    def status(self) -> Any:
        """The most recently published status, or None."""
        return self._engine.status

    # -- Listeners -----------------------------------------------------------

    def add_settings_listener(self, listener: Callable[[Any], None]) -> None:
        """Register a callback for new settings snapshots."""
        self._settings_listeners.add(listener)

    def add_status_listener(self, listener: Callable[[Any], None]) -> None:
        """Register a callback for new status values."""
        self._status_listeners.add(listener)

    def add_reading_listener(self, listener: Callable[[Any], None]) -> None:
        """Register a callback for readings."""
        self._reading_listeners.add(listener)

    def remove_reading_listener(self, listener: Callable[[Any], None]) -> None:
        """Unregister a reading callback.

        Raises:
            ValueError: If the listener is not registered.
        """
        self._reading_listeners.remove(listener)

    # -- Lifecycle -----------------------------------------------------------

    def open(self) -> None:
        """Start the engine, initialize the instrument and start polling."""
        self._engine.start()
        self._engine.initialize()
        if self._poller is not None:
            self._poller.start()

    def close(self) -> None:
        """Stop polling and the engine, then close the transport.

        Safe to call multiple times.
        """
        if self._poller is not None:
            self._poller.stop()
        self._engine.stop()
        self._transport.close()
        logger.debug("%s closed", self.name)

    def __enter__(self) -> Instrument:
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    # -- Commands ------------------------------------------------------------

    def execute(self, opcode: str, **arguments: Any) -> Any:
        """Run a command synchronously and return its result."""
        return self._engine.execute(opcode, **arguments)

    def enqueue(self, opcode: str, **arguments: Any) -> Future[Any]:
        """Queue a command; the future carries its result."""
        return self._engine.enqueue(opcode, **arguments)

    def handle_service_request(self, status_byte: int) -> bool:
        """Forward a service request delivered by the bus driver."""
        return self._engine.handle_service_request(status_byte)

    def flush(self, timeout_s: float | None = None) -> bool:
        """Wait until all published events have reached the listeners."""
        return self._engine.flush(timeout_s)
