"""Bus-serialized transaction engine.

The :class:`TransactionEngine` is the only component that touches the bus.
It owns the :class:`~benchbus_gpib.token.BusToken` and routes three kinds of
work through it:

- Initialization: a blocking reset/identify exchange producing the initial
  settings snapshot.
- Commands: submitted synchronously (:meth:`TransactionEngine.execute`) or
  fire-and-forget (:meth:`TransactionEngine.enqueue`), executed one token
  hold per command.
- Service requests: handled best-effort. If the bus is busy the
  notification is dropped rather than queued.

Settings, status and readings are published to the host through three
callbacks, delivered in publication order on a dispatcher thread so a slow
listener never holds up the bus. When the engine is not started, callbacks
are delivered on the calling thread right after the token is released.

Example:
    >>> engine = TransactionEngine(transport, driver, on_reading_produced=print)
    >>> with engine:
    ...     engine.initialize()
    ...     engine.execute("measurement_mode", mode=MeasurementMode.DC_VOLTAGE)
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from concurrent.futures import Future
from contextlib import contextmanager
from dataclasses import dataclass, replace
from types import TracebackType
from typing import Any, Callable, Iterator, Union

from benchbus_core.errors import (
    BenchbusError,
    EngineStateError,
    PreconditionError,
    StatusEscalationError,
    TransportTimeoutError,
)
from benchbus_gpib.command import Command, OpcodeHandler, Query
from benchbus_gpib.driver import InstrumentDriver
from benchbus_gpib.session import BusSession
from benchbus_gpib.token import BusToken
from benchbus_gpib.transport import GpibTransport

logger = logging.getLogger(__name__)

SERVICE_REQUEST_BIT = 0x40

Listener = Callable[[Any], None]


@dataclass
class _Pending:
    command: Command
    handler: OpcodeHandler
    future: Future[Any]


_Event = Union[tuple[Listener, Any], threading.Event]


class TransactionEngine:
    """Serializes all bus traffic of one instrument.

    Args:
        transport: The instrument's transport; must already be open.
        driver: The instrument driver.
        timeout_s: Default bus token wait for commands, in seconds.
        on_settings_changed: Called with each newly published settings
            snapshot.
        on_status_changed: Called with each newly published status.
        on_reading_produced: Called with each reading.
    """

    def __init__(
        self,
        transport: GpibTransport,
        driver: InstrumentDriver,
        *,
        timeout_s: float = 10.0,
        on_settings_changed: Listener | None = None,
        on_status_changed: Listener | None = None,
        on_reading_produced: Listener | None = None,
    ) -> None:
        if timeout_s <= 0:
            raise ValueError("timeout_s must be > 0")
        self._transport = transport
        self._driver = driver
        self._timeout_s = timeout_s
        self._on_settings_changed = on_settings_changed
        self._on_status_changed = on_status_changed
        self._on_reading_produced = on_reading_produced

        self._token = BusToken()
        self._settings: Any = None
        self._status: Any = None

        self._commands: queue.Queue[_Pending | None] = queue.Queue()
        self._events: queue.Queue[_Event | None] = queue.Queue()
        self._worker: threading.Thread | None = None
        self._dispatcher: threading.Thread | None = None
        self._stopping = threading.Event()
        self._lifecycle_lock = threading.Lock()

    # -- Properties ----------------------------------------------------------

    @property
    def driver(self) -> InstrumentDriver:
        """The instrument driver."""
        return self._driver

    @property
    def settings(self) -> Any:
        """The current settings snapshot, or None before initialization."""
        return self._settings

    @property
    def status(self) -> Any:
        """The most recently published status, or None."""
        return self._status

    @property
    def is_running(self) -> bool:
        """Return True if the worker and dispatcher threads are running."""
        return self._worker is not None

    # -- Lifecycle -----------------------------------------------------------

    def start(self) -> None:
        """Start the command worker and the event dispatcher threads."""
        with self._lifecycle_lock:
            if self._worker is not None:
                return
            self._stopping.clear()
            name = self._driver.name
            self._dispatcher = threading.Thread(
                target=self._dispatch_loop, name=f"{name}-dispatch", daemon=True
            )
            self._worker = threading.Thread(
                target=self._work_loop, name=f"{name}-worker", daemon=True
            )
            self._dispatcher.start()
            self._worker.start()

    def stop(self, timeout_s: float | None = None) -> None:
        """Stop both threads.

        Commands still queued fail with :class:`EngineStateError`. Events
        already published are delivered before the dispatcher exits.

        Args:
            timeout_s: Maximum time to wait for each thread.
        """
        with self._lifecycle_lock:
            worker, dispatcher = self._worker, self._dispatcher
            if worker is None or dispatcher is None:
                return
            self._stopping.set()
            for pending in self._drain_commands():
                self._fail_stopped(pending)
            self._commands.put(None)
            worker.join(timeout_s)
            self._worker = None
            for pending in self._drain_commands():
                self._fail_stopped(pending)
            self._events.put(None)
            dispatcher.join(timeout_s)
            self._dispatcher = None

    def __enter__(self) -> TransactionEngine:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.stop()

    # -- Initialization ------------------------------------------------------

    def initialize(self) -> Any:
        """Reset the instrument and publish its initial settings snapshot.

        Waits for the bus without a timeout. Queued commands that have not
        started are cancelled. Once the snapshot is published the driver's
        follow-up commands are submitted (fire-and-forget when the engine
        is running, synchronously otherwise).

        Returns:
            The initial settings snapshot.
        """
        for pending in self._drain_commands():
            pending.future.cancel()

        with self._hold(None) as bus:
            bus.device_clear()
            if self._driver.settle_s > 0:
                time.sleep(self._driver.settle_s)
            settings = self._driver.initialize(bus)
            self._settings = settings
            self._publish(self._on_settings_changed, settings)
        logger.info("%s initialized", self._driver.name)

        for command in self._driver.follow_up_commands():
            if self.is_running:
                self.submit(replace(command, synchronous=False))
                continue
            try:
                self.submit(replace(command, synchronous=True))
            except BenchbusError as exc:
                logger.warning("%s: %s failed: %s", self._driver.name, command.opcode, exc)
        return settings

    # -- Command submission --------------------------------------------------

    def submit(self, command: Command) -> Any:
        """Submit a command.

        Validation and the settings precondition are checked on the calling
        thread before anything is queued or sent.

        Args:
            command: The command.

        Returns:
            The parsed result for a synchronous command; a
            :class:`~concurrent.futures.Future` for a fire-and-forget one.

        Raises:
            CommandValidationError: If the opcode or arguments are invalid.
            PreconditionError: If the opcode needs settings and none exist.
            EngineStateError: For a fire-and-forget command on a stopped
                engine.
            TransportError: If a synchronous command fails on the bus.
            ProtocolError: If a synchronous command's reply is malformed.
        """
        handler = self._prepare(command)
        if command.synchronous:
            return self._run(command, handler)
        if self._worker is None or self._stopping.is_set():
            raise EngineStateError("engine is not running")
        future: Future[Any] = Future()
        self._commands.put(_Pending(command, handler, future))
        return future

    def execute(self, opcode: str, **arguments: Any) -> Any:
        """Run a command and wait for its result."""
        return self.submit(Command(opcode, arguments))

    def enqueue(self, opcode: str, **arguments: Any) -> Future[Any]:
        """Queue a command and return immediately.

        Returns:
            A future resolved with the result or the failure.
        """
        future: Future[Any] = self.submit(Command(opcode, arguments, synchronous=False))
        return future

    def refresh_status(self, timeout_s: float | None = None) -> Any:
        """Serial poll, escalate and publish the instrument status.

        Returns:
            The escalated status.
        """
        with self._hold(self._timeout_s if timeout_s is None else timeout_s) as bus:
            return self._read_status(bus, bus.serial_poll())

    def flush(self, timeout_s: float | None = None) -> bool:
        """Wait until every event published so far has been delivered.

        Returns:
            False if the timeout expired first.
        """
        if self._dispatcher is None:
            self._deliver_pending()
            return True
        marker = threading.Event()
        self._events.put(marker)
        return marker.wait(timeout_s)

    # -- Service requests ----------------------------------------------------

    def handle_service_request(self, status_byte: int) -> bool:
        """Handle a service request whose status byte is already known.

        Returns:
            False if the bus was busy and the notification was dropped.
        """
        with self._try_hold() as bus:
            if bus is None:
                logger.debug("%s: bus busy, dropping service request", self._driver.name)
                return False
            self._handle_notification(bus, status_byte)
            return True

    def poll_service_request(self) -> bool:
        """Serial poll the instrument and handle a pending service request.

        Does nothing if the bus is busy.

        Returns:
            True if a service request was found and handled.
        """
        with self._try_hold() as bus:
            if bus is None:
                return False
            status_byte = bus.serial_poll()
            if not status_byte & SERVICE_REQUEST_BIT:
                return False
            self._handle_notification(bus, status_byte)
            return True

    def _handle_notification(self, bus: BusSession, status_byte: int) -> None:
        name = self._driver.name
        try:
            status = self._read_status(bus, status_byte)
            if not status.ready:
                return
            settings = self._settings
            if settings is None:
                logger.warning("%s: no settings yet, not harvesting readings", name)
                return
            for reading in self._driver.harvest(bus, settings, status):
                self._publish(self._on_reading_produced, reading)
        except BenchbusError as exc:
            logger.warning("%s: service request handling aborted: %s", name, exc)

    # -- Transactions --------------------------------------------------------

    def _prepare(self, command: Command) -> OpcodeHandler:
        handler = self._driver.commands.lookup(command.opcode)
        handler.validate(command.arguments)
        settings = self._settings
        if handler.requires_settings and settings is None:
            raise PreconditionError(f"{command.opcode} requires instrument settings")
        if handler.render is not None:
            handler.render(command.arguments, settings)
        return handler

    def _run(self, command: Command, handler: OpcodeHandler) -> Any:
        timeout_s = self._timeout_s if command.timeout_s is None else command.timeout_s
        with self._hold(timeout_s) as bus:
            old = self._settings
            if handler.requires_settings and old is None:
                raise PreconditionError(f"{command.opcode} requires instrument settings")
            result: Any = None
            if handler.exchange is not None:
                result = handler.exchange(bus, command.arguments, old)
            elif handler.render is not None:
                replies: list[str] = []
                for operation in handler.render(command.arguments, old):
                    if isinstance(operation, Query):
                        replies.append(bus.query(operation.text))
                    else:
                        bus.write(operation.text)
                if handler.parse is not None:
                    result = handler.parse(replies, command.arguments, old)
            new = old
            if handler.derive is not None:
                derived = handler.derive(old, command.arguments, result)
                if derived is not None:
                    new = derived
            self._settings = new

        if new is not old:
            self._publish(self._on_settings_changed, new)
            self.refresh_status(timeout_s)
        return result

    def _read_status(self, bus: BusSession, status_byte: int) -> Any:
        status = self._driver.decode_status(status_byte)
        try:
            status = self._driver.escalate_status(bus, status)
        except StatusEscalationError as exc:
            self._set_status(exc.partial_status)
            raise
        self._set_status(status)
        return status

    def _set_status(self, status: Any) -> None:
        self._status = status
        self._publish(self._on_status_changed, status)

    @contextmanager
    def _hold(self, timeout_s: float | None) -> Iterator[BusSession]:
        if not self._token.acquire(timeout_s):
            raise TransportTimeoutError(f"Timed out after {timeout_s} s waiting for the bus")
        bus = BusSession(self._transport, self._driver.name)
        try:
            yield bus
        finally:
            bus.close()
            self._token.release()
            if self._dispatcher is None:
                self._deliver_pending()

    @contextmanager
    def _try_hold(self) -> Iterator[BusSession | None]:
        if not self._token.try_acquire():
            yield None
            return
        bus = BusSession(self._transport, self._driver.name)
        try:
            yield bus
        finally:
            bus.close()
            self._token.release()
            if self._dispatcher is None:
                self._deliver_pending()

    # -- Worker --------------------------------------------------------------

    def _work_loop(self) -> None:
        while True:
            pending = self._commands.get()
            if pending is None:
                return
            if self._stopping.is_set():
                self._fail_stopped(pending)
                continue
            if not pending.future.set_running_or_notify_cancel():
                continue
            try:
                result = self._run(pending.command, pending.handler)
            except Exception as exc:  # pylint: disable=broad-except
                logger.warning(
                    "%s: %s failed: %s", self._driver.name, pending.command.opcode, exc
                )
                pending.future.set_exception(exc)
            else:
                pending.future.set_result(result)

    @staticmethod
    def _fail_stopped(pending: _Pending) -> None:
        if pending.future.set_running_or_notify_cancel():
            pending.future.set_exception(EngineStateError("engine stopped"))

    def _drain_commands(self) -> list[_Pending]:
        drained: list[_Pending] = []
        stop_requested = False
        while True:
            try:
                item = self._commands.get_nowait()
            except queue.Empty:
                break
            if item is None:
                stop_requested = True
            else:
                drained.append(item)
        if stop_requested:
            self._commands.put(None)
        return drained

    # -- Event delivery ------------------------------------------------------

    def _publish(self, listener: Listener | None, value: Any) -> None:
        if listener is not None:
            self._events.put((listener, value))

    def _dispatch_loop(self) -> None:
        while True:
            event = self._events.get()
            if event is None:
                return
            self._deliver(event)

    def _deliver_pending(self) -> None:
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                return
            if event is not None:
                self._deliver(event)

    def _deliver(self, event: _Event) -> None:
        if isinstance(event, threading.Event):
            event.set()
            return
        listener, value = event
        try:
            listener(value)
        except Exception:  # pylint: disable=broad-except
            logger.exception("%s: listener %r raised", self._driver.name, listener)
