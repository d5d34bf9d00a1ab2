"""Periodic service-request polling.

Not every bus driver delivers service requests as callbacks. The
:class:`ServiceRequestPoller` serial polls the instrument at a fixed period
through :meth:`TransactionEngine.poll_service_request`, which only ever
tries the bus token and never waits for it.
"""

from __future__ import annotations

import logging
import threading

from benchbus_core.errors import BenchbusError
from benchbus_gpib.engine import TransactionEngine

logger = logging.getLogger(__name__)


class ServiceRequestPoller:
    """Daemon thread that polls an engine for service requests.

    Args:
        engine: The engine to poll.
        period_s: Polling period in seconds (> 0).
    """

    def __init__(self, engine: TransactionEngine, period_s: float = 1.0) -> None:
        if period_s <= 0:
            raise ValueError("period_s must be > 0")
        self._engine = engine
        self._period_s = period_s
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def period_s(self) -> float:
        """Polling period in seconds."""
        return self._period_s

    @property
    def is_running(self) -> bool:
        """Return True if the polling thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start polling. Does nothing if already started."""
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name=f"{self._engine.driver.name}-srq", daemon=True
        )
        self._thread.start()

    def stop(self, timeout_s: float | None = None) -> None:
        """Stop polling and wait for the thread to exit."""
        if self._thread is None:
            return
        self._stop.set()
        self._thread.join(timeout_s)
        self._thread = None

    def poll_once(self) -> bool:
        """Poll once, logging rather than raising bus errors.

        Returns:
            True if a service request was handled.
        """
        try:
            return self._engine.poll_service_request()
        except BenchbusError as exc:
            logger.warning("%s: service request poll failed: %s", self._engine.driver.name, exc)
            return False

    def _run(self) -> None:
        while not self._stop.wait(self._period_s):
            try:
                self.poll_once()
            except Exception:  # pylint: disable=broad-except
                logger.exception("%s: service request poll raised", self._engine.driver.name)
