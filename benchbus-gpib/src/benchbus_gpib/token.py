"""Bus exclusivity token.

A binary mutex with first-come first-served handoff. Every transport
operation happens while the token is held; the transaction engine is the
only holder.
"""

from __future__ import annotations

import threading
from collections import deque
from types import TracebackType


class BusToken:
    """FIFO-fair binary token guarding a shared bus.

    Waiters are served strictly in arrival order: on :meth:`release` the
    token passes directly to the oldest waiter, so a thread that arrives
    later can never overtake one that is already waiting.
    :meth:`try_acquire` never waits and fails whenever anyone holds or is
    queued for the token.

    Example:
        >>> token = BusToken()
        >>> with token:
        ...     pass  # bus access
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._waiters: deque[threading.Event] = deque()
        self._held = False

    @property
    def held(self) -> bool:
        """Return True if the token is currently held."""
        with self._lock:
            return self._held

    @property
    def waiting(self) -> int:
        """Return the number of threads waiting for the token."""
        with self._lock:
            return len(self._waiters)

    def acquire(self, timeout_s: float | None = None) -> bool:
        """Acquire the token, waiting in FIFO order.

        Args:
            timeout_s: Maximum time to wait, or None to wait forever.

        Returns:
            True if the token was acquired, False on timeout.
        """
        with self._lock:
            if not self._held and not self._waiters:
                self._held = True
                return True
            waiter = threading.Event()
            self._waiters.append(waiter)

        if waiter.wait(timeout_s):
            return True

        with self._lock:
            if waiter.is_set():
                # Handed over between the timeout and taking the lock.
                return True
            self._waiters.remove(waiter)
        return False

    def try_acquire(self) -> bool:
        """Acquire the token only if it is free right now.

        Returns:
            True if the token was acquired.
        """
        with self._lock:
            if self._held or self._waiters:
                return False
            self._held = True
            return True

    def release(self) -> None:
        """Release the token, handing it to the oldest waiter if any.

        Raises:
            RuntimeError: If the token is not held.
        """
        with self._lock:
            if not self._held:
                raise RuntimeError("release of unheld bus token")
            if self._waiters:
                # Ownership transfers without ever becoming free.
                self._waiters.popleft().set()
            else:
                self._held = False

    def __enter__(self) -> BusToken:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.release()
