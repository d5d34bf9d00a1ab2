"""Tests for the FIFO-fair bus token."""

from __future__ import annotations

import threading
import time

import pytest

from benchbus_gpib import BusToken


def _wait_for_waiters(token: BusToken, count: int, timeout_s: float = 1.0) -> None:
    deadline = time.monotonic() + timeout_s
    while token.waiting < count:
        if time.monotonic() > deadline:
            raise AssertionError(f"expected {count} waiters, have {token.waiting}")
        time.sleep(0.001)


class TestBusToken:
    def test_acquire_and_release(self) -> None:
        token = BusToken()
        assert not token.held
        assert token.acquire()
        assert token.held
        token.release()
        assert not token.held

    def test_context_manager(self) -> None:
        token = BusToken()
        with token:
            assert token.held
        assert not token.held

    def test_release_unheld_raises(self) -> None:
        with pytest.raises(RuntimeError):
            BusToken().release()

    def test_acquire_times_out(self) -> None:
        token = BusToken()
        token.acquire()
        start = time.monotonic()
        assert token.acquire(timeout_s=0.05) is False
        assert time.monotonic() - start >= 0.04
        assert token.waiting == 0
        assert token.held

    def test_try_acquire(self) -> None:
        token = BusToken()
        assert token.try_acquire() is True
        assert token.try_acquire() is False
        token.release()
        assert token.try_acquire() is True

    def test_try_acquire_fails_while_waiters_queued(self) -> None:
        token = BusToken()
        token.acquire()
        waiter = threading.Thread(target=token.acquire)
        waiter.start()
        _wait_for_waiters(token, 1)
        token.release()
        waiter.join(1.0)
        # Ownership passed to the waiter without becoming free.
        assert token.held
        assert token.try_acquire() is False
        token.release()
        assert not token.held

    def test_waiters_are_served_in_arrival_order(self) -> None:
        token = BusToken()
        token.acquire()
        order: list[int] = []

        def contend(index: int) -> None:
            token.acquire()
            order.append(index)
            token.release()

        threads = []
        for index in range(5):
            thread = threading.Thread(target=contend, args=(index,))
            thread.start()
            _wait_for_waiters(token, index + 1)
            threads.append(thread)

        token.release()
        for thread in threads:
            thread.join(1.0)
        assert order == [0, 1, 2, 3, 4]
        assert not token.held
