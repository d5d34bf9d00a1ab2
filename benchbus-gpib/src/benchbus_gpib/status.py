"""Tiered status escalation.

Instrument status comes in up to three tiers:

- Tier 0: the serial-poll status byte, decoded into named flags.
- Tier 1: an error code, queried only when tier 0 flags an error.
- Tier 2: an auxiliary error code, queried only when the tier-1 code is
  hardware-class.

Each further tier costs one bus round-trip. :func:`escalate` is the single
place that decides which of them happen. It takes the query steps as plain
callables, so the decision logic can be exercised with canned replies.
"""

from __future__ import annotations

from typing import Callable, Protocol, TypeVar

from benchbus_core.errors import BenchbusError, StatusEscalationError

T = TypeVar("T", bound="TieredStatus")


class TieredStatus(Protocol):
    """Structural interface of a status value that supports escalation."""

    @property
    def ready(self) -> bool:
        """True if the instrument has data available."""
        ...

    @property
    def needs_error_query(self) -> bool:
        """True if tier 1 must be queried."""
        ...

    @property
    def needs_auxiliary_error_query(self) -> bool:
        """True if tier 2 must be queried (only meaningful after tier 1)."""
        ...

    def with_error_code(self: T, code: int) -> T:
        """Return a copy carrying the tier-1 error code."""
        ...

    def with_auxiliary_error_code(self: T, code: int) -> T:
        """Return a copy carrying the tier-2 auxiliary error code."""
        ...


def escalate(
    status: T,
    query_error: Callable[[], int],
    query_auxiliary_error: Callable[[], int],
) -> T:
    """Escalate a tier-0 status through the error tiers it demands.

    Args:
        status: Decoded tier-0 status.
        query_error: Performs the tier-1 query and returns the error code.
        query_auxiliary_error: Performs the tier-2 query and returns the
            auxiliary error code.

    Returns:
        The status with every demanded tier filled in.

    Raises:
        StatusEscalationError: If a query fails. ``partial_status`` holds the
            status escalated up to the failing tier.
    """
    if not status.needs_error_query:
        return status
    try:
        code = query_error()
    except BenchbusError as exc:
        raise StatusEscalationError(f"error query failed: {exc}", status) from exc
    status = status.with_error_code(code)

    if not status.needs_auxiliary_error_query:
        return status
    try:
        auxiliary_code = query_auxiliary_error()
    except BenchbusError as exc:
        raise StatusEscalationError(f"auxiliary error query failed: {exc}", status) from exc
    return status.with_auxiliary_error_code(auxiliary_code)
