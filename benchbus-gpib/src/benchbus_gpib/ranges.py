"""Discrete full-scale range tables."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Hashable, Mapping, Sequence, TypeVar

from benchbus_core.units import Unit

K = TypeVar("K", bound=Hashable)

# Relative slack for full-scale values echoed back in floating point.
_TOLERANCE = 1e-9


@dataclass(frozen=True)
class Range:
    """One full-scale range.

    Attributes:
        full_scale: Maximum absolute value, in ``unit``.
        unit: Unit of ``full_scale``.
    """

    full_scale: float
    unit: Unit

    def __str__(self) -> str:
        return f"{self.full_scale:g} {self.unit.symbol}"


class RangeTable(Generic[K]):
    """Per-mode ordered lists of ranges, smallest first.

    Args:
        ranges: Mapping of measurement mode to its ranges. Each sequence is
            sorted by full scale on construction.
    """

    def __init__(self, ranges: Mapping[K, Sequence[Range]]) -> None:
        self._ranges: dict[K, tuple[Range, ...]] = {
            mode: tuple(sorted(entries, key=lambda r: r.full_scale))
            for mode, entries in ranges.items()
        }

    def modes(self) -> tuple[K, ...]:
        """Return the modes that have ranges."""
        return tuple(self._ranges)

    def ranges(self, mode: K) -> tuple[Range, ...]:
        """Return the ranges of a mode, or an empty tuple."""
        return self._ranges.get(mode, ())

    def contains(self, mode: K, candidate: Range) -> bool:
        """Return True if *candidate* is one of the mode's ranges."""
        return candidate in self.ranges(mode)

    def classify(self, mode: K, value: float) -> Range | None:
        """Return the smallest range of *mode* whose full scale covers *value*.

        Args:
            mode: The measurement mode.
            value: The value to classify; its sign is ignored.

        Returns:
            The matching range, or None if the value exceeds every range
            or the mode has none.
        """
        magnitude = abs(value)
        for entry in self.ranges(mode):
            if magnitude <= entry.full_scale * (1.0 + _TOLERANCE):
                return entry
        return None
