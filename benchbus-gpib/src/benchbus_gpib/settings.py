"""Immutable, versioned instrument settings snapshots.

Instrument packages subclass :class:`SettingsSnapshot` as frozen dataclasses
with a default for every field. A snapshot is never mutated; "changing a
setting" means deriving a new snapshot with some fields replaced::

    >>> new = old.derive(auto_range=True, range=None)
    >>> new is old
    False
    >>> new.version == old.version + 1
    True

Deriving with values equal to the current ones returns the very same
object, which lets the engine detect "nothing changed" with an identity
check.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, TypeVar

S = TypeVar("S", bound="SettingsSnapshot")


def _same(old: Any, new: Any) -> bool:
    if isinstance(old, float) and isinstance(new, float):
        if math.isnan(old) and math.isnan(new):
            return True
    return bool(old == new)


@dataclass(frozen=True)
class SettingsSnapshot:
    """Base class for settings snapshots.

    Attributes:
        version: Number of derivations since the initial snapshot. Not part
            of equality.
    """

    version: int = field(default=0, compare=False)

    def derive(self: S, **changes: Any) -> S:
        """Return a snapshot with the given fields replaced.

        Args:
            **changes: Field names and their new values.

        Returns:
            ``self`` if every value is already current, otherwise a new
            snapshot with ``version`` incremented.

        Raises:
            AttributeError: If a field name is unknown.
        """
        if all(_same(getattr(self, name), value) for name, value in changes.items()):
            return self
        return replace(self, version=self.version + 1, **changes)
