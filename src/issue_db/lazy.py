"""Write-once cells used to memoize remote attributes.

A cell starts empty and is populated on first use. ``None`` is a valid
populated value, so emptiness is tracked separately from the stored value.
Population is serialized by a per-cell lock: when several threads see an
empty cell at the same time only one producer call runs, and the others
observe its result.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class LazyCell(Generic[T]):
    """A memoized value that never changes once populated."""

    __slots__ = ("_lock", "_populated", "_value")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._populated = False
        self._value: T | None = None

    @classmethod
    def of(cls, value: T) -> LazyCell[T]:
        """Create an already populated cell."""
        cell: LazyCell[T] = cls()
        cell._value = value
        cell._populated = True
        return cell

    @property
    def populated(self) -> bool:
        """Whether the cell holds a value."""
        return self._populated

    def get(self, default: Any = None) -> T | Any:
        """Return the stored value, or ``default`` when empty. Never does I/O."""
        if self._populated:
            return self._value
        return default

    def get_or_populate(self, producer: Callable[[], T]) -> T:
        """Return the stored value, running ``producer`` once if the cell is empty.

        If ``producer`` raises, the exception propagates and the cell stays
        empty so the next access retries.
        """
        if self._populated:
            return self._value  # type: ignore[return-value]
        with self._lock:
            if not self._populated:
                value = producer()
                self._value = value
                self._populated = True
        return self._value  # type: ignore[return-value]

    def fill(self, value: T) -> bool:
        """Store ``value`` only if the cell is empty.

        Returns:
            True if the value was stored, False if the cell was already populated.
        """
        with self._lock:
            if self._populated:
                return False
            self._value = value
            self._populated = True
            return True

    def __repr__(self) -> str:
        if self._populated:
            return f"{type(self).__name__}({self._value!r})"
        return f"{type(self).__name__}(<empty>)"


class CachedValue(LazyCell[T]):
    """A lazy cell whose value may be replaced after a successful remote write."""

    __slots__ = ()

    def set(self, value: T) -> None:
        """Overwrite the stored value."""
        with self._lock:
            self._value = value
            self._populated = True
