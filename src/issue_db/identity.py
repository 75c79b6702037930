"""Identifier-based equality for handles that wrap a remote resource."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Hashable


class KeyedEntity(ABC):
    """Base class for handles whose identity is their remote key.

    Cached display fields never take part in equality or hashing, so two
    handles of the same resource compare equal however much of each has been
    loaded.
    """

    __slots__ = ()

    @abstractmethod
    def identity_key(self) -> Hashable:
        """Return the key identifying the remote resource."""

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KeyedEntity) or type(other) is not type(self):
            return NotImplemented
        return self.identity_key() == other.identity_key()

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.identity_key()))
