"""A fixed-capacity chained hash table keyed by unsigned integers."""

from __future__ import annotations

from typing import Generic, TypeVar

V = TypeVar("V")


class IDLookup(Generic[V]):
    """Hash table with ``capacity`` buckets; keys hash to ``key % capacity``."""

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._buckets: list[list[list]] = [[] for _ in range(capacity)]
        self._size = 0

    def _bucket(self, key: int) -> list[list]:
        return self._buckets[key % len(self._buckets)]

    def get(self, key: int) -> V | None:
        """Return the value stored for ``key``, or ``None`` if absent."""
        for entry_key, value in self._bucket(key):
            if entry_key == key:
                return value
        return None

    def insert(self, key: int, value: V) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        bucket = self._bucket(key)
        for entry in bucket:
            if entry[0] == key:
                entry[1] = value
                return
        bucket.insert(0, [key, value])
        self._size += 1

    def remove(self, key: int) -> None:
        """Remove ``key``; raise KeyError if it is not present."""
        bucket = self._bucket(key)
        for position, entry in enumerate(bucket):
            if entry[0] == key:
                del bucket[position]
                self._size -= 1
                return
        raise KeyError(key)

    def __len__(self) -> int:
        return self._size