from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Generic, Hashable, Iterator, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

logger = logging.getLogger(__name__)


class LRUCache(Generic[K, V]):
    """Capacity-limited mapping that evicts the least recently used entry.

    Both reads (``get``) and writes (``set``) count as use. Iteration runs
    from the oldest entry to the newest. Methods never suspend, so callers on
    an event loop can treat each call as atomic.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"LRUCache capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        self._entries: OrderedDict[K, V] = OrderedDict()
        self._evictions = 0

    def get(self, key: K) -> V | None:
        if key not in self._entries:
            return None
        self._entries.move_to_end(key)
        return self._entries[key]

    def set(self, key: K, value: V) -> None:
        if key in self._entries:
            self._entries[key] = value
            self._entries.move_to_end(key)
            return
        if len(self._entries) >= self._capacity:
            evicted, _ = self._entries.popitem(last=False)
            self._evictions += 1
            logger.debug("Evicted %s (evictions=%d)", evicted, self._evictions)
        self._entries[key] = value

    def has(self, key: K) -> bool:
        return key in self._entries

    def delete(self, key: K) -> bool:
        if key not in self._entries:
            return False
        del self._entries[key]
        return True

    def clear(self) -> None:
        self._entries.clear()
        self._evictions = 0

    @property
    def size(self) -> int:
        return len(self._entries)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def evictions(self) -> int:
        return self._evictions

    def keys(self) -> list[K]:
        return list(self._entries.keys())

    def values(self) -> list[V]:
        return list(self._entries.values())

    def items(self) -> list[tuple[K, V]]:
        return list(self._entries.items())

    def stats(self) -> dict[str, int]:
        return {"size": self.size, "capacity": self.capacity, "evictions": self.evictions}

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[K]:
        return iter(self.keys())


__all__ = ["LRUCache"]
