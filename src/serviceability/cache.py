"""Pincode existence cache — injectable so it can be swapped for a shared store."""

import time
from abc import ABC, abstractmethod
from collections import OrderedDict


class PincodeCache(ABC):
    """Abstract interface for the pincode existence cache."""

    @abstractmethod
    def get(self, pincode: str) -> bool | None:
        """Return the cached existence flag, or None on a miss or expiry."""
        ...

    @abstractmethod
    def set(self, pincode: str, exists: bool, ttl_seconds: float) -> None: ...

    @abstractmethod
    def clear(self) -> None: ...


class InMemoryTTLCache(PincodeCache):
    """Process-local TTL map with least-recently-used eviction."""

    def __init__(self, max_entries: int = 10_000, clock=time.monotonic):
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[bool, float]] = OrderedDict()

    def get(self, pincode: str) -> bool | None:
        entry = self._entries.get(pincode)
        if entry is None:
            return None
        exists, expires_at = entry
        if expires_at <= self._clock():
            del self._entries[pincode]
            return None
        self._entries.move_to_end(pincode)
        return exists

    def set(self, pincode: str, exists: bool, ttl_seconds: float) -> None:
        self._entries[pincode] = (exists, self._clock() + ttl_seconds)
        self._entries.move_to_end(pincode)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
