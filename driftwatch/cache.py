"""In-process TTL cache shared by wind lookups and API responses."""

from __future__ import annotations

from collections import OrderedDict
from threading import Lock
import time
from typing import Any, Callable, Generic, Hashable, TypeVar

V = TypeVar("V")

MISS = object()


class TTLCache(Generic[V]):
    """Small thread-safe key/value store with per-entry expiry.

    Entries beyond ``max_entries`` are evicted oldest-first. Reads never
    raise: an expired or absent key is simply a miss.
    """

    def __init__(
        self,
        ttl_seconds: float,
        *,
        max_entries: int = 4096,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._lock = Lock()
        self._entries: OrderedDict[Hashable, tuple[float, Any]] = OrderedDict()

    def get(self, key: Hashable, default: Any = MISS) -> Any:
        """Return the cached value, or ``default`` (``MISS`` unless given) on a miss."""

        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            expires_at, value = entry
            if expires_at <= now:
                del self._entries[key]
                return default
            return value

    def set(self, key: Hashable, value: V, ttl_seconds: float | None = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            return
        with self._lock:
            self._entries[key] = (self._clock() + ttl, value)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def contains(self, key: Hashable) -> bool:
        return self.get(key) is not MISS

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["MISS", "TTLCache"]
