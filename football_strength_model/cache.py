"""
Key -> (value, timestamp) store with a TTL and an injectable clock.

Entries are replaced wholesale; cached values are never mutated in place.
"""
from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Callable, Generic, Hashable, Optional, Tuple, TypeVar

V = TypeVar("V")

_MISSING = object()


class TTLCache(Generic[V]):
    def __init__(
        self,
        ttl_seconds: float,
        clock: Callable[[], float] = time.time,
        max_entries: Optional[int] = None,
    ):
        self.ttl = float(ttl_seconds)
        self.clock = clock
        self.max_entries = max_entries
        self._store: "OrderedDict[Hashable, Tuple[V, float]]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: Hashable, default: object = None):
        with self._lock:
            item = self._store.get(key)
            if item is None:
                return default
            value, stamp = item
            if self.clock() - stamp >= self.ttl:
                del self._store[key]
                return default
            return value

    def set(self, key: Hashable, value: V) -> None:
        with self._lock:
            self._store.pop(key, None)
            self._store[key] = (value, self.clock())
            if self.max_entries is not None:
                while len(self._store) > self.max_entries:
                    self._store.popitem(last=False)

    def get_or_build(self, key: Hashable, builder: Callable[[], V]) -> V:
        """Return the cached value or build, publish and return a fresh one."""
        cached = self.get(key, _MISSING)
        if cached is not _MISSING:
            return cached
        value = builder()
        self.set(key, value)
        return value

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        with self._lock:
            if key is None:
                self._store.clear()
            else:
                self._store.pop(key, None)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def __len__(self) -> int:
        return len(self._store)
