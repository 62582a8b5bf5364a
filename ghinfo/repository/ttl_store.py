"""In-memory key/value store with per-entry expiry and a capacity bound."""

import copy
import threading
import time
from collections import OrderedDict
from typing import Callable, Generic, Optional, TypeVar

V = TypeVar("V")

DEFAULT_CAPACITY = 10_000


def unix_now() -> int:
    """Current time in whole seconds since the epoch."""
    return int(time.time())


class TTLStore(Generic[V]):
    """
    Mapping of key to value where every value carries an absolute expiry.

    Values are live while ``expires_at > now``. Expired entries are dropped
    lazily on access and in bulk by ``purge_expired``. When the store grows
    past ``capacity`` the least recently used entry is evicted. Stored values
    are treated as immutable: they are deep-copied on the way in and out.
    """

    def __init__(
        self,
        ttl_seconds: int,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], int] = unix_now,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.capacity = max(1, capacity)
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: "OrderedDict[str, tuple[int, V]]" = OrderedDict()

    def get(self, key: str) -> Optional[V]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return copy.deepcopy(value)

    def peek(self, key: str) -> Optional[V]:
        """Like ``get`` but does not count as a use for LRU purposes."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry[0] <= self._clock():
                return None
            return copy.deepcopy(entry[1])

    def insert(self, key: str, value: V, expires_at: Optional[int] = None) -> int:
        """Insert or replace ``key``; returns the expiry that was recorded."""
        if expires_at is None:
            expires_at = self._clock() + self.ttl_seconds
        with self._lock:
            self._entries[key] = (expires_at, copy.deepcopy(value))
            self._entries.move_to_end(key)
            while len(self._entries) > self.capacity:
                self._entries.popitem(last=False)
        return expires_at

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
