"""In-memory key/value cache with a fixed TTL per entry."""

from __future__ import annotations

import threading
import time
from typing import Any, Callable

from .types import CacheEntry

_MISSING = object()


class TTLCache:
    """Thread-safe in-memory cache with configurable TTL (seconds).

    Expiry is lazy: an expired entry is dropped when it is looked up, or by
    an explicit :meth:`purge_expired` sweep. There is no capacity bound.
    """

    def __init__(self, ttl: float = 600, clock: Callable[[], float] = time.monotonic) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be greater than 0")
        self._ttl = float(ttl)
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

        self._hits = 0
        self._misses = 0
        self._expired = 0
        self._sets = 0

    @property
    def ttl(self) -> float:
        return self._ttl

    def _is_live(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.inserted_at <= self._ttl

    def set(self, key: str, value: Any) -> None:
        entry = CacheEntry(key=key, value=value, inserted_at=self._clock())
        with self._lock:
            self._entries[key] = entry
            self._sets += 1

    def lookup(self, key: str) -> tuple[bool, Any]:
        """Return ``(found, value)``; cached ``None`` values count as found."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return False, None
            if not self._is_live(entry, self._clock()):
                del self._entries[key]
                self._expired += 1
                self._misses += 1
                return False, None
            self._hits += 1
            return True, entry.value

    def get(self, key: str, default: Any = None) -> Any:
        found, value = self.lookup(key)
        return value if found else default

    def has(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[str]:
        """Keys of entries that have not expired yet."""
        now = self._clock()
        with self._lock:
            return [k for k, e in self._entries.items() if self._is_live(e, now)]

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        now = self._clock()
        with self._lock:
            stale = [k for k, e in self._entries.items() if not self._is_live(e, now)]
            for key in stale:
                del self._entries[key]
            self._expired += len(stale)
        return len(stale)

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "hits": self._hits,
                "misses": self._misses,
                "expired": self._expired,
                "sets": self._sets,
                "size": len(self._entries),
                "ttl": self._ttl,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.has(key)
