"""Read-through cache for learned state that lives in the store."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable


@dataclass(slots=True)
class _Entry[V]:
    value: V
    expires_at: float


@dataclass(slots=True)
class TtlCache[K: Hashable, V]:
    """Process-local read-through cache with write-back hooks.

    The store stays the source of truth: ``get_or_load`` reads through on a miss or
    expiry, and writers call ``put`` after persisting so this worker observes its own
    learning immediately. Other workers pick it up once their entry expires.
    Expired entries are dropped whenever a value is stored.
    """

    ttl_seconds: float = 60.0
    clock: Callable[[], float] = time.monotonic
    _entries: dict[K, _Entry[V]] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def get_or_load(self, key: K, loader: Callable[[], V]) -> V:
        now = self.clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.expires_at > now:
                return entry.value
        value = loader()
        self.put(key, value)
        return value

    def put(self, key: K, value: V) -> None:
        now = self.clock()
        with self._lock:
            expired = [k for k, entry in self._entries.items() if entry.expires_at <= now]
            for stale in expired:
                del self._entries[stale]
            self._entries[key] = _Entry(value=value, expires_at=now + self.ttl_seconds)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def invalidate(self, key: K | None = None) -> None:
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)
