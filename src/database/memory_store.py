"""
In-process key-value store with redis-like TTL and WATCH semantics.

Used for tests and single-process development (``REDIS_URI=memory://``).
Each key carries a version that is bumped on every write, delete or expiry;
a transaction commits only if the watched key's version is unchanged.
"""

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from database.base import (
    TTL_MISSING,
    TTL_NO_EXPIRY,
    KeyValueStore,
    StoreTransaction,
    StoreValue,
)


@dataclass
class _Entry:
    value: StoreValue
    expires_at: Optional[float] = None


class MemoryTransaction(StoreTransaction):

    def __init__(self, store: "MemoryStore", key: str):
        self._store = store
        self._key = key
        self._watched_version: Optional[int] = store._version(key)
        self._queue: Optional[List[Tuple[str, str, object]]] = None

    def get(self, key: str) -> Optional[StoreValue]:
        return self._store.get(key)

    def ttl(self, key: str) -> int:
        return self._store.ttl(key)

    def pttl(self, key: str) -> int:
        return self._store.pttl(key)

    def multi(self) -> None:
        self._queue = []

    def queue_set(self, key: str, value: StoreValue) -> None:
        self._require_multi().append(("set", key, value))

    def queue_expire(self, key: str, ttl_seconds: int) -> None:
        self._require_multi().append(("expire", key, ttl_seconds))

    def queue_pexpire(self, key: str, ttl_millis: int) -> None:
        self._require_multi().append(("expire", key, ttl_millis / 1000))

    def execute(self) -> bool:
        queue = self._require_multi()
        with self._store._lock:
            watched = self._watched_version
            self._watched_version = None
            self._queue = None
            if watched is not None and self._store._version(self._key) != watched:
                return False
            for op, key, arg in queue:
                if op == "set":
                    self._store.set(key, arg)
                else:
                    self._store._expire(key, arg)
        return True

    def unwatch(self) -> None:
        self._watched_version = None

    def release(self) -> None:
        self._watched_version = None
        self._queue = None

    def _require_multi(self) -> List[Tuple[str, str, object]]:
        if self._queue is None:
            raise RuntimeError("multi() must be called before queueing commands")
        return self._queue


class MemoryStore(KeyValueStore):

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.RLock()
        self._data: Dict[str, _Entry] = {}
        self._versions: Dict[str, int] = {}

    def _bump(self, key: str) -> None:
        self._versions[key] = self._versions.get(key, 0) + 1

    def _live_entry(self, key: str) -> Optional[_Entry]:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._clock():
            del self._data[key]
            self._bump(key)
            return None
        return entry

    def _version(self, key: str) -> int:
        with self._lock:
            self._live_entry(key)
            return self._versions.get(key, 0)

    def _expire(self, key: str, ttl_seconds: float) -> bool:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return False
            entry.expires_at = self._clock() + ttl_seconds
            self._bump(key)
            return True

    def get(self, key: str) -> Optional[StoreValue]:
        with self._lock:
            entry = self._live_entry(key)
            return entry.value if entry else None

    def set(self, key: str, value: StoreValue) -> bool:
        with self._lock:
            self._data[key] = _Entry(value=value)
            self._bump(key)
            return True

    def set_with_expiry(self, key: str, value: StoreValue, ttl_seconds: int) -> bool:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        with self._lock:
            self._data[key] = _Entry(value=value, expires_at=self._clock() + ttl_seconds)
            self._bump(key)
            return True

    def ttl(self, key: str) -> int:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return TTL_MISSING
            if entry.expires_at is None:
                return TTL_NO_EXPIRY
            # floor, so a read-then-reapply cycle never extends the lifetime
            return max(0, math.floor(entry.expires_at - self._clock()))

    def pttl(self, key: str) -> int:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return TTL_MISSING
            if entry.expires_at is None:
                return TTL_NO_EXPIRY
            return max(0, math.floor((entry.expires_at - self._clock()) * 1000))

    def delete(self, key: str) -> bool:
        with self._lock:
            existed = self._live_entry(key) is not None
            if existed:
                del self._data[key]
                self._bump(key)
            return existed

    def ping(self) -> bool:
        return True

    def _begin(self, key: str) -> MemoryTransaction:
        return MemoryTransaction(self, key)
