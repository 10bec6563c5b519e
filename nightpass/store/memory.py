"""
In-process store for local runs and tests.
A fixed pool of striped locks makes atomic_update serializable per key; values
are deep-copied in and out so callers never share mutable state with the store.
"""
from __future__ import annotations

import copy
import threading
import time
import zlib
from typing import Iterator

from nightpass.store.base import TTL, EntitlementStore, Record, UpdateFn, resolve_ttl


LOCK_STRIPES = 64


class InMemoryStore(EntitlementStore):
    def __init__(self, stripes: int = LOCK_STRIPES) -> None:
        self._data: dict[str, tuple[Record, float | None]] = {}
        # update functions must not call back into the store: the locks are not reentrant
        self._locks = [threading.Lock() for _ in range(stripes)]

    def _lock_for(self, key: str) -> threading.Lock:
        return self._locks[zlib.crc32(key.encode("utf-8")) % len(self._locks)]

    def _read(self, key: str) -> Record | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, deadline = entry
        if deadline is not None and time.monotonic() >= deadline:
            self._data.pop(key, None)
            return None
        return copy.deepcopy(value)

    def _write(self, key: str, value: Record | None, ttl_ms: int | None) -> None:
        if value is None:
            self._data.pop(key, None)
            return
        deadline = time.monotonic() + ttl_ms / 1000 if ttl_ms is not None else None
        self._data[key] = (copy.deepcopy(value), deadline)

    def get(self, key: str) -> Record | None:
        with self._lock_for(key):
            return self._read(key)

    def set(self, key: str, value: Record, ttl_ms: int | None = None) -> None:
        with self._lock_for(key):
            self._write(key, value, ttl_ms)

    def remove(self, key: str) -> None:
        with self._lock_for(key):
            self._data.pop(key, None)

    def atomic_update(self, key: str, fn: UpdateFn, ttl_ms: TTL = None) -> Record | None:
        with self._lock_for(key):
            updated = fn(self._read(key))
            self._write(key, updated, resolve_ttl(ttl_ms, updated) if updated is not None else None)
            return copy.deepcopy(updated)

    def scan(self, prefix: str) -> Iterator[tuple[str, Record]]:
        for key in sorted(k for k in list(self._data) if k.startswith(prefix)):
            value = self.get(key)
            if value is not None:
                yield key, value
