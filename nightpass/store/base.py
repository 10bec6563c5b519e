"""
Abstract transactional key-value store.

atomic_update is the single concurrency primitive the rest of the package relies
on: concurrent calls on the same key observe a serializable sequence of
applications of ``fn``. There is no guarantee across different keys.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Iterator

Record = dict[str, Any]
UpdateFn = Callable[[Record | None], Record | None]
# Fixed TTL, or a function of the committed value (e.g. derived from its expires_at)
TTL = int | Callable[[Record], int | None] | None


def resolve_ttl(ttl: TTL, value: Record) -> int | None:
    if callable(ttl):
        ttl = ttl(value)
    if ttl is not None and ttl <= 0:
        return 1
    return ttl


class EntitlementStore(ABC):
    @abstractmethod
    def get(self, key: str) -> Record | None:
        """Return the stored value or None if absent (or expired)."""

    @abstractmethod
    def set(self, key: str, value: Record, ttl_ms: int | None = None) -> None:
        """Overwrite ``key``. ``ttl_ms`` lets the backend drop the record on its own."""

    @abstractmethod
    def remove(self, key: str) -> None:
        ...

    @abstractmethod
    def atomic_update(self, key: str, fn: UpdateFn, ttl_ms: TTL = None) -> Record | None:
        """
        Atomically apply ``fn`` to the current value of ``key`` and store the result.

        - ``fn`` receives a private copy of the current value (None if absent).
        - Returning None deletes the key.
        - An exception raised by ``fn`` aborts the update; nothing is written and
          the exception propagates. ``fn`` may be invoked more than once when the
          backend retries; the last invocation is the one that was committed.
        - ``ttl_ms`` may be a function of the committed value.

        Returns the value that was committed.
        """

    @abstractmethod
    def scan(self, prefix: str) -> Iterator[tuple[str, Record]]:
        """Iterate (key, value) pairs under ``prefix``. Not atomic, for reporting and reaping."""

    def ping(self) -> bool:
        return True

    def create_if_absent(self, key: str, value: Record, ttl_ms: int | None = None) -> bool:
        """Write ``value`` only if ``key`` does not exist. Returns True if this call created it."""
        def _create(current: Record | None) -> Record | None:
            if current is not None:
                raise _KeyExists(key)
            return value

        try:
            self.atomic_update(key, _create, ttl_ms=ttl_ms)
        except _KeyExists:
            return False
        return True


class _KeyExists(Exception):
    pass
