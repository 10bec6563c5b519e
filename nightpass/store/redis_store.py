"""
Redis-backed entitlement store.
atomic_update is an optimistic WATCH/MULTI/EXEC loop: the transaction is
retried when another client touches the key between WATCH and EXEC.
"""
from __future__ import annotations

import json
import logging
from typing import Iterator

import redis

from nightpass.core.errors import StoreError
from nightpass.store.base import TTL, EntitlementStore, Record, UpdateFn, resolve_ttl
from nightpass.utils.metrics import store_atomic_conflicts_total

logger = logging.getLogger(__name__)


class RedisStore(EntitlementStore):
    def __init__(
        self,
        client: redis.Redis,
        namespace: str = "nightpass",
        max_retries: int = 50,
    ) -> None:
        self.client = client
        self.namespace = namespace
        self.max_retries = max_retries

    @classmethod
    def from_url(cls, url: str, namespace: str = "nightpass", max_retries: int = 50) -> "RedisStore":
        client = redis.Redis.from_url(url, decode_responses=True)
        return cls(client, namespace=namespace, max_retries=max_retries)

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    @staticmethod
    def _decode(raw: str | None) -> Record | None:
        if raw is None:
            return None
        return json.loads(raw)

    @staticmethod
    def _encode(value: Record) -> str:
        return json.dumps(value, separators=(",", ":"), sort_keys=True)

    def get(self, key: str) -> Record | None:
        try:
            return self._decode(self.client.get(self._key(key)))
        except redis.RedisError as exc:
            raise StoreError(f"get failed for {key}") from exc

    def set(self, key: str, value: Record, ttl_ms: int | None = None) -> None:
        try:
            self.client.set(self._key(key), self._encode(value), px=ttl_ms)
        except redis.RedisError as exc:
            raise StoreError(f"set failed for {key}") from exc

    def remove(self, key: str) -> None:
        try:
            self.client.delete(self._key(key))
        except redis.RedisError as exc:
            raise StoreError(f"remove failed for {key}") from exc

    def atomic_update(self, key: str, fn: UpdateFn, ttl_ms: TTL = None) -> Record | None:
        full_key = self._key(key)
        for attempt in range(1, self.max_retries + 1):
            try:
                with self.client.pipeline() as pipe:
                    pipe.watch(full_key)
                    current = self._decode(pipe.get(full_key))
                    updated = fn(current)
                    pipe.multi()
                    if updated is None:
                        pipe.delete(full_key)
                    else:
                        pipe.set(full_key, self._encode(updated), px=resolve_ttl(ttl_ms, updated))
                    pipe.execute()
                    return updated
            except redis.WatchError:
                store_atomic_conflicts_total.inc()
                logger.debug("store_atomic_conflict", extra={"key": key, "attempt": attempt})
                continue
            except redis.RedisError as exc:
                raise StoreError(f"atomic_update failed for {key}") from exc
        logger.error("store_atomic_retries_exhausted", extra={"key": key, "attempt": self.max_retries})
        raise StoreError(f"atomic_update gave up on {key} after {self.max_retries} conflicts")

    def scan(self, prefix: str) -> Iterator[tuple[str, Record]]:
        offset = len(self.namespace) + 1
        try:
            for full_key in self.client.scan_iter(match=f"{self._key(prefix)}*", count=500):
                value = self._decode(self.client.get(full_key))
                if value is not None:
                    yield full_key[offset:], value
        except redis.RedisError as exc:
            raise StoreError(f"scan failed for {prefix}") from exc

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            return False
