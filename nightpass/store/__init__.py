"""
Entitlement store: abstract per-key atomic KV contract and its backends.
"""
from nightpass.store.base import EntitlementStore, Record, UpdateFn
from nightpass.store.factory import create_store
from nightpass.store.memory import InMemoryStore
from nightpass.store.redis_store import RedisStore

__all__ = [
    "EntitlementStore",
    "InMemoryStore",
    "Record",
    "RedisStore",
    "UpdateFn",
    "create_store",
]
