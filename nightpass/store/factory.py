"""Pick the store backend from settings."""
import logging

from nightpass.core.config import Settings
from nightpass.store.base import EntitlementStore
from nightpass.store.memory import InMemoryStore
from nightpass.store.redis_store import RedisStore

logger = logging.getLogger(__name__)


def create_store(settings: Settings) -> EntitlementStore:
    if settings.store_backend == "memory":
        logger.warning("store_backend_memory", extra={"reason": "state is not shared between processes"})
        return InMemoryStore()
    return RedisStore.from_url(
        settings.redis_url,
        namespace=settings.store_namespace,
        max_retries=settings.store_atomic_max_retries,
    )
