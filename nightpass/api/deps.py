from functools import lru_cache

from nightpass.core.config import get_settings
from nightpass.engine import EntitlementEngine


@lru_cache
def get_engine() -> EntitlementEngine:
    """Process-wide engine; overridden in tests via app.dependency_overrides."""
    return EntitlementEngine.from_settings(get_settings())
