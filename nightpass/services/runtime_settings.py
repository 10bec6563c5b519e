"""Runtime toggles adjustable from admin commands: ads on/off and the ad provider."""
from __future__ import annotations

import logging
import threading
from typing import Any

from pydantic import BaseModel

from nightpass.core.config import Settings
from nightpass.store import keys
from nightpass.store.base import EntitlementStore

logger = logging.getLogger(__name__)


class RuntimeSettings(BaseModel):
    ad_enabled: bool = False
    ad_provider_domain: str = "earnlinks.in"
    ad_provider_api_token: str = ""

    model_config = {"frozen": True}

    @property
    def mode(self) -> str:
        return "ads" if self.ad_enabled else "referral"


class RuntimeSettingsCell:
    """
    Holds the current RuntimeSettings snapshot. Readers get an immutable
    snapshot; update() swaps it under a lock and writes it through to the store.
    """

    def __init__(self, initial: RuntimeSettings, store: EntitlementStore | None = None) -> None:
        self._lock = threading.Lock()
        self._current = initial
        self._store = store

    @classmethod
    def load(cls, settings: Settings, store: EntitlementStore | None = None) -> "RuntimeSettingsCell":
        """Defaults from Settings, overridden by a persisted config record if present."""
        initial = RuntimeSettings(
            ad_enabled=settings.ad_enabled,
            ad_provider_domain=settings.ad_provider_domain,
            ad_provider_api_token=settings.ad_provider_api_token,
        )
        if store is not None:
            persisted = store.get(keys.RUNTIME_CONFIG)
            if persisted:
                initial = initial.model_copy(
                    update={k: v for k, v in persisted.items() if k in RuntimeSettings.model_fields}
                )
        return cls(initial, store)

    def get(self) -> RuntimeSettings:
        with self._lock:
            return self._current

    def update(self, **changes: Any) -> RuntimeSettings:
        unknown = set(changes) - set(RuntimeSettings.model_fields)
        if unknown:
            raise ValueError(f"unknown runtime settings: {sorted(unknown)}")
        with self._lock:
            updated = RuntimeSettings.model_validate({**self._current.model_dump(), **changes})
            if self._store is not None:
                self._store.set(keys.RUNTIME_CONFIG, updated.model_dump(mode="json"))
            self._current = updated
        logger.info("runtime_settings_updated", extra={"status": updated.mode})
        return updated

    def as_dict(self) -> dict[str, Any]:
        """Status view with the API token masked."""
        current = self.get()
        return {
            "ad_enabled": current.ad_enabled,
            "ad_provider_domain": current.ad_provider_domain,
            "ad_provider_api_token": "set" if current.ad_provider_api_token else "not set",
            "mode": current.mode,
        }
