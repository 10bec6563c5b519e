"""
AccessWindowManager: has_access / grant / extend / time_remaining.

grant is a plain overwrite (ad-token and referee grants). extend is the
read-extend-write used for the referral bonus and always goes through
atomic_update, so a live window is stacked instead of reset.
"""
from __future__ import annotations

import logging

from nightpass.access.models import AccessSource, AccessWindow
from nightpass.store import keys
from nightpass.store.base import EntitlementStore, Record
from nightpass.utils.metrics import access_grants_total
from nightpass.utils.time import Clock, now_ms

logger = logging.getLogger(__name__)


class AccessWindowManager:
    def __init__(self, store: EntitlementStore, clock: Clock = now_ms) -> None:
        self.store = store
        self._clock = clock

    def _load(self, user_id: str) -> AccessWindow | None:
        raw = self.store.get(keys.access_key(user_id))
        return AccessWindow.model_validate(raw) if raw else None

    def get_window(self, user_id: str) -> AccessWindow | None:
        """Live window or None; expired windows are treated as non-existent."""
        window = self._load(str(user_id))
        if window is None or not window.is_live(self._clock()):
            return None
        return window

    def has_access(self, user_id: str) -> bool:
        user_id = str(user_id)
        window = self._load(user_id)
        if window is None:
            return False
        if window.is_live(self._clock()):
            return True
        self._reap(user_id)
        return False

    def _reap(self, user_id: str) -> bool:
        """Delete the window only if it is still expired at the moment of the update."""
        removed = False

        def _drop_if_expired(current: Record | None) -> Record | None:
            nonlocal removed
            removed = False
            if current is None:
                return None
            if AccessWindow.model_validate(current).is_live(self._clock()):
                return current
            removed = True
            return None

        self.store.atomic_update(keys.access_key(user_id), _drop_if_expired, ttl_ms=self._ttl_for)
        if removed:
            logger.info("access_window_reaped", extra={"user_id": user_id})
        return removed

    def reap_expired(self) -> int:
        """Sweep userAccess/ and drop windows that are past their expiry."""
        removed = 0
        now = self._clock()
        for key, raw in self.store.scan(keys.USER_ACCESS):
            if raw.get("expires_at", 0) > now:
                continue
            if self._reap(key[len(keys.USER_ACCESS):]):
                removed += 1
        return removed

    def _ttl_for(self, record: Record) -> int:
        return record["expires_at"] - self._clock()

    def grant(self, user_id: str, ttl_ms: int, source: AccessSource) -> AccessWindow:
        """Overwrite the user's window with now + ttl_ms."""
        if ttl_ms <= 0:
            raise ValueError("ttl_ms must be positive")
        user_id = str(user_id)
        now = self._clock()
        window = AccessWindow(
            user_id=user_id,
            expires_at=now + ttl_ms,
            granted_at=now,
            source=source,
        )
        self.store.set(keys.access_key(user_id), window.model_dump(mode="json"), ttl_ms=ttl_ms)
        access_grants_total.labels(source=source.value, mode="grant").inc()
        logger.info(
            "access_granted",
            extra={"user_id": user_id, "source": source.value, "expires_at": window.expires_at},
        )
        return window

    def extend(self, user_id: str, ttl_ms: int, source: AccessSource) -> AccessWindow:
        """
        Atomic read-extend-write: a live window gains ttl_ms on top of its current
        expiry; an absent or expired window restarts at now + ttl_ms.
        """
        user_id = str(user_id)
        now = self._clock()
        committed: AccessWindow | None = None

        def _extend(current: Record | None) -> Record:
            nonlocal committed
            existing = AccessWindow.model_validate(current) if current else None
            if existing is not None and existing.is_live(now):
                expires_at = existing.expires_at + ttl_ms
            else:
                expires_at = now + ttl_ms
            committed = AccessWindow(
                user_id=user_id,
                expires_at=expires_at,
                granted_at=now,
                source=source,
            )
            return committed.model_dump(mode="json")

        self.store.atomic_update(keys.access_key(user_id), _extend, ttl_ms=self._ttl_for)
        access_grants_total.labels(source=source.value, mode="extend").inc()
        logger.info(
            "access_extended",
            extra={"user_id": user_id, "source": source.value, "expires_at": committed.expires_at},
        )
        return committed

    def time_remaining(self, user_id: str) -> int | None:
        """Milliseconds left, or None when there is no live window. Never negative."""
        window = self.get_window(user_id)
        if window is None:
            return None
        return window.remaining(self._clock())
