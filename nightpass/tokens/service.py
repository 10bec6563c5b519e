"""
TokenLedger: the stateful half of the token lifecycle: persist issued tokens
and consume them exactly once.
"""
from __future__ import annotations

import logging

from nightpass.access.manager import AccessWindowManager
from nightpass.access.models import AccessSource
from nightpass.core.errors import TokenAlreadyUsed, ValidationError
from nightpass.store import keys
from nightpass.store.base import EntitlementStore, Record
from nightpass.tokens.codec import TokenCodec
from nightpass.tokens.models import Token, TokenConsumption, TokenRejection
from nightpass.utils.metrics import token_consumptions_total, tokens_issued_total
from nightpass.utils.time import Clock, now_ms

logger = logging.getLogger(__name__)


class TokenLedger:
    def __init__(
        self,
        store: EntitlementStore,
        codec: TokenCodec,
        access: AccessWindowManager,
        access_ttl_ms: int,
        clock: Clock = now_ms,
    ) -> None:
        self.store = store
        self.codec = codec
        self.access = access
        self.access_ttl_ms = access_ttl_ms
        self._clock = clock

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue(self, user_id: str, media_ref: str | None = None) -> Token:
        """Sign a new token for ``user_id`` and persist its record (unused)."""
        return self.register(self.codec.issue(str(user_id)), user_id, media_ref)

    def register(self, value: str, user_id: str, media_ref: str | None = None) -> Token:
        """Persist the record for an already signed token."""
        user_id = str(user_id)
        now = self._clock()
        token = Token(
            value=value,
            user_id=user_id,
            media_ref=media_ref or None,
            created_at=now,
            expires_at=now + self.codec.ttl_ms,
        )
        self.store.set(keys.token_key(value), token.model_dump(mode="json"), ttl_ms=self.codec.ttl_ms)
        tokens_issued_total.inc()
        logger.info("token_issued", extra={"user_id": user_id, "media_ref": media_ref})
        return token

    def get(self, value: str) -> Token | None:
        raw = self.store.get(keys.token_key(value))
        return Token.model_validate(raw) if raw else None

    # ------------------------------------------------------------------
    # Consume
    # ------------------------------------------------------------------

    def consume(self, value: str, user_id: str) -> TokenConsumption:
        """
        Redeem a token once. The offline check runs first; the store is only
        touched for tokens that are well-formed, owned, fresh and signed. The
        used:false -> used:true transition is a single atomic update, and a token
        observed as used at that moment is the authoritative rejection.
        """
        user_id = str(user_id)
        verification = self.codec.verify(value, user_id)
        if not verification.valid:
            return self._rejected(value, user_id, verification.reason)

        now = self._clock()

        def _activate(current: Record | None) -> Record:
            if current is None:
                raise ValidationError(TokenRejection.UNKNOWN_TOKEN.value)
            token = Token.model_validate(current)
            if token.user_id != user_id:
                raise ValidationError(TokenRejection.USER_MISMATCH.value)
            if token.used:
                raise TokenAlreadyUsed(value)
            if token.expires_at <= now:
                raise ValidationError(TokenRejection.EXPIRED.value)
            return token.model_copy(update={"used": True, "activated_at": now}).model_dump(mode="json")

        try:
            committed = self.store.atomic_update(
                keys.token_key(value),
                _activate,
                ttl_ms=lambda record: record["expires_at"] - self._clock(),
            )
        except ValidationError as exc:
            return self._rejected(value, user_id, TokenRejection(exc.reason))

        token = Token.model_validate(committed)
        window = self.access.grant(user_id, self.access_ttl_ms, AccessSource.DIRECT)
        token_consumptions_total.labels(result="success").inc()
        logger.info(
            "token_consumed",
            extra={"user_id": user_id, "media_ref": token.media_ref, "expires_at": window.expires_at},
        )
        return TokenConsumption(success=True, token=token, window=window)

    def _rejected(self, value: str, user_id: str, reason: TokenRejection) -> TokenConsumption:
        token_consumptions_total.labels(result=reason.value).inc()
        logger.info("token_consume_rejected", extra={"user_id": user_id, "reason": reason.value})
        return TokenConsumption(success=False, reason=reason)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def reap_expired(self) -> int:
        """Remove token records past expires_at. Returns how many were removed."""
        removed = 0
        for key, raw in self.store.scan(keys.TOKENS):
            if raw.get("expires_at", 0) > self._clock():
                continue
            if self._drop_if_expired(key):
                removed += 1
        return removed

    def _drop_if_expired(self, key: str) -> bool:
        dropped = False

        def _drop(current: Record | None) -> Record | None:
            nonlocal dropped
            dropped = current is not None and current.get("expires_at", 0) <= self._clock()
            return None if dropped or current is None else current

        self.store.atomic_update(key, _drop, ttl_ms=lambda record: record["expires_at"] - self._clock())
        return dropped
