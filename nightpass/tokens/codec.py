"""
Self-describing access tickets: t<issued_at_ms>-<user_id>-<hmac prefix>.

Validity (structure, owner, age, signature) is checked offline so that a flood
of malformed or expired tokens never reaches the store.
"""
from __future__ import annotations

import hashlib
import hmac
import logging

from nightpass.core.config import Settings
from nightpass.core.errors import ConfigurationError
from nightpass.tokens.models import TokenRejection, TokenVerification
from nightpass.utils.metrics import token_verifications_total
from nightpass.utils.time import Clock, now_ms

logger = logging.getLogger(__name__)

TOKEN_TAG = "t"
FIELD_SEPARATOR = "-"
# Epoch milliseconds fit in 15 digits until the year 33658
MAX_TIMESTAMP_DIGITS = 15


class TokenCodec:
    def __init__(
        self,
        secret: str,
        ttl_ms: int,
        digest_length: int = 16,
        clock: Clock = now_ms,
    ) -> None:
        if not secret:
            raise ConfigurationError("token secret is not configured")
        self._secret = secret.encode("utf-8")
        self.ttl_ms = ttl_ms
        self.digest_length = digest_length
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, clock: Clock = now_ms) -> "TokenCodec":
        return cls(
            settings.token_secret,
            ttl_ms=settings.token_ttl_ms,
            digest_length=settings.token_digest_length,
            clock=clock,
        )

    def _digest(self, issued_at: int, user_id: str) -> str:
        payload = f"{user_id}:{issued_at}".encode("utf-8")
        return hmac.new(self._secret, payload, hashlib.sha256).hexdigest()[: self.digest_length]

    def issue(self, user_id: str) -> str:
        user_id = str(user_id)
        if not user_id or FIELD_SEPARATOR in user_id:
            raise ValueError(f"user id cannot be encoded in a token: {user_id!r}")
        issued_at = self._clock()
        return f"{TOKEN_TAG}{issued_at}{FIELD_SEPARATOR}{user_id}{FIELD_SEPARATOR}{self._digest(issued_at, user_id)}"

    def verify(self, token: str | None, expected_user_id: str) -> TokenVerification:
        """
        Check structure, owner, age and signature, in that order.
        Structure is checked before anything is parsed, so arbitrary input is safe.
        """
        result = self._verify(token, str(expected_user_id))
        token_verifications_total.labels(result=result.reason.value if result.reason else "ok").inc()
        if not result.valid:
            logger.info(
                "token_rejected",
                extra={"user_id": str(expected_user_id), "reason": result.reason.value},
            )
        return result

    def _verify(self, token: str | None, expected_user_id: str) -> TokenVerification:
        if not token or not token.startswith(TOKEN_TAG):
            return TokenVerification(valid=False, reason=TokenRejection.INVALID_FORMAT)
        parts = token[len(TOKEN_TAG):].split(FIELD_SEPARATOR)
        if len(parts) != 3 or not all(parts) or not _is_timestamp(parts[0]):
            return TokenVerification(valid=False, reason=TokenRejection.INVALID_FORMAT)

        issued_at = int(parts[0])
        user_id, digest = parts[1], parts[2]

        if user_id != expected_user_id:
            return TokenVerification(valid=False, reason=TokenRejection.USER_MISMATCH, issued_at=issued_at, user_id=user_id)

        if self._clock() - issued_at > self.ttl_ms:
            return TokenVerification(valid=False, reason=TokenRejection.EXPIRED, issued_at=issued_at, user_id=user_id)

        if not hmac.compare_digest(digest.encode("utf-8"), self._digest(issued_at, user_id).encode("utf-8")):
            return TokenVerification(valid=False, reason=TokenRejection.BAD_SIGNATURE, issued_at=issued_at, user_id=user_id)

        return TokenVerification(valid=True, issued_at=issued_at, user_id=user_id)


def _is_timestamp(field: str) -> bool:
    return len(field) <= MAX_TIMESTAMP_DIGITS and field.isascii() and field.isdigit()
