"""
Error taxonomy.

ConfigurationError is fatal at startup. ValidationError subclasses are typed
rejections that the engine turns into result kinds. UpstreamUnavailable and
StoreError are recoverable at the call site.
"""
from __future__ import annotations


class NightPassError(Exception):
    """Base class for all errors raised by nightpass."""


class ConfigurationError(NightPassError):
    """Missing or invalid secret/credentials."""


class ValidationError(NightPassError):
    """A request was rejected; ``reason`` is a stable machine-readable code."""

    def __init__(self, reason: str, message: str | None = None) -> None:
        super().__init__(message or reason)
        self.reason = reason


class TokenAlreadyUsed(ValidationError):
    def __init__(self, token: str) -> None:
        super().__init__("already_used", f"token already used: {token}")


class AlreadyRedeemed(ValidationError):
    def __init__(self, new_user_id: str) -> None:
        super().__init__("already_redeemed", f"user {new_user_id} already redeemed a referral")


class UpstreamUnavailable(NightPassError):
    """External ad provider failed, timed out or is switched off."""


class StoreError(NightPassError):
    """The entitlement store failed to complete an operation."""
