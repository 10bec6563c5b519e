"""
DTO tokens: Token (store record), TokenVerification (offline check), TokenConsumption.
"""
from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from nightpass.access.models import AccessWindow


class TokenRejection(str, Enum):
    INVALID_FORMAT = "invalid_format"
    USER_MISMATCH = "user_mismatch"
    EXPIRED = "expired"
    BAD_SIGNATURE = "bad_signature"
    # Stateful rejections, decided at the atomic transition in the store
    UNKNOWN_TOKEN = "unknown_token"
    ALREADY_USED = "already_used"


class Token(BaseModel):
    """Stored record under tokens/{value}. Bound to exactly one user."""

    value: str
    user_id: str
    media_ref: str | None = None
    created_at: int
    expires_at: int
    used: bool = False
    activated_at: int | None = None

    model_config = {"frozen": True}


class TokenVerification(BaseModel):
    """Result of the signature/expiry check; no store access involved."""

    valid: bool
    reason: TokenRejection | None = None
    issued_at: int | None = None
    user_id: str | None = None

    model_config = {"frozen": True}


class TokenConsumption(BaseModel):
    """Result of a one-time token redemption."""

    success: bool
    reason: TokenRejection | None = None
    token: Token | None = Field(None, description="Consumed record (success only)")
    window: AccessWindow | None = Field(None, description="Access window granted on success")

    model_config = {"frozen": True}
