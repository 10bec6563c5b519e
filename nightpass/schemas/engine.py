"""
Contract with the chat transport: StartEvent in, EngineResult out.
The transport renders EngineResult; nothing here carries UI text.
"""
from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from nightpass.access.models import AccessSource


class StartEvent(BaseModel):
    user_id: str
    start_param: str | None = None
    display_name: str = ""

    model_config = {"frozen": True}


class ResultKind(str, Enum):
    ACCESS_GRANTED = "access_granted"
    ACCESS_DENIED = "access_denied"
    TOKEN_INVALID = "token_invalid"
    TOKEN_USED = "token_used"
    REFERRAL_INVALID = "referral_invalid"
    REFERRAL_SUCCESS = "referral_success"
    NEEDS_VERIFICATION = "needs_verification"


class EngineResult(BaseModel):
    kind: ResultKind
    user_id: str
    reason: str | None = Field(None, description="Rejection code for *_invalid / access_denied")
    source: AccessSource | None = None
    expires_at: int | None = None
    remaining_ms: int | None = None
    media_ref: str | None = None
    referrer_user_id: str | None = Field(None, description="Set on referral_success so the transport can notify")
    ad_url: str | None = None
    referral_code: str | None = None
    referral_link: str | None = None

    model_config = {"frozen": True}
