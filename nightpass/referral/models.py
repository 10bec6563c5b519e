"""
DTO referrals: stored records (codes, redemptions, referrer stats) and results.
"""
from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from nightpass.access.models import AccessWindow


class ReferralRejection(str, Enum):
    CODE_NOT_FOUND = "code_not_found"
    SELF_REFERRAL = "self_referral"
    ALREADY_REDEEMED = "already_redeemed"


# ----- Stored records -----


class ReferralCode(BaseModel):
    """referrals/codes/{code}"""

    code: str
    owner_user_id: str
    created_at: int
    uses: int = Field(0, ge=0)
    last_used_at: int | None = None


class UserReferralCode(BaseModel):
    """referrals/userCodes/{user_id}: reverse mapping user -> code."""

    code: str
    created_at: int


class ReferralRedemption(BaseModel):
    """referrals/users/{new_user_id}: at most one per referee, ever."""

    new_user_id: str
    referrer_user_id: str
    code: str
    redeemed_at: int
    pending_steps: list[str] = Field(default_factory=list)


class ReferrerStats(BaseModel):
    """referrals/referrers/{user_id}: only ever incremented."""

    user_id: str
    total_referrals: int = Field(0, ge=0)
    last_referral_at: int | None = None
    created_at: int


# ----- Results -----


class RedemptionValidation(BaseModel):
    valid: bool
    reason: ReferralRejection | None = None
    referrer_user_id: str | None = None

    model_config = {"frozen": True}


class RedemptionResult(BaseModel):
    success: bool
    reason: ReferralRejection | None = None
    referrer_user_id: str | None = None
    code: str | None = None
    referee_window: AccessWindow | None = None
    referrer_window: AccessWindow | None = None

    model_config = {"frozen": True}


class ReferrerOverview(BaseModel):
    """What a user sees under "my referrals"."""

    user_id: str
    code: str | None = None
    link: str | None = None
    total_referrals: int = 0
    code_uses: int = 0
    last_referral_at: int | None = None

    model_config = {"frozen": True}
