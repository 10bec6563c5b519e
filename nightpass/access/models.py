"""
DTO access: AccessWindow, one per user, stored under userAccess/{user_id}.
"""
from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class AccessSource(str, Enum):
    DIRECT = "direct"
    REFERRAL = "referral"
    REFERRAL_BONUS = "referral_bonus"


class AccessWindow(BaseModel):
    """Validity interval of an entitlement. expires_at <= now means logically absent."""

    user_id: str
    granted: bool = True
    expires_at: int
    granted_at: int
    source: AccessSource

    model_config = {"frozen": True}

    def is_live(self, now: int) -> bool:
        return self.granted and self.expires_at > now

    def remaining(self, now: int) -> int:
        return max(0, self.expires_at - now)
