"""
Referral program config, a typed view over nightpass.core.config.Settings.
"""
from __future__ import annotations

import string
from urllib.parse import quote

from pydantic import BaseModel

from nightpass.core.config import Settings

CODE_ALPHABET = string.ascii_uppercase + string.digits
REF_PREFIX = "ref_"

# Credit steps applied after a redemption record is created, in order.
STEP_CODE_USES = "code_uses"
STEP_REFERRER_STATS = "referrer_stats"
STEP_REFEREE_ACCESS = "referee_access"
STEP_REFERRER_BONUS = "referrer_bonus"
CREDIT_STEPS = (STEP_CODE_USES, STEP_REFERRER_STATS, STEP_REFEREE_ACCESS, STEP_REFERRER_BONUS)


class ReferralConfig(BaseModel):
    code_length: int = 8
    code_max_attempts: int = 10
    referee_access_ms: int = 8 * 60 * 60 * 1000
    referrer_bonus_ms: int = 8 * 60 * 60 * 1000
    bot_username: str = ""

    model_config = {"frozen": True}

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReferralConfig":
        return cls(
            code_length=settings.referral_code_length,
            code_max_attempts=settings.referral_code_max_attempts,
            referee_access_ms=settings.referral_bonus_ms,
            referrer_bonus_ms=settings.referral_bonus_ms,
            bot_username=settings.telegram_bot_username,
        )


def build_referral_link(bot_username: str, code: str) -> str:
    return f"https://t.me/{bot_username}?start={REF_PREFIX}{quote(code)}"


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()
