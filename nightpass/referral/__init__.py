"""
Referral codes and redemptions: one code per referrer, one redemption per
referee, access for both sides.
"""
from nightpass.referral.config import ReferralConfig, build_referral_link, normalize_code
from nightpass.referral.models import RedemptionResult, ReferralRejection, ReferrerOverview
from nightpass.referral.service import ReferralLedger

__all__ = [
    "RedemptionResult",
    "ReferralConfig",
    "ReferralLedger",
    "ReferralRejection",
    "ReferrerOverview",
    "build_referral_link",
    "normalize_code",
]
