"""Logical key layout. Backends may add a namespace prefix on top of these."""

TOKENS = "tokens/"
USER_ACCESS = "userAccess/"
REFERRAL_CODES = "referrals/codes/"
USER_CODES = "referrals/userCodes/"
REDEMPTIONS = "referrals/users/"
REFERRERS = "referrals/referrers/"
USERS = "users/"
RUNTIME_CONFIG = "config"


def token_key(token: str) -> str:
    return f"{TOKENS}{token}"


def access_key(user_id: str) -> str:
    return f"{USER_ACCESS}{user_id}"


def referral_code_key(code: str) -> str:
    return f"{REFERRAL_CODES}{code}"


def user_code_key(user_id: str) -> str:
    return f"{USER_CODES}{user_id}"


def redemption_key(new_user_id: str) -> str:
    """Redemptions are keyed by the referee, never the referrer."""
    return f"{REDEMPTIONS}{new_user_id}"


def referrer_stats_key(user_id: str) -> str:
    return f"{REFERRERS}{user_id}"


def user_profile_key(user_id: str) -> str:
    return f"{USERS}{user_id}"
