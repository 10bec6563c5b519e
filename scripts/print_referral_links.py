#!/usr/bin/env python3
"""
Print top referrers with their referral links and redemption counts.
Run from the project root: python -m scripts.print_referral_links
or: PYTHONPATH=. python scripts/print_referral_links.py
"""
import os
import sys

# project root on PYTHONPATH
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from nightpass.core.config import get_settings
from nightpass.engine import EntitlementEngine


def main(limit: int = 20):
    settings = get_settings()
    if not settings.telegram_bot_username.strip():
        print("TELEGRAM_BOT_USERNAME is not set in .env, links are unavailable.")
        return
    engine = EntitlementEngine.from_settings(settings)
    top = engine.referrals.top_referrers(limit=limit)
    if not top:
        print("No referrals yet.")
        return
    print(f"Referral links (bot: @{settings.telegram_bot_username}):\n")
    for stats in top:
        code = engine.referrals.get_code(stats.user_id)
        link = engine.referrals.referral_link(code) if code else "-"
        print(f"  {stats.user_id}: {stats.total_referrals} referrals\n    {link}\n")


if __name__ == "__main__":
    main(int(sys.argv[1]) if len(sys.argv) > 1 else 20)
