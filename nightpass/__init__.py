"""NightPass: time-limited content entitlements earned via ad tokens or referrals."""
