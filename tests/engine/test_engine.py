"""Tests for EntitlementEngine: /start intents, offers and the A/B referral scenario."""
from unittest.mock import patch

import pytest

from nightpass.access.models import AccessSource
from nightpass.core.config import Settings
from nightpass.core.errors import StoreError, UpstreamUnavailable
from nightpass.engine import EntitlementEngine
from nightpass.schemas.engine import ResultKind, StartEvent
from nightpass.utils.time import HOUR_MS


@pytest.fixture
def engine(store, clock):
    settings = Settings(token_secret="engine-test-secret-value", telegram_bot_username="nightpass_bot")
    return EntitlementEngine.from_settings(settings, store=store, clock=clock)


def _start(engine, user_id, param=None):
    return engine.handle_start(StartEvent(user_id=user_id, start_param=param))


class TestPlainStart:
    def test_no_access_needs_verification(self, engine):
        result = _start(engine, "42")
        assert result.kind == ResultKind.NEEDS_VERIFICATION

    def test_view_param_carries_media(self, engine):
        result = _start(engine, "42", "view_abc")
        assert result.kind == ResultKind.NEEDS_VERIFICATION
        assert result.media_ref == "abc"

    def test_live_window_reports_remaining(self, engine, clock):
        engine.access.grant("42", 5 * HOUR_MS, AccessSource.DIRECT)
        clock.advance_hours(1)
        result = _start(engine, "42", "view_abc")
        assert result.kind == ResultKind.ACCESS_GRANTED
        assert result.remaining_ms == 4 * HOUR_MS
        assert result.media_ref == "abc"

    def test_tracks_user(self, engine):
        _start(engine, "42")
        assert engine.users.get("42") is not None
        assert engine.stats() == {"user_count": 1, "active_users": 1}

    def test_tracking_failure_does_not_block(self, engine):
        with patch.object(engine.users, "track", side_effect=StoreError("down")):
            assert _start(engine, "42").kind == ResultKind.NEEDS_VERIFICATION


class TestTokenStart:
    def test_valid_token_grants_access(self, engine, clock):
        token = engine.tokens.issue("42", media_ref="m9")
        result = _start(engine, "42", token.value)
        assert result.kind == ResultKind.ACCESS_GRANTED
        assert result.source == AccessSource.DIRECT
        assert result.expires_at == clock.now + 18 * HOUR_MS
        assert result.media_ref == "m9"

    def test_reused_token(self, engine):
        token = engine.tokens.issue("42")
        _start(engine, "42", token.value)
        result = _start(engine, "42", token.value)
        assert result.kind == ResultKind.TOKEN_USED
        assert result.reason == "already_used"

    def test_someone_elses_token(self, engine):
        token = engine.tokens.issue("42")
        result = _start(engine, "43", token.value)
        assert result.kind == ResultKind.TOKEN_INVALID
        assert result.reason == "user_mismatch"

    def test_malformed_token(self, engine):
        result = _start(engine, "42", "tgarbage")
        assert result.kind == ResultKind.TOKEN_INVALID
        assert result.reason == "invalid_format"


class TestReferralStart:
    def test_a_refers_b(self, engine):
        code = engine.referrals.get_or_create_code("A")
        result = _start(engine, "B", f"ref_{code}")

        assert result.kind == ResultKind.REFERRAL_SUCCESS
        assert result.referrer_user_id == "A"
        assert result.remaining_ms == 8 * HOUR_MS
        assert engine.access.time_remaining("A") == 8 * HOUR_MS

        again = _start(engine, "B", f"ref_{code}")
        assert again.kind == ResultKind.REFERRAL_INVALID
        assert again.reason == "already_redeemed"

    def test_self_referral(self, engine):
        code = engine.referrals.get_or_create_code("A")
        result = _start(engine, "A", f"ref_{code}")
        assert result.kind == ResultKind.REFERRAL_INVALID
        assert result.reason == "self_referral"

    def test_unknown_code(self, engine):
        result = _start(engine, "B", "ref_NOPE0000")
        assert result.kind == ResultKind.REFERRAL_INVALID
        assert result.reason == "code_not_found"


class TestOfferAccess:
    def test_referral_mode_offers_code(self, engine):
        result = engine.offer_access("42", media_ref="m1")
        assert result.kind == ResultKind.ACCESS_DENIED
        assert result.reason == "referral_required"
        assert result.referral_link == f"https://t.me/nightpass_bot?start=ref_{result.referral_code}"

    def test_ad_mode_wraps_fresh_token(self, engine):
        engine.runtime.update(ad_enabled=True, ad_provider_api_token="k")
        with patch.object(engine.ads, "shorten_url", return_value="https://ads.example/abc") as shorten:
            result = engine.offer_access("42", media_ref="m1")

        assert result.reason == "ad_required"
        assert result.ad_url == "https://ads.example/abc"
        long_url = shorten.call_args.args[0]
        token_value = long_url.split("start=", 1)[1]
        assert long_url.startswith("https://t.me/nightpass_bot?start=t")
        assert engine.tokens.get(token_value).media_ref == "m1"

    def test_ad_provider_down(self, engine):
        engine.runtime.update(ad_enabled=True, ad_provider_api_token="k")
        with patch.object(engine.ads, "shorten_url", side_effect=UpstreamUnavailable("down")):
            result = engine.offer_access("42")
        assert result.kind == ResultKind.ACCESS_DENIED
        assert result.reason == "upstream_unavailable"
        assert list(engine.tokens.store.scan("tokens/")) == []

    def test_existing_access_short_circuits(self, engine):
        engine.access.grant("42", HOUR_MS, AccessSource.DIRECT)
        assert engine.offer_access("42").kind == ResultKind.ACCESS_GRANTED
