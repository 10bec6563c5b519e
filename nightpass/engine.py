"""
EntitlementEngine: resolves what a /start means and applies it.

    ref_<code>   -> referral redemption
    t<...>       -> one-time token redemption
    view_<media> -> access check for a specific piece of content
    (nothing)    -> access check

The transport renders the returned EngineResult; it owns all messaging.
"""
from __future__ import annotations

import logging

from nightpass.access.manager import AccessWindowManager
from nightpass.access.models import AccessSource
from nightpass.ads.client import AdLinkClient
from nightpass.core.config import Settings
from nightpass.core.errors import StoreError, UpstreamUnavailable
from nightpass.referral.config import REF_PREFIX, ReferralConfig, normalize_code
from nightpass.referral.service import ReferralLedger
from nightpass.schemas.engine import EngineResult, ResultKind, StartEvent
from nightpass.services.circuit_breaker import get_circuit_breaker
from nightpass.services.runtime_settings import RuntimeSettingsCell
from nightpass.services.users import UserService
from nightpass.store.base import EntitlementStore
from nightpass.store.factory import create_store
from nightpass.tokens.codec import TOKEN_TAG, TokenCodec
from nightpass.tokens.models import TokenRejection
from nightpass.tokens.service import TokenLedger
from nightpass.utils.time import Clock, now_ms

logger = logging.getLogger(__name__)

VIEW_PREFIX = "view_"


class EntitlementEngine:
    def __init__(
        self,
        access: AccessWindowManager,
        tokens: TokenLedger,
        referrals: ReferralLedger,
        users: UserService,
        runtime: RuntimeSettingsCell,
        ads: AdLinkClient,
        bot_username: str = "",
        active_user_days: int = 30,
    ) -> None:
        self.access = access
        self.tokens = tokens
        self.referrals = referrals
        self.users = users
        self.runtime = runtime
        self.ads = ads
        self.bot_username = bot_username
        self.active_user_days = active_user_days

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: EntitlementStore | None = None,
        clock: Clock = now_ms,
    ) -> "EntitlementEngine":
        store = store or create_store(settings)
        access = AccessWindowManager(store, clock=clock)
        codec = TokenCodec.from_settings(settings, clock=clock)
        runtime = RuntimeSettingsCell.load(settings, store)
        breaker = get_circuit_breaker(
            "ad_provider",
            fail_max=settings.cb_failure_threshold,
            reset_timeout=settings.cb_open_seconds,
            redis_url=settings.redis_url if settings.store_backend == "redis" else None,
        )
        return cls(
            access=access,
            tokens=TokenLedger(store, codec, access, settings.access_ad_ms, clock=clock),
            referrals=ReferralLedger(store, access, ReferralConfig.from_settings(settings), clock=clock),
            users=UserService(store, clock=clock),
            runtime=runtime,
            ads=AdLinkClient(runtime, timeout_seconds=settings.ad_provider_timeout_seconds, breaker=breaker),
            bot_username=settings.telegram_bot_username,
            active_user_days=settings.active_user_days,
        )

    # ------------------------------------------------------------------
    # /start
    # ------------------------------------------------------------------

    def handle_start(self, event: StartEvent) -> EngineResult:
        user_id = str(event.user_id)
        param = (event.start_param or "").strip()
        self._track(user_id, event.display_name)

        if param.startswith(REF_PREFIX):
            return self._redeem_referral(user_id, param[len(REF_PREFIX):])
        if param.startswith(TOKEN_TAG):
            return self._redeem_token(user_id, param)

        media_ref = param[len(VIEW_PREFIX):] if param.startswith(VIEW_PREFIX) else None
        return self.check_access(user_id, media_ref=media_ref)

    def check_access(self, user_id: str, media_ref: str | None = None) -> EngineResult:
        user_id = str(user_id)
        window = self.access.get_window(user_id) if self.access.has_access(user_id) else None
        if window is None:
            return EngineResult(kind=ResultKind.NEEDS_VERIFICATION, user_id=user_id, media_ref=media_ref)
        return EngineResult(
            kind=ResultKind.ACCESS_GRANTED,
            user_id=user_id,
            source=window.source,
            expires_at=window.expires_at,
            remaining_ms=self.access.time_remaining(user_id),
            media_ref=media_ref,
        )

    def _redeem_referral(self, user_id: str, code: str) -> EngineResult:
        result = self.referrals.redeem(code, user_id)
        if not result.success:
            return EngineResult(
                kind=ResultKind.REFERRAL_INVALID,
                user_id=user_id,
                reason=result.reason.value,
                referral_code=normalize_code(code) or None,
            )
        window = result.referee_window
        return EngineResult(
            kind=ResultKind.REFERRAL_SUCCESS,
            user_id=user_id,
            source=AccessSource.REFERRAL,
            expires_at=window.expires_at if window else None,
            remaining_ms=self.access.time_remaining(user_id),
            referrer_user_id=result.referrer_user_id,
            referral_code=result.code,
        )

    def _redeem_token(self, user_id: str, token: str) -> EngineResult:
        consumption = self.tokens.consume(token, user_id)
        if not consumption.success:
            kind = ResultKind.TOKEN_USED if consumption.reason == TokenRejection.ALREADY_USED else ResultKind.TOKEN_INVALID
            return EngineResult(kind=kind, user_id=user_id, reason=consumption.reason.value)
        return EngineResult(
            kind=ResultKind.ACCESS_GRANTED,
            user_id=user_id,
            source=consumption.window.source,
            expires_at=consumption.window.expires_at,
            remaining_ms=self.access.time_remaining(user_id),
            media_ref=consumption.token.media_ref,
        )

    # ------------------------------------------------------------------
    # Earning access
    # ------------------------------------------------------------------

    def offer_access(self, user_id: str, media_ref: str | None = None) -> EngineResult:
        """
        Called by the transport once the user passed verification (channel
        membership). Ads on: a shortened ad link around a fresh token. Ads off:
        the user's referral code and link.
        """
        user_id = str(user_id)
        if self.access.has_access(user_id):
            return self.check_access(user_id, media_ref=media_ref)

        if not self.runtime.get().ad_enabled:
            code = self.referrals.get_or_create_code(user_id)
            return EngineResult(
                kind=ResultKind.ACCESS_DENIED,
                user_id=user_id,
                reason="referral_required",
                media_ref=media_ref,
                referral_code=code,
                referral_link=self.referrals.referral_link(code),
            )

        value = self.tokens.codec.issue(user_id)
        try:
            ad_url = self.ads.shorten_url(f"https://t.me/{self.bot_username}?start={value}")
        except UpstreamUnavailable as exc:
            logger.warning("ad_link_unavailable", extra={"user_id": user_id, "error": str(exc)})
            return EngineResult(
                kind=ResultKind.ACCESS_DENIED,
                user_id=user_id,
                reason="upstream_unavailable",
                media_ref=media_ref,
            )
        self.tokens.register(value, user_id, media_ref)
        return EngineResult(
            kind=ResultKind.ACCESS_DENIED,
            user_id=user_id,
            reason="ad_required",
            media_ref=media_ref,
            ad_url=ad_url,
        )

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def stats(self) -> dict[str, int]:
        return self.users.counts(active_days=self.active_user_days)

    def _track(self, user_id: str, display_name: str) -> None:
        try:
            self.users.track(user_id, display_name)
        except StoreError:
            logger.exception("user_track_failed", extra={"user_id": user_id})
