"""
ReferralLedger: referral codes, redemption validation, exactly-once crediting.
"""
from __future__ import annotations

import logging
import secrets

from nightpass.access.manager import AccessWindowManager
from nightpass.access.models import AccessSource, AccessWindow
from nightpass.core.errors import AlreadyRedeemed, StoreError
from nightpass.referral.config import (
    CODE_ALPHABET,
    CREDIT_STEPS,
    STEP_CODE_USES,
    STEP_REFEREE_ACCESS,
    STEP_REFERRER_BONUS,
    STEP_REFERRER_STATS,
    ReferralConfig,
    build_referral_link,
    normalize_code,
)
from nightpass.referral.models import (
    RedemptionResult,
    RedemptionValidation,
    ReferralCode,
    ReferralRedemption,
    ReferralRejection,
    ReferrerOverview,
    ReferrerStats,
    UserReferralCode,
)
from nightpass.store import keys
from nightpass.store.base import EntitlementStore, Record
from nightpass.utils.metrics import referral_codes_created_total, referral_redemptions_total
from nightpass.utils.time import Clock, now_ms

logger = logging.getLogger(__name__)


class ReferralLedger:
    def __init__(
        self,
        store: EntitlementStore,
        access: AccessWindowManager,
        config: ReferralConfig | None = None,
        clock: Clock = now_ms,
    ) -> None:
        self.store = store
        self.access = access
        self.config = config or ReferralConfig()
        self._clock = clock

    # ------------------------------------------------------------------
    # Referral code
    # ------------------------------------------------------------------

    def generate_referral_code(self) -> str:
        return "".join(secrets.choice(CODE_ALPHABET) for _ in range(self.config.code_length))

    def get_code(self, user_id: str) -> str | None:
        raw = self.store.get(keys.user_code_key(str(user_id)))
        return UserReferralCode.model_validate(raw).code if raw else None

    def get_or_create_code(self, user_id: str) -> str:
        """
        Return the user's code, creating it on first need. The code record is
        claimed before the user -> code mapping; if a concurrent call wins the
        mapping, our freshly claimed code is released and theirs is returned.
        """
        user_id = str(user_id)
        existing = self.get_code(user_id)
        if existing:
            return existing

        code = self._claim_new_code(user_id)
        mapping = UserReferralCode(code=code, created_at=self._clock())
        if self.store.create_if_absent(keys.user_code_key(user_id), mapping.model_dump(mode="json")):
            referral_codes_created_total.inc()
            logger.info("referral_code_created", extra={"user_id": user_id, "code": code})
            return code

        self._release_code(code, user_id)
        winner = self.get_code(user_id)
        if winner is None:
            raise StoreError(f"referral code mapping for {user_id} vanished")
        return winner

    def _claim_new_code(self, user_id: str) -> str:
        for attempt in range(1, self.config.code_max_attempts + 1):
            code = self.generate_referral_code()
            record = ReferralCode(code=code, owner_user_id=user_id, created_at=self._clock())
            if self.store.create_if_absent(keys.referral_code_key(code), record.model_dump(mode="json")):
                return code
            logger.warning("referral_code_collision", extra={"code": code, "attempt": attempt})
        raise StoreError(f"could not allocate a unique referral code in {self.config.code_max_attempts} attempts")

    def _release_code(self, code: str, user_id: str) -> None:
        def _drop_unused(current: Record | None) -> Record | None:
            if current is None:
                return None
            record = ReferralCode.model_validate(current)
            if record.owner_user_id == user_id and record.uses == 0:
                return None
            return current

        self.store.atomic_update(keys.referral_code_key(code), _drop_unused)

    def get_code_record(self, code: str) -> ReferralCode | None:
        raw = self.store.get(keys.referral_code_key(normalize_code(code)))
        return ReferralCode.model_validate(raw) if raw else None

    def referral_link(self, code: str) -> str:
        return build_referral_link(self.config.bot_username, code)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_redemption(self, code: str, new_user_id: str) -> RedemptionValidation:
        new_user_id = str(new_user_id)
        record = self.get_code_record(code) if normalize_code(code) else None
        if record is None:
            return RedemptionValidation(valid=False, reason=ReferralRejection.CODE_NOT_FOUND)
        if record.owner_user_id == new_user_id:
            return RedemptionValidation(valid=False, reason=ReferralRejection.SELF_REFERRAL)
        if self.store.get(keys.redemption_key(new_user_id)) is not None:
            return RedemptionValidation(valid=False, reason=ReferralRejection.ALREADY_REDEEMED)
        return RedemptionValidation(valid=True, referrer_user_id=record.owner_user_id)

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def redeem(self, code: str, new_user_id: str) -> RedemptionResult:
        """validate_redemption + commit_redemption."""
        code = normalize_code(code)
        validation = self.validate_redemption(code, new_user_id)
        if not validation.valid:
            return self._rejected(code, str(new_user_id), validation.reason)
        return self.commit_redemption(validation.referrer_user_id, new_user_id, code)

    def commit_redemption(self, referrer_user_id: str, new_user_id: str, code: str) -> RedemptionResult:
        """
        Create the redemption record with a single create-if-absent update keyed by
        the referee (this closes the race between two concurrent redemptions for the
        same user), then apply each credit step as its own atomic update.
        """
        referrer_user_id, new_user_id, code = str(referrer_user_id), str(new_user_id), normalize_code(code)
        if referrer_user_id == new_user_id:
            return self._rejected(code, new_user_id, ReferralRejection.SELF_REFERRAL)

        redemption = ReferralRedemption(
            new_user_id=new_user_id,
            referrer_user_id=referrer_user_id,
            code=code,
            redeemed_at=self._clock(),
            pending_steps=list(CREDIT_STEPS),
        )

        def _create(current: Record | None) -> Record:
            if current is not None:
                raise AlreadyRedeemed(new_user_id)
            return redemption.model_dump(mode="json")

        try:
            self.store.atomic_update(keys.redemption_key(new_user_id), _create)
        except AlreadyRedeemed:
            return self._rejected(code, new_user_id, ReferralRejection.ALREADY_REDEEMED)

        result = self._apply_pending(redemption)
        referral_redemptions_total.labels(result="success").inc()
        logger.info(
            "referral_redeemed",
            extra={"new_user_id": new_user_id, "referrer_id": referrer_user_id, "code": code},
        )
        return result

    def resume_redemption(self, new_user_id: str) -> RedemptionResult | None:
        """Apply credit steps left pending by an interrupted commit. None if no redemption exists."""
        raw = self.store.get(keys.redemption_key(str(new_user_id)))
        if raw is None:
            return None
        redemption = ReferralRedemption.model_validate(raw)
        if redemption.pending_steps:
            logger.warning(
                "referral_redemption_resumed",
                extra={"new_user_id": redemption.new_user_id, "steps": redemption.pending_steps},
            )
        return self._apply_pending(redemption)

    def resume_pending(self, grace_ms: int) -> int:
        """
        Finish every redemption whose credit steps are still pending after
        ``grace_ms``, leaving younger ones to the commit that is still running.
        Returns how many redemptions were resumed.
        """
        cutoff = self._clock() - grace_ms
        resumed = 0
        for _, raw in self.store.scan(keys.REDEMPTIONS):
            if not raw.get("pending_steps") or raw.get("redeemed_at", 0) > cutoff:
                continue
            if self.resume_redemption(raw["new_user_id"]) is not None:
                resumed += 1
        return resumed

    def _apply_pending(self, redemption: ReferralRedemption) -> RedemptionResult:
        windows: dict[str, AccessWindow] = {}
        for step in redemption.pending_steps:
            window = self._apply_step(step, redemption)
            if window is not None:
                windows[step] = window
            self._mark_done(redemption.new_user_id, step)

        return RedemptionResult(
            success=True,
            referrer_user_id=redemption.referrer_user_id,
            code=redemption.code,
            referee_window=windows.get(STEP_REFEREE_ACCESS) or self.access.get_window(redemption.new_user_id),
            referrer_window=windows.get(STEP_REFERRER_BONUS) or self.access.get_window(redemption.referrer_user_id),
        )

    def _apply_step(self, step: str, redemption: ReferralRedemption) -> AccessWindow | None:
        if step == STEP_CODE_USES:
            self._increment_code_uses(redemption.code)
        elif step == STEP_REFERRER_STATS:
            self._increment_referrer_stats(redemption.referrer_user_id)
        elif step == STEP_REFEREE_ACCESS:
            return self.access.grant(redemption.new_user_id, self.config.referee_access_ms, AccessSource.REFERRAL)
        elif step == STEP_REFERRER_BONUS:
            return self.access.extend(
                redemption.referrer_user_id, self.config.referrer_bonus_ms, AccessSource.REFERRAL_BONUS
            )
        else:
            logger.error("referral_unknown_step", extra={"step": step, "new_user_id": redemption.new_user_id})
        return None

    def _mark_done(self, new_user_id: str, step: str) -> None:
        def _drop_step(current: Record | None) -> Record | None:
            if current is None:
                return None
            current["pending_steps"] = [s for s in current.get("pending_steps", []) if s != step]
            return current

        self.store.atomic_update(keys.redemption_key(new_user_id), _drop_step)

    def _increment_code_uses(self, code: str) -> None:
        now = self._clock()

        def _increment(current: Record | None) -> Record | None:
            if current is None:
                return None
            record = ReferralCode.model_validate(current)
            return record.model_copy(update={"uses": record.uses + 1, "last_used_at": now}).model_dump(mode="json")

        self.store.atomic_update(keys.referral_code_key(code), _increment)

    def _increment_referrer_stats(self, referrer_user_id: str) -> None:
        now = self._clock()

        def _increment(current: Record | None) -> Record:
            if current is None:
                stats = ReferrerStats(user_id=referrer_user_id, total_referrals=1, last_referral_at=now, created_at=now)
            else:
                stats = ReferrerStats.model_validate(current)
                stats = stats.model_copy(
                    update={"total_referrals": stats.total_referrals + 1, "last_referral_at": now}
                )
            return stats.model_dump(mode="json")

        self.store.atomic_update(keys.referrer_stats_key(referrer_user_id), _increment)

    def _rejected(self, code: str, new_user_id: str, reason: ReferralRejection) -> RedemptionResult:
        referral_redemptions_total.labels(result=reason.value).inc()
        logger.info(
            "referral_rejected",
            extra={"new_user_id": new_user_id, "code": code, "reason": reason.value},
        )
        return RedemptionResult(success=False, reason=reason, code=code or None)

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def get_referrer_stats(self, user_id: str) -> ReferrerStats | None:
        raw = self.store.get(keys.referrer_stats_key(str(user_id)))
        return ReferrerStats.model_validate(raw) if raw else None

    def get_redemption(self, new_user_id: str) -> ReferralRedemption | None:
        raw = self.store.get(keys.redemption_key(str(new_user_id)))
        return ReferralRedemption.model_validate(raw) if raw else None

    def get_stats(self, user_id: str) -> ReferrerOverview:
        """Referral dashboard for one user. Does not create a code."""
        user_id = str(user_id)
        code = self.get_code(user_id)
        stats = self.get_referrer_stats(user_id)
        record = self.get_code_record(code) if code else None
        return ReferrerOverview(
            user_id=user_id,
            code=code,
            link=self.referral_link(code) if code else None,
            total_referrals=stats.total_referrals if stats else 0,
            code_uses=record.uses if record else 0,
            last_referral_at=stats.last_referral_at if stats else None,
        )

    def top_referrers(self, limit: int = 10) -> list[ReferrerStats]:
        referrers = [ReferrerStats.model_validate(raw) for _, raw in self.store.scan(keys.REFERRERS)]
        referrers.sort(key=lambda s: (-s.total_referrals, s.user_id))
        return referrers[:limit]
