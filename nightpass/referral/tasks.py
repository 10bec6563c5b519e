"""
Celery periodic task: finish referral redemptions whose credit steps were left
pending by an interrupted commit.
"""
import logging

from nightpass.access.manager import AccessWindowManager
from nightpass.core.celery_app import celery_app
from nightpass.core.config import get_settings
from nightpass.core.errors import StoreError
from nightpass.referral.config import ReferralConfig
from nightpass.referral.service import ReferralLedger
from nightpass.store.factory import create_store

logger = logging.getLogger(__name__)


@celery_app.task(name="nightpass.referral.tasks.resume_pending_redemptions")
def resume_pending_redemptions() -> dict:
    """Apply outstanding credit steps of redemptions older than the grace period."""
    settings = get_settings()
    store = create_store(settings)
    ledger = ReferralLedger(store, AccessWindowManager(store), ReferralConfig.from_settings(settings))
    try:
        resumed = ledger.resume_pending(grace_ms=settings.referral_resume_grace_seconds * 1000)
    except StoreError as e:
        logger.exception("resume_pending_redemptions_error", extra={"error": str(e)})
        return {"resumed": 0, "error": "store_unavailable"}

    logger.info("resume_pending_redemptions_done", extra={"resumed": resumed})
    return {"resumed": resumed}
