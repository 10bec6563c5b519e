"""
Celery tasks: periodic reaping of expired tokens/windows and delayed
deletion of chat messages.
"""
import logging

from nightpass.core.celery_app import celery_app
from nightpass.core.config import get_settings
from nightpass.core.errors import StoreError
from nightpass.access.manager import AccessWindowManager
from nightpass.services.telegram.client import TelegramClient
from nightpass.store.factory import create_store
from nightpass.tokens.codec import TokenCodec
from nightpass.tokens.service import TokenLedger
from nightpass.utils.metrics import expired_entries_reaped_total

logger = logging.getLogger(__name__)


@celery_app.task(name="nightpass.workers.tasks.cleanup.reap_expired_entries")
def reap_expired_entries() -> dict:
    """Drop access windows and token records past their expiry."""
    settings = get_settings()
    store = create_store(settings)
    access = AccessWindowManager(store)
    tokens = TokenLedger(store, TokenCodec.from_settings(settings), access, settings.access_ad_ms)
    try:
        windows = access.reap_expired()
        expired_tokens = tokens.reap_expired()
    except StoreError as e:
        logger.exception("reap_expired_entries_error", extra={"error": str(e)})
        return {"windows": 0, "tokens": 0, "error": "store_unavailable"}

    expired_entries_reaped_total.labels(kind="access_window").inc(windows)
    expired_entries_reaped_total.labels(kind="token").inc(expired_tokens)
    logger.info("reap_expired_entries_done", extra={"removed": windows + expired_tokens})
    return {"windows": windows, "tokens": expired_tokens}


@celery_app.task(name="nightpass.workers.tasks.cleanup.delete_chat_message")
def delete_chat_message(chat_id: str, message_id: int) -> dict:
    """Best-effort removal of a delivered message."""
    telegram = TelegramClient(get_settings().telegram_bot_token)
    try:
        deleted = telegram.delete_message(chat_id, message_id)
    finally:
        telegram.close()
    logger.info(
        "delete_chat_message_done",
        extra={"chat_id": chat_id, "message_id": message_id, "status": "deleted" if deleted else "failed"},
    )
    return {"ok": deleted}


def schedule_message_deletion(chat_id: str, message_id: int, delay_seconds: int | None = None) -> str | None:
    """
    Queue deletion of a message after ``delay_seconds`` (defaults to
    MESSAGE_AUTODELETE_SECONDS). Returns the task id, or None when disabled.
    """
    if delay_seconds is None:
        delay_seconds = get_settings().message_autodelete_seconds
    if delay_seconds <= 0:
        return None
    result = delete_chat_message.apply_async(args=[str(chat_id), int(message_id)], countdown=delay_seconds)
    logger.info(
        "message_deletion_scheduled",
        extra={"chat_id": chat_id, "message_id": message_id, "task_id": result.id},
    )
    return result.id


def cancel_scheduled_deletion(task_id: str) -> None:
    celery_app.control.revoke(task_id)
    logger.info("message_deletion_cancelled", extra={"task_id": task_id})
