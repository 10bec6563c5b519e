"""Tests for cleanup tasks: reaper and delayed message deletion."""
from unittest.mock import MagicMock, patch

from nightpass.access.manager import AccessWindowManager
from nightpass.access.models import AccessSource
from nightpass.core.config import Settings
from nightpass.tokens.codec import TokenCodec
from nightpass.tokens.service import TokenLedger
from nightpass.utils.time import HOUR_MS


class TestReapExpiredEntries:
    def test_reaps_old_windows_and_tokens(self, store, clock):
        from nightpass.workers.tasks.cleanup import reap_expired_entries

        # clock is fixed in 2023, so everything written with it is long expired in real time
        stale_access = AccessWindowManager(store, clock=clock)
        stale_access.grant("1", HOUR_MS, AccessSource.DIRECT)
        codec = TokenCodec("worker-test-secret-value", ttl_ms=HOUR_MS, clock=clock)
        TokenLedger(store, codec, stale_access, HOUR_MS, clock=clock).issue("1")
        AccessWindowManager(store).grant("2", HOUR_MS, AccessSource.DIRECT)

        with patch("nightpass.workers.tasks.cleanup.create_store", return_value=store):
            result = reap_expired_entries()

        assert result == {"windows": 1, "tokens": 1}
        assert AccessWindowManager(store).has_access("2")


class TestDeleteChatMessage:
    def test_delegates_to_telegram(self):
        from nightpass.workers.tasks.cleanup import delete_chat_message

        with patch("nightpass.workers.tasks.cleanup.TelegramClient") as telegram_cls:
            telegram_cls.return_value.delete_message.return_value = True
            assert delete_chat_message("100", 5) == {"ok": True}
        telegram_cls.return_value.delete_message.assert_called_once_with("100", 5)
        telegram_cls.return_value.close.assert_called_once()


class TestScheduling:
    def test_schedule_with_countdown(self):
        from nightpass.workers.tasks import cleanup

        with patch.object(cleanup.delete_chat_message, "apply_async", return_value=MagicMock(id="task-1")) as apply:
            assert cleanup.schedule_message_deletion(100, 5, delay_seconds=60) == "task-1"
        apply.assert_called_once_with(args=["100", 5], countdown=60)

    def test_disabled_by_default(self):
        from nightpass.workers.tasks import cleanup

        with patch.object(cleanup.delete_chat_message, "apply_async") as apply:
            assert cleanup.schedule_message_deletion(100, 5) is None
        apply.assert_not_called()

    def test_default_delay_from_settings(self):
        from nightpass.workers.tasks import cleanup

        settings = Settings(token_secret="x" * 32, message_autodelete_seconds=30)
        with patch.object(cleanup, "get_settings", return_value=settings), \
                patch.object(cleanup.delete_chat_message, "apply_async", return_value=MagicMock(id="t")) as apply:
            cleanup.schedule_message_deletion(1, 2)
        assert apply.call_args.kwargs["countdown"] == 30

    def test_cancel_revokes(self):
        from nightpass.workers.tasks import cleanup

        with patch.object(cleanup.celery_app.control, "revoke") as revoke:
            cleanup.cancel_scheduled_deletion("task-1")
        revoke.assert_called_once_with("task-1")
