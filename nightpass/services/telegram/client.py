"""
Telegram client wrapper using httpx sync client.
Only what the workers need: best-effort message deletion.
"""
import logging

import httpx


logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"


class TelegramError(Exception):
    pass


class TelegramClient:
    """
    Sync Telegram client for Celery workers.
    Uses httpx sync client - no event loop issues.
    """

    def __init__(self, bot_token: str, timeout: float = 10.0) -> None:
        self._base_url = f"{TELEGRAM_API_BASE}/bot{bot_token}"
        self._timeout = timeout
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of httpx client."""
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout)
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _api_call(self, method: str, data: dict | None = None) -> dict:
        """Make API call to Telegram."""
        resp = self.client.post(f"{self._base_url}/{method}", json=data)
        result = resp.json()
        if not result.get("ok"):
            error_desc = result.get("description", "Unknown error")
            error_code = result.get("error_code", 0)
            raise TelegramError(f"{error_code}: {error_desc}")
        return result

    def delete_message(self, chat_id: str, message_id: int) -> bool:
        """Delete a message. Failures are logged, never raised."""
        try:
            self._api_call("deleteMessage", {"chat_id": int(chat_id), "message_id": int(message_id)})
            return True
        except (httpx.HTTPError, TelegramError, ValueError) as e:
            logger.warning(
                "telegram_delete_message_failed",
                extra={"error": str(e), "chat_id": chat_id, "message_id": message_id},
            )
            return False
