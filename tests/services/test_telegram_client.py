"""Tests for TelegramClient.delete_message."""
from unittest.mock import MagicMock

import httpx

from nightpass.services.telegram.client import TelegramClient


def _client(payload=None, side_effect=None):
    client = TelegramClient("123:abc")
    http = MagicMock()
    if side_effect is not None:
        http.post.side_effect = side_effect
    else:
        http.post.return_value.json.return_value = payload
    client._client = http
    return client, http


def test_delete_ok():
    client, http = _client({"ok": True, "result": True})
    assert client.delete_message("100", 5) is True
    http.post.assert_called_once_with(
        "https://api.telegram.org/bot123:abc/deleteMessage", json={"chat_id": 100, "message_id": 5}
    )


def test_delete_api_error_is_logged_not_raised():
    client, _ = _client({"ok": False, "error_code": 400, "description": "message to delete not found"})
    assert client.delete_message("100", 5) is False


def test_delete_network_error():
    client, _ = _client(side_effect=httpx.ConnectError("down"))
    assert client.delete_message("100", 5) is False
