"""Tests for AdLinkClient: success parsing, retries, breaker, disabled provider."""
from unittest.mock import MagicMock

import httpx
import pybreaker
import pytest

from nightpass.ads.client import AdLinkClient
from nightpass.core.errors import UpstreamUnavailable
from nightpass.services.runtime_settings import RuntimeSettings, RuntimeSettingsCell


def _response(status_code=200, payload=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload if payload is not None else {}
    return resp


def _make_client(http_client, enabled=True, token="api-token", fail_max=5):
    runtime = RuntimeSettingsCell(
        RuntimeSettings(ad_enabled=enabled, ad_provider_domain="ads.example", ad_provider_api_token=token)
    )
    breaker = pybreaker.CircuitBreaker(fail_max=fail_max, reset_timeout=60)
    return AdLinkClient(runtime, timeout_seconds=1.0, breaker=breaker, http_client=http_client)


class TestShortenUrl:
    def test_success(self):
        http = MagicMock()
        http.get.return_value = _response(payload={"status": "success", "shortenedUrl": "https://ads.example/xyz"})
        client = _make_client(http)

        assert client.shorten_url("https://t.me/bot?start=t1-2-3") == "https://ads.example/xyz"
        http.get.assert_called_once_with(
            "https://ads.example/api",
            params={"api": "api-token", "url": "https://t.me/bot?start=t1-2-3"},
        )

    def test_provider_error_status(self):
        http = MagicMock()
        http.get.return_value = _response(payload={"status": "error", "message": "bad token"})
        with pytest.raises(UpstreamUnavailable):
            _make_client(http).shorten_url("https://x")

    def test_http_error_code(self):
        http = MagicMock()
        http.get.return_value = _response(status_code=502)
        with pytest.raises(UpstreamUnavailable):
            _make_client(http).shorten_url("https://x")

    def test_non_json_body(self):
        http = MagicMock()
        resp = _response()
        resp.json.side_effect = ValueError("no json")
        http.get.return_value = resp
        with pytest.raises(UpstreamUnavailable):
            _make_client(http).shorten_url("https://x")

    def test_retries_once_on_transport_error(self):
        http = MagicMock()
        http.get.side_effect = [
            httpx.ConnectTimeout("slow"),
            _response(payload={"status": "success", "shortenedUrl": "https://ads.example/ok"}),
        ]
        assert _make_client(http).shorten_url("https://x") == "https://ads.example/ok"
        assert http.get.call_count == 2

    def test_gives_up_after_second_transport_error(self):
        http = MagicMock()
        http.get.side_effect = httpx.ConnectError("down")
        with pytest.raises(UpstreamUnavailable):
            _make_client(http).shorten_url("https://x")
        assert http.get.call_count == 2

    def test_disabled_never_calls_provider(self):
        http = MagicMock()
        with pytest.raises(UpstreamUnavailable):
            _make_client(http, enabled=False).shorten_url("https://x")
        http.get.assert_not_called()

    def test_missing_token(self):
        http = MagicMock()
        with pytest.raises(UpstreamUnavailable):
            _make_client(http, token="").shorten_url("https://x")
        http.get.assert_not_called()

    def test_open_circuit_short_circuits(self):
        http = MagicMock()
        http.get.side_effect = httpx.ConnectError("down")
        client = _make_client(http, fail_max=2)

        for _ in range(2):
            with pytest.raises(UpstreamUnavailable):
                client.shorten_url("https://x")
        calls = http.get.call_count

        with pytest.raises(UpstreamUnavailable):
            client.shorten_url("https://x")
        assert http.get.call_count == calls
