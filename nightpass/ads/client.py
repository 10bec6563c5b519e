"""
Ad provider (URL shortener) client using httpx sync client.
Every failure surfaces as UpstreamUnavailable; nothing here blocks longer than
the configured timeout (plus at most one retry on transport errors).
"""
import logging
import time

import httpx
import pybreaker

from nightpass.core.errors import UpstreamUnavailable
from nightpass.services.circuit_breaker import get_circuit_breaker
from nightpass.services.runtime_settings import RuntimeSettings, RuntimeSettingsCell
from nightpass.utils.metrics import ad_provider_request_duration_seconds, ad_provider_requests_total


logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2


class AdLinkClient:
    def __init__(
        self,
        runtime: RuntimeSettingsCell,
        timeout_seconds: float = 5.0,
        breaker: pybreaker.CircuitBreaker | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.runtime = runtime
        self.timeout_seconds = timeout_seconds
        self.breaker = breaker or get_circuit_breaker("ad_provider")
        self._client = http_client

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of httpx client."""
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout_seconds)
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def shorten_url(self, long_url: str) -> str:
        """Return the provider's redirect URL for ``long_url`` or raise UpstreamUnavailable."""
        current = self.runtime.get()
        if not current.ad_enabled:
            raise UpstreamUnavailable("ads are disabled")
        if not current.ad_provider_api_token:
            raise UpstreamUnavailable("ad provider API token is not configured")
        try:
            return self.breaker.call(self._shorten_with_retry, current, long_url)
        except pybreaker.CircuitBreakerError as exc:
            ad_provider_requests_total.labels(status="circuit_open").inc()
            raise UpstreamUnavailable("ad provider circuit is open") from exc

    def _shorten_with_retry(self, current: RuntimeSettings, long_url: str) -> str:
        last_error: Exception | None = None
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                return self._request(current, long_url)
            except httpx.TransportError as exc:
                last_error = exc
                ad_provider_requests_total.labels(status="transport_error").inc()
                logger.warning(
                    "ad_provider_transport_error",
                    extra={"attempt": attempt, "error": type(exc).__name__},
                )
        raise UpstreamUnavailable("ad provider unreachable") from last_error

    def _request(self, current: RuntimeSettings, long_url: str) -> str:
        url = f"https://{current.ad_provider_domain}/api"
        start = time.time()
        resp = self.client.get(url, params={"api": current.ad_provider_api_token, "url": long_url})
        ad_provider_request_duration_seconds.observe(time.time() - start)

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if resp.status_code != 200 or data.get("status") != "success" or not data.get("shortenedUrl"):
            ad_provider_requests_total.labels(status="error").inc()
            logger.warning(
                "ad_provider_error",
                extra={"status_code": resp.status_code, "error": data.get("message")},
            )
            raise UpstreamUnavailable(f"ad provider error: {data.get('message') or resp.status_code}")

        ad_provider_requests_total.labels(status="success").inc()
        return data["shortenedUrl"]
