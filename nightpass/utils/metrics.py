"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
tokens_issued_total = Counter(
    "nightpass_tokens_issued_total",
    "Total access tokens issued",
)

token_verifications_total = Counter(
    "nightpass_token_verifications_total",
    "Token signature/expiry checks",
    ["result"],  # ok, invalid_format, user_mismatch, expired, bad_signature
)

token_consumptions_total = Counter(
    "nightpass_token_consumptions_total",
    "Token one-time consumption attempts",
    ["result"],
)

access_grants_total = Counter(
    "nightpass_access_grants_total",
    "Access windows granted or extended",
    ["source", "mode"],  # mode: grant, extend
)

referral_redemptions_total = Counter(
    "nightpass_referral_redemptions_total",
    "Referral redemption attempts",
    ["result"],
)

referral_codes_created_total = Counter(
    "nightpass_referral_codes_created_total",
    "Referral codes created",
)

store_atomic_conflicts_total = Counter(
    "nightpass_store_atomic_conflicts_total",
    "Optimistic atomic_update retries caused by concurrent writers",
)

ad_provider_requests_total = Counter(
    "nightpass_ad_provider_requests_total",
    "Total ad provider (URL shortener) requests",
    ["status"],
)

expired_entries_reaped_total = Counter(
    "nightpass_expired_entries_reaped_total",
    "Expired records removed by the reaper",
    ["kind"],  # access_window, token
)

circuit_breaker_state = Gauge(
    "nightpass_circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open)",
    ["name"],
)

# Histograms
ad_provider_request_duration_seconds = Histogram(
    "nightpass_ad_provider_request_duration_seconds",
    "Ad provider request duration",
    buckets=[0.1, 0.5, 1, 2, 5, 10],
)


# Metrics endpoint router
router = APIRouter()


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
