"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
generations_total = Counter(
    "generations_total",
    "Generation requests that reached the provider, by outcome",
    ["asset_type", "status"],  # status: done | failed
)

ledger_operations_total = Counter(
    "ledger_operations_total",
    "Entitlement ledger operations",
    ["operation", "kind"],  # operation: debit | debit_rejected | credit | refund
)

entitlement_rejected_total = Counter(
    "entitlement_rejected_total",
    "Generation requests rejected for missing entitlement",
    ["kind"],  # trial | credit
)

rate_limited_total = Counter(
    "rate_limited_total",
    "Generation requests rejected by the per-account rate limit",
)

provider_requests_total = Counter(
    "provider_requests_total",
    "Image provider calls, by outcome",
    ["provider", "outcome"],
)

credit_reset_accounts_total = Counter(
    "credit_reset_accounts_total",
    "Accounts handled by the monthly credit reset",
    ["result"],  # processed | failed | skipped
)

# Histograms
provider_request_duration_seconds = Histogram(
    "provider_request_duration_seconds",
    "Image provider call duration",
    ["provider"],
    buckets=[1, 5, 10, 30, 60, 120],
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
