"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
settlements_total = Counter(
    "settlements_total",
    "Settlement operations by outcome",
    ["operation", "status"],  # status: success / <error code>
)

ledger_transactions_total = Counter(
    "ledger_transactions_total",
    "Ledger rows written",
    ["type", "status"],
)

balance_rejected_total = Counter(
    "balance_rejected_total",
    "Debits rejected for insufficient funds",
)

webhook_updates_total = Counter(
    "webhook_updates_total",
    "Telegram webhook updates processed",
    ["kind", "outcome"],
)

pending_purchases_expired_total = Counter(
    "pending_purchases_expired_total",
    "Pending purchase rows swept to failed",
)

telegram_requests_total = Counter(
    "telegram_requests_total",
    "Total Telegram API requests",
    ["method", "status"],
)

# Histograms
telegram_request_duration_seconds = Histogram(
    "telegram_request_duration_seconds",
    "Telegram API request duration",
    ["method"],
    buckets=[0.1, 0.5, 1, 2, 5, 10],
)


router = APIRouter()


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
