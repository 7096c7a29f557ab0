"""Prometheus metrics for monitoring reconciliation passes, settlements, and bank fetches"""

from prometheus_client import Counter, Histogram

from payment_reconciler.domain.models import ReconciliationSummary

# Pass metrics
reconciliation_pass_counter = Counter(
    "reconciler_pass_total",
    "Reconciliation passes executed",
    ["outcome"],  # ok | error
)

payments_completed_counter = Counter(
    "reconciler_payments_completed_total",
    "Payment intents settled against a bank transaction",
)

payments_expired_counter = Counter(
    "reconciler_payments_expired_total",
    "Pending payment intents purged after expiry",
)

match_miss_counter = Counter(
    "reconciler_match_miss_total",
    "Payment intents checked without a satisfying transaction",
)

ambiguous_match_counter = Counter(
    "reconciler_ambiguous_match_total",
    "Payment intents left pending because several transactions satisfied them",
)

settlement_failure_counter = Counter(
    "reconciler_settlement_failures_total",
    "Settlements rolled back due to a persistence error",
)

# Bank API metrics
bank_fetch_failures_counter = Counter(
    "bank_fetch_failures_total",
    "Failed bank history fetches",
    ["reason"],  # timeout | http_status | transport | upstream_code | malformed
)

bank_fetch_latency_histogram = Histogram(
    "bank_fetch_latency_seconds",
    "Bank history fetch response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_pass(summary: ReconciliationSummary) -> None:
    """Record pass outcome and settlement/purge volumes"""
    outcome = "error" if summary.error else "ok"
    reconciliation_pass_counter.labels(outcome=outcome).inc()
    payments_completed_counter.inc(summary.updated)
    payments_expired_counter.inc(summary.deleted)
