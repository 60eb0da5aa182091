"""Prometheus metrics helpers for the wallet domain."""
from __future__ import annotations

from prometheus_client import Counter, Histogram

LEDGER_OPERATION_COUNT = Counter(
    "wallet_ledger_operations_total",
    "Wallet balance mutations by outcome",
    labelnames=("operation", "currency", "result"),
)

CHECKOUT_SESSION_COUNT = Counter(
    "wallet_checkout_sessions_total",
    "Stripe checkout sessions requested for wallet top-ups",
    labelnames=("currency", "result"),
)

WEBHOOK_EVENT_COUNT = Counter(
    "wallet_webhook_events_total",
    "Stripe webhook events handled by the wallet",
    labelnames=("event_type", "status"),
)

WEBHOOK_PROCESSING_LATENCY = Histogram(
    "wallet_webhook_processing_seconds",
    "Time spent applying a Stripe webhook event",
    labelnames=("event_type",),
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5),
)
