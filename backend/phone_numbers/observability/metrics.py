"""Prometheus metrics for number provisioning."""
from __future__ import annotations

from prometheus_client import Counter

NUMBER_PURCHASE_COUNT = Counter(
    "numbers_purchases_total",
    "Phone number purchase attempts by outcome",
    labelnames=("result",),
)

NUMBER_RELEASE_COUNT = Counter(
    "numbers_releases_total",
    "Phone number releases by refund outcome",
    labelnames=("refund",),
)
