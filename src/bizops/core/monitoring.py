"""Prometheus metrics for store traffic.

Provides:
- store_writes_total: writes issued by the mutation gateway, by outcome
- store_snapshots_total: full-collection snapshots received by the adapter
- active_subscriptions: listeners currently held by the adapter
- get_metrics_text(): exposition-format dump for a scrape endpoint or CLI
"""

from __future__ import annotations

from prometheus_client import REGISTRY, Counter, Gauge, generate_latest

# ── Store Metrics ────────────────────────────────────────────────────────────

store_writes_total = Counter(
    "bizops_store_writes_total",
    "Total writes issued against the realtime store",
    ["operation", "collection", "status"],
)

store_snapshots_total = Counter(
    "bizops_store_snapshots_total",
    "Total full-collection snapshots received",
    ["collection"],
)

active_subscriptions = Gauge(
    "bizops_active_subscriptions",
    "Number of open collection subscriptions",
)


def track_write(operation: str, collection: str, ok: bool) -> None:
    """Count a gateway write with its outcome."""
    store_writes_total.labels(
        operation=operation,
        collection=collection,
        status="ok" if ok else "error",
    ).inc()


def get_metrics_text() -> bytes:
    """Return all registered metrics in Prometheus exposition format."""
    return generate_latest(REGISTRY)
