"""Prometheus metrics for the approval ledger, notifications and provisioning."""

from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

LEDGER_TRANSITIONS = Counter(
    "hotspot_gate_ledger_transitions_total", "Ledger state transitions", ["state"]
)
LEDGER_RECORDS = Gauge(
    "hotspot_gate_ledger_records", "Ledger records by state", ["state"]
)
NOTIFICATION_FAILURES = Counter(
    "hotspot_gate_notification_failures_total", "Admin notifications that could not be sent"
)
PROVISION_RESULTS = Counter(
    "hotspot_gate_provision_results_total", "Hotspot user provisioning attempts", ["outcome"]
)
PROVISION_DURATION = Histogram(
    "hotspot_gate_provision_duration_seconds",
    "Connect + login + user-add duration",
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
)


def set_ledger_stats(counts: dict[str, int]) -> None:
    for state, count in counts.items():
        LEDGER_RECORDS.labels(state=state).set(count)


def render_latest() -> tuple[bytes, str]:
    """Return the exposition payload and its content type."""
    return generate_latest(), CONTENT_TYPE_LATEST
