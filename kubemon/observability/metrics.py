"""Prometheus counters for reconciliation outcomes."""

from __future__ import annotations

from prometheus_client import Counter

reconcile_total = Counter(
    "kubemon_reconcile_total",
    "Reconciliation cycles by result",
    ["result"],
)

workload_writes_total = Counter(
    "kubemon_workload_writes_total",
    "Create/update calls issued for the monitoring workload",
    ["action"],
)

version_lookups_total = Counter(
    "kubemon_version_lookups_total",
    "Image version lookups by result (resolved, disabled, degraded)",
    ["result"],
)

dashboard_registrations_total = Counter(
    "kubemon_dashboard_registrations_total",
    "Dashboard registration attempts by result",
    ["result"],
)
