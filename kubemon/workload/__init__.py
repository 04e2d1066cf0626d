"""Monitoring workload handling.

Submodules:
    fingerprint -- content hash stored on the StatefulSet for drift detection.
    builder     -- desired StatefulSet construction from a KubeMon instance.
    converge    -- fingerprint comparison and the create-or-update state machine.
    store       -- WorkloadStore ABC and the kubernetes-asyncio implementation.
"""

from kubemon.workload.builder import build_desired_workload
from kubemon.workload.converge import classify, converge_workload, has_changed
from kubemon.workload.fingerprint import compute_fingerprint, workload_fingerprint
from kubemon.workload.store import KubernetesWorkloadStore, WorkloadStore

__all__ = [
    "KubernetesWorkloadStore",
    "WorkloadStore",
    "build_desired_workload",
    "classify",
    "compute_fingerprint",
    "converge_workload",
    "has_changed",
    "workload_fingerprint",
]
