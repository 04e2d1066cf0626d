"""Core data structures for kubemon."""

from kubemon.models.config import KubemonConfig
from kubemon.models.instance import (
    CustomPropertiesRef,
    Instance,
    InstanceSpec,
    InstanceStatus,
)
from kubemon.models.workload import (
    OwnerReference,
    ReconcileOutcome,
    VersionLookup,
    VersionRecord,
    WorkloadAction,
    WorkloadObject,
    WorkloadState,
)

__all__ = [
    "CustomPropertiesRef",
    "Instance",
    "InstanceSpec",
    "InstanceStatus",
    "KubemonConfig",
    "OwnerReference",
    "ReconcileOutcome",
    "VersionLookup",
    "VersionRecord",
    "WorkloadAction",
    "WorkloadObject",
    "WorkloadState",
]
