"""Workload, version and outcome data structures."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

TEMPLATE_HASH_ANNOTATION = "internal.kubemon.io/template-hash"


class WorkloadState(StrEnum):
    """Where the live workload stands relative to the desired one."""

    ABSENT = "absent"
    CURRENT = "current"
    STALE = "stale"


class WorkloadAction(StrEnum):
    """Write issued by one convergence pass."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


class VersionLookup(StrEnum):
    """How the image version lookup went during a cycle."""

    RESOLVED = "resolved"
    DISABLED = "disabled"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class VersionRecord:
    """Currently published version and content hash of an image."""

    version: str
    hash: str


@dataclass(frozen=True)
class OwnerReference:
    """Controller linkage so the workload is garbage-collected with its owner."""

    api_version: str
    kind: str
    name: str
    uid: str
    controller: bool = True
    block_owner_deletion: bool = True

    def to_manifest(self) -> dict[str, Any]:
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "name": self.name,
            "uid": self.uid,
            "controller": self.controller,
            "blockOwnerDeletion": self.block_owner_deletion,
        }

    @classmethod
    def from_manifest(cls, raw: dict[str, Any]) -> OwnerReference:
        return cls(
            api_version=raw.get("apiVersion", ""),
            kind=raw.get("kind", ""),
            name=raw.get("name", ""),
            uid=raw.get("uid", ""),
            controller=bool(raw.get("controller", False)),
            block_owner_deletion=bool(raw.get("blockOwnerDeletion", False)),
        )


@dataclass
class WorkloadObject:
    """A StatefulSet, either freshly built (desired) or read back (live).

    ``fingerprint`` is stored on the cluster as the template-hash annotation.
    A live object without that annotation has ``fingerprint=None``.
    """

    name: str
    namespace: str
    spec: dict[str, Any]
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    owner_references: list[OwnerReference] = field(default_factory=list)
    fingerprint: str | None = None
    resource_version: str | None = None

    def to_manifest(self) -> dict[str, Any]:
        """Render as an apps/v1 StatefulSet body."""
        annotations = dict(self.annotations)
        if self.fingerprint:
            annotations[TEMPLATE_HASH_ANNOTATION] = self.fingerprint
        metadata: dict[str, Any] = {
            "name": self.name,
            "namespace": self.namespace,
            "labels": dict(self.labels),
            "annotations": annotations,
            "ownerReferences": [ref.to_manifest() for ref in self.owner_references],
        }
        if self.resource_version:
            metadata["resourceVersion"] = self.resource_version
        return {
            "apiVersion": "apps/v1",
            "kind": "StatefulSet",
            "metadata": metadata,
            "spec": copy.deepcopy(self.spec),
        }

    @classmethod
    def from_manifest(cls, body: dict[str, Any]) -> WorkloadObject:
        """Parse a StatefulSet dict, lifting the template-hash annotation."""
        metadata = body.get("metadata") or {}
        annotations = dict(metadata.get("annotations") or {})
        fingerprint = annotations.pop(TEMPLATE_HASH_ANNOTATION, None) or None
        return cls(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace", ""),
            spec=copy.deepcopy(body.get("spec") or {}),
            labels=dict(metadata.get("labels") or {}),
            annotations=annotations,
            owner_references=[OwnerReference.from_manifest(ref) for ref in metadata.get("ownerReferences") or []],
            fingerprint=fingerprint,
            resource_version=metadata.get("resourceVersion"),
        )


@dataclass
class ReconcileOutcome:
    """Result of a successful reconciliation cycle."""

    workload: WorkloadAction
    version_lookup: VersionLookup
    version: VersionRecord | None = None
    dashboard_id: str | None = None

    @property
    def changed(self) -> bool:
        return self.workload is not WorkloadAction.UNCHANGED
