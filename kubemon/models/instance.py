"""The owning KubeMon custom resource.

The Instance is owned by the caller's storage layer and handed to the engine
for the duration of one reconciliation. Only the StatusRecorder mutates it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

API_GROUP = "kubemon.io"
API_VERSION = "v1alpha1"
KIND = "KubeMon"
PLURAL = "kubemons"

_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


@dataclass(frozen=True)
class CustomPropertiesRef:
    """Custom properties for the monitoring process.

    Exactly one of ``value`` (inline payload) or ``value_from`` (name of an
    existing secret) is expected.
    """

    value: str | None = None
    value_from: str | None = None

    def secret_name(self, instance_name: str, workload_name: str) -> str:
        """Name of the secret the workload mounts the properties from."""
        if self.value_from:
            return self.value_from
        return f"{instance_name}-{workload_name}-custom-properties"

    @classmethod
    def from_manifest(cls, raw: dict[str, Any] | None) -> CustomPropertiesRef | None:
        if not raw:
            return None
        value = raw.get("value") or None
        value_from = raw.get("valueFrom") or None
        if value is None and value_from is None:
            return None
        return cls(value=value, value_from=value_from)


@dataclass
class InstanceSpec:
    """Desired state of the monitoring deployment."""

    image: str
    custom_properties: CustomPropertiesRef | None = None
    kubernetes_api_endpoint: str | None = None
    replicas: int = 1
    labels: dict[str, str] = field(default_factory=dict)
    node_selector: dict[str, str] = field(default_factory=dict)
    tolerations: list[dict[str, Any]] = field(default_factory=list)
    resources: dict[str, Any] = field(default_factory=dict)
    env: list[dict[str, Any]] = field(default_factory=list)
    service_account_name: str = "kubemon-kubernetes-monitoring"
    priority_class_name: str | None = None


@dataclass
class InstanceStatus:
    """Outcome of the last successful reconciliation."""

    image_version: str = ""
    image_hash: str = ""
    updated_timestamp: datetime | None = None


@dataclass
class Instance:
    """A KubeMon resource as seen by one reconciliation."""

    name: str
    namespace: str
    spec: InstanceSpec
    uid: str = ""
    resource_version: str | None = None
    status: InstanceStatus = field(default_factory=InstanceStatus)

    api_version = f"{API_GROUP}/{API_VERSION}"
    kind = KIND

    @property
    def has_custom_properties(self) -> bool:
        return self.spec.custom_properties is not None

    @property
    def has_dashboard_endpoint(self) -> bool:
        return bool(self.spec.kubernetes_api_endpoint)

    @classmethod
    def from_manifest(cls, body: dict[str, Any]) -> Instance:
        """Parse a KubeMon custom resource dict (as returned by the API server)."""
        metadata = body.get("metadata") or {}
        raw_spec = body.get("spec") or {}
        raw_status = body.get("status") or {}

        image = raw_spec.get("image") or ""
        if not image:
            raise ValueError(f"KubeMon {metadata.get('name', '<unnamed>')!r} has no spec.image")

        spec = InstanceSpec(
            image=image,
            custom_properties=CustomPropertiesRef.from_manifest(raw_spec.get("customProperties")),
            kubernetes_api_endpoint=raw_spec.get("kubernetesApiEndpoint") or None,
            replicas=int(raw_spec.get("replicas", 1)),
            labels=dict(raw_spec.get("labels") or {}),
            node_selector=dict(raw_spec.get("nodeSelector") or {}),
            tolerations=list(raw_spec.get("tolerations") or []),
            resources=dict(raw_spec.get("resources") or {}),
            env=list(raw_spec.get("env") or []),
            service_account_name=raw_spec.get("serviceAccountName") or "kubemon-kubernetes-monitoring",
            priority_class_name=raw_spec.get("priorityClassName") or None,
        )
        status = InstanceStatus(
            image_version=raw_status.get("imageVersion", ""),
            image_hash=raw_status.get("imageHash", ""),
            updated_timestamp=_parse_timestamp(raw_status.get("updatedTimestamp")),
        )
        return cls(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace", ""),
            uid=metadata.get("uid", ""),
            resource_version=metadata.get("resourceVersion"),
            spec=spec,
            status=status,
        )

    def status_manifest(self) -> dict[str, Any]:
        """Render the status block in the custom resource's wire format."""
        status: dict[str, Any] = {
            "imageVersion": self.status.image_version,
            "imageHash": self.status.image_hash,
        }
        if self.status.updated_timestamp is not None:
            status["updatedTimestamp"] = self.status.updated_timestamp.astimezone(UTC).strftime(_TIMESTAMP_FORMAT)
        return status


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.strptime(value, _TIMESTAMP_FORMAT).replace(tzinfo=UTC)
