"""Shared fixtures for kubemon integration tests.

Provides in-memory stand-ins for the cluster (workload and instance storage)
and for every collaborator, wired into a Reconciler, so full reconciliation
cycles can run without a Kubernetes API server or a registry.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import UTC, datetime

import pytest

from kubemon.collaborators import (
    ClusterIdentityProvider,
    CredentialProvisioner,
    DashboardRegistrar,
    PropertyProvisioner,
)
from kubemon.errors import ConflictError, NotFoundError
from kubemon.models.config import ReconcilerConfig
from kubemon.models.instance import CustomPropertiesRef, Instance, InstanceSpec, InstanceStatus
from kubemon.models.workload import VersionRecord, WorkloadObject
from kubemon.reconciler import Reconciler
from kubemon.status import InstanceStore
from kubemon.version.credentials import RegistryAuth, RegistryCredentials
from kubemon.version.resolver import StaticVersionResolver, VersionResolver
from kubemon.workload.store import WorkloadStore

NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=UTC)
CLUSTER_ID = "0f8a2f64-kube-system-uid"
IMAGE = "registry/app:v1"

# ---------------------------------------------------------------------------
# Instance factory
# ---------------------------------------------------------------------------


def make_instance(
    image: str = IMAGE,
    custom_properties: CustomPropertiesRef | None = None,
    kubernetes_api_endpoint: str | None = None,
    status: InstanceStatus | None = None,
    name: str = "kubemon",
    namespace: str = "monitoring",
    uid: str = "a1b2c3d4-instance-uid",
    resource_version: str = "1",
) -> Instance:
    """Create an Instance with sensible defaults for testing."""
    return Instance(
        name=name,
        namespace=namespace,
        uid=uid,
        resource_version=resource_version,
        spec=InstanceSpec(
            image=image,
            custom_properties=custom_properties,
            kubernetes_api_endpoint=kubernetes_api_endpoint,
        ),
        status=status or InstanceStatus(),
    )


# ---------------------------------------------------------------------------
# In-memory cluster storage
# ---------------------------------------------------------------------------


class InMemoryWorkloadStore(WorkloadStore):
    """Workload storage with resourceVersion checks like the API server's."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], WorkloadObject] = {}
        self.gets = 0
        self.creates = 0
        self.updates = 0
        self.get_error: Exception | None = None
        self.write_error: Exception | None = None
        self._next_version = 100

    @property
    def writes(self) -> int:
        return self.creates + self.updates

    def seed(self, obj: WorkloadObject) -> WorkloadObject:
        stored = copy.deepcopy(obj)
        stored.resource_version = self._bump()
        self.objects[(stored.namespace, stored.name)] = stored
        return stored

    async def get(self, name: str, namespace: str) -> WorkloadObject:
        self.gets += 1
        if self.get_error is not None:
            raise self.get_error
        try:
            return copy.deepcopy(self.objects[(namespace, name)])
        except KeyError:
            raise NotFoundError(f"statefulset {namespace}/{name} not found") from None

    async def create(self, obj: WorkloadObject) -> WorkloadObject:
        self.creates += 1
        if self.write_error is not None:
            raise self.write_error
        key = (obj.namespace, obj.name)
        if key in self.objects:
            raise ConflictError(f"statefulset {obj.namespace}/{obj.name} already exists")
        return copy.deepcopy(self.seed(obj))

    async def update(self, obj: WorkloadObject) -> WorkloadObject:
        self.updates += 1
        if self.write_error is not None:
            raise self.write_error
        key = (obj.namespace, obj.name)
        current = self.objects.get(key)
        if current is None:
            raise NotFoundError(f"statefulset {obj.namespace}/{obj.name} not found")
        if obj.resource_version != current.resource_version:
            raise ConflictError(f"statefulset {obj.namespace}/{obj.name} was modified")
        return copy.deepcopy(self.seed(obj))

    def _bump(self) -> str:
        self._next_version += 1
        return str(self._next_version)


class InMemoryInstanceStore(InstanceStore):
    """Status storage that rejects writes carrying a stale resourceVersion."""

    def __init__(self, resource_version: str = "1") -> None:
        self.resource_version = resource_version
        self.written: list[dict[str, object]] = []
        self.error: Exception | None = None

    async def update_status(self, instance: Instance) -> None:
        if self.error is not None:
            raise self.error
        if instance.resource_version != self.resource_version:
            raise ConflictError(f"KubeMon {instance.name} was modified")
        self.resource_version = str(int(self.resource_version) + 1)
        instance.resource_version = self.resource_version
        self.written.append(instance.status_manifest())


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class RecordingCredentials(CredentialProvisioner):
    def __init__(self, error: Exception | None = None) -> None:
        self.calls = 0
        self.error = error
        self.credentials = RegistryCredentials(auths={"registry": RegistryAuth("robot", "s3cret")})

    async def reconcile(self, instance: Instance) -> RegistryCredentials:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.credentials


class RecordingProperties(PropertyProvisioner):
    def __init__(self, error: Exception | None = None) -> None:
        self.calls: list[CustomPropertiesRef] = []
        self.error = error

    async def reconcile(self, instance: Instance, ref: CustomPropertiesRef) -> None:
        self.calls.append(ref)
        if self.error is not None:
            raise self.error


class FixedClusterIdentity(ClusterIdentityProvider):
    def __init__(self, cluster_id: str = CLUSTER_ID) -> None:
        self.cluster_id = cluster_id
        self.calls = 0

    async def get_id(self) -> str:
        self.calls += 1
        return self.cluster_id


class RecordingVersionResolver(StaticVersionResolver):
    """StaticVersionResolver that remembers every lookup it served."""

    def __init__(self, default: VersionRecord | None = None) -> None:
        super().__init__(default=default)
        self.calls: list[str] = []
        self.credentials_seen: list[RegistryCredentials | None] = []

    async def resolve(self, image: str, credentials: RegistryCredentials | None) -> VersionRecord:
        self.calls.append(image)
        self.credentials_seen.append(credentials)
        return await super().resolve(image, credentials)


class FailingVersionResolver(VersionResolver):
    def __init__(self, error: Exception) -> None:
        self.error = error
        self.calls = 0

    async def resolve(self, image: str, credentials: RegistryCredentials | None) -> VersionRecord:
        self.calls += 1
        raise self.error


class RecordingDashboard(DashboardRegistrar):
    def __init__(self, dashboard_id: str = "KUBERNETES_CREDENTIALS-1", error: Exception | None = None) -> None:
        self.dashboard_id = dashboard_id
        self.error = error
        self.endpoints: list[str] = []

    async def register(self, endpoint: str) -> str:
        self.endpoints.append(endpoint)
        if self.error is not None:
            raise self.error
        return self.dashboard_id


# ---------------------------------------------------------------------------
# Harness
# ---------------------------------------------------------------------------


@dataclass
class Harness:
    """All fakes plus a factory for a Reconciler wired to them."""

    workloads: InMemoryWorkloadStore = field(default_factory=InMemoryWorkloadStore)
    instances: InMemoryInstanceStore = field(default_factory=InMemoryInstanceStore)
    credentials: RecordingCredentials = field(default_factory=RecordingCredentials)
    properties: RecordingProperties = field(default_factory=RecordingProperties)
    cluster_identity: FixedClusterIdentity = field(default_factory=FixedClusterIdentity)
    resolver: VersionResolver = field(
        default_factory=lambda: RecordingVersionResolver(default=VersionRecord(version="1.2.3", hash="sha256:aaa"))
    )
    dashboard: RecordingDashboard | None = field(default_factory=RecordingDashboard)
    disable_version_updates: bool = False

    def reconciler(self) -> Reconciler:
        return Reconciler(
            config=ReconcilerConfig(disable_version_updates=self.disable_version_updates),
            workloads=self.workloads,
            instances=self.instances,
            credentials=self.credentials,
            properties=self.properties,
            cluster_identity=self.cluster_identity,
            version_resolver=self.resolver,
            dashboard=self.dashboard,
            clock=lambda: NOW,
        )


@pytest.fixture
def harness() -> Harness:
    return Harness()
