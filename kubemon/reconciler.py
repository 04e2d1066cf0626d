"""Convergence engine for a single KubeMon instance.

One call to ``Reconciler.reconcile`` runs the whole cycle in order:

    credentials -> custom properties (optional) -> workload create/update
                -> image version lookup -> status -> dashboard (optional)

The first failing step aborts the cycle and its error is raised to the
caller, who owns retries. Nothing is rolled back: every step is idempotent,
so the next invocation resumes safely. Two failures are not fatal: a failed
image version lookup leaves the previous version in the status, and a failed
dashboard registration is retried on the next cycle.

The engine keeps no state between calls besides its configuration and
collaborators; overlapping invocations for the same instance are serialised
by the API server's resourceVersion checks, not by local locks.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING, Any, cast

from kubemon.collaborators import (
    ClusterIdentityProvider,
    CredentialProvisioner,
    DashboardRegistrar,
    HttpDashboardRegistrar,
    KubeSystemIdentityProvider,
    PropertyProvisioner,
)
from kubemon.errors import (
    ConflictError,
    DashboardAlreadyRegisteredError,
    KubemonError,
    ProvisioningError,
    StatusPersistError,
    WorkloadError,
)
from kubemon.models.config import KubemonConfig, ReconcilerConfig
from kubemon.models.instance import CustomPropertiesRef, Instance
from kubemon.models.workload import (
    ReconcileOutcome,
    VersionLookup,
    VersionRecord,
    WorkloadAction,
)
from kubemon.observability.logging import get_logger
from kubemon.observability.metrics import (
    dashboard_registrations_total,
    reconcile_total,
    version_lookups_total,
)
from kubemon.status import InstanceStore, KubernetesInstanceStore, StatusRecorder
from kubemon.version.credentials import RegistryCredentials
from kubemon.version.resolver import RegistryVersionResolver, VersionResolver
from kubemon.workload.builder import build_desired_workload
from kubemon.workload.converge import converge_workload
from kubemon.workload.store import KubernetesWorkloadStore, WorkloadStore

if TYPE_CHECKING:
    import structlog

_log = get_logger("reconciler")


class Reconciler:
    """Drives the monitoring workload of one instance toward its desired state.

    Args:
        config:           engine configuration (version-update switch).
        workloads:        StatefulSet storage.
        instances:        KubeMon status storage.
        credentials:      pull secret provisioner.
        properties:       custom-properties provisioner.
        cluster_identity: source of the cluster id baked into the workload.
        version_resolver: image version lookup; RegistryVersionResolver if None.
        dashboard:        dashboard registrar; registration is skipped if None.
        clock:            timestamp source for the status.
    """

    def __init__(
        self,
        config: ReconcilerConfig,
        workloads: WorkloadStore,
        instances: InstanceStore,
        credentials: CredentialProvisioner,
        properties: PropertyProvisioner,
        cluster_identity: ClusterIdentityProvider,
        version_resolver: VersionResolver | None = None,
        dashboard: DashboardRegistrar | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config
        self._workloads = workloads
        self._credentials = credentials
        self._properties = properties
        self._cluster_identity = cluster_identity
        self._version_resolver = version_resolver or RegistryVersionResolver()
        self._dashboard = dashboard
        self._status = StatusRecorder(instances, clock=clock)

    async def reconcile(self, instance: Instance) -> ReconcileOutcome:
        """Run one convergence cycle for *instance*.

        Returns the outcome on success, including when nothing had to change.

        Raises:
            ConflictError: a write was based on a stale read; retry later.
            ProvisioningError: credential or property provisioning failed.
            WorkloadError: the workload could not be built, read or written.
            StatusPersistError: the instance status could not be written.
        """
        log = _log.bind(instance=instance.name, namespace=instance.namespace)
        try:
            outcome = await self._reconcile(instance, log)
        except KubemonError as exc:
            reconcile_total.labels(result="conflict" if isinstance(exc, ConflictError) else "error").inc()
            raise
        reconcile_total.labels(result="success").inc()
        return outcome

    async def _reconcile(self, instance: Instance, log: structlog.stdlib.BoundLogger) -> ReconcileOutcome:
        credentials = await self._provision_credentials(instance, log)

        if instance.has_custom_properties:
            await self._provision_properties(instance, log)

        action = await self._manage_workload(instance, log)

        lookup, record = await self._lookup_version(instance, credentials, log)

        await self._record_status(instance, record, log)

        dashboard_id = None
        if instance.has_dashboard_endpoint:
            dashboard_id = await self._add_to_dashboard(instance, log)

        return ReconcileOutcome(
            workload=action,
            version_lookup=lookup,
            version=record,
            dashboard_id=dashboard_id,
        )

    async def _provision_credentials(
        self,
        instance: Instance,
        log: structlog.stdlib.BoundLogger,
    ) -> RegistryCredentials:
        try:
            return await self._credentials.reconcile(instance)
        except ConflictError:
            log.error("pull_secret_conflict")
            raise
        except Exception as exc:
            log.error("pull_secret_reconcile_failed", error=str(exc))
            raise ProvisioningError("credentials", exc) from exc

    async def _provision_properties(self, instance: Instance, log: structlog.stdlib.BoundLogger) -> None:
        try:
            await self._properties.reconcile(instance, cast(CustomPropertiesRef, instance.spec.custom_properties))
        except ConflictError:
            log.error("custom_properties_conflict")
            raise
        except Exception as exc:
            log.error("custom_properties_reconcile_failed", error=str(exc))
            raise ProvisioningError("custom_properties", exc) from exc

    async def _manage_workload(self, instance: Instance, log: structlog.stdlib.BoundLogger) -> WorkloadAction:
        try:
            cluster_id = await self._cluster_identity.get_id()
            desired = build_desired_workload(instance, cluster_id)
            return await converge_workload(self._workloads, desired)
        except (ConflictError, WorkloadError) as exc:
            log.error("statefulset_reconcile_failed", error=str(exc))
            raise
        except Exception as exc:
            log.error("statefulset_reconcile_failed", error=str(exc))
            raise WorkloadError(f"could not reconcile stateful set: {exc}") from exc

    async def _lookup_version(
        self,
        instance: Instance,
        credentials: RegistryCredentials,
        log: structlog.stdlib.BoundLogger,
    ) -> tuple[VersionLookup, VersionRecord | None]:
        """Resolve the published image version; failures degrade, never raise."""
        if self._config.disable_version_updates:
            version_lookups_total.labels(result=VersionLookup.DISABLED.value).inc()
            return VersionLookup.DISABLED, None

        image = instance.spec.image
        try:
            record = await self._version_resolver.resolve(image, credentials)
        except Exception as exc:  # noqa: BLE001
            log.error("image_version_lookup_failed", image=image, error=str(exc))
            version_lookups_total.labels(result=VersionLookup.DEGRADED.value).inc()
            return VersionLookup.DEGRADED, None

        if instance.status.image_hash != record.hash:
            log.info(
                "image_update_found",
                old_version=instance.status.image_version,
                new_version=record.version,
                old_hash=instance.status.image_hash,
                new_hash=record.hash,
            )
        version_lookups_total.labels(result=VersionLookup.RESOLVED.value).inc()
        return VersionLookup.RESOLVED, record

    async def _record_status(
        self,
        instance: Instance,
        record: VersionRecord | None,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        try:
            await self._status.record(instance, record)
        except (ConflictError, StatusPersistError) as exc:
            log.error("status_update_failed", error=str(exc))
            raise
        except Exception as exc:
            log.error("status_update_failed", error=str(exc))
            raise StatusPersistError(f"could not persist status: {exc}") from exc

    async def _add_to_dashboard(self, instance: Instance, log: structlog.stdlib.BoundLogger) -> str | None:
        """Best-effort registration of the API endpoint with the dashboard."""
        if self._dashboard is None:
            log.debug("dashboard_registration_skipped", reason="no registrar configured")
            return None

        endpoint = instance.spec.kubernetes_api_endpoint
        assert endpoint is not None
        try:
            dashboard_id = await self._dashboard.register(endpoint)
        except DashboardAlreadyRegisteredError:
            log.info("dashboard_already_registered", endpoint=endpoint)
            dashboard_registrations_total.labels(result="already_registered").inc()
            return None
        except Exception as exc:  # noqa: BLE001
            log.error("dashboard_registration_failed", endpoint=endpoint, error=str(exc))
            dashboard_registrations_total.labels(result="failed").inc()
            return None

        log.info("dashboard_registered", endpoint=endpoint, dashboard_id=dashboard_id)
        dashboard_registrations_total.labels(result="registered").inc()
        return dashboard_id


def build_reconciler(
    config: KubemonConfig,
    api_client: Any,
    credentials: CredentialProvisioner,
    properties: PropertyProvisioner,
    version_resolver: VersionResolver | None = None,
) -> Reconciler:
    """Wire a Reconciler against a live cluster.

    The Kubernetes stores and cluster identity share *api_client*. The default
    registry resolver is built from ``config.registry`` unless
    *version_resolver* overrides it. Dashboard registration is enabled only
    when ``config.dashboard.api_url`` is set.
    """
    from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

    dashboard: DashboardRegistrar | None = None
    if config.dashboard.api_url:
        dashboard = HttpDashboardRegistrar.from_config(config.dashboard, label=config.operator_namespace)
        _log.info("dashboard_registration_enabled", api_url=config.dashboard.api_url)
    else:
        _log.debug("dashboard_registration_disabled", reason="no api url configured")

    if config.reconciler.disable_version_updates:
        _log.info("image_version_updates_disabled")

    resolver = version_resolver or RegistryVersionResolver(
        timeout=config.registry.timeout_seconds,
        verify_tls=config.registry.verify_tls,
        version_label=config.registry.version_label,
    )

    return Reconciler(
        config=config.reconciler,
        workloads=KubernetesWorkloadStore(k8s_client.AppsV1Api(api_client)),
        instances=KubernetesInstanceStore(k8s_client.CustomObjectsApi(api_client)),
        credentials=credentials,
        properties=properties,
        cluster_identity=KubeSystemIdentityProvider(k8s_client.CoreV1Api(api_client)),
        version_resolver=resolver,
        dashboard=dashboard,
    )
