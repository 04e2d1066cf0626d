"""Status persistence for the owning KubeMon instance.

InstanceStore            -- ABC for writing the status subresource.
KubernetesInstanceStore  -- CustomObjectsApi implementation.
StatusRecorder           -- stamps version, hash and time and persists them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from kubernetes_asyncio.client import ApiException  # type: ignore[import-untyped]

from kubemon.errors import StatusPersistError, translate_api_exception
from kubemon.models.instance import API_GROUP, API_VERSION, PLURAL, Instance
from kubemon.models.workload import VersionRecord
from kubemon.observability.logging import get_logger

_log = get_logger("status")


class InstanceStore(ABC):
    @abstractmethod
    async def update_status(self, instance: Instance) -> None:
        """Persist ``instance.status``.

        Must reject writes whose ``resource_version`` is stale with
        ConflictError, and must adopt the new resource version on success.
        """


class KubernetesInstanceStore(InstanceStore):
    """Writes the ``status`` subresource of the KubeMon custom resource."""

    def __init__(self, custom_objects_api: Any) -> None:
        self._api = custom_objects_api

    async def update_status(self, instance: Instance) -> None:
        metadata: dict[str, Any] = {"name": instance.name, "namespace": instance.namespace}
        if instance.resource_version:
            metadata["resourceVersion"] = instance.resource_version
        body = {
            "apiVersion": instance.api_version,
            "kind": instance.kind,
            "metadata": metadata,
            "status": instance.status_manifest(),
        }
        try:
            result = await self._api.replace_namespaced_custom_object_status(
                group=API_GROUP,
                version=API_VERSION,
                namespace=instance.namespace,
                plural=PLURAL,
                name=instance.name,
                body=body,
            )
        except ApiException as exc:
            raise translate_api_exception(
                exc, f"status of KubeMon {instance.namespace}/{instance.name}", StatusPersistError
            ) from exc

        new_version = ((result or {}).get("metadata") or {}).get("resourceVersion")
        if new_version:
            instance.resource_version = new_version


class StatusRecorder:
    """Writes the outcome of a cycle onto the instance and persists it.

    With ``record=None`` the version fields are left as they are and only the
    timestamp moves; that is how disabled and degraded lookups are recorded.
    """

    def __init__(
        self,
        store: InstanceStore,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    async def record(self, instance: Instance, record: VersionRecord | None) -> None:
        if record is not None:
            instance.status.image_version = record.version
            instance.status.image_hash = record.hash
        instance.status.updated_timestamp = self._clock()
        await self._store.update_status(instance)
        _log.debug(
            "status_recorded",
            instance=instance.name,
            namespace=instance.namespace,
            image_version=instance.status.image_version,
            image_hash=instance.status.image_hash,
        )
