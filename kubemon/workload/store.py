"""Workload persistence.

WorkloadStore            -- ABC the convergence step reads and writes through.
KubernetesWorkloadStore  -- apps/v1 StatefulSets via kubernetes-asyncio.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from kubernetes_asyncio.client import ApiException  # type: ignore[import-untyped]

from kubemon.errors import WorkloadError, translate_api_exception
from kubemon.models.workload import WorkloadObject
from kubemon.observability.logging import get_logger

_log = get_logger("workload.store")


class WorkloadStore(ABC):
    """Storage for the workload object.

    Writes must honour ``resource_version`` when it is set: a write based on a
    stale read has to fail with ConflictError rather than overwrite.
    """

    @abstractmethod
    async def get(self, name: str, namespace: str) -> WorkloadObject:
        """Return the live object.

        Raises:
            NotFoundError: the object does not exist.
            WorkloadError: any other read failure.
        """

    @abstractmethod
    async def create(self, obj: WorkloadObject) -> WorkloadObject:
        """Create *obj* and return the stored object."""

    @abstractmethod
    async def update(self, obj: WorkloadObject) -> WorkloadObject:
        """Overwrite the live object with *obj* and return the stored object."""


class KubernetesWorkloadStore(WorkloadStore):
    """StatefulSet storage backed by ``AppsV1Api``."""

    def __init__(self, apps_api: Any) -> None:
        self._api = apps_api

    async def get(self, name: str, namespace: str) -> WorkloadObject:
        try:
            result = await self._api.read_namespaced_stateful_set(name=name, namespace=namespace)
        except ApiException as exc:
            raise translate_api_exception(exc, f"statefulset {namespace}/{name}") from exc
        return WorkloadObject.from_manifest(self._to_dict(result))

    async def create(self, obj: WorkloadObject) -> WorkloadObject:
        try:
            result = await self._api.create_namespaced_stateful_set(namespace=obj.namespace, body=obj.to_manifest())
        except ApiException as exc:
            raise translate_api_exception(exc, f"create statefulset {obj.namespace}/{obj.name}") from exc
        _log.debug("statefulset_created", name=obj.name, namespace=obj.namespace)
        return WorkloadObject.from_manifest(self._to_dict(result))

    async def update(self, obj: WorkloadObject) -> WorkloadObject:
        try:
            result = await self._api.replace_namespaced_stateful_set(
                name=obj.name,
                namespace=obj.namespace,
                body=obj.to_manifest(),
            )
        except ApiException as exc:
            raise translate_api_exception(exc, f"update statefulset {obj.namespace}/{obj.name}") from exc
        _log.debug("statefulset_replaced", name=obj.name, namespace=obj.namespace)
        return WorkloadObject.from_manifest(self._to_dict(result))

    def _to_dict(self, result: Any) -> dict[str, Any]:
        if isinstance(result, dict):
            return result
        serialized = self._api.api_client.sanitize_for_serialization(result)
        if not isinstance(serialized, dict):
            raise WorkloadError(f"unexpected statefulset payload: {type(result).__name__}")
        return serialized
