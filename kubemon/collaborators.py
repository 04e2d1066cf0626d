"""Capabilities the Reconciler depends on but does not implement.

CredentialProvisioner   -- ensures the image pull secret and returns its credentials.
PropertyProvisioner     -- ensures the custom-properties secret.
ClusterIdentityProvider -- stable identifier of the cluster.
DashboardRegistrar      -- registers the Kubernetes API endpoint with the dashboard.

Each is a single-operation ABC so tests and alternative runtimes can swap
them freely. Every operation must be idempotent: the engine calls them on
every cycle.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import httpx
from kubernetes_asyncio.client import ApiException  # type: ignore[import-untyped]

from kubemon.errors import (
    DashboardAlreadyRegisteredError,
    DashboardRegistrationError,
    KubemonError,
    translate_api_exception,
)
from kubemon.observability.logging import get_logger

if TYPE_CHECKING:
    from kubemon.models.config import DashboardConfig
    from kubemon.models.instance import CustomPropertiesRef, Instance
    from kubemon.version.credentials import RegistryCredentials

_log = get_logger("collaborators")

KUBE_SYSTEM_NAMESPACE = "kube-system"


class CredentialProvisioner(ABC):
    @abstractmethod
    async def reconcile(self, instance: Instance) -> RegistryCredentials:
        """Ensure the pull secret for *instance* exists and is current.

        Returns the registry credentials it holds.
        """


class PropertyProvisioner(ABC):
    @abstractmethod
    async def reconcile(self, instance: Instance, ref: CustomPropertiesRef) -> None:
        """Ensure the custom-properties secret referenced by *ref* is current."""


class ClusterIdentityProvider(ABC):
    @abstractmethod
    async def get_id(self) -> str:
        """Return a stable identifier for the cluster."""


class DashboardRegistrar(ABC):
    @abstractmethod
    async def register(self, endpoint: str) -> str:
        """Register *endpoint* and return the dashboard's id for it.

        Raises:
            DashboardAlreadyRegisteredError: *endpoint* is already known.
            DashboardRegistrationError: any other failure.
        """


class KubeSystemIdentityProvider(ClusterIdentityProvider):
    """Uses the UID of the ``kube-system`` namespace as the cluster id.

    The namespace cannot be deleted, so its UID lives as long as the cluster.
    """

    def __init__(self, core_api: Any) -> None:
        self._api = core_api

    async def get_id(self) -> str:
        try:
            namespace = await self._api.read_namespace(name=KUBE_SYSTEM_NAMESPACE)
        except ApiException as exc:
            raise translate_api_exception(exc, f"namespace {KUBE_SYSTEM_NAMESPACE}", KubemonError) from exc
        uid = namespace["metadata"]["uid"] if isinstance(namespace, dict) else namespace.metadata.uid
        if not uid:
            raise KubemonError(f"namespace {KUBE_SYSTEM_NAMESPACE} has no uid")
        return str(uid)


class HttpDashboardRegistrar(DashboardRegistrar):
    """Registers endpoints by POSTing to the dashboard's credentials API.

    Args:
        api_url: Base URL of the dashboard API.
        token:   API token sent as ``Api-Token`` authorization.
        label:   Display name the endpoint is registered under.
        timeout: HTTP request timeout in seconds.
    """

    def __init__(
        self,
        api_url: str,
        token: str,
        label: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_url:
            raise ValueError("Dashboard api_url must not be empty")
        self._api_url = api_url.rstrip("/")
        self._token = token
        self._label = label
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config: DashboardConfig, label: str) -> HttpDashboardRegistrar:
        """Build from DashboardConfig; the token is read from the env var it names."""
        token = os.environ.get(config.token_env, "") if config.token_env else ""
        return cls(api_url=config.api_url, token=token, label=label)

    async def register(self, endpoint: str) -> str:
        payload = {"label": self._label, "endpointUrl": endpoint, "active": True}
        headers = {"Authorization": f"Api-Token {self._token}", "Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self._api_url}/config/v1/kubernetes/credentials",
                    json=payload,
                    headers=headers,
                )
        except httpx.HTTPError as exc:
            raise DashboardRegistrationError(f"dashboard request failed: {exc}") from exc

        if response.status_code == 409 or (
            response.status_code == 400 and "already exists" in response.text.lower()
        ):
            raise DashboardAlreadyRegisteredError(f"endpoint {endpoint} is already registered")
        if not response.is_success:
            raise DashboardRegistrationError(
                f"dashboard returned {response.status_code}: {response.text[:200]}"
            )
        try:
            return str(response.json()["id"])
        except (KeyError, TypeError, ValueError) as exc:
            raise DashboardRegistrationError(f"dashboard response carried no id: {exc}") from exc
