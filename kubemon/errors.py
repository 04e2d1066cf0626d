"""Error taxonomy for the convergence engine.

KubemonError            -- root of everything the engine raises.
NotFoundError           -- live object absent; convergence turns it into a create.
ConflictError           -- optimistic-concurrency rejection; retry the whole cycle.
ProvisioningError       -- credential or property provisioning failed.
WorkloadError           -- building, reading or writing the workload failed.
StatusPersistError      -- the instance status could not be written.
VersionLookupError      -- image version resolution failed (degraded, never raised
                           out of the engine).
DashboardRegistrationError -- best-effort dashboard registration failed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]


class KubemonError(Exception):
    """Base class for every error raised by kubemon."""


class NotFoundError(KubemonError):
    """The requested object does not exist."""


class ConflictError(KubemonError):
    """A write was rejected because it was based on a stale read."""


class ProvisioningError(KubemonError):
    """A provisioning step failed and aborted the cycle."""

    def __init__(self, step: str, cause: Exception) -> None:
        super().__init__(f"Provisioning step '{step}' failed: {cause}")
        self.step = step
        self.cause = cause


class WorkloadError(KubemonError):
    """The workload object could not be built, read, created or updated."""


class StatusPersistError(KubemonError):
    """The instance status could not be persisted."""


class VersionLookupError(KubemonError):
    """The published image version could not be resolved."""


class DashboardRegistrationError(KubemonError):
    """Registering the API endpoint with the dashboard failed."""


class DashboardAlreadyRegisteredError(DashboardRegistrationError):
    """The endpoint is already registered with the dashboard."""


def translate_api_exception(
    exc: ApiException,
    what: str,
    default: type[KubemonError] = WorkloadError,
) -> KubemonError:
    """Map a Kubernetes API error onto the kubemon taxonomy.

    404 becomes NotFoundError, 409 becomes ConflictError and everything else
    becomes *default*.
    """
    status = getattr(exc, "status", None)
    reason = getattr(exc, "reason", None) or str(exc)
    if status == 404:
        return NotFoundError(f"{what} not found")
    if status == 409:
        return ConflictError(f"{what}: conflict ({reason})")
    return default(f"{what}: API error {status} ({reason})")
