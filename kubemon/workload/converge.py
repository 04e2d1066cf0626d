"""Create-or-update state machine for the monitoring workload.

    ABSENT  --create-->  CURRENT
    STALE   --update-->  CURRENT
    CURRENT --(no-op)--> CURRENT

Staleness is decided by fingerprint alone. A missing fingerprint on either
side counts as stale, never as equal.
"""

from __future__ import annotations

from kubemon.errors import NotFoundError
from kubemon.models.workload import WorkloadAction, WorkloadObject, WorkloadState
from kubemon.observability.logging import get_logger
from kubemon.observability.metrics import workload_writes_total
from kubemon.workload.store import WorkloadStore

_log = get_logger("workload.converge")


def has_changed(live: WorkloadObject, desired: WorkloadObject) -> bool:
    """Return True when *live* must be overwritten with *desired*."""
    if not live.fingerprint or not desired.fingerprint:
        return True
    return live.fingerprint != desired.fingerprint


def classify(live: WorkloadObject | None, desired: WorkloadObject) -> WorkloadState:
    if live is None:
        return WorkloadState.ABSENT
    if has_changed(live, desired):
        return WorkloadState.STALE
    return WorkloadState.CURRENT


async def converge_workload(store: WorkloadStore, desired: WorkloadObject) -> WorkloadAction:
    """Bring the live workload to *desired*, issuing at most one write.

    Errors other than "not found" on the read, and every create/update error
    (conflicts included), propagate to the caller.
    """
    try:
        live: WorkloadObject | None = await store.get(desired.name, desired.namespace)
    except NotFoundError:
        live = None

    state = classify(live, desired)

    if state is WorkloadState.ABSENT:
        _log.info("creating_statefulset", name=desired.name, namespace=desired.namespace)
        await store.create(desired)
        workload_writes_total.labels(action=WorkloadAction.CREATED.value).inc()
        return WorkloadAction.CREATED

    assert live is not None
    if state is WorkloadState.STALE:
        _log.info(
            "updating_statefulset",
            name=desired.name,
            namespace=desired.namespace,
            live_fingerprint=live.fingerprint,
            desired_fingerprint=desired.fingerprint,
        )
        desired.resource_version = live.resource_version
        await store.update(desired)
        workload_writes_total.labels(action=WorkloadAction.UPDATED.value).inc()
        return WorkloadAction.UPDATED

    _log.debug("statefulset_current", name=desired.name, namespace=desired.namespace)
    return WorkloadAction.UNCHANGED
