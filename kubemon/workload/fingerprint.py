"""Content-derived fingerprint for cheap drift detection.

The fingerprint covers the fields kubemon itself decides: name, namespace,
labels, owner linkage and the StatefulSet spec. Annotations and anything the
API server or other controllers add later are outside of it, so they never
register as drift.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

from kubemon.models.workload import WorkloadObject


def compute_fingerprint(payload: Any) -> str:
    """Return the SHA-256 hex digest of *payload* in canonical JSON form."""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def workload_fingerprint(obj: WorkloadObject) -> str:
    """Fingerprint the meaningful subset of a workload object."""
    return compute_fingerprint(
        {
            "name": obj.name,
            "namespace": obj.namespace,
            "labels": obj.labels,
            "ownerReferences": [ref.to_manifest() for ref in obj.owner_references],
            "spec": obj.spec,
        }
    )
