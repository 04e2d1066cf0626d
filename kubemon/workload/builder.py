"""Desired StatefulSet construction for the Kubernetes monitoring workload."""

from __future__ import annotations

import copy
from typing import Any

from kubemon.errors import WorkloadError
from kubemon.models.instance import Instance
from kubemon.models.workload import OwnerReference, WorkloadObject
from kubemon.workload.fingerprint import workload_fingerprint

WORKLOAD_NAME = "kubernetes-monitoring"
CONTAINER_NAME = "kubemon"
CAPABILITY = "kubernetes_monitoring"
CUSTOM_PROPERTIES_KEY = "customProperties"
CUSTOM_PROPERTIES_VOLUME = "custom-properties"
CUSTOM_PROPERTIES_MOUNT_PATH = "/var/lib/kubemon/config"


def workload_name(instance: Instance) -> str:
    return f"{instance.name}-{WORKLOAD_NAME}"


def pull_secret_name(instance: Instance) -> str:
    return f"{instance.name}-pull-secret"


def selector_labels(instance: Instance) -> dict[str, str]:
    return {
        "app.kubernetes.io/name": "kubemon",
        "app.kubernetes.io/instance": instance.name,
        "app.kubernetes.io/component": WORKLOAD_NAME,
    }


def build_desired_workload(instance: Instance, cluster_id: str) -> WorkloadObject:
    """Build the desired StatefulSet for *instance*.

    Pure and deterministic: the same instance spec and cluster id always yield
    the same object and therefore the same fingerprint.

    Raises:
        WorkloadError: if the instance has no uid to link ownership to.
    """
    if not instance.uid:
        raise WorkloadError(f"KubeMon {instance.namespace}/{instance.name} has no uid; cannot set owner reference")

    labels = {**instance.spec.labels, **selector_labels(instance)}
    desired = WorkloadObject(
        name=workload_name(instance),
        namespace=instance.namespace,
        labels=labels,
        spec=_statefulset_spec(instance, cluster_id, labels),
        owner_references=[
            OwnerReference(
                api_version=instance.api_version,
                kind=instance.kind,
                name=instance.name,
                uid=instance.uid,
            )
        ],
    )
    desired.fingerprint = workload_fingerprint(desired)
    return desired


def _statefulset_spec(instance: Instance, cluster_id: str, labels: dict[str, str]) -> dict[str, Any]:
    spec = instance.spec

    container: dict[str, Any] = {
        "name": CONTAINER_NAME,
        "image": spec.image,
        "imagePullPolicy": "Always",
        "env": _container_env(instance, cluster_id),
        "resources": copy.deepcopy(spec.resources),
    }
    pod_spec: dict[str, Any] = {
        "serviceAccountName": spec.service_account_name,
        "imagePullSecrets": [{"name": pull_secret_name(instance)}],
        "containers": [container],
        "nodeSelector": dict(spec.node_selector),
        "tolerations": copy.deepcopy(spec.tolerations),
    }
    if spec.priority_class_name:
        pod_spec["priorityClassName"] = spec.priority_class_name

    if spec.custom_properties is not None:
        container["volumeMounts"] = [
            {"name": CUSTOM_PROPERTIES_VOLUME, "mountPath": CUSTOM_PROPERTIES_MOUNT_PATH, "readOnly": True}
        ]
        pod_spec["volumes"] = [
            {
                "name": CUSTOM_PROPERTIES_VOLUME,
                "secret": {
                    "secretName": spec.custom_properties.secret_name(instance.name, WORKLOAD_NAME),
                    "items": [{"key": CUSTOM_PROPERTIES_KEY, "path": "custom.properties"}],
                },
            }
        ]

    return {
        "replicas": spec.replicas,
        "serviceName": workload_name(instance),
        "podManagementPolicy": "Parallel",
        "selector": {"matchLabels": selector_labels(instance)},
        "template": {
            "metadata": {"labels": dict(labels)},
            "spec": pod_spec,
        },
    }


def _container_env(instance: Instance, cluster_id: str) -> list[dict[str, Any]]:
    env: list[dict[str, Any]] = [
        {"name": "KUBEMON_CAPABILITIES", "value": CAPABILITY},
        {"name": "KUBEMON_ID_SEED_NAMESPACE", "value": instance.namespace},
        {"name": "KUBEMON_ID_SEED_CLUSTER_ID", "value": cluster_id},
    ]
    reserved = {item["name"] for item in env}
    env.extend(copy.deepcopy(item) for item in instance.spec.env if item.get("name") not in reserved)
    return env
