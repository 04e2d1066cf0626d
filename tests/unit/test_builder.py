"""Tests for desired StatefulSet construction."""

from __future__ import annotations

import pytest

from kubemon.errors import WorkloadError
from kubemon.models.instance import CustomPropertiesRef, Instance, InstanceSpec
from kubemon.models.workload import TEMPLATE_HASH_ANNOTATION
from kubemon.workload.builder import (
    CUSTOM_PROPERTIES_MOUNT_PATH,
    build_desired_workload,
    pull_secret_name,
    workload_name,
)


def _make_instance(**spec_kwargs) -> Instance:
    spec_kwargs.setdefault("image", "registry/app:v1")
    return Instance(
        name="kubemon",
        namespace="monitoring",
        uid="uid-1",
        spec=InstanceSpec(**spec_kwargs),
    )


def _pod_spec(instance: Instance) -> dict:
    return build_desired_workload(instance, "cluster-uid").spec["template"]["spec"]


class TestNamingAndOwnership:
    def test_name_and_namespace(self) -> None:
        instance = _make_instance()
        desired = build_desired_workload(instance, "cluster-uid")
        assert desired.name == "kubemon-kubernetes-monitoring" == workload_name(instance)
        assert desired.namespace == "monitoring"

    def test_owner_reference_points_at_instance(self) -> None:
        desired = build_desired_workload(_make_instance(), "cluster-uid")
        (owner,) = desired.owner_references
        assert owner.api_version == "kubemon.io/v1alpha1"
        assert owner.kind == "KubeMon"
        assert owner.name == "kubemon"
        assert owner.uid == "uid-1"
        assert owner.controller and owner.block_owner_deletion

    def test_missing_uid_is_rejected(self) -> None:
        instance = _make_instance()
        instance.uid = ""
        with pytest.raises(WorkloadError):
            build_desired_workload(instance, "cluster-uid")

    def test_fingerprint_lands_in_annotation(self) -> None:
        desired = build_desired_workload(_make_instance(), "cluster-uid")
        manifest = desired.to_manifest()
        assert desired.fingerprint
        assert manifest["metadata"]["annotations"][TEMPLATE_HASH_ANNOTATION] == desired.fingerprint
        assert manifest["metadata"]["ownerReferences"][0]["uid"] == "uid-1"


class TestPodTemplate:
    def test_container_image_and_pull_secret(self) -> None:
        instance = _make_instance()
        pod = _pod_spec(instance)
        assert pod["containers"][0]["image"] == "registry/app:v1"
        assert pod["imagePullSecrets"] == [{"name": pull_secret_name(instance)}]

    def test_selector_matches_template_labels(self) -> None:
        desired = build_desired_workload(_make_instance(labels={"team": "obs"}), "cluster-uid")
        selector = desired.spec["selector"]["matchLabels"]
        template_labels = desired.spec["template"]["metadata"]["labels"]
        assert selector.items() <= template_labels.items()
        assert template_labels["team"] == "obs"

    def test_user_labels_cannot_override_selector(self) -> None:
        desired = build_desired_workload(
            _make_instance(labels={"app.kubernetes.io/name": "hijack"}), "cluster-uid"
        )
        assert desired.labels["app.kubernetes.io/name"] == "kubemon"

    def test_user_env_cannot_override_reserved_vars(self) -> None:
        env_in = [{"name": "KUBEMON_ID_SEED_CLUSTER_ID", "value": "fake"}, {"name": "HTTP_PROXY", "value": "p"}]
        pod = _pod_spec(_make_instance(env=env_in))
        env = pod["containers"][0]["env"]
        assert [e["value"] for e in env if e["name"] == "KUBEMON_ID_SEED_CLUSTER_ID"] == ["cluster-uid"]
        assert {"name": "HTTP_PROXY", "value": "p"} in env

    def test_scheduling_fields(self) -> None:
        pod = _pod_spec(
            _make_instance(
                node_selector={"kubernetes.io/os": "linux"},
                tolerations=[{"key": "dedicated", "operator": "Exists"}],
                priority_class_name="high",
            )
        )
        assert pod["nodeSelector"] == {"kubernetes.io/os": "linux"}
        assert pod["tolerations"] == [{"key": "dedicated", "operator": "Exists"}]
        assert pod["priorityClassName"] == "high"

    def test_no_custom_properties_means_no_volume(self) -> None:
        pod = _pod_spec(_make_instance())
        assert "volumes" not in pod
        assert "volumeMounts" not in pod["containers"][0]

    def test_inline_custom_properties_use_generated_secret(self) -> None:
        pod = _pod_spec(_make_instance(custom_properties=CustomPropertiesRef(value="a=b")))
        assert pod["volumes"][0]["secret"]["secretName"] == "kubemon-kubernetes-monitoring-custom-properties"
        assert pod["containers"][0]["volumeMounts"][0]["mountPath"] == CUSTOM_PROPERTIES_MOUNT_PATH

    def test_referenced_custom_properties_use_named_secret(self) -> None:
        pod = _pod_spec(_make_instance(custom_properties=CustomPropertiesRef(value_from="my-props")))
        assert pod["volumes"][0]["secret"]["secretName"] == "my-props"

    def test_build_does_not_alias_instance_fields(self) -> None:
        instance = _make_instance(tolerations=[{"key": "a"}])
        desired = build_desired_workload(instance, "cluster-uid")
        desired.spec["template"]["spec"]["tolerations"][0]["key"] = "mutated"
        assert instance.spec.tolerations == [{"key": "a"}]
