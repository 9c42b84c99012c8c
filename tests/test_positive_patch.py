import copy

from deploysync.core.positive_patch import MERGE_PATCH, compute_patch
from deploysync.core.resources import DesiredResource


LIVE = {
    "apiVersion": "apps/v1",
    "kind": "Deployment",
    "metadata": {
        "name": "svc",
        "namespace": "default",
        "resourceVersion": "42",
        "uid": "0b6c",
        "labels": {"app": "svc", "injected-by": "webhook"},
    },
    "spec": {
        "replicas": 3,
        "strategy": {"type": "RollingUpdate", "rollingUpdate": {"maxSurge": "25%"}},
        "template": {"spec": {"containers": [{"name": "main", "image": "svc:1"}]}},
    },
    "status": {"observedGeneration": 5, "readyReplicas": 3},
}

DESIRED = {
    "apiVersion": "apps/v1",
    "kind": "Deployment",
    "metadata": {"name": "svc", "namespace": "default", "labels": {"app": "svc", "version": "2"}},
    "spec": {
        "replicas": 5,
        "template": {"spec": {"containers": [{"name": "main", "image": "svc:2"}]}},
    },
}


def _specified_fields_match(obj, desired):
    for k, v in desired.items():
        if v is None:
            continue
        if isinstance(v, dict) and isinstance(obj.get(k), dict):
            if not _specified_fields_match(obj[k], v):
                return False
        elif obj.get(k) != v:
            return False
    return True


def _keeps_unmentioned(before, after, desired):
    for k, v in before.items():
        if k not in after:
            if desired.get(k) is None:
                return False
            continue
        if isinstance(v, dict) and isinstance(after[k], dict) and isinstance(desired.get(k), dict):
            if not _keeps_unmentioned(v, after[k], desired[k]):
                return False
    return True


def test_spec_example_keeps_status():
    live = {"name": "svc", "replicas": 3, "status": {"observedGeneration": 5}}
    desired = {"name": "svc", "replicas": 5}
    patch = compute_patch(live, desired)
    assert patch.patch_type == MERGE_PATCH
    assert patch.delta == {"replicas": 5}


def test_patch_has_no_deletion_markers():
    patch = compute_patch(LIVE, DesiredResource(DESIRED))
    assert patch.delta == {
        "metadata": {"labels": {"version": "2"}},
        "spec": {
            "replicas": 5,
            "template": {"spec": {"containers": [{"name": "main", "image": "svc:2"}]}},
        },
    }
    assert b"null" not in patch.data


def test_positivity_and_coverage():
    patched = compute_patch(LIVE, DESIRED).apply_to(LIVE)
    assert _specified_fields_match(patched, DESIRED)
    assert _keeps_unmentioned(LIVE, patched, DESIRED)
    assert patched["status"] == LIVE["status"]
    assert patched["metadata"]["labels"]["injected-by"] == "webhook"
    assert patched["spec"]["strategy"] == LIVE["spec"]["strategy"]


def test_idempotence():
    once = compute_patch(LIVE, DESIRED).apply_to(LIVE)
    second = compute_patch(once, DESIRED)
    assert second.is_empty
    assert second.apply_to(once) == once


def test_no_op_when_desired_is_subset_of_live():
    desired = {
        "kind": "Deployment",
        "metadata": {"name": "svc", "namespace": "default"},
        "spec": {"replicas": 3},
    }
    assert compute_patch(LIVE, desired).is_empty


def test_live_is_not_mutated():
    live = copy.deepcopy(LIVE)
    compute_patch(live, DESIRED)
    assert live == LIVE


def test_null_in_desired_means_not_specified():
    live = {"spec": {"replicas": 3, "paused": False}}
    desired = {"spec": {"replicas": 4, "paused": None}}
    assert compute_patch(live, desired).delta == {"spec": {"replicas": 4}}


def test_new_nested_object_and_empty_object_are_kept():
    live = {"spec": {"replicas": 1}}
    desired = {"spec": {"replicas": 1, "selector": {"matchLabels": {"app": "a"}}}, "annotations": {}}
    assert compute_patch(live, desired).delta == {
        "spec": {"selector": {"matchLabels": {"app": "a"}}},
        "annotations": {},
    }


def test_arrays_are_replaced_not_merged():
    live = {"spec": {"ports": [{"port": 80}, {"port": 443}]}}
    desired = {"spec": {"ports": [{"port": 8080}]}}
    patched = compute_patch(live, desired).apply_to(live)
    assert patched["spec"]["ports"] == [{"port": 8080}]


def test_dropped_field_is_left_untouched():
    # a field the manifest no longer sets looks like a server default
    live = {"metadata": {"annotations": {"old": "x"}}, "spec": {"replicas": 1}}
    desired = {"spec": {"replicas": 1}}
    assert compute_patch(live, desired).is_empty
