import textwrap

import pytest

from deploysync.core.errors import IdentityResolutionError, SerializationError
from deploysync.core.resources import DesiredResource, ResourceKey, load_manifests


def test_key_from_manifest():
    r = DesiredResource({"kind": "Service", "metadata": {"name": "web", "namespace": "prod"}})
    key = r.key()
    assert key == ResourceKey(kind="Service", name="web", namespace="prod")
    assert key.plural == "services"
    assert str(key) == "Service/prod/web"


def test_cluster_scoped_key():
    key = DesiredResource({"kind": "Namespace", "metadata": {"name": "prod"}}).key()
    assert key.namespace == ""
    assert str(key) == "Namespace/prod"


@pytest.mark.parametrize(
    "body",
    [
        {"kind": "Service"},
        {"kind": "Service", "metadata": {}},
        {"metadata": {"name": "web"}},
        {"kind": "Service", "metadata": {"name": "web", "namespace": 3}},
    ],
)
def test_key_resolution_errors(body):
    with pytest.raises(IdentityResolutionError):
        DesiredResource(body).key()


def test_desired_resource_is_immutable():
    src = {"kind": "ConfigMap", "metadata": {"name": "c"}, "data": {"k": "v"}}
    r = DesiredResource(src)
    src["data"]["k"] = "changed"
    body = r.body
    body["data"]["k"] = "mutated"
    assert r.body["data"] == {"k": "v"}


def test_load_manifests_directory_multi_doc(tmp_path):
    (tmp_path / "b.yml").write_text(textwrap.dedent("""
        kind: Service
        metadata:
          name: web
        ---
        kind: Deployment
        metadata:
          name: web
          namespace: other
        ---
    """), encoding="utf-8")
    (tmp_path / "a.json").write_text('{"kind": "ConfigMap", "metadata": {"name": "cfg"}}', encoding="utf-8")
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

    resources = load_manifests(tmp_path, default_namespace="default")
    assert [str(r.key()) for r in resources] == [
        "ConfigMap/default/cfg",
        "Service/default/web",
        "Deployment/other/web",
    ]


def test_load_manifests_rejects_non_mapping(tmp_path):
    f = tmp_path / "bad.yml"
    f.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(SerializationError):
        load_manifests(f)


def test_load_manifests_missing_path(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_manifests(tmp_path / "nope")


def test_desired_resource_is_hashable():
    a = DesiredResource({"kind": "ConfigMap", "metadata": {"name": "c"}})
    b = DesiredResource({"kind": "ConfigMap", "metadata": {"name": "c"}})
    seen = {a: "first"}
    assert seen[a] == "first"
    assert b not in seen
    assert a.key() == b.key()


def test_default_namespace_skips_cluster_scoped_kinds(tmp_path):
    f = tmp_path / "mixed.yml"
    f.write_text(textwrap.dedent("""
        kind: Namespace
        metadata:
          name: prod
        ---
        kind: ClusterRole
        metadata:
          name: reader
        ---
        kind: ConfigMap
        metadata:
          name: cfg
    """), encoding="utf-8")

    resources = load_manifests(f, default_namespace="prod")
    assert [str(r.key()) for r in resources] == [
        "Namespace/prod",
        "ClusterRole/reader",
        "ConfigMap/prod/cfg",
    ]
    assert "namespace" not in resources[0].body["metadata"]
