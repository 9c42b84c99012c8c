"""
Resource model: desired manifests, their identity, and manifest loading.

A manifest is a JSON-compatible mapping shaped like a Kubernetes object:

    apiVersion: apps/v1
    kind: Deployment
    metadata:
      name: svc
      namespace: default
    spec: {...}
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Union

import yaml

from .errors import IdentityResolutionError, SerializationError

LiveResource = Dict[str, Any]

_MANIFEST_SUFFIXES = (".yml", ".yaml", ".json")

# Kinds that never carry metadata.namespace; load_manifests leaves them alone
CLUSTER_SCOPED_KINDS = frozenset({
    "Namespace",
    "Node",
    "PersistentVolume",
    "StorageClass",
    "PriorityClass",
    "ClusterRole",
    "ClusterRoleBinding",
    "CustomResourceDefinition",
    "MutatingWebhookConfiguration",
    "ValidatingWebhookConfiguration",
    "APIService",
})


@dataclass(frozen=True)
class ResourceKey:
    """Identity of an addressable resource."""
    kind: str
    name: str
    namespace: str = ""

    @property
    def plural(self) -> str:
        return self.kind.lower() + "s"

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind}/{self.namespace}/{self.name}"
        return f"{self.kind}/{self.name}"


@dataclass(frozen=True, eq=False)
class DesiredResource:
    """
    Immutable desired manifest. `body` always hands out a fresh copy.

    Equality and hashing are by identity; compare `key()` or `body` for content.
    """
    _body: Dict[str, Any] = field(repr=False)

    def __init__(self, body: Mapping[str, Any]) -> None:
        if not isinstance(body, Mapping):
            raise SerializationError(f"manifest must be a mapping, got {type(body).__name__}")
        object.__setattr__(self, "_body", copy.deepcopy(dict(body)))

    @property
    def body(self) -> Dict[str, Any]:
        return copy.deepcopy(self._body)

    @property
    def kind(self) -> str:
        return str(self._body.get("kind") or "")

    def key(self) -> ResourceKey:
        meta = self._body.get("metadata")
        if not isinstance(meta, Mapping):
            raise IdentityResolutionError(f"{self.kind or 'resource'}: missing metadata")
        kind = self._body.get("kind")
        name = meta.get("name")
        if not isinstance(kind, str) or not kind:
            raise IdentityResolutionError(f"resource {name!r}: missing kind")
        if not isinstance(name, str) or not name:
            raise IdentityResolutionError(f"{kind}: missing metadata.name")
        namespace = meta.get("namespace") or ""
        if not isinstance(namespace, str):
            raise IdentityResolutionError(f"{kind}/{name}: metadata.namespace must be a string")
        return ResourceKey(kind=kind, name=name, namespace=namespace)

    def __repr__(self) -> str:
        try:
            return f"DesiredResource({self.key()})"
        except IdentityResolutionError:
            return "DesiredResource(<unresolved>)"


def _iter_manifest_files(path: Path) -> Iterable[Path]:
    if path.is_dir():
        return sorted(p for p in path.iterdir() if p.is_file() and p.suffix.lower() in _MANIFEST_SUFFIXES)
    return [path]


def load_manifests(path: Union[str, Path], *, default_namespace: str = "") -> List[DesiredResource]:
    """
    Read desired manifests from a YAML/JSON file or a directory of them.

    - Multi-document YAML is supported; empty documents are skipped
    - Files in a directory are read in name order
    - `default_namespace` fills metadata.namespace when a manifest has none,
      except for kinds in CLUSTER_SCOPED_KINDS
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Manifests not found: {path}")

    out: List[DesiredResource] = []
    for f in _iter_manifest_files(p):
        with f.open("r", encoding="utf-8") as fh:
            try:
                docs = list(yaml.safe_load_all(fh))
            except yaml.YAMLError as e:
                raise SerializationError(f"{f}: {e}") from e
        for doc in docs:
            if doc is None:
                continue
            if not isinstance(doc, dict):
                raise SerializationError(f"{f}: top-level document must be a mapping")
            if default_namespace and doc.get("kind") not in CLUSTER_SCOPED_KINDS:
                meta = doc.setdefault("metadata", {})
                if isinstance(meta, dict) and not meta.get("namespace"):
                    meta["namespace"] = default_namespace
            out.append(DesiredResource(doc))
    return out
