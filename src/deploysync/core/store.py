"""
HttpResourceStore - JSON REST client for the live resource store.

- get_live, create_or_update (full replace), apply_patch (merge patch)
- Bearer token, TLS verification toggle, per-request timeout
- No retries: transient failures surface as TransportError and the outer
  driver re-runs the whole pass
- requests exceptions never leak; they are converted to TransportError

Layout:
    {base_url}/namespaces/{namespace}/{plural}/{name}   namespaced
    {base_url}/{plural}/{name}                          cluster-scoped
"""

from __future__ import annotations

import json
import logging
import warnings
from typing import Any, Dict, Optional

import requests
import urllib3

from . import codec
from .errors import SerializationError, TransportError
from .positive_patch import Patch
from .resources import DesiredResource, LiveResource, ResourceKey

_LOG_PREVIEW = 600


def _short_json(obj: Any, limit: int = _LOG_PREVIEW) -> str:
    try:
        s = json.dumps(obj, ensure_ascii=False) if isinstance(obj, (dict, list)) else str(obj)
        return s[:limit]
    except (TypeError, ValueError):
        return f"<unserializable:{type(obj).__name__}>"


def _carry_over_server_fields(kind: str, existing: Dict[str, Any], desired: Dict[str, Any]) -> Dict[str, Any]:
    """Copy the fields an update must keep from the existing object."""
    out = dict(desired)
    meta = dict(out.get("metadata") or {})
    version = (existing.get("metadata") or {}).get("resourceVersion")
    if version:
        meta["resourceVersion"] = version
    out["metadata"] = meta

    # clusterIP is immutable once allocated
    if kind == "Service":
        cluster_ip = (existing.get("spec") or {}).get("clusterIP")
        if cluster_ip:
            spec = dict(out.get("spec") or {})
            spec.setdefault("clusterIP", cluster_ip)
            out["spec"] = spec
    return out


class HttpResourceStore:
    """Live store backed by a JSON REST API."""

    def __init__(
        self,
        base_url: str,
        token: str = "",
        *,
        verify_tls: bool = True,
        timeout_sec: float = 30,
        logger: Optional[logging.LoggerAdapter] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required")
        self.base_url = base_url.rstrip("/")
        self.verify_tls = verify_tls
        self.timeout = float(timeout_sec)
        self.log = logger or logging.getLogger("deploysync.store")

        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "User-Agent": "DeploySync/HttpResourceStore",
        })
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

        if not verify_tls:
            warnings.filterwarnings("ignore", category=urllib3.exceptions.InsecureRequestWarning)

    # ------------- paths -------------

    def item_path(self, key: ResourceKey) -> str:
        return f"{self.collection_path(key)}/{key.name}"

    def collection_path(self, key: ResourceKey) -> str:
        if key.namespace:
            return f"namespaces/{key.namespace}/{key.plural}"
        return key.plural

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    # ------------- public API -------------

    def get_live(self, key: ResourceKey) -> Optional[LiveResource]:
        """Fetch the current object, or None when the store does not have it."""
        resp = self._send("GET", self.item_path(key), allow=(404,))
        if resp.status_code == 404:
            return None
        return self._json_body(resp)

    def create_or_update(self, resource: DesiredResource) -> Dict[str, Any]:
        """
        Full replace: create; when the object already exists fetch it, carry
        over resourceVersion (and a Service's clusterIP) and update it.
        """
        key = resource.key()
        body = resource.body
        resp = self._send("POST", self.collection_path(key), payload=body, allow=(409,))
        if resp.status_code != 409:
            self.log.info("Created %s", key)
            return self._json_body(resp)

        existing = self.get_live(key) or {}
        body = _carry_over_server_fields(key.kind, existing, body)
        resp = self._send("PUT", self.item_path(key), payload=body)
        self.log.info("Replaced %s", key)
        return self._json_body(resp)

    def apply_patch(self, key: ResourceKey, patch: Patch) -> Dict[str, Any]:
        resp = self._send(
            "PATCH",
            self.item_path(key),
            data=patch.data,
            headers={"Content-Type": patch.content_type},
        )
        self.log.info("Patched %s", key)
        return self._json_body(resp)

    # ------------- internal -------------

    def _send(
        self,
        method: str,
        path: str,
        *,
        payload: Optional[Dict[str, Any]] = None,
        data: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
        allow: tuple = (),
    ) -> requests.Response:
        url = self._url(path)
        if payload is not None:
            # non-JSON values (dates, sets...) raise SerializationError here
            data = codec.serialize(payload)
            headers = {"Content-Type": "application/json", **(headers or {})}
            self.log.debug("%s %s payload=%s", method, path, _short_json(payload))
        try:
            resp = self.session.request(
                method=method,
                url=url,
                data=data,
                headers=headers,
                timeout=self.timeout,
                verify=self.verify_tls,
            )
        except requests.RequestException as exc:
            self.log.warning("%s %s failed: %s", method, path, exc)
            raise TransportError(status=0, url=url, message=str(exc)) from exc

        self.log.debug("%s %s -> %s in %.1fms", method, path, resp.status_code, resp.elapsed.total_seconds() * 1000)
        if resp.status_code >= 400 and resp.status_code not in allow:
            self.log.warning("%s %s failed (status=%s): %s", method, path, resp.status_code, resp.text[:200])
            raise TransportError(status=resp.status_code, url=url, body=resp.text, message=resp.reason or "")
        return resp

    @staticmethod
    def _json_body(resp: requests.Response) -> Dict[str, Any]:
        if resp.status_code == 204 or not resp.content:
            return {}
        try:
            doc = resp.json()
        except ValueError as e:
            raise SerializationError(f"non-JSON response from {resp.url}: {e}") from e
        if not isinstance(doc, dict):
            raise SerializationError(f"expected a JSON object from {resp.url}, got {type(doc).__name__}")
        return doc
