"""
Error taxonomy for a reconciliation pass.

- NotFoundError: live resource missing at patch time
- SerializationError: body cannot be encoded/decoded as a JSON object
- TransportError: network/store failure (fetch, replace, patch)
- IdentityResolutionError: no stable key can be derived for a resource
- DeployStageError: wraps any of the above with the stage ("replace"/"patch")
  and the index of the failing resource; the original error is the __cause__
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


class ReconcileError(Exception):
    """Base class for every error raised by a reconciliation pass."""


class SerializationError(ReconcileError):
    """Structural encode/decode failure."""


class IdentityResolutionError(ReconcileError):
    """Unable to derive kind/namespace/name for a resource."""


class NotFoundError(ReconcileError):
    def __init__(self, key: Any) -> None:
        super().__init__(f"resource {key} not found")
        self.key = key


@dataclass
class TransportError(ReconcileError):
    """HTTP/transport error with context."""
    status: int
    url: str
    body: str = ""
    message: str = ""

    def __str__(self) -> str:
        base = f"TransportError(status={self.status}, url={self.url})"
        if self.message:
            base += f": {self.message}"
        if self.body:
            base += f" body={self.body[:200]}"
        return base


class DeployStageError(ReconcileError):
    """A resource failed during the replace or patch stage of a pass."""

    def __init__(self, stage: str, index: int, key: Optional[Any] = None) -> None:
        self.stage = stage
        self.index = index
        self.key = key
        msg = f"error during {stage} resource"
        if key is not None:
            msg += f" {key}"
        super().__init__(f"{msg} (index={index})")
