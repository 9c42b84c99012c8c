"""
Positive merge patch: a merge patch that only adds or updates fields.

A plain merge patch between the live object and the desired manifest carries
a null for every field the live object has and the manifest does not. Most of
those fields were never owned by the manifest: the server defaulted them
after the resource was created (status, clusterIP, generated annotations...).
Sending those nulls would strip the server-side defaults.

compute_patch therefore:
  1. serializes live (A) and desired (B)
  2. computes the raw merge patch R = diff(A, B)
  3. folds R into a deep copy of desired (the candidate), which drops
     every null-valued field the manifest carries
  4. serializes the candidate (C)
  5. returns diff(A, C) with all deletion markers removed

Limitation: a field the manifest used to set and no longer sets cannot be
told apart from a server default; it is left untouched on the live object.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple, Union

from . import codec
from .resources import DesiredResource

MERGE_PATCH = "merge"
MERGE_PATCH_CONTENT_TYPE = "application/merge-patch+json"


@dataclass(frozen=True)
class Patch:
    """A structured delta and the strategy used to fold it into a target."""
    data: bytes
    patch_type: str = MERGE_PATCH

    @property
    def content_type(self) -> str:
        return MERGE_PATCH_CONTENT_TYPE

    @property
    def delta(self) -> Dict[str, Any]:
        doc = codec.deserialize(self.data)
        return doc if isinstance(doc, dict) else {}

    @property
    def is_empty(self) -> bool:
        return not self.delta

    def apply_to(self, obj: Mapping[str, Any]) -> Dict[str, Any]:
        return codec.fold_apply(dict(obj), self.delta)


def _drop_deletions(delta: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
    """Remove null markers; returns (pruned, changed)."""
    out: Dict[str, Any] = {}
    changed = False
    for k, v in delta.items():
        if v is None:
            changed = True
            continue
        if isinstance(v, dict) and v:
            sub, sub_changed = _drop_deletions(v)
            changed = changed or sub_changed
            # an object left empty only by pruning carried nothing but deletions
            if not sub and sub_changed:
                continue
            out[k] = sub
        else:
            out[k] = v
    return out, changed


def compute_patch(
    live: Mapping[str, Any],
    desired: Union[DesiredResource, Mapping[str, Any]],
) -> Patch:
    """Compute the positive merge patch taking `live` towards `desired`."""
    to = desired.body if isinstance(desired, DesiredResource) else copy.deepcopy(dict(desired))

    original = codec.serialize(live)
    modified = codec.serialize(to)
    raw = codec.diff(original, modified)

    candidate = codec.fold_apply(to, raw)
    folded = codec.serialize(candidate)

    positive, _ = _drop_deletions(codec.diff(original, folded))
    return Patch(data=codec.serialize(positive))
