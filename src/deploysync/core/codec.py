"""
JSON codec and RFC 7386 merge-patch primitives.

- serialize/deserialize: UTF-8 JSON bytes, sorted keys, NaN rejected
- diff(a, b): merge patch turning document a into document b
  (changed/added keys carry the new value, removed keys carry null,
  lists are replaced wholesale)
- fold_apply(obj, delta): merge-patch apply; returns a new object

All functions are pure: inputs are never mutated.
"""

from __future__ import annotations

import copy
import json
from typing import Any, Dict, List, Union

from .errors import SerializationError

JsonScalar = Union[str, int, float, bool, None]
JsonValue = Union[JsonScalar, List[Any], Dict[str, Any]]
JsonObject = Dict[str, Any]


def serialize(obj: Any) -> bytes:
    try:
        text = json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"cannot serialize {type(obj).__name__}: {e}") from e
    return text.encode("utf-8")


def deserialize(raw: Union[bytes, str]) -> JsonValue:
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise SerializationError(f"malformed document: {e}") from e


def _load_object(raw: bytes, what: str) -> JsonObject:
    doc = deserialize(raw)
    if not isinstance(doc, dict):
        raise SerializationError(f"{what} document must be a JSON object, got {type(doc).__name__}")
    return doc


def same_value(a: JsonValue, b: JsonValue) -> bool:
    """JSON equality: booleans never equal numbers, 1 equals 1.0."""
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a is b
    if isinstance(a, dict) and isinstance(b, dict):
        if a.keys() != b.keys():
            return False
        return all(same_value(a[k], b[k]) for k in a)
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(same_value(x, y) for x, y in zip(a, b))
    if isinstance(a, (dict, list)) or isinstance(b, (dict, list)):
        return False
    return a == b


def _diff_objects(old: JsonObject, new: JsonObject) -> JsonObject:
    delta: JsonObject = {}
    for k in old:
        if k not in new:
            delta[k] = None
    for k, v in new.items():
        if k not in old:
            delta[k] = copy.deepcopy(v)
            continue
        prev = old[k]
        if isinstance(prev, dict) and isinstance(v, dict):
            sub = _diff_objects(prev, v)
            if sub:
                delta[k] = sub
        elif not same_value(prev, v):
            delta[k] = copy.deepcopy(v)
    return delta


def diff(a: bytes, b: bytes) -> JsonObject:
    """Create the merge patch from serialized document `a` to `b`."""
    return _diff_objects(_load_object(a, "original"), _load_object(b, "modified"))


def _merge(target: JsonValue, patch: JsonValue) -> JsonValue:
    if not isinstance(patch, dict):
        return copy.deepcopy(patch)
    out: JsonObject = dict(target) if isinstance(target, dict) else {}
    for k, v in patch.items():
        if v is None:
            out.pop(k, None)
        else:
            out[k] = _merge(out.get(k), v)
    return out


def fold_apply(obj: JsonObject, delta: JsonObject) -> JsonObject:
    """Apply merge patch `delta` to `obj` and return the result."""
    if not isinstance(delta, dict):
        raise SerializationError("merge patch must be a JSON object")
    return _merge(copy.deepcopy(obj), delta)  # type: ignore[return-value]
