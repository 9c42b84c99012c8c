from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional

from .errors import DeployStageError, NotFoundError, ReconcileError
from .positive_patch import compute_patch
from .resources import DesiredResource, ResourceKey

STAGE = "patch"


@dataclass(frozen=True)
class PatchResult:
    index: int
    key: ResourceKey
    status: str  # PATCHED | UNCHANGED


def patch_all(
    store: Any,
    resources: Iterable[DesiredResource],
    *,
    logger: Optional[logging.LoggerAdapter] = None,
) -> List[PatchResult]:
    """
    Bring every live resource towards its desired manifest with a positive
    merge patch, in order.

    The live object is fetched fresh for each resource. A missing live
    object is an error (no implicit create). The first failure stops the
    loop and is raised as a DeployStageError.
    """
    log = logger or logging.getLogger("deploysync.patcher")
    results: List[PatchResult] = []
    for idx, resource in enumerate(resources):
        key = None
        try:
            key = resource.key()
            live = store.get_live(key)
            if live is None:
                raise NotFoundError(key)

            patch = compute_patch(live, resource)
            if patch.is_empty:
                log.debug("Unchanged [%s] %s", idx, key)
                results.append(PatchResult(idx, key, "UNCHANGED"))
                continue

            log.debug("Patch [%s] %s: %s", idx, key, patch.data.decode("utf-8"))
            store.apply_patch(key, patch)
        except ReconcileError as e:
            log.error("Patch failed at index %s (%s): %s", idx, key or "<unresolved>", e)
            raise DeployStageError(STAGE, idx, key) from e
        results.append(PatchResult(idx, key, "PATCHED"))

    patched = sum(1 for r in results if r.status == "PATCHED")
    log.info("Patched %s resource(s), %s unchanged", patched, len(results) - patched)
    return results
