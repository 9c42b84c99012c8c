from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from .errors import DeployStageError, ReconcileError
from .resources import DesiredResource

STAGE = "replace"


def replace_all(
    store: Any,
    resources: Iterable[DesiredResource],
    *,
    logger: Optional[logging.LoggerAdapter] = None,
) -> int:
    """
    Create-or-update every resource, in order.

    Not transactional: the first failure stops the loop and is raised as a
    DeployStageError; resources before it stay applied. Returns the number
    of resources replaced.
    """
    log = logger or logging.getLogger("deploysync.replacer")
    count = 0
    for idx, resource in enumerate(resources):
        key = None
        try:
            key = resource.key()
            store.create_or_update(resource)
        except ReconcileError as e:
            log.error("Replace failed at index %s (%s): %s", idx, key or "<unresolved>", e)
            raise DeployStageError(STAGE, idx, key) from e
        log.debug("Replaced [%s] %s", idx, key)
        count += 1
    log.info("Replaced %s resource(s)", count)
    return count
