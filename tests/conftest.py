import copy

import pytest

from deploysync.core.errors import TransportError
from deploysync.core.resources import DesiredResource


def manifest(name, kind="Deployment", namespace="default", **fields):
    body = {
        "apiVersion": "apps/v1",
        "kind": kind,
        "metadata": {"name": name, "namespace": namespace},
    }
    body.update(fields)
    return DesiredResource(body)


class MemoryStore:
    """In-process live store recording every call."""

    def __init__(self, fail_on=()):
        self.objects = {}
        self.calls = []
        self.fail_on = set(fail_on)  # {(op, name)}

    def _maybe_fail(self, op, key):
        if (op, key.name) in self.fail_on:
            raise TransportError(status=500, url=f"mem://{key}", message=f"{op} refused")

    def get_live(self, key):
        self.calls.append(("get", key.name))
        self._maybe_fail("get", key)
        obj = self.objects.get(key)
        return copy.deepcopy(obj) if obj is not None else None

    def create_or_update(self, resource):
        key = resource.key()
        self.calls.append(("replace", key.name))
        self._maybe_fail("replace", key)
        self.objects[key] = resource.body
        return resource.body

    def apply_patch(self, key, patch):
        self.calls.append(("patch", key.name))
        self._maybe_fail("patch", key)
        self.objects[key] = patch.apply_to(self.objects.get(key) or {})
        return copy.deepcopy(self.objects[key])


@pytest.fixture
def memory_store():
    return MemoryStore()
