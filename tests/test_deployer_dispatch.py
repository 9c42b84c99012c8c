import pytest

from deploysync.core.deployer import DeployerTrait, patch_resources, replace_resources, run_pass
from deploysync.core.environment import Entity, Environment, Phase, PostActionQueue

from conftest import manifest


def _env(phase, store=None, resources=()):
    return Environment(entity=Entity(name="app", phase=phase), store=store, resources=list(resources))


@pytest.mark.parametrize("phase", ["Initializing", Phase.DEPLOYING])
def test_replace_phases_register_one_replace_action(phase):
    env = _env(phase)
    trait = DeployerTrait()
    assert trait.configure(env) is True
    trait.apply(env)
    assert list(env.post_actions) == [replace_resources]


def test_running_registers_one_patch_action():
    env = _env("Running")
    trait = DeployerTrait()
    assert trait.configure(env) is True
    trait.apply(env)
    assert list(env.post_actions) == [patch_resources]


@pytest.mark.parametrize("phase", ["", "Error", "Building Kit", "Unheard-Of", None])
def test_other_phases_register_nothing(phase):
    env = _env(phase)
    trait = DeployerTrait()
    assert trait.configure(env) is False
    trait.apply(env)
    assert len(env.post_actions) == 0


def test_disabled_trait_is_not_applicable():
    assert DeployerTrait(enabled=False).configure(_env("Running")) is False
    assert DeployerTrait().is_platform_trait() is True


def test_phase_coerce():
    assert Phase.coerce("Running") is Phase.RUNNING
    assert Phase.coerce(Phase.DEPLOYING) is Phase.DEPLOYING
    assert Phase.coerce("running") is None
    assert Phase.coerce(None) is None


def test_queue_drains_in_order_once():
    seen = []
    q = PostActionQueue()
    q.register(lambda env: seen.append("first"))
    q.register(lambda env: seen.append("second"))
    q.drain(None)
    q.drain(None)
    assert seen == ["first", "second"]
    assert len(q) == 0


def test_queue_stops_at_first_failure():
    seen = []

    def boom(env):
        raise RuntimeError("boom")

    q = PostActionQueue()
    q.register(boom)
    q.register(lambda env: seen.append("never"))
    with pytest.raises(RuntimeError):
        q.drain(None)
    assert seen == []
    assert len(q) == 0


def test_run_pass_deploying_replaces(memory_store):
    env = _env("Deploying", memory_store, [manifest("a"), manifest("b")])
    assert run_pass(env) is True
    assert memory_store.calls == [("replace", "a"), ("replace", "b")]


def test_run_pass_running_patches(memory_store):
    env = _env("Running", memory_store, [manifest("a", spec={"replicas": 2})])
    memory_store.create_or_update(manifest("a", spec={"replicas": 1}, status={"ready": True}))
    memory_store.calls.clear()

    assert run_pass(env) is True
    assert memory_store.calls == [("get", "a"), ("patch", "a")]
    live = next(iter(memory_store.objects.values()))
    assert live["spec"] == {"replicas": 2}
    assert live["status"] == {"ready": True}


def test_run_pass_other_phase_is_noop(memory_store):
    env = _env("Error", memory_store, [manifest("a")])
    assert run_pass(env) is False
    assert memory_store.calls == []


def test_dry_run_touches_nothing(memory_store):
    env = _env("Deploying", memory_store, [manifest("a")])
    env.dry_run = True
    run_pass(env)
    assert memory_store.calls == []
