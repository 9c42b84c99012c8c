"""
Deployer trait: picks how the desired resources reach the store.

- Initializing / Deploying -> replace every resource (create or full update)
- Running                  -> positive merge patch against the live objects
- any other phase          -> nothing

The work is registered as a post-action so it runs once the whole desired
set of the pass is final.
"""

from __future__ import annotations

from typing import Optional

from .environment import Environment, Phase
from .patcher import patch_all
from .replacer import replace_all

REPLACE_PHASES = (Phase.INITIALIZING, Phase.DEPLOYING)
PATCH_PHASES = (Phase.RUNNING,)


def replace_resources(env: Environment) -> None:
    if env.dry_run:
        for r in env.resources:
            env.log.info("[dry-run] would replace %s", r.key())
        return
    replace_all(env.store, env.resources, logger=env.log)


def patch_resources(env: Environment) -> None:
    if env.dry_run:
        for r in env.resources:
            env.log.info("[dry-run] would patch %s", r.key())
        return
    patch_all(env.store, env.resources, logger=env.log)


class DeployerTrait:
    trait_id = "deployer"

    def __init__(self, enabled: Optional[bool] = None) -> None:
        self.enabled = enabled

    def configure(self, env: Environment) -> bool:
        if self.enabled is False:
            return False
        return env.in_phase(*REPLACE_PHASES, *PATCH_PHASES)

    def apply(self, env: Environment) -> None:
        phase = Phase.coerce(env.entity.phase)
        if phase in REPLACE_PHASES:
            env.post_actions.register(replace_resources)
        elif phase in PATCH_PHASES:
            env.post_actions.register(patch_resources)

    def is_platform_trait(self) -> bool:
        return True


def run_pass(env: Environment, trait: Optional[DeployerTrait] = None) -> bool:
    """
    Drive one reconciliation pass: configure, apply, then drain the
    post-action queue. Returns False when the trait did not apply.
    """
    trait = trait or DeployerTrait()
    if not trait.configure(env):
        env.log.info("Trait %s not applicable in phase %r", trait.trait_id, env.entity.phase)
        return False
    trait.apply(env)
    env.log.info("Running %s post-action(s) over %s resource(s)", len(env.post_actions), len(env.resources))
    env.post_actions.drain(env)
    return True
