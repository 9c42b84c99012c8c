"""
Reconciliation pass context.

An Environment is built once per pass. It owns the desired resource set and
the ordered post-action queue; nothing in it survives the pass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Union

from .resources import DesiredResource


class Phase(str, Enum):
    """Lifecycle phases of the reconciled entity."""
    NONE = ""
    INITIALIZING = "Initializing"
    BUILDING_KIT = "Building Kit"
    RESOLVING_KIT = "Resolving Kit"
    DEPLOYING = "Deploying"
    RUNNING = "Running"
    ERROR = "Error"

    @classmethod
    def coerce(cls, value: Union["Phase", str, None]) -> Optional["Phase"]:
        """Map a raw phase value to a Phase; unknown values give None."""
        if isinstance(value, Phase):
            return value
        if value is None:
            return None
        try:
            return cls(str(value))
        except ValueError:
            return None


@dataclass
class Entity:
    """The object under reconciliation; only its phase is consumed here."""
    name: str
    phase: Union[Phase, str, None] = Phase.NONE

    def in_phase(self, *phases: Phase) -> bool:
        return Phase.coerce(self.phase) in phases


PostAction = Callable[["Environment"], Any]


class PostActionQueue:
    """Ordered post-actions of one pass; each runs once, in registration order."""

    def __init__(self) -> None:
        self._actions: List[PostAction] = []

    def register(self, action: PostAction) -> None:
        self._actions.append(action)

    def __len__(self) -> int:
        return len(self._actions)

    def __iter__(self):
        return iter(list(self._actions))

    def drain(self, env: "Environment") -> None:
        """Run and remove every action; the first failure propagates."""
        actions, self._actions = self._actions, []
        for action in actions:
            action(env)


@dataclass
class Environment:
    entity: Entity
    store: Any
    resources: List[DesiredResource] = field(default_factory=list)
    post_actions: PostActionQueue = field(default_factory=PostActionQueue)
    logger: Optional[Union[logging.Logger, logging.LoggerAdapter]] = None
    dry_run: bool = False

    @property
    def log(self) -> Union[logging.Logger, logging.LoggerAdapter]:
        return self.logger or logging.getLogger("deploysync")

    def in_phase(self, *phases: Phase) -> bool:
        return self.entity.in_phase(*phases)
