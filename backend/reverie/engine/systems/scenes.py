# backend/reverie/engine/systems/scenes.py
"""
SceneStateStore - per-scene ephemeral state.

Provides:
- Idempotent lazy creation of scene state (ensure)
- Configuration refresh that keeps spawned creatures and occupants
- Occupant set bookkeeping
- Explicit eviction policy ("never" or "idle")

Scene state is keyed by the string form of the scene id.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from ...config import SCENE_EVICTION_IDLE, SCENE_EVICTION_NEVER
from ..world import CreatureInstance, InstanceId, SceneConfig, SceneId, SessionId

logger = logging.getLogger(__name__)


@dataclass
class SceneState:
    """Ephemeral state of one scene: creature population and occupants."""

    scene_id: SceneId
    config: SceneConfig | None = None
    creatures: list[CreatureInstance] = field(default_factory=list)
    occupants: set[SessionId] = field(default_factory=set)
    last_active: float = 0.0

    def alive_creatures(self) -> list[CreatureInstance]:
        return [c for c in self.creatures if c.alive]

    def find_creature(self, instance_id: InstanceId) -> CreatureInstance | None:
        for creature in self.creatures:
            if creature.instance_id == instance_id:
                return creature
        return None


class SceneStateStore:
    """
    In-memory registry of SceneState objects.

    Usage:
        store = SceneStateStore(eviction="never")
        state = store.ensure("scene_1", config)
        store.add_occupant("scene_1", session_id)
    """

    def __init__(
        self,
        eviction: str = SCENE_EVICTION_NEVER,
        idle_timeout: float = 300.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if eviction not in (SCENE_EVICTION_NEVER, SCENE_EVICTION_IDLE):
            raise ValueError(f"Unknown scene eviction policy: {eviction!r}")
        self.eviction = eviction
        self.idle_timeout = idle_timeout
        self._clock = clock
        self._scenes: dict[SceneId, SceneState] = {}

    def ensure(self, scene_id: SceneId | int, config: SceneConfig | None = None) -> SceneState:
        """
        Return the scene state, creating it if absent.

        A non-None config replaces the stored config; creatures and occupants
        are never touched by a refresh.
        """
        key = str(scene_id)
        state = self._scenes.get(key)
        if state is None:
            state = SceneState(scene_id=key, config=config, last_active=self._clock())
            self._scenes[key] = state
            logger.debug("Created scene state for %s", key)
        elif config is not None:
            state.config = config
        return state

    def get(self, scene_id: SceneId | int) -> SceneState | None:
        return self._scenes.get(str(scene_id))

    def mark_active(self, scene_id: SceneId | int) -> None:
        self.ensure(scene_id).last_active = self._clock()

    def add_occupant(self, scene_id: SceneId | int, session_id: SessionId) -> None:
        state = self.ensure(scene_id)
        state.occupants.add(session_id)
        state.last_active = self._clock()

    def remove_occupant(self, scene_id: SceneId | int, session_id: SessionId) -> None:
        state = self._scenes.get(str(scene_id))
        if state is None:
            return
        state.occupants.discard(session_id)

    def remove_occupant_everywhere(self, session_id: SessionId) -> None:
        for state in self._scenes.values():
            state.occupants.discard(session_id)

    def occupants(self, scene_id: SceneId | int) -> set[SessionId]:
        state = self._scenes.get(str(scene_id))
        return set(state.occupants) if state else set()

    def active_scenes(self) -> list[SceneState]:
        """Snapshot list of scene states, safe to iterate while the store changes."""
        return list(self._scenes.values())

    def __len__(self) -> int:
        return len(self._scenes)

    def __contains__(self, scene_id: object) -> bool:
        return str(scene_id) in self._scenes

    def evict_idle(self, now: float | None = None) -> list[SceneId]:
        """
        Apply the eviction policy.

        Under "never" nothing is removed. Under "idle" a scene with no
        occupants whose last activity is older than idle_timeout is dropped.
        """
        if self.eviction == SCENE_EVICTION_NEVER:
            return []
        now = self._clock() if now is None else now
        evicted = [
            scene_id
            for scene_id, state in self._scenes.items()
            if not state.occupants and now - state.last_active > self.idle_timeout
        ]
        for scene_id in evicted:
            del self._scenes[scene_id]
            logger.info("Evicted idle scene %s", scene_id)
        return evicted
