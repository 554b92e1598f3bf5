# backend/reverie/engine/systems/spawner.py
"""
SpawnerSystem - Creature population maintenance per scene.

Runs on the world tick for every loaded scene:
1. Revive dead instances whose respawn time has elapsed.
2. Top up each spawner to its max_alive.

A spawner's population counts alive instances and dead instances that are
waiting to respawn. A death therefore never frees a slot for a brand new
instance, and a later revival cannot push the alive count past max_alive.

Instances are soft-deleted on death: they stay in the scene's creature list
with alive=False and a respawn_at timestamp.
"""

from __future__ import annotations

import itertools
import logging
import random
from typing import TYPE_CHECKING, Dict, List, Tuple

from ..errors import UnknownCreatureError
from ..world import (
    DEFAULT_RESPAWN_SEC,
    FACING_LEFT,
    FACING_RIGHT,
    CreatureInstance,
    InstanceId,
    SpawnerConfig,
)

if TYPE_CHECKING:
    from ..creatures import CreatureRegistry, CreatureTemplate
    from .events import Event, EventDispatcher
    from .scenes import SceneState

logger = logging.getLogger(__name__)

# Horizontal sprite footprint kept clear of the right scene edge
SPRITE_MARGIN = 64

# Vertical spawn bands as fractions of scene height (larger y is lower)
SPAWN_BANDS: Dict[str, Tuple[float, float]] = {
    "vermin": (0.70, 0.90),
    "beast": (0.60, 0.85),
    "humanoid": (0.55, 0.80),
    "flying": (0.10, 0.45),
}
DEFAULT_SPAWN_BAND = (0.50, 0.85)

# Process-wide instance numbering
_instance_counter = itertools.count(1)


def next_instance_id(creature_id: str) -> InstanceId:
    return f"{creature_id}#{next(_instance_counter)}"


class SpawnerSystem:
    """
    Creates, revives and kills creature instances.

    Usage:
        spawner = SpawnerSystem(registry, dispatcher)
        events = spawner.update_scene(scene, now)
        dispatcher.dispatch(events)
    """

    def __init__(
        self,
        registry: "CreatureRegistry",
        dispatcher: "EventDispatcher",
        rng: random.Random | None = None,
    ) -> None:
        self.registry = registry
        self.dispatcher = dispatcher
        self.rng = rng or random.Random()

    # ---------- World tick ----------

    def update_scene(self, scene: "SceneState", now: float) -> List["Event"]:
        """Run respawns, then top up every spawner of the scene."""
        if scene.config is None:
            return []
        events = self.handle_respawns(scene, now)
        events.extend(self.ensure_population(scene))
        return events

    def ensure_population(self, scene: "SceneState") -> List["Event"]:
        events: List["Event"] = []
        for spawner in scene.config.spawners:
            try:
                template = self.registry.get(spawner.creature_id)
            except UnknownCreatureError:
                logger.error(
                    "Spawner %s in scene %s references unknown creature '%s', skipping",
                    spawner.id,
                    scene.scene_id,
                    spawner.creature_id,
                )
                continue

            missing = spawner.max_alive - self.population(scene, spawner)
            for _ in range(max(0, missing)):
                creature = self.spawn_creature(scene, spawner, template)
                events.append(self.dispatcher.creature_spawned(scene.scene_id, creature))
                if creature.entrance_desc:
                    events.append(
                        self.dispatcher.terminal_message(scene.scene_id, creature.entrance_desc)
                    )
        return events

    def handle_respawns(self, scene: "SceneState", now: float) -> List["Event"]:
        events: List["Event"] = []
        for creature in scene.creatures:
            if not creature.is_pending_respawn() or now < creature.respawn_at:
                continue

            spawner = scene.config.get_spawner(creature.spawner_id) if scene.config else None
            if spawner is None:
                # Spawner was removed while this instance was dead; retire it
                creature.respawn_at = None
                logger.debug("Retired %s, spawner %s no longer exists", creature.instance_id, creature.spawner_id)
                continue
            if self.alive_count(scene, spawner) >= spawner.max_alive:
                # Spawner shrank while this instance was dead; retire it
                creature.respawn_at = None
                logger.debug("Retired %s, spawner %s at capacity", creature.instance_id, spawner.id)
                continue

            creature.alive = True
            creature.respawn_at = None
            creature.current_hp = creature.max_hp
            creature.x, creature.y, creature.facing = self.sample_placement(
                scene, spawner, creature.classification
            )
            events.append(self.dispatcher.creature_respawned(scene.scene_id, creature))
        return events

    # ---------- Instance lifecycle ----------

    def spawn_creature(
        self,
        scene: "SceneState",
        spawner: SpawnerConfig,
        template: "CreatureTemplate",
    ) -> CreatureInstance:
        max_hp = template.roll_max_hp(self.rng)
        x, y, facing = self.sample_placement(scene, spawner, template.classification)
        creature = CreatureInstance(
            instance_id=next_instance_id(template.id),
            creature_id=template.id,
            spawner_id=spawner.id,
            name=template.name,
            classification=template.classification,
            level=template.level,
            entrance_desc=template.entrance_desc,
            short_desc=template.short_desc,
            x=x,
            y=y,
            facing=facing,
            max_hp=max_hp,
            current_hp=max_hp,
            stats=dict(template.stats),
            ai=dict(template.ai),
            loot=dict(template.loot),
        )
        scene.creatures.append(creature)
        logger.debug("Spawned %s in scene %s", creature.instance_id, scene.scene_id)
        return creature

    def mark_creature_dead(
        self,
        scene: "SceneState",
        instance_id: InstanceId,
        now: float,
    ) -> CreatureInstance | None:
        """
        Kill a live instance and schedule its revival.

        Returns the instance, or None if it is unknown or already dead.
        """
        creature = scene.find_creature(instance_id)
        if creature is None or not creature.alive:
            return None

        spawner = scene.config.get_spawner(creature.spawner_id) if scene.config else None
        delay = spawner.respawn_sec if spawner is not None else DEFAULT_RESPAWN_SEC
        creature.alive = False
        creature.current_hp = 0
        creature.respawn_at = now + delay
        logger.debug("%s died, respawn at %.1f", instance_id, creature.respawn_at)
        return creature

    # ---------- Helpers ----------

    @staticmethod
    def _matches(creature: CreatureInstance, spawner: SpawnerConfig) -> bool:
        return creature.spawner_id == spawner.id and creature.creature_id == spawner.creature_id

    def alive_count(self, scene: "SceneState", spawner: SpawnerConfig) -> int:
        return sum(1 for c in scene.creatures if c.alive and self._matches(c, spawner))

    def population(self, scene: "SceneState", spawner: SpawnerConfig) -> int:
        """Alive instances plus dead instances awaiting respawn."""
        return sum(
            1
            for c in scene.creatures
            if (c.alive or c.is_pending_respawn()) and self._matches(c, spawner)
        )

    def sample_placement(
        self,
        scene: "SceneState",
        spawner: SpawnerConfig | None,
        classification: str,
    ) -> Tuple[float, float, int]:
        """Random (x, y, facing) honoring fixed spawner coordinates."""
        width = scene.config.width
        height = scene.config.height

        if spawner is not None and spawner.spawn_x is not None:
            x = float(spawner.spawn_x)
        else:
            x = float(self.rng.randint(0, max(0, width - SPRITE_MARGIN)))

        if spawner is not None and spawner.spawn_y is not None:
            y = float(spawner.spawn_y)
        else:
            low, high = SPAWN_BANDS.get(classification, DEFAULT_SPAWN_BAND)
            y = float(self.rng.randint(int(height * low), int(height * high)))

        facing = self.rng.choice((FACING_LEFT, FACING_RIGHT))
        return x, y, facing
