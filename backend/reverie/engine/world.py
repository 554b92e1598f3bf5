# backend/reverie/engine/world.py
"""
In-memory world data structures.

The World holds the Entity Registry (session -> simulated entity) and the
single-slot intent buffer. Scene state lives in the SceneStateStore
(systems/scenes.py); creature templates live in the CreatureRegistry
(creatures.py).
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Simple type aliases for clarity
SessionId = str
EntityId = str  # Same value as the owning session id
CharacterId = str
SceneId = str
SpawnerId = str
CreatureId = str
InstanceId = str

# Facing values for creatures (sprite flip)
FACING_LEFT = -1
FACING_RIGHT = 1

# Default scene dimensions when a scene document omits them
DEFAULT_SCENE_WIDTH = 800
DEFAULT_SCENE_HEIGHT = 450

# Default respawn delay when a spawner omits it
DEFAULT_RESPAWN_SEC = 30.0


def normalize_angle(angle: float) -> float:
    """Normalize an angle in radians to the half-open interval (-pi, pi]."""
    a = math.remainder(angle, math.tau)
    if a <= -math.pi:
        a += math.tau
    return a


def angle_difference(target: float, current: float) -> float:
    """Signed shortest rotation from current to target, in (-pi, pi]."""
    return normalize_angle(target - current)


class IntentKind(Enum):
    MANUAL = "manual"
    MOVE_TO = "move_to"
    CANCEL = "cancel"


@dataclass
class Intent:
    """
    The most recent control input received for an entity.

    Single slot per entity: a new intent replaces the previous one. Manual
    intents are read every tick while fresh; move-to and cancel intents are
    applied once (consumed) by the movement system.
    """

    kind: IntentKind
    received_at: float
    thrust: bool = False
    heading: float | None = None
    target: tuple[float, float] | None = None
    consumed: bool = False

    @classmethod
    def manual(cls, thrust: bool, heading: float, received_at: float) -> "Intent":
        return cls(
            kind=IntentKind.MANUAL,
            received_at=received_at,
            thrust=thrust,
            heading=normalize_angle(heading),
        )

    @classmethod
    def move_to(cls, x: float, y: float, received_at: float) -> "Intent":
        return cls(kind=IntentKind.MOVE_TO, received_at=received_at, target=(x, y))

    @classmethod
    def cancel(cls, received_at: float) -> "Intent":
        return cls(kind=IntentKind.CANCEL, received_at=received_at)

    def is_fresh(self, now: float, stale_after: float) -> bool:
        return (now - self.received_at) <= stale_after


@dataclass
class Entity:
    """
    A simulated, player-controlled participant.

    Position and velocity are written only by the MovementSystem. Display
    metadata (name) is resolved once at identification time.
    """

    id: EntityId
    character_id: CharacterId
    name: str
    scene_id: SceneId
    scene_x: int = 0
    scene_y: int = 0
    x: float = 0.0
    y: float = 0.0
    vx: float = 0.0
    vy: float = 0.0
    orientation: float = 0.0
    move_target: tuple[float, float] | None = None
    last_input_at: float = 0.0
    last_active_at: float = 0.0
    at_rest: bool = True

    def speed(self) -> float:
        return math.hypot(self.vx, self.vy)

    def to_record(self) -> dict[str, Any]:
        """Published per-entity record for snapshots and self-state."""
        return {
            "id": self.id,
            "name": self.name,
            "x": self.x,
            "y": self.y,
            "vx": self.vx,
            "vy": self.vy,
            "orientation": self.orientation,
        }


@dataclass(frozen=True)
class SpawnerConfig:
    """A configured rule describing which creature to maintain, how many, and where."""

    id: SpawnerId
    creature_id: CreatureId
    max_alive: int = 0
    respawn_sec: float = DEFAULT_RESPAWN_SEC
    spawn_x: float | None = None
    spawn_y: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SpawnerConfig":
        return cls(
            id=str(data["id"]),
            creature_id=str(data["creature_id"]),
            max_alive=int(data.get("max_alive", 0)),
            respawn_sec=float(data.get("respawn_sec", DEFAULT_RESPAWN_SEC)),
            spawn_x=data.get("spawn_x"),
            spawn_y=data.get("spawn_y"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "creature_id": self.creature_id,
            "max_alive": self.max_alive,
            "respawn_sec": self.respawn_sec,
            "spawn_x": self.spawn_x,
            "spawn_y": self.spawn_y,
        }


@dataclass
class SceneConfig:
    """Static definition of a scene, supplied by the scene repository."""

    id: SceneId
    name: str
    x: int
    y: int
    region_id: str | None = None
    width: int = DEFAULT_SCENE_WIDTH
    height: int = DEFAULT_SCENE_HEIGHT
    entrance_desc: str = ""
    exits: list[str] = field(default_factory=list)
    security: int = 0
    spawners: list[SpawnerConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SceneConfig":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            x=int(data["x"]),
            y=int(data["y"]),
            region_id=data.get("region_id"),
            width=int(data.get("width") or DEFAULT_SCENE_WIDTH),
            height=int(data.get("height") or DEFAULT_SCENE_HEIGHT),
            entrance_desc=data.get("entrance_desc", ""),
            exits=list(data.get("exits") or []),
            security=int(data.get("security") or 0),
            spawners=[SpawnerConfig.from_dict(s) for s in data.get("spawners") or []],
        )

    def get_spawner(self, spawner_id: SpawnerId) -> SpawnerConfig | None:
        for spawner in self.spawners:
            if spawner.id == spawner_id:
                return spawner
        return None


@dataclass
class CharacterRecord:
    """The slice of a character document the core reads at identification."""

    id: CharacterId
    name: str
    scene_x: int
    scene_y: int
    x: float = 0.0
    y: float = 0.0


@dataclass
class CreatureInstance:
    """A live, uniquely identified occurrence of a creature template in a scene."""

    instance_id: InstanceId
    creature_id: CreatureId
    spawner_id: SpawnerId
    name: str
    classification: str
    level: int = 1
    entrance_desc: str = ""
    short_desc: str = ""
    alive: bool = True
    respawn_at: float | None = None
    x: float = 0.0
    y: float = 0.0
    facing: int = FACING_RIGHT
    max_hp: int | None = None
    current_hp: int | None = None
    stats: dict[str, Any] = field(default_factory=dict)
    ai: dict[str, Any] = field(default_factory=dict)
    loot: dict[str, Any] = field(default_factory=dict)

    def is_pending_respawn(self) -> bool:
        return not self.alive and self.respawn_at is not None

    def to_dict(self) -> dict[str, Any]:
        """Full instance record, as broadcast in lifecycle events."""
        return {
            "instance_id": self.instance_id,
            "creature_id": self.creature_id,
            "spawner_id": self.spawner_id,
            "name": self.name,
            "classification": self.classification,
            "level": self.level,
            "entrance_desc": self.entrance_desc,
            "short_desc": self.short_desc,
            "alive": self.alive,
            "respawn_at": self.respawn_at,
            "x": self.x,
            "y": self.y,
            "facing": self.facing,
            "max_hp": self.max_hp,
            "current_hp": self.current_hp,
            "stats": dict(self.stats),
            "ai": dict(self.ai),
            "loot": dict(self.loot),
        }


class World:
    """
    Entity Registry and intent buffer.

    Only the SimulationEngine mutates these maps: network handlers go through
    its submit_* / identify / disconnect methods.
    """

    def __init__(self) -> None:
        self.entities: dict[EntityId, Entity] = {}
        self.intents: dict[EntityId, Intent] = {}

    def add_entity(self, entity: Entity) -> None:
        self.entities[entity.id] = entity

    def remove_entity(self, entity_id: EntityId) -> Entity | None:
        self.intents.pop(entity_id, None)
        return self.entities.pop(entity_id, None)

    def set_intent(self, entity_id: EntityId, intent: Intent) -> bool:
        """Replace the entity's intent slot. Returns False for unknown entities."""
        if entity_id not in self.entities:
            return False
        self.intents[entity_id] = intent
        return True

    def get_intent(self, entity_id: EntityId) -> Intent | None:
        return self.intents.get(entity_id)
