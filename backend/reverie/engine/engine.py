# backend/reverie/engine/engine.py
import logging
import math
import random
import time
import uuid
from typing import Any, Callable, Dict, List

from ..config import SimulationConfig
from .creatures import CreatureRegistry
from .errors import InvalidInputError, NotFoundError, SceneNotFoundError
from .systems import (
    EventDispatcher,
    GameContext,
    InterestConfig,
    InterestManager,
    LocationPersister,
    MovementSystem,
    SceneStateStore,
    SpawnerSystem,
    TimeEventManager,
)
from .systems.persistence import CharacterStore
from .systems.scenes import SceneState
from .world import Entity, Intent, SceneConfig, SessionId, World

logger = logging.getLogger(__name__)

Event = Dict[str, Any]

# Region grid deltas for scene travel
DIRECTIONS: Dict[str, tuple[int, int]] = {
    "north": (0, 1),
    "south": (0, -1),
    "east": (1, 0),
    "west": (-1, 0),
}
DIRECTION_ALIASES = {"n": "north", "s": "south", "e": "east", "w": "west"}

SIMULATION_TICK = "simulation_tick"
SNAPSHOT_TICK = "snapshot_tick"
WORLD_TICK = "world_tick"


def parse_character_id(value: Any) -> str:
    """Canonical UUID string for a client-supplied character id."""
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        raise InvalidInputError("Malformed character id") from None


class SimulationEngine:
    """
    Authoritative simulation owner.

    - Holds the Entity Registry (World) and the SceneStateStore.
    - Network handlers only call identify / submit_* / travel / disconnect;
      they never write positions.
    - Three recurring events drive the systems: simulation (movement),
      snapshot (interest management) and world (spawner, scene eviction).

    Uses modular systems for specific domains:
    - GameContext: Shared state and per-session outbound queues
    - TimeEventManager: Fixed-rate tick loops
    - EventDispatcher: Event creation and routing
    """

    def __init__(
        self,
        config: SimulationConfig,
        registry: CreatureRegistry,
        character_store: CharacterStore,
        scene_repository: Any,
        *,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config
        self.registry = registry
        self.character_store = character_store
        self.scene_repository = scene_repository
        self._clock = clock

        self.world = World()
        self.scenes = SceneStateStore(
            eviction=config.scene_eviction,
            idle_timeout=config.scene_idle_timeout,
            clock=clock,
        )

        # Initialize game context and systems
        self.ctx = GameContext(self.world, self.scenes, queue_size=config.outbound_queue_size)
        self.ctx.engine = self
        self.time_manager = TimeEventManager(self.ctx)
        self.event_dispatcher = EventDispatcher(self.ctx)
        self.ctx.event_dispatcher = self.event_dispatcher

        self.movement = MovementSystem(config)
        self.interest = InterestManager(InterestConfig.from_simulation(config), self.event_dispatcher)
        self.spawner = SpawnerSystem(registry, self.event_dispatcher, rng)
        self.persister = LocationPersister(character_store)

    def now(self) -> float:
        return self._clock()

    # ---------- Lifecycle ----------

    async def start(self) -> None:
        """Start the three tick loops."""
        await self.time_manager.start()
        cfg = self.config
        self.time_manager.schedule(
            1.0 / cfg.simulation_hz, self.simulation_tick, recurring=True, event_id=SIMULATION_TICK
        )
        self.time_manager.schedule(
            1.0 / cfg.snapshot_hz, self.snapshot_tick, recurring=True, event_id=SNAPSHOT_TICK
        )
        self.time_manager.schedule(
            1.0 / cfg.world_hz, self.world_tick, recurring=True, event_id=WORLD_TICK
        )
        logger.info(
            "Simulation started (simulation=%.1fHz snapshot=%.1fHz world=%.1fHz)",
            cfg.simulation_hz,
            cfg.snapshot_hz,
            cfg.world_hz,
        )

    async def stop(self) -> None:
        await self.time_manager.stop()
        await self.persister.flush()
        logger.info("Simulation stopped")

    # ---------- Ticks ----------

    def simulation_tick(self) -> None:
        """Advance every entity by one fixed step."""
        now = self.now()
        for entity in self.movement.advance(self.world, now):
            self.persister.schedule_save(entity)

    def snapshot_tick(self) -> None:
        """Send each identified session its filtered view of the world."""
        events = self.interest.build_snapshots(self.world, self.ctx.session_ids(), self.now())
        self.event_dispatcher.dispatch(events)

    def world_tick(self) -> None:
        """Maintain creature populations in every loaded scene, then apply eviction."""
        now = self.now()
        for scene in self.scenes.active_scenes():
            if scene.occupants:
                self.scenes.mark_active(scene.scene_id)
            try:
                events = self.spawner.update_scene(scene, now)
            except Exception:
                logger.exception("World tick failed for scene %s", scene.scene_id)
                continue
            self.event_dispatcher.dispatch(events)
        self.scenes.evict_idle(now)

    # ---------- Sessions ----------

    def register_session(self, session_id: SessionId | None = None) -> tuple[SessionId, Any]:
        """
        Open an outbound channel for a new connection.

        Returns (session_id, queue); the WebSocket sender reads from the queue.
        """
        session_id = session_id or str(uuid.uuid4())
        return session_id, self.ctx.register_listener(session_id)

    async def identify(self, session_id: SessionId, character_id: Any) -> Entity | None:
        """
        Bind a session to a character and create its entity.

        Failures are answered with a scene_error to this session only.
        """
        try:
            character_id = parse_character_id(character_id)
        except InvalidInputError as exc:
            self._error(session_id, str(exc))
            return None

        try:
            record = await self.character_store.get_character(character_id)
            scene_config = await self.scene_repository.get_scene_at(record.scene_x, record.scene_y)
        except NotFoundError as exc:
            self._error(session_id, str(exc))
            return None
        except Exception:
            logger.exception("Failed to load character %s", character_id)
            self._error(session_id, "Failed to load character.")
            return None

        # The connection may have closed while the store was queried
        if not self.ctx.has_listener(session_id):
            return None

        previous = self.world.remove_entity(session_id)
        if previous is not None:
            self.scenes.remove_occupant(previous.scene_id, session_id)

        now = self.now()
        entity = Entity(
            id=session_id,
            character_id=record.id,
            name=record.name,
            scene_id=scene_config.id,
            scene_x=scene_config.x,
            scene_y=scene_config.y,
            x=record.x,
            y=record.y,
            last_input_at=now,
            last_active_at=now,
        )
        self.world.add_entity(entity)
        scene = self._enter_scene(session_id, scene_config)

        logger.info("Session %s identified as %s (%s)", session_id, record.name, character_id)
        self.event_dispatcher.dispatch([self.event_dispatcher.self_state(entity, scene)])
        return entity

    def disconnect(self, session_id: SessionId) -> None:
        """Remove every trace of the session and save its last location."""
        entity = self.world.remove_entity(session_id)
        self.scenes.remove_occupant_everywhere(session_id)
        self.ctx.unregister_listener(session_id)
        if entity is not None:
            self.persister.schedule_save(entity)
            logger.info("Session %s (%s) disconnected", session_id, entity.name)

    # ---------- Intents ----------

    def submit_manual_intent(self, session_id: SessionId, thrust: bool, heading: float) -> bool:
        if not math.isfinite(heading):
            logger.debug("Rejected non-finite heading from %s", session_id)
            return False
        return self._set_intent(session_id, Intent.manual(bool(thrust), heading, self.now()))

    def submit_move_to(self, session_id: SessionId, x: float, y: float) -> bool:
        if not (math.isfinite(x) and math.isfinite(y)):
            logger.debug("Rejected non-finite move target from %s", session_id)
            return False
        return self._set_intent(session_id, Intent.move_to(x, y, self.now()))

    def cancel_move(self, session_id: SessionId) -> bool:
        return self._set_intent(session_id, Intent.cancel(self.now()))

    def _set_intent(self, session_id: SessionId, intent: Intent) -> bool:
        if not self.world.set_intent(session_id, intent):
            logger.debug("Dropped %s intent from unidentified session %s", intent.kind.value, session_id)
            return False
        self.world.entities[session_id].last_input_at = intent.received_at
        return True

    # ---------- Scene travel ----------

    async def travel(self, session_id: SessionId, direction: str) -> bool:
        """Move the session's entity to the adjacent scene on the region grid."""
        entity = self.world.entities.get(session_id)
        if entity is None:
            self._error(session_id, "Player not identified.")
            return False

        direction = DIRECTION_ALIASES.get(direction, direction)
        delta = DIRECTIONS.get(direction)
        if delta is None:
            self._error(session_id, "Invalid direction.")
            return False

        target_x = entity.scene_x + delta[0]
        target_y = entity.scene_y + delta[1]
        try:
            scene_config = await self.scene_repository.get_scene_at(target_x, target_y)
        except SceneNotFoundError:
            self._error(session_id, "You can't go that way.")
            return False
        except Exception:
            logger.exception("Failed to load scene [%s, %s]", target_x, target_y)
            self._error(session_id, "You can't go that way.")
            return False

        # The session may have disconnected during the lookup
        entity = self.world.entities.get(session_id)
        if entity is None:
            return False

        self.scenes.remove_occupant(entity.scene_id, session_id)
        entity.scene_id = scene_config.id
        entity.scene_x = scene_config.x
        entity.scene_y = scene_config.y
        entity.vx = entity.vy = 0.0
        entity.move_target = None
        entity.at_rest = True
        self.world.intents.pop(session_id, None)

        scene = self._enter_scene(session_id, scene_config)
        self.persister.schedule_save(entity)
        self.event_dispatcher.dispatch(
            [self.event_dispatcher.scene_data(session_id, scene, message=f"You move {direction}.")]
        )
        return True

    def _enter_scene(self, session_id: SessionId, scene_config: SceneConfig) -> SceneState:
        """
        Load the scene and add the session as occupant.

        Population is left to the world tick, which picks up a freshly loaded
        scene on its next run and broadcasts the spawns to its occupants.
        """
        scene = self.scenes.ensure(scene_config.id, scene_config)
        self.scenes.add_occupant(scene.scene_id, session_id)
        return scene

    # ---------- Creatures ----------

    def mark_creature_dead(self, scene_id: str, instance_id: str) -> bool:
        """Entry point for the combat collaborator."""
        scene = self.scenes.get(scene_id)
        if scene is None:
            return False
        return self.spawner.mark_creature_dead(scene, instance_id, self.now()) is not None

    def scene_creatures(self, scene_id: str) -> List[Dict[str, Any]]:
        scene = self.scenes.get(scene_id)
        if scene is None:
            raise NotFoundError(f"Scene '{scene_id}' is not loaded")
        return [c.to_dict() for c in scene.creatures]

    # ---------- Helpers ----------

    def _error(self, session_id: SessionId, message: str) -> None:
        self.event_dispatcher.dispatch([self.event_dispatcher.scene_error(session_id, message)])
