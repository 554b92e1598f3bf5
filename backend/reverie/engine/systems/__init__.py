# backend/reverie/engine/systems/__init__.py
"""
Simulation systems, composed by SimulationEngine.

Each system handles a specific domain:
- SceneStateStore: Per-scene creature population and occupants
- GameContext: Shared state and per-session outbound queues
- EventDispatcher: Event creation and routing to sessions
- TimeEventManager: Scheduled events, fixed-rate recurring timers
- MovementSystem: Manual control and autopilot kinematics
- InterestManager: Per-observer filtered snapshots
- SpawnerSystem: Creature spawning, death and respawn
- LocationPersister: Fire-and-forget character location writes
"""

from .scenes import SceneState, SceneStateStore
from .context import GameContext
from .events import EventDispatcher
from .time_manager import TimeEventManager, TimeEvent
from .movement import MovementSystem
from .interest import InterestManager, InterestConfig
from .spawner import SpawnerSystem, SPAWN_BANDS, SPRITE_MARGIN
from .persistence import LocationPersister

__all__ = [
    "SceneState",
    "SceneStateStore",
    "GameContext",
    "EventDispatcher",
    "TimeEventManager",
    "TimeEvent",
    "MovementSystem",
    "InterestManager",
    "InterestConfig",
    "SpawnerSystem",
    "SPAWN_BANDS",
    "SPRITE_MARGIN",
    "LocationPersister",
]
