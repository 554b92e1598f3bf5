# backend/reverie/config.py
"""
Server and simulation configuration.

Every value has a sensible default and can be overridden with a REVERIE_*
environment variable. Values are read when the config object is created, so
tests can patch os.environ and construct a fresh config.
"""

import math
import os
from dataclasses import dataclass, field
from pathlib import Path

SCENE_EVICTION_NEVER = "never"
SCENE_EVICTION_IDLE = "idle"
SCENE_EVICTION_POLICIES = (SCENE_EVICTION_NEVER, SCENE_EVICTION_IDLE)


def _env_str(name: str, default: str) -> str:
    return os.getenv(name, default)


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


@dataclass
class ServerConfig:
    """Process-level settings: network binding, database and content location."""

    host: str = field(default_factory=lambda: _env_str("REVERIE_HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: _env_int("REVERIE_PORT", 8000))
    database_url: str = field(
        default_factory=lambda: _env_str(
            "REVERIE_DATABASE_URL", "sqlite+aiosqlite:///./reverie.db"
        )
    )
    world_data_dir: Path = field(
        default_factory=lambda: Path(
            _env_str(
                "REVERIE_WORLD_DATA_DIR",
                str(Path(__file__).parent / "world_data"),
            )
        )
    )
    log_level: str = field(default_factory=lambda: _env_str("REVERIE_LOG_LEVEL", "INFO"))


@dataclass
class SimulationConfig:
    """
    Tunables for the three tick loops, the movement model, interest
    management and the scene store.

    Distances are world units, speeds are units per second, per-tick factors
    are multipliers applied once per simulation tick.
    """

    # Tick rates (Hz)
    simulation_hz: float = field(default_factory=lambda: _env_float("REVERIE_SIMULATION_HZ", 20.0))
    snapshot_hz: float = field(default_factory=lambda: _env_float("REVERIE_SNAPSHOT_HZ", 10.0))
    world_hz: float = field(default_factory=lambda: _env_float("REVERIE_WORLD_HZ", 1.0))

    # Kinematics
    max_speed: float = field(default_factory=lambda: _env_float("REVERIE_MAX_SPEED", 200.0))
    thrust_accel: float = field(default_factory=lambda: _env_float("REVERIE_THRUST_ACCEL", 600.0))
    drag: float = field(default_factory=lambda: _env_float("REVERIE_DRAG", 0.98))
    turn_rate: float = field(default_factory=lambda: _env_float("REVERIE_TURN_RATE", 2 * math.pi))
    rest_speed: float = field(default_factory=lambda: _env_float("REVERIE_REST_SPEED", 1.0))

    # Autopilot
    arrival_radius: float = field(default_factory=lambda: _env_float("REVERIE_ARRIVAL_RADIUS", 2.0))
    slow_radius: float = field(default_factory=lambda: _env_float("REVERIE_SLOW_RADIUS", 80.0))
    face_lock_radius: float = field(default_factory=lambda: _env_float("REVERIE_FACE_LOCK_RADIUS", 4.0))
    approach_gain: float = field(default_factory=lambda: _env_float("REVERIE_APPROACH_GAIN", 2.5))
    max_approach_speed: float = field(
        default_factory=lambda: _env_float("REVERIE_MAX_APPROACH_SPEED", 150.0)
    )
    brake_damping: float = field(default_factory=lambda: _env_float("REVERIE_BRAKE_DAMPING", 0.85))
    lateral_damping: float = field(default_factory=lambda: _env_float("REVERIE_LATERAL_DAMPING", 0.97))
    lateral_brake: float = field(default_factory=lambda: _env_float("REVERIE_LATERAL_BRAKE", 0.5))

    # Input handling
    intent_stale_after: float = field(
        default_factory=lambda: _env_float("REVERIE_INTENT_STALE_AFTER", 0.5)
    )

    # Interest management
    view_radius: float = field(default_factory=lambda: _env_float("REVERIE_VIEW_RADIUS", 600.0))
    outbound_queue_size: int = field(
        default_factory=lambda: _env_int("REVERIE_OUTBOUND_QUEUE_SIZE", 256)
    )

    # Scene store
    scene_eviction: str = field(
        default_factory=lambda: _env_str("REVERIE_SCENE_EVICTION", SCENE_EVICTION_NEVER)
    )
    scene_idle_timeout: float = field(
        default_factory=lambda: _env_float("REVERIE_SCENE_IDLE_TIMEOUT", 300.0)
    )

    def __post_init__(self) -> None:
        for name in ("simulation_hz", "snapshot_hz", "world_hz"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if not 0.0 < self.drag <= 1.0:
            raise ValueError("drag must be in (0, 1]")
        if self.arrival_radius <= 0 or self.slow_radius <= self.arrival_radius:
            raise ValueError("slow_radius must exceed a positive arrival_radius")
        if not 0.0 <= self.lateral_brake <= 1.0:
            raise ValueError("lateral_brake must be in [0, 1]")
        if self.scene_eviction not in SCENE_EVICTION_POLICIES:
            raise ValueError(
                f"scene_eviction must be one of {SCENE_EVICTION_POLICIES}, "
                f"got {self.scene_eviction!r}"
            )

    @property
    def dt(self) -> float:
        """Fixed simulation time step in seconds."""
        return 1.0 / self.simulation_hz
