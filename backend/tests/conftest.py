"""
Global pytest configuration and shared fixtures.

Provides common test infrastructure for all test suites including:
- In-memory database engine seeded with the starter world
- Simulation config, world, scene store and event routing
- A controllable clock
- Engine construction against the SQL stores
"""

import asyncio
import random
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

import reverie
from reverie.config import SimulationConfig
from reverie.db import create_tables, make_session_factory
from reverie.engine.creatures import CreatureRegistry
from reverie.engine.engine import SimulationEngine
from reverie.engine.loader import SqlCharacterStore, SqlSceneRepository, seed_world
from reverie.engine.systems import EventDispatcher, GameContext, SceneStateStore
from reverie.engine.world import Entity, SceneConfig, SpawnerConfig, World
from reverie.models import Character

WORLD_DATA = Path(reverie.__file__).parent / "world_data"


# ============================================================================
# Clock
# ============================================================================


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ============================================================================
# Config and World Fixtures
# ============================================================================


@pytest.fixture
def sim_config() -> SimulationConfig:
    """Default tunables, independent of REVERIE_* environment variables."""
    return SimulationConfig(
        simulation_hz=20.0,
        snapshot_hz=10.0,
        world_hz=1.0,
        max_speed=200.0,
        thrust_accel=600.0,
        drag=0.98,
        view_radius=600.0,
        intent_stale_after=0.5,
        scene_eviction="never",
    )


@pytest.fixture
def world() -> World:
    return World()


@pytest.fixture
def scene_store(clock) -> SceneStateStore:
    return SceneStateStore(clock=clock)


@pytest.fixture
def game_context(world, scene_store) -> GameContext:
    return GameContext(world, scene_store, queue_size=64)


@pytest.fixture
def dispatcher(game_context) -> EventDispatcher:
    return EventDispatcher(game_context)


@pytest.fixture
def creature_registry() -> CreatureRegistry:
    return CreatureRegistry.from_yaml(WORLD_DATA / "creatures.yaml")


@pytest.fixture
def rat_scene_config() -> SceneConfig:
    """Empty 800x450 scene with one slagrat spawner (max 3)."""
    return SceneConfig(
        id="scene_test",
        name="Test Scene",
        x=0,
        y=0,
        spawners=[SpawnerConfig(id="rats", creature_id="slagrat", max_alive=3, respawn_sec=30.0)],
    )


@pytest.fixture
def entity_factory():
    """Factory for entities at a given position."""

    def _create(entity_id: str = "s1", x: float = 0.0, y: float = 0.0, scene_id: str = "scene_test", **kwargs) -> Entity:
        return Entity(
            id=entity_id,
            character_id=kwargs.pop("character_id", f"char-{entity_id}"),
            name=kwargs.pop("name", entity_id),
            scene_id=scene_id,
            x=x,
            y=y,
            **kwargs,
        )

    return _create


@pytest.fixture
def drain():
    """Return every event currently waiting on a queue."""

    def _drain(queue: asyncio.Queue) -> list[dict]:
        events = []
        while not queue.empty():
            events.append(queue.get_nowait())
        return events

    return _drain


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with the starter world seeded."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,  # Use StaticPool to share single connection
        echo=False,
    )
    await create_tables(engine)
    async with make_session_factory(engine)() as session:
        await seed_world(session, WORLD_DATA)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return make_session_factory(db_engine)


@pytest.fixture
async def character_ids(session_factory) -> dict[str, str]:
    """Seeded character ids keyed by name."""
    async with session_factory() as session:
        result = await session.execute(select(Character))
        return {c.name: c.id for c in result.scalars().all()}


@pytest.fixture
def character_store(session_factory) -> SqlCharacterStore:
    return SqlCharacterStore(session_factory)


@pytest.fixture
def scene_repository(session_factory) -> SqlSceneRepository:
    return SqlSceneRepository(session_factory)


# ============================================================================
# Engine Fixtures
# ============================================================================


@pytest.fixture
def engine(sim_config, creature_registry, character_store, scene_repository, clock) -> SimulationEngine:
    """SimulationEngine with a fake clock. Ticks are driven by the test."""
    return SimulationEngine(
        sim_config,
        creature_registry,
        character_store,
        scene_repository,
        clock=clock,
        rng=random.Random(1234),
    )
