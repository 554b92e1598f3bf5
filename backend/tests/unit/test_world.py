"""
Unit tests for World data structures.

Tests angle helpers, Intent, Entity, scene/spawner configs, CreatureInstance
and the World entity registry.
"""

import math

import pytest

from reverie.engine.world import (
    DEFAULT_RESPAWN_SEC,
    DEFAULT_SCENE_HEIGHT,
    DEFAULT_SCENE_WIDTH,
    CreatureInstance,
    Intent,
    IntentKind,
    SceneConfig,
    SpawnerConfig,
    World,
    angle_difference,
    normalize_angle,
)

# ============================================================================
# Angle Helpers
# ============================================================================


@pytest.mark.unit
@pytest.mark.parametrize(
    "angle, expected",
    [
        (0.0, 0.0),
        (math.pi, math.pi),
        (-math.pi, math.pi),
        (math.pi / 2 + 2 * math.tau, math.pi / 2),
        (-math.pi / 2, -math.pi / 2),
    ],
)
def test_normalize_angle(angle, expected):
    """Angles map into (-pi, pi]."""
    assert normalize_angle(angle) == pytest.approx(expected)


@pytest.mark.unit
def test_angle_difference_takes_short_way_around():
    """Difference across the +-pi seam is small, not ~2pi."""
    diff = angle_difference(-math.pi + 0.1, math.pi - 0.1)
    assert diff == pytest.approx(0.2)


# ============================================================================
# Intent Tests
# ============================================================================


@pytest.mark.unit
def test_manual_intent_normalizes_heading():
    intent = Intent.manual(True, 5 * math.pi / 2, received_at=10.0)

    assert intent.kind is IntentKind.MANUAL
    assert intent.thrust is True
    assert intent.heading == pytest.approx(math.pi / 2)
    assert intent.consumed is False


@pytest.mark.unit
def test_intent_freshness_window():
    """Intent is fresh up to and including the staleness window."""
    intent = Intent.move_to(1.0, 2.0, received_at=100.0)

    assert intent.target == (1.0, 2.0)
    assert intent.is_fresh(100.5, 0.5)
    assert not intent.is_fresh(100.51, 0.5)


# ============================================================================
# Entity Tests
# ============================================================================


@pytest.mark.unit
def test_entity_record_fields(entity_factory):
    """The published record carries identity, position, velocity, orientation."""
    entity = entity_factory("s1", x=3.0, y=4.0, vx=3.0, vy=4.0, name="Wanderer")

    record = entity.to_record()

    assert record == {
        "id": "s1",
        "name": "Wanderer",
        "x": 3.0,
        "y": 4.0,
        "vx": 3.0,
        "vy": 4.0,
        "orientation": 0.0,
    }
    assert entity.speed() == pytest.approx(5.0)


# ============================================================================
# Config Tests
# ============================================================================


@pytest.mark.unit
def test_spawner_config_defaults():
    spawner = SpawnerConfig.from_dict({"id": "sp", "creature_id": "slagrat"})

    assert spawner.max_alive == 0
    assert spawner.respawn_sec == DEFAULT_RESPAWN_SEC
    assert spawner.spawn_x is None
    assert spawner.spawn_y is None


@pytest.mark.unit
def test_scene_config_from_dict_defaults_and_spawners():
    config = SceneConfig.from_dict(
        {
            "id": "scene_a",
            "name": "A",
            "x": 2,
            "y": -1,
            "spawners": [{"id": "sp", "creature_id": "slagrat", "max_alive": 3, "spawn_x": 100}],
        }
    )

    assert config.width == DEFAULT_SCENE_WIDTH
    assert config.height == DEFAULT_SCENE_HEIGHT
    assert config.exits == []
    assert config.get_spawner("sp").max_alive == 3
    assert config.get_spawner("sp").spawn_x == 100
    assert config.get_spawner("missing") is None


@pytest.mark.unit
def test_creature_instance_pending_respawn():
    creature = CreatureInstance(
        instance_id="slagrat#1",
        creature_id="slagrat",
        spawner_id="sp",
        name="Slag Rat",
        classification="vermin",
    )
    assert not creature.is_pending_respawn()

    creature.alive = False
    creature.respawn_at = 50.0
    assert creature.is_pending_respawn()
    assert creature.to_dict()["respawn_at"] == 50.0


# ============================================================================
# World Tests
# ============================================================================


@pytest.mark.unit
def test_set_intent_requires_known_entity(world, entity_factory):
    """Intents for sessions without an entity are refused."""
    assert world.set_intent("ghost", Intent.cancel(0.0)) is False

    world.add_entity(entity_factory("s1"))
    assert world.set_intent("s1", Intent.cancel(0.0)) is True


@pytest.mark.unit
def test_set_intent_is_last_write_wins(world, entity_factory):
    world.add_entity(entity_factory("s1"))
    world.set_intent("s1", Intent.manual(True, 0.0, 1.0))
    world.set_intent("s1", Intent.manual(False, 1.0, 2.0))

    intent = world.get_intent("s1")
    assert intent.thrust is False
    assert intent.received_at == 2.0


@pytest.mark.unit
def test_remove_entity_drops_intent(world, entity_factory):
    world.add_entity(entity_factory("s1"))
    world.set_intent("s1", Intent.cancel(0.0))

    removed = world.remove_entity("s1")

    assert removed.id == "s1"
    assert "s1" not in world.entities
    assert world.get_intent("s1") is None
    assert world.remove_entity("s1") is None
