"""
Tests for the MovementSystem.

Covers manual control, stale input, speed clamping, bounded turning and the
autopilot arrival state machine.
"""

import math
import random

import pytest

from reverie.engine.systems.movement import MovementSystem, segment_point_distance, turn_toward
from reverie.engine.world import Intent


@pytest.fixture
def movement(sim_config):
    return MovementSystem(sim_config)


def run_until_arrival(movement, world, entity, now, max_ticks=2000):
    """Step until the move target clears. Returns (ticks, furthest x, final now)."""
    dt = movement.config.dt
    furthest_x = entity.x
    for tick in range(1, max_ticks + 1):
        now += dt
        movement.advance(world, now)
        furthest_x = max(furthest_x, entity.x)
        if entity.move_target is None:
            return tick, furthest_x, now
    raise AssertionError(f"no arrival after {max_ticks} ticks, at ({entity.x}, {entity.y})")


# ============================================================================
# Helpers
# ============================================================================


@pytest.mark.systems
def test_turn_toward_is_bounded():
    assert turn_toward(0.0, math.pi / 2, 0.1) == pytest.approx(0.1)
    assert turn_toward(0.0, -math.pi / 2, 0.1) == pytest.approx(-0.1)
    assert turn_toward(0.0, 0.05, 0.1) == pytest.approx(0.05)


@pytest.mark.systems
def test_turn_toward_crosses_seam():
    """Turning from just below pi toward just above -pi goes through pi."""
    result = turn_toward(math.pi - 0.05, -math.pi + 0.05, 0.2)
    assert result == pytest.approx(-math.pi + 0.05)


@pytest.mark.systems
def test_segment_point_distance():
    assert segment_point_distance(0, 0, 10, 0, 5, 3) == pytest.approx(3.0)
    assert segment_point_distance(0, 0, 10, 0, 15, 0) == pytest.approx(5.0)
    assert segment_point_distance(2, 2, 2, 2, 5, 6) == pytest.approx(5.0)


# ============================================================================
# Manual Mode
# ============================================================================


@pytest.mark.systems
def test_fresh_thrust_accelerates_along_heading(movement, world, entity_factory):
    entity = entity_factory("s1")
    world.add_entity(entity)
    world.set_intent("s1", Intent.manual(True, 0.0, received_at=0.0))

    movement.advance(world, 0.05)

    assert entity.vx > 0.0
    assert entity.vy == pytest.approx(0.0)
    assert entity.x > 0.0
    assert not entity.at_rest


@pytest.mark.systems
def test_speed_never_exceeds_max(movement, world, entity_factory):
    """Sustained thrust saturates at max speed and never exceeds it."""
    entity = entity_factory("s1")
    world.add_entity(entity)
    now = 0.0
    for _ in range(200):
        now += movement.config.dt
        world.set_intent("s1", Intent.manual(True, 0.7, received_at=now))
        movement.advance(world, now)
        assert entity.speed() <= movement.config.max_speed + 1e-9

    assert entity.speed() == pytest.approx(movement.config.max_speed)


@pytest.mark.systems
def test_clamp_applies_to_existing_overspeed(movement, entity_factory):
    """An entity already moving too fast is rescaled, keeping its direction."""
    entity = entity_factory("s1", vx=300.0, vy=400.0, at_rest=False)

    movement.step(entity, None, now=0.0)

    assert entity.speed() == pytest.approx(movement.config.max_speed)
    assert entity.vy / entity.vx == pytest.approx(400.0 / 300.0)


@pytest.mark.systems
def test_heading_turns_at_bounded_rate(movement, world, entity_factory):
    """A request to face backwards is not snapped."""
    entity = entity_factory("s1")
    world.add_entity(entity)
    world.set_intent("s1", Intent.manual(False, math.pi, received_at=0.0))
    max_step = movement.config.turn_rate * movement.config.dt

    movement.advance(world, 0.0)

    assert abs(entity.orientation) == pytest.approx(max_step)


@pytest.mark.systems
def test_stale_intent_decelerates_under_drag_only(movement, world, entity_factory):
    """A thrust intent that goes stale never re-accelerates the entity."""
    entity = entity_factory("s1")
    world.add_entity(entity)
    world.set_intent("s1", Intent.manual(True, 0.0, received_at=0.0))

    now = 0.0
    for _ in range(5):
        now += movement.config.dt
        movement.advance(world, now)

    now = movement.config.intent_stale_after + 0.01
    previous = entity.speed()
    for _ in range(400):
        now += movement.config.dt
        movement.advance(world, now)
        assert entity.speed() <= previous
        previous = entity.speed()

    assert entity.speed() == 0.0
    assert entity.at_rest


@pytest.mark.systems
def test_missing_intent_holds_heading_without_thrust(movement, world, entity_factory):
    entity = entity_factory("s1", orientation=1.0)
    world.add_entity(entity)

    movement.advance(world, 0.0)

    assert entity.orientation == pytest.approx(1.0)
    assert entity.speed() == 0.0
    assert entity.x == 0.0 and entity.y == 0.0


@pytest.mark.systems
def test_coming_to_rest_reports_settled(movement, world, entity_factory):
    entity = entity_factory("s1", vx=1.2, at_rest=False)
    world.add_entity(entity)

    settled = movement.advance(world, 0.0)
    assert settled == []

    settled = []
    for _ in range(50):
        settled.extend(movement.advance(world, 0.0))
    assert settled == [entity]
    assert entity.at_rest


# ============================================================================
# Autopilot
# ============================================================================


@pytest.mark.systems
def test_autopilot_converges_exactly(movement, world, entity_factory):
    """(0,0) move_to (200,0) ends exactly on target at rest."""
    entity = entity_factory("s1")
    world.add_entity(entity)
    world.set_intent("s1", Intent.move_to(200.0, 0.0, received_at=0.0))

    _, furthest_x, _ = run_until_arrival(movement, world, entity, now=0.0)

    assert (entity.x, entity.y) == (200.0, 0.0)
    assert (entity.vx, entity.vy) == (0.0, 0.0)
    assert entity.move_target is None
    assert entity.at_rest
    assert furthest_x <= 200.0 + movement.config.arrival_radius


@pytest.mark.systems
def test_autopilot_from_opposite_heading(movement, world, entity_factory):
    """Starting while facing away still reaches the target."""
    entity = entity_factory("s1", x=50.0, y=50.0, orientation=math.pi)
    world.add_entity(entity)
    world.set_intent("s1", Intent.move_to(250.0, 120.0, received_at=0.0))

    run_until_arrival(movement, world, entity, now=0.0)

    assert (entity.x, entity.y) == (250.0, 120.0)
    assert entity.speed() == 0.0


@pytest.mark.systems
def test_autopilot_converges_from_any_start(movement, entity_factory):
    """Random headings, velocities and off-axis targets all end exactly on target."""
    cfg = movement.config
    rng = random.Random(1234)

    for case in range(300):
        speed = 0.0 if case % 2 == 0 else rng.uniform(0.0, cfg.max_speed)
        direction = rng.uniform(-math.pi, math.pi)
        entity = entity_factory(
            f"s{case}",
            x=rng.uniform(-100.0, 100.0),
            y=rng.uniform(-100.0, 100.0),
            orientation=rng.uniform(-math.pi, math.pi),
            vx=speed * math.cos(direction),
            vy=speed * math.sin(direction),
            at_rest=speed == 0.0,
        )
        tx, ty = rng.uniform(-300.0, 300.0), rng.uniform(-300.0, 300.0)
        intent = Intent.move_to(tx, ty, received_at=0.0)

        now = 0.0
        for _ in range(3000):
            x0, y0 = entity.x, entity.y
            now += cfg.dt
            movement.step(entity, intent, now)
            if entity.move_target is None:
                break
            # Passing through the arrival circle always ends the route
            assert segment_point_distance(x0, y0, entity.x, entity.y, tx, ty) > cfg.arrival_radius

        assert entity.move_target is None, f"case {case} still en route at ({entity.x}, {entity.y})"
        assert (entity.x, entity.y) == (tx, ty)
        assert (entity.vx, entity.vy) == (0.0, 0.0)
        assert entity.at_rest


@pytest.mark.systems
def test_autopilot_never_overshoots_when_facing_target(movement, entity_factory):
    cfg = movement.config
    rng = random.Random(99)

    for case in range(50):
        bearing = rng.uniform(-math.pi, math.pi)
        distance = rng.uniform(10.0, 400.0)
        tx, ty = distance * math.cos(bearing), distance * math.sin(bearing)
        entity = entity_factory(f"s{case}", orientation=bearing)
        intent = Intent.move_to(tx, ty, received_at=0.0)

        now = 0.0
        for _ in range(2000):
            now += cfg.dt
            movement.step(entity, intent, now)
            progress = entity.x * math.cos(bearing) + entity.y * math.sin(bearing)
            assert progress <= distance + cfg.arrival_radius
            if entity.move_target is None:
                break

        assert (entity.x, entity.y) == (tx, ty)
        assert entity.speed() == 0.0


@pytest.mark.systems
def test_sideways_drift_is_braked_near_target(movement, entity_factory):
    """Tangential speed inside the slow-down radius decays instead of orbiting."""
    entity = entity_factory("s1", x=0.0, y=-40.0, orientation=math.pi / 2, vx=120.0, at_rest=False)
    intent = Intent.move_to(0.0, 0.0, received_at=0.0)

    movement.step(entity, intent, movement.config.dt)

    assert abs(entity.vx) < 120.0 * movement.config.lateral_brake


@pytest.mark.systems
def test_autopilot_speed_stays_clamped(movement, world, entity_factory):
    entity = entity_factory("s1")
    world.add_entity(entity)
    world.set_intent("s1", Intent.move_to(1000.0, 0.0, received_at=0.0))

    now = 0.0
    for _ in range(100):
        now += movement.config.dt
        movement.advance(world, now)
        assert entity.speed() <= movement.config.max_speed + 1e-9


@pytest.mark.systems
def test_target_within_arrival_radius_snaps_immediately(movement, world, entity_factory):
    entity = entity_factory("s1", x=10.0, y=10.0, vx=5.0, at_rest=False)
    world.add_entity(entity)
    world.set_intent("s1", Intent.move_to(11.0, 10.5, received_at=0.0))

    settled = movement.advance(world, 0.0)

    assert settled == [entity]
    assert (entity.x, entity.y) == (11.0, 10.5)
    assert entity.speed() == 0.0
    assert entity.move_target is None


@pytest.mark.systems
def test_move_to_intent_applies_once(movement, world, entity_factory):
    """After arrival the consumed move_to intent does not re-target."""
    entity = entity_factory("s1")
    world.add_entity(entity)
    world.set_intent("s1", Intent.move_to(1.0, 0.0, received_at=0.0))

    movement.advance(world, 0.0)
    assert entity.move_target is None
    assert world.get_intent("s1").consumed

    entity.x = 50.0
    movement.advance(world, 0.05)
    assert entity.move_target is None
    assert entity.x == 50.0


@pytest.mark.systems
def test_stale_move_to_is_ignored(movement, world, entity_factory):
    entity = entity_factory("s1")
    world.add_entity(entity)
    world.set_intent("s1", Intent.move_to(100.0, 0.0, received_at=0.0))

    movement.advance(world, 5.0)

    assert entity.move_target is None
    assert entity.speed() == 0.0


@pytest.mark.systems
def test_cancel_clears_target(movement, world, entity_factory):
    entity = entity_factory("s1")
    world.add_entity(entity)
    world.set_intent("s1", Intent.move_to(500.0, 0.0, received_at=0.0))
    movement.advance(world, 0.05)
    assert entity.move_target == (500.0, 0.0)

    world.set_intent("s1", Intent.cancel(received_at=0.1))
    movement.advance(world, 0.1)

    assert entity.move_target is None


@pytest.mark.systems
def test_manual_intent_ignored_during_autopilot(movement, world, entity_factory):
    """Autopilot keeps steering even if a manual intent arrives mid-route."""
    entity = entity_factory("s1")
    world.add_entity(entity)
    world.set_intent("s1", Intent.move_to(400.0, 0.0, received_at=0.0))
    movement.advance(world, 0.05)

    world.set_intent("s1", Intent.manual(True, math.pi / 2, received_at=0.1))
    for i in range(5):
        movement.advance(world, 0.1 + i * 0.05)

    assert entity.move_target == (400.0, 0.0)
    assert entity.orientation == pytest.approx(0.0)
    assert entity.vy == pytest.approx(0.0)
