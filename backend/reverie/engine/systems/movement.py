# backend/reverie/engine/systems/movement.py
"""
MovementSystem - Fixed-step kinematics for player entities.

Each simulation tick resolves a mode per entity, then runs one common
integration step:

Manual mode (no move target):
- Fresh intent: turn toward its heading, thrust if its flag is set.
- Stale or missing intent: hold heading, no thrust. A dropped "stop"
  packet can never produce runaway motion.

Autopilot mode (move target set):
- distance <= arrival_radius: snap to the target, zero velocity, clear it.
- distance > slow_radius: full thrust toward the target.
- Inside face_lock_radius the heading holds while it still faces the target.
- otherwise: thrust only while closing speed is below a desired closing
  speed proportional to distance (capped) and the heading faces the
  target, else brake. A small isotropic damping always applies, and the
  sideways velocity component is braked hard so the approach cannot
  settle into an orbit around the target.

Integration: bounded turn toward the desired heading, thrust impulse along
the heading, drag, max-speed clamp by uniform rescale, explicit Euler.

Arrival is decided by distance only. A swept check after integration snaps
an entity whose path crossed the arrival circle during the tick, so it never
ends a tick past the target by more than the arrival radius.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, List

from ..world import IntentKind, angle_difference, normalize_angle

if TYPE_CHECKING:
    from ...config import SimulationConfig
    from ..world import Entity, Intent, World

logger = logging.getLogger(__name__)

# Heading within 30 degrees of the bearing counts as facing the target
FACING_COS = math.cos(math.radians(30.0))


def turn_toward(current: float, desired: float, max_step: float) -> float:
    """Rotate current toward desired by at most max_step radians."""
    diff = angle_difference(desired, current)
    if abs(diff) <= max_step:
        return normalize_angle(desired)
    return normalize_angle(current + math.copysign(max_step, diff))


def segment_point_distance(
    x0: float, y0: float, x1: float, y1: float, px: float, py: float
) -> float:
    """Distance from point (px, py) to the segment (x0, y0)-(x1, y1)."""
    sx, sy = x1 - x0, y1 - y0
    seg_len_sq = sx * sx + sy * sy
    if seg_len_sq == 0.0:
        return math.hypot(px - x0, py - y0)
    u = ((px - x0) * sx + (py - y0) * sy) / seg_len_sq
    u = max(0.0, min(1.0, u))
    return math.hypot(px - (x0 + u * sx), py - (y0 + u * sy))


class MovementSystem:
    """
    Advances entity kinematics by one fixed time step.

    Usage:
        movement = MovementSystem(config)
        settled = movement.advance(world, now)
    """

    def __init__(self, config: "SimulationConfig") -> None:
        self.config = config

    def advance(self, world: "World", now: float) -> List["Entity"]:
        """
        Step every registered entity once.

        Each entity's next state depends only on its own state and intent, so
        the in-place update matches a start-of-tick snapshot read.

        Returns the entities that came to rest during this tick.
        """
        settled: List["Entity"] = []
        for entity in list(world.entities.values()):
            if self.step(entity, world.get_intent(entity.id), now):
                settled.append(entity)
        return settled

    def step(self, entity: "Entity", intent: "Intent | None", now: float) -> bool:
        """Advance one entity. Returns True if it transitioned from moving to rest."""
        cfg = self.config
        dt = cfg.dt
        was_moving = not entity.at_rest

        self._apply_intent(entity, intent, now)

        thrust = False
        desired_heading = entity.orientation
        damping = 1.0
        # Unit vector toward the target while inside the slow-down band
        radial = None

        if entity.move_target is None:
            if (
                intent is not None
                and intent.kind is IntentKind.MANUAL
                and intent.is_fresh(now, cfg.intent_stale_after)
            ):
                desired_heading = intent.heading
                thrust = intent.thrust
        else:
            tx, ty = entity.move_target
            dx, dy = tx - entity.x, ty - entity.y
            distance = math.hypot(dx, dy)

            if distance <= cfg.arrival_radius:
                self._arrive(entity, now)
                return True

            ux, uy = dx / distance, dy / distance

            # Hold heading close to the target only while it is aligned with the bearing
            alignment = math.cos(entity.orientation) * ux + math.sin(entity.orientation) * uy
            if distance > cfg.face_lock_radius or alignment < FACING_COS:
                desired_heading = math.atan2(dy, dx)

            if distance > cfg.slow_radius:
                thrust = True
            else:
                radial = (ux, uy)
                closing_speed = entity.vx * ux + entity.vy * uy
                desired_closing = min(cfg.max_approach_speed, distance * cfg.approach_gain)
                if closing_speed < desired_closing:
                    thrust = True
                else:
                    damping *= cfg.brake_damping
                damping *= cfg.lateral_damping

        # Common integration step
        entity.orientation = turn_toward(entity.orientation, desired_heading, cfg.turn_rate * dt)
        hx, hy = math.cos(entity.orientation), math.sin(entity.orientation)

        # Near the target, thrust only along (roughly) the bearing
        if thrust and radial is not None and hx * radial[0] + hy * radial[1] < FACING_COS:
            thrust = False
            damping *= cfg.brake_damping

        vx, vy = entity.vx, entity.vy
        if thrust:
            impulse = cfg.thrust_accel * dt
            vx += hx * impulse
            vy += hy * impulse

        if radial is not None:
            # Keep the closing component, brake the sideways one
            ux, uy = radial
            closing = vx * ux + vy * uy
            vx = closing * ux + (vx - closing * ux) * cfg.lateral_brake
            vy = closing * uy + (vy - closing * uy) * cfg.lateral_brake

        factor = cfg.drag * damping
        vx *= factor
        vy *= factor

        speed = math.hypot(vx, vy)
        if speed > cfg.max_speed:
            scale = cfg.max_speed / speed
            vx *= scale
            vy *= scale
            speed = cfg.max_speed

        if entity.move_target is None and not thrust and speed < cfg.rest_speed:
            vx = vy = 0.0

        x0, y0 = entity.x, entity.y
        entity.vx, entity.vy = vx, vy
        entity.x = x0 + vx * dt
        entity.y = y0 + vy * dt

        if entity.move_target is not None:
            tx, ty = entity.move_target
            if segment_point_distance(x0, y0, entity.x, entity.y, tx, ty) <= cfg.arrival_radius:
                self._arrive(entity, now)
                return True

        moving = vx != 0.0 or vy != 0.0
        if moving:
            entity.last_active_at = now
        entity.at_rest = not moving
        return was_moving and not moving

    def _apply_intent(self, entity: "Entity", intent: "Intent | None", now: float) -> None:
        """Consume a pending move-to or cancel intent."""
        if intent is None or intent.consumed or intent.kind is IntentKind.MANUAL:
            return
        intent.consumed = True
        if not intent.is_fresh(now, self.config.intent_stale_after):
            logger.debug("Dropping stale %s intent for %s", intent.kind.value, entity.id)
            return
        if intent.kind is IntentKind.MOVE_TO:
            entity.move_target = intent.target
        elif intent.kind is IntentKind.CANCEL:
            entity.move_target = None

    def _arrive(self, entity: "Entity", now: float) -> None:
        tx, ty = entity.move_target
        entity.x = tx
        entity.y = ty
        entity.vx = 0.0
        entity.vy = 0.0
        entity.move_target = None
        entity.at_rest = True
        entity.last_active_at = now
