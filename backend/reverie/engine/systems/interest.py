# backend/reverie/engine/systems/interest.py
"""
InterestManager - Per-observer filtered snapshots of entity state.

Runs on the snapshot tick. For every observer with a registered entity it
builds a map of visible entity records and emits one snapshot event.

Visibility:
- the observer itself is always included
- other entities must share the observer's scene and lie within the view
  radius (inclusive boundary, compared on squared distances)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Iterable, List

if TYPE_CHECKING:
    from ...config import SimulationConfig
    from ..world import Entity, SessionId, World
    from .events import Event, EventDispatcher

logger = logging.getLogger(__name__)


@dataclass
class InterestConfig:
    """Tunable interest management parameters."""
    view_radius: float = 600.0

    @classmethod
    def from_simulation(cls, config: "SimulationConfig") -> "InterestConfig":
        return cls(view_radius=config.view_radius)

    @property
    def view_radius_sq(self) -> float:
        return self.view_radius * self.view_radius


def is_visible(observer: "Entity", other: "Entity", view_radius_sq: float) -> bool:
    if other.id == observer.id:
        return True
    if other.scene_id != observer.scene_id:
        return False
    dx = other.x - observer.x
    dy = other.y - observer.y
    return dx * dx + dy * dy <= view_radius_sq


class InterestManager:
    """
    Builds snapshot events for connected observers.

    Usage:
        interest = InterestManager(InterestConfig(view_radius=600.0), dispatcher)
        events = interest.build_snapshots(world, observers, now)
        dispatcher.dispatch(events)
    """

    def __init__(self, config: InterestConfig, dispatcher: "EventDispatcher") -> None:
        self.config = config
        self.dispatcher = dispatcher
        self.sequence = 0
        self._last_timestamp = 0.0

    def visible_entities(self, world: "World", observer: "Entity") -> Dict[str, Dict[str, Any]]:
        radius_sq = self.config.view_radius_sq
        return {
            entity.id: entity.to_record()
            for entity in world.entities.values()
            if is_visible(observer, entity, radius_sq)
        }

    def build_snapshots(
        self,
        world: "World",
        observers: Iterable["SessionId"],
        now: float,
    ) -> List["Event"]:
        """
        One snapshot event per observer that has an entity.

        Observers that have not identified yet are skipped. The timestamp
        never goes backwards even if the clock does.
        """
        self._last_timestamp = max(self._last_timestamp, now)
        self.sequence += 1

        events: List["Event"] = []
        for observer_id in observers:
            observer = world.entities.get(observer_id)
            if observer is None:
                continue
            events.append(
                self.dispatcher.snapshot(
                    observer_id,
                    self.visible_entities(world, observer),
                    timestamp=self._last_timestamp,
                    sequence=self.sequence,
                )
            )
        return events
