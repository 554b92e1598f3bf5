# backend/reverie/engine/systems/events.py
"""
EventDispatcher - Handles event creation and routing to sessions.

Provides:
- Constructors for every outbound event type (self_state, snapshot,
  creature lifecycle, scene data, scene errors)
- Routing through the GameContext session queues
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable

if TYPE_CHECKING:
    from ..world import CreatureInstance, Entity, SceneId, SessionId
    from .context import GameContext
    from .scenes import SceneState


# Type alias for events (message dicts sent to sessions)
Event = Dict[str, Any]


class EventDispatcher:
    """
    Manages event construction and routing to sessions.

    Usage:
        dispatcher = EventDispatcher(ctx)
        event = dispatcher.scene_error(session_id, "Player not identified.")
        dispatcher.dispatch([event])
    """

    def __init__(self, ctx: "GameContext") -> None:
        self.ctx = ctx

    def dispatch(self, events: Iterable[Event]) -> None:
        self.ctx.dispatch_events(events)

    # ---------- Session-scoped events ----------

    def self_state(
        self,
        entity: "Entity",
        scene: "SceneState | None",
    ) -> Event:
        """Sent once on identification: the session's own entity and scene."""
        return {
            "type": "self_state",
            "scope": "player",
            "player_id": entity.id,
            "payload": {
                "entity_id": entity.id,
                "character_id": entity.character_id,
                "entity": entity.to_record(),
                "scene": self.scene_payload(scene) if scene else None,
            },
        }

    def scene_data(self, session_id: "SessionId", scene: "SceneState", *, message: str | None = None) -> Event:
        ev: Event = {
            "type": "scene_data",
            "scope": "player",
            "player_id": session_id,
            "payload": self.scene_payload(scene),
        }
        if message:
            ev["text"] = message
        return ev

    def scene_error(self, session_id: "SessionId", error: str) -> Event:
        return {
            "type": "scene_error",
            "scope": "player",
            "player_id": session_id,
            "error": error,
        }

    def snapshot(
        self,
        observer_id: "SessionId",
        entities: Dict[str, Dict[str, Any]],
        *,
        timestamp: float,
        sequence: int,
    ) -> Event:
        return {
            "type": "snapshot",
            "scope": "player",
            "player_id": observer_id,
            "timestamp": timestamp,
            "sequence": sequence,
            "entities": entities,
        }

    # ---------- Scene-scoped events ----------

    def creature_spawned(self, scene_id: "SceneId", creature: "CreatureInstance") -> Event:
        return self._creature_event("creature_spawned", scene_id, creature)

    def creature_respawned(self, scene_id: "SceneId", creature: "CreatureInstance") -> Event:
        return self._creature_event("creature_respawned", scene_id, creature)

    def terminal_message(self, scene_id: "SceneId", text: str) -> Event:
        return {
            "type": "terminal_message",
            "scope": "scene",
            "scene_id": scene_id,
            "text": text,
        }

    def _creature_event(self, event_type: str, scene_id: "SceneId", creature: "CreatureInstance") -> Event:
        return {
            "type": event_type,
            "scope": "scene",
            "scene_id": scene_id,
            "payload": creature.to_dict(),
        }

    # ---------- Payload helpers ----------

    @staticmethod
    def scene_payload(scene: "SceneState") -> Dict[str, Any]:
        config = scene.config
        payload: Dict[str, Any] = {
            "scene_id": scene.scene_id,
            "creatures": [c.to_dict() for c in scene.alive_creatures()],
        }
        if config is not None:
            payload.update(
                {
                    "name": config.name,
                    "current_loc": {"x": config.x, "y": config.y},
                    "entrance_desc": config.entrance_desc,
                    "exits": list(config.exits),
                    "region": config.region_id,
                    "security": config.security,
                    "width": config.width,
                    "height": config.height,
                }
            )
        return payload
