# backend/reverie/engine/systems/context.py
"""
GameContext - Shared context object for all simulation systems.

Provides:
- Access to the Entity Registry (World) and the SceneStateStore
- Per-session outbound event queues
- Event routing by scope (session, scene, all)

This avoids circular imports and provides a clean dependency injection pattern.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable

if TYPE_CHECKING:
    from ..world import SessionId, World
    from .scenes import SceneStateStore


# Type alias for events (message dicts sent to sessions)
Event = Dict[str, Any]

logger = logging.getLogger(__name__)


class GameContext:
    """
    Shared context object passed to all simulation systems.

    Outbound queues are bounded. Routing never awaits: a full queue drops the
    event for that session only, so a slow client cannot stall a tick.

    Usage:
        ctx = GameContext(world, scenes)
        q = ctx.register_listener(session_id)
        ctx.dispatch_events([event])
    """

    def __init__(
        self,
        world: "World",
        scenes: "SceneStateStore",
        *,
        queue_size: int = 256,
    ) -> None:
        self.world = world
        self.scenes = scenes
        self._queue_size = queue_size

        # Session outbound queues (session_id -> queue of outgoing events)
        self._listeners: Dict["SessionId", asyncio.Queue[Event]] = {}

        # System references (set by SimulationEngine during initialization)
        self.engine: Any = None
        self.event_dispatcher: Any = None

    # ---------- Event Routing ----------

    def dispatch_events(self, events: Iterable[Event]) -> None:
        """
        Route events to the appropriate session queues.

        Handles:
        - player-scoped events (direct to one session)
        - scene-scoped events (to every occupant of a scene)
        - all-scoped events (broadcast to every listener)
        """
        for ev in events:
            scope = ev.get("scope", "player")

            if scope == "player":
                self._put(ev.get("player_id"), ev)

            elif scope == "scene":
                exclude = set(ev.get("exclude", []))
                for session_id in self.scenes.occupants(ev.get("scene_id")):
                    if session_id not in exclude:
                        self._put(session_id, ev)

            elif scope == "all":
                exclude = set(ev.get("exclude", []))
                for session_id in list(self._listeners):
                    if session_id not in exclude:
                        self._put(session_id, ev)

    def _put(self, session_id: "SessionId | None", ev: Event) -> None:
        if session_id is None:
            return
        q = self._listeners.get(session_id)
        if q is None:
            return
        try:
            q.put_nowait(ev)
        except asyncio.QueueFull:
            logger.warning("Outbound queue full for %s, dropping %s", session_id, ev.get("type"))

    # ---------- Listener Management ----------

    def register_listener(self, session_id: "SessionId") -> asyncio.Queue[Event]:
        """Register a session's event queue. Returns the queue for the WebSocket to read from."""
        q: asyncio.Queue[Event] = asyncio.Queue(maxsize=self._queue_size)
        self._listeners[session_id] = q
        return q

    def unregister_listener(self, session_id: "SessionId") -> None:
        self._listeners.pop(session_id, None)

    def has_listener(self, session_id: "SessionId") -> bool:
        return session_id in self._listeners

    def session_ids(self) -> list["SessionId"]:
        return list(self._listeners)
