# backend/reverie/engine/systems/persistence.py
"""
LocationPersister - Fire-and-forget character location writes.

Tick bodies never await I/O. When an entity settles, travels or
disconnects, the engine calls schedule_save() which starts a background
task. A failed write is logged and never touches in-memory state.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol, Set

if TYPE_CHECKING:
    from ..world import CharacterId, CharacterRecord, Entity

logger = logging.getLogger(__name__)


class CharacterStore(Protocol):
    """Read/write access to character records."""

    async def get_character(self, character_id: "CharacterId") -> "CharacterRecord": ...

    async def save_location(
        self,
        character_id: "CharacterId",
        scene_x: int,
        scene_y: int,
        x: float,
        y: float,
    ) -> None: ...


class LocationPersister:
    """
    Owns the background save tasks.

    Usage:
        persister = LocationPersister(store)
        persister.schedule_save(entity)
        await persister.flush()
    """

    def __init__(self, store: CharacterStore) -> None:
        self.store = store
        self._tasks: Set[asyncio.Task[None]] = set()
        self.failures = 0

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule_save(self, entity: "Entity") -> asyncio.Task[None] | None:
        """Persist the entity's current location in the background."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, location of %s not saved", entity.character_id)
            return None

        task = loop.create_task(
            self._save(entity.character_id, entity.scene_x, entity.scene_y, entity.x, entity.y)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _save(self, character_id: "CharacterId", scene_x: int, scene_y: int, x: float, y: float) -> None:
        try:
            await self.store.save_location(character_id, scene_x, scene_y, x, y)
        except Exception:
            self.failures += 1
            logger.exception("Failed to save location for character %s", character_id)

    async def flush(self) -> None:
        """Wait for every in-flight save."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
