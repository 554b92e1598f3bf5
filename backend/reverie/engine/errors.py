# backend/reverie/engine/errors.py
"""Exception taxonomy for the simulation core.

Every error carries a message that is safe to send back to the requesting
session inside a scene_error event.
"""


class ReverieError(Exception):
    """Base class for all simulation core errors."""


class InvalidInputError(ReverieError):
    """Malformed identifiers, non-finite numbers or missing fields."""


class NotFoundError(ReverieError):
    """A referenced record does not exist."""


class CharacterNotFoundError(NotFoundError):
    def __init__(self, character_id: str) -> None:
        super().__init__("Player not found.")
        self.character_id = character_id


class SceneNotFoundError(NotFoundError):
    def __init__(self, x: int, y: int) -> None:
        super().__init__(f"Scene [{x}, {y}] not found")
        self.x = x
        self.y = y


class UnknownCreatureError(ReverieError):
    """A spawner references a creature template that is not registered."""

    def __init__(self, creature_id: str) -> None:
        super().__init__(f"Creature '{creature_id}' not found.")
        self.creature_id = creature_id
