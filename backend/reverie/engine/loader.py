# backend/reverie/engine/loader.py
"""
Database-backed stores and YAML content loading.

- SqlCharacterStore: character lookups and location writes
- SqlSceneRepository: scene configuration by grid coordinates
- seed_world: populate an empty database from world_data/*.yaml
"""
from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Any

import yaml
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models import Character, Scene
from .errors import CharacterNotFoundError, SceneNotFoundError
from .world import CharacterId, CharacterRecord, SceneConfig

logger = logging.getLogger(__name__)


def scene_config_from_model(s: Scene) -> SceneConfig:
    return SceneConfig.from_dict(
        {
            "id": s.id,
            "name": s.name,
            "x": s.x,
            "y": s.y,
            "region_id": s.region_id,
            "width": s.width,
            "height": s.height,
            "entrance_desc": s.entrance_desc,
            "exits": s.exits,
            "security": s.security,
            "spawners": s.spawners,
        }
    )


class SqlCharacterStore:
    """Character records in the characters table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def get_character(self, character_id: CharacterId) -> CharacterRecord:
        async with self.session_factory() as session:
            c = await session.get(Character, character_id)
            if c is None:
                raise CharacterNotFoundError(character_id)
            return CharacterRecord(
                id=c.id,
                name=c.name,
                scene_x=c.scene_x,
                scene_y=c.scene_y,
                x=c.x,
                y=c.y,
            )

    async def save_location(
        self,
        character_id: CharacterId,
        scene_x: int,
        scene_y: int,
        x: float,
        y: float,
    ) -> None:
        async with self.session_factory() as session:
            result = await session.execute(
                update(Character)
                .where(Character.id == character_id)
                .values(scene_x=scene_x, scene_y=scene_y, x=x, y=y)
            )
            await session.commit()
            if result.rowcount == 0:
                raise CharacterNotFoundError(character_id)


class SqlSceneRepository:
    """Scene configuration in the scenes table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def get_scene_at(self, x: int, y: int) -> SceneConfig:
        async with self.session_factory() as session:
            result = await session.execute(select(Scene).where(Scene.x == x, Scene.y == y))
            s = result.scalar_one_or_none()
            if s is None:
                raise SceneNotFoundError(x, y)
            return scene_config_from_model(s)


# ---------- YAML content ----------


def _read_yaml(path: Path) -> Any:
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh)


def load_scenes_yaml(path: Path) -> list[SceneConfig]:
    """Parse a scenes.yaml mapping of scene id -> scene document."""
    data = _read_yaml(path) or {}
    return [SceneConfig.from_dict({"id": scene_id, **(doc or {})}) for scene_id, doc in data.items()]


def load_characters_yaml(path: Path) -> list[dict[str, Any]]:
    """Parse a characters.yaml list. Entries without an id get a fresh UUID."""
    entries = _read_yaml(path) or []
    characters = []
    for entry in entries:
        entry = dict(entry)
        entry.setdefault("id", str(uuid.uuid4()))
        characters.append(entry)
    return characters


async def seed_world(session: AsyncSession, world_data_dir: Path) -> tuple[int, int]:
    """
    Insert starter scenes and characters into empty tables.

    Tables that already hold rows are left untouched. Returns the number of
    scenes and characters inserted.
    """
    world_data_dir = Path(world_data_dir)
    scene_count = await session.scalar(select(func.count()).select_from(Scene))
    char_count = await session.scalar(select(func.count()).select_from(Character))

    added_scenes = 0
    scenes_file = world_data_dir / "scenes.yaml"
    if not scene_count and scenes_file.exists():
        for cfg in load_scenes_yaml(scenes_file):
            session.add(
                Scene(
                    id=cfg.id,
                    name=cfg.name,
                    region_id=cfg.region_id,
                    x=cfg.x,
                    y=cfg.y,
                    width=cfg.width,
                    height=cfg.height,
                    entrance_desc=cfg.entrance_desc,
                    security=cfg.security,
                    exits=list(cfg.exits),
                    spawners=[s.to_dict() for s in cfg.spawners],
                )
            )
            added_scenes += 1

    added_chars = 0
    chars_file = world_data_dir / "characters.yaml"
    if not char_count and chars_file.exists():
        for entry in load_characters_yaml(chars_file):
            session.add(
                Character(
                    id=entry["id"],
                    name=entry["name"],
                    scene_x=int(entry.get("scene_x", 0)),
                    scene_y=int(entry.get("scene_y", 0)),
                    x=float(entry.get("x", 0.0)),
                    y=float(entry.get("y", 0.0)),
                )
            )
            added_chars += 1

    await session.commit()
    logger.info("Seeded %d scenes and %d characters from %s", added_scenes, added_chars, world_data_dir)
    return added_scenes, added_chars
