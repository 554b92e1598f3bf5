# backend/reverie/engine/creatures.py
"""
Creature templates and the explicit creature registry.

Templates are declared in a YAML table (world_data/creatures.yaml) keyed by
creature id, for example:

    slagrat:
      name: Slag Rat
      classification: vermin
      level: 1
      entrance_desc: A blistered, hairless rat scurries forward.
      stats:
        max_hp: 10
        max_hp_variance: 3
        attack: 3

Many creature instances share one template; the spawner turns a template
into an instance.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import UnknownCreatureError
from .world import CreatureId

logger = logging.getLogger(__name__)

DEFAULT_CREATURES_FILE = Path(__file__).resolve().parent.parent / "world_data" / "creatures.yaml"


@dataclass(frozen=True)
class CreatureTemplate:
    """Stat block, AI and loot descriptors for one kind of creature."""

    id: CreatureId
    name: str
    classification: str = "beast"
    level: int = 1
    entrance_desc: str = ""
    short_desc: str = ""
    stats: dict[str, Any] = field(default_factory=dict)
    ai: dict[str, Any] = field(default_factory=dict)
    loot: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, creature_id: CreatureId, data: dict[str, Any]) -> "CreatureTemplate":
        return cls(
            id=creature_id,
            name=data.get("name", creature_id),
            classification=data.get("classification", "beast"),
            level=int(data.get("level", 1)),
            entrance_desc=data.get("entrance_desc", ""),
            short_desc=data.get("short_desc", ""),
            stats=dict(data.get("stats") or {}),
            ai=dict(data.get("ai") or {}),
            loot=dict(data.get("loot") or {}),
        )

    @property
    def max_hp(self) -> int | None:
        value = self.stats.get("max_hp")
        return int(value) if value is not None else None

    def roll_max_hp(self, rng: random.Random) -> int | None:
        """Per-instance max HP: base plus a uniform bonus in [0, max_hp_variance]."""
        base = self.max_hp
        if base is None:
            return None
        variance = int(self.stats.get("max_hp_variance", 0))
        if variance <= 0:
            return base
        return base + rng.randint(0, variance)


class CreatureRegistry:
    """Explicit mapping from creature id to template."""

    def __init__(self, templates: dict[CreatureId, CreatureTemplate] | None = None) -> None:
        self._templates: dict[CreatureId, CreatureTemplate] = dict(templates or {})

    def register(self, template: CreatureTemplate) -> None:
        if template.id in self._templates:
            logger.warning("Overwriting creature template '%s'", template.id)
        self._templates[template.id] = template

    def get(self, creature_id: CreatureId) -> CreatureTemplate:
        try:
            return self._templates[creature_id]
        except KeyError:
            raise UnknownCreatureError(creature_id) from None

    def __contains__(self, creature_id: object) -> bool:
        return creature_id in self._templates

    def __len__(self) -> int:
        return len(self._templates)

    def ids(self) -> list[CreatureId]:
        return sorted(self._templates)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "CreatureRegistry":
        registry = cls()
        for creature_id, entry in (data or {}).items():
            registry.register(CreatureTemplate.from_dict(str(creature_id), entry or {}))
        return registry

    @classmethod
    def from_yaml(cls, path: Path | str = DEFAULT_CREATURES_FILE) -> "CreatureRegistry":
        path = Path(path)
        with path.open(encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        registry = cls.from_mapping(data)
        logger.info("Loaded %d creature templates from %s", len(registry), path)
        return registry
