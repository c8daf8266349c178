"""
FlickCatch Simulation: Entity Arena

Simulation entities (the ball and the creature) keyed by stable string ids.
Renderers look entities up by id and mirror their position and scale; the
simulation never holds a renderer object.
"""

import itertools
import json
from dataclasses import dataclass, field
from typing import Dict, Optional

import numpy as np

BALL = "ball"
CREATURE = "creature"
ENTITY_KINDS = (BALL, CREATURE)


@dataclass
class Entity:
    """An object in the simulation."""
    id: str
    kind: str
    position: np.ndarray
    scale: float = 1.0
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    angular_velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    is_active: bool = True

    def to_dict(self) -> dict:
        """JSON-serializable representation."""
        return {
            "id": self.id,
            "kind": self.kind,
            "position": self.position.tolist(),
            "scale": self.scale,
            "velocity": self.velocity.tolist(),
            "angular_velocity": self.angular_velocity.tolist(),
            "is_active": self.is_active,
        }


class Arena:
    """Owns every simulation entity.

    Ids are never reused within one arena, so a stale id held by a renderer
    or a throw always resolves to None instead of to a newer entity.
    """

    def __init__(self):
        self._entities: Dict[str, Entity] = {}
        self._counters = {kind: itertools.count(1) for kind in ENTITY_KINDS}

    def spawn(
        self,
        kind: str,
        position: np.ndarray,
        scale: float = 1.0,
        id: str = None,
    ) -> Entity:
        """Create an entity with a fresh id (or the given one)."""
        if kind not in ENTITY_KINDS:
            raise ValueError(f"Unknown entity kind {kind!r}, expected one of {ENTITY_KINDS}")
        if id is None:
            id = f"{kind}-{next(self._counters[kind])}"
        if id in self._entities:
            raise ValueError(f"Entity id {id!r} already exists")
        entity = Entity(
            id=id,
            kind=kind,
            position=np.array(position, dtype=np.float64),
            scale=float(scale),
        )
        self._entities[id] = entity
        return entity

    def remove(self, id: str) -> bool:
        """Remove an entity by id. Returns True if found and removed."""
        if id in self._entities:
            del self._entities[id]
            return True
        return False

    def get(self, id: Optional[str]) -> Optional[Entity]:
        if id is None:
            return None
        return self._entities.get(id)

    def move(self, id: str, position: np.ndarray) -> None:
        self._entities[id].position = np.array(position, dtype=np.float64)

    @property
    def count(self) -> int:
        return len(self._entities)

    def __contains__(self, id: str) -> bool:
        return id in self._entities

    def to_dict(self) -> dict:
        return {
            "entities": [e.to_dict() for e in self._entities.values()],
            "count": self.count,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)
