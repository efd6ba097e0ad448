"""World collaborator protocol and the entity view it returns."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol, runtime_checkable

from tick_hive.types import BodyPart, Outcome


class EntityKind(Enum):
    SOURCE = "source"
    PILE = "pile"
    CONTAINER = "container"
    STORAGE = "storage"
    SPAWN = "spawn"
    EXTENSION = "extension"
    CONTROLLER = "controller"
    CONSTRUCTION_SITE = "construction_site"
    ROAD = "road"
    WALL = "wall"
    RAMPART = "rampart"
    UNIT = "unit"


@dataclass(frozen=True)
class Entity:
    """Read-only view of a world object at the moment it was resolved.

    Fields irrelevant to a kind stay at zero. ``busy`` marks a production
    facility that is already producing.
    """

    id: str
    kind: EntityKind
    scope: str | None = None
    energy: int = 0
    energy_capacity: int = 0
    progress: int = 0
    progress_total: int = 0
    hits: int = 0
    hits_max: int = 0
    owned: bool = True
    busy: bool = False

    @property
    def free_capacity(self) -> int:
        return max(0, self.energy_capacity - self.energy)

    @property
    def is_full(self) -> bool:
        return self.energy_capacity > 0 and self.energy >= self.energy_capacity

    @property
    def is_empty(self) -> bool:
        return self.energy <= 0


Predicate = Callable[[Entity], bool]


@runtime_checkable
class World(Protocol):
    """The simulation, as seen by the colony core.

    Queries never mutate. Actions return an ``Outcome``; callers must treat
    any value they do not recognise as "nothing happened, retry next tick".
    """

    def resolve(self, entity_id: str | None) -> Entity | None:
        """Current view of an entity, or None if it no longer exists."""
        ...

    def find_nearest(self, origin_id: str, predicate: Predicate) -> str | None: ...

    def find_in_range(
        self, origin_id: str, range: int, predicate: Predicate
    ) -> list[str]: ...

    def find_in_scope(self, scope: str | None, predicate: Predicate) -> list[str]: ...

    def in_range(self, origin_id: str, target_id: str, range: int) -> bool: ...

    def move(self, unit_id: str, target_id: str) -> Outcome: ...

    def harvest(self, unit_id: str, target_id: str) -> Outcome: ...

    def build(self, unit_id: str, target_id: str) -> Outcome: ...

    def repair(self, unit_id: str, target_id: str) -> Outcome: ...

    def upgrade(self, unit_id: str, target_id: str) -> Outcome: ...

    def transfer(self, unit_id: str, target_id: str) -> Outcome: ...

    def withdraw(self, unit_id: str, target_id: str) -> Outcome: ...

    def pickup(self, unit_id: str, target_id: str) -> Outcome: ...

    def tow(self, unit_id: str, passenger_id: str, target_id: str) -> Outcome:
        """Carry an immobile passenger one step toward the target."""
        ...

    def produce(self, facility_id: str, body: list[BodyPart], name: str) -> Outcome:
        """Start producing a unit called *name* with the given body."""
        ...
