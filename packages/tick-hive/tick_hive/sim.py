"""SimWorld — a small deterministic World for tests and examples."""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Iterable

from tick_hive.types import PART_COSTS, BodyPart, Outcome
from tick_hive.world import Entity, EntityKind, Predicate

CARRY_CAPACITY = 50
HARVEST_POWER = 2
BUILD_POWER = 5
REPAIR_POWER = 100
SPAWN_TICKS_PER_PART = 3

_STORES = frozenset({
    EntityKind.CONTAINER, EntityKind.STORAGE,
    EntityKind.SPAWN, EntityKind.EXTENSION,
})


@dataclass
class SimEntity:
    """Mutable record behind an ``Entity`` view."""

    id: str
    kind: EntityKind
    x: int
    y: int
    scope: str | None = None
    energy: int = 0
    energy_capacity: int = 0
    progress: int = 0
    progress_total: int = 0
    hits: int = 0
    hits_max: int = 0
    owned: bool = True
    busy_ticks: int = 0
    work: int = 0
    mobile: bool = False

    def view(self) -> Entity:
        return Entity(
            id=self.id,
            kind=self.kind,
            scope=self.scope,
            energy=self.energy,
            energy_capacity=self.energy_capacity,
            progress=self.progress,
            progress_total=self.progress_total,
            hits=self.hits,
            hits_max=self.hits_max,
            owned=self.owned,
            busy=self.busy_ticks > 0,
        )


def _step(value: int, goal: int) -> int:
    if goal > value:
        return value + 1
    if goal < value:
        return value - 1
    return value


class SimWorld:
    """Grid world with Chebyshev ranges and single-tile moves.

    Conforms to the World protocol. Outcomes for any action can be forced
    with ``script(action, ...)``; a scripted outcome is returned without
    touching the world state.

    Args:
        scope: Scope given to entities added without an explicit one.
    """

    def __init__(self, scope: str | None = "W1N1") -> None:
        self._scope = scope
        self._entities: dict[str, SimEntity] = {}
        self._counter: int = 0
        self._scripted: dict[str, deque[Outcome]] = {}

    # --- Setup ---

    def add(
        self,
        kind: EntityKind,
        x: int,
        y: int,
        *,
        id: str | None = None,
        scope: str | None = None,
        energy: int = 0,
        energy_capacity: int = 0,
        progress: int = 0,
        progress_total: int = 0,
        hits: int = 0,
        hits_max: int = 0,
        owned: bool = True,
    ) -> str:
        if id is None:
            id = f"{kind.value}_{self._counter}"
            self._counter += 1
        self._entities[id] = SimEntity(
            id=id,
            kind=kind,
            x=x,
            y=y,
            scope=scope if scope is not None else self._scope,
            energy=energy,
            energy_capacity=energy_capacity,
            progress=progress,
            progress_total=progress_total,
            hits=hits,
            hits_max=hits_max,
            owned=owned,
        )
        return id

    def add_unit(
        self,
        unit_id: str,
        x: int,
        y: int,
        body: Iterable[BodyPart] = (BodyPart.WORK, BodyPart.CARRY, BodyPart.MOVE),
        *,
        scope: str | None = None,
        energy: int = 0,
    ) -> str:
        parts = list(body)
        self.add(
            EntityKind.UNIT, x, y, id=unit_id, scope=scope, energy=energy,
            energy_capacity=CARRY_CAPACITY * parts.count(BodyPart.CARRY),
        )
        record = self._entities[unit_id]
        record.work = parts.count(BodyPart.WORK)
        record.mobile = BodyPart.MOVE in parts
        return unit_id

    def remove(self, entity_id: str) -> None:
        self._entities.pop(entity_id, None)

    def record(self, entity_id: str) -> SimEntity:
        """Mutable record for direct manipulation in tests."""
        return self._entities[entity_id]

    def position(self, entity_id: str) -> tuple[int, int]:
        record = self._entities[entity_id]
        return (record.x, record.y)

    def script(self, action: str, *outcomes: Outcome) -> None:
        """Force the next outcomes of *action*, oldest first."""
        self._scripted.setdefault(action, deque()).extend(outcomes)

    def advance(self) -> None:
        """Advance world timers by one tick."""
        for record in self._entities.values():
            if record.busy_ticks > 0:
                record.busy_ticks -= 1

    # --- Queries ---

    def resolve(self, entity_id: str | None) -> Entity | None:
        if entity_id is None:
            return None
        record = self._entities.get(entity_id)
        return record.view() if record is not None else None

    def find_nearest(self, origin_id: str, predicate: Predicate) -> str | None:
        found = self._matching_near(origin_id, None, predicate)
        return found[0] if found else None

    def find_in_range(
        self, origin_id: str, range: int, predicate: Predicate
    ) -> list[str]:
        return self._matching_near(origin_id, range, predicate)

    def find_in_scope(self, scope: str | None, predicate: Predicate) -> list[str]:
        return [
            r.id for r in self._entities.values()
            if r.scope == scope and predicate(r.view())
        ]

    def in_range(self, origin_id: str, target_id: str, range: int) -> bool:
        origin = self._entities.get(origin_id)
        target = self._entities.get(target_id)
        if origin is None or target is None:
            return False
        return self._distance(origin, target) <= range

    # --- Actions ---

    def move(self, unit_id: str, target_id: str) -> Outcome:
        forced = self._forced("move")
        if forced is not None:
            return forced
        unit = self._entities.get(unit_id)
        target = self._entities.get(target_id)
        if unit is None or target is None:
            return Outcome.INVALID_TARGET
        if not unit.mobile:
            return Outcome.BUSY
        if self._distance(unit, target) > 1:
            unit.x = _step(unit.x, target.x)
            unit.y = _step(unit.y, target.y)
        return Outcome.OK

    def harvest(self, unit_id: str, target_id: str) -> Outcome:
        forced = self._forced("harvest")
        if forced is not None:
            return forced
        unit, source = self._pair(unit_id, target_id)
        if unit is None or source is None or source.kind is not EntityKind.SOURCE:
            return Outcome.INVALID_TARGET
        if self._distance(unit, source) > 1:
            return Outcome.NOT_IN_RANGE
        if source.energy <= 0:
            return Outcome.NO_RESOURCE
        amount = min(HARVEST_POWER * max(unit.work, 1), source.energy)
        if unit.energy_capacity > 0:
            free = unit.energy_capacity - unit.energy
            if free <= 0:
                return Outcome.FULL
            amount = min(amount, free)
            unit.energy += amount
        else:
            self._drop(unit.x, unit.y, unit.scope, amount)
        source.energy -= amount
        return Outcome.OK

    def transfer(self, unit_id: str, target_id: str) -> Outcome:
        forced = self._forced("transfer")
        if forced is not None:
            return forced
        unit, target = self._pair(unit_id, target_id)
        if unit is None or target is None or target.kind not in _STORES:
            return Outcome.INVALID_TARGET
        if self._distance(unit, target) > 1:
            return Outcome.NOT_IN_RANGE
        if unit.energy <= 0:
            return Outcome.NO_RESOURCE
        free = target.energy_capacity - target.energy
        if free <= 0:
            return Outcome.FULL
        amount = min(unit.energy, free)
        unit.energy -= amount
        target.energy += amount
        return Outcome.OK

    def withdraw(self, unit_id: str, target_id: str) -> Outcome:
        forced = self._forced("withdraw")
        if forced is not None:
            return forced
        unit, target = self._pair(unit_id, target_id)
        if unit is None or target is None or target.kind not in _STORES:
            return Outcome.INVALID_TARGET
        if self._distance(unit, target) > 1:
            return Outcome.NOT_IN_RANGE
        if target.energy <= 0:
            return Outcome.NO_RESOURCE
        free = unit.energy_capacity - unit.energy
        if free <= 0:
            return Outcome.FULL
        amount = min(target.energy, free)
        target.energy -= amount
        unit.energy += amount
        return Outcome.OK

    def pickup(self, unit_id: str, target_id: str) -> Outcome:
        forced = self._forced("pickup")
        if forced is not None:
            return forced
        unit, pile = self._pair(unit_id, target_id)
        if unit is None or pile is None or pile.kind is not EntityKind.PILE:
            return Outcome.INVALID_TARGET
        if self._distance(unit, pile) > 1:
            return Outcome.NOT_IN_RANGE
        free = unit.energy_capacity - unit.energy
        if free <= 0:
            return Outcome.FULL
        amount = min(pile.energy, free)
        pile.energy -= amount
        unit.energy += amount
        if pile.energy <= 0:
            del self._entities[pile.id]
        return Outcome.OK

    def build(self, unit_id: str, target_id: str) -> Outcome:
        forced = self._forced("build")
        if forced is not None:
            return forced
        unit, site = self._pair(unit_id, target_id)
        if unit is None or site is None or site.kind is not EntityKind.CONSTRUCTION_SITE:
            return Outcome.INVALID_TARGET
        if self._distance(unit, site) > 3:
            return Outcome.NOT_IN_RANGE
        if unit.energy <= 0:
            return Outcome.NO_RESOURCE
        amount = min(
            BUILD_POWER * max(unit.work, 1),
            unit.energy,
            site.progress_total - site.progress,
        )
        unit.energy -= amount
        site.progress += amount
        if site.progress >= site.progress_total:
            del self._entities[site.id]
        return Outcome.OK

    def repair(self, unit_id: str, target_id: str) -> Outcome:
        forced = self._forced("repair")
        if forced is not None:
            return forced
        unit, target = self._pair(unit_id, target_id)
        if unit is None or target is None or target.hits_max <= 0:
            return Outcome.INVALID_TARGET
        if self._distance(unit, target) > 3:
            return Outcome.NOT_IN_RANGE
        if unit.energy <= 0:
            return Outcome.NO_RESOURCE
        if target.hits >= target.hits_max:
            return Outcome.FULL
        spent = min(max(unit.work, 1), unit.energy)
        unit.energy -= spent
        target.hits = min(target.hits_max, target.hits + REPAIR_POWER * spent)
        return Outcome.OK

    def upgrade(self, unit_id: str, target_id: str) -> Outcome:
        forced = self._forced("upgrade")
        if forced is not None:
            return forced
        unit, controller = self._pair(unit_id, target_id)
        if (
            unit is None or controller is None
            or controller.kind is not EntityKind.CONTROLLER
            or not controller.owned
        ):
            return Outcome.INVALID_TARGET
        if self._distance(unit, controller) > 3:
            return Outcome.NOT_IN_RANGE
        if unit.energy <= 0:
            return Outcome.NO_RESOURCE
        spent = min(max(unit.work, 1), unit.energy)
        unit.energy -= spent
        controller.progress += spent
        return Outcome.OK

    def tow(self, unit_id: str, passenger_id: str, target_id: str) -> Outcome:
        forced = self._forced("tow")
        if forced is not None:
            return forced
        unit = self._entities.get(unit_id)
        passenger = self._entities.get(passenger_id)
        target = self._entities.get(target_id)
        if unit is None or passenger is None or target is None:
            return Outcome.INVALID_TARGET
        if self._distance(unit, passenger) > 1:
            return Outcome.NOT_IN_RANGE
        if self._distance(passenger, target) > 1:
            old = (passenger.x, passenger.y)
            passenger.x = _step(passenger.x, target.x)
            passenger.y = _step(passenger.y, target.y)
            unit.x, unit.y = old
        return Outcome.OK

    def produce(self, facility_id: str, body: list[BodyPart], name: str) -> Outcome:
        forced = self._forced("produce")
        if forced is not None:
            return forced
        facility = self._entities.get(facility_id)
        if facility is None or facility.kind is not EntityKind.SPAWN or not body:
            return Outcome.INVALID_TARGET
        if facility.busy_ticks > 0:
            return Outcome.BUSY
        if name in self._entities:
            return Outcome.NAME_EXISTS
        cost = sum(PART_COSTS[part] for part in body)
        if cost > facility.energy:
            return Outcome.NO_RESOURCE
        facility.energy -= cost
        facility.busy_ticks = SPAWN_TICKS_PER_PART * len(body)
        self.add_unit(name, facility.x, facility.y, body, scope=facility.scope)
        return Outcome.OK

    # --- Internal helpers ---

    def _forced(self, action: str) -> Outcome | None:
        queue = self._scripted.get(action)
        if queue:
            return queue.popleft()
        return None

    def _pair(
        self, unit_id: str, target_id: str
    ) -> tuple[SimEntity | None, SimEntity | None]:
        return self._entities.get(unit_id), self._entities.get(target_id)

    @staticmethod
    def _distance(a: SimEntity, b: SimEntity) -> int:
        return max(abs(a.x - b.x), abs(a.y - b.y))

    def _matching_near(
        self, origin_id: str, range: int | None, predicate: Predicate
    ) -> list[str]:
        origin = self._entities.get(origin_id)
        if origin is None:
            return []
        found: list[tuple[int, str]] = []
        for record in self._entities.values():
            if record.id == origin_id or record.scope != origin.scope:
                continue
            distance = self._distance(origin, record)
            if range is not None and distance > range:
                continue
            if predicate(record.view()):
                found.append((distance, record.id))
        found.sort()
        return [eid for _, eid in found]

    def _drop(self, x: int, y: int, scope: str | None, amount: int) -> None:
        for record in self._entities.values():
            if record.kind is EntityKind.PILE and (record.x, record.y) == (x, y):
                record.energy += amount
                return
        self.add(EntityKind.PILE, x, y, scope=scope, energy=amount)
