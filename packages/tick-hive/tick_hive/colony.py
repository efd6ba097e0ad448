"""Colony — the shared context every system and behavior works against."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from tick_hive.binding import TaskBinding, Unit
from tick_hive.config import HiveConfig
from tick_hive.events import EventLog
from tick_hive.matcher import TaskMatcher
from tick_hive.store import TaskStore
from tick_hive.types import Role, SnapshotError

if TYPE_CHECKING:
    from tick_hive.task import Task
    from tick_hive.world import World

logger = logging.getLogger(__name__)

_SNAPSHOT_VERSION = 1


class Colony:
    """Owns the task store, the unit roster and the production facilities.

    One colony lives for one simulation session and is injected into every
    component that needs it; nothing is kept in module globals.
    """

    def __init__(self, world: World, config: HiveConfig | None = None) -> None:
        self.world = world
        self.config: HiveConfig = config if config is not None else HiveConfig()
        self.store = TaskStore()
        self.matcher = TaskMatcher(self.store)
        self.binding = TaskBinding(self.store)
        self.events = EventLog(self.config.event_log_size)
        self.tick: int = 0
        self._units: dict[str, Unit] = {}
        self._facilities: list[str] = []

        self.store.on_create(self._record_create)
        self.store.on_bind(self._record_bind)
        self.store.on_release(self._record_release)
        self.store.on_complete(self._record_complete)
        self.store.on_fail(self._record_fail)

    # --- Roster ---

    def add_unit(self, unit: Unit) -> Unit:
        self._units[unit.id] = unit
        return unit

    def unit(self, unit_id: str) -> Unit | None:
        return self._units.get(unit_id)

    def units(self) -> list[Unit]:
        return list(self._units.values())

    def units_in(self, scope: str | None, role: Role | None = None) -> list[Unit]:
        return [
            u for u in self._units.values()
            if u.scope == scope and (role is None or u.role is role)
        ]

    def remove_unit(self, unit_id: str) -> None:
        """Drop a unit from the roster, releasing whatever it holds."""
        unit = self._units.pop(unit_id, None)
        if unit is not None:
            self.binding.release(unit)

    def prune_dead(self) -> list[str]:
        """Remove units the world no longer knows about."""
        dead = [uid for uid in self._units if self.world.resolve(uid) is None]
        for uid in dead:
            logger.debug("unit %s is gone, releasing its task", uid)
            self.remove_unit(uid)
        return dead

    def add_facility(self, facility_id: str) -> None:
        if facility_id not in self._facilities:
            self._facilities.append(facility_id)

    def facilities(self) -> list[str]:
        return list(self._facilities)

    # --- Event chronicle ---

    def _record_create(self, task: Task) -> None:
        self.events.emit(self.tick, "task_created", task_id=task.id,
                         task_type=task.type.value, target=task.target)

    def _record_bind(self, task: Task, unit_id: str) -> None:
        self.events.emit(self.tick, "task_bound", task_id=task.id, unit_id=unit_id)

    def _record_release(self, task: Task, unit_id: str) -> None:
        self.events.emit(self.tick, "task_released", task_id=task.id, unit_id=unit_id)

    def _record_complete(self, task: Task) -> None:
        self.events.emit(self.tick, "task_completed", task_id=task.id,
                         perpetual=task.perpetual)

    def _record_fail(self, task: Task, reason: str) -> None:
        self.events.emit(self.tick, "task_failed", task_id=task.id, reason=reason)

    # --- Serialization ---

    def snapshot(self) -> dict[str, Any]:
        """Everything that must survive between ticks, JSON-compatible."""
        return {
            "version": _SNAPSHOT_VERSION,
            "tick": self.tick,
            "tasks": self.store.snapshot(),
            "units": [u.to_dict() for u in self._units.values()],
            "facilities": list(self._facilities),
            "events": self.events.snapshot(),
        }

    def restore(self, data: dict[str, Any]) -> None:
        version = data.get("version")
        if version != _SNAPSHOT_VERSION:
            raise SnapshotError(
                f"Unsupported colony snapshot version {version!r}, "
                f"expected {_SNAPSHOT_VERSION}"
            )
        self.store.restore(data["tasks"])
        self.tick = data["tick"]
        self._units = {}
        for unit_data in data["units"]:
            unit = Unit.from_dict(unit_data)
            self._units[unit.id] = unit
        self._facilities = list(data.get("facilities", []))
        self.events.restore(data.get("events", []))
