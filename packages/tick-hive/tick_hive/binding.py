"""Unit record and the per-unit task binding facade."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from tick_hive.phases import Phase, phase_from_dict, phase_to_dict
from tick_hive.types import Role

if TYPE_CHECKING:
    from tick_hive.matcher import TaskMatcher
    from tick_hive.store import TaskStore
    from tick_hive.task import Task

logger = logging.getLogger(__name__)


@dataclass
class Unit:
    """Task-relevant facet of a colony unit.

    ``task_id`` is a weak reference into the store: the task may be gone by
    the time the unit next looks at it. ``phase`` belongs to the unit alone.
    """

    id: str
    role: Role
    scope: str | None = None
    task_id: str | None = None
    phase: Phase | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "scope": self.scope,
            "task_id": self.task_id,
            "phase": phase_to_dict(self.phase),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Unit:
        return cls(
            id=data["id"],
            role=Role(data["role"]),
            scope=data.get("scope"),
            task_id=data.get("task_id"),
            phase=phase_from_dict(data.get("phase")),
        )


class TaskBinding:
    """Acquire, release and finish tasks on behalf of a unit."""

    def __init__(self, store: TaskStore) -> None:
        self._store = store

    def has_task(self, unit: Unit) -> bool:
        return unit.task_id is not None

    def task_of(self, unit: Unit) -> Task | None:
        return self._store.get(unit.task_id)

    def acquire(self, unit: Unit, task_id: str) -> bool:
        if self.has_task(unit):
            return False
        if not self._store.bind(task_id, unit.id, unit.role):
            return False
        unit.task_id = task_id
        unit.phase = None
        return True

    def acquire_best(self, unit: Unit, matcher: TaskMatcher) -> Task | None:
        """Bind *unit* to the first candidate the store accepts."""
        if self.has_task(unit):
            return self.task_of(unit)
        for task in matcher.candidates_for(unit):
            if self.acquire(unit, task.id):
                logger.debug("unit %s acquired %s", unit.id, task.id)
                return task
        return None

    def release(self, unit: Unit) -> None:
        if unit.task_id is not None:
            self._store.release(unit.task_id, unit.id)
        self._clear(unit)

    def complete(self, unit: Unit) -> None:
        if unit.task_id is not None:
            self._store.complete(unit.task_id)
        self._clear(unit)

    def fail(self, unit: Unit, reason: str) -> None:
        if unit.task_id is not None:
            self._store.fail(unit.task_id, reason)
        self._clear(unit)

    def forget(self, unit: Unit) -> None:
        """Drop a binding whose task no longer exists in the store."""
        self._clear(unit)

    def report_progress(self, unit: Unit, value: int) -> bool:
        if unit.task_id is None:
            return False
        return self._store.update_progress(unit.task_id, value)

    @staticmethod
    def _clear(unit: Unit) -> None:
        unit.task_id = None
        unit.phase = None
