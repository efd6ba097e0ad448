"""TaskMatcher — picks the best open task for a requesting unit."""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tick_hive.binding import Unit
    from tick_hive.store import TaskStore
    from tick_hive.task import Task


class TaskMatcher:
    """Two-tier selection over the store's pending order.

    Single-assignee tasks are claimed before group tasks are topped up, so
    exclusive work is never starved by parallel work. Group tasks fill
    evenly: the one with the fewest assignees goes first.
    """

    def __init__(self, store: TaskStore) -> None:
        self._store = store

    def candidates_for(self, unit: Unit) -> list[Task]:
        """Every open task for *unit*, in the order it should try them."""
        pending = self._store.list_pending(unit.role, unit.scope)
        singles = [t for t in pending if t.capacity == 1]
        groups = [t for t in pending if t.capacity > 1 and t.has_room]
        # Stable sort keeps the store's priority/age order among equals.
        groups.sort(key=lambda t: len(t.assignees))
        return singles + groups

    def find_best_for(self, unit: Unit) -> Task | None:
        candidates = self.candidates_for(unit)
        return candidates[0] if candidates else None
