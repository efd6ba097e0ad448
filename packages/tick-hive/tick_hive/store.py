"""TaskStore — the canonical, invariant-preserving set of colony tasks."""
from __future__ import annotations

import logging
from typing import Any, Callable, Iterable

from tick_hive.task import Task, progress_limit_for
from tick_hive.types import Priority, Role, SnapshotError, TaskState, TaskType

logger = logging.getLogger(__name__)

_SNAPSHOT_VERSION = 1


def _pending_order(task: Task) -> tuple[int, int, int]:
    return (-int(task.priority), task.created_at, task.seq)


class TaskStore:
    """Owns every task and is the only place tasks are mutated.

    Each mutator is atomic with respect to the tick loop: on return the
    capacity and state invariants hold for every task.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}
        self._next_seq: int = 0

        # Observable callbacks
        self._on_create: list[Callable[[Task], None]] = []
        self._on_bind: list[Callable[[Task, str], None]] = []
        self._on_release: list[Callable[[Task, str], None]] = []
        self._on_complete: list[Callable[[Task], None]] = []
        self._on_fail: list[Callable[[Task, str], None]] = []

    # --- Creation and lookup ---

    def create_task(
        self,
        type: TaskType,
        target: str | None,
        scope: str | None = None,
        priority: Priority = Priority.MEDIUM,
        roles: Iterable[Role] = (),
        perpetual: bool = False,
        capacity: int = 1,
        *,
        tick: int = 0,
        payload: dict[str, Any] | None = None,
        guard: bool = False,
    ) -> str:
        """Create a pending task and return its id.

        With ``guard=True`` a live task already registered for the same
        ``(type, target)`` pair is kept and its id returned instead.
        """
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        if guard:
            existing = self.find_live(type, target)
            if existing is not None:
                return existing.id

        seq = self._next_seq
        self._next_seq += 1
        task = Task(
            id=f"task_{seq}",
            type=type,
            target=target,
            scope=scope,
            roles=frozenset(roles),
            priority=priority,
            progress_limit=progress_limit_for(type),
            perpetual=perpetual,
            capacity=capacity,
            created_at=tick,
            seq=seq,
            payload=dict(payload) if payload else {},
        )
        self._tasks[task.id] = task
        logger.debug("created %s %s -> %s", task.id, type.value, target)
        for cb in self._on_create:
            cb(task)
        return task.id

    def get(self, task_id: str | None) -> Task | None:
        if task_id is None:
            return None
        return self._tasks.get(task_id)

    def find_live(self, type: TaskType, target: str | None) -> Task | None:
        """Return the live task for ``(type, target)``, if any."""
        for task in self._tasks.values():
            if task.type is type and task.target == target and task.is_live:
                return task
        return None

    def tasks(self) -> list[Task]:
        return list(self._tasks.values())

    def list_pending(self, role: Role, scope: str | None = None) -> list[Task]:
        """Open tasks a unit of *role* in *scope* may bind to, best first.

        Open means pending, or in progress with a free slot. Ordered by
        priority (high first), then creation tick, then creation sequence.
        """
        found = [
            task for task in self._tasks.values()
            if task.has_room
            and role in task.roles
            and (task.scope is None or task.scope == scope)
        ]
        found.sort(key=_pending_order)
        return found

    # --- Mutators ---

    def bind(self, task_id: str, unit_id: str, role: Role) -> bool:
        task = self._tasks.get(task_id)
        if task is None or not task.has_room:
            return False
        if role not in task.roles or unit_id in task.assignees:
            return False
        task.assignees.append(unit_id)
        if task.state is TaskState.PENDING:
            task.state = TaskState.IN_PROGRESS
        for cb in self._on_bind:
            cb(task, unit_id)
        return True

    def release(self, task_id: str, unit_id: str) -> bool:
        """Drop *unit_id* from the task. Abandonment, never success."""
        task = self._tasks.get(task_id)
        if task is None or unit_id not in task.assignees:
            return False
        task.assignees.remove(unit_id)
        if not task.assignees and task.state is TaskState.IN_PROGRESS:
            task.state = TaskState.PENDING
        for cb in self._on_release:
            cb(task, unit_id)
        return True

    def complete(self, task_id: str) -> bool:
        task = self._tasks.get(task_id)
        if task is None or not task.is_live:
            return False
        task.assignees.clear()
        if task.perpetual:
            task.state = TaskState.PENDING
            task.progress = 0
        else:
            task.state = TaskState.COMPLETED
        logger.debug("completed %s (perpetual=%s)", task.id, task.perpetual)
        for cb in self._on_complete:
            cb(task)
        return True

    def fail(self, task_id: str, reason: str) -> bool:
        """Mark the task failed and purge it. Failed tasks are never retried."""
        task = self._tasks.get(task_id)
        if task is None or not task.is_live:
            return False
        task.assignees.clear()
        task.state = TaskState.FAILED
        logger.warning("task %s failed: %s", task.id, reason)
        for cb in self._on_fail:
            cb(task, reason)
        del self._tasks[task.id]
        return True

    def update_progress(self, task_id: str, value: int) -> bool:
        task = self._tasks.get(task_id)
        if task is None or task.state is not TaskState.IN_PROGRESS:
            return False
        task.progress = max(task.progress, min(value, task.progress_limit))
        return True

    def sweep_completed(self) -> list[str]:
        """Remove retired, non-perpetual tasks. Returns the removed ids."""
        removed = [
            task.id for task in self._tasks.values()
            if task.state in (TaskState.COMPLETED, TaskState.FAILED)
            and not task.perpetual
        ]
        for task_id in removed:
            del self._tasks[task_id]
        if removed:
            logger.debug("swept %d tasks", len(removed))
        return removed

    # --- Callback registration ---

    def on_create(self, cb: Callable[[Task], None]) -> None:
        self._on_create.append(cb)

    def on_bind(self, cb: Callable[[Task, str], None]) -> None:
        """Signature: (task, unit_id) -> None."""
        self._on_bind.append(cb)

    def on_release(self, cb: Callable[[Task, str], None]) -> None:
        """Signature: (task, unit_id) -> None."""
        self._on_release.append(cb)

    def on_complete(self, cb: Callable[[Task], None]) -> None:
        self._on_complete.append(cb)

    def on_fail(self, cb: Callable[[Task, str], None]) -> None:
        """Signature: (task, reason) -> None. Fired before the purge."""
        self._on_fail.append(cb)

    # --- Serialization ---

    def snapshot(self) -> dict[str, Any]:
        return {
            "version": _SNAPSHOT_VERSION,
            "next_seq": self._next_seq,
            "tasks": [task.to_dict() for task in self._tasks.values()],
        }

    def restore(self, data: dict[str, Any]) -> None:
        version = data.get("version")
        if version != _SNAPSHOT_VERSION:
            raise SnapshotError(
                f"Unsupported task snapshot version {version!r}, "
                f"expected {_SNAPSHOT_VERSION}"
            )
        try:
            tasks: dict[str, Task] = {}
            for task_data in data["tasks"]:
                task = Task.from_dict(task_data)
                tasks[task.id] = task
            next_seq = int(data["next_seq"])
        except (KeyError, TypeError, ValueError) as exc:
            raise SnapshotError(f"Malformed task snapshot: {exc!r}") from exc
        self._tasks = tasks
        self._next_seq = next_seq

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks
