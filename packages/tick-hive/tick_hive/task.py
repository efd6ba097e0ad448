"""Task record and its serialized form."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from tick_hive.types import Priority, Role, TaskState, TaskType

# Long-running work types get a larger progress budget.
_LONG_RUNNING = frozenset({
    TaskType.MINE_SOURCE,
    TaskType.BUILD,
    TaskType.REPAIR,
    TaskType.UPGRADE,
})

LONG_PROGRESS_LIMIT = 1000
DEFAULT_PROGRESS_LIMIT = 100


def progress_limit_for(task_type: TaskType) -> int:
    if task_type in _LONG_RUNNING:
        return LONG_PROGRESS_LIMIT
    return DEFAULT_PROGRESS_LIMIT


@dataclass
class Task:
    """A unit of colony work. Mutated only through ``TaskStore``."""

    id: str
    type: TaskType
    target: str | None
    scope: str | None
    roles: frozenset[Role]
    priority: Priority = Priority.MEDIUM
    state: TaskState = TaskState.PENDING
    progress: int = 0
    progress_limit: int = DEFAULT_PROGRESS_LIMIT
    perpetual: bool = False
    capacity: int = 1
    assignees: list[str] = field(default_factory=list)
    created_at: int = 0
    seq: int = 0
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def is_live(self) -> bool:
        return self.state in (TaskState.PENDING, TaskState.IN_PROGRESS)

    @property
    def has_room(self) -> bool:
        return self.is_live and len(self.assignees) < self.capacity

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "target": self.target,
            "scope": self.scope,
            "roles": sorted(r.value for r in self.roles),
            "priority": int(self.priority),
            "state": self.state.value,
            "progress": self.progress,
            "progress_limit": self.progress_limit,
            "perpetual": self.perpetual,
            "capacity": self.capacity,
            "assignees": list(self.assignees),
            "created_at": self.created_at,
            "seq": self.seq,
            "payload": dict(self.payload),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        return cls(
            id=data["id"],
            type=TaskType(data["type"]),
            target=data["target"],
            scope=data["scope"],
            roles=frozenset(Role(r) for r in data["roles"]),
            priority=Priority(data["priority"]),
            state=TaskState(data["state"]),
            progress=data["progress"],
            progress_limit=data["progress_limit"],
            perpetual=data["perpetual"],
            capacity=data["capacity"],
            assignees=list(data["assignees"]),
            created_at=data["created_at"],
            seq=data["seq"],
            payload=dict(data.get("payload", {})),
        )
