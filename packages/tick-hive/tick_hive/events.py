"""EventLog — chronicle of task lifecycle and production events.

Every entry is keyed by the task and/or unit it concerns, so the history of
one task or one unit can be read back without scanning payloads.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Iterator

from tick_hive.types import SnapshotError


@dataclass(frozen=True)
class Event:
    tick: int
    type: str
    task_id: str | None = None
    unit_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tick": self.tick,
            "type": self.type,
            "task_id": self.task_id,
            "unit_id": self.unit_id,
            "data": dict(self.data),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Event:
        return cls(
            tick=data["tick"],
            type=data["type"],
            task_id=data.get("task_id"),
            unit_id=data.get("unit_id"),
            data=dict(data.get("data", {})),
        )


class EventLog:
    """Bounded record of what happened to tasks and units.

    ``max_entries`` of 0 keeps everything; otherwise the oldest entries are
    dropped first.
    """

    def __init__(self, max_entries: int = 0) -> None:
        self._entries: deque[Event] = deque(maxlen=max_entries or None)

    def emit(
        self,
        tick: int,
        type: str,
        *,
        task_id: str | None = None,
        unit_id: str | None = None,
        **data: Any,
    ) -> Event:
        event = Event(tick, type, task_id, unit_id, data)
        self._entries.append(event)
        return event

    def query(
        self,
        type: str | None = None,
        *,
        task_id: str | None = None,
        unit_id: str | None = None,
        after: int | None = None,
        before: int | None = None,
    ) -> list[Event]:
        """Events matching every given key, oldest first.

        ``after`` and ``before`` bound the tick window exclusively.
        """
        return [
            e for e in self._entries
            if (type is None or e.type == type)
            and (task_id is None or e.task_id == task_id)
            and (unit_id is None or e.unit_id == unit_id)
            and (after is None or e.tick > after)
            and (before is None or e.tick < before)
        ]

    def last(
        self,
        type: str,
        *,
        task_id: str | None = None,
        unit_id: str | None = None,
    ) -> Event | None:
        for e in reversed(self._entries):
            if (
                e.type == type
                and (task_id is None or e.task_id == task_id)
                and (unit_id is None or e.unit_id == unit_id)
            ):
                return e
        return None

    def task_history(self, task_id: str) -> list[str]:
        """Event types recorded for one task, in order."""
        return [e.type for e in self._entries if e.task_id == task_id]

    def snapshot(self) -> list[dict[str, Any]]:
        return [e.to_dict() for e in self._entries]

    def restore(self, data: list[dict[str, Any]]) -> None:
        try:
            events = [Event.from_dict(d) for d in data]
        except (KeyError, TypeError) as exc:
            raise SnapshotError(f"Malformed event log entry: {exc!r}") from exc
        self._entries.clear()
        self._entries.extend(events)

    def __iter__(self) -> Iterator[Event]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
