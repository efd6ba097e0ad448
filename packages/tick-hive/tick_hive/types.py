"""Shared enums, aliases and exceptions for tick-hive."""
from __future__ import annotations

from enum import Enum, IntEnum

UnitId = str
TaskId = str
EntityId = str


class TaskType(Enum):
    MINE_SOURCE = "mine_source"
    DELIVER_PRODUCER_UNIT = "deliver_producer_unit"
    COLLECT_FROM_PILE = "collect_from_pile"
    BUILD = "build"
    REPAIR = "repair"
    UPGRADE = "upgrade"
    TRANSPORT = "transport"
    SPAWN_UNIT = "spawn_unit"
    DEFEND = "defend"


class TaskState(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class Priority(IntEnum):
    """Task priority. Higher value wins."""

    LOW = 1
    MEDIUM = 2
    HIGH = 3


class Role(Enum):
    MINER = "miner"
    TAXI = "taxi"
    COURIER = "courier"
    BUILDER = "builder"
    REPAIRER = "repairer"
    UPGRADER = "upgrader"
    GENERALIST = "generalist"
    PRODUCER = "producer"


class Outcome(Enum):
    """Result code of a world action."""

    OK = "ok"
    NOT_IN_RANGE = "not_in_range"
    NO_RESOURCE = "no_resource"
    FULL = "full"
    INVALID_TARGET = "invalid_target"
    BUSY = "busy"
    NAME_EXISTS = "name_exists"


class Status(Enum):
    """Result of running a task handler for one tick."""

    CONTINUE = "continue"
    ADVANCE = "advance"
    FINISHED = "finished"
    RELEASE = "release"
    FAILED = "failed"


class BodyPart(Enum):
    WORK = "work"
    CARRY = "carry"
    MOVE = "move"


PART_COSTS: dict[BodyPart, int] = {
    BodyPart.WORK: 100,
    BodyPart.CARRY: 50,
    BodyPart.MOVE: 50,
}


class HiveError(Exception):
    """Base class for tick-hive errors."""


class TaskDataError(HiveError):
    """Raised when a task carries structurally invalid data."""

    def __init__(self, task_id: TaskId, message: str) -> None:
        self.task_id = task_id
        super().__init__(message)


class SnapshotError(HiveError):
    """Raised on restore failures (version mismatch, malformed data)."""
