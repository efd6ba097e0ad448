"""tick-hive - Task lifecycle engine for tick-based colony agents."""
from __future__ import annotations

from tick_hive.behaviors import BEHAVIORS, Behavior, Handler, step_unit
from tick_hive.binding import TaskBinding, Unit
from tick_hive.body import body_cost, build_body, is_viable
from tick_hive.clock import Clock, TickContext
from tick_hive.colony import Colony
from tick_hive.config import HiveConfig
from tick_hive.discovery import (
    TaskDescriptor,
    register_descriptors,
    scan_scope,
    validate_tasks,
)
from tick_hive.engine import HiveEngine
from tick_hive.events import Event, EventLog
from tick_hive.matcher import TaskMatcher
from tick_hive.phases import (
    Collecting,
    Delivering,
    Phase,
    SeekDestination,
    SeekSource,
    Towing,
)
from tick_hive.producer import ProducerDispatch
from tick_hive.sim import SimWorld
from tick_hive.store import TaskStore
from tick_hive.systems import (
    System,
    default_systems,
    make_discovery_system,
    make_producer_system,
    make_sweep_system,
    make_unit_system,
    make_validation_system,
)
from tick_hive.task import Task
from tick_hive.transfer import run_transfer
from tick_hive.types import (
    BodyPart,
    HiveError,
    Outcome,
    Priority,
    Role,
    SnapshotError,
    Status,
    TaskDataError,
    TaskState,
    TaskType,
)
from tick_hive.world import Entity, EntityKind, World

__all__ = [
    "BEHAVIORS",
    "Behavior",
    "BodyPart",
    "Clock",
    "Collecting",
    "Colony",
    "Delivering",
    "Entity",
    "EntityKind",
    "Event",
    "EventLog",
    "Handler",
    "HiveConfig",
    "HiveEngine",
    "HiveError",
    "Outcome",
    "Phase",
    "Priority",
    "ProducerDispatch",
    "Role",
    "SeekDestination",
    "SeekSource",
    "SimWorld",
    "SnapshotError",
    "Status",
    "System",
    "Task",
    "TaskBinding",
    "TaskDataError",
    "TaskDescriptor",
    "TaskMatcher",
    "TaskState",
    "TaskStore",
    "TaskType",
    "TickContext",
    "Towing",
    "Unit",
    "World",
    "body_cost",
    "build_body",
    "default_systems",
    "is_viable",
    "make_discovery_system",
    "make_producer_system",
    "make_sweep_system",
    "make_unit_system",
    "make_validation_system",
    "register_descriptors",
    "run_transfer",
    "scan_scope",
    "step_unit",
    "validate_tasks",
]
