"""Discovery — turn world observations into task descriptors, keep tasks honest."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

from tick_hive.types import Priority, Role, TaskType
from tick_hive.world import Entity, EntityKind

if TYPE_CHECKING:
    from tick_hive.colony import Colony
    from tick_hive.store import TaskStore
    from tick_hive.task import Task

logger = logging.getLogger(__name__)

_REPAIRABLE = frozenset({
    EntityKind.ROAD, EntityKind.CONTAINER,
    EntityKind.WALL, EntityKind.RAMPART,
})
_BULK = frozenset({EntityKind.WALL, EntityKind.RAMPART})


@dataclass(frozen=True)
class TaskDescriptor:
    """A piece of work discovered in the world, not yet a task."""

    type: TaskType
    target: str | None
    scope: str | None
    priority: Priority = Priority.MEDIUM
    roles: frozenset[Role] = frozenset()
    perpetual: bool = False
    capacity: int = 1


def register_descriptors(
    store: TaskStore, descriptors: Iterable[TaskDescriptor], tick: int = 0
) -> list[str]:
    """Create a task per descriptor unless one is already live for the same
    ``(type, target)``. Returns the ids of newly created tasks.
    """
    created = []
    for d in descriptors:
        if store.find_live(d.type, d.target) is not None:
            continue
        created.append(store.create_task(
            d.type, d.target, d.scope, d.priority, d.roles, d.perpetual,
            d.capacity, tick=tick,
        ))
    return created


def _is_own_controller(e: Entity) -> bool:
    return e.kind is EntityKind.CONTROLLER and e.owned


def _mine_task_of(colony: Colony, source_id: str) -> str | None:
    task = colony.store.find_live(TaskType.MINE_SOURCE, source_id)
    return task.id if task is not None else None


def scan_scope(colony: Colony, scope: str | None) -> list[TaskDescriptor]:
    """Everything worth doing in *scope* right now.

    A scope without an owned controller yields nothing.
    """
    world = colony.world
    config = colony.config
    if not world.find_in_scope(scope, _is_own_controller):
        return []

    found: list[TaskDescriptor] = []

    for source_id in world.find_in_scope(scope, lambda e: e.kind is EntityKind.SOURCE):
        found.append(TaskDescriptor(
            TaskType.MINE_SOURCE, source_id, scope, Priority.HIGH,
            frozenset({Role.MINER, Role.GENERALIST}), perpetual=True,
        ))
        mine_task = _mine_task_of(colony, source_id)
        stranded = [
            u for u in colony.units_in(scope, Role.MINER)
            if mine_task is not None and u.task_id == mine_task
            and not world.in_range(u.id, source_id, 1)
        ]
        if stranded:
            found.append(TaskDescriptor(
                TaskType.DELIVER_PRODUCER_UNIT, source_id, scope, Priority.HIGH,
                frozenset({Role.TAXI, Role.GENERALIST}),
            ))

    for site_id in world.find_in_scope(
        scope, lambda e: e.kind is EntityKind.CONSTRUCTION_SITE
    ):
        found.append(TaskDescriptor(
            TaskType.BUILD, site_id, scope, Priority.MEDIUM,
            frozenset({Role.BUILDER, Role.REPAIRER, Role.GENERALIST}),
            capacity=config.build_group_size,
        ))

    for structure_id in world.find_in_scope(
        scope, lambda e: e.kind in _REPAIRABLE and e.hits < e.hits_max
    ):
        structure = world.resolve(structure_id)
        bulk = structure is not None and structure.kind in _BULK
        found.append(TaskDescriptor(
            TaskType.REPAIR, structure_id, scope,
            Priority.LOW if bulk else Priority.MEDIUM,
            frozenset({Role.REPAIRER, Role.GENERALIST}),
        ))

    for controller_id in world.find_in_scope(scope, _is_own_controller):
        found.append(TaskDescriptor(
            TaskType.UPGRADE, controller_id, scope, Priority.MEDIUM,
            frozenset({Role.UPGRADER, Role.GENERALIST}), perpetual=True,
            capacity=max(1, config.cap_for(Role.UPGRADER)),
        ))

    for pile_id in world.find_in_scope(
        scope, lambda e: e.kind is EntityKind.PILE and e.energy > 0
    ):
        found.append(TaskDescriptor(
            TaskType.COLLECT_FROM_PILE, pile_id, scope, Priority.MEDIUM,
            frozenset({Role.COURIER, Role.BUILDER, Role.REPAIRER, Role.GENERALIST}),
        ))

    return found


# Task types whose vanished target means the work got done.
_DONE_WHEN_GONE = frozenset({TaskType.BUILD, TaskType.COLLECT_FROM_PILE})


def _carried(task: Task, colony: Colony) -> bool:
    """True while an assignee is finishing work that no longer needs the target."""
    for unit_id in task.assignees:
        unit = colony.unit(unit_id)
        if unit is not None and getattr(unit.phase, "detached", False):
            return True
    return False


def validate_tasks(colony: Colony) -> list[str]:
    """Retire live tasks whose target is gone or whose work is done.

    Tasks with an assignee in a detached phase are left to that unit.
    Returns the ids of the tasks that were completed or failed.
    """
    store = colony.store
    world = colony.world
    retired = []
    for task in store.tasks():
        if not task.is_live or task.target is None:
            continue
        if task.type is TaskType.SPAWN_UNIT or _carried(task, colony):
            continue
        target = world.resolve(task.target)
        if target is None:
            if task.type in _DONE_WHEN_GONE:
                store.complete(task.id)
            else:
                store.fail(task.id, f"target {task.target} no longer exists")
            retired.append(task.id)
        elif task.type is TaskType.REPAIR and target.hits >= target.hits_max:
            store.complete(task.id)
            retired.append(task.id)
        elif task.type is TaskType.COLLECT_FROM_PILE and target.energy <= 0:
            store.complete(task.id)
            retired.append(task.id)
        elif task.type is TaskType.UPGRADE and not target.owned:
            store.fail(task.id, f"controller {task.target} is no longer owned")
            retired.append(task.id)
    if retired:
        logger.debug("validation retired %d tasks", len(retired))
    return retired
