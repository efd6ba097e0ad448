"""Role behaviors: one handler table per role and the shared step skeleton.

A handler receives ``(unit, task, target, colony)`` where ``target`` is the
freshly resolved task target (``None`` for target-less tasks, or when the
unit is in a phase that no longer needs it). It performs at most a short
fixed sequence of world actions and returns a ``Status``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Mapping

from tick_hive.phases import Towing
from tick_hive.transfer import run_transfer
from tick_hive.types import Outcome, Role, Status, TaskType
from tick_hive.world import Entity, EntityKind

if TYPE_CHECKING:
    from tick_hive.binding import Unit
    from tick_hive.colony import Colony
    from tick_hive.task import Task

logger = logging.getLogger(__name__)

Handler = Callable[["Unit", "Task", "Entity | None", "Colony"], Status]

# Phase changes without a world action are re-run in the same tick, up to
# this many times.
MAX_TRANSITIONS = 4


@dataclass(frozen=True)
class Behavior:
    """A role's capability set: which task types it runs, and how."""

    role: Role
    handlers: Mapping[TaskType, Handler] = field(default_factory=dict)

    def handler_for(self, task_type: TaskType) -> Handler | None:
        return self.handlers.get(task_type)

    @property
    def task_types(self) -> frozenset[TaskType]:
        return frozenset(self.handlers)


# --- Miner ---

def mine(unit: Unit, task: Task, source: Entity | None, colony: Colony) -> Status:
    """Harvest in place. A miner has no mobility and waits for a taxi."""
    if source is None:
        return Status.FAILED
    world = colony.world
    if not world.in_range(unit.id, source.id, 1):
        return Status.CONTINUE

    outcome = world.harvest(unit.id, source.id)
    if outcome is Outcome.OK:
        colony.binding.report_progress(unit, task.progress + 1)
        return Status.CONTINUE
    if outcome is Outcome.NO_RESOURCE:
        return Status.FINISHED
    if outcome is Outcome.INVALID_TARGET:
        return Status.RELEASE
    return Status.CONTINUE


# --- Taxi ---

def _miners_for(source_id: str, colony: Colony) -> list[Unit]:
    """Miners in the roster bound to a mining task on *source_id*."""
    miners = []
    for other in colony.units():
        if other.role is not Role.MINER:
            continue
        bound = colony.binding.task_of(other)
        if (
            bound is not None
            and bound.type is TaskType.MINE_SOURCE
            and bound.target == source_id
        ):
            miners.append(other)
    return miners


def deliver_producer_unit(
    unit: Unit, task: Task, source: Entity | None, colony: Colony
) -> Status:
    """Tow a freshly produced miner onto its source."""
    if source is None:
        return Status.FAILED
    world = colony.world

    phase = unit.phase
    if isinstance(phase, Towing):
        passenger = colony.unit(phase.passenger_id)
        if passenger is None or world.resolve(passenger.id) is None:
            unit.phase = None
            return Status.ADVANCE
        if world.in_range(passenger.id, source.id, 1):
            return Status.FINISHED
        if not world.in_range(unit.id, passenger.id, 1):
            world.move(unit.id, passenger.id)
            return Status.CONTINUE
        outcome = world.tow(unit.id, passenger.id, source.id)
        if outcome is Outcome.INVALID_TARGET:
            return Status.RELEASE
        if outcome is Outcome.OK and world.in_range(passenger.id, source.id, 1):
            return Status.FINISHED
        return Status.CONTINUE

    miners = _miners_for(source.id, colony)
    waiting = {m.id for m in miners if not world.in_range(m.id, source.id, 1)}
    if not waiting:
        return Status.FINISHED if miners else Status.RELEASE
    passenger_id = world.find_nearest(unit.id, lambda e: e.id in waiting)
    if passenger_id is None:
        return Status.CONTINUE
    unit.phase = Towing(passenger_id=passenger_id)
    return Status.ADVANCE


# --- Work machine (build / repair / upgrade) ---

_WORK_ACTIONS: dict[TaskType, str] = {
    TaskType.BUILD: "build",
    TaskType.REPAIR: "repair",
    TaskType.UPGRADE: "upgrade",
}


def _is_stocked_store(e: Entity) -> bool:
    return e.kind in (EntityKind.STORAGE, EntityKind.CONTAINER) and e.energy > 0


def _is_stocked_spawn(e: Entity) -> bool:
    return e.kind is EntityKind.SPAWN and e.owned and e.energy > 0


def refill(unit: Unit, colony: Colony) -> Status:
    """Fetch energy from the nearest store, falling back to a spawn."""
    world = colony.world
    store_id = world.find_nearest(unit.id, _is_stocked_store)
    if store_id is None:
        store_id = world.find_nearest(unit.id, _is_stocked_spawn)
    if store_id is None:
        return Status.CONTINUE
    if world.withdraw(unit.id, store_id) is Outcome.NOT_IN_RANGE:
        world.move(unit.id, store_id)
    return Status.CONTINUE


def _work_done(task: Task, after: Entity | None) -> Status:
    if task.type is TaskType.BUILD:
        # A finished site turns into its structure and stops resolving.
        if after is None or after.progress >= after.progress_total:
            return Status.FINISHED
        return Status.CONTINUE
    if task.type is TaskType.REPAIR:
        if after is None:
            return Status.RELEASE
        return Status.FINISHED if after.hits >= after.hits_max else Status.CONTINUE
    return Status.CONTINUE if task.perpetual else Status.FINISHED


def work(unit: Unit, task: Task, target: Entity | None, colony: Colony) -> Status:
    if target is None:
        return Status.FAILED
    world = colony.world
    me = world.resolve(unit.id)
    if me is None:
        return Status.RELEASE
    if me.is_empty:
        return refill(unit, colony)

    action = getattr(world, _WORK_ACTIONS[task.type])
    outcome = action(unit.id, target.id)
    if outcome is Outcome.OK:
        colony.binding.report_progress(unit, task.progress + 1)
        return _work_done(task, world.resolve(target.id))
    if outcome is Outcome.NOT_IN_RANGE:
        world.move(unit.id, target.id)
        return Status.CONTINUE
    if outcome is Outcome.NO_RESOURCE:
        return refill(unit, colony)
    if outcome is Outcome.INVALID_TARGET:
        return Status.RELEASE
    if outcome is Outcome.FULL and task.type is TaskType.REPAIR:
        return Status.FINISHED
    return Status.CONTINUE


# --- Registry ---

BEHAVIORS: dict[Role, Behavior] = {
    Role.MINER: Behavior(Role.MINER, {TaskType.MINE_SOURCE: mine}),
    Role.TAXI: Behavior(
        Role.TAXI, {TaskType.DELIVER_PRODUCER_UNIT: deliver_producer_unit}
    ),
    Role.COURIER: Behavior(Role.COURIER, {
        TaskType.TRANSPORT: run_transfer,
        TaskType.COLLECT_FROM_PILE: run_transfer,
    }),
    Role.BUILDER: Behavior(Role.BUILDER, {
        TaskType.BUILD: work,
        TaskType.REPAIR: work,
        TaskType.COLLECT_FROM_PILE: run_transfer,
    }),
    Role.REPAIRER: Behavior(Role.REPAIRER, {
        TaskType.REPAIR: work,
        TaskType.BUILD: work,
        TaskType.COLLECT_FROM_PILE: run_transfer,
    }),
    Role.UPGRADER: Behavior(Role.UPGRADER, {TaskType.UPGRADE: work}),
    Role.GENERALIST: Behavior(Role.GENERALIST, {
        TaskType.MINE_SOURCE: run_transfer,
        TaskType.DELIVER_PRODUCER_UNIT: deliver_producer_unit,
        TaskType.COLLECT_FROM_PILE: run_transfer,
        TaskType.TRANSPORT: run_transfer,
        TaskType.BUILD: work,
        TaskType.REPAIR: work,
        TaskType.UPGRADE: work,
    }),
}


# --- Skeleton ---

def step_unit(
    unit: Unit,
    colony: Colony,
    behaviors: Mapping[Role, Behavior] | None = None,
) -> Status | None:
    """Run one tick for *unit*. Returns ``None`` when the unit stays idle."""
    registry = behaviors if behaviors is not None else BEHAVIORS
    behavior = registry.get(unit.role)
    if behavior is None:
        return None
    binding = colony.binding

    if not binding.has_task(unit):
        if binding.acquire_best(unit, colony.matcher) is None:
            return None

    task = binding.task_of(unit)
    if task is None or not task.is_live or unit.id not in task.assignees:
        # Swept, failed, or reset under us.
        binding.forget(unit)
        return None

    target: Entity | None = None
    if task.target is not None:
        target = colony.world.resolve(task.target)
        if target is None and not getattr(unit.phase, "detached", False):
            logger.debug("unit %s lost target %s of %s", unit.id, task.target, task.id)
            binding.release(unit)
            return Status.RELEASE

    handler = behavior.handler_for(task.type)
    if handler is None:
        logger.debug("%s has no handler for %s", unit.role.value, task.type.value)
        binding.release(unit)
        return Status.RELEASE

    status = handler(unit, task, target, colony)
    transitions = 0
    while status is Status.ADVANCE and transitions < MAX_TRANSITIONS:
        transitions += 1
        status = handler(unit, task, target, colony)

    if status is Status.FINISHED:
        binding.complete(unit)
    elif status is Status.RELEASE:
        binding.release(unit)
    elif status is Status.FAILED:
        binding.fail(unit, f"{unit.role.value} cannot run {task.type.value} "
                           f"on {task.target!r}")
    return status
