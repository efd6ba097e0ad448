"""Transfer-energy machine: collect energy somewhere, deliver it somewhere else.

Phases cycle ``SeekSource -> Collecting -> SeekDestination -> Delivering``.
A finished delivery finishes the task, so the unit is matched afresh.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tick_hive.phases import Collecting, Delivering, SeekDestination, SeekSource
from tick_hive.types import Outcome, Status, TaskType
from tick_hive.world import Entity, EntityKind

if TYPE_CHECKING:
    from tick_hive.binding import Unit
    from tick_hive.colony import Colony
    from tick_hive.task import Task

logger = logging.getLogger(__name__)

_COLLECT_METHODS: dict[EntityKind, str] = {
    EntityKind.PILE: "pickup",
    EntityKind.CONTAINER: "withdraw",
    EntityKind.STORAGE: "withdraw",
    EntityKind.SOURCE: "harvest",
}

# Task types whose target is the place to collect from.
_PINNED = frozenset({TaskType.COLLECT_FROM_PILE, TaskType.MINE_SOURCE})

_STORES = frozenset({
    EntityKind.SPAWN, EntityKind.EXTENSION,
    EntityKind.STORAGE, EntityKind.CONTAINER,
})


def _is_pile(e: Entity) -> bool:
    return e.kind is EntityKind.PILE and e.energy > 0


def _is_stocked_store(e: Entity) -> bool:
    return e.kind in (EntityKind.CONTAINER, EntityKind.STORAGE) and e.energy > 0


def _is_active_source(e: Entity) -> bool:
    return e.kind is EntityKind.SOURCE and e.energy > 0


def _is_hungry_producer(e: Entity) -> bool:
    return (
        e.kind in (EntityKind.SPAWN, EntityKind.EXTENSION)
        and e.owned and e.free_capacity > 0
    )


def _is_hungry_storage(e: Entity) -> bool:
    return e.kind is EntityKind.STORAGE and e.owned and e.free_capacity > 0


def _is_own_controller(e: Entity) -> bool:
    return e.kind is EntityKind.CONTROLLER and e.owned


def run_transfer(
    unit: Unit, task: Task, target: Entity | None, colony: Colony
) -> Status:
    phase = unit.phase
    if phase is None:
        phase = unit.phase = SeekSource()

    if isinstance(phase, SeekSource):
        return _seek_source(unit, task, target, colony)
    if isinstance(phase, Collecting):
        return _collect(unit, phase, colony)
    if isinstance(phase, SeekDestination):
        return _seek_destination(unit, task, target, colony)
    if isinstance(phase, Delivering):
        return _deliver(unit, task, phase, colony)

    # A phase left over from another machine: restart the cycle.
    unit.phase = SeekSource()
    return Status.ADVANCE


def _seek_source(
    unit: Unit, task: Task, target: Entity | None, colony: Colony
) -> Status:
    world = colony.world
    me = world.resolve(unit.id)
    if me is None:
        return Status.RELEASE
    if me.is_full:
        unit.phase = SeekDestination()
        return Status.ADVANCE

    if task.type in _PINNED:
        if target is None:
            if task.target is None:
                return Status.FAILED
            # Pinned source is gone; deliver what we have.
            if me.is_empty:
                return Status.RELEASE
            unit.phase = SeekDestination()
            return Status.ADVANCE
        method = _COLLECT_METHODS.get(target.kind)
        if method is None:
            return Status.FAILED
        if target.energy > 0:
            unit.phase = Collecting(source_id=target.id, method=method)
            return Status.ADVANCE
    else:
        for predicate in (_is_pile, _is_stocked_store, _is_active_source):
            source_id = world.find_nearest(unit.id, predicate)
            if source_id is not None:
                source = world.resolve(source_id)
                if source is not None:
                    unit.phase = Collecting(
                        source_id=source_id, method=_COLLECT_METHODS[source.kind]
                    )
                    return Status.ADVANCE

    if not me.is_empty:
        unit.phase = SeekDestination()
        return Status.ADVANCE
    return Status.CONTINUE


def _collect(unit: Unit, phase: Collecting, colony: Colony) -> Status:
    world = colony.world
    source = world.resolve(phase.source_id)
    if source is None:
        _after_source_lost(unit, colony)
        return Status.ADVANCE
    if not world.in_range(unit.id, source.id, 1):
        world.move(unit.id, source.id)
        return Status.CONTINUE

    action = getattr(world, phase.method)
    outcome = action(unit.id, source.id)
    if outcome is Outcome.OK:
        me = world.resolve(unit.id)
        if me is None:
            return Status.RELEASE
        after = world.resolve(source.id)
        if me.is_full or after is None or after.is_empty:
            unit.phase = SeekDestination()
    elif outcome is Outcome.FULL:
        unit.phase = SeekDestination()
    elif outcome in (Outcome.NO_RESOURCE, Outcome.INVALID_TARGET):
        _after_source_lost(unit, colony)
    elif outcome is Outcome.NOT_IN_RANGE:
        world.move(unit.id, source.id)
    return Status.CONTINUE


def _after_source_lost(unit: Unit, colony: Colony) -> None:
    me = colony.world.resolve(unit.id)
    if me is not None and not me.is_empty:
        unit.phase = SeekDestination()
    else:
        unit.phase = SeekSource()


def _find_destination(
    unit: Unit, task: Task, target: Entity | None, colony: Colony
) -> str | None:
    world = colony.world
    if (
        task.type is TaskType.TRANSPORT
        and target is not None
        and target.kind in _STORES
        and target.free_capacity > 0
    ):
        return target.id
    for predicate in (_is_hungry_producer, _is_hungry_storage):
        found = world.find_nearest(unit.id, predicate)
        if found is not None:
            return found
    controllers = world.find_in_range(unit.id, 1, _is_own_controller)
    return controllers[0] if controllers else None


def _seek_destination(
    unit: Unit, task: Task, target: Entity | None, colony: Colony
) -> Status:
    destination = _find_destination(unit, task, target, colony)
    if destination is None:
        # Nothing to deliver to: end the cycle.
        logger.debug("unit %s found no destination, finishing %s", unit.id, task.id)
        unit.phase = None
        return Status.FINISHED
    me = colony.world.resolve(unit.id)
    if me is None:
        return Status.RELEASE
    if me.is_empty:
        unit.phase = SeekSource()
        return Status.ADVANCE
    unit.phase = Delivering(destination_id=destination)
    return Status.ADVANCE


def _deliver(unit: Unit, task: Task, phase: Delivering, colony: Colony) -> Status:
    world = colony.world
    me = world.resolve(unit.id)
    if me is None:
        return Status.RELEASE
    if me.is_empty:
        unit.phase = SeekSource()
        return Status.ADVANCE
    destination = world.resolve(phase.destination_id)
    if destination is None:
        unit.phase = SeekDestination()
        return Status.ADVANCE

    is_controller = destination.kind is EntityKind.CONTROLLER
    reach = 3 if is_controller else 1
    if not world.in_range(unit.id, destination.id, reach):
        world.move(unit.id, destination.id)
        return Status.CONTINUE

    if is_controller:
        outcome = world.upgrade(unit.id, destination.id)
    else:
        outcome = world.transfer(unit.id, destination.id)

    if outcome is Outcome.OK:
        after = world.resolve(unit.id)
        remaining = after.energy if after is not None else 0
        colony.binding.report_progress(unit, task.progress + (me.energy - remaining))
        now = world.resolve(destination.id)
        if (
            remaining <= 0
            or now is None
            or (not is_controller and now.is_full)
        ):
            unit.phase = None
            return Status.FINISHED
        return Status.CONTINUE
    if outcome in (Outcome.FULL, Outcome.INVALID_TARGET):
        controllers = world.find_in_range(unit.id, 1, _is_own_controller)
        if controllers and controllers[0] != destination.id:
            unit.phase = Delivering(destination_id=controllers[0])
            return Status.ADVANCE
        unit.phase = None
        return Status.FINISHED
    if outcome is Outcome.NOT_IN_RANGE:
        world.move(unit.id, destination.id)
    elif outcome is Outcome.NO_RESOURCE:
        unit.phase = SeekSource()
    return Status.CONTINUE
