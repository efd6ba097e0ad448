"""System factories for the per-tick colony pipeline.

Every system has the signature ``(colony, ctx) -> None``. The default
order is discovery, validation, production, units, sweep.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Mapping

from tick_hive.behaviors import Behavior, step_unit
from tick_hive.discovery import register_descriptors, scan_scope, validate_tasks
from tick_hive.producer import ProducerDispatch

if TYPE_CHECKING:
    from tick_hive.clock import TickContext
    from tick_hive.colony import Colony
    from tick_hive.discovery import TaskDescriptor
    from tick_hive.types import Role

System = Callable[["Colony", "TickContext"], None]


def _scopes(colony: Colony) -> list[str | None]:
    """Scopes the colony has a presence in, in first-seen order."""
    seen: dict[str | None, None] = {}
    for facility_id in colony.facilities():
        facility = colony.world.resolve(facility_id)
        if facility is not None:
            seen.setdefault(facility.scope)
    for unit in colony.units():
        seen.setdefault(unit.scope)
    return list(seen)


def make_discovery_system(
    scanner: Callable[[Colony, str | None], list[TaskDescriptor]] = scan_scope,
    interval: int | None = None,
) -> System:
    """Return a system that scans every colony scope and registers new work.

    Runs on the first tick and then every ``interval`` ticks (default
    ``config.scan_interval``).
    """

    def discovery_system(colony: Colony, ctx: TickContext) -> None:
        every = interval if interval is not None else colony.config.scan_interval
        if not ctx.every(every, offset=1):
            return
        for scope in _scopes(colony):
            register_descriptors(colony.store, scanner(colony, scope), ctx.tick_number)

    return discovery_system


def make_validation_system(interval: int | None = None) -> System:
    """Return a system that retires stale tasks periodically."""

    def validation_system(colony: Colony, ctx: TickContext) -> None:
        every = interval if interval is not None else colony.config.validate_interval
        if ctx.every(every):
            validate_tasks(colony)

    return validation_system


def make_producer_system(dispatch: ProducerDispatch | None = None) -> System:
    """Return a system that runs producer dispatch for every facility."""

    def producer_system(colony: Colony, ctx: TickContext) -> None:
        dispatcher = dispatch if dispatch is not None else ProducerDispatch(colony)
        for facility_id in colony.facilities():
            dispatcher.run(facility_id)

    return producer_system


def make_unit_system(behaviors: Mapping[Role, Behavior] | None = None) -> System:
    """Return a system that drops dead units and steps every live one."""

    def unit_system(colony: Colony, ctx: TickContext) -> None:
        colony.prune_dead()
        for unit in colony.units():
            step_unit(unit, colony, behaviors)

    return unit_system


def make_sweep_system(interval: int | None = None) -> System:
    """Return a system that purges completed tasks on a coarse period."""

    def sweep_system(colony: Colony, ctx: TickContext) -> None:
        every = interval if interval is not None else colony.config.sweep_interval
        if not ctx.every(every):
            return
        removed = colony.store.sweep_completed()
        if removed:
            colony.events.emit(ctx.tick_number, "tasks_swept", task_ids=removed)

    return sweep_system


def default_systems() -> list[System]:
    return [
        make_discovery_system(),
        make_validation_system(),
        make_producer_system(),
        make_unit_system(),
        make_sweep_system(),
    ]
