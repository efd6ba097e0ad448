"""ProducerDispatch — decides what each production facility makes."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tick_hive.binding import Unit
from tick_hive.body import build_body, is_viable
from tick_hive.types import (
    BodyPart,
    Outcome,
    Priority,
    Role,
    TaskDataError,
    TaskType,
)

if TYPE_CHECKING:
    from tick_hive.colony import Colony
    from tick_hive.task import Task
    from tick_hive.world import Entity

logger = logging.getLogger(__name__)

# Highest first; breaks ties between equally needed roles.
ROLE_PRIORITY: tuple[Role, ...] = (
    Role.UPGRADER,
    Role.BUILDER,
    Role.REPAIRER,
    Role.MINER,
    Role.COURIER,
    Role.TAXI,
)

_WORKER_ROLES = ROLE_PRIORITY + (Role.GENERALIST,)


def parse_spawn_payload(task: Task) -> tuple[Role, list[BodyPart]]:
    """Role and body requested by a ``SPAWN_UNIT`` task.

    Raises:
        TaskDataError: The payload is missing a field or names an unknown
            role or body part.
    """
    payload = task.payload
    if "role" not in payload or "body" not in payload:
        raise TaskDataError(task.id, "spawn task needs both 'role' and 'body'")
    try:
        role = Role(payload["role"])
        body = [BodyPart(part) for part in payload["body"]]
    except (ValueError, TypeError) as exc:
        raise TaskDataError(task.id, f"malformed spawn payload: {exc}") from exc
    if role is Role.PRODUCER or not body:
        raise TaskDataError(task.id, f"cannot produce {role.value} with body {body}")
    return role, body


class ProducerDispatch:
    """Runs once per idle production facility per tick."""

    def __init__(self, colony: Colony) -> None:
        self._colony = colony

    def run(self, facility_id: str) -> Outcome | None:
        """One production decision. ``None`` means nothing was attempted."""
        facility = self._colony.world.resolve(facility_id)
        if facility is None or facility.busy:
            return None

        spawn_task = self._next_spawn_task(facility)
        if spawn_task is not None:
            return self._execute_spawn_task(facility, spawn_task)

        role = self.select_unit_type(facility)
        if role is None:
            return None
        return self.issue_production(
            facility.id, role, build_body(role, facility.energy)
        )

    def select_unit_type(self, facility: Entity) -> Role | None:
        colony = self._colony
        scope = facility.scope
        population = {r: len(colony.units_in(scope, r)) for r in _WORKER_ROLES}
        open_tasks = {
            r: len(colony.store.list_pending(r, scope)) for r in _WORKER_ROLES
        }

        chosen: Role | None = None
        if (
            population[Role.MINER] == 0
            and population[Role.COURIER] == 0
            and population[Role.GENERALIST] < colony.config.cap_for(Role.GENERALIST)
            and any(open_tasks.values())
        ):
            chosen = Role.GENERALIST
        else:
            candidates = [
                r for r in ROLE_PRIORITY
                if population[r] < colony.config.cap_for(r) and open_tasks[r] > 0
            ]
            if candidates:
                chosen = max(
                    candidates,
                    key=lambda r: (open_tasks[r] - population[r],
                                   -ROLE_PRIORITY.index(r)),
                )

        if chosen is None:
            return None
        if not is_viable(chosen, build_body(chosen, facility.energy)):
            logger.debug("facility %s cannot afford a %s yet",
                         facility.id, chosen.value)
            return None
        return chosen

    def issue_production(
        self, facility_id: str, role: Role, body: list[BodyPart]
    ) -> Outcome:
        colony = self._colony
        name = f"{role.value}_{colony.tick}"
        outcome = colony.world.produce(facility_id, body, name)
        if outcome is Outcome.NAME_EXISTS:
            name = f"{name}_{facility_id}"
            outcome = colony.world.produce(facility_id, body, name)

        if outcome is Outcome.OK:
            facility = colony.world.resolve(facility_id)
            scope = facility.scope if facility is not None else None
            colony.add_unit(Unit(id=name, role=role, scope=scope))
            colony.events.emit(colony.tick, "unit_produced", unit_id=name,
                               role=role.value, facility_id=facility_id,
                               parts=len(body))
            logger.debug("facility %s produced %s", facility_id, name)
        elif outcome is Outcome.BUSY:
            logger.debug("facility %s busy, deferring %s", facility_id, role.value)
        else:
            logger.warning("production of %s at %s abandoned: %s",
                           role.value, facility_id, outcome.value)
        return outcome

    # --- Spawn tasks ---

    def request(
        self,
        role: Role,
        body: list[BodyPart],
        scope: str | None = None,
        priority: Priority = Priority.MEDIUM,
    ) -> str:
        """Queue an explicit production order, served before automatic picks."""
        return self._colony.store.create_task(
            TaskType.SPAWN_UNIT, None, scope, priority, (Role.PRODUCER,),
            tick=self._colony.tick,
            payload={"role": role.value, "body": [part.value for part in body]},
        )

    def _next_spawn_task(self, facility: Entity) -> Task | None:
        for task in self._colony.store.list_pending(Role.PRODUCER, facility.scope):
            if task.type is TaskType.SPAWN_UNIT:
                return task
        return None

    def _execute_spawn_task(self, facility: Entity, task: Task) -> Outcome | None:
        store = self._colony.store
        try:
            role, body = parse_spawn_payload(task)
        except TaskDataError as exc:
            store.fail(exc.task_id, str(exc))
            return None

        if not store.bind(task.id, facility.id, Role.PRODUCER):
            return None
        outcome = self.issue_production(facility.id, role, body)
        if outcome is Outcome.OK:
            store.complete(task.id)
        else:
            store.release(task.id, facility.id)
        return outcome
