"""Tests for HiveEngine, the default systems and colony persistence."""
from __future__ import annotations

import json

import pytest
from tick_hive import (
    BodyPart,
    Colony,
    EntityKind,
    HiveConfig,
    HiveEngine,
    Role,
    SimWorld,
    SnapshotError,
    TaskState,
    TaskType,
    Unit,
    make_sweep_system,
    make_unit_system,
)

SCOPE = "W1N1"


def _world() -> SimWorld:
    world = SimWorld(scope=SCOPE)
    world.add(EntityKind.SPAWN, 0, 0, id="spawn1", energy=300, energy_capacity=300)
    world.add(EntityKind.CONTROLLER, 3, 0, id="ctrl")
    world.add(EntityKind.SOURCE, 6, 0, id="src", energy=1500, energy_capacity=1500)
    return world


def _engine(world: SimWorld, config: HiveConfig | None = None) -> HiveEngine:
    engine = HiveEngine(world, config)
    engine.colony.add_facility("spawn1")
    engine.add_system(lambda colony, ctx: world.advance())
    return engine


class TestPipeline:
    def test_first_tick_discovers_produces_and_binds(self) -> None:
        world = _world()
        engine = _engine(world)
        engine.step()
        colony = engine.colony

        assert engine.clock.tick_number == 1
        assert colony.tick == 1
        mine = colony.store.find_live(TaskType.MINE_SOURCE, "src")
        assert mine is not None
        assert colony.store.find_live(TaskType.UPGRADE, "ctrl") is not None

        worker = colony.unit("generalist_1")
        assert worker is not None
        assert worker.task_id == mine.id
        assert colony.events.query(type="unit_produced", unit_id="generalist_1")

    def test_colony_runs_for_a_while(self) -> None:
        world = _world()
        engine = _engine(world)
        engine.run(60)
        colony = engine.colony

        assert engine.clock.tick_number == 60
        assert colony.events.query(type="task_completed", task_id=colony.store.find_live(
            TaskType.MINE_SOURCE, "src").id)
        for task in colony.store.tasks():
            assert len(task.assignees) <= task.capacity
            if task.state is TaskState.PENDING:
                assert task.assignees == []
        for unit in colony.units():
            if unit.task_id is not None and unit.task_id in colony.store:
                assert unit.id in colony.store.get(unit.task_id).assignees

    def test_dead_units_release_their_task(self) -> None:
        world = _world()
        engine = HiveEngine(world, default_pipeline=False)
        engine.add_system(make_unit_system())
        colony = engine.colony
        tid = colony.store.create_task(TaskType.UPGRADE, "ctrl", SCOPE,
                                       roles=[Role.UPGRADER], perpetual=True)
        world.add_unit("u1", 2, 0, (BodyPart.WORK, BodyPart.CARRY, BodyPart.MOVE),
                       energy=50)
        colony.add_unit(Unit("u1", Role.UPGRADER, scope=SCOPE))

        engine.step()
        assert colony.store.get(tid).assignees == ["u1"]

        world.remove("u1")
        engine.step()
        assert colony.unit("u1") is None
        assert colony.store.get(tid).state is TaskState.PENDING

    def test_sweep_emits_event(self) -> None:
        engine = HiveEngine(SimWorld(), default_pipeline=False)
        engine.add_system(make_sweep_system(interval=2))
        colony = engine.colony
        tid = colony.store.create_task(TaskType.BUILD, "site")
        colony.store.complete(tid)

        engine.step()
        assert tid in colony.store
        engine.step()
        assert tid not in colony.store
        assert colony.events.last("tasks_swept").data["task_ids"] == [tid]

    def test_request_stop_halts_run(self) -> None:
        engine = HiveEngine(SimWorld(), default_pipeline=False)
        engine.add_system(lambda colony, ctx: ctx.request_stop()
                          if ctx.tick_number == 3 else None)
        engine.run(10)
        assert engine.clock.tick_number == 3

    def test_start_and_stop_hooks(self) -> None:
        engine = HiveEngine(SimWorld(), default_pipeline=False)
        seen: list[tuple[str, int]] = []
        engine.on_start(lambda colony, ctx: seen.append(("start", ctx.tick_number)))
        engine.on_stop(lambda colony, ctx: seen.append(("stop", ctx.tick_number)))
        engine.run(4)
        assert seen == [("start", 0), ("stop", 4)]


class TestConfig:
    @pytest.mark.parametrize("field", ["sweep_interval", "validate_interval",
                                       "scan_interval"])
    def test_non_positive_interval_rejected(self, field: str) -> None:
        with pytest.raises(ValueError):
            HiveConfig(**{field: 0})

    def test_missing_role_cap_is_zero(self) -> None:
        config = HiveConfig(population_caps={Role.MINER: 1})
        assert config.cap_for(Role.MINER) == 1
        assert config.cap_for(Role.TAXI) == 0


class TestSnapshot:
    def test_engine_round_trip_through_json(self) -> None:
        world = _world()
        engine = _engine(world)
        engine.run(12)
        data = json.loads(json.dumps(engine.snapshot()))

        restored = HiveEngine(world)
        restored.restore(data)
        assert restored.clock.tick_number == 12
        assert restored.colony.tick == 12
        assert restored.snapshot() == data

    def test_unit_phase_survives(self) -> None:
        world = _world()
        engine = _engine(world)
        engine.run(3)
        before = {u.id: (u.task_id, u.phase) for u in engine.colony.units()}

        other = Colony(world)
        other.restore(json.loads(json.dumps(engine.colony.snapshot())))
        after = {u.id: (u.task_id, u.phase) for u in other.units()}
        assert after == before
        assert before

    def test_restored_colony_keeps_running(self) -> None:
        world = _world()
        engine = _engine(world)
        engine.run(5)
        data = engine.snapshot()

        restored = _engine(world)
        restored.restore(data)
        restored.run(5)
        assert restored.clock.tick_number == 10

    def test_version_mismatch(self) -> None:
        engine = HiveEngine(SimWorld())
        with pytest.raises(SnapshotError):
            engine.restore({"version": 2, "tick_number": 0, "colony": {}})
        with pytest.raises(SnapshotError):
            engine.colony.restore({"version": 0})
