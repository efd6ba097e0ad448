"""Tests for the EventLog chronicle and the colony events feeding it."""
from __future__ import annotations

import pytest
from tick_hive import Colony, EventLog, Role, SimWorld, SnapshotError, TaskType, Unit


class TestEventLog:
    def test_bounded_log_drops_oldest(self) -> None:
        log = EventLog(max_entries=2)
        for tick in range(3):
            log.emit(tick, "tick", n=tick)
        assert len(log) == 2
        assert [e.tick for e in log.query()] == [1, 2]

    def test_unbounded_by_default(self) -> None:
        log = EventLog()
        for tick in range(50):
            log.emit(tick, "tick")
        assert len(log) == 50

    def test_query_filters(self) -> None:
        log = EventLog()
        log.emit(1, "task_bound", task_id="task_0", unit_id="a")
        log.emit(5, "task_bound", task_id="task_1", unit_id="b")
        log.emit(9, "task_released", task_id="task_0", unit_id="a")
        assert len(log.query(type="task_bound")) == 2
        assert [e.tick for e in log.query(after=1, before=9)] == [5]
        assert [e.type for e in log.query(unit_id="a")] == ["task_bound", "task_released"]

    def test_keys_are_not_payload(self) -> None:
        log = EventLog()
        event = log.emit(2, "task_bound", task_id="task_0", unit_id="a", note="x")
        assert (event.task_id, event.unit_id) == ("task_0", "a")
        assert event.data == {"note": "x"}

    def test_last(self) -> None:
        log = EventLog()
        assert log.last("x") is None
        log.emit(1, "x", v=1)
        log.emit(2, "x", v=2)
        assert log.last("x").data["v"] == 2

    def test_last_by_unit(self) -> None:
        log = EventLog()
        log.emit(1, "task_bound", task_id="task_0", unit_id="a")
        log.emit(2, "task_bound", task_id="task_1", unit_id="b")
        assert log.last("task_bound", unit_id="a").task_id == "task_0"
        assert log.last("task_bound", unit_id="c") is None

    def test_snapshot_restore(self) -> None:
        log = EventLog()
        log.emit(3, "unit_produced", unit_id="miner_3")
        other = EventLog()
        other.restore(log.snapshot())
        assert other.snapshot() == log.snapshot()

    def test_malformed_restore_keeps_entries(self) -> None:
        log = EventLog()
        log.emit(1, "task_created", task_id="task_0")
        with pytest.raises(SnapshotError):
            log.restore([{"tick": 2}])
        assert [e.task_id for e in log] == ["task_0"]


class TestColonyEvents:
    def test_store_lifecycle_is_chronicled(self) -> None:
        colony = Colony(SimWorld())
        colony.tick = 4
        tid = colony.store.create_task(TaskType.BUILD, "site", roles=[Role.BUILDER])
        unit = colony.add_unit(Unit("b1", Role.BUILDER))
        colony.binding.acquire(unit, tid)
        colony.binding.release(unit)
        colony.binding.acquire(unit, tid)
        colony.binding.complete(unit)

        types = [e.type for e in colony.events.query(task_id=tid)]
        assert types == ["task_created", "task_bound", "task_released",
                         "task_bound", "task_completed"]
        assert all(e.tick == 4 for e in colony.events.query())
        assert colony.events.task_history(tid) == types
