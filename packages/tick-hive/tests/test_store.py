"""Tests for TaskStore - creation, ordering, lifecycle and persistence."""
from __future__ import annotations

import json

import pytest
from tick_hive import Priority, Role, SnapshotError, TaskState, TaskStore, TaskType


@pytest.fixture
def store() -> TaskStore:
    return TaskStore()


def _assert_invariants(store: TaskStore) -> None:
    for task in store.tasks():
        assert len(task.assignees) <= task.capacity
        assert len(set(task.assignees)) == len(task.assignees)
        if task.state is TaskState.PENDING:
            assert task.assignees == []
        if task.state is TaskState.IN_PROGRESS:
            assert task.assignees
        assert task.progress <= task.progress_limit


class TestCreate:
    def test_create_returns_unique_ids(self, store: TaskStore) -> None:
        a = store.create_task(TaskType.BUILD, "site_1")
        b = store.create_task(TaskType.BUILD, "site_2")
        assert a != b
        assert len(store) == 2

    def test_new_task_is_pending(self, store: TaskStore) -> None:
        tid = store.create_task(TaskType.UPGRADE, "ctrl", roles=[Role.UPGRADER])
        task = store.get(tid)
        assert task is not None
        assert task.state is TaskState.PENDING
        assert task.progress == 0
        assert task.assignees == []
        assert task.roles == frozenset({Role.UPGRADER})

    def test_progress_limit_by_type(self, store: TaskStore) -> None:
        mine = store.get(store.create_task(TaskType.MINE_SOURCE, "src"))
        pile = store.get(store.create_task(TaskType.COLLECT_FROM_PILE, "pile"))
        assert mine.progress_limit == 1000
        assert pile.progress_limit == 100

    def test_capacity_below_one_rejected(self, store: TaskStore) -> None:
        with pytest.raises(ValueError):
            store.create_task(TaskType.BUILD, "site", capacity=0)

    def test_guard_returns_existing_live_task(self, store: TaskStore) -> None:
        first = store.create_task(TaskType.BUILD, "site", guard=True)
        second = store.create_task(TaskType.BUILD, "site", guard=True)
        assert first == second
        assert len(store) == 1

    def test_guard_ignores_other_types(self, store: TaskStore) -> None:
        store.create_task(TaskType.MINE_SOURCE, "src", guard=True)
        store.create_task(TaskType.DELIVER_PRODUCER_UNIT, "src", guard=True)
        assert len(store) == 2

    def test_payload_is_copied(self, store: TaskStore) -> None:
        payload = {"role": "miner"}
        tid = store.create_task(TaskType.SPAWN_UNIT, None, payload=payload)
        payload["role"] = "taxi"
        assert store.get(tid).payload == {"role": "miner"}

    def test_get_unknown_returns_none(self, store: TaskStore) -> None:
        assert store.get("task_999") is None
        assert store.get(None) is None


class TestListPending:
    def test_order_priority_then_age(self, store: TaskStore) -> None:
        low = store.create_task(TaskType.REPAIR, "a", priority=Priority.LOW,
                                roles=[Role.REPAIRER], tick=5)
        high = store.create_task(TaskType.REPAIR, "b", priority=Priority.HIGH,
                                 roles=[Role.REPAIRER], tick=1)
        medium = store.create_task(TaskType.REPAIR, "c", priority=Priority.MEDIUM,
                                   roles=[Role.REPAIRER], tick=3)
        ids = [t.id for t in store.list_pending(Role.REPAIRER)]
        assert ids == [high, medium, low]

    def test_same_tick_keeps_creation_order(self, store: TaskStore) -> None:
        first = store.create_task(TaskType.BUILD, "a", roles=[Role.BUILDER], tick=2)
        second = store.create_task(TaskType.BUILD, "b", roles=[Role.BUILDER], tick=2)
        ids = [t.id for t in store.list_pending(Role.BUILDER)]
        assert ids == [first, second]

    def test_filters_by_role(self, store: TaskStore) -> None:
        store.create_task(TaskType.BUILD, "a", roles=[Role.BUILDER])
        assert store.list_pending(Role.MINER) == []

    def test_filters_by_scope(self, store: TaskStore) -> None:
        here = store.create_task(TaskType.BUILD, "a", scope="W1N1", roles=[Role.BUILDER])
        store.create_task(TaskType.BUILD, "b", scope="W2N2", roles=[Role.BUILDER])
        anywhere = store.create_task(TaskType.BUILD, "c", roles=[Role.BUILDER])
        ids = {t.id for t in store.list_pending(Role.BUILDER, "W1N1")}
        assert ids == {here, anywhere}

    def test_full_task_not_listed(self, store: TaskStore) -> None:
        tid = store.create_task(TaskType.BUILD, "a", roles=[Role.BUILDER])
        store.bind(tid, "u1", Role.BUILDER)
        assert store.list_pending(Role.BUILDER) == []

    def test_group_task_with_room_still_listed(self, store: TaskStore) -> None:
        tid = store.create_task(TaskType.BUILD, "a", roles=[Role.BUILDER], capacity=3)
        store.bind(tid, "u1", Role.BUILDER)
        assert [t.id for t in store.list_pending(Role.BUILDER)] == [tid]


class TestBindRelease:
    def test_bind_moves_to_in_progress(self, store: TaskStore) -> None:
        tid = store.create_task(TaskType.BUILD, "a", roles=[Role.BUILDER])
        assert store.bind(tid, "u1", Role.BUILDER)
        task = store.get(tid)
        assert task.state is TaskState.IN_PROGRESS
        assert task.assignees == ["u1"]
        _assert_invariants(store)

    def test_bind_rejects_full(self, store: TaskStore) -> None:
        tid = store.create_task(TaskType.BUILD, "a", roles=[Role.BUILDER])
        store.bind(tid, "u1", Role.BUILDER)
        assert not store.bind(tid, "u2", Role.BUILDER)
        assert store.get(tid).assignees == ["u1"]

    def test_bind_rejects_wrong_role(self, store: TaskStore) -> None:
        tid = store.create_task(TaskType.BUILD, "a", roles=[Role.BUILDER])
        assert not store.bind(tid, "u1", Role.MINER)
        assert store.get(tid).state is TaskState.PENDING

    def test_bind_rejects_duplicate_unit(self, store: TaskStore) -> None:
        tid = store.create_task(TaskType.BUILD, "a", roles=[Role.BUILDER], capacity=2)
        store.bind(tid, "u1", Role.BUILDER)
        assert not store.bind(tid, "u1", Role.BUILDER)
        assert store.get(tid).assignees == ["u1"]

    def test_bind_rejects_missing_task(self, store: TaskStore) -> None:
        assert not store.bind("task_42", "u1", Role.BUILDER)

    def test_release_last_assignee_reverts_to_pending(self, store: TaskStore) -> None:
        tid = store.create_task(TaskType.BUILD, "a", roles=[Role.BUILDER])
        store.bind(tid, "u1", Role.BUILDER)
        assert store.release(tid, "u1")
        assert store.get(tid).state is TaskState.PENDING
        _assert_invariants(store)

    def test_release_one_of_two_stays_in_progress(self, store: TaskStore) -> None:
        tid = store.create_task(TaskType.BUILD, "a", roles=[Role.BUILDER], capacity=2)
        store.bind(tid, "u1", Role.BUILDER)
        store.bind(tid, "u2", Role.BUILDER)
        store.release(tid, "u1")
        task = store.get(tid)
        assert task.assignees == ["u2"]
        assert task.state is TaskState.IN_PROGRESS
        _assert_invariants(store)

    def test_release_unknown_unit_is_noop(self, store: TaskStore) -> None:
        tid = store.create_task(TaskType.BUILD, "a", roles=[Role.BUILDER])
        assert not store.release(tid, "ghost")


class TestCompleteFail:
    def test_complete_non_perpetual(self, store: TaskStore) -> None:
        tid = store.create_task(TaskType.BUILD, "a", roles=[Role.BUILDER])
        store.bind(tid, "u1", Role.BUILDER)
        assert store.complete(tid)
        task = store.get(tid)
        assert task.state is TaskState.COMPLETED
        assert task.assignees == []

    def test_complete_perpetual_resets(self, store: TaskStore) -> None:
        tid = store.create_task(TaskType.MINE_SOURCE, "src", roles=[Role.MINER],
                                perpetual=True)
        store.bind(tid, "m1", Role.MINER)
        store.update_progress(tid, 40)
        store.complete(tid)
        task = store.get(tid)
        assert task.state is TaskState.PENDING
        assert task.progress == 0
        assert task.assignees == []
        assert [t.id for t in store.list_pending(Role.MINER)] == [tid]

    def test_complete_twice_is_rejected(self, store: TaskStore) -> None:
        tid = store.create_task(TaskType.BUILD, "a")
        store.complete(tid)
        assert not store.complete(tid)

    def test_fail_purges(self, store: TaskStore) -> None:
        tid = store.create_task(TaskType.SPAWN_UNIT, None, roles=[Role.PRODUCER])
        assert store.fail(tid, "bad payload")
        assert tid not in store
        assert store.find_live(TaskType.SPAWN_UNIT, None) is None

    def test_fail_fires_callback_with_reason(self, store: TaskStore) -> None:
        seen: list[tuple[str, str]] = []
        store.on_fail(lambda task, reason: seen.append((task.state.value, reason)))
        tid = store.create_task(TaskType.BUILD, "a")
        store.fail(tid, "gone")
        assert seen == [("failed", "gone")]


class TestProgress:
    def test_progress_requires_in_progress(self, store: TaskStore) -> None:
        tid = store.create_task(TaskType.BUILD, "a", roles=[Role.BUILDER])
        assert not store.update_progress(tid, 5)
        assert store.get(tid).progress == 0

    def test_progress_clamped_to_limit(self, store: TaskStore) -> None:
        tid = store.create_task(TaskType.TRANSPORT, None, roles=[Role.COURIER])
        store.bind(tid, "c1", Role.COURIER)
        for value in (10, 50, 99, 100, 150, 1000):
            store.update_progress(tid, value)
            assert store.get(tid).progress <= 100
        assert store.get(tid).progress == 100

    def test_progress_never_decreases(self, store: TaskStore) -> None:
        tid = store.create_task(TaskType.BUILD, "a", roles=[Role.BUILDER])
        store.bind(tid, "u1", Role.BUILDER)
        store.update_progress(tid, 30)
        store.update_progress(tid, 10)
        assert store.get(tid).progress == 30


class TestSweep:
    def test_sweep_removes_completed_only(self, store: TaskStore) -> None:
        done = store.create_task(TaskType.BUILD, "a")
        live = store.create_task(TaskType.BUILD, "b")
        loop = store.create_task(TaskType.UPGRADE, "c", perpetual=True)
        store.complete(done)
        store.complete(loop)
        assert store.sweep_completed() == [done]
        assert done not in store
        assert live in store
        assert loop in store


class TestCallbacks:
    def test_lifecycle_callbacks_fire_in_order(self, store: TaskStore) -> None:
        log: list[str] = []
        store.on_create(lambda t: log.append(f"create:{t.id}"))
        store.on_bind(lambda t, uid: log.append(f"bind:{uid}"))
        store.on_release(lambda t, uid: log.append(f"release:{uid}"))
        store.on_complete(lambda t: log.append(f"complete:{t.id}"))

        tid = store.create_task(TaskType.BUILD, "a", roles=[Role.BUILDER])
        store.bind(tid, "u1", Role.BUILDER)
        store.release(tid, "u1")
        store.bind(tid, "u2", Role.BUILDER)
        store.complete(tid)
        assert log == [
            f"create:{tid}", "bind:u1", "release:u1", "bind:u2", f"complete:{tid}",
        ]


class TestSnapshot:
    def test_round_trip_is_verbatim(self, store: TaskStore) -> None:
        a = store.create_task(TaskType.BUILD, "a", scope="W1N1",
                              roles=[Role.BUILDER, Role.REPAIRER], capacity=2, tick=4)
        store.create_task(TaskType.SPAWN_UNIT, None, roles=[Role.PRODUCER],
                          payload={"role": "miner", "body": ["work"]})
        store.bind(a, "u1", Role.BUILDER)
        store.update_progress(a, 7)

        data = json.loads(json.dumps(store.snapshot()))
        restored = TaskStore()
        restored.restore(data)

        assert [t.to_dict() for t in restored.tasks()] == \
            [t.to_dict() for t in store.tasks()]
        # id allocation continues where it left off
        assert restored.create_task(TaskType.BUILD, "z") == \
            store.create_task(TaskType.BUILD, "z")

    def test_restore_rejects_unknown_version(self, store: TaskStore) -> None:
        with pytest.raises(SnapshotError):
            store.restore({"version": 99, "next_seq": 0, "tasks": []})

    def test_malformed_restore_keeps_tasks(self, store: TaskStore) -> None:
        tid = store.create_task(TaskType.BUILD, "a", roles=[Role.BUILDER])
        good = store.snapshot()
        bad = dict(good, tasks=[dict(good["tasks"][0], type="teleport")])
        with pytest.raises(SnapshotError):
            store.restore(bad)
        with pytest.raises(SnapshotError):
            store.restore({"version": good["version"], "tasks": []})
        assert [t.id for t in store.tasks()] == [tid]
        assert store.get(tid).type is TaskType.BUILD
