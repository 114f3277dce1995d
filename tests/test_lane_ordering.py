# tests/test_lane_ordering.py

from __future__ import annotations

import random
import sqlite3

import pytest

from streaklane.core.errors import NotFoundError, OwnershipError, TransientStoreError, ValidationError
from streaklane.core.models import LaneMove, Severity, Task
from streaklane.lanes.ordering import LaneOrderingEngine, plan_move
from streaklane.tasks.task_service import TaskService
from streaklane.tasks.task_store import TaskStore, TaskStoreTx


def _add(service: TaskService, user: str, title: str, severity: str) -> Task:
    return service.create_task(user, {"title": title, "severity": severity})


def _lane(service: TaskService, user: str, severity: Severity) -> list[tuple[str, int]]:
    return [(t.title, t.position) for t in service.list_tasks(user, completed=False, severity=severity)]


def _lanes(service: TaskService, user: str) -> dict[Severity, list[Task]]:
    return {sev: service.list_tasks(user, completed=False, severity=sev) for sev in Severity}


def test_append_to_lane_starts_at_zero_and_counts_up(service: TaskService) -> None:
    a = _add(service, "alice", "A", "high")
    b = _add(service, "alice", "B", "HIGH")
    c = _add(service, "alice", "C", "low")

    assert (a.position, b.position) == (0, 1)
    assert c.position == 0  # lanes are independent


def test_append_after_last_task_leaves_lane_gets_zero(service: TaskService) -> None:
    a = _add(service, "alice", "A", "medium")
    lanes = _lanes(service, "alice")
    service.reorder_tasks("alice", plan_move(lanes, a.id, Severity.HIGH, 0))

    b = _add(service, "alice", "B", "medium")
    assert b.position == 0


def test_lanes_are_per_user(service: TaskService) -> None:
    _add(service, "alice", "A", "high")
    _add(service, "alice", "B", "high")
    bob_task = _add(service, "bob", "X", "high")
    assert bob_task.position == 0


def test_reorder_within_lane_scenario_b(service: TaskService) -> None:
    a = _add(service, "alice", "A", "high")
    b = _add(service, "alice", "B", "high")
    _add(service, "alice", "C", "high")

    moves = plan_move(_lanes(service, "alice"), b.id, Severity.HIGH, 0)
    assert [m.severity for m in moves] == [None, None, None]

    service.reorder_tasks("alice", moves)

    assert _lane(service, "alice", Severity.HIGH) == [("B", 0), ("A", 1), ("C", 2)]
    assert service.get_task("alice", a.id).position == 1


def test_move_between_lanes_scenario_c(service: TaskService) -> None:
    _add(service, "alice", "M0", "medium")
    a = _add(service, "alice", "A", "medium")
    _add(service, "alice", "M2", "medium")
    _add(service, "alice", "H0", "high")
    _add(service, "alice", "H1", "high")

    moves = plan_move(_lanes(service, "alice"), a.id, Severity.HIGH, 99)
    written = service.reorder_tasks("alice", moves)

    assert {t.id for t in written} == {m.task_id for m in moves}
    assert _lane(service, "alice", Severity.MEDIUM) == [("M0", 0), ("M2", 1)]
    assert _lane(service, "alice", Severity.HIGH) == [("H0", 0), ("H1", 1), ("A", 2)]
    assert service.get_task("alice", a.id).severity is Severity.HIGH


def test_reorder_payload_accepts_wire_shape(service: TaskService) -> None:
    a = _add(service, "alice", "A", "low")
    b = _add(service, "alice", "B", "low")

    service.reorder_tasks(
        "alice",
        {"moves": [{"id": b.id, "position": 0, "severity": "low"}, {"id": a.id, "position": 1}]},
    )
    assert _lane(service, "alice", Severity.LOW) == [("B", 0), ("A", 1)]

    # Older clients send the list under "tasks".
    service.reorder_tasks("alice", {"tasks": [{"id": a.id, "position": 0}, {"id": b.id, "position": 1}]})
    assert _lane(service, "alice", Severity.LOW) == [("A", 0), ("B", 1)]


def test_foreign_task_aborts_whole_reorder(service: TaskService) -> None:
    a = _add(service, "alice", "A", "high")
    b = _add(service, "alice", "B", "high")
    x = _add(service, "bob", "X", "high")

    with pytest.raises(NotFoundError) as exc_info:
        service.reorder_tasks(
            "alice",
            [LaneMove(b.id, 0), LaneMove(a.id, 1), LaneMove(x.id, 2)],
        )

    assert isinstance(exc_info.value, OwnershipError)
    assert _lane(service, "alice", Severity.HIGH) == [("A", 0), ("B", 1)]
    assert _lane(service, "bob", Severity.HIGH) == [("X", 0)]


def test_unknown_task_is_not_found(service: TaskService) -> None:
    a = _add(service, "alice", "A", "high")
    with pytest.raises(NotFoundError):
        service.reorder_tasks("alice", [LaneMove(a.id, 0), LaneMove("nope", 1)])


@pytest.mark.parametrize(
    "positions",
    [
        (0, 0, 1),  # duplicate
        (0, 1, 3),  # gap
        (1, 2, 3),  # does not start at zero
    ],
)
def test_non_dense_positions_are_rejected(service: TaskService, positions: tuple[int, ...]) -> None:
    tasks = [_add(service, "alice", t, "medium") for t in ("A", "B", "C")]
    moves = [LaneMove(t.id, p) for t, p in zip(tasks, positions)]

    with pytest.raises(ValidationError):
        service.reorder_tasks("alice", moves)
    assert _lane(service, "alice", Severity.MEDIUM) == [("A", 0), ("B", 1), ("C", 2)]


def test_move_set_must_cover_destination_lane(service: TaskService) -> None:
    a = _add(service, "alice", "A", "medium")
    b = _add(service, "alice", "B", "medium")
    _add(service, "alice", "C", "medium")

    with pytest.raises(ValidationError, match="leaves out"):
        service.reorder_tasks("alice", [LaneMove(b.id, 0), LaneMove(a.id, 1)])


def test_move_set_shape_errors(service: TaskService) -> None:
    a = _add(service, "alice", "A", "low")
    b = _add(service, "alice", "B", "medium")
    c = _add(service, "alice", "C", "high")

    with pytest.raises(ValidationError):
        service.reorder_tasks("alice", [])
    with pytest.raises(ValidationError):
        service.reorder_tasks("alice", [LaneMove(a.id, 0), LaneMove(a.id, 1)])
    with pytest.raises(ValidationError):
        service.reorder_tasks("alice", [LaneMove(a.id, -1)])
    with pytest.raises(ValidationError, match="at most 2 lanes"):
        service.reorder_tasks("alice", [LaneMove(a.id, 0), LaneMove(b.id, 0), LaneMove(c.id, 0)])
    with pytest.raises(ValidationError):
        service.reorder_tasks("alice", {"moves": [{"id": a.id, "position": 0, "severity": "urgent"}]})


def test_completed_task_cannot_be_reordered(service: TaskService) -> None:
    a = _add(service, "alice", "A", "low")
    service.update_task("alice", a.id, {"isCompleted": True})

    with pytest.raises(ValidationError):
        service.reorder_tasks("alice", [LaneMove(a.id, 0)])


def test_reorder_is_atomic_when_a_write_fails(
    service: TaskService, monkeypatch: pytest.MonkeyPatch
) -> None:
    a = _add(service, "alice", "A", "high")
    b = _add(service, "alice", "B", "high")
    c = _add(service, "alice", "C", "high")

    real_set_placement = TaskStoreTx.set_placement
    calls = {"n": 0}

    def flaky(self: TaskStoreTx, task_id: str, *, position: int, severity: Severity) -> None:
        calls["n"] += 1
        if calls["n"] == 2:
            raise sqlite3.OperationalError("disk I/O error")
        real_set_placement(self, task_id, position=position, severity=severity)

    monkeypatch.setattr(TaskStoreTx, "set_placement", flaky)

    with pytest.raises(TransientStoreError):
        service.reorder_tasks("alice", [LaneMove(c.id, 0), LaneMove(b.id, 1), LaneMove(a.id, 2)])

    assert calls["n"] == 2
    assert _lane(service, "alice", Severity.HIGH) == [("A", 0), ("B", 1), ("C", 2)]


def test_engine_append_reads_inside_transaction(store: TaskStore) -> None:
    engine = LaneOrderingEngine()
    with store.transaction("carol") as tx:
        assert engine.append_to_lane(tx, Severity.LOW) == 0


def test_plan_move_clamps_index_and_rejects_unknown_task(service: TaskService) -> None:
    a = _add(service, "alice", "A", "low")
    b = _add(service, "alice", "B", "low")
    lanes = _lanes(service, "alice")

    moves = plan_move(lanes, a.id, Severity.LOW, -5)
    assert [(m.task_id, m.position) for m in moves] == [(a.id, 0), (b.id, 1)]

    moves = plan_move(lanes, a.id, Severity.LOW, 50)
    assert [(m.task_id, m.position) for m in moves] == [(b.id, 0), (a.id, 1)]

    with pytest.raises(NotFoundError):
        plan_move(lanes, "missing", Severity.LOW, 0)


def test_lane_positions_stay_unique_under_mixed_operations(service: TaskService) -> None:
    rng = random.Random(7)
    user = "alice"
    severities = list(Severity)

    for step in range(120):
        open_tasks = service.list_tasks(user, completed=False)
        done_tasks = service.list_tasks(user, completed=True)
        op = rng.choice(["create", "create", "move", "move", "delete", "complete", "reopen", "retag"])

        if op == "create" or not open_tasks:
            _add(service, user, f"T{step}", rng.choice(severities).value)
        elif op == "move":
            task = rng.choice(open_tasks)
            target = rng.choice(severities)
            lanes = _lanes(service, user)
            service.reorder_tasks(user, plan_move(lanes, task.id, target, rng.randint(0, 6)))
        elif op == "delete":
            service.delete_task(user, rng.choice(open_tasks).id)
        elif op == "complete":
            service.update_task(user, rng.choice(open_tasks).id, {"isCompleted": True})
        elif op == "reopen" and done_tasks:
            service.update_task(user, rng.choice(done_tasks).id, {"isCompleted": False})
        elif op == "retag":
            service.update_task(user, rng.choice(open_tasks).id, {"severity": rng.choice(severities).value})

        for sev in severities:
            positions = [t.position for t in service.list_tasks(user, completed=False, severity=sev)]
            assert len(positions) == len(set(positions)), (step, op, sev, positions)
