# tests/test_dependencies.py

from __future__ import annotations

import time

import pytest

from taskpilot.core.errors import DependencyError
from taskpilot.tasks.commands import (
    AddDependencies,
    DependencySpec,
    StepFieldChanges,
    TaskFieldChanges,
    UpdateStep,
    UpdateTask,
)
from taskpilot.tasks.task_models import (
    DependencyAction,
    DependencyCondition,
    StepStatus,
    TaskStatus,
)


def _edge(**kw) -> DependencySpec:
    return DependencySpec(**kw)


def test_step_done_unlocks_locked_successor_step(applier, task_store, make_task, set_step_status) -> None:
    pred = make_task("Collect receipts", ["scan", "sort"])
    succ = make_task("File expenses", ["submit"])
    trigger = pred.steps[0]
    target = succ.steps[0]
    set_step_status(target.id, StepStatus.LOCKED)

    applier.apply(
        1,
        [
            AddDependencies(
                items=(
                    _edge(
                        predecessor_task_id=pred.id,
                        predecessor_step_id=trigger.id,
                        successor_task_id=succ.id,
                        successor_step_id=target.id,
                        condition=DependencyCondition.STEP_DONE,
                        action=DependencyAction.UNLOCK_STEP,
                    ),
                )
            )
        ],
    )
    assert task_store.get_step(target.id).status is StepStatus.LOCKED

    applier.apply(
        1,
        [UpdateStep(task_id=pred.id, step_id=trigger.id, fields=StepFieldChanges(status=StepStatus.DONE))],
    )

    assert task_store.get_step(target.id).status is StepStatus.TODO


def test_unlock_leaves_non_locked_successor_alone(applier, task_store, make_task, set_step_status) -> None:
    pred = make_task("pred", ["a", "b"])
    succ = make_task("succ", ["x"])
    target = succ.steps[0]
    set_step_status(target.id, StepStatus.IN_PROGRESS)

    applier.apply(
        1,
        [
            AddDependencies(
                items=(
                    _edge(
                        predecessor_task_id=pred.id,
                        predecessor_step_id=pred.steps[0].id,
                        successor_task_id=succ.id,
                        successor_step_id=target.id,
                        condition=DependencyCondition.STEP_DONE,
                        action=DependencyAction.UNLOCK_STEP,
                    ),
                )
            ),
            UpdateStep(
                task_id=pred.id,
                step_id=pred.steps[0].id,
                fields=StepFieldChanges(status=StepStatus.DONE),
            ),
        ],
    )

    assert task_store.get_step(target.id).status is StepStatus.IN_PROGRESS


def test_firing_unlock_twice_is_idempotent(
    db, task_store, propagator, make_task, set_step_status
) -> None:
    pred = make_task("pred", ["a"])
    succ = make_task("succ", ["x"])
    target = succ.steps[0]
    set_step_status(target.id, StepStatus.LOCKED)
    with db.transaction() as conn:
        task_store.insert_dependencies(
            conn,
            [
                _edge(
                    predecessor_task_id=pred.id,
                    predecessor_step_id=pred.steps[0].id,
                    successor_task_id=succ.id,
                    successor_step_id=target.id,
                    condition=DependencyCondition.STEP_DONE,
                    action=DependencyAction.UNLOCK_STEP,
                )
            ],
        )

    with db.transaction() as conn:
        fired = propagator.on_completed(conn, pred.id, pred.steps[0].id)
    assert len(fired) == 1
    once = task_store.get_step(target.id)
    assert once.status is StepStatus.TODO

    with db.transaction() as conn:
        propagator.on_completed(conn, pred.id, pred.steps[0].id)
    twice = task_store.get_step(target.id)
    assert twice.status is StepStatus.TODO
    assert twice.updated_at == once.updated_at


def test_task_done_sets_successor_todo(applier, task_store, make_task) -> None:
    pred = make_task("Buy paint")
    succ = make_task("Paint fence")
    applier.apply(
        1,
        [
            UpdateTask(task_id=succ.id, fields=TaskFieldChanges(status=TaskStatus.CANCELLED)),
            AddDependencies(
                items=(
                    _edge(
                        predecessor_task_id=pred.id,
                        successor_task_id=succ.id,
                        condition=DependencyCondition.TASK_DONE,
                        action=DependencyAction.SET_TASK_TODO,
                    ),
                )
            ),
        ],
    )

    applier.apply(1, [UpdateTask(task_id=pred.id, fields=TaskFieldChanges(status=TaskStatus.DONE))])

    assert task_store.get_task(succ.id).status is TaskStatus.TODO


def test_step_cascade_fires_task_done_edges(applier, task_store, make_task) -> None:
    pred = make_task("pred", ["only"])
    succ = make_task("succ")
    applier.apply(
        1,
        [
            UpdateTask(task_id=succ.id, fields=TaskFieldChanges(status=TaskStatus.CANCELLED)),
            AddDependencies(
                items=(
                    _edge(
                        predecessor_task_id=pred.id,
                        successor_task_id=succ.id,
                        condition=DependencyCondition.TASK_DONE,
                        action=DependencyAction.SET_TASK_TODO,
                    ),
                )
            ),
        ],
    )

    applier.apply(
        1,
        [UpdateStep(task_id=pred.id, step_id=pred.steps[0].id, fields=StepFieldChanges(status=StepStatus.DONE))],
    )

    assert task_store.get_task(pred.id).status is TaskStatus.DONE
    assert task_store.get_task(succ.id).status is TaskStatus.TODO


def test_notify_only_writes_system_message(applier, session_store, make_task) -> None:
    pred = make_task("Draft contract", ["write"])
    succ = make_task("Sign contract")
    applier.apply(
        1,
        [
            AddDependencies(
                items=(
                    _edge(
                        predecessor_task_id=pred.id,
                        predecessor_step_id=pred.steps[0].id,
                        successor_task_id=succ.id,
                        condition=DependencyCondition.STEP_DONE,
                        action=DependencyAction.NOTIFY_ONLY,
                    ),
                )
            ),
            UpdateStep(
                task_id=pred.id,
                step_id=pred.steps[0].id,
                fields=StepFieldChanges(status=StepStatus.DONE),
            ),
        ],
    )

    session = session_store.get_or_create_task_session(1, succ.id)
    messages = session_store.list_recent_messages(session.id)
    assert [m.role for m in messages] == ["system"]
    assert 'step "write" is done' in messages[0].content
    assert '"Sign contract"' in messages[0].content


def test_propagation_failure_rolls_back_completion(db, applier, task_store, make_task) -> None:
    pred = make_task("pred")
    succ = make_task("succ")
    # stored edge that breaks the unlock_step invariant
    with db.transaction() as conn:
        conn.execute(
            """
            INSERT INTO task_dependencies(
                predecessor_task_id, predecessor_step_id, successor_task_id,
                successor_step_id, dependency_condition, action, created_at
            )
            VALUES (?, NULL, ?, NULL, 'task_done', 'unlock_step', ?)
            """,
            (pred.id, succ.id, time.time()),
        )

    with pytest.raises(DependencyError):
        applier.apply(1, [UpdateTask(task_id=pred.id, fields=TaskFieldChanges(status=TaskStatus.DONE))])

    after = task_store.get_task(pred.id)
    assert after.status is TaskStatus.TODO
    assert after.completed_at is None


def test_unknown_stored_action_is_a_dependency_error(db, applier, task_store, make_task) -> None:
    pred = make_task("pred")
    succ = make_task("succ")
    with db.transaction() as conn:
        conn.execute(
            """
            INSERT INTO task_dependencies(
                predecessor_task_id, predecessor_step_id, successor_task_id,
                successor_step_id, dependency_condition, action, created_at
            )
            VALUES (?, NULL, ?, NULL, 'task_done', 'explode', ?)
            """,
            (pred.id, succ.id, time.time()),
        )

    with pytest.raises(DependencyError):
        applier.apply(1, [UpdateTask(task_id=pred.id, fields=TaskFieldChanges(status=TaskStatus.DONE))])

    after = task_store.get_task(pred.id)
    assert after.status is TaskStatus.TODO
    assert after.completed_at is None


def test_no_matching_edges_returns_empty(db, propagator, make_task) -> None:
    task = make_task()
    with db.transaction() as conn:
        assert propagator.on_completed(conn, task.id, None) == []
