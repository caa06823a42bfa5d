# src/taskpilot/tasks/engine.py

"""
Command application engine.

A batch of mutation commands is applied in list order inside one transaction.
Later commands observe the effects of earlier ones; any failure rolls back the
whole batch.

Status cascade:
- a task or step moving to done gets completed_at and fires dependency propagation
- moving away from done clears completed_at
- a step moving to done re-derives its task: all steps done -> task done,
  otherwise a todo task is promoted to in_progress
- a done task is never downgraded when one of its steps is reopened
"""

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from ..core.errors import CommandApplyError, NotFoundError, OwnershipError
from .commands import (
    AddDependencies,
    AddSteps,
    CreateTask,
    MarkFocusToday,
    MutationCommand,
    UpdateStep,
    UpdateTask,
)
from .dependencies import DependencyPropagator
from .task_models import StepStatus, Task, TaskStatus, normalize_datetime
from .task_store import Database, TaskStore


@dataclass(slots=True)
class ApplyResult:
    applied: int = 0
    created_task_ids: list[int] = field(default_factory=list)
    # (task_id, step_id or None) for every completion recorded in the batch
    completions: list[tuple[int, int | None]] = field(default_factory=list)


class CommandApplier:
    def __init__(
        self,
        db: Database,
        task_store: TaskStore,
        propagator: DependencyPropagator,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._db = db
        self._tasks = task_store
        self._propagator = propagator
        self._log = logger or logging.getLogger(__name__)

    def apply(self, owner_id: int, commands: Sequence[MutationCommand]) -> ApplyResult:
        result = ApplyResult()
        if not commands:
            return result

        try:
            with self._db.transaction() as conn:
                for cmd in commands:
                    self._log.debug("Applying %s for owner=%s", cmd.kind, owner_id)
                    self._apply_one(conn, owner_id, cmd, result)
                    result.applied += 1
        except sqlite3.Error as e:
            self._log.exception("Command batch rolled back (storage error).")
            raise CommandApplyError(f"storage error: {e}") from e
        except ValueError as e:
            raise CommandApplyError(str(e)) from e

        self._log.info(
            "Applied %d command(s) owner=%s created=%s completions=%d",
            result.applied,
            owner_id,
            result.created_task_ids,
            len(result.completions),
        )
        return result

    def _apply_one(
        self,
        conn: sqlite3.Connection,
        owner_id: int,
        cmd: MutationCommand,
        result: ApplyResult,
    ) -> None:
        if isinstance(cmd, UpdateTask):
            self._update_task(conn, owner_id, cmd, result)
        elif isinstance(cmd, UpdateStep):
            self._update_step(conn, owner_id, cmd, result)
        elif isinstance(cmd, AddSteps):
            self._require_task(conn, owner_id, cmd.task_id)
            self._tasks.insert_steps(conn, cmd.task_id, cmd.steps)
            self._tasks.touch_task(conn, cmd.task_id)
        elif isinstance(cmd, AddDependencies):
            for item in cmd.items:
                self._require_task(conn, owner_id, item.predecessor_task_id)
                self._require_task(conn, owner_id, item.successor_task_id)
            self._tasks.insert_dependencies(conn, cmd.items)
        elif isinstance(cmd, MarkFocusToday):
            n = self._tasks.set_focus_today(conn, owner_id, cmd.task_ids)
            if n != len(cmd.task_ids):
                self._log.debug(
                    "mark_focus_today: %d of %d id(s) matched owner=%s",
                    n,
                    len(cmd.task_ids),
                    owner_id,
                )
        elif isinstance(cmd, CreateTask):
            task_id = self._tasks.insert_task_with_steps(
                conn,
                owner_id=owner_id,
                title=cmd.title,
                description=cmd.description,
                priority=cmd.priority,
                due_at=normalize_datetime(cmd.due_at),
                steps=cmd.steps,
            )
            result.created_task_ids.append(task_id)
        else:
            raise CommandApplyError(f"unsupported command: {type(cmd).__name__}")

    def _require_task(self, conn: sqlite3.Connection, owner_id: int, task_id: int) -> Task:
        task = self._tasks.get_task(task_id, conn)
        if task is None:
            raise NotFoundError(f"task {task_id} not found")
        if task.owner_id != owner_id:
            raise OwnershipError(f"task {task_id} is not owned by {owner_id}")
        return task

    def _update_task(
        self,
        conn: sqlite3.Connection,
        owner_id: int,
        cmd: UpdateTask,
        result: ApplyResult,
    ) -> None:
        task = self._require_task(conn, owner_id, cmd.task_id)
        values: dict[str, Any] = cmd.fields.provided()
        if "due_at" in values:
            values["due_at"] = normalize_datetime(values["due_at"])

        completed = False
        status = cmd.fields.status
        if status is not None:
            if status is TaskStatus.DONE:
                if task.status is not TaskStatus.DONE:
                    values["completed_at"] = time.time()
                    completed = True
            else:
                values["completed_at"] = None

        self._tasks.update_task_fields(conn, task.id, values)

        if completed:
            result.completions.append((task.id, None))
            self._propagator.on_completed(conn, task.id, None)

    def _update_step(
        self,
        conn: sqlite3.Connection,
        owner_id: int,
        cmd: UpdateStep,
        result: ApplyResult,
    ) -> None:
        self._require_task(conn, owner_id, cmd.task_id)
        step = self._tasks.get_step(cmd.step_id, conn)
        if step is None or step.task_id != cmd.task_id:
            raise NotFoundError(f"step {cmd.step_id} not found in task {cmd.task_id}")

        values: dict[str, Any] = cmd.fields.provided()
        for key in ("planned_start", "planned_end"):
            if key in values:
                values[key] = normalize_datetime(values[key])

        completed = False
        status = cmd.fields.status
        if status is not None:
            if status is StepStatus.DONE:
                if step.status is not StepStatus.DONE:
                    values["completed_at"] = time.time()
                    completed = True
            else:
                values["completed_at"] = None
            # blocking_reason only describes a blocked step
            if status is not StepStatus.BLOCKED and "blocking_reason" not in values:
                values["blocking_reason"] = ""

        self._tasks.update_step_fields(conn, step.id, values)
        self._tasks.touch_task(conn, cmd.task_id)

        if not completed:
            return

        result.completions.append((cmd.task_id, step.id))
        self._propagator.on_completed(conn, cmd.task_id, step.id)
        self._rederive_task_status(conn, owner_id, cmd.task_id, result)

    def _rederive_task_status(
        self,
        conn: sqlite3.Connection,
        owner_id: int,
        task_id: int,
        result: ApplyResult,
    ) -> None:
        task = self._require_task(conn, owner_id, task_id)
        steps = self._tasks.list_steps(task_id, conn)

        if steps and all(s.status is StepStatus.DONE for s in steps):
            if task.status is TaskStatus.DONE:
                return
            self._tasks.update_task_fields(
                conn,
                task_id,
                {"status": TaskStatus.DONE, "completed_at": time.time()},
            )
            self._log.info("Task %s done: all %d step(s) done", task_id, len(steps))
            # Separate completion event for the task itself.
            result.completions.append((task_id, None))
            self._propagator.on_completed(conn, task_id, None)
            return

        if task.status is TaskStatus.TODO:
            self._tasks.update_task_fields(conn, task_id, {"status": TaskStatus.IN_PROGRESS})
