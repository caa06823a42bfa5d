# src/taskpilot/tasks/commands.py

"""
Mutation commands: the only way the task graph is changed.

Each command is a frozen dataclass tagged by a class-level `kind`. Sparse updates use
optional fields; None means "leave unchanged".
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar, Final

from .task_models import DependencyAction, DependencyCondition, Priority, StepStatus, TaskStatus

UPDATE_TASK: Final = "update_task"
UPDATE_STEP: Final = "update_step"
ADD_STEPS: Final = "add_steps"
ADD_DEPENDENCIES: Final = "add_dependencies"
MARK_FOCUS_TODAY: Final = "mark_focus_today"
CREATE_TASK: Final = "create_task"


def _provided(obj: Any) -> dict[str, Any]:
    return {k: v for k, v in asdict(obj).items() if v is not None}


@dataclass(frozen=True, slots=True)
class TaskFieldChanges:
    title: str | None = None
    description: str | None = None
    status: TaskStatus | None = None
    priority: Priority | None = None
    due_at: str | None = None

    def provided(self) -> dict[str, Any]:
        return _provided(self)


@dataclass(frozen=True, slots=True)
class StepFieldChanges:
    title: str | None = None
    detail: str | None = None
    status: StepStatus | None = None
    blocking_reason: str | None = None
    estimate_minutes: int | None = None
    order_index: int | None = None
    planned_start: str | None = None
    planned_end: str | None = None

    def provided(self) -> dict[str, Any]:
        return _provided(self)


@dataclass(frozen=True, slots=True)
class NewStep:
    title: str
    detail: str = ""
    estimate_minutes: int | None = None
    # Advisory only: steps are appended in insertion order.
    insert_after_step_id: int | None = None


@dataclass(frozen=True, slots=True)
class DependencySpec:
    predecessor_task_id: int
    successor_task_id: int
    condition: DependencyCondition
    action: DependencyAction
    predecessor_step_id: int | None = None
    successor_step_id: int | None = None

    def __post_init__(self) -> None:
        if self.condition is DependencyCondition.STEP_DONE and self.predecessor_step_id is None:
            raise ValueError("condition=step_done requires predecessor_step_id")
        if self.action is DependencyAction.UNLOCK_STEP and self.successor_step_id is None:
            raise ValueError("action=unlock_step requires successor_step_id")


@dataclass(frozen=True, slots=True)
class UpdateTask:
    kind: ClassVar[str] = UPDATE_TASK

    task_id: int
    fields: TaskFieldChanges = field(default_factory=TaskFieldChanges)


@dataclass(frozen=True, slots=True)
class UpdateStep:
    kind: ClassVar[str] = UPDATE_STEP

    task_id: int
    step_id: int
    fields: StepFieldChanges = field(default_factory=StepFieldChanges)


@dataclass(frozen=True, slots=True)
class AddSteps:
    kind: ClassVar[str] = ADD_STEPS

    task_id: int
    steps: tuple[NewStep, ...]
    parent_step_id: int | None = None


@dataclass(frozen=True, slots=True)
class AddDependencies:
    kind: ClassVar[str] = ADD_DEPENDENCIES

    items: tuple[DependencySpec, ...]


@dataclass(frozen=True, slots=True)
class MarkFocusToday:
    kind: ClassVar[str] = MARK_FOCUS_TODAY

    task_ids: tuple[int, ...]


@dataclass(frozen=True, slots=True)
class CreateTask:
    kind: ClassVar[str] = CREATE_TASK

    title: str
    description: str = ""
    priority: Priority = Priority.MEDIUM
    due_at: str | None = None
    steps: tuple[NewStep, ...] = ()


MutationCommand = UpdateTask | UpdateStep | AddSteps | AddDependencies | MarkFocusToday | CreateTask
