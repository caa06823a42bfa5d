# src/taskpilot/agents/extractor.py

"""
Decode tool-invocation arguments into mutation commands.

Arguments are validated against pydantic models that mirror the tool catalogue
schemas (unknown fields rejected, required fields enforced). Pure: no storage access.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from ..core.errors import ToolDecodeError, UnknownToolError
from ..llm import tools
from ..tasks.commands import (
    AddDependencies,
    AddSteps,
    DependencySpec,
    MarkFocusToday,
    MutationCommand,
    NewStep,
    StepFieldChanges,
    TaskFieldChanges,
    UpdateStep,
    UpdateTask,
)
from ..tasks.task_models import (
    DependencyAction,
    DependencyCondition,
    Priority,
    StepStatus,
    TaskStatus,
    normalize_datetime,
)

logger = logging.getLogger(__name__)


class _Strict(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class TaskFieldsArgs(_Strict):
    title: str | None = None
    description: str | None = None
    status: TaskStatus | None = None
    priority: Priority | None = None
    due_at: str | None = None

    @field_validator("due_at")
    @classmethod
    def _iso_due(cls, v: str | None) -> str | None:
        # blank clears the field; normalised again when applied
        if v is None or not v.strip():
            return v
        return normalize_datetime(v)


class UpdateTaskArgs(_Strict):
    task_id: int
    changes: TaskFieldsArgs = Field(alias="fields")


class StepFieldsArgs(_Strict):
    title: str | None = None
    detail: str | None = None
    status: StepStatus | None = None
    blocking_reason: str | None = None
    estimate_minutes: int | None = Field(default=None, ge=1)
    order_index: int | None = None
    planned_start: str | None = None
    planned_end: str | None = None

    @field_validator("planned_start", "planned_end")
    @classmethod
    def _iso_planned(cls, v: str | None) -> str | None:
        # blank clears the field; normalised again when applied
        if v is None or not v.strip():
            return v
        return normalize_datetime(v)


class StepUpdateArgs(_Strict):
    step_id: int
    changes: StepFieldsArgs = Field(alias="fields")


class UpdateStepsArgs(_Strict):
    task_id: int
    updates: list[StepUpdateArgs]


class NewStepArgs(_Strict):
    title: str
    detail: str = ""
    estimate_minutes: int | None = Field(default=None, ge=1)
    insert_after_step_id: int | None = None


class AddStepsArgs(_Strict):
    task_id: int
    parent_step_id: int | None = None
    steps: list[NewStepArgs]


class DependencyItemArgs(_Strict):
    predecessor_task_id: int
    predecessor_step_id: int | None = None
    successor_task_id: int
    successor_step_id: int | None = None
    condition: DependencyCondition
    action: DependencyAction

    @model_validator(mode="after")
    def _check_edge(self) -> DependencyItemArgs:
        if self.condition is DependencyCondition.STEP_DONE and self.predecessor_step_id is None:
            raise ValueError("condition=step_done requires predecessor_step_id")
        if self.action is DependencyAction.UNLOCK_STEP and self.successor_step_id is None:
            raise ValueError("action=unlock_step requires successor_step_id")
        return self


class AddDependenciesArgs(_Strict):
    items: list[DependencyItemArgs]


class MarkTasksFocusTodayArgs(_Strict):
    task_ids: list[int]


def _new_step(s: NewStepArgs) -> NewStep:
    return NewStep(
        title=s.title,
        detail=s.detail,
        estimate_minutes=s.estimate_minutes,
        insert_after_step_id=s.insert_after_step_id,
    )


def _decode_update_task(raw: str) -> list[MutationCommand]:
    args = UpdateTaskArgs.model_validate_json(raw)
    return [UpdateTask(task_id=args.task_id, fields=TaskFieldChanges(**args.changes.model_dump()))]


def _decode_update_steps(raw: str) -> list[MutationCommand]:
    args = UpdateStepsArgs.model_validate_json(raw)
    return [
        UpdateStep(
            task_id=args.task_id,
            step_id=u.step_id,
            fields=StepFieldChanges(**u.changes.model_dump()),
        )
        for u in args.updates
    ]


def _decode_add_steps(raw: str) -> list[MutationCommand]:
    args = AddStepsArgs.model_validate_json(raw)
    return [
        AddSteps(
            task_id=args.task_id,
            steps=tuple(_new_step(s) for s in args.steps),
            parent_step_id=args.parent_step_id,
        )
    ]


def _decode_add_dependencies(raw: str) -> list[MutationCommand]:
    args = AddDependenciesArgs.model_validate_json(raw)
    items = tuple(
        DependencySpec(
            predecessor_task_id=it.predecessor_task_id,
            predecessor_step_id=it.predecessor_step_id,
            successor_task_id=it.successor_task_id,
            successor_step_id=it.successor_step_id,
            condition=it.condition,
            action=it.action,
        )
        for it in args.items
    )
    return [AddDependencies(items=items)]


def _decode_mark_focus_today(raw: str) -> list[MutationCommand]:
    args = MarkTasksFocusTodayArgs.model_validate_json(raw)
    return [MarkFocusToday(task_ids=tuple(args.task_ids))]


_DECODERS: dict[str, Callable[[str], list[MutationCommand]]] = {
    tools.UPDATE_TASK: _decode_update_task,
    tools.UPDATE_STEPS: _decode_update_steps,
    tools.ADD_STEPS: _decode_add_steps,
    tools.ADD_DEPENDENCIES: _decode_add_dependencies,
    tools.MARK_TASKS_FOCUS_TODAY: _decode_mark_focus_today,
}


def decode_tool_call(tool_name: str, raw_arguments: str) -> list[MutationCommand]:
    """
    Decode one invocation into its ordered commands.

    A batch update_steps call yields one update_step command per listed step.
    Raises ToolDecodeError for malformed payloads, UnknownToolError for names
    outside the catalogue.
    """
    decoder = _DECODERS.get(tool_name)
    if decoder is None:
        raise UnknownToolError(tool_name)

    try:
        commands = decoder(raw_arguments or "")
    except ValidationError as e:
        raise ToolDecodeError(tool_name, _summarize(e)) from e

    logger.debug("Decoded %s -> %s", tool_name, [c.kind for c in commands])
    return commands


def _summarize(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
        parts.append(f"{loc}: {err.get('msg', 'invalid')}")
    return "; ".join(parts) or str(e)
