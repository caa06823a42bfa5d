# src/taskpilot/llm/tools.py

"""
Tool catalogue exposed to the model.

The JSON schemas are a wire contract with the model and must stay stable;
the argument models in agents/extractor.py mirror them.
"""

from __future__ import annotations

from typing import Final

from .models import ToolSpec

UPDATE_TASK: Final = "update_task"
UPDATE_STEPS: Final = "update_steps"
ADD_STEPS: Final = "add_steps"
ADD_DEPENDENCIES: Final = "add_dependencies"
MARK_TASKS_FOCUS_TODAY: Final = "mark_tasks_focus_today"

TASK_STATUS_ENUM: Final = ["todo", "in_progress", "done", "cancelled"]
STEP_STATUS_ENUM: Final = ["locked", "todo", "in_progress", "done", "blocked"]
PRIORITY_ENUM: Final = ["low", "medium", "high"]
CONDITION_ENUM: Final = ["task_done", "step_done"]
ACTION_ENUM: Final = ["unlock_step", "set_task_todo", "notify_only"]


def _update_task_tool() -> ToolSpec:
    return ToolSpec(
        name=UPDATE_TASK,
        description=(
            "Update a task's metadata such as title, description, status, priority or due_at."
        ),
        parameters={
            "type": "object",
            "properties": {
                "task_id": {"type": "integer", "description": "The ID of the task to update."},
                "fields": {
                    "type": "object",
                    "description": "Fields to update. Only include fields that need to be changed.",
                    "properties": {
                        "title": {"type": "string"},
                        "description": {"type": "string"},
                        "status": {"type": "string", "enum": list(TASK_STATUS_ENUM)},
                        "priority": {"type": "string", "enum": list(PRIORITY_ENUM)},
                        "due_at": {
                            "type": "string",
                            "description": (
                                "New due date time in ISO 8601 format, e.g. 2025-12-08T20:00:00"
                            ),
                        },
                    },
                    "additionalProperties": False,
                },
            },
            "required": ["task_id", "fields"],
            "additionalProperties": False,
        },
    )


def _update_steps_tool() -> ToolSpec:
    return ToolSpec(
        name=UPDATE_STEPS,
        description="Update one or more existing steps in a task.",
        parameters={
            "type": "object",
            "properties": {
                "task_id": {"type": "integer"},
                "updates": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "step_id": {"type": "integer"},
                            "fields": {
                                "type": "object",
                                "properties": {
                                    "title": {"type": "string"},
                                    "detail": {"type": "string"},
                                    "status": {"type": "string", "enum": list(STEP_STATUS_ENUM)},
                                    "blocking_reason": {"type": "string"},
                                    "estimate_minutes": {"type": "integer", "minimum": 1},
                                    "order_index": {
                                        "type": "integer",
                                        "description": "New order index, smaller means earlier.",
                                    },
                                    "planned_start": {
                                        "type": "string",
                                        "description": "Planned start time in ISO 8601.",
                                    },
                                    "planned_end": {
                                        "type": "string",
                                        "description": "Planned end time in ISO 8601.",
                                    },
                                },
                                "additionalProperties": False,
                            },
                        },
                        "required": ["step_id", "fields"],
                        "additionalProperties": False,
                    },
                },
            },
            "required": ["task_id", "updates"],
            "additionalProperties": False,
        },
    )


def _add_steps_tool() -> ToolSpec:
    return ToolSpec(
        name=ADD_STEPS,
        description="Add new steps to an existing task.",
        parameters={
            "type": "object",
            "properties": {
                "task_id": {"type": "integer"},
                "parent_step_id": {
                    "type": ["integer", "null"],
                    "description": (
                        "Optional parent step ID for substeps. Use null for top-level steps."
                    ),
                },
                "steps": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "title": {"type": "string"},
                            "detail": {"type": "string"},
                            "estimate_minutes": {"type": "integer", "minimum": 1},
                            "insert_after_step_id": {
                                "type": ["integer", "null"],
                                "description": "Insert after this step. If null, append to the end.",
                            },
                        },
                        "required": ["title"],
                        "additionalProperties": False,
                    },
                },
            },
            "required": ["task_id", "steps"],
            "additionalProperties": False,
        },
    )


def _add_dependencies_tool() -> ToolSpec:
    return ToolSpec(
        name=ADD_DEPENDENCIES,
        description=(
            "Create dependencies between tasks or steps. When the predecessor is done, "
            "the successor can be unlocked or activated."
        ),
        parameters={
            "type": "object",
            "properties": {
                "items": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "predecessor_task_id": {"type": "integer"},
                            "predecessor_step_id": {
                                "type": ["integer", "null"],
                                "description": (
                                    "Optional step ID. If null, the whole task is the predecessor."
                                ),
                            },
                            "successor_task_id": {"type": "integer"},
                            "successor_step_id": {
                                "type": ["integer", "null"],
                                "description": (
                                    "Optional step ID. If null, the whole task is the successor."
                                ),
                            },
                            "condition": {"type": "string", "enum": list(CONDITION_ENUM)},
                            "action": {"type": "string", "enum": list(ACTION_ENUM)},
                        },
                        "required": [
                            "predecessor_task_id",
                            "successor_task_id",
                            "condition",
                            "action",
                        ],
                        "additionalProperties": False,
                    },
                },
            },
            "required": ["items"],
            "additionalProperties": False,
        },
    )


def _mark_tasks_focus_today_tool() -> ToolSpec:
    return ToolSpec(
        name=MARK_TASKS_FOCUS_TODAY,
        description=(
            "Mark one or more tasks as today's focus tasks, for daily planning or overview."
        ),
        parameters={
            "type": "object",
            "properties": {
                "task_ids": {"type": "array", "items": {"type": "integer"}},
            },
            "required": ["task_ids"],
            "additionalProperties": False,
        },
    )


def common_tools() -> list[ToolSpec]:
    """The full catalogue, in a stable order."""
    return [
        _update_task_tool(),
        _update_steps_tool(),
        _add_steps_tool(),
        _add_dependencies_tool(),
        _mark_tasks_focus_today_tool(),
    ]


def _select(*names: str) -> list[ToolSpec]:
    by_name = {t.name: t for t in common_tools()}
    return [by_name[n] for n in names]


def executor_tools() -> list[ToolSpec]:
    return _select(UPDATE_TASK, UPDATE_STEPS)


def planner_tools() -> list[ToolSpec]:
    return _select(UPDATE_TASK, UPDATE_STEPS, ADD_STEPS, ADD_DEPENDENCIES)


def global_tools() -> list[ToolSpec]:
    return _select(UPDATE_TASK, UPDATE_STEPS, MARK_TASKS_FOCUS_TODAY)
