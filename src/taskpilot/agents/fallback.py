# src/taskpilot/agents/fallback.py

"""
Deterministic reply used when the model returns no usable text.

The sentence depends only on the agent name and the kinds of commands produced.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

from ..tasks.commands import (
    AddDependencies,
    AddSteps,
    CreateTask,
    MarkFocusToday,
    MutationCommand,
    UpdateStep,
    UpdateTask,
)

_TASK_STATUS_LABELS = {
    "todo": "To do",
    "in_progress": "In progress",
    "done": "Done",
    "cancelled": "Cancelled",
}
_STEP_STATUS_LABELS = {
    "locked": "Locked",
    "todo": "To do",
    "in_progress": "In progress",
    "done": "Done",
    "blocked": "Blocked",
}
_PRIORITY_LABELS = {"low": "Low", "medium": "Medium", "high": "High"}

# Most significant first.
_STEP_STATUS_ORDER = ("done", "in_progress", "todo", "blocked", "locked")

_SUFFIX = " Let me know if you want further changes."

_DEFAULT_MESSAGES = {
    "planner": "Got your planning request. Tell me if the steps or schedule need adjusting.",
    "global": "Got your question. Tell me if you want me to keep organising your tasks.",
    "summarizer": "I've gone over the current task. Ask me if you need a more detailed summary.",
}


def _count(n: int, noun: str, plural: str | None = None) -> str:
    return f"{n} {noun if n == 1 else (plural or noun + 's')}"


def default_message(agent_name: str) -> str:
    return _DEFAULT_MESSAGES.get(agent_name, "Got it." + _SUFFIX)


def _task_update_phrases(cmd: UpdateTask) -> list[str]:
    f = cmd.fields
    out: list[str] = []
    if f.status is not None:
        out.append(f"task status set to {_TASK_STATUS_LABELS.get(f.status, f.status)}")
    if f.priority is not None:
        out.append(f"priority set to {_PRIORITY_LABELS.get(f.priority, f.priority)}")
    if f.due_at is not None:
        out.append("due time updated")
    if f.title is not None:
        out.append("task title updated")
    if f.description is not None:
        out.append("task description updated")
    return out


def build_fallback_message(agent_name: str, commands: Sequence[MutationCommand]) -> str:
    if not commands:
        return default_message(agent_name)

    task_phrases: list[str] = []
    has_task_update = False
    step_updates = 0
    step_statuses: Counter[str] = Counter()
    added_steps = 0
    added_deps = 0
    focus = 0
    created = 0

    for cmd in commands:
        if isinstance(cmd, UpdateTask):
            has_task_update = True
            task_phrases.extend(_task_update_phrases(cmd))
        elif isinstance(cmd, UpdateStep):
            step_updates += 1
            if cmd.fields.status is not None:
                step_statuses[str(cmd.fields.status)] += 1
        elif isinstance(cmd, AddSteps):
            added_steps += len(cmd.steps)
        elif isinstance(cmd, AddDependencies):
            added_deps += len(cmd.items)
        elif isinstance(cmd, MarkFocusToday):
            focus += len(cmd.task_ids)
        elif isinstance(cmd, CreateTask):
            created += 1

    parts: list[str] = []
    if has_task_update:
        parts.append(", ".join(task_phrases) if task_phrases else "task details updated")

    if step_updates:
        status_parts = [
            f"{_count(step_statuses[s], 'step')} marked {_STEP_STATUS_LABELS[s]}"
            for s in _STEP_STATUS_ORDER
            if step_statuses[s]
        ]
        if status_parts:
            parts.append(", ".join(status_parts))
        else:
            parts.append(f"{_count(step_updates, 'step')} updated")

    if added_steps:
        parts.append(f"{_count(added_steps, 'step')} added")
    if added_deps:
        parts.append(f"{_count(added_deps, 'dependency', 'dependencies')} added")
    if focus:
        parts.append(f"{_count(focus, 'task')} marked as today's focus")
    if created:
        parts.append(f"{_count(created, 'task')} created")

    if not parts:
        return default_message(agent_name)

    text = "; ".join(parts)
    return text[0].upper() + text[1:] + "." + _SUFFIX
