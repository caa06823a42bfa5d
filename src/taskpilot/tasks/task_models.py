# src/taskpilot/tasks/task_models.py

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any


class TaskStatus(StrEnum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    CANCELLED = "cancelled"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.TODO
        try:
            return cls(raw)
        except ValueError:
            return cls.TODO


class StepStatus(StrEnum):
    """
    Step lifecycle status.

    "locked" steps wait for a dependency edge to fire (unlock_step moves them to todo).
    """

    LOCKED = "locked"
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    BLOCKED = "blocked"

    @classmethod
    def from_db(cls, raw: str | None) -> StepStatus:
        if not raw:
            return cls.TODO
        try:
            return cls(raw)
        except ValueError:
            return cls.TODO


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_db(cls, raw: str | None) -> Priority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(raw)
        except ValueError:
            return cls.MEDIUM


class DependencyCondition(StrEnum):
    TASK_DONE = "task_done"
    STEP_DONE = "step_done"


class DependencyAction(StrEnum):
    UNLOCK_STEP = "unlock_step"
    SET_TASK_TODO = "set_task_todo"
    NOTIFY_ONLY = "notify_only"


# Formats the model is known to emit for due/planned times.
_DATETIME_FORMATS = (
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%Y年%m月%d日",
)


def parse_datetime(raw: str) -> datetime:
    """
    Parse an ISO 8601-ish timestamp.

    Accepts full ISO 8601 (with or without offset, trailing "Z" included) and a few
    date-only forms. Raises ValueError for anything else.
    """
    s = (raw or "").strip()
    if not s:
        raise ValueError("empty datetime")
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        pass
    for fmt in _DATETIME_FORMATS:
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            continue
    raise ValueError(f"unrecognized datetime: {raw!r}")


def normalize_datetime(raw: str | None) -> str | None:
    """Canonical ISO 8601 text for storage; None and blank stay None."""
    if raw is None or not str(raw).strip():
        return None
    return parse_datetime(str(raw)).isoformat()


def now_rfc3339() -> str:
    return datetime.now().astimezone().replace(microsecond=0).isoformat()


@dataclass(slots=True)
class Step:
    id: int
    task_id: int
    order_index: int
    title: str
    detail: str
    status: StepStatus
    blocking_reason: str
    estimate_minutes: int | None
    planned_start: str | None
    planned_end: str | None
    created_at: float
    updated_at: float
    completed_at: float | None = None

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "step_id": self.id,
            "order_index": self.order_index,
            "title": self.title,
            "detail": self.detail,
            "status": self.status.value,
            "blocking_reason": self.blocking_reason or None,
            "estimate_minutes": self.estimate_minutes,
            "planned_start": self.planned_start,
            "planned_end": self.planned_end,
            "completed_at": _ts_to_iso(self.completed_at),
        }


@dataclass(slots=True)
class Task:
    id: int
    owner_id: int
    title: str
    description: str
    status: TaskStatus
    priority: Priority
    due_at: str | None
    is_focus_today: bool
    created_at: float
    updated_at: float
    completed_at: float | None = None
    steps: list[Step] = field(default_factory=list)

    def to_snapshot(self, *, with_steps: bool = True) -> dict[str, Any]:
        """Read-only JSON view injected into prompts."""
        out: dict[str, Any] = {
            "task_id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority.value,
            "due_at": self.due_at,
            "is_focus_today": self.is_focus_today,
            "completed_at": _ts_to_iso(self.completed_at),
        }
        if with_steps:
            out["steps"] = [s.to_snapshot() for s in self.steps]
        return out


@dataclass(slots=True)
class Dependency:
    id: int
    predecessor_task_id: int
    predecessor_step_id: int | None
    successor_task_id: int
    successor_step_id: int | None
    condition: DependencyCondition
    action: DependencyAction
    created_at: float = field(default_factory=time.time)

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "predecessor_task_id": self.predecessor_task_id,
            "predecessor_step_id": self.predecessor_step_id,
            "successor_task_id": self.successor_task_id,
            "successor_step_id": self.successor_step_id,
            "condition": self.condition.value,
            "action": self.action.value,
        }


def _ts_to_iso(ts: float | None) -> str | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts).astimezone().replace(microsecond=0).isoformat()
