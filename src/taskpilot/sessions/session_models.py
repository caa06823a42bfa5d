# src/taskpilot/sessions/session_models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class SessionKind(StrEnum):
    TASK = "task"
    GLOBAL = "global"

    @classmethod
    def from_db(cls, raw: str | None) -> SessionKind:
        if not raw:
            return cls.TASK
        try:
            return cls(raw)
        except ValueError:
            return cls.TASK


@dataclass(slots=True)
class Session:
    id: int
    owner_id: int
    kind: SessionKind
    task_id: int | None
    created_at: float


@dataclass(slots=True)
class Message:
    """One conversation record entry; assistant messages carry the agent that wrote them."""

    id: int
    session_id: int
    role: str
    content: str
    agent_name: str | None
    created_at: float
