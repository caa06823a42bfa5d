# src/taskpilot/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from ..llm.models import ModelConfig
from ..sessions.session_store import SessionStore
from ..tasks.task_store import TaskStore
from .service import OrchestrationService


@dataclass
class AppState:
    """Runtime container shared by the console connector and slash commands."""

    settings: Any
    task_store: TaskStore
    session_store: SessionStore
    service: OrchestrationService
    model_config: ModelConfig

    owner_id: int = 1
    offline: bool = False
    current_session_id: int | None = None

    # One request cycle at a time per process.
    lock: threading.Lock = field(default_factory=threading.Lock)
