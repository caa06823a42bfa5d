# src/taskpilot/core/ports.py

"""
Ports (interfaces) used by the core.

The orchestration core depends on Protocols instead of concrete implementations,
which keeps model providers swappable and makes testing easier.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from ..llm.models import ChatRequest, ChatResponse, ModelConfig
from ..sessions.session_models import Message, Session, SessionKind
from ..tasks.commands import MutationCommand
from ..tasks.task_models import Dependency, Task


class ChatModel(Protocol):
    """Non-streaming chat completion endpoint (OpenAI-compatible)."""

    def chat(self, cfg: ModelConfig, request: ChatRequest) -> ChatResponse: ...


class ToolExecutor(Protocol):
    """Runs one tool invocation and returns the tool-result content for the model."""

    def execute(self, arguments: str) -> str: ...


@dataclass(slots=True)
class AgentRequest:
    """Everything an agent may look at; agents never read storage themselves."""

    owner_id: int
    user_input: str
    model_config: ModelConfig
    now: datetime
    session: Session | None = None
    task: Task | None = None
    dependencies: list[Dependency] = field(default_factory=list)
    history: list[Message] = field(default_factory=list)
    open_tasks: list[Task] = field(default_factory=list)

    @property
    def session_kind(self) -> SessionKind:
        if self.session is None:
            return SessionKind.TASK
        return self.session.kind


@dataclass(slots=True)
class AgentResponse:
    text: str
    commands: list[MutationCommand] = field(default_factory=list)


class Agent(Protocol):
    @property
    def name(self) -> str: ...

    def handle(self, request: AgentRequest) -> AgentResponse: ...


class RouteClassifier(Protocol):
    """Fallback classifier for requests the keyword rules leave to the default."""

    def classify(self, request: AgentRequest) -> str: ...
