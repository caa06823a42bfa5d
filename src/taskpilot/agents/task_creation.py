# src/taskpilot/agents/task_creation.py

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from ..core.errors import TaskCreationError
from ..core.ports import AgentRequest, AgentResponse, ChatModel
from ..llm.models import ChatMessage, ChatRequest
from ..tasks.commands import CreateTask, NewStep
from ..tasks.task_models import Priority, normalize_datetime
from .base import TASK_CREATION, extract_json_block
from .context import now_message
from .prompts import TASK_CREATION_SYSTEM_PROMPT


class _Lenient(BaseModel):
    # The model is asked for an exact shape but extra keys are harmless here.
    model_config = ConfigDict(extra="ignore")


class CreatedStepReply(_Lenient):
    title: str
    detail: str = ""
    estimate_minutes: int | None = None
    order_index: int | None = None

    @field_validator("detail", mode="before")
    @classmethod
    def _none_detail(cls, v: object) -> object:
        return "" if v is None else v

    @field_validator("estimate_minutes")
    @classmethod
    def _positive_estimate(cls, v: int | None) -> int | None:
        return v if v is not None and v >= 1 else None


class CreatedTaskReply(_Lenient):
    title: str
    description: str = ""
    due_at: str | None = None
    priority: Priority = Priority.MEDIUM
    steps: list[CreatedStepReply] = []

    @field_validator("description", mode="before")
    @classmethod
    def _none_description(cls, v: object) -> object:
        return "" if v is None else v

    @field_validator("priority", mode="before")
    @classmethod
    def _known_priority(cls, v: object) -> object:
        if isinstance(v, str) and v.strip().lower() in {p.value for p in Priority}:
            return v.strip().lower()
        return Priority.MEDIUM

    @field_validator("title")
    @classmethod
    def _non_blank_title(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title must not be blank")
        return v.strip()


def parse_task_creation_reply(content: str) -> CreateTask:
    """
    Turn the model's JSON reply (optionally inside a code fence) into a create_task command.

    Raises TaskCreationError when the reply is empty, not JSON, or misses a title.
    """
    if not (content or "").strip():
        raise TaskCreationError("model returned an empty reply")

    body = extract_json_block(content)
    try:
        reply = CreatedTaskReply.model_validate_json(body)
    except ValidationError as e:
        raise TaskCreationError(f"could not parse task JSON: {e.error_count()} error(s)") from e

    try:
        due_at = normalize_datetime(reply.due_at)
    except ValueError as e:
        raise TaskCreationError(f"invalid due_at: {reply.due_at!r}") from e

    return CreateTask(
        title=reply.title,
        description=reply.description,
        priority=reply.priority,
        due_at=due_at,
        steps=tuple(
            NewStep(title=s.title, detail=s.detail, estimate_minutes=s.estimate_minutes)
            for s in reply.steps
        ),
    )


class TaskCreationAgent:
    """Free text -> exactly one create_task command. Direct model call, no tools."""

    name = TASK_CREATION

    def __init__(self, model: ChatModel, *, logger: logging.Logger | None = None) -> None:
        self._model = model
        self._log = logger or logging.getLogger(__name__)

    def handle(self, request: AgentRequest) -> AgentResponse:
        messages = [
            ChatMessage(role="system", content=TASK_CREATION_SYSTEM_PROMPT),
            now_message(request),
            ChatMessage(role="user", content=request.user_input),
        ]
        reply = self._model.chat(request.model_config, ChatRequest(messages)).first
        command = parse_task_creation_reply(reply.content)
        self._log.info("task_creation: %r with %d step(s)", command.title, len(command.steps))
        return AgentResponse(
            text="Done. I turned this into a task and broke it into actionable steps.",
            commands=[command],
        )
