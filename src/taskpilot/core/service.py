# src/taskpilot/core/service.py

"""
Orchestration service: one inbound message -> one request cycle.

    load context -> route -> agent -> apply commands (with propagation) -> append history

Nothing is persisted until both model calls have returned, so a model failure or
cancellation can never leave a partial mutation. Nothing is retried.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime

from ..agents.base import EXECUTOR, TASK_CREATION
from ..agents.router import Router
from ..llm.models import ModelConfig
from ..sessions.session_models import Session, SessionKind
from ..sessions.session_store import SessionStore
from ..tasks.commands import MutationCommand
from ..tasks.engine import ApplyResult, CommandApplier
from ..tasks.task_models import Task
from ..tasks.task_store import TaskStore
from .errors import NotFoundError, OwnershipError, TaskCreationError
from .ports import Agent, AgentRequest


def _local_now() -> datetime:
    return datetime.now().astimezone()


@dataclass(slots=True)
class TurnResult:
    """Outbound response: the assistant text and the commands that were applied."""

    agent: str
    text: str
    commands: list[MutationCommand] = field(default_factory=list)
    applied: ApplyResult = field(default_factory=ApplyResult)


@dataclass(slots=True)
class CreatedTask:
    task: Task
    session: Session
    text: str


class OrchestrationService:
    def __init__(
        self,
        *,
        task_store: TaskStore,
        session_store: SessionStore,
        router: Router,
        agents: Iterable[Agent],
        applier: CommandApplier,
        history_limit: int = 20,
        clock: Callable[[], datetime] = _local_now,
        logger: logging.Logger | None = None,
    ) -> None:
        self._tasks = task_store
        self._sessions = session_store
        self._router = router
        self._agents: dict[str, Agent] = {a.name: a for a in agents}
        self._applier = applier
        self._history_limit = history_limit
        self._clock = clock
        self._log = logger or logging.getLogger(__name__)

        if EXECUTOR not in self._agents:
            raise ValueError("an executor agent is required")

    def agent_names(self) -> list[str]:
        return sorted(self._agents)

    def _load_session(self, owner_id: int, session_id: int) -> Session:
        session = self._sessions.get_session(session_id)
        if session is None:
            raise NotFoundError(f"session {session_id} not found")
        if session.owner_id != owner_id:
            raise OwnershipError(f"session {session_id} is not owned by {owner_id}")
        return session

    def build_request(
        self,
        owner_id: int,
        session: Session,
        user_input: str,
        model_cfg: ModelConfig,
    ) -> AgentRequest:
        """Read every piece of context the agents may use."""
        request = AgentRequest(
            owner_id=owner_id,
            user_input=user_input,
            model_config=model_cfg,
            now=self._clock(),
            session=session,
            history=self._sessions.list_recent_messages(session.id, self._history_limit),
        )

        if session.task_id is not None:
            task = self._tasks.get_task_with_steps(owner_id, session.task_id)
            if task is None:
                raise NotFoundError(f"task {session.task_id} not found")
            request.task = task
            request.dependencies = self._tasks.list_dependencies_for_task(task.id)

        if session.kind is SessionKind.GLOBAL:
            request.open_tasks = self._tasks.list_tasks(owner_id)

        return request

    def handle_user_message(
        self,
        owner_id: int,
        session_id: int,
        user_input: str,
        model_cfg: ModelConfig,
    ) -> TurnResult:
        session = self._load_session(owner_id, session_id)
        request = self.build_request(owner_id, session, user_input, model_cfg)

        agent_name = self._router.route(request)
        agent = self._agents.get(agent_name)
        if agent is None:
            self._log.warning("No agent registered for %r, using executor.", agent_name)
            agent = self._agents[EXECUTOR]
            agent_name = EXECUTOR

        self._log.info(
            "Turn: owner=%s session=%s kind=%s agent=%s",
            owner_id,
            session.id,
            session.kind.value,
            agent_name,
        )

        response = agent.handle(request)
        applied = self._applier.apply(owner_id, response.commands)

        self._sessions.append_message(session.id, "user", user_input)
        self._sessions.append_message(session.id, "assistant", response.text, agent_name=agent_name)

        return TurnResult(
            agent=agent_name,
            text=response.text,
            commands=list(response.commands),
            applied=applied,
        )

    def create_task_from_text(
        self,
        owner_id: int,
        text: str,
        model_cfg: ModelConfig,
    ) -> CreatedTask:
        """
        Turn free text into a task with steps and open a task session for it.

        Raises TaskCreationError when the model reply cannot be decoded.
        """
        agent = self._agents.get(TASK_CREATION)
        if agent is None:
            raise TaskCreationError("no task creation agent is configured")

        request = AgentRequest(
            owner_id=owner_id,
            user_input=text,
            model_config=model_cfg,
            now=self._clock(),
        )
        response = agent.handle(request)
        applied = self._applier.apply(owner_id, response.commands)
        if len(applied.created_task_ids) != 1:
            raise TaskCreationError(
                f"expected one created task, got {len(applied.created_task_ids)}"
            )

        task_id = applied.created_task_ids[0]
        task = self._tasks.get_task_with_steps(owner_id, task_id)
        if task is None:
            raise NotFoundError(f"task {task_id} not found after creation")

        session = self._sessions.get_or_create_task_session(owner_id, task_id)
        self._sessions.append_message(session.id, "assistant", response.text, agent_name=agent.name)
        self._log.info("Created task %s from text (session=%s)", task_id, session.id)
        return CreatedTask(task=task, session=session, text=response.text)
