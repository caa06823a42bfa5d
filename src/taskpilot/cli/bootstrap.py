# src/taskpilot/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires stores, engines, agents, router and the model into AppState.
"""

from __future__ import annotations

import logging
from typing import Any

from ..agents.executor import ExecutorAgent
from ..agents.global_agent import GlobalAgent
from ..agents.planner import PlannerAgent
from ..agents.protocol import ToolCallingProtocol
from ..agents.router import LLMRouteClassifier, Router
from ..agents.summarizer import SummarizerAgent
from ..agents.task_creation import TaskCreationAgent
from ..agents.tool_executors import default_tool_executors
from ..config import get_settings
from ..core.ports import ChatModel
from ..core.service import OrchestrationService
from ..core.state import AppState
from ..llm.client import OpenAIChatModel
from ..llm.models import ModelConfig
from ..llm.offline import OfflineChatModel
from ..sessions.session_store import SessionStore
from ..tasks.dependencies import DependencyPropagator
from ..tasks.engine import CommandApplier
from ..tasks.task_store import Database, TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def build_service(
    *,
    db: Database,
    model: ChatModel,
    settings: Any,
) -> tuple[OrchestrationService, TaskStore, SessionStore]:
    """Wire the orchestration core on top of one database and one chat model."""
    task_store = TaskStore(db)
    session_store = SessionStore(db)

    propagator = DependencyPropagator(task_store, session_store)
    applier = CommandApplier(db, task_store, propagator)
    protocol = ToolCallingProtocol(model, default_tool_executors())

    classifier = None
    if getattr(settings, "llm_router_enabled", False):
        classifier = LLMRouteClassifier(model)

    summary_limit = int(getattr(settings, "summary_history_limit", 12))
    service = OrchestrationService(
        task_store=task_store,
        session_store=session_store,
        router=Router(classifier),
        agents=[
            ExecutorAgent(protocol),
            PlannerAgent(protocol),
            GlobalAgent(protocol),
            SummarizerAgent(model, history_limit=summary_limit),
            TaskCreationAgent(model),
        ],
        applier=applier,
        history_limit=int(getattr(settings, "history_limit", 20)),
    )
    return service, task_store, session_store


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    model_cfg = ModelConfig.from_settings(settings)
    model: ChatModel
    offline = not model_cfg.api_key.strip()
    if offline:
        # Demo mode for local runs without an API key.
        logger.warning("No LLM API key configured; using the offline demo model.")
        model = OfflineChatModel()
    else:
        model = OpenAIChatModel.from_settings(settings)

    service, task_store, session_store = build_service(
        db=Database(settings.db_path),
        model=model,
        settings=settings,
    )

    owner_id = int(getattr(settings, "owner_id", 1))
    state = AppState(
        settings=settings,
        task_store=task_store,
        session_store=session_store,
        service=service,
        model_config=model_cfg,
        owner_id=owner_id,
        offline=offline,
    )
    state.current_session_id = session_store.get_or_create_global_session(owner_id).id
    return state
