# tests/conftest.py

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from taskpilot.llm.models import ModelConfig
from taskpilot.sessions.session_store import SessionStore
from taskpilot.tasks.commands import NewStep
from taskpilot.tasks.dependencies import DependencyPropagator
from taskpilot.tasks.engine import CommandApplier
from taskpilot.tasks.task_models import StepStatus, Task
from taskpilot.tasks.task_store import Database, TaskStore

FIXED_NOW = datetime.fromisoformat("2026-10-19T09:30:00+00:00")


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="taskpilot-test",
        log_level="INFO",
        # Empty key -> offline model
        llm_api_key="",
        llm_base_url="http://llm.invalid/v1",
        llm_model="test-model",
        llm_reasoning_effort=None,
        llm_connect_timeout=1.0,
        llm_read_timeout=1.0,
        llm_router_enabled=False,
        # Paths (tmp per test run)
        data_dir=tmp_path / "data",
        db_path=tmp_path / "data" / "taskpilot.sqlite3",
        history_limit=20,
        summary_history_limit=12,
        owner_id=1,
    )


@pytest.fixture()
def model_cfg() -> ModelConfig:
    return ModelConfig(base_url="http://llm.invalid/v1", api_key="k", model="test-model")


@pytest.fixture()
def db(tmp_path: Path) -> Database:
    return Database(tmp_path / "taskpilot.sqlite3")


@pytest.fixture()
def task_store(db: Database) -> TaskStore:
    return TaskStore(db)


@pytest.fixture()
def session_store(db: Database) -> SessionStore:
    return SessionStore(db)


@pytest.fixture()
def propagator(task_store: TaskStore, session_store: SessionStore) -> DependencyPropagator:
    return DependencyPropagator(task_store, session_store)


@pytest.fixture()
def applier(
    db: Database, task_store: TaskStore, propagator: DependencyPropagator
) -> CommandApplier:
    return CommandApplier(db, task_store, propagator)


@pytest.fixture()
def make_task(db: Database, task_store: TaskStore) -> Callable[..., Task]:
    """Insert a task with titled steps and return it re-read from storage."""

    def _make(
        title: str = "Task",
        steps: Sequence[str] = ("first", "second"),
        *,
        owner_id: int = 1,
        due_at: str | None = None,
    ) -> Task:
        with db.transaction() as conn:
            task_id = task_store.insert_task_with_steps(
                conn,
                owner_id=owner_id,
                title=title,
                due_at=due_at,
                steps=[NewStep(title=s) for s in steps],
            )
        task = task_store.get_task_with_steps(owner_id, task_id)
        assert task is not None
        return task

    return _make


@pytest.fixture()
def set_step_status(db: Database, task_store: TaskStore) -> Callable[[int, StepStatus], None]:
    """Write a step status directly, bypassing the command engine."""

    def _set(step_id: int, status: StepStatus) -> None:
        with db.transaction() as conn:
            task_store.update_step_fields(conn, step_id, {"status": status})

    return _set
