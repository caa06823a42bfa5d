# tests/test_commands.py

from __future__ import annotations

import pytest

from taskpilot.cli.bootstrap import create_initial_state
from taskpilot.cli.commands import CommandRegistry, registry
from taskpilot.connectors.console_connector import handle_line
from taskpilot.core.state import AppState
from taskpilot.sessions.session_models import SessionKind


@pytest.fixture()
def state(settings) -> AppState:
    """AppState wired by the real bootstrap; the empty API key selects the offline model."""
    return create_initial_state(settings=settings)


def test_command_registry_routes_2_and_3_params(state) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}

    def h2(state, args):
        called["h2"] += 1
        return "h2"

    def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a")
    reg.register("b", h3, "b")

    notes: list[str] = []
    assert reg.handle(state, "/a x") == "h2"
    assert reg.handle(state, "/b y", emit=notes.append) == "h3"
    assert called == {"h2": 1, "h3": 1}
    assert notes == ["note"]


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")
    assert "Empty command" in (reg.handle(state, "/") or "")


def test_bootstrap_starts_offline_in_global_session(state) -> None:
    assert state.offline is True
    session = state.session_store.get_session(state.current_session_id)
    assert session.kind is SessionKind.GLOBAL


def test_help_lists_commands(state) -> None:
    text = registry.handle(state, "/help") or ""
    for name in ("/tasks", "/open", "/global", "/new", "/show", "/exit"):
        assert name in text


def test_new_creates_task_and_switches_session(state) -> None:
    emitted: list[str] = []

    reply = registry.handle(state, "/new Prepare the quarterly review", emit=emitted.append) or ""

    assert emitted == ["Creating a task from your text..."]
    assert "Prepare the quarterly review" in reply
    assert "Get started" in reply
    (task,) = state.task_store.list_tasks(state.owner_id)
    session = state.session_store.get_session(state.current_session_id)
    assert session.kind is SessionKind.TASK
    assert session.task_id == task.id


def test_open_show_and_global(state) -> None:
    registry.handle(state, "/new Fix the bike")
    (task,) = state.task_store.list_tasks(state.owner_id)
    registry.handle(state, "/global")

    assert registry.handle(state, "/open 999") == "Task #999 not found."
    assert registry.handle(state, "/open abc") == "Usage: /open <task_id>"

    opened = registry.handle(state, f"/open {task.id}") or ""
    assert "Fix the bike" in opened
    shown = registry.handle(state, "/show") or ""
    assert f"#{task.id} [todo]" in shown
    assert "Get started" in shown

    registry.handle(state, "/global")
    overview = registry.handle(state, "/show") or ""
    assert overview.startswith("Global session.")
    assert "Fix the bike" in overview


def test_tasks_listing(state) -> None:
    assert "No tasks yet" in (registry.handle(state, "/tasks") or "")
    registry.handle(state, "/new Water the plants")
    assert "Water the plants" in (registry.handle(state, "/tasks all") or "")


def test_plain_text_goes_to_current_session(state) -> None:
    reply = handle_line(state, "hello there")

    assert reply.startswith("<<< global: Offline demo mode")
    assert "You said: hello there" in reply
    history = state.session_store.list_recent_messages(state.current_session_id)
    assert [m.role for m in history] == ["user", "assistant"]
