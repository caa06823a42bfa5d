# src/taskpilot/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
from collections.abc import Callable
from typing import cast

from ..core.errors import NotFoundError
from ..core.state import AppState
from ..sessions.session_models import SessionKind
from ..tasks.task_models import Task

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        lines.append("  /exit - Quit.")
        return "\n".join(lines)


registry = CommandRegistry()


def format_task_line(task: Task) -> str:
    focus = " *today*" if task.is_focus_today else ""
    due = f" due {task.due_at}" if task.due_at else ""
    return f"#{task.id} [{task.status.value}] ({task.priority.value}) {task.title}{due}{focus}"


def format_task_detail(task: Task) -> str:
    lines = [format_task_line(task)]
    if task.description:
        lines.append(f"  {task.description}")
    for s in task.steps:
        est = f" ~{s.estimate_minutes}min" if s.estimate_minutes else ""
        reason = f" - {s.blocking_reason}" if s.blocking_reason else ""
        lines.append(f"  {s.order_index}. [{s.status.value}] {s.title} (step {s.id}){est}{reason}")
    if not task.steps:
        lines.append("  (no steps)")
    return "\n".join(lines)


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_tasks(state: AppState, args: list[str]) -> str:
    """
    /tasks      -> open tasks
    /tasks all  -> include done/cancelled
    """
    include_done = bool(args) and args[0].lower() == "all"
    tasks = state.task_store.list_tasks(state.owner_id, include_done=include_done)
    if not tasks:
        return "No tasks yet. Use /new <text> to create one."
    return "\n".join(format_task_line(t) for t in tasks)


def cmd_open(state: AppState, args: list[str]) -> str:
    if not args or not args[0].isdigit():
        return "Usage: /open <task_id>"

    task_id = int(args[0])
    task = state.task_store.get_task_with_steps(state.owner_id, task_id)
    if task is None:
        return f"Task #{task_id} not found."

    session = state.session_store.get_or_create_task_session(state.owner_id, task_id)
    state.current_session_id = session.id
    logger.debug("Switched to task session=%s task=%s", session.id, task_id)
    return f"Now talking about task #{task.id}: {task.title}"


def cmd_global(state: AppState, args: list[str]) -> str:
    session = state.session_store.get_or_create_global_session(state.owner_id)
    state.current_session_id = session.id
    return "Now in the global session (all tasks)."


def cmd_new(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    text = " ".join(args).strip()
    if not text:
        return "Usage: /new <free text describing the task>"

    if emit:
        with contextlib.suppress(OSError):
            emit("Creating a task from your text...")

    created = state.service.create_task_from_text(state.owner_id, text, state.model_config)
    state.current_session_id = created.session.id
    return f"{created.text}\n{format_task_detail(created.task)}"


def cmd_show(state: AppState, args: list[str]) -> str:
    if state.current_session_id is None:
        return "No active session."

    session = state.session_store.get_session(state.current_session_id)
    if session is None:
        raise NotFoundError(f"session {state.current_session_id} not found")

    if session.kind is SessionKind.GLOBAL or session.task_id is None:
        return "Global session.\n" + cmd_tasks(state, [])

    task = state.task_store.get_task_with_steps(state.owner_id, session.task_id)
    if task is None:
        return f"Task #{session.task_id} no longer exists."
    deps = state.task_store.list_dependencies_for_task(task.id)
    out = format_task_detail(task)
    if deps:
        out += f"\n  dependencies: {len(deps)}"
    return out


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("tasks", cmd_tasks, help_text="List open tasks (/tasks all for every task).")
registry.register("open", cmd_open, help_text="Talk about one task: /open <task_id>.")
registry.register("global", cmd_global, help_text="Switch to the cross-task session.")
registry.register("new", cmd_new, help_text="Create a task from free text: /new <text>.")
registry.register("show", cmd_show, help_text="Show the current task (or all tasks).")
