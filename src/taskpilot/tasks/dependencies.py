# src/taskpilot/tasks/dependencies.py

from __future__ import annotations

import logging
import sqlite3

from ..core.errors import DependencyError
from ..sessions.session_store import SessionStore
from .task_models import Dependency, DependencyAction
from .task_store import TaskStore


class DependencyPropagator:
    """
    Reacts to a completion event by firing the matching dependency edges.

    Runs on the connection of the transaction that recorded the completion, so a
    failing edge rolls the completion back with it. Propagation is one hop: the
    effects of a fired edge never re-scan for further edges.
    """

    def __init__(
        self,
        task_store: TaskStore,
        session_store: SessionStore,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._tasks = task_store
        self._sessions = session_store
        self._log = logger or logging.getLogger(__name__)

    def on_completed(
        self,
        conn: sqlite3.Connection,
        task_id: int,
        step_id: int | None = None,
    ) -> list[Dependency]:
        """
        Fire edges for (task, step) or, with step_id=None, for the whole task.

        Returns the edges that matched.
        """
        try:
            edges = self._tasks.find_dependencies(conn, task_id, step_id)
            if not edges:
                return []

            predecessor = self._predecessor_name(conn, task_id, step_id)
            for edge in edges:
                self._fire(conn, edge, predecessor)
            return edges
        except (sqlite3.Error, ValueError) as e:
            # ValueError: stored edge with an out-of-domain condition or action
            raise DependencyError(
                f"propagation failed for task={task_id} step={step_id}: {e}"
            ) from e

    def _fire(self, conn: sqlite3.Connection, edge: Dependency, predecessor: str) -> None:
        if edge.action is DependencyAction.UNLOCK_STEP:
            if edge.successor_step_id is None:
                raise DependencyError(f"edge {edge.id}: unlock_step without successor_step_id")
            changed = self._tasks.unlock_step(conn, edge.successor_task_id, edge.successor_step_id)
            self._log.info(
                "Dependency %s fired: unlock_step task=%s step=%s changed=%s",
                edge.id,
                edge.successor_task_id,
                edge.successor_step_id,
                changed,
            )
            return

        if edge.action is DependencyAction.SET_TASK_TODO:
            changed = self._tasks.set_task_todo(conn, edge.successor_task_id)
            self._log.info(
                "Dependency %s fired: set_task_todo task=%s changed=%s",
                edge.id,
                edge.successor_task_id,
                changed,
            )
            return

        if edge.action is DependencyAction.NOTIFY_ONLY:
            successor = self._tasks.get_task(edge.successor_task_id, conn)
            if successor is None:
                raise DependencyError(
                    f"edge {edge.id}: successor task {edge.successor_task_id} not found"
                )
            content = (
                f'System notice: {predecessor} is done, which triggered this notification '
                f'for task "{successor.title}".'
            )
            self._sessions.append_system_message_for_task(
                successor.owner_id, successor.id, content, conn=conn
            )
            self._log.info(
                "Dependency %s fired: notify_only task=%s", edge.id, edge.successor_task_id
            )
            return

        raise DependencyError(f"edge {edge.id}: unsupported action {edge.action!r}")

    def _predecessor_name(
        self,
        conn: sqlite3.Connection,
        task_id: int,
        step_id: int | None,
    ) -> str:
        if step_id is not None:
            step = self._tasks.get_step(step_id, conn)
            if step is not None:
                return f'step "{step.title}"'
        else:
            task = self._tasks.get_task(task_id, conn)
            if task is not None:
                return f'task "{task.title}"'
        return "a related dependency"
