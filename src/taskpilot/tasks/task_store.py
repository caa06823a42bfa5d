# src/taskpilot/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from collections.abc import Iterable, Iterator, Mapping, Sequence
from pathlib import Path
from typing import Any

from .commands import DependencySpec, NewStep
from .task_models import (
    Dependency,
    DependencyAction,
    DependencyCondition,
    Priority,
    Step,
    StepStatus,
    Task,
    TaskStatus,
)

logger = logging.getLogger(__name__)


class Database:
    """
    One SQLite file shared by the task graph and the conversation record.

    Thread-safety:
    - every unit of work opens its own connection
    - `transaction()` takes the write lock up front (BEGIN IMMEDIATE), so concurrent
      writers are serialised by SQLite
    """

    def __init__(self, db_path: str | Path = "taskpilot.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._db_path

    def connect(self) -> sqlite3.Connection:
        # isolation_level=None: transactions are opened explicitly.
        conn = sqlite3.connect(str(self._db_path), timeout=30.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.DatabaseError):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")

    @contextlib.contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Commit on success, roll back on any exception (re-raised).

        Everything executed on the yielded connection is one atomic unit.
        """
        conn = self.connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    @contextlib.contextmanager
    def reading(self, conn: sqlite3.Connection | None = None) -> Iterator[sqlite3.Connection]:
        """Reuse the caller's connection, or open a short-lived one."""
        if conn is not None:
            yield conn
            return
        own = self.connect()
        try:
            yield own
        finally:
            own.close()


class TaskStore:
    """
    SQLite task graph: tasks, their ordered steps and dependency edges.

    The schema is migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Write methods take the connection of an open `Database.transaction()` and never
    commit themselves.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._ensure_schema()
        logger.info("TaskStore ready db=%s total=%s", db.path, self.count_tasks())

    # ---- schema ----

    def _ensure_schema(self) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id INTEGER NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    status TEXT NOT NULL DEFAULT 'todo',
                    priority TEXT NOT NULL DEFAULT 'medium',
                    due_at TEXT,
                    is_focus_today INTEGER NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    completed_at REAL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS task_steps (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                    order_index INTEGER NOT NULL DEFAULT 0,
                    title TEXT NOT NULL,
                    detail TEXT NOT NULL DEFAULT '',
                    status TEXT NOT NULL DEFAULT 'todo',
                    blocking_reason TEXT NOT NULL DEFAULT '',
                    estimate_minutes INTEGER,
                    planned_start TEXT,
                    planned_end TEXT,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    completed_at REAL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS task_dependencies (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    predecessor_task_id INTEGER NOT NULL
                        REFERENCES tasks(id) ON DELETE CASCADE,
                    predecessor_step_id INTEGER,
                    successor_task_id INTEGER NOT NULL
                        REFERENCES tasks(id) ON DELETE CASCADE,
                    successor_step_id INTEGER,
                    dependency_condition TEXT NOT NULL,
                    action TEXT NOT NULL DEFAULT 'unlock_step',
                    created_at REAL NOT NULL
                )
                """
            )

            cur = conn.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                conn.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column tasks.%s", name)

            # Columns added after the first schema revision.
            add_col("is_focus_today", "INTEGER NOT NULL DEFAULT 0")
            add_col("completed_at", "REAL")

            conn.execute("CREATE INDEX IF NOT EXISTS idx_tasks_owner ON tasks(owner_id, status)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_steps_task ON task_steps(task_id)")
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_deps_predecessor "
                "ON task_dependencies(predecessor_task_id, predecessor_step_id)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_deps_successor "
                "ON task_dependencies(successor_task_id)"
            )

    # ---- row mapping ----

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            owner_id=int(row["owner_id"]),
            title=str(row["title"] or ""),
            description=str(row["description"] or ""),
            status=TaskStatus.from_db(row["status"]),
            priority=Priority.from_db(row["priority"]),
            due_at=row["due_at"],
            is_focus_today=bool(row["is_focus_today"]),
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
            completed_at=float(row["completed_at"]) if row["completed_at"] is not None else None,
        )

    @staticmethod
    def _row_to_step(row: sqlite3.Row) -> Step:
        return Step(
            id=int(row["id"]),
            task_id=int(row["task_id"]),
            order_index=int(row["order_index"] or 0),
            title=str(row["title"] or ""),
            detail=str(row["detail"] or ""),
            status=StepStatus.from_db(row["status"]),
            blocking_reason=str(row["blocking_reason"] or ""),
            estimate_minutes=(
                int(row["estimate_minutes"]) if row["estimate_minutes"] is not None else None
            ),
            planned_start=row["planned_start"],
            planned_end=row["planned_end"],
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
            completed_at=float(row["completed_at"]) if row["completed_at"] is not None else None,
        )

    @staticmethod
    def _row_to_dependency(row: sqlite3.Row) -> Dependency:
        return Dependency(
            id=int(row["id"]),
            predecessor_task_id=int(row["predecessor_task_id"]),
            predecessor_step_id=row["predecessor_step_id"],
            successor_task_id=int(row["successor_task_id"]),
            successor_step_id=row["successor_step_id"],
            condition=DependencyCondition(row["dependency_condition"]),
            action=DependencyAction(row["action"]),
            created_at=float(row["created_at"] or 0.0),
        )

    # ---- reads ----

    def count_tasks(self) -> int:
        with self._db.reading() as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)

    def get_task(self, task_id: int, conn: sqlite3.Connection | None = None) -> Task | None:
        """Task row without steps, regardless of owner."""
        with self._db.reading(conn) as c:
            row = c.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
            return self._row_to_task(row) if row is not None else None

    def get_task_with_steps(
        self,
        owner_id: int,
        task_id: int,
        conn: sqlite3.Connection | None = None,
    ) -> Task | None:
        with self._db.reading(conn) as c:
            row = c.execute(
                "SELECT * FROM tasks WHERE id = ? AND owner_id = ?",
                (int(task_id), int(owner_id)),
            ).fetchone()
            if row is None:
                return None
            task = self._row_to_task(row)
            task.steps = self.list_steps(task.id, c)
            return task

    def list_steps(self, task_id: int, conn: sqlite3.Connection | None = None) -> list[Step]:
        with self._db.reading(conn) as c:
            rows = c.execute(
                "SELECT * FROM task_steps WHERE task_id = ? ORDER BY order_index ASC, id ASC",
                (int(task_id),),
            ).fetchall()
            return [self._row_to_step(r) for r in rows]

    def get_step(self, step_id: int, conn: sqlite3.Connection | None = None) -> Step | None:
        with self._db.reading(conn) as c:
            row = c.execute("SELECT * FROM task_steps WHERE id = ?", (int(step_id),)).fetchone()
            return self._row_to_step(row) if row is not None else None

    def list_tasks(
        self,
        owner_id: int,
        *,
        include_done: bool = False,
        conn: sqlite3.Connection | None = None,
    ) -> list[Task]:
        """Owner's tasks, newest first, without steps."""
        sql = "SELECT * FROM tasks WHERE owner_id = ?"
        if not include_done:
            sql += " AND status NOT IN ('done', 'cancelled')"
        sql += " ORDER BY created_at DESC, id DESC"
        with self._db.reading(conn) as c:
            rows = c.execute(sql, (int(owner_id),)).fetchall()
            return [self._row_to_task(r) for r in rows]

    def list_dependencies_for_task(
        self,
        task_id: int,
        conn: sqlite3.Connection | None = None,
    ) -> list[Dependency]:
        """Edges touching the task as predecessor or successor."""
        with self._db.reading(conn) as c:
            rows = c.execute(
                """
                SELECT * FROM task_dependencies
                WHERE predecessor_task_id = ? OR successor_task_id = ?
                ORDER BY id ASC
                """,
                (int(task_id), int(task_id)),
            ).fetchall()
            return [self._row_to_dependency(r) for r in rows]

    def find_dependencies(
        self,
        conn: sqlite3.Connection,
        task_id: int,
        step_id: int | None,
    ) -> list[Dependency]:
        """
        Edges fired by a completion event.

        step_id=None  -> whole-task edges (no predecessor step, condition task_done)
        step_id=<id>  -> edges on that step with condition step_done
        """
        if step_id is None:
            rows = conn.execute(
                """
                SELECT * FROM task_dependencies
                WHERE predecessor_task_id = ?
                  AND predecessor_step_id IS NULL
                  AND dependency_condition = 'task_done'
                ORDER BY id ASC
                """,
                (int(task_id),),
            ).fetchall()
        else:
            rows = conn.execute(
                """
                SELECT * FROM task_dependencies
                WHERE predecessor_task_id = ?
                  AND predecessor_step_id = ?
                  AND dependency_condition = 'step_done'
                ORDER BY id ASC
                """,
                (int(task_id), int(step_id)),
            ).fetchall()
        return [self._row_to_dependency(r) for r in rows]

    # ---- writes (inside a transaction) ----

    def insert_task_with_steps(
        self,
        conn: sqlite3.Connection,
        *,
        owner_id: int,
        title: str,
        description: str = "",
        priority: Priority = Priority.MEDIUM,
        due_at: str | None = None,
        steps: Sequence[NewStep] = (),
    ) -> int:
        if not title or not title.strip():
            raise ValueError("title is required")

        now = time.time()
        cur = conn.execute(
            """
            INSERT INTO tasks(
                owner_id, title, description, status, priority, due_at,
                is_focus_today, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, 0, ?, ?)
            """,
            (
                int(owner_id),
                title.strip(),
                description or "",
                TaskStatus.TODO.value,
                priority.value,
                due_at,
                now,
                now,
            ),
        )
        rowid = cur.lastrowid
        if rowid is None:
            raise RuntimeError("SQLite did not return lastrowid for tasks insert")
        task_id = int(rowid)
        self.insert_steps(conn, task_id, steps)
        logger.debug("Task inserted id=%s owner=%s steps=%d", task_id, owner_id, len(steps))
        return task_id

    def insert_steps(
        self,
        conn: sqlite3.Connection,
        task_id: int,
        steps: Sequence[NewStep],
    ) -> list[int]:
        """Append steps after the current last one, in the given order."""
        if not steps:
            return []

        (max_idx,) = conn.execute(
            "SELECT COALESCE(MAX(order_index), -1) FROM task_steps WHERE task_id = ?",
            (int(task_id),),
        ).fetchone()
        next_idx = int(max_idx) + 1

        now = time.time()
        ids: list[int] = []
        for offset, s in enumerate(steps):
            cur = conn.execute(
                """
                INSERT INTO task_steps(
                    task_id, order_index, title, detail, status,
                    estimate_minutes, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    int(task_id),
                    next_idx + offset,
                    s.title,
                    s.detail or "",
                    StepStatus.TODO.value,
                    s.estimate_minutes,
                    now,
                    now,
                ),
            )
            ids.append(int(cur.lastrowid or 0))
        return ids

    def update_task_fields(
        self,
        conn: sqlite3.Connection,
        task_id: int,
        values: Mapping[str, Any],
    ) -> None:
        """Write the given columns and refresh updated_at."""
        self._update_row(conn, "tasks", task_id, values)

    def update_step_fields(
        self,
        conn: sqlite3.Connection,
        step_id: int,
        values: Mapping[str, Any],
    ) -> None:
        self._update_row(conn, "task_steps", step_id, values)

    @staticmethod
    def _update_row(
        conn: sqlite3.Connection,
        table: str,
        row_id: int,
        values: Mapping[str, Any],
    ) -> None:
        fields: list[str] = []
        params: list[Any] = []
        for col, val in values.items():
            fields.append(f"{col} = ?")
            params.append(val.value if hasattr(val, "value") else val)

        fields.append("updated_at = ?")
        params.append(time.time())
        params.append(int(row_id))

        conn.execute(f"UPDATE {table} SET {', '.join(fields)} WHERE id = ?", params)

    def touch_task(self, conn: sqlite3.Connection, task_id: int) -> None:
        conn.execute("UPDATE tasks SET updated_at = ? WHERE id = ?", (time.time(), int(task_id)))

    def insert_dependencies(
        self,
        conn: sqlite3.Connection,
        items: Iterable[DependencySpec],
    ) -> list[int]:
        now = time.time()
        ids: list[int] = []
        for it in items:
            cur = conn.execute(
                """
                INSERT INTO task_dependencies(
                    predecessor_task_id, predecessor_step_id,
                    successor_task_id, successor_step_id,
                    dependency_condition, action, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    int(it.predecessor_task_id),
                    it.predecessor_step_id,
                    int(it.successor_task_id),
                    it.successor_step_id,
                    it.condition.value,
                    it.action.value,
                    now,
                ),
            )
            ids.append(int(cur.lastrowid or 0))
        return ids

    def set_focus_today(
        self,
        conn: sqlite3.Connection,
        owner_id: int,
        task_ids: Iterable[int],
    ) -> int:
        """Flag the owner's tasks; ids owned by someone else are not touched."""
        ids = [int(t) for t in task_ids]
        if not ids:
            return 0
        placeholders = ",".join("?" for _ in ids)
        cur = conn.execute(
            f"""
            UPDATE tasks
            SET is_focus_today = 1, updated_at = ?
            WHERE owner_id = ?
              AND id IN ({placeholders})
            """,
            (time.time(), int(owner_id), *ids),
        )
        return int(cur.rowcount)

    def unlock_step(self, conn: sqlite3.Connection, task_id: int, step_id: int) -> bool:
        """locked -> todo. Any other state is left alone; returns True if the row changed."""
        cur = conn.execute(
            """
            UPDATE task_steps
            SET status = 'todo', updated_at = ?
            WHERE id = ?
              AND task_id = ?
              AND status = 'locked'
            """,
            (time.time(), int(step_id), int(task_id)),
        )
        return cur.rowcount == 1

    def set_task_todo(self, conn: sqlite3.Connection, task_id: int) -> bool:
        """Move a task to todo unless it is already done."""
        cur = conn.execute(
            """
            UPDATE tasks
            SET status = 'todo', updated_at = ?
            WHERE id = ?
              AND status != 'done'
            """,
            (time.time(), int(task_id)),
        )
        return cur.rowcount == 1
