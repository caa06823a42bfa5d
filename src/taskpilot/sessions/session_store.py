# src/taskpilot/sessions/session_store.py

from __future__ import annotations

import logging
import sqlite3
import time

from ..tasks.task_store import Database
from .session_models import Message, Session, SessionKind

logger = logging.getLogger(__name__)

_ROLES = ("user", "assistant", "system")


class SessionStore:
    """
    Sessions and their ordered conversation record.

    Lives in the same SQLite file as the task graph so that system notices written by
    dependency propagation share the command transaction.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._ensure_schema()
        logger.info("SessionStore ready db=%s", db.path)

    def _ensure_schema(self) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id INTEGER NOT NULL,
                    task_id INTEGER,
                    kind TEXT NOT NULL DEFAULT 'task',
                    created_at REAL NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS messages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id INTEGER NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
                    role TEXT NOT NULL,
                    agent_name TEXT,
                    content TEXT NOT NULL,
                    created_at REAL NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_sessions_owner ON sessions(owner_id, kind, task_id)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_messages_session ON messages(session_id, id)"
            )

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> Session:
        return Session(
            id=int(row["id"]),
            owner_id=int(row["owner_id"]),
            kind=SessionKind.from_db(row["kind"]),
            task_id=int(row["task_id"]) if row["task_id"] is not None else None,
            created_at=float(row["created_at"] or 0.0),
        )

    @staticmethod
    def _row_to_message(row: sqlite3.Row) -> Message:
        return Message(
            id=int(row["id"]),
            session_id=int(row["session_id"]),
            role=str(row["role"]),
            content=str(row["content"] or ""),
            agent_name=row["agent_name"],
            created_at=float(row["created_at"] or 0.0),
        )

    # ---- sessions ----

    def create_session(
        self,
        owner_id: int,
        kind: SessionKind,
        task_id: int | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> Session:
        if kind is SessionKind.TASK and task_id is None:
            raise ValueError("task sessions need a task_id")

        now = time.time()
        if conn is None:
            with self._db.transaction() as c:
                cur = c.execute(
                    "INSERT INTO sessions(owner_id, task_id, kind, created_at) VALUES (?, ?, ?, ?)",
                    (int(owner_id), task_id, kind.value, now),
                )
                session_id = int(cur.lastrowid or 0)
        else:
            cur = conn.execute(
                "INSERT INTO sessions(owner_id, task_id, kind, created_at) VALUES (?, ?, ?, ?)",
                (int(owner_id), task_id, kind.value, now),
            )
            session_id = int(cur.lastrowid or 0)
        logger.debug("Session created id=%s kind=%s task=%s", session_id, kind.value, task_id)
        return Session(
            id=session_id, owner_id=int(owner_id), kind=kind, task_id=task_id, created_at=now
        )

    def get_session(
        self, session_id: int, conn: sqlite3.Connection | None = None
    ) -> Session | None:
        with self._db.reading(conn) as c:
            row = c.execute("SELECT * FROM sessions WHERE id = ?", (int(session_id),)).fetchone()
            return self._row_to_session(row) if row is not None else None

    def get_or_create_task_session(
        self,
        owner_id: int,
        task_id: int,
        conn: sqlite3.Connection | None = None,
    ) -> Session:
        with self._db.reading(conn) as c:
            row = c.execute(
                """
                SELECT * FROM sessions
                WHERE owner_id = ? AND kind = 'task' AND task_id = ?
                ORDER BY id ASC LIMIT 1
                """,
                (int(owner_id), int(task_id)),
            ).fetchone()
        if row is not None:
            return self._row_to_session(row)
        return self.create_session(owner_id, SessionKind.TASK, task_id, conn=conn)

    def get_or_create_global_session(
        self, owner_id: int, conn: sqlite3.Connection | None = None
    ) -> Session:
        with self._db.reading(conn) as c:
            row = c.execute(
                """
                SELECT * FROM sessions
                WHERE owner_id = ? AND kind = 'global'
                ORDER BY id ASC LIMIT 1
                """,
                (int(owner_id),),
            ).fetchone()
        if row is not None:
            return self._row_to_session(row)
        return self.create_session(owner_id, SessionKind.GLOBAL, None, conn=conn)

    # ---- messages ----

    def list_recent_messages(
        self,
        session_id: int,
        limit: int = 20,
        conn: sqlite3.Connection | None = None,
    ) -> list[Message]:
        """Last `limit` messages, oldest first."""
        with self._db.reading(conn) as c:
            rows = c.execute(
                """
                SELECT * FROM messages
                WHERE session_id = ?
                ORDER BY id DESC
                LIMIT ?
                """,
                (int(session_id), max(0, int(limit))),
            ).fetchall()
        return [self._row_to_message(r) for r in reversed(rows)]

    def append_message(
        self,
        session_id: int,
        role: str,
        content: str,
        agent_name: str | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> int:
        if role not in _ROLES:
            raise ValueError(f"unsupported message role: {role!r}")

        params = (int(session_id), role, agent_name, content or "", time.time())
        sql = (
            "INSERT INTO messages(session_id, role, agent_name, content, created_at) "
            "VALUES (?, ?, ?, ?, ?)"
        )
        if conn is None:
            with self._db.transaction() as c:
                return int(c.execute(sql, params).lastrowid or 0)
        return int(conn.execute(sql, params).lastrowid or 0)

    def append_system_message_for_task(
        self,
        owner_id: int,
        task_id: int,
        content: str,
        conn: sqlite3.Connection | None = None,
    ) -> int:
        """System notice on the task's conversation; the session is created if missing."""
        session = self.get_or_create_task_session(owner_id, task_id, conn=conn)
        return self.append_message(session.id, "system", content, conn=conn)
