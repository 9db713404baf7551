"""SQLite task store for TaskSync.

This module provides the persistent TaskStore backend. A single connection
is shared by all threads and serialized with a lock; every write runs in its
own transaction so conditional writes are atomic.

CRITICAL: This module must have NO Flask dependencies.
"""

from __future__ import annotations

import contextlib
import logging
import sqlite3
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Union

from .errors import StoreError
from .models import Task
from .store import MemoryTaskStore, TaskStore

if TYPE_CHECKING:
    from .config import Config

logger = logging.getLogger(__name__)

__all__ = ["SqliteTaskStore", "open_store"]

_TASK_COLUMNS = (
    "id, title, description, completed, priority, user_id, "
    "created_at, updated_at, version"
)

_MARKER_KEY = "last_task_update"

# SQLite INTEGER is a signed 64-bit value
_SQLITE_MAX_INT = 2**63 - 1


class SqliteTaskStore(TaskStore):
    """SQLite-backed task store.

    The schema is created on first use. The last update marker lives in a
    separate sync_state table so it survives task deletion.
    """

    def __init__(self, db_path: Union[Path, str] = ":memory:", timeout: float = 30.0) -> None:
        """Open (and initialize if needed) the database.

        Args:
            db_path: Path to the SQLite database file, or ':memory:'
            timeout: Seconds to wait on a locked database file
        """
        path_str = str(db_path)
        if path_str != ":memory:":
            Path(path_str).parent.mkdir(parents=True, exist_ok=True)
        self._db_path = path_str
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(path_str, timeout=timeout, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            if path_str != ":memory:":
                with contextlib.suppress(sqlite3.Error):
                    self._conn.execute("PRAGMA journal_mode=WAL")
            self._ensure_schema()
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open task database {path_str}: {e}") from e
        logger.info(f"Opened task database at {path_str}")

    # ---- low-level helpers ----

    @contextlib.contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block in a transaction, translating sqlite errors."""
        with self._lock:
            try:
                with self._conn:
                    yield self._conn
            except (sqlite3.Error, OverflowError) as e:
                logger.error(f"Task database error ({self._db_path}): {e}")
                raise StoreError(str(e)) from e

    def _ensure_schema(self) -> None:
        with self._conn:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    completed INTEGER NOT NULL DEFAULT 0,
                    priority TEXT NOT NULL DEFAULT 'medium',
                    user_id TEXT NOT NULL,
                    created_at INTEGER NOT NULL,
                    updated_at INTEGER NOT NULL,
                    version INTEGER NOT NULL DEFAULT 1
                )
                """
            )
            self._conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_user_updated ON tasks(user_id, updated_at)"
            )
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sync_state (
                    key TEXT PRIMARY KEY,
                    value INTEGER NOT NULL
                )
                """
            )

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            completed=bool(row["completed"]),
            priority=row["priority"],
            user_id=row["user_id"],
            created_at=int(row["created_at"]),
            updated_at=int(row["updated_at"]),
            version=int(row["version"]),
        )

    @staticmethod
    def _task_params(task: Task) -> Dict[str, Any]:
        return {
            "id": task.id,
            "title": task.title,
            "description": task.description,
            "completed": 1 if task.completed else 0,
            "priority": task.priority,
            "user_id": task.user_id,
            "created_at": task.created_at,
            "updated_at": task.updated_at,
            "version": task.version,
        }

    @staticmethod
    def _advance_marker(conn: sqlite3.Connection, updated_at: int) -> None:
        conn.execute(
            """
            INSERT INTO sync_state (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = MAX(value, excluded.value)
            """,
            (_MARKER_KEY, updated_at),
        )

    # ---- TaskStore ----

    def get_by_id(self, task_id: str) -> Optional[Task]:
        with self._transaction() as conn:
            row = conn.execute(
                f"SELECT {_TASK_COLUMNS} FROM tasks WHERE id = ?", (task_id,)
            ).fetchone()
        return self._row_to_task(row) if row else None

    def get_by_filter(
        self,
        user_id: Optional[str] = None,
        modified_since: Optional[Union[int, float]] = None,
    ) -> List[Task]:
        clauses: List[str] = []
        params: List[Any] = []
        if user_id:
            clauses.append("user_id = ?")
            params.append(user_id)
        if modified_since is not None:
            clauses.append("updated_at > ?")
            if abs(modified_since) > _SQLITE_MAX_INT:
                modified_since = float(modified_since)
            params.append(modified_since)

        query = f"SELECT {_TASK_COLUMNS} FROM tasks"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY updated_at, id"

        with self._transaction() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_task(row) for row in rows]

    def upsert(self, task: Task, expected_version: Optional[int] = None) -> bool:
        params = self._task_params(task)
        with self._transaction() as conn:
            if expected_version is not None:
                cursor = conn.execute(
                    """
                    UPDATE tasks SET
                        title = :title, description = :description,
                        completed = :completed, priority = :priority,
                        user_id = :user_id, created_at = :created_at,
                        updated_at = :updated_at, version = :version
                    WHERE id = :id AND version = :expected_version
                    """,
                    {**params, "expected_version": expected_version},
                )
                if cursor.rowcount != 1:
                    logger.debug(f"Conditional write rejected for task {task.id}")
                    return False
            else:
                conn.execute(
                    f"""
                    INSERT INTO tasks ({_TASK_COLUMNS})
                    VALUES (:id, :title, :description, :completed, :priority,
                            :user_id, :created_at, :updated_at, :version)
                    ON CONFLICT(id) DO UPDATE SET
                        title = excluded.title,
                        description = excluded.description,
                        completed = excluded.completed,
                        priority = excluded.priority,
                        user_id = excluded.user_id,
                        created_at = excluded.created_at,
                        updated_at = excluded.updated_at,
                        version = excluded.version
                    """,
                    params,
                )
            self._advance_marker(conn, task.updated_at)
        return True

    def insert(self, task: Task) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute(
                f"""
                INSERT INTO tasks ({_TASK_COLUMNS})
                VALUES (:id, :title, :description, :completed, :priority,
                        :user_id, :created_at, :updated_at, :version)
                ON CONFLICT(id) DO NOTHING
                """,
                self._task_params(task),
            )
            if cursor.rowcount != 1:
                logger.debug(f"Insert rejected for existing task {task.id}")
                return False
            self._advance_marker(conn, task.updated_at)
        return True

    def delete(self, task_id: str, expected_version: Optional[int] = None) -> bool:
        with self._transaction() as conn:
            if expected_version is None:
                cursor = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            else:
                cursor = conn.execute(
                    "DELETE FROM tasks WHERE id = ? AND version = ?",
                    (task_id, expected_version),
                )
        return cursor.rowcount == 1

    def get_last_update_marker(self) -> int:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT value FROM sync_state WHERE key = ?", (_MARKER_KEY,)
            ).fetchone()
        return int(row["value"]) if row else 0

    def count_tasks(self) -> int:
        """Get the number of stored tasks."""
        with self._transaction() as conn:
            row = conn.execute("SELECT COUNT(*) AS n FROM tasks").fetchone()
        return int(row["n"])

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()
        logger.debug(f"Closed task database at {self._db_path}")


def open_store(config: "Config") -> TaskStore:
    """Open the task store selected in the configuration.

    Args:
        config: Config instance

    Returns:
        A SqliteTaskStore on the configured database file, or a
        MemoryTaskStore when the "memory" backend is selected
    """
    backend = config.get_store_backend()
    if backend == "memory":
        logger.info("Using in-memory task store (tasks are lost on exit)")
        return MemoryTaskStore()
    return SqliteTaskStore(config.get_database_file())
