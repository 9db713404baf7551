"""Task store contract and in-memory implementation.

The mutation engine only talks to a TaskStore. Any backend works as long as
a write is visible to the very next read and the conditional forms of
upsert/delete are atomic with respect to other writers.

CRITICAL: This module must have NO Flask dependencies.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Union

from .models import Task

logger = logging.getLogger(__name__)

__all__ = ["TaskStore", "MemoryTaskStore", "matches_filter"]


def matches_filter(
    task: Task,
    user_id: Optional[str] = None,
    modified_since: Optional[Union[int, float]] = None,
) -> bool:
    """Check a task against an incremental query filter.

    The modified_since boundary is exclusive: a task whose updated_at equals
    the checkpoint was already seen by the client.
    """
    if user_id and task.user_id != user_id:
        return False
    if modified_since is not None and task.updated_at <= modified_since:
        return False
    return True


class TaskStore(ABC):
    """Durable keyed storage for task records."""

    @abstractmethod
    def get_by_id(self, task_id: str) -> Optional[Task]:
        """Get a task by ID, or None if it does not exist."""

    @abstractmethod
    def get_by_filter(
        self,
        user_id: Optional[str] = None,
        modified_since: Optional[Union[int, float]] = None,
    ) -> List[Task]:
        """Get tasks matching matches_filter(), ordered by (updated_at, id)."""

    @abstractmethod
    def upsert(self, task: Task, expected_version: Optional[int] = None) -> bool:
        """Insert or replace a task and advance the last update marker.

        Args:
            task: Task to write
            expected_version: When given, write only if a stored task with
                this exact version exists

        Returns:
            True if written, False if the expected_version precondition failed
        """

    @abstractmethod
    def insert(self, task: Task) -> bool:
        """Write a task only if no task with its ID exists.

        Returns:
            True if written, False if the ID is already taken (the stored
            task and the last update marker are left untouched)
        """

    @abstractmethod
    def delete(self, task_id: str, expected_version: Optional[int] = None) -> bool:
        """Permanently remove a task.

        Returns:
            True if a task was removed, False if it did not exist or the
            expected_version precondition failed
        """

    @abstractmethod
    def get_last_update_marker(self) -> int:
        """Get the maximum updated_at ever written (0 for an empty store)."""

    def close(self) -> None:
        """Release backend resources."""


class MemoryTaskStore(TaskStore):
    """Thread-safe in-memory store, used for tests and the "memory" backend."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tasks: Dict[str, Task] = {}
        self._last_update = 0

    def get_by_id(self, task_id: str) -> Optional[Task]:
        with self._lock:
            return self._tasks.get(task_id)

    def get_by_filter(
        self,
        user_id: Optional[str] = None,
        modified_since: Optional[Union[int, float]] = None,
    ) -> List[Task]:
        with self._lock:
            tasks = [
                task for task in self._tasks.values()
                if matches_filter(task, user_id, modified_since)
            ]
        return sorted(tasks, key=lambda t: (t.updated_at, t.id))

    def upsert(self, task: Task, expected_version: Optional[int] = None) -> bool:
        with self._lock:
            if expected_version is not None:
                current = self._tasks.get(task.id)
                if current is None or current.version != expected_version:
                    logger.debug(f"Conditional write rejected for task {task.id}")
                    return False
            self._tasks[task.id] = task
            self._last_update = max(self._last_update, task.updated_at)
            return True

    def insert(self, task: Task) -> bool:
        with self._lock:
            if task.id in self._tasks:
                return False
            self._tasks[task.id] = task
            self._last_update = max(self._last_update, task.updated_at)
            return True

    def delete(self, task_id: str, expected_version: Optional[int] = None) -> bool:
        with self._lock:
            current = self._tasks.get(task_id)
            if current is None:
                return False
            if expected_version is not None and current.version != expected_version:
                return False
            del self._tasks[task_id]
            return True

    def get_last_update_marker(self) -> int:
        with self._lock:
            return self._last_update

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)
