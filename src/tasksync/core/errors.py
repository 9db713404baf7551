"""Error taxonomy for the TaskSync engine.

ValidationError lives in the validation module; everything raised by the
mutation engine and stores derives from TaskSyncError.

CRITICAL: This module must have NO Flask dependencies.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Task

__all__ = ["TaskSyncError", "NotFoundError", "ConflictError", "StoreError"]


class TaskSyncError(Exception):
    """Base class for sync engine errors."""


class NotFoundError(TaskSyncError):
    """The referenced task does not exist."""

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found")


class ConflictError(TaskSyncError):
    """The client's version is older than the stored version.

    Always carries the current server copy so the caller can rebase.
    """

    def __init__(self, server_task: "Task", message: str = "Stale version") -> None:
        self.server_task = server_task
        self.message = message
        super().__init__(
            f"{message}: task {server_task.id} is at version {server_task.version}"
        )


class StoreError(TaskSyncError):
    """The underlying task store failed to read or write."""
