"""Incremental queries for TaskSync.

Clients pull server-side changes with "everything for user U modified after
T". The response also carries the store's last update marker and the server
time, so a client can record a new checkpoint even when nothing changed.

CRITICAL: This module must have NO Flask dependencies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from .models import Task
from .store import TaskStore
from .timestamp_utils import now_ms

logger = logging.getLogger(__name__)


@dataclass
class TaskListing:
    """Result of an incremental query."""

    tasks: List[Task]
    last_sync: int
    server_time: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tasks": [task.to_dict() for task in self.tasks],
            "lastSync": self.last_sync,
            "serverTime": self.server_time,
        }


def list_tasks(
    store: TaskStore,
    user_id: Optional[str] = None,
    modified_since: Optional[Union[int, float]] = None,
    clock: Callable[[], int] = now_ms,
) -> TaskListing:
    """Get tasks changed strictly after modified_since.

    Args:
        store: Task store to query
        user_id: Only return this user's tasks (all users if None)
        modified_since: Checkpoint in epoch ms; tasks with updated_at equal
            to it are not returned again
        clock: Returns the current time in epoch milliseconds

    Returns:
        TaskListing with matching tasks, the last update marker and server time
    """
    tasks = store.get_by_filter(user_id=user_id, modified_since=modified_since)
    listing = TaskListing(
        tasks=tasks,
        last_sync=store.get_last_update_marker(),
        server_time=clock(),
    )
    logger.debug(
        f"Returning {len(tasks)} tasks for user {user_id} since {modified_since}"
    )
    return listing
