"""Conflict-checked mutation engine for TaskSync.

This module applies exactly one create, update or delete against a TaskStore
under optimistic concurrency control:

- Every task carries a version that starts at 1 and grows by exactly 1 per
  accepted update.
- An update or delete whose client version is older than the stored version
  is rejected with ConflictError carrying the current server copy.
- A client version equal to or newer than the stored one is accepted; the new
  version is always computed from the stored version, never from the client's.

The version check and the write happen under a per-task lock, and the write
itself is conditional on the version that was checked, so concurrent writers
cannot both succeed against the same stored version. Creates use an
insert-if-absent write, so a task created elsewhere is never overwritten.
Events are published before the lock is released, so sinks see the events
of one task in version order.

CRITICAL: This module must have NO Flask dependencies.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, Optional, Union

from uuid6 import uuid7

from .errors import ConflictError, NotFoundError
from .events import EventSink, TaskEvent, TaskEventType, publish_event
from .locks import KeyedLock
from .models import DEFAULT_USER_ID, Task
from .store import TaskStore
from .timestamp_utils import now_ms
from .validation import (
    CreateInput,
    UpdatePatch,
    ValidationError,
    parse_create_input,
    parse_update_patch,
)

logger = logging.getLogger(__name__)

Number = Union[int, float]


def generate_task_id() -> str:
    """Generate a new task ID (UUID7 hex string)."""
    return uuid7().hex


class MutationEngine:
    """Applies single task mutations against a store.

    Attributes:
        store: The task store all mutations are written to
    """

    def __init__(
        self,
        store: TaskStore,
        clock: Callable[[], int] = now_ms,
        locks: Optional[KeyedLock] = None,
        sinks: Iterable[EventSink] = (),
        id_factory: Callable[[], str] = generate_task_id,
        default_user_id: str = DEFAULT_USER_ID,
    ) -> None:
        """Initialize the engine.

        Args:
            store: Task store capability
            clock: Returns the current time in epoch milliseconds
            locks: Per-task lock registry (a private one is created if None)
            sinks: Event sinks notified after each accepted mutation
            id_factory: Generates IDs for tasks created without one
            default_user_id: Owner for raw payloads without a user
        """
        self.store = store
        self._clock = clock
        self._locks = locks if locks is not None else KeyedLock()
        self._sinks = tuple(sinks)
        self._id_factory = id_factory
        self.default_user_id = default_user_id

    def now(self) -> int:
        """Current time according to the engine's clock."""
        return self._clock()

    def get(self, task_id: str) -> Task:
        """Get a task by ID.

        Raises:
            NotFoundError: If the task does not exist
        """
        task = self.store.get_by_id(task_id)
        if task is None:
            raise NotFoundError(task_id)
        return task

    def create(
        self,
        data: Union[CreateInput, Dict[str, Any]],
        fallback_title: Optional[str] = None,
    ) -> Task:
        """Create a task at version 1.

        Args:
            data: Parsed CreateInput or a raw client payload
            fallback_title: Title used when a raw payload has none

        Returns:
            The stored task. If a task with the supplied ID already exists it
            is returned unchanged (replayed create).

        Raises:
            ValidationError: If a raw payload has no usable title and no
                fallback_title is given
        """
        if not isinstance(data, CreateInput):
            data = parse_create_input(
                data, fallback_title=fallback_title, default_user_id=self.default_user_id
            ).unwrap()

        task_id = data.id or self._id_factory()
        with self._locks.hold(task_id):
            check_existing = bool(data.id)
            while True:
                if check_existing:
                    existing = self.store.get_by_id(task_id)
                    if existing is not None:
                        logger.info(
                            f"Create for existing task {task_id} treated as replay "
                            f"(version {existing.version})"
                        )
                        return existing

                now = self._clock()
                task = Task(
                    id=task_id,
                    title=data.title,
                    description=data.description,
                    completed=data.completed,
                    priority=data.priority,
                    user_id=data.user_id,
                    created_at=data.created_at or now,
                    updated_at=now,
                    version=1,
                )
                # Another writer may create the same id after the read above.
                if self.store.insert(task):
                    break
                logger.warning(f"Concurrent create detected for task {task_id}")
                check_existing = True

            logger.info(f"Created task {task.id} for user {task.user_id}")
            self._notify(TaskEventType.TASK_CREATED, task)
        return task

    def update(
        self,
        task_id: str,
        client_version: Optional[Number],
        patch: Union[UpdatePatch, Dict[str, Any]],
    ) -> Task:
        """Apply an update if the client's version is not stale.

        Args:
            task_id: ID of the task to update
            client_version: Version the client last observed
            patch: Parsed UpdatePatch or a raw client payload

        Returns:
            The merged, persisted task

        Raises:
            NotFoundError: If the task does not exist
            ValidationError: If client_version is missing
            ConflictError: If client_version is older than the stored version
        """
        if not isinstance(patch, UpdatePatch):
            patch = parse_update_patch(patch).unwrap()

        with self._locks.hold(task_id):
            existing = self.get(task_id)
            if client_version is None:
                raise ValidationError("version", "is required")
            self._check_version(existing, client_version)

            updated = replace(
                existing,
                title=patch.title if patch.title is not None else existing.title,
                description=(
                    patch.description if patch.description is not None else existing.description
                ),
                completed=patch.completed if patch.completed is not None else existing.completed,
                priority=patch.priority if patch.priority is not None else existing.priority,
                updated_at=max(self._clock(), existing.updated_at),
                version=existing.version + 1,
            )
            if not self.store.upsert(updated, expected_version=existing.version):
                raise self._lost_write(task_id)

            logger.info(f"Updated task {task_id} to version {updated.version}")
            self._notify(TaskEventType.TASK_UPDATED, updated)
        return updated

    def delete(self, task_id: str, client_version: Optional[Number] = None) -> bool:
        """Permanently delete a task.

        Deleting a task that does not exist succeeds without touching the
        store.

        Args:
            task_id: ID of the task to delete
            client_version: Version the client last observed (optional)

        Returns:
            True if a task was removed, False if there was nothing to delete

        Raises:
            ConflictError: If client_version is older than the stored version
        """
        with self._locks.hold(task_id):
            existing = self.store.get_by_id(task_id)
            if existing is None:
                logger.debug(f"Delete of missing task {task_id} treated as success")
                return False
            if client_version is not None:
                self._check_version(existing, client_version)

            if not self.store.delete(task_id, expected_version=existing.version):
                current = self.store.get_by_id(task_id)
                if current is None:
                    return False
                raise ConflictError(current)

            logger.info(f"Deleted task {task_id} at version {existing.version}")
            publish_event(self._sinks, TaskEvent(
                type=TaskEventType.TASK_DELETED,
                task_id=task_id,
                timestamp=self._clock(),
            ))
        return True

    def _check_version(self, existing: Task, client_version: Number) -> None:
        if client_version < existing.version:
            logger.warning(
                f"Stale version for task {existing.id}: client {client_version}, "
                f"server {existing.version}"
            )
            raise ConflictError(existing)

    def _lost_write(self, task_id: str) -> Exception:
        """Build the error for a conditional write the store rejected."""
        current = self.store.get_by_id(task_id)
        if current is None:
            return NotFoundError(task_id)
        logger.warning(f"Concurrent write detected for task {task_id}")
        return ConflictError(current)

    def _notify(self, event_type: TaskEventType, task: Task) -> None:
        if not self._sinks:
            return
        publish_event(self._sinks, TaskEvent(
            type=event_type,
            task_id=task.id,
            timestamp=task.updated_at,
            task=task.to_dict(),
        ))
