"""Test helpers for TaskSync tests.

Provides a controllable clock, an event sink that records what it receives,
and stores that fail or lose races on demand.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Callable, List, Optional

from tasksync.core.errors import StoreError
from tasksync.core.events import EventSink, TaskEvent
from tasksync.core.models import Task
from tasksync.core.store import MemoryTaskStore

# 2023-11-14 22:13:20 UTC
START_MS = 1_700_000_000_000


class FakeClock:
    """Deterministic epoch-ms clock. Time only moves when advanced."""

    def __init__(self, start: int = START_MS) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int = 1000) -> int:
        self.now += ms
        return self.now


class RecordingSink(EventSink):
    """Collects published events in order."""

    def __init__(self) -> None:
        self.events: List[TaskEvent] = []

    def publish(self, event: TaskEvent) -> None:
        self.events.append(event)


class ExplodingSink(EventSink):
    """Fails on every publish."""

    def publish(self, event: TaskEvent) -> None:
        raise RuntimeError("sink unavailable")


class FailingStore(MemoryTaskStore):
    """Memory store whose writes fail for selected task titles."""

    def __init__(self, fail_titles: Optional[List[str]] = None) -> None:
        super().__init__()
        self.fail_titles = set(fail_titles or [])

    def upsert(self, task: Task, expected_version: Optional[int] = None) -> bool:
        if task.title in self.fail_titles:
            raise StoreError(f"disk full while writing {task.id}")
        return super().upsert(task, expected_version)

    def insert(self, task: Task) -> bool:
        if task.title in self.fail_titles:
            raise StoreError(f"disk full while writing {task.id}")
        return super().insert(task)


class RacingStore(MemoryTaskStore):
    """Memory store where another writer bumps the version before each
    conditional write, simulating a lost race without a shared lock."""

    def upsert(self, task: Task, expected_version: Optional[int] = None) -> bool:
        if expected_version is not None:
            current = self.get_by_id(task.id)
            if current is not None:
                super().upsert(replace(current, version=current.version + 1))
        return super().upsert(task, expected_version)


class InterleavingStore(MemoryTaskStore):
    """Memory store that runs another writer's work just before the next
    insert, simulating a create that races a different engine."""

    def __init__(self) -> None:
        super().__init__()
        self.before_insert: Optional[Callable[[], None]] = None

    def insert(self, task: Task) -> bool:
        hook, self.before_insert = self.before_insert, None
        if hook is not None:
            hook()
        return super().insert(task)
