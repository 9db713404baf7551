"""Pytest fixtures for TaskSync tests.

This module provides fixtures for configuration, stores, a deterministic
clock and a mutation engine wired to all of them.
"""

from __future__ import annotations

from pathlib import Path
from typing import Generator

import pytest

from tasksync.core.config import Config
from tasksync.core.database import SqliteTaskStore
from tasksync.core.mutations import MutationEngine
from tasksync.core.store import MemoryTaskStore

from tests.helpers import FakeClock, RecordingSink


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Create temporary config directory for tests.

    Args:
        tmp_path: pytest temporary directory fixture

    Returns:
        Path to temporary config directory.
    """
    config_dir = tmp_path / "tasksync_test"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


@pytest.fixture
def test_config(test_config_dir: Path) -> Config:
    """Create test configuration."""
    return Config(config_dir=test_config_dir)


@pytest.fixture
def clock() -> FakeClock:
    """Deterministic clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def sink() -> RecordingSink:
    """Event sink that records every published event."""
    return RecordingSink()


@pytest.fixture
def memory_store() -> MemoryTaskStore:
    """Empty in-memory task store."""
    return MemoryTaskStore()


@pytest.fixture
def sqlite_store(test_config_dir: Path) -> Generator[SqliteTaskStore, None, None]:
    """Empty SQLite task store in the temporary config directory.

    Yields:
        SqliteTaskStore instance, closed after the test.
    """
    store = SqliteTaskStore(test_config_dir / "test_tasks.db")
    yield store
    store.close()


@pytest.fixture
def engine(memory_store: MemoryTaskStore, clock: FakeClock, sink: RecordingSink) -> MutationEngine:
    """Mutation engine over the memory store, fake clock and recording sink."""
    return MutationEngine(memory_store, clock=clock, sinks=[sink])
