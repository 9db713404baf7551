"""Pytest fixtures for web API tests.

Provides a Flask test client over an in-memory store, a fake clock and a
recording event sink.
"""

from __future__ import annotations

from pathlib import Path
from typing import Generator

import pytest
from flask import Flask
from flask.testing import FlaskClient

from tasksync.core.mutations import MutationEngine
from tasksync.core.store import MemoryTaskStore
from tasksync.web import create_app

from tests.helpers import FakeClock, RecordingSink


@pytest.fixture
def web_app(
    test_config_dir: Path,
    memory_store: MemoryTaskStore,
    clock: FakeClock,
    sink: RecordingSink,
) -> Generator[Flask, None, None]:
    """Create Flask app for testing.

    Args:
        test_config_dir: Temporary config directory
        memory_store: Store served by the app
        clock: Fake clock used for timestamps
        sink: Sink receiving task events

    Yields:
        Flask application instance
    """
    app = create_app(config_dir=test_config_dir, store=memory_store, clock=clock, sinks=[sink])
    app.config["TESTING"] = True
    yield app


@pytest.fixture
def client(web_app: Flask) -> FlaskClient:
    """Create Flask test client.

    Args:
        web_app: Flask application

    Returns:
        Flask test client for making requests
    """
    return web_app.test_client()


@pytest.fixture
def app_engine(web_app: Flask) -> MutationEngine:
    """The mutation engine behind the app, for seeding data."""
    return web_app.extensions["tasksync"]
