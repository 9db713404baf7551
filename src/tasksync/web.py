#!/usr/bin/env python3
"""Web API for TaskSync.

This module exposes the sync engine over HTTP. Route handlers only decode
requests and encode results; all sync semantics live in core/.

Endpoints:
    GET    /health                 Health check with server time
    GET    /api/tasks              Incremental task listing
    GET    /api/tasks/<id>         Get a specific task
    POST   /api/tasks              Create a task
    PUT    /api/tasks/<id>         Update a task (body must carry version)
    DELETE /api/tasks/<id>         Delete a task (optional ?version=)
    POST   /api/sync/batch         Apply a batch of offline operations

Query parameters for GET /api/tasks:
    - userId: Owner to list tasks for (default: configured default_user_id)
    - modifiedSince: Epoch ms checkpoint; only tasks updated after it

All endpoints return JSON. Stale versions answer 409 with the current
server copy under "serverTask".
"""

from __future__ import annotations

import argparse
import functools
import logging
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from flask import Blueprint, Flask, Response, jsonify, request
from flask_cors import CORS

from tasksync.core.config import Config
from tasksync.core.database import open_store
from tasksync.core.errors import ConflictError, NotFoundError
from tasksync.core.events import EventSink, LoggingEventSink
from tasksync.core.mutations import MutationEngine
from tasksync.core.query import list_tasks
from tasksync.core.store import TaskStore
from tasksync.core.sync import apply_sync_operations, summarize_results
from tasksync.core.timestamp_utils import now_ms
from tasksync.core.validation import ValidationError, parse_number

logger = logging.getLogger(__name__)


def conflict_response(error: ConflictError) -> tuple[Response, int]:
    """Build the 409 response for a stale version."""
    return jsonify({
        "error": error.message,
        "message": error.message,
        "conflict": True,
        "serverTask": error.server_task.to_dict(),
    }), 409


def api_endpoint(func: Callable) -> Callable:
    """Decorator for consistent API error handling.

    Maps ValidationError to 400, NotFoundError to 404, ConflictError to 409
    and any other exception to 500, with JSON error bodies and logging.
    """
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except ValidationError as e:
            logger.warning(f"Validation error in {func.__name__}: {e.field} - {e.message}")
            return jsonify({"error": f"Invalid {e.field}: {e.message}"}), 400
        except NotFoundError as e:
            return jsonify({"error": str(e)}), 404
        except ConflictError as e:
            return conflict_response(e)
        except Exception as e:
            logger.error(f"Error in {func.__name__}: {e}")
            return jsonify({"error": str(e)}), 500
    return wrapper


def create_task_blueprint(engine: MutationEngine, default_user_id: str) -> Blueprint:
    """Create Flask blueprint for task and sync endpoints.

    Args:
        engine: Mutation engine bound to the task store
        default_user_id: Owner used when a listing names no user

    Returns:
        Flask Blueprint with task routes
    """
    tasks_bp = Blueprint("tasks", __name__, url_prefix="/api")

    @tasks_bp.route("/tasks", methods=["GET"])
    @api_endpoint
    def get_tasks() -> tuple[Response, int]:
        """List tasks changed since a checkpoint."""
        user_id = request.args.get("userId") or default_user_id
        raw_since = request.args.get("modifiedSince")
        modified_since = parse_number(raw_since)
        if raw_since not in (None, "") and modified_since is None:
            raise ValidationError("modifiedSince", f"must be a number, got '{raw_since}'")

        listing = list_tasks(engine.store, user_id, modified_since, clock=engine.now)
        return jsonify({"success": True, **listing.to_dict()}), 200

    @tasks_bp.route("/tasks/<task_id>", methods=["GET"])
    @api_endpoint
    def get_task(task_id: str) -> tuple[Response, int]:
        """Get a specific task by ID."""
        task = engine.get(task_id)
        return jsonify({"success": True, "task": task.to_dict()}), 200

    @tasks_bp.route("/tasks", methods=["POST"])
    @api_endpoint
    def create_task() -> tuple[Response, int]:
        """Create a new task."""
        data = request.get_json(silent=True)
        if data is None:
            return jsonify({"error": "Request body is required"}), 400

        task = engine.create(data)
        return jsonify({"success": True, "task": task.to_dict()}), 201

    @tasks_bp.route("/tasks/<task_id>", methods=["PUT"])
    @api_endpoint
    def update_task(task_id: str) -> tuple[Response, int]:
        """Update a task if the submitted version is not stale."""
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            raise ValidationError("payload", "must be an object")

        task = engine.update(task_id, parse_number(data.get("version")), data)
        return jsonify({"success": True, "task": task.to_dict()}), 200

    @tasks_bp.route("/tasks/<task_id>", methods=["DELETE"])
    @api_endpoint
    def delete_task(task_id: str) -> tuple[Response, int]:
        """Delete a task. Deleting a missing task succeeds."""
        engine.delete(task_id, parse_number(request.args.get("version")))
        return jsonify({"success": True}), 200

    @tasks_bp.route("/sync/batch", methods=["POST"])
    @api_endpoint
    def sync_batch() -> tuple[Response, int]:
        """Apply a batch of queued client operations.

        Request body:
            {"operations": [{"id", "type", "taskId", "data"}, ...]}

        Response:
            {"results": [{"id", "success", "task"?, "message"?,
                          "conflict"?, "serverTask"?}, ...],
             "summary": {"applied", "conflicts", "failed"}}
        """
        data = request.get_json(silent=True) or {}
        operations = data.get("operations") if isinstance(data, dict) else None
        if not isinstance(operations, list):
            operations = []

        logger.info(f"Applying batch of {len(operations)} operations")
        results = apply_sync_operations(engine, operations)
        summary = summarize_results(results)
        return jsonify({
            "results": [result.to_dict() for result in results],
            "summary": {
                "applied": summary.applied,
                "conflicts": summary.conflicts,
                "failed": summary.failed,
            },
        }), 200

    return tasks_bp


def create_app(
    config_dir: Optional[Path] = None,
    store: Optional[TaskStore] = None,
    clock: Callable[[], int] = now_ms,
    sinks: Optional[Iterable[EventSink]] = None,
) -> Flask:
    """Create and configure Flask application.

    Args:
        config_dir: Custom configuration directory (default: None)
        store: Task store to serve (default: the store named in config)
        clock: Returns the current time in epoch milliseconds
        sinks: Event sinks for task changes (default: log every event)

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)
    app.json.sort_keys = False
    CORS(app)

    config = Config(config_dir=config_dir)
    if store is None:
        store = open_store(config)
    if sinks is None:
        sinks = [LoggingEventSink()]

    engine = MutationEngine(
        store,
        clock=clock,
        sinks=sinks,
        default_user_id=config.get_default_user_id(),
    )
    app.extensions["tasksync"] = engine
    app.register_blueprint(create_task_blueprint(engine, config.get_default_user_id()))

    logger.info(f"Web API initialized with {type(store).__name__}")

    @app.errorhandler(404)
    def not_found(error: Any) -> tuple[Response, int]:
        """Handle 404 errors."""
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(error: Any) -> tuple[Response, int]:
        """Handle 405 errors."""
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(500)
    def internal_error(error: Any) -> tuple[Response, int]:
        """Handle 500 errors."""
        logger.error(f"Internal error: {error}")
        return jsonify({"error": "Internal server error"}), 500

    @app.route("/health", methods=["GET"])
    def health_check() -> tuple[Response, int]:
        """Health check endpoint.

        Returns:
            JSON response indicating service health and server time
        """
        return jsonify({"status": "ok", "serverTime": clock()}), 200

    return app


def add_web_subparser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    """Add web subparser and its arguments.

    Args:
        subparsers: Parent subparsers object to add web parser to
    """
    web_parser = subparsers.add_parser(
        "web",
        help="Start web API server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    web_parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind to (default: server_host from config)"
    )

    web_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind to (default: server_port from config)"
    )

    web_parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode"
    )


def run(config_dir: Optional[Path], args: argparse.Namespace) -> int:
    """Run web server with given arguments.

    Args:
        config_dir: Custom configuration directory or None for default
        args: Parsed command-line arguments (should have host, port, debug attributes)

    Returns:
        Exit code (0 for success)
    """
    logger.info("Starting TaskSync Web API")
    if config_dir:
        logger.info(f"Using custom config directory: {config_dir}")

    config = Config(config_dir=config_dir)
    host = args.host or config.get_server_host()
    port = args.port or config.get_server_port()

    app = create_app(config_dir=config_dir)
    try:
        app.run(host=host, port=port, debug=args.debug, threaded=True)
    finally:
        app.extensions["tasksync"].store.close()

    return 0
